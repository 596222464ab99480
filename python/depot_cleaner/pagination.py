"""Cursor-based pagination over Depot listing endpoints."""

from typing import Any, Callable, Dict, List, Mapping, Optional

from depot_cleaner.logging_utils import get_logger

logger = get_logger(__name__)


def fetch_all(
    list_fn: Callable[..., Mapping[str, Any]],
    query: Optional[Dict[str, Any]] = None,
    page_size_cap: int = 100,
    max_items: Optional[int] = None,
    items_key: str = "items",
    label: str = "items",
) -> List[Any]:
    """Call a paginated listing function until the collection is exhausted.

    ``list_fn`` is called as ``list_fn(**query, page_size=..., page_token=...)``
    and must return a mapping holding the page under ``items_key`` and the
    continuation token under ``nextPageToken``. Iteration stops when a response
    has no token or once ``max_items`` results have been collected.

    Errors raised by ``list_fn`` propagate unchanged.

    Args:
        list_fn: Listing capability
        query: Filter arguments passed on every call (e.g. {"project_id": "abc"})
        page_size_cap: Largest page size to request
        max_items: Optional cap on the total number of results
        items_key: Response key holding the page of results
        label: Noun used in log lines

    Returns:
        Results in server order
    """
    if page_size_cap < 1:
        raise ValueError(f"page_size_cap must be a positive integer, got: {page_size_cap}")
    if max_items is not None and max_items < 0:
        raise ValueError(f"max_items must be a non-negative integer, got: {max_items}")

    query = dict(query or {})
    results: List[Any] = []
    page_token: Optional[str] = None

    while max_items is None or len(results) < max_items:
        page_size = page_size_cap
        if max_items is not None:
            page_size = min(page_size_cap, max_items - len(results))

        response = list_fn(**query, page_size=page_size, page_token=page_token)
        page = list(response.get(items_key) or [])

        if max_items is not None:
            page = page[: max_items - len(results)]
        if page:
            results.extend(page)
            logger.info(f"Fetched {len(page)} {label} (total: {len(results)})")

        page_token = response.get("nextPageToken") or None
        if not page_token:
            break

    return results
