"""
Image and project records built from Depot API listing responses.

Timestamps reach us in several shapes depending on the transport: protobuf
Timestamp messages (or their JSON mapping with ``seconds``/``nanos``), objects
exposing a datetime conversion, and RFC 3339 strings. ``normalize_pushed_at``
turns all of them into a timezone-aware UTC datetime once, when a record is
built, so nothing downstream has to care about the original shape.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Mapping, Optional

from depot_cleaner.logging_utils import get_logger

logger = get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _from_epoch(seconds: Any, nanos: Any = 0) -> datetime:
    return datetime.fromtimestamp(int(seconds) + int(nanos or 0) / 1e9, tz=timezone.utc)


def _parse_timestamp_string(value: str) -> Optional[datetime]:
    text = value.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    # fromisoformat only accepts up to microseconds
    if "." in text:
        head, _, rest = text.partition(".")
        digits = ""
        while rest and rest[0].isdigit():
            digits, rest = digits + rest[0], rest[1:]
        text = f"{head}.{digits[:6].ljust(6, '0')}{rest}" if digits else f"{head}{rest}"
    try:
        return _as_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def normalize_pushed_at(value: Any) -> Optional[datetime]:
    """Convert any accepted push timestamp representation to a UTC datetime.

    Accepted shapes:
        - ``datetime`` (naive values are taken as UTC) or ``date``
        - a mapping or object carrying epoch ``seconds`` (and optional ``nanos``)
        - an object with ``ToDatetime()``, ``to_datetime()`` or ``to_date()``
        - an ISO 8601 / RFC 3339 string, ``Z`` suffix allowed

    Args:
        value: Raw ``pushedAt`` value from the API

    Returns:
        A timezone-aware datetime, or None when the value is missing or unparseable
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if isinstance(value, str):
        parsed = _parse_timestamp_string(value)
        if parsed is None:
            logger.warning(f"Could not parse pushedAt timestamp: {value!r}")
        return parsed

    try:
        if isinstance(value, Mapping):
            if value.get("seconds") is not None:
                return _from_epoch(value["seconds"], value.get("nanos", 0))
        elif getattr(value, "seconds", None) is not None and not callable(value.seconds):
            return _from_epoch(value.seconds, getattr(value, "nanos", 0))

        for method in ("ToDatetime", "to_datetime", "to_date"):
            converter = getattr(value, method, None)
            if callable(converter):
                return normalize_pushed_at(converter())
    except (TypeError, ValueError, OverflowError, OSError) as e:
        logger.warning(f"Could not convert pushedAt timestamp {value!r}: {e}")
        return None

    logger.warning(f"Unsupported pushedAt timestamp type: {type(value).__name__}")
    return None


@dataclass(frozen=True)
class Image:
    """A tagged registry entry as reported by ListImages"""

    tag: Optional[str] = None
    digest: Optional[str] = None
    pushed_at: Optional[datetime] = None
    size_bytes: Optional[int] = None

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "Image":
        """Build an Image from a decoded ListImages item (camelCase or snake_case keys)"""
        pushed_raw = data.get("pushedAt", data.get("pushed_at"))
        size = data.get("sizeBytes", data.get("size_bytes"))
        try:
            size = int(size) if size is not None else None
        except (TypeError, ValueError):
            size = None
        return cls(
            tag=data.get("tag") or None,
            digest=data.get("digest") or None,
            pushed_at=normalize_pushed_at(pushed_raw),
            size_bytes=size,
        )


@dataclass(frozen=True)
class Project:
    """A Depot project from ListProjects"""

    project_id: str
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.project_id

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "Project":
        return cls(project_id=data.get("projectId") or data.get("project_id") or data["id"], name=data.get("name") or None)
