"""
Utility functions for report generation and saving.

This module provides functions to:
- Save reports as JSON
- Render run summaries as tables
- Generate timestamped report filenames
"""
import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from tabulate import tabulate

from depot_cleaner.logging_utils import get_logger

logger = get_logger(__name__)


def get_timestamp_suffix() -> str:
    """
    Generate a timestamp suffix for report filenames.

    Returns:
        String in format: YYYY-MM-DD-HH-MM-SS
    """
    return datetime.now().strftime("%Y-%m-%d-%H-%M-%S")


def add_timestamp_to_path(path: str, timestamp: Optional[str] = None) -> str:
    """
    Add a timestamp to a file path before the extension.

    Args:
        path: Original file path (e.g., 'reports/deletion-plan.json')
        timestamp: Optional timestamp string (defaults to current time)

    Returns:
        Path with timestamp inserted (e.g., 'reports/deletion-plan-2026-01-15-14-30-00.json')
    """
    if timestamp is None:
        timestamp = get_timestamp_suffix()

    p = Path(path)
    return str(p.parent / f"{p.stem}-{timestamp}{p.suffix}")


def _to_serializable(data: Any) -> Any:
    """Recursively convert datetimes, sets and tuples into JSON-friendly values"""
    if isinstance(data, (datetime, date)):
        return data.isoformat()
    elif isinstance(data, (set, frozenset)):
        try:
            return [_to_serializable(item) for item in sorted(data)]
        except TypeError:
            return [_to_serializable(item) for item in data]
    elif isinstance(data, dict):
        return {k: _to_serializable(v) for k, v in data.items()}
    elif isinstance(data, (list, tuple)):
        return [_to_serializable(item) for item in data]
    return data


def save_json(path: str, data: Any, timestamp: bool = False) -> str:
    """
    Write JSON data to a file with indentation.

    Args:
        path: Path to save the JSON file
        data: Data to save
        timestamp: If True, add timestamp to filename

    Returns:
        Path to the saved file
    """
    p = Path(path)
    if timestamp:
        p = Path(add_timestamp_to_path(str(p)))

    p.parent.mkdir(parents=True, exist_ok=True)

    with open(p, 'w') as f:
        json.dump(_to_serializable(data), f, indent=2)
    logger.info(f"Saved JSON to {p}")
    return str(p)


def format_summary_table(rows: Sequence[Dict[str, Any]], dry_run: bool) -> str:
    """Render per-project results as a grid table.

    Args:
        rows: Dicts with project, images, planned, deleted, errors and optional error keys
        dry_run: Label the deleted column as a projection

    Returns:
        Table string
    """
    headers: List[str] = [
        "Project",
        "Images",
        "Planned",
        "Would delete" if dry_run else "Deleted",
        "Errors",
        "Status",
    ]
    table = [
        [
            row.get("project"),
            row.get("images", 0),
            row.get("planned", 0),
            row.get("planned", 0) if dry_run else row.get("deleted", 0),
            row.get("errors", 0),
            "failed" if row.get("error") else "ok",
        ]
        for row in rows
    ]
    return tabulate(table, headers=headers, tablefmt="grid")
