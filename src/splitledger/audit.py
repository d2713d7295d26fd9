"""Append-only log of ledger writes. One JSON object per line."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

from .config import get_log_path

Action = Literal[
    "expense_added",
    "expense_edited",
    "expense_removed",
    "settlement_recorded",
    "settlement_duplicate",
    "settlement_removed",
]


def log_event(
    trip_id: str,
    action: Action,
    record_id: str,
    log_path: Path | None = None,
    **details: Any,
) -> None:
    """
    Append a ledger event to the log file.

    Args:
        trip_id: Trip the record belongs to
        action: What happened
        record_id: Id of the expense or settlement
        log_path: Optional custom log path (for testing)
        **details: Extra JSON-serializable fields (amounts, participants)
    """
    if log_path is None:
        log_path = get_log_path()

    log_path.parent.mkdir(parents=True, exist_ok=True)

    entry: dict[str, Any] = {
        "ts": datetime.now().isoformat(),
        "trip_id": trip_id,
        "action": action,
        "record_id": record_id,
    }
    entry.update(details)

    with open(log_path, "a", encoding="utf-8") as f:
        f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")


def read_log(log_path: Path | None = None, limit: int | None = None) -> list[dict[str, Any]]:
    """
    Read entries from the log file.

    Args:
        log_path: Optional custom log path
        limit: Maximum number of entries to return (from end of file)

    Returns:
        List of log entries as dictionaries
    """
    if log_path is None:
        log_path = get_log_path()

    if not log_path.exists():
        return []

    entries = []
    with open(log_path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                entries.append(json.loads(line))

    if limit is not None:
        return entries[-limit:]
    return entries
