"""Audit logging utilities for the relay.

This module writes and reads JSON-formatted audit logs in the relay's
logs directory. One file per day, one entry per digest, forward, fetch
failure or session termination.
"""

import json
from pathlib import Path
from typing import Any

from webwx_relay.utils.timestamps import today_iso


def log_action(log_dir: str | Path, entry: dict[str, Any]) -> None:
    """Append an action entry to today's log file.

    Creates the log file if it doesn't exist. Each log file contains
    a JSON object with a "date" field and an "entries" array.

    Args:
        log_dir: Path to the log directory (e.g., logs/actions).
        entry: Dictionary containing the log entry fields.
            Required: timestamp, correlation_id, actor, action_type, target, result
            Optional: parameters, error

    Examples:
        >>> log_action("logs/actions", {
        ...     "timestamp": "2025-02-04T14:30:22Z",
        ...     "correlation_id": "abc-123",
        ...     "actor": "digest_notifier",
        ...     "action_type": "digest_sent",
        ...     "target": "j***@example.com",
        ...     "result": "success"
        ... })
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    date = today_iso()
    log_file = log_path / f"{date}.json"

    if log_file.exists():
        data = json.loads(log_file.read_text(encoding="utf-8"))
    else:
        data = {"date": date, "entries": []}

    data["entries"].append(entry)

    log_file.write_text(
        json.dumps(data, indent=2, ensure_ascii=False),
        encoding="utf-8",
    )


def read_recent_logs(log_dir: str | Path, count: int = 10) -> list[dict[str, Any]]:
    """Read the most recent log entries from a log directory.

    Reads entries across multiple days if needed to reach the requested count.

    Args:
        log_dir: Path to the log directory.
        count: Maximum number of entries to return.

    Returns:
        List of log entries, most recent first.
    """
    log_path = Path(log_dir)
    if not log_path.exists():
        return []

    log_files = sorted(log_path.glob("*.json"), reverse=True)

    entries: list[dict[str, Any]] = []

    for log_file in log_files:
        if len(entries) >= count:
            break

        try:
            data = json.loads(log_file.read_text(encoding="utf-8"))
            file_entries = data.get("entries", [])
            file_entries.reverse()
            entries.extend(file_entries)
        except (json.JSONDecodeError, KeyError):
            continue

    return entries[:count]


def redact_email(address: str) -> str:
    """Redact an email address for logging: ``john@example.com`` → ``j***@example.com``."""
    local, sep, domain = address.partition("@")
    if local and sep:
        return f"{local[0]}***@{domain}"
    return "***"
