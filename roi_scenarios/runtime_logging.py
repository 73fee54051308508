"""Structured runtime event log for the scenario workspace.

Events are appended as JSON lines beside the scenario store so a support
session can read back what the synchronizer and the app reported.
"""

from __future__ import annotations

import json
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pandas as pd
from streamlit.runtime.scriptrunner import get_script_run_ctx

from roi_scenarios import persistence


RUNTIME_EVENTS_FILE_NAME = "runtime_events.jsonl"
LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
EVENT_COLUMNS = ["timestamp_utc", "level", "event", "message", "user_id", "scenario_id"]

_EXCEPTION_HOOK_INSTALLED = False


def _json_default(value: Any):
    if isinstance(value, (set, frozenset, tuple)):
        return sorted(value, key=str) if isinstance(value, (set, frozenset)) else list(value)
    return str(value)


def runtime_log_file() -> Path:
    """The log lives in the scenario storage root and follows ``configure_storage_root``."""
    return persistence.STORE_DIR / RUNTIME_EVENTS_FILE_NAME


def runtime_log_path() -> str:
    return str(runtime_log_file().resolve())


def build_event_record(
    level: str,
    event: str,
    message: str,
    context: dict[str, Any] | None = None,
    exc: BaseException | None = None,
) -> dict[str, Any]:
    record: dict[str, Any] = {
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
        "level": str(level).upper(),
        "event": str(event),
        "message": str(message),
        "context": dict(context or {}),
    }
    if exc is not None:
        record["exception_type"] = type(exc).__name__
        record["exception_message"] = str(exc)
        if exc.__cause__ is not None:
            record["exception_cause"] = f"{type(exc.__cause__).__name__}: {exc.__cause__}"
        if exc.__traceback__ is not None:
            record["traceback"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return record


def append_runtime_event(
    level: str,
    event: str,
    message: str,
    context: dict[str, Any] | None = None,
    exc: BaseException | None = None,
) -> None:
    """Append one event to the runtime log. Write errors are ignored."""
    try:
        line = json.dumps(build_event_record(level, event, message, context, exc), default=_json_default, ensure_ascii=False)
        log_file = runtime_log_file()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        with log_file.open("a", encoding="utf-8") as f:
            f.write(line + "\n")
    except Exception:
        # The log must never take the app down with it.
        pass


def _parse_line(line: str) -> dict[str, Any]:
    try:
        record = json.loads(line)
    except json.JSONDecodeError:
        record = None
    if isinstance(record, dict):
        return record
    return build_event_record("ERROR", "log_parse_error", "Malformed log line encountered.", {"line": line})


def read_runtime_events(limit: int = 200, min_level: str | None = None) -> list[dict[str, Any]]:
    """Return the newest ``limit`` events in file order, optionally at or above ``min_level``."""
    log_file = runtime_log_file()
    if limit <= 0 or not log_file.exists():
        return []
    try:
        lines = log_file.read_text(encoding="utf-8").splitlines()
    except OSError:
        return []
    events = [_parse_line(line) for line in lines if line.strip()]
    if min_level:
        floor = LEVELS.index(min_level.upper()) if min_level.upper() in LEVELS else 0
        events = [e for e in events if str(e.get("level", "")).upper() in LEVELS[floor:]]
    return events[-int(limit) :]


def events_frame(events: list[dict[str, Any]]) -> pd.DataFrame:
    """Flatten events for the diagnostics table, lifting user and scenario ids out of the context."""
    rows = []
    for e in events:
        ctx = e.get("context") if isinstance(e.get("context"), dict) else {}
        rows.append(
            {
                "timestamp_utc": e.get("timestamp_utc", ""),
                "level": e.get("level", ""),
                "event": e.get("event", ""),
                "message": e.get("message", ""),
                "user_id": ctx.get("user_id"),
                "scenario_id": ctx.get("scenario_id"),
            }
        )
    return pd.DataFrame(rows, columns=EVENT_COLUMNS)


def clear_runtime_events() -> bool:
    try:
        runtime_log_file().unlink(missing_ok=True)
    except OSError:
        return False
    return True


def install_global_exception_logging() -> None:
    """Record uncaught exceptions from Streamlit script runs, then defer to the previous hook."""
    global _EXCEPTION_HOOK_INSTALLED
    if _EXCEPTION_HOOK_INSTALLED:
        return
    previous_hook = sys.excepthook

    def _hook(exc_type, exc, exc_tb):
        if get_script_run_ctx() is not None:
            append_runtime_event(level="ERROR", event="uncaught_exception", message=str(exc), exc=exc)
        previous_hook(exc_type, exc, exc_tb)

    sys.excepthook = _hook
    _EXCEPTION_HOOK_INSTALLED = True
