from __future__ import annotations

from pathlib import Path

import roi_scenarios.persistence as persistence
import roi_scenarios.runtime_logging as runtime_logging


def test_runtime_logging_append_and_read(tmp_path, monkeypatch):
    monkeypatch.setattr(persistence, "STORE_DIR", Path(tmp_path))

    runtime_logging.append_runtime_event(
        level="warning",
        event="test_event",
        message="Test warning.",
        context={"scenario_id": "abc", "fields": ("roi",)},
    )
    events = runtime_logging.read_runtime_events(limit=10)
    assert len(events) == 1
    assert events[0]["event"] == "test_event"
    assert events[0]["level"] == "WARNING"
    assert events[0]["context"]["scenario_id"] == "abc"
    assert events[0]["context"]["fields"] == ["roi"]


def test_runtime_logging_records_exception_details(tmp_path, monkeypatch):
    monkeypatch.setattr(persistence, "STORE_DIR", Path(tmp_path))

    try:
        raise RuntimeError("store offline")
    except RuntimeError as exc:
        runtime_logging.append_runtime_event(level="error", event="save_scenario_failed", message="Save failed.", exc=exc)

    event = runtime_logging.read_runtime_events(limit=1)[0]
    assert event["exception_type"] == "RuntimeError"
    assert event["exception_message"] == "store offline"
    assert "Traceback" in event["traceback"]


def test_runtime_logging_handles_malformed_lines(tmp_path, monkeypatch):
    monkeypatch.setattr(persistence, "STORE_DIR", Path(tmp_path))
    log_file = Path(tmp_path) / "runtime_events.jsonl"

    log_file.parent.mkdir(parents=True, exist_ok=True)
    log_file.write_text('{"event":"ok","level":"INFO","timestamp_utc":"2026-01-01T00:00:00+00:00","message":"ok","context":{}}\n\nnot-json\n', encoding="utf-8")

    events = runtime_logging.read_runtime_events(limit=10)
    assert len(events) == 2
    assert events[0]["event"] == "ok"
    assert events[1]["event"] == "log_parse_error"


def test_clear_runtime_events_removes_log(tmp_path, monkeypatch):
    monkeypatch.setattr(persistence, "STORE_DIR", Path(tmp_path))
    log_file = Path(tmp_path) / "runtime_events.jsonl"

    runtime_logging.append_runtime_event(level="info", event="x", message="x")
    assert runtime_logging.clear_runtime_events() is True
    assert not log_file.exists()
    assert runtime_logging.read_runtime_events() == []


def test_read_runtime_events_filters_by_level_and_limit(tmp_path, monkeypatch):
    monkeypatch.setattr(persistence, "STORE_DIR", Path(tmp_path))

    runtime_logging.append_runtime_event(level="info", event="loaded", message="Loaded.")
    runtime_logging.append_runtime_event(level="warning", event="concurrent_save_rejected", message="Busy.")
    runtime_logging.append_runtime_event(level="error", event="save_scenario_failed", message="Failed.")

    assert [e["event"] for e in runtime_logging.read_runtime_events(min_level="warning")] == [
        "concurrent_save_rejected",
        "save_scenario_failed",
    ]
    assert [e["event"] for e in runtime_logging.read_runtime_events(limit=1)] == ["save_scenario_failed"]


def test_events_frame_lifts_ids_from_context():
    wrapped = ValueError("wrapped")
    wrapped.__cause__ = OSError("disk")
    record = runtime_logging.build_event_record(
        "error", "save_scenario_failed", "Failed.", {"user_id": "u1", "scenario_id": "s1"}, exc=wrapped
    )
    assert record["exception_cause"] == "OSError: disk"

    df = runtime_logging.events_frame([record, {"event": "bare"}])
    assert list(df.columns) == runtime_logging.EVENT_COLUMNS
    assert df.iloc[0]["user_id"] == "u1"
    assert df.iloc[0]["scenario_id"] == "s1"
    assert df.iloc[1]["event"] == "bare"


def test_runtime_log_follows_configured_storage_root(tmp_path, monkeypatch):
    monkeypatch.setattr(persistence, "STORE_DIR", Path(tmp_path))
    moved = persistence.configure_storage_root(Path(tmp_path) / "elsewhere")

    runtime_logging.append_runtime_event(level="info", event="moved", message="Moved.")
    assert (moved / "runtime_events.jsonl").exists()
    assert runtime_logging.runtime_log_path() == str((moved / "runtime_events.jsonl").resolve())
