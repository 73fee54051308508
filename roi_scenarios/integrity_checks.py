"""Checks that stored derived metrics agree with the calculation engine."""

from __future__ import annotations

from typing import Any

import numpy as np
import pandas as pd

from roi_scenarios.engine import DERIVED_KEYS, SIGNED_KEYS, compute


def _finding(field: str, stored: Any, expected: Any, problem: str) -> dict[str, Any]:
    return {
        "Field": field,
        "Stored": stored,
        "Expected": expected,
        "Problem": problem,
    }


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def check_scenario_record(record: dict, tol: float = 1e-6) -> list[dict[str, Any]]:
    """Return findings for one record (empty list means all derived fields match)."""
    expected = compute(record)
    findings: list[dict[str, Any]] = []
    for key in DERIVED_KEYS:
        stored = record.get(key)
        want = expected[key]
        if want is None:
            if stored is not None:
                findings.append(_finding(key, stored, None, "Should be not applicable"))
            continue
        if not _is_number(stored) or not np.isfinite(stored):
            findings.append(_finding(key, stored, want, "Missing or non-numeric"))
            continue
        if not np.isclose(float(stored), want, rtol=tol, atol=tol):
            findings.append(_finding(key, stored, want, "Value mismatch"))
            continue
        if key not in SIGNED_KEYS and float(stored) < 0:
            findings.append(_finding(key, stored, want, "Negative value"))
    return findings


def run_integrity_checks(records: list[dict], tol: float = 1e-6) -> pd.DataFrame:
    """Tabulate findings across many stored scenarios."""
    rows: list[dict[str, Any]] = []
    for record in records:
        for finding in check_scenario_record(record, tol=tol):
            rows.append({"Scenario": record.get("name", ""), "Scenario ID": record.get("id"), **finding})
    return pd.DataFrame(rows, columns=["Scenario", "Scenario ID", "Field", "Stored", "Expected", "Problem"])
