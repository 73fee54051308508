"""Input help text and advisory range checks."""

from __future__ import annotations

from typing import Any

from roi_scenarios.schema import PERCENT_FIELDS


INPUT_HELP: dict[str, str] = {
    "name": "Label shown in the scenario list. Blank names are saved as Untitled Scenario.",
    "current_outreach": "Outreach attempts (calls, emails, messages) made today per period.",
    "booking_pct": "Share of outreach attempts that turn into a booked lead or meeting, in percent.",
    "close_pct": "Share of leads that become paying customers, in percent.",
    "avg_customer_value": "Revenue from one new customer, in dollars.",
    "projected_outreach": "Outreach attempts per period once the campaign is running.",
    "inkline_investment": "Campaign spend to be recovered, in dollars.",
}

# Ranges are in stored units (fractions for percent fields).
INPUT_GUIDANCE: dict[str, dict[str, Any]] = {
    "current_outreach": {"min": 50, "max": 50000, "note": "Typical monthly outreach volume for a small sales team."},
    "booking_pct": {"min": 0.01, "max": 0.25, "note": "Cold outreach rarely books more than a quarter of attempts."},
    "close_pct": {"min": 0.05, "max": 0.6, "note": "Close rates above 60% usually indicate warm referrals only."},
    "avg_customer_value": {"min": 100.0, "max": 250000.0, "note": "First-year revenue per customer."},
    "projected_outreach": {"min": 50, "max": 100000, "note": "Projected volume should be reachable with the added spend."},
    "inkline_investment": {"min": 500.0, "max": 1000000.0, "note": "Total campaign investment for the period."},
}


def _fmt(key: str, v: float) -> str:
    if key in PERCENT_FIELDS:
        return f"{v * 100:g}%"
    if abs(v - round(v)) < 1e-9:
        return f"{int(round(v)):,}"
    return f"{v:,.2f}"


def help_with_guidance(key: str) -> str:
    base_help = INPUT_HELP.get(key, "")
    g = INPUT_GUIDANCE.get(key)
    if not g:
        return base_help
    return f"{base_help} Reasonable range: {_fmt(key, g['min'])} to {_fmt(key, g['max'])}. {g['note']}"


def advisory_warnings(inputs: dict) -> list[str]:
    warnings: list[str] = []
    for key, g in INPUT_GUIDANCE.items():
        if key not in inputs:
            continue
        try:
            v = float(inputs[key])
        except (TypeError, ValueError):
            continue
        if v < g["min"] or v > g["max"]:
            warnings.append(
                f"{key}={_fmt(key, v)} is outside the recommended range [{_fmt(key, g['min'])}, {_fmt(key, g['max'])}]."
            )
    try:
        if float(inputs.get("projected_outreach", 0)) < float(inputs.get("current_outreach", 0)):
            warnings.append("projected_outreach is below current_outreach; the scenario models a decline.")
    except (TypeError, ValueError):
        pass
    return warnings
