"""Default scenario inputs used for new drafts and sanitization fallbacks."""

from __future__ import annotations


DEFAULT_SCENARIO_NAME = "New Scenario"
UNTITLED_SCENARIO_NAME = "Untitled Scenario"

# Percent-style inputs are stored as fractions.
DEFAULTS = {
    "name": DEFAULT_SCENARIO_NAME,
    "current_outreach": 1000,
    "booking_pct": 0.08,
    "close_pct": 0.30,
    "avg_customer_value": 8000.0,
    "projected_outreach": 2000,
    "inkline_investment": 24000.0,
}
