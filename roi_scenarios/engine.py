"""Core outreach ROI calculation engine.

``compute`` maps scenario inputs to derived metrics. It is pure and total: any
mapping is accepted, unreadable values count as 0, and metrics that would need a
division by zero (or that overflow a float) are reported as ``None`` (not
applicable).
"""

from __future__ import annotations

import math
from typing import Any


INPUT_KEYS = (
    "current_outreach",
    "booking_pct",
    "close_pct",
    "avg_customer_value",
    "projected_outreach",
    "inkline_investment",
)

FRACTION_KEYS = ("booking_pct", "close_pct")

DERIVED_KEYS = (
    "current_leads",
    "current_customers",
    "current_revenue",
    "projected_leads",
    "projected_customers",
    "projected_revenue",
    "increase_leads",
    "increase_revenue",
    "leads_needed",
    "outreach_needed",
    "roi",
)

# Derived metrics that may legitimately be negative (a regression scenario).
SIGNED_KEYS = ("increase_leads", "increase_revenue", "roi")


def _amount(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    try:
        x = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(x) or x < 0:
        return 0.0
    return x


def _fraction(value: Any) -> float:
    return min(1.0, _amount(value))


def _ratio(numerator: float, denominator: float) -> float | None:
    if denominator == 0:
        return None
    return numerator / denominator


def _finite(value: float | None) -> float | None:
    # Products of very large inputs can overflow; treat them as not applicable.
    if value is None or not math.isfinite(value):
        return None
    return value


def compute(inputs: dict) -> dict:
    """Return derived metrics for one scenario.

    Fraction inputs (``booking_pct``, ``close_pct``) must already be in [0, 1].
    Values are not rounded.
    """
    current_outreach = _amount(inputs.get("current_outreach"))
    projected_outreach = _amount(inputs.get("projected_outreach"))
    booking_pct = _fraction(inputs.get("booking_pct"))
    close_pct = _fraction(inputs.get("close_pct"))
    avg_customer_value = _amount(inputs.get("avg_customer_value"))
    investment = _amount(inputs.get("inkline_investment"))

    current_leads = current_outreach * booking_pct
    current_customers = current_leads * close_pct
    current_revenue = current_customers * avg_customer_value

    projected_leads = projected_outreach * booking_pct
    projected_customers = projected_leads * close_pct
    projected_revenue = projected_customers * avg_customer_value

    increase_leads = projected_leads - current_leads
    increase_revenue = projected_revenue - current_revenue

    leads_needed = _ratio(investment, avg_customer_value * close_pct)
    outreach_needed = None if leads_needed is None else _ratio(leads_needed, booking_pct)

    derived = {
        "current_leads": current_leads,
        "current_customers": current_customers,
        "current_revenue": current_revenue,
        "projected_leads": projected_leads,
        "projected_customers": projected_customers,
        "projected_revenue": projected_revenue,
        "increase_leads": increase_leads,
        "increase_revenue": increase_revenue,
        "leads_needed": leads_needed,
        "outreach_needed": outreach_needed,
        "roi": _ratio(increase_revenue - investment, investment),
    }
    return {k: _finite(v) for k, v in derived.items()}


def net_gain(inputs: dict, derived: dict) -> float:
    """Revenue lift left over after paying for the investment."""
    return float(derived.get("increase_revenue") or 0.0) - _amount(inputs.get("inkline_investment"))
