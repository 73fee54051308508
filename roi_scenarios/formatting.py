"""Display formatting for scenario results."""

from __future__ import annotations

import math

NOT_APPLICABLE_TEXT = "—"


def _missing(value) -> bool:
    if value is None:
        return True
    try:
        return not math.isfinite(float(value))
    except (TypeError, ValueError):
        return True


def format_currency(value) -> str:
    if _missing(value):
        return NOT_APPLICABLE_TEXT
    x = float(value)
    sign = "-" if x < 0 else ""
    return f"{sign}${abs(x):,.0f}"


def format_number(value, decimals: int = 0) -> str:
    if _missing(value):
        return NOT_APPLICABLE_TEXT
    return f"{float(value):,.{decimals}f}"


def format_percent(fraction) -> str:
    if _missing(fraction):
        return NOT_APPLICABLE_TEXT
    return f"{float(fraction) * 100:.1f}%"


def format_signed_currency(value) -> str:
    if _missing(value):
        return NOT_APPLICABLE_TEXT
    return ("+" if float(value) >= 0 else "") + format_currency(value)


def roi_status(roi) -> str:
    if roi is None:
        return "Not applicable"
    if roi >= 0:
        return "Positive ROI"
    return "Negative ROI"
