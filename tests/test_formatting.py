from __future__ import annotations

import pytest

from roi_scenarios.formatting import (
    NOT_APPLICABLE_TEXT,
    format_currency,
    format_number,
    format_percent,
    format_signed_currency,
    roi_status,
)


def test_currency_and_number_formatting():
    assert format_currency(192000) == "$192,000"
    assert format_currency(-96000.4) == "-$96,000"
    assert format_signed_currency(5) == "+$5"
    assert format_signed_currency(-5) == "-$5"
    assert format_number(1234.567, 1) == "1,234.6"


def test_percent_formatting_uses_fraction_input():
    assert format_percent(7.0) == "700.0%"
    assert format_percent(0.08) == "8.0%"


@pytest.mark.parametrize("value", [None, float("nan"), "abc"])
def test_missing_values_render_as_not_applicable(value):
    assert format_currency(value) == NOT_APPLICABLE_TEXT
    assert format_percent(value) == NOT_APPLICABLE_TEXT
    assert format_number(value) == NOT_APPLICABLE_TEXT


def test_roi_status_labels():
    assert roi_status(None) == "Not applicable"
    assert roi_status(0.0) == "Positive ROI"
    assert roi_status(-0.2) == "Negative ROI"
