"""Scenario field schema, input coercion and import migration helpers."""

from __future__ import annotations

from copy import deepcopy
from typing import Any

from roi_scenarios.defaults import DEFAULTS, UNTITLED_SCENARIO_NAME
from roi_scenarios.engine import DERIVED_KEYS, FRACTION_KEYS, INPUT_KEYS
from roi_scenarios.errors import ValidationError


SCHEMA_VERSION = 1
SCENARIO_TYPE = "scenario"

EDITABLE_FIELDS = ("name",) + INPUT_KEYS
INTEGER_FIELDS = ("current_outreach", "projected_outreach")
PERCENT_FIELDS = FRACTION_KEYS
IDENTITY_FIELDS = ("id", "owner_id", "org_id")
BOOKKEEPING_FIELDS = ("created_at", "updated_at", "version")
RECORD_FIELDS = IDENTITY_FIELDS + EDITABLE_FIELDS + DERIVED_KEYS + BOOKKEEPING_FIELDS

PERCENT_DISPLAY_DECIMALS = 1

FIELD_LABELS = {
    "name": "Scenario Name",
    "current_outreach": "Current Monthly Outreach",
    "booking_pct": "Booking %",
    "close_pct": "Close %",
    "avg_customer_value": "Average Customer Value",
    "projected_outreach": "Projected Monthly Outreach",
    "inkline_investment": "Investment",
}


def parse_number(field: str, value: Any) -> float:
    """Read a user-entered number; blank reads as 0."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise ValidationError(field, value)
    if isinstance(value, (int, float)):
        x = float(value)
    else:
        text = str(value).strip().replace(",", "").lstrip("$").rstrip("%").strip()
        if not text:
            return 0.0
        try:
            x = float(text)
        except ValueError as exc:
            raise ValidationError(field, value) from exc
    if x != x or x in (float("inf"), float("-inf")):
        raise ValidationError(field, value)
    if x < 0:
        raise ValidationError(field, value, f"{field} cannot be negative (got {value!r}).")
    return x


def percent_to_fraction(pct: float) -> float:
    return min(1.0, max(0.0, float(pct) / 100.0))


def fraction_to_percent(fraction: float) -> float:
    return round(float(fraction) * 100.0, PERCENT_DISPLAY_DECIMALS)


def coerce_field(field: str, value: Any, *, percent_input: bool = False) -> tuple[Any, str | None]:
    """Coerce one editable field value.

    Returns ``(value, warning)``. Unreadable numbers become 0 with a warning.
    With ``percent_input`` the percent fields are read in 0..100 terms and
    normalized to fractions.
    """
    if field not in EDITABLE_FIELDS:
        raise ValidationError(field, value, f"Unknown scenario field: {field}")
    if field == "name":
        return ("" if value is None else str(value)), None

    try:
        x = parse_number(field, value)
    except ValidationError as exc:
        return (0 if field in INTEGER_FIELDS else 0.0), f"{exc} Using 0."

    warning = None
    if field in PERCENT_FIELDS:
        limit = 100.0 if percent_input else 1.0
        if x > limit:
            warning = f"{field} above {limit:g} was capped at {limit:g}."
            x = limit
        return (percent_to_fraction(x) if percent_input else x), warning
    if field in INTEGER_FIELDS:
        return int(x), warning
    return x, warning


def display_value(field: str, value: Any) -> Any:
    if field in PERCENT_FIELDS:
        return fraction_to_percent(value or 0.0)
    return value


def scenario_name(raw_name: Any) -> str:
    text = str(raw_name or "").strip()
    return text or UNTITLED_SCENARIO_NAME


def sanitize_inputs(raw_inputs: dict) -> tuple[dict, list[str], list[str]]:
    """Return editable fields from a stored or imported mapping (fractions, not percents)."""
    warnings: list[str] = []
    unknown_keys: list[str] = []
    inputs = deepcopy(DEFAULTS)
    payload = raw_inputs if isinstance(raw_inputs, dict) else {}

    for k, v in payload.items():
        if k in EDITABLE_FIELDS:
            value, warning = coerce_field(k, v)
            inputs[k] = value
            if warning:
                warnings.append(warning)
        elif k not in RECORD_FIELDS:
            unknown_keys.append(k)

    inputs["name"] = scenario_name(inputs["name"])
    return inputs, warnings, sorted(unknown_keys)


def migrate_import_payload(payload: Any) -> tuple[dict, list[str], list[str]]:
    """Parse an imported scenario bundle (or bare scenario record) into editable fields."""
    if not isinstance(payload, dict):
        return deepcopy(DEFAULTS), ["Import payload is not a JSON object."], []

    if payload.get("type") == SCENARIO_TYPE:
        inputs, warnings, unknown = sanitize_inputs(payload.get("inputs", {}))
        if "name" in payload and "name" not in (payload.get("inputs") or {}):
            inputs["name"] = scenario_name(payload["name"])
        version = payload.get("schema_version")
        if version != SCHEMA_VERSION:
            warnings.append(f"Imported schema_version={version}; read as schema_version={SCHEMA_VERSION}.")
        return inputs, warnings, unknown

    inputs, warnings, unknown = sanitize_inputs(payload)
    warnings.append("Imported scenario JSON without bundle metadata.")
    return inputs, warnings, unknown
