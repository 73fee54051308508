"""One-way sensitivity analysis over scenario inputs."""

from __future__ import annotations

from copy import deepcopy

import pandas as pd

from roi_scenarios.engine import FRACTION_KEYS, INPUT_KEYS, compute, net_gain


DEFAULT_SENSITIVITY_DRIVERS = list(INPUT_KEYS)

TARGET_OPTIONS = [
    "ROI",
    "Increase Revenue",
    "Net Gain",
    "Projected Revenue",
]


def evaluate_outputs(inputs: dict) -> dict:
    derived = compute(inputs)
    return {
        "ROI": derived["roi"],
        "Increase Revenue": derived["increase_revenue"],
        "Net Gain": net_gain(inputs, derived),
        "Projected Revenue": derived["projected_revenue"],
    }


def _delta(value, base):
    if value is None or base is None:
        return None
    return value - base


def run_one_way_sensitivity(base_inputs: dict, delta_pct: float, drivers: list[str] | None = None) -> pd.DataFrame:
    """Shift each driver down and up by ``delta_pct`` and tabulate the targets.

    ROI cells stay empty (NaN in the frame) where ROI is not applicable.
    """
    base = evaluate_outputs(base_inputs)
    if not drivers:
        drivers = DEFAULT_SENSITIVITY_DRIVERS

    rows = []
    for driver in drivers:
        if driver not in INPUT_KEYS:
            continue
        for case, mult in [("Low", 1 - delta_pct), ("High", 1 + delta_pct)]:
            scenario = deepcopy(base_inputs)
            scenario[driver] = max(0.0, float(scenario.get(driver) or 0.0) * mult)
            if driver in FRACTION_KEYS:
                scenario[driver] = min(scenario[driver], 1.0)
            out = evaluate_outputs(scenario)
            rows.append(
                {
                    "Driver": driver,
                    "Case": case,
                    **{k: out[k] for k in TARGET_OPTIONS},
                    **{f"Delta {k}": _delta(out[k], base[k]) for k in TARGET_OPTIONS},
                }
            )
    return pd.DataFrame(rows)


def rank_drivers(sens_df: pd.DataFrame, target: str = "Net Gain") -> pd.DataFrame:
    """Order drivers by the spread between their low and high cases for one target."""
    if sens_df.empty:
        return pd.DataFrame(columns=["Driver", "Low", "High", "Swing"])
    pivot = sens_df.pivot(index="Driver", columns="Case", values=target)
    pivot = pivot.apply(pd.to_numeric, errors="coerce")
    pivot["Swing"] = (pivot["High"] - pivot["Low"]).abs()
    return pivot.reset_index()[["Driver", "Low", "High", "Swing"]].sort_values("Swing", ascending=False).reset_index(drop=True)
