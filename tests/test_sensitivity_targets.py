from __future__ import annotations

from copy import deepcopy

import pandas as pd
import pytest

from roi_scenarios.sensitivity import TARGET_OPTIONS, evaluate_outputs, rank_drivers, run_one_way_sensitivity


def test_evaluate_outputs_matches_worked_example(base_inputs):
    out = evaluate_outputs(base_inputs)
    assert out["ROI"] == pytest.approx(7.0)
    assert out["Net Gain"] == pytest.approx(168_000)
    assert set(out) == set(TARGET_OPTIONS)


def test_run_one_way_sensitivity_emits_low_and_high_cases(base_inputs):
    inputs = deepcopy(base_inputs)
    sens_df = run_one_way_sensitivity(inputs, delta_pct=0.1, drivers=["projected_outreach", "not_a_driver"])

    assert len(sens_df) == 2
    assert sens_df["Case"].tolist() == ["Low", "High"]
    for col in TARGET_OPTIONS + [f"Delta {t}" for t in TARGET_OPTIONS]:
        assert col in sens_df.columns
    assert sens_df.iloc[1]["Delta Projected Revenue"] == pytest.approx(38_400)
    assert inputs == base_inputs


def test_fraction_drivers_stay_within_one(base_inputs):
    inputs = {**base_inputs, "close_pct": 0.95}
    sens_df = run_one_way_sensitivity(inputs, delta_pct=0.5, drivers=["close_pct"])
    high = sens_df[sens_df["Case"] == "High"].iloc[0]
    expected = evaluate_outputs({**inputs, "close_pct": 1.0})
    assert high["Projected Revenue"] == pytest.approx(expected["Projected Revenue"])


def test_rank_drivers_orders_by_swing(base_inputs):
    sens_df = run_one_way_sensitivity(base_inputs, delta_pct=0.1)
    ranked = rank_drivers(sens_df, "Net Gain")
    assert list(ranked.columns) == ["Driver", "Low", "High", "Swing"]
    assert len(ranked) == 6
    assert ranked["Swing"].is_monotonic_decreasing
    assert rank_drivers(pd.DataFrame(), "ROI").empty
