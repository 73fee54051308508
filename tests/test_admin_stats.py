from __future__ import annotations

import pytest

from roi_scenarios.admin_stats import SCENARIO_TABLE_COLUMNS, build_scenario_table, compute_admin_stats, scenarios_per_user


SCENARIOS = [
    {"id": "s1", "owner_id": "u1", "name": "A", "inkline_investment": 10000.0, "increase_revenue": 30000.0, "roi": 2.0},
    {"id": "s2", "owner_id": "u1", "name": "B", "inkline_investment": 0.0, "increase_revenue": 5000.0, "roi": None},
    {"id": "s3", "owner_id": "u2", "name": "C", "inkline_investment": 5000.0, "increase_revenue": 0.0, "roi": -1.0},
]


def test_compute_admin_stats_skips_not_applicable_roi():
    stats = compute_admin_stats(SCENARIOS, user_count=3)
    assert stats["total_users"] == 3
    assert stats["total_scenarios"] == 3
    assert stats["total_investment"] == pytest.approx(15000.0)
    assert stats["avg_roi"] == pytest.approx(0.5)
    assert stats["scenarios_with_roi"] == 2


def test_compute_admin_stats_with_no_scenarios():
    stats = compute_admin_stats([], user_count=0)
    assert stats["total_scenarios"] == 0
    assert stats["total_investment"] == 0.0
    assert stats["avg_roi"] == 0.0


def test_build_scenario_table_maps_owner_emails():
    table = build_scenario_table(SCENARIOS, {"u1": "one@example.com"})
    assert list(table.columns) == SCENARIO_TABLE_COLUMNS
    assert table["Owner"].tolist() == ["one@example.com", "one@example.com", "Unknown"]
    assert build_scenario_table([], {}).empty


def test_scenarios_per_user_groups_by_owner():
    grouped = scenarios_per_user(SCENARIOS, {"u1": "one@example.com", "u2": "two@example.com"})
    assert grouped.iloc[0]["Owner"] == "one@example.com"
    assert grouped.iloc[0]["Scenarios"] == 2
    assert grouped.iloc[0]["Investment"] == pytest.approx(10000.0)
    assert scenarios_per_user([], {}).empty
