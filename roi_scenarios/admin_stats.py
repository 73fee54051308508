"""Aggregate statistics and tables for the admin dashboard."""

from __future__ import annotations

import pandas as pd


SCENARIO_TABLE_COLUMNS = [
    "Scenario",
    "Owner",
    "Investment",
    "Increase Revenue",
    "ROI",
    "Updated",
    "Scenario ID",
]


def compute_admin_stats(scenarios: list[dict], user_count: int) -> dict:
    """Totals across every stored scenario. Average ROI skips scenarios where ROI is not applicable."""
    df = pd.DataFrame(scenarios, columns=["inkline_investment", "roi"])
    investment = pd.to_numeric(df["inkline_investment"], errors="coerce").fillna(0.0)
    valid_roi = pd.to_numeric(df["roi"], errors="coerce").dropna()
    return {
        "total_users": int(user_count),
        "total_scenarios": int(len(df)),
        "total_investment": float(investment.sum()),
        "avg_roi": float(valid_roi.mean()) if len(valid_roi) else 0.0,
        "scenarios_with_roi": int(len(valid_roi)),
    }


def build_scenario_table(scenarios: list[dict], emails_by_user: dict[str, str]) -> pd.DataFrame:
    rows = [
        {
            "Scenario": s.get("name", ""),
            "Owner": emails_by_user.get(s.get("owner_id"), "Unknown"),
            "Investment": s.get("inkline_investment"),
            "Increase Revenue": s.get("increase_revenue"),
            "ROI": s.get("roi"),
            "Updated": s.get("updated_at", ""),
            "Scenario ID": s.get("id"),
        }
        for s in scenarios
    ]
    return pd.DataFrame(rows, columns=SCENARIO_TABLE_COLUMNS)


def scenarios_per_user(scenarios: list[dict], emails_by_user: dict[str, str]) -> pd.DataFrame:
    table = build_scenario_table(scenarios, emails_by_user)
    if table.empty:
        return pd.DataFrame(columns=["Owner", "Scenarios", "Investment"])
    table["Investment"] = pd.to_numeric(table["Investment"], errors="coerce").fillna(0.0)
    grouped = table.groupby("Owner", as_index=False).agg(Scenarios=("Scenario ID", "count"), Investment=("Investment", "sum"))
    return grouped.sort_values("Scenarios", ascending=False).reset_index(drop=True)
