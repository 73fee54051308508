import json

import pandas as pd
import plotly.express as px
import streamlit as st

from roi_scenarios.admin_stats import build_scenario_table, compute_admin_stats, scenarios_per_user
from roi_scenarios.engine import net_gain
from roi_scenarios.errors import PersistenceFailure
from roi_scenarios.formatting import (
    format_currency,
    format_number,
    format_percent,
    format_signed_currency,
    roi_status,
)
from roi_scenarios.input_metadata import advisory_warnings, help_with_guidance
from roi_scenarios.integrity_checks import run_integrity_checks
from roi_scenarios.persistence import JsonScenarioStore, storage_root_path
from roi_scenarios.runtime_logging import (
    LEVELS,
    append_runtime_event,
    clear_runtime_events,
    events_frame,
    install_global_exception_logging,
    read_runtime_events,
    runtime_log_path,
)
from roi_scenarios.schema import FIELD_LABELS
from roi_scenarios.sensitivity import TARGET_OPTIONS, rank_drivers, run_one_way_sensitivity
from roi_scenarios.session import ROLES, LocalUserDirectory
from roi_scenarios.synchronizer import (
    CLEAN,
    DELETED,
    DIRTY,
    DRAFT,
    EMPTY,
    FAILED,
    LOADED,
    NOOP,
    REJECTED,
    SAVING,
    STALE,
    ScenarioSynchronizer,
    SyncResult,
)


install_global_exception_logging()

st.set_page_config(page_title="ROI Calculator", layout="wide")

UI_DEFAULTS = {
    "session_ctx": None,
    "sync": None,
    "form_generation": -1,
    "flash_messages": [],
    "sensitivity_delta": 0.1,
    "sensitivity_target": "Net Gain",
    "runtime_log_limit": 100,
    "_reset_confirm_delete": False,
    "_reset_confirm_remove_user": False,
}

STATE_LABELS = {
    DRAFT: "New scenario (not saved yet)",
    CLEAN: "Saved",
    DIRTY: "Unsaved changes",
    SAVING: "Saving...",
    DELETED: "Deleted",
    EMPTY: "No scenario selected",
}


def _store() -> JsonScenarioStore:
    return JsonScenarioStore()


def _directory() -> LocalUserDirectory:
    return LocalUserDirectory()


def _flash(level: str, message: str) -> None:
    st.session_state["flash_messages"] = st.session_state.get("flash_messages", []) + [(level, message)]


def _flash_result(result: SyncResult, quiet_success: bool = False) -> None:
    if result.status == FAILED:
        _flash("error", result.message)
    elif result.status == REJECTED:
        _flash("warning", result.message)
    elif result.status in (NOOP, STALE):
        _flash("info", result.message)
    elif not quiet_success:
        _flash("success", result.message)
    for warning in result.warnings:
        _flash("warning", warning)


def _render_flashes() -> None:
    messages = st.session_state.get("flash_messages", [])
    st.session_state["flash_messages"] = []
    for level, message in messages:
        getattr(st, level)(message)


def _on_field_change(field_name: str) -> None:
    sync = st.session_state.get("sync")
    if sync is None:
        return
    result = sync.edit(field_name, st.session_state.get(f"form_{field_name}"))
    if not result.ok or result.warnings:
        _flash_result(result, quiet_success=True)


def _sync_form_widgets(sync: ScenarioSynchronizer) -> None:
    """Push the working scenario into the form widgets when the working scenario changes."""
    if st.session_state.get("form_generation") == sync.generation:
        return
    for field_name, value in sync.form_values().items():
        st.session_state[f"form_{field_name}"] = value
    st.session_state["form_generation"] = sync.generation


def _sign_out() -> None:
    sync = st.session_state.get("sync")
    if sync is not None:
        _flash_result(sync.sign_out())
    elif st.session_state.get("session_ctx") is not None:
        st.session_state["session_ctx"].invalidate()
    st.session_state["sync"] = None
    st.session_state["session_ctx"] = None
    st.session_state["form_generation"] = -1


def _render_sign_in() -> None:
    st.title("ROI Calculator")
    st.caption("Calculate and save multiple ROI scenarios to compare different investment strategies.")
    email = st.text_input(
        "Email",
        key="sign_in_email",
        placeholder="you@example.com",
        help="Scenarios are stored per user on this machine.",
    )
    if st.button("Sign In", key="sign_in_button", type="primary", help="Open your saved scenarios."):
        try:
            session = _directory().sign_in(email)
        except PersistenceFailure as exc:
            append_runtime_event(
                level="WARNING",
                event="sign_in_failed",
                message=str(exc),
                context={"email": email},
                exc=exc,
            )
            st.error(str(exc))
            return
        sync = ScenarioSynchronizer(_store(), session)
        result = sync.load()
        if result.status != LOADED:
            _flash_result(result)
        st.session_state["session_ctx"] = session
        st.session_state["sync"] = sync
        st.session_state["form_generation"] = -1
        st.rerun()


def _render_sidebar(sync: ScenarioSynchronizer) -> None:
    session = sync.session
    st.header("Scenarios")
    st.caption(f"Signed in as {session.email} ({session.current_role()})")

    s1, s2 = st.columns(2)
    if s1.button("New Scenario", key="new_scenario", help="Start a fresh scenario with default inputs."):
        if sync.is_modified() and not st.session_state.get("discard_unsaved", False):
            _flash("warning", "You have unsaved changes. Tick 'Discard unsaved changes' to continue.")
        else:
            _flash_result(sync.new_draft())
    if s2.button("Sign Out", key="sign_out", help="End this session."):
        _sign_out()
        st.rerun()

    if sync.is_modified():
        st.checkbox(
            "Discard unsaved changes",
            key="discard_unsaved",
            help="Allow switching scenarios even though the current one has unsaved edits.",
        )

    if not sync.scenarios:
        st.caption("No saved scenarios yet.")
    for scenario in sync.scenarios:
        label = f"{scenario.get('name', '')} · ROI {format_percent(scenario.get('roi'))}"
        is_active = scenario.get("id") == sync.active_id
        clicked = st.button(
            label,
            key=f"pick_{scenario.get('id')}",
            type="primary" if is_active else "secondary",
            help=f"Updated {str(scenario.get('updated_at', ''))[:10]}",
            width="stretch",
        )
        if clicked and not is_active:
            if sync.is_modified() and not st.session_state.get("discard_unsaved", False):
                _flash("warning", "You have unsaved changes. Tick 'Discard unsaved changes' to switch.")
            else:
                _flash_result(sync.select(scenario["id"]))

    st.subheader("Import/Export")
    import_file = st.file_uploader("Import Scenario JSON", type=["json"], help="Open an exported scenario as a new draft.")
    if st.button("Apply Imported JSON", disabled=import_file is None, help="Load the uploaded file as a new unsaved scenario."):
        try:
            import_text = import_file.getvalue().decode("utf-8")
        except UnicodeDecodeError as exc:
            append_runtime_event(
                level="ERROR",
                event="import_decode_failed",
                message="Import failed: file is not valid UTF-8 JSON.",
                context={"file_name": getattr(import_file, "name", "unknown")},
                exc=exc,
            )
            _flash("error", "Import failed: file is not valid UTF-8 JSON.")
        else:
            _flash_result(sync.import_json(import_text))
    if sync.working is not None:
        st.download_button(
            "Export Scenario JSON",
            json.dumps(sync.export_bundle(), indent=2),
            file_name="roi_scenario.json",
            mime="application/json",
            help="Download the current inputs as a portable JSON bundle.",
        )

    with st.expander("Diagnostics", expanded=False):
        st.caption(f"Storage: {storage_root_path()}")
        st.caption(f"Runtime log: {runtime_log_path()}")
        min_level = st.selectbox("Minimum level", list(LEVELS), index=1, key="runtime_log_level", help="Hide events below this level.")
        events = read_runtime_events(limit=int(st.session_state.get("runtime_log_limit", 100)), min_level=min_level)
        if events:
            st.dataframe(events_frame(events), hide_index=True)
        else:
            st.caption("No runtime events logged.")
        if st.button("Clear Runtime Log", help="Delete the local runtime event log."):
            if clear_runtime_events():
                st.success("Runtime log cleared.")


def _render_inputs(sync: ScenarioSynchronizer) -> None:
    st.subheader("Scenario Inputs")
    if sync.working is None:
        st.info("No scenario selected. Use New Scenario in the sidebar to start one.")
        return

    st.caption(f"Status: {STATE_LABELS.get(sync.state, sync.state)}")
    st.text_input(
        FIELD_LABELS["name"],
        key="form_name",
        on_change=_on_field_change,
        args=("name",),
        help=help_with_guidance("name"),
    )
    st.number_input(
        FIELD_LABELS["current_outreach"],
        key="form_current_outreach",
        min_value=0,
        step=50,
        on_change=_on_field_change,
        args=("current_outreach",),
        help=help_with_guidance("current_outreach"),
    )
    p1, p2 = st.columns(2)
    p1.number_input(
        FIELD_LABELS["booking_pct"],
        key="form_booking_pct",
        min_value=0.0,
        max_value=100.0,
        step=0.5,
        format="%.1f",
        on_change=_on_field_change,
        args=("booking_pct",),
        help=help_with_guidance("booking_pct"),
    )
    p2.number_input(
        FIELD_LABELS["close_pct"],
        key="form_close_pct",
        min_value=0.0,
        max_value=100.0,
        step=0.5,
        format="%.1f",
        on_change=_on_field_change,
        args=("close_pct",),
        help=help_with_guidance("close_pct"),
    )
    st.number_input(
        FIELD_LABELS["avg_customer_value"],
        key="form_avg_customer_value",
        min_value=0.0,
        step=100.0,
        on_change=_on_field_change,
        args=("avg_customer_value",),
        help=help_with_guidance("avg_customer_value"),
    )
    st.number_input(
        FIELD_LABELS["projected_outreach"],
        key="form_projected_outreach",
        min_value=0,
        step=50,
        on_change=_on_field_change,
        args=("projected_outreach",),
        help=help_with_guidance("projected_outreach"),
    )
    st.number_input(
        FIELD_LABELS["inkline_investment"],
        key="form_inkline_investment",
        min_value=0.0,
        step=500.0,
        on_change=_on_field_change,
        args=("inkline_investment",),
        help=help_with_guidance("inkline_investment"),
    )

    for warning in advisory_warnings(sync.working):
        st.caption(f"Note: {warning}")

    state = sync.state
    save_label = "Save Scenario" if state == DRAFT else "Update Scenario"
    if st.button(save_label, key="save_scenario", type="primary", disabled=state == CLEAN, help="Save the current inputs."):
        result = sync.save()
        _flash_result(result)
        if result.ok:
            # Show the stored values, e.g. a blank name saved as Untitled Scenario.
            st.session_state["form_generation"] = -1
        st.rerun()

    if sync.active_id is not None:
        confirm = st.checkbox(
            "Confirm delete",
            key="confirm_delete",
            help="Deleting a scenario cannot be undone.",
        )
        if st.button("Delete Scenario", key="delete_scenario", disabled=not confirm, help="Remove this scenario permanently."):
            _flash_result(sync.delete())
            st.session_state["_reset_confirm_delete"] = True
            st.rerun()


def _comparison_df(working: dict) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"Stage": "Outreach", "Current": working["current_outreach"], "Projected": working["projected_outreach"]},
            {"Stage": "Leads / Meetings", "Current": working["current_leads"], "Projected": working["projected_leads"]},
            {"Stage": "Customers", "Current": working["current_customers"], "Projected": working["projected_customers"]},
            {"Stage": "Revenue", "Current": working["current_revenue"], "Projected": working["projected_revenue"]},
        ]
    )


def _render_results(sync: ScenarioSynchronizer) -> None:
    st.subheader("Results")
    working = sync.working
    if working is None:
        st.markdown("**No Scenario Selected**")
        st.caption("Create or select a scenario to see ROI results.")
        return
    if working.get("updated_at"):
        st.caption(f"Updated {str(working['updated_at'])[:10]}")

    roi = working["roi"]
    k1, k2 = st.columns(2)
    k1.metric("ROI", format_percent(roi), help="Net revenue lift after the investment, divided by the investment.")
    k1.caption(roi_status(roi))
    k2.metric("Revenue Increase", format_currency(working["increase_revenue"]))

    comparison = _comparison_df(working)
    display = comparison.copy()
    display["Current"] = [
        format_currency(v) if stage == "Revenue" else format_number(v, 1) for stage, v in zip(comparison["Stage"], comparison["Current"])
    ]
    display["Projected"] = [
        format_currency(v) if stage == "Revenue" else format_number(v, 1) for stage, v in zip(comparison["Stage"], comparison["Projected"])
    ]
    st.dataframe(display, hide_index=True, width="stretch")

    chart_df = comparison[comparison["Stage"] != "Revenue"].melt(id_vars="Stage", var_name="Period", value_name="Volume")
    fig = px.bar(chart_df, x="Stage", y="Volume", color="Period", barmode="group", title="Current vs Projected Funnel")
    st.plotly_chart(fig, width="stretch")

    st.markdown("**Performance Increase**")
    i1, i2 = st.columns(2)
    i1.metric("Leads Increase", format_number(working["increase_leads"], 1))
    i2.metric("Revenue Increase", format_signed_currency(working["increase_revenue"]))

    st.markdown("**Breakeven Analysis**")
    b1, b2 = st.columns(2)
    b1.metric("Leads Needed to Break Even", format_number(working["leads_needed"], 1))
    b2.metric("Outreach Needed to Break Even", format_number(working["outreach_needed"], 1))

    st.markdown("**Investment Summary**")
    gain = net_gain(working, working)
    summary = pd.DataFrame(
        [
            {"Item": "Investment", "Amount": format_currency(working["inkline_investment"])},
            {"Item": "Revenue Increase", "Amount": format_currency(working["increase_revenue"])},
            {"Item": "Net Gain/Loss", "Amount": format_currency(gain)},
        ]
    )
    st.dataframe(summary, hide_index=True, width="stretch")

    with st.expander("Sensitivity", expanded=False):
        st.slider(
            "Shift each input by",
            min_value=0.05,
            max_value=0.5,
            step=0.05,
            key="sensitivity_delta",
            help="Each input is moved down and up by this share while the others stay fixed.",
        )
        st.selectbox("Rank by", TARGET_OPTIONS, key="sensitivity_target", help="Target used to rank input drivers.")
        sens_df = run_one_way_sensitivity(working, float(st.session_state["sensitivity_delta"]))
        st.dataframe(rank_drivers(sens_df, st.session_state["sensitivity_target"]), hide_index=True, width="stretch")


def _render_admin(sync: ScenarioSynchronizer) -> None:
    store = _store()
    directory = _directory()
    try:
        all_scenarios = store.list()
    except PersistenceFailure as exc:
        append_runtime_event(level="ERROR", event="admin_list_failed", message=str(exc), exc=exc)
        st.error(f"Error loading scenarios: {exc}")
        return
    profiles = directory.list_profiles()
    emails = directory.emails_by_user()

    stats = compute_admin_stats(all_scenarios, len(profiles))
    a1, a2, a3, a4 = st.columns(4)
    a1.metric("Total Users", stats["total_users"], help="Registered accounts")
    a2.metric("Total Scenarios", stats["total_scenarios"], help="ROI calculations created")
    a3.metric("Total Investment", format_currency(stats["total_investment"]), help="Across all scenarios")
    a4.metric("Average ROI", format_percent(stats["avg_roi"]), help="Mean ROI over scenarios where ROI applies")

    scenario_tab, user_tab, integrity_tab = st.tabs(["Scenario Management", "User Management", "Integrity"])
    with scenario_tab:
        table = build_scenario_table(all_scenarios, emails)
        shown = table.copy()
        shown["Investment"] = shown["Investment"].map(format_currency)
        shown["Increase Revenue"] = shown["Increase Revenue"].map(format_currency)
        shown["ROI"] = shown["ROI"].map(format_percent)
        st.dataframe(shown, hide_index=True, width="stretch")
        st.dataframe(scenarios_per_user(all_scenarios, emails), hide_index=True)

        options = {f"{row['Scenario']} ({row['Owner']})": row["Scenario ID"] for _, row in table.iterrows()}
        target = st.selectbox("Scenario to delete", [""] + list(options), help="Any user's scenario can be removed here.")
        confirm = st.checkbox("Confirm admin delete", help="Deleting a scenario cannot be undone.")
        if st.button("Delete Selected Scenario", disabled=not (target and confirm), help="Remove the selected scenario."):
            try:
                store.delete(options[target])
            except PersistenceFailure as exc:
                append_runtime_event(
                    level="ERROR",
                    event="admin_delete_failed",
                    message=str(exc),
                    context={"scenario_id": options[target]},
                    exc=exc,
                )
                _flash("error", f"Delete failed: {exc}")
            else:
                _flash("success", f"Deleted scenario: {target}")
                sync.load()
            st.rerun()

    with user_tab:
        users_df = pd.DataFrame(profiles, columns=["email", "role", "created_at", "user_id"])
        st.dataframe(users_df, hide_index=True, width="stretch")
        user_options = {p["email"]: p["user_id"] for p in profiles}
        u1, u2 = st.columns(2)
        chosen = u1.selectbox("User", [""] + list(user_options), key="admin_user_target", help="Pick an account to change its role or remove it.")
        new_role = u2.selectbox("Role", list(ROLES), index=1, help="Admins can see every scenario and user.")
        if st.button("Update Role", disabled=not chosen, help="Save the selected role for this user."):
            try:
                directory.set_role(user_options[chosen], new_role)
            except PersistenceFailure as exc:
                _flash("error", f"Role update failed: {exc}")
            else:
                _flash("success", f"{chosen} is now {new_role}.")
            st.rerun()

        confirm_remove = st.checkbox(
            "Confirm user removal",
            key="confirm_remove_user",
            help="Removes the profile and role assignments. Their scenarios are kept.",
        )
        removing_self = bool(chosen) and user_options[chosen] == sync.session.user_id
        if st.button(
            "Remove User",
            key="remove_user",
            disabled=not (chosen and confirm_remove) or removing_self,
            help="Remove the selected profile and its roles. You cannot remove your own account.",
        ):
            try:
                directory.remove(user_options[chosen])
            except PersistenceFailure as exc:
                append_runtime_event(
                    level="ERROR",
                    event="remove_user_failed",
                    message=str(exc),
                    context={"target_user_id": user_options[chosen]},
                    exc=exc,
                )
                _flash("error", f"Error removing user: {exc}")
            else:
                _flash("success", f"User {chosen} has been removed. Their saved scenarios were kept.")
            st.session_state["_reset_confirm_remove_user"] = True
            st.rerun()

    with integrity_tab:
        findings = run_integrity_checks(all_scenarios)
        if findings.empty:
            st.success("All stored derived metrics match the calculation engine.")
        else:
            st.warning(f"{len(findings)} stored field(s) disagree with the calculation engine.")
            st.dataframe(findings, hide_index=True, width="stretch")


for k, v in UI_DEFAULTS.items():
    st.session_state.setdefault(k, v)
if st.session_state.get("_reset_confirm_delete"):
    st.session_state["confirm_delete"] = False
    st.session_state["_reset_confirm_delete"] = False
if st.session_state.get("_reset_confirm_remove_user"):
    st.session_state["confirm_remove_user"] = False
    st.session_state["admin_user_target"] = ""
    st.session_state["_reset_confirm_remove_user"] = False

sync_state: ScenarioSynchronizer | None = st.session_state.get("sync")
if sync_state is None or not sync_state.session.active:
    _render_sign_in()
    st.stop()

with st.sidebar:
    _render_sidebar(sync_state)

st.title("ROI Calculator")
st.caption("Calculate and save multiple ROI scenarios to compare different investment strategies.")
_render_flashes()
_sync_form_widgets(sync_state)


def _render_calculator() -> None:
    inputs_col, results_col = st.columns([4, 5])
    with inputs_col:
        _render_inputs(sync_state)
    with results_col:
        _render_results(sync_state)


if sync_state.session.is_admin:
    calculator_tab, admin_tab = st.tabs(["Calculator", "Admin Dashboard"])
    with calculator_tab:
        _render_calculator()
    with admin_tab:
        _render_admin(sync_state)
else:
    _render_calculator()
