from __future__ import annotations

from pathlib import Path

from streamlit.testing.v1 import AppTest

from roi_scenarios.persistence import JsonScenarioStore
from roi_scenarios.session import LocalUserDirectory


APP_PATH = str(Path(__file__).resolve().parents[1] / "app.py")


def _assert_no_app_exceptions(at: AppTest) -> None:
    assert len(at.exception) == 0


def _signed_in_app(email: str) -> AppTest:
    at = AppTest.from_file(APP_PATH)
    at.run(timeout=60)
    _assert_no_app_exceptions(at)
    at.text_input(key="sign_in_email").set_value(email)
    at.button(key="sign_in_button").click()
    at.run(timeout=60)
    _assert_no_app_exceptions(at)
    return at


def test_app_initial_run_shows_sign_in():
    at = AppTest.from_file(APP_PATH)
    at.run(timeout=60)
    _assert_no_app_exceptions(at)
    assert at.button(key="sign_in_button").label == "Sign In"


def test_invalid_email_is_reported():
    at = AppTest.from_file(APP_PATH)
    at.run(timeout=60)
    at.text_input(key="sign_in_email").set_value("nobody")
    at.button(key="sign_in_button").click()
    at.run(timeout=60)
    _assert_no_app_exceptions(at)
    assert at.error
    assert at.session_state["sync"] is None


def test_save_update_and_delete_flow(isolated_storage):
    at = _signed_in_app("owner@example.com")
    assert at.session_state["sync"].state == "draft"

    at.text_input(key="form_name").set_value("Smoke scenario")
    at.run(timeout=60)
    at.button(key="save_scenario").click()
    at.run(timeout=60)
    _assert_no_app_exceptions(at)

    records = JsonScenarioStore(isolated_storage).list()
    assert len(records) == 1
    assert records[0]["name"] == "Smoke scenario"
    assert at.session_state["sync"].state == "clean"

    at.number_input(key="form_current_outreach").set_value(1500)
    at.run(timeout=60)
    assert at.session_state["sync"].state == "dirty"
    at.button(key="save_scenario").click()
    at.run(timeout=60)
    _assert_no_app_exceptions(at)

    records = JsonScenarioStore(isolated_storage).list()
    assert len(records) == 1
    assert records[0]["version"] == 2
    assert records[0]["current_outreach"] == 1500

    at.checkbox(key="confirm_delete").check()
    at.run(timeout=60)
    at.button(key="delete_scenario").click()
    at.run(timeout=60)
    _assert_no_app_exceptions(at)
    assert JsonScenarioStore(isolated_storage).list() == []
    assert at.session_state["sync"].state == "deleted"


def test_admin_dashboard_renders_for_configured_admin(monkeypatch):
    monkeypatch.setenv("ROI_ADMIN_EMAILS", "admin@example.com")
    at = _signed_in_app("admin@example.com")
    assert "Total Users" in [m.label for m in at.metric]


def test_sign_out_returns_to_sign_in():
    at = _signed_in_app("owner@example.com")
    at.button(key="sign_out").click()
    at.run(timeout=60)
    _assert_no_app_exceptions(at)
    assert at.button(key="sign_in_button")
    assert at.session_state["sync"] is None


def test_blank_name_form_shows_stored_name_after_save(isolated_storage):
    at = _signed_in_app("owner@example.com")
    at.text_input(key="form_name").set_value("")
    at.run(timeout=60)
    at.button(key="save_scenario").click()
    at.run(timeout=60)
    _assert_no_app_exceptions(at)

    assert JsonScenarioStore(isolated_storage).list()[0]["name"] == "Untitled Scenario"
    assert at.text_input(key="form_name").value == "Untitled Scenario"
    assert at.session_state["sync"].state == "clean"


def test_admin_can_remove_another_user(monkeypatch, isolated_storage):
    monkeypatch.setenv("ROI_ADMIN_EMAILS", "admin@example.com")
    directory = LocalUserDirectory(isolated_storage, admin_emails=set())
    directory.register("leaving@example.com")

    at = _signed_in_app("admin@example.com")
    at.selectbox(key="admin_user_target").set_value("leaving@example.com")
    at.checkbox(key="confirm_remove_user").check()
    at.run(timeout=60)
    at.button(key="remove_user").click()
    at.run(timeout=60)
    _assert_no_app_exceptions(at)

    assert directory.find_by_email("leaving@example.com") is None
    assert directory.find_by_email("admin@example.com") is not None
