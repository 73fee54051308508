"""Working-scenario state machine that keeps edits, derived metrics and the store in step.

One ``ScenarioSynchronizer`` exists per signed-in session. It owns the scenario
being edited, recomputes derived metrics on every edit, decides whether a save
is a create or an update, and adopts the stored record as the new clean
baseline. Every operation returns a ``SyncResult`` the UI can show; store
failures are reported there instead of being raised.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Callable

from roi_scenarios.defaults import DEFAULTS
from roi_scenarios.engine import compute
from roi_scenarios.errors import ConcurrentSaveRejected, PersistenceFailure
from roi_scenarios.integrity_checks import check_scenario_record
from roi_scenarios.persistence import build_scenario_bundle, parse_import_json
from roi_scenarios.runtime_logging import append_runtime_event
from roi_scenarios.schema import EDITABLE_FIELDS, coerce_field, display_value, scenario_name
from roi_scenarios.session import SessionContext


DRAFT = "draft"
CLEAN = "clean"
DIRTY = "dirty"
SAVING = "saving"
DELETED = "deleted"
EMPTY = "empty"

PENDING = "pending"
CREATED = "created"
UPDATED = "updated"
NOOP = "noop"
REJECTED = "rejected"
FAILED = "failed"
STALE = "stale"
EDITED = "edited"
SELECTED = "selected"
REMOVED = "deleted"
LOADED = "loaded"


@dataclass
class SaveTicket:
    generation: int
    action: str
    scenario_id: str | None
    prior_state: str
    payload: dict
    expected_version: int | None = None


@dataclass
class SyncResult:
    status: str
    message: str
    scenario_id: str | None = None
    error: BaseException | None = None
    warnings: list[str] = field(default_factory=list)
    ticket: SaveTicket | None = None

    @property
    def ok(self) -> bool:
        return self.status not in (REJECTED, FAILED)


def _editable_snapshot(scenario: dict) -> dict:
    return {k: deepcopy(scenario.get(k)) for k in EDITABLE_FIELDS}


def _sort_key(record: dict) -> tuple[str, str]:
    return str(record.get("updated_at", "")), str(record.get("created_at", ""))


class ScenarioSynchronizer:
    def __init__(
        self,
        store,
        session: SessionContext,
        log_event: Callable[..., Any] | None = None,
    ):
        self.store = store
        self.session = session
        self._log_event = log_event or append_runtime_event
        self.scenarios: list[dict] = []
        self.working: dict | None = None
        self.generation = 0
        self._baseline: dict = {}
        self._inflight: SaveTicket | None = None
        self._deleted = False
        self.new_draft()

    # State

    @property
    def active_id(self) -> str | None:
        if self.working is None:
            return None
        return self.working.get("id")

    @property
    def state(self) -> str:
        if self._inflight is not None:
            return SAVING
        if self.working is None:
            return DELETED if self._deleted else EMPTY
        if self.working.get("id") is None:
            return DRAFT
        return DIRTY if self.is_modified() else CLEAN

    def is_modified(self) -> bool:
        if self.working is None:
            return False
        return _editable_snapshot(self.working) != self._baseline

    def form_values(self) -> dict:
        """Editable fields as shown in the form (percent fields in 0..100)."""
        if self.working is None:
            return {}
        return {k: display_value(k, self.working.get(k)) for k in EDITABLE_FIELDS}

    def payload(self) -> dict:
        if self.working is None:
            return {}
        out = _editable_snapshot(self.working)
        out["name"] = scenario_name(out["name"])
        return out

    def _log(self, level: str, event: str, message: str, context: dict | None = None, exc=None) -> None:
        ctx = {"user_id": self.session.user_id, "scenario_id": self.active_id}
        ctx.update(context or {})
        self._log_event(level=level, event=event, message=message, context=ctx, exc=exc)

    def _recompute(self) -> None:
        self.working.update(compute(self.working))

    def _adopt(self, record: dict) -> None:
        findings = check_scenario_record(record)
        if findings:
            self._log(
                "WARNING",
                "derived_fields_mismatch",
                "Stored derived fields disagree with the calculation engine; recomputed locally.",
                context={"record_id": record.get("id"), "fields": [f["Field"] for f in findings]},
            )
        self.working = deepcopy(record)
        self._recompute()
        self._baseline = _editable_snapshot(self.working)
        self._deleted = False

    def _merge_record(self, record: dict) -> None:
        others = [s for s in self.scenarios if s.get("id") != record.get("id")]
        self.scenarios = sorted(others + [deepcopy(record)], key=_sort_key, reverse=True)

    def _switch(self) -> bool:
        """Start a new working generation; return whether unsaved edits were dropped."""
        discarded = self.working is not None and self.is_modified()
        self.generation += 1
        # An in-flight save keeps its ticket; its result is checked against the generation.
        self._inflight = None
        return discarded

    # Operations

    def new_draft(self) -> SyncResult:
        discarded = self._switch()
        draft = deepcopy(DEFAULTS)
        draft.update({"id": None, "owner_id": self.session.user_id, "org_id": None})
        self.working = draft
        self._recompute()
        self._baseline = _editable_snapshot(self.working)
        self._deleted = False
        warnings = ["Unsaved changes to the previous scenario were discarded."] if discarded else []
        return SyncResult(DRAFT, "Started a new scenario.", warnings=warnings)

    def load(self) -> SyncResult:
        """Refresh the owner's scenario list and activate the most recent one if nothing is active."""
        if not self.session.active:
            return SyncResult(REJECTED, "Please sign in to load scenarios.")
        try:
            records = self.store.list(self.session.user_id)
        except Exception as exc:
            self._log("ERROR", "load_scenarios_failed", "Error loading scenarios.", exc=exc)
            return SyncResult(FAILED, f"Error loading scenarios: {exc}", error=exc)
        self.scenarios = sorted(records, key=_sort_key, reverse=True)

        ids = {s.get("id") for s in self.scenarios}
        if self.active_id is not None and self.active_id not in ids:
            self._switch()
            self.working = None
        untouched_draft = self.working is not None and self.active_id is None and not self.is_modified()
        if (self.working is None or untouched_draft) and self.scenarios and self._inflight is None:
            self._switch()
            self._adopt(self.scenarios[0])
        return SyncResult(LOADED, f"Loaded {len(self.scenarios)} scenario(s).", scenario_id=self.active_id)

    def select(self, scenario_id: str) -> SyncResult:
        """Make a stored scenario the working one. Unsaved edits are dropped; confirm before calling."""
        record = next((s for s in self.scenarios if s.get("id") == scenario_id), None)
        if record is None:
            return SyncResult(REJECTED, f"Scenario {scenario_id} is not in the list.", scenario_id=scenario_id)
        discarded = self._switch()
        self._adopt(record)
        warnings = ["Unsaved changes to the previous scenario were discarded."] if discarded else []
        return SyncResult(SELECTED, f"Loaded scenario: {record.get('name', '')}", scenario_id=scenario_id, warnings=warnings)

    def edit(self, field_name: str, value: Any) -> SyncResult:
        """Set one input. Percent fields take 0..100. Derived metrics are refreshed before returning."""
        if self._inflight is not None:
            return SyncResult(REJECTED, "A save is in progress; wait for it to finish before editing.", scenario_id=self.active_id)
        if self.working is None:
            return SyncResult(REJECTED, "No scenario selected.")
        coerced, warning = coerce_field(field_name, value, percent_input=True)
        self.working[field_name] = coerced
        self._recompute()
        return SyncResult(EDITED, f"Updated {field_name}.", scenario_id=self.active_id, warnings=[warning] if warning else [])

    def begin_save(self) -> SyncResult:
        """Validate and reserve a save. A ``pending`` result carries the ticket to dispatch."""
        if self._inflight is not None:
            error = ConcurrentSaveRejected("This scenario is already being saved.")
            self._log("WARNING", "concurrent_save_rejected", str(error))
            return SyncResult(REJECTED, str(error), scenario_id=self.active_id, error=error)
        if self.working is None:
            return SyncResult(REJECTED, "No scenario selected.")
        if not self.session.active:
            return SyncResult(REJECTED, "Please sign in to save scenarios.", scenario_id=self.active_id)

        state = self.state
        if state == CLEAN:
            return SyncResult(NOOP, "No changes to save.", scenario_id=self.active_id)

        self._recompute()
        payload = self.payload()
        if state == DRAFT:
            payload.update({"owner_id": self.session.user_id, "org_id": self.working.get("org_id")})
        ticket = SaveTicket(
            generation=self.generation,
            action="create" if state == DRAFT else "update",
            scenario_id=self.active_id,
            prior_state=state,
            payload=payload,
            expected_version=self.working.get("version") if state == DIRTY else None,
        )
        self._inflight = ticket
        return SyncResult(PENDING, "Saving...", scenario_id=ticket.scenario_id, ticket=ticket)

    def dispatch(self, ticket: SaveTicket) -> dict:
        """Send a reserved save to the store and return the stored record."""
        if ticket.action == "create":
            return self.store.create(dict(ticket.payload))
        return self.store.update(ticket.scenario_id, ticket.payload, expected_version=ticket.expected_version)

    def finish_save(self, ticket: SaveTicket, record: dict | None = None, error: BaseException | None = None) -> SyncResult:
        """Apply the outcome of a dispatched save.

        Results that land after the user switched scenarios only update the list.
        """
        stale = ticket.generation != self.generation
        if self._inflight is ticket:
            self._inflight = None

        if error is not None or record is None:
            failure = error if isinstance(error, PersistenceFailure) else PersistenceFailure(str(error or "Store returned no record."))
            if failure is not error and error is not None:
                failure.__cause__ = error
            self._log(
                "ERROR",
                "save_scenario_failed",
                str(failure),
                context={"action": ticket.action, "target_id": ticket.scenario_id, "stale": stale},
                exc=error,
            )
            return SyncResult(FAILED, f"Save failed: {failure}", scenario_id=ticket.scenario_id, error=failure)

        self._merge_record(record)
        if stale:
            same_scenario = self.working is not None and self.active_id == record.get("id")
            if same_scenario and not self.is_modified():
                self._adopt(record)
            self._log(
                "INFO",
                "stale_save_result",
                "Save finished after the working scenario changed.",
                context={"record_id": record.get("id"), "action": ticket.action},
            )
            return SyncResult(STALE, f"Saved {record.get('name', '')} in the background.", scenario_id=record.get("id"))

        self._adopt(record)
        if ticket.action == "create":
            return SyncResult(CREATED, "Your new scenario has been saved successfully.", scenario_id=record.get("id"))
        return SyncResult(UPDATED, "Your scenario has been saved successfully.", scenario_id=record.get("id"))

    def save(self) -> SyncResult:
        started = self.begin_save()
        if started.ticket is None:
            return started
        try:
            record = self.dispatch(started.ticket)
        except Exception as exc:
            return self.finish_save(started.ticket, error=exc)
        return self.finish_save(started.ticket, record=record)

    def delete(self, select_replacement: bool = True) -> SyncResult:
        """Delete the working scenario. Confirmation is the caller's job."""
        if self._inflight is not None:
            return SyncResult(REJECTED, "A save is in progress; wait for it to finish before deleting.", scenario_id=self.active_id)
        scenario_id = self.active_id
        if scenario_id is None:
            return SyncResult(REJECTED, "Only saved scenarios can be deleted.")
        try:
            self.store.delete(scenario_id)
        except Exception as exc:
            self._log("ERROR", "delete_scenario_failed", str(exc), exc=exc)
            return SyncResult(FAILED, f"Delete failed: {exc}", scenario_id=scenario_id, error=exc)

        self.scenarios = [s for s in self.scenarios if s.get("id") != scenario_id]
        self._switch()
        self.working = None
        self._deleted = True
        message = "The scenario has been removed successfully."
        if select_replacement and self.scenarios:
            self._adopt(self.scenarios[0])
            message = f"{message} Now showing {self.working.get('name', '')}."
        return SyncResult(REMOVED, message, scenario_id=scenario_id)

    def sign_out(self) -> SyncResult:
        self.session.invalidate()
        self._switch()
        self.scenarios = []
        self.working = None
        self._deleted = False
        return SyncResult(EMPTY, "You have been signed out successfully.")

    def import_json(self, raw_json: str) -> SyncResult:
        """Open an exported scenario bundle as a new unsaved draft."""
        inputs, warnings, unknown = parse_import_json(raw_json)
        if not inputs:
            return SyncResult(FAILED, "Import failed: " + " | ".join(warnings), warnings=warnings)
        self.new_draft()
        self.working.update({k: inputs[k] for k in EDITABLE_FIELDS})
        self._recompute()
        if unknown:
            warnings = warnings + [f"Ignored unknown keys: {', '.join(unknown)}"]
        return SyncResult(DRAFT, f"Imported scenario: {self.working['name']}", warnings=warnings)

    def export_bundle(self) -> dict:
        if self.working is None:
            return {}
        return build_scenario_bundle(self.payload())
