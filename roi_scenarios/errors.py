"""Exception types shared by the store, schema and synchronizer."""

from __future__ import annotations


class ScenarioError(Exception):
    """Base class for scenario workflow errors."""


class ValidationError(ScenarioError, ValueError):
    """Input text that cannot be read as a valid scenario value."""

    def __init__(self, field: str, value, message: str = ""):
        self.field = field
        self.value = value
        super().__init__(message or f"{field} must be a non-negative number (got {value!r}).")


class PersistenceFailure(ScenarioError):
    """The scenario store rejected a create, update or delete."""


class VersionConflict(PersistenceFailure):
    """An update was based on a stale copy of the stored scenario."""

    def __init__(self, scenario_id: str, expected: int, actual: int):
        self.scenario_id = scenario_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Scenario {scenario_id} was changed elsewhere (expected version {expected}, found {actual}). "
            "Reload it before saving again."
        )


class ConcurrentSaveRejected(ScenarioError):
    """A save was requested while another save of the same scenario is in flight."""
