from __future__ import annotations

from copy import deepcopy
from pathlib import Path

import pytest

import roi_scenarios.persistence as persistence
from roi_scenarios.defaults import DEFAULTS
from roi_scenarios.persistence import JsonScenarioStore
from roi_scenarios.session import LocalUserDirectory


@pytest.fixture
def base_inputs() -> dict:
    return deepcopy(DEFAULTS)


@pytest.fixture(autouse=True)
def isolated_storage(tmp_path, monkeypatch):
    monkeypatch.setattr(persistence, "STORE_DIR", Path(tmp_path))
    return Path(tmp_path)


@pytest.fixture
def store(tmp_path) -> JsonScenarioStore:
    return JsonScenarioStore(tmp_path)


@pytest.fixture
def directory(tmp_path) -> LocalUserDirectory:
    return LocalUserDirectory(tmp_path, admin_emails={"admin@example.com"})
