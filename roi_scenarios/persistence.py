"""Local JSON persistence for scenarios and exported scenario bundles."""

from __future__ import annotations

import json
import os
from copy import deepcopy
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

from roi_scenarios.engine import compute
from roi_scenarios.errors import PersistenceFailure, VersionConflict
from roi_scenarios.schema import (
    EDITABLE_FIELDS,
    SCENARIO_TYPE,
    SCHEMA_VERSION,
    migrate_import_payload,
    sanitize_inputs,
)


STORE_DIR = Path(".local_store")
SCENARIO_STORE_NAME = "scenarios.json"
USER_STORE_NAME = "users.json"

_DEFAULT_STORE_DIR = Path(".local_store")
_STORAGE_ENV_VAR = "ROI_STORAGE_ROOT"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def expand_storage_root(path_value: str | Path | None) -> Path:
    if path_value is None:
        return _DEFAULT_STORE_DIR
    text = str(path_value).strip()
    if not text:
        return _DEFAULT_STORE_DIR
    return Path(os.path.expandvars(os.path.expanduser(text)))


def configure_storage_root(path_value: str | Path | None) -> Path:
    """Configure the default directory used by stores created without an explicit root."""
    global STORE_DIR
    STORE_DIR = expand_storage_root(path_value)
    return STORE_DIR


def storage_root_path() -> str:
    return str(STORE_DIR.resolve())


def storage_root_from_env() -> Path:
    return expand_storage_root(os.getenv(_STORAGE_ENV_VAR, ""))


def load_json_store(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def save_json_store(path: Path, data: dict) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(f"{path.suffix}.tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp.replace(path)
    except OSError as exc:
        raise PersistenceFailure(f"Could not write {path.name}: {exc}") from exc


def _sort_key(record: dict) -> tuple[str, str]:
    return str(record.get("updated_at", "")), str(record.get("created_at", ""))


class JsonScenarioStore:
    """Scenario records kept in one JSON file keyed by id.

    Derived metrics are recomputed here with ``engine.compute`` on every write,
    so stored records never carry client-supplied derived values.
    """

    def __init__(self, root: str | Path | None = None):
        self.root = Path(root) if root is not None else STORE_DIR
        self.path = self.root / SCENARIO_STORE_NAME

    def _load(self) -> dict:
        return load_json_store(self.path)

    def _build_record(self, base: dict, payload: dict) -> dict:
        editable = {k: payload[k] for k in EDITABLE_FIELDS if k in payload}
        inputs, _, _ = sanitize_inputs({**{k: base.get(k) for k in EDITABLE_FIELDS if k in base}, **editable})
        record = deepcopy(base)
        record.update(inputs)
        record.update(compute(inputs))
        return record

    def create(self, payload: dict) -> dict:
        owner_id = str(payload.get("owner_id") or "").strip()
        if not owner_id:
            raise PersistenceFailure("owner_id is required to create a scenario.")
        now = _now_iso()
        base = {
            "id": uuid4().hex,
            "owner_id": owner_id,
            "org_id": payload.get("org_id"),
            "created_at": now,
            "updated_at": now,
            "version": 1,
        }
        record = self._build_record(base, payload)
        store = self._load()
        store[record["id"]] = record
        save_json_store(self.path, store)
        return deepcopy(record)

    def update(self, scenario_id: str, payload: dict, expected_version: int | None = None) -> dict:
        store = self._load()
        current = store.get(scenario_id)
        if current is None:
            raise PersistenceFailure(f"Scenario {scenario_id} was not found.")
        actual = int(current.get("version", 1))
        if expected_version is not None and int(expected_version) != actual:
            raise VersionConflict(scenario_id, int(expected_version), actual)

        record = self._build_record(current, payload)
        if current.get("org_id") is None and payload.get("org_id") is not None:
            record["org_id"] = payload["org_id"]
        record["version"] = actual + 1
        record["updated_at"] = _now_iso()
        store[scenario_id] = record
        save_json_store(self.path, store)
        return deepcopy(record)

    def delete(self, scenario_id: str) -> None:
        store = self._load()
        if scenario_id not in store:
            raise PersistenceFailure(f"Scenario {scenario_id} was not found.")
        del store[scenario_id]
        save_json_store(self.path, store)

    def get(self, scenario_id: str) -> dict | None:
        return deepcopy(self._load().get(scenario_id))

    def list(self, owner_id: str | None = None) -> list[dict]:
        """Return scenarios ordered by ``updated_at`` (most recent first); ``None`` lists every owner."""
        records = [
            deepcopy(r)
            for r in self._load().values()
            if isinstance(r, dict) and (owner_id is None or r.get("owner_id") == owner_id)
        ]
        return sorted(records, key=_sort_key, reverse=True)


def build_scenario_bundle(scenario: dict) -> dict:
    return {
        "type": SCENARIO_TYPE,
        "schema_version": SCHEMA_VERSION,
        "name": scenario.get("name", ""),
        "exported_at": _now_iso(),
        "inputs": {k: deepcopy(scenario.get(k)) for k in EDITABLE_FIELDS},
    }


def parse_import_json(raw_json: str) -> tuple[dict, list[str], list[str]]:
    try:
        payload = json.loads(raw_json)
    except json.JSONDecodeError:
        return {}, ["Could not parse import JSON."], []
    return migrate_import_payload(payload)


configure_storage_root(storage_root_from_env())
