"""Signed-in session context and the local user/role directory."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

from roi_scenarios import persistence
from roi_scenarios.errors import PersistenceFailure


ADMIN_ROLE = "admin"
USER_ROLE = "user"
ROLES = (ADMIN_ROLE, USER_ROLE)

_ADMIN_EMAILS_ENV_VAR = "ROI_ADMIN_EMAILS"


def resolve_role(assigned_roles) -> str:
    """Pick the effective role; admin wins and nothing assigned means user."""
    roles = {str(r).strip().lower() for r in (assigned_roles or [])}
    if ADMIN_ROLE in roles:
        return ADMIN_ROLE
    return USER_ROLE


def admin_emails_from_env() -> set[str]:
    raw = os.getenv(_ADMIN_EMAILS_ENV_VAR, "")
    return {part.strip().lower() for part in raw.split(",") if part.strip()}


@dataclass
class SessionContext:
    """Who is signed in. Acquired at sign-in, invalidated at sign-out."""

    user_id: str
    email: str
    role: str = USER_ROLE
    active: bool = True
    signed_in_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def current_role(self) -> str:
        return self.role if self.active else USER_ROLE

    @property
    def is_admin(self) -> bool:
        return self.active and self.role == ADMIN_ROLE

    def invalidate(self) -> None:
        self.active = False


class LocalUserDirectory:
    """Profiles and role assignments kept beside the scenario store."""

    def __init__(self, root: str | Path | None = None, admin_emails: set[str] | None = None):
        self.root = Path(root) if root is not None else persistence.STORE_DIR
        self.path = self.root / persistence.USER_STORE_NAME
        self.admin_emails = admin_emails if admin_emails is not None else admin_emails_from_env()

    def _load(self) -> dict:
        return persistence.load_json_store(self.path)

    def find_by_email(self, email: str) -> dict | None:
        key = str(email or "").strip().lower()
        for profile in self._load().values():
            if profile.get("email") == key:
                return dict(profile)
        return None

    def register(self, email: str) -> dict:
        key = str(email or "").strip().lower()
        if "@" not in key:
            raise PersistenceFailure("A valid email address is required.")
        existing = self.find_by_email(key)
        if existing is not None:
            return existing
        profile = {
            "user_id": uuid4().hex,
            "email": key,
            "created_at": datetime.now(timezone.utc).isoformat(),
            "roles": [ADMIN_ROLE] if key in self.admin_emails else [USER_ROLE],
        }
        store = self._load()
        store[profile["user_id"]] = profile
        persistence.save_json_store(self.path, store)
        return dict(profile)

    def sign_in(self, email: str) -> SessionContext:
        profile = self.register(email)
        return SessionContext(
            user_id=profile["user_id"],
            email=profile["email"],
            role=resolve_role(profile.get("roles")),
        )

    def list_profiles(self) -> list[dict]:
        profiles = [dict(p) for p in self._load().values()]
        for p in profiles:
            p["role"] = resolve_role(p.get("roles"))
        return sorted(profiles, key=lambda p: str(p.get("created_at", "")), reverse=True)

    def emails_by_user(self) -> dict[str, str]:
        return {uid: p.get("email", "") for uid, p in self._load().items()}

    def set_role(self, user_id: str, role: str) -> dict:
        if role not in ROLES:
            raise PersistenceFailure(f"Unknown role: {role}")
        store = self._load()
        if user_id not in store:
            raise PersistenceFailure(f"User {user_id} was not found.")
        store[user_id]["roles"] = [role]
        persistence.save_json_store(self.path, store)
        return dict(store[user_id])

    def remove(self, user_id: str) -> dict:
        """Drop a profile and its role assignments. Scenarios the user owned are kept."""
        store = self._load()
        profile = store.pop(user_id, None)
        if profile is None:
            raise PersistenceFailure(f"User {user_id} was not found.")
        persistence.save_json_store(self.path, store)
        return dict(profile)
