from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from dvpanel.errors import Conflict, InvalidRequest, StorageCorruptError
from dvpanel.schemas.users import UserCreate, UserRecord, UserSettingsData
from dvpanel.services.security import hash_password, verify_password
from dvpanel.services.storage import EncryptedStore

logger = logging.getLogger(__name__)

OWNER_ID = "owner_root"
_ROLE_SUFFIXES = ("Administrator", "Admin", "Custom", "Owner")
_UNSAFE_USERNAME = re.compile(r"[^a-zA-Z0-9_.-]")
_UNSAFE_ROLE = re.compile(r"[^a-zA-Z0-9]")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def user_record_name(username: str, role: str) -> str:
    return f"{_UNSAFE_USERNAME.sub('_', username)}-{_UNSAFE_ROLE.sub('_', role)}.json"


def user_settings_record_name(username: str, role: str) -> str:
    return f"{_UNSAFE_USERNAME.sub('_', username)}-{_UNSAFE_ROLE.sub('_', role)}-settings.json"


class UserStore:
    """Panel user records, one encrypted record per user plus a settings record."""

    def __init__(self, store: EncryptedStore):
        self.store = store

    def get_user(self, username: str, role: str) -> UserRecord | None:
        raw = self.store.load(user_record_name(username, role))
        if raw is None:
            return None
        try:
            return UserRecord.model_validate(raw)
        except ValidationError as exc:
            logger.error("User record for %s failed validation: %s", username, exc)
            raise StorageCorruptError("Storage error: user record is invalid.") from exc

    def find_user(self, username: str) -> UserRecord | None:
        for role in _ROLE_SUFFIXES:
            user = self.get_user(username, role)
            if user is not None:
                return user
        return None

    def list_users(self) -> list[UserRecord]:
        users: list[UserRecord] = []
        for name in self.store.names("*.json"):
            if name.endswith("-settings.json") or not name[:-5].endswith(tuple(f"-{r}" for r in _ROLE_SUFFIXES)):
                continue
            raw = self.store.load(name)
            try:
                users.append(UserRecord.model_validate(raw))
            except ValidationError:
                logger.warning("Skipping invalid user record %s", name)
        return sorted(users, key=lambda u: u.username.lower())

    def add_user(self, data: UserCreate | dict[str, Any]) -> UserRecord:
        if not isinstance(data, UserCreate):
            try:
                data = UserCreate.model_validate(data)
            except ValidationError as exc:
                raise InvalidRequest("Validation failed. Please check your input.") from exc

        if self.find_user(data.username) is not None:
            raise Conflict(f'User "{data.username}" already exists.')

        now = _now_iso()
        user = UserRecord(
            id=str(uuid.uuid4()),
            username=data.username,
            hashed_password=hash_password(data.password),
            role=data.role,
            projects=data.projects,
            assigned_pages=data.assigned_pages,
            allowed_settings_pages=data.allowed_settings_pages,
            status=data.status,
            created_at=now,
            updated_at=now,
        )
        self.store.save(user_record_name(user.username, user.role), user.to_record())
        self.store.save(user_settings_record_name(user.username, user.role), UserSettingsData().to_record())
        logger.info("Added user %s with role %s", user.username, user.role)
        return user

    def ensure_owner(self, username: str, password: str) -> UserRecord:
        existing = self.get_user(username, "Owner")
        if existing is not None and verify_password(password, existing.hashed_password):
            return existing

        now = _now_iso()
        owner = UserRecord(
            id=OWNER_ID,
            username=username,
            hashed_password=hash_password(password),
            role="Owner",
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        self.store.save(user_record_name(username, "Owner"), owner.to_record())
        if not self.store.exists(user_settings_record_name(username, "Owner")):
            self.store.save(user_settings_record_name(username, "Owner"), UserSettingsData().to_record())
        logger.info("Owner record for %s %s", username, "refreshed" if existing else "created")
        return owner

    def load_user_settings(self, username: str, role: str) -> UserSettingsData:
        try:
            raw = self.store.load(user_settings_record_name(username, role))
        except StorageCorruptError:
            logger.warning("User settings for %s are unreadable, using defaults", username)
            return UserSettingsData()
        if raw is None:
            return UserSettingsData()
        try:
            return UserSettingsData.model_validate(raw)
        except ValidationError:
            return UserSettingsData()

    def delete_user(self, username: str, role: str) -> bool:
        removed = self.store.delete(user_record_name(username, role))
        self.store.delete(user_settings_record_name(username, role))
        if removed:
            logger.info("Deleted user %s (%s)", username, role)
        return removed
