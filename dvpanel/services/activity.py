from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import ValidationError

from dvpanel.errors import InvalidRequest, StorageError
from dvpanel.schemas.activity import LogEntry
from dvpanel.services.storage import EncryptedStore

logger = logging.getLogger(__name__)

OWNER_LOG_FILE = "Owner-Logs.json"
ADMIN_LOG_FILE = "Admin-Logs.json"
CUSTOM_LOG_FILE = "Custom-Logs.json"
LOG_FILES = (OWNER_LOG_FILE, ADMIN_LOG_FILE, CUSTOM_LOG_FILE)

_PY_LEVELS = {
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "AUTH": logging.ERROR,
    "DEBUG": logging.DEBUG,
}


def log_files_for_role(role: str) -> list[str]:
    files = [OWNER_LOG_FILE]
    if role in ("Admin", "Custom"):
        files.append(ADMIN_LOG_FILE)
    if role == "Custom":
        files.append(CUSTOM_LOG_FILE)
    return files


class ActivityLog:
    """Encrypted audit trail of operator actions.

    Every event lands in the owner log; Admin and Custom events are also copied to
    the narrower logs their roles can read. Each log keeps its newest
    ``max_entries`` events. A log that cannot be decrypted is restarted empty.
    """

    def __init__(
        self,
        store: EncryptedStore,
        *,
        max_entries: int = 1000,
        debug_mode: Callable[[], bool] | None = None,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.store = store
        self.max_entries = max_entries
        self._debug_mode = debug_mode

    def _debug_enabled(self) -> bool:
        if self._debug_mode is None:
            return False
        try:
            return bool(self._debug_mode())
        except StorageError:
            return False

    def _append(self, filename: str, record: dict[str, Any]) -> None:
        def push(logs: Any) -> list:
            if not isinstance(logs, list):
                logger.warning("Log file %s was not an array. Re-initializing.", filename)
                logs = []
            logs.append(record)
            return logs[-self.max_entries :]

        self.store.update(filename, push, default=[], reset_on_corrupt=True)

    def log_event(
        self,
        username: str,
        role: str,
        action: str,
        level: str = "INFO",
        details: dict[str, Any] | str | None = None,
        *,
        target_user: str | None = None,
        target_role: str | None = None,
    ) -> LogEntry:
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            username=username,
            role=role,
            action=action,
            details=details,
            target_user=target_user,
            target_role=target_role,
        )

        if level != "DEBUG" or self._debug_enabled():
            logger.log(
                _PY_LEVELS[level],
                "[%s] User: %s(%s) Action: %s %s",
                level,
                username,
                role,
                action,
                details or "",
            )

        record = entry.to_record()
        for filename in log_files_for_role(role):
            try:
                self._append(filename, record)
            except StorageError:
                # The audit trail must not block the operator action that produced it.
                logger.exception("Failed to save updated log file %s", filename)
        return entry

    def read(self, filename: str, *, limit: int | None = None) -> list[LogEntry]:
        if filename not in LOG_FILES:
            raise InvalidRequest("Unknown log file.")
        try:
            raw = self.store.load(filename)
        except StorageError:
            logger.warning("Log file %s is unreadable, returning no entries", filename)
            return []
        if not isinstance(raw, list):
            return []

        entries: list[LogEntry] = []
        for item in reversed(raw):
            try:
                entries.append(LogEntry.model_validate(item))
            except ValidationError:
                logger.debug("Skipping malformed log entry in %s", filename)
                continue
            if limit is not None and len(entries) >= limit:
                break
        return entries
