from __future__ import annotations

import logging
import posixpath
import re
import uuid
from datetime import datetime, timezone
from typing import Callable

from pydantic import ValidationError

from dvpanel.errors import NotFound, StorageCorruptError
from dvpanel.schemas.snapshots import Snapshot, SnapshotSet
from dvpanel.services.file_manager import FileManager
from dvpanel.services.storage import EncryptedStore

logger = logging.getLogger(__name__)

MAX_SNAPSHOTS = 10
SNAPSHOT_PREFIX = "snapshots"
SNAPSHOT_SUFFIX = "-snapshots.json"

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def snapshot_record_name(relative_path: str) -> str:
    """Storage name of the snapshot set for a file, given its path relative to the sandbox root."""
    rel_dir, basename = posixpath.split(relative_path.strip("/"))
    safe = _UNSAFE_NAME_CHARS.sub("_", basename)
    return posixpath.join(SNAPSHOT_PREFIX, rel_dir, f"{safe}{SNAPSHOT_SUFFIX}")


def newest_first(snapshots: list[Snapshot]) -> list[Snapshot]:
    ordered = sorted(enumerate(snapshots), key=lambda pair: (pair[1].timestamp, pair[0]), reverse=True)
    return [s for _, s in ordered]


def apply_retention(
    snapshots: list[Snapshot], cap: int, *, protect: frozenset[str] = frozenset()
) -> tuple[list[Snapshot], list[Snapshot]]:
    """Evict unlocked snapshots, oldest first, until the set fits the cap.

    Locked snapshots and ids in ``protect`` are never evicted, so the result can
    stay above the cap.
    Returns (kept, evicted), with kept in the input order.
    """
    excess = len(snapshots) - cap
    if excess <= 0:
        return list(snapshots), []

    unlocked = sorted(
        (i for i, s in enumerate(snapshots) if not s.is_locked and s.id not in protect),
        key=lambda i: (snapshots[i].timestamp, i),
    )
    doomed = set(unlocked[:excess])
    kept = [s for i, s in enumerate(snapshots) if i not in doomed]
    evicted = [s for i, s in enumerate(snapshots) if i in doomed]
    return kept, evicted


class SnapshotManager:
    """Bounded, encrypted version history for files edited through the panel.

    Every operation first resolves the original file through the file manager,
    so paths outside the sandbox and files that do not exist are rejected before
    any snapshot record is touched. Read-modify-write runs under the store's
    per-record lock.
    """

    def __init__(
        self,
        store: EncryptedStore,
        files: FileManager,
        *,
        max_snapshots: int = MAX_SNAPSHOTS,
        clock: Callable[[], datetime] = _utc_now,
    ):
        if max_snapshots < 1:
            raise ValueError("max_snapshots must be at least 1")
        self.store = store
        self.files = files
        self.max_snapshots = max_snapshots
        self._clock = clock

    def record_name_for(self, original_path: str) -> str:
        resolved = self.files.require_file(original_path)
        return snapshot_record_name(self.files.jail.relative_to_base(resolved))

    def _load(self, name: str) -> list[Snapshot]:
        try:
            raw = self.store.load(name)
        except StorageCorruptError:
            logger.warning("Snapshot set %s is unreadable, starting from an empty set", name)
            return []
        if raw is None:
            return []
        try:
            return SnapshotSet.model_validate(raw).snapshots
        except ValidationError as exc:
            logger.warning("Snapshot set %s has an invalid format (%s), starting from an empty set", name, exc)
            return []

    def _save(self, name: str, snapshots: list[Snapshot]) -> None:
        self.store.save(name, {"snapshots": [s.to_record() for s in snapshots]})

    def create_snapshot(self, original_path: str, content: str, language: str) -> list[Snapshot]:
        name = self.record_name_for(original_path)
        with self.store.lock(name):
            snapshots = self._load(name)
            new = Snapshot(
                id=str(uuid.uuid4()),
                timestamp=self._clock(),
                content=content,
                language=language,
                is_locked=False,
            )
            snapshots.append(new)
            snapshots, evicted = apply_retention(snapshots, self.max_snapshots, protect=frozenset({new.id}))
            self._save(name, snapshots)

        if evicted:
            logger.info("Pruned %d old unlocked snapshot(s) from %s", len(evicted), name)
        if len(snapshots) > self.max_snapshots:
            logger.warning(
                "Snapshot set %s holds %d snapshots, above the cap of %d, because the rest are locked",
                name,
                len(snapshots),
                self.max_snapshots,
            )
        logger.info("Created snapshot for %s (total %d)", name, len(snapshots))
        return newest_first(snapshots)

    def list_snapshots(self, original_path: str) -> list[Snapshot]:
        name = self.record_name_for(original_path)
        return newest_first(self._load(name))

    def get_snapshot(self, original_path: str, snapshot_id: str) -> Snapshot:
        name = self.record_name_for(original_path)
        for snap in self._load(name):
            if snap.id == snapshot_id:
                return snap
        raise NotFound("Snapshot not found.")

    def set_lock(self, original_path: str, snapshot_id: str, locked: bool) -> list[Snapshot]:
        name = self.record_name_for(original_path)
        with self.store.lock(name):
            snapshots = self._load(name)
            target = next((s for s in snapshots if s.id == snapshot_id), None)
            if target is None:
                raise NotFound("Snapshot not found.")
            target.is_locked = locked
            self._save(name, snapshots)
        logger.info("Snapshot %s in %s %s", snapshot_id, name, "locked" if locked else "unlocked")
        return newest_first(snapshots)

    def delete_snapshot(self, original_path: str, snapshot_id: str) -> list[Snapshot]:
        name = self.record_name_for(original_path)
        with self.store.lock(name):
            snapshots = self._load(name)
            remaining = [s for s in snapshots if s.id != snapshot_id]
            if len(remaining) != len(snapshots):
                self._save(name, remaining)
                logger.info("Deleted snapshot %s from %s", snapshot_id, name)
        return newest_first(remaining)
