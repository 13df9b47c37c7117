from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager, suppress
from pathlib import Path
from typing import Any, Callable, Iterator

from dvpanel.errors import (
    AccessDenied,
    ConfigurationError,
    MalformedPath,
    StorageCorruptError,
    StorageError,
    StorageWriteError,
)
from dvpanel.services.crypto import open_record, seal_record
from dvpanel.services.key_derivation import derive_storage_key, load_or_create_salt
from dvpanel.services.path_jail import PathJail

logger = logging.getLogger(__name__)

_RESERVED_NAMES = {".salt"}


def _canonical_json(value: Any) -> bytes:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False).encode(
        "utf-8"
    )


def _aad(name: str) -> bytes:
    return f"dvpanel-record:{name}".encode()


class EncryptedStore:
    """Encrypted JSON records kept as one file per logical name under a storage root.

    Records are sealed with AES-256-GCM under a key derived from the installation
    code. The logical name is bound in as associated data, so a record copied to
    another name will not open. ``save`` replaces the whole record atomically; for
    read-modify-write use ``update`` (or hold ``lock`` around load/save), which
    serializes callers per name within this process.
    """

    def __init__(self, root: str | Path, key: bytes):
        if len(key) != 32:
            raise ConfigurationError("Storage key must be 32 bytes.")
        self.root = Path(root).expanduser().resolve()
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error("Could not create storage root %s: %s", self.root, exc)
            raise ConfigurationError("Storage root could not be created.") from exc

        self._key = key
        self._jail = PathJail(self.root)
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_settings(cls, settings) -> EncryptedStore:
        if not (settings.installation_code or "").strip():
            logger.critical(
                "DVPANEL_INSTALLATION_CODE is not set. Generate a long random value and set it "
                "in the environment or .env before starting the panel."
            )
            raise ConfigurationError("Configuration error: installation code is not set.")

        root = settings.resolved_data_path()
        salt = load_or_create_salt(settings.resolved_salt_file())
        key = derive_storage_key(
            settings.installation_code,
            salt,
            time_cost=settings.kdf_time_cost,
            memory_cost=settings.kdf_memory_cost,
            parallelism=settings.kdf_parallelism,
        )
        logger.info("Encrypted storage ready at %s", root)
        return cls(root, key)

    def __repr__(self) -> str:
        return f"EncryptedStore(root={str(self.root)!r})"

    def _record_path(self, filename: str) -> tuple[str, Path]:
        resolved = self._jail.resolve(filename)
        name = self._jail.relative_to_base(resolved)
        if not name:
            raise MalformedPath("Record name is empty.")
        if name in _RESERVED_NAMES:
            raise AccessDenied("Access denied: reserved record name.")
        return name, Path(resolved)

    def _lock_for(self, name: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.RLock()
            return lock

    @contextmanager
    def lock(self, filename: str) -> Iterator[None]:
        name, _ = self._record_path(filename)
        with self._lock_for(name):
            yield

    def save(self, filename: str, value: Any) -> None:
        name, path = self._record_path(filename)
        try:
            plaintext = _canonical_json(value)
        except (TypeError, ValueError) as exc:
            raise StorageWriteError(f"Storage error: value for {name} is not JSON-serializable.") from exc

        blob = seal_record(self._key, plaintext, aad=_aad(name))
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            with os.fdopen(fd, "wb") as out:
                out.write(blob)
                out.flush()
                os.fsync(out.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            logger.error("Failed to write record %s: %s", name, exc)
            raise StorageWriteError(f"Storage error: failed to save {name}.") from exc
        finally:
            if tmp_name:
                with suppress(OSError):
                    os.unlink(tmp_name)
        logger.debug("Saved record %s (%d bytes)", name, len(blob))

    def load(self, filename: str) -> Any:
        """Returns the stored value, or None when the record was never created."""
        name, path = self._record_path(filename)
        try:
            blob = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.error("Failed to read record %s: %s", name, exc)
            raise StorageError(f"Storage error: failed to read {name}.") from exc

        try:
            plaintext = open_record(self._key, blob, aad=_aad(name))
            return json.loads(plaintext.decode("utf-8"))
        except ValueError as exc:
            # Covers bad framing, InvalidTag, UnicodeDecodeError and JSONDecodeError.
            logger.warning("Record %s failed to decrypt or parse: %s", name, exc)
            raise StorageCorruptError(f"Storage error: {name} is corrupt or cannot be decrypted.") from exc

    def exists(self, filename: str) -> bool:
        _, path = self._record_path(filename)
        return path.is_file()

    def delete(self, filename: str) -> bool:
        name, path = self._record_path(filename)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.error("Failed to delete record %s: %s", name, exc)
            raise StorageWriteError(f"Storage error: failed to delete {name}.") from exc
        logger.info("Deleted record %s", name)
        return True

    def names(self, pattern: str = "*.json") -> list[str]:
        """Record names directly under the storage root matching a glob pattern."""
        return sorted(p.name for p in self.root.glob(pattern) if p.is_file() and p.name not in _RESERVED_NAMES)

    def update(
        self,
        filename: str,
        fn: Callable[[Any], Any],
        *,
        default: Any = None,
        reset_on_corrupt: bool = False,
    ) -> Any:
        """Load, transform and save one record while holding its lock.

        ``fn`` receives the current value (a copy of ``default`` when absent) and
        returns the value to store. With ``reset_on_corrupt`` a record that fails
        to open is logged and treated as absent instead of raising.
        """
        with self.lock(filename):
            try:
                current = self.load(filename)
            except StorageCorruptError:
                if not reset_on_corrupt:
                    raise
                logger.warning("Resetting corrupt record %s", filename)
                current = None
            if current is None:
                current = copy.deepcopy(default)
            updated = fn(current)
            self.save(filename, updated)
            return updated
