from __future__ import annotations

import logging
import os
import tempfile
from contextlib import suppress
from pathlib import Path

from argon2.low_level import Type, hash_secret_raw
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from dvpanel.errors import ConfigurationError

logger = logging.getLogger(__name__)

SALT_SIZE = 16
STORAGE_KEY_INFO = b"dvpanel:storage-key:v1"


def _hkdf(root_key: bytes, *, info: bytes, length: int) -> bytes:
    return HKDF(
        algorithm=hashes.SHA256(),
        length=length,
        salt=None,
        info=info,
    ).derive(root_key)


def load_or_create_salt(path: Path) -> bytes:
    if path.exists():
        salt = path.read_bytes()
        if len(salt) < SALT_SIZE:
            raise ConfigurationError("Salt file must be at least 16 bytes.")
        return salt

    path.parent.mkdir(parents=True, exist_ok=True)
    salt = os.urandom(SALT_SIZE)
    # Written in full to a private temp file, then linked into place. os.link
    # fails if another worker got there first, and readers never see a partial salt.
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(salt)
            f.flush()
            os.fsync(f.fileno())
        try:
            os.link(tmp_name, path)
        except FileExistsError:
            return load_or_create_salt(path)
    finally:
        with suppress(OSError):
            os.unlink(tmp_name)
    logger.info("Generated new installation salt")
    return salt


def derive_storage_key(
    installation_code: str,
    salt: bytes,
    *,
    time_cost: int = 3,
    memory_cost: int = 65536,
    parallelism: int = 1,
) -> bytes:
    secret = (installation_code or "").strip().encode()
    if not secret:
        raise ConfigurationError("Installation code is not set.")
    if len(salt) < SALT_SIZE:
        raise ConfigurationError("Salt must be at least 16 bytes.")

    root = hash_secret_raw(
        secret=secret,
        salt=salt,
        time_cost=time_cost,
        memory_cost=memory_cost,
        parallelism=parallelism,
        hash_len=32,
        type=Type.ID,
    )
    return _hkdf(root, info=STORAGE_KEY_INFO, length=32)
