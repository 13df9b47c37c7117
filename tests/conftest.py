"""Shared fixtures. Argon2 runs with tiny parameters so key derivation stays fast."""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from dvpanel.config import Settings
from dvpanel.services.file_manager import FileManager
from dvpanel.services.key_derivation import derive_storage_key
from dvpanel.services.path_jail import PathJail
from dvpanel.services.snapshots import SnapshotManager
from dvpanel.services.storage import EncryptedStore

FAST_KDF = {"time_cost": 1, "memory_cost": 8, "parallelism": 1}
SALT = b"0123456789abcdef"


def make_key(secret: str = "test-installation-code") -> bytes:
    return derive_storage_key(secret, SALT, **FAST_KDF)


class FakeClock:
    """Returns strictly increasing UTC instants, one second apart."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def store(tmp_path: Path) -> EncryptedStore:
    return EncryptedStore(tmp_path / "data", make_key())


@pytest.fixture
def www(tmp_path: Path) -> Path:
    root = tmp_path / "www"
    (root / "sub").mkdir(parents=True)
    (root / "sub" / "page.html").write_text("<h1>hello</h1>", encoding="utf-8")
    (root / "index.txt").write_text("index", encoding="utf-8")
    return root


@pytest.fixture
def files(www: Path) -> FileManager:
    return FileManager(PathJail(www))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def manager(store: EncryptedStore, files: FileManager, clock: FakeClock) -> SnapshotManager:
    return SnapshotManager(store, files, max_snapshots=10, clock=clock)


@pytest.fixture
def panel_settings(tmp_path: Path, www: Path) -> Settings:
    return Settings(
        installation_code="test-installation-code",
        data_path=str(tmp_path / "data"),
        file_manager_base_dir=str(www),
        kdf_time_cost=FAST_KDF["time_cost"],
        kdf_memory_cost=FAST_KDF["memory_cost"],
        kdf_parallelism=FAST_KDF["parallelism"],
        environment="test",
    )


def flip_byte(path: Path, index: int) -> None:
    data = bytearray(path.read_bytes())
    data[index] ^= 0x01
    path.write_bytes(bytes(data))


def record_path(store: EncryptedStore, name: str) -> Path:
    return store.root / Path(*name.split("/"))


def list_tmp_files(root: Path) -> list[str]:
    return [name for _, _, names in os.walk(root) for name in names if name.endswith(".tmp")]
