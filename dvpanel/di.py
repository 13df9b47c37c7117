from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from dvpanel.config import Settings
from dvpanel.services.activity import ActivityLog
from dvpanel.services.file_manager import FileManager
from dvpanel.services.panel_settings import SettingsService
from dvpanel.services.path_jail import PathJail
from dvpanel.services.snapshots import SnapshotManager
from dvpanel.services.storage import EncryptedStore
from dvpanel.services.users import UserStore


@dataclass
class Container:
    settings: Settings
    store: EncryptedStore
    files: FileManager
    snapshots: SnapshotManager
    panel_settings: SettingsService
    activity: ActivityLog
    users: UserStore


def build_container(s: Settings) -> Container:
    """Wire every service from settings. Raises ConfigurationError if the installation code is missing."""
    store = EncryptedStore.from_settings(s)
    files = FileManager(PathJail(s.file_manager_base_dir))
    snapshots = SnapshotManager(store, files, max_snapshots=s.max_snapshots)
    panel_settings = SettingsService(store)
    activity = ActivityLog(store, max_entries=s.max_log_entries, debug_mode=panel_settings.debug_mode)
    users = UserStore(store)
    return Container(s, store, files, snapshots, panel_settings, activity, users)


def get_container(request: Request) -> Container:
    return request.app.state.container
