from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from dvpanel.errors import InvalidRequest, StorageCorruptError
from dvpanel.schemas.settings import PanelSettingsData
from dvpanel.services.storage import EncryptedStore

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = ".settings.json"


class SettingsService:
    def __init__(self, store: EncryptedStore):
        self.store = store

    def load(self) -> PanelSettingsData:
        # StorageCorruptError propagates: unreadable or invalid settings are fatal.
        raw = self.store.load(SETTINGS_FILENAME)
        if raw is None:
            return PanelSettingsData()
        try:
            return PanelSettingsData.model_validate(raw)
        except ValidationError as exc:
            logger.error("Stored panel settings failed validation: %s", exc)
            raise StorageCorruptError("Storage error: panel settings are invalid.") from exc

    def save(self, data: PanelSettingsData | dict[str, Any]) -> PanelSettingsData:
        if not isinstance(data, PanelSettingsData):
            try:
                data = PanelSettingsData.model_validate(data)
            except ValidationError as exc:
                raise InvalidRequest("Validation failed. Please check your input.") from exc
        self.store.save(SETTINGS_FILENAME, data.to_record())
        logger.info("Panel settings saved")
        return data

    def debug_mode(self) -> bool:
        return self.load().debug_mode
