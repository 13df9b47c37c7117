from __future__ import annotations


class PanelError(Exception):
    """Base class for errors surfaced to panel callers.

    Messages are shown to operators, so they must never carry absolute host
    paths or key material. Put those in the log record instead.
    """

    kind = "panel_error"
    status_code = 500
    default_message = "Panel operation failed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AccessDenied(PanelError):
    kind = "access_denied"
    status_code = 403
    default_message = "Access denied: path is outside the allowed directory."


class MalformedPath(PanelError):
    kind = "malformed_path"
    status_code = 400
    default_message = "Path is empty or malformed."


class InvalidRequest(PanelError):
    kind = "invalid_request"
    status_code = 400
    default_message = "Invalid request."


class NotFound(PanelError):
    kind = "not_found"
    status_code = 404
    default_message = "Not found."


class Conflict(PanelError):
    kind = "conflict"
    status_code = 409
    default_message = "Already exists."


class StorageError(PanelError):
    kind = "storage_error"
    status_code = 500
    default_message = "Storage error."


class StorageWriteError(StorageError):
    kind = "storage_write_error"
    default_message = "Storage error: failed to save record."


class StorageCorruptError(StorageError):
    kind = "storage_corrupt"
    default_message = "Storage error: record is corrupt or cannot be decrypted."


class ConfigurationError(PanelError):
    kind = "configuration_error"
    status_code = 500
    default_message = "Panel is not configured."
