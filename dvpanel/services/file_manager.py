from __future__ import annotations

import logging
import os
import re
import stat
from datetime import datetime, timezone

from dvpanel.errors import AccessDenied, Conflict, InvalidRequest, NotFound
from dvpanel.schemas.files import DirectoryListing, FileEntry
from dvpanel.services.path_jail import PathJail

logger = logging.getLogger(__name__)

_OCTAL_MODE_RE = re.compile(r"^[0-7]{3,4}$")

_PERMISSION_BITS = (
    (stat.S_IRUSR, "r"),
    (stat.S_IWUSR, "w"),
    (stat.S_IXUSR, "x"),
    (stat.S_IRGRP, "r"),
    (stat.S_IWGRP, "w"),
    (stat.S_IXGRP, "x"),
    (stat.S_IROTH, "r"),
    (stat.S_IWOTH, "w"),
    (stat.S_IXOTH, "x"),
)


def mode_to_string(mode: int, is_dir: bool) -> str:
    out = "d" if is_dir else "-"
    for bit, char in _PERMISSION_BITS:
        out += char if mode & bit else "-"
    return out


def _entry_for(dir_path: str, entry: os.DirEntry) -> FileEntry:
    try:
        st = os.stat(os.path.join(dir_path, entry.name))
    except OSError as exc:
        logger.warning("Failed to stat %s: %s", entry.name, exc)
        try:
            kind = "folder" if entry.is_dir() else ("file" if entry.is_file() else "unknown")
        except OSError:
            kind = "unknown"
        return FileEntry(name=entry.name, type=kind)

    is_dir = stat.S_ISDIR(st.st_mode)
    kind = "folder" if is_dir else ("file" if stat.S_ISREG(st.st_mode) else "unknown")
    return FileEntry(
        name=entry.name,
        type=kind,
        size=st.st_size,
        modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).isoformat(),
        permissions=mode_to_string(st.st_mode, is_dir),
    )


class FileManager:
    """Host file operations for the panel, confined to the jail's root."""

    def __init__(self, jail: PathJail):
        self.jail = jail

    def resolve(self, path: str) -> str:
        return self.jail.resolve(path)

    def client_path(self, resolved: str) -> str:
        return "/" + self.jail.relative_to_base(resolved)

    def require_file(self, path: str) -> str:
        resolved = self.resolve(path)
        if not os.path.isfile(resolved):
            raise NotFound("File not found.")
        return resolved

    def list_directory(self, path: str) -> DirectoryListing:
        resolved = self.resolve(path)
        if not os.path.exists(resolved):
            raise NotFound("Path not found.")
        if not os.path.isdir(resolved):
            raise InvalidRequest("Path is not a directory.")

        try:
            with os.scandir(resolved) as it:
                entries = [_entry_for(resolved, e) for e in it]
        except PermissionError as exc:
            raise AccessDenied("Permission denied while listing directory.") from exc

        entries.sort(key=lambda e: (e.type != "folder", e.name.lower()))
        logger.debug("Listed %d entries under %s", len(entries), resolved)
        return DirectoryListing(path=self.client_path(resolved), files=entries)

    def read_text(self, path: str) -> str:
        resolved = self.resolve(path)
        if not os.path.exists(resolved):
            raise NotFound("File not found.")
        if os.path.isdir(resolved):
            raise InvalidRequest("Path is a directory, not a file.")
        try:
            with open(resolved, "r", encoding="utf-8") as f:
                return f.read()
        except UnicodeDecodeError as exc:
            raise InvalidRequest("File is not a UTF-8 text file.") from exc
        except PermissionError as exc:
            raise AccessDenied("Permission denied while reading file.") from exc

    def write_text(self, path: str, content: str) -> str:
        resolved = self.resolve(path)
        if os.path.isdir(resolved):
            raise InvalidRequest("Path is a directory, not a file.")
        if not os.path.isdir(os.path.dirname(resolved)):
            raise NotFound("Parent directory not found.")
        try:
            with open(resolved, "w", encoding="utf-8") as f:
                f.write(content)
        except PermissionError as exc:
            raise AccessDenied("Permission denied while writing file.") from exc
        logger.info("Wrote %d characters to %s", len(content), resolved)
        return resolved

    def create(self, path: str, kind: str) -> str:
        if kind not in ("file", "folder"):
            raise InvalidRequest("Type must be 'file' or 'folder'.")
        resolved = self.resolve(path)
        if os.path.lexists(resolved):
            raise Conflict(f"{os.path.basename(resolved) or 'Path'} already exists.")
        if not os.path.isdir(os.path.dirname(resolved)):
            raise NotFound("Parent directory not found.")

        try:
            if kind == "folder":
                os.mkdir(resolved)
            else:
                with open(resolved, "x", encoding="utf-8"):
                    pass
        except FileExistsError as exc:
            raise Conflict(f"{os.path.basename(resolved)} already exists.") from exc
        except PermissionError as exc:
            raise AccessDenied(f"Permission denied while creating {kind}.") from exc
        logger.info("Created %s %s", kind, resolved)
        return resolved

    def set_permissions(self, path: str, mode: str) -> str:
        if not isinstance(mode, str) or not _OCTAL_MODE_RE.match(mode):
            raise InvalidRequest('Permissions mode must be a 3 or 4 digit octal string (e.g. "755" or "0755").')
        resolved = self.resolve(path)
        if not os.path.lexists(resolved):
            raise NotFound("File or directory not found.")
        try:
            os.chmod(resolved, int(mode, 8))
        except PermissionError as exc:
            raise AccessDenied("Permission denied while changing permissions.") from exc
        logger.info("Changed permissions of %s to %s", resolved, mode)
        return resolved
