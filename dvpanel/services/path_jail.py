from __future__ import annotations

import logging
import os
import posixpath
import re
from pathlib import Path

from dvpanel.errors import AccessDenied, MalformedPath

logger = logging.getLogger(__name__)

_LEADING_PARENTS_RE = re.compile(r"^(\.\.(/|$))+")


class PathJail:
    """Resolves caller-supplied paths against a fixed root directory.

    Containment is checked twice: once on the normalized path text, then again
    after symlinks are resolved, so a link inside the root cannot point a caller
    outside it. Existence and type checks belong to the caller.
    """

    def __init__(self, base_dir: str | Path):
        raw = str(base_dir or "").strip()
        if not raw or "\x00" in raw:
            raise MalformedPath("Sandbox root is empty or malformed.")
        self.base_dir = os.path.normpath(os.path.abspath(raw))
        self.is_root = self.base_dir == os.path.abspath(os.sep)
        self._real_base = os.path.realpath(self.base_dir)

    def __repr__(self) -> str:
        return f"PathJail(base_dir={self.base_dir!r})"

    def _normalize(self, user_path: str) -> str:
        if not isinstance(user_path, str) or "\x00" in user_path or not user_path.strip():
            raise MalformedPath()
        cleaned = user_path.strip().replace("\\", "/")
        return posixpath.normpath(cleaned)

    def contains(self, absolute_path: str) -> bool:
        if self.is_root:
            return os.path.isabs(absolute_path)
        return absolute_path == self.base_dir or absolute_path.startswith(self.base_dir + os.sep)

    def _check_real(self, user_path: str, resolved: str) -> None:
        real = os.path.realpath(resolved)
        if real != self._real_base and not real.startswith(self._real_base.rstrip(os.sep) + os.sep):
            logger.warning("Rejected %r: symlinks lead outside sandbox %s", user_path, self.base_dir)
            raise AccessDenied()

    def resolve(self, user_path: str) -> str:
        normalized = self._normalize(user_path)

        if self.is_root:
            # "/.." is "/" on POSIX, so climbing above the root is harmless here.
            stripped = _LEADING_PARENTS_RE.sub("", normalized) or "."
            resolved = os.path.normpath(os.path.join(self.base_dir, stripped))
            if not os.path.isabs(resolved):
                logger.warning("Rejected non-absolute resolution for %r", user_path)
                raise AccessDenied("Access denied: invalid path resolution.")
            return resolved

        if posixpath.isabs(normalized):
            resolved = os.path.normpath(normalized)
            if not self.contains(resolved):
                logger.warning("Rejected absolute path %r outside sandbox %s", user_path, self.base_dir)
                raise AccessDenied()
            self._check_real(user_path, resolved)
            return resolved

        if normalized == ".." or normalized.startswith("../"):
            logger.warning("Rejected traversal attempt %r", user_path)
            raise AccessDenied()

        resolved = os.path.normpath(os.path.join(self.base_dir, normalized))
        if not self.contains(resolved):
            logger.warning("Rejected path %r resolving outside sandbox %s", user_path, self.base_dir)
            raise AccessDenied()
        self._check_real(user_path, resolved)
        return resolved

    def relative_to_base(self, resolved: str) -> str:
        """POSIX-style path of an already resolved path, relative to the root."""
        if not self.contains(resolved):
            raise AccessDenied()
        rel = os.path.relpath(resolved, self.base_dir)
        if rel == ".":
            return ""
        return rel.replace(os.sep, "/")


def resolve_safe_path(relative_path: str, base_dir: str | Path) -> str:
    return PathJail(base_dir).resolve(relative_path)


def from_panel_path(panel_path: str) -> str:
    """Converts a path as shown in the panel ("/" is the sandbox root) to a jail-relative path."""
    if not isinstance(panel_path, str) or not panel_path.strip():
        raise MalformedPath()
    stripped = panel_path.strip().replace("\\", "/").lstrip("/")
    return stripped or "."
