# godrop/core/path_navigator.py

import logging
from typing import Callable, List, Optional, Tuple

from .backend import Backend, ROOT_SENTINEL
from .errors import IoError
from .models import DirectoryEntry, sort_entries

logger = logging.getLogger(__name__)


class PathNavigator:
    """
    Browses a filesystem-like tree through the backend's directory listing.

    The current path and its listing are held together in one snapshot tuple, so
    an observer reading `current_path` and `entries` never sees the path of one
    listing paired with the entries of another.
    """

    def __init__(self, backend: Backend,
                 on_changed: Optional[Callable[[str, List[DirectoryEntry]], None]] = None,
                 on_error: Optional[Callable[[str], None]] = None):
        self.backend = backend
        self.on_changed = on_changed
        self.on_error = on_error
        self._snapshot: Tuple[str, Tuple[DirectoryEntry, ...]] = ("", ())

    @property
    def current_path(self) -> str:
        return self._snapshot[0]

    @property
    def entries(self) -> List[DirectoryEntry]:
        return list(self._snapshot[1])

    def list_directory(self, path: str) -> List[DirectoryEntry]:
        """
        Lists `path` in display order: directories first, then files, each
        group sorted case-insensitively by name.

        Raises:
            IoError: when the backend cannot read the directory.
        """
        return sort_entries(self.backend.read_directory(path))

    def load_directory(self, path: str) -> bool:
        """
        Replaces the current listing with the listing of `path`.

        On failure the previous listing stays in place and the error is logged
        and reported through `on_error`; nothing is raised.
        """
        try:
            entries = self.list_directory(path)
        except IoError as e:
            logger.error(f"Error loading directory '{path}': {e}")
            if self.on_error:
                self.on_error(f"Error loading dir: {e}")
            return False

        self._snapshot = (path, tuple(entries))
        logger.debug(f"Loaded {len(entries)} entries from '{path}'.")
        if self.on_changed:
            self.on_changed(path, list(entries))
        return True

    def load_home(self) -> bool:
        return self.load_directory(self.backend.get_home_directory() or ROOT_SENTINEL)

    def navigate_into(self, entry: DirectoryEntry) -> bool:
        """Opens `entry` if it is a directory; files are ignored."""
        if not entry.is_directory:
            return False
        return self.load_directory(entry.full_path)

    def navigate_up(self) -> bool:
        return self.load_directory(parent_path(self.current_path))


def parent_path(current_path: str) -> str:
    """
    Drops the last segment of `current_path`, splitting on '/' when present and
    on '\\' otherwise. An empty result becomes the root sentinel.
    """
    separator = "/" if "/" in current_path else "\\"
    parts = current_path.split(separator)
    parts.pop()
    return separator.join(parts) or ROOT_SENTINEL
