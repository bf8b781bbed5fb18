# godrop/core/selection.py

from typing import Dict, Iterator, List

from .models import DirectoryEntry, basename


class SelectionSet:
    """
    The files chosen for a send session, keyed by full path.
    Directory entries are never admitted. Insertion order is kept for display.
    """

    def __init__(self):
        # A dict doubles as an insertion-ordered set.
        self._paths: Dict[str, None] = {}

    def toggle(self, entry: DirectoryEntry) -> bool:
        """
        Flips the membership of a file entry.

        Returns:
            True if the entry is selected afterwards, False otherwise
            (always False for directories, which are left untouched).
        """
        if entry.is_directory:
            return False
        if entry.full_path in self._paths:
            del self._paths[entry.full_path]
            return False
        self._paths[entry.full_path] = None
        return True

    def remove(self, path: str):
        self._paths.pop(path, None)

    def clear(self):
        self._paths.clear()

    def paths(self) -> List[str]:
        return list(self._paths)

    def display_names(self) -> List[str]:
        return [basename(p) for p in self._paths]

    def is_empty(self) -> bool:
        return not self._paths

    def __contains__(self, path: str) -> bool:
        return path in self._paths

    def __len__(self) -> int:
        return len(self._paths)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._paths))
