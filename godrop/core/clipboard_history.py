# godrop/core/clipboard_history.py

import logging
from typing import Callable, Iterable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50
PREVIEW_LIMIT = 200


class ClipboardHistoryStore:
    """
    A newest-first log of clipboard snapshots.

    Two rules hold after every `record`:
    - the head is never equal to the entry right below it;
    - at most `capacity` entries are kept, the oldest being dropped first.
    """

    def __init__(self, write_to_system: Callable[[str], None], capacity: int = DEFAULT_CAPACITY):
        """
        Args:
            write_to_system: Writes text to the OS clipboard (the backend's
                SetSystemClipboardText primitive).
            capacity: Maximum number of snapshots kept.
        """
        self._write_to_system = write_to_system
        self.capacity = capacity
        self._entries: List[str] = []

    def seed(self, history: Iterable[str]):
        """
        Loads the backend's historical record, newest first, as received.
        The seed is trusted and not deduplicated again; only the capacity applies.
        """
        self._entries = list(history)[:self.capacity]
        logger.info(f"Clipboard history seeded with {len(self._entries)} entries.")

    def record(self, text: str) -> bool:
        """
        Prepends `text` unless it equals the current head.

        Returns:
            True if the history changed.
        """
        if self._entries and self._entries[0] == text:
            return False
        self._entries.insert(0, text)
        del self._entries[self.capacity:]
        return True

    def copy_to_system(self, text: str):
        """Hands `text` to the OS clipboard. The history itself is not touched."""
        self._write_to_system(text)

    @property
    def head(self) -> Optional[str]:
        return self._entries[0] if self._entries else None

    @property
    def entries(self) -> List[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def preview(text: str, limit: int = PREVIEW_LIMIT) -> str:
        """Shortens long snapshots for card display."""
        if len(text) <= limit:
            return text
        return text[:limit - 3] + "..."
