# godrop/core/backend.py

import logging
import os
import string
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

import pyperclip

from .errors import IoError, StartupError
from .models import DirectoryEntry, SessionInfo, SessionMode, format_size

logger = logging.getLogger(__name__)

# Listing this path shows the top of the filesystem (drive letters on Windows).
ROOT_SENTINEL = "root"


class Backend(ABC):
    """
    The request/response primitives the client consumes from the transfer service
    and the host. Push events travel separately, through the EventBridge.
    """

    events = None

    def bind_events(self, bridge) -> None:
        """Hands the service the EventBridge its push notifications are posted to."""
        self.events = bridge

    # --- Host filesystem ---

    @abstractmethod
    def get_home_directory(self) -> str: ...

    @abstractmethod
    def read_directory(self, path: str) -> List[DirectoryEntry]:
        """Lists `path`. Raises IoError when the directory cannot be read."""

    @abstractmethod
    def get_default_save_location(self) -> str: ...

    @abstractmethod
    def select_directory_interactively(self) -> Optional[str]:
        """Returns the chosen directory, or None when the user cancelled."""

    # --- Session lifecycle ---

    @abstractmethod
    def start_send_session(self, port: str, password: str, paths: List[str],
                           download_limit: int, timeout_minutes: int) -> SessionInfo: ...

    @abstractmethod
    def start_receive_session(self, port: str, save_location: str) -> SessionInfo: ...

    @abstractmethod
    def start_clipboard_session(self, port: str) -> SessionInfo: ...

    @abstractmethod
    def stop_session(self) -> None: ...

    # --- Clipboard ---

    @abstractmethod
    def get_system_clipboard_text(self) -> str: ...

    @abstractmethod
    def set_system_clipboard_text(self, text: str) -> None: ...

    @abstractmethod
    def get_clipboard_history(self) -> List[str]: ...


class LocalBackend(Backend):
    """
    Serves the host-side primitives directly: directory listing through pathlib,
    the OS clipboard through pyperclip. The transfer service itself runs
    elsewhere, so the session primitives refuse to start until one is attached.
    """

    def __init__(self, clipboard_history: Optional[List[str]] = None):
        self._clipboard_history = list(clipboard_history or [])

    def get_home_directory(self) -> str:
        try:
            return str(Path.home())
        except RuntimeError:
            logger.warning("Home directory could not be determined.")
            return ""

    def read_directory(self, path: str) -> List[DirectoryEntry]:
        if path in ("", ROOT_SENTINEL):
            return self._list_roots()

        directory = Path(path)
        try:
            children = list(directory.iterdir())
        except OSError as e:
            raise IoError(path, e.strerror or str(e)) from e

        entries = []
        for child in children:
            # Hidden dot-entries are never offered for sharing.
            if child.name.startswith('.'):
                continue
            try:
                is_dir = child.is_dir()
                size = "" if is_dir else format_size(child.stat().st_size)
            except OSError:
                logger.debug(f"Could not stat '{child}', listing it without a size.")
                is_dir, size = False, ""
            entries.append(DirectoryEntry(
                name=child.name,
                full_path=str(child),
                is_directory=is_dir,
                size=size,
                kind="folder" if is_dir else "file",
            ))
        return entries

    def _list_roots(self) -> List[DirectoryEntry]:
        if sys.platform != "win32":
            return [DirectoryEntry(name="/", full_path="/", is_directory=True, kind="folder")]
        drives = []
        for letter in string.ascii_uppercase:
            drive = f"{letter}:\\"
            if os.path.exists(drive):
                drives.append(DirectoryEntry(name=drive, full_path=drive, is_directory=True, kind="folder"))
        return drives

    def get_default_save_location(self) -> str:
        home = self.get_home_directory()
        return str(Path(home) / "Downloads") if home else ""

    def select_directory_interactively(self) -> Optional[str]:
        # Imported here so the headless parts of the client never need a display.
        from PySide6.QtWidgets import QFileDialog
        selection = QFileDialog.getExistingDirectory(None, "Select Save Location")
        return selection or None

    def start_send_session(self, port, password, paths, download_limit, timeout_minutes) -> SessionInfo:
        raise StartupError("No transfer service is attached to this client.", SessionMode.SEND)

    def start_receive_session(self, port, save_location) -> SessionInfo:
        raise StartupError("No transfer service is attached to this client.", SessionMode.RECEIVE)

    def start_clipboard_session(self, port) -> SessionInfo:
        raise StartupError("No transfer service is attached to this client.", SessionMode.CLIPBOARD_SYNC)

    def stop_session(self) -> None:
        logger.debug("stop_session called with no transfer service attached.")

    def get_system_clipboard_text(self) -> str:
        try:
            return pyperclip.paste()
        except pyperclip.PyperclipException as e:
            logger.warning(f"System clipboard is unavailable: {e}")
            return ""

    def set_system_clipboard_text(self, text: str) -> None:
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            logger.warning(f"Could not write to the system clipboard: {e}")

    def get_clipboard_history(self) -> List[str]:
        return list(self._clipboard_history)
