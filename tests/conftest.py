# tests/conftest.py

import pytest
from PySide6.QtCore import QCoreApplication

from godrop.core.backend import Backend
from godrop.core.errors import IoError
from godrop.core.models import DirectoryEntry, SessionInfo


@pytest.fixture(scope="session")
def qapp():
    """Creates a QCoreApplication instance for the test session."""
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    return app


def file_entry(name, parent="/home/user"):
    return DirectoryEntry(name=name, full_path=f"{parent}/{name}", is_directory=False, size="1 B", kind="file")


def dir_entry(name, parent="/home/user"):
    return DirectoryEntry(name=name, full_path=f"{parent}/{name}", is_directory=True, kind="folder")


class FakeBackend(Backend):
    """An in-memory backend that records every call made to it."""

    def __init__(self):
        self.tree = {
            "/home/user": [file_entry("b.txt"), dir_entry("Zeta"), file_entry("A.txt"), dir_entry("alpha")],
            "/home/user/alpha": [file_entry("inner.txt", "/home/user/alpha")],
            "/home": [dir_entry("user", "/home")],
        }
        self.calls = []
        self.start_error = None
        self.stop_error = None
        self.clipboard = ""
        self.history = []
        self.chosen_directory = None
        self.info = SessionInfo(ip="192.168.1.20", port="1111", full_url="http://192.168.1.20:1111", qr_code_ref="qr")

    def get_home_directory(self):
        return "/home/user"

    def read_directory(self, path):
        self.calls.append(("read_directory", path))
        if path not in self.tree:
            raise IoError(path, "No such file or directory")
        return list(self.tree[path])

    def get_default_save_location(self):
        return "/home/user/Downloads"

    def select_directory_interactively(self):
        return self.chosen_directory

    def _start(self, name, *args):
        self.calls.append((name,) + args)
        if self.start_error:
            raise self.start_error
        return self.info

    def start_send_session(self, port, password, paths, download_limit, timeout_minutes):
        return self._start("start_send_session", port, password, list(paths), download_limit, timeout_minutes)

    def start_receive_session(self, port, save_location):
        return self._start("start_receive_session", port, save_location)

    def start_clipboard_session(self, port):
        return self._start("start_clipboard_session", port)

    def stop_session(self):
        self.calls.append(("stop_session",))
        if self.stop_error:
            raise self.stop_error

    def get_system_clipboard_text(self):
        return self.clipboard

    def set_system_clipboard_text(self, text):
        self.calls.append(("set_system_clipboard_text", text))
        self.clipboard = text

    def get_clipboard_history(self):
        return list(self.history)

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)


@pytest.fixture
def fake_backend():
    return FakeBackend()
