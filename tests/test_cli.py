# tests/test_cli.py

import pytest
from click.testing import CliRunner
from PySide6.QtCore import QTimer

from conftest import FakeBackend
from godrop.cli import main as cli_main
from godrop.core.errors import VerificationError
from godrop.core.events import FileReceived, SessionStarted, SessionStopped
from godrop.core.models import ViewerStats


def test_browse_lists_folders_before_files(tmp_path):
    (tmp_path / "zeta.txt").write_text("z")
    (tmp_path / "Photos").mkdir()

    result = CliRunner().invoke(cli_main.godrop, ["browse", str(tmp_path)])

    assert result.exit_code == 0
    assert result.output.index("Photos") < result.output.index("zeta.txt")


def test_browse_reports_unreadable_directory(tmp_path):
    result = CliRunner().invoke(cli_main.godrop, ["browse", str(tmp_path / "missing")])

    assert result.exit_code == 1
    assert "Cannot list directory" in result.output


def test_settings_updates_and_shows_values(tmp_path):
    config = tmp_path / "settings.json"

    result = CliRunner().invoke(cli_main.godrop, ["settings", "--config", str(config), "--port", "4040"])

    assert result.exit_code == 0
    assert "4040" in result.output
    assert config.exists()


class StubViewerClient:
    def __init__(self, url):
        self.download_url = f"{url}/api/download"

    def fetch_stats(self):
        return ViewerStats(file_name="report.pdf", file_size=1048576, download_limit=2, has_code=True)

    def verify(self, code):
        if code != "1234":
            raise VerificationError("Invalid code")
        return True


def test_viewer_unlocks_with_code_and_prints_link(monkeypatch):
    monkeypatch.setattr(cli_main, "ViewerClient", StubViewerClient)

    result = CliRunner().invoke(cli_main.godrop, ["viewer", "http://host:1111", "--code", "1234"])

    assert result.exit_code == 0
    assert "report.pdf" in result.output
    assert "http://host:1111/api/download" in result.output


def test_viewer_rejects_wrong_code(monkeypatch):
    monkeypatch.setattr(cli_main, "ViewerClient", StubViewerClient)

    result = CliRunner().invoke(cli_main.godrop, ["viewer", "http://host:1111", "--code", "0000"])

    assert result.exit_code == 1
    assert "Invalid code" in result.output


class ScriptedBackend(FakeBackend):
    """Plays a short session through the bound bridge once the event loop runs."""
    instances = []

    def __init__(self):
        super().__init__()
        ScriptedBackend.instances.append(self)

    def start_receive_session(self, port, save_location):
        info = super().start_receive_session(port, save_location)
        QTimer.singleShot(0, lambda: self._push(FileReceived("a.txt"), FileReceived("a.txt"), SessionStopped()))
        return info

    def start_send_session(self, port, password, paths, download_limit, timeout_minutes):
        info = super().start_send_session(port, password, paths, download_limit, timeout_minutes)
        QTimer.singleShot(0, lambda: self._push(SessionStarted("192.168.1.44:50122"), SessionStopped()))
        return info

    def _push(self, *events):
        for event in events:
            self.events.post(event)


@pytest.fixture
def scripted_backend(monkeypatch):
    ScriptedBackend.instances.clear()
    monkeypatch.setattr(cli_main, "LocalBackend", ScriptedBackend)
    return ScriptedBackend


def test_receive_runs_until_the_service_stops(scripted_backend, tmp_path):
    drop = tmp_path / "drop"

    result = CliRunner().invoke(cli_main.godrop, ["receive", str(drop), "--port", "4040"])

    assert result.exit_code == 0
    backend = scripted_backend.instances[-1]
    assert ("start_receive_session", "4040", str(drop)) in backend.calls
    assert f"> DROPZONE ACTIVE -> {drop}" in result.output
    assert result.output.count("> RECEIVED: a.txt") == 1
    assert "> Server stopped." in result.output


def test_send_selects_each_file_once(scripted_backend, tmp_path):
    shared = tmp_path / "report.pdf"
    shared.write_bytes(b"%PDF")

    result = CliRunner().invoke(cli_main.godrop, ["send", str(shared), str(shared), "--download-limit", "2"])

    assert result.exit_code == 0
    call = next(c for c in scripted_backend.instances[-1].calls if c[0] == "start_send_session")
    assert call[3] == [str(shared)] and call[4] == 2
    assert "> BROADCASTING 1 FILES" in result.output
    assert "> Download started from 192.168.1.44:50122" in result.output


def test_receive_without_transfer_service_fails_to_start(tmp_path):
    result = CliRunner().invoke(cli_main.godrop, ["receive", str(tmp_path)])

    assert result.exit_code == 1
    assert "INITIALIZING RECEIVE..." in result.output
    assert "> STARTUP FAILED: No transfer service is attached" in result.output
