# tests/test_gui.py

import pytest

from conftest import dir_entry, file_entry
from godrop.core.errors import StartupError, TransportOffline, VerificationError
from godrop.core.events import (
    ClipboardChanged, EventBridge, FileReceived, SessionError, SessionStarted,
    SessionStopped, TransferProgress,
)
from godrop.core.models import Connectivity, SessionConfig, SessionMode, SessionState, ViewerStats
from godrop.gui.security_gate import SecurityGate, ViewerSession, format_countdown
from godrop.gui.session_controller import SessionController


@pytest.fixture
def bridge(qapp):
    return EventBridge()


@pytest.fixture
def controller(qapp, fake_backend, bridge):
    return SessionController(fake_backend, bridge)


def start_receive(controller, save_location="/tmp/drop"):
    config = SessionConfig(port="1111", save_location=save_location)
    return controller.start(SessionMode.RECEIVE, config)


# --- Initial State ---

def test_controller_starts_idle_with_home_listing(controller, fake_backend):
    assert controller.state is SessionState.IDLE
    assert controller.navigator.current_path == "/home/user"
    assert controller.config.save_location == "/home/user/Downloads"
    assert controller.session_info is None and controller.progress is None


def test_history_is_seeded_from_backend(qapp, fake_backend, bridge):
    fake_backend.history = ["newest", "older"]

    controller = SessionController(fake_backend, bridge)

    assert controller.history.entries == ["newest", "older"]


# --- Start / Stop ---

def test_send_with_empty_selection_never_leaves_idle(controller, fake_backend):
    states = []
    controller.state_changed.connect(lambda state, mode: states.append(state))

    assert controller.start(SessionMode.SEND, SessionConfig()) is False

    assert controller.state is SessionState.IDLE
    assert "STARTING" not in states
    assert fake_backend.count("start_send_session") == 0
    assert not controller.can_start()


def test_disabled_connectivity_is_rejected(controller, fake_backend):
    config = SessionConfig(connectivity=Connectivity.TUNNEL)

    assert controller.start(SessionMode.CLIPBOARD_SYNC, config) is False

    assert controller.state is SessionState.IDLE
    assert fake_backend.count("start_clipboard_session") == 0


def test_send_session_starts_with_selected_paths(controller, fake_backend):
    controller.toggle_selection(file_entry("A.txt"))
    controller.toggle_selection(dir_entry("alpha"))
    assert controller.can_start()

    config = SessionConfig(port="1111", password="pw", download_limit=3, timeout_minutes=0)
    assert controller.start(SessionMode.SEND, config) is True

    assert controller.state is SessionState.RUNNING
    assert controller.session_info == fake_backend.info
    assert fake_backend.calls[-1] == ("start_send_session", "1111", "pw", ["/home/user/A.txt"], 3, 0)
    assert controller.log_lines == ["INITIALIZING SEND...", "> BROADCASTING 1 FILES"]


def test_start_is_rejected_while_running(controller, fake_backend):
    start_receive(controller)

    assert controller.start(SessionMode.CLIPBOARD_SYNC, SessionConfig()) is False

    assert controller.mode is SessionMode.RECEIVE
    assert fake_backend.count("start_clipboard_session") == 0


def test_startup_failure_returns_to_idle_with_log(controller, fake_backend):
    fake_backend.start_error = StartupError("port 1111 already in use")
    controller.set_mode(SessionMode.RECEIVE)
    states = []
    controller.state_changed.connect(lambda state, mode: states.append(state))

    assert start_receive(controller) is False

    assert controller.state is SessionState.IDLE
    assert states == ["STARTING", "IDLE"]
    assert controller.session_info is None
    assert controller.log_lines[-1] == "> STARTUP FAILED: port 1111 already in use"
    assert fake_backend.count("start_receive_session") == 1


def test_stop_clears_session_even_when_backend_fails(controller, fake_backend, bridge):
    start_receive(controller)
    bridge.post(TransferProgress(10, 100, 10))
    bridge.post(FileReceived("a.txt"))
    fake_backend.stop_error = RuntimeError("already gone")

    assert controller.stop() is True

    assert controller.state is SessionState.IDLE
    assert controller.session_info is None
    assert controller.progress is None
    assert controller.received_files == []
    assert controller.log_lines[-1] == "> Server stopped."


def test_stop_while_idle_does_nothing(controller, fake_backend):
    assert controller.stop() is False
    assert fake_backend.count("stop_session") == 0


def test_log_is_reset_on_each_start(controller):
    start_receive(controller)
    controller.stop()

    start_receive(controller, "/tmp/other")

    assert controller.log_lines == ["INITIALIZING RECEIVE...", "> DROPZONE ACTIVE -> /tmp/other"]


# --- Push Events ---

def test_duplicate_file_received_is_recorded_once(controller, bridge):
    assert start_receive(controller)

    bridge.post(FileReceived("a.txt"))
    bridge.post(FileReceived("a.txt"))

    assert [r.name for r in controller.received_files] == ["a.txt"]
    assert sum(1 for line in controller.log_lines if "RECEIVED" in line) == 1
    assert controller.log_lines[-1] == "> RECEIVED: a.txt"


def test_progress_updates_in_order_and_never_goes_back(controller, bridge):
    start_receive(controller)

    bridge.post(TransferProgress(10, 100, 10))
    bridge.post(TransferProgress(60, 100, 60))
    bridge.post(TransferProgress(30, 100, 30))

    assert controller.progress.transferred_bytes == 60
    assert controller.progress.percent == 60


def test_progress_restarts_for_the_next_file(controller, bridge):
    start_receive(controller)

    bridge.post(TransferProgress(1000, 1000, 100))
    bridge.post(FileReceived("big.bin"))
    bridge.post(TransferProgress(100, 500, 20))

    assert controller.progress.total_bytes == 500
    assert controller.progress.transferred_bytes == 100


def test_progress_of_a_smaller_second_download_is_shown(controller, fake_backend, bridge):
    controller.toggle_selection(file_entry("A.txt"))
    controller.start(SessionMode.SEND)

    bridge.post(SessionStarted("192.168.1.44:50122"))
    bridge.post(TransferProgress(800, 800, 100))
    bridge.post(SessionStarted("192.168.1.45:50123"))
    bridge.post(TransferProgress(200, 800, 25))
    bridge.post(TransferProgress(100, 800, 12))

    assert controller.progress.transferred_bytes == 200
    assert controller.progress.percent == 25


def test_peer_download_is_logged(controller, bridge):
    start_receive(controller)

    bridge.post(SessionStarted("192.168.1.44:50122"))

    assert controller.log_lines[-1] == "> Download started from 192.168.1.44:50122"


@pytest.mark.parametrize("event", [SessionStopped(), SessionError("Timeout Reached. Server Stopping.")])
def test_remote_stop_or_error_cleans_up_without_local_stop(controller, fake_backend, bridge, event):
    start_receive(controller)
    bridge.post(TransferProgress(10, 100, 10))

    bridge.post(event)

    assert controller.state is SessionState.IDLE
    assert controller.session_info is None and controller.progress is None
    assert fake_backend.count("stop_session") == 0


def test_session_error_is_logged(controller, bridge):
    start_receive(controller)

    bridge.post(SessionError("bind failed"))

    assert controller.log_lines[-1] == "> ERROR: bind failed"


def test_events_while_idle_are_ignored(controller, bridge):
    bridge.post(FileReceived("late.txt"))
    bridge.post(TransferProgress(1, 2, 50))

    assert controller.received_files == []
    assert controller.progress is None


def test_clipboard_change_uses_head_deduplication(controller, bridge):
    bridge.post(ClipboardChanged("x"))
    bridge.post(ClipboardChanged("x"))
    bridge.post(ClipboardChanged("y"))

    assert controller.history.entries == ["y", "x"]


# --- Mode & Polling ---

def test_clipboard_poll_runs_only_in_idle_clipboard_mode(controller, fake_backend):
    assert not controller.clipboard_poll.is_active

    controller.set_mode(SessionMode.CLIPBOARD_SYNC)
    assert controller.clipboard_poll.is_active

    fake_backend.clipboard = "from the OS"
    controller.clipboard_poll.tick()
    assert controller.clipboard_text == "from the OS"

    controller.start(SessionMode.CLIPBOARD_SYNC, SessionConfig())
    assert not controller.clipboard_poll.is_active

    controller.stop()
    assert controller.clipboard_poll.is_active

    controller.set_mode(SessionMode.RECEIVE)
    assert not controller.clipboard_poll.is_active


def test_failed_clipboard_start_rearms_polling(controller, fake_backend):
    fake_backend.start_error = StartupError("bind failed")

    controller.start(SessionMode.CLIPBOARD_SYNC, SessionConfig())

    assert controller.clipboard_poll.is_active


def test_mode_cannot_change_while_running(controller):
    start_receive(controller)

    assert controller.set_mode(SessionMode.SEND) is False
    assert controller.mode is SessionMode.RECEIVE


# --- Browsing, Dropzone & Clipboard Editing ---

def test_listing_error_is_logged_and_listing_kept(controller):
    assert controller.load_directory("/nope") is False

    assert controller.navigator.current_path == "/home/user"
    assert controller.log_lines[-1].startswith("> Error loading dir:")


def test_navigate_into_directory_and_up(controller):
    controller.navigate_into(dir_entry("alpha"))
    assert controller.navigator.current_path == "/home/user/alpha"

    controller.navigate_up()
    assert controller.navigator.current_path == "/home/user"


def test_choose_save_location_keeps_value_on_cancel(controller, fake_backend):
    assert controller.choose_save_location() is False
    assert controller.config.save_location == "/home/user/Downloads"

    fake_backend.chosen_directory = "/tmp/drop"
    assert controller.choose_save_location() is True
    assert controller.config.save_location == "/tmp/drop"


def test_push_clipboard_writes_system_and_records_history(controller, fake_backend):
    controller.set_clipboard_text("hello")

    controller.push_clipboard_to_system()
    controller.push_clipboard_to_system()

    assert fake_backend.clipboard == "hello"
    assert controller.history.entries == ["hello"]


def test_copy_history_entry_is_pass_through(controller, fake_backend):
    controller.history.record("kept")

    controller.copy_history_entry("kept")

    assert fake_backend.clipboard == "kept"
    assert controller.history.entries == ["kept"]


# --- Security Gate ---

class FakeViewerClient:
    download_url = "http://host:1111/api/download"

    def __init__(self, stats, code="right"):
        self.stats = stats
        self.code = code
        self.offline = False

    def fetch_stats(self):
        if self.offline:
            raise TransportOffline("System offline")
        return self.stats

    def verify(self, code):
        if code != self.code:
            raise VerificationError("Invalid code")
        return True


class FakeClock:
    def __init__(self, now=1_700_000_000):
        self.now = now

    def __call__(self):
        return self.now


def make_gate(qapp, stats, clock=None):
    client = FakeViewerClient(stats)
    gate = SecurityGate(client, ViewerSession(), clock=clock or FakeClock())
    gate.refresh_status()
    return gate, client


def test_countdown_reaches_expired_state(qapp):
    clock = FakeClock()
    gate, _ = make_gate(qapp, ViewerStats(file_name="a.bin", expiry_epoch_seconds=clock.now + 5), clock)
    assert gate.display.countdown == "00:00:05"
    assert gate.display.action_enabled

    for _ in range(5):
        clock.now += 1
        gate.tick_countdown()

    assert gate.display.expired
    assert gate.display.countdown == "SHUTTING DOWN..."
    assert gate.display.action_label == "TIMEOUT"
    assert not gate.display.action_enabled
    assert gate.request_download() is None


def test_no_expiry_is_always_unbounded(qapp):
    clock = FakeClock()
    gate, _ = make_gate(qapp, ViewerStats(file_name="a.bin", expiry_epoch_seconds=0), clock)

    clock.now += 10 ** 6
    gate.tick_countdown()

    assert gate.display.unbounded
    assert gate.display.countdown == "INFINITY"
    assert gate.display.action_enabled


def test_wrong_code_clears_input_and_keeps_download_locked(qapp):
    gate, _ = make_gate(qapp, ViewerStats(file_name="a.bin", has_code=True))
    assert gate.display.prompt_visible and not gate.display.action_enabled

    gate.set_code_input("wrong")
    assert gate.verify() is False

    assert gate.display.code_input == ""
    assert gate.display.prompt_placeholder == "INVALID_CODE_TRY_AGAIN..."
    assert gate.display.prompt_visible
    assert not gate.display.action_enabled


def test_right_code_unlocks_for_rest_of_session(qapp):
    gate, _ = make_gate(qapp, ViewerStats(file_name="a.bin", has_code=True))

    assert gate.verify("right") is True
    gate.refresh_status()
    gate.tick_countdown()

    assert gate.session.unlocked
    assert not gate.display.prompt_visible
    assert gate.display.action_enabled
    assert gate.request_download() == "http://host:1111/api/download"


def test_reload_forgets_the_unlock(qapp):
    gate, _ = make_gate(qapp, ViewerStats(file_name="a.bin", has_code=True))
    gate.verify("right")

    gate.reload()

    assert gate.display.prompt_visible
    assert not gate.display.action_enabled


def test_offline_poll_blanks_countdown_and_recovers(qapp):
    clock = FakeClock()
    gate, client = make_gate(qapp, ViewerStats(file_name="a.bin", expiry_epoch_seconds=clock.now + 120), clock)
    gate.start()

    client.offline = True
    gate.refresh_status()

    assert gate.display.offline and gate.display.status == "SYSTEM_OFFLINE"
    assert gate.display.countdown == "00:00:00"
    assert gate.status_poll.is_active and gate.countdown_tick.is_active

    client.offline = False
    gate.refresh_status()

    assert not gate.display.offline
    assert gate.display.countdown == "00:02:00"
    gate.stop()


def test_used_up_downloads_expire_the_link(qapp):
    gate, _ = make_gate(qapp, ViewerStats(file_name="a.bin", download_limit=1, downloads_used=1))

    assert gate.display.status == "LINK_EXPIRED"
    assert gate.display.action_label == "LINK_EXPIRED"
    assert not gate.display.action_enabled


def test_format_countdown():
    assert format_countdown(3725) == "01:02:05"
    assert format_countdown(0) == "SHUTTING DOWN..."
