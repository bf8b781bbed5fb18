# godrop/gui/session_controller.py

import logging
from typing import List, Optional

from PySide6.QtCore import QObject, Signal, Slot

# --- Core Imports ---
from godrop.core.backend import Backend
from godrop.core.clipboard_history import ClipboardHistoryStore
from godrop.core.config_manager import AppSettings
from godrop.core.errors import IoError, StartupError
from godrop.core.events import (
    ClipboardChanged, EventBridge, FileReceived, SessionError, SessionEvent,
    SessionStarted, SessionStopped, TransferProgress,
)
from godrop.core.models import (
    DirectoryEntry, ProgressSnapshot, ReceivedFileRecord, SessionConfig,
    SessionInfo, SessionMode, SessionState,
)
from godrop.core.path_navigator import PathNavigator
from godrop.core.selection import SelectionSet

from .log_model import SessionLogModel
from .polling import PollingTask

logger = logging.getLogger(__name__)


class SessionController(QObject):
    """
    The non-visual brain of the client: owns the session state machine
    (IDLE -> STARTING -> RUNNING -> STOPPING -> IDLE), the directory browser,
    the send selection and the clipboard history, and publishes every change
    through Qt signals for whatever view is attached.
    """
    state_changed = Signal(str, str)
    mode_changed = Signal(str)
    status_updated = Signal(str, bool)
    session_info_changed = Signal(object)
    progress_updated = Signal(object)
    received_files_changed = Signal(list)
    listing_changed = Signal(str, list)
    selection_changed = Signal(list)
    save_location_changed = Signal(str)
    clipboard_text_changed = Signal(str)
    clipboard_history_changed = Signal(list)

    def __init__(self, backend: Backend, event_bridge: Optional[EventBridge] = None,
                 settings: Optional[AppSettings] = None, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.backend = backend
        self.settings = settings if settings else AppSettings()
        self.config: SessionConfig = self.settings.session_config()

        self._state = SessionState.IDLE
        self._mode = SessionMode.SEND
        self._session_info: Optional[SessionInfo] = None
        self._progress: Optional[ProgressSnapshot] = None
        self._received: List[ReceivedFileRecord] = []
        # Set by transfer boundaries; the next progress snapshot starts a new baseline.
        self._transfer_boundary = True
        self.clipboard_text = ""

        # --- Owned Components ---
        self.log_model = SessionLogModel(self)
        self.navigator = PathNavigator(backend, on_changed=self._on_listing_changed,
                                       on_error=self._on_listing_error)
        self.selection = SelectionSet()
        self.history = ClipboardHistoryStore(backend.set_system_clipboard_text,
                                             capacity=self.settings.history_capacity)
        self.clipboard_poll = PollingTask("clipboard-read", self.settings.clipboard_poll_ms,
                                          self._poll_system_clipboard, self)

        # The bridge is subscribed once, for the lifetime of the controller.
        self.event_bridge = event_bridge if event_bridge else EventBridge(self)
        self.event_bridge.subscribe(self._handle_event)

        self._initialize()

    def _initialize(self):
        """Loads the home listing, the default dropzone and the clipboard history."""
        self.navigator.load_home()
        self.config.save_location = self.backend.get_default_save_location()
        try:
            self.history.seed(self.backend.get_clipboard_history())
        except Exception as e:
            logger.warning(f"Clipboard history could not be loaded: {e}")
        self._emit_state()

    # --- Observable State ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def mode(self) -> SessionMode:
        return self._mode

    @property
    def session_info(self) -> Optional[SessionInfo]:
        return self._session_info

    @property
    def progress(self) -> Optional[ProgressSnapshot]:
        return self._progress

    @property
    def received_files(self) -> List[ReceivedFileRecord]:
        return list(self._received)

    @property
    def log_lines(self) -> List[str]:
        return self.log_model.lines()

    def is_idle(self) -> bool:
        return self._state is SessionState.IDLE

    def can_start(self) -> bool:
        """Drives the enabled state of the start button."""
        if not self.is_idle():
            return False
        return not (self._mode is SessionMode.SEND and self.selection.is_empty())

    # --- Mode Selection ---

    @Slot(object)
    def set_mode(self, mode: SessionMode) -> bool:
        if not self.is_idle():
            logger.warning(f"Mode change to {mode.label} refused while a session is {self._state.name}.")
            return False
        if mode is self._mode:
            return True
        self._mode = mode
        logger.info(f"Mode switched to {mode.label}.")
        self._rearm_polling()
        self.mode_changed.emit(mode.value)
        self._emit_state()
        return True

    # --- Session Lifecycle ---

    @Slot()
    def start(self, mode: Optional[SessionMode] = None, config: Optional[SessionConfig] = None) -> bool:
        """
        Starts a session in `mode` (the current mode when omitted).

        Rejected, leaving the controller IDLE, when a session already exists,
        when the requested connectivity is not available, or when a send
        session has nothing selected. Returns True once the session is RUNNING.
        """
        if not self.is_idle():
            logger.warning(f"Start refused: a session is already {self._state.name}.")
            return False
        if mode is not None and not self.set_mode(mode):
            return False
        if config is not None:
            self.config = config

        if not self.config.connectivity.enabled:
            logger.warning(f"Start refused: connectivity '{self.config.connectivity.value}' is not available.")
            self.status_updated.emit(f"{self.config.connectivity.value.upper()} connectivity is not available yet.", True)
            return False
        if self._mode is SessionMode.SEND and self.selection.is_empty():
            logger.warning("Start refused: no files selected for sending.")
            self.status_updated.emit("Select at least one file to send.", True)
            return False

        self._set_state(SessionState.STARTING)
        self.log_model.reset(f"INITIALIZING {self._mode.label}...")
        try:
            info, started_line = self._invoke_start()
        except (StartupError, IoError) as e:
            return self._fail_start(e)
        except Exception as e:
            logger.critical(f"Unexpected error while starting {self._mode.label}: {e}", exc_info=True)
            return self._fail_start(e)

        self._session_info = info
        self._progress = None
        self._transfer_boundary = True
        self._received = []
        if info.port:
            self.config.port = info.port
        self.log_model.add_entry(started_line)
        logger.info(f"{self._mode.label} session running at {info.full_url}")
        self._set_state(SessionState.RUNNING)
        self.session_info_changed.emit(info)
        self.received_files_changed.emit([])
        self.status_updated.emit(f"Live at {info.full_url}", False)
        return True

    def _invoke_start(self):
        """Calls the mode's start primitive exactly once."""
        cfg = self.config
        if self._mode is SessionMode.SEND:
            paths = self.selection.paths()
            info = self.backend.start_send_session(cfg.port, cfg.password, paths,
                                                   cfg.download_limit, cfg.timeout_minutes)
            return info, f"BROADCASTING {len(paths)} FILES"
        if self._mode is SessionMode.RECEIVE:
            info = self.backend.start_receive_session(cfg.port, cfg.save_location)
            return info, f"DROPZONE ACTIVE -> {cfg.save_location}"
        if self._mode is SessionMode.CLIPBOARD_SYNC:
            info = self.backend.start_clipboard_session(cfg.port)
            return info, "CLIPBOARD SYNC ACTIVE"
        raise StartupError(f"Unsupported mode: {self._mode}", self._mode)

    def _fail_start(self, error: Exception) -> bool:
        logger.error(f"{self._mode.label} session failed to start: {error}")
        self.log_model.add_entry(f"STARTUP FAILED: {error}")
        self._set_state(SessionState.IDLE)
        self._rearm_polling()
        self.status_updated.emit(f"Startup failed: {error}", True)
        return False

    @Slot()
    def stop(self) -> bool:
        """Stops the running session. Local state is cleared whatever the backend says."""
        if self._state is not SessionState.RUNNING:
            logger.debug(f"Stop ignored in state {self._state.name}.")
            return False
        self._set_state(SessionState.STOPPING)
        try:
            self.backend.stop_session()
        except Exception as e:
            logger.error(f"Backend failed to stop the session cleanly: {e}", exc_info=True)
        self._end_session("Server stopped.")
        return True

    def _end_session(self, closing_line: Optional[str]):
        """Drops everything scoped to the session and returns to IDLE."""
        self._session_info = None
        self._progress = None
        self._transfer_boundary = True
        self._received = []
        if closing_line:
            self.log_model.add_entry(closing_line)
        self._set_state(SessionState.IDLE)
        self._rearm_polling()
        self.session_info_changed.emit(None)
        self.progress_updated.emit(None)
        self.received_files_changed.emit([])
        self.status_updated.emit("Idle. Ready to start.", False)

    # --- Push Events ---

    def _handle_event(self, event: SessionEvent):
        """Applies one backend notification. Delivered in emission order by the bridge."""
        if isinstance(event, ClipboardChanged):
            # History outlives sessions, so this applies in any state.
            if self.history.record(event.text):
                self.clipboard_history_changed.emit(self.history.entries)
            return

        if self._state is not SessionState.RUNNING:
            logger.debug(f"Dropping {type(event).__name__} received in state {self._state.name}.")
            return

        if isinstance(event, SessionStarted):
            self._transfer_boundary = True
            self.log_model.add_entry(f"Download started from {event.peer_address}")
        elif isinstance(event, FileReceived):
            self._record_received_file(event.name)
        elif isinstance(event, TransferProgress):
            self._apply_progress(event)
        elif isinstance(event, SessionError):
            logger.error(f"Session error reported by backend: {event.message}")
            self.log_model.add_entry(f"ERROR: {event.message}")
            self._end_session(None)
        elif isinstance(event, SessionStopped):
            logger.info("Backend reported the session as stopped.")
            self._end_session("Server stopped.")

    def _record_received_file(self, name: str):
        if any(record.name == name for record in self._received):
            logger.debug(f"Duplicate arrival notice for '{name}' ignored.")
            return
        self._transfer_boundary = True
        self._received.append(ReceivedFileRecord(name=name))
        self.log_model.add_entry(f"RECEIVED: {name}")
        self.received_files_changed.emit(self.received_files)

    def _apply_progress(self, event: TransferProgress):
        percent = max(0, min(event.percent, 100))
        snapshot = ProgressSnapshot(event.transferred, event.total, percent)
        if self._is_same_transfer(snapshot) and snapshot.transferred_bytes < self._progress.transferred_bytes:
            logger.debug("Out-of-order progress snapshot ignored.")
            return
        self._transfer_boundary = False
        self._progress = snapshot
        self.progress_updated.emit(snapshot)

    def _is_same_transfer(self, snapshot: ProgressSnapshot) -> bool:
        """Progress only has to grow within one upload or download, not across them."""
        if self._progress is None or self._transfer_boundary:
            return False
        return snapshot.total_bytes == self._progress.total_bytes

    # --- Browsing & Selection ---

    @Slot(str)
    def load_directory(self, path: str) -> bool:
        return self.navigator.load_directory(path)

    @Slot(object)
    def navigate_into(self, entry: DirectoryEntry) -> bool:
        return self.navigator.navigate_into(entry)

    @Slot()
    def navigate_up(self) -> bool:
        return self.navigator.navigate_up()

    @Slot(object)
    def toggle_selection(self, entry: DirectoryEntry):
        if entry.is_directory:
            return
        self.selection.toggle(entry)
        self._emit_selection()

    @Slot(str)
    def remove_selection(self, path: str):
        self.selection.remove(path)
        self._emit_selection()

    def _on_listing_changed(self, path: str, entries: List[DirectoryEntry]):
        self.listing_changed.emit(path, entries)

    def _on_listing_error(self, message: str):
        self.log_model.add_entry(message)
        self.status_updated.emit(message, True)

    def _emit_selection(self):
        self.selection_changed.emit(self.selection.paths())
        self._emit_state()

    @Slot()
    def choose_save_location(self) -> bool:
        """Asks the user for a dropzone; cancelling keeps the current one."""
        chosen = self.backend.select_directory_interactively()
        if not chosen:
            return False
        self.config.save_location = chosen
        self.save_location_changed.emit(chosen)
        return True

    # --- Clipboard ---

    @Slot(str)
    def set_clipboard_text(self, text: str):
        self.clipboard_text = text
        self.clipboard_text_changed.emit(text)

    @Slot()
    def push_clipboard_to_system(self):
        """Writes the edit buffer to the OS clipboard and records it in the history."""
        self.backend.set_system_clipboard_text(self.clipboard_text)
        if self.history.record(self.clipboard_text):
            self.clipboard_history_changed.emit(self.history.entries)

    @Slot(str)
    def copy_history_entry(self, text: str):
        self.history.copy_to_system(text)
        self.status_updated.emit("Copied to clipboard.", False)

    def _poll_system_clipboard(self):
        text = self.backend.get_system_clipboard_text()
        if text != self.clipboard_text:
            self.set_clipboard_text(text)

    def _rearm_polling(self):
        # Always disarm before arming so two reads never run side by side.
        self.clipboard_poll.cancel()
        if self._mode is SessionMode.CLIPBOARD_SYNC and self.is_idle():
            self.clipboard_poll.arm()

    # --- Helpers ---

    def _set_state(self, state: SessionState):
        if state is not SessionState.IDLE:
            self.clipboard_poll.cancel()
        self._state = state
        logger.debug(f"Session state -> {state.name}")
        self._emit_state()

    def _emit_state(self):
        self.state_changed.emit(self._state.name, self._mode.value)
