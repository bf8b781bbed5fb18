# godrop/gui/security_gate.py

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from PySide6.QtCore import QObject, Signal, Slot

from godrop.core.config_manager import AppSettings
from godrop.core.errors import TransportOffline, VerificationError
from godrop.core.models import NO_EXPIRY, ViewerStats
from godrop.core.viewer_client import ViewerClient

from .polling import PollingTask

logger = logging.getLogger(__name__)

# --- Display Labels ---
STATUS_ONLINE = "ONLINE"
STATUS_OFFLINE = "SYSTEM_OFFLINE"
STATUS_LINK_EXPIRED = "LINK_EXPIRED"
ACTION_DOWNLOAD = "DOWNLOAD"
ACTION_TIMEOUT = "TIMEOUT"
COUNTDOWN_UNBOUNDED = "INFINITY"
COUNTDOWN_EXPIRED = "SHUTTING DOWN..."
COUNTDOWN_ZERO = "00:00:00"
PROMPT_DEFAULT = "ENTER_CODE..."
PROMPT_RETRY = "INVALID_CODE_TRY_AGAIN..."


def format_countdown(seconds: int) -> str:
    """Formats a remaining duration as HH:MM:SS; zero or less is the expired label."""
    if seconds <= 0:
        return COUNTDOWN_EXPIRED
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


@dataclass
class ViewerSession:
    """
    Per-browsing-session context of the detached viewer. The unlock flag lives
    here and nowhere else; it is never persisted and a reload resets it.
    """
    unlocked: bool = False

    def reset(self):
        self.unlocked = False


@dataclass(frozen=True)
class GateDisplay:
    status: str
    countdown: str
    action_enabled: bool
    action_label: str
    prompt_visible: bool
    prompt_placeholder: str
    code_input: str
    offline: bool
    expired: bool
    unbounded: bool


class SecurityGate(QObject):
    """
    Gates the viewer's download action behind the optional one-time code, and
    keeps the session status and countdown fresh with two independent tasks:
    a status poll against /api/stats and a shorter local countdown tick.
    """
    display_changed = Signal(object)

    def __init__(self, client: ViewerClient, session: ViewerSession,
                 settings: Optional[AppSettings] = None,
                 clock: Callable[[], float] = time.time,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        settings = settings if settings else AppSettings()
        self.client = client
        self.session = session
        self.clock = clock

        self.stats: Optional[ViewerStats] = None
        self.offline = False
        self.code_input = ""
        self.prompt_placeholder = PROMPT_DEFAULT
        self._display: Optional[GateDisplay] = None

        self.status_poll = PollingTask("viewer-stats", settings.stats_poll_ms, self.refresh_status, self)
        self.countdown_tick = PollingTask("viewer-countdown", settings.countdown_tick_ms, self.tick_countdown, self)

    @property
    def display(self) -> GateDisplay:
        if self._display is None:
            self._display = self._compute_display()
        return self._display

    def start(self):
        """Arms both periodic tasks and fetches the status once right away."""
        self.status_poll.arm(run_now=True)
        self.countdown_tick.arm()

    def stop(self):
        self.status_poll.cancel()
        self.countdown_tick.cancel()

    def reload(self):
        """Starts over as a fresh browsing session: the unlock is forgotten."""
        self.session.reset()
        self.stats = None
        self.code_input = ""
        self.prompt_placeholder = PROMPT_DEFAULT
        self.refresh_status()

    # --- Periodic Tasks ---

    @Slot()
    def refresh_status(self):
        try:
            self.stats = self.client.fetch_stats()
        except TransportOffline as e:
            if not self.offline:
                logger.warning(f"Viewer lost contact with the session: {e}")
            self.offline = True
        else:
            if self.offline:
                logger.info("Viewer reconnected to the session.")
            self.offline = False
        self._render()

    @Slot()
    def tick_countdown(self):
        self._render()

    # --- Code Verification ---

    @Slot(str)
    def set_code_input(self, text: str):
        self.code_input = text
        self._render()

    @Slot()
    def verify(self, code: Optional[str] = None) -> bool:
        """
        Submits the code once. Success unlocks the action for the rest of the
        browsing session; a refusal clears the input and asks again.
        """
        code = self.code_input if code is None else code
        try:
            self.client.verify(code)
        except VerificationError:
            logger.debug("Viewer code refused.")
            self.code_input = ""
            self.prompt_placeholder = PROMPT_RETRY
            self._render()
            return False
        except TransportOffline as e:
            logger.warning(f"Could not reach the session to verify the code: {e}")
            self.offline = True
            self._render()
            return False

        self.session.unlocked = True
        self.code_input = ""
        self.prompt_placeholder = PROMPT_DEFAULT
        self._render()
        return True

    def request_download(self) -> Optional[str]:
        """Returns the download URL when the action is enabled, None otherwise."""
        if not self.display.action_enabled:
            return None
        return self.client.download_url

    # --- Rendering ---

    def _render(self):
        self._display = self._compute_display()
        self.display_changed.emit(self._display)

    def _compute_display(self) -> GateDisplay:
        stats = self.stats
        status = STATUS_ONLINE
        action_label = ACTION_DOWNLOAD
        prompt_visible = False
        action_enabled = False
        expired = False
        unbounded = False

        if stats is not None:
            prompt_visible = stats.has_code and not self.session.unlocked
            action_enabled = not prompt_visible
            if stats.limit_reached:
                action_enabled = False
                action_label = STATUS_LINK_EXPIRED
                status = STATUS_LINK_EXPIRED

        if self.offline:
            status = STATUS_OFFLINE
            countdown = COUNTDOWN_ZERO
            action_enabled = False
        elif stats is None or stats.expiry_epoch_seconds == NO_EXPIRY:
            countdown = COUNTDOWN_UNBOUNDED
            unbounded = True
        else:
            remaining = stats.expiry_epoch_seconds - int(self.clock())
            countdown = format_countdown(remaining)
            if remaining <= 0:
                expired = True
                action_enabled = False
                action_label = ACTION_TIMEOUT

        return GateDisplay(
            status=status,
            countdown=countdown,
            action_enabled=action_enabled,
            action_label=action_label,
            prompt_visible=prompt_visible,
            prompt_placeholder=self.prompt_placeholder,
            code_input=self.code_input,
            offline=self.offline,
            expired=expired,
            unbounded=unbounded,
        )
