# godrop/core/events.py

"""
Typed push notifications from the transfer service, and the bridge that
delivers them to the controller one at a time, in emission order.

The backend may post from any thread. Delivery always happens on the thread
that owns the bridge: a cross-thread emit of the internal `_pending` signal is
queued by Qt onto the owner's event loop, a same-thread emit drains at once.
"""

import logging
import queue
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Union

from PySide6.QtCore import QObject, Signal, Slot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionStarted:
    peer_address: str


@dataclass(frozen=True)
class FileReceived:
    name: str


@dataclass(frozen=True)
class SessionError:
    message: str


@dataclass(frozen=True)
class SessionStopped:
    pass


@dataclass(frozen=True)
class TransferProgress:
    transferred: int
    total: int
    percent: int


@dataclass(frozen=True)
class ClipboardChanged:
    text: str


SessionEvent = Union[SessionStarted, FileReceived, SessionError, SessionStopped, TransferProgress, ClipboardChanged]


def _payload_field(payload: Any, key: str, default: Any = "") -> Any:
    if isinstance(payload, dict):
        return payload.get(key, default)
    return payload if payload is not None else default


def event_from_wire(name: str, payload: Any = None) -> Optional[SessionEvent]:
    """
    Translates one of the backend's named events into its typed message.
    Unknown names yield None.
    """
    if name == "download_started":
        return SessionStarted(peer_address=str(_payload_field(payload, "ip")))
    if name == "file-received":
        return FileReceived(name=str(_payload_field(payload, "name")))
    if name == "server_error":
        return SessionError(message=str(_payload_field(payload, "message")))
    if name == "server_stopped":
        return SessionStopped()
    if name == "transfer-progress":
        data = payload if isinstance(payload, dict) else {}
        return TransferProgress(
            transferred=int(data.get("transferred", 0)),
            total=int(data.get("total", 0)),
            percent=int(data.get("percent", 0)),
        )
    if name == "clipboard-changed":
        return ClipboardChanged(text=str(_payload_field(payload, "text")))
    logger.debug(f"Ignoring unknown backend event '{name}'.")
    return None


class EventBridge(QObject):
    """A single inbound queue of SessionEvent messages, consumed in order."""
    event_delivered = Signal(object)
    _pending = Signal()

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._queue: "queue.Queue[SessionEvent]" = queue.Queue()
        self._handlers: List[Callable[[SessionEvent], None]] = []
        self._draining = False
        self._pending.connect(self.drain)

    @property
    def is_subscribed(self) -> bool:
        return bool(self._handlers)

    def subscribe(self, handler: Callable[[SessionEvent], None]):
        """Registers a listener. Events posted before the first subscription are not replayed."""
        if handler not in self._handlers:
            self._handlers.append(handler)

    def post(self, event: SessionEvent):
        """Enqueues an event. Safe to call from any thread."""
        if not self._handlers:
            logger.debug(f"No subscriber yet, dropping {type(event).__name__}.")
            return
        self._queue.put_nowait(event)
        self._pending.emit()

    def post_wire(self, name: str, payload: Any = None):
        event = event_from_wire(name, payload)
        if event is not None:
            self.post(event)

    @Slot()
    def drain(self):
        """Delivers every queued event, oldest first."""
        # A handler that posts re-enters here; the outer loop picks the event up,
        # which keeps delivery strictly one at a time.
        if self._draining:
            return
        self._draining = True
        try:
            while True:
                try:
                    event = self._queue.get_nowait()
                except queue.Empty:
                    break
                self._dispatch(event)
        finally:
            self._draining = False

    def _dispatch(self, event: SessionEvent):
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Listener failed on {type(event).__name__}: {e}", exc_info=True)
        self.event_delivered.emit(event)
