# godrop/gui/polling.py

import logging
from typing import Callable, Optional

from PySide6.QtCore import QObject, QTimer, Slot

logger = logging.getLogger(__name__)


class PollingTask(QObject):
    """
    A fixed-period task with an explicit handle: `arm()` starts it, `cancel()`
    stops it. A timeout that was already queued when the task was cancelled
    is discarded, so a cancelled task never runs its callback again.
    """

    def __init__(self, name: str, interval_ms: int, callback: Callable[[], None],
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        self.name = name
        self.callback = callback
        self._active = False
        self._timer = QTimer(self)
        self._timer.setInterval(interval_ms)
        self._timer.timeout.connect(self._on_timeout)

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def interval_ms(self) -> int:
        return self._timer.interval()

    def arm(self, run_now: bool = False):
        """Starts the task if it is not running. `run_now` fires one tick immediately."""
        if self._active:
            return
        self._active = True
        self._timer.start()
        logger.debug(f"Polling task '{self.name}' armed (every {self.interval_ms} ms).")
        if run_now:
            self.tick()

    def cancel(self):
        if not self._active:
            return
        self._active = False
        self._timer.stop()
        logger.debug(f"Polling task '{self.name}' cancelled.")

    def tick(self):
        """Runs the callback once, if the task is armed."""
        if self._active:
            self.callback()

    @Slot()
    def _on_timeout(self):
        self.tick()
