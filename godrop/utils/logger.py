# godrop/utils/logger.py

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_FILE_NAME = 'godrop.log'
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 5


class LoggerManager:
    """
    Configures the application-wide logging system.

    Two handlers are attached to the root logger:
    1. Rich console handler on stderr: INFO and above, so log output never
       mixes with the tables and session lines the CLI prints on stdout.
    2. Rotating file handler: DEBUG and above with module and line number,
       one godrop.log per log directory.
    """

    def __init__(self, log_dir: Optional[Path] = None, log_level=logging.DEBUG):
        base_dir = Path(log_dir) if log_dir else Path(__file__).resolve().parents[2]
        self.log_file_path = base_dir / LOG_FILE_NAME
        self.log_level = log_level
        self.root_logger = logging.getLogger()

    def is_configured(self) -> bool:
        return any(isinstance(h, logging.handlers.RotatingFileHandler) for h in self.root_logger.handlers)

    def setup(self) -> bool:
        """Returns False when godrop's handlers are already attached."""
        if self.is_configured():
            return False

        self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        self.root_logger.setLevel(self.log_level)
        self.root_logger.addHandler(self._console_handler())
        self.root_logger.addHandler(self._file_handler())

        logging.getLogger(__name__).debug(f"Logging configured. Detailed log: {self.log_file_path}")
        return True

    def _console_handler(self) -> RichHandler:
        handler = RichHandler(console=Console(stderr=True), show_path=False, log_time_format='%H:%M:%S')
        handler.setLevel(logging.INFO)
        return handler

    def _file_handler(self) -> logging.handlers.RotatingFileHandler:
        handler = logging.handlers.RotatingFileHandler(
            self.log_file_path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT, encoding='utf-8'
        )
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - [%(levelname)s] - %(filename)s:%(lineno)d - %(message)s'
        ))
        return handler


def setup_logging(log_dir: Optional[Path] = None) -> bool:
    """Initializes application-wide logging. Safe to call more than once."""
    return LoggerManager(log_dir).setup()
