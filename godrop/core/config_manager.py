# godrop/core/config_manager.py

import json
import logging
import shutil
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from .models import SessionConfig

logger = logging.getLogger(__name__)

SETTINGS_FILE_PATH = Path(__file__).resolve().parents[2] / 'config' / 'settings.json'


@dataclass
class AppSettings:
    """User-tunable defaults, persisted as JSON."""
    port: str = "1111"
    password: str = ""
    download_limit: int = 1
    timeout_minutes: int = 10
    clipboard_poll_ms: int = 2000
    stats_poll_ms: int = 5000
    countdown_tick_ms: int = 1000
    history_capacity: int = 50

    def session_config(self, save_location: str = "") -> SessionConfig:
        return SessionConfig(
            port=self.port,
            password=self.password,
            download_limit=self.download_limit,
            timeout_minutes=self.timeout_minutes,
            save_location=save_location,
        )


def load_settings(path: Path = SETTINGS_FILE_PATH) -> AppSettings:
    """
    Reads the settings file. Missing or unreadable files fall back to defaults;
    unknown keys are ignored so older clients can read newer files.
    """
    if not path.exists():
        logger.info(f"No settings file at '{path}', using defaults.")
        return AppSettings()
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (IOError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read settings from '{path}', using defaults: {e}")
        return AppSettings()

    known = {f.name for f in fields(AppSettings)}
    values = {k: v for k, v in data.items() if k in known}
    try:
        return AppSettings(**values)
    except TypeError as e:
        logger.warning(f"Malformed settings in '{path}', using defaults: {e}")
        return AppSettings()


def save_settings(settings: AppSettings, path: Path = SETTINGS_FILE_PATH) -> bool:
    """
    Writes the settings file, keeping a `.json.bak` copy of the previous version.
    If the write fails the backup is restored.
    """
    backup_path = path.with_suffix(".json.bak")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            shutil.copy(path, backup_path)
            logger.debug(f"Settings backup created at: {backup_path}")
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(asdict(settings), f, indent=2)
        logger.info(f"Settings saved to: {path}")
        return True
    except (IOError, TypeError) as e:
        logger.error(f"Failed to save settings: {e}", exc_info=True)
        if backup_path.exists():
            shutil.copy(backup_path, path)
            logger.warning("Restored settings from backup after a failed save.")
        return False
