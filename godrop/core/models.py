# godrop/core/models.py

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Dict, List

# Sentinel used by the viewer's stats payload for a session without a timeout.
NO_EXPIRY = 0


class SessionMode(Enum):
    """The three mutually exclusive things a session can do."""
    SEND = "send"
    RECEIVE = "receive"
    CLIPBOARD_SYNC = "clipboard"

    @property
    def label(self) -> str:
        return {
            SessionMode.SEND: "SEND",
            SessionMode.RECEIVE: "RECEIVE",
            SessionMode.CLIPBOARD_SYNC: "CLIPBOARD",
        }[self]


class SessionState(Enum):
    IDLE = auto()
    STARTING = auto()
    RUNNING = auto()
    STOPPING = auto()


class Connectivity(Enum):
    """How peers reach the session. Only LOCAL is implemented by the transfer service."""
    LOCAL = "local"
    TUNNEL = "tunnel"

    @property
    def enabled(self) -> bool:
        return self is Connectivity.LOCAL


@dataclass(frozen=True)
class DirectoryEntry:
    """One row of a directory listing. Immutable; a new listing replaces the old one."""
    name: str
    full_path: str
    is_directory: bool
    size: str = ""
    kind: str = "file"


@dataclass
class SessionConfig:
    """Everything a start request needs, for whichever mode is chosen."""
    port: str = "1111"
    password: str = ""
    download_limit: int = 1
    timeout_minutes: int = 10
    save_location: str = ""
    connectivity: Connectivity = Connectivity.LOCAL


@dataclass(frozen=True)
class SessionInfo:
    ip: str
    port: str
    full_url: str
    qr_code_ref: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionInfo":
        return cls(
            ip=str(data.get("ip", "")),
            port=str(data.get("port", "")),
            full_url=str(data.get("fullUrl", "")),
            qr_code_ref=str(data.get("qrCode", "")),
        )


@dataclass(frozen=True)
class ProgressSnapshot:
    transferred_bytes: int
    total_bytes: int
    percent: int

    @property
    def transferred_mb(self) -> float:
        return round(self.transferred_bytes / 1024 / 1024, 1)

    @property
    def total_mb(self) -> float:
        return round(self.total_bytes / 1024 / 1024, 1)


@dataclass(frozen=True)
class ReceivedFileRecord:
    name: str
    timestamp: datetime = field(default_factory=datetime.now)
    status: str = "RECEIVED"


@dataclass(frozen=True)
class ViewerStats:
    """The detached viewer's view of a running send session (GET /api/stats)."""
    file_name: str = ""
    file_size: int = 0
    download_limit: int = 0
    downloads_used: int = 0
    has_code: bool = False
    expiry_epoch_seconds: int = NO_EXPIRY

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ViewerStats":
        return cls(
            file_name=str(data.get("fileName", "")),
            file_size=int(data.get("fileSize", 0) or 0),
            download_limit=int(data.get("downloadLimit", 0) or 0),
            downloads_used=int(data.get("downloadsUsed", 0) or 0),
            has_code=bool(data.get("hasCode", False)),
            expiry_epoch_seconds=int(data.get("expiryEpochSeconds", NO_EXPIRY) or NO_EXPIRY),
        )

    @property
    def downloads_remaining(self) -> int:
        return max(self.download_limit - self.downloads_used, 0)

    @property
    def limit_reached(self) -> bool:
        # A non-positive limit means unlimited downloads.
        return self.download_limit > 0 and self.downloads_used >= self.download_limit

    @property
    def file_size_mb(self) -> str:
        return f"{self.file_size / 1024 / 1024:.2f} MB"


def basename(path: str) -> str:
    """Last segment of a path written with either '/' or '\\' separators."""
    return path.replace("\\", "/").rstrip("/").split("/")[-1]


def format_size(num_bytes: int) -> str:
    """Human-readable size, e.g. 1536 -> '1.5 KB'."""
    unit = 1024
    if num_bytes < unit:
        return f"{num_bytes} B"
    div, exp = unit, 0
    n = num_bytes // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{num_bytes / div:.1f} {'KMGTPE'[exp]}B"


def sort_entries(entries: List[DirectoryEntry]) -> List[DirectoryEntry]:
    """Directories first, then files; case-insensitive by name within each group."""
    return sorted(entries, key=lambda e: (not e.is_directory, e.name.casefold()))
