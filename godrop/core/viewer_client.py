# godrop/core/viewer_client.py

import logging
import re
from pathlib import Path
from typing import Optional
from urllib.parse import unquote

import requests
from tqdm import tqdm

from .errors import TransportOffline, VerificationError
from .models import ViewerStats

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 5
DOWNLOAD_CHUNK_SIZE = 64 * 1024


class ViewerClient:
    """
    HTTP client for the detached viewer's surface of a send session:
    GET /api/stats, POST /api/verify and GET /api/download.
    """

    def __init__(self, base_url: str, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.http = session if session else requests.Session()

    @property
    def download_url(self) -> str:
        return f"{self.base_url}/api/download"

    def fetch_stats(self) -> ViewerStats:
        """
        Raises:
            TransportOffline: when the session cannot be reached or answers with an error.
        """
        try:
            r = self.http.get(f"{self.base_url}/api/stats", timeout=REQUEST_TIMEOUT_SECONDS)
            r.raise_for_status()
            return ViewerStats.from_dict(r.json())
        except (requests.RequestException, ValueError) as e:
            raise TransportOffline(f"System offline: {e}") from e

    def verify(self, code: str) -> bool:
        """
        Submits the one-time code. Returns True when accepted.

        Raises:
            VerificationError: the code was refused.
            TransportOffline: the session could not be reached.
        """
        try:
            r = self.http.post(f"{self.base_url}/api/verify", json={"code": code},
                               timeout=REQUEST_TIMEOUT_SECONDS)
            r.raise_for_status()
            result = r.json()
        except (requests.RequestException, ValueError) as e:
            raise TransportOffline(f"Verification request failed: {e}") from e
        if not isinstance(result, dict):
            raise TransportOffline(f"Unexpected verification reply: {result!r}")
        if not result.get("success"):
            raise VerificationError("Invalid code")
        return True

    def download(self, dest_dir: Path, show_progress: bool = True) -> Path:
        """
        Streams the shared file into `dest_dir` and returns the written path.

        The body goes to a `.part` file that only takes the real name once the
        stream has completed; an interrupted download leaves nothing behind.
        """
        try:
            with self.http.get(self.download_url, stream=True, timeout=REQUEST_TIMEOUT_SECONDS) as r:
                r.raise_for_status()
                file_name = _filename_from_disposition(r.headers.get("Content-Disposition", "")) or "download"
                total = int(r.headers.get("Content-Length", 0) or 0)
                dest_dir.mkdir(parents=True, exist_ok=True)
                target = dest_dir / Path(file_name).name
                part = target.with_name(f"{target.name}.part")
                logger.info(f"Downloading '{file_name}' to '{target}'")
                try:
                    with open(part, 'wb') as f, tqdm(total=total or None, unit='B', unit_scale=True,
                                                     desc=file_name, disable=not show_progress) as bar:
                        for chunk in r.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                            f.write(chunk)
                            bar.update(len(chunk))
                    part.replace(target)
                finally:
                    part.unlink(missing_ok=True)
                return target
        except requests.RequestException as e:
            logger.warning(f"Download from {self.download_url} failed: {e}")
            raise TransportOffline(f"Download failed: {e}") from e


def _filename_from_disposition(header: str) -> str:
    encoded = re.search(r"filename\*=UTF-8''([^;]+)", header)
    if encoded:
        return unquote(encoded.group(1).strip())
    plain = re.search(r'filename="?([^";]+)"?', header)
    return plain.group(1).strip() if plain else ""
