"""Download Neo4j server archives to private temporary files."""
from __future__ import annotations

import os
import shutil
import tempfile
import urllib.error
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from .. import net
from ..platform import PlatformAdapter

CHUNK_SIZE = 1024 * 1024


class DownloadError(RuntimeError):
    """Raised when an archive cannot be retrieved."""


class ArchiveUnavailable(DownloadError):
    """Raised when the availability check does not answer with a 2xx status."""


@dataclass(slots=True)
class Downloader:
    """Fetch the distribution archive for a resolved version."""

    base_url: str
    platform: PlatformAdapter
    timeout: float = 30.0

    def download_url(self, version: str) -> str:
        """Return the archive URL for *version* on the configured platform."""
        return f"{self.base_url.rstrip('/')}/neo4j-{version}-{self.platform.archive_suffix}"

    def download(self, version: str) -> Path:
        """Check availability, then stream the archive to a temporary file."""
        url = self.download_url(version)
        status = self._head_status(url)
        if not 200 <= status < 300:
            raise ArchiveUnavailable(f"{version} is not available to download")

        fd, name = tempfile.mkstemp(
            prefix="neo4j-download-",
            suffix=f".{self.platform.archive_format}",
        )
        archive_path = Path(name)
        try:
            with os.fdopen(fd, "wb") as handle:
                self._stream_to(url, handle)
        except BaseException:
            archive_path.unlink(missing_ok=True)
            raise
        return archive_path

    def _head_status(self, url: str) -> int:
        """Return the status code of a HEAD request against *url*."""
        request = net.build_request(url, method="HEAD")
        try:
            with net.open_url(request, timeout=self.timeout) as response:
                return int(response.status)
        except urllib.error.HTTPError as exc:
            return int(exc.code)
        except (urllib.error.URLError, OSError) as exc:
            raise DownloadError(f"Unable to reach {url}: {exc}") from exc

    def _stream_to(self, url: str, handle: BinaryIO) -> None:
        """Copy the response body for *url* into the binary *handle*."""
        request = net.build_request(url)
        try:
            with net.open_url(request, timeout=self.timeout) as response:
                shutil.copyfileobj(response, handle, CHUNK_SIZE)
        except urllib.error.HTTPError as exc:
            raise DownloadError(f"Download of {url} failed with HTTP {exc.code}.") from exc
        except (urllib.error.URLError, OSError) as exc:
            raise DownloadError(f"Download of {url} failed: {exc}") from exc


__all__ = ["ArchiveUnavailable", "DownloadError", "Downloader"]
