"""
Network download with progress reporting.

This module provides the single-shot downloader used to fetch tool archives:
- Destination file name resolution from the URL or an explicit override
- Streaming HTTP GET with bounded chunks
- Progress reporting (bytes, percentage, speed, ETA)

There is deliberately no resume, retry or checksum step; a corrupt archive is
only detected when extraction fails.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import unquote, urlsplit

import requests
from requests.exceptions import RequestException

from cmkboot.core.exceptions import FilesystemError, InputError, NetworkError

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "download.bin"
CHUNK_SIZE = 8192


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int  # 0 when the server sent no Content-Length
    percentage: float
    speed_bps: float  # bytes per second
    eta_seconds: float  # estimated time remaining

    @property
    def is_determinate(self) -> bool:
        return self.total_bytes > 0

    def __str__(self) -> str:
        return format_progress(self)


@dataclass
class DownloadResult:
    """Outcome of a completed download."""

    local_path: Path
    byte_count: int


def resolve_filename(url: str, override: Optional[str] = None) -> str:
    """
    Determine the local file name for a download.

    The explicit override wins; otherwise the last non-empty path segment of
    the URL is used; otherwise DEFAULT_FILENAME.

    Args:
        url: Download URL
        override: Explicit file name

    Returns:
        Non-empty file name

    Example:
        >>> resolve_filename("https://example.com/a/b/name-1.2.3.zip")
        'name-1.2.3.zip'
        >>> resolve_filename("https://example.com")
        'download.bin'
    """
    if override:
        return override

    try:
        path = urlsplit(url).path
    except ValueError:
        logger.debug(f"Could not parse URL {url!r}, using {DEFAULT_FILENAME}")
        return DEFAULT_FILENAME

    segments = [unquote(segment) for segment in path.split("/") if segment]
    if not segments:
        return DEFAULT_FILENAME

    name = segments[-1]
    # Decoded separators would place the file outside the download directory
    if name in (".", "..") or "/" in name or "\\" in name:
        logger.debug(f"Unsafe file name {name!r} in {url}, using {DEFAULT_FILENAME}")
        return DEFAULT_FILENAME
    return name


def fetch(
    url: str,
    download_dir: Path,
    filename: Optional[str] = None,
    progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    timeout: int = 30,
    chunk_size: int = CHUNK_SIZE,
) -> DownloadResult:
    """
    Download a URL into a directory.

    Args:
        url: URL to download from
        download_dir: Directory to place the file in (created if missing)
        filename: Optional file name override
        progress_callback: Optional callback for progress updates
        timeout: Request timeout in seconds
        chunk_size: Maximum bytes read per chunk

    Returns:
        DownloadResult with the local path and number of bytes written

    Raises:
        InputError: If URL is empty
        NetworkError: If the request fails or the server answers non-2xx
        FilesystemError: If the destination cannot be written

    Example:
        >>> def on_progress(progress):
        ...     print(progress)
        >>> fetch("https://example.com/tool.zip", Path("downloads"), progress_callback=on_progress)
    """
    if not url:
        raise InputError("URL cannot be empty")

    download_dir = Path(download_dir)
    try:
        download_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Failed to create download directory '{download_dir}': {e}") from e

    destination = download_dir / resolve_filename(url, filename)

    logger.info(f"Downloading {url}")

    try:
        response = requests.get(url, stream=True, timeout=timeout, allow_redirects=True)
    except RequestException as e:
        raise NetworkError(f"Request to {url} failed: {e}") from e

    with response:
        if not response.ok:
            raise NetworkError(
                f"Download of {url} failed: HTTP {response.status_code} {response.reason}"
            )

        content_length = response.headers.get("content-length")
        total_size = int(content_length) if content_length and content_length.isdigit() else 0

        try:
            downloaded = _stream_to_file(
                response, destination, total_size, chunk_size, progress_callback
            )
        except RequestException as e:
            destination.unlink(missing_ok=True)
            raise NetworkError(f"Transfer from {url} failed: {e}") from e
        except OSError as e:
            destination.unlink(missing_ok=True)
            raise FilesystemError(f"Failed to write '{destination}': {e}") from e

    logger.info(f"Download complete: {destination} ({downloaded} bytes)")
    return DownloadResult(local_path=destination, byte_count=downloaded)


def _stream_to_file(
    response: requests.Response,
    destination: Path,
    total_size: int,
    chunk_size: int,
    progress_callback: Optional[Callable[[DownloadProgress], None]],
) -> int:
    downloaded = 0
    start_time = time.monotonic()
    last_progress_time = start_time

    with open(destination, "wb") as f:
        for chunk in response.iter_content(chunk_size=chunk_size):
            if not chunk:
                continue
            f.write(chunk)
            downloaded += len(chunk)

            # Report progress at most twice a second, plus the final chunk
            current_time = time.monotonic()
            if progress_callback and (
                current_time - last_progress_time >= 0.5 or downloaded == total_size
            ):
                progress_callback(
                    _make_progress(downloaded, total_size, current_time - start_time)
                )
                last_progress_time = current_time

    if progress_callback and downloaded != total_size:
        progress_callback(
            _make_progress(downloaded, total_size, time.monotonic() - start_time)
        )

    return downloaded


def _make_progress(downloaded: int, total_size: int, elapsed: float) -> DownloadProgress:
    speed = downloaded / elapsed if elapsed > 0 else 0
    remaining = total_size - downloaded if total_size > 0 else 0
    return DownloadProgress(
        bytes_downloaded=downloaded,
        total_bytes=total_size,
        percentage=(downloaded / total_size * 100) if total_size > 0 else 0,
        speed_bps=speed,
        eta_seconds=remaining / speed if speed > 0 else 0,
    )


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Example:
        >>> progress = DownloadProgress(52428800, 104857600, 50.0, 1048576, 50)
        >>> print(format_progress(progress))
        50.0/100.0 MB (50.0%) at 1.0 MB/s ETA: 50s
    """
    mb_downloaded = progress.bytes_downloaded / 1024 / 1024
    speed_mbps = progress.speed_bps / 1024 / 1024

    if progress.is_determinate:
        mb_total = progress.total_bytes / 1024 / 1024
        return (
            f"{mb_downloaded:.1f}/{mb_total:.1f} MB "
            f"({progress.percentage:.1f}%) "
            f"at {speed_mbps:.1f} MB/s "
            f"ETA: {progress.eta_seconds:.0f}s"
        )
    else:
        return f"{mb_downloaded:.1f} MB at {speed_mbps:.1f} MB/s"


__all__ = [
    "DEFAULT_FILENAME",
    "DownloadProgress",
    "DownloadResult",
    "resolve_filename",
    "fetch",
    "format_progress",
]
