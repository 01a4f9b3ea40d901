"""Android NDK fetch module.

This module handles:
- URL construction for official NDK archives
- Streamed download with httpx
- Extraction with the external unzip tool
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

import httpx

from turnip_builder.types import StageError

logger = logging.getLogger(__name__)

# Official NDK download location
NDK_DOWNLOAD_BASE = "https://dl.google.com/android/repository"

# Timeout for downloads (seconds)
DOWNLOAD_TIMEOUT = 3600

# Chunk size for downloads (bytes)
DOWNLOAD_CHUNK_SIZE = 64 * 1024  # 64 KB

# LLVM toolchain location inside an NDK root
NDK_LLVM_BIN = Path("toolchains") / "llvm" / "prebuilt" / "linux-x86_64" / "bin"


class DownloadError(StageError):
    """Raised when a download fails."""

    def __init__(self, message: str, code: str = "download_error") -> None:
        super().__init__(message, code=code)


class ExtractionError(StageError):
    """Raised when archive extraction fails."""

    def __init__(self, message: str, code: str = "extraction_error") -> None:
        super().__init__(message, code=code)


@dataclass
class DownloadResult:
    """Result of a file download."""

    path: Path
    size_bytes: int


def build_ndk_url(ndk_version: str, base_url: str = NDK_DOWNLOAD_BASE) -> str:
    """Build the download URL for a Linux NDK archive.

    Args:
        ndk_version: NDK release (e.g., 'android-ndk-r26c').
        base_url: Base URL for NDK downloads.

    Returns:
        Archive URL.
    """
    return f"{base_url.rstrip('/')}/{ndk_version}-linux.zip"


def ndk_bin_dir(ndk_root: Path) -> Path:
    """Return the LLVM bin directory of an NDK root."""
    return ndk_root / NDK_LLVM_BIN


def is_ndk_root(path: Path) -> bool:
    """Check that a directory looks like an extracted NDK."""
    return ndk_bin_dir(path).is_dir()


def download_file(
    client: httpx.Client,
    url: str,
    dest_path: Path,
    timeout: float = DOWNLOAD_TIMEOUT,
    chunk_size: int = DOWNLOAD_CHUNK_SIZE,
) -> DownloadResult:
    """Stream a URL to a file.

    Args:
        client: HTTPX client instance.
        url: URL to download from.
        dest_path: Destination path for the downloaded file.
        timeout: Download timeout in seconds.
        chunk_size: Size of chunks to download.

    Returns:
        DownloadResult with path and size.

    Raises:
        DownloadError: If download fails.
    """
    logger.info("Downloading %s to %s", url, dest_path)

    try:
        with client.stream("GET", url, timeout=timeout) as response:
            response.raise_for_status()

            total_bytes = 0
            dest_path.parent.mkdir(parents=True, exist_ok=True)

            with dest_path.open("wb") as f:
                for chunk in response.iter_bytes(chunk_size):
                    f.write(chunk)
                    total_bytes += len(chunk)

            logger.info("Downloaded %s (%d bytes)", dest_path.name, total_bytes)
            return DownloadResult(path=dest_path, size_bytes=total_bytes)

    except httpx.HTTPStatusError as e:
        dest_path.unlink(missing_ok=True)
        raise DownloadError(
            f"HTTP error downloading {url}: {e.response.status_code} {e.response.reason_phrase}",
            code="http_error",
        ) from e
    except httpx.TimeoutException as e:
        dest_path.unlink(missing_ok=True)
        raise DownloadError(
            f"Timeout downloading {url}",
            code="timeout",
        ) from e
    except httpx.RequestError as e:
        dest_path.unlink(missing_ok=True)
        raise DownloadError(
            f"Network error downloading {url}: {e}",
            code="network_error",
        ) from e


def extract_zip(archive_path: Path, dest_dir: Path) -> None:
    """Extract a zip archive with the system unzip tool.

    The NDK ships executables, so the external tool is used to keep their
    permission bits.

    Args:
        archive_path: Path to the zip file.
        dest_dir: Destination directory.

    Raises:
        ExtractionError: If extraction fails.
    """
    logger.info("Extracting %s to %s", archive_path.name, dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)

    try:
        result = subprocess.run(
            ["unzip", "-q", "-o", str(archive_path), "-d", str(dest_dir)],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        raise ExtractionError(
            f"Failed to run unzip on {archive_path}: {e}",
            code="os_error",
        ) from e

    if result.returncode != 0:
        raise ExtractionError(
            f"Failed to extract {archive_path}: {result.stderr.strip()}",
            code="unzip_error",
        )


def download_ndk(
    client: httpx.Client,
    ndk_version: str,
    workdir: Path,
    base_url: str = NDK_DOWNLOAD_BASE,
    timeout: float = DOWNLOAD_TIMEOUT,
    keep_archive: bool = False,
) -> Path:
    """Download and extract an NDK into the workdir.

    Args:
        client: HTTPX client instance.
        ndk_version: NDK release.
        workdir: Directory receiving the archive and the extracted NDK.
        base_url: Base URL for downloads.
        timeout: Download timeout in seconds.
        keep_archive: Whether to keep the zip after extraction.

    Returns:
        Path to the extracted NDK root.

    Raises:
        DownloadError: If download fails.
        ExtractionError: If extraction fails or the NDK layout is unexpected.
    """
    url = build_ndk_url(ndk_version, base_url)
    archive_path = workdir / f"{ndk_version}-linux.zip"

    logger.info("Downloading %s from %s (~640 MB)", ndk_version, url)
    download_file(client, url, archive_path, timeout=timeout)
    extract_zip(archive_path, workdir)

    if not keep_archive:
        archive_path.unlink(missing_ok=True)

    ndk_root = workdir / ndk_version
    if not is_ndk_root(ndk_root):
        raise ExtractionError(
            f"Extracted archive does not contain {ndk_root / NDK_LLVM_BIN}",
            code="unexpected_layout",
        )
    return ndk_root


__all__ = [
    "DOWNLOAD_TIMEOUT",
    "NDK_DOWNLOAD_BASE",
    "NDK_LLVM_BIN",
    "DownloadError",
    "DownloadResult",
    "ExtractionError",
    "build_ndk_url",
    "download_file",
    "download_ndk",
    "extract_zip",
    "is_ndk_root",
    "ndk_bin_dir",
]
