"""Toolchain provisioning service.

Resolves the Android NDK for a run, in order:
1. A pre-provisioned NDK from ANDROID_NDK_LATEST_HOME
2. An NDK already extracted in the workdir
3. The toolchain cache
4. A fresh download, saved back to the cache

Cache save failures are logged and never abort the run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from turnip_builder.toolchain.cache import CacheManager
from turnip_builder.toolchain.fetch import download_ndk, is_ndk_root, ndk_bin_dir

if TYPE_CHECKING:
    from turnip_builder.config import Settings

logger = logging.getLogger(__name__)

NDK_CACHE_NAME = "android-ndk"


@dataclass
class ToolchainResult:
    """Resolved NDK for a run.

    Attributes:
        ndk_root: NDK root directory.
        origin: Where it came from (env, workdir, cache, download).
        cache_saved: Whether a freshly downloaded NDK was saved to the cache.
    """

    ndk_root: Path
    origin: str
    cache_saved: bool = False

    @property
    def bin_dir(self) -> Path:
        """LLVM bin directory holding the cross compilers."""
        return ndk_bin_dir(self.ndk_root)


def ensure_ndk(
    settings: Settings,
    client: httpx.Client | None = None,
    cache: CacheManager | None = None,
) -> ToolchainResult:
    """Make an NDK available for the cross build.

    Args:
        settings: Application settings.
        client: Optional HTTPX client (one is created if not provided).
        cache: Optional cache manager (derived from settings if not provided).

    Returns:
        ToolchainResult describing the NDK in use.

    Raises:
        DownloadError: If the NDK download fails.
        ExtractionError: If extraction fails.
    """
    if settings.android_ndk_home is not None:
        logger.info("Using Android NDK from runner image: %s", settings.android_ndk_home)
        return ToolchainResult(ndk_root=settings.android_ndk_home, origin="env")

    ndk_root = settings.workdir / settings.ndk_version
    if is_ndk_root(ndk_root):
        logger.info("Using Android NDK already in workdir: %s", ndk_root)
        return ToolchainResult(ndk_root=ndk_root, origin="workdir")

    if cache is None:
        cache = CacheManager.from_environment(
            settings.github_workspace, settings.github_action_path
        )

    restored = cache.restore(NDK_CACHE_NAME, settings.ndk_version, ndk_root)
    if restored is not None and is_ndk_root(restored):
        logger.info("Using cached Android NDK: %s", restored)
        return ToolchainResult(ndk_root=restored, origin="cache")

    own_client = client is None
    if client is None:
        client = httpx.Client(follow_redirects=True)
    try:
        ndk_root = download_ndk(
            client,
            settings.ndk_version,
            settings.workdir,
            base_url=settings.ndk_download_base,
            timeout=settings.download_timeout,
        )
    finally:
        if own_client:
            client.close()

    saved = cache.save(NDK_CACHE_NAME, settings.ndk_version, ndk_root)
    if cache.available and not saved:
        logger.warning("Could not save %s to the cache; continuing", settings.ndk_version)

    return ToolchainResult(ndk_root=ndk_root, origin="download", cache_saved=saved)


__all__ = ["NDK_CACHE_NAME", "ToolchainResult", "ensure_ndk"]
