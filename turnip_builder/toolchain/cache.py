"""Keyed toolchain cache.

The only backend is the GitHub Actions cache, reached through helper
scripts shipped with the cache action. Outside a GitHub runner (no
GITHUB_WORKSPACE) the manager runs in local-only mode and every call is
a no-op.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

RESTORE_SCRIPT = "restore-cache.sh"
SAVE_SCRIPT = "save-cache.sh"

# Timeout for helper scripts (seconds)
HELPER_TIMEOUT = 1800


@dataclass(frozen=True)
class CacheEntry:
    """A named, versioned cache slot."""

    name: str
    key: str
    path: Path

    @property
    def restore_keys(self) -> str:
        """Exact key first, then any entry sharing the name prefix."""
        return f"{self.key},{self.name}-"


class ActionsCacheBackend:
    """Cache backend driving the GitHub Actions cache helper scripts."""

    def __init__(self, action_path: Path, timeout: int = HELPER_TIMEOUT) -> None:
        self.action_path = action_path
        self.timeout = timeout

    def restore(self, entry: CacheEntry) -> Path | None:
        """Run the restore helper; stdout is the restored path."""
        script = self.action_path / RESTORE_SCRIPT
        cmd = [
            str(script),
            entry.name,
            entry.key,
            entry.restore_keys,
            str(entry.path),
        ]
        logger.info(
            "Restoring %s cache with key %s (restore keys: %s)",
            entry.name,
            entry.key,
            entry.restore_keys,
        )
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning("Cache restore helper failed for %s: %s", entry.name, e)
            return None

        if result.returncode != 0:
            logger.info(
                "Cache miss for %s-%s (helper exit %d)",
                entry.name,
                entry.key,
                result.returncode,
            )
            return None

        restored = result.stdout.strip()
        if not restored:
            logger.info("Cache miss for %s-%s", entry.name, entry.key)
            return None
        return Path(restored.rstrip("/"))

    def save(self, entry: CacheEntry) -> bool:
        """Run the save helper."""
        script = self.action_path / SAVE_SCRIPT
        cmd = [str(script), entry.name, entry.key, str(entry.path)]
        logger.info("Saving %s cache from %s", entry.name, entry.path)
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning("Cache save helper failed for %s: %s", entry.name, e)
            return False

        if result.returncode != 0:
            logger.warning(
                "Cache save for %s-%s exited with %d: %s",
                entry.name,
                entry.key,
                result.returncode,
                result.stderr.strip(),
            )
            return False
        return True


class CacheManager:
    """Restore and save keyed cache entries.

    Both operations never raise. In local-only mode (no backend) restore
    returns None and save returns False without doing anything.
    """

    def __init__(self, backend: ActionsCacheBackend | None = None) -> None:
        self.backend = backend

    @classmethod
    def from_environment(
        cls,
        github_workspace: Path | None,
        action_path: Path,
    ) -> CacheManager:
        """Create a manager for the current execution environment.

        Args:
            github_workspace: GITHUB_WORKSPACE value, if any.
            action_path: Directory holding the cache helper scripts.

        Returns:
            CacheManager, with a backend only on GitHub runners.
        """
        if github_workspace is None or not str(github_workspace):
            logger.debug("No GITHUB_WORKSPACE; toolchain cache disabled")
            return cls(backend=None)
        return cls(backend=ActionsCacheBackend(action_path))

    @property
    def available(self) -> bool:
        """True when a backend is configured."""
        return self.backend is not None

    def restore(self, name: str, key: str, path: Path) -> Path | None:
        """Restore a cache entry.

        Args:
            name: Cache name (e.g. 'android-ndk').
            key: Version key.
            path: Where the entry should be restored to.

        Returns:
            Resolved path of the restored content, or None on a miss.
        """
        if self.backend is None:
            return None
        entry = CacheEntry(name=name, key=key, path=path)
        restored = self.backend.restore(entry)
        if restored is not None:
            logger.info("Restored %s cache to %s", name, restored)
        return restored

    def save(self, name: str, key: str, path: Path) -> bool:
        """Save a cache entry.

        Args:
            name: Cache name.
            key: Version key.
            path: Content to save.

        Returns:
            True if the backend reported success.
        """
        if self.backend is None:
            return False
        return self.backend.save(CacheEntry(name=name, key=key, path=path))


__all__ = [
    "ActionsCacheBackend",
    "CacheEntry",
    "CacheManager",
    "HELPER_TIMEOUT",
    "RESTORE_SCRIPT",
    "SAVE_SCRIPT",
]
