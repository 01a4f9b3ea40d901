"""Thin wrappers around the git command line."""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path

from turnip_builder.types import StageError

logger = logging.getLogger(__name__)


class GitError(StageError):
    """Raised when a git command fails."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str = "git_error",
    ) -> None:
        super().__init__(message, code=code)
        self.exit_code = exit_code


def run_git(
    args: list[str],
    cwd: Path,
    timeout: int | None = None,
) -> str:
    """Run a git command and return its stripped stdout.

    Args:
        args: Arguments after 'git'.
        cwd: Working directory.
        timeout: Optional timeout in seconds.

    Returns:
        Standard output with surrounding whitespace removed.

    Raises:
        GitError: If git cannot be run or exits non-zero.
    """
    cmd = ["git", *args]
    logger.debug("Running %s in %s", shlex.join(cmd), cwd)
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=True,
        )
    except subprocess.CalledProcessError as e:
        raise GitError(
            f"{shlex.join(cmd)} failed: {(e.stderr or '').strip()}",
            exit_code=e.returncode,
        ) from e
    except subprocess.TimeoutExpired as e:
        raise GitError(
            f"{shlex.join(cmd)} timed out after {timeout}s",
            exit_code=-1,
            code="timeout",
        ) from e
    except OSError as e:
        raise GitError(f"Failed to run git: {e}", code="execution_error") from e
    return result.stdout.strip()


def clone_shallow(repo_url: str, dest: Path, timeout: int | None = None) -> None:
    """Clone the tip of a repository with depth 1."""
    logger.info("Cloning %s into %s", repo_url, dest)
    run_git(["clone", "--depth=1", repo_url, str(dest)], cwd=dest.parent, timeout=timeout)


def rev_parse(checkout: Path, short: bool = False) -> str:
    """Return the HEAD commit hash."""
    args = ["rev-parse", "--short", "HEAD"] if short else ["rev-parse", "HEAD"]
    return run_git(args, cwd=checkout)


def fetch(checkout: Path, remote: str = "origin", timeout: int | None = None) -> None:
    """Fetch from a remote."""
    run_git(["fetch", remote], cwd=checkout, timeout=timeout)


def upstream_changes(
    checkout: Path,
    branch: str = "main",
    remote: str = "origin",
) -> list[str]:
    """List commits on the remote branch that HEAD does not have.

    Returns:
        One-line log entries, newest first; empty when HEAD is up to date.
    """
    output = run_git(
        ["log", f"HEAD..{remote}/{branch}", "--oneline"],
        cwd=checkout,
    )
    return [line for line in output.splitlines() if line.strip()]


def pull(checkout: Path, timeout: int | None = None) -> None:
    """Merge upstream changes into the checkout."""
    run_git(["pull"], cwd=checkout, timeout=timeout)


def apply_patch(checkout: Path, patch_file: Path, args: list[str] | None = None) -> None:
    """Apply a patch file to the working tree with `git apply`."""
    run_git(["apply", *(args or []), str(patch_file)], cwd=checkout)


__all__ = [
    "GitError",
    "apply_patch",
    "clone_shallow",
    "fetch",
    "pull",
    "rev_parse",
    "run_git",
    "upstream_changes",
]
