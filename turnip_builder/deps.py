"""Host dependency checks.

This module handles:
- Probing PATH for the external tools the pipeline shells out to
- Best-effort pip remediation for the Python-based build tools
- Failing the run before any network or build activity if a tool is missing
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from turnip_builder.types import StageError

logger = logging.getLogger(__name__)

REQUIRED_TOOLS: tuple[str, ...] = (
    "meson",
    "ninja",
    "patchelf",
    "unzip",
    "pip",
    "flex",
    "bison",
    "zip",
    "git",
)

# Python packages installed with pip before checking
PIP_REMEDIATIONS: tuple[tuple[str, ...], ...] = (
    ("install", "--upgrade", "meson"),
    ("install", "mako"),
)


class MissingDependencyError(StageError):
    """Raised when one or more required tools are not installed."""

    def __init__(self, missing: list[str]) -> None:
        super().__init__(
            f"Missing required tools: {', '.join(missing)}",
            code="missing_dependencies",
        )
        self.missing = missing


@dataclass
class DependencyReport:
    """Result of probing the host for required tools."""

    found: dict[str, str] = field(default_factory=dict)
    missing: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when every tool resolved."""
        return not self.missing


def required_tools(use_ccache: bool = False) -> list[str]:
    """Return the tool list for a run.

    Args:
        use_ccache: Whether the cross file wraps compilers with ccache.

    Returns:
        Ordered list of executable names.
    """
    tools = list(REQUIRED_TOOLS)
    if use_ccache:
        tools.append("ccache")
    return tools


def check_dependencies(
    tools: Iterable[str],
    which: Callable[[str], str | None] = shutil.which,
) -> DependencyReport:
    """Probe PATH for each tool.

    Args:
        tools: Executable names to look up.
        which: Lookup function (defaults to shutil.which).

    Returns:
        DependencyReport with resolved paths and missing names.
    """
    report = DependencyReport()
    for tool in tools:
        path = which(tool)
        if path:
            logger.info(" - %s found", tool)
            report.found[tool] = path
        else:
            logger.error(" - %s not found, can't continue", tool)
            report.missing.append(tool)
    return report


def ensure_dependencies(
    tools: Iterable[str],
    which: Callable[[str], str | None] = shutil.which,
) -> DependencyReport:
    """Check tools and fail if any is missing.

    Args:
        tools: Executable names to look up.
        which: Lookup function (defaults to shutil.which).

    Returns:
        DependencyReport when every tool resolved.

    Raises:
        MissingDependencyError: If any tool is missing.
    """
    logger.info("Checking system for required dependencies ...")
    report = check_dependencies(tools, which=which)
    if not report.ok:
        raise MissingDependencyError(report.missing)
    return report


def remediate_python_tools(
    timeout: int = 600,
    which: Callable[[str], str | None] = shutil.which,
) -> list[str]:
    """Install or upgrade pip-provided build tools.

    Runs the pip found on PATH, the same environment the meson tool check
    resolves. Failures are logged and otherwise ignored; the
    following tool check decides whether the run can continue.

    Args:
        timeout: Timeout per pip invocation in seconds.
        which: Tool lookup function.

    Returns:
        List of pip argument strings that failed.
    """
    pip = which("pip")
    if pip is None:
        logger.warning("pip not found on PATH; skipping meson and mako installation")
        return [" ".join(args) for args in PIP_REMEDIATIONS]

    failed: list[str] = []
    for args in PIP_REMEDIATIONS:
        cmd = [pip, *args]
        logger.info("Running %s", " ".join(args))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning("pip %s failed: %s", " ".join(args), e)
            failed.append(" ".join(args))
            continue

        if result.returncode != 0:
            logger.warning(
                "pip %s exited with %d: %s",
                " ".join(args),
                result.returncode,
                result.stderr.strip(),
            )
            failed.append(" ".join(args))
    return failed


__all__ = [
    "PIP_REMEDIATIONS",
    "REQUIRED_TOOLS",
    "DependencyReport",
    "MissingDependencyError",
    "check_dependencies",
    "ensure_dependencies",
    "remediate_python_tools",
    "required_tools",
]
