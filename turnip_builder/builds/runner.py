"""Build runner for the Mesa cross build.

This module handles:
- Composing the `meson setup` and `ninja` commands
- Executing them with subprocess
- Capturing stdout/stderr to log files in the workdir
- Enforcing build timeouts
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from turnip_builder.builds.cross_file import build_cross_file, write_cross_file
from turnip_builder.types import StageError, TargetArch

logger = logging.getLogger(__name__)

# Shared library produced by the freedreno Vulkan driver, relative to the build dir
ARTIFACT_RELATIVE_PATH = Path("src") / "freedreno" / "vulkan" / "libvulkan_freedreno.so"

MESON_LOG = "meson_log"
NINJA_LOG = "ninja_log"


class BuildExecutionError(StageError):
    """Raised when build execution fails."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        log_path: Path | None = None,
        code: str = "build_error",
    ) -> None:
        super().__init__(message, code=code)
        self.exit_code = exit_code
        self.log_path = log_path


@dataclass
class BuildResult:
    """Result of a cross build.

    Attributes:
        arch: Target architecture.
        build_dir: Meson build directory.
        artifact_path: Expected path of the compiled library.
        cross_file: Path of the generated cross file.
        meson_log: Log of the configure step.
        ninja_log: Log of the compile step.
        started_at: Build start time.
        finished_at: Build finish time.
    """

    arch: TargetArch
    build_dir: Path
    artifact_path: Path
    cross_file: Path
    meson_log: Path
    ninja_log: Path
    started_at: datetime
    finished_at: datetime


def build_dir_name(arch: TargetArch) -> str:
    """Return the build directory name for an architecture."""
    return f"build-android-{arch.value}"


def compose_meson_command(
    build_dir: str,
    cross_file: Path,
    sdk_version: int,
    reconfigure: bool = False,
) -> list[str]:
    """Compose the `meson setup` command.

    Args:
        build_dir: Build directory, relative to the source tree.
        cross_file: Path to the cross file.
        sdk_version: Android platform SDK version.
        reconfigure: Reconfigure an existing build directory.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    cmd = ["meson", "setup", build_dir, "--cross-file", str(cross_file)]
    if reconfigure:
        cmd.append("--reconfigure")
    cmd.extend(
        [
            "-Dbuildtype=release",
            "-Dplatforms=android",
            f"-Dplatform-sdk-version={sdk_version}",
            "-Dandroid-stub=true",
            "-Dgallium-drivers=",
            "-Dvulkan-drivers=freedreno",
            "-Dvulkan-beta=true",
            "-Dfreedreno-kmds=kgsl",
            "-Db_lto=true",
        ]
    )
    return cmd


def compose_ninja_command(build_dir: str) -> list[str]:
    """Compose the `ninja` command."""
    return ["ninja", "-C", build_dir]


def run_logged(
    cmd: list[str],
    cwd: Path,
    log_path: Path,
    timeout: int | None = None,
    failure_code: str = "build_error",
) -> None:
    """Run a command with output redirected to a log file.

    Args:
        cmd: Command to run.
        cwd: Working directory.
        log_path: Log file (overwritten).
        timeout: Timeout in seconds (None = no timeout).
        failure_code: Error code used for a non-zero exit.

    Raises:
        BuildExecutionError: On non-zero exit, timeout, or launch failure.
    """
    cmd_str = shlex.join(cmd)
    logger.info("Executing: %s", cmd_str)
    started_at = datetime.now(timezone.utc)

    try:
        with log_path.open("w") as log_file:
            log_file.write(f"# Command: {cmd_str}\n")
            log_file.write(f"# Started: {started_at.isoformat()}\n")
            log_file.write(f"# CWD: {cwd}\n")
            log_file.write("# " + "=" * 70 + "\n\n")
            log_file.flush()

            result = subprocess.run(
                cmd,
                cwd=cwd,
                stdout=log_file,
                stderr=subprocess.STDOUT,
                timeout=timeout,
                check=False,
            )
    except subprocess.TimeoutExpired as e:
        with log_path.open("a") as log_file:
            log_file.write(f"\n# TIMEOUT after {timeout} seconds\n")
        message = f"{cmd[0]} timed out after {timeout} seconds"
        logger.error("%s. See log: %s", message, log_path)
        raise BuildExecutionError(
            message, exit_code=-1, log_path=log_path, code="build_timeout"
        ) from e
    except OSError as e:
        message = f"Failed to execute {cmd[0]}: {e}"
        logger.error(message)
        raise BuildExecutionError(
            message, log_path=log_path, code="execution_error"
        ) from e

    finished_at = datetime.now(timezone.utc)
    with log_path.open("a") as log_file:
        log_file.write(f"\n# Finished: {finished_at.isoformat()}\n")
        log_file.write(f"# Exit code: {result.returncode}\n")
        duration = (finished_at - started_at).total_seconds()
        log_file.write(f"# Duration: {duration:.1f}s\n")

    if result.returncode != 0:
        message = f"{cmd[0]} failed with exit code {result.returncode}"
        logger.error("%s. See log: %s", message, log_path)
        raise BuildExecutionError(
            message,
            exit_code=result.returncode,
            log_path=log_path,
            code=failure_code,
        )


def run_build(
    checkout: Path,
    workdir: Path,
    ndk_bin: Path,
    arch: TargetArch = TargetArch.AARCH64,
    sdk_version: int = 31,
    use_ccache: bool = True,
    timeout: int | None = None,
) -> BuildResult:
    """Generate the cross file, configure and compile.

    Args:
        checkout: Mesa checkout.
        workdir: Workdir root (receives the logs).
        ndk_bin: NDK LLVM bin directory.
        arch: Target architecture.
        sdk_version: Android platform SDK version.
        use_ccache: Prefix compilers with ccache.
        timeout: Per-step timeout in seconds.

    Returns:
        BuildResult with paths of the outputs and logs.

    Raises:
        BuildExecutionError: If configuring or compiling fails.
    """
    started_at = datetime.now(timezone.utc)

    logger.info("Creating meson cross file ...")
    cross_path = write_cross_file(
        build_cross_file(arch, sdk_version, ndk_bin, use_ccache=use_ccache),
        checkout / f"android-{arch.value}",
    )

    build_dir = build_dir_name(arch)
    reconfigure = (checkout / build_dir / "meson-private").is_dir()
    meson_log = workdir / MESON_LOG
    ninja_log = workdir / NINJA_LOG

    logger.info("Generating build files ...")
    run_logged(
        compose_meson_command(build_dir, cross_path, sdk_version, reconfigure),
        cwd=checkout,
        log_path=meson_log,
        timeout=timeout,
        failure_code="configure_failed",
    )

    logger.info("Compiling build files ...")
    run_logged(
        compose_ninja_command(build_dir),
        cwd=checkout,
        log_path=ninja_log,
        timeout=timeout,
        failure_code="compile_failed",
    )

    return BuildResult(
        arch=arch,
        build_dir=checkout / build_dir,
        artifact_path=checkout / build_dir / ARTIFACT_RELATIVE_PATH,
        cross_file=cross_path,
        meson_log=meson_log,
        ninja_log=ninja_log,
        started_at=started_at,
        finished_at=datetime.now(timezone.utc),
    )


__all__ = [
    "ARTIFACT_RELATIVE_PATH",
    "MESON_LOG",
    "NINJA_LOG",
    "BuildExecutionError",
    "BuildResult",
    "build_dir_name",
    "compose_meson_command",
    "compose_ninja_command",
    "run_build",
    "run_logged",
]
