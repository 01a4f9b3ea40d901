"""Tests for builds/runner.py module.

meson and ninja are mocked at the subprocess level.
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from turnip_builder.builds.runner import (
    ARTIFACT_RELATIVE_PATH,
    BuildExecutionError,
    build_dir_name,
    compose_meson_command,
    compose_ninja_command,
    run_build,
    run_logged,
)
from turnip_builder.types import TargetArch


class TestComposeCommands:
    """Tests for command composition."""

    def test_meson_command(self, tmp_path):
        """Should configure a release Turnip build for Android."""
        cmd = compose_meson_command("build-android-aarch64", tmp_path / "cf", 31)

        assert cmd[:5] == [
            "meson",
            "setup",
            "build-android-aarch64",
            "--cross-file",
            str(tmp_path / "cf"),
        ]
        assert "--reconfigure" not in cmd
        for option in (
            "-Dbuildtype=release",
            "-Dplatforms=android",
            "-Dplatform-sdk-version=31",
            "-Dandroid-stub=true",
            "-Dgallium-drivers=",
            "-Dvulkan-drivers=freedreno",
            "-Dvulkan-beta=true",
            "-Dfreedreno-kmds=kgsl",
            "-Db_lto=true",
        ):
            assert option in cmd

    def test_meson_reconfigure(self, tmp_path):
        """Should reconfigure an existing build directory."""
        cmd = compose_meson_command("b", tmp_path / "cf", 31, reconfigure=True)
        assert cmd[5] == "--reconfigure"

    def test_ninja_command(self):
        """Should build the given directory."""
        assert compose_ninja_command("build-android-aarch64") == [
            "ninja",
            "-C",
            "build-android-aarch64",
        ]

    def test_build_dir_name(self):
        """Build directory is named after the architecture."""
        assert build_dir_name(TargetArch.ARM) == "build-android-arm"


class TestRunLogged:
    """Tests for run_logged function."""

    def test_success_writes_log(self, tmp_path):
        """Should write header and footer to the log."""
        log = tmp_path / "meson_log"
        with patch("subprocess.run", return_value=MagicMock(returncode=0)):
            run_logged(["meson", "setup"], cwd=tmp_path, log_path=log)

        content = log.read_text()
        assert "# Command: meson setup" in content
        assert "# Exit code: 0" in content

    def test_failure(self, tmp_path):
        """A non-zero exit should raise with the failure code and log path."""
        log = tmp_path / "ninja_log"
        with patch("subprocess.run", return_value=MagicMock(returncode=1)):
            with pytest.raises(BuildExecutionError) as exc_info:
                run_logged(["ninja"], cwd=tmp_path, log_path=log, failure_code="compile_failed")

        assert exc_info.value.code == "compile_failed"
        assert exc_info.value.exit_code == 1
        assert exc_info.value.log_path == log

    def test_timeout(self, tmp_path):
        """A timeout should raise build_timeout."""
        log = tmp_path / "ninja_log"
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired("ninja", 10)):
            with pytest.raises(BuildExecutionError) as exc_info:
                run_logged(["ninja"], cwd=tmp_path, log_path=log, timeout=10)

        assert exc_info.value.code == "build_timeout"
        assert "TIMEOUT after 10 seconds" in log.read_text()

    def test_missing_tool(self, tmp_path):
        """A missing executable should raise execution_error."""
        with patch("subprocess.run", side_effect=FileNotFoundError("meson")):
            with pytest.raises(BuildExecutionError) as exc_info:
                run_logged(["meson"], cwd=tmp_path, log_path=tmp_path / "log")

        assert exc_info.value.code == "execution_error"


class TestRunBuild:
    """Tests for run_build function."""

    def test_configure_then_compile(self, tmp_path):
        """Should write the cross file and run meson then ninja in the checkout."""
        checkout = tmp_path / "mesa"
        checkout.mkdir()
        ndk_bin = tmp_path / "ndk" / "bin"

        with patch("subprocess.run", return_value=MagicMock(returncode=0)) as mock_run:
            result = run_build(checkout, tmp_path, ndk_bin, sdk_version=31)

        commands = [c.args[0] for c in mock_run.call_args_list]
        assert commands[0][:2] == ["meson", "setup"]
        assert commands[1] == ["ninja", "-C", "build-android-aarch64"]
        assert all(c.kwargs["cwd"] == checkout for c in mock_run.call_args_list)

        assert result.cross_file == checkout / "android-aarch64"
        assert "[binaries]" in result.cross_file.read_text()
        assert result.artifact_path == checkout / "build-android-aarch64" / ARTIFACT_RELATIVE_PATH
        assert result.meson_log == tmp_path / "meson_log"
        assert result.ninja_log == tmp_path / "ninja_log"

    def test_reconfigure_existing_build_dir(self, tmp_path):
        """A configured build directory should be reconfigured."""
        checkout = tmp_path / "mesa"
        (checkout / "build-android-aarch64" / "meson-private").mkdir(parents=True)

        with patch("subprocess.run", return_value=MagicMock(returncode=0)) as mock_run:
            run_build(checkout, tmp_path, tmp_path / "bin")

        assert "--reconfigure" in mock_run.call_args_list[0].args[0]

    def test_configure_failure_skips_compile(self, tmp_path):
        """A meson failure should stop before ninja."""
        checkout = tmp_path / "mesa"
        checkout.mkdir()

        with patch("subprocess.run", return_value=MagicMock(returncode=1)) as mock_run:
            with pytest.raises(BuildExecutionError) as exc_info:
                run_build(checkout, tmp_path, tmp_path / "bin")

        assert exc_info.value.code == "configure_failed"
        assert mock_run.call_count == 1
