"""Tests for source/git.py module.

git itself is mocked at the subprocess level.
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from turnip_builder.source import git
from turnip_builder.source.git import GitError, run_git


def completed(stdout: str = "") -> MagicMock:
    return MagicMock(returncode=0, stdout=stdout, stderr="")


class TestRunGit:
    """Tests for run_git function."""

    def test_returns_stripped_stdout(self, tmp_path):
        """Should return stdout without surrounding whitespace."""
        with patch("subprocess.run", return_value=completed("abc123\n")) as mock_run:
            assert run_git(["rev-parse", "HEAD"], cwd=tmp_path) == "abc123"

        assert mock_run.call_args.args[0] == ["git", "rev-parse", "HEAD"]
        assert mock_run.call_args.kwargs["cwd"] == tmp_path
        assert mock_run.call_args.kwargs["check"] is True

    def test_nonzero_exit(self, tmp_path):
        """Should wrap CalledProcessError in GitError."""
        error = subprocess.CalledProcessError(128, ["git"], stderr="fatal: not a git repository")
        with patch("subprocess.run", side_effect=error):
            with pytest.raises(GitError) as exc_info:
                run_git(["status"], cwd=tmp_path)

        assert exc_info.value.exit_code == 128
        assert exc_info.value.code == "git_error"
        assert "not a git repository" in str(exc_info.value)

    def test_timeout(self, tmp_path):
        """Should map timeouts to the timeout code."""
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired("git", 5)):
            with pytest.raises(GitError) as exc_info:
                run_git(["fetch", "origin"], cwd=tmp_path, timeout=5)

        assert exc_info.value.code == "timeout"

    def test_git_not_installed(self, tmp_path):
        """Should map launch failures to execution_error."""
        with patch("subprocess.run", side_effect=FileNotFoundError("git")):
            with pytest.raises(GitError) as exc_info:
                run_git(["status"], cwd=tmp_path)

        assert exc_info.value.code == "execution_error"


class TestGitCommands:
    """Tests for the command wrappers."""

    def test_clone_shallow(self, tmp_path):
        """Should clone with depth 1 from the parent directory."""
        dest = tmp_path / "mesa"
        with patch("subprocess.run", return_value=completed()) as mock_run:
            git.clone_shallow("https://example.com/mesa.git", dest)

        assert mock_run.call_args.args[0] == [
            "git",
            "clone",
            "--depth=1",
            "https://example.com/mesa.git",
            str(dest),
        ]
        assert mock_run.call_args.kwargs["cwd"] == tmp_path

    def test_rev_parse_short(self, tmp_path):
        """Should request the abbreviated hash."""
        with patch("subprocess.run", return_value=completed("abc1234\n")) as mock_run:
            assert git.rev_parse(tmp_path, short=True) == "abc1234"

        assert mock_run.call_args.args[0] == ["git", "rev-parse", "--short", "HEAD"]

    def test_upstream_changes(self, tmp_path):
        """Should list commits between HEAD and the remote branch."""
        output = "1111111 fix a\n2222222 fix b\n"
        with patch("subprocess.run", return_value=completed(output)) as mock_run:
            changes = git.upstream_changes(tmp_path, branch="main")

        assert changes == ["1111111 fix a", "2222222 fix b"]
        assert mock_run.call_args.args[0] == ["git", "log", "HEAD..origin/main", "--oneline"]

    def test_upstream_changes_none(self, tmp_path):
        """An up-to-date checkout should report no changes."""
        with patch("subprocess.run", return_value=completed("")):
            assert git.upstream_changes(tmp_path) == []

    def test_apply_patch_with_args(self, tmp_path):
        """Should pass extra flags before the patch file."""
        patch_file = tmp_path / "27961.patch"
        with patch("subprocess.run", return_value=completed()) as mock_run:
            git.apply_patch(tmp_path, patch_file, ["--reverse"])

        assert mock_run.call_args.args[0] == ["git", "apply", "--reverse", str(patch_file)]
