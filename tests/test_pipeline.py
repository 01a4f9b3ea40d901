"""Tests for pipeline.py module.

Stage functions are patched in the pipeline's namespace so the tests
check ordering and pass selection only.
"""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from turnip_builder.deps import MissingDependencyError
from turnip_builder.pipeline import check_environment, run_all, run_pass
from turnip_builder.source.schema import PatchSpec
from turnip_builder.toolchain.cache import CacheManager
from turnip_builder.toolchain.service import ToolchainResult
from turnip_builder.types import PassKind

PIPELINE = "turnip_builder.pipeline"


def all_tools(name: str) -> str:
    return f"/usr/bin/{name}"


@pytest.fixture
def stages(tmp_path, build_context):
    """Patch every stage function and record call order."""
    order: list[str] = []
    unpatched_ctx = build_context()
    patched_ctx = build_context(is_patched=True)

    def recorder(name, result):
        def call(*args, **kwargs):
            order.append(name)
            return result(*args, **kwargs) if callable(result) else result

        return call

    def package(context, artifact_path, **kwargs):
        order.append("package")
        result = MagicMock()
        result.archive_path = tmp_path / f"turnip{context.patched_suffix}.zip"
        return result

    with patch(
        f"{PIPELINE}.prepare_workdir", side_effect=recorder("workdir", tmp_path)
    ), patch(
        f"{PIPELINE}.ensure_ndk",
        side_effect=recorder("toolchain", ToolchainResult(tmp_path / "ndk", "download")),
    ), patch(
        f"{PIPELINE}.prepare_unpatched", side_effect=recorder("unpatched", unpatched_ctx)
    ) as mock_unpatched, patch(
        f"{PIPELINE}.prepare_patched", side_effect=recorder("patched", patched_ctx)
    ) as mock_patched, patch(
        f"{PIPELINE}.run_build", side_effect=recorder("build", MagicMock())
    ) as mock_build, patch(
        f"{PIPELINE}.package_pass", side_effect=package
    ):
        yield {
            "order": order,
            "unpatched": mock_unpatched,
            "patched": mock_patched,
            "build": mock_build,
            "unpatched_ctx": unpatched_ctx,
        }


class TestCheckEnvironment:
    """Tests for check_environment function."""

    def test_missing_tool_raises(self, settings):
        """A missing tool should raise MissingDependencyError."""
        with pytest.raises(MissingDependencyError) as exc_info:
            check_environment(settings, which=lambda name: None if name == "patchelf" else name)

        assert exc_info.value.missing == ["patchelf"]

    def test_remediation_runs_when_enabled(self, settings):
        """Python tool remediation should run before the check."""
        settings = settings.model_copy(update={"remediate_dependencies": True})
        with patch(f"{PIPELINE}.remediate_python_tools", return_value=[]) as mock_remediate:
            check_environment(settings, which=all_tools)
        mock_remediate.assert_called_once()

    def test_remediation_skipped_when_disabled(self, settings):
        """Remediation should be skipped when disabled."""
        with patch(f"{PIPELINE}.remediate_python_tools") as mock_remediate:
            check_environment(settings, which=all_tools)
        mock_remediate.assert_not_called()


class TestRunPass:
    """Tests for run_pass function."""

    def test_unpatched_stage_order(self, settings, stages):
        """Stages should run init, toolchain, source, build, package."""
        run_pass(PassKind.UNPATCHED, settings, MagicMock(), CacheManager(), [])
        assert stages["order"] == ["workdir", "toolchain", "unpatched", "build", "package"]

    def test_patched_requires_previous(self, settings, stages):
        """The patched pass needs the unpatched context."""
        with pytest.raises(ValueError):
            run_pass(PassKind.PATCHED, settings, MagicMock(), CacheManager(), [])

    def test_build_uses_settings(self, settings, stages, tmp_path):
        """The build should use the toolchain bin dir and configured target."""
        run_pass(PassKind.UNPATCHED, settings, MagicMock(), CacheManager(), [])
        kwargs = stages["build"].call_args.kwargs
        assert kwargs["ndk_bin"] == ToolchainResult(tmp_path / "ndk", "download").bin_dir
        assert kwargs["sdk_version"] == settings.sdk_version
        assert kwargs["use_ccache"] == settings.use_ccache


class TestRunAll:
    """Tests for run_all function."""

    def test_missing_dependency_stops_before_network(self, settings, stages):
        """No source, network or build work should start without tools."""
        client = MagicMock()
        with pytest.raises(MissingDependencyError):
            run_all(settings, client=client, which=lambda name: None)

        assert stages["order"] == []
        client.get.assert_not_called()
        client.stream.assert_not_called()

    def test_zero_patches_runs_single_pass(self, settings, stages, tmp_path):
        """Without patches only the unpatched pass should run."""
        settings = settings.model_copy(update={"patches": [], "experimental_patches": []})
        result = run_all(settings, client=MagicMock(), which=all_tools)

        assert [p.kind for p in result.passes] == [PassKind.UNPATCHED]
        assert result.archives == [tmp_path / "turnip.zip"]
        stages["patched"].assert_not_called()

    def test_patches_run_both_passes(self, settings, stages, tmp_path):
        """With patches both passes should run, unpatched first."""
        settings = settings.model_copy(
            update={"patches": ["a;commit/aaa;"], "experimental_patches": ["x;commit/xxx;"]}
        )
        result = run_all(settings, client=MagicMock(), which=all_tools)

        assert [p.kind for p in result.passes] == [PassKind.UNPATCHED, PassKind.PATCHED]
        assert result.archives == [tmp_path / "turnip.zip", tmp_path / "turnip_patched.zip"]
        assert stages["order"].index("unpatched") < stages["order"].index("patched")

        args = stages["patched"].call_args
        assert args.args[1] == stages["unpatched_ctx"]
        assert [p.name for p in args.args[2]] == ["x", "a"]
        assert result.patches == [
            PatchSpec.from_descriptor("x;commit/xxx;"),
            PatchSpec.from_descriptor("a;commit/aaa;"),
        ]

    def test_failure_in_first_pass_skips_second(self, settings, stages):
        """A failing unpatched pass should stop the run."""
        from turnip_builder.builds.runner import BuildExecutionError

        settings = settings.model_copy(update={"patches": ["a;commit/aaa;"]})
        stages["build"].side_effect = BuildExecutionError("ninja failed", code="compile_failed")

        with pytest.raises(BuildExecutionError):
            run_all(settings, client=MagicMock(), which=all_tools)

        stages["patched"].assert_not_called()

    def test_owned_client_is_closed(self, settings, stages):
        """A client created by the pipeline should be closed."""
        settings = settings.model_copy(update={"patches": [], "experimental_patches": []})
        with patch(f"{PIPELINE}.httpx.Client") as mock_client_cls:
            run_all(settings, which=all_tools)
        mock_client_cls.return_value.close.assert_called_once()


def test_pipeline_result_workdir(settings, stages):
    """The result should point at the workdir holding the archives."""
    settings = settings.model_copy(update={"patches": [], "experimental_patches": []})
    result = run_all(settings, client=MagicMock(), which=all_tools)
    assert result.workdir == settings.workdir
    assert isinstance(result.workdir, Path)
