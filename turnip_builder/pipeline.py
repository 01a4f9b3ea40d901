"""Pipeline orchestration.

This module provides the top-level API:
- run_all(): check dependencies, then run the unpatched pass and, when a
  patch set is configured, the patched pass
- run_pass(): one prepare -> build -> package cycle

Passes run strictly one after another and share the workdir. Every stage
raises a StageError subclass on failure and the pipeline stops at the first
one; cache saves are the only step whose failure is tolerated.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from turnip_builder.builds.runner import BuildResult, run_build
from turnip_builder.deps import ensure_dependencies, remediate_python_tools, required_tools
from turnip_builder.package.service import PackageResult, package_pass
from turnip_builder.source.patches import resolve_patch_list
from turnip_builder.source.schema import BuildContext, PatchSpec
from turnip_builder.source.service import (
    prepare_patched,
    prepare_unpatched,
    prepare_workdir,
)
from turnip_builder.toolchain.cache import CacheManager
from turnip_builder.toolchain.service import ToolchainResult, ensure_ndk
from turnip_builder.types import PassKind, TargetArch

if TYPE_CHECKING:
    from turnip_builder.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class PassResult:
    """Outputs of one pass."""

    kind: PassKind
    context: BuildContext
    build: BuildResult
    package: PackageResult


@dataclass
class PipelineResult:
    """Outputs of a full run."""

    workdir: Path
    toolchain: ToolchainResult | None = None
    patches: list[PatchSpec] = field(default_factory=list)
    passes: list[PassResult] = field(default_factory=list)

    @property
    def archives(self) -> list[Path]:
        """Archives produced, in pass order."""
        return [p.package.archive_path for p in self.passes]


def check_environment(
    settings: Settings,
    which: Callable[[str], str | None] = shutil.which,
) -> None:
    """Remediate and verify host tools.

    Raises:
        MissingDependencyError: If a required tool is missing.
    """
    if settings.remediate_dependencies:
        remediate_python_tools(which=which)
    ensure_dependencies(required_tools(settings.use_ccache), which=which)


def run_pass(
    kind: PassKind,
    settings: Settings,
    client: httpx.Client,
    cache: CacheManager,
    patches: list[PatchSpec],
    previous: BuildContext | None = None,
    now: datetime | None = None,
    retry_backoff: float = 1.0,
) -> tuple[PassResult, ToolchainResult]:
    """Run one prepare -> build -> package cycle.

    Args:
        kind: Which pass to run.
        settings: Application settings.
        client: HTTPX client for downloads.
        cache: Toolchain cache manager.
        patches: Patch set (used by the patched pass only).
        previous: Context of the unpatched pass (required for the patched pass).
        now: Build time for names and metadata.
        retry_backoff: Initial delay between patch download attempts.

    Returns:
        Tuple of (PassResult, ToolchainResult).

    Raises:
        StageError: If any stage fails.
    """
    logger.info("Starting %s pass", kind.value)
    prepare_workdir(settings.workdir)
    toolchain = ensure_ndk(settings, client=client, cache=cache)

    if kind is PassKind.UNPATCHED:
        context = prepare_unpatched(settings)
    else:
        if previous is None:
            raise ValueError("The patched pass needs the unpatched pass's context")
        context = prepare_patched(
            settings,
            previous,
            patches,
            client=client,
            retry_backoff=retry_backoff,
        )

    build = run_build(
        checkout=context.checkout_dir,
        workdir=context.workdir_path,
        ndk_bin=toolchain.bin_dir,
        arch=TargetArch(settings.target_arch),
        sdk_version=settings.sdk_version,
        use_ccache=settings.use_ccache,
        timeout=settings.build_timeout,
    )
    package = package_pass(
        context,
        build.artifact_path,
        now=now,
        min_api=settings.min_api,
    )
    return PassResult(kind=kind, context=context, build=build, package=package), toolchain


def run_all(
    settings: Settings,
    client: httpx.Client | None = None,
    cache: CacheManager | None = None,
    which: Callable[[str], str | None] = shutil.which,
    now: datetime | None = None,
    retry_backoff: float = 1.0,
) -> PipelineResult:
    """Run the full pipeline.

    Args:
        settings: Application settings.
        client: Optional HTTPX client (one is created if not provided).
        cache: Optional cache manager (derived from settings if not provided).
        which: Tool lookup function for the dependency check.
        now: Build time for names and metadata.
        retry_backoff: Initial delay between patch download attempts.

    Returns:
        PipelineResult with one entry per completed pass.

    Raises:
        StageError: If any stage fails.
    """
    check_environment(settings, which=which)
    patches = resolve_patch_list(settings)

    if cache is None:
        cache = CacheManager.from_environment(
            settings.github_workspace, settings.github_action_path
        )

    result = PipelineResult(workdir=settings.workdir, patches=patches)
    own_client = client is None
    if client is None:
        client = httpx.Client(follow_redirects=True)
    try:
        unpatched, toolchain = run_pass(
            PassKind.UNPATCHED,
            settings,
            client,
            cache,
            patches,
            now=now,
            retry_backoff=retry_backoff,
        )
        result.toolchain = toolchain
        result.passes.append(unpatched)

        if patches:
            patched, _ = run_pass(
                PassKind.PATCHED,
                settings,
                client,
                cache,
                patches,
                previous=unpatched.context,
                now=now,
                retry_backoff=retry_backoff,
            )
            result.passes.append(patched)
        else:
            logger.info("No patches configured; skipping patched pass")
    finally:
        if own_client:
            client.close()

    return result


__all__ = [
    "PassResult",
    "PipelineResult",
    "check_environment",
    "run_all",
    "run_pass",
]
