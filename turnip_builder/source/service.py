"""Workdir preparation service.

This module provides the per-pass source acquisition API:
- prepare_workdir(): create the workdir
- prepare_unpatched(): fresh shallow clone and version discovery
- prepare_patched(): upstream sync and patch application on the
  existing checkout

Both prepare functions return an immutable BuildContext.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from turnip_builder.source import git
from turnip_builder.source.patches import apply_patches
from turnip_builder.source.schema import BuildContext, PatchSpec
from turnip_builder.source.version import read_source_version, read_vulkan_version

if TYPE_CHECKING:
    from turnip_builder.config import Settings

logger = logging.getLogger(__name__)


def prepare_workdir(workdir: Path) -> Path:
    """Ensure the workdir exists.

    Args:
        workdir: Workdir root.

    Returns:
        The workdir path.
    """
    logger.info("Creating work directory %s", workdir)
    workdir.mkdir(parents=True, exist_ok=True)
    return workdir


def inspect_checkout(
    checkout: Path,
    workdir: Path,
    is_patched: bool = False,
    applied_patches: tuple[PatchSpec, ...] = (),
) -> BuildContext:
    """Read commit and version facts from a checkout.

    Args:
        checkout: Mesa checkout.
        workdir: Workdir root.
        is_patched: Whether the context describes a patched pass.
        applied_patches: Patches applied for this pass.

    Returns:
        BuildContext for the checkout.
    """
    commit = git.rev_parse(checkout)
    commit_short = git.rev_parse(checkout, short=True)
    source_version = read_source_version(checkout)
    vulkan_version = read_vulkan_version(checkout)

    logger.info(
        "Mesa %s at %s (Vulkan %s)", source_version, commit_short, vulkan_version
    )
    return BuildContext(
        source_commit_hash=commit,
        source_commit_short=commit_short,
        source_version=source_version,
        target_api_version=str(vulkan_version),
        workdir_path=workdir,
        is_patched=is_patched,
        applied_patches=applied_patches,
    )


def prepare_unpatched(settings: Settings) -> BuildContext:
    """Clone a fresh Mesa checkout for the unpatched pass.

    Any previous checkout is removed first.

    Args:
        settings: Application settings.

    Returns:
        BuildContext of the fresh checkout.

    Raises:
        GitError: If cloning or inspecting the checkout fails.
        VersionParseError: If version markers are missing.
    """
    workdir = prepare_workdir(settings.workdir)
    checkout = settings.checkout_dir

    if checkout.exists():
        logger.info("Removing old mesa checkout")
        shutil.rmtree(checkout)

    git.clone_shallow(settings.mesa_repo, checkout)
    return inspect_checkout(checkout, workdir)


def sync_upstream(checkout: Path, branch: str = "main") -> list[str]:
    """Merge upstream changes into the checkout if there are any.

    Args:
        checkout: Mesa checkout.
        branch: Upstream branch name.

    Returns:
        One-line log of the merged commits (empty if none).
    """
    git.fetch(checkout)
    changes = git.upstream_changes(checkout, branch=branch)
    if changes:
        logger.info("Upstream changes:")
        for line in changes:
            logger.info("  %s", line)
        logger.info("Applying upstream changes...")
        git.pull(checkout)
    else:
        logger.info("No upstream changes found.")
    return changes


def prepare_patched(
    settings: Settings,
    previous: BuildContext,
    patches: list[PatchSpec],
    client: httpx.Client | None = None,
    retry_backoff: float = 1.0,
) -> BuildContext:
    """Reuse the checkout, sync upstream and apply the patch set.

    If upstream advanced, the merged HEAD becomes this pass's recorded
    commit; otherwise the previous pass's facts are carried over.

    Args:
        settings: Application settings.
        previous: Context of the unpatched pass.
        patches: Ordered patches to apply.
        client: Optional HTTPX client (one is created if not provided).
        retry_backoff: Initial delay between patch download attempts.

    Returns:
        BuildContext for the patched pass.

    Raises:
        GitError: If fetching or merging fails.
        PatchError: If a patch cannot be downloaded or applied.
    """
    workdir = prepare_workdir(settings.workdir)
    checkout = settings.checkout_dir

    changes = sync_upstream(checkout, branch=settings.mesa_branch)
    base = previous
    if changes:
        base = inspect_checkout(checkout, workdir)
        if base.source_commit_hash != previous.source_commit_hash:
            logger.warning(
                "Patched pass builds %s, unpatched pass built %s",
                base.source_commit_short,
                previous.source_commit_short,
            )

    logger.info("Applying %d patch(es):", len(patches))
    own_client = client is None
    if client is None:
        client = httpx.Client(follow_redirects=True)
    try:
        applied = apply_patches(
            checkout,
            patches,
            client,
            patch_dir=workdir / "patches",
            base_url=settings.patch_base_url,
            attempts=settings.patch_download_retries,
            backoff=retry_backoff,
        )
    finally:
        if own_client:
            client.close()

    return base.model_copy(
        update={"is_patched": True, "applied_patches": tuple(applied)}
    )


__all__ = [
    "inspect_checkout",
    "prepare_patched",
    "prepare_unpatched",
    "prepare_workdir",
    "sync_upstream",
]
