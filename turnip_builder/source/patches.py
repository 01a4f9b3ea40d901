"""Patch set loading, download and application.

This module handles:
- Loading patch sets from YAML/JSON files or descriptor lists
- Building the effective ordered patch list (experimental first)
- Downloading patch files with a bounded retry budget
- Applying patches to the checkout with `git apply`
"""

from __future__ import annotations

import json
import logging
import shlex
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx
import yaml

from turnip_builder.source.git import GitError, apply_patch
from turnip_builder.source.schema import PatchSetSchema, PatchSpec
from turnip_builder.types import StageError

if TYPE_CHECKING:
    from turnip_builder.config import Settings

logger = logging.getLogger(__name__)

# Timeout for a single patch request (seconds)
PATCH_TIMEOUT = 120

# Status codes worth retrying (same set curl --retry treats as transient)
RETRYABLE_STATUS = frozenset({408, 429, 500, 502, 503, 504})


class PatchError(StageError):
    """Raised when a patch cannot be loaded, downloaded or applied."""

    def __init__(
        self,
        message: str,
        patch: PatchSpec | None = None,
        code: str = "patch_error",
    ) -> None:
        super().__init__(message, code=code)
        self.patch = patch


def load_patch_set(path: Path) -> PatchSetSchema:
    """Load and validate a patch set file.

    YAML is used for .yaml/.yml files, JSON otherwise.

    Args:
        path: Path to the patch set file.

    Returns:
        Validated PatchSetSchema.

    Raises:
        PatchError: If the file cannot be read or does not validate.
    """
    try:
        with open(path, encoding="utf-8") as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                data: Any = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise PatchError(f"Cannot load patch set {path}: {e}", code="patch_set_invalid") from e

    if data is None:
        data = {}
    if isinstance(data, list):
        data = {"patches": data}
    if not isinstance(data, dict):
        raise PatchError(
            f"Expected a mapping or list in {path}, got {type(data).__name__}",
            code="patch_set_invalid",
        )

    try:
        return PatchSetSchema.model_validate(data)
    except ValueError as e:
        raise PatchError(f"Invalid patch set {path}: {e}", code="patch_set_invalid") from e


def parse_descriptors(descriptors: list[str]) -> list[PatchSpec]:
    """Parse descriptor strings, preserving order."""
    try:
        return [PatchSpec.from_descriptor(d) for d in descriptors if d.strip()]
    except ValueError as e:
        raise PatchError(str(e), code="patch_set_invalid") from e


def resolve_patch_list(settings: Settings) -> list[PatchSpec]:
    """Build the ordered patch list for the patched pass.

    Experimental patches are prepended to the configured patches. A
    patches_file, when set, replaces both settings lists.

    Args:
        settings: Application settings.

    Returns:
        Ordered list of patches to apply.
    """
    if settings.patches_file is not None:
        patch_set = load_patch_set(settings.patches_file)
        experimental = list(patch_set.experimental_patches)
        configured = list(patch_set.patches)
    else:
        experimental = parse_descriptors(settings.experimental_patches)
        configured = parse_descriptors(settings.patches)

    if experimental:
        logger.info("Prepending %d experimental patch(es)", len(experimental))
    else:
        logger.info("No experimental patches found")
    return experimental + configured


def download_patch(
    client: httpx.Client,
    patch: PatchSpec,
    dest_dir: Path,
    base_url: str,
    attempts: int = 5,
    backoff: float = 1.0,
    timeout: float = PATCH_TIMEOUT,
) -> Path:
    """Download one patch file.

    Args:
        client: HTTPX client instance.
        patch: Patch to download.
        dest_dir: Directory for the patch file.
        base_url: Base URL the patch source is appended to.
        attempts: Total attempts before giving up.
        backoff: Initial delay between attempts in seconds (doubles).
        timeout: Request timeout in seconds.

    Returns:
        Path to the downloaded patch file.

    Raises:
        PatchError: If every attempt fails.
    """
    url = patch.url(base_url)
    dest_path = dest_dir / patch.file_name
    dest_dir.mkdir(parents=True, exist_ok=True)

    delay = backoff
    last_error = ""
    for attempt in range(1, attempts + 1):
        try:
            response = client.get(url, timeout=timeout)
            if response.status_code in RETRYABLE_STATUS:
                last_error = f"HTTP {response.status_code}"
            else:
                response.raise_for_status()
                dest_path.write_bytes(response.content)
                logger.debug("Downloaded %s (%d bytes)", url, len(response.content))
                return dest_path
        except httpx.HTTPStatusError as e:
            raise PatchError(
                f"HTTP error downloading {url}: {e.response.status_code}",
                patch=patch,
                code="http_error",
            ) from e
        except httpx.RequestError as e:
            last_error = str(e) or type(e).__name__

        if attempt < attempts:
            logger.warning(
                "Download of %s failed (%s), retry %d/%d",
                url,
                last_error,
                attempt,
                attempts - 1,
            )
            if delay > 0:
                time.sleep(delay)
                delay *= 2

    raise PatchError(
        f"Failed to download {url} after {attempts} attempts: {last_error}",
        patch=patch,
        code="download_error",
    )


def apply_patches(
    checkout: Path,
    patches: list[PatchSpec],
    client: httpx.Client,
    patch_dir: Path,
    base_url: str,
    attempts: int = 5,
    backoff: float = 1.0,
) -> list[PatchSpec]:
    """Download and apply patches in order.

    Stops at the first failure.

    Args:
        checkout: Mesa checkout.
        patches: Ordered patches.
        client: HTTPX client instance.
        patch_dir: Directory receiving downloaded patch files.
        base_url: Base URL for patch sources.
        attempts: Download attempts per patch.
        backoff: Initial retry delay in seconds.

    Returns:
        The applied patches, in order.

    Raises:
        PatchError: If a download or apply fails.
    """
    applied: list[PatchSpec] = []
    for patch in patches:
        logger.info("- %s", patch.descriptor)
        patch_file = download_patch(
            client,
            patch,
            patch_dir,
            base_url,
            attempts=attempts,
            backoff=backoff,
        )
        try:
            apply_patch(checkout, patch_file, shlex.split(patch.args))
        except GitError as e:
            raise PatchError(
                f"Failed to apply {patch.name}: {e}",
                patch=patch,
                code="apply_failed",
            ) from e
        applied.append(patch)
    return applied


__all__ = [
    "PATCH_TIMEOUT",
    "RETRYABLE_STATUS",
    "PatchError",
    "apply_patches",
    "download_patch",
    "load_patch_set",
    "parse_descriptors",
    "resolve_patch_list",
]
