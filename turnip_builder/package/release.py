"""Release sidecar files written next to the package archive.

The CI release step reads these plain-text files from the workdir root:
release (title), tag, filename, description and patched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from turnip_builder.package.schema import DISPLAY_DATE_FORMAT
from turnip_builder.source.schema import BuildContext

logger = logging.getLogger(__name__)

COMMIT_URL_BASE = "https://gitlab.freedesktop.org/mesa/mesa/-/commit"


@dataclass(frozen=True)
class ReleaseNotes:
    """Contents of the release sidecar files."""

    release: str
    tag: str
    filename: str
    description: str
    patched: bool


@dataclass(frozen=True)
class SidecarPaths:
    """Where the sidecar files were written."""

    release: Path
    tag: Path
    filename: Path
    description: Path
    patched: Path


def render_description(
    context: BuildContext,
    commit_url_base: str = COMMIT_URL_BASE,
) -> str:
    """Render the release description.

    The commit link is followed by a 'Patches' header and either
    'No patch' or one '- <descriptor>' line per applied patch.
    """
    lines = [f"{commit_url_base.rstrip('/')}/{context.source_commit_short}", "Patches"]
    if context.applied_patches:
        lines.extend(f"- {patch.descriptor}" for patch in context.applied_patches)
    else:
        lines.append("No patch")
    return "\n".join(lines) + "\n"


def build_release_notes(
    context: BuildContext,
    archive_stem: str,
    now: datetime,
    commit_url_base: str = COMMIT_URL_BASE,
) -> ReleaseNotes:
    """Collect the sidecar contents for a pass.

    Args:
        context: Build context of the pass.
        archive_stem: Archive file name without '.zip'.
        now: Build time.
        commit_url_base: Base URL for commit links.

    Returns:
        ReleaseNotes instance.
    """
    date = now.strftime(DISPLAY_DATE_FORMAT)
    return ReleaseNotes(
        release=f"Turnip - {context.source_version} - {date}",
        tag=f"{context.source_version}_{context.source_commit_short}",
        filename=archive_stem,
        description=render_description(context, commit_url_base),
        patched=bool(context.applied_patches),
    )


def write_release_notes(notes: ReleaseNotes, directory: Path) -> SidecarPaths:
    """Write sidecar files, replacing any from a previous pass.

    Args:
        notes: Sidecar contents.
        directory: Output directory (the workdir root).

    Returns:
        SidecarPaths of the written files.
    """
    paths = SidecarPaths(
        release=directory / "release",
        tag=directory / "tag",
        filename=directory / "filename",
        description=directory / "description",
        patched=directory / "patched",
    )
    paths.release.write_text(notes.release + "\n", encoding="utf-8")
    paths.tag.write_text(notes.tag + "\n", encoding="utf-8")
    paths.filename.write_text(notes.filename + "\n", encoding="utf-8")
    paths.description.write_text(notes.description, encoding="utf-8")
    paths.patched.write_text(("true" if notes.patched else "false") + "\n", encoding="utf-8")
    logger.debug("Wrote release sidecars to %s", directory)
    return paths


__all__ = [
    "COMMIT_URL_BASE",
    "ReleaseNotes",
    "SidecarPaths",
    "build_release_notes",
    "render_description",
    "write_release_notes",
]
