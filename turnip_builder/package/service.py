"""Packaging service.

Turns the compiled driver into an Adrenotools package:
1. Retag the library's soname with patchelf and rename it
2. Recreate the package directory with meta.json and the library
3. Zip the package directory into the workdir root
4. Write the release sidecar files
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from turnip_builder.package.release import (
    ReleaseNotes,
    SidecarPaths,
    build_release_notes,
    write_release_notes,
)
from turnip_builder.package.schema import (
    DEFAULT_MIN_API,
    LIBRARY_FILENAME,
    METADATA_FILENAME,
    TARGET_SONAME,
    ArtifactMetadata,
    build_metadata,
)
from turnip_builder.source.schema import BuildContext
from turnip_builder.types import StageError

logger = logging.getLogger(__name__)

PACKAGE_DIRNAME = "turnip_module"
ARCHIVE_DATE_FORMAT = "%b-%d-%Y"


class ArtifactMissingError(StageError):
    """Raised when the compiled library is not where the build left it."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Build failed! Missing artifact: {path}", code="artifact_missing")
        self.path = path


class PackagingError(StageError):
    """Raised when a packaging step fails."""

    def __init__(self, message: str, code: str = "packaging_error") -> None:
        super().__init__(message, code=code)


@dataclass
class PackageResult:
    """Outputs of one packaging pass."""

    archive_path: Path
    package_dir: Path
    library_path: Path
    metadata: ArtifactMetadata
    notes: ReleaseNotes
    sidecars: SidecarPaths


def archive_stem(context: BuildContext, now: datetime) -> str:
    """Archive name without extension: turnip_<date>_<short><suffix>."""
    date = now.strftime(ARCHIVE_DATE_FORMAT)
    return f"turnip_{date}_{context.source_commit_short}{context.patched_suffix}"


def _run_tool(cmd: list[str], cwd: Path, code: str) -> None:
    """Run an external packaging tool, raising PackagingError on failure."""
    logger.debug("Running %s in %s", " ".join(cmd), cwd)
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        raise PackagingError(f"Failed to run {cmd[0]}: {e}", code=code) from e
    if result.returncode != 0:
        raise PackagingError(
            f"{cmd[0]} exited with {result.returncode}: {result.stderr.strip()}",
            code=code,
        )


def port_library(artifact_path: Path, workdir: Path) -> Path:
    """Copy the built library to the workdir, retag its soname and rename it.

    Args:
        artifact_path: Library produced by the build.
        workdir: Workdir root.

    Returns:
        Path of the renamed library.

    Raises:
        ArtifactMissingError: If the library is absent before or after renaming.
        PackagingError: If patchelf fails.
    """
    if not artifact_path.is_file():
        raise ArtifactMissingError(artifact_path)

    logger.info("Using patchelf to match soname ...")
    working_copy = workdir / artifact_path.name
    shutil.copy2(artifact_path, working_copy)
    _run_tool(
        ["patchelf", "--set-soname", TARGET_SONAME, working_copy.name],
        cwd=workdir,
        code="patchelf_failed",
    )

    library = workdir / LIBRARY_FILENAME
    working_copy.replace(library)
    if not library.is_file():
        raise ArtifactMissingError(library)
    return library


def create_archive(package_dir: Path, archive_path: Path) -> Path:
    """Zip the package directory contents with paths relative to it.

    Args:
        package_dir: Directory to archive.
        archive_path: Output zip path.

    Returns:
        The archive path.

    Raises:
        PackagingError: If zip fails.
    """
    logger.info("Packing files in to adrenotool package ...")
    archive_path.unlink(missing_ok=True)
    _run_tool(["zip", "-r", str(archive_path), "."], cwd=package_dir, code="zip_failed")
    return archive_path


def package_pass(
    context: BuildContext,
    artifact_path: Path,
    now: datetime | None = None,
    min_api: int = DEFAULT_MIN_API,
) -> PackageResult:
    """Package the build output of one pass.

    Args:
        context: Build context of the pass.
        artifact_path: Library produced by the build.
        now: Build time (defaults to the current local time).
        min_api: Minimum Android API level for meta.json.

    Returns:
        PackageResult describing the archive and sidecars.

    Raises:
        ArtifactMissingError: If the compiled library is missing.
        PackagingError: If an external tool fails or the archive is missing.
    """
    if now is None:
        now = datetime.now()
    workdir = context.workdir_path

    library = port_library(artifact_path, workdir)

    package_dir = workdir / PACKAGE_DIRNAME
    if package_dir.exists():
        shutil.rmtree(package_dir)
    package_dir.mkdir(parents=True)

    metadata = build_metadata(context, now, min_api=min_api)
    (package_dir / METADATA_FILENAME).write_text(metadata.to_json(), encoding="utf-8")

    logger.info("Copy necessary files from work directory ...")
    shutil.copy2(library, package_dir / LIBRARY_FILENAME)

    stem = archive_stem(context, now)
    archive_path = create_archive(package_dir, workdir / f"{stem}.zip")

    notes = build_release_notes(context, stem, now)
    sidecars = write_release_notes(notes, workdir)

    if not archive_path.is_file():
        raise PackagingError(
            f"Packing failed! {archive_path} was not created",
            code="archive_missing",
        )

    logger.info("Package ready: %s", archive_path)
    return PackageResult(
        archive_path=archive_path,
        package_dir=package_dir,
        library_path=library,
        metadata=metadata,
        notes=notes,
        sidecars=sidecars,
    )


__all__ = [
    "ARCHIVE_DATE_FORMAT",
    "PACKAGE_DIRNAME",
    "ArtifactMissingError",
    "PackageResult",
    "PackagingError",
    "archive_stem",
    "create_archive",
    "package_pass",
    "port_library",
]
