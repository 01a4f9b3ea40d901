"""Driver packaging module.

This module handles:
- Retagging and renaming the compiled library
- meta.json generation
- Zip archive and release sidecar files
"""

from turnip_builder.package.schema import ArtifactMetadata
from turnip_builder.package.service import (
    ArtifactMissingError,
    PackageResult,
    PackagingError,
    package_pass,
)

__all__ = [
    "ArtifactMetadata",
    "ArtifactMissingError",
    "PackageResult",
    "PackagingError",
    "package_pass",
]
