"""Adrenotools package metadata.

ArtifactMetadata is serialized by alias to the meta.json file that driver
loaders read from the package root.
"""

import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from turnip_builder.source.schema import BuildContext

METADATA_FILENAME = "meta.json"
LIBRARY_FILENAME = "vulkan.ad07XX.so"
TARGET_SONAME = "vulkan.adreno.so"
SCHEMA_VERSION = 1
DEFAULT_MIN_API = 27

DISPLAY_DATE_FORMAT = "%b %d, %Y"

# <mesa version>/vk<major>.<minor>.<patch>
DRIVER_VERSION_PATTERN = re.compile(r"^\S+/vk\d+\.\d+\.\d+$")


class ArtifactMetadata(BaseModel):
    """meta.json contents.

    Attributes:
        schema_version: Package schema version.
        name: Display name embedding date, short hash and patched suffix.
        description: One-line description.
        author: Driver author.
        package_version: Package revision.
        vendor: Driver vendor.
        driver_version: '<mesa version>/vk<vulkan version>'.
        min_api: Minimum Android API level.
        library_name: Library file inside the package.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    schema_version: int = Field(default=SCHEMA_VERSION, alias="schemaVersion")
    name: str = Field(min_length=1)
    description: str
    author: str = "mesa"
    package_version: str = Field(default="1", alias="packageVersion")
    vendor: str = "Mesa"
    driver_version: str = Field(alias="driverVersion")
    min_api: int = Field(default=DEFAULT_MIN_API, ge=1, alias="minApi")
    library_name: str = Field(default=LIBRARY_FILENAME, alias="libraryName")

    @field_validator("driver_version")
    @classmethod
    def validate_driver_version(cls, v: str) -> str:
        """Validate driver version is '<version>/vk<x.y.z>'."""
        if not DRIVER_VERSION_PATTERN.match(v):
            raise ValueError(
                f"driverVersion must look like '<version>/vk<major>.<minor>.<patch>', got '{v}'"
            )
        return v

    @field_validator("library_name")
    @classmethod
    def validate_library_name(cls, v: str) -> str:
        """Validate the library is a bare .so file name."""
        if "/" in v or not v.endswith(".so"):
            raise ValueError(f"libraryName must be a .so file name, got '{v}'")
        return v

    def to_json(self) -> str:
        """Serialize with the package's camelCase keys."""
        return self.model_dump_json(by_alias=True, indent=2) + "\n"


def build_metadata(
    context: BuildContext,
    now: datetime,
    min_api: int = DEFAULT_MIN_API,
) -> ArtifactMetadata:
    """Create the metadata record for a pass.

    Args:
        context: Build context of the pass.
        now: Build time used for the display date.
        min_api: Minimum Android API level.

    Returns:
        ArtifactMetadata instance.
    """
    date = now.strftime(DISPLAY_DATE_FORMAT)
    label = f"{context.source_commit_short}{context.patched_suffix}"
    return ArtifactMetadata(
        name=f"Turnip - {date} - {label}",
        description=f"Compiled from Mesa, Commit {label}",
        driver_version=context.driver_version,
        min_api=min_api,
    )


__all__ = [
    "DEFAULT_MIN_API",
    "DISPLAY_DATE_FORMAT",
    "LIBRARY_FILENAME",
    "METADATA_FILENAME",
    "SCHEMA_VERSION",
    "TARGET_SONAME",
    "ArtifactMetadata",
    "build_metadata",
]
