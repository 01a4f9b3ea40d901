"""Pydantic models for patch sets and per-pass build context.

PatchSpec mirrors the "name;source;args" descriptor strings used in
configuration and in the release description. BuildContext is the
immutable record threaded from source checkout through build and
packaging.
"""

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

# merge_requests/<id>, commit/<sha>, or any other gitlab path under /-/
PATCH_SOURCE_PATTERN = re.compile(r"^[A-Za-z0-9_\-]+/[A-Za-z0-9_.\-]+$")


class PatchSpec(BaseModel):
    """A single patch to apply on top of the Mesa checkout.

    Attributes:
        name: Human-readable patch name.
        source: GitLab reference (e.g., 'merge_requests/27961').
        args: Extra flags for `git apply` (e.g., '--reverse').
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(min_length=1, description="Patch name")
    source: str = Field(description="GitLab reference the patch is fetched from")
    args: str = Field(default="", description="Flags passed to git apply")

    @field_validator("name", "args", mode="before")
    @classmethod
    def strip_whitespace(cls, v: object) -> object:
        """Trim surrounding whitespace."""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("source", mode="before")
    @classmethod
    def validate_source(cls, v: object) -> object:
        """Validate source looks like '<kind>/<ref>'."""
        if not isinstance(v, str):
            return v
        v = v.strip()
        if not PATCH_SOURCE_PATTERN.match(v):
            raise ValueError(
                f"source must look like 'merge_requests/<id>' or 'commit/<sha>', got '{v}'"
            )
        return v

    @classmethod
    def from_descriptor(cls, descriptor: str) -> "PatchSpec":
        """Parse a 'name;source;args' descriptor.

        Args:
            descriptor: Descriptor string; args may be empty or omitted.

        Returns:
            PatchSpec instance.

        Raises:
            ValueError: If the descriptor has fewer than two fields.
        """
        parts = descriptor.split(";")
        if len(parts) < 2:
            raise ValueError(f"Invalid patch descriptor: '{descriptor}'")
        name, source = parts[0], parts[1]
        args = parts[2] if len(parts) > 2 else ""
        return cls(name=name, source=source, args=args)

    @property
    def descriptor(self) -> str:
        """Descriptor string, as listed in the release description."""
        return f"{self.name};{self.source};{self.args}"

    @property
    def file_name(self) -> str:
        """Local file name for the downloaded patch."""
        return f"{self.source.split('/', 1)[1]}.patch"

    def url(self, base_url: str) -> str:
        """Remote address of the patch file."""
        return f"{base_url.rstrip('/')}/{self.source}.patch"


class PatchSetSchema(BaseModel):
    """Patch set file contents (YAML or JSON).

    Entries may be descriptor strings or mappings with name/source/args.
    """

    model_config = ConfigDict(extra="forbid")

    patches: list[PatchSpec] = Field(default_factory=list)
    experimental_patches: list[PatchSpec] = Field(default_factory=list)

    @field_validator("patches", "experimental_patches", mode="before")
    @classmethod
    def parse_descriptors(cls, v: object) -> object:
        """Accept descriptor strings alongside mappings."""
        if v is None:
            return []
        if isinstance(v, list):
            return [
                PatchSpec.from_descriptor(item) if isinstance(item, str) else item
                for item in v
            ]
        return v


class BuildContext(BaseModel):
    """Immutable facts about the source tree for one pass.

    Attributes:
        source_commit_hash: Full HEAD commit of the checkout.
        source_commit_short: Abbreviated HEAD commit.
        source_version: Mesa version from the VERSION file.
        target_api_version: Vulkan header version (major.minor.patch).
        workdir_path: Workdir root.
        is_patched: Whether patches were applied for this pass.
        applied_patches: Patches applied, in order.
    """

    model_config = ConfigDict(frozen=True)

    source_commit_hash: str
    source_commit_short: str
    source_version: str
    target_api_version: str
    workdir_path: Path
    is_patched: bool = False
    applied_patches: tuple[PatchSpec, ...] = ()

    @property
    def checkout_dir(self) -> Path:
        """Mesa checkout for this context."""
        return self.workdir_path / "mesa"

    @property
    def patched_suffix(self) -> str:
        """Suffix appended to names produced by a patched pass."""
        return "_patched" if self.is_patched else ""

    @property
    def driver_version(self) -> str:
        """Driver version string declared in the package metadata."""
        return f"{self.source_version}/vk{self.target_api_version}"


__all__ = ["PATCH_SOURCE_PATTERN", "BuildContext", "PatchSetSchema", "PatchSpec"]
