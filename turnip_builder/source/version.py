"""Version discovery from a Mesa source tree.

The Mesa version comes from the top-level VERSION file. The Vulkan API
version comes from the vendored vulkan_core.h: major and minor from the
VK_HEADER_VERSION_COMPLETE macro and the patch level from
VK_HEADER_VERSION.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from turnip_builder.types import StageError

VERSION_FILE = Path("VERSION")
VULKAN_HEADER = Path("include") / "vulkan" / "vulkan_core.h"

# #define VK_HEADER_VERSION_COMPLETE VK_MAKE_API_VERSION(0, 1, 3, VK_HEADER_VERSION)
COMPLETE_VERSION_PATTERN = re.compile(
    r"#define\s+VK_HEADER_VERSION_COMPLETE\s+VK_MAKE_API_VERSION\(\s*"
    r"(?P<variant>\d+)\s*,\s*(?P<major>\d+)\s*,\s*(?P<minor>\d+)\s*,"
)
# #define VK_HEADER_VERSION 279
HEADER_VERSION_PATTERN = re.compile(
    r"^#define\s+VK_HEADER_VERSION\s+(?P<patch>\d+)\s*$",
    re.MULTILINE,
)


class VersionParseError(StageError):
    """Raised when version markers cannot be found."""

    def __init__(self, message: str, code: str = "version_parse_error") -> None:
        super().__init__(message, code=code)


@dataclass(frozen=True)
class VulkanVersion:
    """Vulkan API version declared by the vendored headers."""

    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def parse_vulkan_header(content: str) -> VulkanVersion:
    """Parse the Vulkan version from vulkan_core.h contents.

    Args:
        content: Header text.

    Returns:
        VulkanVersion.

    Raises:
        VersionParseError: If either marker is missing.
    """
    complete = COMPLETE_VERSION_PATTERN.search(content)
    if complete is None:
        raise VersionParseError("VK_HEADER_VERSION_COMPLETE not found in Vulkan header")
    header = HEADER_VERSION_PATTERN.search(content)
    if header is None:
        raise VersionParseError("VK_HEADER_VERSION not found in Vulkan header")
    return VulkanVersion(
        major=int(complete.group("major")),
        minor=int(complete.group("minor")),
        patch=int(header.group("patch")),
    )


def read_source_version(checkout: Path) -> str:
    """Read the Mesa version string from the VERSION file."""
    path = checkout / VERSION_FILE
    try:
        version = path.read_text(encoding="utf-8").strip()
    except OSError as e:
        raise VersionParseError(f"Cannot read {path}: {e}") from e
    if not version:
        raise VersionParseError(f"{path} is empty")
    return version


def read_vulkan_version(checkout: Path) -> VulkanVersion:
    """Read the Vulkan version from the vendored header."""
    path = checkout / VULKAN_HEADER
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise VersionParseError(f"Cannot read {path}: {e}") from e
    return parse_vulkan_header(content)


__all__ = [
    "VULKAN_HEADER",
    "VERSION_FILE",
    "VersionParseError",
    "VulkanVersion",
    "parse_vulkan_header",
    "read_source_version",
    "read_vulkan_version",
]
