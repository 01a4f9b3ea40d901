"""Shared type definitions for turnip_builder.

This module contains enums, dataclasses and the base error type shared
across subpackages to avoid circular imports.
"""

from dataclasses import dataclass
from enum import Enum


class StageError(Exception):
    """Base error for a pipeline stage.

    Every stage raises a subclass carrying a stable ``code`` so the
    orchestrator and CLI can report failures without parsing messages.
    """

    def __init__(self, message: str, code: str = "stage_error") -> None:
        super().__init__(message)
        self.code = code


class PassKind(str, Enum):
    """Kind of orchestration pass."""

    UNPATCHED = "unpatched"
    PATCHED = "patched"


class TargetArch(str, Enum):
    """Closed set of Android architectures the driver can be built for."""

    AARCH64 = "aarch64"
    ARM = "arm"

    @property
    def triple(self) -> str:
        """NDK compiler triple prefix (without API level)."""
        return _ARCH_INFO[self].triple

    @property
    def cpu_family(self) -> str:
        """Meson host_machine cpu_family."""
        return _ARCH_INFO[self].cpu_family

    @property
    def cpu(self) -> str:
        """Meson host_machine cpu."""
        return _ARCH_INFO[self].cpu


@dataclass(frozen=True)
class ArchInfo:
    """Toolchain naming for one target architecture."""

    triple: str
    cpu_family: str
    cpu: str


_ARCH_INFO: dict[TargetArch, ArchInfo] = {
    TargetArch.AARCH64: ArchInfo("aarch64-linux-android", "aarch64", "armv8"),
    TargetArch.ARM: ArchInfo("armv7a-linux-androideabi", "arm", "armv7"),
}


__all__ = [
    "ArchInfo",
    "PassKind",
    "StageError",
    "TargetArch",
]
