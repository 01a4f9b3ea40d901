"""Meson cross-file generation for Android NDK builds.

The cross file is modelled as a pydantic record and serialized to Meson's
machine-file syntax: INI sections whose values are Meson string or array
literals.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from turnip_builder.types import TargetArch

logger = logging.getLogger(__name__)

CXX_FLAGS = [
    "-fno-exceptions",
    "-fno-unwind-tables",
    "-fno-asynchronous-unwind-tables",
    "-static-libstdc++",
]

MesonValue = str | list[str]


class CrossBinaries(BaseModel):
    """[binaries] section."""

    model_config = ConfigDict(extra="forbid")

    ar: str
    c: list[str]
    cpp: list[str]
    c_ld: str = "lld"
    cpp_ld: str = "lld"
    strip: str
    pkgconfig: list[str] = Field(
        default_factory=lambda: [
            "env",
            "PKG_CONFIG_LIBDIR=NDKDIR/pkgconfig",
            "/usr/bin/pkg-config",
        ]
    )


class HostMachine(BaseModel):
    """[host_machine] section."""

    model_config = ConfigDict(extra="forbid")

    system: str = "android"
    cpu_family: str
    cpu: str
    endian: str = "little"


class CrossFile(BaseModel):
    """A complete Meson cross file."""

    model_config = ConfigDict(extra="forbid")

    binaries: CrossBinaries
    host_machine: HostMachine

    def render(self) -> str:
        """Serialize to Meson cross-file text."""
        lines: list[str] = []
        for section in ("binaries", "host_machine"):
            lines.append(f"[{section}]")
            values: dict[str, MesonValue] = getattr(self, section).model_dump()
            for key, value in values.items():
                lines.append(f"{key} = {meson_literal(value)}")
        return "\n".join(lines) + "\n"


def meson_literal(value: MesonValue) -> str:
    """Render a string or list of strings as a Meson literal."""
    if isinstance(value, list):
        return "[" + ", ".join(meson_literal(v) for v in value) + "]"
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def build_cross_file(
    arch: TargetArch,
    sdk_version: int,
    ndk_bin: Path,
    use_ccache: bool = True,
) -> CrossFile:
    """Build the cross-file record for an architecture.

    Args:
        arch: Target architecture.
        sdk_version: Android platform SDK version.
        ndk_bin: NDK LLVM bin directory.
        use_ccache: Prefix compilers with ccache.

    Returns:
        CrossFile instance.
    """
    wrapper = ["ccache"] if use_ccache else []
    compiler = ndk_bin / f"{arch.triple}{sdk_version}-clang"
    return CrossFile(
        binaries=CrossBinaries(
            ar=str(ndk_bin / "llvm-ar"),
            c=[*wrapper, str(compiler)],
            cpp=[*wrapper, f"{compiler}++", *CXX_FLAGS],
            strip=str(ndk_bin / "llvm-strip"),
        ),
        host_machine=HostMachine(cpu_family=arch.cpu_family, cpu=arch.cpu),
    )


def write_cross_file(cross_file: CrossFile, path: Path) -> Path:
    """Write a cross file to disk.

    Args:
        cross_file: CrossFile instance.
        path: Output path.

    Returns:
        The written path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(cross_file.render(), encoding="utf-8")
    logger.info("Wrote meson cross file %s", path)
    return path


__all__ = [
    "CXX_FLAGS",
    "CrossBinaries",
    "CrossFile",
    "HostMachine",
    "build_cross_file",
    "meson_literal",
    "write_cross_file",
]
