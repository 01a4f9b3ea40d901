"""Configuration settings for turnip_builder.

Uses pydantic-settings for config parsing from environment variables
and defaults. A few CI-provided variables (NDK location, GitHub workspace)
are read under their well-known names instead of the TURNIP_ prefix.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Curated patch set, in apply order ("name;source;args")
DEFAULT_PATCHES: list[str] = [
    "Fix-dynamic-state-not-always-being-emitted;merge_requests/27961;",
    "visual-issues;merge_requests/27969;",
    "visual-issues-in-some-games-a7xx;commit/9de628b65ca36b920dc6181251b33c436cad1b68;--reverse",
    "8gen3-fix;merge_requests/27912;",
    "mem-leaks-tu-shader;merge_requests/27847;",
]


def _default_workdir() -> Path:
    """Return the default work directory."""
    return Path.cwd() / "turnip_workdir"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the TURNIP_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="TURNIP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
        env_ignore_empty=True,
    )

    # Paths
    workdir: Path = Field(
        default_factory=_default_workdir,
        description="Root directory for all transient and output state",
    )
    patches_file: Path | None = Field(
        default=None,
        description="Optional YAML file replacing the configured patch list",
    )

    # Toolchain
    ndk_version: str = Field(
        default="android-ndk-r26c",
        description="Android NDK release, also used as the cache key",
    )
    ndk_download_base: str = Field(
        default="https://dl.google.com/android/repository",
        description="Base URL for NDK archives",
    )
    sdk_version: int = Field(
        default=31,
        ge=21,
        description="Android platform SDK version to target",
    )
    target_arch: Literal["aarch64", "arm"] = Field(
        default="aarch64",
        description="Target architecture for the cross build",
    )
    use_ccache: bool = Field(
        default=True,
        description="Wrap the NDK compilers with ccache",
    )

    # Source
    mesa_repo: str = Field(
        default="https://gitlab.freedesktop.org/mesa/mesa.git",
        description="Upstream Mesa repository",
    )
    mesa_branch: str = Field(
        default="main",
        description="Upstream branch tracked for patched-pass syncs",
    )
    patch_base_url: str = Field(
        default="https://gitlab.freedesktop.org/mesa/mesa/-",
        description="Base URL that patch sources are appended to",
    )
    patches: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PATCHES),
        description="Patch descriptors applied on the patched pass",
    )
    experimental_patches: list[str] = Field(
        default_factory=list,
        description="Patch descriptors prepended to the patch list",
    )

    # Packaging
    min_api: int = Field(
        default=27,
        ge=1,
        description="Minimum Android API level declared in meta.json",
    )

    # Operational
    remediate_dependencies: bool = Field(
        default=True,
        description="Try to install meson and mako with pip before checking tools",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Timeouts (in seconds) and retries
    download_timeout: int = Field(
        default=3600,
        ge=60,
        description="Timeout for NDK and patch downloads",
    )
    build_timeout: int | None = Field(
        default=None,
        description="Timeout for meson and ninja (no timeout if not set)",
    )
    patch_download_retries: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Attempts per patch download",
    )

    # CI environment
    android_ndk_home: Path | None = Field(
        default=None,
        validation_alias="ANDROID_NDK_LATEST_HOME",
        description="Pre-provisioned NDK (skips download and cache)",
    )
    github_workspace: Path | None = Field(
        default=None,
        validation_alias="GITHUB_WORKSPACE",
        description="Set on GitHub runners; enables the remote cache backend",
    )
    github_action_path: Path = Field(
        default=Path("/opt/hostedtoolcache"),
        validation_alias="GITHUB_ACTION_PATH",
        description="Directory holding the cache helper scripts",
    )

    @property
    def checkout_dir(self) -> Path:
        """Mesa checkout inside the workdir."""
        return self.workdir / "mesa"

    @property
    def package_dir(self) -> Path:
        """Package directory used as the zip root."""
        return self.workdir / "turnip_module"


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["DEFAULT_PATCHES", "Settings", "get_settings", "print_settings_json"]
