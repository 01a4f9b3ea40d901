"""Shared fixtures for turnip_builder tests."""

from pathlib import Path

import pytest

from turnip_builder.config import Settings

# CI variables read under their own names; tests must not inherit them
CI_ENV_VARS = ("ANDROID_NDK_LATEST_HOME", "GITHUB_WORKSPACE", "GITHUB_ACTION_PATH")

VULKAN_HEADER_TEXT = """\
#define VK_API_VERSION_1_3 VK_MAKE_API_VERSION(0, 1, 3, 0)// Patch version should always be set to 0

// Version of this file
#define VK_HEADER_VERSION 279

// Complete version of this file
#define VK_HEADER_VERSION_COMPLETE VK_MAKE_API_VERSION(0, 1, 3, VK_HEADER_VERSION)
"""


@pytest.fixture(autouse=True)
def isolate_ci_env(monkeypatch):
    """Clear CI-provided variables for every test."""
    for name in CI_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings rooted in a temporary workdir with remote features off."""
    return Settings(
        workdir=tmp_path / "turnip_workdir",
        remediate_dependencies=False,
        github_workspace=None,
        android_ndk_home=None,
    )


def make_mesa_checkout(checkout: Path, version: str = "24.1.0-devel") -> Path:
    """Create the files version discovery reads from a Mesa checkout."""
    header = checkout / "include" / "vulkan" / "vulkan_core.h"
    header.parent.mkdir(parents=True, exist_ok=True)
    header.write_text(VULKAN_HEADER_TEXT)
    (checkout / "VERSION").write_text(f"{version}\n")
    return checkout


@pytest.fixture
def make_checkout():
    """Factory creating a minimal Mesa checkout."""
    return make_mesa_checkout


@pytest.fixture
def vulkan_header_text() -> str:
    """vulkan_core.h excerpt declaring Vulkan 1.3.279."""
    return VULKAN_HEADER_TEXT


@pytest.fixture
def build_context(tmp_path):
    """Factory for BuildContext records rooted in a temporary workdir."""
    from turnip_builder.source.schema import BuildContext

    def factory(**overrides) -> BuildContext:
        values = {
            "source_commit_hash": "abcdef0123456789abcdef0123456789abcdef01",
            "source_commit_short": "abcdef0",
            "source_version": "24.1.0-devel",
            "target_api_version": "1.3.279",
            "workdir_path": tmp_path,
        }
        values.update(overrides)
        return BuildContext(**values)

    return factory
