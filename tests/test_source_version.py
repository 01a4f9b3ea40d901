"""Tests for source/version.py module."""

import pytest

from turnip_builder.source.version import (
    VersionParseError,
    VulkanVersion,
    parse_vulkan_header,
    read_source_version,
    read_vulkan_version,
)


class TestParseVulkanHeader:
    """Tests for parse_vulkan_header function."""

    def test_parses_version(self, vulkan_header_text):
        """Should combine major.minor with the header patch level."""
        assert parse_vulkan_header(vulkan_header_text) == VulkanVersion(1, 3, 279)
        assert str(parse_vulkan_header(vulkan_header_text)) == "1.3.279"

    def test_ignores_api_version_macros(self, vulkan_header_text):
        """VK_API_VERSION_* macros must not be mistaken for the header version."""
        text = vulkan_header_text.replace(
            "(0, 1, 3, VK_HEADER_VERSION)", "(0, 1, 4, VK_HEADER_VERSION)"
        )
        assert str(parse_vulkan_header(text)) == "1.4.279"

    def test_missing_complete_macro(self):
        """Should fail when VK_HEADER_VERSION_COMPLETE is absent."""
        with pytest.raises(VersionParseError):
            parse_vulkan_header("#define VK_HEADER_VERSION 279\n")

    def test_missing_header_version(self):
        """Should fail when VK_HEADER_VERSION is absent."""
        text = "#define VK_HEADER_VERSION_COMPLETE VK_MAKE_API_VERSION(0, 1, 3, VK_HEADER_VERSION)\n"
        with pytest.raises(VersionParseError):
            parse_vulkan_header(text)


class TestReadFromCheckout:
    """Tests for reading versions from a checkout."""

    def test_reads_versions(self, tmp_path, make_checkout):
        """Should read both the Mesa and Vulkan versions."""
        checkout = make_checkout(tmp_path / "mesa", version="24.2.0-devel")
        assert read_source_version(checkout) == "24.2.0-devel"
        assert str(read_vulkan_version(checkout)) == "1.3.279"

    def test_missing_version_file(self, tmp_path):
        """Should fail when VERSION is missing."""
        with pytest.raises(VersionParseError):
            read_source_version(tmp_path)

    def test_empty_version_file(self, tmp_path):
        """Should fail when VERSION is empty."""
        (tmp_path / "VERSION").write_text("\n")
        with pytest.raises(VersionParseError):
            read_source_version(tmp_path)

    def test_missing_header(self, tmp_path):
        """Should fail when the Vulkan header is missing."""
        with pytest.raises(VersionParseError):
            read_vulkan_version(tmp_path)
