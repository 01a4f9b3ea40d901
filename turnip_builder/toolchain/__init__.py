"""Android NDK provisioning.

This module handles:
- Keyed toolchain caching on GitHub runners
- NDK download and extraction
- Resolving the NDK used by the cross build
"""

from turnip_builder.toolchain.cache import CacheEntry, CacheManager
from turnip_builder.toolchain.service import ToolchainResult, ensure_ndk

__all__ = ["CacheEntry", "CacheManager", "ToolchainResult", "ensure_ndk"]
