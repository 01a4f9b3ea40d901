"""Turnip Builder - Android build automation for the Mesa Turnip driver.

This package clones Mesa, applies a curated patch set, cross-compiles the
freedreno Vulkan driver with the Android NDK and repackages the result as
an Adrenotools driver package.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
