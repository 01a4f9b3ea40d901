"""Mesa source acquisition.

This module handles:
- Shallow clones and upstream syncs of the Mesa repository
- Mesa and Vulkan version discovery
- Patch set loading, download and application
"""

from turnip_builder.source.schema import BuildContext, PatchSetSchema, PatchSpec

__all__ = ["BuildContext", "PatchSetSchema", "PatchSpec"]
