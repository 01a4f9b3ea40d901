"""Cross-build orchestration module.

This module handles:
- Meson cross-file generation from the NDK layout
- Running meson and ninja with logs captured to the workdir
"""

from turnip_builder.builds.runner import BuildExecutionError, BuildResult, run_build

__all__ = ["BuildExecutionError", "BuildResult", "run_build"]
