"""
Build backends for cmkboot.
"""

from cmkboot.backends.cmake import (
    CMakeBuildOrchestrator,
    ToolchainSelection,
    build_directory,
    select_toolchain,
)

__all__ = [
    "CMakeBuildOrchestrator",
    "ToolchainSelection",
    "build_directory",
    "select_toolchain",
]
