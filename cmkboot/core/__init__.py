"""
Core functionality for cmkboot.

This package contains the foundational modules that other components depend on.
"""

from .platform import (
    PlatformInfo,
    detect_platform,
    clear_platform_cache,
)

from .environment import SearchPath

from .exceptions import (
    CmkBootError,
    InputError,
    ConfigError,
    UnsupportedPlatform,
    NetworkError,
    FilesystemError,
    ArchiveError,
    UnsupportedArchiveFormat,
    InsecureArchiveError,
    RegistryError,
    ToolNotRegisteredError,
    ProvisionError,
    BuildError,
    ToolNotFoundError,
    SubprocessFailure,
)

__all__ = [
    "PlatformInfo",
    "detect_platform",
    "clear_platform_cache",
    "SearchPath",
    "CmkBootError",
    "InputError",
    "ConfigError",
    "UnsupportedPlatform",
    "NetworkError",
    "FilesystemError",
    "ArchiveError",
    "UnsupportedArchiveFormat",
    "InsecureArchiveError",
    "RegistryError",
    "ToolNotRegisteredError",
    "ProvisionError",
    "BuildError",
    "ToolNotFoundError",
    "SubprocessFailure",
]
