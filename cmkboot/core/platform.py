"""
Host platform detection for cmkboot.

Detects the operating system and CPU architecture of the machine running the
bootstrapper. The result selects which tool downloads apply and which CMake
generator/compiler pair is used.

Usage:
    from cmkboot.core.platform import detect_platform

    info = detect_platform()
    print(info.platform_string())  # e.g. 'windows-x64'
"""

import functools
import platform
from dataclasses import dataclass

from cmkboot.core.exceptions import UnsupportedPlatform


@dataclass(frozen=True)
class PlatformInfo:
    """
    Host platform information.

    Attributes:
        os: Operating system ('windows', 'linux', 'macos')
        arch: CPU architecture ('x64', 'x86', 'arm64', 'arm')
    """

    os: str
    arch: str

    def platform_string(self) -> str:
        """
        Get canonical platform string (e.g., 'linux-x64', 'windows-x86').

        Example:
            >>> PlatformInfo('windows', 'x64').platform_string()
            'windows-x64'
        """
        return f"{self.os}-{self.arch}"

    @property
    def executable_suffix(self) -> str:
        """Suffix appended to executable file names on this platform."""
        return ".exe" if self.os == "windows" else ""

    def __str__(self) -> str:
        return self.platform_string()


@functools.lru_cache(maxsize=1)
def detect_platform() -> PlatformInfo:
    """
    Detect current platform information.

    This function is cached - it only runs detection once per process.

    Raises:
        UnsupportedPlatform: If the operating system is not recognized
    """
    return PlatformInfo(os=_detect_os(), arch=_detect_architecture())


def _detect_os() -> str:
    system = platform.system().lower()

    if system == "windows":
        return "windows"
    elif system == "linux":
        return "linux"
    elif system == "darwin":
        return "macos"
    else:
        raise UnsupportedPlatform(system)


def _detect_architecture() -> str:
    machine = platform.machine().lower()

    # Normalize architecture names
    if machine in ("x86_64", "amd64", "x64"):
        return "x64"
    elif machine in ("i386", "i686", "x86"):
        return "x86"
    elif machine in ("aarch64", "arm64"):
        return "arm64"
    elif machine.startswith("arm"):
        return "arm"
    else:
        # Return original for unknown architectures
        return machine


def clear_platform_cache():
    """
    Clear the platform detection cache.

    Forces the next call to detect_platform() to re-detect.
    """
    detect_platform.cache_clear()


__all__ = [
    "PlatformInfo",
    "detect_platform",
    "clear_platform_cache",
]
