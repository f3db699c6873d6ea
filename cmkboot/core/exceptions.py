"""
Centralized exception hierarchy for cmkboot.

Every error the bootstrapper can surface derives from CmkBootError so the
CLI can report it once and exit with a non-zero status.
"""

from typing import List, Optional


# ============================================================================
# Base Exceptions
# ============================================================================


class CmkBootError(Exception):
    """Base exception for all cmkboot errors."""

    pass


# ============================================================================
# Input and Platform Exceptions
# ============================================================================


class InputError(CmkBootError):
    """Invalid user input: bad flag value, URL or prompt answer."""

    pass


class ConfigError(InputError):
    """Project configuration file cannot be parsed or validated."""

    pass


class UnsupportedPlatform(CmkBootError):
    """Operating system / architecture combination is not supported."""

    def __init__(self, os_name: str, arch: str = ""):
        self.os_name = os_name
        self.arch = arch
        target = f"{os_name}-{arch}" if arch else os_name
        super().__init__(f"Unsupported platform: {target}")


# ============================================================================
# Network and Filesystem Exceptions
# ============================================================================


class NetworkError(CmkBootError):
    """HTTP request or transfer failed."""

    pass


class FilesystemError(CmkBootError):
    """Failed to create, remove or rename a path."""

    pass


class ArchiveError(FilesystemError):
    """Archive is corrupt or one of its entries cannot be extracted."""

    pass


class UnsupportedArchiveFormat(ArchiveError):
    """Archive format is not supported."""

    pass


class InsecureArchiveError(ArchiveError):
    """Archive contains insecure paths (directory traversal attempt)."""

    pass


# ============================================================================
# Registry and Provisioning Exceptions
# ============================================================================


class RegistryError(CmkBootError):
    """Tool table is missing or malformed."""

    pass


class ToolNotRegisteredError(RegistryError):
    """Raised when a tool has no entry for the requested platform."""

    def __init__(self, tool_name: str, platform: str):
        self.tool_name = tool_name
        self.platform = platform
        super().__init__(f"No download registered for {tool_name} on {platform}")


class ProvisionError(CmkBootError):
    """Provisioning of a single tool failed."""

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        super().__init__(f"Failed to provision {tool_name}: {message}")


# ============================================================================
# Build Exceptions
# ============================================================================


class BuildError(CmkBootError):
    """Base exception for configure/build/run failures."""

    pass


class ToolNotFoundError(BuildError):
    """Executable could not be found on the search path."""

    def __init__(self, tool_name: str, hint: Optional[str] = None):
        self.tool_name = tool_name
        msg = f"{tool_name} not found on PATH"
        if hint:
            msg += f" ({hint})"
        super().__init__(msg)


class SubprocessFailure(BuildError):
    """A child process exited with a non-zero status."""

    def __init__(self, command: List[str], returncode: int, stage: str = "command"):
        self.command = list(command)
        self.returncode = returncode
        self.stage = stage
        super().__init__(
            f"{stage} failed with exit code {returncode}: {' '.join(self.command)}"
        )


__all__ = [
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
