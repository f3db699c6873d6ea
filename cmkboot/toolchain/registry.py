"""
Tool registry.

This module provides the fixed table of tools cmkboot knows how to provision:
for each executable name, the release archive to download per platform and
the subdirectory of the tools root it is installed into. The table is loaded
once from an embedded JSON file and never changes afterwards.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from cmkboot.core.exceptions import RegistryError, ToolNotRegisteredError
from cmkboot.core.platform import detect_platform

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


@dataclass(frozen=True)
class ToolSpec:
    """A downloadable tool for one platform."""

    name: str
    """Executable name looked up on the search path (e.g. 'cmake')"""

    download_url: str
    """Release archive URL"""

    install_subdir: str
    """Directory under the tools root the archive is installed into"""


class ToolRegistry:
    """
    Registry of provisionable tools for a single platform.

    Example:
        >>> registry = ToolRegistry(platform="windows-x64")
        >>> registry.lookup("cmake").install_subdir
        'cmake'
        >>> registry.names()
        ['cmake', 'x86_64-w64-mingw32-gcc', 'i686-w64-mingw32-gcc']
    """

    def __init__(
        self, platform: Optional[str] = None, metadata_path: Optional[Path] = None
    ):
        """
        Initialize tool registry.

        Args:
            platform: Platform string (e.g. 'windows-x64'); detected if None
            metadata_path: Optional path to a tool table JSON file.
                          If None, uses the embedded tools.json

        Raises:
            RegistryError: If the table cannot be loaded or is malformed
        """
        self.platform = platform or detect_platform().platform_string()
        self.metadata_path = metadata_path or self._get_default_metadata_path()
        self._tools = self._load_metadata()
        logger.debug(
            f"Loaded tool registry for {self.platform}: {', '.join(self.names()) or 'no tools'}"
        )

    def _get_default_metadata_path(self) -> Path:
        return Path(__file__).parent.parent / "data" / "tools.json"

    def _load_metadata(self) -> Dict[str, Dict[str, Any]]:
        if not self.metadata_path.exists():
            raise RegistryError(f"Tool table not found: {self.metadata_path}")

        try:
            with open(self.metadata_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise RegistryError(
                f"Invalid JSON in tool table: {e}\nFile: {self.metadata_path}"
            ) from e
        except OSError as e:
            raise RegistryError(
                f"Failed to load tool table: {e}\nFile: {self.metadata_path}"
            ) from e

        if not isinstance(data, dict) or data.get("schema_version") != SCHEMA_VERSION:
            raise RegistryError(
                f"Unsupported tool table schema (expected version {SCHEMA_VERSION})\n"
                f"File: {self.metadata_path}"
            )

        tools = data.get("tools")
        if not isinstance(tools, dict):
            raise RegistryError(
                f"Invalid tool table: missing 'tools' mapping\nFile: {self.metadata_path}"
            )

        for name, entry in tools.items():
            if (
                not isinstance(entry, dict)
                or not entry.get("install_subdir")
                or not isinstance(entry.get("platforms"), dict)
            ):
                raise RegistryError(
                    f"Invalid entry for tool '{name}': "
                    "'install_subdir' and 'platforms' are required"
                )

        return tools

    def lookup(self, name: str) -> Optional[ToolSpec]:
        """
        Look up a tool for this registry's platform.

        Args:
            name: Executable name (e.g. 'cmake', 'x86_64-w64-mingw32-gcc')

        Returns:
            ToolSpec if registered for the platform, None otherwise
        """
        entry = self._tools.get(name)
        if entry is None:
            return None

        url = entry["platforms"].get(self.platform)
        if not url:
            return None

        return ToolSpec(name=name, download_url=url, install_subdir=entry["install_subdir"])

    def get(self, name: str) -> ToolSpec:
        """
        Like lookup(), but a missing entry is an error.

        Raises:
            ToolNotRegisteredError: If the tool has no entry for the platform
        """
        spec = self.lookup(name)
        if spec is None:
            raise ToolNotRegisteredError(name, self.platform)
        return spec

    def names(self) -> List[str]:
        """Tool names available on this platform, in provisioning order."""
        return [name for name in self._tools if self.lookup(name) is not None]

    def list_platforms(self, name: str) -> List[str]:
        entry = self._tools.get(name)
        return sorted(entry["platforms"]) if entry else []

    def __iter__(self):
        return (self.get(name) for name in self.names())

    def __contains__(self, name: str) -> bool:
        return self.lookup(name) is not None


__all__ = ["SCHEMA_VERSION", "ToolSpec", "ToolRegistry"]
