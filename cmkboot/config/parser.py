"""YAML configuration parser for cmkboot.

This module provides the build selections (architecture, build type, library
type, program name), their parsing from command-line strings, and loading of
the optional cmkboot.yaml project file.
"""

import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from cmkboot.core.exceptions import ConfigError, InputError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "cmkboot.yaml"


class Architecture(enum.Enum):
    X64 = "x64"
    X86 = "x86"


class BuildType(enum.Enum):
    DEBUG = "Debug"
    RELEASE = "Release"


class LibraryType(enum.Enum):
    STATIC = "static"
    SHARED = "shared"


@dataclass(frozen=True)
class BuildConfig:
    """Build selections for a single invocation."""

    architecture: Architecture = Architecture.X64
    build_type: BuildType = BuildType.DEBUG
    library_type: LibraryType = LibraryType.STATIC  # accepted, not used by the build
    program_name: Optional[str] = None


@dataclass(frozen=True)
class Workspace:
    """Project directory and the areas cmkboot writes into."""

    project_root: Path
    downloads_dir: Path
    tools_dir: Path
    build_root: Path

    @classmethod
    def for_project(
        cls,
        project_root: Path,
        downloads: str = "downloads",
        tools: str = "tools",
        build: str = "build",
    ) -> "Workspace":
        """
        Create a workspace; relative directory names resolve under project_root.
        """
        root = Path(project_root).resolve()
        return cls(
            project_root=root,
            downloads_dir=root / downloads,
            tools_dir=root / tools,
            build_root=root / build,
        )


@dataclass
class ProjectConfig:
    """Contents of cmkboot.yaml."""

    defaults: Dict[str, str]
    paths: Dict[str, str]


def _parse_enum(enum_cls, value: str, what: str):
    for member in enum_cls:
        if member.value.lower() == str(value).strip().lower():
            return member
    choices = ", ".join(member.value for member in enum_cls)
    raise InputError(f"Invalid {what} '{value}' (expected one of: {choices})")


def parse_architecture(value: str) -> Architecture:
    return _parse_enum(Architecture, value, "architecture")


def parse_build_type(value: str) -> BuildType:
    """Parse 'debug'/'release' in any letter case."""
    return _parse_enum(BuildType, value, "build type")


def parse_library_type(value: str) -> LibraryType:
    return _parse_enum(LibraryType, value, "library type")


def default_program_name(project_root: Path) -> str:
    """Program name defaults to the project directory's base name."""
    name = Path(project_root).resolve().name
    return name or "unknown"


def load_project_config(config_path: Path, required: bool = False) -> ProjectConfig:
    """
    Parse a cmkboot.yaml file.

    Args:
        config_path: Path to the YAML file
        required: If True, a missing file is an error

    Returns:
        Parsed configuration (empty sections when the file is absent)

    Raises:
        ConfigError: If configuration is invalid or a required file is missing
    """
    if not config_path.exists():
        if required:
            raise ConfigError(f"Configuration file not found: {config_path}")
        logger.debug(f"Config file not found (optional): {config_path}")
        return ProjectConfig(defaults={}, paths={})

    logger.debug(f"Loading configuration from {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read {config_path}: {e}") from e

    data = data or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path}: top level must be a mapping")

    defaults = _section(data, "defaults", config_path)
    paths = _section(data, "paths", config_path)

    unknown = set(defaults) - {"architecture", "build_type", "library_type", "program_name"}
    if unknown:
        raise ConfigError(f"{config_path}: unknown defaults: {', '.join(sorted(unknown))}")

    unknown = set(paths) - {"downloads", "tools", "build"}
    if unknown:
        raise ConfigError(f"{config_path}: unknown paths: {', '.join(sorted(unknown))}")

    return ProjectConfig(defaults=defaults, paths=paths)


def _section(data: Dict[str, Any], key: str, config_path: Path) -> Dict[str, str]:
    section = data.get(key) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"{config_path}: '{key}' must be a mapping")
    return {str(k): str(v) for k, v in section.items() if v is not None}


def build_config(
    project_root: Path,
    project_config: Optional[ProjectConfig] = None,
    architecture: Optional[str] = None,
    build_type: Optional[str] = None,
    library_type: Optional[str] = None,
    program_name: Optional[str] = None,
) -> BuildConfig:
    """
    Combine command-line values, project defaults and built-in defaults.

    Command-line values win over cmkboot.yaml, which wins over built-ins.

    Raises:
        InputError: If any value is invalid
    """
    defaults = project_config.defaults if project_config else {}

    def pick(cli_value: Optional[str], key: str, fallback: str) -> str:
        if cli_value is not None:
            return cli_value
        return defaults.get(key, fallback)

    return BuildConfig(
        architecture=parse_architecture(pick(architecture, "architecture", "x64")),
        build_type=parse_build_type(pick(build_type, "build_type", "debug")),
        library_type=parse_library_type(pick(library_type, "library_type", "static")),
        program_name=program_name
        or defaults.get("program_name")
        or default_program_name(project_root),
    )


def build_workspace(
    project_root: Path, project_config: Optional[ProjectConfig] = None
) -> Workspace:
    paths = project_config.paths if project_config else {}
    return Workspace.for_project(
        project_root,
        downloads=paths.get("downloads", "downloads"),
        tools=paths.get("tools", "tools"),
        build=paths.get("build", "build"),
    )


__all__ = [
    "CONFIG_FILE_NAME",
    "Architecture",
    "BuildType",
    "LibraryType",
    "BuildConfig",
    "Workspace",
    "ProjectConfig",
    "parse_architecture",
    "parse_build_type",
    "parse_library_type",
    "default_program_name",
    "load_project_config",
    "build_config",
    "build_workspace",
]
