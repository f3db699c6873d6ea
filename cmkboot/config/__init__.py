"""Configuration management for cmkboot."""

from .parser import (
    CONFIG_FILE_NAME,
    Architecture,
    BuildType,
    LibraryType,
    BuildConfig,
    Workspace,
    ProjectConfig,
    parse_architecture,
    parse_build_type,
    parse_library_type,
    default_program_name,
    load_project_config,
    build_config,
    build_workspace,
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
