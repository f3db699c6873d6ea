"""
Pytest configuration and shared fixtures for cmkboot tests.
"""

import os
import stat
import zipfile
from pathlib import Path

import py7zr
import pytest

from cmkboot.config.parser import Workspace
from cmkboot.core.environment import SearchPath


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    """Workspace rooted in a fresh project directory."""
    project = tmp_path / "demo"
    project.mkdir()
    (project / "CMakeLists.txt").write_text(
        "cmake_minimum_required(VERSION 3.20)\nproject(demo C)\nadd_executable(demo main.c)\n"
    )
    return Workspace.for_project(project)


@pytest.fixture
def empty_search_path() -> SearchPath:
    """Search path that finds nothing."""
    return SearchPath(())


@pytest.fixture
def make_executable():
    """
    Factory creating a small executable script.

    Usage:
        make_executable(bin_dir, "cmake", exit_code=0)
    """

    def _make(directory: Path, name: str, exit_code: int = 0) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        if os.name == "nt":
            path = directory / f"{name}.bat"
            path.write_text(f"@exit /b {exit_code}\n")
        else:
            path = directory / name
            path.write_text(f"#!/bin/sh\nexit {exit_code}\n")
            path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make


@pytest.fixture
def make_zip():
    """Factory creating a ZIP archive from a {member: content} mapping."""

    def _make(archive_path: Path, members: dict) -> Path:
        archive_path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(archive_path, "w") as zf:
            for name, content in members.items():
                zf.writestr(name, content)
        return archive_path

    return _make


@pytest.fixture
def make_7z(tmp_path: Path):
    """Factory creating a 7z archive from a {member: content} mapping."""

    staging = tmp_path / "7z-staging"

    def _make(archive_path: Path, members: dict) -> Path:
        archive_path.parent.mkdir(parents=True, exist_ok=True)
        with py7zr.SevenZipFile(archive_path, "w") as archive:
            for index, (name, content) in enumerate(members.items()):
                source = staging / str(index)
                source.parent.mkdir(parents=True, exist_ok=True)
                data = content.encode() if isinstance(content, str) else content
                source.write_bytes(data)
                archive.write(source, arcname=name)
        return archive_path

    return _make


@pytest.fixture(autouse=True)
def reset_caches():
    """Reset module-level caches between tests."""
    from cmkboot.core import platform

    platform.clear_platform_cache()
    yield
    platform.clear_platform_cache()
