"""
File system utilities for cmkboot.

This module provides the file operations the provisioner relies on:
- Archive extraction (.zip via zipfile, .7z via py7zr)
- Entry path sanitization against directory traversal
- Safe directory removal and directory replacement
"""

import enum
import logging
import os
import shutil
import stat
import sys
import zipfile
import zlib
from pathlib import Path, PurePosixPath
from typing import List, Optional, Union

import py7zr
from py7zr.exceptions import ArchiveError as SevenZipArchiveError

from cmkboot.core.exceptions import (
    ArchiveError,
    FilesystemError,
    InsecureArchiveError,
    UnsupportedArchiveFormat,
)

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"


class ArchiveKind(enum.Enum):
    """Container formats the extractor understands."""

    ZIP = ".zip"
    SEVEN_ZIP = ".7z"


SUPPORTED_EXTENSIONS = tuple(kind.value for kind in ArchiveKind)


# ============================================================================
# Archive Extraction
# ============================================================================


def archive_kind(archive_path: Union[str, Path]) -> ArchiveKind:
    """
    Determine the archive kind from the file extension.

    Args:
        archive_path: Path or file name of the archive

    Returns:
        Matching ArchiveKind

    Raises:
        UnsupportedArchiveFormat: If the extension is not .zip or .7z

    Example:
        >>> archive_kind("cmake-3.31.6-windows-x86_64.zip")
        <ArchiveKind.ZIP: '.zip'>
    """
    name = Path(archive_path).name.lower()
    for kind in ArchiveKind:
        if name.endswith(kind.value):
            return kind

    suffix = Path(name).suffix or name
    raise UnsupportedArchiveFormat(
        f"Unsupported archive format: {suffix}. "
        f"Supported: {', '.join(SUPPORTED_EXTENSIONS)}"
    )


def sanitize_member_name(name: str) -> Optional[PurePosixPath]:
    """
    Turn an archive member name into a safe relative path.

    Backslashes are treated as separators and '.' segments are dropped.

    Args:
        name: Member name as stored in the archive

    Returns:
        Relative path, or None for names that reduce to nothing (e.g. './')

    Raises:
        InsecureArchiveError: If the name is absolute, carries a drive letter,
            or contains '..' segments
    """
    normalized = name.replace("\\", "/")
    parts = [part for part in normalized.split("/") if part not in ("", ".")]

    if normalized.startswith("/") or (parts and ":" in parts[0]):
        raise InsecureArchiveError(
            f"Archive member '{name}' is an absolute path. "
            "This is a security risk and extraction has been blocked."
        )
    if ".." in parts:
        raise InsecureArchiveError(
            f"Archive member '{name}' attempts directory traversal. "
            "This is a security risk and extraction has been blocked."
        )

    if not parts:
        return None
    return PurePosixPath(*parts)


def extract_archive(
    archive_path: Union[str, Path], destination: Union[str, Path]
) -> List[str]:
    """
    Extract a ZIP or 7z archive into a destination directory.

    The internal directory structure is preserved. All member names are
    validated before anything is written.

    Args:
        archive_path: Path to the archive file
        destination: Directory to extract to (created if missing)

    Returns:
        Names of the archive's top-level entries, in archive order

    Raises:
        UnsupportedArchiveFormat: If archive format is not recognized
        InsecureArchiveError: If archive contains malicious paths
        ArchiveError: If the archive is corrupt or an entry cannot be written

    Example:
        >>> extract_archive('downloads/cmake-3.31.6-windows-x86_64.zip', 'tools')
        ['cmake-3.31.6-windows-x86_64']
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    kind = archive_kind(archive_path)

    if not archive_path.exists():
        raise ArchiveError(f"Archive not found: {archive_path}")

    try:
        destination.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Failed to create directory '{destination}': {e}") from e

    logger.debug(f"Extracting {archive_path.name} ({kind.name}) into {destination}")

    if kind is ArchiveKind.ZIP:
        members = _extract_zip(archive_path, destination)
    else:
        members = _extract_7z(archive_path, destination)

    return list(dict.fromkeys(member.parts[0] for member in members))


def archive_top_level(archive_path: Union[str, Path]) -> List[str]:
    """
    List the top-level entries an archive would create, without extracting.

    Args:
        archive_path: Path to a .zip or .7z archive

    Returns:
        Top-level entry names, in archive order

    Raises:
        UnsupportedArchiveFormat: If archive format is not recognized
        InsecureArchiveError: If archive contains malicious paths
        ArchiveError: If the archive is missing or cannot be read
    """
    archive_path = Path(archive_path)
    kind = archive_kind(archive_path)

    if not archive_path.exists():
        raise ArchiveError(f"Archive not found: {archive_path}")

    try:
        if kind is ArchiveKind.ZIP:
            with zipfile.ZipFile(archive_path, "r") as zf:
                names = zf.namelist()
        else:
            with py7zr.SevenZipFile(archive_path, "r") as archive:
                names = archive.getnames()
    except (zipfile.BadZipFile, SevenZipArchiveError, OSError, EOFError) as e:
        raise ArchiveError(f"Cannot read archive {archive_path.name}: {e}") from e

    members = [sanitize_member_name(name) for name in names]
    return list(dict.fromkeys(member.parts[0] for member in members if member is not None))


def _extract_zip(archive_path: Path, destination: Path) -> List[PurePosixPath]:
    """Extract a ZIP archive entry by entry."""
    try:
        zf = zipfile.ZipFile(archive_path, "r")
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveError(f"Cannot open ZIP archive {archive_path.name}: {e}") from e

    with zf:
        # Validate all paths first
        entries = []
        for info in zf.infolist():
            relative = sanitize_member_name(info.filename)
            if relative is not None:
                entries.append((info, relative))

        for info, relative in entries:
            target = destination.joinpath(*relative.parts)
            try:
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                else:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with zf.open(info) as source, open(target, "wb") as sink:
                        shutil.copyfileobj(source, sink)
            except (OSError, zipfile.BadZipFile, zlib.error) as e:
                raise ArchiveError(
                    f"Failed to extract entry '{info.filename}' "
                    f"from {archive_path.name}: {e}"
                ) from e

    return [relative for _, relative in entries]


def _extract_7z(archive_path: Path, destination: Path) -> List[PurePosixPath]:
    """Extract a 7z archive in a single call."""
    try:
        with py7zr.SevenZipFile(archive_path, "r") as archive:
            members = []
            for name in archive.getnames():
                relative = sanitize_member_name(name)
                if relative is not None:
                    members.append(relative)

            archive.extractall(path=destination)
    except (SevenZipArchiveError, OSError, EOFError) as e:
        raise ArchiveError(f"Failed to extract 7z archive {archive_path.name}: {e}") from e

    return members


# ============================================================================
# Safe File Operations
# ============================================================================


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails

    Example:
        >>> safe_rmtree('tools/cmake', require_prefix='tools')
    """
    path = Path(path).resolve()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).resolve()
        if not path.is_relative_to(require_prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists():
        return

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    def _clear_readonly(func, failed_path, _exc):
        # Read-only files (common in extracted toolchains on Windows)
        os.chmod(failed_path, stat.S_IWRITE)
        func(failed_path)

    try:
        if sys.version_info >= (3, 12):
            shutil.rmtree(path, onexc=_clear_readonly)
        else:
            shutil.rmtree(path, onerror=_clear_readonly)
    except OSError as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


def replace_directory(source: Union[str, Path], target: Union[str, Path]) -> Path:
    """
    Rename a directory, removing the target first when it exists.

    Not safe against concurrent writers; cmkboot runs single-instance.

    Args:
        source: Existing directory
        target: New location

    Returns:
        The target path

    Raises:
        FilesystemError: If removal or rename fails
    """
    source = Path(source)
    target = Path(target)

    if source.resolve() == target.resolve():
        return target

    if target.exists():
        logger.debug(f"Removing existing directory before rename: {target}")
        safe_rmtree(target)

    try:
        source.rename(target)
    except OSError as e:
        raise FilesystemError(f"Failed to rename '{source}' to '{target}': {e}") from e

    return target


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists (idempotent).

    Raises:
        FilesystemError: If the directory cannot be created
    """
    path = Path(path)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Failed to create directory '{path}': {e}") from e
    return path.resolve()


__all__ = [
    "IS_WINDOWS",
    "ArchiveKind",
    "SUPPORTED_EXTENSIONS",
    "archive_kind",
    "sanitize_member_name",
    "archive_top_level",
    "extract_archive",
    "safe_rmtree",
    "replace_directory",
    "ensure_directory",
]
