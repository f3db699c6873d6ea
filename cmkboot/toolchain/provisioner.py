"""
Tool provisioning.

Ensures every registered tool is usable before the build starts: checks the
search path, asks the operator before downloading anything, installs the
release archive under the tools directory and prepends the tool's bin
directory to the search path handed to later child processes.
"""

import enum
import logging
import subprocess
from pathlib import Path
from typing import Callable, Dict, List, Optional

from cmkboot.config.parser import Workspace
from cmkboot.core.download import DownloadProgress, fetch, resolve_filename
from cmkboot.core.environment import SearchPath
from cmkboot.core.exceptions import (
    FilesystemError,
    InputError,
    NetworkError,
    ProvisionError,
)
from cmkboot.core.filesystem import (
    archive_kind,
    archive_top_level,
    ensure_directory,
    extract_archive,
    replace_directory,
    safe_rmtree,
)
from cmkboot.toolchain.registry import ToolRegistry, ToolSpec

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[str], bool]


class ProvisionOutcome(enum.Enum):
    ALREADY_AVAILABLE = "already-available"
    INSTALLED = "installed"
    DECLINED = "declined"


class EnvironmentProvisioner:
    """
    Make registered tools reachable for the rest of the run.

    The provisioner never touches os.environ; the updated search path is
    available as the ``search_path`` attribute.

    Example:
        >>> provisioner = EnvironmentProvisioner(workspace, confirm=lambda prompt: True)
        >>> search_path = provisioner.provision_all(ToolRegistry())
    """

    VERSION_CHECK_TIMEOUT = 30

    def __init__(
        self,
        workspace: Workspace,
        confirm: ConfirmFn,
        search_path: Optional[SearchPath] = None,
        progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    ):
        """
        Initialize provisioner.

        Args:
            workspace: Project workspace (downloads and tools directories)
            confirm: Decision function asked before each download
            search_path: Starting search path (defaults to the process PATH)
            progress_callback: Optional download progress callback
        """
        self.workspace = workspace
        self.confirm = confirm
        self.search_path = (
            search_path if search_path is not None else SearchPath.from_environ()
        )
        self.progress_callback = progress_callback
        self.outcomes: Dict[str, ProvisionOutcome] = {}

    def is_available(self, name: str) -> bool:
        """
        Check whether a tool launches from the search path.

        The tool counts as available only if ``<name> --version`` starts and
        exits with status 0.
        """
        executable = self.search_path.which(name)
        if executable is None:
            logger.debug(f"{name} not found on search path")
            return False

        try:
            result = subprocess.run(
                [str(executable), "--version"],
                capture_output=True,
                text=True,
                timeout=self.VERSION_CHECK_TIMEOUT,
                env=self.search_path.as_env(),
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"Version check of {executable} failed: {e}")
            return False

        if result.returncode != 0:
            logger.debug(f"Version check of {executable} exited with {result.returncode}")
            return False

        return True

    def ensure_available(self, spec: ToolSpec) -> ProvisionOutcome:
        """
        Provision a single tool.

        Args:
            spec: Tool to provision

        Returns:
            What happened: already available, installed, or declined

        Raises:
            ProvisionError: If download, extraction or installation fails
        """
        if self.is_available(spec.name):
            logger.info(f"{spec.name} found on PATH")
            return self._record(spec, ProvisionOutcome.ALREADY_AVAILABLE)

        logger.warning(f"{spec.name} is not installed or not on PATH")

        if not self.confirm(f"Download {spec.name} now?"):
            logger.info(f"Skipping download of {spec.name}")
            return self._record(spec, ProvisionOutcome.DECLINED)

        try:
            bin_dir = self._install(spec)
        except (NetworkError, FilesystemError, InputError) as e:
            raise ProvisionError(spec.name, str(e)) from e

        self.search_path = self.search_path.prepend(bin_dir)
        logger.info(f"Added {bin_dir} to PATH")
        return self._record(spec, ProvisionOutcome.INSTALLED)

    def provision_all(self, registry: ToolRegistry) -> SearchPath:
        """
        Provision every tool of the registry, in order.

        Stops at the first failure; tools installed before it stay on disk.

        Returns:
            Search path including every newly installed bin directory
        """
        for spec in registry:
            self.ensure_available(spec)
        return self.search_path

    def install_dir(self, spec: ToolSpec) -> Path:
        return self.workspace.tools_dir / spec.install_subdir

    def _record(self, spec: ToolSpec, outcome: ProvisionOutcome) -> ProvisionOutcome:
        self.outcomes[spec.name] = outcome
        return outcome

    def _install(self, spec: ToolSpec) -> Path:
        filename = resolve_filename(spec.download_url)
        # Reject unsupported formats before any network or disk work
        archive_kind(filename)

        archive_path = self.workspace.downloads_dir / filename
        if archive_path.exists():
            logger.info(f"Using previously downloaded {archive_path}")
        else:
            fetch(
                spec.download_url,
                self.workspace.downloads_dir,
                filename=filename,
                progress_callback=self.progress_callback,
            )

        tools_dir = ensure_directory(self.workspace.tools_dir)
        install_dir = tools_dir / spec.install_subdir

        if install_dir.exists():
            logger.info(f"Removing previous installation at {install_dir}")
            safe_rmtree(install_dir, require_prefix=tools_dir)

        # Leftovers of an interrupted extraction must not merge into this one
        for name in archive_top_level(archive_path):
            self._remove_stale_entry(tools_dir, tools_dir / name)

        logger.info(f"Extracting {filename} to {tools_dir}...")
        top_level = extract_archive(archive_path, tools_dir)

        if not install_dir.exists():
            extracted = self._find_extracted_dir(tools_dir, top_level, filename)
            if extracted is not None:
                logger.debug(f"Renaming {extracted.name} to {install_dir.name}")
                replace_directory(extracted, install_dir)

        bin_dir = install_dir / "bin"
        if not bin_dir.is_dir():
            raise FilesystemError(
                f"bin directory not found after extracting {filename}: {bin_dir}"
            )

        logger.info(f"{spec.name} installed to {install_dir}")
        return bin_dir.resolve()

    def _remove_stale_entry(self, tools_dir: Path, path: Path) -> None:
        if path.is_dir():
            logger.info(f"Removing stale extraction at {path}")
            safe_rmtree(path, require_prefix=tools_dir)
        elif path.exists():
            logger.info(f"Removing stale file {path}")
            try:
                path.unlink()
            except OSError as e:
                raise FilesystemError(f"Failed to remove '{path}': {e}") from e

    def _find_extracted_dir(
        self, tools_dir: Path, top_level: List[str], filename: str
    ) -> Optional[Path]:
        """
        Find the directory an archive unpacked into.

        Prefers the archive's single top-level directory, then a directory
        named after the archive without its extension.
        """
        if len(top_level) == 1 and (tools_dir / top_level[0]).is_dir():
            return tools_dir / top_level[0]

        stem = filename[: -len(archive_kind(filename).value)]
        candidate = tools_dir / stem
        return candidate if candidate.is_dir() else None


__all__ = ["ConfirmFn", "ProvisionOutcome", "EnvironmentProvisioner"]
