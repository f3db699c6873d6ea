"""
CMake build backend.

Maps the host OS and target architecture to a generator/compiler pair, then
drives ``cmake`` to configure and build the project into a directory that is
unique per build type and architecture.
"""

import logging
import subprocess
from pathlib import Path
from typing import List, NamedTuple, Optional, Union

from cmkboot.config.parser import Architecture, BuildConfig, BuildType, Workspace
from cmkboot.core.environment import SearchPath
from cmkboot.core.exceptions import (
    BuildError,
    InputError,
    SubprocessFailure,
    ToolNotFoundError,
    UnsupportedPlatform,
)
from cmkboot.core.platform import PlatformInfo, detect_platform

logger = logging.getLogger(__name__)


class ToolchainSelection(NamedTuple):
    """Generator and compilers used for one OS/architecture pair."""

    generator: str
    compiler_flag: str
    c_compiler: str
    cxx_compiler: str


_TOOLCHAINS = {
    ("windows", "x64"): ToolchainSelection(
        "MinGW Makefiles",
        "-m64",
        "x86_64-w64-mingw32-gcc.exe",
        "x86_64-w64-mingw32-g++.exe",
    ),
    ("windows", "x86"): ToolchainSelection(
        "MinGW Makefiles",
        "-m32",
        "i686-w64-mingw32-gcc.exe",
        "i686-w64-mingw32-g++.exe",
    ),
    ("linux", "x64"): ToolchainSelection("Unix Makefiles", "-m64", "gcc", "g++"),
    ("linux", "x86"): ToolchainSelection("Unix Makefiles", "-m32", "gcc", "g++"),
}


def select_toolchain(
    os_name: str, architecture: Union[Architecture, str]
) -> ToolchainSelection:
    """
    Pick generator, compiler flag and compilers for a platform.

    Args:
        os_name: Host operating system ('windows', 'linux')
        architecture: Target architecture

    Raises:
        UnsupportedPlatform: If the combination is not supported

    Example:
        >>> select_toolchain("linux", Architecture.X64).generator
        'Unix Makefiles'
    """
    arch = architecture.value if isinstance(architecture, Architecture) else str(architecture)
    try:
        return _TOOLCHAINS[(os_name, arch)]
    except KeyError:
        raise UnsupportedPlatform(os_name, arch) from None


def supported_platforms() -> List[str]:
    return [f"{os_name}-{arch}" for os_name, arch in _TOOLCHAINS]


def build_directory(
    build_root: Path, build_type: BuildType, architecture: Architecture
) -> Path:
    """
    Build directory for a configuration, e.g. ``build/Debug-x64``.

    Depends only on its arguments, so identical configurations reuse CMake's
    cache and different ones never share a directory.
    """
    return Path(build_root) / f"{build_type.value}-{architecture.value}"


class CMakeBuildOrchestrator:
    """
    Configure, build and run a CMake project.

    Every child process gets an environment built from the explicit search
    path, so tools installed by the provisioner are visible to CMake and the
    compilers it launches.
    """

    def __init__(
        self,
        workspace: Workspace,
        search_path: Optional[SearchPath] = None,
        platform: Optional[PlatformInfo] = None,
    ):
        self.workspace = workspace
        self.search_path = (
            search_path if search_path is not None else SearchPath.from_environ()
        )
        self.platform = platform or detect_platform()

    def build_dir(self, config: BuildConfig) -> Path:
        return build_directory(
            self.workspace.build_root, config.build_type, config.architecture
        )

    def configure_args(self, config: BuildConfig) -> List[str]:
        """
        Arguments for the configure step (without the cmake executable).

        Raises:
            UnsupportedPlatform: If the host/architecture pair is unsupported
        """
        selection = select_toolchain(self.platform.os, config.architecture)
        build_dir = self.build_dir(config)

        return [
            "-S",
            str(self.workspace.project_root),
            "-B",
            str(build_dir),
            "-G",
            selection.generator,
            f"-DCMAKE_BUILD_TYPE={config.build_type.value}",
            f"-DCMAKE_C_COMPILER={self._resolve_compiler(selection.c_compiler)}",
            f"-DCMAKE_CXX_COMPILER={self._resolve_compiler(selection.cxx_compiler)}",
            f"-DCMAKE_C_FLAGS={selection.compiler_flag}",
            f"-DCMAKE_CXX_FLAGS={selection.compiler_flag}",
            f"-DCMAKE_RUNTIME_OUTPUT_DIRECTORY={build_dir / 'bin'}",
            f"-DCMAKE_LIBRARY_OUTPUT_DIRECTORY={build_dir / 'bin'}",
            f"-DCMAKE_ARCHIVE_OUTPUT_DIRECTORY={build_dir / 'lib'}",
            "-DCMAKE_EXPORT_COMPILE_COMMANDS=ON",
        ]

    def build_args(self, config: BuildConfig) -> List[str]:
        return ["--build", str(self.build_dir(config)), "--config", config.build_type.value]

    def configure(self, config: BuildConfig) -> None:
        """
        Run the CMake configure step.

        Raises:
            UnsupportedPlatform: Before any process is started
            ToolNotFoundError: If cmake or a compiler is missing
            SubprocessFailure: If cmake exits non-zero
        """
        args = self.configure_args(config)
        logger.info(
            f"Configuring {self.workspace.project_root.name} "
            f"({config.build_type.value}, {config.architecture.value})"
        )
        self._run_cmake(args, stage="CMake configuration")

    def build(self, config: BuildConfig) -> None:
        """
        Build a configured directory.

        Raises:
            ToolNotFoundError: If cmake is missing
            SubprocessFailure: If the build exits non-zero
        """
        logger.info(f"Building {self.build_dir(config)}")
        self._run_cmake(self.build_args(config), stage="CMake build")

    def configure_and_build(self, config: BuildConfig) -> None:
        """Configure, then build; the build is skipped if configure fails."""
        self.configure(config)
        self.build(config)

    def program_path(self, config: BuildConfig) -> Path:
        if not config.program_name:
            raise InputError("No program name given")
        filename = f"{config.program_name}{self.platform.executable_suffix}"
        return self.build_dir(config) / "bin" / filename

    def run_program(self, config: BuildConfig) -> int:
        """
        Launch the built program and wait for it.

        Returns:
            The program's exit status

        Raises:
            BuildError: If the program does not exist or cannot be started
        """
        program = self.program_path(config)
        if not program.is_file():
            raise BuildError(f"Program not found: {program}")

        logger.info(f"Running {program}")
        try:
            result = subprocess.run(
                [str(program)],
                cwd=self.workspace.project_root,
                env=self.search_path.as_env(),
            )
        except OSError as e:
            raise BuildError(f"Failed to start {program}: {e}") from e

        if result.returncode != 0:
            logger.warning(f"{program.name} exited with code {result.returncode}")
        return result.returncode

    def _resolve_compiler(self, name: str) -> str:
        compiler = self.search_path.which(name)
        if compiler is None:
            raise ToolNotFoundError(name, "install it or accept the download prompt")
        return str(compiler)

    def _run_cmake(self, args: List[str], stage: str) -> None:
        cmake = self.search_path.which("cmake")
        if cmake is None:
            raise ToolNotFoundError("cmake", "https://cmake.org/download/")

        command = [str(cmake)] + args
        logger.debug(f"CMake command: {' '.join(command)}")

        try:
            result = subprocess.run(
                command,
                cwd=self.workspace.project_root,
                env=self.search_path.as_env(),
            )
        except FileNotFoundError as e:
            raise ToolNotFoundError("cmake") from e

        if result.returncode != 0:
            raise SubprocessFailure(command, result.returncode, stage=stage)


__all__ = [
    "ToolchainSelection",
    "select_toolchain",
    "supported_platforms",
    "build_directory",
    "CMakeBuildOrchestrator",
]
