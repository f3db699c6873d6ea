"""
Unit tests for tool provisioning.

Network access is mocked with responses; version checks run small scripts created in
temporary directories.
"""

import io
import json
import zipfile
from unittest.mock import Mock, patch

import pytest
import responses

from cmkboot.core.environment import SearchPath
from cmkboot.core.exceptions import (
    FilesystemError,
    NetworkError,
    ProvisionError,
    UnsupportedArchiveFormat,
)
from cmkboot.toolchain.provisioner import EnvironmentProvisioner, ProvisionOutcome
from cmkboot.toolchain.registry import SCHEMA_VERSION, ToolRegistry, ToolSpec

CMAKE_URL = "https://example.com/releases/cmake-3.31.6-windows-x86_64.zip"
GCC_URL = "https://example.com/releases/x86_64-14.1.0-release.7z"


def _zip_bytes(members):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in members.items():
            zf.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def registry(tmp_path):
    """Registry with cmake and gcc entries for windows-x64."""
    metadata = {
        "schema_version": SCHEMA_VERSION,
        "tools": {
            "cmake": {"install_subdir": "cmake", "platforms": {"windows-x64": CMAKE_URL}},
            "x86_64-w64-mingw32-gcc": {
                "install_subdir": "mingw64",
                "platforms": {"windows-x64": GCC_URL},
            },
        },
    }
    path = tmp_path / "tools.json"
    path.write_text(json.dumps(metadata))
    return ToolRegistry(platform="windows-x64", metadata_path=path)


@pytest.fixture
def cmake_spec():
    return ToolSpec(name="cmake", download_url=CMAKE_URL, install_subdir="cmake")


# ============================================================================
# Availability Check
# ============================================================================


class TestIsAvailable:
    def test_runs_version_check(self, workspace, tmp_path, make_executable):
        bin_dir = tmp_path / "bin"
        make_executable(bin_dir, "cmake", exit_code=0)
        provisioner = EnvironmentProvisioner(
            workspace, confirm=Mock(), search_path=SearchPath((bin_dir,))
        )

        assert provisioner.is_available("cmake") is True

    def test_non_zero_exit_is_unavailable(self, workspace, tmp_path, make_executable):
        bin_dir = tmp_path / "bin"
        make_executable(bin_dir, "cmake", exit_code=3)
        provisioner = EnvironmentProvisioner(
            workspace, confirm=Mock(), search_path=SearchPath((bin_dir,))
        )

        assert provisioner.is_available("cmake") is False

    def test_missing_is_unavailable(self, workspace, empty_search_path):
        provisioner = EnvironmentProvisioner(
            workspace, confirm=Mock(), search_path=empty_search_path
        )

        with patch("subprocess.run") as mock_run:
            assert provisioner.is_available("cmake") is False
            mock_run.assert_not_called()

    def test_launch_failure_is_unavailable(self, workspace, tmp_path, make_executable):
        bin_dir = tmp_path / "bin"
        make_executable(bin_dir, "cmake")
        provisioner = EnvironmentProvisioner(
            workspace, confirm=Mock(), search_path=SearchPath((bin_dir,))
        )

        with patch("subprocess.run", side_effect=OSError("exec format error")):
            assert provisioner.is_available("cmake") is False


# ============================================================================
# Provisioning Decisions
# ============================================================================


class TestProvisionAll:
    """Tests for the per-tool decision flow."""

    def test_all_tools_present(self, workspace, registry, tmp_path, make_executable):
        """Test nothing is asked, fetched or written when every tool runs."""
        bin_dir = tmp_path / "system-bin"
        make_executable(bin_dir, "cmake")
        make_executable(bin_dir, "x86_64-w64-mingw32-gcc")
        search_path = SearchPath((bin_dir,))
        confirm = Mock(return_value=True)
        provisioner = EnvironmentProvisioner(workspace, confirm, search_path=search_path)

        with patch("cmkboot.toolchain.provisioner.fetch") as mock_fetch:
            result = provisioner.provision_all(registry)

        mock_fetch.assert_not_called()
        confirm.assert_not_called()
        assert result == search_path
        assert not workspace.downloads_dir.exists()
        assert not workspace.tools_dir.exists()
        assert set(provisioner.outcomes.values()) == {ProvisionOutcome.ALREADY_AVAILABLE}

    def test_decline_continues(self, workspace, registry, empty_search_path):
        """Test declining one tool moves on to the next without downloading."""
        confirm = Mock(return_value=False)
        provisioner = EnvironmentProvisioner(
            workspace, confirm, search_path=empty_search_path
        )

        with patch("cmkboot.toolchain.provisioner.fetch") as mock_fetch:
            result = provisioner.provision_all(registry)

        mock_fetch.assert_not_called()
        assert confirm.call_args_list[0].args == ("Download cmake now?",)
        assert confirm.call_count == 2
        assert result == empty_search_path
        assert provisioner.outcomes == {
            "cmake": ProvisionOutcome.DECLINED,
            "x86_64-w64-mingw32-gcc": ProvisionOutcome.DECLINED,
        }

    def test_stops_at_first_failure(self, workspace, registry, empty_search_path):
        confirm = Mock(return_value=True)
        provisioner = EnvironmentProvisioner(
            workspace, confirm, search_path=empty_search_path
        )

        with patch(
            "cmkboot.toolchain.provisioner.fetch",
            side_effect=NetworkError("connection refused"),
        ):
            with pytest.raises(ProvisionError, match="cmake"):
                provisioner.provision_all(registry)

        assert confirm.call_count == 1
        assert "x86_64-w64-mingw32-gcc" not in provisioner.outcomes


# ============================================================================
# Installation
# ============================================================================


class TestInstall:
    """Tests for download, extraction and installation of a single tool."""

    @responses.activate
    def test_install_from_zip(self, workspace, cmake_spec, empty_search_path):
        """Test archive top-level directory is renamed to the install subdir."""
        responses.add(
            responses.GET,
            CMAKE_URL,
            body=_zip_bytes(
                {
                    "cmake-3.31.6-windows-x86_64/bin/cmake.exe": "exe",
                    "cmake-3.31.6-windows-x86_64/share/cmake-3.31/Modules/x.cmake": "",
                }
            ),
            status=200,
        )
        provisioner = EnvironmentProvisioner(
            workspace, confirm=lambda prompt: True, search_path=empty_search_path
        )

        outcome = provisioner.ensure_available(cmake_spec)

        install_dir = workspace.tools_dir / "cmake"
        assert outcome is ProvisionOutcome.INSTALLED
        assert (install_dir / "bin" / "cmake.exe").read_text() == "exe"
        assert not (workspace.tools_dir / "cmake-3.31.6-windows-x86_64").exists()
        assert (workspace.downloads_dir / "cmake-3.31.6-windows-x86_64.zip").exists()
        assert provisioner.search_path.entries == ((install_dir / "bin").resolve(),)

    def test_unsupported_format_rejected_before_download(
        self, workspace, empty_search_path
    ):
        spec = ToolSpec(
            name="cmake", download_url="https://example.com/cmake.rar", install_subdir="cmake"
        )
        provisioner = EnvironmentProvisioner(
            workspace, confirm=lambda prompt: True, search_path=empty_search_path
        )

        with patch("cmkboot.toolchain.provisioner.fetch") as mock_fetch:
            with pytest.raises(ProvisionError) as exc_info:
                provisioner.ensure_available(spec)

        mock_fetch.assert_not_called()
        assert isinstance(exc_info.value.__cause__, UnsupportedArchiveFormat)
        assert ".rar" in str(exc_info.value)
        assert not workspace.tools_dir.exists()
        assert provisioner.search_path == empty_search_path

    def test_cached_archive_reused(self, workspace, cmake_spec, empty_search_path, make_zip):
        make_zip(
            workspace.downloads_dir / "cmake-3.31.6-windows-x86_64.zip",
            {"cmake-3.31.6-windows-x86_64/bin/cmake.exe": "exe"},
        )
        provisioner = EnvironmentProvisioner(
            workspace, confirm=lambda prompt: True, search_path=empty_search_path
        )

        with patch("cmkboot.toolchain.provisioner.fetch") as mock_fetch:
            provisioner.ensure_available(cmake_spec)

        mock_fetch.assert_not_called()
        assert (workspace.tools_dir / "cmake" / "bin" / "cmake.exe").exists()

    def test_previous_installation_replaced(
        self, workspace, cmake_spec, empty_search_path, make_zip
    ):
        stale = workspace.tools_dir / "cmake"
        (stale / "bin").mkdir(parents=True)
        (stale / "bin" / "old-cmake.exe").write_text("old")
        make_zip(
            workspace.downloads_dir / "cmake-3.31.6-windows-x86_64.zip",
            {"cmake-3.31.6-windows-x86_64/bin/cmake.exe": "new"},
        )
        provisioner = EnvironmentProvisioner(
            workspace, confirm=lambda prompt: True, search_path=empty_search_path
        )

        provisioner.ensure_available(cmake_spec)

        assert not (stale / "bin" / "old-cmake.exe").exists()
        assert (stale / "bin" / "cmake.exe").read_text() == "new"

    def test_interrupted_extraction_not_merged(
        self, workspace, cmake_spec, empty_search_path, make_zip
    ):
        """Test leftovers of an earlier extraction never reach the install dir."""
        leftover = workspace.tools_dir / "cmake-3.31.6-windows-x86_64"
        (leftover / "bin").mkdir(parents=True)
        (leftover / "bin" / "stale.exe").write_text("old")
        make_zip(
            workspace.downloads_dir / "cmake-3.31.6-windows-x86_64.zip",
            {"cmake-3.31.6-windows-x86_64/bin/cmake.exe": "new"},
        )
        provisioner = EnvironmentProvisioner(
            workspace, confirm=lambda prompt: True, search_path=empty_search_path
        )

        provisioner.ensure_available(cmake_spec)

        install_dir = workspace.tools_dir / "cmake"
        assert (install_dir / "bin" / "cmake.exe").read_text() == "new"
        assert not (install_dir / "bin" / "stale.exe").exists()
        assert not leftover.exists()

    def test_archive_with_matching_root(self, workspace, empty_search_path, make_7z):
        """Test archives already rooted at the install subdir are left in place."""
        spec = ToolSpec(
            name="x86_64-w64-mingw32-gcc", download_url=GCC_URL, install_subdir="mingw64"
        )
        make_7z(
            workspace.downloads_dir / "x86_64-14.1.0-release.7z",
            {"mingw64/bin/x86_64-w64-mingw32-gcc.exe": "gcc"},
        )
        provisioner = EnvironmentProvisioner(
            workspace, confirm=lambda prompt: True, search_path=empty_search_path
        )

        provisioner.ensure_available(spec)

        assert (workspace.tools_dir / "mingw64" / "bin" / "x86_64-w64-mingw32-gcc.exe").exists()
        assert provisioner.search_path.entries[0].name == "bin"

    def test_missing_bin_directory(self, workspace, cmake_spec, empty_search_path, make_zip):
        make_zip(
            workspace.downloads_dir / "cmake-3.31.6-windows-x86_64.zip",
            {"cmake-3.31.6-windows-x86_64/share/readme.txt": "no binaries"},
        )
        provisioner = EnvironmentProvisioner(
            workspace, confirm=lambda prompt: True, search_path=empty_search_path
        )

        with pytest.raises(ProvisionError, match="bin directory not found") as exc_info:
            provisioner.ensure_available(cmake_spec)

        assert isinstance(exc_info.value.__cause__, FilesystemError)
        assert provisioner.search_path == empty_search_path

    @responses.activate
    def test_download_failure(self, workspace, cmake_spec, empty_search_path):
        responses.add(responses.GET, CMAKE_URL, status=404)
        provisioner = EnvironmentProvisioner(
            workspace, confirm=lambda prompt: True, search_path=empty_search_path
        )

        with pytest.raises(ProvisionError, match="HTTP 404") as exc_info:
            provisioner.ensure_available(cmake_spec)

        assert isinstance(exc_info.value.__cause__, NetworkError)
        assert not (workspace.downloads_dir / "cmake-3.31.6-windows-x86_64.zip").exists()
