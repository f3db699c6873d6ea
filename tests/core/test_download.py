"""
Unit tests for download module.

Tests download functionality with mocked network requests.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests
import responses

from cmkboot.core.download import (
    DEFAULT_FILENAME,
    DownloadProgress,
    fetch,
    format_progress,
    resolve_filename,
)
from cmkboot.core.exceptions import InputError, NetworkError


class TestResolveFilename:
    """Test resolve_filename function."""

    def test_last_path_segment(self):
        """Test file name is the URL's last path segment."""
        assert resolve_filename("https://example.com/a/b/name-1.2.3.zip") == "name-1.2.3.zip"

    def test_trailing_slash_ignored(self):
        """Test empty trailing segments are skipped."""
        assert resolve_filename("https://example.com/a/tool.7z/") == "tool.7z"

    def test_query_string_ignored(self):
        """Test query parameters do not end up in the file name."""
        assert resolve_filename("https://example.com/x/tool.zip?raw=1") == "tool.zip"

    def test_percent_encoding_decoded(self):
        """Test percent-encoded names are decoded."""
        assert resolve_filename("https://example.com/my%20tool.zip") == "my tool.zip"

    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/a/..%5C..%5Cevil.zip",
            "https://example.com/a/..%2F..%2Fevil.zip",
            "https://example.com/a/%2E%2E",
        ],
    )
    def test_encoded_separators_use_fallback(self, url):
        """Test decoded names never leave the download directory."""
        assert resolve_filename(url) == DEFAULT_FILENAME

    def test_no_path_uses_fallback(self):
        """Test URL without path segments yields the generic name."""
        assert resolve_filename("https://example.com") == DEFAULT_FILENAME
        assert resolve_filename("https://example.com/") == DEFAULT_FILENAME

    def test_override_wins(self):
        """Test explicit override takes priority."""
        assert resolve_filename("https://example.com/a.zip", "b.zip") == "b.zip"

    def test_unparseable_url_uses_fallback(self):
        """Test malformed URL never yields an empty name."""
        assert resolve_filename("http://[::1") == DEFAULT_FILENAME


class TestFormatProgress:
    """Test format_progress function."""

    def test_format_with_known_size(self):
        """Test formatting progress with known total size."""
        progress = DownloadProgress(
            bytes_downloaded=10485760,  # 10 MB
            total_bytes=104857600,  # 100 MB
            percentage=10.0,
            speed_bps=2097152,  # 2 MB/s
            eta_seconds=45,
        )

        result = format_progress(progress)

        assert "10.0/100.0 MB" in result
        assert "(10.0%)" in result
        assert "2.0 MB/s" in result
        assert "ETA: 45s" in result

    def test_format_with_unknown_size(self):
        """Test formatting progress with unknown total size."""
        progress = DownloadProgress(
            bytes_downloaded=10485760,
            total_bytes=0,
            percentage=0.0,
            speed_bps=1048576,
            eta_seconds=0,
        )

        result = str(progress)

        assert result == "10.0 MB at 1.0 MB/s"
        assert progress.is_determinate is False


class TestFetch:
    """Test fetch function."""

    @responses.activate
    def test_simple_download(self, tmp_path):
        """Test body is written to the resolved file name."""
        url = "https://example.com/releases/tool-1.0.zip"
        content = b"archive bytes"
        responses.add(
            responses.GET,
            url,
            body=content,
            status=200,
            headers={"content-length": str(len(content))},
        )

        result = fetch(url, tmp_path / "downloads")

        assert result.local_path == tmp_path / "downloads" / "tool-1.0.zip"
        assert result.byte_count == len(content)
        assert result.local_path.read_bytes() == content

    @responses.activate
    def test_filename_override(self, tmp_path):
        """Test explicit file name is honoured."""
        url = "https://example.com/download?id=7"
        responses.add(responses.GET, url, body=b"x", status=200)

        result = fetch(url, tmp_path, filename="tool.7z")

        assert result.local_path.name == "tool.7z"

    @responses.activate
    def test_progress_with_content_length(self, tmp_path):
        """Test progress is reported as a fraction of Content-Length."""
        url = "https://example.com/big.zip"
        content = b"x" * 100000
        responses.add(
            responses.GET,
            url,
            body=content,
            status=200,
            headers={"content-length": str(len(content))},
        )
        updates = []

        fetch(url, tmp_path, progress_callback=updates.append, chunk_size=1024)

        assert updates
        last = updates[-1]
        assert last.bytes_downloaded == len(content)
        assert last.total_bytes == len(content)
        assert last.percentage == pytest.approx(100.0)

    def test_progress_without_content_length(self, tmp_path):
        """Test progress is absolute when the size is unknown."""
        response = MagicMock()
        response.ok = True
        response.headers = {}
        response.iter_content.return_value = iter([b"y" * 2000, b"", b"y" * 3000])
        updates = []

        with patch("cmkboot.core.download.requests.get", return_value=response):
            result = fetch(
                "https://example.com/stream.zip", tmp_path, progress_callback=updates.append
            )

        assert result.byte_count == 5000
        assert updates[-1].bytes_downloaded == 5000
        assert updates[-1].total_bytes == 0
        assert updates[-1].is_determinate is False

    @responses.activate
    def test_http_error_status(self, tmp_path):
        """Test non-2xx response raises NetworkError."""
        url = "https://example.com/missing.zip"
        responses.add(responses.GET, url, status=404)

        with pytest.raises(NetworkError, match="HTTP 404"):
            fetch(url, tmp_path)

        assert not (tmp_path / "missing.zip").exists()

    @responses.activate
    def test_no_retry(self, tmp_path):
        """Test a failing request is attempted exactly once."""
        url = "https://example.com/flaky.zip"
        responses.add(responses.GET, url, status=503)
        responses.add(responses.GET, url, body=b"ok", status=200)

        with pytest.raises(NetworkError):
            fetch(url, tmp_path)

        assert len(responses.calls) == 1

    @responses.activate
    def test_connection_error(self, tmp_path):
        """Test transport failure raises NetworkError."""
        url = "https://example.com/down.zip"
        responses.add(
            responses.GET, url, body=requests.exceptions.ConnectionError("refused")
        )

        with pytest.raises(NetworkError, match="refused"):
            fetch(url, tmp_path)

    def test_empty_url(self, tmp_path):
        """Test empty URL is rejected."""
        with pytest.raises(InputError):
            fetch("", tmp_path)
