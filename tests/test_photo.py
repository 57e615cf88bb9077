"""
Unit tests for the Photo module.

Tests the photo download and processing functions with mocked HTTP and
real Pillow images.
"""

import io
from unittest.mock import MagicMock, Mock, patch

import pytest
from PIL import Image
from requests.exceptions import HTTPError, RequestException, Timeout

from plaxo_sync.sync.photo import (
    DOWNLOAD_TIMEOUT,
    JPEG_QUALITY,
    USER_AGENT,
    PhotoDownloadError,
    PhotoError,
    PhotoResourceError,
    download_photo,
    fetch_contact_photo,
    process_photo,
)


def make_image_bytes(mode="RGB", size=(20, 20), fmt="PNG", color=None):
    """Create an in-memory image and return its encoded bytes."""
    if color is None:
        color = (255, 0, 0, 128) if mode == "RGBA" else "red"
    if mode == "P":
        image = Image.new("RGB", size, "red").convert("P")
    else:
        image = Image.new(mode, size, color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def make_response(content=b"fake image data", status_error=None):
    """Create a mock response usable as a context manager."""
    response = MagicMock()
    response.content = content
    if status_error is not None:
        response.raise_for_status.side_effect = status_error
    return response


class TestDownloadPhoto:
    """Tests for download_photo()."""

    @patch("plaxo_sync.sync.photo.requests.get")
    def test_download_photo_success(self, mock_get):
        """Test successful photo download."""
        mock_get.return_value = make_response()

        result = download_photo("https://example.com/photo.jpg")

        assert result == b"fake image data"
        mock_get.assert_called_once_with(
            "https://example.com/photo.jpg",
            timeout=DOWNLOAD_TIMEOUT,
            headers={"User-Agent": USER_AGENT},
        )

    @patch("plaxo_sync.sync.photo.requests.get")
    def test_download_photo_with_custom_timeout(self, mock_get):
        """Test download with custom timeout."""
        mock_get.return_value = make_response()

        download_photo("http://example.com/photo.jpg", timeout=5.0)

        assert mock_get.call_args.kwargs["timeout"] == 5.0

    def test_download_photo_uses_session(self):
        """Test that a given session issues the request."""
        session = Mock()
        session.get.return_value = make_response()

        result = download_photo("http://example.com/photo.jpg", session=session)

        assert result == b"fake image data"
        session.get.assert_called_once()

    @patch("plaxo_sync.sync.photo.requests.get")
    def test_download_photo_single_attempt(self, mock_get):
        """Test that a failed download is not retried."""
        mock_get.side_effect = Timeout("timed out")

        with pytest.raises(PhotoDownloadError, match="Network error"):
            download_photo("http://example.com/photo.jpg")

        assert mock_get.call_count == 1

    @patch("plaxo_sync.sync.photo.requests.get")
    def test_download_photo_http_error(self, mock_get):
        """Test that an HTTP error status raises PhotoDownloadError."""
        mock_get.return_value = make_response(status_error=HTTPError("404"))

        with pytest.raises(PhotoDownloadError, match="Failed to download"):
            download_photo("http://example.com/missing.jpg")

    @patch("plaxo_sync.sync.photo.requests.get")
    def test_download_photo_connection_error(self, mock_get):
        """Test that a transport error raises PhotoDownloadError."""
        mock_get.side_effect = RequestException("connection refused")

        with pytest.raises(PhotoDownloadError):
            download_photo("http://example.com/photo.jpg")

    @patch("plaxo_sync.sync.photo.requests.get")
    def test_download_photo_empty_body(self, mock_get):
        """Test that an empty response body raises PhotoDownloadError."""
        mock_get.return_value = make_response(content=b"")

        with pytest.raises(PhotoDownloadError, match="Empty response"):
            download_photo("http://example.com/photo.jpg")

    def test_download_photo_empty_url(self):
        """Test that an empty URL raises PhotoError."""
        with pytest.raises(PhotoError, match="cannot be empty"):
            download_photo("")

    def test_download_photo_invalid_scheme(self):
        """Test that non-HTTP URLs are rejected."""
        with pytest.raises(PhotoError, match="Invalid photo URL scheme"):
            download_photo("file:///etc/passwd")


class TestProcessPhoto:
    """Tests for process_photo()."""

    def test_output_is_jpeg(self):
        """Test that any decodable image is re-encoded as JPEG."""
        result = process_photo(make_image_bytes(fmt="PNG"))

        image = Image.open(io.BytesIO(result))
        assert image.format == "JPEG"
        assert image.size == (20, 20)

    def test_default_quality(self):
        """Test that the default JPEG quality is 70."""
        assert JPEG_QUALITY == 70

    def test_quality_is_passed_to_encoder(self):
        """Test that the requested quality reaches Pillow."""
        data = make_image_bytes(size=(64, 64))
        with patch.object(Image.Image, "save", autospec=True) as mock_save:
            process_photo(data)

        assert mock_save.call_args.kwargs["format"] == "JPEG"
        assert mock_save.call_args.kwargs["quality"] == 70

    def test_rgba_is_flattened(self):
        """Test that transparent images become RGB."""
        result = process_photo(make_image_bytes(mode="RGBA"))

        assert Image.open(io.BytesIO(result)).mode == "RGB"

    def test_palette_image_is_converted(self):
        """Test that palette images are converted to RGB."""
        result = process_photo(make_image_bytes(mode="P"))

        assert Image.open(io.BytesIO(result)).mode == "RGB"

    def test_grayscale_is_kept(self):
        """Test that grayscale images stay grayscale."""
        result = process_photo(make_image_bytes(mode="L", color=128))

        assert Image.open(io.BytesIO(result)).mode == "L"

    def test_invalid_data_raises(self):
        """Test that undecodable data raises PhotoError."""
        with pytest.raises(PhotoError, match="Invalid or unsupported"):
            process_photo(b"definitely not an image")

    def test_empty_data_raises(self):
        """Test that empty data raises PhotoError."""
        with pytest.raises(PhotoError, match="cannot be empty"):
            process_photo(b"")

    def test_memory_error_becomes_resource_error(self):
        """Test that running out of memory is reported separately."""
        with patch("plaxo_sync.sync.photo.Image.open", side_effect=MemoryError()):
            with pytest.raises(PhotoResourceError):
                process_photo(b"huge")

    def test_decompression_bomb_becomes_resource_error(self):
        """Test that oversized images are reported as resource errors."""
        data = make_image_bytes(size=(100, 100))
        with patch.object(Image, "MAX_IMAGE_PIXELS", 1000):
            with pytest.raises(PhotoResourceError):
                process_photo(data)


class TestFetchContactPhoto:
    """Tests for fetch_contact_photo()."""

    def test_empty_url_returns_none(self):
        """Test that a contact without URL has no photo."""
        assert fetch_contact_photo("") is None

    @patch("plaxo_sync.sync.photo.download_photo")
    def test_success(self, mock_download):
        """Test that a downloaded photo is re-encoded."""
        mock_download.return_value = make_image_bytes()

        result = fetch_contact_photo("http://example.com/p.png", timeout=3.0)

        assert Image.open(io.BytesIO(result)).format == "JPEG"
        mock_download.assert_called_once_with("http://example.com/p.png", timeout=3.0)

    @patch("plaxo_sync.sync.photo.download_photo")
    def test_download_failure_returns_none(self, mock_download):
        """Test that a failed download degrades to no photo."""
        mock_download.side_effect = PhotoDownloadError("boom")

        assert fetch_contact_photo("http://example.com/p.jpg") is None

    @patch("plaxo_sync.sync.photo.download_photo")
    def test_invalid_image_returns_none(self, mock_download):
        """Test that undecodable data degrades to no photo."""
        mock_download.return_value = b"<html>not found</html>"

        assert fetch_contact_photo("http://example.com/p.jpg") is None

    @patch("plaxo_sync.sync.photo.process_photo")
    @patch("plaxo_sync.sync.photo.download_photo")
    def test_resource_error_returns_none(self, mock_download, mock_process):
        """Test that resource exhaustion degrades to no photo."""
        mock_download.return_value = b"data"
        mock_process.side_effect = PhotoResourceError("too big")

        assert fetch_contact_photo("http://example.com/p.jpg") is None
