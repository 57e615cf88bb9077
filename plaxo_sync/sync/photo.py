"""
Photo download and processing for Plaxo contacts.

Provides utilities for:
- Downloading contact photos from URLs
- Decoding and re-encoding photos as fixed-quality JPEG
- Degrading to "no photo" instead of failing a sync

A download is attempted exactly once; there is no retry logic.
"""

import io
import logging
import warnings
from typing import Optional

import requests
from PIL import Image
from requests.exceptions import RequestException

from plaxo_sync import __version__

# HTTP timeout configuration
DOWNLOAD_TIMEOUT = 30.0  # seconds

# Photo processing configuration
JPEG_QUALITY = 70

USER_AGENT = f"plaxo-sync/{__version__}"

logger = logging.getLogger(__name__)


class PhotoError(Exception):
    """Raised when a photo operation fails."""

    pass


class PhotoDownloadError(PhotoError):
    """Raised when a photo download fails."""

    pass


class PhotoResourceError(PhotoError):
    """Raised when decoding a photo exhausts memory or pixel limits."""

    pass


def download_photo(
    url: str,
    timeout: float = DOWNLOAD_TIMEOUT,
    session: Optional[requests.Session] = None,
) -> bytes:
    """
    Download a photo from a URL.

    Args:
        url: URL of the photo to download
        timeout: Request timeout in seconds (default: 30)
        session: Optional requests session to issue the GET on

    Returns:
        Photo data as bytes

    Raises:
        PhotoDownloadError: If the request fails or returns no data
        PhotoError: For an invalid URL

    Example:
        >>> photo_data = download_photo("http://example.com/photo.jpg")
        >>> len(photo_data) > 0
        True
    """
    if not url:
        raise PhotoError("Photo URL cannot be empty")

    if not url.startswith(("http://", "https://")):
        raise PhotoError(f"Invalid photo URL scheme: {url}")

    getter = session.get if session is not None else requests.get

    logger.debug(f"Downloading photo from {url}")
    try:
        response = getter(url, timeout=timeout, headers={"User-Agent": USER_AGENT})
        with response:
            response.raise_for_status()
            content = response.content
    except requests.HTTPError as e:
        raise PhotoDownloadError(f"Failed to download photo: {e}") from e
    except RequestException as e:
        raise PhotoDownloadError(f"Network error downloading photo: {e}") from e

    if not content:
        raise PhotoDownloadError(f"Empty response from {url}")

    logger.debug(f"Downloaded photo: {len(content)} bytes from {url}")
    return content


def process_photo(photo_data: bytes, quality: int = JPEG_QUALITY) -> bytes:
    """
    Decode photo data and re-encode it as JPEG.

    Args:
        photo_data: Raw photo data as bytes
        quality: JPEG quality (default: 70)

    Returns:
        Processed photo data as bytes in JPEG format

    Raises:
        PhotoResourceError: If decoding runs out of memory or the image
            exceeds Pillow's decompression-bomb limit
        PhotoError: If the data is not a decodable image
    """
    if not photo_data:
        raise PhotoError("Photo data cannot be empty")

    try:
        with warnings.catch_warnings():
            warnings.simplefilter("error", Image.DecompressionBombWarning)
            image = Image.open(io.BytesIO(photo_data))
            image.load()

        # Convert to RGB if needed (handles RGBA, P, L, etc.)
        if image.mode == "RGBA":
            background = Image.new("RGB", image.size, (255, 255, 255))
            background.paste(image, mask=image.split()[3])
            image = background
        elif image.mode not in ("RGB", "L"):
            image = image.convert("RGB")

        output = io.BytesIO()
        image.save(output, format="JPEG", quality=quality)
        output_data = output.getvalue()

    except (MemoryError, Image.DecompressionBombError,
            Image.DecompressionBombWarning) as e:
        raise PhotoResourceError(f"Photo too large to decode: {e}") from e

    except Image.UnidentifiedImageError as e:
        raise PhotoError("Invalid or unsupported image format") from e

    except (OSError, ValueError) as e:
        raise PhotoError(f"Failed to process photo: {e}") from e

    logger.debug(f"Processed photo: {len(photo_data)} -> {len(output_data)} bytes")
    return output_data


def fetch_contact_photo(
    url: str, timeout: float = DOWNLOAD_TIMEOUT
) -> Optional[bytes]:
    """
    Download and re-encode a contact photo, degrading to None on failure.

    Resource exhaustion while decoding yields None silently; every other
    failure is logged and also yields None. Nothing is raised.

    Args:
        url: Photo URL; an empty URL means the contact has no photo
        timeout: Download timeout in seconds

    Returns:
        JPEG bytes, or None if no photo is available
    """
    if not url:
        return None

    try:
        return process_photo(download_photo(url, timeout=timeout))
    except PhotoResourceError as e:
        logger.debug(f"Dropping photo from {url}: {e}")
    except PhotoError as e:
        logger.warning(f"Could not fetch photo from {url}: {e}")
    return None
