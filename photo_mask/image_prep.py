"""
Image Preparation for the Edit API

Bytes <-> raster helpers around the mask core:
- upload validation (PNG only, max 4 MB)
- decode to RGB (alpha removed)
- cover-fit center resize to the square edit size
- PNG encoding of the prepared image and the mask
"""

import cv2
import numpy as np
from typing import Optional, Tuple

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
MAX_UPLOAD_BYTES = 4 * 1024 * 1024  # Edit API limit
DEFAULT_EDIT_SIZE = 512


def validate_upload(content: bytes, max_bytes: int = MAX_UPLOAD_BYTES) -> Tuple[bool, str]:
    """
    Validate an uploaded headshot.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not content:
        return False, "Empty image"

    if len(content) > max_bytes:
        return False, f"Image too large: {len(content)} bytes (max {max_bytes})"

    if content[:len(PNG_MAGIC)] != PNG_MAGIC:
        return False, "Invalid image format: PNG required (magic bytes check failed)"

    return True, ""


def decode_image(content: bytes) -> np.ndarray:
    """
    Decode image bytes to an RGB raster, dropping any alpha channel.

    Raises:
        ValueError: If the bytes cannot be decoded
    """
    buffer = np.frombuffer(content, dtype=np.uint8)
    image_bgr = cv2.imdecode(buffer, cv2.IMREAD_COLOR)

    if image_bgr is None:
        raise ValueError("Could not decode image")

    return cv2.cvtColor(image_bgr, cv2.COLOR_BGR2RGB)


def cover_resize(image: np.ndarray, size: int = DEFAULT_EDIT_SIZE) -> np.ndarray:
    """
    Scale so the image covers size x size, then center crop.

    Returns:
        (size, size, C) uint8 array
    """
    if size <= 0:
        raise ValueError(f"Target size must be positive, got {size}")

    height, width = image.shape[:2]
    scale = max(size / width, size / height)

    new_width = max(size, int(round(width * scale)))
    new_height = max(size, int(round(height * scale)))

    interpolation = cv2.INTER_AREA if scale < 1.0 else cv2.INTER_CUBIC
    resized = cv2.resize(image, (new_width, new_height), interpolation=interpolation)

    x = (new_width - size) // 2
    y = (new_height - size) // 2

    return np.ascontiguousarray(resized[y:y + size, x:x + size])


def prepare_image(content: bytes, size: int = DEFAULT_EDIT_SIZE) -> np.ndarray:
    """Decode and cover-fit an upload to the square RGB edit raster."""
    return cover_resize(decode_image(content), size)


def encode_png(raster: np.ndarray) -> bytes:
    """
    Encode an RGB or RGBA raster as PNG.

    Raises:
        ValueError: If the raster has an unsupported channel count or
                    encoding fails
    """
    channels = raster.shape[2] if raster.ndim == 3 else 1

    if channels == 4:
        image = cv2.cvtColor(raster, cv2.COLOR_RGBA2BGRA)
    elif channels == 3:
        image = cv2.cvtColor(raster, cv2.COLOR_RGB2BGR)
    elif channels == 1:
        image = raster
    else:
        raise ValueError(f"Unsupported channel count: {channels}")

    ok, encoded = cv2.imencode(".png", np.ascontiguousarray(image))
    if not ok:
        raise ValueError("PNG encoding failed")

    return encoded.tobytes()


def raster_from_buffer(
    buffer: bytes,
    width: int,
    height: int,
    channels: int = 3
) -> np.ndarray:
    """
    Wrap a raw row-major pixel buffer as a (height, width, channels) raster.

    Raises:
        ValueError: If the buffer length is not width * height * channels
    """
    expected = width * height * channels
    if width <= 0 or height <= 0 or len(buffer) != expected:
        raise ValueError(
            f"Buffer length {len(buffer)} does not match {width}x{height}x{channels} = {expected}"
        )

    return np.frombuffer(buffer, dtype=np.uint8).reshape(height, width, channels).copy()


def raster_to_buffer(raster: np.ndarray) -> bytes:
    """Raw row-major bytes of a raster."""
    return np.ascontiguousarray(raster, dtype=np.uint8).tobytes()


def parse_edit_size(value: Optional[str], default: int = DEFAULT_EDIT_SIZE) -> int:
    """Parse an EDIT_IMAGE_SIZE-style value ("512" or "512x512")."""
    if not value:
        return default

    value = value.strip().lower()
    if "x" in value:
        width, height = value.split("x", 1)
        if width != height:
            raise ValueError(f"Edit size must be square, got {value}")
        value = width

    size = int(value)
    if size <= 0:
        raise ValueError(f"Edit size must be positive, got {size}")
    return size
