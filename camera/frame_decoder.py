# ------------------------------------------------------------------------------
# Planar YUV 4:2:0 to RGB conversion for raw camera samples
# camera/frame_decoder.py
# ------------------------------------------------------------------------------
from __future__ import annotations

import io

import numpy as np
from PIL import Image


class MalformedSampleError(ValueError):
    """Raised when a raw sample does not match the expected planar layout."""


def expected_sample_size(width: int, height: int) -> int:
    """Byte length of a planar 4:2:0 sample: one luma plane plus two quarter-size chroma planes."""
    return width * height * 3 // 2


def decode_yuv420p(sample: bytes, width: int, height: int) -> np.ndarray:
    """
    Converts a planar YUV 4:2:0 sample into an RGB image.

    The sample holds the Y plane (width*height bytes) followed by the U and V
    planes (width*height/4 bytes each). Conversion uses BT.601 limited-range
    coefficients in float32; each channel is saturated to 0..255 and truncated
    toward zero.

    Args:
        sample: Raw sample bytes.
        width: Frame width in pixels (even).
        height: Frame height in pixels (even).

    Returns:
        np.ndarray: uint8 array of shape (height, width, 3) in RGB order.

    Raises:
        MalformedSampleError: If the dimensions are invalid or the sample length
            does not equal width*height*3/2.
    """
    if width <= 0 or height <= 0 or width % 2 or height % 2:
        raise MalformedSampleError(
            f"Invalid frame dimensions {width}x{height}: both must be positive and even"
        )
    expected = expected_sample_size(width, height)
    if len(sample) != expected:
        raise MalformedSampleError(
            f"Sample is {len(sample)} bytes, expected {expected} for {width}x{height}"
        )

    buf = np.frombuffer(sample, dtype=np.uint8)
    luma_size = width * height
    chroma_size = luma_size // 4

    y_plane = buf[:luma_size].reshape(height, width).astype(np.float32)
    u_plane = buf[luma_size:luma_size + chroma_size].reshape(height // 2, width // 2)
    v_plane = buf[luma_size + chroma_size:].reshape(height // 2, width // 2)

    # Each chroma sample covers a 2x2 block of luma samples.
    u = np.repeat(np.repeat(u_plane, 2, axis=0), 2, axis=1).astype(np.float32)
    v = np.repeat(np.repeat(v_plane, 2, axis=0), 2, axis=1).astype(np.float32)

    c = np.float32(1.164) * (y_plane - np.float32(16.0))
    d = u - np.float32(128.0)
    e = v - np.float32(128.0)

    r = c + np.float32(1.596) * e
    g = c - np.float32(0.813) * e - np.float32(0.391) * d
    b = c + np.float32(2.018) * d

    rgb = np.stack((r, g, b), axis=-1)
    return np.clip(rgb, 0, 255).astype(np.uint8)


def encode_png(rgb: np.ndarray) -> bytes:
    """Encodes an RGB uint8 array as PNG bytes."""
    buffer = io.BytesIO()
    Image.fromarray(rgb).save(buffer, format="PNG")
    return buffer.getvalue()
