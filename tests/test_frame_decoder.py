"""
Tests for planar YUV 4:2:0 to RGB conversion.
"""

import io

import numpy as np
import pytest
from PIL import Image

from camera.frame_decoder import (
    MalformedSampleError,
    decode_yuv420p,
    encode_png,
    expected_sample_size,
)


def _uniform_sample(width, height, y, u, v) -> bytes:
    luma = bytes([y]) * (width * height)
    chroma = width * height // 4
    return luma + bytes([u]) * chroma + bytes([v]) * chroma


class TestKnownVectors:
    def test_mid_gray(self):
        # 1.164 * (128 - 16) = 130.37, truncated
        rgb = decode_yuv420p(_uniform_sample(4, 4, 128, 128, 128), 4, 4)
        assert rgb.shape == (4, 4, 3)
        assert rgb.dtype == np.uint8
        assert np.all(rgb == 130)

    def test_black(self):
        rgb = decode_yuv420p(_uniform_sample(4, 2, 16, 128, 128), 4, 2)
        assert np.all(rgb == 0)

    def test_white_saturates(self):
        rgb = decode_yuv420p(_uniform_sample(2, 2, 255, 128, 128), 2, 2)
        assert np.all(rgb == 255)

    def test_negative_values_clamp_to_zero(self):
        # Y=0 gives 1.164 * -16 < 0 on every channel.
        rgb = decode_yuv420p(_uniform_sample(2, 2, 0, 128, 128), 2, 2)
        assert np.all(rgb == 0)

    def test_chroma_only_moves_expected_channels(self):
        # Strong V raises red, lowers green, leaves blue at the luma value.
        rgb = decode_yuv420p(_uniform_sample(2, 2, 128, 128, 200), 2, 2)
        r, g, b = (int(c) for c in rgb[0, 0])
        assert r == 245  # 130.368 + 1.596 * 72 = 245.28
        assert g == 71  # 130.368 - 0.813 * 72 = 71.83
        assert b == 130


def test_chroma_is_shared_by_2x2_blocks():
    width, height = 4, 2
    luma = bytes([128]) * (width * height)
    # Two chroma samples per plane: left block neutral, right block blue-shifted.
    u_plane = bytes([128, 200])
    v_plane = bytes([128, 128])
    rgb = decode_yuv420p(luma + u_plane + v_plane, width, height)

    assert np.all(rgb[:, :2, 2] == 130)
    assert np.all(rgb[:, 2:, 2] == 255)  # 130.368 + 2.018 * 72 saturates


def test_luma_is_per_pixel():
    width, height = 2, 2
    luma = bytes([16, 128, 128, 16])
    sample = luma + bytes([128]) + bytes([128])
    rgb = decode_yuv420p(sample, width, height)
    assert list(rgb[0, 0]) == [0, 0, 0]
    assert list(rgb[0, 1]) == [130, 130, 130]
    assert list(rgb[1, 0]) == [130, 130, 130]
    assert list(rgb[1, 1]) == [0, 0, 0]


@pytest.mark.parametrize("delta", [-1, 1, -6])
def test_wrong_length_is_malformed(delta):
    size = expected_sample_size(4, 4)
    with pytest.raises(MalformedSampleError):
        decode_yuv420p(bytes(size + delta), 4, 4)


def test_odd_dimensions_are_malformed():
    with pytest.raises(MalformedSampleError):
        decode_yuv420p(bytes(12), 3, 2)


def test_expected_sample_size_for_720p():
    assert expected_sample_size(1280, 720) == 1280 * 720 * 3 // 2


def test_encode_png_roundtrips_pixels():
    rgb = decode_yuv420p(_uniform_sample(4, 4, 128, 128, 128), 4, 4)
    png = encode_png(rgb)
    assert png.startswith(b"\x89PNG")
    restored = np.array(Image.open(io.BytesIO(png)))
    assert np.array_equal(restored, rgb)


def _scalar_pixel(y, u, v):
    """Per-pixel f32 conversion evaluated term by term, left to right."""
    f32 = np.float32
    c = f32(1.164) * (f32(y) - f32(16.0))
    d = f32(u) - f32(128.0)
    e = f32(v) - f32(128.0)
    r = c + f32(1.596) * e
    g = c - f32(0.813) * e - f32(0.391) * d
    b = c + f32(2.018) * d
    return [int(min(max(ch, f32(0)), f32(255))) for ch in (r, g, b)]


def test_matches_scalar_conversion_across_value_grid():
    rng = np.random.default_rng(7)
    blocks = rng.integers(0, 256, size=(512, 3), dtype=np.uint8)
    width, height = 2 * len(blocks), 2

    # One 2x2 block per (y, u, v) triple.
    luma_row = np.repeat(blocks[:, 0], 2)
    sample = (
        np.concatenate([luma_row, luma_row]).tobytes()
        + blocks[:, 1].tobytes()
        + blocks[:, 2].tobytes()
    )

    rgb = decode_yuv420p(sample, width, height)

    for i, (y, u, v) in enumerate(blocks):
        assert rgb[0, 2 * i].tolist() == _scalar_pixel(y, u, v), (y, u, v)
        assert rgb[1, 2 * i + 1].tolist() == _scalar_pixel(y, u, v), (y, u, v)
