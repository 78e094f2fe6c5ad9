"""
Test image digitization (grayscale, resampling, inversion).
"""

import pytest
import numpy as np
import SimpleITK as sitk
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from PortraitDMLC.digitizer import (
    digitize_array,
    digitize_image,
    resample_image,
    rescale_to_8bit,
    to_grayscale,
)
from PortraitDMLC.errors import ConfigurationError


def _half_black_rgb(height, width):
    """Left half black, right half white."""
    rgb = np.full((height, width, 3), 255, dtype=np.uint8)
    rgb[:, : width // 2, :] = 0
    return rgb


def test_grayscale_weights():
    rgb = np.array([[[100, 200, 50], [255, 255, 255], [0, 0, 0]]], dtype=np.uint8)
    gray = to_grayscale(rgb)

    assert gray.dtype == np.uint8
    assert gray.tolist() == [[168, 255, 0]]


def test_grayscale_ignores_alpha_and_passes_gray_through():
    rgba = np.zeros((2, 2, 4), dtype=np.uint8)
    rgba[..., 3] = 255
    assert np.all(to_grayscale(rgba) == 0)

    gray = np.array([[10, 20], [30, 40]], dtype=np.uint8)
    assert np.array_equal(to_grayscale(gray), gray)


def test_grayscale_rejects_bad_shape():
    with pytest.raises(ConfigurationError, match="Expected grayscale or RGB"):
        to_grayscale(np.zeros((4, 4, 2)))


def test_resample_uniform_image():
    gray = np.full((84, 280), 200, dtype=np.uint8)
    out = resample_image(gray, 42, 140)

    assert out.shape == (42, 140)
    assert out == pytest.approx(np.full((42, 140), 200.0), abs=0.5)


def test_resample_upsampling_keeps_values():
    gray = np.array([[0, 255], [0, 255]], dtype=np.uint8)
    out = resample_image(gray, 4, 4)

    assert out.shape == (4, 4)
    assert np.all(out >= 0) and np.all(out <= 255)
    assert out[:, 0].max() < out[:, -1].min()


def test_resample_invalid_size():
    with pytest.raises(ConfigurationError, match="positive"):
        resample_image(np.zeros((5, 5)), 0, 10)


def test_digitize_array_inverts():
    """Black image regions become high intensity."""
    grid = digitize_array(_half_black_rgb(84, 280), target_height=42, target_width=140)

    assert grid.shape == (42, 140)
    assert grid.min() >= 0.0 and grid.max() <= 255.0
    assert grid[:, :60].mean() > 240
    assert grid[:, 80:].mean() < 15


def test_digitize_image_from_file(tmp_path):
    image_path = tmp_path / "portrait.png"
    preview_path = tmp_path / "preview.png"
    img = sitk.GetImageFromArray(_half_black_rgb(60, 200), isVector=True)
    sitk.WriteImage(img, str(image_path))

    grid = digitize_image(image_path, target_height=6, target_width=20, preview_path=preview_path)

    assert grid.shape == (6, 20)
    assert grid[:, :8].mean() > 240
    assert grid[:, 12:].mean() < 15

    preview = sitk.GetArrayFromImage(sitk.ReadImage(str(preview_path)))
    assert preview.shape == (6, 20)
    assert preview.dtype == np.uint8


def test_digitize_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        digitize_image(tmp_path / "missing.png")


def test_rescale_wide_integer_pixels():
    gray16 = np.array([[0, 32768, 65535]], dtype=np.uint16)
    assert rescale_to_8bit(gray16) == pytest.approx([[0.0, 127.502, 255.0]], abs=1e-3)

    rgb16 = np.full((2, 2, 3), 65535, dtype=np.uint16)
    assert to_grayscale(rescale_to_8bit(rgb16)).tolist() == [[255, 255], [255, 255]]

    gray8 = np.array([[0, 128, 255]], dtype=np.uint8)
    assert np.array_equal(rescale_to_8bit(gray8), gray8)


def test_digitize_16_bit_image(tmp_path):
    image_path = tmp_path / "gray16.png"
    pixels = np.full((30, 50), 32768, dtype=np.uint16)
    sitk.WriteImage(sitk.GetImageFromArray(pixels), str(image_path))

    grid = digitize_image(image_path, target_height=5, target_width=10)

    # mid-gray stays mid-gray instead of saturating to white
    assert grid == pytest.approx(np.full((5, 10), 128.0), abs=0.5)


def test_digitize_unreadable_file(tmp_path):
    image_path = tmp_path / "portrait.png"
    image_path.write_text("not an image")

    with pytest.raises(ConfigurationError, match="Cannot read image"):
        digitize_image(image_path)
