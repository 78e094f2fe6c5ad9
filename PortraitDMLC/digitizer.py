"""
Image digitizer: photograph -> intensity grid.

Reads an image with SimpleITK, converts it to 8-bit grayscale, resamples
it to one row per leaf pair and one column per leaf-position sample, and
inverts it so dark image regions get high intensity (long beam-on time).
"""

import logging
from pathlib import Path
from typing import Optional

import numpy as np
import SimpleITK as sitk

from .errors import ConfigurationError


logger = logging.getLogger(__name__)

# Luma weights for R, G, B
GRAYSCALE_WEIGHTS = np.array([0.21, 0.72, 0.07])


def to_grayscale(pixels: np.ndarray) -> np.ndarray:
    """
    Convert an image array to 8-bit grayscale.

    Parameters
    ----------
    pixels : np.ndarray
        Shape (h, w) grayscale, or (h, w, c) with c >= 3 (RGB or RGBA;
        alpha is ignored)

    Returns
    -------
    np.ndarray
        uint8 array, shape (h, w)
    """
    arr = np.asarray(pixels)
    if arr.ndim == 2:
        return np.clip(arr, 0, 255).astype(np.uint8)
    if arr.ndim != 3 or arr.shape[2] < 3:
        raise ConfigurationError(f"Expected grayscale or RGB image, got shape {arr.shape}")

    gray = arr[:, :, :3].astype(np.float64) @ GRAYSCALE_WEIGHTS
    # truncate like a byte cast; epsilon keeps pure white at 255
    return np.clip(np.floor(gray + 1e-6), 0, 255).astype(np.uint8)


def rescale_to_8bit(pixels: np.ndarray) -> np.ndarray:
    """Map integer pixels wider than 8 bits onto 0..255 by the range of their type."""
    arr = np.asarray(pixels)
    if np.issubdtype(arr.dtype, np.integer) and arr.dtype.itemsize > 1:
        return arr.astype(np.float64) * (255.0 / np.iinfo(arr.dtype).max)
    return arr


def resample_image(
    gray: np.ndarray,
    height: int,
    width: int,
    antialias: bool = True
) -> np.ndarray:
    """
    Resample a 2D grayscale image to (height, width) with linear interpolation.

    The output grid covers the same physical extent as the input
    (pixel edges aligned). When shrinking, a Gaussian pre-filter with
    sigma of half an output pixel limits aliasing.

    Returns
    -------
    np.ndarray
        float64 array, shape (height, width)
    """
    if height <= 0 or width <= 0:
        raise ConfigurationError(f"Target size must be positive, got {height} x {width}")
    arr = np.asarray(gray, dtype=np.float32)
    if arr.ndim != 2 or arr.size == 0:
        raise ConfigurationError(f"Expected non-empty 2D image, got shape {arr.shape}")

    in_h, in_w = arr.shape
    img = sitk.GetImageFromArray(arr)
    img.SetOrigin((0.0, 0.0))
    img.SetSpacing((1.0, 1.0))

    # SimpleITK uses (x, y) = (width, height) ordering
    out_spacing = (in_w / width, in_h / height)
    out_origin = (-0.5 + out_spacing[0] / 2.0, -0.5 + out_spacing[1] / 2.0)

    shrinking = out_spacing[0] > 1.0 or out_spacing[1] > 1.0
    if antialias and shrinking and min(in_h, in_w) >= 4:
        sigma = [max(0.5 * s, 0.01) for s in out_spacing]
        img = sitk.SmoothingRecursiveGaussian(img, sigma)

    rf = sitk.ResampleImageFilter()
    rf.SetOutputOrigin(out_origin)
    rf.SetOutputSpacing(out_spacing)
    rf.SetOutputDirection(img.GetDirection())
    rf.SetSize((int(width), int(height)))
    rf.SetInterpolator(sitk.sitkLinear)
    rf.SetDefaultPixelValue(255.0)

    resampled = rf.Execute(img)
    return np.array(sitk.GetArrayFromImage(resampled), dtype=np.float64)


def digitize_array(
    pixels: np.ndarray,
    target_height: int = 42,
    target_width: int = 140,
    antialias: bool = True
) -> np.ndarray:
    """
    Digitize an in-memory image into an intensity grid.

    Returns
    -------
    np.ndarray
        float64 array (target_height, target_width), values 0..255,
        255 where the image is black
    """
    gray = to_grayscale(pixels)
    resampled = resample_image(gray, target_height, target_width, antialias=antialias)
    return 255.0 - np.clip(resampled, 0.0, 255.0)


def digitize_image(
    image_path,
    target_height: int = 42,
    target_width: int = 140,
    preview_path: Optional[str] = None,
    antialias: bool = True
) -> np.ndarray:
    """
    Read an image file and digitize it into an intensity grid.

    Parameters
    ----------
    image_path : str or Path
        Any format SimpleITK can read (PNG, JPEG, BMP, TIFF, ...)
    target_height : int
        Number of rows (leaf pairs)
    target_width : int
        Number of columns (leaf-position samples)
    preview_path : str or Path, optional
        If given, the resampled 8-bit grayscale image is written here

    Returns
    -------
    np.ndarray
        Intensity grid, shape (target_height, target_width)

    Raises
    ------
    FileNotFoundError
        image_path does not exist
    ConfigurationError
        SimpleITK cannot read the file
    """
    image_path = Path(image_path)
    if not image_path.exists():
        raise FileNotFoundError(f"Image not found: {image_path}")

    try:
        img = sitk.ReadImage(str(image_path))
    except RuntimeError as e:
        raise ConfigurationError(f"Cannot read image {image_path}: {e}") from e
    pixels = sitk.GetArrayFromImage(img)
    if pixels.ndim == 3 and img.GetNumberOfComponentsPerPixel() == 1:
        # single-component volume, e.g. a one-frame TIFF stack
        pixels = pixels[0]
    if pixels.dtype != np.uint8:
        logger.debug(f"Rescaling {pixels.dtype} pixels to 8 bits")
        pixels = rescale_to_8bit(pixels)

    grid = digitize_array(pixels, target_height, target_width, antialias=antialias)

    logger.info(
        f"Digitized {image_path.name}: {img.GetWidth()} x {img.GetHeight()} -> "
        f"{target_width} x {target_height}"
    )

    if preview_path is not None:
        preview = np.clip(np.rint(255.0 - grid), 0, 255).astype(np.uint8)
        sitk.WriteImage(sitk.GetImageFromArray(preview), str(preview_path))
        logger.info(f"Saved grayscale preview: {preview_path}")

    return grid
