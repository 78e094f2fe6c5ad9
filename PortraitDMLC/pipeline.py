"""
End-to-end conversion: image or intensity grid -> assembled field -> MLC file.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np

from .compression import FitResult, fit_compression
from .config import ConversionConfig
from .digitizer import digitize_image
from .field_assembly import Field, assemble_field
from .mlc_writer import write_mlc_file, write_trajectory_tables


logger = logging.getLogger(__name__)


@dataclass
class ConversionResult:
    """Assembled field plus the compression search that produced it."""
    field: Field
    fit: FitResult
    grid: np.ndarray
    output_path: Optional[Path] = None
    table_path: Optional[Path] = None

    def __repr__(self) -> str:
        return (
            f"ConversionResult(pairs={self.field.n_pairs}, "
            f"fields_limit={self.field.fields_limit}, factor={self.fit.factor:g})"
        )


def convert_intensity_grid(grid, config: Optional[ConversionConfig] = None) -> ConversionResult:
    """
    Fit the compression factor for a raw intensity grid and assemble the field.

    Raises
    ------
    ConfigurationError
        Invalid grid or settings
    LimitExceededError
        No factor keeps every pair within fields_limit
    """
    config = config or ConversionConfig()
    config.validate()
    settings = config.fitter

    fit = fit_compression(
        grid,
        fields_limit=settings.fields_limit,
        initial_factor=settings.initial_factor,
        increment_factor=settings.increment_factor,
        min_factor=settings.min_factor,
        max_factor=settings.max_factor,
        processes=settings.processes,
    )
    field = assemble_field(fit.trajectories, settings.fields_limit, factor=fit.factor)
    return ConversionResult(field=field, fit=fit, grid=np.asarray(grid, dtype=np.float64))


def convert_image(
    image_path,
    output_path,
    config: Optional[ConversionConfig] = None,
    table_path=None,
    preview_path=None
) -> ConversionResult:
    """
    Convert a portrait image into a dynamic MLC file.

    Parameters
    ----------
    image_path : str or Path
        Input image
    output_path : str or Path
        MLC file to write
    config : ConversionConfig, optional
        Settings; defaults to ConversionConfig()
    table_path : str or Path, optional
        If given, the trajectory table CSV is written here
    preview_path : str or Path, optional
        If given, the digitised grayscale preview is written here
    """
    config = config or ConversionConfig()
    config.validate()

    grid = digitize_image(
        image_path,
        target_height=config.digitizer.target_height,
        target_width=config.digitizer.target_width,
        preview_path=preview_path,
    )
    result = convert_intensity_grid(grid, config)

    result.output_path = write_mlc_file(result.field, output_path, config.geometry, config.header)
    if table_path is not None:
        result.table_path = write_trajectory_tables(result.field, table_path)

    logger.info(f"Converted {image_path} -> {result.output_path}: {result}")
    return result
