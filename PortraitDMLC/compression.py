"""
Compression factor search.

Scales a raw 8-bit intensity grid by factor/255 and searches for the
factor whose longest leaf-pair trajectory uses as much of the device
control-point budget as possible without exceeding it.

The search is a hill climb with one reversal: the factor grows by
`increment_factor` until the limit is exceeded, then shrinks by the same
step until the first factor that fits again. Trajectory length is
non-decreasing in the factor, so the result is the largest fitting factor
on the increment grid reachable from `initial_factor`.
"""

import logging
import warnings
from dataclasses import dataclass
from multiprocessing import Pool
from typing import List, Optional

import numpy as np

from .errors import ConfigurationError, LimitExceededError
from .sequencer import PairSequence, sequence_intensity_grid
from .trajectory import Trajectory, build_trajectories


logger = logging.getLogger(__name__)

# Grid values are 8-bit grayscale (0..255)
INTENSITY_FULL_SCALE = 255.0


@dataclass
class FitResult:
    """Outcome of the compression factor search.

    Attributes
    ----------
    factor : float
        Accepted compression factor
    sequences : list of PairSequence
        Sequencer output for every row at that factor
    trajectories : list of Trajectory
        Unpadded trajectories for every row at that factor
    max_length : int
        Longest trajectory (<= fields_limit)
    worst_pair : int
        Row index of the longest trajectory
    iterations : int
        Number of factors evaluated
    """
    factor: float
    sequences: List[PairSequence]
    trajectories: List[Trajectory]
    max_length: int
    worst_pair: int
    iterations: int

    def __repr__(self) -> str:
        return (
            f"FitResult(factor={self.factor:g}, max_length={self.max_length}, "
            f"iterations={self.iterations})"
        )


def validate_intensity_grid(grid) -> np.ndarray:
    """
    Check a raw intensity grid and return it as a float64 array.

    Raises
    ------
    ConfigurationError
        If the grid is empty, not 2D, non-finite or negative
    """
    arr = np.asarray(grid, dtype=np.float64)
    if arr.ndim != 2:
        raise ConfigurationError(f"Intensity grid must be 2D, got shape {arr.shape}")
    if arr.size == 0:
        raise ConfigurationError("Intensity grid is empty")
    if not np.all(np.isfinite(arr)):
        raise ConfigurationError("Intensity grid contains non-finite values")
    if np.any(arr < 0):
        raise ConfigurationError(f"Intensity grid contains negative values (min={arr.min():g})")
    if arr.max() > INTENSITY_FULL_SCALE:
        warnings.warn(
            f"Intensity grid max {arr.max():g} exceeds 8-bit full scale "
            f"({INTENSITY_FULL_SCALE:g}); scaled values will exceed the factor"
        )
    return arr


def scale_intensity_grid(grid, factor: float) -> np.ndarray:
    """Scale raw intensities by factor/255 and round to integers."""
    arr = np.asarray(grid, dtype=np.float64)
    return np.rint(arr * factor / INTENSITY_FULL_SCALE).astype(np.int64)


def evaluate_factor(grid, factor: float, processes: int = 1, pool=None):
    """
    Run the sequencing pipeline at one compression factor.

    Rows are mapped over `pool` when given, otherwise over a pool of
    `processes` workers opened for this call only.

    Returns
    -------
    sequences : list of PairSequence
    trajectories : list of Trajectory
    """
    scaled = scale_intensity_grid(grid, factor)
    sequences = sequence_intensity_grid(scaled, processes=processes, pool=pool)
    trajectories = build_trajectories(sequences)
    return sequences, trajectories


def _longest(trajectories: List[Trajectory]):
    lengths = [len(t) for t in trajectories]
    worst = int(np.argmax(lengths))
    return lengths[worst], worst


def _climb(arr, fields_limit, initial_factor, increment_factor, min_factor, max_factor, pool):
    """Step the factor up until a trajectory exceeds the limit, then back down until all fit."""
    factor = float(initial_factor)
    reached_excess = False
    best = None
    iterations = 0

    while True:
        iterations += 1
        sequences, trajectories = evaluate_factor(arr, factor, pool=pool)
        max_length, worst_pair = _longest(trajectories)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"Iteration {iterations}: factor={factor:g}, max_length={max_length} "
                f"(pair {worst_pair}), limit={fields_limit}"
            )

        if max_length > fields_limit:
            reached_excess = True
            next_factor = factor - increment_factor
            if next_factor < min_factor - 1e-12:
                raise LimitExceededError(
                    worst_pair, max_length, fields_limit,
                    message=(
                        f"Leaf pair {worst_pair}: trajectory has {max_length} control points "
                        f"at minimum factor {factor:g}, exceeds limit of {fields_limit}"
                    ),
                )
            factor = next_factor
            continue

        best = FitResult(
            factor=factor,
            sequences=sequences,
            trajectories=trajectories,
            max_length=max_length,
            worst_pair=worst_pair,
            iterations=iterations,
        )
        if reached_excess:
            break

        next_factor = factor + increment_factor
        if next_factor > max_factor + 1e-12:
            warnings.warn(
                f"Compression factor reached ceiling {max_factor:g} without exceeding "
                f"{fields_limit} control points; using factor {factor:g}"
            )
            break
        factor = next_factor

    return best


def fit_compression(
    grid,
    fields_limit: int = 499,
    initial_factor: float = 100.0,
    increment_factor: float = 1.0,
    min_factor: Optional[float] = None,
    max_factor: Optional[float] = None,
    processes: int = 1
) -> FitResult:
    """
    Find the compression factor that best fills the control-point budget.

    Parameters
    ----------
    grid : array-like
        Raw intensity grid, shape (n_pairs, n_columns), values 0..255
    fields_limit : int
        Device maximum control points per field (default 499)
    initial_factor : float
        Starting compression factor
    increment_factor : float
        Step applied to the factor on every retry
    min_factor : float, optional
        Smallest factor the search may try.
        Default: min(increment_factor, initial_factor).
    max_factor : float, optional
        Largest factor the search may try. Default: 255 * fields_limit,
        beyond which any non-zero cell alone exceeds the limit.
    processes : int
        Worker processes for row sequencing

    Returns
    -------
    FitResult
        Accepted factor with its sequences and trajectories

    Raises
    ------
    ConfigurationError
        Invalid grid or parameters (checked before the search starts)
    LimitExceededError
        The longest trajectory exceeds fields_limit even at min_factor
    """
    arr = validate_intensity_grid(grid)

    if fields_limit is None or int(fields_limit) != fields_limit or fields_limit <= 0:
        raise ConfigurationError(f"fields_limit must be a positive integer, got {fields_limit}")
    fields_limit = int(fields_limit)
    if increment_factor is None or increment_factor <= 0:
        raise ConfigurationError(f"increment_factor must be positive, got {increment_factor}")
    if initial_factor is None or initial_factor <= 0:
        raise ConfigurationError(f"initial_factor must be positive, got {initial_factor}")

    if min_factor is None:
        min_factor = min(increment_factor, initial_factor)
    if max_factor is None:
        max_factor = max(INTENSITY_FULL_SCALE * fields_limit, initial_factor)
    if min_factor <= 0:
        raise ConfigurationError(f"min_factor must be positive, got {min_factor}")
    if not (min_factor <= initial_factor <= max_factor):
        raise ConfigurationError(
            f"initial_factor {initial_factor:g} outside [{min_factor:g}, {max_factor:g}]"
        )

    if not np.any(arr > 0):
        warnings.warn("Intensity grid is all zero: every leaf pair is static")
        sequences, trajectories = evaluate_factor(arr, initial_factor, processes)
        return FitResult(
            factor=float(initial_factor),
            sequences=sequences,
            trajectories=trajectories,
            max_length=1,
            worst_pair=0,
            iterations=1,
        )

    if processes is not None and processes > 1 and arr.shape[0] > 1:
        with Pool(processes=processes) as pool:
            best = _climb(arr, fields_limit, initial_factor, increment_factor,
                          min_factor, max_factor, pool)
    else:
        best = _climb(arr, fields_limit, initial_factor, increment_factor,
                      min_factor, max_factor, None)

    logger.info(
        f"Compression factor {best.factor:g} accepted after {best.iterations} iterations: "
        f"max trajectory length {best.max_length}/{fields_limit} (pair {best.worst_pair})"
    )
    return best
