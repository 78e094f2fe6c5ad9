"""
Leaf-pair sequencing for dynamic (sliding window) MLC delivery.

Converts one row of target intensities into leading and trailing leaf
schedules using the unidirectional sweep decomposition (Ma et al., Eq. 6):
the profile is padded with zeros, forward differences are taken in the
leaf travel direction, positive steps drive the leading leaf and negative
steps drive the trailing leaf.

Key functions:
- sequence_leaf_pair(): One profile -> PairSequence
- sequence_intensity_grid(): Every row of a grid -> list of PairSequence
"""

from dataclasses import dataclass
from multiprocessing import Pool
from typing import List, Sequence, Tuple

import numpy as np

from .errors import ConfigurationError


@dataclass(frozen=True)
class ScheduleEntry:
    """One leaf event: the leaf is at `column` until `cumulative_mu` is delivered."""
    column: int
    cumulative_mu: int


@dataclass(frozen=True)
class LeafSchedule:
    """
    Ordered events for one leaf.

    Entries are sorted by increasing cumulative MU and decreasing column,
    since the leaf only travels in one direction during the field.
    """
    entries: Tuple[ScheduleEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def __getitem__(self, index) -> ScheduleEntry:
        return self.entries[index]

    def __iter__(self):
        return iter(self.entries)

    @property
    def columns(self) -> Tuple[int, ...]:
        return tuple(e.column for e in self.entries)

    @property
    def cumulative_mu(self) -> Tuple[int, ...]:
        return tuple(e.cumulative_mu for e in self.entries)

    @property
    def final_mu(self) -> int:
        return self.entries[-1].cumulative_mu if self.entries else 0

    def as_pairs(self) -> Tuple[Tuple[int, int], ...]:
        return tuple((e.column, e.cumulative_mu) for e in self.entries)


@dataclass(frozen=True)
class PairSequence:
    """Sequencer output for one leaf pair.

    Attributes
    ----------
    leading : LeafSchedule
        Schedule of the leaf that opens the aperture
    trailing : LeafSchedule
        Schedule of the leaf that closes the aperture
    total_mu : int
        Final cumulative MU of the trailing schedule (0 for a static pair)
    """
    leading: LeafSchedule
    trailing: LeafSchedule
    total_mu: int

    @property
    def is_static(self) -> bool:
        return self.total_mu == 0


def _as_integer_profile(profile) -> np.ndarray:
    values = np.asarray(profile)
    if values.ndim != 1:
        raise ConfigurationError(
            f"Intensity profile must be one-dimensional, got shape {values.shape}"
        )
    if values.size == 0:
        return values.astype(np.int64)

    if not np.issubdtype(values.dtype, np.integer):
        if not np.issubdtype(values.dtype, np.number) or np.issubdtype(values.dtype, np.complexfloating):
            raise ConfigurationError(f"Intensity profile must be numeric, got dtype {values.dtype}")
        if not np.all(np.isfinite(values)):
            raise ConfigurationError("Intensity profile contains non-finite values")
        if np.any(values != np.round(values)):
            raise ConfigurationError(
                "Intensity profile must contain integers; scale and round before sequencing"
            )

    values = values.astype(np.int64)
    if np.any(values < 0):
        raise ConfigurationError(
            f"Intensity profile contains negative values (min={int(values.min())})"
        )
    return values


def sequence_leaf_pair(profile: Sequence[int]) -> PairSequence:
    """
    Sequence one intensity profile into leading/trailing leaf schedules.

    Parameters
    ----------
    profile : sequence of int
        Non-negative integer intensities, one per leaf-position column

    Returns
    -------
    PairSequence
        Leading and trailing schedules plus the pair's total MU

    Raises
    ------
    ConfigurationError
        If the profile is not 1D or holds negative / fractional values

    Notes
    -----
    Scanning runs from the last column back to the first, so both
    schedules come out with decreasing columns and increasing MU.
    """
    values = _as_integer_profile(profile)
    padded = np.concatenate(([0], values, [0]))
    deltas = np.diff(padded)  # deltas[i] = padded[i+1] - padded[i]

    leading = []
    trailing = []
    leading_mu = 0
    trailing_mu = 0

    for i in range(len(values), -1, -1):
        delta = int(deltas[i])
        if delta > 0:
            leading_mu += delta
            leading.append(ScheduleEntry(column=i, cumulative_mu=leading_mu))
        elif delta < 0:
            trailing_mu -= delta
            trailing.append(ScheduleEntry(column=i, cumulative_mu=trailing_mu))

    return PairSequence(
        leading=LeafSchedule(tuple(leading)),
        trailing=LeafSchedule(tuple(trailing)),
        total_mu=trailing_mu,
    )


def sequence_intensity_grid(grid, processes: int = 1, pool=None) -> List[PairSequence]:
    """
    Sequence every row of an integer intensity grid.

    Parameters
    ----------
    grid : array-like
        2D integer grid, shape (n_pairs, n_columns)
    processes : int
        Worker processes for row sequencing. 1 (default) runs in-process.
    pool : multiprocessing.pool.Pool, optional
        Existing worker pool to map rows over. Takes precedence over
        processes; the caller owns its lifetime.

    Returns
    -------
    list of PairSequence
        One entry per row, in row order
    """
    rows = np.asarray(grid)
    if rows.ndim != 2:
        raise ConfigurationError(f"Intensity grid must be 2D, got shape {rows.shape}")

    if pool is not None:
        return pool.map(sequence_leaf_pair, list(rows))

    if processes is not None and processes > 1 and rows.shape[0] > 1:
        with Pool(processes=processes) as pool:
            return pool.map(sequence_leaf_pair, list(rows))

    return [sequence_leaf_pair(row) for row in rows]
