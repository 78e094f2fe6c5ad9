"""
Field assembly: normalise every leaf-pair trajectory to the device
control-point count.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from .errors import ConfigurationError, LimitExceededError
from .trajectory import Trajectory, TrajectoryPoint


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Field:
    """
    Leaf-pair trajectories resized to a common control-point count.

    Attributes
    ----------
    trajectories : dict
        Pair index (0 = outermost) -> Trajectory of exactly fields_limit points
    fields_limit : int
        Number of control points per pair
    factor : float, optional
        Compression factor the intensities were scaled with
    source_lengths : dict
        Pair index -> control points before padding (1 for a static pair)
    """
    trajectories: Dict[int, Trajectory]
    fields_limit: int
    factor: Optional[float] = None
    source_lengths: Dict[int, int] = field(default_factory=dict)

    @property
    def n_pairs(self) -> int:
        return len(self.trajectories)

    def pair_indices(self) -> List[int]:
        return sorted(self.trajectories)

    def to_array(self) -> np.ndarray:
        """Return an int array of shape (n_pairs, fields_limit, 3): mu, leading, trailing."""
        if not self.trajectories:
            return np.zeros((0, self.fields_limit, 3), dtype=np.int64)
        return np.stack([self.trajectories[i].to_array() for i in self.pair_indices()])


def pad_trajectory(trajectory: Trajectory, fields_limit: int, pair_index: int = 0) -> Trajectory:
    """
    Resize one trajectory to exactly fields_limit points.

    Static pairs (a single point) are held at (0, 0); shorter trajectories
    hold their last positions. Padded points continue the MU count one
    unit at a time.

    Raises
    ------
    LimitExceededError
        If the trajectory is longer than fields_limit
    """
    length = len(trajectory)
    if length > fields_limit:
        raise LimitExceededError(pair_index, length, fields_limit)
    if length == fields_limit:
        return trajectory

    last = trajectory.final
    if length == 1:
        leading, trailing = 0, 0
    else:
        leading, trailing = last.leading, last.trailing

    padding = tuple(
        TrajectoryPoint(last.mu + k, leading, trailing)
        for k in range(1, fields_limit - length + 1)
    )
    return Trajectory(points=trajectory.points + padding)


def assemble_field(
    trajectories: Sequence[Trajectory],
    fields_limit: int,
    factor: Optional[float] = None
) -> Field:
    """
    Assemble a Field from per-pair trajectories.

    Parameters
    ----------
    trajectories : sequence of Trajectory
        One trajectory per leaf pair, in pair order
    fields_limit : int
        Device maximum number of control points
    factor : float, optional
        Compression factor, stored on the Field for reporting

    Returns
    -------
    Field
        Every trajectory padded to exactly fields_limit points

    Raises
    ------
    ConfigurationError
        If fields_limit is not positive
    LimitExceededError
        If any trajectory is longer than fields_limit. No partial field
        is returned.
    """
    if fields_limit is None or int(fields_limit) != fields_limit or fields_limit <= 0:
        raise ConfigurationError(f"fields_limit must be a positive integer, got {fields_limit}")
    fields_limit = int(fields_limit)

    assembled = {}
    lengths = {}
    for i, trajectory in enumerate(trajectories):
        lengths[i] = len(trajectory)
        assembled[i] = pad_trajectory(trajectory, fields_limit, pair_index=i)

    n_static = sum(1 for n in lengths.values() if n == 1)
    logger.info(
        f"Assembled field: {len(assembled)} leaf pairs x {fields_limit} control points "
        f"({n_static} static)"
    )
    return Field(
        trajectories=assembled,
        fields_limit=fields_limit,
        factor=factor,
        source_lengths=lengths,
    )


def max_trajectory_length(trajectories: Iterable[Trajectory]) -> int:
    """Longest trajectory (0 for an empty collection)."""
    return max((len(t) for t in trajectories), default=0)
