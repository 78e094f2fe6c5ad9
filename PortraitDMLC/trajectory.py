"""
Unit-MU sampling of leaf-pair schedules into trajectories.

A leaf moves at the exact MU where its current schedule entry becomes
due. Each move is bracketed by two table rows at the same MU (position
before, position after), so the delivered control-point table has a
vertical step at every transition.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, NamedTuple, Tuple

import numpy as np

from .sequencer import PairSequence


logger = logging.getLogger(__name__)


class TrajectoryPoint(NamedTuple):
    mu: int
    leading: int
    trailing: int


@dataclass(frozen=True)
class Trajectory:
    """Ordered (mu, leading, trailing) control points for one leaf pair."""
    points: Tuple[TrajectoryPoint, ...]

    def __len__(self) -> int:
        return len(self.points)

    def __getitem__(self, index) -> TrajectoryPoint:
        return self.points[index]

    def __iter__(self):
        return iter(self.points)

    @property
    def final(self) -> TrajectoryPoint:
        return self.points[-1]

    def to_array(self) -> np.ndarray:
        """Return points as an int array of shape (n_points, 3)."""
        return np.array(self.points, dtype=np.int64).reshape(-1, 3)


class _LeafCursor:
    """Walks one leaf schedule; exhausted once its last entry has fired."""

    def __init__(self, schedule):
        self.entries = schedule.entries
        self.index = 0
        self.position = self.entries[0].column if self.entries else 0

    @property
    def exhausted(self) -> bool:
        return self.index >= len(self.entries)

    @property
    def on_last_entry(self) -> bool:
        return self.index == len(self.entries) - 1

    def is_due(self, mu: int) -> bool:
        return not self.exhausted and mu >= self.entries[self.index].cumulative_mu

    def advance(self) -> None:
        self.index += 1
        if not self.exhausted:
            self.position = self.entries[self.index].column


def build_pair_trajectory(sequence: PairSequence) -> Trajectory:
    """
    Build the control-point trajectory of one leaf pair.

    Parameters
    ----------
    sequence : PairSequence
        Output of sequence_leaf_pair()

    Returns
    -------
    Trajectory
        total_mu + 1 unit-MU points, plus one duplicate point at every
        MU where a leaf moves. The last point is always closed
        (leading == trailing).

    Notes
    -----
    When both leaves are due at the same MU the leading leaf moves first,
    so a trailing leaf finishing its schedule closes onto the leading
    leaf's updated position.
    """
    if sequence.total_mu == 0:
        return Trajectory(points=(TrajectoryPoint(0, 0, 0),))

    lead = _LeafCursor(sequence.leading)
    trail = _LeafCursor(sequence.trailing)
    points: List[TrajectoryPoint] = []

    for mu in range(sequence.total_mu + 1):
        lead_due = lead.is_due(mu)
        trail_due = trail.is_due(mu)

        points.append(TrajectoryPoint(mu, lead.position, trail.position))
        if not (lead_due or trail_due):
            continue

        if lead_due:
            lead.advance()
        if trail_due:
            closing = trail.on_last_entry
            trail.advance()
            if closing:
                trail.position = lead.position

        points.append(TrajectoryPoint(mu, lead.position, trail.position))

    final = points[-1]
    if final.leading != final.trailing:
        # trailing schedule always ends at total_mu, so this only guards odd input
        points.append(TrajectoryPoint(final.mu, final.leading, final.leading))

    return Trajectory(points=tuple(points))


def build_trajectories(sequences: Iterable[PairSequence]) -> List[Trajectory]:
    """Build trajectories for every pair, preserving pair order."""
    trajectories = [build_pair_trajectory(seq) for seq in sequences]
    if logger.isEnabledFor(logging.DEBUG) and trajectories:
        lengths = [len(t) for t in trajectories]
        logger.debug(
            f"Built {len(trajectories)} trajectories, "
            f"length min={min(lengths)} max={max(lengths)}"
        )
    return trajectories
