"""
Unit tests for field assembly (padding to the device control-point count).
"""

import pytest
import numpy as np
import sys
import os
from typing import Optional, get_type_hints

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from PortraitDMLC.errors import ConfigurationError, LimitExceededError
from PortraitDMLC.field_assembly import Field, assemble_field, pad_trajectory, max_trajectory_length
from PortraitDMLC.sequencer import sequence_leaf_pair
from PortraitDMLC.trajectory import build_pair_trajectory, TrajectoryPoint


def _trajectory(profile):
    return build_pair_trajectory(sequence_leaf_pair(profile))


def test_static_pair_padding():
    """A static pair is held at (0, 0) while MU keeps counting."""
    padded = pad_trajectory(_trajectory([0, 0, 0]), fields_limit=5)

    assert [tuple(p) for p in padded] == [(k, 0, 0) for k in range(5)]


def test_short_trajectory_holds_last_position():
    padded = pad_trajectory(_trajectory([0, 4, 0]), fields_limit=10)

    assert len(padded) == 10
    assert padded[5] == TrajectoryPoint(4, 1, 1)
    assert [tuple(p) for p in padded.points[6:]] == [(5, 1, 1), (6, 1, 1), (7, 1, 1), (8, 1, 1)]


def test_exact_length_unchanged():
    traj = _trajectory([0, 4, 0])
    padded = pad_trajectory(traj, fields_limit=len(traj))

    assert padded == traj


def test_too_long_trajectory_raises():
    trajectories = [_trajectory([0, 0]), _trajectory([0, 4, 0])]

    with pytest.raises(LimitExceededError) as excinfo:
        assemble_field(trajectories, fields_limit=5)

    err = excinfo.value
    assert err.pair_index == 1
    assert err.length == 6
    assert err.limit == 5
    assert "exceeds limit" in str(err)


def test_every_pair_has_fields_limit_points():
    rng = np.random.default_rng(3)
    profiles = [rng.integers(0, 6, size=12) for _ in range(8)] + [np.zeros(12, dtype=int)]
    trajectories = [build_pair_trajectory(sequence_leaf_pair(p)) for p in profiles]
    limit = max_trajectory_length(trajectories) + 3

    field = assemble_field(trajectories, fields_limit=limit, factor=42.0)

    assert field.n_pairs == len(profiles)
    assert field.factor == 42.0
    for i in field.pair_indices():
        assert len(field.trajectories[i]) == limit
        assert field.trajectories[i].final.leading == field.trajectories[i].final.trailing
        assert field.source_lengths[i] == len(trajectories[i])


def test_field_array_shape():
    trajectories = [_trajectory([0, 4, 0]), _trajectory([3])]
    field = assemble_field(trajectories, fields_limit=8)
    arr = field.to_array()

    assert arr.shape == (2, 8, 3)
    assert np.all(np.diff(arr[:, :, 0], axis=1) >= 0)


@pytest.mark.parametrize("limit", [0, -3, 2.5])
def test_invalid_fields_limit(limit):
    with pytest.raises(ConfigurationError, match="fields_limit"):
        assemble_field([_trajectory([0, 1, 0])], fields_limit=limit)


def test_empty_field():
    field = assemble_field([], fields_limit=4)

    assert field.n_pairs == 0
    assert field.to_array().shape == (0, 4, 3)
    assert max_trajectory_length([]) == 0


def test_field_without_factor():
    assert get_type_hints(Field)["factor"] == Optional[float]

    field = assemble_field([_trajectory([0, 0, 0]), _trajectory([0, 4, 0])], fields_limit=8)

    assert field.factor is None
    assert field.source_lengths == {0: 1, 1: 6}
