"""Shared fixtures: synthetic 33-landmark skeletons and a temp pose registry."""

import numpy as np
import pytest

from core.domain import LANDMARK_COUNT, BodyPart, LandmarkSnapshot
from core.services import PoseRegistry


def make_skeleton(seed: int = 0, hip_half_width: float = 0.1) -> dict[int, np.ndarray]:
    """
    A full skeleton with the hips at (+-hip_half_width, 0, 0).

    Other landmarks are spread deterministically around the hips.
    """
    rng = np.random.default_rng(seed)
    points = {i: rng.uniform(-0.8, 0.8, size=3) for i in range(LANDMARK_COUNT)}
    points[BodyPart.LEFT_HIP.value] = np.array([-hip_half_width, 0.0, 0.0])
    points[BodyPart.RIGHT_HIP.value] = np.array([hip_half_width, 0.0, 0.0])
    return points


def yaw(degrees: float) -> np.ndarray:
    """Rotation about the vertical (y) axis."""
    a = np.radians(degrees)
    return np.array([
        [np.cos(a), 0.0, np.sin(a)],
        [0.0, 1.0, 0.0],
        [-np.sin(a), 0.0, np.cos(a)],
    ])


def transform(points, rotation=None, scale=1.0, offset=(0.0, 0.0, 0.0)) -> LandmarkSnapshot:
    rotation = np.eye(3) if rotation is None else rotation
    offset = np.asarray(offset, dtype=float)
    return LandmarkSnapshot({i: rotation @ (np.asarray(p) * scale) + offset for i, p in points.items()})


@pytest.fixture
def skeleton():
    return make_skeleton(seed=1)


@pytest.fixture
def snapshot(skeleton):
    return LandmarkSnapshot(skeleton)


@pytest.fixture
def registry(tmp_path):
    return PoseRegistry(tmp_path / "poses")
