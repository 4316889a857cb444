"""
Pose Domain Models

Data structures for representing body landmark snapshots and the
reference poses recorded from them.

Landmark indices follow MediaPipe Pose's 33-point model:
https://developers.google.com/mediapipe/solutions/vision/pose_landmarker
"""
from collections.abc import Mapping
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator, Optional, Sequence

import numpy as np


LANDMARK_COUNT = 33


class BodyPart(IntEnum):
    """
    MediaPipe Pose landmark indices.

    These map directly to MediaPipe's 33-point pose model.
    """
    # Face
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10

    # Upper body
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16

    # Hands
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22

    # Lower body
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28

    # Feet
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


def canonical_name(raw_name: Optional[str]) -> str:
    """
    Canonical form of a pose name: surrounding whitespace trimmed, case folded.

    "  Pose A " and "pose a" name the same pose.
    """
    if not raw_name:
        return ""
    return raw_name.strip().casefold()


def _as_vector(value: Sequence[float]) -> np.ndarray:
    vector = np.array(value, dtype=np.float64).reshape(-1)
    if vector.shape != (3,):
        raise ValueError(f"Landmark position must have 3 components, got {vector.shape[0]}")
    if not np.isfinite(vector).all():
        raise ValueError(f"Landmark position must be finite, got {vector.tolist()}")
    vector.setflags(write=False)
    return vector


class LandmarkSnapshot(Mapping):
    """
    Immutable mapping of landmark index -> 3D position for one instant.

    Positions are stored as read-only numpy vectors. A snapshot may be
    partial (some indices missing); use is_complete() before matching.

    Usage:
        snapshot = LandmarkSnapshot({23: (-0.1, 0, 0), 24: (0.1, 0, 0)})
        hips = snapshot[BodyPart.LEFT_HIP], snapshot[BodyPart.RIGHT_HIP]
    """

    __slots__ = ("_positions",)

    def __init__(self, positions: Optional[Mapping] = None):
        self._positions: dict[int, np.ndarray] = {}
        for index, value in (positions or {}).items():
            self._positions[int(index)] = _as_vector(value)

    def __getitem__(self, index: int) -> np.ndarray:
        return self._positions[int(index)]

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._positions))

    def __len__(self) -> int:
        return len(self._positions)

    def __contains__(self, index: object) -> bool:
        try:
            return int(index) in self._positions  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LandmarkSnapshot):
            return NotImplemented
        if self._positions.keys() != other._positions.keys():
            return False
        return all(
            np.array_equal(vector, other._positions[index])
            for index, vector in self._positions.items()
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"LandmarkSnapshot({len(self)} landmarks)"

    def is_complete(self, landmark_count: int = LANDMARK_COUNT) -> bool:
        """True when every index 0..landmark_count-1 is present."""
        return all(index in self._positions for index in range(landmark_count))

    def position(self, body_part: BodyPart) -> Optional[np.ndarray]:
        """Get a specific landmark by body part, or None if absent."""
        return self._positions.get(body_part.value)

    def to_dict(self) -> dict[int, tuple[float, float, float]]:
        """Plain index -> (x, y, z) copy, ordered by index."""
        return {
            index: (float(v[0]), float(v[1]), float(v[2]))
            for index, v in sorted(self._positions.items())
        }

    @classmethod
    def from_sequence(cls, points: Sequence[Sequence[float]]) -> "LandmarkSnapshot":
        """Build a snapshot from a list of positions indexed 0..len-1."""
        return cls({i: point for i, point in enumerate(points)})


@dataclass(frozen=True)
class RecordedPose:
    """
    A reference pose captured from a live snapshot.

    Attributes:
        name: Canonical pose name (see canonical_name)
        landmarks: The captured landmark snapshot
        tolerance: Max per-landmark distance still counted as matched
    """
    name: str
    landmarks: LandmarkSnapshot
    tolerance: float

    @property
    def landmark_count(self) -> int:
        return len(self.landmarks)
