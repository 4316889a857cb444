"""
Pose Normalizer Service

Brings a live skeleton into the frame of a reference skeleton so the two
can be compared landmark by landmark, regardless of where the player
stands, which way they face, or how tall they are.

Pure mathematics on numpy vectors.
"""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

import numpy as np

from ..domain.pose import BodyPart
from ..domain.sequence import NormalizationMode

logger = logging.getLogger(__name__)

# Squared hip-vector lengths below this are treated as zero
EPSILON = 1e-6


@dataclass
class NormalizedPose:
    """
    Live and reference landmarks expressed in a common frame.

    Attributes:
        live_offsets: Live landmarks after translation/rotation/scaling
        reference_offsets: Reference landmarks relative to their hip midpoint
        rotation_applied: False if orientation alignment was skipped
        scale_applied: False if scale normalization was skipped
    """
    live_offsets: dict[int, np.ndarray]
    reference_offsets: dict[int, np.ndarray]
    rotation_applied: bool = False
    scale_applied: bool = False


def rotation_between(source: np.ndarray, target: np.ndarray) -> np.ndarray:
    """
    Minimal rotation matrix turning unit vector `source` onto unit vector `target`.

    Uses Rodrigues' formula; the antiparallel case rotates 180 degrees
    about an axis perpendicular to `source`.
    """
    cross = np.cross(source, target)
    cos_angle = float(np.clip(np.dot(source, target), -1.0, 1.0))

    if cos_angle > 1.0 - 1e-12:
        return np.eye(3)

    if cos_angle < -1.0 + 1e-9:
        axis = np.cross(source, np.array([1.0, 0.0, 0.0]))
        if np.dot(axis, axis) < EPSILON:
            axis = np.cross(source, np.array([0.0, 1.0, 0.0]))
        axis = axis / np.linalg.norm(axis)
        return 2.0 * np.outer(axis, axis) - np.eye(3)

    skew = np.array([
        [0.0, -cross[2], cross[1]],
        [cross[2], 0.0, -cross[0]],
        [-cross[1], cross[0], 0.0],
    ])
    return np.eye(3) + skew + skew @ skew * (1.0 / (1.0 + cos_angle))


class PoseNormalizer:
    """
    Removes position, orientation and scale differences between a live
    snapshot and a reference snapshot.

    ROOT_ORIENT_SCALE steps:
    1. Root: subtract each snapshot's hip midpoint (LEFT_HIP/RIGHT_HIP)
    2. Orient: rotate live offsets so the live hip vector points along the reference's
    3. Scale: multiply live offsets by reference hip width / live hip width

    Degenerate hips (coinciding points) skip the step that would be
    undefined instead of failing the comparison. With strict_scale=True a
    skipped scale step fails the normalization instead.

    RAW_DISTANCE returns both snapshots untouched.

    Usage:
        normalizer = PoseNormalizer()
        result = normalizer.normalize(live, reference)
        if result is None:
            similarity = 0.0
    """

    def __init__(
        self,
        mode: NormalizationMode = NormalizationMode.ROOT_ORIENT_SCALE,
        strict_scale: bool = False,
        left_hip: int = BodyPart.LEFT_HIP,
        right_hip: int = BodyPart.RIGHT_HIP,
    ):
        self.mode = mode
        self.strict_scale = strict_scale
        self.left_hip = int(left_hip)
        self.right_hip = int(right_hip)

    def normalize(
        self,
        live: Mapping[int, np.ndarray],
        reference: Mapping[int, np.ndarray],
    ) -> Optional[NormalizedPose]:
        """
        Express `live` in the reference's frame.

        Returns:
            NormalizedPose, or None when normalization is impossible
            (missing hip landmarks; degenerate scale with strict_scale)
        """
        if self.mode is NormalizationMode.RAW_DISTANCE:
            return NormalizedPose(
                live_offsets=_as_arrays(live),
                reference_offsets=_as_arrays(reference),
            )

        for name, snapshot in (("live", live), ("reference", reference)):
            if self.left_hip not in snapshot or self.right_hip not in snapshot:
                logger.debug(f"Cannot normalize: {name} snapshot is missing hip landmarks")
                return None

        # 1) Root translation
        live_offsets = self._root(live)
        ref_offsets = self._root(reference)

        ref_hips = ref_offsets[self.right_hip] - ref_offsets[self.left_hip]
        live_hips = live_offsets[self.right_hip] - live_offsets[self.left_hip]
        # Rotation preserves length, so one check decides both remaining steps
        hips_degenerate = _is_degenerate(ref_hips) or _is_degenerate(live_hips)

        # 2) Orientation alignment
        rotation_applied = False
        if hips_degenerate:
            logger.warning("Hips overlap or invalid hip vector, skipping orientation alignment")
        else:
            rotation = rotation_between(
                live_hips / np.linalg.norm(live_hips),
                ref_hips / np.linalg.norm(ref_hips),
            )
            live_offsets = {i: rotation @ v for i, v in live_offsets.items()}
            rotation_applied = True

        # 3) Scale normalization
        scale_applied = False
        if not hips_degenerate:
            factor = float(np.linalg.norm(ref_hips)) / float(np.linalg.norm(live_hips))
            live_offsets = {i: v * factor for i, v in live_offsets.items()}
            scale_applied = True
        elif self.strict_scale:
            logger.warning("Hip width is near zero; strict scaling rejects this comparison")
            return None
        else:
            logger.warning("Could not scale: one of the hip distances is near zero")

        return NormalizedPose(
            live_offsets=live_offsets,
            reference_offsets=ref_offsets,
            rotation_applied=rotation_applied,
            scale_applied=scale_applied,
        )

    def _root(self, snapshot: Mapping[int, np.ndarray]) -> dict[int, np.ndarray]:
        """Offsets of every landmark from the hip midpoint."""
        points = _as_arrays(snapshot)
        hip_mid = (points[self.left_hip] + points[self.right_hip]) * 0.5
        return {i: v - hip_mid for i, v in points.items()}


def _as_arrays(snapshot: Mapping[int, np.ndarray]) -> dict[int, np.ndarray]:
    return {int(i): np.asarray(v, dtype=np.float64) for i, v in snapshot.items()}


def _is_degenerate(hip_vector: np.ndarray) -> bool:
    """True when the hips are too close together to define a direction or width."""
    return float(np.dot(hip_vector, hip_vector)) < EPSILON
