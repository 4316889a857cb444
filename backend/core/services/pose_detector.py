"""
Pose Detector Service

Wrapper around MediaPipe Pose that turns camera images into landmark
snapshots. Handles all MediaPipe-specific logic and converts results to
our domain models.

Needs the optional capture dependencies (mediapipe, opencv-python).

Note: MediaPipe's type stubs are incomplete, so we use type: ignore comments
for mp.solutions access. This is a known issue with the mediapipe package.
"""

import base64
from typing import Any, Optional

import cv2
import mediapipe as mp
import numpy as np

from ..domain.pose import LandmarkSnapshot


class PoseDetector:
    """
    Detects a body pose with MediaPipe Pose and returns LandmarkSnapshots.

    World landmarks (metres, origin between the hips) are preferred since
    they are what the pose registry records and compares; normalized image
    landmarks are used only if world landmarks are unavailable.

    Usage:
        with PoseDetector() as detector:
            snapshot = detector.detect_snapshot(image)

    The detector also works as a LandmarkSource once fed an image:
        detector.update(image)
        snapshot = detector.current_snapshot()
    """

    # MediaPipe solutions (type stubs are incomplete, so we store as Any)
    _mp_pose: Any

    def __init__(
        self,
        model_complexity: int = 1,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        min_visibility: float = 0.0,
    ):
        """
        Initialize the pose detector.

        Args:
            model_complexity: 0, 1, or 2. Higher = more accurate but slower.
            min_detection_confidence: Minimum confidence for person detection.
            min_tracking_confidence: Minimum confidence for landmark tracking.
            min_visibility: Landmarks below this visibility are left out of the
                            snapshot (which then counts as incomplete).
        """
        # MediaPipe's type stubs don't include solutions, but it exists at runtime
        self._mp_pose = mp.solutions.pose  # type: ignore[attr-defined]

        self.min_visibility = min_visibility
        self.pose = self._mp_pose.Pose(
            static_image_mode=False,
            model_complexity=model_complexity,
            smooth_landmarks=True,
            enable_segmentation=False,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )
        self._latest: Optional[LandmarkSnapshot] = None

    def __enter__(self) -> "PoseDetector":
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any]
    ) -> None:
        """Context manager exit - cleanup resources."""
        self.close()

    def close(self) -> None:
        """Release MediaPipe resources."""
        self.pose.close()

    # -------------------------------------------------------------------------
    # Core Detection Methods
    # -------------------------------------------------------------------------

    def detect_snapshot(self, image: np.ndarray) -> Optional[LandmarkSnapshot]:
        """
        Detect pose landmarks in a single BGR (OpenCV) image.

        Returns:
            LandmarkSnapshot, or None if no person was detected
        """
        if len(image.shape) == 3 and image.shape[2] == 3:
            image_rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        else:
            image_rgb = image

        results = self.pose.process(image_rgb)

        landmarks = results.pose_world_landmarks or results.pose_landmarks
        if not landmarks:
            return None

        return self._convert_landmarks(landmarks.landmark)

    def detect_from_base64(self, base64_image: str) -> Optional[LandmarkSnapshot]:
        """
        Detect pose landmarks in a base64-encoded JPEG/PNG image.

        Returns:
            LandmarkSnapshot, or None if decoding or detection failed
        """
        image_bytes = base64.b64decode(base64_image)
        nparr = np.frombuffer(image_bytes, np.uint8)
        image = cv2.imdecode(nparr, cv2.IMREAD_COLOR)

        if image is None:
            return None

        return self.detect_snapshot(image)

    # -------------------------------------------------------------------------
    # LandmarkSource
    # -------------------------------------------------------------------------

    def update(self, image: np.ndarray) -> Optional[LandmarkSnapshot]:
        """Run detection on a new camera frame and keep the result."""
        self._latest = self.detect_snapshot(image)
        return self._latest

    def current_snapshot(self) -> Optional[LandmarkSnapshot]:
        return self._latest

    # -------------------------------------------------------------------------
    # Private Helper Methods
    # -------------------------------------------------------------------------

    def _convert_landmarks(self, mp_landmarks: Any) -> LandmarkSnapshot:
        """Convert MediaPipe landmarks to our domain model."""
        positions = {}
        for i, mp_lm in enumerate(mp_landmarks):
            if getattr(mp_lm, "visibility", 1.0) < self.min_visibility:
                continue
            positions[i] = (mp_lm.x, mp_lm.y, mp_lm.z)
        return LandmarkSnapshot(positions)
