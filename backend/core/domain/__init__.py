"""
Domain Models

Pure data structures representing poses and the pose minigame.
Dataclasses and enums, plus numpy for landmark positions.
"""

from .pose import (
    LANDMARK_COUNT,
    BodyPart,
    LandmarkSnapshot,
    RecordedPose,
    canonical_name,
)
from .sequence import (
    CompletionPolicy,
    NormalizationMode,
    PoseGoal,
    SequencePhase,
    SequenceState,
    TickResult,
)
from .errors import IncompleteSnapshotError, PoseRecordError

__all__ = [
    "LANDMARK_COUNT",
    "BodyPart",
    "LandmarkSnapshot",
    "RecordedPose",
    "canonical_name",
    "CompletionPolicy",
    "NormalizationMode",
    "PoseGoal",
    "SequencePhase",
    "SequenceState",
    "TickResult",
    "IncompleteSnapshotError",
    "PoseRecordError",
]
