"""
Services Layer

Pose registry, normalization, scoring and the pose-sequence state machine.
These services orchestrate domain models and external dependencies.

The MediaPipe-backed PoseDetector lives in .pose_detector and is imported
on demand, since it needs the optional capture dependencies.
"""

from .landmark_source import (
    BufferedLandmarkSource,
    LandmarkSource,
    StaticLandmarkSource,
    parse_landmark_message,
)
from .pose_normalizer import NormalizedPose, PoseNormalizer
from .pose_registry import PoseRegistry
from .pose_sequencer import PoseSequencer
from .pose_store import PoseRecord, PoseStore
from .similarity_scorer import SimilarityResult, SimilarityScorer

__all__ = [
    "BufferedLandmarkSource",
    "LandmarkSource",
    "StaticLandmarkSource",
    "parse_landmark_message",
    "NormalizedPose",
    "PoseNormalizer",
    "PoseRegistry",
    "PoseSequencer",
    "PoseRecord",
    "PoseStore",
    "SimilarityResult",
    "SimilarityScorer",
]
