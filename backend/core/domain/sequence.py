"""
Pose Sequence Domain Models

Data structures for the pose minigame: the ordered goals a player has to
match, the sequencer's state, and the per-tick evaluation result.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class SequencePhase(Enum):
    """
    Lifecycle of a pose sequence.

    - IDLE: Not started, or reset
    - ACTIVE: Matching goals[current_index]
    - COMPLETE: Every goal matched; terminal until reset
    """
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETE = "complete"


class NormalizationMode(Enum):
    """How the live skeleton is brought into the reference's frame before scoring."""
    RAW_DISTANCE = "raw_distance"            # Compare positions as captured
    ROOT_ORIENT_SCALE = "root_orient_scale"  # Hip-rooted, hip-aligned, hip-width scaled


@dataclass(frozen=True)
class PoseGoal:
    """
    One step of the minigame.

    Attributes:
        reference_name: Name of the recorded pose to match (any case/spacing)
        display_asset: Opaque handle for the art shown while this goal is current
        required_similarity: Fraction of landmarks that must match (0.0 to 1.0)
    """
    reference_name: str
    display_asset: Optional[Any] = None
    required_similarity: float = 0.75

    def __post_init__(self):
        if not 0.0 <= self.required_similarity <= 1.0:
            raise ValueError(
                f"required_similarity must be within [0, 1], got {self.required_similarity}"
            )


@dataclass(frozen=True)
class CompletionPolicy:
    """
    What happens after the final goal is matched.

    The presentation layer shows display_asset; after display_seconds the
    sequencer hands off to next_scene once.
    """
    display_asset: Optional[Any] = None
    display_seconds: float = 20.0
    next_scene: str = "HubLevel"


@dataclass
class SequenceState:
    """Mutable state owned by a single PoseSequencer."""
    goals: tuple[PoseGoal, ...] = ()
    current_index: int = 0
    phase: SequencePhase = SequencePhase.IDLE

    @property
    def current_goal(self) -> Optional[PoseGoal]:
        if self.phase is not SequencePhase.ACTIVE:
            return None
        if 0 <= self.current_index < len(self.goals):
            return self.goals[self.current_index]
        return None

    @property
    def total_goals(self) -> int:
        return len(self.goals)


@dataclass
class TickResult:
    """
    Outcome of evaluating one frame against the current goal.

    similarity is 0.0 whenever the frame could not be evaluated
    (reference missing, incomplete snapshot, normalization failure).
    """
    goal_index: int
    goal: PoseGoal
    similarity: float = 0.0
    reference_found: bool = False
    snapshot_valid: bool = False
    advanced: bool = False
    completed: bool = False
    mean_distance: Optional[float] = None
    notes: list[str] = field(default_factory=list)
