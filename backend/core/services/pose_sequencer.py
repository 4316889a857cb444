"""
Pose Sequencer Service

State machine for the pose minigame: walks an ordered list of pose goals,
scores each frame against the current goal and advances when the player
matches it.

    IDLE --start()--> ACTIVE --last goal matched--> COMPLETE
      ^                                                 |
      +---------------------reset()---------------------+

Driven by one tick() per frame from a single thread.
"""

import logging
import time
from typing import Callable, Optional, Sequence

from ..domain.pose import LANDMARK_COUNT, LandmarkSnapshot
from ..domain.sequence import (
    CompletionPolicy,
    NormalizationMode,
    PoseGoal,
    SequencePhase,
    SequenceState,
    TickResult,
)
from .landmark_source import LandmarkSource
from .pose_normalizer import PoseNormalizer
from .pose_registry import PoseRegistry
from .similarity_scorer import SimilarityScorer

logger = logging.getLogger(__name__)

GoalChangedHandler = Callable[[PoseGoal, int], None]
CompleteHandler = Callable[[], None]
TransitionHandler = Callable[[str], None]


class PoseSequencer:
    """
    Sequential pose matching.

    Each tick only the current goal is evaluated; once a goal is matched
    the sequencer moves on and never returns to it. Per-frame problems
    (unknown pose, missing landmarks, degenerate geometry) score 0 and
    never raise.

    Events:
        on_goal_changed(goal, index): A goal became current (start or advance)
        on_sequence_complete(): The last goal was matched
        on_transition(next_scene): completion.display_seconds after completion

    Usage:
        sequencer = PoseSequencer(registry, on_sequence_complete=show_victory)
        sequencer.start(goals)

        # Once per frame
        result = sequencer.tick(source.current_snapshot())
    """

    def __init__(
        self,
        registry: PoseRegistry,
        normalizer: Optional[PoseNormalizer] = None,
        scorer: Optional[SimilarityScorer] = None,
        completion: Optional[CompletionPolicy] = None,
        on_goal_changed: Optional[GoalChangedHandler] = None,
        on_sequence_complete: Optional[CompleteHandler] = None,
        on_transition: Optional[TransitionHandler] = None,
        landmark_count: int = LANDMARK_COUNT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.registry = registry
        self.normalizer = normalizer or PoseNormalizer()
        self.scorer = scorer or SimilarityScorer()
        self.completion = completion
        self.on_goal_changed = on_goal_changed
        self.on_sequence_complete = on_sequence_complete
        self.on_transition = on_transition
        self.landmark_count = landmark_count
        self._clock = clock

        self._state = SequenceState()
        self._completed_at: Optional[float] = None

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def phase(self) -> SequencePhase:
        return self._state.phase

    @property
    def current_index(self) -> int:
        return self._state.current_index

    @property
    def current_goal(self) -> Optional[PoseGoal]:
        return self._state.current_goal

    @property
    def goals(self) -> tuple[PoseGoal, ...]:
        return self._state.goals

    @property
    def transition_pending(self) -> bool:
        return self._completed_at is not None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self, goals: Sequence[PoseGoal]) -> None:
        """
        Begin the sequence at goals[0].

        Calling start() while a sequence is running restarts it.

        Raises:
            ValueError: If goals is empty
        """
        if not goals:
            raise ValueError("Cannot start a pose sequence without goals")

        self._state = SequenceState(
            goals=tuple(goals),
            current_index=0,
            phase=SequencePhase.ACTIVE,
        )
        self._completed_at = None

        logger.info(f"Pose sequence started. Pose #1 => '{goals[0].reference_name}'")
        self._emit_goal_changed()

    def reset(self) -> None:
        """Return to IDLE, dropping the goals and any pending hand-off."""
        self._state = SequenceState()
        self._completed_at = None
        logger.info("Pose sequence reset")

    # -------------------------------------------------------------------------
    # Per-frame evaluation
    # -------------------------------------------------------------------------

    def tick_source(self, source: LandmarkSource) -> Optional[TickResult]:
        """Poll a landmark source (non-blocking) and tick with whatever it has."""
        return self.tick(source.current_snapshot())

    def tick(self, snapshot: Optional[LandmarkSnapshot]) -> Optional[TickResult]:
        """
        Evaluate one frame.

        Args:
            snapshot: Live landmarks for this frame, or None if none arrived

        Returns:
            TickResult while ACTIVE, None otherwise
        """
        if self._state.phase is SequencePhase.COMPLETE:
            self._check_transition()
            return None

        goal = self._state.current_goal
        if goal is None:
            return None

        result = TickResult(goal_index=self._state.current_index, goal=goal)

        reference = self.registry.lookup(goal.reference_name)
        if reference is None:
            logger.warning(f"No recorded pose named '{goal.reference_name}'")
            result.notes.append("reference_not_found")
            return result
        result.reference_found = True

        if snapshot is None:
            result.notes.append("no_snapshot")
            return result

        if not snapshot.is_complete(self.landmark_count):
            logger.debug(f"Snapshot incomplete ({len(snapshot)}/{self.landmark_count} landmarks)")
            result.notes.append("incomplete_snapshot")
            return result
        result.snapshot_valid = True

        normalized = self.normalizer.normalize(snapshot, reference.landmarks)
        if normalized is None:
            result.notes.append("normalization_failed")
            return result
        if not normalized.rotation_applied and self._uses_geometry():
            result.notes.append("rotation_skipped")
        if not normalized.scale_applied and self._uses_geometry():
            result.notes.append("scale_skipped")

        similarity = self.scorer.evaluate(
            normalized.live_offsets,
            normalized.reference_offsets,
            reference.tolerance,
        )
        result.similarity = similarity.score
        result.mean_distance = similarity.mean_distance

        logger.debug(
            f"Checking pose '{goal.reference_name}' => similarity={similarity.score:.2f}, "
            f"required={goal.required_similarity:.2f}"
        )

        if similarity.score >= goal.required_similarity:
            logger.info(f"Pose '{goal.reference_name}' matched at {similarity.score:.0%}!")
            result.advanced = True
            result.completed = self._advance()

        return result

    # -------------------------------------------------------------------------
    # Private Helper Methods
    # -------------------------------------------------------------------------

    def _uses_geometry(self) -> bool:
        return self.normalizer.mode is NormalizationMode.ROOT_ORIENT_SCALE

    def _advance(self) -> bool:
        """Move past the current goal. Returns True if that completed the sequence."""
        self._state.current_index += 1

        if self._state.current_index >= len(self._state.goals):
            self._state.phase = SequencePhase.COMPLETE
            logger.info("All poses in the sequence have been matched!")

            if self.completion is not None:
                self._completed_at = self._clock()
            if self.on_sequence_complete is not None:
                self.on_sequence_complete()
            return True

        goal = self._state.goals[self._state.current_index]
        logger.info(f"Next pose => Pose #{self._state.current_index + 1}: '{goal.reference_name}'")
        self._emit_goal_changed()
        return False

    def _emit_goal_changed(self) -> None:
        goal = self._state.current_goal
        if goal is not None and self.on_goal_changed is not None:
            self.on_goal_changed(goal, self._state.current_index)

    def _check_transition(self) -> None:
        """Fire the completion hand-off once its display time has elapsed."""
        if self._completed_at is None or self.completion is None:
            return

        if self._clock() - self._completed_at < self.completion.display_seconds:
            return

        self._completed_at = None
        logger.info(
            f"{self.completion.display_seconds:.1f} seconds have elapsed. "
            f"Handing off to '{self.completion.next_scene}'"
        )
        if self.on_transition is not None:
            self.on_transition(self.completion.next_scene)
