"""
Explicit app state - single owner of the runtime objects.

Created in the lifespan, attached to app.state.state, injected into
routes via Depends(get_state). Nothing here is reachable as a module
global; replacing the AppState replaces everything it owns.
"""

import logging
import time
from collections import deque
from typing import Any, Deque, Dict, Optional

from core.config import AppConfig
from core.domain import PoseGoal
from core.services import BufferedLandmarkSource, PoseNormalizer, PoseRegistry, PoseSequencer

logger = logging.getLogger(__name__)

# Most recent sequencer events kept for GET /api/sequence
EVENT_HISTORY = 50


class AppState:
    """
    Holds all runtime state for the app.

    - registry: the recorded poses (shared by every session)
    - sequencer: the REST-driven minigame session
    - source: landmark stream buffer for the REST session
    - manager: WebSocket connection manager (set by main)
    """

    def __init__(self, config: AppConfig):
        self.config = config
        self.registry = PoseRegistry(
            config.poses.save_directory,
            default_tolerance=config.poses.default_tolerance,
            landmark_count=config.poses.landmark_count,
        )
        self.source = self.new_source()
        self.events: Deque[Dict[str, Any]] = deque(maxlen=EVENT_HISTORY)
        self.sequencer = self.new_sequencer(self.events.append)
        self.manager: Any = None

    def new_normalizer(self) -> PoseNormalizer:
        return PoseNormalizer(
            mode=self.config.matching.normalization_mode,
            strict_scale=self.config.matching.strict_scale,
        )

    def new_source(self) -> BufferedLandmarkSource:
        stream = self.config.stream
        return BufferedLandmarkSource(
            landmark_count=self.config.poses.landmark_count,
            samples_per_pose=stream.samples_per_pose,
            multiplier=stream.multiplier,
            anchored=stream.anchored,
        )

    def new_sequencer(self, emit) -> PoseSequencer:
        """
        Build a sequencer whose events are passed to `emit` as dicts.

        Each WebSocket connection gets its own; they share the registry.
        """
        def on_goal_changed(goal: PoseGoal, index: int) -> None:
            emit(_event("goal_changed", goal_index=index, pose_name=goal.reference_name,
                        display_asset=goal.display_asset))

        def on_sequence_complete() -> None:
            completion = self.config.minigame.completion
            emit(_event("sequence_complete",
                        display_asset=completion.display_asset if completion else None))

        def on_transition(next_scene: str) -> None:
            emit(_event("transition", next_scene=next_scene))

        return PoseSequencer(
            self.registry,
            normalizer=self.new_normalizer(),
            completion=self.config.minigame.completion,
            on_goal_changed=on_goal_changed,
            on_sequence_complete=on_sequence_complete,
            on_transition=on_transition,
            landmark_count=self.config.poses.landmark_count,
        )

    def startup(self) -> None:
        """Load poses and auto-start the configured minigame."""
        self.registry.store.ensure_directory()
        self.registry.load_all()

        minigame = self.config.minigame
        if minigame.auto_start and minigame.goals:
            self.sequencer.start(minigame.goals)
        elif minigame.auto_start:
            logger.warning("auto_start is enabled, but no minigame goals are configured")


def _event(event_type: str, **data: Optional[Any]) -> Dict[str, Any]:
    return {"type": event_type, "timestamp": int(time.time() * 1000), **data}
