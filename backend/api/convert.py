"""
Conversions between API schemas and domain models.
"""

from typing import Dict, List, Optional

from core.domain import LandmarkSnapshot, PoseGoal, RecordedPose, TickResult
from core.services import PoseSequencer

from .schemas import (
    PoseDetailSchema,
    PoseGoalSchema,
    PoseSummarySchema,
    PositionSchema,
    SequencePhaseEnum,
    SequenceStateResponse,
    TickResultSchema,
)


def snapshot_from_schema(landmarks: Dict[int, PositionSchema]) -> LandmarkSnapshot:
    return LandmarkSnapshot({index: (p.x, p.y, p.z) for index, p in landmarks.items()})


def snapshot_to_schema(snapshot: LandmarkSnapshot) -> Dict[int, PositionSchema]:
    return {
        index: PositionSchema(x=x, y=y, z=z)
        for index, (x, y, z) in snapshot.to_dict().items()
    }


def pose_summary(pose: RecordedPose) -> PoseSummarySchema:
    return PoseSummarySchema(
        name=pose.name,
        landmark_count=pose.landmark_count,
        tolerance=pose.tolerance,
    )


def pose_detail(pose: RecordedPose) -> PoseDetailSchema:
    return PoseDetailSchema(
        name=pose.name,
        landmark_count=pose.landmark_count,
        tolerance=pose.tolerance,
        landmarks=snapshot_to_schema(pose.landmarks),
    )


def goal_from_schema(goal: PoseGoalSchema) -> PoseGoal:
    return PoseGoal(
        reference_name=goal.pose_name,
        display_asset=goal.display_asset,
        required_similarity=goal.required_similarity,
    )


def goal_to_schema(goal: PoseGoal) -> PoseGoalSchema:
    asset = goal.display_asset
    return PoseGoalSchema(
        pose_name=goal.reference_name,
        display_asset=None if asset is None else str(asset),
        required_similarity=goal.required_similarity,
    )


def tick_to_schema(result: Optional[TickResult]) -> Optional[TickResultSchema]:
    if result is None:
        return None
    return TickResultSchema(
        goal_index=result.goal_index,
        pose_name=result.goal.reference_name,
        similarity=result.similarity,
        required_similarity=result.goal.required_similarity,
        reference_found=result.reference_found,
        snapshot_valid=result.snapshot_valid,
        advanced=result.advanced,
        completed=result.completed,
        mean_distance=result.mean_distance,
        notes=list(result.notes),
    )


def sequence_state(sequencer: PoseSequencer, events: Optional[List[dict]] = None) -> SequenceStateResponse:
    goal = sequencer.current_goal
    return SequenceStateResponse(
        phase=SequencePhaseEnum(sequencer.phase.value),
        current_index=sequencer.current_index,
        total_goals=len(sequencer.goals),
        current_goal=goal_to_schema(goal) if goal is not None else None,
        transition_pending=sequencer.transition_pending,
        events=list(events or []),
    )
