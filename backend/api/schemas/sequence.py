"""
Sequence API Schemas

Pydantic models for driving the pose minigame over the API.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from enum import Enum

from .pose import PositionSchema


class SequencePhaseEnum(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETE = "complete"


class PoseGoalSchema(BaseModel):
    """One pose the player has to match."""
    pose_name: str = Field(..., min_length=1, description="Recorded pose to match")
    display_asset: Optional[str] = Field(None, description="Art shown while this goal is current")
    required_similarity: float = Field(0.75, ge=0.0, le=1.0, description="Fraction of landmarks to match")

    class Config:
        json_schema_extra = {
            "example": {
                "pose_name": "Arms Up",
                "display_asset": "poses/arms_up.png",
                "required_similarity": 0.75
            }
        }


class StartSequenceRequest(BaseModel):
    """Start the minigame; omitting goals uses the configured ones."""
    goals: Optional[List[PoseGoalSchema]] = Field(None, description="Ordered pose goals")


class TickRequest(BaseModel):
    """
    One frame for the sequencer.

    Either a landmark map, or raw landmark lines for the stream buffer.
    Sending neither ticks with whatever the stream buffer already holds.
    """
    landmarks: Optional[Dict[int, PositionSchema]] = None
    message: Optional[str] = Field(None, description='Lines of "FREE|index|x|y|z"')


class TickResultSchema(BaseModel):
    goal_index: int
    pose_name: str
    similarity: float = Field(..., ge=0.0, le=1.0)
    required_similarity: float
    reference_found: bool
    snapshot_valid: bool
    advanced: bool
    completed: bool
    mean_distance: Optional[float] = None
    notes: List[str] = Field(default_factory=list)


class SequenceStateResponse(BaseModel):
    phase: SequencePhaseEnum
    current_index: int
    total_goals: int
    current_goal: Optional[PoseGoalSchema] = None
    transition_pending: bool = False
    events: List[Dict[str, Any]] = Field(default_factory=list, description="Recent sequencer events")


class TickResponse(BaseModel):
    tick: Optional[TickResultSchema] = Field(None, description="Null unless the sequence is active")
    state: SequenceStateResponse
