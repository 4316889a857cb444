"""
Pose API Schemas

Pydantic models for pose-related API requests and responses.
These define the JSON structure for communication with the game client.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, Optional, List
from enum import Enum


class PositionSchema(BaseModel):
    """A landmark position in the capture's coordinate space."""
    model_config = ConfigDict(allow_inf_nan=False)

    x: float = Field(..., description="Horizontal position")
    y: float = Field(..., description="Vertical position")
    z: float = Field(..., description="Depth")


class LandmarksPayload(BaseModel):
    """
    One frame of landmarks, keyed by MediaPipe index (0-32).

    JSON object keys are strings; "23" and 23 are the same landmark.
    """
    landmarks: Dict[int, PositionSchema] = Field(..., description="Landmark index -> position")

    class Config:
        json_schema_extra = {
            "example": {
                "landmarks": {
                    "23": {"x": -0.1, "y": 0.0, "z": 0.0},
                    "24": {"x": 0.1, "y": 0.0, "z": 0.0}
                }
            }
        }


class RecordPoseRequest(LandmarksPayload):
    """Record the given landmarks as a reference pose."""
    name: str = Field(..., min_length=1, description="Pose name (case/whitespace-insensitive)")
    tolerance: Optional[float] = Field(None, ge=0.0, description="Per-landmark match distance")


class PoseSummarySchema(BaseModel):
    """A recorded pose without its landmarks."""
    name: str = Field(..., description="Canonical pose name")
    landmark_count: int = Field(..., ge=0)
    tolerance: float = Field(..., ge=0.0)


class PoseDetailSchema(PoseSummarySchema):
    """A recorded pose with its landmarks."""
    landmarks: Dict[int, PositionSchema]


class PoseListResponse(BaseModel):
    poses: List[PoseSummarySchema]
    count: int


class ReloadResponse(BaseModel):
    loaded: int = Field(..., description="Distinct poses loaded from disk")


class SimilarityResponse(BaseModel):
    """How closely a landmark set matches a recorded pose."""
    pose_name: str
    similarity: float = Field(..., ge=0.0, le=1.0, description="Fraction of landmarks matched")
    matched: int
    total: int
    mean_distance: Optional[float] = Field(None, description="Diagnostic mean landmark distance")
    rotation_applied: bool = False
    scale_applied: bool = False
    normalized: bool = Field(..., description="False if normalization failed (similarity is 0)")


class PoseDetectionRequest(BaseModel):
    """
    Request to detect landmarks in a base64-encoded image.

    Needs the server's optional capture dependencies.
    """
    image_base64: str = Field(..., description="Base64 encoded JPEG/PNG image")


class PoseDetectionResponse(BaseModel):
    success: bool = Field(..., description="Whether detection succeeded")
    landmarks: Optional[Dict[int, PositionSchema]] = Field(None, description="Detected landmarks")
    error: Optional[str] = Field(None, description="Error message if failed")
    processing_time_ms: float = Field(..., description="Time taken to process in milliseconds")


class HealthResponse(BaseModel):
    status: str
    version: str
    poses_loaded: int
    sequence_phase: str


# =============================================================================
# WebSocket Message Schemas
# =============================================================================

class WebSocketMessageType(str, Enum):
    """Types of WebSocket messages."""
    # Client -> Server
    START = "start"                    # Start the minigame (optional goals)
    LANDMARKS = "landmarks"            # One frame of landmarks as a map
    STREAM = "stream"                  # Raw "FREE|i|x|y|z" landmark lines
    RESET = "reset"                    # Back to idle
    END_SESSION = "end_session"

    # Server -> Client
    TICK_RESULT = "tick_result"
    GOAL_CHANGED = "goal_changed"
    SEQUENCE_COMPLETE = "sequence_complete"
    TRANSITION = "transition"
    ERROR = "error"
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"


class WebSocketMessage(BaseModel):
    """
    Base WebSocket message structure.

    All WebSocket communication uses this format.
    """
    type: WebSocketMessageType = Field(..., description="Message type")
    data: dict = Field(default_factory=dict, description="Message payload")
    timestamp: int = Field(0, description="Unix timestamp in milliseconds")

    class Config:
        json_schema_extra = {
            "example": {
                "type": "landmarks",
                "data": {"landmarks": {"23": {"x": -0.1, "y": 0.0, "z": 0.0}}},
                "timestamp": 1704067200000
            }
        }
