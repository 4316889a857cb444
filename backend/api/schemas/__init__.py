"""
API Schemas

Pydantic models for request/response validation.
"""

from .pose import (
    PositionSchema,
    LandmarksPayload,
    RecordPoseRequest,
    PoseSummarySchema,
    PoseDetailSchema,
    PoseListResponse,
    ReloadResponse,
    SimilarityResponse,
    PoseDetectionRequest,
    PoseDetectionResponse,
    HealthResponse,
    WebSocketMessageType,
    WebSocketMessage,
)

from .sequence import (
    SequencePhaseEnum,
    PoseGoalSchema,
    StartSequenceRequest,
    TickRequest,
    TickResultSchema,
    SequenceStateResponse,
    TickResponse,
)

__all__ = [
    # Pose schemas
    "PositionSchema",
    "LandmarksPayload",
    "RecordPoseRequest",
    "PoseSummarySchema",
    "PoseDetailSchema",
    "PoseListResponse",
    "ReloadResponse",
    "SimilarityResponse",
    "PoseDetectionRequest",
    "PoseDetectionResponse",
    "HealthResponse",
    "WebSocketMessageType",
    "WebSocketMessage",
    # Sequence schemas
    "SequencePhaseEnum",
    "PoseGoalSchema",
    "StartSequenceRequest",
    "TickRequest",
    "TickResultSchema",
    "SequenceStateResponse",
    "TickResponse",
]
