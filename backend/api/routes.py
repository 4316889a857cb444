"""
REST API Routes

FastAPI routes for the pose registry and the pose minigame.
"""

import time
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException

from .schemas import (
    HealthResponse,
    PoseDetailSchema,
    PoseDetectionRequest,
    PoseDetectionResponse,
    PoseListResponse,
    RecordPoseRequest,
    LandmarksPayload,
    ReloadResponse,
    SimilarityResponse,
    StartSequenceRequest,
    SequenceStateResponse,
    TickRequest,
    TickResponse,
)
from .convert import (
    goal_from_schema,
    pose_detail,
    pose_summary,
    sequence_state,
    snapshot_from_schema,
    snapshot_to_schema,
    tick_to_schema,
)
from .deps import get_state
from .state import AppState
from core.domain import IncompleteSnapshotError, canonical_name

# Configure logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter()

API_VERSION = "1.0.0"

# =============================================================================
# Health Check
# =============================================================================

@router.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="Health check endpoint"
)
async def health_check(state: AppState = Depends(get_state)) -> HealthResponse:
    """
    Check if the API is running.

    Returns:
        Health status, loaded pose count and minigame phase
    """
    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        poses_loaded=len(state.registry),
        sequence_phase=state.sequencer.phase.value,
    )


# =============================================================================
# Pose Registry
# =============================================================================

@router.get(
    "/poses",
    response_model=PoseListResponse,
    tags=["Poses"],
    summary="List recorded poses"
)
async def list_poses(state: AppState = Depends(get_state)) -> PoseListResponse:
    poses = [pose_summary(pose) for pose in state.registry.get_all()]
    return PoseListResponse(poses=poses, count=len(poses))


@router.get(
    "/poses/{name}",
    response_model=PoseDetailSchema,
    tags=["Poses"],
    summary="Get a recorded pose"
)
async def get_pose(name: str, state: AppState = Depends(get_state)) -> PoseDetailSchema:
    """Look up a pose by name (case/whitespace-insensitive)."""
    pose = state.registry.lookup(name)
    if pose is None:
        raise HTTPException(status_code=404, detail=f"No recorded pose named '{canonical_name(name)}'")
    return pose_detail(pose)


@router.post(
    "/poses",
    response_model=PoseDetailSchema,
    status_code=201,
    tags=["Poses"],
    summary="Record a pose"
)
async def record_pose(request: RecordPoseRequest, state: AppState = Depends(get_state)) -> PoseDetailSchema:
    """
    Record a reference pose from a complete landmark set and save it to disk.

    Re-recording an existing name replaces it.
    """
    snapshot = snapshot_from_schema(request.landmarks)
    try:
        pose = state.registry.record(request.name, snapshot, request.tolerance)
    except IncompleteSnapshotError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OSError as e:
        logger.error(f"Saving pose '{request.name}' failed: {e}")
        raise HTTPException(status_code=500, detail=f"Could not save pose: {e}")
    return pose_detail(pose)


@router.post(
    "/poses/reload",
    response_model=ReloadResponse,
    tags=["Poses"],
    summary="Reload poses from disk"
)
async def reload_poses(state: AppState = Depends(get_state)) -> ReloadResponse:
    return ReloadResponse(loaded=state.registry.load_all())


@router.post(
    "/poses/{name}/similarity",
    response_model=SimilarityResponse,
    tags=["Poses"],
    summary="Score landmarks against a recorded pose"
)
async def pose_similarity(
    name: str,
    request: LandmarksPayload,
    state: AppState = Depends(get_state),
) -> SimilarityResponse:
    """
    Normalize the given landmarks against a recorded pose and score them.

    Failed normalization (e.g. missing hips) scores 0 rather than erroring.
    """
    pose = state.registry.lookup(name)
    if pose is None:
        raise HTTPException(status_code=404, detail=f"No recorded pose named '{canonical_name(name)}'")

    snapshot = snapshot_from_schema(request.landmarks)
    normalized = state.sequencer.normalizer.normalize(snapshot, pose.landmarks)
    if normalized is None:
        return SimilarityResponse(
            pose_name=pose.name,
            similarity=0.0,
            matched=0,
            total=pose.landmark_count,
            normalized=False,
        )

    result = state.sequencer.scorer.evaluate(
        normalized.live_offsets, normalized.reference_offsets, pose.tolerance
    )
    return SimilarityResponse(
        pose_name=pose.name,
        similarity=result.score,
        matched=result.matched,
        total=result.total,
        mean_distance=result.mean_distance,
        rotation_applied=normalized.rotation_applied,
        scale_applied=normalized.scale_applied,
        normalized=True,
    )


@router.post(
    "/pose/detect",
    response_model=PoseDetectionResponse,
    tags=["Poses"],
    summary="Detect landmarks in a single image"
)
async def detect_pose(request: PoseDetectionRequest) -> PoseDetectionResponse:
    """
    Detect body landmarks in a base64-encoded image with MediaPipe.

    Only available when the capture dependencies are installed.
    """
    start_time = time.time()

    try:
        from core.services.pose_detector import PoseDetector
    except ImportError as e:
        raise HTTPException(status_code=503, detail=f"Pose detection unavailable: {e}")

    try:
        with PoseDetector() as detector:
            snapshot = detector.detect_from_base64(request.image_base64)
    except Exception as e:
        logger.error(f"Pose detection failed: {e}")
        return PoseDetectionResponse(
            success=False,
            error=str(e),
            processing_time_ms=(time.time() - start_time) * 1000,
        )

    processing_time = (time.time() - start_time) * 1000
    if snapshot is None:
        return PoseDetectionResponse(
            success=False,
            error="No person detected in image",
            processing_time_ms=processing_time,
        )

    return PoseDetectionResponse(
        success=True,
        landmarks=snapshot_to_schema(snapshot),
        processing_time_ms=processing_time,
    )


# =============================================================================
# Pose Minigame
# =============================================================================

@router.get(
    "/sequence",
    response_model=SequenceStateResponse,
    tags=["Minigame"],
    summary="Current minigame state"
)
async def get_sequence(state: AppState = Depends(get_state)) -> SequenceStateResponse:
    return sequence_state(state.sequencer, list(state.events))


@router.post(
    "/sequence/start",
    response_model=SequenceStateResponse,
    tags=["Minigame"],
    summary="Start (or restart) the minigame"
)
async def start_sequence(
    request: Optional[StartSequenceRequest] = None,
    state: AppState = Depends(get_state),
) -> SequenceStateResponse:
    """Start with the given goals, or the configured ones if none are sent."""
    if request is not None and request.goals:
        goals = [goal_from_schema(goal) for goal in request.goals]
    else:
        goals = list(state.config.minigame.goals)

    if not goals:
        raise HTTPException(status_code=400, detail="No pose goals given or configured")

    state.events.clear()
    state.source.clear()
    state.sequencer.start(goals)
    return sequence_state(state.sequencer, list(state.events))


@router.post(
    "/sequence/tick",
    response_model=TickResponse,
    tags=["Minigame"],
    summary="Evaluate one frame"
)
async def tick_sequence(request: TickRequest, state: AppState = Depends(get_state)) -> TickResponse:
    """
    Feed one frame to the minigame.

    A landmark map is evaluated directly; landmark lines go through the
    stream buffer first.
    """
    if request.landmarks is not None:
        result = state.sequencer.tick(snapshot_from_schema(request.landmarks))
    else:
        if request.message:
            state.source.feed(request.message)
        result = state.sequencer.tick_source(state.source)

    return TickResponse(
        tick=tick_to_schema(result),
        state=sequence_state(state.sequencer, list(state.events)),
    )


@router.post(
    "/sequence/reset",
    response_model=SequenceStateResponse,
    tags=["Minigame"],
    summary="Reset the minigame to idle"
)
async def reset_sequence(state: AppState = Depends(get_state)) -> SequenceStateResponse:
    state.sequencer.reset()
    state.source.clear()
    state.events.clear()
    return sequence_state(state.sequencer)
