"""
WebSocket Handler

Real-time pose minigame over a WebSocket connection.
The client streams landmarks every frame; the server ticks a
per-connection sequencer and pushes its events back.
"""

import time
import logging
from typing import Optional
from fastapi import Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from .schemas import (
    LandmarksPayload,
    StartSequenceRequest,
    WebSocketMessage,
    WebSocketMessageType,
)
from .convert import goal_from_schema, sequence_state, snapshot_from_schema, tick_to_schema
from .deps import get_state
from .state import AppState
from core.services import BufferedLandmarkSource, PoseSequencer

# Configure logging
logger = logging.getLogger(__name__)


class GameSession:
    """One connection's minigame: its own sequencer, stream buffer and event outbox."""

    def __init__(self, state: AppState):
        self.outbox: list[dict] = []
        self.sequencer: PoseSequencer = state.new_sequencer(self.outbox.append)
        self.source: BufferedLandmarkSource = state.new_source()

    def drain(self) -> list[dict]:
        events, self.outbox[:] = list(self.outbox), []
        return events


class ConnectionManager:
    """
    Manages WebSocket connections.

    Each connection owns a GameSession; sessions share the app's pose registry.
    """

    def __init__(self):
        self.active_connections: list[WebSocket] = []
        self.sessions: dict[WebSocket, GameSession] = {}

    async def connect(self, websocket: WebSocket, state: AppState) -> GameSession:
        """Accept new WebSocket connection."""
        await websocket.accept()
        self.active_connections.append(websocket)

        session = GameSession(state)
        self.sessions[websocket] = session

        logger.info(f"New WebSocket connection. Total: {len(self.active_connections)}")
        return session

    def disconnect(self, websocket: WebSocket) -> None:
        """Handle WebSocket disconnection."""
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
        self.sessions.pop(websocket, None)

        logger.info(f"WebSocket disconnected. Remaining: {len(self.active_connections)}")

    async def send_json(self, websocket: WebSocket, data: dict) -> None:
        """Send JSON data to a specific connection."""
        try:
            await websocket.send_json(data)
        except Exception as e:
            logger.error(f"Failed to send WebSocket message: {e}")


def _message(msg_type: WebSocketMessageType, data: dict) -> dict:
    return WebSocketMessage(
        type=msg_type,
        data=data,
        timestamp=int(time.time() * 1000),
    ).model_dump(mode="json")


async def websocket_endpoint(websocket: WebSocket, state: AppState = Depends(get_state)) -> None:
    """
    WebSocket endpoint for the pose minigame.

    Protocol:
    1. Client connects, optionally sends "start" with goals
    2. Client sends "landmarks" (or raw "stream" lines) once per frame
    3. Server answers each frame with "tick_result" plus any
       "goal_changed" / "sequence_complete" / "transition" events
    4. Client sends "end_session" or disconnects

    Message format (client -> server):
    {
        "type": "landmarks",
        "data": {"landmarks": {"0": {"x": 0.1, "y": 1.6, "z": 0.0}, ...}},
        "timestamp": 1704067200000
    }
    """
    manager = state.manager
    session = await manager.connect(websocket, state)

    try:
        await manager.send_json(websocket, _message(
            WebSocketMessageType.SESSION_STARTED,
            {"message": "Connected to pose minigame", "poses_loaded": len(state.registry)},
        ))

        while True:
            try:
                data = await websocket.receive_json()
            except ValueError:
                await manager.send_json(websocket, _message(
                    WebSocketMessageType.ERROR, {"error": "Invalid JSON"}
                ))
                continue

            if not isinstance(data, dict):
                data = {}
            msg_type = data.get("type")
            payload = data.get("data")
            if not isinstance(payload, dict):
                payload = {}

            if msg_type == WebSocketMessageType.END_SESSION.value:
                await manager.send_json(websocket, _message(
                    WebSocketMessageType.SESSION_ENDED, {"message": "Session ended"}
                ))
                break

            try:
                await handle_message(websocket, manager, session, state, msg_type, payload)
            except ValidationError as e:
                await manager.send_json(websocket, _message(
                    WebSocketMessageType.ERROR, {"error": f"Invalid {msg_type} payload: {e.error_count()} errors"}
                ))

    except WebSocketDisconnect:
        logger.info("Client disconnected")
    finally:
        manager.disconnect(websocket)


async def handle_message(
    websocket: WebSocket,
    manager: ConnectionManager,
    session: GameSession,
    state: AppState,
    msg_type: Optional[str],
    payload: dict,
) -> None:
    """Apply one client message to the session and send the resulting events."""
    sequencer = session.sequencer

    if msg_type == WebSocketMessageType.START.value:
        request = StartSequenceRequest.model_validate(payload)
        if request.goals:
            goals = [goal_from_schema(goal) for goal in request.goals]
        else:
            goals = list(state.config.minigame.goals)
        if not goals:
            await manager.send_json(websocket, _message(
                WebSocketMessageType.ERROR, {"error": "No pose goals given or configured"}
            ))
            return
        session.source.clear()
        sequencer.start(goals)

    elif msg_type == WebSocketMessageType.LANDMARKS.value:
        frame = LandmarksPayload.model_validate(payload)
        result = sequencer.tick(snapshot_from_schema(frame.landmarks))
        await _send_tick(websocket, manager, session, result)

    elif msg_type == WebSocketMessageType.STREAM.value:
        session.source.feed(str(payload.get("message", "")))
        result = sequencer.tick_source(session.source)
        await _send_tick(websocket, manager, session, result)

    elif msg_type == WebSocketMessageType.RESET.value:
        sequencer.reset()
        session.source.clear()

    else:
        await manager.send_json(websocket, _message(
            WebSocketMessageType.ERROR, {"error": f"Unknown message type: {msg_type}"}
        ))
        return

    await _flush_events(websocket, manager, session)


async def _send_tick(websocket: WebSocket, manager: ConnectionManager, session: GameSession, result) -> None:
    tick = tick_to_schema(result)
    await manager.send_json(websocket, _message(
        WebSocketMessageType.TICK_RESULT,
        {
            "tick": tick.model_dump() if tick is not None else None,
            "state": sequence_state(session.sequencer).model_dump(mode="json"),
        },
    ))


async def _flush_events(websocket: WebSocket, manager: ConnectionManager, session: GameSession) -> None:
    for event in session.drain():
        msg_type = WebSocketMessageType(event["type"])
        data = {k: v for k, v in event.items() if k not in ("type", "timestamp")}
        await manager.send_json(websocket, _message(msg_type, data))
