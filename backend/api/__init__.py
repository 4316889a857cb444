"""
Pose Minigame API Module

FastAPI routes and WebSocket handlers for pose recording and the pose minigame.
"""

from .routes import router
from .state import AppState
from .websocket import ConnectionManager, websocket_endpoint

__all__ = [
    "router",
    "AppState",
    "ConnectionManager",
    "websocket_endpoint",
]
