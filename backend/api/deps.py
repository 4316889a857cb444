"""
FastAPI dependencies. Use Depends(get_state) in route handlers to receive AppState.
"""
from fastapi.requests import HTTPConnection

from .state import AppState


def get_state(connection: HTTPConnection) -> AppState:
    """Return the app state instance attached in lifespan (HTTP or WebSocket)."""
    return connection.app.state.state
