"""
Pose Minigame Backend API

FastAPI application for recording reference poses and running the
pose-matching minigame against live landmark streams.

Run with:
    uvicorn main:app --reload --host 0.0.0.0 --port 8000

API docs available at:
    http://localhost:8000/docs (Swagger UI)
    http://localhost:8000/redoc (ReDoc)
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import router as api_router, API_VERSION
from api.state import AppState
from api.websocket import ConnectionManager, websocket_endpoint
from core.config import AppConfig, get_config

# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


DESCRIPTION = """
**Pose Matching Minigame**

Record reference body poses and have players match them in order.

## Endpoints

- `GET /api/health` - Health check
- `GET /api/poses` - Recorded poses
- `POST /api/poses` - Record a pose from 33 landmarks
- `POST /api/poses/{name}/similarity` - Score landmarks against a pose
- `POST /api/sequence/start` - Start the minigame
- `POST /api/sequence/tick` - Evaluate one frame
- `WS /ws/pose` - Real-time minigame stream

## WebSocket Protocol

Connect to `/ws/pose`, send `start`, then one `landmarks` message per frame:
```json
{
    "type": "landmarks",
    "data": {"landmarks": {"0": {"x": 0.1, "y": 1.6, "z": 0.0}}},
    "timestamp": 1704067200000
}
```
"""


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        config: Settings to run with; defaults to the loaded posematch.json

    Returns:
        App whose AppState is created on startup
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.

        Builds the app state and loads recorded poses before the app
        starts accepting requests.
        """
        # Startup
        state = AppState(config if config is not None else get_config())
        state.manager = ConnectionManager()
        state.startup()
        app.state.state = state

        logger.info(f"Pose minigame API starting up, {len(state.registry)} poses loaded")
        logger.info("WebSocket: ws://localhost:8000/ws/pose")

        yield  # App runs here

        # Shutdown
        logger.info("Pose minigame API shutting down...")

    app = FastAPI(
        title="Pose Minigame API",
        description=DESCRIPTION,
        version=API_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # =========================================================================
    # CORS Middleware
    # =========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",      # React dev server
            "http://localhost:5173",      # Vite dev server
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
            "*",                          # Allow all for development
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # Routes
    # =========================================================================

    # Include REST API routes
    app.include_router(api_router, prefix="/api")

    # WebSocket endpoint
    app.websocket("/ws/pose")(websocket_endpoint)

    @app.get("/", tags=["Root"])
    async def root():
        """
        Root endpoint - API information.
        """
        return {
            "name": "Pose Minigame API",
            "version": API_VERSION,
            "description": "Pose recording and pose-matching minigame",
            "docs": "/docs",
            "health": "/api/health",
            "websocket": "ws://localhost:8000/ws/pose"
        }

    return app


app = create_app()


# =============================================================================
# Run directly (for development)
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
