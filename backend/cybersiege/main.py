# backend/cybersiege/main.py
import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cybersiege.config import get_settings
from cybersiege.api.scenarios import router as scenarios_router
from cybersiege.api.missions import router as missions_router
from cybersiege.api.websocket import router as websocket_router

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events for startup and shutdown."""
    # Startup
    from cybersiege.database import get_engine, get_session_local
    from cybersiege.models import Base
    from cybersiege.services.command_interpreter import CommandInterpreter
    from cybersiege.services.mission_service import MissionService
    from cybersiege.services.room_manager import CompromiseVictory, RoomManager
    from cybersiege.services.scenario_filesystem import ScenarioLoader
    from cybersiege.services.session_store import SessionStore

    logger.info("Preparing mission database...")
    Base.metadata.create_all(bind=get_engine())

    interpreter = CommandInterpreter(
        delay_range=(settings.command_delay_min_ms / 1000, settings.command_delay_max_ms / 1000),
    )
    app.state.mission_service = MissionService(
        scenarios=ScenarioLoader(),
        store=SessionStore(get_session_local()),
        interpreter=interpreter,
    )
    app.state.room_manager = RoomManager(
        success_probability=settings.action_success_probability,
        grace_period=settings.room_grace_period_seconds,
        victory_condition=CompromiseVictory(
            red_compromises=settings.red_victory_compromises,
            time_limit=timedelta(minutes=settings.room_time_limit_minutes),
        ),
    )
    logger.info("Mission services started")

    yield

    # Shutdown
    logger.info("Stopping game rooms...")
    app.state.room_manager.shutdown()


API_DESCRIPTION = """
# CyberSiege - Cyber Attack/Defense Mission Simulator

Players work through scripted missions from a simulated terminal, or compete
red versus blue in real-time game rooms.

## Concepts

- **Scenario**: A mission template with objectives, assets and tools
- **Mission**: One player's progress through a scenario
- **Room**: A live competitive game between a red and a blue team

## Quick Start

1. **Pick a scenario**: `GET /api/v1/scenarios`
2. **Start a mission**: `POST /api/v1/missions`
3. **Run commands**: `POST /api/v1/missions/{id}/command` (try `help`)
4. **Compete**: connect to `WS /api/v1/ws/game?player_id=...&username=...`

## Identity

Mission endpoints read the player id from the `X-Player-Id` header.
"""

app = FastAPI(
    title=settings.app_name,
    description=API_DESCRIPTION,
    version=settings.app_version,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "scenarios", "description": "Mission scenario catalogue"},
        {"name": "missions", "description": "Single-player mission sessions"},
        {"name": "WebSocket", "description": "Competitive game rooms"},
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(scenarios_router, prefix="/api/v1")
app.include_router(missions_router, prefix="/api/v1")
app.include_router(websocket_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.app_name}


@app.get("/api/v1/version")
async def get_version():
    """Return application version information."""
    return {
        "version": settings.app_version,
        "api_version": "v1",
        "app_name": settings.app_name,
    }
