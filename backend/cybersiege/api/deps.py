# backend/cybersiege/api/deps.py
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.requests import HTTPConnection

from cybersiege.exceptions import (
    AuthorizationError,
    CyberSiegeError,
    NotFoundError,
    SessionInactiveError,
    TransientStorageError,
    ValidationError,
)
from cybersiege.services.mission_service import MissionService
from cybersiege.services.room_manager import RoomManager
from cybersiege.services.scenario_filesystem import ScenarioLoader


def get_current_player(x_player_id: Annotated[Optional[str], Header()] = None) -> str:
    """Identity context for the request. Authentication happens upstream."""
    if not x_player_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Player-Id header",
        )
    return x_player_id


def get_mission_service(connection: HTTPConnection) -> MissionService:
    return connection.app.state.mission_service


def get_scenario_loader(
    missions: Annotated[MissionService, Depends(get_mission_service)],
) -> ScenarioLoader:
    return missions.scenarios


def get_room_manager(connection: HTTPConnection) -> RoomManager:
    return connection.app.state.room_manager


_STATUS_CODES = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (SessionInactiveError, status.HTTP_409_CONFLICT),
    (TransientStorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def to_http_exception(error: CyberSiegeError) -> HTTPException:
    """Map an engine error to an HTTP error carrying only its message."""
    for error_type, status_code in _STATUS_CODES:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
