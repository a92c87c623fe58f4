# backend/cybersiege/api/missions.py
"""Mission session endpoints: start a mission, run terminal commands, abandon."""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from cybersiege.api.deps import get_current_player, get_mission_service, to_http_exception
from cybersiege.exceptions import CyberSiegeError
from cybersiege.schemas.mission import GameMode, MissionSession, TeamType
from cybersiege.services.mission_service import MissionService

router = APIRouter(prefix="/missions", tags=["missions"])


class _CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


class MissionCreate(_CamelModel):
    scenario_id: str = Field(..., min_length=1)
    mode: GameMode = GameMode.TRAINING
    team: TeamType = TeamType.RED


class CommandRequest(_CamelModel):
    command: str = Field(..., max_length=1000)


class CommandResponse(_CamelModel):
    result: str
    session: MissionSession


class ActionRequest(_CamelModel):
    action_type: str = Field(..., min_length=1)
    target: Optional[str] = None
    parameters: Dict[str, Any] = {}


@router.post("", status_code=status.HTTP_201_CREATED)
def start_mission(
    body: MissionCreate,
    missions: MissionService = Depends(get_mission_service),
    player_id: str = Depends(get_current_player),
) -> MissionSession:
    try:
        return missions.start_mission(player_id, body.scenario_id, body.mode, body.team)
    except CyberSiegeError as e:
        raise to_http_exception(e)


@router.get("/active")
def list_active_missions(
    missions: MissionService = Depends(get_mission_service),
    player_id: str = Depends(get_current_player),
) -> List[MissionSession]:
    try:
        return missions.list_active(player_id)
    except CyberSiegeError as e:
        raise to_http_exception(e)


@router.get("/{session_id}")
def get_mission(
    session_id: str,
    missions: MissionService = Depends(get_mission_service),
    player_id: str = Depends(get_current_player),
) -> MissionSession:
    try:
        return missions.get_mission(session_id, player_id)
    except CyberSiegeError as e:
        raise to_http_exception(e)


@router.post("/{session_id}/command")
async def run_command(
    session_id: str,
    body: CommandRequest,
    missions: MissionService = Depends(get_mission_service),
    player_id: str = Depends(get_current_player),
) -> CommandResponse:
    """
    Execute one terminal command against the mission.

    Malformed commands still succeed with a usage message in `result`;
    errors are reserved for ownership, missing sessions and storage failures.
    """
    try:
        outcome = await missions.run_command(session_id, player_id, body.command)
    except CyberSiegeError as e:
        raise to_http_exception(e)
    return CommandResponse(result=outcome.result, session=outcome.session)


@router.put("/{session_id}/action")
async def record_action(
    session_id: str,
    body: ActionRequest,
    missions: MissionService = Depends(get_mission_service),
    player_id: str = Depends(get_current_player),
) -> MissionSession:
    try:
        return await missions.record_action(
            session_id, player_id, body.action_type, body.target, body.parameters,
        )
    except CyberSiegeError as e:
        raise to_http_exception(e)


@router.post("/{session_id}/abandon")
async def abandon_mission(
    session_id: str,
    missions: MissionService = Depends(get_mission_service),
    player_id: str = Depends(get_current_player),
) -> MissionSession:
    try:
        return await missions.abandon_mission(session_id, player_id)
    except CyberSiegeError as e:
        raise to_http_exception(e)
