# backend/cybersiege/schemas/room.py
"""Payloads exchanged over the competitive game channel.

Outbound events are sent as `{"event": <name>, "data": <payload>}` with camelCase keys.
"""
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Literal, Union
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from cybersiege.schemas.mission import TeamType


class RoomStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"


class RoomEvent(str, Enum):
    PLAYER_JOINED = "playerJoined"
    GAME_STATE = "gameState"
    GAME_STARTED = "gameStarted"
    ACTION_RESULT = "actionResult"
    CHAT_MESSAGE = "chatMessage"
    PLAYER_LEFT = "playerLeft"
    GAME_OVER = "gameOver"


class _WireModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class PlayerSummary(_WireModel):
    id: str
    username: str
    team_type: TeamType


class PlayerState(PlayerSummary):
    status: str = "ready"
    joined_at: datetime


class ActionEffect(_WireModel):
    type: str  # discovery, compromise, alert, protection, action
    target: Optional[str] = None
    details: str
    discovered_items: Optional[List[str]] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ActionOutcome(_WireModel):
    success: bool
    effects: List[ActionEffect] = []

    def to_wire(self) -> Dict[str, Any]:
        return {"success": self.success, "effects": [e.to_wire() for e in self.effects]}


class PlayerJoinedEvent(_WireModel):
    game_id: str
    player: PlayerSummary


class GameStateEvent(_WireModel):
    id: str
    status: RoomStatus
    players: Dict[str, PlayerState]
    teams: Dict[str, int]
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    winner: Optional[TeamType] = None
    last_update: datetime


class GameStartedEvent(_WireModel):
    game_id: str
    start_time: datetime
    players: List[PlayerSummary]


class ActionResultEvent(_WireModel):
    game_id: str
    user_id: str
    action: str
    target: Optional[str] = None
    parameters: Dict[str, Any] = {}
    result: ActionOutcome
    timestamp: datetime

    def to_wire(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True, exclude={"result"})
        data["result"] = self.result.to_wire()
        return data


class ChatMessageEvent(_WireModel):
    user_id: str
    username: str
    message: str
    team_type: TeamType
    timestamp: datetime


class PlayerLeftEvent(_WireModel):
    game_id: str
    user_id: str
    username: str


class GameOverEvent(_WireModel):
    game_id: str
    winner: TeamType
    reason: str
    duration: float  # seconds between start and end


# Inbound client messages

class JoinGameMessage(_WireModel):
    type: Literal["joinGame"]
    game_id: str = Field(..., min_length=1)
    team_type: TeamType


class GameActionMessage(_WireModel):
    type: Literal["gameAction"]
    game_id: str = Field(..., min_length=1)
    action: str = Field(..., min_length=1)
    target: Optional[str] = None
    parameters: Dict[str, Any] = {}


class GameChatMessage(_WireModel):
    type: Literal["gameChat"]
    game_id: str = Field(..., min_length=1)
    message: str
    team_only: bool = False


class PingMessage(_WireModel):
    type: Literal["ping"]


ClientMessage = Union[JoinGameMessage, GameActionMessage, GameChatMessage, PingMessage]
