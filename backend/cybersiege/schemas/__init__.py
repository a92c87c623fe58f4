# backend/cybersiege/schemas/__init__.py
from cybersiege.schemas.scenario import Scenario, Objective, Asset, Tool, CompletionCriteria
from cybersiege.schemas.mission import MissionSession, Action, GameMode, TeamType, SessionStatus, MissionResult
from cybersiege.schemas.room import RoomStatus, RoomEvent

__all__ = [
    "Scenario", "Objective", "Asset", "Tool", "CompletionCriteria",
    "MissionSession", "Action", "GameMode", "TeamType", "SessionStatus", "MissionResult",
    "RoomStatus", "RoomEvent",
]
