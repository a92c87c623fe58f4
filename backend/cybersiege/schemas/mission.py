# backend/cybersiege/schemas/mission.py
import copy
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, List, Dict, Any, Iterable
from uuid import uuid4

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from cybersiege.exceptions import SessionInactiveError
from cybersiege.schemas.scenario import Objective, ObjectiveKind, Scenario


class GameMode(str, Enum):
    TRAINING = "training"
    COMPETITIVE = "competitive"


class TeamType(str, Enum):
    RED = "red"
    BLUE = "blue"

    @property
    def opponent(self) -> "TeamType":
        return TeamType.BLUE if self is TeamType.RED else TeamType.RED


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class MissionResult(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    INCOMPLETE = "incomplete"


class Action(BaseModel):
    """A logged player operation. Immutable once appended."""
    action_type: str
    target: Optional[str] = None
    parameters: Dict[str, Any] = {}
    result: Optional[Dict[str, Any]] = None
    timestamp: datetime

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        frozen = True


class CommandHistoryEntry(BaseModel):
    command: str
    timestamp: datetime

    class Config:
        frozen = True


class MissionSession(BaseModel):
    """One player's mutable progress through a scenario.

    Objectives and world state are private deep copies taken when the session
    starts, so concurrent sessions on the same scenario never share completion flags.
    The action log and command history are append-only; use `log_action` and
    `record_command` rather than touching the lists directly.
    """
    id: str = Field(default_factory=lambda: uuid4().hex)
    scenario_id: str
    scenario_name: str
    player_id: str
    mode: GameMode
    team: TeamType
    status: SessionStatus = SessionStatus.ACTIVE
    result: MissionResult = MissionResult.INCOMPLETE
    score: int = 0
    start_time: datetime
    end_time: Optional[datetime] = None
    last_action: datetime
    actions: List[Action] = []
    command_history: List[CommandHistoryEntry] = []
    current_directory: str = "~"
    world_state: Dict[str, Any] = {}
    objectives: List[Objective] = []

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @classmethod
    def start(
        cls,
        scenario: Scenario,
        player_id: str,
        mode: GameMode,
        team: TeamType,
        now: datetime,
    ) -> "MissionSession":
        world_state = copy.deepcopy(scenario.initial_state)
        world_state.setdefault("visibleAssets", [])
        return cls(
            scenario_id=scenario.id or scenario.name,
            scenario_name=scenario.name,
            player_id=player_id,
            mode=mode,
            team=team,
            start_time=now,
            last_action=now,
            world_state=world_state,
            objectives=[o.model_copy(deep=True) for o in scenario.objectives],
        )

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    @property
    def visible_assets(self) -> List[str]:
        return list(self.world_state.get("visibleAssets") or [])

    def reveal_assets(self, names: Iterable[str]) -> List[str]:
        """Add asset names to the visible set; returns the ones that were newly revealed."""
        visible = self.world_state.setdefault("visibleAssets", [])
        revealed = []
        for name in names:
            if name not in visible:
                visible.append(name)
                revealed.append(name)
        return revealed

    def remember(self, key: str, names: Iterable[str]) -> None:
        """Append asset names to a world-state list such as `isolatedAssets`."""
        bucket = self.world_state.setdefault(key, [])
        for name in names:
            if name not in bucket:
                bucket.append(name)

    def log_action(
        self,
        action_type: str,
        now: datetime,
        target: Optional[str] = None,
        parameters: Optional[Dict[str, Any]] = None,
        result: Optional[Dict[str, Any]] = None,
    ) -> Action:
        # Clamp so the log stays ordered even if the clock steps backwards
        if self.actions and now < self.actions[-1].timestamp:
            now = self.actions[-1].timestamp
        action = Action(
            action_type=action_type,
            target=target,
            parameters=dict(parameters or {}),
            result=result,
            timestamp=now,
        )
        self.actions.append(action)
        self.last_action = now
        return action

    def record_command(self, command: str, now: datetime) -> CommandHistoryEntry:
        if self.command_history and now < self.command_history[-1].timestamp:
            now = self.command_history[-1].timestamp
        entry = CommandHistoryEntry(command=command, timestamp=now)
        self.command_history.append(entry)
        return entry

    def recent_command(self, n: int) -> Optional[str]:
        """Return the command recorded n entries from the end of history (1 = most recent)."""
        if n < 1 or n > len(self.command_history):
            return None
        return self.command_history[-n].command

    def resolved_actions(self) -> List[Action]:
        """Actions other than the raw `command` entries logged for every invocation."""
        return [a for a in self.actions if a.action_type != "command"]

    def award(self, objective: Objective) -> None:
        self.score += objective.points

    def primary_objectives_complete(self) -> bool:
        primaries = [o for o in self.objectives if o.kind == ObjectiveKind.PRIMARY]
        return bool(primaries) and all(o.completed for o in primaries)

    def elapsed(self, now: datetime) -> timedelta:
        return now - self.start_time

    def finish(self, status: SessionStatus, result: MissionResult, now: datetime) -> None:
        if not self.is_active:
            raise SessionInactiveError(f"Mission session {self.id} is already {self.status.value}")
        if status == SessionStatus.ACTIVE:
            raise ValueError("A session cannot be re-activated")
        self.status = status
        self.result = result
        self.end_time = now
