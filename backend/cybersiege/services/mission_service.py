# backend/cybersiege/services/mission_service.py
"""
Mission service: the caller side of the command interpreter.

Loads `{session, scenario}`, enforces ownership and session state, serializes
commands per session and saves the result. Every public method raises from
`cybersiege.exceptions`; the API layer maps those to HTTP errors.
"""
import asyncio
import logging
import weakref
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from fastapi.concurrency import run_in_threadpool

from cybersiege.exceptions import AuthorizationError, SessionInactiveError
from cybersiege.schemas.mission import GameMode, MissionResult, MissionSession, SessionStatus, TeamType
from cybersiege.schemas.scenario import Scenario
from cybersiege.services.command_interpreter import CommandInterpreter, CommandResult
from cybersiege.services.scenario_filesystem import ScenarioLoader
from cybersiege.services.session_store import SessionStore
from cybersiege.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)


class MissionService:
    def __init__(
        self,
        scenarios: ScenarioLoader,
        store: SessionStore,
        interpreter: Optional[CommandInterpreter] = None,
        clock: Clock = utcnow,
    ):
        self.scenarios = scenarios
        self.store = store
        self.interpreter = interpreter or CommandInterpreter(clock=clock)
        self.clock = clock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def _load_owned(self, session_id: str, player_id: str) -> Tuple[MissionSession, Scenario]:
        session = self.store.load(session_id)
        if session.player_id != player_id:
            raise AuthorizationError(f"Mission session {session_id} does not belong to this player")
        return session, self.scenarios.get_scenario(session.scenario_id)


    def _expire_if_overdue(self, session: MissionSession, scenario: Scenario) -> bool:
        now = self.clock()
        if session.elapsed(now) < timedelta(minutes=scenario.time_limit):
            return False
        session.finish(SessionStatus.COMPLETED, MissionResult.FAILURE, now)
        self.store.save(session)
        logger.info(f"Mission session {session.id} expired after {scenario.time_limit} minutes")
        return True

    def start_mission(
        self,
        player_id: str,
        scenario_id: str,
        mode: GameMode = GameMode.TRAINING,
        team: TeamType = TeamType.RED,
    ) -> MissionSession:
        scenario = self.scenarios.get_scenario(scenario_id)
        session = MissionSession.start(scenario, player_id, mode, team, self.clock())
        self.store.save(session)
        logger.info(f"Started mission session {session.id} on '{scenario.name}' for player {player_id}")
        return session

    # Async operations hold the per-session lock on the event loop and run
    # blocking storage/file calls in the threadpool.

    async def run_command(self, session_id: str, player_id: str, command: str) -> CommandResult:
        async with self._lock_for(session_id):
            session, scenario = await run_in_threadpool(self._load_owned, session_id, player_id)
            if not session.is_active:
                raise SessionInactiveError(f"Mission session {session_id} is {session.status.value}")
            if await run_in_threadpool(self._expire_if_overdue, session, scenario):
                return CommandResult(
                    f"[Mission Failed] Time limit of {scenario.time_limit} minutes exceeded.",
                    session,
                )

            outcome = await self.interpreter.execute(session, scenario, command)
            await run_in_threadpool(self.store.save, outcome.session)
            return outcome

    async def record_action(
        self,
        session_id: str,
        player_id: str,
        action_type: str,
        target: Optional[str] = None,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> MissionSession:
        async with self._lock_for(session_id):
            session, _ = await run_in_threadpool(self._load_owned, session_id, player_id)
            if not session.is_active:
                raise SessionInactiveError(f"Mission session {session_id} is {session.status.value}")
            session.log_action(action_type, self.clock(), target=target, parameters=parameters)
            await run_in_threadpool(self.store.save, session)
            return session

    def get_mission(self, session_id: str, player_id: str) -> MissionSession:
        session, _ = self._load_owned(session_id, player_id)
        return session

    def list_active(self, player_id: str) -> List[MissionSession]:
        return self.store.list_active(player_id)

    async def abandon_mission(self, session_id: str, player_id: str) -> MissionSession:
        async with self._lock_for(session_id):
            session, _ = await run_in_threadpool(self._load_owned, session_id, player_id)
            session.finish(SessionStatus.ABANDONED, MissionResult.FAILURE, self.clock())
            await run_in_threadpool(self.store.save, session)
            logger.info(f"Mission session {session_id} abandoned by player {player_id}")
            return session
