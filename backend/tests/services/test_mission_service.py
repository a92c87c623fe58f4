"""Tests for MissionService and the SQLAlchemy session store."""
import asyncio
import threading

import pytest
from sqlalchemy.exc import OperationalError

from cybersiege.exceptions import (
    AuthorizationError,
    NotFoundError,
    SessionInactiveError,
    TransientStorageError,
    ValidationError,
)
from cybersiege.models import MissionRecord
from cybersiege.schemas.mission import GameMode, MissionResult, SessionStatus, TeamType
from cybersiege.services.command_interpreter import CommandInterpreter
from cybersiege.services.mission_service import MissionService
from cybersiege.services.session_store import SessionStore


class TestSessionStore:

    def test_save_and_load(self, mission_service, store):
        session = mission_service.start_mission("player-1", "network-infiltration")

        loaded = store.load(session.id)
        assert loaded == session
        assert loaded.objectives[0].description == "Discover live hosts"

    def test_load_unknown(self, store):
        with pytest.raises(NotFoundError):
            store.load("missing")

    def test_malformed_payload(self, store, session_factory):
        with session_factory() as db:
            db.add(MissionRecord(
                id="broken", player_id="player-1", scenario_name="x",
                status="active", payload={"bogus": True},
            ))
            db.commit()

        with pytest.raises(ValidationError):
            store.load("broken")

    def test_storage_failures_are_surfaced(self):
        def unavailable():
            raise OperationalError("connect", {}, Exception("database is locked"))

        store = SessionStore(unavailable)
        with pytest.raises(TransientStorageError):
            store.load("any")
        with pytest.raises(TransientStorageError):
            store.list_active("player-1")


class TestStartMission:

    def test_start_mission(self, mission_service, clock):
        session = mission_service.start_mission("player-1", "ransomware-response", GameMode.TRAINING, TeamType.BLUE)
        assert session.status == SessionStatus.ACTIVE
        assert session.team == TeamType.BLUE
        assert session.start_time == clock()
        assert session.visible_assets == ["Finance Workstation"]

    def test_unknown_scenario(self, mission_service):
        with pytest.raises(NotFoundError):
            mission_service.start_mission("player-1", "nope")

    def test_list_active(self, mission_service):
        kept = mission_service.start_mission("player-1", "network-infiltration")
        dropped = mission_service.start_mission("player-1", "ransomware-response")
        mission_service.start_mission("player-2", "network-infiltration")
        asyncio.run(mission_service.abandon_mission(dropped.id, "player-1"))

        assert [s.id for s in mission_service.list_active("player-1")] == [kept.id]


class TestRunCommand:

    @pytest.mark.asyncio
    async def test_command_progress_is_saved(self, mission_service, store):
        session = mission_service.start_mission("player-1", "network-infiltration")

        outcome = await mission_service.run_command(session.id, "player-1", "scan network --type basic")

        assert "Host 10.0.0.1 is up" in outcome.result
        saved = store.load(session.id)
        assert saved.score == 100
        assert saved.objectives[0].completed
        assert [a.action_type for a in saved.actions] == ["command", "scan"]

    @pytest.mark.asyncio
    async def test_other_players_are_rejected(self, mission_service, store):
        session = mission_service.start_mission("player-1", "network-infiltration")

        with pytest.raises(AuthorizationError):
            await mission_service.run_command(session.id, "player-2", "ls")
        assert store.load(session.id).actions == []

    @pytest.mark.asyncio
    async def test_unknown_session(self, mission_service):
        with pytest.raises(NotFoundError):
            await mission_service.run_command("missing", "player-1", "ls")

    @pytest.mark.asyncio
    async def test_abandoned_session_is_inactive(self, mission_service):
        session = mission_service.start_mission("player-1", "network-infiltration")
        abandoned = await mission_service.abandon_mission(session.id, "player-1")
        assert abandoned.status == SessionStatus.ABANDONED
        assert abandoned.result == MissionResult.FAILURE

        with pytest.raises(SessionInactiveError):
            await mission_service.run_command(session.id, "player-1", "ls")
        with pytest.raises(SessionInactiveError):
            await mission_service.abandon_mission(session.id, "player-1")

    @pytest.mark.asyncio
    async def test_time_limit_expires_session(self, mission_service, store, clock):
        session = mission_service.start_mission("player-1", "network-infiltration")
        clock.advance(minutes=46)

        outcome = await mission_service.run_command(session.id, "player-1", "ls")

        assert outcome.result == "[Mission Failed] Time limit of 45 minutes exceeded."
        saved = store.load(session.id)
        assert saved.status == SessionStatus.COMPLETED
        assert saved.result == MissionResult.FAILURE
        with pytest.raises(SessionInactiveError):
            await mission_service.run_command(session.id, "player-1", "ls")

    @pytest.mark.asyncio
    async def test_completing_primaries_finishes_mission(self, mission_service, store):
        session = mission_service.start_mission("player-1", "network-infiltration")
        await mission_service.run_command(session.id, "player-1", "scan network --type basic")
        await mission_service.run_command(session.id, "player-1", "scan server --target 10.0.0.2 --type port")

        saved = store.load(session.id)
        assert saved.status == SessionStatus.COMPLETED
        assert saved.result == MissionResult.SUCCESS
        assert saved.score == 250

    @pytest.mark.asyncio
    async def test_concurrent_commands_are_serialized(self, scenarios_dir, store, clock):
        from cybersiege.services.scenario_filesystem import ScenarioLoader

        interpreter = CommandInterpreter(clock=clock, delay_range=(0.01, 0.01))
        service = MissionService(ScenarioLoader(scenarios_dir), store, interpreter=interpreter, clock=clock)
        session = service.start_mission("player-1", "network-infiltration")

        await asyncio.gather(
            service.run_command(session.id, "player-1", "whoami"),
            service.run_command(session.id, "player-1", "pwd"),
        )

        saved = store.load(session.id)
        assert sorted(h.command for h in saved.command_history) == ["pwd", "whoami"]
        assert len(saved.actions) == 2


class TestRecordAction:

    @pytest.mark.asyncio
    async def test_record_action(self, mission_service, store):
        session = mission_service.start_mission("player-1", "network-infiltration")

        updated = await mission_service.record_action(
            session.id, "player-1", "exploit", "Web Server", {"cve": "CVE-2021-41773"},
        )

        assert updated.actions[-1].action_type == "exploit"
        assert store.load(session.id).actions[-1].parameters == {"cve": "CVE-2021-41773"}


class ThreadRecordingStore(SessionStore):
    """Session store that notes which thread each load and save ran on."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.threads = []

    def load(self, session_id):
        self.threads.append(threading.get_ident())
        return super().load(session_id)

    def save(self, session):
        self.threads.append(threading.get_ident())
        super().save(session)


class TestStorageOffEventLoop:

    @pytest.mark.asyncio
    async def test_async_operations_keep_storage_off_the_loop(self, scenarios_dir, session_factory, clock):
        from cybersiege.services.scenario_filesystem import ScenarioLoader

        store = ThreadRecordingStore(session_factory)
        interpreter = CommandInterpreter(clock=clock, delay_range=(0, 0))
        service = MissionService(ScenarioLoader(scenarios_dir), store, interpreter=interpreter, clock=clock)
        session = service.start_mission("player-1", "network-infiltration")
        store.threads.clear()

        await service.run_command(session.id, "player-1", "scan network --type basic")
        await service.record_action(session.id, "player-1", "exploit", "Web Server")
        await service.abandon_mission(session.id, "player-1")

        loop_thread = threading.get_ident()
        assert len(store.threads) == 6
        assert loop_thread not in store.threads
