# backend/tests/conftest.py
import copy
import os
from datetime import datetime, timedelta, timezone

# Keep the app's own lifespan away from the real data directory
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
import yaml
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cybersiege.api.deps import get_mission_service, get_room_manager
from cybersiege.main import app
from cybersiege.models import Base
from cybersiege.schemas.scenario import Scenario
from cybersiege.services.command_interpreter import CommandInterpreter
from cybersiege.services.mission_service import MissionService
from cybersiege.services.room_manager import RoomManager
from cybersiege.services.scenario_filesystem import ScenarioLoader
from cybersiege.services.session_store import SessionStore


RED_SCENARIO = {
    "name": "Network Infiltration",
    "description": "Map the office network and fingerprint the web server.",
    "type": "training",
    "category": "red-team",
    "difficulty": 2,
    "timeLimit": 45,
    "objectives": [
        {
            "description": "Discover live hosts",
            "type": "primary",
            "points": 100,
            "completionCriteria": {"actionType": "scan", "target": "network"},
        },
        {
            "description": "Enumerate web server ports",
            "type": "primary",
            "points": 150,
            "completionCriteria": {
                "actionType": "scan",
                "target": "server",
                "parameters": {"scanType": "port", "targetIp": "10.0.0.2"},
            },
        },
        {
            "description": "Find a vulnerability",
            "type": "bonus",
            "points": 50,
            "completionCriteria": {
                "actionType": "scan",
                "target": "server",
                "parameters": {"scanType": "vuln"},
            },
        },
    ],
    "assets": [
        {
            "name": "Corporate Network",
            "type": "network",
            "properties": {"hosts": ["10.0.0.1", "10.0.0.2"]},
        },
        {
            "name": "Web Server",
            "type": "server",
            "value": 3,
            "vulnerabilities": ["outdated-software"],
            "properties": {
                "ip": "10.0.0.2",
                "os": "Ubuntu 18.04",
                "ports": [22, 80],
                "services": {"22": "OpenSSH 7.6", "80": "Apache 2.4.29"},
                "status": "operational",
            },
        },
    ],
    "availableTools": [
        {"name": "nmap", "description": "Network scanner", "usage": "scan server --target <ip> --type port"},
    ],
    "initialState": {"visibleAssets": []},
}

BLUE_SCENARIO = {
    "name": "Ransomware Response",
    "description": "Contain and recover from a ransomware outbreak.",
    "type": "training",
    "category": "blue-team",
    "difficulty": 3,
    "timeLimit": 60,
    "objectives": [
        {
            "description": "Identify the ransomware attack",
            "type": "primary",
            "points": 100,
            "completionCriteria": {"actionType": "identify", "parameters": {"incidentType": "ransomware"}},
        },
        {
            "description": "Isolate the infected systems",
            "type": "primary",
            "points": 150,
            "completionCriteria": {"actionType": "isolate", "parameters": {"systemStatus": "infected"}},
        },
        {
            "description": "Analyze the malware sample",
            "type": "secondary",
            "points": 100,
            "completionCriteria": {"actionType": "analyze", "target": "malware"},
        },
        {
            "description": "Restore systems from backup",
            "type": "primary",
            "points": 150,
            "completionCriteria": {"actionType": "restore", "parameters": {"restoreType": "from-backup"}},
        },
        {
            "description": "Write the incident report",
            "type": "secondary",
            "points": 100,
            "completionCriteria": {"actionType": "create", "target": "report"},
        },
    ],
    "assets": [
        {
            "name": "Finance Workstation",
            "type": "workstation",
            "vulnerabilities": ["phishing-susceptible"],
            "properties": {"ip": "192.168.1.15", "os": "Windows 10", "status": "infected"},
        },
        {
            "name": "File Server",
            "type": "server",
            "vulnerabilities": ["outdated-software"],
            "properties": {"ip": "192.168.1.5", "services": {"445": "SMB"}, "status": "infected"},
        },
        {
            "name": "Backup Server",
            "type": "server",
            "properties": {"ip": "192.168.1.50", "status": "operational", "lastBackup": "2025-03-31T23:00:00Z"},
        },
        {"name": "Forensic Analysis Toolkit", "type": "tool"},
    ],
    "availableTools": [
        {"name": "Forensic Analysis Toolkit", "description": "Malware analysis", "usage": "analyze malware --type forensic"},
    ],
    "initialState": {
        "visibleAssets": ["Finance Workstation"],
        "events": [
            {
                "type": "attack",
                "attackType": "ransomware",
                "source": "phishing email attachment",
                "target": "Finance Workstation",
                "timestamp": "2025-04-01T08:42:00Z",
                "details": {"malwareFamily": "LockBit", "encryptedFiles": 1342, "spreadMethod": "SMB"},
            },
        ],
    },
}

START_TIME = datetime(2025, 4, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = START_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeHandle:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Records delayed callbacks instead of arming real timers."""

    def __init__(self):
        self.handles = []

    def __call__(self, delay, callback):
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    def fire(self):
        for handle in list(self.handles):
            if not handle.cancelled:
                handle.callback()
        self.handles.clear()


@pytest.fixture
def red_scenario_data():
    return copy.deepcopy(RED_SCENARIO)


@pytest.fixture
def blue_scenario_data():
    return copy.deepcopy(BLUE_SCENARIO)


@pytest.fixture
def red_scenario(red_scenario_data):
    return Scenario.model_validate({"id": "network-infiltration", **red_scenario_data})


@pytest.fixture
def blue_scenario(blue_scenario_data):
    return Scenario.model_validate({"id": "ransomware-response", **blue_scenario_data})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def scenarios_dir(tmp_path, red_scenario_data, blue_scenario_data):
    directory = tmp_path / "scenarios"
    directory.mkdir()
    (directory / "network-infiltration.yaml").write_text(yaml.safe_dump(red_scenario_data))
    (directory / "ransomware-response.yaml").write_text(yaml.safe_dump(blue_scenario_data))
    return directory


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield TestingSessionLocal
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store(session_factory):
    return SessionStore(session_factory)


@pytest.fixture
def mission_service(scenarios_dir, store, clock):
    interpreter = CommandInterpreter(clock=clock, delay_range=(0, 0))
    return MissionService(ScenarioLoader(scenarios_dir), store, interpreter=interpreter, clock=clock)


@pytest.fixture
def room_manager(clock, scheduler):
    return RoomManager(clock=clock, scheduler=scheduler)


@pytest.fixture
def client(mission_service, room_manager):
    app.dependency_overrides[get_mission_service] = lambda: mission_service
    app.dependency_overrides[get_room_manager] = lambda: room_manager

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
