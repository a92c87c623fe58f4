import pytest


@pytest.fixture
def headers():
    return {"X-Player-Id": "player-1"}


@pytest.fixture
def mission(client, headers):
    response = client.post(
        "/api/v1/missions",
        headers=headers,
        json={"scenarioId": "network-infiltration", "mode": "training", "team": "red"},
    )
    assert response.status_code == 201
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_version(client):
    data = client.get("/api/v1/version").json()
    assert data["api_version"] == "v1"
    assert data["app_name"] == "CyberSiege"


def test_player_header_required(client):
    response = client.get("/api/v1/scenarios")
    assert response.status_code == 401


def test_list_scenarios(client, headers):
    response = client.get("/api/v1/scenarios", headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert {s["id"] for s in data["scenarios"]} == {"network-infiltration", "ransomware-response"}


def test_list_scenarios_by_category(client, headers):
    data = client.get("/api/v1/scenarios?category=red-team", headers=headers).json()
    assert [s["id"] for s in data["scenarios"]] == ["network-infiltration"]


def test_get_scenario(client, headers):
    response = client.get("/api/v1/scenarios/ransomware-response", headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["category"] == "blue-team"
    assert len(data["objectives"]) == 5
    assert data["objectives"][0]["completionCriteria"]["actionType"] == "identify"


def test_get_unknown_scenario(client, headers):
    response = client.get("/api/v1/scenarios/nope", headers=headers)
    assert response.status_code == 404


def test_start_mission(mission):
    assert mission["status"] == "active"
    assert mission["scenarioId"] == "network-infiltration"
    assert mission["currentDirectory"] == "~"
    assert len(mission["objectives"]) == 3


def test_start_mission_unknown_scenario(client, headers):
    response = client.post("/api/v1/missions", headers=headers, json={"scenarioId": "nope"})
    assert response.status_code == 404


def test_run_command(client, headers, mission):
    response = client.post(
        f"/api/v1/missions/{mission['id']}/command",
        headers=headers,
        json={"command": "scan network --type basic"},
    )

    assert response.status_code == 200
    data = response.json()
    assert "Host 10.0.0.2 is up" in data["result"]
    assert data["session"]["score"] == 100
    assert data["session"]["objectives"][0]["completed"] is True


def test_malformed_command_is_not_an_error(client, headers, mission):
    response = client.post(
        f"/api/v1/missions/{mission['id']}/command",
        headers=headers,
        json={"command": "scan"},
    )
    assert response.status_code == 200
    assert "Usage: scan" in response.json()["result"]


def test_other_player_is_forbidden(client, mission):
    response = client.get(f"/api/v1/missions/{mission['id']}", headers={"X-Player-Id": "player-2"})
    assert response.status_code == 403


def test_unknown_mission(client, headers):
    response = client.get("/api/v1/missions/missing", headers=headers)
    assert response.status_code == 404


def test_abandon_then_command_conflicts(client, headers, mission):
    response = client.post(f"/api/v1/missions/{mission['id']}/abandon", headers=headers)
    assert response.status_code == 200
    assert response.json()["status"] == "abandoned"

    response = client.post(
        f"/api/v1/missions/{mission['id']}/command",
        headers=headers,
        json={"command": "ls"},
    )
    assert response.status_code == 409


def test_active_missions(client, headers, mission):
    response = client.get("/api/v1/missions/active", headers=headers)
    assert response.status_code == 200
    assert [m["id"] for m in response.json()] == [mission["id"]]


def test_record_action(client, headers, mission):
    response = client.put(
        f"/api/v1/missions/{mission['id']}/action",
        headers=headers,
        json={"actionType": "exploit", "target": "Web Server", "parameters": {"port": 80}},
    )

    assert response.status_code == 200
    action = response.json()["actions"][-1]
    assert action["actionType"] == "exploit"
    assert action["parameters"] == {"port": 80}
