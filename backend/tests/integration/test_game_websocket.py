import pytest


def _connect(client, player_id, username):
    return client.websocket_connect(f"/api/v1/ws/game?player_id={player_id}&username={username}")


def _join(ws, game_id, team):
    ws.send_json({"type": "joinGame", "gameId": game_id, "teamType": team})


def test_ping(client):
    with _connect(client, "p1", "alice") as ws:
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"event": "pong", "data": {}}


def test_invalid_message(client):
    with _connect(client, "p1", "alice") as ws:
        ws.send_json({"type": "launchMissiles"})
        message = ws.receive_json()
        assert message["event"] == "error"


def test_join_receives_state(client, room_manager):
    with _connect(client, "p1", "alice") as ws:
        _join(ws, "game-1", "red")

        joined = ws.receive_json()
        assert joined["event"] == "playerJoined"
        assert joined["data"]["player"] == {"id": "p1", "username": "alice", "teamType": "red"}

        state = ws.receive_json()
        assert state["event"] == "gameState"
        assert state["data"]["status"] == "waiting"

    # Disconnecting the only player removes the room
    assert room_manager.get_room("game-1") is None


def test_match_lifecycle(client, room_manager):
    with _connect(client, "p1", "alice") as red:
        _join(red, "game-1", "red")
        assert [red.receive_json()["event"] for _ in range(2)] == ["playerJoined", "gameState"]

        with _connect(client, "p2", "bob") as blue:
            _join(blue, "game-1", "blue")
            assert [blue.receive_json()["event"] for _ in range(3)] == [
                "playerJoined", "gameState", "gameStarted",
            ]
            assert [red.receive_json()["event"] for _ in range(2)] == ["playerJoined", "gameStarted"]

            blue.send_json({"type": "gameChat", "gameId": "game-1", "message": "gl hf"})
            chat = red.receive_json()
            assert chat["event"] == "chatMessage"
            assert chat["data"]["username"] == "bob"
            assert blue.receive_json()["event"] == "chatMessage"

            red.send_json({"type": "gameAction", "gameId": "game-1", "action": "scan", "target": "dmz"})
            result = blue.receive_json()
            assert result["event"] == "actionResult"
            assert result["data"]["userId"] == "p1"
            assert result["data"]["result"]["effects"][0]["type"] == "discovery"
            assert red.receive_json()["event"] == "actionResult"

        left = red.receive_json()
        assert left == {"event": "playerLeft", "data": {"gameId": "game-1", "userId": "p2", "username": "bob"}}
        over = red.receive_json()
        assert over["event"] == "gameOver"
        assert over["data"]["winner"] == "red"
        assert over["data"]["reason"] == "Red team wins (other team left)"
