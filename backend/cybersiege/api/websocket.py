# backend/cybersiege/api/websocket.py
"""WebSocket endpoint for competitive game rooms."""
import logging
from typing import Annotated, Any, Dict, Optional

import anyio
import pydantic
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from pydantic import Field, TypeAdapter

from cybersiege.api.deps import get_room_manager
from cybersiege.schemas.room import (
    ClientMessage,
    GameActionMessage,
    GameChatMessage,
    JoinGameMessage,
    PingMessage,
)
from cybersiege.services.room_manager import RoomManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])

client_messages = TypeAdapter(Annotated[ClientMessage, Field(discriminator="type")])


class WebSocketConnection:
    """Sends room events to one client as `{"event": ..., "data": ...}` envelopes."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def send(self, event: str, payload: Dict[str, Any]) -> None:
        await self.websocket.send_json({"event": event, "data": payload})


@router.websocket("/ws/game")
async def game_socket(
    websocket: WebSocket,
    player_id: str = Query(..., min_length=1),
    username: Optional[str] = Query(None),
    rooms: RoomManager = Depends(get_room_manager),
):
    """
    Real-time channel for competitive games.

    Client can send:
    - {"type": "joinGame", "gameId": "...", "teamType": "red|blue"}
    - {"type": "gameAction", "gameId": "...", "action": "scan", "target": "...", "parameters": {}}
    - {"type": "gameChat", "gameId": "...", "message": "...", "teamOnly": false}
    - {"type": "ping"}

    Disconnecting leaves every room the connection joined.
    """
    await websocket.accept()
    connection = WebSocketConnection(websocket)
    username = username or player_id

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = client_messages.validate_json(raw)
            except pydantic.ValidationError as e:
                logger.debug(f"Rejected game message from {player_id}: {e}")
                await connection.send("error", {"message": "Invalid message"})
                continue

            if isinstance(message, JoinGameMessage):
                await rooms.join(message.game_id, player_id, username, message.team_type, connection)
            elif isinstance(message, GameActionMessage):
                await rooms.action(
                    message.game_id, player_id, message.action, message.target, message.parameters,
                )
            elif isinstance(message, GameChatMessage):
                await rooms.chat(message.game_id, player_id, message.message, message.team_only)
            elif isinstance(message, PingMessage):
                await connection.send("pong", {})

    except WebSocketDisconnect:
        logger.info(f"Game WebSocket disconnected for player {player_id}")
    finally:
        # The server may cancel this task once the client is gone; leaving must still finish
        with anyio.CancelScope(shield=True):
            await rooms.disconnect(connection)
