# backend/cybersiege/services/room_manager.py
"""
In-memory registry of competitive game rooms.

Room lifecycle: waiting -> active -> completed. A room is created by the first
join for its game id and removed either as soon as its roster empties or once a
grace period has passed after it completes.

Events for one room are processed one at a time under that room's lock; different
rooms proceed independently. Unknown rooms and players are silent no-ops so late or
duplicate disconnects never fail.

The registry is process-local and not persisted: state is lost on restart and is
not shared between server instances.
"""
import asyncio
import logging
import random
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Protocol, Set, Tuple

from cybersiege.schemas.mission import TeamType
from cybersiege.schemas.room import (
    ActionEffect,
    ActionOutcome,
    ActionResultEvent,
    ChatMessageEvent,
    GameOverEvent,
    GameStartedEvent,
    GameStateEvent,
    PlayerJoinedEvent,
    PlayerLeftEvent,
    PlayerState,
    PlayerSummary,
    RoomEvent,
    RoomStatus,
)
from cybersiege.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)

SCAN_DISCOVERIES = ["server1", "server2", "firewall"]


class RoomConnection(Protocol):
    """Transport handle for one connected client."""

    async def send(self, event: str, payload: Dict[str, Any]) -> None: ...


class Cancelable(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], Cancelable]


@dataclass
class RoomPlayer:
    id: str
    username: str
    team: TeamType
    connection: RoomConnection
    joined_at: datetime
    status: str = "ready"

    def summary(self) -> PlayerSummary:
        return PlayerSummary(id=self.id, username=self.username, team_type=self.team)


@dataclass(eq=False)
class Room:
    id: str
    last_update: datetime
    players: Dict[str, RoomPlayer] = field(default_factory=dict)
    status: RoomStatus = RoomStatus.WAITING
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    winner: Optional[TeamType] = None
    reason: Optional[str] = None
    compromised: Set[str] = field(default_factory=set)
    deletion: Optional[Cancelable] = None

    def team_count(self, team: TeamType) -> int:
        return sum(1 for p in self.players.values() if p.team == team)

    def snapshot(self) -> GameStateEvent:
        return GameStateEvent(
            id=self.id,
            status=self.status,
            players={
                p.id: PlayerState(
                    id=p.id, username=p.username, team_type=p.team,
                    status=p.status, joined_at=p.joined_at,
                )
                for p in self.players.values()
            },
            teams={team.value: self.team_count(team) for team in TeamType},
            start_time=self.start_time,
            end_time=self.end_time,
            winner=self.winner,
            last_update=self.last_update,
        )


VictoryCondition = Callable[[Room, datetime], Optional[Tuple[TeamType, str]]]


class CompromiseVictory:
    """Red wins on enough distinct unprotected compromises; blue wins by outlasting the clock."""

    def __init__(self, red_compromises: int = 3, time_limit: timedelta = timedelta(minutes=60)):
        self.red_compromises = red_compromises
        self.time_limit = time_limit

    def __call__(self, room: Room, now: datetime) -> Optional[Tuple[TeamType, str]]:
        if len(room.compromised) >= self.red_compromises:
            return TeamType.RED, f"Red team wins ({len(room.compromised)} systems compromised)"
        if room.start_time and now - room.start_time >= self.time_limit:
            return TeamType.BLUE, "Blue team wins (time limit reached)"
        return None


def _loop_scheduler(delay: float, callback: Callable[[], None]) -> Cancelable:
    return asyncio.get_running_loop().call_later(delay, callback)


class RoomManager:
    """Owns every live room. Construct once per process and share it with connection handlers."""

    def __init__(
        self,
        clock: Clock = utcnow,
        rng: Optional[random.Random] = None,
        success_probability: float = 0.7,
        grace_period: float = 60.0,
        victory_condition: Optional[VictoryCondition] = None,
        scheduler: Scheduler = _loop_scheduler,
    ):
        self.clock = clock
        self.rng = rng or random.Random()
        self.success_probability = success_probability
        self.grace_period = grace_period
        self.victory_condition = victory_condition or CompromiseVictory()
        self.scheduler = scheduler
        self._rooms: Dict[str, Room] = {}
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    @property
    def rooms(self) -> Dict[str, Room]:
        return dict(self._rooms)

    def get_room(self, game_id: str) -> Optional[Room]:
        return self._rooms.get(game_id)

    def _lock_for(self, game_id: str) -> asyncio.Lock:
        lock = self._locks.get(game_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[game_id] = lock
        return lock

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def _send(self, player: RoomPlayer, event: RoomEvent, payload: Dict[str, Any]) -> None:
        try:
            await player.connection.send(event.value, payload)
        except Exception as e:
            logger.warning(f"Failed to send {event.value} to player {player.id}: {e}")

    async def _broadcast(
        self,
        room: Room,
        event: RoomEvent,
        payload: Dict[str, Any],
        team: Optional[TeamType] = None,
    ) -> None:
        recipients = [p for p in room.players.values() if team is None or p.team == team]
        logger.debug(f"Broadcasting {event.value} to {len(recipients)} players in room {room.id}")
        for player in recipients:
            await self._send(player, event, payload)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def join(
        self,
        game_id: str,
        player_id: str,
        username: str,
        team: TeamType,
        connection: RoomConnection,
    ) -> Room:
        async with self._lock_for(game_id):
            now = self.clock()
            room = self._rooms.get(game_id)
            if room is None:
                room = Room(id=game_id, last_update=now)
                self._rooms[game_id] = room
                logger.info(f"Created game room {game_id}")

            player = RoomPlayer(
                id=player_id, username=username, team=team,
                connection=connection, joined_at=now,
            )
            room.players[player_id] = player
            logger.info(f"Player {username} joined room {game_id} as {team.value}")

            joined = PlayerJoinedEvent(game_id=game_id, player=player.summary())
            await self._broadcast(room, RoomEvent.PLAYER_JOINED, joined.to_wire())
            await self._send(player, RoomEvent.GAME_STATE, room.snapshot().to_wire())
            await self._check_ready(room)
            return room

    async def action(
        self,
        game_id: str,
        player_id: str,
        action: str,
        target: Optional[str] = None,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> Optional[ActionOutcome]:
        async with self._lock_for(game_id):
            room = self._rooms.get(game_id)
            if room is None or player_id not in room.players:
                return None

            logger.debug(f"Game action in {game_id}: {action} by {player_id}")
            outcome = self.resolve_action(action, target)
            now = self.clock()
            room.last_update = now
            if room.status == RoomStatus.ACTIVE:
                self._apply_effects(room, outcome)

            event = ActionResultEvent(
                game_id=game_id,
                user_id=player_id,
                action=action,
                target=target,
                parameters=dict(parameters or {}),
                result=outcome,
                timestamp=now,
            )
            await self._broadcast(room, RoomEvent.ACTION_RESULT, event.to_wire())
            await self._check_game_over(room)
            return outcome

    async def chat(self, game_id: str, player_id: str, message: str, team_only: bool = False) -> None:
        async with self._lock_for(game_id):
            room = self._rooms.get(game_id)
            if room is None:
                return
            sender = room.players.get(player_id)
            if sender is None:
                return

            event = ChatMessageEvent(
                user_id=sender.id,
                username=sender.username,
                message=message,
                team_type=sender.team,
                timestamp=self.clock(),
            )
            await self._broadcast(
                room, RoomEvent.CHAT_MESSAGE, event.to_wire(),
                team=sender.team if team_only else None,
            )

    async def leave(self, game_id: str, player_id: str) -> None:
        async with self._lock_for(game_id):
            room = self._rooms.get(game_id)
            if room is None:
                return
            player = room.players.pop(player_id, None)
            if player is None:
                return

            logger.info(f"Player {player.username} left room {game_id}")
            left = PlayerLeftEvent(game_id=game_id, user_id=player.id, username=player.username)
            await self._broadcast(room, RoomEvent.PLAYER_LEFT, left.to_wire())

            if not room.players:
                self._remove(room)
            else:
                await self._check_game_over(room)

    async def disconnect(self, connection: RoomConnection) -> None:
        """Remove the connection's players from every room they joined."""
        for game_id, room in list(self._rooms.items()):
            for player in list(room.players.values()):
                if player.connection is connection:
                    await self.leave(game_id, player.id)

    def shutdown(self) -> None:
        for room in self._rooms.values():
            if room.deletion is not None:
                room.deletion.cancel()
                room.deletion = None
        self._rooms.clear()
        logger.info("Room manager shut down")

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def resolve_action(self, action: str, target: Optional[str]) -> ActionOutcome:
        success = self.rng.random() < self.success_probability
        if action == "scan":
            effect = ActionEffect(
                type="discovery", target=target, details="Network scan completed",
                discovered_items=list(SCAN_DISCOVERIES),
            )
        elif action == "exploit":
            if success:
                effect = ActionEffect(type="compromise", target=target, details="Vulnerability successfully exploited")
            else:
                effect = ActionEffect(type="alert", target=target, details="Exploit attempt detected")
        elif action == "defend":
            effect = ActionEffect(type="protection", target=target, details="Defense mechanism deployed")
        else:
            effect = ActionEffect(type="action", target=target, details=f"Action {action} performed")
        return ActionOutcome(success=success, effects=[effect])

    @staticmethod
    def _apply_effects(room: Room, outcome: ActionOutcome) -> None:
        for effect in outcome.effects:
            if not effect.target:
                continue
            if effect.type == "compromise":
                room.compromised.add(effect.target)
            elif effect.type == "protection":
                room.compromised.discard(effect.target)

    async def _check_ready(self, room: Room) -> None:
        if room.status != RoomStatus.WAITING:
            return
        if room.team_count(TeamType.RED) == 0 or room.team_count(TeamType.BLUE) == 0:
            return

        room.status = RoomStatus.ACTIVE
        room.start_time = self.clock()
        logger.info(f"Game {room.id} started with {len(room.players)} players")
        started = GameStartedEvent(
            game_id=room.id,
            start_time=room.start_time,
            players=[p.summary() for p in room.players.values()],
        )
        await self._broadcast(room, RoomEvent.GAME_STARTED, started.to_wire())

    async def _check_game_over(self, room: Room) -> None:
        if room.status != RoomStatus.ACTIVE:
            return

        now = self.clock()
        red, blue = room.team_count(TeamType.RED), room.team_count(TeamType.BLUE)
        if red == 0 or blue == 0:
            winner = TeamType.BLUE if red == 0 else TeamType.RED
            verdict = (winner, f"{winner.value.capitalize()} team wins (other team left)")
        else:
            verdict = self.victory_condition(room, now)
        if verdict is None:
            return

        room.winner, room.reason = verdict
        room.status = RoomStatus.COMPLETED
        room.end_time = now
        logger.info(f"Game {room.id} ended. Winner: {room.winner.value}")

        over = GameOverEvent(
            game_id=room.id,
            winner=room.winner,
            reason=room.reason,
            duration=(room.end_time - room.start_time).total_seconds(),
        )
        await self._broadcast(room, RoomEvent.GAME_OVER, over.to_wire())
        room.deletion = self.scheduler(self.grace_period, lambda: self._expire(room))

    def _expire(self, room: Room) -> None:
        room.deletion = None
        # The id may have been reused by a new room after this one emptied
        if self._rooms.get(room.id) is room:
            del self._rooms[room.id]
            logger.info(f"Game room {room.id} removed after completion")

    def _remove(self, room: Room) -> None:
        if room.deletion is not None:
            room.deletion.cancel()
            room.deletion = None
        if self._rooms.get(room.id) is room:
            del self._rooms[room.id]
        logger.info(f"Game room {room.id} removed")
