"""
Room Manager - the thin relay between connected players and the engine.

LIFECYCLE:
1. A room is created (optionally with a shuffle seed)
2. Two players join; the second join deals the game
3. Each action is forwarded to the reducer, one at a time per room
4. Every applied action is broadcast to the room's listeners
5. The room ends when the game is over and it is closed, or when abandoned

PERSISTENCE RULES:
- No database; rooms live in memory only
- A room is destroyed with all of its state when it ends

The relay checks that an action is attributed to the seat that sent it.
Legality, including whose turn it is, is decided by the engine.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable
import logging
import threading
import time
import uuid

from ..engine_core.action import Action, ActionResult, acting_player
from ..engine_core.constants import PLAYER_COUNT
from ..engine_core.errors import RuleCode
from ..engine_core.reducer import Reducer
from ..engine_core.setup import initialize_game
from ..engine_core.state import GameState

logger = logging.getLogger(__name__)

# Called with the new state, or with None once the room is closed
StateListener = Callable[[str, GameState | None], None]


class RoomState(Enum):
    """State of a game room."""
    WAITING = "waiting"  # Fewer than two players seated
    PLAYING = "playing"
    GAME_OVER = "game_over"
    ABANDONED = "abandoned"


class RoomError(ValueError):
    """A relay request that cannot be served (unknown room, full room...)."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code


@dataclass
class Room:
    """
    An ephemeral game room.

    Contains the seated players, the current canonical game state and
    the log of applied actions.
    """
    room_id: str
    created_at: float
    state: RoomState = RoomState.WAITING
    game_state: GameState | None = None
    random_seed: int | None = None

    # seat index -> player name
    seats: dict[int, str] = field(default_factory=dict)

    history: list[Action] = field(default_factory=list)
    last_activity: float = 0.0

    listeners: list[StateListener] = field(default_factory=list, repr=False)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def is_active(self) -> bool:
        """Check if room is still active."""
        return self.state in {RoomState.WAITING, RoomState.PLAYING}

    @property
    def is_full(self) -> bool:
        return len(self.seats) >= PLAYER_COUNT

    def seat_of(self, player_name: str) -> int | None:
        for seat, name in self.seats.items():
            if name == player_name:
                return seat
        return None


class RoomManager:
    """
    Manages game rooms.

    Responsibilities:
    - Create rooms and seat players
    - Serialize actions per room and forward them to the reducer
    - Broadcast new states to room listeners
    - Clean up finished and stale rooms

    No persistence - rooms are in-memory only.
    """

    def __init__(self, reducer: Reducer | None = None):
        self._rooms: dict[str, Room] = {}
        self._reducer = reducer or Reducer()

    def create_room(self, room_id: str | None = None, random_seed: int | None = None) -> Room:
        """Create a new, empty room."""
        room_id = room_id or uuid.uuid4().hex[:8]
        if room_id in self._rooms:
            raise RoomError("ROOM_EXISTS", f"Room {room_id} already exists")

        now = time.time()
        room = Room(
            room_id=room_id,
            created_at=now,
            random_seed=random_seed,
            last_activity=now,
        )
        self._rooms[room_id] = room
        logger.info("Created room %s", room_id)
        return room

    def get_room(self, room_id: str) -> Room | None:
        """Get a room by ID."""
        return self._rooms.get(room_id)

    def _require_room(self, room_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomError("ROOM_NOT_FOUND", f"Room {room_id} not found")
        return room

    def join(self, room_id: str, player_name: str) -> int:
        """
        Seat a player and return the seat index.

        Joining again under the same name returns the existing seat.
        The game is dealt when the second player sits down.
        """
        room = self._require_room(room_id)
        with room.lock:
            seat = room.seat_of(player_name)
            if seat is not None:
                return seat
            if room.is_full:
                raise RoomError("ROOM_FULL", f"Room {room_id} is full")
            if not room.is_active():
                raise RoomError("ROOM_CLOSED", f"Room {room_id} is closed")

            seat = min(set(range(PLAYER_COUNT)) - set(room.seats))
            room.seats[seat] = player_name
            room.last_activity = time.time()
            logger.info("%s joined room %s in seat %d", player_name, room_id, seat)

            if room.is_full and room.game_state is None:
                room.game_state = initialize_game(random_seed=room.random_seed)
                room.state = RoomState.PLAYING
                logger.info("Room %s started", room_id)

        if room.game_state is not None:
            self.broadcast_state(room_id)
        return seat

    def leave(self, room_id: str, seat: int) -> None:
        """Free a seat. A game in progress is abandoned."""
        room = self._require_room(room_id)
        with room.lock:
            room.seats.pop(seat, None)
            if room.state is RoomState.PLAYING:
                room.state = RoomState.ABANDONED
                logger.info("Room %s abandoned by seat %d", room_id, seat)

    def forward_action(self, room_id: str, seat: int, action: Action) -> ActionResult:
        """
        Apply one action sent from ``seat``.

        Actions for the same room are applied strictly one after another.
        """
        room = self._require_room(room_id)
        with room.lock:
            if room.game_state is None or room.state is RoomState.WAITING:
                raise RoomError("GAME_NOT_STARTED", f"Room {room_id} is waiting for players")
            if room.state is RoomState.ABANDONED:
                raise RoomError("ROOM_CLOSED", f"Room {room_id} is closed")
            if seat not in room.seats:
                raise RoomError("NOT_SEATED", f"Seat {seat} is empty in room {room_id}")

            player = acting_player(action)
            if player is not None and player != seat:
                return ActionResult.rejected(
                    room.game_state,
                    "That action belongs to the other player.",
                    RuleCode.NOT_YOUR_TURN,
                )

            result = self._reducer.apply(room.game_state, action)
            if result.success:
                room.game_state = result.state
                room.history.append(action)
                room.last_activity = time.time()
                if result.state.game_over:
                    room.state = RoomState.GAME_OVER

        if result.success:
            self.broadcast_state(room_id)
        return result

    def subscribe(self, room_id: str, listener: StateListener) -> None:
        room = self._require_room(room_id)
        room.listeners.append(listener)

    def unsubscribe(self, room_id: str, listener: StateListener) -> None:
        room = self._rooms.get(room_id)
        if room and listener in room.listeners:
            room.listeners.remove(listener)

    def broadcast_state(self, room_id: str) -> int:
        """Send the room's current state to every listener; returns how many."""
        room = self._require_room(room_id)
        if room.game_state is None:
            return 0
        for listener in list(room.listeners):
            listener(room_id, room.game_state)
        return len(room.listeners)

    def end_room(self, room_id: str, reason: str = "completed") -> bool:
        """
        End a room and clean up.

        The room is removed from memory. No persistence.
        """
        room = self._rooms.pop(room_id, None)
        if room is None:
            return False
        if room.state is not RoomState.GAME_OVER:
            room.state = RoomState.ABANDONED
        room.game_state = None
        room.history.clear()
        for listener in list(room.listeners):
            listener(room_id, None)
        room.listeners.clear()
        logger.info("Ended room %s (%s)", room_id, reason)
        return True

    def list_active_rooms(self) -> list[str]:
        """List IDs of active rooms."""
        return [
            rid for rid, room in self._rooms.items()
            if room.is_active()
        ]

    def cleanup_stale_rooms(self, max_age_seconds: int = 3600) -> list[str]:
        """
        Remove rooms idle for longer than ``max_age_seconds``.

        Called periodically to free memory.
        """
        current_time = time.time()
        to_remove = [
            room_id for room_id, room in self._rooms.items()
            if current_time - room.last_activity > max_age_seconds
        ]
        for room_id in to_remove:
            self.end_room(room_id, reason="stale")
        return to_remove
