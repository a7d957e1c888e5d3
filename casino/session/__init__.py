"""
Session Module - Manages ephemeral game rooms.

A room represents one play-through of a game:
- Created when a host opens it
- Dealt when the second player joins
- Serializes the players' actions through the reducer
- Destroyed when the game ends

Rooms are EPHEMERAL:
- No persistence to database
- All state lives in memory only
"""

from .manager import RoomManager, Room, RoomState, RoomError

__all__ = [
    "RoomManager",
    "Room",
    "RoomState",
    "RoomError",
]
