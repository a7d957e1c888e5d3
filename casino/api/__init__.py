"""
API Module - Client interface.

Exposes the rules engine and the room relay over REST and WebSocket.
A client:
1. Opens or joins a room
2. Receives the dealt state
3. Submits actions attributed to its seat
4. Receives state updates after every applied action

All state is room-scoped. No persistent user accounts required.
"""

from .schemas import (
    # Requests
    ActionRequest,
    CreateRoomRequest,
    JoinRoomRequest,
    ScorePreviewRequest,
    # Responses
    ActionResponse,
    ErrorResponse,
    GameStateResponse,
    JoinRoomResponse,
    RoomResponse,
    ScoreResponse,
    # Shared
    ActionKind,
    CardInfo,
    ErrorCode,
    NoticeInfo,
    PlayerInfo,
)
from .service import APIService, action_from_request, state_to_response
from .app import create_app

__all__ = [
    # Requests
    "ActionRequest",
    "CreateRoomRequest",
    "JoinRoomRequest",
    "ScorePreviewRequest",
    # Responses
    "ActionResponse",
    "ErrorResponse",
    "GameStateResponse",
    "JoinRoomResponse",
    "RoomResponse",
    "ScoreResponse",
    # Shared
    "ActionKind",
    "CardInfo",
    "ErrorCode",
    "NoticeInfo",
    "PlayerInfo",
    # Service
    "APIService",
    "action_from_request",
    "state_to_response",
    "create_app",
]
