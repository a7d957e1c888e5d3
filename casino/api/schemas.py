"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the exact contract between game clients and the relay.
Cards travel as compact ids ("10D", "AS", "7H"); builds and stacks by id.

Error Codes:
- ROOM_NOT_FOUND: Room does not exist or has been closed
- ROOM_FULL: Both seats are taken
- GAME_NOT_STARTED: The room is still waiting for a second player
- INVALID_ACTION: The action payload could not be understood
- INTERNAL_ERROR: Engine state inconsistency
"""

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class RoomStatus(str, Enum):
    """Room status values."""
    WAITING = "waiting"
    PLAYING = "playing"
    GAME_OVER = "game_over"
    ABANDONED = "abandoned"


class ActionKind(str, Enum):
    """Action types accepted on the wire."""
    TRAIL = "trail"
    CAPTURE = "capture"
    CREATE_BUILD = "create_build"
    CREATE_BASE_BUILD = "create_base_build"
    ADD_TO_OWN_BUILD = "add_to_own_build"
    ADD_TO_OPPONENT_BUILD = "add_to_opponent_build"
    EXTEND_TO_MERGE = "extend_to_merge"
    CREATE_STACK = "create_stack"
    ADD_TO_STACK = "add_to_stack"
    REORDER_STACK = "reorder_stack"
    COMMIT_STACK_TO_BUILD = "commit_stack_to_build"
    FINALIZE_STACK = "finalize_stack"
    CANCEL_STACK = "cancel_stack"
    END_GAME = "end_game"


class ErrorCode(str, Enum):
    """Structured error codes."""
    ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
    ROOM_EXISTS = "ROOM_EXISTS"
    ROOM_FULL = "ROOM_FULL"
    ROOM_CLOSED = "ROOM_CLOSED"
    GAME_NOT_STARTED = "GAME_NOT_STARTED"
    NOT_SEATED = "NOT_SEATED"
    INVALID_ACTION = "INVALID_ACTION"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Nested Models
# =============================================================================

class CardInfo(BaseModel):
    """A single card."""
    card_id: str = Field(..., description="Compact id, e.g. 10D")
    rank: str
    suit: str
    value: int = Field(..., ge=1, le=10)
    display: str = Field(..., description="Rank and suit symbol, e.g. 10♦")


class StagedCardInfo(BaseModel):
    """A card inside a staging stack."""
    card: CardInfo
    origin: Literal["hand", "table", "opponentCapture"]


class LooseCardItem(BaseModel):
    """A loose card lying on the table."""
    kind: Literal["card"] = "card"
    card: CardInfo


class BuildItem(BaseModel):
    """A build on the table."""
    kind: Literal["build"] = "build"
    build_id: str
    cards: list[CardInfo]
    value: int
    owner: int
    is_extendable: bool


class StackItem(BaseModel):
    """A staging stack on the table."""
    kind: Literal["stack"] = "stack"
    stack_id: str
    cards: list[StagedCardInfo]
    owner: int
    value: int


TableItemInfo = Annotated[
    Union[LooseCardItem, BuildItem, StackItem],
    Field(discriminator="kind"),
]


class CapturePileInfo(BaseModel):
    """A player's captured cards, grouped by capture."""
    groups: list[list[CardInfo]] = Field(default_factory=list)
    card_count: int = 0
    top_card: Optional[CardInfo] = None


class ScoreDetailInfo(BaseModel):
    """Per-player score breakdown."""
    most_cards: int
    most_spades: int
    aces: int
    big_casino: int
    little_casino: int
    total: int
    card_count: int
    spade_count: int

    model_config = {"from_attributes": True}


class NoticeInfo(BaseModel):
    """Feedback produced by the engine for an action."""
    kind: str = Field(..., description="info, rejected, choice_required, disbanded, round_over, game_over, internal_error")
    title: str
    message: str
    code: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)


class PlayerInfo(BaseModel):
    """A seated player."""
    seat: int = Field(..., ge=0, le=1)
    name: str
    is_current_turn: bool = False
    hand_count: int = 0
    captured_count: int = 0


# =============================================================================
# Request Models
# =============================================================================

class CreateRoomRequest(BaseModel):
    """Request to open a room."""
    room_id: Optional[str] = Field(None, min_length=1, max_length=64, description="Custom room id")
    random_seed: Optional[int] = Field(None, description="Seed for a reproducible shuffle")


class JoinRoomRequest(BaseModel):
    """Request to take a seat."""
    player_name: str = Field(..., min_length=1, max_length=40)


class ActionRequest(BaseModel):
    """
    One action from one player.

    Which fields are needed depends on ``type``; cards are card ids.
    """
    type: ActionKind
    player: Optional[int] = Field(None, ge=0, le=1, description="Seat the action is attributed to")
    card: Optional[str] = Field(None, description="Card played (or staged)")
    target: Optional[str] = Field(None, description="Loose card targeted by a build or stack")
    value: Optional[int] = Field(None, description="Declared build value")
    loose: list[str] = Field(default_factory=list, description="Loose cards captured")
    table_cards: list[str] = Field(default_factory=list, description="Loose cards of a base build")
    build_id: Optional[str] = None
    build_ids: list[str] = Field(default_factory=list, description="Builds captured")
    stack_id: Optional[str] = None
    use_opponent_card: bool = False
    origin: Optional[Literal["hand", "table", "opponentCapture"]] = None
    order: list[str] = Field(default_factory=list, description="New stack order, bottom to top")
    intent: Optional[Literal["capture", "build"]] = None
    build_value: Optional[int] = Field(None, description="Build value chosen when finalizing")
    reason: Optional[str] = Field(None, description="Why the game is being ended")


class ScorePreviewRequest(BaseModel):
    """Captured card ids per player, grouped by capture."""
    captures: list[list[list[str]]] = Field(..., min_length=2, max_length=2)


# =============================================================================
# Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")
    api_version: str = Field("v1", description="API version")


class GameStateResponse(BaseModel):
    """Complete game state for display."""
    room_id: str
    round: int
    current_player: int
    deck_count: int
    hands: list[list[CardInfo]]
    table: list[TableItemInfo] = Field(default_factory=list)
    captures: list[CapturePileInfo]
    scores: list[int]
    score_details: Optional[list[ScoreDetailInfo]] = None
    game_over: bool = False
    winner: Optional[int] = None
    last_capturer: Optional[int] = None


class RoomResponse(BaseModel):
    """Room status."""
    room_id: str
    status: RoomStatus
    players: list[PlayerInfo] = Field(default_factory=list)
    created_at: float
    actions_applied: int = 0


class JoinRoomResponse(BaseModel):
    """Result of taking a seat."""
    room_id: str
    seat: int
    status: RoomStatus
    players: list[PlayerInfo] = Field(default_factory=list)


class ActionResponse(BaseModel):
    """Result of submitting an action."""
    success: bool
    room_id: str
    turn_ended: bool = False
    notices: list[NoticeInfo] = Field(default_factory=list)
    error: Optional[str] = None
    error_code: Optional[str] = None
    game_state: GameStateResponse


class ScoreResponse(BaseModel):
    """Score computation result."""
    scores: list[int]
    details: list[ScoreDetailInfo]
    winner: Optional[int] = None


class RoomListResponse(BaseModel):
    """List of active rooms."""
    rooms: list[str]
    count: int


class EndRoomResponse(BaseModel):
    """Response from ending a room."""
    success: bool
    room_id: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
