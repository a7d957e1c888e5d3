"""
API Service - Business logic layer between API and engine.

The service:
1. Translates wire requests into engine actions
2. Manages rooms through the RoomManager
3. Formats engine state and notices for clients

This layer is framework-agnostic (can be used with FastAPI, Flask, etc.)
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging

from ..engine_core.action import (
    Action,
    ActionResult,
    AddToOpponentBuild,
    AddToOwnBuild,
    AddToStack,
    CancelStack,
    Capture,
    CommitStackToBuild,
    CreateBaseBuild,
    CreateBuild,
    CreateStack,
    EndGame,
    ExtendToMerge,
    FinalizeIntent,
    FinalizeStack,
    Notice,
    ReorderStack,
    Trail,
)
from ..engine_core.errors import rule_title
from ..engine_core.scoring import ScoreResult, compute_scores
from ..engine_core.state import (
    Build,
    Card,
    CardOrigin,
    GameState,
    TemporaryStack,
)
from ..session import Room, RoomError, RoomManager
from .schemas import (
    ActionKind,
    ActionRequest,
    ActionResponse,
    BuildItem,
    CapturePileInfo,
    CardInfo,
    CreateRoomRequest,
    ErrorCode,
    ErrorResponse,
    GameStateResponse,
    JoinRoomRequest,
    JoinRoomResponse,
    LooseCardItem,
    NoticeInfo,
    PlayerInfo,
    RoomResponse,
    RoomStatus,
    ScoreDetailInfo,
    ScorePreviewRequest,
    ScoreResponse,
    StackItem,
    StagedCardInfo,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Conversion Helpers
# =============================================================================

def card_info(card: Card) -> CardInfo:
    return CardInfo(
        card_id=card.card_id,
        rank=card.rank,
        suit=card.suit.value,
        value=card.value,
        display=str(card),
    )


def _table_item(item):
    if isinstance(item, Build):
        return BuildItem(
            build_id=item.build_id,
            cards=[card_info(c) for c in item.cards],
            value=item.value,
            owner=item.owner,
            is_extendable=item.is_extendable,
        )
    if isinstance(item, TemporaryStack):
        return StackItem(
            stack_id=item.stack_id,
            cards=[
                StagedCardInfo(card=card_info(s.card), origin=s.origin.value)
                for s in item.cards
            ],
            owner=item.owner,
            value=item.value,
        )
    return LooseCardItem(card=card_info(item))


def state_to_response(room_id: str, state: GameState) -> GameStateResponse:
    """Convert a GameState to its wire model."""
    return GameStateResponse(
        room_id=room_id,
        round=state.round,
        current_player=state.current_player,
        deck_count=len(state.deck),
        hands=[[card_info(c) for c in hand] for hand in state.player_hands],
        table=[_table_item(item) for item in state.table],
        captures=[
            CapturePileInfo(
                groups=[[card_info(c) for c in group] for group in pile.groups],
                card_count=pile.card_count,
                top_card=card_info(pile.top_card) if pile.top_card else None,
            )
            for pile in state.player_captures
        ],
        scores=list(state.scores),
        score_details=[
            ScoreDetailInfo.model_validate(detail) for detail in state.score_details
        ] if state.score_details else None,
        game_over=state.game_over,
        winner=state.winner,
        last_capturer=state.last_capturer,
    )


def notice_info(notice: Notice) -> NoticeInfo:
    return NoticeInfo(
        kind=notice.kind.value,
        title=rule_title(notice.code) if notice.code else notice.kind.value.replace("_", " ").title(),
        message=notice.message,
        code=notice.code.value if notice.code else None,
        data=notice.data,
    )


def score_response(result: ScoreResult) -> ScoreResponse:
    return ScoreResponse(
        scores=list(result.scores),
        details=[ScoreDetailInfo.model_validate(d) for d in result.details],
        winner=result.winner,
    )


def _parse_card(card_id: str | None, field_name: str, kind: ActionKind) -> Card:
    if not card_id:
        raise ValueError(f"'{field_name}' is required for {kind.value}")
    return Card.from_id(card_id)


def _require(value, field_name: str, kind: ActionKind):
    if value is None:
        raise ValueError(f"'{field_name}' is required for {kind.value}")
    return value


def action_from_request(request: ActionRequest) -> Action:
    """
    Build an engine action from a wire request.

    Raises ValueError when a required field is missing or a card id is
    malformed.
    """
    kind = request.type
    player = _require(request.player, "player", kind)

    if kind is ActionKind.END_GAME:
        return EndGame(reason=request.reason or "ended")

    if kind is ActionKind.TRAIL:
        return Trail(player=player, card=_parse_card(request.card, "card", kind))

    if kind is ActionKind.CAPTURE:
        build_ids = list(request.build_ids)
        if request.build_id:
            build_ids.append(request.build_id)
        return Capture(
            player=player,
            card=_parse_card(request.card, "card", kind),
            loose=tuple(Card.from_id(c) for c in request.loose),
            build_ids=tuple(build_ids),
            stack_id=request.stack_id,
            use_opponent_card=request.use_opponent_card,
        )

    if kind is ActionKind.CREATE_BUILD:
        card = _parse_card(request.card, "card", kind)
        target = _parse_card(request.target, "target", kind)
        value = request.value if request.value is not None else card.value + target.value
        return CreateBuild(player=player, card=card, target=target, value=value)

    if kind is ActionKind.CREATE_BASE_BUILD:
        return CreateBaseBuild(
            player=player,
            card=_parse_card(request.card, "card", kind),
            table_cards=tuple(Card.from_id(c) for c in request.table_cards),
        )

    if kind in (
        ActionKind.ADD_TO_OWN_BUILD,
        ActionKind.ADD_TO_OPPONENT_BUILD,
        ActionKind.EXTEND_TO_MERGE,
    ):
        build_class = {
            ActionKind.ADD_TO_OWN_BUILD: AddToOwnBuild,
            ActionKind.ADD_TO_OPPONENT_BUILD: AddToOpponentBuild,
            ActionKind.EXTEND_TO_MERGE: ExtendToMerge,
        }[kind]
        return build_class(
            player=player,
            card=_parse_card(request.card, "card", kind),
            build_id=_require(request.build_id, "build_id", kind),
        )

    if kind is ActionKind.CREATE_STACK:
        return CreateStack(
            player=player,
            card=_parse_card(request.card, "card", kind),
            origin=CardOrigin(request.origin or "hand"),
            target=Card.from_id(request.target) if request.target else None,
        )

    stack_id = _require(request.stack_id, "stack_id", kind)

    if kind is ActionKind.ADD_TO_STACK:
        return AddToStack(
            player=player,
            stack_id=stack_id,
            card=_parse_card(request.card, "card", kind),
            origin=CardOrigin(request.origin or "hand"),
        )

    if kind is ActionKind.REORDER_STACK:
        return ReorderStack(
            player=player,
            stack_id=stack_id,
            order=tuple(Card.from_id(c) for c in request.order),
        )

    if kind is ActionKind.COMMIT_STACK_TO_BUILD:
        return CommitStackToBuild(
            player=player,
            stack_id=stack_id,
            build_id=_require(request.build_id, "build_id", kind),
        )

    if kind is ActionKind.FINALIZE_STACK:
        return FinalizeStack(
            player=player,
            stack_id=stack_id,
            intent=FinalizeIntent(request.intent) if request.intent else None,
            build_value=request.build_value,
        )

    return CancelStack(player=player, stack_id=stack_id)


def _players(room: Room) -> list[PlayerInfo]:
    state = room.game_state
    return [
        PlayerInfo(
            seat=seat,
            name=name,
            is_current_turn=bool(state and not state.game_over and state.current_player == seat),
            hand_count=len(state.hand(seat)) if state else 0,
            captured_count=state.captures(seat).card_count if state else 0,
        )
        for seat, name in sorted(room.seats.items())
    ]


def _error(e: RoomError) -> ErrorResponse:
    return ErrorResponse(error=str(e), error_code=ErrorCode(e.code))


def _room_not_found(room_id: str) -> ErrorResponse:
    return ErrorResponse(
        error=f"Room {room_id} not found",
        error_code=ErrorCode.ROOM_NOT_FOUND,
    )


# =============================================================================
# Service
# =============================================================================

@dataclass
class APIService:
    """
    Main API service for game clients.

    Usage:
        service = APIService()

        room = service.create_room(CreateRoomRequest())
        service.join_room(room.room_id, JoinRoomRequest(player_name="Ana"))
        service.join_room(room.room_id, JoinRoomRequest(player_name="Ben"))

        response = service.submit_action(room.room_id, ActionRequest(...))
    """
    room_manager: RoomManager = field(default_factory=RoomManager)

    def create_room(self, request: CreateRoomRequest) -> RoomResponse | ErrorResponse:
        try:
            room = self.room_manager.create_room(
                room_id=request.room_id,
                random_seed=request.random_seed,
            )
        except RoomError as e:
            return _error(e)
        return self._room_response(room)

    def get_room(self, room_id: str) -> RoomResponse | ErrorResponse:
        room = self.room_manager.get_room(room_id)
        if room is None:
            return _room_not_found(room_id)
        return self._room_response(room)

    def join_room(self, room_id: str, request: JoinRoomRequest) -> JoinRoomResponse | ErrorResponse:
        try:
            seat = self.room_manager.join(room_id, request.player_name)
        except RoomError as e:
            return _error(e)
        room = self.room_manager.get_room(room_id)
        return JoinRoomResponse(
            room_id=room_id,
            seat=seat,
            status=RoomStatus(room.state.value),
            players=_players(room),
        )

    def get_game_state(self, room_id: str) -> GameStateResponse | ErrorResponse:
        room = self.room_manager.get_room(room_id)
        if room is None:
            return _room_not_found(room_id)
        if room.game_state is None:
            return ErrorResponse(
                error=f"Room {room_id} is waiting for players",
                error_code=ErrorCode.GAME_NOT_STARTED,
            )
        return state_to_response(room_id, room.game_state)

    def submit_action(self, room_id: str, request: ActionRequest) -> ActionResponse | ErrorResponse:
        """
        Forward one action to the room.

        Engine rejections come back as an ActionResponse with
        ``success=False`` and the unchanged state; transport problems
        (unknown room, malformed payload) as an ErrorResponse.
        """
        try:
            action = action_from_request(request)
        except ValueError as e:
            return ErrorResponse(
                error=str(e),
                error_code=ErrorCode.INVALID_ACTION,
                details={"type": request.type.value},
            )

        try:
            result = self.room_manager.forward_action(room_id, request.player, action)
        except RoomError as e:
            return _error(e)
        return self._action_response(room_id, result)

    def preview_scores(self, request: ScorePreviewRequest) -> ScoreResponse | ErrorResponse:
        try:
            captures = [
                [[Card.from_id(c) for c in group] for group in groups]
                for groups in request.captures
            ]
        except ValueError as e:
            return ErrorResponse(error=str(e), error_code=ErrorCode.VALIDATION_ERROR)
        return score_response(compute_scores(captures))

    def end_room(self, room_id: str, reason: str = "user_ended") -> bool:
        return self.room_manager.end_room(room_id, reason)

    def list_rooms(self) -> list[str]:
        return self.room_manager.list_active_rooms()

    def _room_response(self, room: Room) -> RoomResponse:
        return RoomResponse(
            room_id=room.room_id,
            status=RoomStatus(room.state.value),
            players=_players(room),
            created_at=room.created_at,
            actions_applied=len(room.history),
        )

    def _action_response(self, room_id: str, result: ActionResult) -> ActionResponse:
        if not result.success:
            logger.info("Room %s: action rejected (%s)", room_id, result.error)
        return ActionResponse(
            success=result.success,
            room_id=room_id,
            turn_ended=result.turn_ended,
            notices=[notice_info(n) for n in result.notices],
            error=result.error,
            error_code=result.error_code.value if result.error_code else None,
            game_state=state_to_response(room_id, result.state),
        )
