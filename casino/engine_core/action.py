"""
Action System - Actions, notices, and results.

Actions represent:
1. Player actions (trail, capture, build, steal, merge)
2. Staging actions (multi-step compositions on the table)
3. System actions (ending the game early)

Every action kind is its own frozen dataclass; ``Action`` is the union of
them all, and the reducer keeps one handler per member. All state changes
flow through actions.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union, get_args

from .state import Card, CardOrigin, GameState
from .errors import RuleCode


class FinalizeIntent(Enum):
    """What a player wants a finalized stack to become."""
    CAPTURE = "capture"
    BUILD = "build"


@dataclass(frozen=True)
class Trail:
    """Place a hand card on the table (staged for confirmation in round 2)."""
    player: int
    card: Card


@dataclass(frozen=True)
class Capture:
    """
    Capture with a hand card.

    Targets may mix loose cards, builds of the card's value, one of the
    player's own stacks, and the top card of the opponent's capture pile.
    A table card cannot capture directly; it is staged into a stack with
    a hand card, which then captures through FinalizeStack.
    """
    player: int
    card: Card
    loose: tuple[Card, ...] = ()
    build_ids: tuple[str, ...] = ()
    stack_id: str | None = None
    use_opponent_card: bool = False


@dataclass(frozen=True)
class CreateBuild:
    """Drop a hand card on a loose card to declare a sum or set build."""
    player: int
    card: Card
    target: Card
    value: int


@dataclass(frozen=True)
class CreateBaseBuild:
    """Bind several loose combinations under one hand card of their value."""
    player: int
    card: Card
    table_cards: tuple[Card, ...]


@dataclass(frozen=True)
class AddToOwnBuild:
    """Reinforce (same value) or increase the player's own build."""
    player: int
    card: Card
    build_id: str


@dataclass(frozen=True)
class AddToOpponentBuild:
    """Steal an opponent's build by raising its value."""
    player: int
    card: Card
    build_id: str


@dataclass(frozen=True)
class ExtendToMerge:
    """Raise an opponent's build to the value of the player's own and merge them."""
    player: int
    card: Card
    build_id: str


@dataclass(frozen=True)
class CreateStack:
    """
    Start a staging stack.

    The source card comes from ``origin``; ``target`` is the loose card it
    is dropped on. A card taken from the opponent's pile may be staged on
    its own (``target=None``).
    """
    player: int
    card: Card
    origin: CardOrigin
    target: Card | None = None


@dataclass(frozen=True)
class AddToStack:
    player: int
    stack_id: str
    card: Card
    origin: CardOrigin


@dataclass(frozen=True)
class ReorderStack:
    player: int
    stack_id: str
    order: tuple[Card, ...]


@dataclass(frozen=True)
class CommitStackToBuild:
    """Reinforce or merge a build with a staging stack."""
    player: int
    stack_id: str
    build_id: str


@dataclass(frozen=True)
class FinalizeStack:
    """Confirm a staging stack as a capture, a new build, or a trail."""
    player: int
    stack_id: str
    intent: FinalizeIntent | None = None
    build_value: int | None = None


@dataclass(frozen=True)
class CancelStack:
    player: int
    stack_id: str


@dataclass(frozen=True)
class EndGame:
    """Stop the game now: sweep the table and score."""
    reason: str = "ended"


Action = Union[
    Trail,
    Capture,
    CreateBuild,
    CreateBaseBuild,
    AddToOwnBuild,
    AddToOpponentBuild,
    ExtendToMerge,
    CreateStack,
    AddToStack,
    ReorderStack,
    CommitStackToBuild,
    FinalizeStack,
    CancelStack,
    EndGame,
]

ACTION_CLASSES: tuple[type, ...] = get_args(Action)

# Actions that operate on an existing staging stack
STACK_ACTIONS = (AddToStack, ReorderStack, CommitStackToBuild, FinalizeStack, CancelStack)


def acting_player(action: Action) -> int | None:
    """Player index an action is attributed to (None for system actions)."""
    return getattr(action, "player", None)


# =============================================================================
# Notices and results
# =============================================================================

class NoticeKind(Enum):
    """Kinds of user-facing feedback produced by the reducer."""
    INFO = "info"
    REJECTED = "rejected"
    CHOICE_REQUIRED = "choice_required"
    DISBANDED = "disbanded"
    ROUND_OVER = "round_over"
    GAME_OVER = "game_over"
    INTERNAL_ERROR = "internal_error"


@dataclass(frozen=True)
class Notice:
    """A message for the players; never an exception."""
    kind: NoticeKind
    message: str
    code: RuleCode | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class ActionResult:
    """
    Result of applying an action.

    ``state`` is always set: the new state when the action was applied,
    the unchanged input state when it was rejected.
    """
    success: bool
    state: GameState
    notices: list[Notice] = field(default_factory=list)
    error: str | None = None
    error_code: RuleCode | None = None
    turn_ended: bool = False

    @classmethod
    def rejected(
        cls,
        state: GameState,
        reason: str,
        code: RuleCode | None = None,
        data: dict[str, Any] | None = None,
    ) -> ActionResult:
        """Create a rejection that leaves the state untouched."""
        kind = NoticeKind.CHOICE_REQUIRED if code is RuleCode.CHOICE_REQUIRED else NoticeKind.REJECTED
        return cls(
            success=False,
            state=state,
            notices=[Notice(kind=kind, message=reason, code=code, data=data or {})],
            error=reason,
            error_code=code,
        )

    @classmethod
    def internal_error(cls, state: GameState, message: str) -> ActionResult:
        """Create a result for an engine/caller desynchronization."""
        return cls(
            success=False,
            state=state,
            notices=[Notice(
                kind=NoticeKind.INTERNAL_ERROR,
                message=message,
                code=RuleCode.INTERNAL_ERROR,
            )],
            error=message,
            error_code=RuleCode.INTERNAL_ERROR,
        )

    @classmethod
    def applied(
        cls,
        state: GameState,
        notices: list[Notice] | None = None,
        turn_ended: bool = False,
    ) -> ActionResult:
        """Create a success result."""
        return cls(
            success=True,
            state=state,
            notices=notices or [],
            turn_ended=turn_ended,
        )
