"""
Action Validators - pure rule checks.

Every validator has the shape ``(state, action) -> Validation``. Nothing
here mutates state. Values computed while validating (the new build value,
the commit mode, the chosen finalize option) travel to the executor in
``Validation.derived`` so the two never disagree.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from .action import (
    Action,
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
    ReorderStack,
    STACK_ACTIONS,
    Trail,
    acting_player,
)
from .combinations import (
    candidate_target_values,
    check_combo_order,
    partition,
    partition_exists,
)
from .constants import FINAL_ROUND, MAX_EXTENDABLE_CARDS, MAX_VALUE
from .errors import RuleCode
from .state import Build, Card, CardOrigin, GameState, TemporaryStack


@dataclass(frozen=True)
class Validation:
    """Accept/reject verdict for an action."""
    valid: bool
    reason: str | None = None
    code: RuleCode | None = None
    derived: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, **derived: Any) -> Validation:
        return cls(valid=True, derived=derived)

    @classmethod
    def fail(cls, code: RuleCode, reason: str, **derived: Any) -> Validation:
        return cls(valid=False, reason=reason, code=code, derived=derived)


class CommitMode(Enum):
    """How a staging stack joins a build."""
    REINFORCE = "reinforce"
    MERGE = "merge"
    REINFORCE_OPPONENT = "reinforce_opponent"


class FinalizeMode(Enum):
    TRAIL = "trail"
    CAPTURE = "capture"
    BUILD = "build"


# =============================================================================
# Shared helpers
# =============================================================================

def _holds(cards: Iterable[Card], value: int, excluding: Card | None = None) -> bool:
    """True if some card other than ``excluding`` has the given value."""
    return any(card.value == value and card != excluding for card in cards)


def _opponent_build_values(state: GameState, player: int) -> set[int]:
    return {build.value for build in state.builds if build.owner != player}


def _can_extend(build: Build) -> bool:
    return build.is_extendable and len(build.cards) < MAX_EXTENDABLE_CARDS


def _missing_capture_card(value: int) -> Validation:
    return Validation.fail(
        RuleCode.NO_CAPTURE_CARD,
        f"You need a card of value {value} in hand to capture this build later.",
    )


def _over_ten(value: int) -> Validation:
    return Validation.fail(
        RuleCode.VALUE_OVER_TEN,
        f"New value ({value}) would be over {MAX_VALUE}.",
    )


def _one_build_only() -> Validation:
    return Validation.fail(
        RuleCode.ONE_BUILD_LIMIT, "You can only have one build at a time."
    )


def _opponent_has_value(value: int) -> Validation:
    return Validation.fail(
        RuleCode.OPPONENT_BUILD_VALUE,
        f"Your opponent already has a build of {value}.",
    )


def _require_in_hand(state: GameState, player: int, card: Card) -> Validation | None:
    if card not in state.hand(player):
        return Validation.fail(RuleCode.CARD_NOT_IN_HAND, f"{card} is not in your hand.")
    return None


def _require_loose(state: GameState, card: Card) -> Validation | None:
    if not state.is_loose(card):
        return Validation.fail(
            RuleCode.CARD_NOT_ON_TABLE, f"{card} is not a loose card on the table."
        )
    return None


def _require_own_stack(
    state: GameState, player: int, stack_id: str
) -> tuple[TemporaryStack | None, Validation | None]:
    stack = state.find_stack(stack_id)
    if stack is None:
        return None, Validation.fail(RuleCode.STACK_NOT_FOUND, f"Stack {stack_id} not found.")
    if stack.owner != player:
        return None, Validation.fail(RuleCode.NOT_STACK_OWNER, "That stack is not yours.")
    return stack, None


def _require_at_origin(
    state: GameState, player: int, card: Card, origin: CardOrigin
) -> Validation | None:
    if origin is CardOrigin.HAND:
        return _require_in_hand(state, player, card)
    if origin is CardOrigin.TABLE:
        return _require_loose(state, card)
    if state.captures(state.opponent(player)).top_card != card:
        return Validation.fail(
            RuleCode.NO_OPPONENT_CARD,
            f"{card} is not the top card of your opponent's captures.",
        )
    return None


# =============================================================================
# Turn gate
# =============================================================================

def validate_turn(state: GameState, action: Action) -> Validation:
    """Checks shared by every action before its own validator runs."""
    if state.game_over:
        return Validation.fail(RuleCode.GAME_OVER, "The game is over.")
    if isinstance(action, EndGame):
        return Validation.ok()

    player = acting_player(action)
    if player != state.current_player:
        return Validation.fail(RuleCode.NOT_YOUR_TURN, "It's not your turn.")

    open_stack = state.stack_owned_by(player)
    if open_stack is not None:
        on_stack = (
            isinstance(action, STACK_ACTIONS) and action.stack_id == open_stack.stack_id
        ) or (
            isinstance(action, Capture) and action.stack_id == open_stack.stack_id
        )
        if not on_stack:
            return Validation.fail(
                RuleCode.OPEN_STACK,
                "Finish or cancel your staging stack first.",
            )
    return Validation.ok()


# =============================================================================
# Player actions
# =============================================================================

def validate_trail(state: GameState, action: Trail) -> Validation:
    """
    Trailing puts a card on the table without capturing.

    Not allowed in round 1 while owning a build, nor when a loose card of
    the same rank is already on the table. In the final round the card is
    staged first and placed only when the trail is confirmed.
    """
    player = action.player
    failure = _require_in_hand(state, player, action.card)
    if failure:
        return failure

    if state.round < FINAL_ROUND and state.build_owned_by(player) is not None:
        return Validation.fail(
            RuleCode.TRAIL_WITH_BUILD, "You cannot trail while you own a build."
        )

    if any(card.rank == action.card.rank for card in state.loose_cards):
        return Validation.fail(
            RuleCode.DUPLICATE_RANK,
            f"A {action.card.rank} is already on the table. Capture or build instead.",
        )

    staged = state.round >= FINAL_ROUND
    if staged and state.stack_owned_by(player) is not None:
        return Validation.fail(RuleCode.ONE_STACK_LIMIT, "You already have a staging stack.")
    return Validation.ok(staged=staged)


def validate_capture(state: GameState, action: Capture) -> Validation:
    """
    The capturing card must match every targeted build's value, and the
    pooled loose, staged and opponent cards must partition into its value.
    """
    player = action.player
    failure = _require_in_hand(state, player, action.card)
    if failure:
        return failure

    target = action.card.value
    if not (action.loose or action.build_ids or action.stack_id or action.use_opponent_card):
        return Validation.fail(RuleCode.NO_TARGETS, "Choose something to capture.")

    if len(set(action.loose)) != len(action.loose):
        return Validation.fail(RuleCode.CARD_NOT_ON_TABLE, "A card was targeted twice.")

    pool: list[Card] = []
    for card in action.loose:
        failure = _require_loose(state, card)
        if failure:
            return failure
        pool.append(card)

    for build_id in dict.fromkeys(action.build_ids):
        build = state.find_build(build_id)
        if build is None:
            return Validation.fail(RuleCode.BUILD_NOT_FOUND, f"Build {build_id} not found.")
        if build.value != target:
            return Validation.fail(
                RuleCode.VALUE_MISMATCH,
                f"A {action.card.rank} cannot capture a build of {build.value}.",
            )

    if action.stack_id is not None:
        stack, failure = _require_own_stack(state, player, action.stack_id)
        if failure:
            return failure
        if stack.hand_card_count:
            return Validation.fail(
                RuleCode.HAND_CARD_LIMIT,
                "A stack holding a hand card must be finalized, not captured.",
            )
        pool.extend(stack.plain_cards)

    opponent_card = None
    if action.use_opponent_card:
        opponent_card = state.captures(state.opponent(player)).top_card
        if opponent_card is None:
            return Validation.fail(
                RuleCode.NO_OPPONENT_CARD, "Your opponent has no captured card to take."
            )
        pool.append(opponent_card)

    if pool and not partition_exists(pool, target):
        return Validation.fail(
            RuleCode.NO_PARTITION,
            f"Those cards cannot all be grouped into sums of {target}.",
        )
    return Validation.ok(opponent_card=opponent_card)


def validate_create_build(state: GameState, action: CreateBuild) -> Validation:
    """
    Sum build (card + target) or set build (equal values, same value).

    The player must own no build, must keep a card that captures the new
    value, and the opponent must not already own a build of that value.
    """
    player = action.player
    failure = _require_in_hand(state, player, action.card) or _require_loose(state, action.target)
    if failure:
        return failure

    total = action.card.value + action.target.value
    is_set = action.card.value == action.target.value and action.value == action.card.value
    if action.value != total and not is_set:
        return Validation.fail(
            RuleCode.VALUE_MISMATCH,
            f"{action.card} on {action.target} cannot make a build of {action.value}.",
        )
    if action.value > MAX_VALUE:
        return _over_ten(action.value)
    if state.build_owned_by(player) is not None:
        return _one_build_only()
    if not _holds(state.hand(player), action.value, excluding=action.card):
        return _missing_capture_card(action.value)
    if action.value in _opponent_build_values(state, player):
        return _opponent_has_value(action.value)
    return Validation.ok(value=action.value, is_set=is_set)


def validate_create_base_build(state: GameState, action: CreateBaseBuild) -> Validation:
    """Loose cards grouped into combinations equal to the hand card's value."""
    player = action.player
    failure = _require_in_hand(state, player, action.card)
    if failure:
        return failure
    if not action.table_cards:
        return Validation.fail(RuleCode.NO_TARGETS, "Choose the table cards to build on.")
    if len(set(action.table_cards)) != len(action.table_cards):
        return Validation.fail(RuleCode.CARD_NOT_ON_TABLE, "A card was targeted twice.")
    for card in action.table_cards:
        failure = _require_loose(state, card)
        if failure:
            return failure

    value = action.card.value
    if state.build_owned_by(player) is not None:
        return _one_build_only()
    result = partition(action.table_cards, value)
    if not result.complete:
        return Validation.fail(
            RuleCode.NO_PARTITION,
            f"Those cards cannot all be grouped into sums of {value}.",
        )
    if not _holds(state.hand(player), value, excluding=action.card):
        return _missing_capture_card(value)
    if value in _opponent_build_values(state, player):
        return _opponent_has_value(value)
    return Validation.ok(value=value, combos=result.combos)


def validate_add_to_own_build(state: GameState, action: AddToOwnBuild) -> Validation:
    """
    Reinforce (card value equals the build value) or increase the build.

    Both share this path: the player must keep a different card able to
    capture the resulting value. Increasing additionally needs an
    extendable build and a new value of at most 10.
    """
    player = action.player
    failure = _require_in_hand(state, player, action.card)
    if failure:
        return failure
    build = state.find_build(action.build_id)
    if build is None:
        return Validation.fail(RuleCode.BUILD_NOT_FOUND, f"Build {action.build_id} not found.")
    if build.owner != player:
        return Validation.fail(RuleCode.NOT_OWN_BUILD, "That build is not yours.")

    reinforce = action.card.value == build.value
    new_value = build.value if reinforce else build.value + action.card.value
    if not reinforce:
        if new_value > MAX_VALUE:
            return _over_ten(new_value)
        if not _can_extend(build):
            return Validation.fail(
                RuleCode.BUILD_NOT_EXTENDABLE, "This build can no longer be extended."
            )
        if new_value in _opponent_build_values(state, player):
            return _opponent_has_value(new_value)

    if not _holds(state.hand(player), new_value, excluding=action.card):
        return _missing_capture_card(new_value)

    extendable = (
        not reinforce
        and build.is_extendable
        and len(build.cards) + 1 < MAX_EXTENDABLE_CARDS
    )
    return Validation.ok(new_value=new_value, reinforce=reinforce, is_extendable=extendable)


def validate_add_to_opponent_build(state: GameState, action: AddToOpponentBuild) -> Validation:
    """Stealing raises an opponent's build and takes ownership of it."""
    player = action.player
    failure = _require_in_hand(state, player, action.card)
    if failure:
        return failure
    build = state.find_build(action.build_id)
    if build is None:
        return Validation.fail(RuleCode.BUILD_NOT_FOUND, f"Build {action.build_id} not found.")
    if build.owner == player:
        return Validation.fail(RuleCode.NOT_OPPONENT_BUILD, "You cannot steal your own build.")
    if state.build_owned_by(player) is not None:
        return _one_build_only()
    if not _can_extend(build):
        return Validation.fail(
            RuleCode.BUILD_NOT_EXTENDABLE, "This build can no longer be extended."
        )

    new_value = build.value + action.card.value
    if new_value > MAX_VALUE:
        return _over_ten(new_value)
    if not _holds(state.hand(player), new_value, excluding=action.card):
        return _missing_capture_card(new_value)

    extendable = len(build.cards) + 1 < MAX_EXTENDABLE_CARDS
    return Validation.ok(new_value=new_value, is_extendable=extendable)


def validate_extend_to_merge(state: GameState, action: ExtendToMerge) -> Validation:
    player = action.player
    failure = _require_in_hand(state, player, action.card)
    if failure:
        return failure
    own = state.build_owned_by(player)
    if own is None:
        return Validation.fail(RuleCode.NOT_OWN_BUILD, "You need a build of your own to merge into.")
    target = state.find_build(action.build_id)
    if target is None:
        return Validation.fail(RuleCode.BUILD_NOT_FOUND, f"Build {action.build_id} not found.")
    if target.owner == player:
        return Validation.fail(RuleCode.NOT_OPPONENT_BUILD, "Choose your opponent's build.")
    if not target.is_extendable:
        return Validation.fail(
            RuleCode.BUILD_NOT_EXTENDABLE, "This build can no longer be extended."
        )
    if target.value + action.card.value != own.value:
        return Validation.fail(
            RuleCode.VALUE_MISMATCH,
            f"{target.value} + {action.card.value} does not make your build's {own.value}.",
        )
    return Validation.ok(own_build_id=own.build_id)


# =============================================================================
# Staging actions
# =============================================================================

def validate_create_stack(state: GameState, action: CreateStack) -> Validation:
    player = action.player
    if state.stack_owned_by(player) is not None:
        return Validation.fail(RuleCode.ONE_STACK_LIMIT, "You already have a staging stack.")

    failure = _require_at_origin(state, player, action.card, action.origin)
    if failure:
        return failure

    if action.target is None:
        if action.origin is not CardOrigin.OPPONENT_CAPTURE:
            return Validation.fail(RuleCode.NO_TARGETS, "Drop the card on a table card.")
        return Validation.ok()

    if action.target == action.card:
        return Validation.fail(RuleCode.NO_TARGETS, "A card cannot be stacked on itself.")
    failure = _require_loose(state, action.target)
    if failure:
        return failure
    return Validation.ok()


def validate_add_to_stack(state: GameState, action: AddToStack) -> Validation:
    """Growing a stack; at most one card from the hand may ever enter it."""
    stack, failure = _require_own_stack(state, action.player, action.stack_id)
    if failure:
        return failure
    if action.origin is CardOrigin.HAND and stack.hand_card_count >= 1:
        return Validation.fail(
            RuleCode.HAND_CARD_LIMIT, "Only one card from your hand can join a stack."
        )
    failure = _require_at_origin(state, action.player, action.card, action.origin)
    if failure:
        return failure
    return Validation.ok()


def validate_reorder_stack(state: GameState, action: ReorderStack) -> Validation:
    stack, failure = _require_own_stack(state, action.player, action.stack_id)
    if failure:
        return failure
    if sorted(action.order, key=lambda c: c.card_id) != sorted(
        stack.plain_cards, key=lambda c: c.card_id
    ):
        return Validation.fail(
            RuleCode.INVALID_ORDER, "The new order must hold exactly the stack's cards."
        )
    return Validation.ok()


def validate_commit_stack_to_build(state: GameState, action: CommitStackToBuild) -> Validation:
    """
    Reinforce or merge a build with a staging stack.

    The whole stack must partition into the build's value. One hand card
    makes it a reinforcement that ends the turn and takes ownership;
    a stack of table cards only merges into the player's own build, or
    reinforces an opponent's extendable build, without ending the turn.
    A failed reinforcement involving a hand card disbands the stack.
    """
    player = action.player
    stack, failure = _require_own_stack(state, player, action.stack_id)
    if failure:
        return failure
    build = state.find_build(action.build_id)
    if build is None:
        return Validation.fail(RuleCode.BUILD_NOT_FOUND, f"Build {action.build_id} not found.")

    with_hand_card = stack.hand_card_count == 1
    if not partition_exists(stack.plain_cards, build.value):
        return Validation.fail(
            RuleCode.NO_PARTITION,
            f"The stack cannot be grouped into sums of {build.value}.",
            disband=with_hand_card,
        )

    if with_hand_card:
        own = state.build_owned_by(player)
        if own is not None and own.build_id != build.build_id:
            return Validation.fail(
                RuleCode.ONE_BUILD_LIMIT,
                "You can only have one build at a time.",
                disband=True,
            )
        return Validation.ok(mode=CommitMode.REINFORCE)

    if build.owner == player:
        return Validation.ok(mode=CommitMode.MERGE)
    if not build.is_extendable:
        return Validation.fail(
            RuleCode.BUILD_NOT_EXTENDABLE, "This build can no longer be extended."
        )
    return Validation.ok(mode=CommitMode.REINFORCE_OPPONENT)


def possible_build_values(state: GameState, player: int, stack: TemporaryStack) -> list[int]:
    """
    Values a staged stack could be finalized into as a new build.

    Every staged card must be used, the player must still hold a card of
    the value, own no build, and the opponent must not own that value.
    """
    cards = stack.plain_cards
    if len(cards) < 2 or state.build_owned_by(player) is not None:
        return []
    taken = _opponent_build_values(state, player)
    hand = state.hand(player)
    return [
        value
        for value in candidate_target_values(cards)
        if value not in taken and _holds(hand, value) and partition_exists(cards, value)
    ]


def validate_finalize_stack(state: GameState, action: FinalizeStack) -> Validation:
    """
    Confirm a stack. A lone hand card is a staged trail. Otherwise the
    stack needs exactly one hand card and becomes either a capture (the
    other cards group into the hand card's value) or a new build.

    When nothing is possible the stack disbands. When several options
    exist the player must say which one.
    """
    player = action.player
    stack, failure = _require_own_stack(state, player, action.stack_id)
    if failure:
        return failure

    if len(stack.cards) == 1 and stack.hand_card_count == 1:
        return Validation.ok(mode=FinalizeMode.TRAIL)

    if stack.hand_card_count == 0:
        return Validation.fail(
            RuleCode.NO_HAND_CARD, "Add a card from your hand before confirming."
        )

    hand_card = stack.hand_cards[0]
    others = [card for card in stack.plain_cards if card != hand_card]
    can_capture = bool(others) and partition_exists(others, hand_card.value)
    build_values = possible_build_values(state, player, stack)
    options = {"capture": can_capture, "build_values": build_values}

    if not can_capture and not build_values:
        return Validation.fail(
            RuleCode.NO_OPTIONS,
            "Those cards don't form a capture or a build.",
            disband=True,
        )

    order_problem = check_combo_order(stack.plain_cards)
    if order_problem:
        return Validation.fail(RuleCode.COMBO_ORDER, order_problem)

    intent = action.intent
    if intent is None and action.build_value is not None:
        intent = FinalizeIntent.BUILD

    if intent is FinalizeIntent.CAPTURE:
        if can_capture:
            return Validation.ok(mode=FinalizeMode.CAPTURE, hand_card=hand_card)
        return Validation.fail(
            RuleCode.CHOICE_REQUIRED, "This stack cannot be captured.", options=options
        )

    if intent is FinalizeIntent.BUILD:
        if action.build_value is None and len(build_values) == 1:
            return Validation.ok(mode=FinalizeMode.BUILD, value=build_values[0])
        if action.build_value in build_values:
            return Validation.ok(mode=FinalizeMode.BUILD, value=action.build_value)
        return Validation.fail(
            RuleCode.CHOICE_REQUIRED, "Choose one of the possible build values.", options=options
        )

    if can_capture and not build_values:
        return Validation.ok(mode=FinalizeMode.CAPTURE, hand_card=hand_card)
    if len(build_values) == 1 and not can_capture:
        return Validation.ok(mode=FinalizeMode.BUILD, value=build_values[0])
    return Validation.fail(
        RuleCode.CHOICE_REQUIRED, "Choose whether to capture or build.", options=options
    )


def validate_cancel_stack(state: GameState, action: CancelStack) -> Validation:
    _, failure = _require_own_stack(state, action.player, action.stack_id)
    return failure or Validation.ok()


def validate_end_game(state: GameState, action: EndGame) -> Validation:
    return Validation.ok()
