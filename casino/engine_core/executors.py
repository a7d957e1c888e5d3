"""
Action Executors - pure state transitions for validated actions.

Executors trust their validator: they receive the ``Validation`` that
accepted the action and read derived values from it. If the state still
contradicts the action (a card missing from where it must be), they raise
``EngineInvariantError``; the reducer reports that as an internal error.

Each executor returns a ``Transition``: the new state, whether the turn
ended, and any notices for the players.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import uuid

from .action import (
    AddToOpponentBuild,
    AddToOwnBuild,
    Capture,
    CreateBaseBuild,
    CreateBuild,
    ExtendToMerge,
    Notice,
    NoticeKind,
    Trail,
)
from .errors import EngineInvariantError
from .state import (
    Build,
    Card,
    CardOrigin,
    GameState,
    StagedCard,
    TableItem,
    TemporaryStack,
    by_value_desc,
)
from .validation import Validation


@dataclass
class Transition:
    """Outcome of an executor."""
    state: GameState
    turn_ended: bool = True
    notices: list[Notice] = field(default_factory=list)


def new_build_id() -> str:
    return f"build-{uuid.uuid4().hex[:8]}"


def new_stack_id() -> str:
    return f"stack-{uuid.uuid4().hex[:8]}"


# =============================================================================
# Zone helpers
# =============================================================================

def _item_key(item: TableItem) -> object:
    if isinstance(item, Build):
        return ("build", item.build_id)
    if isinstance(item, TemporaryStack):
        return ("stack", item.stack_id)
    return item


def take_from_hand(state: GameState, player: int, card: Card) -> GameState:
    """Return new state with ``card`` removed from the player's hand."""
    hand = state.hand(player)
    if card not in hand:
        raise EngineInvariantError(f"{card} not found in player {player}'s hand")
    return state.with_hand(player, (c for c in hand if c != card))


def take_from_table(state: GameState, *items: TableItem) -> GameState:
    """Return new state with the given table items removed."""
    keys = [_item_key(item) for item in items]
    present = {_item_key(item) for item in state.table}
    for key, item in zip(keys, items):
        if key not in present:
            raise EngineInvariantError(f"{item} not found on the table")
    return state.with_table(item for item in state.table if _item_key(item) not in keys)


def replace_on_table(state: GameState, old: TableItem, new: TableItem) -> GameState:
    """Return new state with ``old`` swapped for ``new`` in the same position."""
    key = _item_key(old)
    if not any(_item_key(item) == key for item in state.table):
        raise EngineInvariantError(f"{old} not found on the table")
    return state.with_table(new if _item_key(item) == key else item for item in state.table)


def take_opponent_top_card(state: GameState, player: int, card: Card | None = None) -> tuple[Card, GameState]:
    """Pop the top card of the opponent's most recent capture group."""
    opponent = state.opponent(player)
    top, pile = state.captures(opponent).without_top_card()
    if top is None or (card is not None and top != card):
        raise EngineInvariantError(f"{card or 'a card'} is not on top of player {opponent}'s captures")
    return top, state.with_captures(opponent, pile)


def take_from_origin(state: GameState, player: int, card: Card, origin: CardOrigin) -> GameState:
    """Remove a card from the zone it is being staged from."""
    if origin is CardOrigin.HAND:
        return take_from_hand(state, player, card)
    if origin is CardOrigin.TABLE:
        return take_from_table(state, card)
    _, state = take_opponent_top_card(state, player, card)
    return state


def record_capture(state: GameState, player: int, cards: tuple[Card, ...]) -> GameState:
    """Append a capture group and remember the capturer for the final sweep."""
    pile = state.captures(player).add_group(cards)
    return state.with_captures(player, pile)._copy_with(last_capturer=player)


def place_new_build(
    state: GameState,
    player: int,
    anchor: TableItem,
    cards: tuple[Card, ...],
    value: int,
    is_extendable: bool,
) -> Transition:
    """
    Put a freshly created build on the table where ``anchor`` was.

    Loose cards of the same value are grouped into the build's base, and
    afterwards the top card of the opponent's captures is absorbed if it
    matches the value. Either makes the build non-extendable.
    """
    notices: list[Notice] = []
    matching = tuple(
        card for card in state.loose_cards if card.value == value and card != anchor
    )
    if matching:
        state = take_from_table(state, *matching)
        cards = by_value_desc(matching) + cards
        is_extendable = False

    build = Build(
        build_id=new_build_id(),
        cards=cards,
        value=value,
        owner=player,
        is_extendable=is_extendable,
    )
    state = replace_on_table(state, anchor, build)

    opponent_top = state.captures(state.opponent(player)).top_card
    if opponent_top is not None and opponent_top.value == value:
        _, state = take_opponent_top_card(state, player, opponent_top)
        absorbed = build._copy_with(cards=(opponent_top,) + build.cards, is_extendable=False)
        state = replace_on_table(state, build, absorbed)
        notices.append(Notice(
            kind=NoticeKind.INFO,
            message=f"{opponent_top} from your opponent's captures joined your build of {value}.",
            data={"card": opponent_top.card_id, "build_id": build.build_id},
        ))

    return Transition(state=state, notices=notices)


# =============================================================================
# Player actions
# =============================================================================

def execute_trail(state: GameState, action: Trail, validation: Validation) -> Transition:
    state = take_from_hand(state, action.player, action.card)
    if validation.derived.get("staged"):
        stack = TemporaryStack(
            stack_id=new_stack_id(),
            cards=(StagedCard(card=action.card, origin=CardOrigin.HAND),),
            owner=action.player,
        )
        return Transition(
            state=state.with_table(state.table + (stack,)),
            turn_ended=False,
            notices=[Notice(
                kind=NoticeKind.INFO,
                message="Confirm the trail to end your turn.",
                data={"stack_id": stack.stack_id},
            )],
        )
    return Transition(state=state.with_table(state.table + (action.card,)))


def execute_capture(state: GameState, action: Capture, validation: Validation) -> Transition:
    """
    The capture group is laid out table cards first, then any card taken
    from the opponent, then the capturing card on top.
    """
    player = action.player
    state = take_from_hand(state, player, action.card)

    table_cards: list[Card] = []
    opponent_cards: list[Card] = []
    taken: list[TableItem] = []

    for card in action.loose:
        table_cards.append(card)
        taken.append(card)

    for build_id in dict.fromkeys(action.build_ids):
        build = state.find_build(build_id)
        if build is None:
            raise EngineInvariantError(f"Build {build_id} vanished before capture")
        table_cards.extend(build.cards)
        taken.append(build)

    if action.stack_id is not None:
        stack = state.find_stack(action.stack_id)
        if stack is None:
            raise EngineInvariantError(f"Stack {action.stack_id} vanished before capture")
        for staged in stack.cards:
            if staged.origin is CardOrigin.OPPONENT_CAPTURE:
                opponent_cards.append(staged.card)
            else:
                table_cards.append(staged.card)
        taken.append(stack)

    state = take_from_table(state, *taken)

    if action.use_opponent_card:
        card, state = take_opponent_top_card(state, player, validation.derived.get("opponent_card"))
        opponent_cards.append(card)

    group = tuple(table_cards) + tuple(opponent_cards) + (action.card,)
    return Transition(state=record_capture(state, player, group))


def execute_create_build(state: GameState, action: CreateBuild, validation: Validation) -> Transition:
    """Table card at the bottom, hand card on top."""
    state = take_from_hand(state, action.player, action.card)
    # A set build already binds two combinations
    extendable = not validation.derived.get("is_set", False)
    return place_new_build(
        state,
        action.player,
        anchor=action.target,
        cards=(action.target, action.card),
        value=validation.derived["value"],
        is_extendable=extendable,
    )


def execute_create_base_build(state: GameState, action: CreateBaseBuild, validation: Validation) -> Transition:
    state = take_from_hand(state, action.player, action.card)
    combos = validation.derived["combos"]
    cards = tuple(card for combo in combos for card in by_value_desc(combo))

    anchor = action.table_cards[0]
    state = take_from_table(state, *action.table_cards[1:])
    return place_new_build(
        state,
        action.player,
        anchor=anchor,
        cards=cards + (action.card,),
        value=validation.derived["value"],
        is_extendable=False,
    )


def execute_add_to_own_build(state: GameState, action: AddToOwnBuild, validation: Validation) -> Transition:
    build = state.find_build(action.build_id)
    if build is None:
        raise EngineInvariantError(f"Build {action.build_id} not found")
    state = take_from_hand(state, action.player, action.card)
    updated = build._copy_with(
        cards=build.cards + (action.card,),
        value=validation.derived["new_value"],
        is_extendable=validation.derived["is_extendable"],
    )
    return Transition(state=replace_on_table(state, build, updated))


def execute_add_to_opponent_build(state: GameState, action: AddToOpponentBuild, validation: Validation) -> Transition:
    build = state.find_build(action.build_id)
    if build is None:
        raise EngineInvariantError(f"Build {action.build_id} not found")
    state = take_from_hand(state, action.player, action.card)
    stolen = build._copy_with(
        cards=by_value_desc(build.cards + (action.card,)),
        value=validation.derived["new_value"],
        owner=action.player,
        is_extendable=validation.derived["is_extendable"],
    )
    return Transition(
        state=replace_on_table(state, build, stolen),
        notices=[Notice(
            kind=NoticeKind.INFO,
            message=f"Player {action.player} took over the build, now worth {stolen.value}.",
            data={"build_id": stolen.build_id},
        )],
    )


def execute_extend_to_merge(state: GameState, action: ExtendToMerge, validation: Validation) -> Transition:
    own = state.find_build(validation.derived["own_build_id"])
    target = state.find_build(action.build_id)
    if own is None or target is None:
        raise EngineInvariantError("Builds to merge are no longer on the table")
    state = take_from_hand(state, action.player, action.card)
    merged = own._copy_with(
        cards=by_value_desc(own.cards + target.cards + (action.card,)),
        is_extendable=False,
    )
    state = replace_on_table(state, own, merged)
    return Transition(state=take_from_table(state, target))
