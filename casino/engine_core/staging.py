"""
Staging-Stack Transaction Manager.

A staging stack is a composition the player builds up over several
gestures before committing it:

    Empty -> Staging(k cards, h hand cards, h <= 1)
          -> Merged | Reinforced | Finalized | Cancelled | Disbanded

Creating, growing, reordering, merging into a build, reinforcing an
opponent's build with table cards only, and cancelling keep the turn
going. Finalizing, reinforcing with a hand card, and disbanding end it.
Disbanding is the recovery path when a committed composition turns out
to be illegal: every card becomes a loose table card and the turn is
forfeit.
"""

from __future__ import annotations

from .action import (
    AddToStack,
    CancelStack,
    CommitStackToBuild,
    CreateStack,
    FinalizeStack,
    Notice,
    NoticeKind,
    ReorderStack,
)
from .combinations import partition
from .constants import MAX_EXTENDABLE_CARDS
from .errors import EngineInvariantError, RuleCode
from .executors import (
    Transition,
    new_stack_id,
    place_new_build,
    record_capture,
    replace_on_table,
    take_from_origin,
    take_from_table,
)
from .state import CardOrigin, GameState, StagedCard, TemporaryStack
from .validation import CommitMode, FinalizeMode, Validation


def _own_stack(state: GameState, stack_id: str) -> TemporaryStack:
    stack = state.find_stack(stack_id)
    if stack is None:
        raise EngineInvariantError(f"Stack {stack_id} not found")
    return stack


def create_stack(state: GameState, action: CreateStack, validation: Validation) -> Transition:
    """Pair two items into a new stack, the bigger value at the bottom."""
    state = take_from_origin(state, action.player, action.card, action.origin)
    source = StagedCard(card=action.card, origin=action.origin)

    if action.target is None:
        stack = TemporaryStack(stack_id=new_stack_id(), cards=(source,), owner=action.player)
        return Transition(state=state.with_table(state.table + (stack,)), turn_ended=False)

    target = StagedCard(card=action.target, origin=CardOrigin.TABLE)
    ordered = tuple(sorted((target, source), key=lambda s: s.card.value, reverse=True))
    stack = TemporaryStack(stack_id=new_stack_id(), cards=ordered, owner=action.player)
    return Transition(state=replace_on_table(state, action.target, stack), turn_ended=False)


def add_to_stack(state: GameState, action: AddToStack, validation: Validation) -> Transition:
    """Append on top; items already placed keep their order."""
    stack = _own_stack(state, action.stack_id)
    state = take_from_origin(state, action.player, action.card, action.origin)
    grown = stack.appended(StagedCard(card=action.card, origin=action.origin))
    return Transition(state=replace_on_table(state, stack, grown), turn_ended=False)


def reorder_stack(state: GameState, action: ReorderStack, validation: Validation) -> Transition:
    stack = _own_stack(state, action.stack_id)
    origins = {staged.card: staged for staged in stack.cards}
    reordered = stack.reordered(tuple(origins[card] for card in action.order))
    return Transition(state=replace_on_table(state, stack, reordered), turn_ended=False)


def cancel_stack(state: GameState, action: CancelStack, validation: Validation) -> Transition:
    """
    Send every staged card back where it came from. Opponent cards go back
    onto the opponent's most recent capture group, in their staged order.
    """
    stack = _own_stack(state, action.stack_id)
    player = stack.owner
    opponent = state.opponent(player)

    state = take_from_table(state, stack)
    hand = list(state.hand(player))
    loose = []
    pile = state.captures(opponent)
    for staged in stack.cards:
        if staged.origin is CardOrigin.HAND:
            hand.append(staged.card)
        elif staged.origin is CardOrigin.TABLE:
            loose.append(staged.card)
        else:
            pile = pile.with_card_returned(staged.card)

    state = state.with_hand(player, hand).with_captures(opponent, pile)
    return Transition(state=state.with_table(state.table + tuple(loose)), turn_ended=False)


def disband_stack(
    state: GameState,
    stack: TemporaryStack,
    reason: str,
    code: RuleCode | None = None,
) -> Transition:
    """Turn every staged card into a loose table card and end the turn."""
    state = replace_on_table(state, stack, stack.plain_cards[0])
    state = state.with_table(state.table + stack.plain_cards[1:])
    return Transition(
        state=state,
        turn_ended=True,
        notices=[Notice(
            kind=NoticeKind.DISBANDED,
            message=f"{reason} The stack was broken up and your turn is over.",
            code=code,
            data={"stack_id": stack.stack_id},
        )],
    )


def commit_stack_to_build(state: GameState, action: CommitStackToBuild, validation: Validation) -> Transition:
    stack = _own_stack(state, action.stack_id)
    build = state.find_build(action.build_id)
    if build is None:
        raise EngineInvariantError(f"Build {action.build_id} not found")

    mode = validation.derived["mode"]
    owner = action.player if mode is CommitMode.REINFORCE else build.owner
    updated = build._copy_with(
        cards=build.cards + stack.plain_cards,
        owner=owner,
        is_extendable=False,
    )
    state = take_from_table(state, stack)
    state = replace_on_table(state, build, updated)
    return Transition(state=state, turn_ended=mode is CommitMode.REINFORCE)


def finalize_stack(state: GameState, action: FinalizeStack, validation: Validation) -> Transition:
    stack = _own_stack(state, action.stack_id)
    mode = validation.derived["mode"]

    if mode is FinalizeMode.TRAIL:
        return Transition(state=replace_on_table(state, stack, stack.plain_cards[0]))

    if mode is FinalizeMode.CAPTURE:
        hand_card = validation.derived["hand_card"]
        table_cards = tuple(
            s.card for s in stack.cards if s.origin is CardOrigin.TABLE
        )
        opponent_cards = tuple(
            s.card for s in stack.cards if s.origin is CardOrigin.OPPONENT_CAPTURE
        )
        state = take_from_table(state, stack)
        group = table_cards + opponent_cards + (hand_card,)
        return Transition(state=record_capture(state, action.player, group))

    value = validation.derived["value"]
    combos = partition(stack.plain_cards, value).combos
    return place_new_build(
        state,
        action.player,
        anchor=stack,
        cards=stack.plain_cards,
        value=value,
        is_extendable=len(combos) == 1 and len(stack.cards) < MAX_EXTENDABLE_CARDS,
    )
