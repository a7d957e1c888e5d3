"""
State builders for tests.

Cards are written as card ids ("10D", "AS"); hands and capture groups as
space-separated ids.
"""

from ..engine_core.state import (
    Build,
    CapturePile,
    Card,
    CardOrigin,
    GameState,
    StagedCard,
    TemporaryStack,
)


def c(card_id: str) -> Card:
    return Card.from_id(card_id)


def cs(ids: str) -> tuple[Card, ...]:
    return tuple(c(card_id) for card_id in ids.split())


def build(build_id: str, ids: str, value: int, owner: int, is_extendable: bool = True) -> Build:
    return Build(
        build_id=build_id,
        cards=cs(ids),
        value=value,
        owner=owner,
        is_extendable=is_extendable,
    )


def stack(stack_id: str, owner: int, *staged: tuple[str, str]) -> TemporaryStack:
    """stack("s1", 0, ("9S", "table"), ("AD", "hand"))"""
    return TemporaryStack(
        stack_id=stack_id,
        cards=tuple(StagedCard(card=c(card_id), origin=CardOrigin(origin)) for card_id, origin in staged),
        owner=owner,
    )


def make_state(
    hands=("", ""),
    table=(),
    captures=((), ()),
    deck: str = "",
    current_player: int = 0,
    round: int = 1,
    last_capturer=None,
) -> GameState:
    """Build a GameState; table items may be card ids, builds or stacks."""
    return GameState(
        deck=cs(deck),
        player_hands=tuple(cs(hand) for hand in hands),
        table=tuple(c(item) if isinstance(item, str) else item for item in table),
        player_captures=tuple(
            CapturePile(groups=tuple(cs(group) for group in groups))
            for groups in captures
        ),
        current_player=current_player,
        round=round,
        last_capturer=last_capturer,
    )
