"""
Game State - Immutable Casino state and the values it is built from.

Design principles:
- Immutable: every dataclass is frozen and every collection is a tuple
- All mutations return new state (``_copy_with`` and the ``with_*`` builders)
- The table is one mixed sequence of loose cards, builds and staging stacks
- Nothing here knows the rules; validators and executors do
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Union

if TYPE_CHECKING:
    from .scoring import ScoreDetail


RANKS = ("A", "2", "3", "4", "5", "6", "7", "8", "9", "10")
_RANK_VALUES = {rank: index + 1 for index, rank in enumerate(RANKS)}


class Suit(Enum):
    """The four suits of the 40-card deck."""
    SPADES = "spades"
    HEARTS = "hearts"
    DIAMONDS = "diamonds"
    CLUBS = "clubs"

    @property
    def letter(self) -> str:
        return self.name[0]

    @property
    def symbol(self) -> str:
        return _SUIT_SYMBOLS[self]

    @classmethod
    def from_letter(cls, letter: str) -> Suit:
        for suit in cls:
            if suit.letter == letter.upper():
                return suit
        raise ValueError(f"Unknown suit letter: {letter!r}")


_SUIT_SYMBOLS = {
    Suit.SPADES: "♠",
    Suit.HEARTS: "♥",
    Suit.DIAMONDS: "♦",
    Suit.CLUBS: "♣",
}


class CardOrigin(Enum):
    """Where a staged card came from (and where a cancel sends it back)."""
    HAND = "hand"
    TABLE = "table"
    OPPONENT_CAPTURE = "opponentCapture"


@dataclass(frozen=True)
class Card:
    """
    A playing card.

    Identity is the (rank, suit) pair; ``value`` is derived from the rank
    (A=1 through 10=10).
    """
    rank: str
    suit: Suit
    value: int = field(init=False, compare=False)

    def __post_init__(self):
        if self.rank not in _RANK_VALUES:
            raise ValueError(f"Unknown rank: {self.rank!r}")
        if not isinstance(self.suit, Suit):
            raise ValueError(f"Unknown suit: {self.suit!r}")
        object.__setattr__(self, "value", _RANK_VALUES[self.rank])

    @property
    def card_id(self) -> str:
        """Compact wire identifier, e.g. ``10D`` or ``AS``."""
        return f"{self.rank}{self.suit.letter}"

    @classmethod
    def from_id(cls, card_id: str) -> Card:
        """Parse a card id produced by ``card_id``."""
        card_id = card_id.strip()
        if len(card_id) < 2:
            raise ValueError(f"Invalid card id: {card_id!r}")
        return cls(rank=card_id[:-1].upper(), suit=Suit.from_letter(card_id[-1]))

    def __str__(self) -> str:
        return f"{self.rank}{self.suit.symbol}"


def by_value_desc(cards: Iterable[Card]) -> tuple[Card, ...]:
    """Cards ordered high to low (stable for equal values)."""
    return tuple(sorted(cards, key=lambda c: c.value, reverse=True))


@dataclass(frozen=True)
class Build:
    """
    One or more card groupings bound to a single declared capture value.

    Extendability rule: a build can be extended (its value raised, or a
    steal onto it) only while ``is_extendable`` is set. It is cleared once
    the build holds five cards or has been consolidated from several
    sources (base build, reinforcement, merge, auto-grouping with a
    matching loose card, absorbing an opponent's card). Reinforcing at the
    same value stays possible on any build.
    """
    build_id: str
    cards: tuple[Card, ...]
    value: int
    owner: int
    is_extendable: bool = True

    def _copy_with(self, **kwargs) -> Build:
        """Create a copy with some fields replaced."""
        return Build(
            build_id=kwargs.get("build_id", self.build_id),
            cards=kwargs.get("cards", self.cards),
            value=kwargs.get("value", self.value),
            owner=kwargs.get("owner", self.owner),
            is_extendable=kwargs.get("is_extendable", self.is_extendable),
        )


@dataclass(frozen=True)
class StagedCard:
    """A card inside a staging stack, tagged with its origin zone."""
    card: Card
    origin: CardOrigin


@dataclass(frozen=True)
class TemporaryStack:
    """
    A provisional composition that has not been committed yet.

    Cards keep the order they were placed in (bottom to top).
    """
    stack_id: str
    cards: tuple[StagedCard, ...]
    owner: int

    @property
    def plain_cards(self) -> tuple[Card, ...]:
        return tuple(staged.card for staged in self.cards)

    @property
    def hand_cards(self) -> tuple[Card, ...]:
        return tuple(s.card for s in self.cards if s.origin is CardOrigin.HAND)

    @property
    def hand_card_count(self) -> int:
        return len(self.hand_cards)

    @property
    def value(self) -> int:
        return sum(card.value for card in self.plain_cards)

    def appended(self, staged: StagedCard) -> TemporaryStack:
        """Return new stack with a card placed on top."""
        return TemporaryStack(
            stack_id=self.stack_id,
            cards=self.cards + (staged,),
            owner=self.owner,
        )

    def reordered(self, cards: tuple[StagedCard, ...]) -> TemporaryStack:
        return TemporaryStack(stack_id=self.stack_id, cards=cards, owner=self.owner)


TableItem = Union[Card, Build, TemporaryStack]


@dataclass(frozen=True)
class CapturePile:
    """
    A player's captured cards, one group per capture event.

    The capturing card is last in its group. Only the top card of the
    most recent group is ever visible to the opponent.
    """
    groups: tuple[tuple[Card, ...], ...] = ()

    @property
    def top_card(self) -> Card | None:
        """Top card of the most recent group."""
        if not self.groups or not self.groups[-1]:
            return None
        return self.groups[-1][-1]

    @property
    def cards(self) -> tuple[Card, ...]:
        return tuple(card for group in self.groups for card in group)

    @property
    def card_count(self) -> int:
        return sum(len(group) for group in self.groups)

    def add_group(self, cards: Iterable[Card]) -> CapturePile:
        """Return new pile with a capture group on top."""
        return CapturePile(groups=self.groups + (tuple(cards),))

    def without_top_card(self) -> tuple[Card | None, CapturePile]:
        """Return (removed card, new pile); an emptied group is dropped."""
        if self.top_card is None:
            return None, self
        last_group = self.groups[-1][:-1]
        if last_group:
            groups = self.groups[:-1] + (last_group,)
        else:
            groups = self.groups[:-1]
        return self.groups[-1][-1], CapturePile(groups=groups)

    def with_card_returned(self, card: Card) -> CapturePile:
        """Return new pile with the card put back on the most recent group."""
        if not self.groups:
            return CapturePile(groups=((card,),))
        return CapturePile(groups=self.groups[:-1] + (self.groups[-1] + (card,),))


def table_item_cards(item: TableItem) -> tuple[Card, ...]:
    """All physical cards held by a table item."""
    if isinstance(item, Card):
        return (item,)
    if isinstance(item, Build):
        return item.cards
    return item.plain_cards


@dataclass(frozen=True)
class GameState:
    """
    Complete game state at a point in time.

    This is the canonical state that the engine operates on.
    All state changes go through the reducer.
    """
    deck: tuple[Card, ...] = ()
    player_hands: tuple[tuple[Card, ...], ...] = ((), ())
    table: tuple[TableItem, ...] = ()
    player_captures: tuple[CapturePile, ...] = (CapturePile(), CapturePile())

    current_player: int = 0
    round: int = 1

    # Filled in when the game ends
    scores: tuple[int, ...] = (0, 0)
    score_details: tuple[ScoreDetail, ...] | None = None
    game_over: bool = False
    winner: int | None = None

    # Receives the final sweep of table cards
    last_capturer: int | None = None

    @staticmethod
    def opponent(player: int) -> int:
        return 1 - player

    def hand(self, player: int) -> tuple[Card, ...]:
        return self.player_hands[player]

    def captures(self, player: int) -> CapturePile:
        return self.player_captures[player]

    @property
    def loose_cards(self) -> tuple[Card, ...]:
        return tuple(item for item in self.table if isinstance(item, Card))

    @property
    def builds(self) -> tuple[Build, ...]:
        return tuple(item for item in self.table if isinstance(item, Build))

    @property
    def stacks(self) -> tuple[TemporaryStack, ...]:
        return tuple(item for item in self.table if isinstance(item, TemporaryStack))

    def build_owned_by(self, player: int) -> Build | None:
        for build in self.builds:
            if build.owner == player:
                return build
        return None

    def stack_owned_by(self, player: int) -> TemporaryStack | None:
        for stack in self.stacks:
            if stack.owner == player:
                return stack
        return None

    def find_build(self, build_id: str) -> Build | None:
        for build in self.builds:
            if build.build_id == build_id:
                return build
        return None

    def find_stack(self, stack_id: str) -> TemporaryStack | None:
        for stack in self.stacks:
            if stack.stack_id == stack_id:
                return stack
        return None

    def is_loose(self, card: Card) -> bool:
        return card in self.loose_cards

    @property
    def hands_empty(self) -> bool:
        return all(not hand for hand in self.player_hands)

    def table_cards(self) -> tuple[Card, ...]:
        """Every physical card on the table, builds and stacks included."""
        return tuple(card for item in self.table for card in table_item_cards(item))

    def all_cards(self) -> tuple[Card, ...]:
        hands = tuple(card for hand in self.player_hands for card in hand)
        captured = tuple(card for pile in self.player_captures for card in pile.cards)
        return self.deck + hands + self.table_cards() + captured

    def total_card_count(self) -> int:
        return len(self.all_cards())

    def integrity_issues(self) -> list[str]:
        """
        List the structural invariants this state breaks.

        An empty list means the state is consistent.
        """
        issues = []

        duplicates = [c for c, n in Counter(self.all_cards()).items() if n > 1]
        if duplicates:
            issues.append(
                "Duplicate cards: " + ", ".join(str(c) for c in duplicates)
            )

        for player in (0, 1):
            owned_builds = [b for b in self.builds if b.owner == player]
            if len(owned_builds) > 1:
                issues.append(f"Player {player} owns {len(owned_builds)} builds")
            owned_stacks = [s for s in self.stacks if s.owner == player]
            if len(owned_stacks) > 1:
                issues.append(f"Player {player} owns {len(owned_stacks)} staging stacks")

        for stack in self.stacks:
            if stack.hand_card_count > 1:
                issues.append(f"Stack {stack.stack_id} holds more than one hand card")

        for build in self.builds:
            if not 1 <= build.value <= 10:
                issues.append(f"Build {build.build_id} has value {build.value}")

        if self.round not in (1, 2):
            issues.append(f"Invalid round: {self.round}")
        if self.current_player not in (0, 1):
            issues.append(f"Invalid current player: {self.current_player}")

        return issues

    def with_hand(self, player: int, cards: Iterable[Card]) -> GameState:
        """Return new state with a player's hand replaced."""
        hands = list(self.player_hands)
        hands[player] = tuple(cards)
        return self._copy_with(player_hands=tuple(hands))

    def with_captures(self, player: int, pile: CapturePile) -> GameState:
        """Return new state with a player's capture pile replaced."""
        piles = list(self.player_captures)
        piles[player] = pile
        return self._copy_with(player_captures=tuple(piles))

    def with_table(self, items: Iterable[TableItem]) -> GameState:
        return self._copy_with(table=tuple(items))

    def _copy_with(self, **kwargs) -> GameState:
        """Create a copy with some fields replaced."""
        return GameState(
            deck=kwargs.get("deck", self.deck),
            player_hands=kwargs.get("player_hands", self.player_hands),
            table=kwargs.get("table", self.table),
            player_captures=kwargs.get("player_captures", self.player_captures),
            current_player=kwargs.get("current_player", self.current_player),
            round=kwargs.get("round", self.round),
            scores=kwargs.get("scores", self.scores),
            score_details=kwargs.get("score_details", self.score_details),
            game_over=kwargs.get("game_over", self.game_over),
            winner=kwargs.get("winner", self.winner),
            last_capturer=kwargs.get("last_capturer", self.last_capturer),
        )
