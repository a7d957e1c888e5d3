"""
Combination Partition Engine.

Decides whether a set of cards can be split, with every card used exactly
once, into disjoint groups that each sum to a target value. Captures,
reinforcements, merges and staged builds are all validated with it.

Only a complete cover counts: a grouping that leaves any card over is a
failure, never a partial success.

Search:
1. Enumerate every subset (size >= 1) whose values sum to the target.
   Targets above 10 never match.
2. Backtrack over disjoint subsets. The lowest uncovered card must belong
   to the next subset, and larger subsets are tried first. Subsets are
   indexed by their lowest card, and remainders already known to fail are
   remembered by their multiset of values, so equal-valued cards are never
   searched twice.
3. Return the first complete cover found. The result depends only on the
   input order.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence

from .constants import MAX_VALUE
from .state import Card, by_value_desc


@dataclass(frozen=True)
class PartitionResult:
    """Outcome of a partition search."""
    combos: tuple[tuple[Card, ...], ...]
    uncovered: tuple[Card, ...]

    @property
    def complete(self) -> bool:
        return not self.uncovered


def _subsets_summing_to(values: Sequence[int], target: int) -> list[tuple[int, ...]]:
    """Index tuples (ascending) of every subset whose values sum to target."""
    found: list[tuple[int, ...]] = []
    order = sorted(range(len(values)), key=values.__getitem__)

    def extend(start: int, chosen: tuple[int, ...], total: int) -> None:
        for position in range(start, len(order)):
            index = order[position]
            new_total = total + values[index]
            if new_total > target:
                break
            picked = chosen + (index,)
            if new_total == target:
                found.append(tuple(sorted(picked)))
            else:
                extend(position + 1, picked, new_total)

    extend(0, (), 0)
    found.sort()
    return found


def _cover(
    by_anchor: dict[int, list[tuple[int, ...]]],
    values: Sequence[int],
    remaining: frozenset[int],
    dead_ends: set[tuple[int, ...]],
) -> list[tuple[int, ...]] | None:
    if not remaining:
        return []
    key = tuple(sorted(values[i] for i in remaining))
    if key in dead_ends:
        return None

    anchor = min(remaining)
    for subset in by_anchor.get(anchor, ()):
        if not remaining.issuperset(subset):
            continue
        rest = _cover(by_anchor, values, remaining.difference(subset), dead_ends)
        if rest is not None:
            return [subset] + rest

    dead_ends.add(key)
    return None


def find_combinations(cards: Sequence[Card], target: int) -> list[tuple[Card, ...]]:
    """Every subset of ``cards`` summing to ``target``, larger subsets first."""
    if not 1 <= target <= MAX_VALUE:
        return []
    values = [card.value for card in cards]
    subsets = sorted(_subsets_summing_to(values, target), key=len, reverse=True)
    return [tuple(cards[i] for i in subset) for subset in subsets]


def partition(cards: Sequence[Card], target: int) -> PartitionResult:
    """
    Split ``cards`` into disjoint groups that each sum to ``target``.

    Returns the groups (cards in input order) on success. On failure
    ``combos`` is empty and ``uncovered`` holds every input card.
    """
    cards = tuple(cards)
    if not cards:
        return PartitionResult(combos=(), uncovered=())
    if not 1 <= target <= MAX_VALUE:
        return PartitionResult(combos=(), uncovered=cards)

    values = [card.value for card in cards]
    if sum(values) % target or max(values) > target:
        return PartitionResult(combos=(), uncovered=cards)

    # a subset's anchor is its lowest index, the card it must cover first
    by_anchor: dict[int, list[tuple[int, ...]]] = {}
    for subset in sorted(_subsets_summing_to(values, target), key=len, reverse=True):
        by_anchor.setdefault(subset[0], []).append(subset)

    chosen = _cover(by_anchor, values, frozenset(range(len(cards))), set())
    if chosen is None:
        return PartitionResult(combos=(), uncovered=cards)

    combos = tuple(tuple(cards[i] for i in subset) for subset in chosen)
    return PartitionResult(combos=combos, uncovered=())


def partition_exists(cards: Sequence[Card], target: int) -> bool:
    """True iff every card can be grouped into subsets summing to target."""
    return partition(cards, target).complete


def candidate_target_values(cards: Sequence[Card]) -> list[int]:
    """Values a full partition of ``cards`` could possibly have."""
    if not cards:
        return []
    low = max(card.value for card in cards)
    high = min(sum(card.value for card in cards), MAX_VALUE)
    return list(range(low, high + 1))


def check_combo_order(cards: Sequence[Card]) -> str | None:
    """
    Check that each combo of a staged arrangement reads high to low.

    The arrangement is grouped under the first candidate value that
    partitions it completely. Returns a message naming the first badly
    ordered combo, or None when the order is fine (or nothing partitions).
    """
    for target in candidate_target_values(cards):
        result = partition(cards, target)
        if not result.complete:
            continue
        for combo in result.combos:
            values = [card.value for card in combo]
            if values != sorted(values, reverse=True):
                expected = " + ".join(str(card) for card in by_value_desc(combo))
                return f"Place the bigger card first: {expected}"
        return None
    return None
