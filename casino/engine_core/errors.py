"""
Engine errors.

Rule violations are never raised: validators return them as values tagged
with a ``RuleCode``. Only a broken programming invariant (state and caller
out of sync) raises, and the reducer turns that into an internal-error
notice.
"""

from __future__ import annotations
from enum import Enum


class RuleCode(str, Enum):
    """Machine-readable reasons for rejecting an action."""
    GAME_OVER = "GAME_OVER"
    NOT_YOUR_TURN = "NOT_YOUR_TURN"
    OPEN_STACK = "OPEN_STACK"

    CARD_NOT_IN_HAND = "CARD_NOT_IN_HAND"
    CARD_NOT_ON_TABLE = "CARD_NOT_ON_TABLE"
    BUILD_NOT_FOUND = "BUILD_NOT_FOUND"
    STACK_NOT_FOUND = "STACK_NOT_FOUND"
    NO_OPPONENT_CARD = "NO_OPPONENT_CARD"
    NO_TARGETS = "NO_TARGETS"

    TRAIL_WITH_BUILD = "TRAIL_WITH_BUILD"
    DUPLICATE_RANK = "DUPLICATE_RANK"

    ONE_BUILD_LIMIT = "ONE_BUILD_LIMIT"
    ONE_STACK_LIMIT = "ONE_STACK_LIMIT"
    HAND_CARD_LIMIT = "HAND_CARD_LIMIT"
    NO_HAND_CARD = "NO_HAND_CARD"
    NOT_OWN_BUILD = "NOT_OWN_BUILD"
    NOT_OPPONENT_BUILD = "NOT_OPPONENT_BUILD"
    NOT_STACK_OWNER = "NOT_STACK_OWNER"
    OPPONENT_BUILD_VALUE = "OPPONENT_BUILD_VALUE"
    BUILD_NOT_EXTENDABLE = "BUILD_NOT_EXTENDABLE"
    NO_CAPTURE_CARD = "NO_CAPTURE_CARD"
    VALUE_OVER_TEN = "VALUE_OVER_TEN"
    VALUE_MISMATCH = "VALUE_MISMATCH"
    NO_PARTITION = "NO_PARTITION"

    INVALID_ORDER = "INVALID_ORDER"
    COMBO_ORDER = "COMBO_ORDER"
    CHOICE_REQUIRED = "CHOICE_REQUIRED"
    NO_OPTIONS = "NO_OPTIONS"

    INTERNAL_ERROR = "INTERNAL_ERROR"


# Short user-facing titles, keyed by code
RULE_TITLES = {
    RuleCode.GAME_OVER: "Game Over",
    RuleCode.NOT_YOUR_TURN: "Not Your Turn",
    RuleCode.OPEN_STACK: "Finish Your Stack",
    RuleCode.TRAIL_WITH_BUILD: "Cannot Trail",
    RuleCode.DUPLICATE_RANK: "Cannot Trail",
    RuleCode.ONE_BUILD_LIMIT: "One Build Only",
    RuleCode.ONE_STACK_LIMIT: "One Stack Only",
    RuleCode.HAND_CARD_LIMIT: "One Hand Card Only",
    RuleCode.OPPONENT_BUILD_VALUE: "Build Value Taken",
    RuleCode.BUILD_NOT_EXTENDABLE: "Build Locked",
    RuleCode.NO_CAPTURE_CARD: "Missing Capture Card",
    RuleCode.VALUE_OVER_TEN: "Value Too High",
    RuleCode.NO_PARTITION: "Invalid Combination",
    RuleCode.COMBO_ORDER: "Reorder Stack",
    RuleCode.CHOICE_REQUIRED: "Choose an Action",
    RuleCode.NO_OPTIONS: "Stack Disbanded",
    RuleCode.INTERNAL_ERROR: "Game Error",
}


def rule_title(code: RuleCode | None) -> str:
    """Title for a rejection code, falling back to a generic one."""
    if code is None:
        return "Invalid Move"
    return RULE_TITLES.get(code, "Invalid Move")


class EngineInvariantError(Exception):
    """
    Raised when the state contradicts an action that already passed
    validation (e.g. a card to remove is not where it should be).
    """
