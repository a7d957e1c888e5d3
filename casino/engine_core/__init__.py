"""
Engine Core - Deterministic Casino state management and rules.

The engine is the runtime that:
1. Creates the initial GameState (shuffle and deal)
2. Validates actions against the rules
3. Applies actions via the reducer
4. Handles round transitions, the final sweep and scoring
"""

from .state import (
    Build,
    CapturePile,
    Card,
    CardOrigin,
    GameState,
    StagedCard,
    Suit,
    TemporaryStack,
)
from .action import (
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
    NoticeKind,
    ReorderStack,
    Trail,
)
from .errors import EngineInvariantError, RuleCode
from .combinations import partition, partition_exists
from .scoring import ScoreDetail, ScoreResult, compute_scores
from .setup import initialize_game
from .reducer import Reducer, reduce

__all__ = [
    "Build",
    "CapturePile",
    "Card",
    "CardOrigin",
    "GameState",
    "StagedCard",
    "Suit",
    "TemporaryStack",
    "Action",
    "ActionResult",
    "AddToOpponentBuild",
    "AddToOwnBuild",
    "AddToStack",
    "CancelStack",
    "Capture",
    "CommitStackToBuild",
    "CreateBaseBuild",
    "CreateBuild",
    "CreateStack",
    "EndGame",
    "ExtendToMerge",
    "FinalizeIntent",
    "FinalizeStack",
    "Notice",
    "NoticeKind",
    "ReorderStack",
    "Trail",
    "EngineInvariantError",
    "RuleCode",
    "partition",
    "partition_exists",
    "ScoreDetail",
    "ScoreResult",
    "compute_scores",
    "initialize_game",
    "Reducer",
    "reduce",
]
