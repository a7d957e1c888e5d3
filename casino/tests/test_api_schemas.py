"""
Tests for the wire schemas.
"""

import pytest
from pydantic import ValidationError

from ..api.schemas import (
    ActionRequest,
    BuildItem,
    ErrorCode,
    ErrorResponse,
    GameStateResponse,
    LooseCardItem,
    ScorePreviewRequest,
    StackItem,
)

CARD = {"card_id": "7H", "rank": "7", "suit": "H", "value": 7, "display": "7♥"}


class TestActionRequest:

    def test_minimal_request(self):
        request = ActionRequest(type="trail", player=0, card="7H")

        assert request.loose == []
        assert request.origin is None

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            ActionRequest(type="steal_everything", player=0)

    def test_build_values_left_to_the_rules(self):
        """Values over 10 parse; the engine rejects them with a rule code."""
        request = ActionRequest(type="create_build", player=0, card="6C", target="5D", value=11)

        assert request.value == 11

    def test_seat_range(self):
        with pytest.raises(ValidationError):
            ActionRequest(type="trail", player=2, card="7H")

    def test_unknown_origin(self):
        with pytest.raises(ValidationError):
            ActionRequest(type="create_stack", player=0, card="7H", origin="deck")


class TestScorePreviewRequest:

    def test_needs_two_players(self):
        with pytest.raises(ValidationError):
            ScorePreviewRequest(captures=[[["AS"]]])


class TestGameStateResponse:

    def test_table_items_by_kind(self):
        """Table items are parsed by their kind field."""
        response = GameStateResponse.model_validate({
            "room_id": "t1",
            "round": 1,
            "current_player": 0,
            "deck_count": 20,
            "hands": [[], []],
            "table": [
                {"kind": "card", "card": CARD},
                {"kind": "build", "build_id": "b1", "cards": [CARD], "value": 7, "owner": 0, "is_extendable": True},
                {"kind": "stack", "stack_id": "s1", "cards": [{"card": CARD, "origin": "table"}], "owner": 1, "value": 7},
            ],
            "captures": [{}, {}],
            "scores": [0, 0],
        })

        assert isinstance(response.table[0], LooseCardItem)
        assert isinstance(response.table[1], BuildItem)
        assert isinstance(response.table[2], StackItem)
        assert response.captures[0].card_count == 0

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            GameStateResponse.model_validate({
                "room_id": "t1",
                "round": 1,
                "current_player": 0,
                "deck_count": 20,
                "hands": [[], []],
                "table": [{"kind": "pile", "card": CARD}],
                "captures": [{}, {}],
                "scores": [0, 0],
            })


class TestErrorResponse:

    def test_dump(self):
        response = ErrorResponse(error="Room t1 not found", error_code=ErrorCode.ROOM_NOT_FOUND)

        assert response.model_dump(mode="json") == {
            "error": "Room t1 not found",
            "error_code": "ROOM_NOT_FOUND",
            "details": None,
            "api_version": "v1",
        }
