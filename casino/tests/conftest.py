"""
Pytest fixtures for Casino tests.
"""

import pytest

from ..api.service import APIService
from ..engine_core.reducer import Reducer
from ..engine_core.setup import initialize_game
from ..engine_core.state import GameState
from ..session import RoomManager


@pytest.fixture
def reducer() -> Reducer:
    """A reducer with integrity checks on."""
    return Reducer()


@pytest.fixture
def new_game() -> GameState:
    """A freshly dealt game with a fixed shuffle."""
    return initialize_game(random_seed=42)


@pytest.fixture
def manager() -> RoomManager:
    """An empty room manager."""
    return RoomManager()


@pytest.fixture
def started_room(manager: RoomManager) -> str:
    """A room with both seats taken and the game dealt."""
    room = manager.create_room(room_id="table-1", random_seed=7)
    manager.join(room.room_id, "Ana")
    manager.join(room.room_id, "Ben")
    return room.room_id


@pytest.fixture
def service() -> APIService:
    """Create a fresh API service."""
    return APIService()
