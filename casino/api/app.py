"""
FastAPI Application - REST API for Casino game clients.

Endpoints:
    POST   /api/v1/rooms                 Open a room
    GET    /api/v1/rooms                 List active rooms
    GET    /api/v1/rooms/{id}            Get room status
    DELETE /api/v1/rooms/{id}            End a room
    POST   /api/v1/rooms/{id}/join       Take a seat
    GET    /api/v1/rooms/{id}/state      Get game state
    POST   /api/v1/rooms/{id}/actions    Submit an action
    POST   /api/v1/scores/preview        Score two capture piles
    WS     /api/v1/rooms/{id}/ws         WebSocket for real-time updates

Action Flow:
    1. A client posts an action attributed to its seat
    2. The relay forwards it to the engine, one at a time per room
    3. Applied actions are broadcast as state_update to every socket
    4. Rejections come back to the sender only, with the unchanged state

All responses are JSON with explicit Pydantic schemas.
"""

from typing import Annotated, Optional, Union
import asyncio
import json
import logging
import os

# Environment configuration
CASINO_ENV = os.getenv("CASINO_ENV", "development")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")
CASINO_ROOM_TTL_SECONDS = int(os.getenv("CASINO_ROOM_TTL_SECONDS", "3600"))
CASINO_LOG_LEVEL = os.getenv("CASINO_LOG_LEVEL", "INFO").upper()

logger = logging.getLogger(__name__)


def create_app(service=None):
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates new if not provided)

    Returns:
        FastAPI application instance
    """
    try:
        from fastapi import FastAPI, Query, Request, WebSocket, WebSocketDisconnect
        from fastapi.concurrency import run_in_threadpool
        from fastapi.encoders import jsonable_encoder
        from fastapi.exceptions import RequestValidationError
        from fastapi.middleware.cors import CORSMiddleware
        from fastapi.responses import JSONResponse
    except ImportError:
        raise ImportError(
            "FastAPI not installed. Install with: pip install fastapi uvicorn"
        )

    from .. import __version__
    from ..session import RoomError
    from .service import APIService, state_to_response
    from .schemas import (
        # Request models
        ActionRequest,
        CreateRoomRequest,
        JoinRoomRequest,
        ScorePreviewRequest,
        # Response models
        ActionResponse,
        EndRoomResponse,
        ErrorResponse,
        GameStateResponse,
        HealthResponse,
        JoinRoomResponse,
        RoomListResponse,
        RoomResponse,
        ScoreResponse,
        # Enums
        ErrorCode,
    )

    logging.getLogger("casino").setLevel(CASINO_LOG_LEVEL)

    app = FastAPI(
        title="Casino Engine API",
        description="""
Two-player Casino card game - rules engine and room relay.

## Action Flow

Post an action to `POST /rooms/{id}/actions` with the seat it comes from.

1. **Applied** (`success=true`):
   - The new state is returned and broadcast to the room's sockets
   - `notices` explain side effects (steals, round over, game over)

2. **Rejected** (`success=false`, HTTP 409):
   - The state is unchanged
   - `notices` carry a title, reason and rule code for the player

## Error Codes

| Code | Description |
|------|-------------|
| `ROOM_NOT_FOUND` | Room does not exist or has been closed |
| `ROOM_FULL` | Both seats are taken |
| `INVALID_ACTION` | Action payload could not be understood |
| `INTERNAL_ERROR` | Engine state inconsistency |
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api_service = service or APIService()

    # =========================================================================
    # Error helpers
    # =========================================================================

    status_codes = {
        ErrorCode.ROOM_NOT_FOUND: 404,
        ErrorCode.ROOM_EXISTS: 409,
        ErrorCode.ROOM_FULL: 400,
        ErrorCode.ROOM_CLOSED: 409,
        ErrorCode.GAME_NOT_STARTED: 409,
        ErrorCode.NOT_SEATED: 403,
        ErrorCode.INVALID_ACTION: 400,
        ErrorCode.VALIDATION_ERROR: 400,
        ErrorCode.INTERNAL_ERROR: 500,
    }

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code or status_codes.get(error_code, 400),
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    def from_error(response: ErrorResponse) -> JSONResponse:
        return make_error_response(
            response.error_code,
            response.error,
            details=response.details,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed request bodies get the standard error shape with a 400."""
        return make_error_response(
            ErrorCode.INVALID_ACTION,
            "Request body failed validation",
            details={"errors": jsonable_encoder(exc.errors())},
        )

    async def send_room_update(websocket: WebSocket, room_id: str, state):
        """Push one room update to a socket; a closed socket is skipped."""
        if state is None:
            message = {"type": "room_closed", "payload": {"room_id": room_id}}
        else:
            message = {
                "type": "game_over" if state.game_over else "state_update",
                "payload": state_to_response(room_id, state).model_dump(mode="json"),
            }
        try:
            await websocket.send_json(message)
        except (WebSocketDisconnect, RuntimeError):
            logger.debug("Skipping closed socket in room %s", room_id)

    # =========================================================================
    # Room Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/rooms",
        response_model=RoomResponse,
        responses={409: {"model": ErrorResponse, "description": "Room id already taken"}},
        tags=["Rooms"],
        summary="Open a new room",
    )
    async def create_room(body: CreateRoomRequest) -> Union[RoomResponse, JSONResponse]:
        """
        Open a new room.

        Stale rooms are swept before the new one is created.
        """
        api_service.room_manager.cleanup_stale_rooms(CASINO_ROOM_TTL_SECONDS)
        response = api_service.create_room(body)
        if isinstance(response, ErrorResponse):
            return from_error(response)
        return response

    @app.get(
        "/api/v1/rooms",
        response_model=RoomListResponse,
        tags=["Rooms"],
        summary="List active rooms",
    )
    async def list_rooms() -> RoomListResponse:
        """List all active room IDs."""
        rooms = api_service.list_rooms()
        return RoomListResponse(rooms=rooms, count=len(rooms))

    @app.get(
        "/api/v1/rooms/{room_id}",
        response_model=RoomResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Rooms"],
        summary="Get room status",
    )
    async def get_room(room_id: str) -> Union[RoomResponse, JSONResponse]:
        response = api_service.get_room(room_id)
        if isinstance(response, ErrorResponse):
            return from_error(response)
        return response

    @app.delete(
        "/api/v1/rooms/{room_id}",
        response_model=EndRoomResponse,
        tags=["Rooms"],
        summary="End a room",
    )
    async def end_room(
        room_id: str,
        reason: Annotated[str, Query(description="Reason for ending")] = "user_ended",
    ) -> EndRoomResponse:
        """End a room and release its state."""
        success = api_service.end_room(room_id, reason)
        return EndRoomResponse(success=success, room_id=room_id)

    @app.post(
        "/api/v1/rooms/{room_id}/join",
        response_model=JoinRoomResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Room full"},
            404: {"model": ErrorResponse, "description": "Room not found"},
        },
        tags=["Rooms"],
        summary="Take a seat in a room",
    )
    async def join_room(room_id: str, body: JoinRoomRequest) -> Union[JoinRoomResponse, JSONResponse]:
        """
        Take a seat.

        The game is dealt when the second player joins; joining again
        under the same name returns the same seat.
        """
        response = api_service.join_room(room_id, body)
        if isinstance(response, ErrorResponse):
            return from_error(response)
        return response

    # =========================================================================
    # Game Endpoints
    # =========================================================================

    @app.get(
        "/api/v1/rooms/{room_id}/state",
        response_model=GameStateResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Game"],
        summary="Get current game state",
    )
    async def get_game_state(room_id: str) -> Union[GameStateResponse, JSONResponse]:
        """Get the complete current game state."""
        response = api_service.get_game_state(room_id)
        if isinstance(response, ErrorResponse):
            return from_error(response)
        return response

    @app.post(
        "/api/v1/rooms/{room_id}/actions",
        response_model=ActionResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Malformed action"},
            404: {"model": ErrorResponse, "description": "Room not found"},
            409: {"model": ActionResponse, "description": "Move rejected by the rules"},
            500: {"model": ActionResponse, "description": "Engine inconsistency"},
        },
        tags=["Game"],
        summary="Submit an action",
    )
    async def submit_action(room_id: str, body: ActionRequest) -> Union[ActionResponse, JSONResponse]:
        """
        Submit one action for the seat in `player`.

        **Request Body:**
        ```json
        {"type": "create_build", "player": 0, "card": "6C", "target": "4D", "value": 10}
        ```
        """
        response = await run_in_threadpool(api_service.submit_action, room_id, body)
        if isinstance(response, ErrorResponse):
            return from_error(response)

        if not response.success:
            status_code = 500 if response.error_code == ErrorCode.INTERNAL_ERROR.value else 409
            return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))
        return response

    @app.post(
        "/api/v1/scores/preview",
        response_model=ScoreResponse,
        responses={400: {"model": ErrorResponse}},
        tags=["Scoring"],
        summary="Score two capture piles",
    )
    async def preview_scores(body: ScorePreviewRequest) -> Union[ScoreResponse, JSONResponse]:
        """
        Score captured cards without a room.

        **Request Body:**
        ```json
        {"captures": [[["10D", "AS"]], [["2S"]]]}
        ```
        """
        response = api_service.preview_scores(body)
        if isinstance(response, ErrorResponse):
            return from_error(response)
        return response

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket("/api/v1/rooms/{room_id}/ws")
    async def websocket_endpoint(websocket: WebSocket, room_id: str):
        """
        WebSocket for real-time updates.

        Messages from server:
        - state_update: Game state changed
        - game_over: Final state with scores
        - room_closed: Room was ended
        - error: Error occurred

        Messages from client:
        - ping: Keep-alive
        """
        await websocket.accept()

        # Room updates may be published from worker threads
        loop = asyncio.get_running_loop()

        def push(updated_room_id, state):
            asyncio.run_coroutine_threadsafe(
                send_room_update(websocket, updated_room_id, state), loop
            )

        try:
            api_service.room_manager.subscribe(room_id, push)
        except RoomError as e:
            await websocket.send_json({
                "type": "error",
                "payload": {"message": str(e), "error_code": e.code},
            })
            await websocket.close()
            return

        try:
            # Send initial state
            response = api_service.get_game_state(room_id)
            if isinstance(response, GameStateResponse):
                await websocket.send_json({
                    "type": "state_update",
                    "payload": response.model_dump(mode="json"),
                })

            # Listen for messages
            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    await websocket.send_json({
                        "type": "error",
                        "payload": {"message": "Invalid JSON"},
                    })
                    continue
                if isinstance(message, dict) and message.get("type") == "ping":
                    await websocket.send_json({"type": "pong"})

        except WebSocketDisconnect:
            logger.debug("Socket left room %s", room_id)
        finally:
            api_service.room_manager.unsubscribe(room_id, push)

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            status="healthy",
            service="casino-engine",
            version=__version__,
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Casino Engine API",
            "version": __version__,
            "env": CASINO_ENV,
            "docs": "/api/docs",
            "health": "/health",
        }

    return app


# For running directly: uvicorn casino.api.app:app
app = None
try:
    app = create_app()
except ImportError:
    # FastAPI not installed
    pass
