"""FastAPI application factory.

Routes::

    GET  /health
    POST /games                       create a game (201)
    GET  /games                       list games
    GET  /games/{id}                  fetch one game
    POST /games/{id}/rounds           play a round, answer when it is done
    POST /games/{id}/rounds/stream    play a round as Server-Sent Events
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from data.errors import (
    CancellationError,
    ConflictError,
    ExternalServiceError,
    GameError,
    NotFoundError,
    StateError,
    ValidationError,
)
from data.models import Game
from orchestration.game_service import GameService
from orchestration.settings import Settings

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[GameError], int] = {
    ValidationError: 400,
    StateError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    ExternalServiceError: 502,
    CancellationError: 504,
}

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class CreateGameRequest(BaseModel):
    num_agents: int = 0
    max_strikes: int = 0


class RoundRequest(BaseModel):
    question: str = ""


def status_for(exc: GameError) -> int:
    for cls in type(exc).__mro__:
        if cls in _STATUS_BY_ERROR:
            return _STATUS_BY_ERROR[cls]
    return 500


def _service(request: Request) -> GameService:
    return request.app.state.service


def create_app(
    settings: Settings | None = None,
    service: GameService | None = None,
) -> FastAPI:
    """Build the app. A *service* passed in wins over one built from *settings*."""
    settings = settings or Settings()
    app = FastAPI(title="AI Hunger Games", version="0.1.0")
    app.state.settings = settings
    app.state.service = service or GameService.from_settings(settings)

    @app.exception_handler(GameError)
    async def _game_error(request: Request, exc: GameError) -> JSONResponse:
        status = status_for(exc)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status, content={"detail": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def _bad_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": "invalid json"})

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.post("/games", status_code=201)
    async def create_game(body: CreateGameRequest, request: Request) -> Game:
        return await _service(request).create_game(body.num_agents, body.max_strikes)

    @app.get("/games")
    async def list_games(request: Request) -> list[Game]:
        return await _service(request).list_games()

    @app.get("/games/{game_id}")
    async def get_game(game_id: str, request: Request) -> Game:
        return await _service(request).get_game(game_id)

    @app.post("/games/{game_id}/rounds")
    async def play_round(game_id: str, body: RoundRequest, request: Request) -> dict:
        result = await _service(request).play_round(game_id, body.question)
        return result.to_dict()

    @app.post("/games/{game_id}/rounds/stream")
    async def stream_round(
        game_id: str, body: RoundRequest, request: Request
    ) -> StreamingResponse:
        """Same round as the batch route, delivered one artifact at a time.

        Preconditions are checked before the stream opens, so a bad request
        still gets a plain status code instead of an event stream.
        """
        service = _service(request)
        game = await service.prepare_round(game_id, body.question)
        return StreamingResponse(
            service.stream_round(game, body.question, request.is_disconnected),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    return app
