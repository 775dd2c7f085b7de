"""Data layer – game models, storage and the error taxonomy."""

from data.errors import (
    CancellationError,
    ConflictError,
    ExternalServiceError,
    GameError,
    NotFoundError,
    StateError,
    ValidationError,
)
from data.models import (
    Agent,
    Answer,
    DebateMessage,
    Game,
    GameStatus,
    Round,
    Vote,
    create_game,
)
from data.store import GameStore, InMemoryGameStore

__all__ = [
    "Agent",
    "Answer",
    "CancellationError",
    "ConflictError",
    "DebateMessage",
    "ExternalServiceError",
    "Game",
    "GameError",
    "GameStatus",
    "GameStore",
    "InMemoryGameStore",
    "NotFoundError",
    "Round",
    "StateError",
    "ValidationError",
    "Vote",
    "create_game",
]
