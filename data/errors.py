"""Error taxonomy shared by the store, the round engine and the delivery layer."""

from __future__ import annotations


class GameError(Exception):
    """Base class for every error the game core raises on purpose."""


class ValidationError(GameError):
    """Request is malformed: empty question, no active agents, bad parameters."""


class NotFoundError(GameError):
    """Unknown game id."""

    def __init__(self, game_id: str) -> None:
        super().__init__(f"game not found: {game_id}")
        self.game_id = game_id


class StateError(GameError):
    """Operation not allowed in the game's current state."""


class ConflictError(GameError):
    """Another writer got there first (round in flight or stale version)."""


class ExternalServiceError(GameError):
    """The generation backend failed, gave up, or replied with garbage."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class CancellationError(GameError):
    """Deadline exceeded or caller went away mid-round."""
