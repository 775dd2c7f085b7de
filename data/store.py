"""Game storage contract and the in-memory implementation.

Stores hand out copies, never their own objects, so a caller that mutates a
game it fetched cannot change stored state without going through ``update``.
Updates are optimistic: the caller passes back the version it read and the
write is refused if someone else has written since.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from data.errors import ConflictError, NotFoundError
from data.models import Game

logger = logging.getLogger(__name__)


class GameStore(ABC):
    """Keyed storage for :class:`Game` aggregates. Safe under concurrent callers."""

    @abstractmethod
    async def create(self, game: Game) -> Game:
        """Store a new game and return the stored copy."""
        ...

    @abstractmethod
    async def update(self, game: Game, *, expected_version: int | None = None) -> Game:
        """Replace a stored game.

        Raises ``NotFoundError`` for an unknown id and ``ConflictError`` when
        *expected_version* is given and no longer matches.
        """
        ...

    @abstractmethod
    async def get(self, game_id: str) -> Game:
        """Return a copy of the stored game or raise ``NotFoundError``."""
        ...

    @abstractmethod
    async def list(self) -> list[Game]:
        ...


class InMemoryGameStore(GameStore):
    """Dictionary guarded by a single asyncio lock."""

    def __init__(self) -> None:
        self._games: dict[str, Game] = {}
        self._lock = asyncio.Lock()

    async def create(self, game: Game) -> Game:
        async with self._lock:
            if game.id in self._games:
                raise ConflictError(f"game already exists: {game.id}")
            stored = game.model_copy(deep=True)
            stored.version = 1
            self._games[game.id] = stored
            logger.info("Game %s created with %d agents", game.id, len(game.agents))
            return stored.model_copy(deep=True)

    async def update(self, game: Game, *, expected_version: int | None = None) -> Game:
        async with self._lock:
            current = self._games.get(game.id)
            if current is None:
                raise NotFoundError(game.id)
            if expected_version is not None and current.version != expected_version:
                raise ConflictError(
                    f"game {game.id} changed concurrently "
                    f"(expected version {expected_version}, found {current.version})"
                )
            stored = game.model_copy(deep=True)
            stored.version = current.version + 1
            self._games[game.id] = stored
            return stored.model_copy(deep=True)

    async def get(self, game_id: str) -> Game:
        async with self._lock:
            game = self._games.get(game_id)
            if game is None:
                raise NotFoundError(game_id)
            return game.model_copy(deep=True)

    async def list(self) -> list[Game]:
        async with self._lock:
            return [g.model_copy(deep=True) for g in self._games.values()]

    def __len__(self) -> int:
        return len(self._games)
