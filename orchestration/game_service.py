"""GameService – batch and streaming delivery of rounds over one engine.

Both front-ends load the game, run the same :class:`RoundEngine` and write
the result back only when the round completed. They differ in the observer:
batch passes none, streaming passes one that frames each artifact as an SSE
event. At most one round runs per game at a time; a second request for the
same game gets ``ConflictError``, and the store's version check catches
anything that slips past.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

from agents.contestant import Contestant
from agents.judge import Judge
from agents.llm_provider import LLMProvider, create_provider
from agents.retry import RetryPolicy
from data.errors import CancellationError, ConflictError, GameError
from data.models import Game, create_game
from data.store import GameStore, InMemoryGameStore
from orchestration import events
from orchestration.observers import RoundObserver, StreamingObserver
from orchestration.protocols import create_protocol
from orchestration.round_engine import RoundEngine, RoundResult
from orchestration.settings import Settings

logger = logging.getLogger(__name__)

DisconnectCheck = Callable[[], Awaitable[bool]]


class GameService:
    """Front door for creating games and playing rounds.

    Parameters
    ----------
    store : GameStore
        Where games live between rounds.
    engine : RoundEngine
        Plays the rounds.
    batch_timeout, stream_timeout : float
        Deadline for a whole round in each delivery mode.
    num_agents, max_strikes : int
        Used by :meth:`create_game` for any parameter given as zero or less.
    """

    def __init__(
        self,
        store: GameStore,
        engine: RoundEngine,
        *,
        batch_timeout: float = 120.0,
        stream_timeout: float = 180.0,
        num_agents: int = 4,
        max_strikes: int = 2,
    ) -> None:
        self.store = store
        self.engine = engine
        self.batch_timeout = batch_timeout
        self.stream_timeout = stream_timeout
        self.num_agents = num_agents
        self.max_strikes = max_strikes
        self._in_flight: set[str] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        provider: LLMProvider | None = None,
        store: GameStore | None = None,
    ) -> GameService:
        """Wire provider, speakers, protocol and store from configuration."""
        api = settings.api
        if provider is None:
            provider_kwargs = {
                "timeout": api.timeout,
                "retry_policy": RetryPolicy(
                    max_retries=api.max_retries,
                    base_delay=api.base_delay,
                    max_delay=api.max_delay,
                ),
            }
            if api.model:
                provider_kwargs["model"] = api.model
            if api.api_key_env:
                provider_kwargs["api_key_env"] = api.api_key_env
            provider = create_provider(api.provider, **provider_kwargs)

        contestant = Contestant(provider, temperature=api.temperature, max_tokens=api.max_tokens)
        judge = Judge(provider) if settings.game.tie_break == "judge" else None
        engine = RoundEngine(
            contestant,
            protocol=create_protocol(settings.game.tie_break, judge=judge),
            debate_turns=settings.game.debate_turns,
        )
        return cls(
            store or InMemoryGameStore(),
            engine,
            batch_timeout=settings.server.batch_timeout,
            stream_timeout=settings.server.stream_timeout,
            num_agents=settings.game.num_agents,
            max_strikes=settings.game.max_strikes,
        )

    # ------------------------------------------------------------------
    # Games
    # ------------------------------------------------------------------

    async def create_game(self, num_agents: int = 0, max_strikes: int = 0) -> Game:
        game = create_game(
            num_agents if num_agents > 0 else self.num_agents,
            max_strikes if max_strikes > 0 else self.max_strikes,
        )
        return await self.store.create(game)

    async def get_game(self, game_id: str) -> Game:
        return await self.store.get(game_id)

    async def list_games(self) -> list[Game]:
        return await self.store.list()

    # ------------------------------------------------------------------
    # Rounds
    # ------------------------------------------------------------------

    async def prepare_round(self, game_id: str, question: str) -> Game:
        """Load *game_id* and run every check that must pass before a round.

        Raises ``NotFoundError``, ``StateError``, ``ValidationError`` or
        ``ConflictError`` without touching the generation backend.
        """
        game = await self.store.get(game_id)
        self.engine.validator.check_can_play(game, question)
        self._check_free(game_id)
        return game

    async def play_round(
        self,
        game_id: str,
        question: str,
        observer: RoundObserver | None = None,
    ) -> RoundResult:
        """Batch delivery: run a whole round, persist it, return it.

        *observer* only watches; the result is the same with or without it.
        """
        game = await self.prepare_round(game_id, question)
        self._claim(game_id)
        try:
            result = await self.engine.run_round(
                game, question, observer, timeout=self.batch_timeout
            )
            stored = await self.store.update(result.game, expected_version=game.version)
        finally:
            self._release(game_id)
        return RoundResult(game=stored, round=result.round)

    async def stream_round(
        self,
        game: Game,
        question: str,
        is_disconnected: DisconnectCheck | None = None,
    ) -> AsyncIterator[str]:
        """Streaming delivery: yield SSE frames as the round unfolds.

        *game* should come from :meth:`prepare_round`. The stream ends with a
        ``round_end`` or ``error`` frame, or with no terminal frame at all
        when the deadline expires or the client goes away; only a stream
        ending in ``round_end`` changed the stored game.
        """
        try:
            self._claim(game.id)
        except ConflictError as exc:
            yield events.format_sse(events.ERROR, {"error": str(exc)})
            return

        queue: asyncio.Queue[str | None] = asyncio.Queue()
        task = asyncio.create_task(self._run_streamed(game, question, queue))
        try:
            while True:
                frame = await queue.get()
                if frame is None:
                    break
                yield frame
                if is_disconnected is not None and await is_disconnected():
                    logger.info("Client left the stream for game %s; abandoning round", game.id)
                    break
                queue.task_done()
        finally:
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            self._release(game.id)

    async def _run_streamed(
        self, game: Game, question: str, queue: asyncio.Queue[str | None]
    ) -> None:
        try:
            result = await self.engine.run_round(
                game,
                question,
                StreamingObserver(queue),
                timeout=self.stream_timeout,
            )
            # Persist only once every artifact frame reached a connected client.
            await queue.join()
            stored = await self.store.update(result.game, expected_version=game.version)
            final = RoundResult(game=stored, round=result.round)
            queue.put_nowait(events.format_sse(events.ROUND_END, final.to_dict()))
        except CancellationError:
            logger.warning("Streamed round on game %s timed out; closing without a result", game.id)
        except GameError as exc:
            logger.warning("Streamed round on game %s failed: %s", game.id, exc)
            queue.put_nowait(events.format_sse(events.ERROR, {"error": str(exc)}))
        except Exception as exc:
            logger.exception("Streamed round on game %s crashed", game.id)
            queue.put_nowait(events.format_sse(events.ERROR, {"error": str(exc)}))
        finally:
            queue.put_nowait(None)

    # ------------------------------------------------------------------
    # In-flight rounds
    # ------------------------------------------------------------------

    def _check_free(self, game_id: str) -> None:
        if game_id in self._in_flight:
            raise ConflictError(f"a round is already in progress for game {game_id}")

    def _claim(self, game_id: str) -> None:
        self._check_free(game_id)
        self._in_flight.add(game_id)

    def _release(self, game_id: str) -> None:
        self._in_flight.discard(game_id)
