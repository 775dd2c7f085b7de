"""Round observers – how the engine reports artifacts as they are produced.

The engine awaits the observer after every answer, debate message and vote,
and at the end of the answer and debate phases. The base class ignores
everything and is what batch delivery uses.
"""

from __future__ import annotations

import asyncio

from data.models import Answer, DebateMessage, Vote
from orchestration import events


class RoundObserver:
    """No-op observer; override the hooks you care about."""

    async def on_answer(self, answer: Answer) -> None:
        pass

    async def on_debate(self, message: DebateMessage) -> None:
        pass

    async def on_vote(self, vote: Vote) -> None:
        pass

    async def on_phase(self, phase: str) -> None:
        """Called with ``answers_done`` and then ``debate_done``."""


class StreamingObserver(RoundObserver):
    """Frames every artifact as an SSE event and pushes it onto a queue."""

    def __init__(self, queue: asyncio.Queue[str]) -> None:
        self.queue = queue

    async def on_answer(self, answer: Answer) -> None:
        await self.queue.put(events.format_sse(events.ANSWER, answer))

    async def on_debate(self, message: DebateMessage) -> None:
        await self.queue.put(events.format_sse(events.DEBATE, message))

    async def on_vote(self, vote: Vote) -> None:
        await self.queue.put(events.format_sse(events.VOTE, vote))

    async def on_phase(self, phase: str) -> None:
        await self.queue.put(events.format_sse(events.PHASE, {"phase": phase}))
