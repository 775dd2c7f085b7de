"""Shared fixtures for the test suite.

Provides a MockProvider that simulates LLM responses without network calls,
a ``GameScript`` that plays every contestant deterministically, and
pre-wired store / engine / service instances for integration tests.
"""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Callable
from typing import Any

import pytest

from agents.contestant import Contestant
from agents.judge import Judge
from agents.llm_provider import LLMProvider
from agents.retry import RetryPolicy
from data.models import Game, create_game
from data.store import InMemoryGameStore
from orchestration.game_service import GameService
from orchestration.protocols import JudgeTieBreakProtocol
from orchestration.round_engine import RoundEngine


# ---------------------------------------------------------------------------
# Retry timing
# ---------------------------------------------------------------------------

class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that only records the requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)

    @property
    def total(self) -> float:
        return sum(self.delays)


# ---------------------------------------------------------------------------
# Mock LLM provider
# ---------------------------------------------------------------------------

class MockProvider(LLMProvider):
    """Deterministic mock provider for testing – no network calls.

    ``failures`` are raised one per call, in order, before any reply is
    produced; a ``None`` entry lets that call through. Replies come from
    ``responder(messages)`` when given, else cycle through ``responses``.
    """

    name = "mock"

    def __init__(
        self,
        model: str = "mock-v1",
        responses: list[str] | None = None,
        *,
        responder: Callable[[list[dict[str, str]]], str] | None = None,
        failures: list[Exception | None] | None = None,
        retry_policy: RetryPolicy | None = None,
        **kwargs: Any,
    ) -> None:
        # Bypass API-key validation
        self.model = model
        self.timeout = kwargs.get("timeout", 30)
        self.api_key = "mock-key"
        self.sleep = RecordingSleep()
        self.retry_policy = retry_policy or RetryPolicy(sleep=self.sleep)

        self._responses = responses or ["This is a mock response."]
        self._responder = responder
        self._failures = list(failures or [])
        self._call_count = 0
        self.call_log: list[dict[str, Any]] = []

    async def _call_api(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
        **kwargs: Any,
    ) -> dict[str, Any]:
        self.call_log.append(
            {"messages": messages, "temperature": temperature, "max_tokens": max_tokens}
        )
        # Suspend like a network call would.
        await asyncio.sleep(0)
        if self._failures:
            failure = self._failures.pop(0)
            if failure is not None:
                raise failure

        if self._responder is not None:
            text = self._responder(messages)
        else:
            text = self._responses[self._call_count % len(self._responses)]
        self._call_count += 1
        return {"text": text, "tokens_used": len(text.split()) * 2, "raw": {}}


# ---------------------------------------------------------------------------
# Scripted contestants
# ---------------------------------------------------------------------------

_NAME = re.compile(r"^You are ([^,.]+)")
_VOTER = re.compile(r"vote for yourself \(([^)]+)\)")
_TURN = re.compile(r"Debate turn (\d+)")
_DEBATE_LINE = re.compile(r'^agent-\d+: "', re.MULTILINE)


class GameScript:
    """Responder that plays every contestant and the judge.

    Answers read ``"<name> answers: <question>"``, debate messages
    ``"<name> attacks on turn <n> after <k> messages"`` (k counts the debate
    lines already in the prompt) and votes follow ``votes`` (voter id ->
    target id; missing voters vote for an empty id). The judge names
    ``judge_pick``.
    """

    def __init__(self, votes: dict[str, str] | None = None, judge_pick: str = "") -> None:
        self.votes = votes or {}
        self.judge_pick = judge_pick

    def __call__(self, messages: list[dict[str, str]]) -> str:
        system = messages[0]["content"]
        user = messages[-1]["content"]

        if "SUPREME JUDGE" in system:
            return json.dumps({"vote_for": self.judge_pick, "justification": "weakest defence"})

        voter = _VOTER.search(system)
        if voter:
            voter_id = voter.group(1)
            return json.dumps(
                {"vote_for": self.votes.get(voter_id, ""), "justification": f"{voter_id} was convinced"}
            )

        name = _NAME.match(system).group(1)
        turn = _TURN.search(user)
        if turn:
            seen = len(_DEBATE_LINE.findall(user))
            return f"{name} attacks on turn {turn.group(1)} after {seen} messages"
        question = user.split('"')[1]
        return f"{name} answers: {question}"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

# Votes tallying [1, 1, 1, 0] across agent-1..agent-4. agent-4 names an id
# that is not in the game, so its vote is kept but never counted.
LOW_AGENT_4_VOTES = {
    "agent-1": "agent-2",
    "agent-2": "agent-3",
    "agent-3": "agent-1",
    "agent-4": "agent-99",
}

# Every agent receives exactly one vote.
UNIFORM_VOTES = {
    "agent-1": "agent-2",
    "agent-2": "agent-3",
    "agent-3": "agent-4",
    "agent-4": "agent-1",
}


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def script() -> GameScript:
    return GameScript(votes=dict(LOW_AGENT_4_VOTES))


@pytest.fixture
def game_provider(script: GameScript) -> MockProvider:
    return MockProvider(responder=script)


@pytest.fixture
def contestant(game_provider: MockProvider) -> Contestant:
    return Contestant(game_provider)


@pytest.fixture
def engine(contestant: Contestant) -> RoundEngine:
    return RoundEngine(contestant)


@pytest.fixture
def judge_engine(game_provider: MockProvider, contestant: Contestant) -> RoundEngine:
    return RoundEngine(contestant, protocol=JudgeTieBreakProtocol(Judge(game_provider)))


@pytest.fixture
def game() -> Game:
    return create_game(4, 2)


@pytest.fixture
def store() -> InMemoryGameStore:
    return InMemoryGameStore()


@pytest.fixture
def service(store: InMemoryGameStore, engine: RoundEngine) -> GameService:
    return GameService(store, engine)
