"""Base class for LLM-backed speakers in the game.

Every speaker (the contestants' voice, the tie-break judge) inherits from
``LLMAgent`` which provides:
- Provider-agnostic ``generate_text`` for free-form replies
- ``generate_choice`` for the small JSON records used by votes and the judge
- ``RoundState``, the read-only snapshot of a round in progress
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, replace
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from agents.llm_provider import LLMProvider, LLMResponse
from data.errors import ExternalServiceError
from data.models import Answer, DebateMessage, Game, Vote

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```[A-Za-z0-9_-]*")


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RoundState:
    """Snapshot of a round visible to a speaker when it takes its turn.

    Each phase step builds a new snapshot with one more artifact, the
    previous one is never modified.
    """

    game: Game
    question: str
    index: int
    answers: tuple[Answer, ...] = ()
    debate: tuple[DebateMessage, ...] = ()
    votes: tuple[Vote, ...] = ()

    def with_answer(self, answer: Answer) -> RoundState:
        return replace(self, answers=self.answers + (answer,))

    def with_debate(self, message: DebateMessage) -> RoundState:
        return replace(self, debate=self.debate + (message,))

    def with_vote(self, vote: Vote) -> RoundState:
        return replace(self, votes=self.votes + (vote,))


class Choice(BaseModel):
    """Structured reply naming one agent, used for votes and judge rulings."""

    model_config = ConfigDict(populate_by_name=True)

    target_id: str = Field(default="", alias="vote_for")
    justification: str = ""

    @field_validator("target_id", "justification", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


def strip_code_fence(raw: str) -> str:
    """Remove a leading ```/```json line and a trailing ``` around a payload."""
    text = raw.strip()
    if text.startswith("```"):
        text = _FENCE_OPEN.sub("", text, count=1)
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def parse_choice(raw: str) -> Choice:
    """Decode a model reply into a :class:`Choice`.

    Raises ``ExternalServiceError`` when the payload is not a JSON object.
    """
    cleaned = strip_code_fence(raw)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ExternalServiceError(f"could not parse structured reply: {exc} (raw={cleaned!r})") from exc
    if not isinstance(data, dict):
        raise ExternalServiceError(f"structured reply is not an object (raw={cleaned!r})")
    try:
        return Choice.model_validate(data)
    except PydanticValidationError as exc:
        raise ExternalServiceError(f"structured reply has bad fields (raw={cleaned!r})") from exc


# ---------------------------------------------------------------------------
# LLMAgent
# ---------------------------------------------------------------------------

class LLMAgent:
    """Provider-agnostic base class for every speaker.

    Parameters
    ----------
    provider : LLMProvider
        The LLM backend used for generation (retries live there).
    temperature : float
        Sampling temperature forwarded to the provider.
    max_tokens : int
        Max output tokens forwarded to the provider.
    """

    def __init__(
        self,
        *,
        provider: LLMProvider,
        temperature: float = 0.8,
        max_tokens: int = 400,
    ) -> None:
        self.provider = provider
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._total_tokens_used: int = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate_text(self, system: str, user: str, **kwargs: Any) -> str:
        """Send one system + user exchange and return the reply text."""
        llm_resp: LLMResponse = await self.provider.generate(
            self._build_messages(system, user),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            **kwargs,
        )
        self._total_tokens_used += llm_resp.tokens_used
        return llm_resp.text.strip()

    async def generate_choice(self, system: str, user: str, **kwargs: Any) -> Choice:
        """Like ``generate_text`` but decode the reply as a :class:`Choice`."""
        raw = await self.generate_text(system, user, **kwargs)
        return parse_choice(raw)

    # ------------------------------------------------------------------
    # Prompt helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _build_messages(system: str, user: str) -> list[dict[str, str]]:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": user})
        return messages

    @staticmethod
    def _format_answers(state: RoundState) -> str:
        return "\n\n".join(f'{a.agent_id} said: "{a.text}"' for a in state.answers)

    @staticmethod
    def _format_debate(state: RoundState) -> str:
        return "\n".join(f'{m.agent_id}: "{m.text}"' for m in state.debate)

    @property
    def total_tokens_used(self) -> int:
        return self._total_tokens_used

    # ------------------------------------------------------------------
    # Dunder
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        return f"{type(self).__name__}(provider={self.provider})"
