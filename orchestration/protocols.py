"""Strike protocols that decide who is penalised once the votes are in.

Each protocol receives the tally for the active agents and returns the ids
that take a strike this round.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from agents.base import RoundState
from agents.judge import Judge
from evaluation.metrics import lowest_tally

logger = logging.getLogger(__name__)


class StrikeProtocol(ABC):
    """Base class for strike selection strategies."""

    name: str

    @abstractmethod
    async def select(self, state: RoundState, tally: dict[str, int]) -> list[str]:
        """Return the ids that receive a strike, in active-agent order."""
        ...


class StrikeAllProtocol(StrikeProtocol):
    """Everyone sharing the lowest tally takes a strike.

    A uniform tally therefore strikes every active agent at once.
    """

    name = "strike_all"

    async def select(self, state: RoundState, tally: dict[str, int]) -> list[str]:
        return lowest_tally(tally)


class JudgeTieBreakProtocol(StrikeProtocol):
    """Like ``strike_all`` but a judge narrows a tie down to one agent.

    Costs one extra generation call, and only when there is a tie.
    """

    name = "judge"

    def __init__(self, judge: Judge) -> None:
        self.judge = judge

    async def select(self, state: RoundState, tally: dict[str, int]) -> list[str]:
        tied = lowest_tally(tally)
        if len(tied) <= 1:
            return tied
        ruling = await self.judge.break_tie(state, tied)
        logger.info(
            "Judge broke tie between %s: %s (%s)",
            ", ".join(tied),
            ruling.target_id,
            ruling.justification,
        )
        return [ruling.target_id]


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_PROTOCOLS = ("strike_all", "judge")


def create_protocol(name: str, judge: Judge | None = None) -> StrikeProtocol:
    """Instantiate a strike protocol by name.

    The ``judge`` protocol needs a :class:`Judge`.
    """
    key = name.lower()
    if key == "strike_all":
        return StrikeAllProtocol()
    if key == "judge":
        if judge is None:
            raise ValueError("The 'judge' protocol needs a Judge instance")
        return JudgeTieBreakProtocol(judge)
    raise ValueError(f"Unknown protocol {name!r}. Choose from {list(_PROTOCOLS)}")
