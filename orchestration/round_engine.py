"""RoundEngine – plays one round of a game from answers to eliminations.

Phases run strictly in order (answers, debate turns, votes, resolution) and
every phase walks the active agents in creation order, one generation call
at a time. Each call sees every artifact produced before it in the round.
The engine works on a private copy of the game, so a round that fails or is
cancelled leaves the caller's game untouched.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from agents.base import Choice, RoundState
from agents.contestant import Contestant
from data.errors import CancellationError, StateError
from data.models import Agent, Answer, DebateMessage, Game, GameStatus, Round, Vote
from evaluation.metrics import tally_votes
from evaluation.validators import RoundValidator
from orchestration import events
from orchestration.observers import RoundObserver
from orchestration.protocols import StrikeAllProtocol, StrikeProtocol

logger = logging.getLogger(__name__)

DEFAULT_DEBATE_TURNS = 2
FALLBACK_VOTE_JUSTIFICATION = "Picked another contestant to respect the rules of the game."


@dataclass
class RoundResult:
    """Updated game plus the round that was just appended to it."""

    game: Game
    round: Round

    def to_dict(self) -> dict[str, Any]:
        return {
            "game": self.game.model_dump(mode="json"),
            "round": self.round.model_dump(mode="json"),
        }


class RoundEngine:
    """Drives the phase state machine of a round.

    Parameters
    ----------
    contestant : Contestant
        Voice used for every answer, debate message and vote.
    protocol : StrikeProtocol | None
        Who takes a strike once votes are tallied. Defaults to striking
        everyone on the lowest tally.
    debate_turns : int
        Number of debate passes over the active agents.
    """

    def __init__(
        self,
        contestant: Contestant,
        protocol: StrikeProtocol | None = None,
        debate_turns: int = DEFAULT_DEBATE_TURNS,
        validator: RoundValidator | None = None,
    ) -> None:
        self.contestant = contestant
        self.protocol = protocol or StrikeAllProtocol()
        self.debate_turns = debate_turns if debate_turns > 0 else DEFAULT_DEBATE_TURNS
        self.validator = validator or RoundValidator()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run_round(
        self,
        game: Game,
        question: str,
        observer: RoundObserver | None = None,
        *,
        timeout: float | None = None,
    ) -> RoundResult:
        """Play one round and return the updated copy of *game*.

        Preconditions are checked before any generation call. A generation
        failure or an expired *timeout* aborts the whole round; *game* itself
        is never modified.
        """
        self.validator.check_can_play(game, question)
        observer = observer or RoundObserver()
        try:
            return await asyncio.wait_for(self._play(game, question, observer), timeout)
        except asyncio.TimeoutError:
            logger.warning("Round on game %s timed out after %ss", game.id, timeout)
            raise CancellationError(f"round timed out after {timeout}s") from None

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _play(self, game: Game, question: str, observer: RoundObserver) -> RoundResult:
        working = game.model_copy(deep=True)
        active = working.active_agents()
        state = RoundState(game=working, question=question, index=working.next_round_index())

        logger.info(
            "Starting round %d of game %s: '%s' [%d active agents, %d debate turns]",
            state.index,
            working.id,
            question,
            len(active),
            self.debate_turns,
        )

        state = await self._answer_phase(state, active, observer)
        await observer.on_phase(events.ANSWERS_DONE)

        state = await self._debate_phase(state, active, observer)
        await observer.on_phase(events.DEBATE_DONE)

        state = await self._vote_phase(state, active, observer)

        return await self._resolve(game, working, state, active)

    async def _answer_phase(
        self, state: RoundState, active: list[Agent], observer: RoundObserver
    ) -> RoundState:
        for agent in active:
            text = await self.contestant.answer(state, agent)
            answer = Answer(agent_id=agent.id, text=text)
            state = state.with_answer(answer)
            await observer.on_answer(answer)
        return state

    async def _debate_phase(
        self, state: RoundState, active: list[Agent], observer: RoundObserver
    ) -> RoundState:
        for turn in range(1, self.debate_turns + 1):
            for agent in active:
                text = await self.contestant.debate(state, agent, turn)
                message = DebateMessage(agent_id=agent.id, turn=turn, text=text)
                state = state.with_debate(message)
                await observer.on_debate(message)
        return state

    async def _vote_phase(
        self, state: RoundState, active: list[Agent], observer: RoundObserver
    ) -> RoundState:
        for agent in active:
            choice = await self.contestant.vote(state, agent)
            vote = self._checked_vote(agent, choice, active)
            state = state.with_vote(vote)
            await observer.on_vote(vote)
        return state

    async def _resolve(
        self, original: Game, working: Game, state: RoundState, active: list[Agent]
    ) -> RoundResult:
        tally = tally_votes(state.votes, [a.id for a in active])
        struck = set(await self.protocol.select(state, tally))

        eliminated: list[str] = []
        for agent in active:
            if agent.id not in struck:
                continue
            agent.strikes += 1
            if agent.strikes >= working.max_strikes:
                agent.eliminated = True
                eliminated.append(agent.id)
                logger.info("%s eliminated with %d strikes", agent.id, agent.strikes)

        rnd = Round(
            index=state.index,
            question=state.question,
            answers=list(state.answers),
            debate=list(state.debate),
            votes=list(state.votes),
            eliminated=eliminated,
        )
        working.rounds.append(rnd)
        remaining = len(working.active_agents())
        working.status = GameStatus.FINISHED if remaining <= 1 else GameStatus.RUNNING

        check = self.validator.validate_round(original, working, rnd)
        if not check:
            raise StateError("round broke game invariants: " + "; ".join(check.issues))

        logger.info(
            "Round %d of game %s resolved: tally=%s struck=%s eliminated=%s status=%s",
            rnd.index,
            working.id,
            tally,
            sorted(struck),
            eliminated,
            working.status.value,
        )
        return RoundResult(game=working, round=rnd)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _checked_vote(voter: Agent, choice: Choice, active: list[Agent]) -> Vote:
        """Turn a decoded choice into a vote that never targets the voter.

        An empty or self-targeted choice is replaced by the first other
        active agent.
        """
        target = choice.target_id.strip()
        justification = choice.justification
        if not target or target == voter.id:
            fallback = next((a.id for a in active if a.id != voter.id), None)
            if fallback is None:
                raise StateError("no vote target available")
            logger.warning(
                "%s voted for %r; substituting %s",
                voter.id,
                choice.target_id,
                fallback,
            )
            target = fallback
            if not justification:
                justification = FALLBACK_VOTE_JUSTIFICATION
        return Vote(voter_id=voter.id, target_id=target, justification=justification)
