"""Validators for round requests and completed rounds."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from data.errors import StateError, ValidationError
from data.models import Game, GameStatus, Round

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Outcome of a validation check."""

    valid: bool
    issues: list[str]

    def __bool__(self) -> bool:
        return self.valid


class RoundValidator:
    """Checks run before a round starts and after it resolves."""

    def check_can_play(self, game: Game, question: str) -> None:
        """Raise before any generation call if the round cannot run.

        ``StateError`` for a finished game, ``ValidationError`` for an empty
        question or a game with nobody left, ``StateError`` again for a lone
        survivor who has nobody to vote for.
        """
        if game.status == GameStatus.FINISHED:
            raise StateError("game already finished")
        if not question or not question.strip():
            raise ValidationError("question is required")
        if not game.active_agents():
            raise ValidationError("no active agents in game")
        if len(game.active_agents()) < 2:
            raise StateError("at least two active agents are needed to vote")

    def validate_round(self, before: Game, after: Game, rnd: Round) -> ValidationResult:
        """Check a resolved round against the invariants of the game."""
        issues: list[str] = []

        if rnd.index != len(before.rounds) + 1:
            issues.append(f"round index {rnd.index} does not follow {len(before.rounds)}")

        active_before = {a.id for a in before.active_agents()}
        for vote in rnd.votes:
            if vote.target_id == vote.voter_id:
                issues.append(f"{vote.voter_id} voted for itself")
            if vote.voter_id not in active_before:
                issues.append(f"{vote.voter_id} voted but was not active")

        old = {a.id: a for a in before.agents}
        for agent in after.agents:
            prev = old.get(agent.id)
            if prev is None:
                issues.append(f"{agent.id} appeared mid-game")
                continue
            if agent.strikes < prev.strikes:
                issues.append(f"{agent.id} lost strikes")
            if prev.eliminated and (not agent.eliminated or agent.strikes != prev.strikes):
                issues.append(f"{agent.id} changed after elimination")

        if len(after.active_agents()) > len(before.active_agents()):
            issues.append("active agent count grew")

        if _status_rank(after.status) < _status_rank(before.status):
            issues.append(f"status moved back from {before.status.value} to {after.status.value}")

        if issues:
            logger.warning(
                "Round %d of game %s failed validation: %s",
                rnd.index,
                after.id,
                "; ".join(issues),
            )

        return ValidationResult(valid=len(issues) == 0, issues=issues)


_STATUS_ORDER = (GameStatus.WAITING, GameStatus.RUNNING, GameStatus.FINISHED)


def _status_rank(status: GameStatus) -> int:
    return _STATUS_ORDER.index(status)
