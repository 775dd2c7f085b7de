"""Vote tallies and game standings.

``tally_votes`` feeds the strike resolution; ``compute_standings`` is the
read-only summary shown by the CLI after each round.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from data.models import Game, Vote


def tally_votes(votes: Iterable[Vote], active_ids: list[str]) -> dict[str, int]:
    """Count votes received per active agent.

    Every active agent starts at zero so that receiving no votes still takes
    part in the minimum. Votes naming anyone outside *active_ids* are ignored.
    """
    counts = {agent_id: 0 for agent_id in active_ids}
    for vote in votes:
        if vote.target_id in counts:
            counts[vote.target_id] += 1
    return counts


def lowest_tally(counts: dict[str, int]) -> list[str]:
    """Ids sharing the minimum count, in the order of *counts*."""
    if not counts:
        return []
    min_votes = min(counts.values())
    return [agent_id for agent_id, n in counts.items() if n == min_votes]


# ---------------------------------------------------------------------------
# Standings
# ---------------------------------------------------------------------------

@dataclass
class AgentStanding:
    agent_id: str
    name: str
    strikes: int
    eliminated: bool
    votes_received: int = 0
    eliminated_in_round: int | None = None


@dataclass
class GameStandings:
    """Per-agent summary of a game so far."""

    game_id: str
    status: str
    rounds_played: int
    standings: list[AgentStanding] = field(default_factory=list)

    @property
    def active_count(self) -> int:
        return sum(1 for s in self.standings if not s.eliminated)

    def to_dict(self) -> dict[str, Any]:
        return {
            "game_id": self.game_id,
            "status": self.status,
            "rounds_played": self.rounds_played,
            "active_count": self.active_count,
            "standings": [
                {
                    "agent_id": s.agent_id,
                    "name": s.name,
                    "strikes": s.strikes,
                    "eliminated": s.eliminated,
                    "votes_received": s.votes_received,
                    "eliminated_in_round": s.eliminated_in_round,
                }
                for s in self.standings
            ],
        }


def compute_standings(game: Game) -> GameStandings:
    """Summarise strikes, total votes received and elimination round per agent.

    Active agents come first, then eliminated ones; ties keep creation order.
    """
    received: dict[str, int] = {a.id: 0 for a in game.agents}
    eliminated_in: dict[str, int] = {}
    for rnd in game.rounds:
        for vote in rnd.votes:
            if vote.target_id in received:
                received[vote.target_id] += 1
        for agent_id in rnd.eliminated:
            eliminated_in.setdefault(agent_id, rnd.index)

    standings = [
        AgentStanding(
            agent_id=a.id,
            name=a.name,
            strikes=a.strikes,
            eliminated=a.eliminated,
            votes_received=received[a.id],
            eliminated_in_round=eliminated_in.get(a.id),
        )
        for a in game.agents
    ]
    standings.sort(key=lambda s: (s.eliminated, s.strikes))
    return GameStandings(
        game_id=game.id,
        status=game.status.value,
        rounds_played=len(game.rounds),
        standings=standings,
    )
