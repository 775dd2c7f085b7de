"""Evaluation layer – vote tallies, standings and round validators."""

from evaluation.metrics import (
    AgentStanding,
    GameStandings,
    compute_standings,
    lowest_tally,
    tally_votes,
)
from evaluation.validators import RoundValidator, ValidationResult

__all__ = [
    "AgentStanding",
    "GameStandings",
    "RoundValidator",
    "ValidationResult",
    "compute_standings",
    "lowest_tally",
    "tally_votes",
]
