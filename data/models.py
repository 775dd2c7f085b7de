"""Pydantic models for games, rounds and their artifacts.

Field order matches the JSON the browser client consumes, so
``model_dump(mode="json")`` can be sent over the wire as-is.
"""

from __future__ import annotations

import uuid
from enum import Enum

from pydantic import BaseModel, Field

DEFAULT_NUM_AGENTS = 4
DEFAULT_MAX_STRIKES = 2


class GameStatus(str, Enum):
    """Lifecycle of a game. Only ever moves forward."""

    WAITING = "waiting"
    RUNNING = "running"
    FINISHED = "finished"


class Agent(BaseModel):
    """A contestant. ``strikes`` only grows; ``eliminated`` flips once."""

    id: str
    name: str
    strikes: int = 0
    eliminated: bool = False


class Answer(BaseModel):
    agent_id: str
    text: str


class DebateMessage(BaseModel):
    agent_id: str
    turn: int
    text: str


class Vote(BaseModel):
    voter_id: str
    target_id: str
    justification: str = ""


class Round(BaseModel):
    """One answer → debate → vote → resolution cycle."""

    index: int
    question: str
    answers: list[Answer] = Field(default_factory=list)
    debate: list[DebateMessage] = Field(default_factory=list)
    votes: list[Vote] = Field(default_factory=list)
    eliminated: list[str] = Field(default_factory=list)


class Game(BaseModel):
    """Aggregate root. Agents are fixed at creation; rounds are append-only."""

    id: str
    agents: list[Agent] = Field(default_factory=list)
    rounds: list[Round] = Field(default_factory=list)
    max_strikes: int = DEFAULT_MAX_STRIKES
    status: GameStatus = GameStatus.WAITING

    # Bumped by the store on every successful update; never serialised.
    version: int = Field(default=0, exclude=True)

    def active_agents(self) -> list[Agent]:
        """Agents still in the game, in creation order."""
        return [a for a in self.agents if not a.eliminated]

    def next_round_index(self) -> int:
        return len(self.rounds) + 1

    def agent(self, agent_id: str) -> Agent | None:
        for a in self.agents:
            if a.id == agent_id:
                return a
        return None


def create_game(num_agents: int = DEFAULT_NUM_AGENTS, max_strikes: int = DEFAULT_MAX_STRIKES) -> Game:
    """Build a fresh game. Non-positive parameters fall back to the defaults."""
    if num_agents <= 0:
        num_agents = DEFAULT_NUM_AGENTS
    if max_strikes <= 0:
        max_strikes = DEFAULT_MAX_STRIKES

    agents = [
        Agent(id=f"agent-{i}", name=f"Agent {i}") for i in range(1, num_agents + 1)
    ]
    return Game(
        id=str(uuid.uuid4()),
        agents=agents,
        max_strikes=max_strikes,
        status=GameStatus.WAITING,
    )
