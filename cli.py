#!/usr/bin/env python3
"""Command-line interface for AI Hunger Games.

Usage examples:
    python cli.py serve --port 8080
    python cli.py play --question "Is remote work here to stay?" --agents 4
    python cli.py play --agents 5 --max-strikes 3
    python cli.py new-game --agents 6
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click

from data.errors import GameError
from data.models import Answer, DebateMessage, Game, GameStatus, Vote
from evaluation.metrics import compute_standings
from orchestration import events
from orchestration.game_service import GameService
from orchestration.observers import RoundObserver
from orchestration.round_engine import RoundResult
from orchestration.settings import DEFAULT_CONFIG_PATH, Settings, load_settings


# ---------------------------------------------------------------------------
# Live round display
# ---------------------------------------------------------------------------

# Phase labels and ANSI colour codes for terminal output
_PHASE_STYLES: dict[str, tuple[str, str]] = {
    # kind -> (label, ANSI colour code)
    "answer": ("ANSWER", "\033[1;34m"),  # bold blue
    "debate": ("DEBATE", "\033[1;31m"),  # bold red
    "vote":   ("VOTE",   "\033[1;33m"),  # bold yellow
}
_RESET = "\033[0m"
_DIM = "\033[2m"
_BOLD = "\033[1m"


def _print_artifact(kind: str, speaker: str, text: str, detail: str = "") -> None:
    """Pretty-print one answer, debate message or vote."""
    label, colour = _PHASE_STYLES.get(kind, (kind.upper(), _BOLD))

    click.echo(f"\n{colour}{'─' * 60}")
    click.echo(f"  [{label}]  {speaker}{f'  •  {detail}' if detail else ''}")
    click.echo(f"{'─' * 60}{_RESET}")
    for paragraph in text.strip().split("\n"):
        click.echo(f"  {paragraph}")


class ConsoleObserver(RoundObserver):
    """Prints every artifact of a round as soon as the engine produces it."""

    def __init__(self, game: Game) -> None:
        self.names = {a.id: a.name for a in game.agents}

    def _name(self, agent_id: str) -> str:
        return self.names.get(agent_id, agent_id)

    async def on_answer(self, answer: Answer) -> None:
        _print_artifact("answer", self._name(answer.agent_id), answer.text)

    async def on_debate(self, message: DebateMessage) -> None:
        _print_artifact("debate", self._name(message.agent_id), message.text, f"turn {message.turn}")

    async def on_vote(self, vote: Vote) -> None:
        _print_artifact(
            "vote",
            self._name(vote.voter_id),
            vote.justification,
            f"votes for {self._name(vote.target_id)}",
        )

    async def on_phase(self, phase: str) -> None:
        label = {events.ANSWERS_DONE: "Answers are in", events.DEBATE_DONE: "Debate closed"}
        click.echo(f"\n{_DIM}  ── {label.get(phase, phase)} ──{_RESET}")


def _print_round_summary(result: RoundResult) -> None:
    rnd = result.round
    standings = compute_standings(result.game)

    click.echo(f"\n{'=' * 60}")
    click.echo(f"  ROUND {rnd.index} COMPLETE")
    click.echo(f"{'=' * 60}")
    if rnd.eliminated:
        click.echo(f"  Eliminated: {', '.join(rnd.eliminated)}")
    click.echo()
    click.echo(f"  {'Agent':<12} {'Name':<12} {'Strikes':>7} {'Votes':>6}  Status")
    click.echo(f"  {'─' * 12} {'─' * 12} {'─' * 7} {'─' * 6}  {'─' * 10}")
    for s in standings.standings:
        status = f"out (round {s.eliminated_in_round})" if s.eliminated else "active"
        click.echo(
            f"  {s.agent_id:<12} {s.name:<12} "
            f"{s.strikes:>3}/{result.game.max_strikes:<3} {s.votes_received:>6}  {status}"
        )


def _print_winner(game: Game) -> None:
    survivors = game.active_agents()
    click.echo(f"\n{_BOLD}{'=' * 60}")
    if survivors:
        click.echo(f"  WINNER: {survivors[0].name} ({survivors[0].id})")
    else:
        click.echo("  No survivors – everyone was eliminated in the same round.")
    click.echo(f"{'=' * 60}{_RESET}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _build_service(settings: Settings) -> GameService:
    try:
        return GameService.from_settings(settings)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

@click.group()
@click.option("--config", default=DEFAULT_CONFIG_PATH, help="Path to YAML config")
@click.option("--log-level", default="INFO", help="Logging level")
@click.pass_context
def cli(ctx: click.Context, config: str, log_level: str) -> None:
    """AI Hunger Games – LLM contestants debate, vote and eliminate each other."""
    _setup_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = load_settings(config)
    ctx.obj["config_path"] = config


# ---- serve ----------------------------------------------------------------

@cli.command()
@click.option("--host", default=None, help="Bind address (defaults to config)")
@click.option("--port", default=None, type=int, help="Port (defaults to config)")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the HTTP API."""
    import uvicorn

    from api.app import create_app

    settings: Settings = ctx.obj["settings"]
    app = create_app(settings, _build_service(settings))
    host = host or settings.server.host
    port = port or settings.server.port
    click.echo(f"AI Hunger Games running on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")


# ---- play -----------------------------------------------------------------

@cli.command()
@click.option(
    "--question",
    "questions",
    multiple=True,
    help="Question for a round (repeat for several rounds)",
)
@click.option("--agents", "num_agents", default=None, type=int, help="Number of contestants")
@click.option("--max-strikes", default=None, type=int, help="Strikes before elimination")
@click.pass_context
def play(
    ctx: click.Context,
    questions: tuple[str, ...],
    num_agents: int | None,
    max_strikes: int | None,
) -> None:
    """Play a game in the terminal.

    Rounds are played for each --question in turn; without any, you are
    asked for a new question until the game is over.
    """
    settings: Settings = ctx.obj["settings"]
    service = _build_service(settings)
    if num_agents is None:
        num_agents = settings.game.num_agents
    if max_strikes is None:
        max_strikes = settings.game.max_strikes

    async def _run() -> None:
        game = await service.create_game(num_agents, max_strikes)

        click.echo(f"\n{_BOLD}{'=' * 60}")
        click.echo(f"  AI HUNGER GAMES – game {game.id}")
        click.echo(f"{'=' * 60}{_RESET}")
        click.echo(f"  Contestants: {', '.join(a.name for a in game.agents)}")
        click.echo(f"  Max strikes: {game.max_strikes}")

        pending = list(questions)
        while game.status != GameStatus.FINISHED:
            if questions:
                if not pending:
                    break
                question = pending.pop(0)
            else:
                question = click.prompt("\nQuestion for the next round", type=str)

            click.echo(f"\n{_BOLD}  QUESTION: {question}{_RESET}")
            result = await service.play_round(game.id, question, ConsoleObserver(game))
            game = result.game
            _print_round_summary(result)

        if game.status == GameStatus.FINISHED:
            _print_winner(game)

    try:
        asyncio.run(_run())
    except GameError as exc:
        raise click.ClickException(str(exc)) from exc


# ---- new-game -------------------------------------------------------------

@cli.command("new-game")
@click.option("--agents", "num_agents", default=None, type=int, help="Number of contestants")
@click.option("--max-strikes", default=None, type=int, help="Strikes before elimination")
@click.pass_context
def new_game(ctx: click.Context, num_agents: int | None, max_strikes: int | None) -> None:
    """Create a game and print it as JSON (no generation calls)."""
    from data.models import create_game

    settings: Settings = ctx.obj["settings"]
    game = create_game(
        num_agents if num_agents is not None else settings.game.num_agents,
        max_strikes if max_strikes is not None else settings.game.max_strikes,
    )
    click.echo(json.dumps(game.model_dump(mode="json"), indent=2))


# ---------------------------------------------------------------------------

if __name__ == "__main__":
    cli()
