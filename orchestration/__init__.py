"""Orchestration layer – round engine, strike protocols and delivery."""

from orchestration.game_service import GameService
from orchestration.observers import RoundObserver, StreamingObserver
from orchestration.protocols import (
    JudgeTieBreakProtocol,
    StrikeAllProtocol,
    StrikeProtocol,
    create_protocol,
)
from orchestration.round_engine import RoundEngine, RoundResult
from orchestration.settings import Settings, load_settings

__all__ = [
    "GameService",
    "JudgeTieBreakProtocol",
    "RoundEngine",
    "RoundObserver",
    "RoundResult",
    "Settings",
    "StreamingObserver",
    "StrikeAllProtocol",
    "StrikeProtocol",
    "create_protocol",
    "load_settings",
]
