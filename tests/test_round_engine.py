"""Tests for orchestration.round_engine."""

from __future__ import annotations

import pytest

from agents.contestant import Contestant
from agents.retry import ProviderStatusError, RateLimitedError, RetryPolicy
from data.errors import CancellationError, ExternalServiceError, StateError, ValidationError
from data.models import Answer, DebateMessage, Game, GameStatus, Vote, create_game
from orchestration import events
from orchestration.observers import RoundObserver
from orchestration.round_engine import FALLBACK_VOTE_JUSTIFICATION, RoundEngine
from tests.conftest import UNIFORM_VOTES, GameScript, MockProvider


class RecordingObserver(RoundObserver):
    def __init__(self) -> None:
        self.seen: list[tuple[str, object]] = []

    async def on_answer(self, answer: Answer) -> None:
        self.seen.append(("answer", answer))

    async def on_debate(self, message: DebateMessage) -> None:
        self.seen.append(("debate", message))

    async def on_vote(self, vote: Vote) -> None:
        self.seen.append(("vote", vote))

    async def on_phase(self, phase: str) -> None:
        self.seen.append(("phase", phase))


def _engine(script: GameScript, **provider_kwargs) -> tuple[RoundEngine, MockProvider]:
    provider = MockProvider(responder=script, **provider_kwargs)
    return RoundEngine(Contestant(provider)), provider


class TestCreateGame:
    def test_four_agents_waiting(self):
        game = create_game(4, 2)
        assert [a.id for a in game.agents] == ["agent-1", "agent-2", "agent-3", "agent-4"]
        assert game.agents[0].name == "Agent 1"
        assert all(a.strikes == 0 and not a.eliminated for a in game.agents)
        assert game.status == GameStatus.WAITING
        assert game.max_strikes == 2
        assert game.rounds == []

    def test_non_positive_parameters_fall_back(self):
        game = create_game(0, -1)
        assert len(game.agents) == 4
        assert game.max_strikes == 2


class TestScenarios:
    @pytest.mark.asyncio
    async def test_single_low_agent_takes_first_strike(self, engine: RoundEngine, game: Game):
        result = await engine.run_round(game, "Is cereal a soup?")

        agents = {a.id: a for a in result.game.agents}
        assert agents["agent-4"].strikes == 1
        assert not agents["agent-4"].eliminated
        assert all(agents[f"agent-{i}"].strikes == 0 for i in (1, 2, 3))
        assert result.round.eliminated == []
        assert result.game.status == GameStatus.RUNNING

    @pytest.mark.asyncio
    async def test_second_strike_eliminates(self, engine: RoundEngine, game: Game):
        first = await engine.run_round(game, "Q1")
        second = await engine.run_round(first.game, "Q2")

        agent4 = second.game.agent("agent-4")
        assert agent4.strikes == 2
        assert agent4.eliminated
        assert second.round.eliminated == ["agent-4"]
        assert len(second.game.active_agents()) == 3
        assert second.game.status == GameStatus.RUNNING

    @pytest.mark.asyncio
    async def test_uniform_tally_strikes_everyone(self, game: Game):
        engine, _ = _engine(GameScript(votes=dict(UNIFORM_VOTES)))
        result = await engine.run_round(game, "Q")

        assert [a.strikes for a in result.game.agents] == [1, 1, 1, 1]
        assert result.round.eliminated == []

    @pytest.mark.asyncio
    async def test_uniform_tally_can_eliminate_everyone(self, game: Game):
        engine, _ = _engine(GameScript(votes=dict(UNIFORM_VOTES)))
        first = await engine.run_round(game, "Q1")
        second = await engine.run_round(first.game, "Q2")

        assert second.round.eliminated == ["agent-1", "agent-2", "agent-3", "agent-4"]
        assert second.game.active_agents() == []
        assert second.game.status == GameStatus.FINISHED

    @pytest.mark.asyncio
    async def test_empty_question_makes_no_calls(
        self, engine: RoundEngine, game: Game, game_provider: MockProvider
    ):
        with pytest.raises(ValidationError, match="question is required"):
            await engine.run_round(game, "   ")
        assert game_provider.call_log == []


class TestPreconditions:
    @pytest.mark.asyncio
    async def test_finished_game_rejected(
        self, engine: RoundEngine, game: Game, game_provider: MockProvider
    ):
        game.status = GameStatus.FINISHED
        with pytest.raises(StateError, match="already finished"):
            await engine.run_round(game, "Q")
        assert game_provider.call_log == []

    @pytest.mark.asyncio
    async def test_no_active_agents_rejected(self, engine: RoundEngine, game: Game):
        for agent in game.agents:
            agent.eliminated = True
        with pytest.raises(ValidationError, match="no active agents"):
            await engine.run_round(game, "Q")


class TestOrdering:
    @pytest.mark.asyncio
    async def test_observer_sees_artifacts_in_order(self, engine: RoundEngine, game: Game):
        observer = RecordingObserver()
        result = await engine.run_round(game, "Q", observer)

        kinds = [kind for kind, _ in observer.seen]
        assert kinds == (
            ["answer"] * 4
            + ["phase"]
            + ["debate"] * 8
            + ["phase"]
            + ["vote"] * 4
        )
        phases = [payload for kind, payload in observer.seen if kind == "phase"]
        assert phases == [events.ANSWERS_DONE, events.DEBATE_DONE]

        emitted_debate = [payload for kind, payload in observer.seen if kind == "debate"]
        assert emitted_debate == result.round.debate

    @pytest.mark.asyncio
    async def test_debate_is_turn_major(self, engine: RoundEngine, game: Game):
        result = await engine.run_round(game, "Q")
        order = [(m.turn, m.agent_id) for m in result.round.debate]
        assert order == [
            (turn, f"agent-{i}") for turn in (1, 2) for i in (1, 2, 3, 4)
        ]

    @pytest.mark.asyncio
    async def test_debate_context_grows_within_round(self, engine: RoundEngine, game: Game):
        result = await engine.run_round(game, "Q")
        seen = [int(m.text.rsplit("after ", 1)[1].split()[0]) for m in result.round.debate]
        assert seen == list(range(8))

    @pytest.mark.asyncio
    async def test_calls_are_sequential_one_per_agent_per_step(
        self, engine: RoundEngine, game: Game, game_provider: MockProvider
    ):
        await engine.run_round(game, "Q")
        # 4 answers + 2 turns x 4 debate + 4 votes
        assert len(game_provider.call_log) == 16

    @pytest.mark.asyncio
    async def test_eliminated_agents_sit_out(self, engine: RoundEngine, game: Game):
        game.agents[0].eliminated = True
        game.agents[0].strikes = 2
        result = await engine.run_round(game, "Q")

        assert [a.agent_id for a in result.round.answers] == ["agent-2", "agent-3", "agent-4"]
        assert all(v.voter_id != "agent-1" for v in result.round.votes)
        assert result.game.agent("agent-1").strikes == 2

    @pytest.mark.asyncio
    async def test_round_indices_are_sequential(self, engine: RoundEngine, game: Game):
        current = game
        for _ in range(2):
            current = (await engine.run_round(current, "Q")).game
        assert [r.index for r in current.rounds] == [1, 2]


class TestVoteFallback:
    @pytest.mark.asyncio
    async def test_self_vote_replaced_by_first_other_active(self, game: Game):
        votes = dict(UNIFORM_VOTES, **{"agent-1": "agent-1"})
        engine, _ = _engine(GameScript(votes=votes))
        result = await engine.run_round(game, "Q")

        vote = result.round.votes[0]
        assert vote.voter_id == "agent-1"
        assert vote.target_id == "agent-2"
        assert vote.justification == "agent-1 was convinced"

    @pytest.mark.asyncio
    async def test_empty_vote_gets_fixed_justification(self, game: Game):
        engine, _ = _engine(GameScript())
        result = await engine.run_round(game, "Q")

        assert all(v.target_id != v.voter_id for v in result.round.votes)
        assert [v.target_id for v in result.round.votes] == [
            "agent-2", "agent-1", "agent-1", "agent-1",
        ]

    @pytest.mark.asyncio
    async def test_fallback_justification_when_none_given(self, game: Game):
        provider = MockProvider(
            responder=lambda messages: (
                '{"vote_for": ""}' if "vote for yourself" in messages[0]["content"] else "text"
            )
        )
        result = await RoundEngine(Contestant(provider)).run_round(game, "Q")
        assert all(v.justification == FALLBACK_VOTE_JUSTIFICATION for v in result.round.votes)

    @pytest.mark.asyncio
    async def test_lone_agent_rejected_before_any_call(self):
        engine, provider = _engine(GameScript())
        game = create_game(1, 2)
        with pytest.raises(StateError, match="at least two"):
            await engine.run_round(game, "Q")
        assert provider.call_log == []

    @pytest.mark.asyncio
    async def test_null_vote_takes_fallback(self, game: Game):
        provider = MockProvider(
            responder=lambda messages: (
                '{"vote_for": null, "justification": null}'
                if "vote for yourself" in messages[0]["content"]
                else "text"
            )
        )
        result = await RoundEngine(Contestant(provider)).run_round(game, "Q")

        assert [v.target_id for v in result.round.votes] == [
            "agent-2", "agent-1", "agent-1", "agent-1",
        ]
        assert all(v.justification == FALLBACK_VOTE_JUSTIFICATION for v in result.round.votes)

    @pytest.mark.asyncio
    async def test_unknown_target_kept_but_not_counted(self, engine: RoundEngine, game: Game):
        result = await engine.run_round(game, "Q")
        assert result.round.votes[3].target_id == "agent-99"
        assert result.game.agent("agent-4").strikes == 1


class TestFailures:
    @pytest.mark.asyncio
    async def test_failure_mid_debate_leaves_game_untouched(self, game: Game):
        failures = [None] * 5 + [ProviderStatusError(503)]
        engine, provider = _engine(GameScript(), failures=failures)
        observer = RecordingObserver()
        before = game.model_dump()

        with pytest.raises(ExternalServiceError) as excinfo:
            await engine.run_round(game, "Q", observer)

        assert excinfo.value.status == 503
        assert game.model_dump() == before
        assert len(provider.call_log) == 6
        assert [kind for kind, _ in observer.seen].count("debate") == 1

    @pytest.mark.asyncio
    async def test_rate_limit_is_absorbed_by_provider(self, game: Game):
        engine, provider = _engine(GameScript(), failures=[RateLimitedError("429")] * 2)
        result = await engine.run_round(game, "Q")

        assert len(result.round.answers) == 4
        assert provider.sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_malformed_vote_aborts_round(self, game: Game):
        provider = MockProvider(
            responder=lambda messages: (
                "not json" if "vote for yourself" in messages[0]["content"] else "text"
            )
        )
        with pytest.raises(ExternalServiceError):
            await RoundEngine(Contestant(provider)).run_round(game, "Q")
        assert game.rounds == []

    @pytest.mark.asyncio
    async def test_timeout_becomes_cancellation(self, game: Game):
        provider = MockProvider(
            responder=GameScript(),
            failures=[RateLimitedError("429")],
            retry_policy=RetryPolicy(base_delay=5.0),
        )
        engine = RoundEngine(Contestant(provider))
        with pytest.raises(CancellationError):
            await engine.run_round(game, "Q", timeout=0.05)
        assert game.rounds == []
        assert len(provider.call_log) == 1


class TestInvariants:
    @pytest.mark.asyncio
    async def test_properties_hold_over_a_whole_game(self, engine: RoundEngine, game: Game):
        current = game
        previous_active = len(current.active_agents())
        previous_strikes = {a.id: a.strikes for a in current.agents}
        while current.status != GameStatus.FINISHED:
            result = await engine.run_round(current, "Q")
            current = result.game

            active = len(current.active_agents())
            assert 0 <= active <= previous_active
            previous_active = active
            for agent in current.agents:
                assert agent.strikes >= previous_strikes[agent.id]
                previous_strikes[agent.id] = agent.strikes
            assert all(v.target_id != v.voter_id for v in result.round.votes)

        assert [r.index for r in current.rounds] == list(range(1, len(current.rounds) + 1))
        with pytest.raises(StateError):
            await engine.run_round(current, "one more")
