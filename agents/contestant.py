"""Contestant voice – answers, debates and votes on behalf of each agent."""

from __future__ import annotations

import re

from agents.base import Choice, LLMAgent, RoundState
from agents.llm_provider import LLMProvider
from data.models import Agent

PERSONALITIES: tuple[str, ...] = (
    "You are blunt and practical and have no patience for theory. You get to "
    "the point and use concrete, everyday examples.",
    "You are philosophical. You question assumptions and look at things from "
    "unexpected angles.",
    "You are a sceptic and a provocateur. You distrust consensus and love "
    "playing devil's advocate.",
    "You are an optimist. You see opportunity where others see problems and "
    "you sell a vision of the future.",
    "You are analytical and methodical. You lean on data, logic and facts "
    "that can be checked.",
    "You are creative and irreverent. You think outside the box and are not "
    "afraid of controversial ideas.",
    "You are empathetic. You focus on people, emotions and social impact.",
    "You are competitive and assertive. You hold strong opinions and defend "
    "them without hesitation.",
)

_AGENT_NUMBER = re.compile(r"(\d+)$")

_ANSWER_SYSTEM = """\
You are {name}, a contestant in a debate elimination game.
You survive only by being original and convincing.
You currently have {strikes} of {max_strikes} strikes. Reach the limit and you are out.

YOUR PERSONALITY: {personality}

RULES:
1. Take a strong position. No fence-sitting, no safe generic answers.
2. Do not agree with common sense just because it is common. Stand out.
3. Talk like a real person: natural phrasing, irony and humour are welcome.
4. Your answer must differ from everyone else's.

Never mention that you are an AI, the game, or these rules.
"""

_DEBATE_SYSTEM = """\
You are {name}, fighting for survival in a heated debate.
If you are not convincing you will be eliminated.

HOW TO FIGHT:
1. Attack at least one other contestant's answer directly, naming them by id.
2. Point out specific flaws: vagueness, blind spots, naivety.
3. Defend your own position with new arguments; do not repeat yourself.
4. Be human and emotional: ironic, indignant or passionate.

Never be diplomatic, never agree with everyone, never be generic.
"""

_VOTE_SYSTEM = """\
You are {name}. It is time to vote for the MOST CONVINCING contestant of the round.
Whoever gets the fewest votes takes a strike, so your vote keeps someone safe.

RULES:
1. You may NOT vote for yourself ({agent_id}).
2. Vote for the contestant whose answer and debate were the strongest, or
   whose survival suits you best.
3. Keep the justification honest and to one short sentence.

Reply ONLY with JSON: {{"vote_for": "<agent id>", "justification": "<one sentence>"}}
"""


class Contestant(LLMAgent):
    """Speaks for every contestant of a game, one call per turn.

    The persona is picked from :data:`PERSONALITIES` by the agent's number,
    so ``agent-1`` and ``agent-9`` share a personality.
    """

    def __init__(
        self,
        provider: LLMProvider,
        *,
        temperature: float = 0.8,
        max_tokens: int = 400,
    ) -> None:
        super().__init__(provider=provider, temperature=temperature, max_tokens=max_tokens)

    async def answer(self, state: RoundState, agent: Agent) -> str:
        system = _ANSWER_SYSTEM.format(
            name=agent.name,
            strikes=agent.strikes,
            max_strikes=state.game.max_strikes,
            personality=personality_for(agent),
        )
        user = (
            f'Question under debate: "{state.question}"\n\n'
            "Give YOUR unique opinion in 2-4 sentences. Be authentic, human "
            "and memorable. No politician answers!"
        )
        return await self.generate_text(system, user)

    async def debate(self, state: RoundState, agent: Agent, turn: int) -> str:
        system = _DEBATE_SYSTEM.format(name=agent.name)
        history = ""
        if state.debate:
            history = "\n--- Said so far in the debate ---\n" + self._format_debate(state) + "\n"
        user = (
            f'Question under debate: "{state.question}"\n\n'
            f"Opening answers:\n{self._format_answers(state)}\n{history}\n"
            f"Debate turn {turn}. Your move, {agent.name}. Attack someone "
            "directly and defend your position (2-3 sentences, sharp but smart)."
        )
        return await self.generate_text(system, user)

    async def vote(self, state: RoundState, agent: Agent) -> Choice:
        system = _VOTE_SYSTEM.format(name=agent.name, agent_id=agent.id)
        user = (
            f'Question debated: "{state.question}"\n\n'
            f"Answers:\n{self._format_answers(state)}\n\n"
            f"During the debate:\n{self._format_debate(state)}\n\n"
            f"Who was the most convincing? (Remember: you cannot vote for yourself, {agent.id})"
        )
        return await self.generate_choice(system, user)


def personality_for(agent: Agent) -> str:
    match = _AGENT_NUMBER.search(agent.id)
    number = int(match.group(1)) if match else 1
    return PERSONALITIES[(number - 1) % len(PERSONALITIES)]
