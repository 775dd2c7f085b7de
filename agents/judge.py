"""Judge agent – breaks ties when several contestants share the lowest tally."""

from __future__ import annotations

import logging

from agents.base import Choice, LLMAgent, RoundState
from agents.llm_provider import LLMProvider

logger = logging.getLogger(__name__)

FALLBACK_JUSTIFICATION = "The judge settled on this contestant."

_SYSTEM_PROMPT = """\
You are the SUPREME JUDGE of a debate elimination game.
The vote ended in a TIE. These contestants received the same, lowest number
of votes: {tied}

Your decision is final. Pick exactly ONE of them to take the strike.

CRITERIA:
1. Who gave the weakest or vaguest answer?
2. Who defended their position worst in the debate?
3. Who was least convincing overall?

Be fair but merciless. Someone MUST take the strike.

Reply ONLY with JSON: {{"vote_for": "<agent id>", "justification": "<ruling in one sentence>"}}
"""


class Judge(LLMAgent):
    """Agent that picks one contestant out of a tied set."""

    def __init__(
        self,
        provider: LLMProvider,
        *,
        temperature: float = 0.4,
        max_tokens: int = 200,
    ) -> None:
        super().__init__(provider=provider, temperature=temperature, max_tokens=max_tokens)

    async def break_tie(self, state: RoundState, tied: list[str]) -> Choice:
        """Return the judge's pick, always one of *tied*.

        A ruling naming anyone outside *tied* is replaced by the first tied
        id with a stock justification.
        """
        tied_list = ", ".join(tied)
        system = _SYSTEM_PROMPT.format(tied=tied_list)
        user = (
            f'Question debated: "{state.question}"\n\n'
            f"Answers:\n{self._format_answers(state)}\n\n"
            f"During the debate:\n{self._format_debate(state)}\n\n"
            f"The tied contestants are: {tied_list}\n\n"
            "Which of them deserves the strike? Decide now, Judge!"
        )
        choice = await self.generate_choice(system, user)
        if choice.target_id not in tied and tied:
            logger.warning(
                "Judge picked %r outside the tie %s; using %s",
                choice.target_id,
                tied,
                tied[0],
            )
            return Choice(target_id=tied[0], justification=FALLBACK_JUSTIFICATION)
        return choice
