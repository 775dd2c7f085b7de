"""Generation side of the game – LLM providers, retry policy and speakers."""

from agents.base import Choice, LLMAgent, RoundState
from agents.contestant import Contestant
from agents.judge import Judge
from agents.llm_provider import (
    AnthropicProvider,
    CohereProvider,
    GroqProvider,
    LLMProvider,
    LLMResponse,
    OpenAIProvider,
    OpenRouterProvider,
    create_provider,
)
from agents.retry import RetryPolicy

__all__ = [
    "AnthropicProvider",
    "Choice",
    "CohereProvider",
    "Contestant",
    "GroqProvider",
    "Judge",
    "LLMAgent",
    "LLMProvider",
    "LLMResponse",
    "OpenAIProvider",
    "OpenRouterProvider",
    "RetryPolicy",
    "RoundState",
    "create_provider",
]
