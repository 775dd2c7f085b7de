"""LLM Provider abstraction layer for Groq, OpenAI, Anthropic, Cohere and OpenRouter.

Provides a unified async interface to multiple LLM backends. Every call goes
through one bounded retry loop driven by :class:`agents.retry.RetryPolicy`;
the SDK clients are built with their own retries switched off so that loop
is the only place a request is repeated.
"""

from __future__ import annotations

import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from agents.retry import (
    EmptyResultError,
    ProviderError,
    ProviderStatusError,
    RateLimitedError,
    RetryPolicy,
    TransportError,
)
from data.errors import ExternalServiceError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LLMResponse:
    """Standardised response from any LLM provider."""

    text: str
    tokens_used: int
    model: str
    provider: str
    latency_ms: float
    attempts: int = 1
    raw: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class LLMProvider(ABC):
    """Provider-agnostic interface that all LLM backends implement."""

    name: str  # e.g. "groq", "openai", "anthropic"

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        api_key_env: str | None = None,
        timeout: int = 60,
        retry_policy: RetryPolicy | None = None,
        max_retries: int | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.model = model
        self.timeout = timeout
        # Handed to the SDK client; None lets the SDK build its own.
        self.http_client = http_client
        if retry_policy is None:
            retry_policy = RetryPolicy() if max_retries is None else RetryPolicy(max_retries=max_retries)
        self.retry_policy = retry_policy

        # Resolve API key: explicit > env var > raise
        self.api_key = api_key or os.getenv(api_key_env or "")
        if not self.api_key:
            raise ValueError(
                f"No API key for {self.name}. "
                f"Set {api_key_env!r} or pass api_key explicitly."
            )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float = 0.8,
        max_tokens: int = 400,
        **kwargs: Any,
    ) -> LLMResponse:
        """Generate a response, retrying rate limits and transient failures.

        Raises ``ExternalServiceError`` on a non-retryable status or once all
        attempts are used up. Task cancellation is never swallowed.
        """
        policy = self.retry_policy
        last_exc: ProviderError | None = None

        for attempt in range(policy.max_attempts):
            if attempt > 0:
                await policy.wait(attempt)
            try:
                start = time.perf_counter()
                result = await self._call_api(
                    messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    **kwargs,
                )
            except ProviderStatusError as exc:
                raise ExternalServiceError(
                    f"[{self.name}] {exc}", status=exc.status
                ) from exc
            except ProviderError as exc:
                if not policy.is_retryable(exc):
                    raise ExternalServiceError(f"[{self.name}] {exc}") from exc
                last_exc = exc
                if attempt + 1 < policy.max_attempts:
                    logger.warning(
                        "[%s] Attempt %d/%d failed (%s). Retrying in %.1fs …",
                        self.name,
                        attempt + 1,
                        policy.max_attempts,
                        exc,
                        policy.delay_for_attempt(attempt + 1),
                    )
                continue

            elapsed = (time.perf_counter() - start) * 1000
            response = LLMResponse(
                text=result["text"],
                tokens_used=result.get("tokens_used", 0),
                model=self.model,
                provider=self.name,
                latency_ms=round(elapsed, 1),
                attempts=attempt + 1,
                raw=result.get("raw", {}),
            )
            logger.debug(
                "[%s] %s responded (%d tokens, %.0f ms, attempt %d)",
                self.name,
                self.model,
                response.tokens_used,
                response.latency_ms,
                response.attempts,
            )
            return response

        raise ExternalServiceError(
            f"[{self.name}] max retries exceeded: {last_exc}"
        ) from last_exc

    # ------------------------------------------------------------------
    # Backend-specific implementation (override in subclasses)
    # ------------------------------------------------------------------

    @abstractmethod
    async def _call_api(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Return ``{"text": ..., "tokens_used": ..., "raw": ...}``.

        Must raise ``RateLimitedError`` for 429, ``ProviderStatusError`` for
        any other failed status, ``TransportError`` for connection trouble
        and ``EmptyResultError`` when the backend returns no choices.
        """
        ...

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model!r})"


def _completion(text: str, tokens: int, response: Any) -> dict[str, Any]:
    """Pack a backend reply into the shape ``LLMProvider.generate`` expects."""
    dump = getattr(response, "model_dump", None)
    return {
        "text": text,
        "tokens_used": int(tokens or 0),
        "raw": dump() if callable(dump) else {},
    }


def split_system_prompt(
    messages: list[dict[str, str]],
) -> tuple[str, list[dict[str, str]]]:
    """Separate the system prompt from the conversation turns.

    The last system entry wins; every other message keeps its order.
    """
    system = ""
    turns: list[dict[str, str]] = []
    for message in messages:
        if message["role"] == "system":
            system = message["content"]
            continue
        turns.append(message)
    return system, turns


# ---------------------------------------------------------------------------
# OpenAI-compatible backends (OpenAI, OpenRouter, Groq)
# ---------------------------------------------------------------------------

class OpenAIProvider(LLMProvider):
    """Chat completions over the ``openai`` async client.

    Subclasses that speak the same wire format only set ``name``,
    ``base_url`` and a default key variable.
    """

    name = "openai"
    base_url: str | None = None

    def __init__(self, model: str = "gpt-4o", **kwargs: Any) -> None:
        kwargs.setdefault("api_key_env", "OPENAI_API_KEY")
        super().__init__(model=model, **kwargs)
        import openai
        self._sdk = openai
        self._client = openai.AsyncOpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            max_retries=0,
            timeout=self.timeout,
            http_client=self.http_client,
        )

    async def _call_api(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
        **kwargs: Any,
    ) -> dict[str, Any]:
        sdk = self._sdk
        request = dict(model=self.model, messages=messages,
                       temperature=temperature, max_tokens=max_tokens, **kwargs)
        try:
            completion = await self._client.chat.completions.create(**request)
        except sdk.RateLimitError as exc:
            raise RateLimitedError(str(exc)) from exc
        except sdk.APIStatusError as exc:
            raise ProviderStatusError(exc.status_code, str(exc)) from exc
        except sdk.APIConnectionError as exc:
            raise TransportError(str(exc)) from exc

        if not completion.choices:
            raise EmptyResultError(f"{self.name} returned no choices")
        usage = completion.usage
        return _completion(
            completion.choices[0].message.content or "",
            usage.total_tokens if usage is not None else 0,
            completion,
        )


class OpenRouterProvider(OpenAIProvider):
    """OpenRouter; models are addressed as ``vendor/model``."""

    name = "openrouter"
    base_url = "https://openrouter.ai/api/v1"

    def __init__(self, model: str = "openai/gpt-4o", **kwargs: Any) -> None:
        kwargs.setdefault("api_key_env", "OPENROUTER_API_KEY")
        super().__init__(model=model, **kwargs)


class GroqProvider(OpenAIProvider):
    """Groq, the default contestant backend.

    Reads ``GROQ_API_KEY`` and falls back to ``GROQ_KEY``.
    """

    name = "groq"
    base_url = "https://api.groq.com/openai/v1"

    def __init__(self, model: str = "llama-3.3-70b-versatile", **kwargs: Any) -> None:
        if not kwargs.get("api_key_env"):
            kwargs["api_key_env"] = "GROQ_API_KEY"
        if not kwargs.get("api_key") and not os.getenv(kwargs["api_key_env"]):
            kwargs["api_key"] = os.getenv("GROQ_KEY")
        super().__init__(model=model, **kwargs)


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------

class AnthropicProvider(LLMProvider):
    name = "anthropic"

    def __init__(self, model: str = "claude-sonnet-4-5", **kwargs: Any) -> None:
        kwargs.setdefault("api_key_env", "ANTHROPIC_API_KEY")
        super().__init__(model=model, **kwargs)
        import anthropic
        self._sdk = anthropic
        self._client = anthropic.AsyncAnthropic(
            api_key=self.api_key,
            max_retries=0,
            timeout=self.timeout,
            http_client=self.http_client,
        )

    async def _call_api(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
        **kwargs: Any,
    ) -> dict[str, Any]:
        system, turns = split_system_prompt(messages)
        request: dict[str, Any] = dict(
            model=self.model, messages=turns,
            temperature=temperature, max_tokens=max_tokens, **kwargs,
        )
        if system:
            request["system"] = system

        sdk = self._sdk
        try:
            reply = await self._client.messages.create(**request)
        except sdk.RateLimitError as exc:
            raise RateLimitedError(str(exc)) from exc
        except sdk.APIStatusError as exc:
            raise ProviderStatusError(exc.status_code, str(exc)) from exc
        except sdk.APIConnectionError as exc:
            raise TransportError(str(exc)) from exc

        if not reply.content:
            raise EmptyResultError(f"{self.name} returned no content blocks")
        usage = reply.usage
        spent = usage.input_tokens + usage.output_tokens if usage is not None else 0
        return _completion(reply.content[0].text, spent, reply)


# ---------------------------------------------------------------------------
# Cohere
# ---------------------------------------------------------------------------

class CohereProvider(LLMProvider):
    """Cohere's v2 chat endpoint; errors arrive as ``ApiError`` or raw httpx failures.

    The SDK retries 408/409/429/5xx by itself unless each call sets
    ``max_retries`` in its request options.
    """

    name = "cohere"

    def __init__(self, model: str = "command-r-plus", **kwargs: Any) -> None:
        kwargs.setdefault("api_key_env", "COHERE_API_KEY")
        super().__init__(model=model, **kwargs)
        import cohere
        self._client = cohere.AsyncClientV2(
            api_key=self.api_key, timeout=self.timeout, httpx_client=self.http_client
        )

    async def _call_api(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
        **kwargs: Any,
    ) -> dict[str, Any]:
        from cohere.core.api_error import ApiError

        try:
            reply = await self._client.chat(
                model=self.model, messages=messages,
                temperature=temperature, max_tokens=max_tokens,
                request_options={"max_retries": 0},
                **kwargs,
            )
        except ApiError as exc:
            status = exc.status_code or 0
            if status == 429:
                raise RateLimitedError(str(exc)) from exc
            raise ProviderStatusError(status, str(exc)) from exc
        except httpx.TransportError as exc:
            raise TransportError(str(exc)) from exc

        blocks = reply.message.content if reply.message else None
        if not blocks:
            raise EmptyResultError(f"{self.name} returned no content blocks")
        billed = reply.usage.tokens if reply.usage else None
        spent = (billed.input_tokens or 0) + (billed.output_tokens or 0) if billed else 0
        return _completion(blocks[0].text, spent, reply)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_PROVIDERS: dict[str, type[LLMProvider]] = {
    "groq": GroqProvider,
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "cohere": CohereProvider,
    "openrouter": OpenRouterProvider,
}


def create_provider(name: str, **kwargs: Any) -> LLMProvider:
    """Instantiate an LLM provider by its short name.

    >>> provider = create_provider("groq", model="llama-3.3-70b-versatile")
    """
    cls = _PROVIDERS.get(name.lower())
    if cls is None:
        raise ValueError(
            f"Unknown provider {name!r}. Choose from {list(_PROVIDERS)}"
        )
    return cls(**kwargs)
