"""OpenRouter LLM client for TrendForge.

Async httpx client for the OpenAI-compatible chat completions endpoint, with
retry/backoff per model and a fallback chain with per-model cooldown.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Any, Optional

import httpx

from src.core.config import LLMConfig
from src.core.exceptions import (
    AuthenticationError,
    LLMError,
    ModelNotFoundError,
    RateLimitError,
)
from src.llm.response_parser import parse_json_object

logger = logging.getLogger("trendforge.llm")


class LLMMessage:
    """A single message in a conversation."""

    def __init__(self, role: str, content: str):
        self.role = role
        self.content = content

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def system(cls, content: str) -> "LLMMessage":
        return cls("system", content)

    @classmethod
    def user(cls, content: str) -> "LLMMessage":
        return cls("user", content)


class LLMResponse:
    """Parsed response from the LLM."""

    def __init__(self, content: str, model: str, tokens_used: int = 0, raw: Optional[dict] = None):
        self.content = content
        self.model = model
        self.tokens_used = tokens_used
        self.raw = raw or {}


class OpenRouterClient:
    """Async client for OpenRouter. Model IDs come from config/models.yaml."""

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or LLMConfig()
        self.api_key = api_key or os.getenv("OPENROUTER_API_KEY", "")
        self.base_url = self.config.base_url.rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._model_failure_counts: dict[str, int] = {}
        self._model_cooldown_until: dict[str, float] = {}

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def complete(
        self,
        messages: list[LLMMessage],
        model: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """Send one chat completion request, retrying transient failures.

        Args:
            messages: Conversation messages.
            model: OpenRouter model ID (e.g., "anthropic/claude-sonnet-4").
            temperature: Sampling temperature (default from config).
            max_tokens: Max response tokens (default from config).
        """
        if not self.api_key:
            raise AuthenticationError("OPENROUTER_API_KEY not set")

        payload: dict[str, Any] = {
            "model": model,
            "messages": [m.to_dict() for m in messages],
            "temperature": temperature if temperature is not None else self.config.default_temperature,
            "max_tokens": max_tokens or self.config.default_max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": "TrendForge",
        }
        return await self._post_with_retry(payload, headers)

    async def complete_with_fallback(
        self,
        messages: list[LLMMessage],
        models: list[str],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """Try a model chain in order; models in cooldown are skipped."""
        chain: list[str] = []
        for model in [*models, *self.config.fallback_models]:
            if model and model not in chain:
                chain.append(model)
        if not chain:
            raise LLMError("No models provided for completion")

        failures: list[str] = []
        for model in chain:
            remaining = self._cooldown_remaining(model)
            if remaining > 0:
                failures.append(f"{model}: cooling down ({remaining:.1f}s)")
                logger.warning("Skipping model '%s' (cooldown %.1fs remaining)", model, remaining)
                continue
            try:
                response = await self.complete(messages, model, temperature, max_tokens)
            except AuthenticationError:
                raise
            except LLMError as exc:
                failures.append(f"{model}: {exc}")
                self._record_failure(model, exc)
                logger.warning("Model '%s' failed, trying next fallback", model)
                continue
            self._model_failure_counts.pop(model, None)
            return response

        raise LLMError("All models failed.\n" + "\n".join(failures))

    async def complete_json(
        self,
        messages: list[LLMMessage],
        models: list[str],
        temperature: Optional[float] = None,
    ) -> dict[str, Any]:
        """Completion whose reply must contain a JSON object."""
        response = await self.complete_with_fallback(messages, models, temperature)
        return parse_json_object(response.content)

    async def _post_with_retry(self, payload: dict, headers: dict) -> LLMResponse:
        attempts = self.config.provider_retries + 1
        base = self.config.provider_backoff_seconds
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            try:
                resp = await self.client.post(
                    f"{self.base_url}/chat/completions", json=payload, headers=headers,
                )
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                last_error = exc
                logger.warning("Network error on attempt %d: %s", attempt + 1, exc)
                await self._sleep_before_retry(attempt, attempts, base)
                continue

            if resp.status_code == 401:
                raise AuthenticationError("Invalid API key")
            if resp.status_code == 404:
                raise ModelNotFoundError(f"Model not found: {payload.get('model')}")
            if resp.status_code == 429 or resp.status_code >= 500:
                last_error = (
                    RateLimitError("Rate limited") if resp.status_code == 429
                    else LLMError(f"Server error {resp.status_code}")
                )
                logger.warning("%s on attempt %d", last_error, attempt + 1)
                await self._sleep_before_retry(attempt, attempts, base)
                continue
            if resp.status_code >= 400:
                raise LLMError(f"HTTP {resp.status_code}: {resp.text[:200]}")

            try:
                data = resp.json()
                content = data["choices"][0]["message"]["content"] or ""
            except (ValueError, KeyError, IndexError, TypeError) as exc:
                raise LLMError(f"Malformed completion payload: {exc}") from exc

            model = data.get("model", payload.get("model", "unknown"))
            tokens = data.get("usage", {}).get("total_tokens", 0)
            logger.debug("LLM response: model=%s tokens=%d", model, tokens)
            return LLMResponse(content=content, model=model, tokens_used=tokens, raw=data)

        if isinstance(last_error, RateLimitError):
            raise last_error
        raise LLMError(f"Request failed after {attempts} attempts: {last_error}")

    async def _sleep_before_retry(self, attempt: int, attempts: int, base: float) -> None:
        if attempt < attempts - 1:
            await asyncio.sleep(_backoff_delay(attempt, base))

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
        self._model_failure_counts.clear()
        self._model_cooldown_until.clear()

    def _cooldown_remaining(self, model: str) -> float:
        until = self._model_cooldown_until.get(model)
        if until is None:
            return 0.0
        remaining = until - time.monotonic()
        if remaining <= 0:
            del self._model_cooldown_until[model]
            return 0.0
        return remaining

    def _record_failure(self, model: str, error: Exception) -> None:
        count = self._model_failure_counts.get(model, 0) + 1
        threshold = max(1, self.config.model_failure_threshold)
        if count < threshold:
            self._model_failure_counts[model] = count
            return

        cooldown = max(1, self.config.model_cooldown_seconds)
        self._model_cooldown_until[model] = time.monotonic() + cooldown
        self._model_failure_counts[model] = 0
        logger.warning(
            "Model '%s' cooling down for %ds after %d consecutive failures (%s)",
            model, cooldown, threshold, type(error).__name__,
        )


def _backoff_delay(attempt: int, base_seconds: float = 2.0) -> float:
    """Exponential backoff: 2s, 4s, 8s, ... capped at 60s."""
    return min(base_seconds * (2 ** attempt), 60)
