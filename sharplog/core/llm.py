"""LLM interface: wraps the OpenAI API (or an OpenAI-compatible endpoint) for turn and summary calls."""

from __future__ import annotations
import time
import logging
from typing import Any, Protocol

import openai
from openai import OpenAI

from sharplog.config import LLMConfig
from .errors import AIServiceError

logger = logging.getLogger("sharplog.llm")

RETRY_DELAY = 2.0


class TextGenerator(Protocol):
    """What the turn executor and summarizer need from a model provider."""

    def chat(
        self,
        messages: list[dict],
        model: str,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        timeout: float | None = None,
    ) -> dict:
        """Return {"content": str, "tokens": {...}} or raise AIServiceError."""
        ...


class LLMClient:
    """Thin wrapper around the OpenAI client for SharpLog's needs."""

    # Models that don't support custom temperature
    NO_TEMP_MODELS = {"gpt-5-mini", "gpt-5-nano", "gpt-5-mini-2025-08-07", "gpt-5-nano-2025-08-07"}

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        provider: str = "openai",
        max_retries: int = 1,
        default_timeout: float = 30.0,
    ):
        kwargs: dict[str, Any] = {"max_retries": 0, "timeout": default_timeout}
        if api_key:
            kwargs["api_key"] = api_key
        if base_url:
            kwargs["base_url"] = base_url
        self.client = OpenAI(**kwargs)
        self.provider = provider
        self.max_retries = max(1, max_retries)
        self._total_tokens = 0
        self._total_calls = 0

    @property
    def stats(self) -> dict:
        return {
            "provider": self.provider,
            "total_tokens": self._total_tokens,
            "total_calls": self._total_calls,
        }

    def chat(
        self,
        messages: list[dict],
        model: str,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        timeout: float | None = None,
    ) -> dict:
        """
        Make a chat completion call and return the raw text content.

        Transport failures, timeouts and API errors are raised as
        AIServiceError once max_retries attempts have been used.
        """
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
        }
        model_base = model.split("-2025")[0] if "-2025" in model else model
        if model_base not in self.NO_TEMP_MODELS:
            kwargs["temperature"] = temperature
        if max_tokens:
            # gpt-5-mini/nano use max_completion_tokens instead of max_tokens
            if model_base in self.NO_TEMP_MODELS:
                kwargs["max_completion_tokens"] = max_tokens
            else:
                kwargs["max_tokens"] = max_tokens
        if timeout:
            kwargs["timeout"] = timeout

        last_error: Exception | None = None
        for attempt in range(self.max_retries):
            try:
                response = self.client.chat.completions.create(**kwargs)
            except openai.APITimeoutError as e:
                logger.warning(f"{self.provider} call timed out (attempt {attempt+1}): {e}")
                last_error = e
            except openai.OpenAIError as e:
                logger.warning(f"{self.provider} call failed (attempt {attempt+1}): {e}")
                last_error = e
            else:
                usage = response.usage
                tokens = {
                    "prompt": usage.prompt_tokens if usage else 0,
                    "completion": usage.completion_tokens if usage else 0,
                    "total": usage.total_tokens if usage else 0,
                }
                self._total_tokens += tokens["total"]
                self._total_calls += 1
                content = response.choices[0].message.content if response.choices else None
                return {"content": content or "", "tokens": tokens}

            if attempt < self.max_retries - 1:
                time.sleep(RETRY_DELAY * (attempt + 1))

        if isinstance(last_error, openai.APITimeoutError):
            raise AIServiceError(f"{self.provider} request timed out") from last_error
        raise AIServiceError(f"{self.provider} request failed: {last_error}") from last_error


def build_llm_client(config: LLMConfig) -> LLMClient:
    """Construct a client for the configured provider. Callers own the instance."""
    if config.provider not in ("openai", "gemini"):
        raise ValueError(f"Unsupported AI provider: {config.provider}")
    if config.provider == "gemini" and not config.base_url:
        raise ValueError("Gemini provider requires an OpenAI-compatible base_url")
    return LLMClient(
        api_key=config.api_key,
        base_url=config.base_url,
        provider=config.provider,
        max_retries=config.max_retries,
        default_timeout=config.default_timeout_seconds,
    )
