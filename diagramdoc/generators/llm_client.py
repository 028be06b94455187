"""Async client for the generative model with rate limiting and retries.

Wraps the Anthropic and OpenAI SDKs behind one ``generate`` call.
Responses are reduced to text through the envelope extractor so the
rest of the pipeline never touches provider-specific shapes.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Optional

import anthropic
import openai

from diagramdoc.generators.response_extractor import extract_text
from diagramdoc.utils.config import API_KEY_ENV_VARS, APIConfig
from diagramdoc.utils.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Assistant prefill that forces a JSON object reply from Anthropic models
_JSON_PREFILL = "{"


@dataclass
class TokenUsage:
    """Token usage statistics for a single API call.

    Attributes:
        input_tokens: Number of tokens in the prompt.
        output_tokens: Number of tokens in the response.
    """

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        """Total tokens consumed."""
        return self.input_tokens + self.output_tokens


@dataclass
class GenerationResult:
    """Result of an LLM generation call.

    Attributes:
        content: The extracted response text. Empty if the response
            carried no text.
        usage: Token usage statistics.
        model: Model that produced the result.
        stop_reason: Reason the generation stopped.
    """

    content: str
    usage: TokenUsage
    model: str
    stop_reason: Optional[str] = None


def _usage_from(response: Any) -> TokenUsage:
    usage = getattr(response, "usage", None)
    input_tokens = getattr(usage, "input_tokens", 0)
    output_tokens = getattr(usage, "output_tokens", 0)
    return TokenUsage(
        input_tokens=input_tokens if isinstance(input_tokens, int) else 0,
        output_tokens=output_tokens if isinstance(output_tokens, int) else 0,
    )


def _is_retryable(error: Exception) -> bool:
    """Whether an SDK error is transient (rate limit or server side)."""
    if isinstance(error, (anthropic.RateLimitError, openai.RateLimitError)):
        return True
    if isinstance(error, (anthropic.APIStatusError, openai.APIStatusError)):
        return error.status_code >= 500
    return False


class LLMClient:
    """Async client for the configured generative model provider.

    Supports the Anthropic Messages API (default) and the OpenAI
    Responses API. Applies client-side rate limiting and exponential
    backoff on rate-limit and server errors.
    """

    def __init__(self, config: Optional[APIConfig] = None) -> None:
        """Initialize the LLM client.

        The SDK client is created lazily, so a missing API key only
        fails when the first request is made.

        Args:
            config: API configuration. Uses defaults if not provided.
        """
        self.config = config or APIConfig()
        key_var = API_KEY_ENV_VARS.get(self.config.provider, "")
        self._api_key = os.getenv(key_var, "") if key_var else ""
        self._client: Optional[Any] = None
        self._last_request_time: float = 0.0
        self._request_interval: float = 60.0 / max(self.config.rate_limit_rpm, 1)
        self._total_usage = TokenUsage()

    @property
    def client(self) -> Any:
        """Lazily initialize the provider SDK client.

        Returns:
            An authenticated AsyncAnthropic or AsyncOpenAI instance.

        Raises:
            ConfigurationError: If the provider is unknown or its API
                key is not set.
        """
        if self._client is None:
            provider = self.config.provider
            key_var = API_KEY_ENV_VARS.get(provider)
            if key_var is None:
                raise ConfigurationError(
                    f"Unsupported provider '{provider}'",
                    {"supported": sorted(API_KEY_ENV_VARS)},
                )
            if not self._api_key:
                raise ConfigurationError(
                    f"{key_var} environment variable is not set. "
                    "Set it before making API calls."
                )
            if provider == "openai":
                self._client = openai.AsyncOpenAI(api_key=self._api_key)
            else:
                self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self._client

    async def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        json_mode: bool = False,
    ) -> GenerationResult:
        """Generate text with the configured model.

        Args:
            prompt: The user message prompt.
            system: Optional system prompt.
            max_tokens: Maximum tokens to generate. Uses config default.
            temperature: Sampling temperature. Uses config default.
            json_mode: Ask the model for a single JSON object.

        Returns:
            A GenerationResult whose content may be empty if the
            response held no text.

        Raises:
            ConfigurationError: If the client is not configured.
            anthropic.APIError | openai.APIError: If the call fails
                after all retries.
        """
        max_tokens = max_tokens or self.config.max_tokens
        if temperature is None:
            temperature = self.config.temperature

        await self._apply_rate_limit()

        if self.config.provider == "openai":
            response = await self._create_openai(
                prompt, system, max_tokens, temperature, json_mode
            )
        else:
            response = await self._create_anthropic(
                prompt, system, max_tokens, temperature, json_mode
            )

        content = extract_text(response)
        if json_mode and self.config.provider != "openai" and content:
            content = _JSON_PREFILL + content

        usage = _usage_from(response)
        self._total_usage.input_tokens += usage.input_tokens
        self._total_usage.output_tokens += usage.output_tokens

        logger.info(
            "Generated %d tokens (input: %d, output: %d)",
            usage.total_tokens,
            usage.input_tokens,
            usage.output_tokens,
        )

        model = getattr(response, "model", None)
        stop_reason = getattr(response, "stop_reason", None) or getattr(
            response, "status", None
        )
        return GenerationResult(
            content=content,
            usage=usage,
            model=model if isinstance(model, str) else self.config.model,
            stop_reason=stop_reason if isinstance(stop_reason, str) else None,
        )

    @property
    def total_usage(self) -> TokenUsage:
        """Cumulative token usage across all calls."""
        return self._total_usage

    async def _create_anthropic(
        self,
        prompt: str,
        system: Optional[str],
        max_tokens: int,
        temperature: float,
        json_mode: bool,
    ) -> Any:
        messages = [{"role": "user", "content": prompt}]
        if json_mode:
            messages.append({"role": "assistant", "content": _JSON_PREFILL})
        kwargs: dict = {
            "model": self.config.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": messages,
        }
        if system:
            kwargs["system"] = system
        return await self._call_with_retry(self.client.messages.create, **kwargs)

    async def _create_openai(
        self,
        prompt: str,
        system: Optional[str],
        max_tokens: int,
        temperature: float,
        json_mode: bool,
    ) -> Any:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        kwargs: dict = {
            "model": self.config.model,
            "max_output_tokens": max_tokens,
            "temperature": temperature,
            "input": messages,
        }
        if json_mode:
            kwargs["text"] = {"format": {"type": "json_object"}}
        return await self._call_with_retry(self.client.responses.create, **kwargs)

    async def _apply_rate_limit(self) -> None:
        """Sleep if the previous request was too recent."""
        now = time.monotonic()
        elapsed = now - self._last_request_time
        if elapsed < self._request_interval:
            sleep_time = self._request_interval - elapsed
            logger.debug("Rate limiting: sleeping %.2f seconds", sleep_time)
            await asyncio.sleep(sleep_time)
        self._last_request_time = time.monotonic()

    async def _call_with_retry(self, create: Any, **kwargs: Any) -> Any:
        """Make an API call with exponential backoff retry logic.

        Args:
            create: The SDK coroutine function to call.
            **kwargs: Arguments passed through to ``create``.

        Returns:
            The raw SDK response.

        Raises:
            anthropic.APIError | openai.APIError: If the error is not
                transient or all retries are exhausted.
        """
        last_error: Optional[Exception] = None
        base_delay = self.config.retry_base_delay
        attempts = max(self.config.retry_max_attempts, 1)

        for attempt in range(attempts):
            try:
                return await create(**kwargs)
            except (anthropic.APIError, openai.APIError) as e:
                if not _is_retryable(e):
                    raise
                last_error = e
                delay = base_delay * (2**attempt)
                logger.warning(
                    "Transient API error %s (attempt %d/%d), retrying in %.1f seconds",
                    type(e).__name__,
                    attempt + 1,
                    attempts,
                    delay,
                )
                await asyncio.sleep(delay)

        raise last_error  # type: ignore[misc]
