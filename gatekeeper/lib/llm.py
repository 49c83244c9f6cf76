"""Unified remote client for Gatekeeper.

Supports Anthropic (Claude), OpenAI (chat and moderation endpoints),
OpenRouter and plain JSON-over-HTTP APIs such as Perspective.
Routes chat requests based on PROVIDER_MODELS configuration.
"""

import asyncio
import json
import logging
from typing import Any

import httpx
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI
from pydantic import BaseModel

from gatekeeper.config import ModelProvider, Settings, get_settings
from gatekeeper.lib.exceptions import (
    LLMAuthenticationError,
    LLMConnectionError,
    LLMContextLengthError,
    LLMError,
    LLMRateLimitError,
    LLMResponseParseError,
)
from gatekeeper.lib.models import TokenUsage

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"


# =============================================================================
# Response Models
# =============================================================================


class LLMResponse(BaseModel):
    """Unified response from LLM."""

    content: str
    token_usage: TokenUsage
    model: str
    finish_reason: str | None = None


class ModerationResponse(BaseModel):
    """Raw output of the OpenAI moderation endpoint."""

    flagged: bool
    category_scores: dict[str, float]
    model: str


def _map_sdk_error(e: Exception) -> LLMError:
    """Translate SDK exceptions into the LLMError hierarchy."""
    error_msg = str(e).lower()
    if "rate limit" in error_msg or "429" in error_msg:
        return LLMRateLimitError(str(e))
    if "context length" in error_msg or "too many tokens" in error_msg:
        return LLMContextLengthError(str(e))
    if "authentication" in error_msg or "401" in error_msg:
        return LLMAuthenticationError(str(e))
    return LLMConnectionError(str(e))


def extract_json(content: str) -> dict[str, Any]:
    """
    Pull a JSON object out of an LLM reply.

    Handles fenced ```json blocks, bare objects and objects embedded in
    surrounding prose.

    Raises:
        LLMResponseParseError: If no valid JSON object is found
    """
    content = content.strip()

    if "```json" in content:
        start = content.find("```json") + 7
        end = content.find("```", start)
        json_str = content[start:end].strip()
    elif content.startswith("{"):
        json_str = content
    else:
        start = content.find("{")
        end = content.rfind("}") + 1
        if start >= 0 and end > start:
            json_str = content[start:end]
        else:
            raise LLMResponseParseError("No JSON found in response", raw_response=content)

    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise LLMResponseParseError(f"Invalid JSON in response: {e}", raw_response=content)

    if not isinstance(data, dict):
        raise LLMResponseParseError("Expected a JSON object", raw_response=content)
    return data


# =============================================================================
# LLM Client
# =============================================================================


class LLMClient:
    """
    Unified client for remote moderation backends.

    Routes chat requests to Anthropic, OpenAI, or OpenRouter based on the
    model id. Tracks token usage per moderation provider for cost monitoring.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._anthropic_client: AsyncAnthropic | None = None
        self._openai_client: AsyncOpenAI | None = None
        self._http_client: httpx.AsyncClient | None = None

        # Token tracking per moderation provider
        self._token_usage: dict[str, TokenUsage] = {}

    async def __aenter__(self) -> "LLMClient":
        """Async context manager entry."""
        await self._ensure_clients()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def _ensure_clients(self) -> None:
        """Initialize clients if needed."""
        if self._anthropic_client is None and self.settings.has_anthropic_key:
            self._anthropic_client = AsyncAnthropic(
                api_key=self.settings.anthropic_api_key,
            )

        if self._openai_client is None and self.settings.has_openai_key:
            self._openai_client = AsyncOpenAI(
                api_key=self.settings.openai_api_key,
            )

        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(60.0, connect=10.0),
            )

    async def close(self) -> None:
        """Close all clients."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        if self._openai_client:
            await self._openai_client.close()
            self._openai_client = None
        if self._anthropic_client:
            await self._anthropic_client.close()
            self._anthropic_client = None

    def _track_usage(self, caller: str, input_tokens: int, output_tokens: int) -> None:
        """Track cumulative token usage per provider."""
        if caller not in self._token_usage:
            self._token_usage[caller] = TokenUsage()
        self._token_usage[caller].input_tokens += input_tokens
        self._token_usage[caller].output_tokens += output_tokens

    def get_usage_summary(self) -> dict[str, dict[str, int]]:
        """Return token usage by provider for cost tracking."""
        return {
            caller: {"input": usage.input_tokens, "output": usage.output_tokens}
            for caller, usage in self._token_usage.items()
        }

    # =========================================================================
    # Anthropic API
    # =========================================================================

    async def _complete_anthropic(
        self,
        model: str,
        messages: list[dict[str, Any]],
        system: str | None,
        max_tokens: int,
        temperature: float,
        caller: str | None,
    ) -> LLMResponse:
        """Complete using Anthropic API."""
        await self._ensure_clients()

        if not self._anthropic_client:
            raise LLMAuthenticationError("Anthropic API key not configured")

        try:
            kwargs: dict[str, Any] = {
                "model": model,
                "messages": messages,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
            if system:
                kwargs["system"] = system

            response = await self._anthropic_client.messages.create(**kwargs)
        except Exception as e:
            raise _map_sdk_error(e)

        content = ""
        for block in response.content:
            if hasattr(block, "text"):
                content += block.text

        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens
        if caller:
            self._track_usage(caller, input_tokens, output_tokens)

        return LLMResponse(
            content=content,
            token_usage=TokenUsage(
                input_tokens=input_tokens, output_tokens=output_tokens, model=model
            ),
            model=model,
            finish_reason=response.stop_reason,
        )

    # =========================================================================
    # OpenAI API
    # =========================================================================

    async def _complete_openai(
        self,
        model: str,
        messages: list[dict[str, Any]],
        system: str | None,
        max_tokens: int,
        temperature: float,
        caller: str | None,
    ) -> LLMResponse:
        """Complete using OpenAI API."""
        await self._ensure_clients()

        if not self._openai_client:
            raise LLMAuthenticationError("OpenAI API key not configured")

        all_messages = []
        if system:
            all_messages.append({"role": "system", "content": system})
        all_messages.extend(messages)

        try:
            response = await self._openai_client.chat.completions.create(
                model=model,
                messages=all_messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except Exception as e:
            raise _map_sdk_error(e)

        content = response.choices[0].message.content or ""
        input_tokens = response.usage.prompt_tokens if response.usage else 0
        output_tokens = response.usage.completion_tokens if response.usage else 0
        if caller:
            self._track_usage(caller, input_tokens, output_tokens)

        return LLMResponse(
            content=content,
            token_usage=TokenUsage(
                input_tokens=input_tokens, output_tokens=output_tokens, model=model
            ),
            model=model,
            finish_reason=response.choices[0].finish_reason,
        )

    async def moderate(self, text: str, model: str = "omni-moderation-latest") -> ModerationResponse:
        """
        Call the OpenAI moderation endpoint.

        Returns:
            ModerationResponse with the endpoint's own category names
        """
        await self._ensure_clients()

        if not self._openai_client:
            raise LLMAuthenticationError("OpenAI API key not configured")

        try:
            response = await self._openai_client.moderations.create(model=model, input=text)
        except Exception as e:
            raise _map_sdk_error(e)

        if not response.results:
            raise LLMResponseParseError("Moderation response has no results")

        result = response.results[0]
        scores = result.category_scores.model_dump(by_alias=True)
        return ModerationResponse(
            flagged=result.flagged,
            category_scores={k: float(v) for k, v in scores.items() if v is not None},
            model=response.model,
        )

    # =========================================================================
    # OpenRouter API
    # =========================================================================

    async def _complete_openrouter(
        self,
        model: str,
        messages: list[dict[str, Any]],
        system: str | None,
        max_tokens: int,
        temperature: float,
        caller: str | None,
    ) -> LLMResponse:
        """Complete using OpenRouter API."""
        await self._ensure_clients()

        if not self.settings.has_openrouter_key:
            raise LLMAuthenticationError("OpenRouter API key not configured")

        all_messages = messages.copy()
        if system:
            all_messages.insert(0, {"role": "system", "content": system})

        payload = {
            "model": model,
            "messages": all_messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        data = await self.post_json(
            OPENROUTER_URL,
            payload,
            headers={
                "Authorization": f"Bearer {self.settings.openrouter_api_key}",
                "HTTP-Referer": "https://gatekeeper.local",
                "X-Title": "Gatekeeper",
            },
            service="OpenRouter",
        )

        try:
            choice = data["choices"][0]
            content = choice["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            raise LLMResponseParseError(
                "OpenRouter response missing choices", raw_response=json.dumps(data)[:500]
            )

        usage = data.get("usage") or {}
        input_tokens = usage.get("prompt_tokens", 0)
        output_tokens = usage.get("completion_tokens", 0)
        if caller:
            self._track_usage(caller, input_tokens, output_tokens)

        return LLMResponse(
            content=content,
            token_usage=TokenUsage(
                input_tokens=input_tokens, output_tokens=output_tokens, model=model
            ),
            model=model,
            finish_reason=choice.get("finish_reason"),
        )

    # =========================================================================
    # Plain HTTP
    # =========================================================================

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        service: str = "HTTP",
    ) -> dict[str, Any]:
        """POST a JSON payload and return the decoded JSON body."""
        await self._ensure_clients()
        assert self._http_client is not None

        try:
            response = await self._http_client.post(
                url,
                params=params,
                headers={"Content-Type": "application/json", **(headers or {})},
                json=payload,
            )

            if response.status_code == 429:
                raise LLMRateLimitError(f"{service} rate limit exceeded")
            if response.status_code in (401, 403):
                raise LLMAuthenticationError(f"{service} authentication failed")

            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            raise LLMConnectionError(f"{service} HTTP error: {e}")
        except httpx.RequestError as e:
            raise LLMConnectionError(f"{service} connection error: {e}")
        except json.JSONDecodeError as e:
            raise LLMResponseParseError(f"{service} returned invalid JSON: {e}")

    # =========================================================================
    # Public API
    # =========================================================================

    async def complete(
        self,
        model: str,
        messages: list[dict[str, Any]],
        system: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.0,
        retries: int = 3,
        retry_delay: float = 1.0,
        caller: str | None = None,
    ) -> LLMResponse:
        """
        Complete a chat conversation.

        Args:
            model: Model id; the transport is derived from it
            messages: List of message dicts with 'role' and 'content'
            system: Optional system prompt
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            retries: Number of attempts on transient errors
            retry_delay: Initial delay between retries (exponential backoff)
            caller: Provider name for token tracking

        Returns:
            LLMResponse with content and token usage
        """
        provider = self.settings.get_model_provider(model)

        for attempt in range(retries):
            try:
                if provider == ModelProvider.ANTHROPIC:
                    return await self._complete_anthropic(
                        model, messages, system, max_tokens, temperature, caller
                    )
                elif provider == ModelProvider.OPENAI:
                    return await self._complete_openai(
                        model, messages, system, max_tokens, temperature, caller
                    )
                else:
                    return await self._complete_openrouter(
                        model, messages, system, max_tokens, temperature, caller
                    )
            except LLMRateLimitError:
                if attempt < retries - 1:
                    delay = retry_delay * (2**attempt)
                    logger.warning(f"Rate limited, retrying in {delay}s...")
                    await asyncio.sleep(delay)
                else:
                    raise
            except LLMConnectionError:
                if attempt < retries - 1:
                    delay = retry_delay * (2**attempt)
                    logger.warning(f"Connection error, retrying in {delay}s...")
                    await asyncio.sleep(delay)
                else:
                    raise

        raise LLMConnectionError("Max retries exceeded")


# =============================================================================
# Module-level client factory
# =============================================================================


_default_client: LLMClient | None = None


async def get_llm_client() -> LLMClient:
    """Get the default LLM client instance."""
    global _default_client
    if _default_client is None:
        _default_client = LLMClient()
        await _default_client._ensure_clients()
    return _default_client


async def close_llm_client() -> None:
    """Close the default LLM client."""
    global _default_client
    if _default_client:
        await _default_client.close()
        _default_client = None
