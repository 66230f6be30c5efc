"""LLM client and recipe-suggestion parsing.

This module provides:
- An async HTTP/2 client for the Gemini ``generateContent`` API with
  connection pooling, a concurrency semaphore and tenacity retries
- Prompt construction for recipe suggestions
- Fallible parsing of the model's free-form answer into typed suggestions

The aggregate engine never depends on anything here; only the suggestion
operation does.

Example:
    >>> from recipeshare.ai import AsyncLLMClient, generate_recipe_suggestions
    >>>
    >>> async with AsyncLLMClient() as client:
    ...     ideas = await generate_recipe_suggestions(client, "eggs, spinach, feta")
    ...     print([idea.title for idea in ideas])
"""

import asyncio
import json
import logging
import re
import time
from typing import Any

import httpx
from pydantic import BaseModel, Field, ValidationError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from recipeshare.config import settings
from recipeshare.exceptions import UpstreamFailure, ValidationFailed
from recipeshare.interfaces import ILLMClient
from recipeshare.logging import logger
from recipeshare.metrics import errors_total, llm_request_duration_seconds, llm_requests_total
from recipeshare.schemas import RecipeSuggestion
from recipeshare.telemetry import add_span_attributes, get_tracer, traced

tracer = get_tracer(__name__)

# A JSON array anywhere in the answer; greedy so nested arrays stay inside
_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")

SUGGESTION_PROMPT = """Generate {count} unique recipe suggestions using primarily these ingredients: {ingredients}.
For each recipe, provide:
1. Title
2. Description (2-3 sentences)
3. Complete ingredients list (including the provided ingredients plus any additional needed)
4. Step-by-step cooking instructions
5. Estimated prep time in minutes
6. Number of servings
7. Cuisine type
8. 3 relevant tags (e.g., "quick", "healthy", "comfort-food")

Format the response as a JSON array of recipe objects with these exact fields:
title, description, ingredients (array), steps (array), prepTime (number), servings (number), cuisine, tags (array)"""


# =============================================================================
# Custom Exceptions
# =============================================================================


class TransientLLMError(Exception):
    """Retryable network/HTTP layer failures.

    Raised for errors that should trigger retry logic:
    - Network timeouts
    - Connection errors
    - HTTP 429 (rate limit)
    - HTTP 5xx (server errors)
    - Unparseable JSON bodies
    """


# =============================================================================
# Async LLM Client
# =============================================================================


class AsyncLLMClient:
    """Async HTTP/2 client for the Gemini text generation API.

    Args:
        api_key: API key (defaults to settings.gemini_api_key)
        model: Model name (defaults to settings.llm_model)
        max_concurrency: Max concurrent requests (defaults to settings.llm_max_concurrency)
        max_attempts: Attempts per request (defaults to settings.llm_max_retries)
        timeout: Custom httpx timeout configuration

    Example:
        >>> async with AsyncLLMClient() as client:
        ...     text = await client.generate("Suggest a soup")
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_concurrency: int | None = None,
        max_attempts: int | None = None,
        timeout: httpx.Timeout | None = None,
    ) -> None:
        self._api_key = api_key or settings.gemini_api_key
        self._model = model or settings.llm_model
        self._max_attempts = max_attempts or settings.llm_max_retries
        self._sem = asyncio.Semaphore(max_concurrency or settings.llm_max_concurrency)

        self._limits = httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
            keepalive_expiry=30.0,
        )
        self._timeout = timeout or httpx.Timeout(
            timeout=settings.llm_timeout_seconds,
            connect=10.0,
        )
        self._wait = wait_exponential(multiplier=1, min=1, max=20) + wait_random(0, 1)

        self._client: httpx.AsyncClient | None = None

    @property
    def url(self) -> str:
        """Full generateContent URL for the configured model."""
        return f"{settings.llm_endpoint.rstrip('/')}/{self._model}:generateContent"

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Lazy initialization of the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                limits=self._limits,
                timeout=self._timeout,
                http2=True,
                follow_redirects=True,
                headers={
                    "x-goog-api-key": self._api_key or "",
                    "Content-Type": "application/json",
                },
            )
        return self._client

    async def __aenter__(self) -> "AsyncLLMClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close all connections and cleanup resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _do_http_post(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Perform one HTTP POST and classify failures.

        Raises:
            TransientLLMError: For retryable failures
            UpstreamFailure: For permanent API errors
        """
        client = await self._ensure_client()

        try:
            resp = await client.post(self.url, json=payload)
        except (httpx.TimeoutException, httpx.NetworkError) as exc:
            raise TransientLLMError(f"Network/timeout error: {exc}") from exc

        if resp.status_code == 429 or 500 <= resp.status_code < 600:
            raise TransientLLMError(f"HTTP {resp.status_code}")

        if resp.status_code != 200:
            logger.error(f"Non-retryable HTTP {resp.status_code}: {resp.text[:200]}")
            raise UpstreamFailure(f"LLM API error: HTTP {resp.status_code}")

        try:
            return resp.json()
        except ValueError as exc:
            raise TransientLLMError(f"Invalid JSON: {exc}") from exc

    async def _post_with_retry(self, payload: dict[str, Any]) -> dict[str, Any]:
        """POST with semaphore and retry logic."""
        logging_logger = logging.getLogger(__name__)

        @retry(
            reraise=True,
            stop=stop_after_attempt(self._max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type(TransientLLMError),
            before_sleep=before_sleep_log(logging_logger, logging.WARNING),
        )
        async def _runner() -> dict[str, Any]:
            async with self._sem:
                return await self._do_http_post(payload)

        return await _runner()

    async def generate(self, prompt: str) -> str:
        """Generate text for a prompt.

        Args:
            prompt: Prompt text

        Returns:
            Text of the first candidate answer

        Raises:
            UpstreamFailure: If no key is configured, retries are exhausted,
                the API rejects the request, or the answer has no text
        """
        if not self._api_key:
            raise UpstreamFailure("LLM API key not configured")

        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        start_time = time.time()
        status = "error"

        with traced(tracer, "llm.generate", {"model": self._model, "prompt_chars": len(prompt)}) as span:
            try:
                body = await self._post_with_retry(payload)
                text = _extract_text(body)
                status = "success"
                add_span_attributes(span, {"result.chars": len(text)})
                return text
            except TransientLLMError as exc:
                errors_total.labels(error_type=type(exc).__name__, component="llm").inc()
                raise UpstreamFailure("LLM API unreachable") from exc
            except UpstreamFailure as exc:
                errors_total.labels(error_type=type(exc).__name__, component="llm").inc()
                raise
            finally:
                llm_requests_total.labels(status=status).inc()
                llm_request_duration_seconds.labels(status=status).observe(
                    time.time() - start_time
                )


def _extract_text(body: dict[str, Any]) -> str:
    try:
        parts = body["candidates"][0]["content"]["parts"]
        return "".join(part.get("text", "") for part in parts)
    except (KeyError, IndexError, TypeError) as exc:
        raise UpstreamFailure("LLM API returned no candidates") from exc


# =============================================================================
# Suggestion Parsing
# =============================================================================


class SuggestionParseResult(BaseModel):
    """Outcome of parsing a model answer: suggestions or an error, never both.

    Attributes:
        suggestions: Parsed suggestions (empty on error)
        error: Why parsing failed, None on success
        skipped: Number of array items that were not valid suggestions
    """

    suggestions: list[RecipeSuggestion] = Field(default_factory=list)
    error: str | None = None
    skipped: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_recipe_suggestions(text: str) -> SuggestionParseResult:
    """Extract recipe suggestions from free-form model text.

    The first ``[`` through the last ``]`` is parsed as JSON. Items that do
    not validate are skipped; if nothing usable remains the result carries
    an error instead. This function never raises.

    Example:
        >>> result = parse_recipe_suggestions('Sure! [{"title": "Shakshuka"}]')
        >>> result.ok, result.suggestions[0].title
        (True, 'Shakshuka')
    """
    match = _JSON_ARRAY.search(text or "")
    if not match:
        return SuggestionParseResult(error="Could not find a JSON array in the response")

    try:
        raw = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        return SuggestionParseResult(error=f"Malformed JSON array: {exc.msg}")

    if not isinstance(raw, list):
        return SuggestionParseResult(error="Response JSON is not an array")

    suggestions: list[RecipeSuggestion] = []
    skipped = 0
    for item in raw:
        if not isinstance(item, dict):
            skipped += 1
            continue
        try:
            suggestions.append(RecipeSuggestion.model_validate(item))
        except ValidationError as exc:
            skipped += 1
            logger.debug(f"Skipping invalid suggestion: {exc.errors()[0]['msg']}")

    if not suggestions:
        return SuggestionParseResult(error="No usable recipe suggestions", skipped=skipped)

    return SuggestionParseResult(suggestions=suggestions, skipped=skipped)


def build_suggestion_prompt(ingredients: str, count: int = 3) -> str:
    """Render the suggestion prompt for a comma-separated ingredient list."""
    return SUGGESTION_PROMPT.format(count=count, ingredients=ingredients)


async def generate_recipe_suggestions(
    client: ILLMClient,
    ingredients: str,
    count: int = 3,
) -> list[RecipeSuggestion]:
    """Ask the LLM for recipe ideas built around the given ingredients.

    Raises:
        ValidationFailed: If no ingredients were given
        UpstreamFailure: If the API failed or its answer could not be parsed
    """
    ingredients = ingredients.strip()
    if not ingredients:
        raise ValidationFailed("Ingredients are required")

    text = await client.generate(build_suggestion_prompt(ingredients, count))
    result = parse_recipe_suggestions(text)
    if not result.ok:
        logger.error(f"❌ Could not parse recipe suggestions: {result.error}")
        errors_total.labels(error_type="SuggestionParseError", component="llm").inc()
        raise UpstreamFailure("Could not parse recipe suggestions from AI response")

    if result.skipped:
        logger.warning(f"⚠️ Skipped {result.skipped} malformed suggestion(s)")
    return result.suggestions


__all__ = [
    "AsyncLLMClient",
    "TransientLLMError",
    "SuggestionParseResult",
    "parse_recipe_suggestions",
    "build_suggestion_prompt",
    "generate_recipe_suggestions",
    "SUGGESTION_PROMPT",
]
