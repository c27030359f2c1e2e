"""Resilient Anthropic Client — wraps AsyncAnthropic with retry, backoff, and error mapping.

Invariants:
    - Rate limits (429): exponential backoff with jitter, respects Retry-After header
    - Transient errors (5xx, 529, connection): max N retries with exponential backoff
    - Client errors (4xx except 429): immediate failure, no retry
    - Only connection setup is retried; once events flow, a failure is final
    - All failures mapped to AnthropicAPIError (core/errors.py)

Design Decisions:
    - Raw event stream (messages.create(stream=True)) over the SDK's MessageStream
      helper: the stream parser owns accumulation and partial-JSON handling
    - ±25% jitter on backoff: prevents thundering herd on shared rate limits
"""

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import anthropic
from anthropic import (
    APIConnectionError,
    APIError,
    APIStatusError,
    APITimeoutError,
    InternalServerError,
    RateLimitError,
)

from sage.core.errors import AnthropicAPIError, ErrorContext

logger = logging.getLogger(__name__)

# 529 Overloaded is not re-exported by every SDK release; detect by status code.
_OVERLOADED_STATUS = 529


def _is_overloaded(e: APIError) -> bool:
    return isinstance(e, APIStatusError) and e.status_code == _OVERLOADED_STATUS


def map_api_error(e: Exception, context: ErrorContext | None = None) -> AnthropicAPIError:
    """Translate an SDK exception into the domain error."""
    if isinstance(e, AnthropicAPIError):
        return e
    if isinstance(e, RateLimitError):
        return AnthropicAPIError(
            "Rate limit exceeded", "rate_limit",
            retry_after_ms=_extract_retry_after(e), context=context,
        )
    if isinstance(e, APITimeoutError):
        return AnthropicAPIError("API timeout", "timeout", context=context)
    if isinstance(e, (APIConnectionError, InternalServerError)):
        return AnthropicAPIError(f"Connection error: {e}", "connection_error", context=context)
    if isinstance(e, APIError) and _is_overloaded(e):
        return AnthropicAPIError("Anthropic API overloaded (529)", "overloaded", context=context)
    if isinstance(e, APIError):
        return AnthropicAPIError(str(e), "client_error", context=context)
    return AnthropicAPIError(str(e), "unknown", context=context)


def _extract_retry_after(error: RateLimitError) -> int | None:
    """Retry-After header in milliseconds, if the provider sent one."""
    response = getattr(error, "response", None)
    if response is None:
        return None
    val = response.headers.get("retry-after")
    if not val:
        return None
    try:
        return int(float(val) * 1000)
    except ValueError:
        return None


class ResilientAnthropicClient:
    """Wraps the Anthropic client with retry logic, timeouts, and error mapping."""

    def __init__(
        self,
        api_key: str,
        max_retries: int = 3,
        base_delay_ms: int = 1000,
        max_delay_ms: int = 60_000,
        timeout_seconds: int = 300,
        client: Any = None,
    ):
        self.client = client or anthropic.AsyncAnthropic(
            api_key=api_key,
            timeout=timeout_seconds,
            max_retries=0,
        )
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    @asynccontextmanager
    async def stream_message(
        self,
        *,
        model: str,
        max_tokens: int,
        system: str,
        tools: list,
        messages: list,
        context: ErrorContext | None = None,
    ) -> AsyncIterator[AsyncIterator[Any]]:
        """Open a raw event stream, retrying connection setup on transient failures.

        Yields an async iterator of Messages API stream events. Errors raised while
        iterating are mapped to AnthropicAPIError but not retried.
        CancelledError (BaseException) passes through uncaught.
        """
        stream = await self._open_stream(
            model=model, max_tokens=max_tokens,
            system=system, tools=tools, messages=messages, context=context,
        )
        try:
            yield stream
        except APIError as e:
            raise map_api_error(e, context) from e
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                result = close()
                if asyncio.iscoroutine(result):
                    await result

    async def _open_stream(self, *, context: ErrorContext | None, **kwargs) -> Any:
        for attempt in range(self.max_retries + 1):
            try:
                stream = await self.client.messages.create(**kwargs, stream=True)
                if attempt:
                    logger.info("Anthropic stream opened after retry",
                        extra={"attempt": attempt + 1})
                return stream
            except RateLimitError as e:
                await self._handle_rate_limit(e, attempt, context)
            except APITimeoutError as e:
                raise map_api_error(e, context) from e
            except (APIConnectionError, InternalServerError) as e:
                await self._handle_transient_error(e, attempt, context)
            except APIError as e:
                if _is_overloaded(e):
                    await self._handle_transient_error(e, attempt, context)
                    continue
                raise map_api_error(e, context) from e
        raise AnthropicAPIError("retries exhausted", "connection_error", context=context)

    async def _handle_rate_limit(
        self, e: RateLimitError, attempt: int, context: ErrorContext | None,
    ) -> None:
        retry_after_ms = _extract_retry_after(e)
        if attempt >= self.max_retries:
            raise AnthropicAPIError(
                "Rate limit exceeded after retries", "rate_limit",
                retry_after_ms=retry_after_ms, context=context,
            )
        delay = retry_after_ms or self._backoff(attempt)
        logger.warning("Rate limit hit, retry after %dms", delay,
            extra={"attempt": attempt + 1})
        await asyncio.sleep(delay / 1000)

    async def _handle_transient_error(
        self, e: Exception, attempt: int, context: ErrorContext | None,
    ) -> None:
        if attempt >= self.max_retries:
            raise AnthropicAPIError(
                f"Transient failure after {self.max_retries} retries: {e}",
                "connection_error", context=context,
            )
        delay = self._backoff(attempt)
        logger.warning("Transient error, retry after %dms: %s", delay, e,
            extra={"attempt": attempt + 1})
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311
