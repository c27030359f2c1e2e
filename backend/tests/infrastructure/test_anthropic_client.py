"""Unit Tests: ResilientAnthropicClient — retry policy and error mapping.

Invariants:
    - Rate limits and transient failures (5xx, 529, connection) are retried up to max_retries
    - Client errors (4xx) and timeouts fail immediately
    - A failure after events started flowing is mapped but never retried
    - The raw stream is always closed when the context exits

Design Decisions:
    - Fake SDK client injected through the client= seam; anthropic exceptions are
      built from real httpx requests/responses so isinstance checks match production
    - Millisecond delays keep retry tests fast without patching asyncio.sleep
"""

import httpx
import pytest
from anthropic import (
    APIConnectionError, APIStatusError, APITimeoutError, BadRequestError,
    InternalServerError, RateLimitError,
)

from sage.core.errors import AnthropicAPIError, ErrorContext
from sage.infrastructure.anthropic_client import ResilientAnthropicClient, map_api_error

from tests.services.mock_anthropic import _RawStream, text_turn

_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def _response(status, headers=None):
    return httpx.Response(status, request=_REQUEST, headers=headers or {})


def rate_limited(retry_after="0.001"):
    return RateLimitError(
        "rate limited", response=_response(429, {"retry-after": retry_after}), body=None,
    )


def server_error():
    return InternalServerError("boom", response=_response(500), body=None)


def overloaded():
    return APIStatusError("overloaded", response=_response(529), body=None)


def bad_request():
    return BadRequestError("bad tools", response=_response(400), body=None)


class _FakeMessages:
    def __init__(self, outcomes):
        self._outcomes = list(outcomes)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class _FakeSDK:
    def __init__(self, outcomes):
        self.messages = _FakeMessages(outcomes)


def _client(outcomes, max_retries=2):
    sdk = _FakeSDK(outcomes)
    client = ResilientAnthropicClient(
        api_key="test", max_retries=max_retries,
        base_delay_ms=1, max_delay_ms=5, client=sdk,
    )
    return client, sdk.messages


async def _consume(client, context=None):
    async with client.stream_message(
        model="claude-test", max_tokens=256, system="sys",
        tools=[], messages=[{"role": "user", "content": "hi"}], context=context,
    ) as stream:
        return [event async for event in stream]


# ==============================================================================
# Happy path
# ==============================================================================


async def test_opens_raw_stream_and_closes_it():
    stream = _RawStream(text_turn("Hello"))
    client, messages = _client([stream])

    events = await _consume(client)

    assert events[0].type == "message_start"
    assert messages.calls[0]["stream"] is True
    assert messages.calls[0]["model"] == "claude-test"
    assert messages.calls[0]["system"] == "sys"
    assert stream.closed


# ==============================================================================
# Retries on connection setup
# ==============================================================================


async def test_server_error_retried_then_succeeds():
    client, messages = _client([server_error(), _RawStream(text_turn("ok"))])

    events = await _consume(client)

    assert len(messages.calls) == 2
    assert events


async def test_rate_limit_retried_then_succeeds():
    client, messages = _client([rate_limited(), _RawStream(text_turn("ok"))])

    await _consume(client)

    assert len(messages.calls) == 2


async def test_connection_error_retried():
    client, messages = _client([
        APIConnectionError(request=_REQUEST), _RawStream(text_turn("ok")),
    ])

    await _consume(client)

    assert len(messages.calls) == 2


async def test_rate_limit_exhausted_carries_retry_after():
    client, messages = _client([rate_limited("0.002")] * 3, max_retries=2)

    with pytest.raises(AnthropicAPIError) as exc:
        await _consume(client, ErrorContext(session_id="s-1"))

    assert len(messages.calls) == 3
    assert exc.value.api_error_type == "rate_limit"
    assert exc.value.retryable
    assert exc.value.context.retry_after_ms == 2
    assert exc.value.context.session_id == "s-1"


async def test_overloaded_exhausted_is_retryable():
    client, messages = _client([overloaded()] * 2, max_retries=1)

    with pytest.raises(AnthropicAPIError) as exc:
        await _consume(client)

    assert len(messages.calls) == 2
    assert exc.value.retryable


# ==============================================================================
# Immediate failures
# ==============================================================================


async def test_client_error_not_retried():
    client, messages = _client([bad_request()])

    with pytest.raises(AnthropicAPIError) as exc:
        await _consume(client)

    assert len(messages.calls) == 1
    assert exc.value.api_error_type == "client_error"
    assert not exc.value.retryable


async def test_timeout_not_retried():
    client, messages = _client([APITimeoutError(request=_REQUEST)])

    with pytest.raises(AnthropicAPIError) as exc:
        await _consume(client)

    assert len(messages.calls) == 1
    assert exc.value.api_error_type == "timeout"


async def test_mid_stream_failure_mapped_not_retried():
    turn = text_turn("partial")
    stream = _RawStream([*turn[:3], overloaded()])
    client, messages = _client([stream, _RawStream(text_turn("never"))])

    with pytest.raises(AnthropicAPIError) as exc:
        await _consume(client)

    assert len(messages.calls) == 1
    assert exc.value.api_error_type == "overloaded"
    assert stream.closed


# ==============================================================================
# Mapping and backoff
# ==============================================================================


def test_map_api_error_passthrough_and_unknown():
    original = AnthropicAPIError("x", "timeout")
    assert map_api_error(original) is original
    assert map_api_error(ValueError("weird")).api_error_type == "unknown"
    assert map_api_error(server_error()).api_error_type == "connection_error"


def test_backoff_is_capped_with_jitter():
    client = ResilientAnthropicClient(
        api_key="test", base_delay_ms=1000, max_delay_ms=4000, client=_FakeSDK([]),
    )
    for attempt in range(6):
        delay = client._backoff(attempt)
        expected = min(4000, (2 ** attempt) * 1000)
        assert 0.75 * expected <= delay <= 1.25 * expected
