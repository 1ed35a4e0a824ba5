"""
Tests for shared client utilities.

These tests verify:
- RetryPolicy attempt budget and backoff schedule
- Per-call timeout wrapper
- JSON extraction from model output
"""

import asyncio

import pytest

from harvester.clients.base import (
    AnsweringUnavailable,
    RetryPolicy,
    call_with_timeout,
    exponential_backoff,
    extract_json_from_text,
)


class Flaky:
    """Fails a fixed number of times, then returns a value."""

    def __init__(self, failures: int, exc: type[Exception] = RuntimeError):
        self.failures = failures
        self.exc = exc
        self.calls = 0

    async def __call__(self, value):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc(f"failure {self.calls}")
        return value


def test_exponential_backoff_is_clamped():
    backoff = exponential_backoff(multiplier=1, minimum=2, maximum=10)

    assert [backoff(n) for n in range(1, 7)] == [2, 2, 4, 8, 10, 10]


def test_retry_policy_rejects_zero_attempts():
    with pytest.raises(ValueError, match="max_attempts"):
        RetryPolicy(max_attempts=0)


@pytest.mark.asyncio
async def test_retry_policy_recovers_within_budget():
    func = Flaky(failures=2)

    result = await RetryPolicy.no_wait(3).call(func, "ok")

    assert result == "ok"
    assert func.calls == 3


@pytest.mark.asyncio
async def test_retry_policy_reraises_last_error():
    func = Flaky(failures=5)

    with pytest.raises(RuntimeError, match="failure 2"):
        await RetryPolicy.no_wait(2).call(func, "ok")

    assert func.calls == 2


@pytest.mark.asyncio
async def test_retry_policy_only_retries_listed_exceptions():
    func = Flaky(failures=1, exc=KeyError)
    policy = RetryPolicy(max_attempts=3, backoff=lambda n: 0.0, retry_on=(RuntimeError,))

    with pytest.raises(KeyError):
        await policy.call(func, "ok")

    assert func.calls == 1


@pytest.mark.asyncio
async def test_call_with_timeout_raises_past_deadline():
    async def slow():
        await asyncio.sleep(1)
        return "late"

    with pytest.raises(asyncio.TimeoutError):
        await call_with_timeout(slow, 0.01)


@pytest.mark.asyncio
async def test_call_with_timeout_none_waits():
    async def quick(x):
        return x * 2

    assert await call_with_timeout(quick, None, 21) == 42


def test_answering_unavailable_message():
    error = AnsweringUnavailable("lithium", RuntimeError("503"))

    assert "lithium" in str(error)
    assert "503" in str(error)
    assert error.query == "lithium"


class TestExtractJson:
    def test_fenced_block(self):
        text = 'Sure!\n```json\n{"a": 1}\n```\nDone.'
        assert extract_json_from_text(text) == {"a": 1}

    def test_raw_object(self):
        assert extract_json_from_text('prefix {"a": {"b": 2}} suffix') == {"a": {"b": 2}}

    def test_no_json(self):
        assert extract_json_from_text("nothing to see") is None

    def test_arrays_are_rejected(self):
        assert extract_json_from_text("[1, 2, 3]") is None

    def test_malformed(self):
        assert extract_json_from_text('{"a": 1,,}') is None
