"""Tests for strata/engine/retry.py"""

import asyncio
import time

import pytest

from strata.engine.retry import generate_idempotency_key, is_retryable_error, with_mutation_retry
from strata.exceptions import RemoteServiceError
from strata.models import Result


class _Recorder:
    def __init__(self, results):
        self._results = list(results)
        self.keys: list[str] = []
        self.times: list[float] = []

    async def __call__(self, key):
        self.keys.append(key)
        self.times.append(time.monotonic())
        return self._results.pop(0) if len(self._results) > 1 else self._results[0]


def test_idempotency_key_shape():
    key = generate_idempotency_key()
    assert len(key) == 32
    int(key, 16)
    assert key != generate_idempotency_key()


@pytest.mark.parametrize("error,expected", [
    (RemoteServiceError("slow down", status_code=429), True),
    (RemoteServiceError("boom", status_code=503), True),
    (RemoteServiceError("bad request", status_code=400), False),
    (RemoteServiceError("unauthorised", status_code=401), False),
    (RuntimeError("HTTP 502 from upstream"), True),
    (RuntimeError("something else"), False),
    (None, False),
])
def test_is_retryable_error(error, expected):
    assert is_retryable_error(error) is expected


@pytest.mark.asyncio
async def test_always_429_makes_exactly_two_attempts_half_a_second_apart():
    call = _Recorder([Result.failure(RemoteServiceError("rate limited", status_code=429))])

    result = await with_mutation_retry("create_event", call)

    assert not result.ok
    assert result.status_code == 429
    assert len(call.keys) == 2
    assert call.times[1] - call.times[0] >= 0.49


@pytest.mark.asyncio
async def test_same_key_across_attempts():
    call = _Recorder([
        Result.failure(RemoteServiceError("boom", status_code=500)),
        Result.success("evt1"),
    ])

    result = await with_mutation_retry("create_event", call, backoff_seconds=0)

    assert result.ok and result.value == "evt1"
    assert len(call.keys) == 2
    assert call.keys[0] == call.keys[1]


@pytest.mark.asyncio
async def test_permanent_failure_is_not_retried():
    call = _Recorder([Result.failure(RemoteServiceError("nope", status_code=403))])
    result = await with_mutation_retry("delete_task", call, backoff_seconds=0)
    assert not result.ok
    assert len(call.keys) == 1


@pytest.mark.asyncio
async def test_linear_backoff_uses_injected_sleep():
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    call = _Recorder([Result.failure(RemoteServiceError("busy", status_code=503))])
    await with_mutation_retry("x", call, max_attempts=3, backoff_seconds=0.5, sleep=fake_sleep)
    assert delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_cancellation_during_backoff_propagates():
    call = _Recorder([Result.failure(RemoteServiceError("busy", status_code=503))])
    task = asyncio.create_task(with_mutation_retry("x", call, backoff_seconds=10))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert len(call.keys) == 1
