import asyncio

import pytest

from deposit_miner.errors import NetworkError, ProverError
from deposit_miner.retry import RetryPolicy, call_with_retry, poll


@pytest.fixture
def sleeps(monkeypatch):
    calls = []

    async def fake_sleep(interval):
        calls.append(interval)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return calls


def test_poll_stops_after_attempts_without_trailing_sleep(sleeps):
    calls = []

    async def fetch():
        calls.append(1)
        return None

    result = asyncio.run(poll(fetch, RetryPolicy(attempts=3, interval=10.0)))

    assert result is None
    assert len(calls) == 3
    assert sleeps == [10.0, 10.0]


def test_poll_returns_first_value(sleeps):
    answers = iter([None, None, "receipt"])

    async def fetch():
        return next(answers)

    assert asyncio.run(poll(fetch, RetryPolicy(attempts=5, interval=1.0))) == "receipt"
    assert sleeps == [1.0, 1.0]


def test_call_with_retry_recovers_from_network_errors(sleeps):
    attempts = []

    async def call():
        attempts.append(1)
        if len(attempts) < 3:
            raise NetworkError("connection reset")
        return 7

    policy = RetryPolicy(attempts=3, interval=0.5, linear=True)

    assert asyncio.run(call_with_retry(call, policy)) == 7
    assert sleeps == [0.5, 1.0]


def test_call_with_retry_reraises_last_failure(sleeps):
    async def call():
        raise NetworkError("down")

    with pytest.raises(NetworkError):
        asyncio.run(call_with_retry(call, RetryPolicy(attempts=2, interval=0.0)))
    assert sleeps == [0.0]


def test_call_with_retry_does_not_retry_other_errors(sleeps):
    attempts = []

    async def call():
        attempts.append(1)
        raise ProverError("bad witness", code=422)

    with pytest.raises(ProverError):
        asyncio.run(call_with_retry(call, RetryPolicy(attempts=5)))
    assert len(attempts) == 1
    assert sleeps == []


def test_policy_validation():
    with pytest.raises(ValueError):
        RetryPolicy(attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(interval=-1)
