#!filepath: tests/test_retry.py
import pytest

from worldtick import retry
from worldtick.utils.errors import LockContention


@pytest.fixture
def no_sleep(monkeypatch):
    sleeps = []
    monkeypatch.setattr("time.sleep", lambda t: sleeps.append(t))
    return sleeps


def test_retry_success_without_retry():
    """第一次就成功"""
    calls = {"n": 0}

    @retry.decorator(max_attempts=3)
    def func():
        calls["n"] += 1
        return "ok"

    assert func() == "ok"
    assert calls["n"] == 1


def test_retry_until_lock_frees(no_sleep):
    """锁被占用两次后拿到"""
    calls = {"n": 0}

    def run_tick():
        calls["n"] += 1
        if calls["n"] < 3:
            raise LockContention("scheduled:abc")
        return {"tickNumber": 7}

    out = retry.run(run_tick, exceptions=(LockContention,), max_attempts=5, delay=0.01, jitter=False)

    assert out == {"tickNumber": 7}
    assert calls["n"] == 3
    assert len(no_sleep) == 2


def test_retry_raises_after_max_attempts(no_sleep):
    calls = {"n": 0}

    @retry.decorator(exceptions=(LockContention,), max_attempts=3, delay=0.01)
    def func():
        calls["n"] += 1
        raise LockContention("other")

    with pytest.raises(LockContention):
        func()
    assert calls["n"] == 3


def test_other_exceptions_not_retried(no_sleep):
    calls = {"n": 0}

    @retry.decorator(exceptions=(LockContention,), max_attempts=3)
    def func():
        calls["n"] += 1
        raise ValueError("not contention")

    with pytest.raises(ValueError):
        func()
    assert calls["n"] == 1
    assert no_sleep == []


def test_exponential_backoff(no_sleep):
    @retry.decorator(max_attempts=4, delay=1, backoff=2, jitter=False)
    def func():
        raise ValueError("fail")

    with pytest.raises(ValueError):
        func()

    assert no_sleep == [1, 2, 4]


def test_backoff_delay_with_jitter_stays_in_band():
    for attempt in (1, 2, 3):
        base = 0.5 * 2 ** (attempt - 1)
        wait = retry.backoff_delay(attempt, 0.5, 2.0, True)
        assert base * 0.8 <= wait <= base * 1.2
