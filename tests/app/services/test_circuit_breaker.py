"""Tests for app.services.circuit_breaker — delivery channel breakers and registry."""
import time
import pytest
import redis
from unittest.mock import MagicMock

from app.services.circuit_breaker import (
    CircuitBreaker, CircuitOpenError, CLOSED, OPEN, HALF_OPEN,
    get_breaker, get_all_breakers, init_breakers, _registry,
)


@pytest.fixture(autouse=True)
def _clean_registry():
    saved = dict(_registry)
    yield
    _registry.clear()
    _registry.update(saved)


@pytest.fixture
def cb(fake_redis):
    return CircuitBreaker('smtp', fake_redis, failure_threshold=3, reset_timeout=10)


def _fail():
    raise OSError("connection refused")


def _trip(cb, times=3):
    for _ in range(times):
        with pytest.raises(OSError):
            cb.call(_fail)


# ---------------------------------------------------------------------------
# State transitions
# ---------------------------------------------------------------------------

class TestCircuitBreakerStates:
    """CLOSED → OPEN → HALF_OPEN → CLOSED."""

    def test_starts_closed(self, cb):
        assert cb.state == CLOSED

    def test_counts_failures_below_threshold(self, cb):
        _trip(cb, 2)
        assert cb.failure_count == 2
        assert cb.state == CLOSED

    def test_opens_at_threshold(self, cb):
        _trip(cb)
        assert cb.state == OPEN

    def test_open_rejects_without_calling(self, cb):
        _trip(cb)
        func = MagicMock()
        with pytest.raises(CircuitOpenError) as exc_info:
            cb.call(func)
        func.assert_not_called()
        assert exc_info.value.name == 'smtp'
        assert 0 < exc_info.value.retry_after <= 10

    def test_half_open_after_timeout(self, cb, fake_redis):
        _trip(cb)
        fake_redis.hash_store['cb:smtp']['opened_at'] = str(time.time() - 20)
        assert cb.state == HALF_OPEN

    def test_trial_success_closes(self, cb, fake_redis):
        _trip(cb)
        fake_redis.hash_store['cb:smtp']['opened_at'] = str(time.time() - 20)
        assert cb.call(lambda: 'sent') == 'sent'
        assert cb.state == CLOSED
        assert cb.failure_count == 0

    def test_trial_failure_reopens(self, cb, fake_redis):
        _trip(cb)
        fake_redis.hash_store['cb:smtp']['opened_at'] = str(time.time() - 20)
        _trip(cb, 1)
        assert cb.state == OPEN


class TestCircuitBreakerReset:

    def test_reset_closes_and_allows_calls(self, cb):
        _trip(cb)
        cb.reset()
        assert cb.state == CLOSED
        assert cb.failure_count == 0
        assert cb.call(lambda: 'ok') == 'ok'


class TestCircuitBreakerHealth:

    def test_counts_success_and_failure(self, cb):
        cb.call(lambda: 'ok')
        _trip(cb, 1)
        health = cb.get_health()
        assert health['name'] == 'smtp'
        assert health['total_success'] == 1
        assert health['total_failure'] == 1
        assert health['last_error'] == 'connection refused'
        assert health['last_success'] is not None

    def test_includes_thresholds(self, cb):
        health = cb.get_health()
        assert health['failure_threshold'] == 3
        assert health['reset_timeout'] == 10
        assert health['state'] == CLOSED


class TestRedisUnavailable:
    """Breaker state is advisory: Redis errors never block delivery."""

    def test_call_passes_through(self):
        broken = MagicMock()
        broken.hgetall.side_effect = redis.ConnectionError('down')
        broken.hincrby.side_effect = redis.ConnectionError('down')
        broken.pipeline.side_effect = redis.ConnectionError('down')
        cb = CircuitBreaker('whatsapp', broken)
        assert cb.call(lambda: 'sent') == 'sent'
        assert cb.state == CLOSED

    def test_failure_still_raises_original_error(self):
        broken = MagicMock()
        broken.hgetall.return_value = {}
        broken.hincrby.side_effect = redis.ConnectionError('down')
        cb = CircuitBreaker('whatsapp', broken)
        with pytest.raises(OSError):
            cb.call(_fail)


class TestCircuitBreakerDecorator:

    def test_protect_tracks_failures(self, cb):
        @cb.protect
        def deliver():
            raise OSError("timeout")
        with pytest.raises(OSError):
            deliver()
        assert cb.failure_count == 1


class TestCircuitBreakerRegistry:

    def test_init_breakers_covers_delivery_channels(self, fake_redis):
        breakers = init_breakers(fake_redis)
        assert set(breakers) == {'smtp', 'whatsapp'}
        assert breakers['smtp'].reset_timeout == 120
        assert breakers['whatsapp'].reset_timeout == 300
        assert get_all_breakers()['smtp'] is breakers['smtp']

    def test_get_breaker_creates_on_demand(self, fake_redis):
        cb = get_breaker('slack', fake_redis, failure_threshold=5)
        assert cb.failure_threshold == 5
        assert get_breaker('slack') is cb
