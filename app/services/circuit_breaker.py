"""
Circuit breakers for outbound delivery channels (SMTP and WhatsApp).

Each breaker keeps its whole state in one Redis hash, cb:{name}:
  state, failures, opened_at         → breaker state machine
  success, failure, last_success,
  last_failure, last_error           → health counters for /api/health

States:
  - CLOSED    → sends pass through
  - OPEN      → too many consecutive failures, sends raise CircuitOpenError
  - HALF_OPEN → reset_timeout elapsed, the next send is a trial

If Redis itself is unreachable the breaker stays out of the way (fail-open).
"""
import logging
import time
from functools import wraps

import redis

logger = logging.getLogger('services.circuit_breaker')

CLOSED = 'closed'
OPEN = 'open'
HALF_OPEN = 'half_open'


class CircuitOpenError(Exception):
    """Raised when sending through an open breaker."""
    def __init__(self, name, retry_after=None):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{name}' is open, {name} delivery paused")


class CircuitBreaker:
    """
    Usage:
        cb = CircuitBreaker('smtp', redis_client, failure_threshold=3, reset_timeout=120)
        cb.call(transport.send_message, msg)
    """

    PREFIX = 'cb'

    def __init__(self, name, redis_client, failure_threshold=3, reset_timeout=300):
        self.name = name
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout

    @property
    def key(self):
        return f'{self.PREFIX}:{self.name}'

    def _load(self):
        try:
            return self.redis.hgetall(self.key) or {}
        except redis.RedisError as e:
            logger.debug("Breaker '%s' state unavailable: %s", self.name, e)
            return {}

    def _write(self, mapping):
        try:
            self.redis.hset(self.key, mapping=mapping)
        except redis.RedisError as e:
            logger.debug("Breaker '%s' state not saved: %s", self.name, e)

    # ── State ─────────────────────────────────────────────────────────

    def _state_from(self, data):
        current = data.get('state') or CLOSED
        if current == OPEN:
            opened_at = float(data.get('opened_at') or 0)
            if time.time() - opened_at >= self.reset_timeout:
                return HALF_OPEN
        return current

    @property
    def state(self):
        return self._state_from(self._load())

    @property
    def failure_count(self):
        return int(self._load().get('failures') or 0)

    def get_health(self):
        data = self._load()
        return {
            'name': self.name,
            'state': self._state_from(data),
            'failure_count': int(data.get('failures') or 0),
            'failure_threshold': self.failure_threshold,
            'reset_timeout': self.reset_timeout,
            'total_success': int(data.get('success') or 0),
            'total_failure': int(data.get('failure') or 0),
            'last_success': float(data['last_success']) if data.get('last_success') else None,
            'last_failure': float(data['last_failure']) if data.get('last_failure') else None,
            'last_error': data.get('last_error', ''),
        }

    # ── Calls ─────────────────────────────────────────────────────────

    def call(self, func, *args, **kwargs):
        data = self._load()
        if self._state_from(data) == OPEN:
            opened_at = float(data.get('opened_at') or 0)
            retry_after = max(0, self.reset_timeout - (time.time() - opened_at))
            raise CircuitOpenError(self.name, retry_after=retry_after)

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result

    def _on_success(self):
        try:
            pipe = self.redis.pipeline()
            pipe.hset(self.key, mapping={
                'state': CLOSED,
                'failures': 0,
                'last_success': str(time.time()),
            })
            pipe.hincrby(self.key, 'success', 1)
            pipe.execute()
        except redis.RedisError as e:
            logger.debug("Breaker '%s' success not recorded: %s", self.name, e)

    def _on_failure(self, error):
        try:
            failures = self.redis.hincrby(self.key, 'failures', 1)
            self.redis.hincrby(self.key, 'failure', 1)
        except redis.RedisError as e:
            logger.debug("Breaker '%s' failure not recorded: %s", self.name, e)
            return

        now = str(time.time())
        update = {'last_failure': now, 'last_error': str(error)[:200]}
        if failures >= self.failure_threshold:
            update['state'] = OPEN
            update['opened_at'] = now
            logger.warning(
                "Circuit '%s' OPENED after %d failures (threshold=%d): %s",
                self.name, failures, self.failure_threshold, error,
            )
        else:
            logger.info("Circuit '%s' failure %d/%d: %s",
                        self.name, failures, self.failure_threshold, error)
        self._write(update)

    def reset(self):
        """Force the breaker closed."""
        self._write({'state': CLOSED, 'failures': 0, 'opened_at': 0})
        logger.info("Circuit '%s' manually reset to CLOSED", self.name)

    def protect(self, func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            return self.call(func, *args, **kwargs)
        return wrapper


# ── Registry ──────────────────────────────────────────────────────────────

_registry = {}

CHANNELS = {
    'smtp': dict(failure_threshold=3, reset_timeout=120),
    'whatsapp': dict(failure_threshold=3, reset_timeout=300),
}


def get_breaker(name, redis_client=None, **kwargs):
    """Get or create a named breaker (one per name per process)."""
    if name not in _registry:
        if redis_client is None:
            from app.extensions import redis_client as rc
            redis_client = rc
        options = dict(CHANNELS.get(name, {}))
        options.update(kwargs)
        _registry[name] = CircuitBreaker(name, redis_client, **options)
    return _registry[name]


def get_all_breakers():
    return dict(_registry)


def init_breakers(redis_client):
    """Create the breaker for every delivery channel."""
    breakers = {
        name: CircuitBreaker(name, redis_client, **options)
        for name, options in CHANNELS.items()
    }
    _registry.update(breakers)
    return breakers
