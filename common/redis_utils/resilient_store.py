"""
Redis access for job records: pooled connections behind a circuit breaker.

Reads degrade to "nothing there" while Redis is unavailable; writes report
failure to the caller, which decides whether that is fatal.
"""
import logging
import socket
import time
from enum import Enum
from typing import Any, Callable, List, Optional

from redis import Redis
from redis.connection import ConnectionPool

logger = logging.getLogger(__name__)


class CircuitBreakerOpenError(Exception):
    """Call rejected without touching Redis"""


class BreakerState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class RedisCircuitBreaker:
    """
    CLOSED -> OPEN after ``max_failures`` consecutive failures.
    OPEN -> HALF_OPEN once ``timeout_seconds`` have passed.
    HALF_OPEN -> CLOSED on the first success, back to OPEN after
    ``half_open_max_requests`` probes without one.
    """

    def __init__(self, max_failures: int = 5, timeout_seconds: int = 60, half_open_max_requests: int = 3):
        self.max_failures = max_failures
        self.timeout_seconds = timeout_seconds
        self.half_open_max_requests = half_open_max_requests

        self.state = BreakerState.CLOSED
        self.failure_count = 0
        self.half_open_attempts = 0
        self.opened_at: Optional[float] = None

    def _open(self, reason: str):
        self.state = BreakerState.OPEN
        self.opened_at = time.monotonic()
        logger.error(f"🔌 Redis circuit OPEN: {reason}")

    def is_open(self) -> bool:
        if self.state is BreakerState.OPEN:
            if self.opened_at is not None and time.monotonic() - self.opened_at > self.timeout_seconds:
                logger.info("Redis circuit HALF_OPEN, probing")
                self.state = BreakerState.HALF_OPEN
                self.half_open_attempts = 0
                return False
            return True
        if self.state is BreakerState.HALF_OPEN and self.half_open_attempts >= self.half_open_max_requests:
            self._open("half-open probe budget spent")
            return True
        return False

    def record_success(self):
        if self.state is not BreakerState.CLOSED:
            logger.info(f"✅ Redis circuit {self.state.value} -> CLOSED")
        self.state = BreakerState.CLOSED
        self.failure_count = 0
        self.half_open_attempts = 0
        self.opened_at = None

    def record_failure(self):
        if self.state is BreakerState.HALF_OPEN:
            self.half_open_attempts += 1
            if self.half_open_attempts >= self.half_open_max_requests:
                self._open("recovery probes failed")
            return

        self.failure_count += 1
        logger.warning(f"Redis failure {self.failure_count}/{self.max_failures}")
        if self.state is BreakerState.CLOSED and self.failure_count >= self.max_failures:
            self._open(f"{self.failure_count} consecutive failures")

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """
        Raises:
            CircuitBreakerOpenError: when the circuit rejects the call
        """
        if self.is_open():
            raise CircuitBreakerOpenError(f"Redis circuit is {self.state.value}")
        if self.state is BreakerState.HALF_OPEN:
            self.half_open_attempts += 1
        try:
            result = func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result


class ResilientRedisStore:
    """Thin wrapper over redis-py exposing only what the job store needs"""

    CONNECT_ATTEMPTS = 3

    def __init__(
        self,
        redis_url: str,
        max_connections: int = 50,
        socket_connect_timeout: int = 5,
        socket_timeout: int = 10,
        health_check_interval: int = 30,
        circuit_breaker_enabled: bool = True,
        circuit_breaker_max_failures: int = 5,
        circuit_breaker_timeout: int = 60,
    ):
        self.redis_url = redis_url

        keepalive = {}
        if hasattr(socket, "TCP_KEEPIDLE"):
            keepalive = {socket.TCP_KEEPIDLE: 60, socket.TCP_KEEPINTVL: 10, socket.TCP_KEEPCNT: 3}

        self.pool = ConnectionPool.from_url(
            redis_url,
            max_connections=max_connections,
            socket_connect_timeout=socket_connect_timeout,
            socket_timeout=socket_timeout,
            socket_keepalive=True,
            socket_keepalive_options=keepalive,
            retry_on_timeout=True,
            health_check_interval=health_check_interval,
            decode_responses=True,
        )
        self.redis = Redis(connection_pool=self.pool)
        self.circuit_breaker = (
            RedisCircuitBreaker(circuit_breaker_max_failures, circuit_breaker_timeout)
            if circuit_breaker_enabled else None
        )

        self._wait_for_redis()

    def _wait_for_redis(self):
        """Ping with exponential backoff; the last failure propagates"""
        for attempt in range(1, self.CONNECT_ATTEMPTS + 1):
            try:
                self.redis.ping()
                logger.info(f"✅ Redis connected: {self.redis_url}")
                return
            except Exception:
                if attempt == self.CONNECT_ATTEMPTS:
                    logger.error(f"❌ Redis unreachable after {attempt} attempts")
                    raise
                delay = 2 ** (attempt - 1)
                logger.warning(f"⚠️ Redis attempt {attempt}/{self.CONNECT_ATTEMPTS} failed, retrying in {delay}s")
                time.sleep(delay)

    def _run(self, func: Callable, *args, **kwargs) -> Any:
        if self.circuit_breaker is None:
            return func(*args, **kwargs)
        return self.circuit_breaker.call(func, *args, **kwargs)

    def ping(self) -> bool:
        try:
            return bool(self._run(self.redis.ping))
        except Exception as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    def hget(self, key: str, field: str, raise_errors: bool = False) -> Optional[str]:
        """
        Hash field value; None when missing.

        When Redis is unavailable this also returns None, unless
        ``raise_errors`` is set, in which case the error propagates.
        """
        try:
            return self._run(self.redis.hget, key, field)
        except CircuitBreakerOpenError:
            logger.warning(f"Circuit open, HGET {key} skipped")
            if raise_errors:
                raise
        except Exception as e:
            logger.error(f"HGET {key} failed: {e}")
            if raise_errors:
                raise
        return None

    def hset(self, key: str, field: str, value: str) -> bool:
        """True when the write reached Redis"""
        try:
            self._run(self.redis.hset, key, field, value)
            return True
        except CircuitBreakerOpenError:
            logger.warning(f"Circuit open, HSET {key} skipped")
        except Exception as e:
            logger.error(f"HSET {key} failed: {e}")
        return False

    def scan_keys(self, pattern: str, limit: int = 100) -> List[str]:
        """Up to ``limit`` keys matching ``pattern`` (SCAN, not KEYS)"""
        keys: List[str] = []
        try:
            for key in self._run(self.redis.scan_iter, match=pattern):
                keys.append(key)
                if len(keys) >= limit:
                    break
        except CircuitBreakerOpenError:
            logger.warning(f"Circuit open, SCAN {pattern} skipped")
        except Exception as e:
            logger.error(f"SCAN {pattern} failed: {e}")
        return keys

    def close(self):
        try:
            self.pool.disconnect()
            logger.info("Redis connection pool closed")
        except Exception as e:
            logger.error(f"Error closing Redis pool: {e}")
