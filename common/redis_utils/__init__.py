"""Circuit-breaking Redis access used by the job store"""
from .resilient_store import CircuitBreakerOpenError, RedisCircuitBreaker, ResilientRedisStore

__all__ = ['CircuitBreakerOpenError', 'RedisCircuitBreaker', 'ResilientRedisStore']
