import copy
import json
import logging
from typing import Dict, List, Optional, Protocol

from pydantic import ValidationError

from common.redis_utils import ResilientRedisStore

from ..core.models import Job
from ..shared.exceptions import JobStoreError

logger = logging.getLogger(__name__)

KEY_PREFIX = "title_improver:job:"


class JobStore(Protocol):
    def get(self, job_id: str) -> Optional[Job]: ...
    def set(self, job_id: str, job: Job) -> None: ...
    def list_ids(self, limit: int = 100) -> List[str]: ...
    def ping(self) -> bool: ...


class RedisJobStore:
    """
    Job store on Redis (with resilience).

    Each job lives in a hash at ``title_improver:job:{job_id}`` whose only
    field is the job id; the value is the job as camelCase JSON. Records are
    never expired.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        circuit_breaker_max_failures: int = 5,
        circuit_breaker_timeout: int = 60,
        redis_client=None,
    ):
        """
        Args:
            redis_url: Redis connection URL
            circuit_breaker_max_failures: Failures before the circuit opens
            circuit_breaker_timeout: Seconds before a half-open retry
            redis_client: Pre-built ResilientRedisStore (tests inject a mock)
        """
        if redis_client is None:
            redis_client = ResilientRedisStore(
                redis_url=redis_url,
                max_connections=50,
                circuit_breaker_enabled=True,
                circuit_breaker_max_failures=circuit_breaker_max_failures,
                circuit_breaker_timeout=circuit_breaker_timeout,
            )
        self.redis_client = redis_client
        logger.info("✅ Job store ready on Redis: %s", redis_url)

    def _job_key(self, job_id: str) -> str:
        return f"{KEY_PREFIX}{job_id}"

    def _serialize_job(self, job: Job) -> str:
        return json.dumps(job.model_dump(mode='json', by_alias=True))

    def _deserialize_job(self, data: str) -> Job:
        return Job.model_validate(json.loads(data))

    def get(self, job_id: str) -> Optional[Job]:
        """
        Job by id, or None when absent or unreadable.

        Raises:
            JobStoreError: if Redis could not be read
        """
        try:
            data = self.redis_client.hget(self._job_key(job_id), job_id, raise_errors=True)
        except Exception as exc:
            raise JobStoreError(f"Failed to read job {job_id}", job_id=job_id, cause=exc) from exc
        if not data:
            return None
        try:
            return self._deserialize_job(data)
        except (ValueError, ValidationError) as exc:
            logger.error("Corrupt job record %s: %s", job_id, exc)
            return None

    def set(self, job_id: str, job: Job) -> None:
        """
        Upsert the whole record.

        Raises:
            JobStoreError: if the write did not reach Redis
        """
        if not self.redis_client.hset(self._job_key(job_id), job_id, self._serialize_job(job)):
            raise JobStoreError(f"Failed to persist job {job_id}", job_id=job_id)
        logger.debug("Job %s saved (%s)", job_id, job.status.value)

    def list_ids(self, limit: int = 100) -> List[str]:
        keys = self.redis_client.scan_keys(f"{KEY_PREFIX}*", limit=limit)
        return [key[len(KEY_PREFIX):] for key in keys]

    def ping(self) -> bool:
        return self.redis_client.ping()

    def close(self):
        self.redis_client.close()


class InMemoryJobStore:
    """Process-local store for development and tests. Keeps deep copies."""

    def __init__(self):
        self._jobs: Dict[str, Job] = {}

    def get(self, job_id: str) -> Optional[Job]:
        job = self._jobs.get(job_id)
        return copy.deepcopy(job) if job is not None else None

    def set(self, job_id: str, job: Job) -> None:
        self._jobs[job_id] = copy.deepcopy(job)

    def list_ids(self, limit: int = 100) -> List[str]:
        return list(self._jobs)[-limit:]

    def ping(self) -> bool:
        return True

    def close(self):
        pass


def get_job_store(settings) -> JobStore:
    """Build the store selected by ``JOB_STORE_BACKEND``"""
    if settings.job_store_backend == "memory":
        logger.info("Using in-memory job store")
        return InMemoryJobStore()
    return RedisJobStore(
        redis_url=settings.redis_url,
        circuit_breaker_max_failures=settings.redis_circuit_breaker_max_failures,
        circuit_breaker_timeout=settings.redis_circuit_breaker_timeout,
    )
