from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Process-wide configuration, loaded once at startup.

    Collaborator clients, stores and buses receive this object explicitly;
    nothing reads the environment per call.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===== APPLICATION =====
    app_name: str = "YouTube Title Improver"
    version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8010

    # ===== LOGGING =====
    log_level: str = "INFO"
    log_dir: str = "./logs"
    log_format: str = "json"

    # ===== REDIS / JOB STORE =====
    redis_url: str = "redis://localhost:6379/0"
    job_store_backend: str = "redis"  # redis | memory
    redis_circuit_breaker_max_failures: int = 5
    redis_circuit_breaker_timeout: int = 60

    # ===== EVENT BUS / CELERY =====
    event_bus_backend: str = "celery"  # celery | memory
    celery_broker_url: Optional[str] = None
    celery_result_backend: Optional[str] = None
    celery_queue: str = "title_improver_queue"
    celery_task_time_limit: int = 600
    celery_task_soft_time_limit: int = 540

    # ===== CHANNEL LOOKUP API =====
    youtube_api_url: str = Field(
        default="http://localhost:8003",
        validation_alias=AliasChoices("youtube_api_url", "youtube_api"),
    )
    youtube_timeout: float = 30.0

    # ===== GENERATIVE AI =====
    ai_api_key: Optional[str] = None
    ai_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    ai_model: str = "gemini-2.5-flash"
    ai_timeout: float = 60.0
    ai_temperature: float = 0.7
    ai_top_p: float = 0.8
    ai_top_k: int = 10

    # ===== CORS =====
    cors_origins: str = "*"

    @field_validator("port")
    @classmethod
    def port_must_be_valid(cls, v: int) -> int:
        if not (1 <= v <= 65535):
            raise ValueError(f"PORT must be 1-65535, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator("job_store_backend")
    @classmethod
    def job_store_backend_must_be_known(cls, v: str) -> str:
        if v.lower() not in ("redis", "memory"):
            raise ValueError(f"JOB_STORE_BACKEND must be redis or memory, got {v}")
        return v.lower()

    @field_validator("event_bus_backend")
    @classmethod
    def event_bus_backend_must_be_known(cls, v: str) -> str:
        if v.lower() not in ("celery", "memory"):
            raise ValueError(f"EVENT_BUS_BACKEND must be celery or memory, got {v}")
        return v.lower()

    @model_validator(mode="after")
    def celery_defaults_to_redis(self) -> "Settings":
        # Broker and result backend fall back to the job store's Redis
        if not self.celery_broker_url:
            self.celery_broker_url = self.redis_url
        if not self.celery_result_backend:
            self.celery_result_backend = self.redis_url
        return self

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def youtube_api_base(self) -> str:
        return self.youtube_api_url.rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return service settings (cached singleton).
    Env changes after the first call are ignored.
    """
    return Settings()
