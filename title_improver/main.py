from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from common.datetime_utils import utcnow_aware
from common.exception_handlers import ResourceNotFoundException, setup_exception_handlers
from common.log_utils import get_logger, setup_structured_logging

from .core.config import Settings, get_settings
from .core.models import Job, JobListResponse, SubmitRequest, SubmitResponse
from .domain.pipeline import Pipeline, build_pipeline
from .infrastructure.redis_store import get_job_store
from .shared.events import get_event_bus

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    store=None,
    bus=None,
    channel_client=None,
    title_client=None,
) -> FastAPI:
    """
    Build the API. Store, bus and collaborator clients default to the ones
    selected by ``settings``; tests pass their own.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # ---- startup ----
        setup_structured_logging(
            service_name="title-improver",
            log_level=settings.log_level,
            log_dir=settings.log_dir,
            json_format=settings.log_format == "json",
        )
        job_store = store if store is not None else get_job_store(settings)
        event_bus = bus if bus is not None else get_event_bus(settings)
        app.state.pipeline = build_pipeline(
            settings, job_store, event_bus,
            channel_client=channel_client,
            title_client=title_client,
        )
        logger.info(f"{settings.app_name} started ({settings.environment})")

        yield

        # ---- shutdown ----
        try:
            job_store.close()
            logger.info(f"{settings.app_name} stopped gracefully")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")

    app = FastAPI(
        title=settings.app_name,
        description="Rewrites a YouTube channel's video titles through an event-driven job pipeline",
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.settings = settings

    setup_exception_handlers(app, debug=settings.debug)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def pipeline_of(request: Request) -> Pipeline:
        return request.app.state.pipeline

    @app.post("/submit", status_code=201, response_model=SubmitResponse)
    @app.post("/jobs", status_code=201, response_model=SubmitResponse, include_in_schema=False)
    async def submit_channel(body: SubmitRequest, request: Request) -> SubmitResponse:
        """
        Queue a title-improvement job

        - **channel**: channel id or ``@handle``
        - **email**: ``{"email": "..."}`` or a plain string
        - **jobId**: optional, generated when omitted
        """
        logger.info("Received submission request", extra={'job_id': body.job_id})
        return await pipeline_of(request).submit.submit(body)

    @app.get("/jobs/{job_id}", response_model=Job)
    async def get_job(job_id: str, request: Request) -> Job:
        job = pipeline_of(request).store.get(job_id)
        if job is None:
            raise ResourceNotFoundException("Job", job_id)
        return job

    @app.get("/jobs", response_model=JobListResponse)
    async def list_jobs(request: Request, limit: int = 50) -> JobListResponse:
        job_ids = pipeline_of(request).store.list_ids(limit=limit)
        return JobListResponse(jobs=job_ids, total=len(job_ids))

    @app.get("/health")
    async def health_check(request: Request):
        pipeline = pipeline_of(request)
        store_ok = pipeline.store.ping()
        checks = {
            "job_store": {"backend": settings.job_store_backend, "healthy": store_ok},
            "event_bus": {"backend": settings.event_bus_backend, "healthy": True},
        }
        healthy = all(check["healthy"] for check in checks.values())
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                "status": "healthy" if healthy else "degraded",
                "service": "title-improver",
                "version": settings.version,
                "timestamp": utcnow_aware().isoformat(),
                "checks": checks,
            },
        )

    @app.get("/")
    async def root():
        return {
            "service": settings.app_name,
            "version": settings.version,
            "endpoints": {
                "submit": "POST /submit",
                "job_status": "GET /jobs/{job_id}",
                "list_jobs": "GET /jobs",
                "health": "GET /health",
            },
        }

    return app


app = create_app()
