"""
HTTP API for the Link Validator.

Exposes link ingestion, synchronous and background validation runs, job
tracking and the paginated broken-links report as a FastAPI application.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Tuple

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config.pydantic_config import LinkValidatorConfig
from .core.batch_validator import BatchValidationEngine
from .core.data_models import JobStatus, utc_now
from .core.ingestion import LinkIngestor
from .core.job_registry import ValidationJobRegistry
from .core.record_store import RecordStore, create_record_store
from .core.reporting import DEFAULT_PAGE_SIZE, BrokenLinkReporter
from .utils.error_handler import (
    JobNotFoundError,
    LinkValidatorError,
    ValidationCancelledError,
    ValidationInputError,
    ValidationRunInProgressError,
)

logger = logging.getLogger(__name__)

# Exception type -> HTTP status; anything else in the hierarchy is a 500
ERROR_STATUS_CODES = {
    ValidationInputError: 400,
    JobNotFoundError: 404,
    ValidationRunInProgressError: 409,
}


class AddLinksRequest(BaseModel):
    """Body of ``POST /api/links``"""

    links: Optional[List[str]] = None


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": message,
            "statusCode": status_code,
            "timestamp": utc_now().isoformat(),
        },
    )


def _status_for(error: LinkValidatorError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(error, error_type):
            return status_code
    return 500


def create_app(
    config: Optional[LinkValidatorConfig] = None,
    store: Optional[RecordStore] = None,
    engine: Optional[BatchValidationEngine] = None,
    registry: Optional[ValidationJobRegistry] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Components that are not supplied are built from ``config``. Components
    built here are closed when the application shuts down.

    Args:
        config: Loaded configuration (defaults apply when None)
        store: Record store gateway
        engine: Batch validation engine
        registry: Job registry shared with the engine

    Returns:
        Configured FastAPI application
    """
    config = config or LinkValidatorConfig()
    owns_store = store is None and engine is None
    owns_engine = engine is None

    if engine is not None:
        store = engine.store
        if registry is None:
            registry = engine.job_registry or ValidationJobRegistry()
        if engine.job_registry is None:
            engine.job_registry = registry
    else:
        registry = registry or ValidationJobRegistry()
        if store is None:
            store = create_record_store(config.store)
        engine = BatchValidationEngine.from_settings(store, config.validation, registry)

    # job id -> (task, cancel event) for background runs
    background_jobs: Dict[str, Tuple[asyncio.Task, asyncio.Event]] = {}

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Link Validator API started")
        yield
        for task, cancel_event in list(background_jobs.values()):
            cancel_event.set()
            task.cancel()
        if background_jobs:
            await asyncio.gather(
                *(task for task, _ in background_jobs.values()),
                return_exceptions=True,
            )
        if owns_engine:
            await engine.close()
        if owns_store:
            store.close()
        logger.info("Link Validator API stopped")

    app = FastAPI(
        title="Link Validator",
        description="Batch URL validation service",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.store = store
    app.state.engine = engine
    app.state.registry = registry
    app.state.background_jobs = background_jobs

    ingestor = LinkIngestor(store)
    reporter = BrokenLinkReporter(store)

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------

    @app.exception_handler(LinkValidatorError)
    async def handle_link_validator_error(request: Request, exc: LinkValidatorError):
        status_code = _status_for(exc)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return error_response(status_code, str(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(
        request: Request, exc: RequestValidationError
    ):
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        return error_response(400, f"Invalid request: {details}")

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return error_response(500, "An internal server error occurred")

    # ------------------------------------------------------------------
    # Background runs
    # ------------------------------------------------------------------

    async def run_job(job_id: str, cancel_event: asyncio.Event) -> None:
        try:
            await engine.validate_all(cancel_event=cancel_event, job_id=job_id)
        except ValidationCancelledError as e:
            logger.info(
                f"Validation job {job_id} cancelled after "
                f"{e.summary.total_processed if e.summary else 0} links"
            )
        except ValidationRunInProgressError as e:
            registry.update_status(job_id, JobStatus.FAILED, str(e))
        except Exception:
            # The engine has already marked the job as failed
            logger.exception(f"Validation job {job_id} failed")

    def ensure_idle() -> None:
        """Refuse a new run while one is active or still waiting to start."""
        if engine.is_running or any(
            not task.done() for task, _ in background_jobs.values()
        ):
            raise ValidationRunInProgressError()

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/api/links")
    def add_links(body: AddLinksRequest):
        records = ingestor.add_links(body.links)
        return {
            "message": "Links added successfully",
            "count": len(records),
            "links": [
                {"id": record.id, "link": record.url, "status": record.status.value}
                for record in records
            ],
        }

    @app.post("/api/links/validate")
    async def validate_links():
        ensure_idle()
        job = registry.create_job()
        summary = await engine.validate_all(job_id=job.job_id)
        return {
            "message": "Validation completed successfully",
            **summary.to_dict(),
            "jobId": job.job_id,
        }

    @app.get("/api/links/broken")
    def list_broken_links(
        page: int = Query(1),
        page_size: int = Query(DEFAULT_PAGE_SIZE, alias="pageSize"),
    ):
        return reporter.list_broken(page=page, page_size=page_size).to_dict()

    @app.post("/api/links/validate/jobs", status_code=202)
    async def start_validation_job():
        # No await between this check and create_task, so the task is
        # registered before another request can be served
        ensure_idle()
        job = registry.create_job()
        cancel_event = asyncio.Event()
        task = asyncio.create_task(run_job(job.job_id, cancel_event))
        background_jobs[job.job_id] = (task, cancel_event)
        task.add_done_callback(lambda _: background_jobs.pop(job.job_id, None))
        logger.info(f"Started background validation job {job.job_id}")
        return job.to_dict()

    @app.get("/api/links/jobs")
    async def list_jobs():
        return {"jobs": [job.to_dict() for job in registry.list_jobs()]}

    @app.get("/api/links/jobs/{job_id}")
    async def get_job(job_id: str):
        return registry.get_job(job_id).to_dict()

    @app.post("/api/links/jobs/{job_id}/cancel", status_code=202)
    async def cancel_job(job_id: str):
        job = registry.get_job(job_id)
        running = background_jobs.get(job_id)
        if running is not None:
            running[1].set()
            logger.info(f"Cancellation requested for validation job {job_id}")
        return job.to_dict()

    return app


__all__ = ["create_app", "error_response", "AddLinksRequest"]
