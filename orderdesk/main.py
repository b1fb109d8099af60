"""ASGI entry point: app factory, lifespan and background scheduler."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from orderdesk import db
from orderdesk.config import CREATE_ALL_ENVS, AppInfo, Settings, get_settings
from orderdesk.core.logging import get_logger, setup_logging
from orderdesk.core.runtime_state import set_scheduler_active
import orderdesk.models  # noqa: F401  registers the tables
from orderdesk.routers import get_api_router
from orderdesk.services.cron import (
    complete_expired_budgets_once,
    process_scheduled_tasks_once,
    scheduler_heartbeat,
)
from orderdesk.services.scheduler_lock import release_scheduler_lock, try_acquire_scheduler_lock
from orderdesk.utils.errors import error_response

logger = get_logger(__name__)
scheduler: AsyncIOScheduler | None = None


def _scheduled_jobs(settings: Settings) -> list[tuple[str, Callable[..., Any], dict[str, Any]]]:
    return [
        (
            "process-scheduled-tasks",
            process_scheduled_tasks_once,
            {"seconds": settings.TASK_POLL_SECONDS, "max_instances": 1, "coalesce": True},
        ),
        (
            "complete-expired-budgets",
            complete_expired_budgets_once,
            {"minutes": settings.BUDGET_EXPIRY_INTERVAL_MINUTES},
        ),
        ("scheduler-lock-heartbeat", scheduler_heartbeat, {"seconds": 60}),
    ]


def _start_scheduler(settings: Settings) -> AsyncIOScheduler:
    runner = AsyncIOScheduler()
    for job_id, func, options in _scheduled_jobs(settings):
        runner.add_job(func, "interval", id=job_id, replace_existing=True, **options)
    runner.start()
    logger.info("Scheduler started", extra={"jobs": [job.id for job in runner.get_jobs()]})
    return runner


def _bootstrap_schema(settings: Settings) -> None:
    if settings.ALLOW_DB_CREATE_ALL and settings.app_env.lower() in CREATE_ALL_ENVS:
        logger.warning("Creating tables with create_all()", extra={"env": settings.app_env})
        db.create_all()
        return
    logger.info(
        "Schema managed by Alembic migrations",
        extra={"env": settings.app_env, "allow_create_all": settings.ALLOW_DB_CREATE_ALL},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    global scheduler
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    logger.info("Application startup", extra={"env": settings.app_env})

    db.init_engine()
    _bootstrap_schema(settings)

    # Only the lease holder runs jobs; other replicas just serve requests.
    set_scheduler_active(False)
    lock_acquired = settings.SCHEDULER_ENABLED and try_acquire_scheduler_lock()
    if lock_acquired:
        scheduler = _start_scheduler(settings)
        set_scheduler_active(True)
    elif settings.SCHEDULER_ENABLED:
        logger.warning("Scheduler lock held elsewhere; jobs disabled here", extra={"env": settings.app_env})

    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=False)
            scheduler = None
        if lock_acquired:
            release_scheduler_lock()
        set_scheduler_active(False)
        db.close_engine()
        logger.info("Application shutdown", extra={"env": settings.app_env})


def _configure_middlewares(fastapi_app: FastAPI, settings: Settings) -> None:
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Idempotency-Key", "X-API-Key"],
    )

    if settings.PROMETHEUS_ENABLED:
        from starlette_exporter import PrometheusMiddleware, handle_metrics

        fastapi_app.add_middleware(PrometheusMiddleware)
        fastapi_app.add_route("/metrics", handle_metrics)

    if settings.SENTRY_DSN:
        import sentry_sdk

        sentry_sdk.init(dsn=settings.SENTRY_DSN, traces_sample_rate=0.2)


def _register_exception_handlers(fastapi_app: FastAPI) -> None:
    """Render every failure as ``{"error": {code, message, details?}}``."""

    @fastapi_app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        detail = exc.detail
        if isinstance(detail, dict) and "error" in detail:
            content: dict[str, Any] = detail
        else:
            content = error_response("HTTP_ERROR", str(detail))
        return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

    @fastapi_app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        payload = error_response(
            "VALIDATION_ERROR",
            "Request validation failed.",
            {"errors": jsonable_encoder(exc.errors())},
        )
        return JSONResponse(status_code=400, content=payload)

    @fastapi_app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception", extra={"path": request.url.path}, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content=error_response("INTERNAL_SERVER_ERROR", "An unexpected error occurred."),
        )


def create_app() -> FastAPI:
    info = AppInfo()
    fastapi_app = FastAPI(title=info.name, version=info.version, lifespan=lifespan)
    _configure_middlewares(fastapi_app, get_settings())
    _register_exception_handlers(fastapi_app)
    fastapi_app.include_router(get_api_router())
    return fastapi_app


app = create_app()


__all__ = ["app", "create_app"]
