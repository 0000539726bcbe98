"""Changelog to Video API - FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Tuple

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from changelog_video.config import Settings, settings
from changelog_video.logging_setup import configure_logging
from changelog_video.api.v1.router import v1_router
from changelog_video.api.v1.health import router as health_router
from changelog_video.api.v1 import jobs as jobs_api
from changelog_video.jobs.dispatcher import TaskPerJobDispatcher
from changelog_video.jobs.registry import InMemoryJobRegistry
from changelog_video.jobs.service import JobService
from changelog_video.pipeline.orchestrator import VideoPipeline
from changelog_video.pipeline.polling import PollPolicy
from changelog_video.providers.changelog import HttpChangelogSource
from changelog_video.providers.gemini import GeminiProvider
from changelog_video.providers.higgsfield import HiggsfieldClient
from changelog_video.storage.result_gateway import ResultGateway

logger = logging.getLogger(__name__)

APP_NAME = "Changelog to Video API"
APP_VERSION = "1.0.0"


def build_job_service(config: Settings) -> Tuple[JobService, TaskPerJobDispatcher]:
    """Wire registry, providers, pipeline, dispatcher and result gateway."""
    registry = InMemoryJobRegistry()
    gemini = GeminiProvider(
        api_key=config.gemini_api_key,
        text_model=config.gemini_text_model,
        video_model=config.veo_model,
        http_timeout=config.http_timeout_seconds,
    )
    pipeline = VideoPipeline(
        registry=registry,
        changelog=HttpChangelogSource(timeout=config.http_timeout_seconds),
        writer=gemini,
        images=HiggsfieldClient(
            api_key=config.higgsfield_api_key,
            secret=config.higgsfield_secret,
            api_base=config.higgsfield_api_base,
            timeout=config.http_timeout_seconds,
        ),
        videos=gemini,
        image_policy=PollPolicy(
            interval=config.image_poll_interval_seconds,
            max_attempts=config.image_poll_max_attempts,
        ),
        video_policy=PollPolicy(
            interval=config.video_poll_interval_seconds,
            max_attempts=config.video_poll_max_attempts,
        ),
    )
    dispatcher = TaskPerJobDispatcher(worker_fn=pipeline.run)
    gateway = ResultGateway(
        registry=registry,
        api_key=config.gemini_api_key,
        allowed_hosts=tuple(config.result_allowed_hosts),
        timeout=config.http_timeout_seconds,
    )
    return JobService(registry, dispatcher, gateway), dispatcher


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    configure_logging(settings.debug)
    logger.info("Starting %s on port %d", APP_NAME, settings.port)
    logger.info("Environment: %s", settings.environment)
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; jobs will fail at the script stage")
    if not settings.higgsfield_api_key or not settings.higgsfield_secret:
        logger.warning("HIGGSFIELD_API_KEY/HIGGSFIELD_SECRET not set; jobs will fail at the image stage")

    service, dispatcher = build_job_service(settings)
    await dispatcher.start()
    jobs_api.set_job_service(service)
    logger.info("Job dispatcher started")

    yield

    logger.info("Shutting down %s", APP_NAME)
    await dispatcher.stop()
    jobs_api.set_job_service(None)


app = FastAPI(
    title=APP_NAME,
    description="Generate release videos from a changelog using Gemini Veo and Higgsfield",
    version=APP_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.is_development else None,
    openapi_url="/api/openapi.json" if settings.is_development else None,
    redoc_url=None,
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "ok": False,
            "error": "Validation failed",
            "details": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"ok": False, "error": "Internal server error"})


@app.get("/")
async def root():
    """API information."""
    endpoints = {
        "health": "/health",
        "generateVideo": "POST /v1/api/generate-video",
        "getJobStatus": "GET /v1/api/jobs/{jobId}",
        "downloadVideo": "GET /v1/api/videos/{jobId}",
    }
    if settings.is_development:
        endpoints.update(docs="/api/docs", openapi="/api/openapi.json")
    return {"name": APP_NAME, "version": APP_VERSION, "endpoints": endpoints}


# Mount routers
app.include_router(health_router, tags=["health"])
app.include_router(v1_router)
