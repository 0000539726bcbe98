"""Aggregate all v1 API routers."""

from fastapi import APIRouter
from changelog_video.api.v1.jobs import router as jobs_router
from changelog_video.api.v1.videos import router as videos_router

v1_router = APIRouter(prefix="/v1/api")
v1_router.include_router(jobs_router, tags=["jobs"])
v1_router.include_router(videos_router, tags=["videos"])
