"""Job management API: submit generation jobs and poll their status."""

import logging

from fastapi import APIRouter, HTTPException

from changelog_video.errors import NotFoundError
from changelog_video.jobs.models import GenerateVideoRequest, JobResponse
from changelog_video.jobs.service import to_response

logger = logging.getLogger(__name__)

router = APIRouter()

# Set by main.py during lifespan
_job_service = None


def set_job_service(service):
    global _job_service
    _job_service = service


def get_job_service():
    if _job_service is None:
        raise HTTPException(status_code=503, detail="Job service not initialized")
    return _job_service


@router.post(
    "/generate-video",
    response_model=JobResponse,
    response_model_exclude_none=True,
    summary="Generate video from a changelog",
)
async def generate_video(request: GenerateVideoRequest):
    """Queue a video generation job. Returns immediately; poll the job for progress."""
    service = get_job_service()
    try:
        job = await service.create_job(request)
    except Exception:
        logger.exception("Failed to create job for %s", request.changelog_url)
        raise HTTPException(status_code=500, detail="Failed to create job")
    return to_response(job)


@router.get(
    "/jobs/{job_id}",
    response_model=JobResponse,
    response_model_exclude_none=True,
    summary="Get job status",
)
async def get_job_status(job_id: str):
    """Get the current status of a job; completed jobs link to the video proxy."""
    service = get_job_service()
    try:
        job = await service.get_job(job_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return to_response(job)
