"""Job lifecycle: create, inspect and download video jobs."""

import logging

from changelog_video.errors import NotFoundError
from changelog_video.jobs.dispatcher import JobDispatcher
from changelog_video.jobs.models import (
    GenerateVideoRequest,
    JobResponse,
    JobStatus,
    VideoJob,
)
from changelog_video.jobs.registry import JobRegistry
from changelog_video.storage.result_gateway import ResultArtifact, ResultGateway

logger = logging.getLogger(__name__)

VIDEO_PATH = "/v1/api/videos/{job_id}"


class JobService:
    """Sole writer of new job records; everything after creation is the pipeline's."""

    def __init__(
        self,
        registry: JobRegistry,
        dispatcher: JobDispatcher,
        gateway: ResultGateway,
    ):
        self._registry = registry
        self._dispatcher = dispatcher
        self._gateway = gateway

    async def create_job(self, request: GenerateVideoRequest) -> VideoJob:
        """Store a queued job and start its pipeline without waiting on it."""
        job = VideoJob(source=request)
        await self._registry.create(job)
        try:
            self._dispatcher.submit(job.id)
        except Exception:
            await self._registry.discard(job.id)
            raise
        logger.info("[%s] Job queued for %s", job.id, request.changelog_url)
        return job

    async def get_job(self, job_id: str) -> VideoJob:
        job = await self._registry.get(job_id)
        if job is None:
            raise NotFoundError("Job not found")
        return job

    async def get_result(self, job_id: str) -> ResultArtifact:
        return await self._gateway.fetch(job_id)


def to_response(job: VideoJob) -> JobResponse:
    """Client view of a job. The upstream video URL is replaced by the proxy path."""
    video_url = None
    if job.status == JobStatus.COMPLETED and job.video_url:
        video_url = VIDEO_PATH.format(job_id=job.id)
    return JobResponse(
        id=job.id,
        status=job.status,
        created_at=job.created_at,
        changelog_url=str(job.source.changelog_url),
        video_url=video_url,
        error=job.error,
    )
