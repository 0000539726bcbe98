"""Video generation pipeline.

Drives one job from ``queued`` to ``completed`` or ``failed``:

1. Fetch the changelog and extract the latest release
2. Summarize it into a short video script
3. Derive an image prompt from the script
4. Generate a key image (polled)
5. Generate the video from the image and script (polled, longer budget)

Any error stops the pipeline and is recorded on the job. Nothing is retried.
"""

import asyncio
import logging
from typing import Optional

from changelog_video.errors import ChangelogVideoError, ProviderFailure, ProviderTimeout
from changelog_video.jobs.models import VideoJob
from changelog_video.jobs.registry import JobRegistry
from changelog_video.pipeline.polling import PollPolicy, SleepFn, invoke_stage
from changelog_video.providers.base import (
    ChangelogSource,
    ImageGenerator,
    ScriptWriter,
    VideoGenerator,
)
from changelog_video.storage.result_gateway import strip_credentials

logger = logging.getLogger(__name__)

IMAGE_STAGE = "Image generation"
VIDEO_STAGE = "Video generation"


class VideoPipeline:
    """Runs the fixed stage sequence for one job at a time per call."""

    def __init__(
        self,
        registry: JobRegistry,
        changelog: ChangelogSource,
        writer: ScriptWriter,
        images: ImageGenerator,
        videos: VideoGenerator,
        image_policy: PollPolicy,
        video_policy: PollPolicy,
        sleep: Optional[SleepFn] = None,
    ):
        self._registry = registry
        self._changelog = changelog
        self._writer = writer
        self._images = images
        self._videos = videos
        self._image_policy = image_policy
        self._video_policy = video_policy
        self._sleep = sleep or asyncio.sleep

    async def run(self, job_id: str) -> VideoJob:
        """Process a queued job to a terminal state and return the final record."""
        job = await self._registry.update(job_id, lambda j: j.start())

        try:
            video_url = await self._run_stages(job)
            # Credentials are re-attached only by the result gateway
            stored_url = strip_credentials(video_url)
            job = await self._registry.update(job_id, lambda j: j.complete(stored_url))
        except ProviderTimeout as exc:
            logger.error("[%s] %s timed out: %s", job_id, exc.stage, exc)
            error = str(exc)
        except ProviderFailure as exc:
            logger.error("[%s] %s rejected by provider: %s", job_id, exc.stage or "Request", exc)
            error = str(exc)
        except ChangelogVideoError as exc:
            logger.error("[%s] Error: %s", job_id, exc)
            error = str(exc)
        except Exception as exc:
            logger.exception("[%s] Unexpected error", job_id)
            error = str(exc) or type(exc).__name__
        else:
            logger.info("[%s] Video generation completed", job_id)
            return job

        return await self._registry.update(job_id, lambda j: j.fail(error))

    async def _run_stages(self, job: VideoJob) -> str:
        source = job.source

        logger.info("[%s] Fetching changelog...", job.id)
        changelog = await self._changelog.fetch(str(source.changelog_url))
        latest_release = self._changelog.extract_latest_release(changelog)

        logger.info("[%s] Analyzing changelog...", job.id)
        script = await self._writer.summarize(latest_release)

        logger.info("[%s] Generating image prompt...", job.id)
        image_prompt = await self._writer.derive_image_prompt(script)

        logger.info("[%s] Generating image...", job.id)
        image = await invoke_stage(
            IMAGE_STAGE,
            start=lambda: self._images.start_image(image_prompt),
            poll=self._images.poll_image,
            policy=self._image_policy,
            sleep=self._sleep,
        )
        image_url = image.unwrap()

        logger.info("[%s] Generating video...", job.id)
        video = await invoke_stage(
            VIDEO_STAGE,
            start=lambda: self._videos.start_video(
                image_url, script, source.aspect_ratio, source.resolution
            ),
            poll=self._videos.poll_video,
            policy=self._video_policy,
            sleep=self._sleep,
        )
        return video.unwrap()
