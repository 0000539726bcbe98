"""Shared fixtures: in-memory registry, stubbed providers and a fast clock."""

import asyncio
from unittest.mock import MagicMock

import httpx
import pytest

from changelog_video.jobs.dispatcher import TaskPerJobDispatcher
from changelog_video.jobs.models import GenerateVideoRequest
from changelog_video.jobs.registry import InMemoryJobRegistry
from changelog_video.jobs.service import JobService
from changelog_video.pipeline.orchestrator import VideoPipeline
from changelog_video.pipeline.polling import PollPolicy, PollResult
from changelog_video.providers.base import (
    ChangelogSource,
    ImageGenerator,
    ScriptWriter,
    VideoGenerator,
)
from changelog_video.providers.changelog import extract_latest_release
from changelog_video.storage.result_gateway import ResultGateway

CHANGELOG_URL = "https://example.com/CHANGELOG.md"
IMAGE_URL = "https://cdn.higgsfield.ai/images/key-visual.png"
VIDEO_URL = "https://generativelanguage.googleapis.com/v1beta/files/abc123:download?alt=media"
API_KEY = "test-gemini-key"

CHANGELOG = """# Changelog

## [2.1.0] - 2025-10-01
### Added
- Streaming tool use
- Batch API support

## [2.0.0] - 2025-09-01
- Initial release
"""


class FakeClock:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.sleeps = []

    async def __call__(self, seconds):
        self.sleeps.append(seconds)
        await asyncio.sleep(0)

    @property
    def total(self):
        return sum(self.sleeps)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def registry():
    return InMemoryJobRegistry()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def changelog_source():
    source = MagicMock(spec=ChangelogSource)
    source.fetch.return_value = CHANGELOG
    source.extract_latest_release.side_effect = extract_latest_release
    return source


@pytest.fixture
def writer():
    mock = MagicMock(spec=ScriptWriter)
    mock.summarize.return_value = "Version 2.1 adds streaming tool use and batches."
    mock.derive_image_prompt.return_value = "A glowing terminal announcing v2.1"
    return mock


@pytest.fixture
def images():
    mock = MagicMock(spec=ImageGenerator)
    mock.start_image.return_value = PollResult.pending("job-set-1")
    mock.poll_image.return_value = PollResult.success(IMAGE_URL)
    return mock


@pytest.fixture
def videos():
    mock = MagicMock(spec=VideoGenerator)
    mock.start_video.return_value = PollResult.pending("operations/veo-1")
    mock.poll_video.return_value = PollResult.success(VIDEO_URL)
    return mock


@pytest.fixture
def make_pipeline(registry, changelog_source, writer, images, videos, clock):
    def _make(**overrides):
        kwargs = dict(
            registry=registry,
            changelog=changelog_source,
            writer=writer,
            images=images,
            videos=videos,
            image_policy=PollPolicy(interval=5, max_attempts=60),
            video_policy=PollPolicy(interval=10, max_attempts=60),
            sleep=clock,
        )
        kwargs.update(overrides)
        return VideoPipeline(**kwargs)

    return _make


@pytest.fixture
def make_request():
    def _make(url=CHANGELOG_URL, **kwargs):
        return GenerateVideoRequest(changelog_url=url, **kwargs)

    return _make


@pytest.fixture
async def dispatcher(make_pipeline):
    dispatcher = TaskPerJobDispatcher(worker_fn=make_pipeline().run)
    await dispatcher.start()
    yield dispatcher
    await dispatcher.stop()


@pytest.fixture
def upstream_requests():
    return []


@pytest.fixture
def upstream_transport(upstream_requests):
    """Fake provider file storage serving a tiny MP4 payload."""

    def handler(request: httpx.Request) -> httpx.Response:
        upstream_requests.append(request)
        return httpx.Response(200, content=b"\x00\x00\x00\x18ftypmp42", headers={"content-type": "video/mp4"})

    return httpx.MockTransport(handler)


@pytest.fixture
def gateway(registry, upstream_transport):
    return ResultGateway(
        registry=registry,
        api_key=API_KEY,
        allowed_hosts=("generativelanguage.googleapis.com", "storage.googleapis.com"),
        transport=upstream_transport,
    )


@pytest.fixture
def job_service(registry, dispatcher, gateway):
    return JobService(registry, dispatcher, gateway)
