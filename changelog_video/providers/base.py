"""Interfaces for the remote operations the pipeline consumes."""

from abc import ABC, abstractmethod
from typing import Any

from changelog_video.jobs.models import AspectRatio, Resolution
from changelog_video.pipeline.polling import PollResult


class ChangelogSource(ABC):
    """Fetches changelog text and picks the section worth summarizing."""

    @abstractmethod
    async def fetch(self, url: str) -> str:
        """Return the raw changelog. Raises FetchError."""
        ...

    @abstractmethod
    def extract_latest_release(self, changelog: str) -> str:
        """Return the newest release section. Raises FetchError if blank."""
        ...


class ScriptWriter(ABC):
    """Language-model calls that turn a changelog into generation inputs."""

    @abstractmethod
    async def summarize(self, changelog: str) -> str:
        """Return a short video script. Raises ProviderError."""
        ...

    @abstractmethod
    async def derive_image_prompt(self, script: str) -> str:
        """Return an image-generation prompt. Raises ProviderError."""
        ...


class ImageGenerator(ABC):
    """Asynchronous text-to-image provider."""

    @abstractmethod
    async def start_image(self, prompt: str) -> PollResult:
        ...

    @abstractmethod
    async def poll_image(self, handle: Any) -> PollResult:
        ...


class VideoGenerator(ABC):
    """Asynchronous image-to-video provider."""

    @abstractmethod
    async def start_video(
        self,
        image_url: str,
        script: str,
        aspect_ratio: AspectRatio,
        resolution: Resolution,
    ) -> PollResult:
        ...

    @abstractmethod
    async def poll_video(self, handle: Any) -> PollResult:
        ...
