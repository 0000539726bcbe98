"""Gemini text generation and Veo image-to-video via the google-genai SDK."""

import logging
from typing import Any, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from changelog_video.errors import ProviderError, ProviderFailure
from changelog_video.jobs.models import AspectRatio, Resolution
from changelog_video.pipeline.polling import PollResult
from changelog_video.providers.base import ScriptWriter, VideoGenerator

logger = logging.getLogger(__name__)

SCRIPT_PROMPT = (
    "Analyze this changelog and create a concise, engaging summary for a video "
    "script. Focus on the most important features and changes. Keep it under "
    "100 words and make it exciting for developers.\n\nChangelog:\n{changelog}"
)

IMAGE_PROMPT = (
    "Create a detailed, photorealistic image prompt for a professional software "
    "release announcement. The image should be suitable for a tech company's "
    "video thumbnail. Based on this script:\n\n{script}\n\n"
    "Provide only the image prompt, no explanation."
)

# Candidate finish reasons that mean the output was withheld by policy
BLOCKING_FINISH_REASONS = frozenset(
    {"SAFETY", "RECITATION", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII", "IMAGE_SAFETY"}
)


class GeminiProvider(ScriptWriter, VideoGenerator):
    """Script and prompt writing with Gemini, video generation with Veo."""

    def __init__(
        self,
        api_key: str,
        text_model: str = "gemini-2.5-flash",
        video_model: str = "veo-3.0-fast-generate-001",
        http_timeout: float = 60.0,
        client: Optional[genai.Client] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self._text_model = text_model
        self._video_model = video_model
        self._http_timeout = http_timeout
        self._client = client
        self._transport = transport

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self._api_key:
                raise ProviderError("GEMINI_API_KEY is not set")
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def _generate_text(self, prompt: str, temperature: float, what: str) -> str:
        try:
            response = await self.client.aio.models.generate_content(
                model=self._text_model,
                contents=prompt,
                config=types.GenerateContentConfig(temperature=temperature),
            )
        except genai_errors.APIError as exc:
            raise ProviderError(f"Gemini request failed: {exc}") from exc

        reason = blocked_reason(response)
        if reason:
            raise ProviderFailure(f"{what.capitalize()} generation rejected: {reason}")

        text = (response.text or "").strip()
        if not text:
            raise ProviderError(f"No {what} generated from Gemini")
        logger.debug("Generated %s:\n%s", what, text)
        return text

    async def summarize(self, changelog: str) -> str:
        return await self._generate_text(
            SCRIPT_PROMPT.format(changelog=changelog), temperature=0.7, what="script"
        )

    async def derive_image_prompt(self, script: str) -> str:
        return await self._generate_text(
            IMAGE_PROMPT.format(script=script), temperature=0.8, what="image prompt"
        )

    async def _download_image(self, image_url: str) -> bytes:
        try:
            async with httpx.AsyncClient(
                timeout=self._http_timeout, follow_redirects=True, transport=self._transport
            ) as client:
                response = await client.get(image_url)
        except httpx.RequestError as exc:
            raise ProviderError(f"Failed to download image: {exc}") from exc
        if response.is_error:
            raise ProviderError(
                f"Failed to download image: {response.status_code} {response.reason_phrase}"
            )
        return response.content

    async def start_video(
        self,
        image_url: str,
        script: str,
        aspect_ratio: AspectRatio,
        resolution: Resolution,
    ) -> PollResult:
        image_bytes = await self._download_image(image_url)
        logger.debug("Downloaded image for Veo: %d bytes", len(image_bytes))

        try:
            operation = await self.client.aio.models.generate_videos(
                model=self._video_model,
                prompt=script,
                image=types.Image(image_bytes=image_bytes, mime_type="image/png"),
                config=types.GenerateVideosConfig(
                    aspect_ratio=aspect_ratio,
                    resolution=resolution,
                ),
            )
        except genai_errors.APIError as exc:
            raise ProviderError(f"Veo request failed: {exc}") from exc

        logger.debug("Veo operation started: %s", operation.name)
        return operation_to_result(operation)

    async def poll_video(self, handle: Any) -> PollResult:
        try:
            operation = await self.client.aio.operations.get(handle)
        except genai_errors.APIError as exc:
            raise ProviderError(f"Veo polling failed: {exc}") from exc
        return operation_to_result(operation)


def _enum_name(value: Any) -> str:
    return str(getattr(value, "value", value))


def blocked_reason(response: Any) -> Optional[str]:
    """Name of the safety block on a text response, or None if it was not blocked."""
    feedback = getattr(response, "prompt_feedback", None)
    block_reason = getattr(feedback, "block_reason", None) if feedback else None
    if block_reason:
        return _enum_name(block_reason)

    candidates = getattr(response, "candidates", None) or []
    if candidates:
        finish_reason = getattr(candidates[0], "finish_reason", None)
        if finish_reason and _enum_name(finish_reason) in BLOCKING_FINISH_REASONS:
            return _enum_name(finish_reason)
    return None


def operation_to_result(operation: Any) -> PollResult:
    """Map a Veo long-running operation to a poll result."""
    if not operation.done:
        return PollResult.pending(operation)

    if operation.error:
        message = operation.error.get("message") if isinstance(operation.error, dict) else None
        return PollResult.failure(f"Video generation failed: {message or operation.error}")

    response = operation.response
    reasons = getattr(response, "rai_media_filtered_reasons", None) if response else None
    if reasons:
        return PollResult.failure(f"Video generation rejected: {'; '.join(reasons)}")

    videos = (response.generated_videos or []) if response else []
    uri = videos[0].video.uri if videos and videos[0].video else None
    if not uri:
        return PollResult.failure("Operation completed but no video URI found")
    return PollResult.success(uri)
