"""Higgsfield Soul text-to-image client."""

import logging
from typing import Any, Dict, Optional

import httpx

from changelog_video.errors import ProviderError
from changelog_video.pipeline.polling import PollResult
from changelog_video.providers.base import ImageGenerator

logger = logging.getLogger(__name__)

# 16:9, closest Soul size to 1920x1080
IMAGE_SIZE = "2048x1152"
IMAGE_QUALITY = "1080p"

_PENDING_STATUSES = {"queued", "in_progress"}


class HiggsfieldClient(ImageGenerator):
    """Starts Soul image jobs and maps job-set status to poll results."""

    def __init__(
        self,
        api_key: str,
        secret: str,
        api_base: str = "https://platform.higgsfield.ai",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self._secret = secret
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        if not self._api_key or not self._secret:
            raise ProviderError("HIGGSFIELD_API_KEY or HIGGSFIELD_SECRET is not set")
        return {"hf-api-key": self._api_key, "hf-secret": self._secret}

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        headers = self._headers()
        try:
            async with httpx.AsyncClient(
                base_url=self._api_base, timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.request(method, path, headers=headers, **kwargs)
        except httpx.RequestError as exc:
            raise ProviderError(f"Higgsfield request failed: {exc}") from exc

        if response.is_error:
            raise ProviderError(f"Higgsfield API error ({response.status_code}): {response.text}")
        return response.json()

    async def start_image(self, prompt: str) -> PollResult:
        data = await self._request(
            "POST",
            "/v1/text2image/soul",
            json={
                "params": {
                    "prompt": prompt,
                    "width_and_height": IMAGE_SIZE,
                    "enhance_prompt": True,
                    "quality": IMAGE_QUALITY,
                    "batch_size": 1,
                }
            },
        )
        job_set_id = data.get("id")
        if not job_set_id:
            raise ProviderError("No job ID returned from Higgsfield")
        logger.debug("Higgsfield job set started: %s", job_set_id)
        return PollResult.pending(job_set_id)

    async def poll_image(self, handle: Any) -> PollResult:
        data = await self._request("GET", f"/v1/job-sets/{handle}")
        jobs = data.get("jobs") or []
        if not jobs:
            raise ProviderError("No job found in Higgsfield response")
        return job_status_to_result(handle, jobs[0])


def job_status_to_result(handle: Any, job: Dict[str, Any]) -> PollResult:
    """Map one Higgsfield job entry to a poll result."""
    status = job.get("status")
    if status == "failed":
        return PollResult.failure("Image generation failed")
    if status == "nsfw":
        return PollResult.failure("Image generation rejected: NSFW content detected")

    raw = (job.get("results") or {}).get("raw") or {}
    if status == "completed" and raw.get("url"):
        return PollResult.success(raw["url"])
    if status not in _PENDING_STATUSES and status != "completed":
        logger.warning("Unknown Higgsfield job status %r, still polling", status)
    # Completed jobs can report before their result URL is attached
    return PollResult.pending(handle)
