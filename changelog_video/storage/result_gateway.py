"""Result proxy: serves generated videos without exposing provider credentials.

Stored video references never carry a credential. The Gemini API key is
attached only on the outbound fetch, and only when the reference's host is
one of the trusted origins.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple
from urllib.parse import unquote_plus, urlparse, urlunparse

import httpx

from changelog_video.errors import InternalFault, NotFoundError, SecurityViolation
from changelog_video.jobs.models import JobStatus
from changelog_video.jobs.registry import JobRegistry

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("changelog_video.security")

# Query parameters that carry provider credentials
CREDENTIAL_PARAMS = frozenset({"key", "api_key", "access_token"})

DEFAULT_MEDIA_TYPE = "video/mp4"
MAX_REDIRECTS = 5


def strip_credentials(url: str) -> str:
    """Remove credential query parameters from a URL.

    Other query segments are kept byte-for-byte, so signed URLs stay valid.
    """
    parsed = urlparse(url)
    if not parsed.query:
        return url
    segments = parsed.query.split("&")
    kept = [
        segment
        for segment in segments
        if unquote_plus(segment.partition("=")[0]).lower() not in CREDENTIAL_PARAMS
    ]
    if len(kept) == len(segments):
        return url
    return urlunparse(parsed._replace(query="&".join(kept)))


def is_allowed_origin(url: str, allowed_hosts: Iterable[str]) -> bool:
    """True if ``url`` is https and its host is, or is a subdomain of, an allowed host.

    Matching is on the parsed hostname only, never on substrings of the URL,
    so ``https://evil.com/storage.googleapis.com/x`` and
    ``https://storage.googleapis.com.attacker.com/x`` are both rejected.
    """
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError:
        return False
    if parsed.scheme != "https" or not hostname:
        return False
    hostname = hostname.rstrip(".")
    for allowed in allowed_hosts:
        allowed = allowed.lower().rstrip(".")
        if hostname == allowed or hostname.endswith("." + allowed):
            return True
    return False


@dataclass(frozen=True)
class ResultArtifact:
    """Video bytes ready to send to the client."""
    content: bytes
    media_type: str
    filename: str


class ResultFetchError(InternalFault):
    """Upstream refused or failed to deliver the stored video."""


class ResultGateway:
    """Resolves a job's stored video reference and fetches it server-side."""

    def __init__(
        self,
        registry: JobRegistry,
        api_key: str,
        allowed_hosts: Tuple[str, ...],
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._registry = registry
        self._api_key = api_key
        self._allowed_hosts = tuple(allowed_hosts)
        self._timeout = timeout
        self._transport = transport

    async def fetch(self, job_id: str) -> ResultArtifact:
        """Return the job's video.

        Raises NotFoundError (unknown job / no video yet), SecurityViolation
        (untrusted host) or ResultFetchError (upstream fault).
        """
        job = await self._registry.get(job_id)
        if job is None or job.status != JobStatus.COMPLETED or not job.video_url:
            raise NotFoundError("Video not found")

        video_url = job.video_url
        if not is_allowed_origin(video_url, self._allowed_hosts):
            security_logger.critical(
                "[SECURITY] Blocked request to untrusted domain for job %s: %s",
                job_id, video_url,
            )
            raise SecurityViolation("Invalid video URL domain")

        if not self._api_key:
            raise ResultFetchError("GEMINI_API_KEY is not set")

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await self._get_following_trusted_redirects(
                    client, job_id, video_url
                )
        except httpx.RequestError as exc:
            logger.error("[%s] Video fetch failed: %s", job_id, exc)
            raise ResultFetchError(f"Failed to fetch video: {type(exc).__name__}") from exc

        if response.is_error:
            logger.error("[%s] Video fetch returned %d", job_id, response.status_code)
            raise ResultFetchError(f"Failed to fetch video: {response.reason_phrase}")

        media_type = response.headers.get("content-type", DEFAULT_MEDIA_TYPE)
        if not media_type.startswith("video/"):
            media_type = DEFAULT_MEDIA_TYPE
        return ResultArtifact(
            content=response.content,
            media_type=media_type,
            filename=f"video-{job_id}.mp4",
        )

    async def _get_following_trusted_redirects(
        self, client: httpx.AsyncClient, job_id: str, url: str
    ) -> httpx.Response:
        # Credential goes in a header, never in the URL. Each redirect hop is
        # re-checked so the header is only ever sent to trusted hosts.
        for _ in range(MAX_REDIRECTS + 1):
            response = await client.get(url, headers={"x-goog-api-key": self._api_key})
            if not response.is_redirect:
                return response
            url = str(response.next_request.url) if response.next_request else ""
            if not is_allowed_origin(url, self._allowed_hosts):
                security_logger.critical(
                    "[SECURITY] Refused redirect to untrusted domain for job %s: %s",
                    job_id, strip_credentials(url),
                )
                raise SecurityViolation("Invalid video URL domain")
        raise ResultFetchError("Failed to fetch video: too many redirects")
