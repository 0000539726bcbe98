"""Changelog fetching and latest-release extraction."""

import logging
import re
from typing import List, Optional
from urllib.parse import urlparse, urlunparse

import httpx

from changelog_video.errors import FetchError
from changelog_video.providers.base import ChangelogSource

logger = logging.getLogger(__name__)

# "## [1.2.0]", "# 1.2", "### v2.0.1" ...
_VERSION_HEADER = re.compile(r"^#{1,3}\s*(\[?\d+\.\d+\.?|v\d+\.\d+\.?)")

# Used when the changelog has no recognisable version headers
FALLBACK_LINES = 50


def to_raw_url(url: str) -> str:
    """Rewrite a GitHub ``blob`` page URL to its raw-content URL."""
    parsed = urlparse(url)
    if parsed.hostname not in ("github.com", "www.github.com") or "/blob/" not in parsed.path:
        return url
    return urlunparse(
        parsed._replace(
            netloc="raw.githubusercontent.com",
            path=parsed.path.replace("/blob/", "/", 1),
        )
    )


def extract_latest_release(changelog: str) -> str:
    """Return the first version section, header included.

    The section runs down to (not including) the next version header. With
    no version header at all, the first ``FALLBACK_LINES`` lines are used.
    """
    lines = changelog.split("\n")
    section: List[str] = []

    for line in lines:
        if _VERSION_HEADER.match(line):
            if section:
                break
            section.append(line)
        elif section:
            section.append(line)

    if not section:
        return "\n".join(lines[:FALLBACK_LINES])
    return "\n".join(section).strip()


class HttpChangelogSource(ChangelogSource):
    """Fetches changelog text over HTTP(S)."""

    def __init__(self, timeout: float = 60.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._timeout = timeout
        self._transport = transport

    async def fetch(self, url: str) -> str:
        raw_url = to_raw_url(url)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, follow_redirects=True, transport=self._transport
            ) as client:
                response = await client.get(raw_url)
        except httpx.RequestError as exc:
            raise FetchError(f"Failed to fetch changelog: {exc}") from exc

        if response.is_error:
            raise FetchError(
                f"Failed to fetch changelog: {response.status_code} {response.reason_phrase}"
            )
        logger.debug("Fetched %d chars from %s", len(response.text), raw_url)
        return response.text

    def extract_latest_release(self, changelog: str) -> str:
        section = extract_latest_release(changelog)
        if not section.strip():
            raise FetchError("Changelog is empty")
        return section
