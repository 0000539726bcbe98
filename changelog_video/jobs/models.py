"""Job record data model and the job lifecycle state machine."""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, Literal, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field, HttpUrl
from pydantic.alias_generators import to_camel

from changelog_video.errors import InvalidTransition


AspectRatio = Literal["16:9", "9:16"]
Resolution = Literal["720p", "1080p"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# queued -> processing -> {completed | failed}; terminal states have no exits
_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


class GenerateVideoRequest(BaseModel):
    """Client payload for a new video job."""
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    changelog_url: HttpUrl
    aspect_ratio: AspectRatio = "16:9"
    resolution: Resolution = "1080p"


class VideoJob(BaseModel):
    """Tracks the lifecycle of one changelog-to-video job.

    Records are immutable; every status change produces a new record via
    ``start()``, ``complete()`` or ``fail()``, which enforce the allowed
    transitions and the result/error exclusivity.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    status: JobStatus = JobStatus.QUEUED
    source: GenerateVideoRequest
    video_url: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.status]

    def _advance(self, target: JobStatus, **changes) -> "VideoJob":
        if target not in _TRANSITIONS[self.status]:
            raise InvalidTransition(
                f"Job {self.id}: cannot move from {self.status.value} to {target.value}"
            )
        return self.model_copy(update={"status": target, **changes})

    def start(self) -> "VideoJob":
        return self._advance(JobStatus.PROCESSING, started_at=_utcnow())

    def complete(self, video_url: str) -> "VideoJob":
        if not video_url:
            raise InvalidTransition(f"Job {self.id}: completion requires a video URL")
        return self._advance(
            JobStatus.COMPLETED, video_url=video_url, completed_at=_utcnow()
        )

    def fail(self, error: str) -> "VideoJob":
        return self._advance(
            JobStatus.FAILED, error=error or "Unknown error", completed_at=_utcnow()
        )


class JobResponse(BaseModel):
    """Client-visible view of a job."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    status: JobStatus
    created_at: datetime
    changelog_url: str
    video_url: Optional[str] = None
    error: Optional[str] = None
