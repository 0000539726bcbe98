"""Error taxonomy for job creation, the stage pipeline and result access."""

from typing import Optional


class ChangelogVideoError(Exception):
    """Base class for every error raised by the service."""


class FetchError(ChangelogVideoError):
    """Source changelog could not be fetched or held nothing usable."""


class ProviderError(ChangelogVideoError):
    """A generative provider call was rejected or errored."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class ProviderTimeout(ProviderError):
    """Polling budget exhausted before the provider reached a terminal state."""


class ProviderFailure(ProviderError):
    """Provider reported an explicit terminal failure (e.g. a policy rejection)."""


class SecurityViolation(ChangelogVideoError):
    """Stored result reference points outside the trusted origins."""


class NotFoundError(ChangelogVideoError):
    """Unknown job id, or the job has no result yet."""


class InternalFault(ChangelogVideoError):
    """Unexpected internal failure."""


class InvalidTransition(InternalFault):
    """Attempted job status change not allowed by the lifecycle."""
