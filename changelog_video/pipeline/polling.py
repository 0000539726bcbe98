"""Stage invoker: run one remote operation and poll it to a terminal state.

A stage is started once, then re-checked every ``interval`` seconds for at
most ``max_attempts`` checks. Polling never retries a failed call; the
worst-case wait for a stage is ``interval * max_attempts``.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from changelog_video.errors import ProviderFailure, ProviderTimeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollPolicy:
    """How often and how many times to re-check a provider operation."""
    interval: float
    max_attempts: int

    def __post_init__(self):
        if self.interval < 0:
            raise ValueError("interval must be >= 0")
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")

    @property
    def timeout_budget(self) -> float:
        return self.interval * self.max_attempts


class PollState(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class PollResult:
    """One observation of a provider operation.

    ``handle`` identifies the operation for the next check and is required
    while pending. Some providers hand back a refreshed handle on every
    check, so the invoker always polls with the latest one.
    """
    state: PollState
    handle: Any = None
    artifact_url: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def pending(cls, handle: Any) -> "PollResult":
        return cls(PollState.PENDING, handle=handle)

    @classmethod
    def success(cls, artifact_url: str) -> "PollResult":
        return cls(PollState.SUCCEEDED, artifact_url=artifact_url)

    @classmethod
    def failure(cls, reason: str) -> "PollResult":
        return cls(PollState.FAILED, reason=reason)

    @property
    def is_terminal(self) -> bool:
        return self.state != PollState.PENDING


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    PROVIDER_FAILURE = "provider_failure"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class StageOutcome:
    """Terminal result of invoking a stage."""
    stage: str
    kind: OutcomeKind
    attempts: int
    artifact_url: Optional[str] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS

    def unwrap(self) -> str:
        """Return the artifact URL, or raise the matching provider error."""
        if self.kind == OutcomeKind.SUCCESS:
            return self.artifact_url
        if self.kind == OutcomeKind.TIMEOUT:
            raise ProviderTimeout(self.reason, stage=self.stage)
        raise ProviderFailure(self.reason, stage=self.stage)


StartFn = Callable[[], Awaitable[PollResult]]
PollFn = Callable[[Any], Awaitable[PollResult]]
SleepFn = Callable[[float], Awaitable[Any]]


async def invoke_stage(
    stage: str,
    start: StartFn,
    poll: PollFn,
    policy: PollPolicy,
    sleep: SleepFn = asyncio.sleep,
) -> StageOutcome:
    """Start a provider operation and poll it until it is terminal.

    Exceptions raised by ``start`` or ``poll`` (transport errors, bad
    credentials) propagate unchanged; only terminal provider states and an
    exhausted budget become outcomes.
    """
    result = await start()
    attempts = 0

    while not result.is_terminal:
        if attempts >= policy.max_attempts:
            logger.warning(
                "%s: no terminal state after %d attempt(s) (%.0fs budget)",
                stage, attempts, policy.timeout_budget,
            )
            return StageOutcome(
                stage=stage,
                kind=OutcomeKind.TIMEOUT,
                attempts=attempts,
                reason=f"{stage} timed out after {policy.timeout_budget:g}s",
            )
        await sleep(policy.interval)
        attempts += 1
        result = await poll(result.handle)
        logger.debug("%s: polling attempt %d -> %s", stage, attempts, result.state.value)

    if result.state == PollState.SUCCEEDED:
        return StageOutcome(
            stage=stage,
            kind=OutcomeKind.SUCCESS,
            attempts=attempts,
            artifact_url=result.artifact_url,
        )
    return StageOutcome(
        stage=stage,
        kind=OutcomeKind.PROVIDER_FAILURE,
        attempts=attempts,
        reason=result.reason or f"{stage} failed",
    )
