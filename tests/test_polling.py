import pytest

from changelog_video.errors import ProviderError, ProviderFailure, ProviderTimeout
from changelog_video.pipeline.polling import (
    OutcomeKind,
    PollPolicy,
    PollResult,
    invoke_stage,
)

pytestmark = pytest.mark.anyio


class ScriptedOperation:
    """Provider operation that walks through a fixed list of poll results."""

    def __init__(self, first, *rest):
        self.first = first
        self.rest = list(rest)
        self.started = 0
        self.polled_with = []

    async def start(self):
        self.started += 1
        return self.first

    async def poll(self, handle):
        self.polled_with.append(handle)
        if len(self.rest) > 1:
            return self.rest.pop(0)
        return self.rest[0]


async def test_synchronous_success_returns_without_waiting(clock):
    op = ScriptedOperation(PollResult.success("https://cdn.example/img.png"), PollResult.pending("x"))

    outcome = await invoke_stage("Image generation", op.start, op.poll, PollPolicy(5, 60), sleep=clock)

    assert outcome.kind == OutcomeKind.SUCCESS
    assert outcome.artifact_url == "https://cdn.example/img.png"
    assert outcome.attempts == 0
    assert clock.sleeps == []
    assert op.polled_with == []


async def test_polls_until_success(clock):
    op = ScriptedOperation(
        PollResult.pending("h1"),
        PollResult.pending("h2"),
        PollResult.pending("h3"),
        PollResult.success("https://cdn.example/img.png"),
    )

    outcome = await invoke_stage("Image generation", op.start, op.poll, PollPolicy(5, 60), sleep=clock)

    assert outcome.ok
    assert outcome.attempts == 3
    assert clock.sleeps == [5, 5, 5]
    # Each check uses the handle from the previous observation
    assert op.polled_with == ["h1", "h2", "h3"]
    assert op.started == 1


async def test_explicit_failure_is_a_provider_failure(clock):
    op = ScriptedOperation(
        PollResult.pending("h"),
        PollResult.failure("Image generation rejected: NSFW content detected"),
    )

    outcome = await invoke_stage("Image generation", op.start, op.poll, PollPolicy(5, 60), sleep=clock)

    assert outcome.kind == OutcomeKind.PROVIDER_FAILURE
    assert outcome.reason == "Image generation rejected: NSFW content detected"
    assert outcome.attempts == 1
    with pytest.raises(ProviderFailure) as excinfo:
        outcome.unwrap()
    assert excinfo.value.stage == "Image generation"
    assert "NSFW" in str(excinfo.value)


async def test_timeout_is_bounded_by_budget(clock):
    op = ScriptedOperation(PollResult.pending("h"), PollResult.pending("h"))

    outcome = await invoke_stage("Video generation", op.start, op.poll, PollPolicy(1, 3), sleep=clock)

    assert outcome.kind == OutcomeKind.TIMEOUT
    assert outcome.attempts == 3
    assert clock.total <= 3
    assert len(op.polled_with) == 3
    with pytest.raises(ProviderTimeout) as excinfo:
        outcome.unwrap()
    assert excinfo.value.stage == "Video generation"
    assert "timed out" in str(excinfo.value)


async def test_zero_attempts_times_out_immediately(clock):
    op = ScriptedOperation(PollResult.pending("h"), PollResult.success("never"))

    outcome = await invoke_stage("Video generation", op.start, op.poll, PollPolicy(10, 0), sleep=clock)

    assert outcome.kind == OutcomeKind.TIMEOUT
    assert clock.sleeps == []


async def test_timeout_and_failure_are_distinguishable():
    assert issubclass(ProviderTimeout, ProviderError)
    assert issubclass(ProviderFailure, ProviderError)
    assert not issubclass(ProviderTimeout, ProviderFailure)
    assert not issubclass(ProviderFailure, ProviderTimeout)


async def test_call_errors_propagate_without_retry(clock):
    calls = []

    async def start():
        return PollResult.pending("h")

    async def poll(handle):
        calls.append(handle)
        raise ProviderError("Higgsfield polling error: 502")

    with pytest.raises(ProviderError, match="502"):
        await invoke_stage("Image generation", start, poll, PollPolicy(5, 60), sleep=clock)
    assert calls == ["h"]


def test_policy_budget():
    assert PollPolicy(interval=10, max_attempts=60).timeout_budget == 600


@pytest.mark.parametrize("interval,attempts", [(-1, 3), (1, -1)])
def test_policy_rejects_negative_values(interval, attempts):
    with pytest.raises(ValueError):
        PollPolicy(interval, attempts)
