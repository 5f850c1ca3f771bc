import httpx
import pytest

from backlog_tracker.resilience import (
    CircuitBreaker,
    CircuitState,
    ResiliencePolicy,
    is_transient,
)
from backlog_tracker.services.errors import SourceUnavailableError


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _status_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://api.steampowered.com/x")
    response = httpx.Response(code, request=request)
    return httpx.HTTPStatusError(f"HTTP {code}", request=request, response=response)


class Flaky:
    """Raises the queued errors in order, then returns ``result``."""

    def __init__(self, *errors: Exception, result: object = "ok") -> None:
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self) -> object:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sleeps() -> list[float]:
    return []


@pytest.fixture()
def policy(clock: FakeClock, sleeps: list[float]) -> ResiliencePolicy:
    breaker = CircuitBreaker("steam", threshold=5, cooldown_seconds=30, clock=clock)
    return ResiliencePolicy(
        "steam", retry_attempts=3, backoff_base=2.0, breaker=breaker, sleep=sleeps.append
    )


def test_transient_failures_are_retried_with_exponential_backoff(
    policy: ResiliencePolicy, sleeps: list[float]
) -> None:
    fn = Flaky(httpx.ConnectError("refused"), _status_error(503), _status_error(500))
    assert policy.call(fn) == "ok"
    assert fn.calls == 4
    assert sleeps == [2.0, 4.0, 8.0]
    assert policy.breaker._failures == 0  # pylint: disable=protected-access


def test_exhausted_retries_surface_source_unavailable(
    policy: ResiliencePolicy, sleeps: list[float]
) -> None:
    fn = Flaky(*[httpx.ReadTimeout("slow") for _ in range(10)])
    with pytest.raises(SourceUnavailableError) as excinfo:
        policy.call(fn)
    assert fn.calls == 4
    assert sleeps == [2.0, 4.0, 8.0]
    assert excinfo.value.source == "steam"
    assert isinstance(excinfo.value.__cause__, httpx.ReadTimeout)


def test_breaker_opens_after_threshold_and_fails_fast(
    policy: ResiliencePolicy, clock: FakeClock
) -> None:
    fn = Flaky(*[httpx.ConnectError("down") for _ in range(20)])

    with pytest.raises(SourceUnavailableError):
        policy.call(fn)
    assert fn.calls == 4
    assert policy.breaker.state is CircuitState.CLOSED

    # Fifth consecutive failure trips the breaker mid-retry
    with pytest.raises(SourceUnavailableError):
        policy.call(fn)
    assert fn.calls == 5
    assert policy.breaker.state is CircuitState.OPEN

    clock.now = 29.0
    with pytest.raises(SourceUnavailableError, match="failing fast"):
        policy.call(fn)
    assert fn.calls == 5


def test_half_open_trial_success_closes_the_circuit(
    policy: ResiliencePolicy, clock: FakeClock
) -> None:
    failing = Flaky(*[httpx.ConnectError("down") for _ in range(5)])
    for _ in range(2):
        with pytest.raises(SourceUnavailableError):
            policy.call(failing)
    assert policy.breaker.state is CircuitState.OPEN

    clock.now = 30.0
    assert policy.breaker.state is CircuitState.HALF_OPEN
    assert policy.call(Flaky(result=42)) == 42
    assert policy.breaker.state is CircuitState.CLOSED


def test_half_open_trial_failure_reopens(
    policy: ResiliencePolicy, clock: FakeClock, sleeps: list[float]
) -> None:
    policy.breaker._failures = 4  # pylint: disable=protected-access
    with pytest.raises(SourceUnavailableError):
        policy.call(Flaky(httpx.ConnectError("down")))
    assert policy.breaker.state is CircuitState.OPEN

    clock.now = 31.0
    trial = Flaky(httpx.ConnectError("still down"), result="never")
    with pytest.raises(SourceUnavailableError):
        policy.call(trial)
    assert trial.calls == 1
    assert policy.breaker.state is CircuitState.OPEN
    assert sleeps == []


def test_not_found_is_passed_through_without_retry(
    policy: ResiliencePolicy, sleeps: list[float]
) -> None:
    policy.breaker._failures = 3  # pylint: disable=protected-access
    fn = Flaky(_status_error(404))
    with pytest.raises(httpx.HTTPStatusError):
        policy.call(fn)
    assert fn.calls == 1
    assert sleeps == []
    assert policy.breaker._failures == 0  # pylint: disable=protected-access


def test_non_transient_errors_are_not_retried(
    policy: ResiliencePolicy, sleeps: list[float]
) -> None:
    fn = Flaky(ValueError("bad json"))
    with pytest.raises(SourceUnavailableError) as excinfo:
        policy.call(fn)
    assert fn.calls == 1
    assert sleeps == []
    assert isinstance(excinfo.value.__cause__, ValueError)
    assert policy.breaker._failures == 0  # pylint: disable=protected-access


def test_policy_as_decorator(policy: ResiliencePolicy, sleeps: list[float]) -> None:
    attempts = []

    @policy
    def fetch(url: str) -> str:
        attempts.append(url)
        if len(attempts) == 1:
            raise httpx.ConnectError("blip")
        return f"body of {url}"

    assert fetch("https://example.test") == "body of https://example.test"
    assert fetch.__name__ == "fetch"
    assert sleeps == [2.0]


@pytest.mark.parametrize(
    "exc, expected",
    [
        (_status_error(500), True),
        (_status_error(429), True),
        (_status_error(404), False),
        (httpx.ConnectTimeout("t"), True),
        (OSError("disk"), True),
        (ValueError("x"), False),
    ],
)
def test_transient_classification(exc: Exception, expected: bool) -> None:
    assert is_transient(exc) is expected


def test_threshold_must_be_positive() -> None:
    with pytest.raises(ValueError):
        CircuitBreaker("x", threshold=0)


def test_sixth_call_fails_fast_after_five_consecutive_failures(clock: FakeClock) -> None:
    breaker = CircuitBreaker("epic", threshold=5, cooldown_seconds=30, clock=clock)
    policy = ResiliencePolicy("epic", retry_attempts=0, breaker=breaker, sleep=lambda _: None)
    fn = Flaky(*[OSError("share offline") for _ in range(10)])

    for _ in range(5):
        with pytest.raises(SourceUnavailableError):
            policy.call(fn)
    assert fn.calls == 5

    with pytest.raises(SourceUnavailableError, match="failing fast"):
        policy.call(fn)
    assert fn.calls == 5

    clock.now = 30.0
    with pytest.raises(SourceUnavailableError):
        policy.call(fn)
    assert fn.calls == 6
