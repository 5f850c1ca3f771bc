"""Retry and circuit-breaker policy for calls into library sources.

A ``ResiliencePolicy`` wraps any callable: it retries transient failures
with exponential backoff and consults a ``CircuitBreaker`` before every
attempt. Whatever the reason the policy gives up, the caller sees a
single ``SourceUnavailableError``.

    policy = ResiliencePolicy("steam", retry_attempts=3)

    @policy
    def fetch(url):
        ...
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Optional, TypeVar

import httpx

from backlog_tracker.services.errors import SourceUnavailableError

logger = logging.getLogger("backlog_tracker.resilience")

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    pass


def is_not_found(exc: BaseException) -> bool:
    return (
        isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 404
    )


def is_transient(exc: BaseException) -> bool:
    """Network errors, I/O errors and every non-2xx status except 404."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code != 404
    return isinstance(exc, (httpx.TransportError, OSError, TimeoutError))


class CircuitBreaker:
    def __init__(
        self,
        name: str,
        threshold: int = 5,
        cooldown_seconds: float = 30.0,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.name = name
        self.threshold = threshold
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at = 0.0
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        with self._lock:
            if (
                self._state is CircuitState.OPEN
                and self._clock() - self._opened_at >= self.cooldown_seconds
            ):
                return CircuitState.HALF_OPEN
            return self._state

    def before_call(self) -> None:
        """Raise CircuitOpenError unless an attempt may go through now."""
        with self._lock:
            if self._state is CircuitState.CLOSED:
                return
            if self._state is CircuitState.OPEN:
                if self._clock() - self._opened_at < self.cooldown_seconds:
                    raise CircuitOpenError(f"Circuit for {self.name} is open")
                self._state = CircuitState.HALF_OPEN
                logger.info("Circuit for %s is half-open, allowing a trial call", self.name)
            # half-open: one trial at a time
            if self._trial_in_flight:
                raise CircuitOpenError(f"Circuit for {self.name} is half-open")
            self._trial_in_flight = True

    def record_success(self) -> None:
        with self._lock:
            if self._state is not CircuitState.CLOSED:
                logger.info("Circuit for %s closed", self.name)
            self._state = CircuitState.CLOSED
            self._failures = 0
            self._trial_in_flight = False

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            self._trial_in_flight = False
            if (
                self._state is CircuitState.HALF_OPEN
                or self._failures >= self.threshold
            ):
                if self._state is not CircuitState.OPEN:
                    logger.warning(
                        "Circuit for %s opened after %d consecutive failures",
                        self.name,
                        self._failures,
                    )
                self._state = CircuitState.OPEN
                self._opened_at = self._clock()

    def release(self) -> None:
        """Finish an attempt whose outcome says nothing about the source's health."""
        with self._lock:
            self._trial_in_flight = False


class ResiliencePolicy:
    def __init__(
        self,
        name: str,
        retry_attempts: int = 3,
        backoff_base: float = 2.0,
        breaker: Optional[CircuitBreaker] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.name = name
        self.retry_attempts = max(0, retry_attempts)
        self.backoff_base = backoff_base
        self.breaker = breaker or CircuitBreaker(name)
        self._sleep = sleep or time.sleep

    def backoff_seconds(self, attempt: int) -> float:
        return self.backoff_base**attempt

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        attempt = 0
        while True:
            try:
                self.breaker.before_call()
            except CircuitOpenError as exc:
                raise SourceUnavailableError(
                    self.name, "circuit breaker is open, failing fast"
                ) from exc

            try:
                result = fn(*args, **kwargs)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                if is_not_found(exc):
                    # The source answered; the resource just isn't there
                    self.breaker.record_success()
                    raise
                if not is_transient(exc):
                    self.breaker.release()
                    raise SourceUnavailableError(
                        self.name, f"unexpected error: {exc}"
                    ) from exc

                self.breaker.record_failure()
                attempt += 1
                if attempt > self.retry_attempts:
                    raise SourceUnavailableError(
                        self.name, f"gave up after {attempt} attempts: {exc}"
                    ) from exc
                if self.breaker.state is CircuitState.OPEN:
                    raise SourceUnavailableError(
                        self.name, f"circuit breaker opened: {exc}"
                    ) from exc

                delay = self.backoff_seconds(attempt)
                logger.warning(
                    "%s call failed (%s), retrying in %.1fs (%d/%d)",
                    self.name,
                    exc,
                    delay,
                    attempt,
                    self.retry_attempts,
                )
                self._sleep(delay)
                continue

            self.breaker.record_success()
            return result

    def __call__(self, fn: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            return self.call(fn, *args, **kwargs)

        return wrapper
