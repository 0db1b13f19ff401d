"""
dbcore/retry.py
---------------
Retry/abandon decisions and the tagged result type returned by every
connection and CRUD operation.

Design Decisions:
    * The decision to retry is injected as a plain callable
      (``decide(error) -> Decision``) so the core never talks to a UI.
    * Retries run in an explicit loop bounded by ``max_attempts``; a decider
      that always says "retry" cannot recurse forever.
    * Failures are returned, not raised: ``OperationResult.ok`` is False and
      ``error`` holds the typed error. ``unwrap()`` re-raises for callers
      that prefer exceptions.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Generic, TypeVar

from config import CONFIG
from dbcore.errors import DatabaseError
from logger import get_logger

log = get_logger(__name__)

T = TypeVar("T")


class Decision(str, Enum):
    """Outcome of a retry/abandon prompt."""
    RETRY = "retry"
    ABANDON = "abandon"


Decider = Callable[[DatabaseError], Decision]
ErrorFactory = Callable[[BaseException], DatabaseError]


def always_retry(error: DatabaseError) -> Decision:
    """Retry until the attempt budget is spent."""
    return Decision.RETRY


def always_abandon(error: DatabaseError) -> Decision:
    """Give up on the first failure."""
    return Decision.ABANDON


def console_decider(error: DatabaseError) -> Decision:
    """Ask on the terminal whether to retry; anything but yes abandons."""
    try:
        answer = input(f"{error}\nRetry? [y/N] ")
    except (EOFError, OSError):
        # No usable terminal
        return Decision.ABANDON
    return Decision.RETRY if answer.strip().lower() in ("y", "yes") else Decision.ABANDON


@dataclass
class OperationResult(Generic[T]):
    """
    Tagged outcome of an operation that went through the retry policy.

    Attributes:
        value:    Payload on success (row id, cursor, ``None`` for commands).
        error:    The typed error after the policy abandoned, else ``None``.
        attempts: How many times the operation was tried.
    """
    value: T | None = None
    error: DatabaseError | None = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        return self.ok

    def unwrap(self) -> T:
        """Return the value or raise the stored error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


@dataclass
class RetryPolicy:
    """
    Bounded retry loop around a single operation.

    Attributes:
        decide:       Consulted after each failure except the last allowed one.
        max_attempts: Upper bound on tries, including the first.
        retry_delay:  Base delay in seconds; attempt *n* waits ``n * retry_delay``.
    """
    decide: Decider = always_retry
    max_attempts: int = 3
    retry_delay: float = 0.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must not be negative")

    @classmethod
    def from_config(cls, decide: Decider = always_retry) -> "RetryPolicy":
        """Build a policy from the application config."""
        return cls(
            decide=decide,
            max_attempts=max(1, CONFIG.retry.max_attempts),
            retry_delay=max(0.0, CONFIG.retry.retry_delay),
        )

    def run(
        self,
        operation: Callable[[], T],
        description: str,
        error_factory: ErrorFactory,
        retry_on: tuple[type[BaseException], ...],
    ) -> OperationResult[T]:
        """
        Run *operation* until it succeeds, the decider abandons, or the
        attempt budget is exhausted.

        Only exceptions listed in *retry_on* are handled; anything else
        propagates unchanged.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return OperationResult(value=operation(), attempts=attempt)
            except retry_on as exc:
                error = exc if isinstance(exc, DatabaseError) else error_factory(exc)
                if error is not exc:
                    error.__cause__ = exc
                log.warning(
                    "%s failed (attempt %d/%d): %s",
                    description, attempt, self.max_attempts, exc,
                )
                if attempt >= self.max_attempts:
                    log.error("%s abandoned after %d attempt(s).", description, attempt)
                    return OperationResult(error=error, attempts=attempt)
                if self.decide(error) is not Decision.RETRY:
                    log.error("%s abandoned by caller after %d attempt(s).", description, attempt)
                    return OperationResult(error=error, attempts=attempt)
            if self.retry_delay:
                self.sleep(self.retry_delay * attempt)
