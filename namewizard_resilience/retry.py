"""Exponential backoff with jitter for async operations."""

import asyncio
import math
import random
from dataclasses import dataclass, replace
from functools import wraps
from typing import Any, Awaitable, Callable, FrozenSet, List, Optional, TypeVar

import httpx
import structlog

from .errors import ConfigurationError
from .logging_config import EventLogger

T = TypeVar("T")

RetryPredicate = Callable[[BaseException, int], bool]

DEFAULT_RETRYABLE_STATUS_CODES: FrozenSet[int] = frozenset({408, 429, 500, 502, 503, 504})

# Failures that never reached the server or never got a response back
NETWORK_ERRORS = (httpx.TransportError, ConnectionError, TimeoutError, asyncio.TimeoutError)

_default_logger = structlog.get_logger(__name__)


def extract_status_code(exception: BaseException) -> Optional[int]:
    """Get the HTTP status code carried by an exception, if any."""
    for attr in ("status_code", "status"):
        value = getattr(exception, attr, None)
        if isinstance(value, int):
            return value

    # httpx.HTTPStatusError and friends attach the response
    response = getattr(exception, "response", None)
    if response is not None:
        value = getattr(response, "status_code", None)
        if isinstance(value, int):
            return value

    return None


def extract_retry_after(exception: BaseException) -> Optional[float]:
    """Seconds the server asked us to wait, from ``Retry-After`` or an attribute."""
    hinted = getattr(exception, "retry_after", None)
    if isinstance(hinted, (int, float)) and not isinstance(hinted, bool):
        return float(hinted)

    headers = getattr(getattr(exception, "response", None), "headers", None)
    if not headers:
        return None
    # httpx.Headers is case-insensitive; plain dicts may use either spelling
    raw = headers.get("retry-after", headers.get("Retry-After"))
    try:
        seconds = float(raw)
    except (TypeError, ValueError):
        return None
    return seconds if math.isfinite(seconds) else None


def is_network_error(exception: BaseException) -> bool:
    """Check if the exception is a connection-level failure."""
    return isinstance(exception, NETWORK_ERRORS)


def default_retry_predicate(
    exception: BaseException,
    attempt_index: int,
    status_codes: FrozenSet[int] = DEFAULT_RETRYABLE_STATUS_CODES,
) -> bool:
    """Retry anything without a status code, or a retryable status code."""
    status_code = extract_status_code(exception)
    if status_code is None:
        return True
    return status_code in status_codes


def is_transient_error(
    exception: BaseException,
    attempt_index: int,
    status_codes: FrozenSet[int] = DEFAULT_RETRYABLE_STATUS_CODES,
) -> bool:
    """Retry only network failures and retryable status codes.

    Unlike :func:`default_retry_predicate`, a plain application exception
    (bad input, unparseable model output) is not retried: it would fail the
    same way every time.
    """
    if is_network_error(exception):
        return True
    status_code = extract_status_code(exception)
    return status_code is not None and status_code in status_codes


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior.

    Delays are in seconds. A policy is immutable; use :meth:`with_overrides`
    to derive a variant.
    """

    max_retries: int = 3
    initial_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 30.0
    jitter: float = 0.1  # Jitter is uniform in [0, jitter * delay]
    retryable_status_codes: FrozenSet[int] = DEFAULT_RETRYABLE_STATUS_CODES
    retry_predicate: Optional[RetryPredicate] = None
    transient_only: bool = False  # Default predicate becomes is_transient_error
    respect_retry_after: bool = False
    on_retry: Optional[Callable[[BaseException, int, float], None]] = None
    on_max_retries_exceeded: Optional[Callable[[BaseException, int], None]] = None

    def __post_init__(self) -> None:
        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int):
            raise ConfigurationError(f"max_retries must be an integer, got {self.max_retries!r}")
        if self.max_retries < 0:
            raise ConfigurationError(f"max_retries must be >= 0, got {self.max_retries}")
        # NaN compares False, so the range checks below would miss it
        for name in ("initial_delay", "backoff_factor", "max_delay"):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ConfigurationError(f"{name} must be a finite number, got {value}")
        if self.initial_delay <= 0:
            raise ConfigurationError(f"initial_delay must be > 0, got {self.initial_delay}")
        if self.backoff_factor < 1:
            raise ConfigurationError(f"backoff_factor must be >= 1, got {self.backoff_factor}")
        if self.max_delay < self.initial_delay:
            raise ConfigurationError(
                f"max_delay ({self.max_delay}) must be >= initial_delay ({self.initial_delay})"
            )
        if not 0 <= self.jitter <= 1:
            raise ConfigurationError(f"jitter must be between 0 and 1, got {self.jitter}")
        object.__setattr__(self, "retryable_status_codes", frozenset(self.retryable_status_codes))

    def should_retry(self, exception: BaseException, attempt_index: int) -> bool:
        """Apply this policy's predicate to a failure."""
        if self.retry_predicate is not None:
            return self.retry_predicate(exception, attempt_index)
        if self.transient_only:
            return is_transient_error(exception, attempt_index, self.retryable_status_codes)
        return default_retry_predicate(exception, attempt_index, self.retryable_status_codes)

    def with_overrides(self, **changes: Any) -> "RetryPolicy":
        """Return a validated copy with the given fields replaced."""
        return replace(self, **changes)


def base_delay(attempt_index: int, policy: RetryPolicy) -> float:
    """Delay before the retry following ``attempt_index``, without jitter."""
    try:
        delay = policy.initial_delay * (policy.backoff_factor ** attempt_index)
    except OverflowError:
        return policy.max_delay
    return min(delay, policy.max_delay)


def compute_delay(
    attempt_index: int,
    policy: RetryPolicy,
    rng: Optional[random.Random] = None,
) -> float:
    """Calculate delay with exponential backoff and jitter."""
    delay = base_delay(attempt_index, policy)
    jitter = (rng or random).uniform(0, policy.jitter * delay)
    return min(delay + jitter, policy.max_delay)


def backoff_schedule(policy: RetryPolicy) -> List[float]:
    """Un-jittered delays before each retry the policy allows."""
    return [base_delay(i, policy) for i in range(policy.max_retries)]


@dataclass
class AttemptRecord:
    """Outcome of a single invocation attempt."""

    attempt_index: int
    error: Optional[BaseException] = None
    delay_before_next_attempt: Optional[float] = None


class RetryState:
    """Tracks retry state across attempts of one call."""

    def __init__(self, policy: RetryPolicy):
        self.policy = policy
        self.attempt = 0
        self.last_exception: Optional[BaseException] = None
        self.total_delay = 0.0
        self.records: List[AttemptRecord] = []

    @property
    def attempts_made(self) -> int:
        return len(self.records)

    @property
    def budget_exhausted(self) -> bool:
        return self.attempt >= self.policy.max_retries

    def get_delay(self, exception: BaseException, rng: Optional[random.Random] = None) -> float:
        """Delay before the next attempt, honoring Retry-After when enabled."""
        delay = compute_delay(self.attempt, self.policy, rng)

        if self.policy.respect_retry_after:
            retry_after = extract_retry_after(exception)
            if retry_after is not None and 0 <= retry_after <= self.policy.max_delay:
                delay = retry_after

        self.total_delay += delay
        return delay

    def record(self, exception: BaseException, delay: Optional[float] = None) -> None:
        """Store a failed attempt."""
        self.records.append(AttemptRecord(self.attempt, exception, delay))
        self.last_exception = exception

    def increment(self) -> None:
        self.attempt += 1


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    *,
    logger: Optional[EventLogger] = None,
    state: Optional[RetryState] = None,
    rng: Optional[random.Random] = None,
) -> T:
    """
    Await ``operation()`` until it succeeds or the policy gives up.

    Args:
        operation: Zero-argument callable returning an awaitable
        policy: Retry policy (defaults to ``RetryPolicy()``)
        logger: Logger to report retries on (defaults to this module's)
        state: Fresh state to collect attempt records into; its policy
            is used. A state belongs to one call and cannot be reused
        rng: Random source for jitter

    Returns:
        Result of the first successful attempt

    Raises:
        The last exception raised by ``operation``, unchanged.
        ConfigurationError: If ``policy`` and ``state.policy`` disagree, or
            ``state`` was already used by another call
    """
    if state is None:
        state = RetryState(policy or RetryPolicy())
    elif policy is not None and policy is not state.policy:
        raise ConfigurationError("policy and state.policy must be the same object")
    elif state.attempt or state.records:
        raise ConfigurationError("RetryState was already used; create one per call")
    policy = state.policy
    log = logger or _default_logger

    while True:
        try:
            return await operation()
        except Exception as e:
            if state.budget_exhausted:
                state.record(e)
                log.error(
                    "retry_budget_exhausted",
                    max_retries=policy.max_retries,
                    attempts=state.attempts_made,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                if policy.on_max_retries_exceeded:
                    policy.on_max_retries_exceeded(e, policy.max_retries)
                raise

            if not policy.should_retry(e, state.attempt):
                state.record(e)
                log.debug(
                    "retry_not_attempted",
                    attempt=state.attempt + 1,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

            delay = state.get_delay(e, rng)
            state.record(e, delay)
            state.increment()

            log.warning(
                "retry_scheduled",
                attempt=state.attempt,
                max_retries=policy.max_retries,
                delay=round(delay, 3),
                error=str(e),
                error_type=type(e).__name__,
            )
            if policy.on_retry:
                policy.on_retry(e, state.attempt, delay)

            await asyncio.sleep(delay)


def retryable(
    policy: Optional[RetryPolicy] = None,
    *,
    logger: Optional[EventLogger] = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorator running an async function through :func:`with_retry`.

    Args:
        policy: Retry policy applied to every call
        logger: Logger passed through to the executor
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await with_retry(lambda: func(*args, **kwargs), policy, logger=logger)

        return wrapper

    return decorator
