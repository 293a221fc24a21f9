"""Fallback chains that walk an ordered list of backends until one succeeds."""

import asyncio
import random
from dataclasses import dataclass, field, replace
from enum import Enum
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import structlog

from .errors import ChainStateError, ConfigurationError, FallbackExhaustedError
from .logging_config import EventLogger
from .models import Model
from .retry import RetryPolicy, RetryState, with_retry

_default_logger = structlog.get_logger(__name__)


class FallbackStatus(Enum):
    """Lifecycle of a fallback chain."""

    IDLE = "idle"
    IN_PROGRESS = "in-progress"
    SUCCESS = "success"
    FAILURE = "failure"

    @property
    def is_terminal(self) -> bool:
        return self in (FallbackStatus.SUCCESS, FallbackStatus.FAILURE)


_ALLOWED_TRANSITIONS: Dict[FallbackStatus, frozenset] = {
    FallbackStatus.IDLE: frozenset({FallbackStatus.IN_PROGRESS}),
    FallbackStatus.IN_PROGRESS: frozenset(
        {FallbackStatus.IN_PROGRESS, FallbackStatus.SUCCESS, FallbackStatus.FAILURE}
    ),
    FallbackStatus.SUCCESS: frozenset(),
    FallbackStatus.FAILURE: frozenset(),
}


@dataclass
class FallbackChainState:
    """Progress of one fallback run, as shown to observers."""

    candidates: List[str]
    attempted_candidates: List[str] = field(default_factory=list)
    current_candidate: Optional[str] = None
    status: FallbackStatus = FallbackStatus.IDLE
    last_error: Optional[BaseException] = None
    history: List[FallbackStatus] = field(default_factory=lambda: [FallbackStatus.IDLE])

    @property
    def primary(self) -> str:
        return self.candidates[0]

    @property
    def error(self) -> Optional[str]:
        """Message of the most recent failure."""
        return str(self.last_error) if self.last_error is not None else None

    @property
    def on_fallback(self) -> bool:
        """True while a candidate other than the primary is being tried."""
        return self.current_candidate is not None and self.current_candidate != self.primary

    def transition(self, status: FallbackStatus) -> None:
        """Move to ``status``, rejecting moves the state machine forbids."""
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise ChainStateError(
                f"Illegal fallback transition {self.status.value} -> {status.value}",
                from_status=self.status,
                to_status=status,
            )
        self.status = status
        self.history.append(status)

    def snapshot(self) -> "FallbackChainState":
        """Copy safe to keep after the chain moves on."""
        return replace(
            self,
            candidates=list(self.candidates),
            attempted_candidates=list(self.attempted_candidates),
            history=list(self.history),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Shape consumed by status indicators."""
        return {
            "status": self.status.value,
            "current_model": self.current_candidate,
            "attempted_models": list(self.attempted_candidates),
            "error": self.error,
        }


@dataclass
class CandidateFailure:
    """A candidate that failed after using up its own retries."""

    candidate: str
    error: BaseException
    attempts: int

    @property
    def message(self) -> str:
        return str(self.error)

    @property
    def error_type(self) -> str:
        return type(self.error).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidate": self.candidate,
            "error": self.message,
            "error_type": self.error_type,
            "attempts": self.attempts,
        }


@dataclass
class FallbackOutcome:
    """Result from a fallback chain execution."""

    status: FallbackStatus
    candidates: List[str]
    backend: Optional[str] = None
    result: Any = None
    error: Optional[BaseException] = None
    attempted: List[str] = field(default_factory=list)
    failures: List[CandidateFailure] = field(default_factory=list)

    @property
    def primary(self) -> str:
        return self.candidates[0]

    @property
    def succeeded(self) -> bool:
        return self.status is FallbackStatus.SUCCESS

    @property
    def used_fallback(self) -> bool:
        """True when a backend other than the primary produced the result."""
        return self.succeeded and self.backend != self.primary

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None

    def summary(self) -> str:
        """One-line human-readable description of the outcome."""
        if self.succeeded:
            if self.used_fallback:
                return f"succeeded on {self.backend} after {len(self.attempted)} failed"
            return f"succeeded on {self.backend}"
        if len(self.attempted) < len(self.candidates):
            return (
                f"stopped after {len(self.attempted)} of {len(self.candidates)} models; "
                f"last error: {self.error_message}"
            )
        return f"all {len(self.attempted)} models failed; last error: {self.error_message}"

    def raise_for_status(self) -> "FallbackOutcome":
        """Raise FallbackExhaustedError if the chain failed, else return self."""
        if not self.succeeded:
            raise FallbackExhaustedError(
                self.summary(),
                attempted=list(self.attempted),
                failures=list(self.failures),
                last_error=self.error,
            ) from self.error
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "backend": self.backend,
            "primary": self.primary,
            "used_fallback": self.used_fallback,
            "attempted": list(self.attempted),
            "failures": [failure.to_dict() for failure in self.failures],
            "error": self.error_message,
        }


TransitionObserver = Callable[[FallbackChainState], None]
FallbackObserver = Callable[[str, str, BaseException], None]


class FallbackChain:
    """
    Tries each candidate in order until one succeeds or all fail.

    Every candidate runs through :func:`with_retry` with its own retry
    budget. By default only network failures and retryable status codes are
    retried within a candidate; any failure still moves the chain on to the
    next candidate unless ``should_fallback`` says otherwise.

    A chain instance runs once. Build a new one per request.
    """

    def __init__(
        self,
        candidates: Sequence[str],
        policy: Optional[RetryPolicy] = None,
        *,
        on_transition: Optional[TransitionObserver] = None,
        on_fallback: Optional[FallbackObserver] = None,
        should_fallback: Optional[Callable[[BaseException], bool]] = None,
        logger: Optional[EventLogger] = None,
        rng: Optional[random.Random] = None,
    ):
        candidates = list(candidates)
        if not candidates:
            raise ConfigurationError("Fallback chain needs at least one candidate")

        self.policy = policy or RetryPolicy(transient_only=True)
        self.on_transition = on_transition
        self.on_fallback = on_fallback
        self.should_fallback = should_fallback
        self.state = FallbackChainState(candidates=candidates)
        self.failures: List[CandidateFailure] = []
        self._logger = logger or _default_logger
        self._rng = rng

    def _transition(self, status: FallbackStatus) -> None:
        self.state.transition(status)
        if self.on_transition:
            self.on_transition(self.state.snapshot())

    def _record_failure(self, candidate: str, error: BaseException, attempts: int) -> None:
        self.state.attempted_candidates.append(candidate)
        self.state.last_error = error
        self.failures.append(CandidateFailure(candidate, error, attempts))
        self._logger.warning(
            "fallback_candidate_failed",
            candidate=candidate,
            attempts=attempts,
            error=str(error),
            error_type=type(error).__name__,
        )

    def _outcome(self, result: Any = None) -> FallbackOutcome:
        succeeded = self.state.status is FallbackStatus.SUCCESS
        return FallbackOutcome(
            status=self.state.status,
            candidates=list(self.state.candidates),
            backend=self.state.current_candidate if succeeded else None,
            result=result,
            error=None if succeeded else self.state.last_error,
            attempted=list(self.state.attempted_candidates),
            failures=list(self.failures),
        )

    async def run(self, invoke: Callable[[str], Awaitable[Any]]) -> FallbackOutcome:
        """
        Run ``invoke(candidate)`` down the chain.

        Args:
            invoke: Async callable performing the operation against one
                candidate

        Returns:
            FallbackOutcome describing the winning backend or the failure

        Raises:
            ChainStateError: If this chain already ran
            asyncio.CancelledError: If the task is cancelled; the chain is
                moved to ``failure`` first so observers see it end
        """
        if self.state.status is not FallbackStatus.IDLE:
            raise ChainStateError(
                "Fallback chain already ran; build a new chain per request",
                from_status=self.state.status,
                to_status=FallbackStatus.IN_PROGRESS,
            )

        candidates = self.state.candidates
        for index, candidate in enumerate(candidates):
            self.state.current_candidate = candidate
            self._transition(FallbackStatus.IN_PROGRESS)
            self._logger.info(
                "fallback_candidate_started",
                candidate=candidate,
                position=index,
                fallback=index > 0,
            )

            retry_state = RetryState(self.policy)
            try:
                result = await with_retry(
                    partial(invoke, candidate),
                    state=retry_state,
                    logger=self._logger,
                    rng=self._rng,
                )
            except asyncio.CancelledError:
                self.state.current_candidate = None
                self._transition(FallbackStatus.FAILURE)
                self._logger.warning(
                    "fallback_cancelled",
                    candidate=candidate,
                    attempted=list(self.state.attempted_candidates),
                )
                raise
            except Exception as e:
                self._record_failure(candidate, e, retry_state.attempts_made)

                if self.should_fallback is not None and not self.should_fallback(e):
                    self._logger.warning(
                        "fallback_aborted",
                        candidate=candidate,
                        error_type=type(e).__name__,
                    )
                    break

                if self.on_fallback and index < len(candidates) - 1:
                    self.on_fallback(candidate, candidates[index + 1], e)
                continue

            self._transition(FallbackStatus.SUCCESS)
            self._logger.info(
                "fallback_succeeded",
                backend=candidate,
                used_fallback=index > 0,
                attempted=list(self.state.attempted_candidates),
            )
            return self._outcome(result)

        self.state.current_candidate = None
        self._transition(FallbackStatus.FAILURE)
        self._logger.error(
            "fallback_exhausted",
            attempted=list(self.state.attempted_candidates),
            candidates=len(candidates),
            error=self.state.error,
        )
        return self._outcome()


async def run_with_fallback(
    candidates: Sequence[str],
    invoke: Callable[[str], Awaitable[Any]],
    policy: Optional[RetryPolicy] = None,
    **options: Any,
) -> FallbackOutcome:
    """
    Build a one-shot FallbackChain and run it.

    Args:
        candidates: Backend ids, primary first
        invoke: Async callable performing the operation against one backend
        policy: Per-candidate retry policy
        **options: Passed to FallbackChain (on_transition, on_fallback,
            should_fallback, logger, rng)

    Raises:
        ConfigurationError: If ``candidates`` is empty; ``invoke`` is not called
    """
    chain = FallbackChain(candidates, policy, **options)
    return await chain.run(invoke)


async def run_model_chain(
    primary: Model,
    fallback_models: Sequence[Model],
    invoke: Callable[[Model], Awaitable[Any]],
    policy: Optional[RetryPolicy] = None,
    **options: Any,
) -> FallbackOutcome:
    """Run a fallback chain over Model objects, reporting progress by model id."""
    models = [primary, *fallback_models]
    by_id = {model.id: model for model in models}

    async def invoke_model(model_id: str) -> Any:
        return await invoke(by_id[model_id])

    return await run_with_fallback([model.id for model in models], invoke_model, policy, **options)
