"""Shared fixtures for namewizard-resilience tests."""

from typing import Any, Dict, List, Tuple

import pytest

from namewizard_resilience.retry import RetryPolicy


class RecordingLogger:
    """Logger double that keeps every event instead of printing it."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, str, Dict[str, Any]]] = []

    def debug(self, event: str, **kw: Any) -> None:
        self.events.append(("debug", event, kw))

    def info(self, event: str, **kw: Any) -> None:
        self.events.append(("info", event, kw))

    def warning(self, event: str, **kw: Any) -> None:
        self.events.append(("warning", event, kw))

    def error(self, event: str, **kw: Any) -> None:
        self.events.append(("error", event, kw))

    def named(self, event: str) -> List[Dict[str, Any]]:
        """Fields of every event with the given name."""
        return [fields for _, name, fields in self.events if name == event]


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def fast_policy() -> RetryPolicy:
    """Policy with millisecond delays so retries don't slow the suite."""
    return RetryPolicy(max_retries=2, initial_delay=0.001, backoff_factor=2.0, max_delay=0.01)


@pytest.fixture
def fast_transient_policy(fast_policy: RetryPolicy) -> RetryPolicy:
    return fast_policy.with_overrides(transient_only=True)
