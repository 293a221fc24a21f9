"""Simulated model backends for dry-running fallback chains."""

import re
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

import httpx

from .errors import ConfigurationError

FAILURE_KINDS = ("timeout", "connect", "invalid")

_FAILURE_RE = re.compile(r"^(?P<kind>\d{3}|[a-z]+)(?:x(?P<count>\d+))?$")


@dataclass(frozen=True)
class FailurePlan:
    """How a simulated backend fails: which error, and for how many calls."""

    kind: str = "503"
    count: Optional[int] = None  # None fails every call

    def fails_on(self, call_number: int) -> bool:
        return self.count is None or call_number <= self.count

    def build_error(self, candidate: str) -> Exception:
        """Create the exception a real client would raise for this failure."""
        request = httpx.Request("POST", f"https://models.invalid/{candidate}/completions")
        if self.kind == "timeout":
            return httpx.ReadTimeout(f"Timed out waiting for {candidate}", request=request)
        if self.kind == "connect":
            return httpx.ConnectError(f"Could not connect to {candidate}", request=request)
        if self.kind == "invalid":
            return ValueError(f"{candidate} returned an unparseable response")

        status_code = int(self.kind)
        response = httpx.Response(status_code, request=request)
        return httpx.HTTPStatusError(
            f"{candidate} responded with HTTP {status_code}",
            request=request,
            response=response,
        )


def parse_failure(spec: str) -> Tuple[str, FailurePlan]:
    """
    Parse ``MODEL[:KIND][xCOUNT]`` into a model id and its failure plan.

    KIND is an HTTP status code or one of ``timeout``, ``connect``,
    ``invalid``. Examples: ``gpt-5-nano``, ``gpt-5-nano:429x2``,
    ``gemini-2.5-flash:timeout``.

    Raises:
        ConfigurationError: If the spec cannot be parsed
    """
    model_id, sep, failure = spec.rpartition(":")
    if not sep:
        model_id, failure = spec, "503"
    if not model_id:
        raise ConfigurationError(f"Missing model id in failure spec: {spec!r}")

    match = _FAILURE_RE.match(failure)
    if not match:
        raise ConfigurationError(f"Invalid failure spec: {spec!r}")

    kind = match.group("kind")
    if not kind.isdigit() and kind not in FAILURE_KINDS:
        raise ConfigurationError(
            f"Unknown failure kind {kind!r} (use a status code or one of {', '.join(FAILURE_KINDS)})"
        )
    count = match.group("count")
    return model_id, FailurePlan(kind=kind, count=int(count) if count else None)


class SimulatedBackend:
    """Async stand-in for model calls that fails according to a plan."""

    def __init__(self, failures: Optional[Dict[str, FailurePlan]] = None):
        self.failures = failures or {}
        self.calls: Counter = Counter()

    @classmethod
    def from_specs(cls, specs: Iterable[str]) -> "SimulatedBackend":
        return cls(dict(parse_failure(spec) for spec in specs))

    async def __call__(self, candidate: str) -> str:
        self.calls[candidate] += 1
        plan = self.failures.get(candidate)
        if plan is not None and plan.fails_on(self.calls[candidate]):
            raise plan.build_error(candidate)
        return f"{candidate}: ok"
