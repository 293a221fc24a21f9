"""Configuration for the resilience layer, loadable from the environment."""

import os
from dataclasses import dataclass, field
from typing import Callable, List, Mapping, Optional, TypeVar

from .errors import ConfigurationError
from .models import STAGES, model_chain, normalize_plan
from .retry import RetryPolicy

T = TypeVar("T")

ENV_PREFIX = "NAMEWIZARD_"
LOG_FORMATS = ("console", "json")


def _read(
    env: Mapping[str, str],
    name: str,
    convert: Callable[[str], T],
    default: T,
) -> T:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        return convert(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{ENV_PREFIX}{name} has an invalid value: {raw!r}") from None


def _split_models(raw: str) -> List[str]:
    return [model.strip() for model in raw.split(",") if model.strip()]


@dataclass
class ResilienceConfig:
    """Configuration for retry and model fallback."""

    # Model chain: an explicit primary overrides the plan's chain
    plan: str = "free"
    stage: str = "b"
    primary_model: Optional[str] = None
    fallback_models: List[str] = field(default_factory=list)

    retry_policy: RetryPolicy = field(default_factory=lambda: RetryPolicy(transient_only=True))

    log_level: str = "INFO"
    log_format: str = "console"

    def __post_init__(self) -> None:
        if self.stage not in STAGES:
            raise ConfigurationError(f"Unknown stage: {self.stage!r}")
        if self.log_format not in LOG_FORMATS:
            raise ConfigurationError(f"Unknown log format: {self.log_format!r}")
        self.plan = normalize_plan(self.plan)

    def candidates(self) -> List[str]:
        """Ordered model ids the fallback chain should try."""
        if self.primary_model:
            return [self.primary_model, *self.fallback_models]
        return model_chain(self.plan, self.stage)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ResilienceConfig":
        """
        Load configuration from ``NAMEWIZARD_*`` environment variables.

        Unset variables keep their defaults.

        Raises:
            ConfigurationError: If a variable cannot be parsed or the
                resulting policy is invalid
        """
        env = os.environ if environ is None else environ
        defaults = RetryPolicy(transient_only=True)

        policy = defaults.with_overrides(
            max_retries=_read(env, "MAX_RETRIES", int, defaults.max_retries),
            initial_delay=_read(env, "INITIAL_DELAY", float, defaults.initial_delay),
            backoff_factor=_read(env, "BACKOFF_FACTOR", float, defaults.backoff_factor),
            max_delay=_read(env, "MAX_DELAY", float, defaults.max_delay),
        )

        return cls(
            plan=_read(env, "PLAN", str, "free"),
            stage=_read(env, "STAGE", str.lower, "b"),
            primary_model=_read(env, "PRIMARY_MODEL", str, None),
            fallback_models=_read(env, "FALLBACK_MODELS", _split_models, []),
            retry_policy=policy,
            log_level=_read(env, "LOG_LEVEL", str.upper, "INFO"),
            log_format=_read(env, "LOG_FORMAT", str.lower, "console"),
        )
