"""
namewizard-resilience - Retry and AI model fallback for NameWizard.

This package keeps calls to external AI services alive through transient
failures:
- Exponential backoff with jitter for retries
- Fallback chains that walk an ordered list of models
- Progress reporting on every fallback transition
- Plan-tier model chains

Retrying a single call:
    from namewizard_resilience import with_retry, RetryPolicy

    result = await with_retry(lambda: client.get(url), RetryPolicy(max_retries=5))

Falling back across models:
    from namewizard_resilience import run_with_fallback, model_chain

    outcome = await run_with_fallback(
        model_chain("pro"),
        lambda model_id: suggest_name(model_id, file),
        on_transition=lambda state: print(state.to_dict()),
    )
    if outcome.used_fallback:
        ...

Using decorators:
    from namewizard_resilience import retryable, RetryPolicy

    @retryable(RetryPolicy(max_retries=3))
    async def fetch_metadata():
        ...
"""

__version__ = "0.1.0"

# Errors
from .errors import (
    ResilienceError,
    ConfigurationError,
    ChainStateError,
    FallbackExhaustedError,
)

# Retry module
from .retry import (
    RetryPolicy,
    RetryState,
    AttemptRecord,
    DEFAULT_RETRYABLE_STATUS_CODES,
    with_retry,
    retryable,
    base_delay,
    compute_delay,
    backoff_schedule,
    default_retry_predicate,
    is_transient_error,
    is_network_error,
    extract_status_code,
    extract_retry_after,
)

# Fallback module
from .fallback import (
    FallbackChain,
    FallbackChainState,
    FallbackOutcome,
    FallbackStatus,
    CandidateFailure,
    run_with_fallback,
    run_model_chain,
)

# Model catalog
from .models import (
    Model,
    PlanModels,
    AI_MODELS,
    PLANS,
    model_chain,
    plan_models,
    normalize_plan,
    get_model,
    format_model_name,
)

from .config import ResilienceConfig
from .logging_config import configure_logging

__all__ = [
    # Version
    "__version__",
    # Errors
    "ResilienceError",
    "ConfigurationError",
    "ChainStateError",
    "FallbackExhaustedError",
    # Retry
    "RetryPolicy",
    "RetryState",
    "AttemptRecord",
    "DEFAULT_RETRYABLE_STATUS_CODES",
    "with_retry",
    "retryable",
    "base_delay",
    "compute_delay",
    "backoff_schedule",
    "default_retry_predicate",
    "is_transient_error",
    "is_network_error",
    "extract_status_code",
    "extract_retry_after",
    # Fallback
    "FallbackChain",
    "FallbackChainState",
    "FallbackOutcome",
    "FallbackStatus",
    "CandidateFailure",
    "run_with_fallback",
    "run_model_chain",
    # Models
    "Model",
    "PlanModels",
    "AI_MODELS",
    "PLANS",
    "model_chain",
    "plan_models",
    "normalize_plan",
    "get_model",
    "format_model_name",
    # Config and logging
    "ResilienceConfig",
    "configure_logging",
]
