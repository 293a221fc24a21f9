"""AI models and the per-plan chains NameWizard falls back through."""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from .errors import ConfigurationError


@dataclass(frozen=True)
class Model:
    """An AI model a fallback chain can route to."""

    id: str
    name: str
    provider: str
    description: str = ""
    capabilities: Tuple[str, ...] = field(default=("text",))

    @property
    def supports_vision(self) -> bool:
        return "vision" in self.capabilities


@dataclass(frozen=True)
class PlanModels:
    """Model slots configured for a subscription plan."""

    primary: str
    secondary: str
    tertiary: str
    quaternary: str


AI_MODELS: Dict[str, Model] = {
    model.id: model
    for model in (
        Model(
            id="gpt-5-nano",
            name="GPT-5 Nano",
            provider="openai",
            description="Efficient model for simple tasks",
        ),
        Model(
            id="gpt-5.2",
            name="GPT-5.2",
            provider="openai",
            description="Advanced reasoning for complex folder planning",
            capabilities=("text", "vision"),
        ),
        Model(
            id="gemini-2.5-flash",
            name="Gemini 2.5 Flash",
            provider="google",
            description="Fast multimodal backup model",
            capabilities=("text", "vision"),
        ),
        Model(
            id="mistral-small-2025",
            name="Mistral Small 2025",
            provider="mistral",
            description="Cheap structured reasoning and validation",
        ),
        Model(
            id="llama-3.1-small",
            name="Llama 3.1 Small",
            provider="meta",
            description="Extra fallback and routing model",
        ),
    )
}

PLANS: Tuple[str, ...] = ("free", "basic", "pro", "unlimited")
STAGES: Tuple[str, ...] = ("a", "b")

PLAN_MODELS: Dict[str, PlanModels] = {
    "free": PlanModels("gpt-5-nano", "gemini-2.5-flash", "mistral-small-2025", "llama-3.1-small"),
    "basic": PlanModels("gpt-5-nano", "gemini-2.5-flash", "mistral-small-2025", "llama-3.1-small"),
    "pro": PlanModels("gpt-5.2", "gemini-2.5-flash", "mistral-small-2025", "llama-3.1-small"),
    "unlimited": PlanModels("gpt-5.2", "gemini-2.5-flash", "mistral-small-2025", "llama-3.1-small"),
}

# Billing plan types stored on user records
_PLAN_TYPE_ALIASES: Dict[str, str] = {
    "credits_low": "basic",
    "credits_high": "pro",
}


def normalize_plan(plan_type: str) -> str:
    """Map a stored plan type to a plan name, defaulting to ``free``."""
    if plan_type in PLANS:
        return plan_type
    return _PLAN_TYPE_ALIASES.get(plan_type, "free")


def plan_models(plan_type: str) -> PlanModels:
    """Get the model slots for a plan."""
    return PLAN_MODELS[normalize_plan(plan_type)]


def model_chain(plan_type: str = "free", stage: str = "b") -> List[str]:
    """
    Ordered model ids to try for a plan and processing stage.

    Stage ``a`` (folder planning) leads with the primary model, and the
    basic plan is upgraded to ``gpt-5.2`` for it. Stage ``b`` (per-file
    naming) leads with the cheaper secondary model.

    Raises:
        ConfigurationError: If ``stage`` is not ``a`` or ``b``
    """
    if stage not in STAGES:
        raise ConfigurationError(f"Unknown stage: {stage!r} (expected one of {', '.join(STAGES)})")

    plan = normalize_plan(plan_type)
    models = PLAN_MODELS[plan]

    if stage == "a":
        first = "gpt-5.2" if plan == "basic" else models.primary
        return [first, models.secondary, models.tertiary, models.quaternary]

    return [models.secondary, models.primary, models.tertiary, models.quaternary]


def get_model(model_id: str) -> Model:
    """Look up a model by id.

    Raises:
        KeyError: If the model is not in the catalog
    """
    try:
        return AI_MODELS[model_id]
    except KeyError:
        raise KeyError(f"Unknown model: {model_id}") from None


def format_model_name(model_id: str) -> str:
    """Display name for a model id, or the id itself if unknown."""
    model = AI_MODELS.get(model_id)
    return model.name if model else model_id
