"""Tests for environment-driven configuration."""

import pytest

from namewizard_resilience.config import ResilienceConfig
from namewizard_resilience.errors import ConfigurationError
from namewizard_resilience.models import model_chain


def test_defaults_from_empty_environment():
    config = ResilienceConfig.from_env({})

    assert config.plan == "free"
    assert config.stage == "b"
    assert config.retry_policy.max_retries == 3
    assert config.retry_policy.transient_only
    assert config.log_level == "INFO"
    assert config.log_format == "console"
    assert config.candidates() == model_chain("free", "b")


def test_policy_from_environment():
    config = ResilienceConfig.from_env(
        {
            "NAMEWIZARD_MAX_RETRIES": "5",
            "NAMEWIZARD_INITIAL_DELAY": "0.25",
            "NAMEWIZARD_BACKOFF_FACTOR": "3",
            "NAMEWIZARD_MAX_DELAY": "12",
        }
    )

    policy = config.retry_policy
    assert policy.max_retries == 5
    assert policy.initial_delay == 0.25
    assert policy.backoff_factor == 3.0
    assert policy.max_delay == 12.0


def test_explicit_models_override_plan():
    config = ResilienceConfig.from_env(
        {
            "NAMEWIZARD_PLAN": "pro",
            "NAMEWIZARD_PRIMARY_MODEL": "gpt-5.2",
            "NAMEWIZARD_FALLBACK_MODELS": "gemini-2.5-flash, llama-3.1-small,",
        }
    )

    assert config.candidates() == ["gpt-5.2", "gemini-2.5-flash", "llama-3.1-small"]


def test_plan_and_stage_from_environment():
    config = ResilienceConfig.from_env({"NAMEWIZARD_PLAN": "credits_low", "NAMEWIZARD_STAGE": "A"})

    assert config.plan == "basic"
    assert config.candidates() == model_chain("basic", "a")


def test_blank_values_keep_defaults():
    config = ResilienceConfig.from_env({"NAMEWIZARD_MAX_RETRIES": "  "})
    assert config.retry_policy.max_retries == 3


@pytest.mark.parametrize(
    "env",
    [
        {"NAMEWIZARD_MAX_RETRIES": "three"},
        {"NAMEWIZARD_MAX_RETRIES": "-1"},
        {"NAMEWIZARD_INITIAL_DELAY": "10", "NAMEWIZARD_MAX_DELAY": "1"},
        {"NAMEWIZARD_STAGE": "z"},
        {"NAMEWIZARD_LOG_FORMAT": "xml"},
        {"NAMEWIZARD_INITIAL_DELAY": "nan"},
        {"NAMEWIZARD_MAX_DELAY": "nan"},
        {"NAMEWIZARD_MAX_DELAY": "inf"},
        {"NAMEWIZARD_BACKOFF_FACTOR": "inf"},
    ],
)
def test_invalid_environment(env):
    with pytest.raises(ConfigurationError):
        ResilienceConfig.from_env(env)


def test_reads_os_environ(monkeypatch):
    monkeypatch.setenv("NAMEWIZARD_LOG_LEVEL", "debug")
    monkeypatch.setenv("NAMEWIZARD_LOG_FORMAT", "JSON")

    config = ResilienceConfig.from_env()

    assert config.log_level == "DEBUG"
    assert config.log_format == "json"
