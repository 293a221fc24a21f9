"""Tests for the command-line interface."""

import json
import os
from unittest.mock import patch

import pytest
from click.testing import CliRunner
from structlog.testing import capture_logs

from namewizard_resilience.cli import cli

FAST = ["--initial-delay", "0.001", "--max-delay", "0.01", "--max-retries", "1"]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in list(os.environ):
        if name.startswith("NAMEWIZARD_"):
            monkeypatch.delenv(name)


@pytest.fixture
def runner():
    with patch("namewizard_resilience.cli.configure_logging") as configure, \
            capture_logs():
        yield CliRunner(), configure


def invoke(runner, args, **kwargs):
    cli_runner, _ = runner
    return cli_runner.invoke(cli, args, obj={}, **kwargs)


def test_models_lists_catalog_and_chains(runner):
    result = invoke(runner, ["models"])

    assert result.exit_code == 0
    assert "gpt-5-nano (GPT-5 Nano, openai; text)" in result.output
    assert "free: gemini-2.5-flash -> gpt-5-nano" in result.output


def test_models_for_one_plan(runner):
    result = invoke(runner, ["models", "--plan", "pro", "--stage", "a"])

    assert result.exit_code == 0
    assert "Models:" not in result.output
    assert "pro: gpt-5.2 -> gemini-2.5-flash -> mistral-small-2025 -> llama-3.1-small" in result.output


def test_backoff_schedule(runner):
    result = invoke(runner, ["backoff", "--max-retries", "3", "--initial-delay", "1",
                             "--max-delay", "3"])

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert lines[0] == "retry 1: 1.000s (up to 1.100s with jitter)"
    assert lines[2] == "retry 3: 3.000s (up to 3.000s with jitter)"
    assert lines[3] == "total: 6.000s before the last attempt"


def test_backoff_without_retries(runner):
    result = invoke(runner, ["backoff", "--max-retries", "0"])
    assert "attempted once" in result.output


def test_backoff_rejects_invalid_policy(runner):
    result = invoke(runner, ["backoff", "--backoff-factor", "0.5"])

    assert result.exit_code == 1
    assert "backoff_factor must be >= 1" in result.output


def test_simulate_success_on_fallback(runner):
    result = invoke(runner, ["simulate", "--primary", "gpt-5.2", "--fallback", "gpt-5-nano",
                             "--fail", "gpt-5.2:503", *FAST])

    assert result.exit_code == 0
    assert "Trying GPT-5.2..." in result.output
    assert "the primary model failed, now trying GPT-5 Nano" in result.output
    assert "[x] GPT-5.2 -> [OK] GPT-5 Nano" in result.output
    assert result.output.rstrip().endswith("succeeded on gpt-5-nano after 1 failed")


def test_simulate_total_failure_exits_nonzero(runner):
    result = invoke(runner, ["simulate", "--primary", "a", "--fallback", "b",
                             "--fail", "a:timeout", "--fail", "b:500", *FAST])

    assert result.exit_code == 1
    assert "Processing failed: b responded with HTTP 500" in result.output
    assert "all 2 models failed" in result.output


def test_simulate_json_output(runner):
    result = invoke(runner, ["simulate", "--plan", "free", "--fail", "gemini-2.5-flash:invalid",
                             "--json-output", *FAST])

    assert result.exit_code == 0
    output = json.loads(result.output)
    assert output["backend"] == "gpt-5-nano"
    assert output["used_fallback"] is True
    assert output["failures"][0]["error_type"] == "ValueError"
    # Application errors are not retried
    assert output["calls"] == {"gemini-2.5-flash": 1, "gpt-5-nano": 1}


def test_simulate_uses_configured_chain(runner, monkeypatch):
    monkeypatch.setenv("NAMEWIZARD_PRIMARY_MODEL", "mistral-small-2025")

    result = invoke(runner, ["simulate", "--json-output", *FAST])

    assert json.loads(result.output)["backend"] == "mistral-small-2025"


def test_simulate_rejects_bad_failure_spec(runner):
    result = invoke(runner, ["simulate", "--fail", "gpt-5-nano:boom", *FAST])

    assert result.exit_code == 1
    assert "Unknown failure kind" in result.output


def test_simulate_fallback_requires_primary(runner):
    result = invoke(runner, ["simulate", "--fallback", "gpt-5-nano", *FAST])

    assert result.exit_code == 2
    assert "--fallback requires --primary" in result.output


def test_bad_environment_reported(runner, monkeypatch):
    monkeypatch.setenv("NAMEWIZARD_MAX_RETRIES", "lots")

    result = invoke(runner, ["models"])

    assert result.exit_code == 1
    assert "NAMEWIZARD_MAX_RETRIES" in result.output


def test_verbose_enables_debug_logging(runner):
    invoke(runner, ["-v", "--log-format", "json", "models"])

    _, configure = runner
    configure.assert_called_once_with(log_level="DEBUG", log_format="json")
