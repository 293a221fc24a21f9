"""Tests for text rendering of chain progress."""

from namewizard_resilience.fallback import FallbackChainState, FallbackStatus
from namewizard_resilience.indicator import (
    DEFAULT_FAILURE_MESSAGE,
    render_sequence,
    render_state,
)

CHAIN = ["gpt-5-nano", "gemini-2.5-flash", "llama-3.1-small"]


def make_state(status, current=None, attempted=(), error=None):
    state = FallbackChainState(candidates=list(CHAIN))
    if status is not FallbackStatus.IDLE:
        state.transition(FallbackStatus.IN_PROGRESS)
        if status is not FallbackStatus.IN_PROGRESS:
            state.transition(status)
    state.current_candidate = current
    state.attempted_candidates.extend(attempted)
    state.last_error = error
    return state


def test_idle_renders_nothing():
    assert render_state(make_state(FallbackStatus.IDLE)) == []


def test_primary_in_progress():
    lines = render_state(make_state(FallbackStatus.IN_PROGRESS, current="gpt-5-nano"))
    assert lines[0] == "Trying GPT-5 Nano..."
    assert lines[1] == "[..] GPT-5 Nano -> [ ] Gemini 2.5 Flash -> [ ] Llama 3.1 Small"


def test_alternative_in_progress():
    state = make_state(
        FallbackStatus.IN_PROGRESS, current="gemini-2.5-flash", attempted=["gpt-5-nano"]
    )
    lines = render_state(state)
    assert "now trying Gemini 2.5 Flash" in lines[0]
    assert lines[1].startswith("[x] GPT-5 Nano -> [..] Gemini 2.5 Flash")


def test_success_on_fallback():
    state = make_state(FallbackStatus.SUCCESS, current="llama-3.1-small",
                       attempted=["gpt-5-nano", "gemini-2.5-flash"])
    lines = render_state(state)
    assert lines[0].startswith("Alternative model used")
    assert render_sequence(state) == (
        "[x] GPT-5 Nano -> [x] Gemini 2.5 Flash -> [OK] Llama 3.1 Small"
    )


def test_success_on_primary_has_no_alternative_notice():
    lines = render_state(make_state(FallbackStatus.SUCCESS, current="gpt-5-nano"))
    assert lines[0] == "Processed with GPT-5 Nano."


def test_failure_shows_error_verbatim():
    state = make_state(FallbackStatus.FAILURE, attempted=CHAIN,
                       error=TimeoutError("llama timed out after 30s"))
    lines = render_state(state)
    assert lines[0] == "Processing failed: llama timed out after 30s"
    assert lines[1] == "[x] GPT-5 Nano -> [x] Gemini 2.5 Flash -> [x] Llama 3.1 Small"


def test_failure_without_error_uses_default_message():
    lines = render_state(make_state(FallbackStatus.FAILURE, attempted=CHAIN))
    assert lines[0] == f"Processing failed: {DEFAULT_FAILURE_MESSAGE}"
