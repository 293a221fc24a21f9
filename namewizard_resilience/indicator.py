"""Plain-text rendering of fallback chain progress."""

from typing import List

from .fallback import FallbackChainState, FallbackStatus
from .models import format_model_name

DEFAULT_FAILURE_MESSAGE = "We couldn't process your request with any available AI model."


def candidate_marker(state: FallbackChainState, candidate: str) -> str:
    """Status marker for one candidate in the sequence."""
    if candidate == state.current_candidate:
        if state.status is FallbackStatus.IN_PROGRESS:
            return "[..]"
        if state.status is FallbackStatus.SUCCESS:
            return "[OK]"
    if candidate in state.attempted_candidates:
        return "[x]"
    return "[ ]"


def render_sequence(state: FallbackChainState) -> str:
    """Render the chain as ``[OK] GPT-5 Nano -> [ ] Gemini 2.5 Flash``."""
    return " -> ".join(
        f"{candidate_marker(state, candidate)} {format_model_name(candidate)}"
        for candidate in state.candidates
    )


def render_state(state: FallbackChainState) -> List[str]:
    """
    Lines describing a chain state for a terminal.

    Nothing is rendered while the chain is idle. A failed chain shows the
    last error message verbatim.
    """
    if state.status is FallbackStatus.IDLE:
        return []

    lines = []
    current = format_model_name(state.current_candidate) if state.current_candidate else None

    if state.status is FallbackStatus.IN_PROGRESS:
        if state.on_fallback:
            lines.append(f"Trying alternative model: the primary model failed, now trying {current}...")
        else:
            lines.append(f"Trying {current}...")
    elif state.status is FallbackStatus.SUCCESS:
        if state.on_fallback:
            lines.append(
                f"Alternative model used: processed with {current} after primary model failed."
            )
        else:
            lines.append(f"Processed with {current}.")
    else:
        lines.append(f"Processing failed: {state.error or DEFAULT_FAILURE_MESSAGE}")

    lines.append(render_sequence(state))
    return lines
