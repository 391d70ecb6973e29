"""Custom exception hierarchy for TrendForge.

All exceptions inherit from TrendForgeError so callers can catch broadly
or narrowly as needed.
"""


class TrendForgeError(Exception):
    """Base exception for all TrendForge errors."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigError(TrendForgeError):
    """Invalid or missing configuration."""


# ---------------------------------------------------------------------------
# LLM
# ---------------------------------------------------------------------------

class LLMError(TrendForgeError):
    """Failed LLM operation."""


class RateLimitError(LLMError):
    """Hit API rate limit."""


class AuthenticationError(LLMError):
    """Invalid API key or unauthorized."""


class ModelNotFoundError(LLMError):
    """Requested model not available."""


class ResponseParseError(LLMError):
    """Failed to parse LLM response."""


# ---------------------------------------------------------------------------
# Oracles and phases
# ---------------------------------------------------------------------------

class OracleError(TrendForgeError):
    """An oracle produced no usable result or violated a business rule."""


class TimeoutExceeded(TrendForgeError):
    """An operation overran its time budget."""

    def __init__(self, label: str, elapsed: float, budget: float):
        self.label = label
        self.elapsed = elapsed
        self.budget = budget
        super().__init__(
            f'TimeBudget exceeded for "{label}": {elapsed:.1f}s / {budget:g}s'
        )


class ExhaustionError(TrendForgeError):
    """A bounded retry or candidate loop ran out without a survivor."""


class JudgeExhaustionError(ExhaustionError):
    """Every judging round rejected every idea."""

    def __init__(self, rounds: int):
        self.rounds = rounds
        super().__init__(
            f"All ideas rejected by the differentiation judge after {rounds} rounds"
        )


class ResearchExhaustionError(ExhaustionError):
    """No researched idea came back with a ship recommendation."""

    def __init__(self, candidates: int):
        self.candidates = candidates
        super().__init__(
            f"No shippable ideas after research ({candidates} candidates)"
        )


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

class ToolError(TrendForgeError):
    """Tool execution failure."""


class ShellTimeoutError(ToolError):
    """Shell command exceeded timeout."""


class GitOperationError(ToolError):
    """Git operation failed."""


class ServiceError(ToolError):
    """Remote service (GitHub, npm, X) returned an error."""

    def __init__(self, service: str, message: str, status_code: int | None = None):
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service}: {message}")


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

class StateError(TrendForgeError):
    """Failed to read or write a pipeline state snapshot."""
