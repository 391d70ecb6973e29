"""Tests for src/core/exceptions.py: hierarchy and messages."""

import pytest

from src.core.exceptions import (
    AuthenticationError,
    ConfigError,
    ExhaustionError,
    GitOperationError,
    JudgeExhaustionError,
    LLMError,
    ModelNotFoundError,
    OracleError,
    RateLimitError,
    ResearchExhaustionError,
    ResponseParseError,
    ServiceError,
    ShellTimeoutError,
    StateError,
    TimeoutExceeded,
    ToolError,
    TrendForgeError,
)


class TestHierarchy:
    @pytest.mark.parametrize("exc_class", [
        ConfigError, LLMError, OracleError, TimeoutExceeded, ExhaustionError, ToolError, StateError,
    ])
    def test_all_inherit_base(self, exc_class):
        assert issubclass(exc_class, TrendForgeError)

    @pytest.mark.parametrize("exc_class", [RateLimitError, AuthenticationError, ModelNotFoundError, ResponseParseError])
    def test_llm_family(self, exc_class):
        assert issubclass(exc_class, LLMError)

    @pytest.mark.parametrize("exc_class", [ShellTimeoutError, GitOperationError, ServiceError])
    def test_tool_family(self, exc_class):
        assert issubclass(exc_class, ToolError)

    def test_exhaustion_family(self):
        assert issubclass(JudgeExhaustionError, ExhaustionError)
        assert issubclass(ResearchExhaustionError, ExhaustionError)


class TestMessages:
    def test_timeout_exceeded(self):
        err = TimeoutExceeded("implementer", 28801.26, 28800)
        assert str(err) == 'TimeBudget exceeded for "implementer": 28801.3s / 28800s'
        assert (err.label, err.budget) == ("implementer", 28800)

    def test_judge_exhaustion(self):
        err = JudgeExhaustionError(2)
        assert err.rounds == 2
        assert "after 2 rounds" in str(err)

    def test_research_exhaustion(self):
        err = ResearchExhaustionError(3)
        assert err.candidates == 3
        assert str(err) == "No shippable ideas after research (3 candidates)"

    def test_service_error(self):
        err = ServiceError("github", "HTTP 502", 502)
        assert str(err) == "github: HTTP 502"
        assert (err.service, err.status_code) == ("github", 502)
        assert ServiceError("npm", "down").status_code is None
