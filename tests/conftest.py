"""Shared fixtures for TrendForge tests.

Oracles are replaced by small in-process fakes that implement the real ABCs,
so the orchestrator, TimeBudget and StateManager run for real. HTTP adapters
are exercised through httpx.MockTransport; nothing here touches the network.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

import pytest

from src.core.config import AppConfig, JudgeConfig, ModelRegistry, SystemConfig, TimeBudgetConfig
from src.core.models import (
    AxisRating,
    BuildStatus,
    DeploymentResult,
    Feature,
    Idea,
    ImplementationResult,
    JudgeAxes,
    JudgeOutcome,
    JudgeVerdict,
    Recommendation,
    RejectedIdea,
    ResearchReport,
    ScoutOptions,
    TrendingRepo,
    TweetResult,
)
from src.llm.client import LLMResponse
from src.llm.router import ModelRouter
from src.oracles.base import (
    AnnouncerOracle,
    DeployerOracle,
    IdeaGeneratorOracle,
    IdeaJudgeOracle,
    ImplementerOracle,
    ResearcherOracle,
    TrendScoutOracle,
)


# ---------------------------------------------------------------------------
# Model factories
# ---------------------------------------------------------------------------

def make_repo(owner: str = "acme", name: str = "widget", **overrides: Any) -> TrendingRepo:
    data: dict[str, Any] = {
        "url": f"https://github.com/{owner}/{name}",
        "name": name,
        "owner": owner,
        "description": "A CLI tool for widgets",
        "stars": 800,
        "language": "TypeScript",
    }
    data.update(overrides)
    return TrendingRepo(**data)


def make_idea(name: str = "widget-lens", original_repo: str = "acme/widget", **overrides: Any) -> Idea:
    data: dict[str, Any] = {
        "name": name,
        "tagline": "See inside your widgets",
        "description": f"{name} inspects widget pipelines and reports bottlenecks.",
        "tweet_pitch": "Widgets, but visible.",
        "original_repo": original_repo,
        "strategy": "complementary",
        "core_features": [
            Feature(name="Scan", description="Scan a project", priority="must", estimated_hours=1.5),
            Feature(name="Report", description="Print a report", priority="should", estimated_hours=1.0),
        ],
        "complexity": "simple",
        "estimated_hours": 3.0,
        "slop_factor": 40,
    }
    data.update(overrides)
    return Idea(**data)


def make_verdict(approved: bool, score: int = 70, reasoning: str = "ok", suggestions: Optional[list[str]] = None) -> JudgeVerdict:
    strong = AxisRating.HIGH if approved else AxisRating.LOW
    return JudgeVerdict(
        approved=approved,
        differentiation_score=score,
        axes=JudgeAxes(problem_divergence=strong, technical_novelty=strong, runnability=strong),
        reasoning=reasoning,
        suggestions=suggestions or [],
    )


def make_report(idea: Idea, recommendation: Recommendation = Recommendation.SHIP, **overrides: Any) -> ResearchReport:
    return ResearchReport(
        idea=idea,
        recommendation=recommendation,
        confidence=overrides.pop("confidence", 80),
        reasoning=overrides.pop("reasoning", "looks fine"),
        **overrides,
    )


def make_implementation(status: BuildStatus = BuildStatus.COMPLETE, repo_path: str = "/tmp/widget-lens") -> ImplementationResult:
    return ImplementationResult(status=status, repo_path=repo_path, total_hours=2.5, files_created=7)


# ---------------------------------------------------------------------------
# Fake oracles
# ---------------------------------------------------------------------------

class FakeTrendScout(TrendScoutOracle):
    def __init__(self, repos: Optional[list[TrendingRepo]] = None, error: Optional[Exception] = None, delay: float = 0.0):
        super().__init__("FakeTrendScout")
        self.repos = [make_repo()] if repos is None else repos
        self.error = error
        self.delay = delay
        self.calls: list[ScoutOptions] = []

    async def _scout(self, options: ScoutOptions) -> list[TrendingRepo]:
        self.calls.append(options)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.repos)


class FakeIdeaGenerator(IdeaGeneratorOracle):
    def __init__(self, ideas: Optional[list[Idea]] = None, error: Optional[Exception] = None):
        super().__init__("FakeIdeaGenerator")
        self.ideas = [make_idea()] if ideas is None else ideas
        self.error = error
        self.calls = 0

    async def _generate(self, repos: list[TrendingRepo]) -> list[Idea]:
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.ideas)


class FakeIdeaJudge(IdeaJudgeOracle):
    """Approves ideas whose name is in `approve`; `regenerated` feeds regenerate()."""

    def __init__(
        self,
        approve: Optional[set[str]] = None,
        approve_all: bool = False,
        regenerated: Optional[list[Idea]] = None,
    ):
        super().__init__("FakeIdeaJudge")
        self.approve = approve or set()
        self.approve_all = approve_all
        self.regenerated = regenerated or []
        self.filter_calls: list[list[str]] = []
        self.regenerate_calls: list[list[RejectedIdea]] = []

    async def judge(self, idea: Idea, source_repo: TrendingRepo) -> JudgeVerdict:
        approved = self.approve_all or idea.name in self.approve
        return make_verdict(approved, score=75 if approved else 30, reasoning="too close" if not approved else "distinct")

    async def filter_ideas(self, ideas: list[Idea], repo_map: dict[str, TrendingRepo]) -> JudgeOutcome:
        self.filter_calls.append([idea.name for idea in ideas])
        outcome = JudgeOutcome()
        for idea in ideas:
            verdict = await self.judge(idea, repo_map.get(idea.original_repo) or make_repo())
            if verdict.approved:
                outcome.approved.append(idea)
            else:
                outcome.rejected.append(RejectedIdea(idea=idea, verdict=verdict))
        return outcome

    async def regenerate(self, rejected: list[RejectedIdea], repo_map: dict[str, TrendingRepo]) -> list[Idea]:
        self.regenerate_calls.append(list(rejected))
        return list(self.regenerated)


class FakeResearcher(ResearcherOracle):
    """`outcomes` maps idea name to a Recommendation or an exception to raise."""

    def __init__(self, outcomes: Optional[dict[str, Any]] = None, default: Recommendation = Recommendation.SHIP):
        super().__init__("FakeResearcher")
        self.outcomes = outcomes or {}
        self.default = default
        self.calls: list[str] = []

    async def _research(self, idea: Idea) -> ResearchReport:
        self.calls.append(idea.name)
        outcome = self.outcomes.get(idea.name, self.default)
        if isinstance(outcome, Exception):
            raise outcome
        return make_report(idea, outcome)


class FakeImplementer(ImplementerOracle):
    def __init__(
        self,
        status: BuildStatus = BuildStatus.COMPLETE,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        super().__init__("FakeImplementer")
        self.status = status
        self.error = error
        self.delay = delay
        self.calls = 0
        self.finished = False

    async def _implement(self, idea: Idea, report: ResearchReport) -> ImplementationResult:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        self.finished = True
        return make_implementation(self.status)


class FakeDeployer(DeployerOracle):
    def __init__(self, success: bool = True, error: Optional[Exception] = None):
        super().__init__("FakeDeployer")
        self.success = success
        self.error = error
        self.calls = 0

    async def _deploy(self, implementation: ImplementationResult, idea: Idea) -> DeploymentResult:
        self.calls += 1
        if self.error:
            raise self.error
        if not self.success:
            return DeploymentResult(success=False, errors=["push rejected", "remote hung up"])
        return DeploymentResult(success=True, repo_url="https://github.com/trendforge/widget-lens")


class FakeAnnouncer(AnnouncerOracle):
    def __init__(self, success: bool = True, error: Optional[Exception] = None):
        super().__init__("FakeAnnouncer")
        self.success = success
        self.error = error
        self.calls = 0

    async def _announce(
        self,
        deployment: DeploymentResult,
        idea: Idea,
        implementation: ImplementationResult,
    ) -> TweetResult:
        self.calls += 1
        if self.error:
            raise self.error
        if not self.success:
            return TweetResult(success=False, text="draft")
        return TweetResult(success=True, tweet_url="https://x.com/trendforge/status/1", tweet_id="1", text="shipped")


# ---------------------------------------------------------------------------
# Config and orchestrator wiring
# ---------------------------------------------------------------------------

def make_config(tmp_path: Path, budgets: Optional[dict[str, float]] = None, **system: Any) -> AppConfig:
    return AppConfig(
        system=SystemConfig(
            state_dir=str(tmp_path / "state"),
            log_dir=str(tmp_path / "logs"),
            workspace_dir=str(tmp_path / "workspace"),
            **system,
        ),
        time_budgets=TimeBudgetConfig(**(budgets or {})),
        judge=JudgeConfig(),
    )


def make_oracles(**overrides: Any) -> dict[str, Any]:
    oracles: dict[str, Any] = {
        "trend_scout": FakeTrendScout(),
        "idea_generator": FakeIdeaGenerator(),
        "idea_judge": FakeIdeaJudge(approve_all=True),
        "researcher": FakeResearcher(),
        "implementer": FakeImplementer(),
        "deployer": FakeDeployer(),
        "announcer": FakeAnnouncer(),
    }
    oracles.update(overrides)
    return oracles


# ---------------------------------------------------------------------------
# LLM and HTTP doubles
# ---------------------------------------------------------------------------

class FakeLLMClient:
    """Stands in for OpenRouterClient.complete_with_fallback.

    `replies` are returned in order; an Exception instance is raised instead.
    """

    def __init__(self, replies: list[Any]):
        self.replies = list(replies)
        self.calls: list[dict[str, Any]] = []

    async def complete_with_fallback(self, messages, models, temperature=None, max_tokens=None) -> LLMResponse:
        self.calls.append({"messages": messages, "models": models})
        if not self.replies:
            raise AssertionError("FakeLLMClient ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(content=reply, model=models[0])


def model_router() -> ModelRouter:
    return ModelRouter(
        ModelRegistry(
            roles={"generator": "test/gen", "judge": "test/judge", "researcher": "test/research"},
            fallbacks={"judge": ["test/judge-backup"]},
        )
    )


@pytest.fixture
def config(tmp_path) -> AppConfig:
    return make_config(tmp_path)
