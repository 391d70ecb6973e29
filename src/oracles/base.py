"""Oracle contracts for TrendForge.

Each pipeline phase talks to exactly one oracle through the narrow async
interface defined here. The orchestrator depends only on these ABCs; the
concrete adapters live next to this module and test doubles live in tests/.

Every oracle follows the same lifecycle:
1. Public entry point (e.g. `research()`) logs the start.
2. The subclass hook (e.g. `_research()`) does the work.
3. Completion or failure is logged with the duration; failures propagate.

Subclasses override the hook, not the entry point.
"""

from __future__ import annotations

import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Optional

from src.core.config import PromptLoader
from src.core.models import (
    DeploymentResult,
    Idea,
    ImplementationResult,
    JudgeOutcome,
    JudgeVerdict,
    RejectedIdea,
    ResearchReport,
    ScoutOptions,
    TrendingRepo,
    TweetResult,
)
from src.llm.client import LLMMessage, OpenRouterClient
from src.llm.router import ModelRouter


def _slug(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


class BaseOracle(ABC):
    """Lifecycle logging and metrics shared by all oracles."""

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(f"trendforge.oracle.{_slug(name)}")
        self._metrics: dict[str, Any] = {
            "total_calls": 0,
            "total_errors": 0,
            "last_duration_seconds": 0.0,
        }

    async def _observe(self, operation: str, work: Awaitable[Any], summary: str = "") -> Any:
        extra = {"oracle": self.name}
        self.logger.info("[%s] Starting %s %s", self.name, operation, summary, extra=extra)
        start = time.monotonic()
        try:
            result = await work
        except Exception as e:
            duration = time.monotonic() - start
            self._metrics["total_errors"] += 1
            self._metrics["last_duration_seconds"] = duration
            self.logger.error(
                "[%s] %s failed: %s", self.name, operation, e,
                extra={**extra, "duration": duration},
            )
            raise
        duration = time.monotonic() - start
        self._metrics["total_calls"] += 1
        self._metrics["last_duration_seconds"] = duration
        self.logger.info(
            "[%s] %s complete (%.2fs)", self.name, operation, duration,
            extra={**extra, "duration": duration},
        )
        return result

    def get_metrics(self) -> dict[str, Any]:
        """Return a copy of the oracle's runtime metrics."""
        return self._metrics.copy()


class LLMBackedMixin:
    """Chat-completion helper for oracles that consult a model role."""

    client: OpenRouterClient
    router: ModelRouter
    role: str
    prompts: PromptLoader

    def _init_llm(
        self,
        client: OpenRouterClient,
        router: ModelRouter,
        role: str,
        prompts: Optional[PromptLoader] = None,
    ) -> None:
        self.client = client
        self.router = router
        self.role = role
        self.prompts = prompts or PromptLoader()

    async def _ask(self, system: str, user: str, temperature: Optional[float] = None) -> str:
        response = await self.client.complete_with_fallback(
            [LLMMessage.system(system), LLMMessage.user(user)],
            self.router.get_model_chain(self.role),
            temperature=temperature,
        )
        return response.content


# ---------------------------------------------------------------------------
# Phase contracts
# ---------------------------------------------------------------------------

class TrendScoutOracle(BaseOracle):
    async def scout_trends(self, options: ScoutOptions) -> list[TrendingRepo]:
        return await self._observe(
            "scout_trends", self._scout(options), f"(period={options.period})",
        )

    @abstractmethod
    async def _scout(self, options: ScoutOptions) -> list[TrendingRepo]:
        """Return trending repositories ranked by idea potential."""


class IdeaGeneratorOracle(BaseOracle):
    async def generate_original_ideas(self, repos: list[TrendingRepo]) -> list[Idea]:
        return await self._observe(
            "generate_original_ideas", self._generate(repos), f"({len(repos)} repos)",
        )

    @abstractmethod
    async def _generate(self, repos: list[TrendingRepo]) -> list[Idea]:
        """Synthesize ideas inspired by (not copying) the given repos."""


class IdeaJudgeOracle(BaseOracle):
    """Differentiation judge. `judge` must never raise."""

    @abstractmethod
    async def judge(self, idea: Idea, source_repo: TrendingRepo) -> JudgeVerdict:
        """Return a verdict; collaborator failures become a fail-closed verdict."""

    @abstractmethod
    async def filter_ideas(
        self, ideas: list[Idea], repo_map: dict[str, TrendingRepo],
    ) -> JudgeOutcome:
        """Partition ideas into approved and rejected."""

    @abstractmethod
    async def regenerate(
        self, rejected: list[RejectedIdea], repo_map: dict[str, TrendingRepo],
    ) -> list[Idea]:
        """Produce replacement ideas from the judge's feedback."""


class ResearcherOracle(BaseOracle):
    async def research(self, idea: Idea) -> ResearchReport:
        return await self._observe("research", self._research(idea), f"'{idea.name}'")

    @abstractmethod
    async def _research(self, idea: Idea) -> ResearchReport:
        """Investigate feasibility and recommend ship, pivot or abort."""


class ImplementerOracle(BaseOracle):
    async def implement(self, idea: Idea, report: ResearchReport) -> ImplementationResult:
        return await self._observe("implement", self._implement(idea, report), f"'{idea.name}'")

    @abstractmethod
    async def _implement(self, idea: Idea, report: ResearchReport) -> ImplementationResult:
        """Build the project and report per-feature outcomes."""


class DeployerOracle(BaseOracle):
    async def deploy(self, implementation: ImplementationResult, idea: Idea) -> DeploymentResult:
        return await self._observe("deploy", self._deploy(implementation, idea), f"'{idea.name}'")

    @abstractmethod
    async def _deploy(self, implementation: ImplementationResult, idea: Idea) -> DeploymentResult:
        """Publish the implementation and return the public location."""


class AnnouncerOracle(BaseOracle):
    async def announce(
        self,
        deployment: DeploymentResult,
        idea: Idea,
        implementation: ImplementationResult,
    ) -> TweetResult:
        return await self._observe(
            "announce", self._announce(deployment, idea, implementation), f"'{idea.name}'",
        )

    @abstractmethod
    async def _announce(
        self,
        deployment: DeploymentResult,
        idea: Idea,
        implementation: ImplementationResult,
    ) -> TweetResult:
        """Post the release announcement."""
