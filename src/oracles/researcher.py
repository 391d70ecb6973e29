"""Feasibility researcher.

Checks whether an idea already exists (GitHub and npm search), validates its
dependencies against the npm registry, collects similar projects as
inspiration, and asks the `researcher` model role for a ship / pivot / abort
decision. Hard findings short-circuit the decision:

- an exact duplicate aborts,
- a dependency blocker or high dependency risk pivots.

If the model cannot decide, a rule-based decision is used instead.
"""

from __future__ import annotations

import re
import time
from typing import Any, Optional

from src.core.config import PromptLoader
from src.core.exceptions import LLMError, ResponseParseError, ServiceError
from src.core.models import (
    DependencyHealth,
    DependencyReport,
    ExistenceCheck,
    Idea,
    ImplementationHints,
    InspirationSource,
    PackageRef,
    ProjectRef,
    Recommendation,
    ResearchReport,
    Risk,
)
from src.llm.client import OpenRouterClient
from src.llm.response_parser import parse_json_object
from src.llm.router import ModelRouter
from src.oracles.base import LLMBackedMixin, ResearcherOracle
from src.tools.github import GitHubClient
from src.tools.npm import NpmRegistryClient

RESEARCH_SYSTEM = (
    "You are a technical research advisor deciding whether a project idea should "
    "proceed to implementation. Respond with a single JSON object."
)


def normalize_name(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", name.lower())


def identify_risks(idea: Idea, deps: DependencyReport) -> list[Risk]:
    risks: list[Risk] = []
    if idea.estimated_hours > 6:
        risks.append(Risk(
            category="time",
            severity="medium",
            description=f"Estimated {idea.estimated_hours:g}h may exceed budget",
            mitigation="Scope down to must-have features only",
        ))
    if idea.complexity == "complex":
        risks.append(Risk(
            category="technical",
            severity="high",
            description="High complexity may lead to incomplete implementation",
            mitigation="Simplify the architecture",
        ))
    if deps.overall_risk in ("medium", "high"):
        risks.append(Risk(
            category="technical",
            severity=deps.overall_risk,
            description=f"Dependency risk is {deps.overall_risk}",
            mitigation="Use well-known alternatives or remove risky deps",
        ))
    if len(idea.must_features) > 3:
        risks.append(Risk(
            category="scope",
            severity="medium",
            description="Too many must-have features",
            mitigation='Demote some to "should" priority',
        ))
    return risks


def heuristic_decision(
    existence: ExistenceCheck, deps: DependencyReport, risks: list[Risk],
) -> tuple[Recommendation, int, str]:
    blockers = [r for r in risks if r.severity == "blocker"]
    high = [r for r in risks if r.severity == "high"]

    if blockers:
        return (
            Recommendation.ABORT, 90,
            "Blocker risks: " + "; ".join(r.description for r in blockers),
        )
    if not existence.is_novel:
        return Recommendation.PIVOT, 70, "Similar projects exist, need stronger differentiation"
    if len(high) > 1 or deps.overall_risk == "high":
        return (
            Recommendation.PIVOT, 65,
            "Multiple high risks: " + "; ".join(r.description for r in high),
        )
    return (
        Recommendation.SHIP,
        max(50, 85 - 10 * len(high)),
        "Novel idea with manageable risks",
    )


def summarize_dependencies(health: list[DependencyHealth]) -> DependencyReport:
    blockers = []
    for dep in health:
        if dep.stability == "deprecated":
            blockers.append(f"{dep.name} is deprecated")
        elif dep.risk == "high":
            blockers.append(f"{dep.name} was not found on npm")

    levels = {dep.risk for dep in health}
    overall = "high" if "high" in levels else "medium" if "medium" in levels else "low"
    return DependencyReport(dependencies=health, overall_risk=overall, blockers=blockers)


def build_decision_prompt(
    idea: Idea,
    existence: ExistenceCheck,
    deps: DependencyReport,
    inspiration: list[InspirationSource],
    risks: list[Risk],
) -> str:
    similar = ", ".join(p.name for p in existence.similar_projects[:3]) or "none"
    dep_lines = "\n".join(f"- {d.name}: {d.stability}, risk {d.risk}" for d in deps.dependencies)
    risk_lines = "\n".join(f"- [{r.severity}] {r.description}" for r in risks) or "None"
    inspiration_lines = "\n".join(f"- {s.title} ({s.url})" for s in inspiration) or "None found"
    return f"""## Proposed Project
Name: {idea.name}
Description: {idea.description}
Estimated hours: {idea.estimated_hours:g}
Complexity: {idea.complexity}
Dependencies: {", ".join(idea.dependencies) or "none"}

## Existence Check
Is novel: {existence.is_novel}
Market gap: {existence.market_gap}
Exact duplicates: {len(existence.exact_duplicates)}
Similar projects: {similar}

## Dependency Health
Overall risk: {deps.overall_risk}
Blockers: {", ".join(deps.blockers) or "none"}
{dep_lines}

## Similar Projects
{inspiration_lines}

## Identified Risks
{risk_lines}

## Decision
- SHIP: novel enough, healthy dependencies, manageable risks.
- PIVOT: promising but needs changes (crowded space, risky deps, scope).
- ABORT: exact duplicates, broken critical deps or not buildable.

Respond with {{"recommendation": "SHIP|PIVOT|ABORT", "confidence": 0-100, "reasoning": "<2-3 sentences>"}}"""


class Researcher(LLMBackedMixin, ResearcherOracle):
    def __init__(
        self,
        client: OpenRouterClient,
        router: ModelRouter,
        github: GitHubClient,
        npm: NpmRegistryClient,
        prompts: Optional[PromptLoader] = None,
    ):
        super().__init__("Researcher")
        self._init_llm(client, router, "researcher", prompts)
        self.github = github
        self.npm = npm

    async def _research(self, idea: Idea) -> ResearchReport:
        started = time.monotonic()
        visited: list[str] = []

        existence = await self.check_existence(idea, visited)
        if existence.exact_duplicates:
            dup = existence.exact_duplicates[0]
            return self._report(
                idea, started, visited,
                existence=existence,
                recommendation=Recommendation.ABORT,
                confidence=90,
                reasoning=f"Exact duplicate found: {dup.url}",
            )

        deps = await self.validate_dependencies(idea.dependencies, visited)
        if deps.overall_risk == "high" or deps.blockers:
            return self._report(
                idea, started, visited,
                existence=existence,
                dependencies=deps,
                recommendation=Recommendation.PIVOT,
                confidence=70,
                reasoning="Dependency risks: " + (", ".join(deps.blockers) or deps.overall_risk),
            )

        inspiration = await self.find_inspiration(idea, visited)
        risks = identify_risks(idea, deps)
        recommendation, confidence, reasoning = await self.decide(
            idea, existence, deps, inspiration, risks,
        )
        self.logger.info(
            "Research complete for '%s': %s (confidence %d)",
            idea.name, recommendation.value, confidence,
        )
        return self._report(
            idea, started, visited,
            existence=existence,
            dependencies=deps,
            inspiration=inspiration,
            technical_risks=risks,
            recommendation=recommendation,
            confidence=confidence,
            reasoning=reasoning,
            implementation_hints=ImplementationHints(common_dependencies=list(idea.dependencies)),
        )

    async def check_existence(self, idea: Idea, visited: list[str]) -> ExistenceCheck:
        wanted = normalize_name(idea.name)
        exact: list[ProjectRef] = []
        similar: list[ProjectRef] = []
        packages: list[PackageRef] = []

        try:
            visited.append(f"github:search/repositories?q={idea.name}")
            for item in (await self.github.search_repositories(f"{idea.name} in:name"))[:10]:
                ref = ProjectRef(
                    url=item.get("html_url", ""),
                    name=item.get("full_name", item.get("name", "")),
                    stars=item.get("stargazers_count") or 0,
                )
                if normalize_name(item.get("name", "")) == wanted:
                    exact.append(ref)
                else:
                    similar.append(ref)
        except ServiceError as e:
            self.logger.warning("GitHub existence search failed: %s", e)

        try:
            visited.append(f"npm:search?text={idea.name}")
            for pkg in await self.npm.search(idea.name):
                if wanted and wanted in normalize_name(pkg.get("name", "")):
                    packages.append(PackageRef(
                        name=pkg.get("name", ""), description=pkg.get("description") or "",
                    ))
        except ServiceError as e:
            self.logger.warning("npm existence search failed: %s", e)

        is_novel = not exact and len(packages) < 3
        return ExistenceCheck(
            exact_duplicates=exact,
            similar_projects=similar,
            npm_packages=packages,
            is_novel=is_novel,
            market_gap=(
                "Clear gap, no exact duplicates found" if is_novel
                else "Crowded space, differentiation required"
            ),
        )

    async def validate_dependencies(self, deps: list[str], visited: list[str]) -> DependencyReport:
        health: list[DependencyHealth] = []
        for name in deps:
            visited.append(f"npm:{name}")
            try:
                health.append(await self.npm.dependency_health(name))
            except ServiceError as e:
                self.logger.warning("Could not check dependency %s: %s", name, e)
                health.append(DependencyHealth(name=name, risk="medium"))
        return summarize_dependencies(health)

    async def find_inspiration(self, idea: Idea, visited: list[str]) -> list[InspirationSource]:
        keywords = " ".join(idea.description.split()[:4])
        query = f"{keywords} language:TypeScript"
        visited.append(f"github:search/repositories?q={query}")
        try:
            items = await self.github.search_repositories(query, per_page=5)
        except ServiceError as e:
            self.logger.warning("Inspiration search failed: %s", e)
            return []
        return [
            InspirationSource(
                url=item.get("html_url", ""),
                title=item.get("full_name", ""),
                type="github",
                relevance=70,
                key_takeaways=[item["description"]] if item.get("description") else [],
            )
            for item in items[:3]
        ]

    async def decide(
        self,
        idea: Idea,
        existence: ExistenceCheck,
        deps: DependencyReport,
        inspiration: list[InspirationSource],
        risks: list[Risk],
    ) -> tuple[Recommendation, int, str]:
        try:
            raw = await self._ask(
                self.prompts.load("research_system.txt", RESEARCH_SYSTEM),
                build_decision_prompt(idea, existence, deps, inspiration, risks),
                temperature=0.2,
            )
            data = parse_json_object(raw)
            recommendation = Recommendation(str(data.get("recommendation", "")).strip().lower())
        except (LLMError, ResponseParseError, ValueError, OSError) as e:
            self.logger.warning("LLM decision failed, using heuristic fallback: %s", e)
            return heuristic_decision(existence, deps, risks)

        confidence = data.get("confidence", 50)
        if not isinstance(confidence, (int, float)) or isinstance(confidence, bool):
            confidence = 50
        reasoning = data.get("reasoning") or "No reasoning provided"
        return recommendation, int(max(0, min(100, confidence))), str(reasoning)

    def _report(
        self, idea: Idea, started: float, visited: list[str], **fields: Any,
    ) -> ResearchReport:
        return ResearchReport(
            idea=idea,
            visited_urls=list(visited),
            research_duration_seconds=time.monotonic() - started,
            **fields,
        )
