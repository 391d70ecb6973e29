"""Tests for src/oracles/researcher.py."""

import json
from datetime import UTC, datetime, timedelta

import httpx

from src.core.exceptions import LLMError
from src.core.models import (
    DependencyHealth,
    DependencyReport,
    ExistenceCheck,
    Recommendation,
    Risk,
)
from src.oracles.researcher import (
    Researcher,
    build_decision_prompt,
    heuristic_decision,
    identify_risks,
    normalize_name,
    summarize_dependencies,
)
from src.tools.github import GitHubClient
from src.tools.npm import NpmRegistryClient

from tests.conftest import FakeLLMClient, make_idea, model_router


def _risk(severity):
    return Risk(category="technical", severity=severity, description=f"{severity} risk")


class TestHelpers:
    def test_normalize_name(self):
        assert normalize_name("Widget-Lens_2") == "widgetlens2"

    def test_identify_risks(self):
        idea = make_idea(estimated_hours=7, complexity="complex")
        risks = identify_risks(idea, DependencyReport(overall_risk="medium"))
        assert [(r.category, r.severity) for r in risks] == [
            ("time", "medium"), ("technical", "high"), ("technical", "medium"),
        ]

    def test_no_risks(self):
        assert identify_risks(make_idea(), DependencyReport()) == []

    def test_summarize_dependencies(self):
        report = summarize_dependencies([
            DependencyHealth(name="ok"),
            DependencyHealth(name="old", risk="medium"),
            DependencyHealth(name="dead", stability="deprecated", risk="high"),
            DependencyHealth(name="ghost", stability="experimental", risk="high"),
        ])
        assert report.overall_risk == "high"
        assert report.blockers == ["dead is deprecated", "ghost was not found on npm"]

    def test_summarize_empty(self):
        assert summarize_dependencies([]).overall_risk == "low"


class TestHeuristicDecision:
    def test_blocker_aborts(self):
        rec, confidence, _ = heuristic_decision(ExistenceCheck(), DependencyReport(), [_risk("blocker")])
        assert rec == Recommendation.ABORT
        assert confidence == 90

    def test_not_novel_pivots(self):
        rec, _, _ = heuristic_decision(ExistenceCheck(is_novel=False), DependencyReport(), [])
        assert rec == Recommendation.PIVOT

    def test_multiple_high_risks_pivot(self):
        rec, _, _ = heuristic_decision(ExistenceCheck(), DependencyReport(), [_risk("high"), _risk("high")])
        assert rec == Recommendation.PIVOT

    def test_high_dependency_risk_pivots(self):
        rec, _, _ = heuristic_decision(ExistenceCheck(), DependencyReport(overall_risk="high"), [])
        assert rec == Recommendation.PIVOT

    def test_ship_confidence(self):
        assert heuristic_decision(ExistenceCheck(), DependencyReport(), [])[:2] == (Recommendation.SHIP, 85)
        assert heuristic_decision(ExistenceCheck(), DependencyReport(), [_risk("high")])[:2] == (Recommendation.SHIP, 75)


class TestDecisionPrompt:
    def test_mentions_findings(self):
        prompt = build_decision_prompt(
            make_idea(), ExistenceCheck(), DependencyReport(blockers=["x is deprecated"]), [], [_risk("high")],
        )
        assert "widget-lens" in prompt
        assert "x is deprecated" in prompt
        assert "[high] high risk" in prompt


def _services(repos_by_query=None, npm_search=None, packuments=None):
    repos_by_query = repos_by_query or {}
    packuments = packuments or {}

    def github_handler(request: httpx.Request) -> httpx.Response:
        query = request.url.params.get("q", "")
        for needle, items in repos_by_query.items():
            if needle in query:
                return httpx.Response(200, json={"items": items})
        return httpx.Response(200, json={"items": []})

    def npm_handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/-/v1/search":
            return httpx.Response(200, json={"objects": [{"package": p} for p in (npm_search or [])]})
        name = request.url.path.lstrip("/")
        if name in packuments:
            return httpx.Response(200, json=packuments[name])
        return httpx.Response(404, json={"error": "Not found"})

    github = GitHubClient(transport=httpx.MockTransport(github_handler))
    npm = NpmRegistryClient(transport=httpx.MockTransport(npm_handler))
    return github, npm


def _packument(name, days_old=30, deprecated=False):
    version = {"name": name, "version": "1.2.3"}
    if deprecated:
        version["deprecated"] = "use something else"
    published = (datetime.now(UTC) - timedelta(days=days_old)).isoformat().replace("+00:00", "Z")
    return {"name": name, "dist-tags": {"latest": "1.2.3"}, "versions": {"1.2.3": version}, "time": {"1.2.3": published}}


def _researcher(replies, **services):
    github, npm = _services(**services)
    client = FakeLLMClient(replies)
    return Researcher(client, model_router(), github, npm), client


class TestResearcher:
    async def test_exact_duplicate_aborts_without_llm(self):
        dup = {"name": "Widget_Lens", "full_name": "someone/Widget_Lens", "html_url": "https://github.com/someone/Widget_Lens"}
        researcher, client = _researcher([], repos_by_query={"in:name": [dup]})
        report = await researcher.research(make_idea())

        assert report.recommendation == Recommendation.ABORT
        assert report.confidence == 90
        assert "https://github.com/someone/Widget_Lens" in report.reasoning
        assert client.calls == []

    async def test_deprecated_dependency_pivots(self):
        idea = make_idea(dependencies=["request"])
        researcher, client = _researcher([], packuments={"request": _packument("request", deprecated=True)})
        report = await researcher.research(idea)

        assert report.recommendation == Recommendation.PIVOT
        assert "request is deprecated" in report.reasoning
        assert client.calls == []

    async def test_missing_dependency_pivots(self):
        researcher, _ = _researcher([], packuments={})
        report = await researcher.research(make_idea(dependencies=["no-such-pkg-xyz"]))
        assert report.recommendation == Recommendation.PIVOT

    async def test_llm_decides_ship(self):
        idea = make_idea(dependencies=["commander"])
        reply = json.dumps({"recommendation": "SHIP", "confidence": 82, "reasoning": "Clear gap."})
        researcher, client = _researcher(
            [reply],
            packuments={"commander": _packument("commander")},
            repos_by_query={"language:TypeScript": [{"full_name": "x/y", "html_url": "https://github.com/x/y", "description": "nice"}]},
        )
        report = await researcher.research(idea)

        assert report.recommendation == Recommendation.SHIP
        assert report.confidence == 82
        assert report.reasoning == "Clear gap."
        assert report.dependencies.overall_risk == "low"
        assert [s.url for s in report.inspiration] == ["https://github.com/x/y"]
        assert report.inspiration[0].key_takeaways == ["nice"]
        assert report.implementation_hints.common_dependencies == ["commander"]
        assert any(url.startswith("npm:commander") for url in report.visited_urls)
        assert client.calls[0]["models"] == ["test/research"]

    async def test_llm_failure_uses_heuristic(self):
        researcher, _ = _researcher([LLMError("down")])
        report = await researcher.research(make_idea())
        assert report.recommendation == Recommendation.SHIP
        assert report.confidence == 85

    async def test_unknown_recommendation_uses_heuristic(self):
        researcher, _ = _researcher(['{"recommendation": "MAYBE"}'])
        report = await researcher.research(make_idea())
        assert report.recommendation == Recommendation.SHIP
        assert report.reasoning == "Novel idea with manageable risks"

    async def test_crowded_npm_space_not_novel(self):
        packages = [{"name": f"widget-lens-{i}", "description": "x"} for i in range(3)]
        researcher, _ = _researcher([LLMError("down")], npm_search=packages)
        report = await researcher.research(make_idea())

        assert report.existence.is_novel is False
        assert report.recommendation == Recommendation.PIVOT

    async def test_stale_dependency_is_medium_risk(self):
        researcher, _ = _researcher(
            [LLMError("down")], packuments={"left-pad": _packument("left-pad", days_old=1000)},
        )
        report = await researcher.research(make_idea(dependencies=["left-pad"]))
        assert report.dependencies.overall_risk == "medium"
        assert report.recommendation == Recommendation.SHIP
