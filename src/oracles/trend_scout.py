"""GitHub-backed trend scout.

Fetches recently created, fast-rising repositories, filters them against the
scout options, scores the first ten for "idea potential" and returns the top
five. An empty requested period widens daily -> weekly -> monthly.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Any, Optional

from src.core.exceptions import ServiceError
from src.core.models import Period, ScoutOptions, TrendingRepo
from src.oracles.base import TrendScoutOracle
from src.tools.github import GitHubClient

ANALYZE_LIMIT = 10
RESULT_LIMIT = 5

_WIDENING: dict[str, list[Period]] = {
    "daily": ["daily", "weekly", "monthly"],
    "weekly": ["weekly", "monthly"],
    "monthly": ["monthly"],
}

_REPO_URL = re.compile(r"github\.com/([^/]+)/([^/#?]+)")


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

def calculate_idea_potential(details: dict[str, Any]) -> int:
    score = 50
    stars = details.get("stargazers_count") or 0
    forks = details.get("forks_count") or 0
    issues = details.get("open_issues_count") or 0
    language = details.get("language") or ""
    size = details.get("size") or 0
    description = (details.get("description") or "").lower()

    # Active community
    if issues > 10:
        score += 10
    if forks > 50:
        score += 10
    if stars > 500:
        score += 5

    if language == "TypeScript":
        score += 15
    elif language == "JavaScript":
        score += 10

    # Small enough to derive from in a day
    if size < 1000:
        score += 10
    if size > 10000:
        score -= 15

    for keyword, bonus in (("cli", 10), ("framework", 5), ("plugin", 10), ("api", 5)):
        if keyword in description:
            score += bonus

    return max(0, min(100, score))


def assess_complexity(details: dict[str, Any]) -> str:
    size = details.get("size") or 0
    if size < 500:
        return "simple"
    if size < 5000:
        return "moderate"
    return "complex"


def detect_idea_surfaces(details: dict[str, Any]) -> list[str]:
    desc = (details.get("description") or "").lower()
    surfaces: list[str] = []
    if "framework" in desc:
        surfaces += ["complementary-tool", "alternative-implementation"]
    if "cli" in desc or "command" in desc:
        surfaces += ["gui-wrapper", "web-version"]
    if "library" in desc or "lib" in desc:
        surfaces += ["specific-use-case", "simplified-version"]
    if "api" in desc:
        surfaces += ["api-wrapper", "sdk-generator"]
    if "tool" in desc or "utility" in desc:
        surfaces.append("niche-specialization")
    return surfaces or ["general-derivative"]


def explain_score(details: dict[str, Any], score: int) -> str:
    reasons = []
    language = details.get("language") or ""
    if language == "TypeScript":
        reasons.append("TypeScript (preferred language)")
    elif language == "JavaScript":
        reasons.append("JavaScript ecosystem")
    if (details.get("open_issues_count") or 0) > 10:
        reasons.append("Active community engagement")
    if score >= 75:
        reasons.append("High idea potential")
    elif score >= 60:
        reasons.append("Good idea potential")
    return ", ".join(reasons) or "Decent baseline metrics"


def rank_by_potential(repos: list[TrendingRepo]) -> list[TrendingRepo]:
    """Return a new list, highest potential first; ties keep input order."""
    return sorted(repos, key=lambda r: r.idea_potential, reverse=True)


def _parse_ts(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now(UTC)
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def repo_from_api(item: dict[str, Any], analyzed: bool = False) -> TrendingRepo:
    """Build a TrendingRepo from a GitHub repository payload."""
    fields: dict[str, Any] = dict(
        url=item.get("html_url", ""),
        name=item.get("name", ""),
        owner=(item.get("owner") or {}).get("login", "unknown"),
        description=item.get("description") or "",
        stars=item.get("stargazers_count") or 0,
        language=item.get("language") or "Unknown",
        topics=list(item.get("topics") or []),
        created_at=_parse_ts(item.get("created_at")),
        last_push=_parse_ts(item.get("pushed_at")),
    )
    if analyzed:
        potential = calculate_idea_potential(item)
        fields.update(
            idea_potential=potential,
            complexity=assess_complexity(item),
            idea_surfaces=detect_idea_surfaces(item),
            reasoning=explain_score(item, potential),
        )
    return TrendingRepo(**fields)


def matches_options(repo: TrendingRepo, options: ScoutOptions, now: Optional[datetime] = None) -> bool:
    if options.min_stars and repo.stars < options.min_stars:
        return False
    if options.languages and repo.language not in options.languages:
        return False
    if options.topics and not set(repo.topics) & set(options.topics):
        return False
    if options.max_age_days is not None:
        age_days = ((now or datetime.now(UTC)) - repo.created_at).total_seconds() / 86400
        if age_days > options.max_age_days:
            return False
    return True


# ---------------------------------------------------------------------------
# Oracle
# ---------------------------------------------------------------------------

class TrendScout(TrendScoutOracle):
    def __init__(self, github: GitHubClient):
        super().__init__("TrendScout")
        self.github = github

    async def _scout(self, options: ScoutOptions) -> list[TrendingRepo]:
        items: list[dict[str, Any]] = []
        for period in _WIDENING[options.period]:
            items = await self.github.get_trending(period, options.languages, options.min_stars)
            if items:
                if period != options.period:
                    self.logger.info(
                        "Fell back to %s period (%s had 0 results)", period, options.period,
                    )
                break

        candidates = [repo_from_api(item) for item in items]
        filtered = [repo for repo in candidates if matches_options(repo, options)]
        self.logger.info("Filtered to %d repos", len(filtered))

        analyzed: list[TrendingRepo] = []
        for repo in filtered[:ANALYZE_LIMIT]:
            try:
                analyzed.append(await self.analyze_repo(repo.url))
            except (ServiceError, ValueError) as e:
                self.logger.warning("Failed to analyze %s: %s", repo.key, e)

        ranked = rank_by_potential(analyzed)
        self.logger.info(
            "Found %d high-potential repos",
            len(ranked),
            extra={"data": [{"repo": r.key, "potential": r.idea_potential} for r in ranked[:3]]},
        )
        return ranked[:RESULT_LIMIT]

    async def analyze_repo(self, repo_url: str) -> TrendingRepo:
        match = _REPO_URL.search(repo_url)
        if not match:
            raise ValueError(f"Invalid GitHub URL: {repo_url}")
        owner, name = match.groups()
        details = await self.github.get_repo(owner, name)
        return repo_from_api(details, analyzed=True)
