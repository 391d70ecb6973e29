"""Idea generator.

Feeds every trending repo to the `generator` model role and asks for original
ideas that cross-pollinate them. When the model is unavailable or returns
nothing usable, falls back to one complementary template idea per top repo.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import ValidationError

from src.core.config import PromptLoader
from src.core.exceptions import LLMError, ResponseParseError
from src.core.models import Feature, Idea, IdeaValidation, TrendingRepo
from src.llm.client import OpenRouterClient
from src.llm.response_parser import parse_json_array
from src.llm.router import ModelRouter
from src.oracles.base import IdeaGeneratorOracle, LLMBackedMixin

FALLBACK_REPOS = 3

GENERATOR_SYSTEM = (
    "You are an expert developer and product thinker who proposes small, "
    "original, runnable TypeScript projects. Respond with JSON only."
)


def summarize_repos(repos: list[TrendingRepo]) -> str:
    return "\n".join(
        f"- {r.key} (stars {r.stars}, {r.language}): {r.description or 'no description'}\n"
        f"  Topics: {', '.join(r.topics) or 'none'} | "
        f"Idea surfaces: {', '.join(r.idea_surfaces) or 'none'}"
        for r in repos
    )


def build_generator_prompt(repos: list[TrendingRepo]) -> str:
    return f"""# Generate Original Project Ideas

Today's trending GitHub repositories:

{summarize_repos(repos)}

## Task
Look across ALL of these repos for common themes, gaps and patterns, then
propose TWO original project ideas inspired by the trends, never
"<repo>-lite" or "<repo>-analyzer". Each idea must:
1. Solve a problem none of the repos directly solve.
2. Draw on at least two of the repos.
3. Be technically novel.
4. Target a clear, underserved audience.
5. Be buildable by one developer in 4-8 hours with TypeScript and Node.js.
6. Be runnable by an end user: prefer CLI tools (npx), then deployable web
   apps, then standalone servers. A library must ship a companion CLI or demo.

Avoid wrappers or dashboards for existing repos, "<repo> but for <niche>",
paid APIs, GPU compute and complex infrastructure.

## Output Format
A JSON array:
[
  {{
    "name": "<kebab-case-name>",
    "tagline": "<one-line pitch>",
    "description": "<2-3 sentences>",
    "tweetPitch": "<max 280 chars>",
    "originalRepo": "<owner/repo that most inspired this>",
    "strategy": "transfer",
    "language": "TypeScript",
    "runtime": "Node.js",
    "dependencies": ["<dep>"],
    "coreFeatures": [
      {{"name": "<feature>", "description": "<desc>", "priority": "must", "estimatedHours": 2}}
    ],
    "complexity": "moderate",
    "estimatedHours": 5,
    "slopFactor": 70,
    "mvpDefinition": "<working MVP>",
    "successMetric": "<how to measure success>"
  }}
]"""


def validate_idea(idea: Idea) -> IdeaValidation:
    """Cheap buildability check used to gate template ideas."""
    concerns: list[str] = []
    recommendations: list[str] = []
    confidence = 70

    if idea.estimated_hours > 8:
        concerns.append("Exceeds 8 hour time budget")
        confidence -= 20
    if len(idea.dependencies) > 5:
        concerns.append("Too many dependencies, risk of integration issues")
        confidence -= 10
    if len(idea.must_features) > 3:
        concerns.append('Too many "must-have" features for an MVP')
        recommendations.append("Reduce must-have features to 2")
        confidence -= 10
    if idea.complexity == "complex":
        concerns.append("High complexity")
        confidence -= 15

    return IdeaValidation(
        is_novel=True,
        is_buildable=idea.estimated_hours <= 10 and len(concerns) < 3,
        is_interesting=idea.slop_factor >= 50 or idea.strategy == "complementary",
        confidence=max(0, min(100, confidence)),
        concerns=concerns,
        recommendations=recommendations,
    )


def infer_dependencies(repo: TrendingRepo) -> list[str]:
    desc = repo.description.lower()
    deps = []
    if "http" in desc or "api" in desc or "server" in desc:
        deps.append("node-fetch")
    if "json" in desc or "schema" in desc:
        deps.append("zod")
    return deps


def complementary_idea(repo: TrendingRepo) -> Idea:
    """Template idea: a developer tool that sits next to the trending repo."""
    name = f"{repo.name}-analyzer"
    return Idea(
        name=name,
        tagline=f"Developer tools for {repo.name}",
        description=(
            f"Analyze and inspect {repo.description or repo.name} projects. Provides "
            f"insights, metrics and recommendations for {repo.name} users."
        ),
        tweet_pitch=f"Built {name}, a dev tool that analyzes your {repo.name} projects and gives actionable insights",
        original_repo=repo.key,
        strategy="complementary",
        dependencies=["commander", "chalk", *infer_dependencies(repo)],
        core_features=[
            Feature(
                name="Analyzer",
                description=f"Analyze {repo.name} project structure and configuration",
                priority="must",
                estimated_hours=2,
            ),
            Feature(
                name="Reporter",
                description="Generate human-readable insights report",
                priority="must",
                estimated_hours=1.5,
            ),
            Feature(
                name="CLI Interface",
                description="Command-line interface for the analyzer",
                priority="should",
                estimated_hours=1,
            ),
        ],
        complexity="moderate",
        estimated_hours=5,
        slop_factor=70,
        mvp_definition=f"CLI tool that reads a {repo.name} project and outputs an analysis report",
        success_metric="Useful to at least one person who uses the original repo",
    )


def parse_ideas(items: list[Any], logger=None) -> list[Idea]:
    ideas = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            ideas.append(Idea.model_validate(item))
        except ValidationError as e:
            if logger:
                logger.debug("Discarding malformed idea %r: %s", item.get("name"), e)
    return ideas


class IdeaGenerator(LLMBackedMixin, IdeaGeneratorOracle):
    def __init__(
        self,
        client: OpenRouterClient,
        router: ModelRouter,
        prompts: Optional[PromptLoader] = None,
    ):
        super().__init__("IdeaGenerator")
        self._init_llm(client, router, "generator", prompts)

    async def _generate(self, repos: list[TrendingRepo]) -> list[Idea]:
        try:
            raw = await self._ask(
                self.prompts.load("generator_system.txt", GENERATOR_SYSTEM),
                build_generator_prompt(repos),
            )
            ideas = parse_ideas(parse_json_array(raw), self.logger)
        except (LLMError, ResponseParseError, OSError) as e:
            self.logger.warning("LLM idea generation failed, falling back to templates: %s", e)
            return self.fallback_ideas(repos)

        if not ideas:
            self.logger.warning("LLM returned no usable ideas, falling back to templates")
            return self.fallback_ideas(repos)

        self.logger.info("LLM generated %d original ideas", len(ideas))
        return ideas

    def fallback_ideas(self, repos: list[TrendingRepo]) -> list[Idea]:
        ideas = []
        for repo in repos[:FALLBACK_REPOS]:
            idea = complementary_idea(repo)
            validation = validate_idea(idea)
            if validation.is_buildable and validation.confidence > 50:
                ideas.append(idea)
            else:
                self.logger.info("Template idea for %s failed validation: %s", repo.key, validation.concerns)
        return ideas
