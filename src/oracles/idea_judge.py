"""LLM-backed differentiation judge.

Scores each idea against the repository that inspired it and rejects thin
renames, "-lite" clones and wrappers. Any failure to reach a real decision
(LLM error, missing or malformed JSON) yields a rejecting verdict.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import ValidationError

from src.core.config import JudgeConfig, PromptLoader
from src.core.exceptions import LLMError, ResponseParseError
from src.core.models import (
    Idea,
    JudgeAxes,
    JudgeOutcome,
    JudgeVerdict,
    RejectedIdea,
    TrendingRepo,
)
from src.llm.client import OpenRouterClient
from src.llm.response_parser import parse_json_object
from src.llm.router import ModelRouter
from src.oracles.base import IdeaJudgeOracle, LLMBackedMixin

JUDGE_SYSTEM = (
    "You are an expert judge deciding whether a generated project idea is "
    "sufficiently different from the trending repository that inspired it. "
    "Respond with a single JSON object and nothing else."
)

REGENERATE_SYSTEM = (
    "You generate genuinely novel project ideas from reviewer feedback. "
    "Respond with a single JSON object and nothing else."
)


def build_judge_prompt(idea: Idea, source: TrendingRepo) -> str:
    features = "; ".join(f"{f.name}: {f.description}" for f in idea.core_features)
    return f"""# Idea Differentiation Judge

## Original Repository
- Name: {source.name}
- Owner: {source.owner}
- Description: {source.description}
- Language: {source.language}
- Stars: {source.stars}
- Topics: {", ".join(source.topics) or "none"}

## Generated Idea
- Name: {idea.name}
- Tagline: {idea.tagline}
- Description: {idea.description}
- Strategy: {idea.strategy}
- MVP Definition: {idea.mvp_definition}
- Core Features: {features}
- Dependencies: {", ".join(idea.dependencies) or "none"}

## Evaluation Criteria
Rate each axis as "none", "low", "medium" or "high":
1. problemDivergence: does it solve a meaningfully different problem? A "-lite" version is "none".
2. technicalNovelty: is the technical approach substantially different? Wrapping the original's API is "none".
3. audienceShift: would a different set of people use it?
4. addedValue: does it create value the original does not provide? A subset is "none".
5. runnability: is it an end-user runnable CLI, web app or server rather than a library?

## Red Flags (reject if any hold)
- The idea is the original under a different name.
- The idea is the original but smaller, with no distinct angle.
- The only change is a random niche with no real adaptation.
- The name adds "-lite", "-analyzer" or "-for-X" without substantive feature changes.

## Output Format
{{
  "differentiationScore": <number 0-100>,
  "axes": {{
    "problemDivergence": "<none|low|medium|high>",
    "technicalNovelty": "<none|low|medium|high>",
    "audienceShift": "<none|low|medium|high>",
    "addedValue": "<none|low|medium|high>",
    "runnability": "<none|low|medium|high>"
  }},
  "reasoning": "<2-3 sentences>",
  "suggestions": ["<how to make the idea more distinct>"]
}}"""


def build_regenerate_prompt(repo: TrendingRepo, entries: list[RejectedIdea]) -> str:
    feedback = "\n\n".join(
        f'### Rejected: "{e.idea.name}" (score {e.verdict.differentiation_score})\n'
        f"Strategy: {e.idea.strategy}\n"
        f"Reasoning: {e.verdict.reasoning}\n"
        "Suggestions:\n" + "\n".join(f"- {s}" for s in e.verdict.suggestions)
        for e in entries
    )
    return f"""# Generate a Genuinely Novel Project Idea

Ideas inspired by {repo.key} ("{repo.description}") were all rejected as too similar.
Feedback:

{feedback}

## Task
Generate ONE new project idea that is genuinely different from {repo.name}:
1. Solve a different problem, not the same thing simplified or niche-targeted.
2. Use a different technical approach.
3. Target a different audience where possible.
4. Create real value the original does not provide.
It may share the themes of {repo.name} but must stand on its own.

## Constraints
- Language: TypeScript, runtime Node.js
- Buildable in 4-8 hours
- At most 3 "must" features

## Output Format
{{
  "name": "<project-name>",
  "tagline": "<one-line pitch>",
  "description": "<2-3 sentences>",
  "tweetPitch": "<max 280 chars>",
  "originalRepo": "{repo.key}",
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
}}"""


def parse_verdict(raw: str, config: JudgeConfig) -> JudgeVerdict:
    """Turn judge output into a verdict, applying the acceptance thresholds.

    Raises:
        ResponseParseError: If no JSON object can be extracted.
    """
    data = parse_json_object(raw)

    axes_raw = data.get("axes")
    axes = JudgeAxes.model_validate(axes_raw if isinstance(axes_raw, dict) else {})

    score = data.get("differentiationScore", data.get("differentiation_score"))
    reasoning = data.get("reasoning")
    suggestions = data.get("suggestions")

    verdict = JudgeVerdict(
        differentiation_score=score,
        axes=axes,
        reasoning=reasoning if isinstance(reasoning, str) and reasoning else "No reasoning provided",
        suggestions=[str(s) for s in suggestions] if isinstance(suggestions, list) else [],
    )
    approved = (
        verdict.adjusted_score >= config.min_differentiation_score
        and verdict.strong_axes >= config.min_strong_axes
    )
    return verdict.model_copy(update={"approved": approved})


class IdeaJudge(LLMBackedMixin, IdeaJudgeOracle):
    """Judge backed by the `judge` model role."""

    def __init__(
        self,
        client: OpenRouterClient,
        router: ModelRouter,
        config: Optional[JudgeConfig] = None,
        prompts: Optional[PromptLoader] = None,
    ):
        super().__init__("IdeaJudge")
        self._init_llm(client, router, "judge", prompts)
        self.config = config or JudgeConfig()

    async def judge(self, idea: Idea, source_repo: TrendingRepo) -> JudgeVerdict:
        self.logger.info(
            "Judging '%s' against %s", idea.name, source_repo.key, extra={"oracle": self.name},
        )
        try:
            raw = await self._ask(
                self.prompts.load("judge_system.txt", JUDGE_SYSTEM),
                build_judge_prompt(idea, source_repo),
                temperature=0.2,
            )
        except (LLMError, OSError) as e:
            self.logger.warning("Judge LLM call failed for '%s': %s", idea.name, e)
            return JudgeVerdict.fail_closed(f"LLM evaluation failed: {e}")

        try:
            verdict = parse_verdict(raw, self.config)
        except (ResponseParseError, ValidationError) as e:
            self.logger.warning("Could not parse judge verdict for '%s': %s", idea.name, e)
            return JudgeVerdict.fail_closed(f"Could not parse judge response: {e}")

        self.logger.info(
            "Verdict for '%s': %s (score %d, adjusted %d, strong axes %d)",
            idea.name,
            "APPROVED" if verdict.approved else "REJECTED",
            verdict.differentiation_score,
            verdict.adjusted_score,
            verdict.strong_axes,
            extra={"oracle": self.name, "data": verdict.model_dump(mode="json")},
        )
        return verdict

    async def filter_ideas(
        self, ideas: list[Idea], repo_map: dict[str, TrendingRepo],
    ) -> JudgeOutcome:
        approved: list[Idea] = []
        rejected: list[RejectedIdea] = []

        for idea in ideas:
            repo = repo_map.get(idea.original_repo)
            if repo is None:
                self.logger.warning(
                    "No source repo for '%s' (%s), auto-approving",
                    idea.name, idea.original_repo or "<none>",
                )
                approved.append(idea)
                continue

            verdict = await self.judge(idea, repo)
            if verdict.approved:
                approved.append(idea)
            else:
                rejected.append(RejectedIdea(idea=idea, verdict=verdict))

        self.logger.info(
            "Judge results: %d approved, %d rejected out of %d",
            len(approved), len(rejected), len(ideas),
            extra={"oracle": self.name},
        )
        return JudgeOutcome(approved=approved, rejected=rejected)

    async def regenerate(
        self, rejected: list[RejectedIdea], repo_map: dict[str, TrendingRepo],
    ) -> list[Idea]:
        by_repo: dict[str, list[RejectedIdea]] = {}
        for entry in rejected:
            by_repo.setdefault(entry.idea.original_repo, []).append(entry)

        improved: list[Idea] = []
        for repo_key, entries in by_repo.items():
            repo = repo_map.get(repo_key)
            if repo is None:
                self.logger.warning("Skipping regeneration for unknown repo '%s'", repo_key)
                continue

            try:
                raw = await self._ask(
                    self.prompts.load("regenerate_system.txt", REGENERATE_SYSTEM),
                    build_regenerate_prompt(repo, entries),
                )
                idea = _parse_idea(parse_json_object(raw), repo_key)
            except (LLMError, ResponseParseError, ValidationError, OSError) as e:
                self.logger.warning("Failed to regenerate idea for %s: %s", repo_key, e)
                continue

            self.logger.info("Regenerated idea '%s' for %s", idea.name, repo_key)
            improved.append(idea)

        return improved


def _parse_idea(data: dict[str, Any], repo_key: str) -> Idea:
    data.setdefault("originalRepo", repo_key)
    return Idea.model_validate(data)
