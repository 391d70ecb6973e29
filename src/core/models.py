"""All Pydantic data models for TrendForge.

Defines the data contracts shared by the oracles, the orchestrator, and the
persisted state snapshot. Every payload that crosses an oracle boundary has a
model here.
"""

from __future__ import annotations

import enum
import math
import uuid
from datetime import UTC, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src.core.exceptions import StateError


def _new_run_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


def _clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Phase(str, enum.Enum):
    INITIALIZATION = "initialization"
    SCOUT_TRENDS = "scout-trends"
    GENERATE_IDEAS = "generate-ideas"
    JUDGE_IDEAS = "judge-ideas"
    RESEARCH = "research"
    IMPLEMENT = "implement"
    DEPLOY = "deploy"
    ANNOUNCE = "announce"
    COMPLETE = "complete"


class AxisRating(str, enum.Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _AXIS_ORDER.index(self)

    @property
    def is_strong(self) -> bool:
        return self in (AxisRating.MEDIUM, AxisRating.HIGH)

    @classmethod
    def parse(cls, value: Any) -> "AxisRating":
        """Lenient parse: anything unrecognised is NONE."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return cls.NONE
        return cls.NONE


_AXIS_ORDER = [AxisRating.NONE, AxisRating.LOW, AxisRating.MEDIUM, AxisRating.HIGH]


class Recommendation(str, enum.Enum):
    SHIP = "ship"
    PIVOT = "pivot"
    ABORT = "abort"


class BuildStatus(str, enum.Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"
    FAILED = "failed"


Period = Literal["daily", "weekly", "monthly"]
Complexity = Literal["simple", "moderate", "complex"]
IdeaStrategy = Literal["adjacent", "complementary", "abstraction", "inverse", "transfer", "niche"]
Priority = Literal["must", "should", "could"]
Severity = Literal["low", "medium", "high", "blocker"]
TweetStyle = Literal["honest", "meme", "technical", "chaotic"]


class _LLMPayload(BaseModel):
    """Base for models parsed from LLM JSON: accepts camelCase or snake_case keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


def _lower(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Trend scouting
# ---------------------------------------------------------------------------

class ScoutOptions(BaseModel):
    period: Period = "daily"
    languages: list[str] = Field(default_factory=list)
    min_stars: int = 0
    max_age_days: Optional[int] = None
    topics: list[str] = Field(default_factory=list)


class TrendingRepo(BaseModel):
    """Snapshot of a trending repository plus derived scoring fields."""
    model_config = ConfigDict(frozen=True)

    url: str
    name: str
    owner: str
    description: str = ""
    stars: int = 0
    language: str = "Unknown"
    topics: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    last_push: datetime = Field(default_factory=_now)
    idea_potential: int = 50
    complexity: Complexity = "moderate"
    idea_surfaces: list[str] = Field(default_factory=list)
    reasoning: str = ""

    @property
    def key(self) -> str:
        return f"{self.owner}/{self.name}"


# ---------------------------------------------------------------------------
# Ideas
# ---------------------------------------------------------------------------

class Feature(_LLMPayload):
    name: str
    description: str = ""
    priority: Priority = "should"
    estimated_hours: float = 1.0

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value: Any) -> Any:
        return _lower(value)


class Idea(_LLMPayload):
    """A proposed project. Immutable; regeneration produces new instances."""
    name: str
    tagline: str = ""
    description: str
    tweet_pitch: str = ""
    original_repo: str = ""
    strategy: IdeaStrategy = "transfer"
    language: str = "TypeScript"
    runtime: str = "Node.js"
    dependencies: list[str] = Field(default_factory=list)
    core_features: list[Feature] = Field(min_length=1)
    complexity: Complexity = "moderate"
    estimated_hours: float = 5.0
    slop_factor: int = 70
    mvp_definition: str = ""
    success_metric: str = ""

    @field_validator("strategy", "complexity", mode="before")
    @classmethod
    def _normalize_labels(cls, value: Any) -> Any:
        return _lower(value)

    @field_validator("slop_factor", mode="after")
    @classmethod
    def _clamp_slop(cls, value: int) -> int:
        return int(_clamp(value))

    @property
    def must_features(self) -> list[Feature]:
        return [f for f in self.core_features if f.priority == "must"]

    @property
    def should_features(self) -> list[Feature]:
        return [f for f in self.core_features if f.priority == "should"]


class IdeaValidation(BaseModel):
    is_novel: bool = True
    is_buildable: bool = True
    is_interesting: bool = True
    confidence: int = 70
    concerns: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Judging
# ---------------------------------------------------------------------------

class JudgeAxes(_LLMPayload):
    problem_divergence: AxisRating = AxisRating.NONE
    technical_novelty: AxisRating = AxisRating.NONE
    audience_shift: AxisRating = AxisRating.NONE
    added_value: AxisRating = AxisRating.NONE
    runnability: AxisRating = AxisRating.NONE

    @field_validator("*", mode="before")
    @classmethod
    def _parse_rating(cls, value: Any) -> AxisRating:
        return AxisRating.parse(value)

    def ratings(self) -> list[AxisRating]:
        return [
            self.problem_divergence,
            self.technical_novelty,
            self.audience_shift,
            self.added_value,
            self.runnability,
        ]


class JudgeVerdict(BaseModel):
    """The judge's accept/reject decision for one idea."""
    model_config = ConfigDict(frozen=True)

    approved: bool = False
    differentiation_score: int = 0
    axes: JudgeAxes = Field(default_factory=JudgeAxes)
    reasoning: str = ""
    suggestions: list[str] = Field(default_factory=list)

    @field_validator("differentiation_score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            return 0
        return int(_clamp(value))

    @property
    def strong_axes(self) -> int:
        return sum(1 for rating in self.axes.ratings() if rating.is_strong)

    @property
    def runnability_bonus(self) -> int:
        if self.axes.runnability == AxisRating.HIGH:
            return 10
        if self.axes.runnability == AxisRating.MEDIUM:
            return 5
        return 0

    @property
    def adjusted_score(self) -> int:
        return min(100, self.differentiation_score + self.runnability_bonus)

    @classmethod
    def fail_closed(cls, reason: str) -> "JudgeVerdict":
        """Verdict used whenever the judge cannot reach a real decision."""
        return cls(approved=False, differentiation_score=0, axes=JudgeAxes(), reasoning=reason)


class RejectedIdea(BaseModel):
    idea: Idea
    verdict: JudgeVerdict


class JudgeOutcome(BaseModel):
    approved: list[Idea] = Field(default_factory=list)
    rejected: list[RejectedIdea] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.approved) + len(self.rejected)


# ---------------------------------------------------------------------------
# Research
# ---------------------------------------------------------------------------

class ProjectRef(BaseModel):
    url: str
    name: str
    stars: int = 0


class PackageRef(BaseModel):
    name: str
    description: str = ""
    downloads: str = ""


class ExistenceCheck(BaseModel):
    exact_duplicates: list[ProjectRef] = Field(default_factory=list)
    similar_projects: list[ProjectRef] = Field(default_factory=list)
    npm_packages: list[PackageRef] = Field(default_factory=list)
    is_novel: bool = True
    market_gap: str = "Unknown"


class DependencyHealth(BaseModel):
    name: str
    version: str = "unknown"
    stability: Literal["stable", "experimental", "deprecated"] = "stable"
    last_update: Optional[datetime] = None
    risk: Literal["low", "medium", "high"] = "low"


class DependencyReport(BaseModel):
    dependencies: list[DependencyHealth] = Field(default_factory=list)
    overall_risk: Literal["low", "medium", "high"] = "low"
    blockers: list[str] = Field(default_factory=list)


class InspirationSource(BaseModel):
    url: str
    title: str
    type: Literal["github", "article", "docs", "tutorial"] = "github"
    relevance: int = 50
    key_takeaways: list[str] = Field(default_factory=list)


class Risk(BaseModel):
    category: Literal["technical", "market", "time", "scope"]
    severity: Severity
    description: str
    mitigation: Optional[str] = None


class ImplementationHints(BaseModel):
    architecture_patterns: list[str] = Field(default_factory=list)
    file_structure: list[str] = Field(default_factory=list)
    common_dependencies: list[str] = Field(default_factory=list)
    api_examples: list[str] = Field(default_factory=list)


class ResearchReport(BaseModel):
    """Output of the researcher. The orchestrator only inspects `recommendation`."""
    idea: Idea
    timestamp: datetime = Field(default_factory=_now)
    existence: ExistenceCheck = Field(default_factory=ExistenceCheck)
    dependencies: DependencyReport = Field(default_factory=DependencyReport)
    inspiration: list[InspirationSource] = Field(default_factory=list)
    technical_risks: list[Risk] = Field(default_factory=list)
    recommendation: Recommendation
    confidence: int = 50
    reasoning: str = ""
    visited_urls: list[str] = Field(default_factory=list)
    research_duration_seconds: float = 0.0
    implementation_hints: ImplementationHints = Field(default_factory=ImplementationHints)


# ---------------------------------------------------------------------------
# Implementation, deployment, announcement
# ---------------------------------------------------------------------------

class BuildIssue(BaseModel):
    type: Literal["syntax", "type", "runtime", "dependency"] = "runtime"
    file: str = "unknown"
    line: Optional[int] = None
    message: str
    severity: Literal["error", "warning"] = "error"


class FeatureOutcome(BaseModel):
    feature: Feature
    implemented: bool = False
    files_modified: list[str] = Field(default_factory=list)


class ImplementationResult(BaseModel):
    status: BuildStatus
    repo_path: str
    core_features: list[FeatureOutcome] = Field(default_factory=list)
    tests_pass: bool = False
    readme_exists: bool = False
    total_hours: float = 0.0
    files_created: int = 0
    issues: list[BuildIssue] = Field(default_factory=list)
    technical_debt: list[str] = Field(default_factory=list)


class DeploymentResult(BaseModel):
    success: bool
    repo_url: str = ""
    release_tag: str = "v0.1.0"
    deployed_at: datetime = Field(default_factory=_now)
    initial_commit: str = ""
    files_deployed: int = 0
    badges: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class TweetResult(BaseModel):
    success: bool
    tweet_url: Optional[str] = None
    tweet_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=_now)
    text: str = ""
    style: Optional[TweetStyle] = None


# ---------------------------------------------------------------------------
# Pipeline state
# ---------------------------------------------------------------------------

class ErrorRecord(BaseModel):
    phase: str
    error: str
    timestamp: datetime = Field(default_factory=_now)
    fatal: bool = True


_RESULT_FIELDS = (
    "trends",
    "ideas",
    "selected_idea",
    "research",
    "implementation",
    "deployment",
    "announcement",
)


class PipelineState(BaseModel):
    """Mutable run state, owned by the orchestrator for the run's lifetime."""
    run_id: str = Field(default_factory=_new_run_id)
    start_time: datetime = Field(default_factory=_now)
    current_phase: Phase = Phase.INITIALIZATION
    trends: Optional[list[TrendingRepo]] = None
    ideas: Optional[list[Idea]] = None
    selected_idea: Optional[Idea] = None
    research: Optional[ResearchReport] = None
    implementation: Optional[ImplementationResult] = None
    deployment: Optional[DeploymentResult] = None
    announcement: Optional[TweetResult] = None
    errors: list[ErrorRecord] = Field(default_factory=list)

    def set_result(self, name: str, value: Any) -> None:
        """Store a phase result. Results are write-once except `ideas`."""
        if name not in _RESULT_FIELDS:
            raise StateError(f"Unknown result field '{name}'")
        if value is None:
            raise StateError(f"Refusing to clear result field '{name}'")
        if name != "ideas" and getattr(self, name) is not None:
            raise StateError(f"Result field '{name}' is already set for run {self.run_id}")
        setattr(self, name, value)

    def record_error(self, error: str, fatal: bool = True) -> ErrorRecord:
        record = ErrorRecord(phase=self.current_phase.value, error=error, fatal=fatal)
        self.errors.append(record)
        return record

    def elapsed_seconds(self) -> float:
        return (_now() - self.start_time).total_seconds()


class RunResult(BaseModel):
    """Final outcome of one pipeline run, carrying the full state for postmortems."""
    success: bool
    idea: Optional[Idea] = None
    repo_url: Optional[str] = None
    tweet_url: Optional[str] = None
    total_time_seconds: float = 0.0
    state: PipelineState
    error: Optional[str] = None
    failed_phase: Optional[Phase] = None
