"""Phase orchestrator for TrendForge.

Runs the phases in a fixed order, each one through a single oracle call
under its TimeBudget:

    scout-trends → generate-ideas → judge-ideas → research → implement
        → [deploy] → [announce]

State is checkpointed after every phase transition. Any fatal error aborts
the run: it is recorded in `state.errors`, checkpointed, and returned as a
failed RunResult. Announce failures are recorded as non-fatal.
"""

from __future__ import annotations

import logging
from typing import Optional

from src.core.config import AppConfig
from src.core.exceptions import (
    JudgeExhaustionError,
    OracleError,
    ResearchExhaustionError,
    StateError,
    TrendForgeError,
)
from src.core.models import (
    BuildStatus,
    Phase,
    PipelineState,
    Recommendation,
    RunResult,
    TrendingRepo,
)
from src.oracles.base import (
    AnnouncerOracle,
    DeployerOracle,
    IdeaGeneratorOracle,
    IdeaJudgeOracle,
    ImplementerOracle,
    ResearcherOracle,
    TrendScoutOracle,
)
from src.orchestrator.run_log import RunLogHandler, attach_run_log, detach_run_log
from src.orchestrator.state_manager import StateManager
from src.orchestrator.time_budget import TimeBudget

logger = logging.getLogger("trendforge.orchestrator.pipeline")


class PipelineOrchestrator:
    """Sequential phase state machine.

    The orchestrator is the only writer of its PipelineState. It never reads
    a snapshot back; `StateManager.load()` is for external tooling.
    """

    def __init__(
        self,
        config: AppConfig,
        trend_scout: TrendScoutOracle,
        idea_generator: IdeaGeneratorOracle,
        idea_judge: IdeaJudgeOracle,
        researcher: ResearcherOracle,
        implementer: ImplementerOracle,
        deployer: DeployerOracle,
        announcer: AnnouncerOracle,
        state_manager: Optional[StateManager] = None,
        write_run_log: bool = True,
    ):
        self.config = config
        self.trend_scout = trend_scout
        self.idea_generator = idea_generator
        self.idea_judge = idea_judge
        self.researcher = researcher
        self.implementer = implementer
        self.deployer = deployer
        self.announcer = announcer
        self.state_manager = state_manager or StateManager(config.system.state_dir)
        self.write_run_log = write_run_log
        self.state = PipelineState()
        self._run_log: Optional[RunLogHandler] = None

    async def run(self) -> RunResult:
        """Execute every phase. Never raises for phase failures."""
        if self.write_run_log:
            self._run_log = attach_run_log(self.config.system.log_dir, self.state.run_id)
        try:
            return await self._run()
        finally:
            detach_run_log(self._run_log)
            self._run_log = None

    async def _run(self) -> RunResult:
        system = self.config.system
        logger.info(
            "Run %s starting (dry_run=%s, skip_deploy=%s, skip_announce=%s)",
            self.state.run_id, system.dry_run, system.skip_deploy, system.skip_announce,
        )
        try:
            await self.scout_trends()
            self.checkpoint()
            await self.generate_ideas()
            self.checkpoint()
            await self.judge_ideas()
            self.checkpoint()
            await self.research_ideas()
            self.checkpoint()
            await self.implement()
            self.checkpoint()

            if system.dry_run:
                logger.warning("Dry run: skipping deploy and announce")
            else:
                if system.skip_deploy:
                    logger.warning("Skipping deploy (skip_deploy is set)")
                else:
                    await self.deploy()
                    self.checkpoint()

                if system.skip_announce:
                    logger.warning("Skipping announce (skip_announce is set)")
                else:
                    await self.announce()
                    self.checkpoint()
        except Exception as e:
            return self._fail(e)

        self._enter(Phase.COMPLETE)
        self.checkpoint()
        total = self.state.elapsed_seconds()
        logger.info("Run %s completed in %.1fs", self.state.run_id, total, extra={"duration": total})
        return RunResult(
            success=True,
            idea=self.state.selected_idea,
            repo_url=self.state.deployment.repo_url if self.state.deployment else None,
            tweet_url=self.state.announcement.tweet_url if self.state.announcement else None,
            total_time_seconds=total,
            state=self.state,
        )

    def _fail(self, error: Exception) -> RunResult:
        message = str(error) or type(error).__name__
        phase = self.state.current_phase
        if isinstance(error, TrendForgeError):
            logger.error("Run %s failed in %s: %s", self.state.run_id, phase.value, message)
        else:
            logger.exception("Run %s failed in %s: %s", self.state.run_id, phase.value, message)
        self.state.record_error(message)
        self.checkpoint()
        return RunResult(
            success=False,
            error=message,
            failed_phase=phase,
            total_time_seconds=self.state.elapsed_seconds(),
            state=self.state,
        )

    # ── Helpers ──────────────────────────────────────────────

    def _enter(self, phase: Phase) -> None:
        self.state.current_phase = phase
        if self._run_log is not None:
            self._run_log.set_phase(phase.value)
        logger.info("Phase: %s", phase.value)

    def checkpoint(self) -> None:
        """Persist the state. A write failure is logged, never fatal."""
        try:
            self.state_manager.save(self.state)
        except StateError as e:
            logger.error("Checkpoint failed: %s", e)

    @property
    def budgets(self):
        return self.config.time_budgets

    def repo_map(self) -> dict[str, TrendingRepo]:
        return {repo.key: repo for repo in self.state.trends or []}

    # ── Phases ───────────────────────────────────────────────

    async def scout_trends(self) -> None:
        self._enter(Phase.SCOUT_TRENDS)
        options = self.config.scout.to_options()
        trends = await TimeBudget.run(
            Phase.SCOUT_TRENDS.value,
            self.budgets.trend_scout,
            lambda: self.trend_scout.scout_trends(options),
        )
        if not trends:
            raise OracleError("No suitable trends found")
        self.state.set_result("trends", trends)
        logger.info("Found %d potential trends", len(trends))

    async def generate_ideas(self) -> None:
        self._enter(Phase.GENERATE_IDEAS)
        trends = self.state.trends or []
        ideas = await TimeBudget.run(
            Phase.GENERATE_IDEAS.value,
            self.budgets.idea_generator,
            lambda: self.idea_generator.generate_original_ideas(trends),
        )
        if not ideas:
            raise OracleError("No viable ideas generated")
        self.state.set_result("ideas", ideas)
        logger.info("Generated %d ideas", len(ideas))

    async def judge_ideas(self) -> None:
        """Judge rounds with feedback-driven regeneration between them.

        Raises:
            JudgeExhaustionError: If no round approves any idea.
        """
        self._enter(Phase.JUDGE_IDEAS)
        repo_map = self.repo_map()
        max_rounds = self.config.judge.max_rounds

        for round_no in range(1, max_rounds + 1):
            ideas = list(self.state.ideas or [])
            outcome = await TimeBudget.run(
                f"{Phase.JUDGE_IDEAS.value}-round-{round_no}",
                self.budgets.idea_judge,
                lambda: self.idea_judge.filter_ideas(ideas, repo_map),
            )
            for entry in outcome.rejected:
                logger.info(
                    "Rejected '%s' (score %d): %s",
                    entry.idea.name, entry.verdict.differentiation_score, entry.verdict.reasoning,
                )

            if outcome.approved:
                self.state.set_result("ideas", outcome.approved)
                logger.info(
                    "%d ideas survived the judge (%d rejected)",
                    len(outcome.approved), len(outcome.rejected),
                )
                return

            if round_no == max_rounds:
                break

            logger.info(
                "All %d ideas rejected (round %d/%d), regenerating with judge feedback",
                len(outcome.rejected), round_no, max_rounds,
            )
            rejected = outcome.rejected
            improved = await TimeBudget.run(
                f"{Phase.JUDGE_IDEAS.value}-regenerate-{round_no}",
                self.budgets.idea_judge,
                lambda: self.idea_judge.regenerate(rejected, repo_map),
            )
            if not improved:
                logger.warning("Regeneration produced no ideas")
                raise JudgeExhaustionError(round_no)
            self.state.set_result("ideas", improved)
            logger.info("Regenerated %d ideas, re-judging", len(improved))

        raise JudgeExhaustionError(max_rounds)

    async def research_ideas(self) -> None:
        """Research candidates in order; the first `ship` wins.

        Raises:
            ResearchExhaustionError: If no candidate is recommended to ship.
        """
        self._enter(Phase.RESEARCH)
        candidates = list(self.state.ideas or [])

        for idea in candidates:
            try:
                report = await TimeBudget.run(
                    f"{Phase.RESEARCH.value}-{idea.name}",
                    self.budgets.researcher,
                    lambda: self.researcher.research(idea),
                )
            except Exception as e:
                logger.warning("Research failed for %s: %s", idea.name, e)
                continue

            if report.recommendation == Recommendation.SHIP:
                self.state.set_result("selected_idea", idea)
                self.state.set_result("research", report)
                logger.info("Selected idea: %s (confidence %d)", idea.name, report.confidence)
                return

            logger.info(
                "Skipping idea: %s (%s, %s)",
                idea.name, report.recommendation.value, report.reasoning,
            )

        raise ResearchExhaustionError(len(candidates))

    async def implement(self) -> None:
        self._enter(Phase.IMPLEMENT)
        idea = self.state.selected_idea
        report = self.state.research
        implementation = await TimeBudget.run(
            Phase.IMPLEMENT.value,
            self.budgets.implementer,
            lambda: self.implementer.implement(idea, report),
        )
        if implementation.status == BuildStatus.FAILED:
            raise OracleError("Implementation failed")
        self.state.set_result("implementation", implementation)
        if implementation.status == BuildStatus.PARTIAL:
            logger.warning("Implementation partial: continuing with what was built")
        else:
            logger.info("Implementation %s", implementation.status.value)

    async def deploy(self) -> None:
        self._enter(Phase.DEPLOY)
        implementation = self.state.implementation
        idea = self.state.selected_idea
        deployment = await TimeBudget.run(
            Phase.DEPLOY.value,
            self.budgets.deployer,
            lambda: self.deployer.deploy(implementation, idea),
        )
        if not deployment.success:
            raise OracleError(f"Deployment failed: {', '.join(deployment.errors)}")
        self.state.set_result("deployment", deployment)
        for warning in deployment.warnings:
            logger.warning("Deploy: %s", warning)
        logger.info("Deployed to: %s", deployment.repo_url)

    async def announce(self) -> None:
        """Announce the release. Failures here are recorded but never fatal."""
        self._enter(Phase.ANNOUNCE)
        deployment = self.state.deployment
        if deployment is None:
            self.state.record_error("Nothing deployed to announce", fatal=False)
            logger.warning("Nothing deployed to announce")
            return

        idea = self.state.selected_idea
        implementation = self.state.implementation
        try:
            announcement = await TimeBudget.run(
                Phase.ANNOUNCE.value,
                self.budgets.announcer,
                lambda: self.announcer.announce(deployment, idea, implementation),
            )
        except Exception as e:
            self.state.record_error(f"Announce failed: {e}", fatal=False)
            logger.warning("Announce failed (non-fatal): %s", e)
            return

        self.state.set_result("announcement", announcement)
        if announcement.success:
            logger.info("Tweeted: %s", announcement.tweet_url)
        else:
            self.state.record_error("Tweet was not posted", fatal=False)
            logger.warning("Tweet failed (non-fatal)")
