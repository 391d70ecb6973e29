"""Implementer backed by an external coding-agent command.

Scaffolds a TypeScript project in the workspace, asks the coding agent to
build each "must" feature, runs up to `max_fix_rounds` build-and-fix rounds,
then attempts the "should" features and writes the README.

Status rules:
- complete: every must feature implemented and the final build passes
- partial: at least one must feature implemented
- failed: nothing usable (including scaffold or agent start-up failures)
"""

from __future__ import annotations

import json
import re
import time
from pathlib import Path
from typing import Optional

from src.core.config import ImplementerConfig
from src.core.exceptions import ToolError
from src.core.models import (
    BuildIssue,
    BuildStatus,
    Feature,
    FeatureOutcome,
    Idea,
    ImplementationResult,
    ResearchReport,
)
from src.oracles import templates
from src.oracles.base import ImplementerOracle
from src.tools.shell import ShellResult, run_command

INSTALL_TIMEOUT = 300
BUILD_TIMEOUT = 300

_TSC_ERROR = re.compile(r"^(?P<file>[^\s(]+)\((?P<line>\d+),\d+\): error (?P<msg>TS\d+: .*)$")
_SKIP_DIRS = {"node_modules", ".git", "dist"}


def parse_build_errors(output: str) -> list[BuildIssue]:
    issues = [
        BuildIssue(type="type", file=m["file"], line=int(m["line"]), message=m["msg"])
        for m in (_TSC_ERROR.match(line.strip()) for line in output.splitlines())
        if m
    ]
    if not issues and output.strip():
        issues.append(BuildIssue(type="runtime", message=output.strip()[:500]))
    return issues


def decide_status(outcomes: list[FeatureOutcome], build_ok: bool) -> BuildStatus:
    musts = [o for o in outcomes if o.feature.priority == "must"]
    if all(o.implemented for o in musts) and build_ok:
        return BuildStatus.COMPLETE
    if any(o.implemented for o in musts):
        return BuildStatus.PARTIAL
    return BuildStatus.FAILED


def feature_prompt(feature: Feature, idea: Idea, report: ResearchReport) -> str:
    hints = report.implementation_hints
    sections = []
    if hints.architecture_patterns:
        sections.append("Architecture patterns:\n" + "\n".join(f"- {p}" for p in hints.architecture_patterns))
    if hints.file_structure:
        sections.append("File structure:\n" + "\n".join(f"- {f}" for f in hints.file_structure))
    if hints.common_dependencies:
        sections.append("Dependencies:\n" + "\n".join(f"- {d}" for d in hints.common_dependencies))
    research = "\n\n".join(sections) or "None"
    pace = (
        "High slop: be scrappy, ship fast." if idea.slop_factor > 70
        else "Moderate slop: some polish, still ship fast."
    )
    return f"""# Implement Feature: {feature.name}

Project: {idea.name}
Description: {idea.description}

## Requirement
{feature.description}

## Research
{research}

## Instructions
1. Create the files this feature needs under src/.
2. Working code over elegant code; happy path first.
3. Only use dependencies listed in package.json.
4. Time budget: {feature.estimated_hours:g} hours. If stuck, ship a simpler version.
5. The project must still compile with `npm run build`.

{pace}"""


def fix_prompt(idea: Idea, errors: str) -> str:
    return f"""# Fix Build Errors and Incomplete Features

Project: {idea.name}

The project fails to build or has incomplete must-have features.
Fix everything below so `npm run build` succeeds.

{errors}

Rules: edit files in place, keep changes minimal, create missing feature files."""


def snapshot(root: Path) -> dict[str, float]:
    files: dict[str, float] = {}
    for path in root.rglob("*"):
        if path.is_file() and not _SKIP_DIRS.intersection(path.relative_to(root).parts):
            files[str(path.relative_to(root))] = path.stat().st_mtime
    return files


def changed_files(before: dict[str, float], after: dict[str, float]) -> list[str]:
    return sorted(name for name, mtime in after.items() if before.get(name) != mtime)


class CodingAgentImplementer(ImplementerOracle):
    def __init__(self, config: Optional[ImplementerConfig] = None, workspace_dir: str = "workspace"):
        super().__init__("Implementer")
        self.config = config or ImplementerConfig()
        self.workspace = Path(workspace_dir)

    async def _implement(self, idea: Idea, report: ResearchReport) -> ImplementationResult:
        started = time.monotonic()
        repo_path = self.workspace / templates.package_name(idea.name)

        try:
            await self.scaffold(idea, repo_path)
        except (OSError, ToolError) as e:
            self.logger.error("Scaffold failed for '%s': %s", idea.name, e)
            return self._failed(repo_path, started, f"Setup failed: {e}")

        issues: list[BuildIssue] = []
        debt: list[str] = []
        outcomes: list[FeatureOutcome] = []

        for feature in idea.must_features:
            outcome = await self.implement_feature(feature, idea, report, repo_path)
            outcomes.append(outcome)
            if not outcome.implemented:
                debt.append(f"{feature.name}: incomplete implementation")

        await self.fix_rounds(idea, repo_path, outcomes, issues, debt)

        for feature in idea.should_features:
            outcome = await self.implement_feature(feature, idea, report, repo_path)
            outcomes.append(outcome)
            if not outcome.implemented:
                debt.append(f"{feature.name}: skipped (nice-to-have)")

        (repo_path / "README.md").write_text(templates.readme(idea))

        build = await self._build(repo_path)
        if not build.success:
            debt.append("Build fails, needs manual fixing")
            issues.extend(parse_build_errors(build.output))
        tests = await self._run_quietly(self.config.test_command, repo_path, BUILD_TIMEOUT)

        status = decide_status(outcomes, build.success)
        hours = (time.monotonic() - started) / 3600
        self.logger.info("Implementation %s in %.2fh", status.value, hours)
        return ImplementationResult(
            status=status,
            repo_path=str(repo_path),
            core_features=outcomes,
            tests_pass=tests.success,
            readme_exists=True,
            total_hours=hours,
            files_created=len(snapshot(repo_path)),
            issues=issues,
            technical_debt=debt,
        )

    async def scaffold(self, idea: Idea, repo_path: Path) -> None:
        self.logger.info("Scaffolding project at %s", repo_path)
        for sub in ("src", "tests", "examples"):
            (repo_path / sub).mkdir(parents=True, exist_ok=True)
        (repo_path / "package.json").write_text(json.dumps(templates.package_json(idea), indent=2))
        (repo_path / "tsconfig.json").write_text(json.dumps(templates.tsconfig(), indent=2))
        (repo_path / ".gitignore").write_text(templates.GITIGNORE)
        entry = repo_path / "src" / "index.ts"
        if not entry.exists():
            entry.write_text(f"// {idea.name}\n// {idea.tagline}\n\nexport const VERSION = '0.1.0';\n")

        install = await self._run_quietly(self.config.install_command, repo_path, INSTALL_TIMEOUT)
        if not install.success:
            self.logger.warning("Dependency install reported problems: %s", install.stderr[:200])

    async def implement_feature(
        self, feature: Feature, idea: Idea, report: ResearchReport, repo_path: Path,
    ) -> FeatureOutcome:
        self.logger.info("Implementing %s feature: %s", feature.priority, feature.name)
        before = snapshot(repo_path)
        result = await self._agent(feature_prompt(feature, idea, report), repo_path)
        return FeatureOutcome(
            feature=feature,
            implemented=result.success,
            files_modified=changed_files(before, snapshot(repo_path)),
        )

    async def fix_rounds(
        self,
        idea: Idea,
        repo_path: Path,
        outcomes: list[FeatureOutcome],
        issues: list[BuildIssue],
        debt: list[str],
    ) -> ShellResult:
        build = await self._build(repo_path)
        for round_no in range(1, self.config.max_fix_rounds + 1):
            failed = [o for o in outcomes if o.feature.priority == "must" and not o.implemented]
            if build.success and not failed:
                break
            self.logger.warning(
                "Fix round %d/%d: build=%s, failed must-haves=%d",
                round_no, self.config.max_fix_rounds, "ok" if build.success else "FAIL", len(failed),
            )
            context = []
            if not build.success:
                context.append(f"## Build Errors\n```\n{build.output[:3000]}\n```")
            context += [f"## Failed Feature: {o.feature.name}\n{o.feature.description}" for o in failed]

            fix = await self._agent(fix_prompt(idea, "\n\n".join(context)), repo_path)
            build = await self._build(repo_path)
            if build.success and fix.success:
                # A successful fix round with a clean build counts the missing features as done.
                for i, outcome in enumerate(outcomes):
                    if outcome.feature.priority == "must" and not outcome.implemented:
                        outcomes[i] = outcome.model_copy(update={"implemented": True})
                break
        else:
            if not build.success:
                debt.append(f"Build still failing after {self.config.max_fix_rounds} fix rounds")
                issues.extend(parse_build_errors(build.output))
        return build

    async def _agent(self, prompt: str, repo_path: Path) -> ShellResult:
        try:
            return await run_command(
                [*self.config.agent_command, prompt],
                cwd=str(repo_path),
                timeout=self.config.feature_timeout_seconds,
            )
        except ToolError as e:
            self.logger.warning("Coding agent failed: %s", e)
            return ShellResult(command=" ".join(self.config.agent_command), return_code=-1, stdout="", stderr=str(e))

    async def _build(self, repo_path: Path) -> ShellResult:
        return await self._run_quietly(self.config.build_command, repo_path, BUILD_TIMEOUT)

    async def _run_quietly(self, command: list[str], repo_path: Path, timeout: float) -> ShellResult:
        try:
            return await run_command(command, cwd=str(repo_path), timeout=timeout)
        except ToolError as e:
            return ShellResult(command=" ".join(command), return_code=-1, stdout="", stderr=str(e))

    def _failed(self, repo_path: Path, started: float, message: str) -> ImplementationResult:
        return ImplementationResult(
            status=BuildStatus.FAILED,
            repo_path=str(repo_path),
            total_hours=(time.monotonic() - started) / 3600,
            issues=[BuildIssue(type="runtime", message=message)],
        )
