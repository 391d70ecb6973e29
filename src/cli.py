"""CLI entrypoint for TrendForge."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Optional

import click

from src.core.config import AppConfig, LoggingConfig, load_config, validate_for_run
from src.core.exceptions import ConfigError, StateError
from src.core.models import RunResult

# Drain window for work abandoned by a timed-out phase before the loop closes
_DRAIN_SECONDS = 5.0

_active_run_id: str | None = None
_active_state_dir: str | None = None


def _sigint_handler(signum: int, frame: Any) -> None:
    """Handle Ctrl+C with a pointer to the last checkpoint instead of bare traceback."""
    click.echo("\n")
    click.echo(click.style("Interrupted.", fg="yellow", bold=True))
    if _active_run_id:
        click.echo(f"  Run ID:          {_active_run_id}")
        click.echo(f"  State snapshot:  {Path(_active_state_dir or 'logs') / f'state-{_active_run_id}.json'}")
        click.echo(f"\nInspect with:\n  trendforge status --run-id {_active_run_id}")
    sys.exit(130)


def _setup_logging(settings: LoggingConfig, verbose: bool = False) -> None:
    """Apply the logging section of the config the command loaded."""
    level = logging.DEBUG if verbose else getattr(logging, settings.level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=settings.format, stream=sys.stderr)


def _verbose() -> bool:
    ctx = click.get_current_context()
    return bool((ctx.obj or {}).get("verbose"))


def _apply_flags(config: AppConfig, dry_run: bool, skip_deploy: bool, skip_announce: bool) -> AppConfig:
    """Command-line flags can only switch phases off, never back on."""
    system = config.system.model_copy(
        update={
            "dry_run": config.system.dry_run or dry_run,
            "skip_deploy": config.system.skip_deploy or skip_deploy,
            "skip_announce": config.system.skip_announce or skip_announce,
        }
    )
    return config.model_copy(update={"system": system})


async def _execute(config: AppConfig, config_dir: Optional[Path]) -> RunResult:
    global _active_run_id

    from src.core.factory import ComponentFactory
    from src.orchestrator.time_budget import TimeBudget

    bundle = ComponentFactory.create(config_dir=config_dir, config=config)
    try:
        orchestrator = bundle.orchestrator()
        _active_run_id = orchestrator.state.run_id
        result = await orchestrator.run()
        still_running = await TimeBudget.drain(timeout=_DRAIN_SECONDS)
        if still_running:
            logging.getLogger("trendforge.cli").warning(
                "%d abandoned task(s) still running at shutdown", still_running,
            )
        return result
    finally:
        await ComponentFactory.close(bundle)


def _print_success(result: RunResult) -> None:
    click.echo(click.style("\nTrendForge run complete.", fg="green", bold=True))
    click.echo(
        f"  Run ID:          {result.state.run_id}\n"
        f"  Idea:            {result.idea.name if result.idea else '-'}\n"
        f"  Repository:      {result.repo_url or '-'}\n"
        f"  Tweet:           {result.tweet_url or '-'}\n"
        f"  Total time:      {result.total_time_seconds:.1f}s"
    )
    if result.state.implementation is not None:
        click.echo(f"  Build status:    {result.state.implementation.status.value}")
    for record in result.state.errors:
        if not record.fatal:
            click.echo(click.style(f"  Warning [{record.phase}]: {record.error}", fg="yellow"))


def _print_failure(result: RunResult) -> None:
    phase = result.failed_phase.value if result.failed_phase else result.state.current_phase.value
    click.echo(click.style("\nTrendForge run failed.", fg="red", bold=True), err=True)
    click.echo(
        f"  Run ID:          {result.state.run_id}\n"
        f"  Failed phase:    {phase}\n"
        f"  Error:           {result.error}\n"
        f"  Total time:      {result.total_time_seconds:.1f}s",
        err=True,
    )


@click.group()
@click.option("--verbose", is_flag=True, default=False, help="Enable verbose (DEBUG) logging.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """TrendForge: trending repo in, shipped side project out."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command("run")
@click.option("--dry-run", is_flag=True, default=False, help="Stop after implementation; no deploy or announce.")
@click.option("--skip-deploy", is_flag=True, default=False, help="Skip the deploy phase.")
@click.option("--skip-announce", is_flag=True, default=False, help="Skip the announce phase.")
@click.option(
    "--config-dir",
    required=False,
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Directory holding default.yaml and models.yaml.",
)
@click.option("--env", required=False, default=None, help="Optional config overlay environment.")
def run(
    dry_run: bool,
    skip_deploy: bool,
    skip_announce: bool,
    config_dir: Optional[Path],
    env: Optional[str],
) -> None:
    """Run the full pipeline once."""
    global _active_state_dir

    try:
        config = _apply_flags(load_config(config_dir=config_dir, env=env), dry_run, skip_deploy, skip_announce)
        validate_for_run(config)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    _setup_logging(config.logging, verbose=_verbose())

    _active_state_dir = config.system.state_dir
    signal.signal(signal.SIGINT, _sigint_handler)

    click.echo(click.style("TrendForge: scouting trends...", bold=True))
    if config.system.dry_run:
        click.echo(click.style("Dry-run mode: deploy and announce will be skipped.", fg="yellow"))

    try:
        result = asyncio.run(_execute(config, config_dir))
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    if result.success:
        _print_success(result)
        sys.exit(0)
    _print_failure(result)
    sys.exit(1)


@cli.command("status")
@click.option("--run-id", required=False, default=None, help="Run to inspect. Default: most recent.")
@click.option(
    "--config-dir",
    required=False,
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option("--env", required=False, default=None, help="Optional config overlay environment.")
def status(run_id: Optional[str], config_dir: Optional[Path], env: Optional[str]) -> None:
    """Show the saved state snapshot of a run."""
    from src.orchestrator.state_manager import StateManager

    try:
        config = load_config(config_dir=config_dir, env=env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    _setup_logging(config.logging, verbose=_verbose())

    manager = StateManager(config.system.state_dir)
    if run_id is None:
        runs = manager.list_runs()
        if not runs:
            raise click.ClickException(f"No saved runs in {manager.state_dir}")
        run_id = runs[0]

    try:
        state = manager.load(run_id)
    except StateError as exc:
        raise click.ClickException(str(exc)) from exc
    if state is None:
        raise click.ClickException(f"No saved state for run {run_id}")

    click.echo(click.style(f"Run {state.run_id}", bold=True))
    click.echo(
        f"  Started:         {state.start_time.isoformat()}\n"
        f"  Phase:           {state.current_phase.value}\n"
        f"  Trends:          {len(state.trends or [])}\n"
        f"  Ideas:           {len(state.ideas or [])}\n"
        f"  Selected idea:   {state.selected_idea.name if state.selected_idea else '-'}"
    )
    if state.research is not None:
        click.echo(f"  Research:        {state.research.recommendation.value} ({state.research.confidence}%)")
    if state.implementation is not None:
        click.echo(f"  Build status:    {state.implementation.status.value}")
    if state.deployment is not None:
        click.echo(f"  Repository:      {state.deployment.repo_url or '-'}")
    if state.announcement is not None:
        click.echo(f"  Tweet:           {state.announcement.tweet_url or '-'}")
    for record in state.errors:
        color = "red" if record.fatal else "yellow"
        click.echo(click.style(f"  Error [{record.phase}]: {record.error}", fg=color))


def main() -> None:
    """Entry point used by `trendforge` console script."""
    from dotenv import load_dotenv
    load_dotenv(Path(__file__).parent.parent / ".env", override=False)
    cli()


if __name__ == "__main__":
    main()
