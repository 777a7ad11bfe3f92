"""CLI entry point for the cherry-pick action."""

import asyncio
import sys
from collections.abc import Callable
from typing import Any

import click
import structlog

from cherry_pick_action.config.settings import ActionSettings
from cherry_pick_action.engine.naming import BranchNamingOptions, name_for
from cherry_pick_action.engine.runner import Runner
from cherry_pick_action.exceptions import CherryPickError, ConfigurationError
from cherry_pick_action.utils.logging_config import configure_logging

log = structlog.get_logger(__name__)


@click.group()
@click.option(
    "--config",
    default=None,
    type=click.Path(dir_okay=False),
    help="Optional YAML settings file (defaults to INPUT_* environment variables)",
)
@click.option("--log-level", default=None, help="Override the configured log level")
@click.option(
    "--log-format",
    default=None,
    type=click.Choice(["text", "json"], case_sensitive=False),
    help="Override the configured log format",
)
@click.pass_context
def cli(ctx: click.Context, config: str | None, log_level: str | None, log_format: str | None) -> None:
    """cherry-pick-action: backport merged pull requests to release branches."""
    ctx.obj = {"config": config, "log_level": log_level, "log_format": log_format}


def _load_settings(ctx: click.Context, **overrides: Any) -> ActionSettings:
    """Load settings and configure logging from them and the CLI overrides."""
    options = ctx.obj
    if options["config"]:
        settings = ActionSettings.from_yaml(options["config"], **overrides)
    else:
        settings = ActionSettings.from_env(**overrides)

    configure_logging(
        options["log_level"] or settings.log_level,
        options["log_format"] or str(settings.log_format),
    )
    return settings


def _run_command(name: str, body: Callable[[], None]) -> None:
    try:
        body()
    except CherryPickError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug(f"{name}_error", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)
    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        log.error(f"{name}_unexpected", exc_info=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Handle the pull_request event of the current GitHub Actions job."""

    def body() -> None:
        settings = _load_settings(ctx)
        asyncio.run(Runner(settings).run())

    _run_command("run", body)


@cli.command("process-pr")
@click.option("--owner", required=True, help="Repository owner")
@click.option("--repo", required=True, help="Repository name")
@click.option("--number", type=int, required=True, help="Source pull request number")
@click.option("--dry-run", is_flag=True, default=False, help="Evaluate targets without changes")
@click.pass_context
def process_pr(ctx: click.Context, owner: str, repo: str, number: int, dry_run: bool) -> None:
    """Process a single merged pull request manually."""

    def body() -> None:
        overrides: dict[str, Any] = {"dry_run": True} if dry_run else {}
        settings = _load_settings(ctx, **overrides)
        result = asyncio.run(Runner(settings).process(owner, repo, number))

        if result.skipped:
            click.echo(f"Skipped: {result.skipped_reason}")
        for target in result.targets:
            click.echo(f"{target.target.branch}: {target.status} {target.reason}".rstrip())

    _run_command("process_pr", body)


@cli.command("branch-name")
@click.argument("target")
@click.argument("pr_number", type=int)
@click.option("--prefix", default="cherry-pick", show_default=True, help="Branch name prefix")
@click.option("--max-length", type=int, default=63, show_default=True, help="Maximum branch length")
@click.pass_context
def branch_name(ctx: click.Context, target: str, pr_number: int, prefix: str, max_length: int) -> None:
    """Print the cherry-pick branch name for TARGET and PR_NUMBER."""

    def body() -> None:
        if pr_number <= 0:
            raise ConfigurationError("pull request number must be positive")
        options = BranchNamingOptions(prefix=prefix, max_length=max_length)
        click.echo(name_for(target, pr_number, options))

    _run_command("branch_name", body)


if __name__ == "__main__":
    cli()
