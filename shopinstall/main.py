"""
Shop installer — CLI entrypoint.

Usage:
    python -m shopinstall.main --help
    python -m shopinstall.main install --yes
    python -m shopinstall.main runtime status
"""

from __future__ import annotations

import json
import os
from pathlib import Path

import click

from shopinstall import __version__
from shopinstall.core.observability.logging_config import setup_logging
from shopinstall.ui.cli.helpers import fail, load_cli_config


@click.group()
@click.version_option(version=__version__, prog_name="shopinstall")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to shopinstall.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Shop installer — bring up a runtime and install the shop package."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (console only; commands attach the run log) ──
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("SHOPINSTALL_LOG_LEVEL", "WARNING")
    ctx.obj["log_level"] = level

    setup_logging(level=level, quiet_third_party=not debug)


@cli.command()
@click.option(
    "--method",
    "-m",
    default=None,
    help="Runtime to use (default: first ready one).",
)
@click.option("--yes", "-y", "auto_yes", is_flag=True, help="Do not ask for confirmation.")
@click.option("--no-fallback", is_flag=True, help="Fail instead of trying other runtimes.")
@click.option("--package", default=None, help="Composer package (vendor/name).")
@click.option("--package-version", "version", default=None, help="Package version or 'latest'.")
@click.option("--target", "target_path", default=None, help="Install directory.")
@click.option("--retries", "retry_count", type=int, default=None, help="Fast-path tries (1-10).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(
    ctx: click.Context,
    method: str | None,
    auto_yes: bool,
    no_fallback: bool,
    package: str | None,
    version: str | None,
    target_path: str | None,
    retry_count: int | None,
    as_json: bool,
) -> None:
    """Install the shop package into the target directory."""
    from shopinstall.core.use_cases.install import run_install

    config = load_cli_config(
        ctx,
        {
            "method": method,
            "auto_yes": True if auto_yes else None,
            "fallback_enabled": False if no_fallback else None,
            "package": package,
            "version": version,
            "target_path": target_path,
            "retry_count": retry_count,
        },
        as_json=as_json,
    )

    def _confirm(prompt: str) -> bool:
        return click.confirm(prompt, default=False, err=True)

    outcome = run_install(
        config,
        log_path=ctx.obj.get("log_path"),
        confirm=None if config.auto_yes else _confirm,
    )

    if outcome.error:
        fail(
            ctx,
            outcome.error,
            as_json=as_json,
            kind=outcome.error_kind,
            payload=outcome.to_dict(),
        )

    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2))
        return

    if outcome.cancelled:
        click.echo("Installation cancelled")
        return

    assert outcome.result is not None and outcome.resolution is not None
    quiet = ctx.obj.get("quiet", False)
    result = outcome.result

    click.secho(
        f"✅ Installed {config.package_spec} into {result.target.path}",
        fg="green",
        bold=True,
    )
    if not quiet:
        click.echo(f"   Runtime:  {outcome.resolution.method.value}")
        click.echo(f"   Strategy: {result.strategy.value} (attempt {len(result.attempts)})")
        if result.target.prior_contents_backup_path:
            click.echo(f"   Backup:   {result.target.prior_contents_backup_path}")
        for note in outcome.notes:
            click.secho(f"   ⚠ {note}", fg="yellow")
        click.echo(f"   Run log:  {outcome.log_path}")


# ── Register sub-command groups from shopinstall/ui/cli/ ─────────

from shopinstall.ui.cli.runtime import runtime

cli.add_command(runtime)


if __name__ == "__main__":
    cli()
