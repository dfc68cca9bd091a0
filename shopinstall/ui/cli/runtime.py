"""
CLI commands for container runtimes and the local toolchain.

Thin wrappers over ``shopinstall.core.use_cases.install``.
"""

from __future__ import annotations

import json

import click

from shopinstall.ui.cli.helpers import fail, load_cli_config


@click.group()
def runtime() -> None:
    """Runtimes — readiness status and resolution."""


@runtime.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show every runtime's readiness without starting anything."""
    from shopinstall.core.use_cases.install import runtime_status

    config = load_cli_config(ctx, as_json=as_json)
    rows = runtime_status(config)

    if as_json:
        click.echo(json.dumps({"runtimes": rows}, indent=2))
        return

    click.secho("🧰 Runtimes (priority order)", fg="cyan", bold=True)
    for row in rows:
        if row["ready"]:
            marker = click.style("✅ ready", fg="green")
        elif row["installed"]:
            marker = click.style("⏸ stopped", fg="yellow")
        else:
            marker = click.style("❌ missing", fg="red")
        version = f"  ({row['version']})" if row.get("version") else ""
        click.echo(f"   {row['method']:<28} {marker}{version}")


@runtime.command()
@click.option("--method", "-m", default=None, help="Runtime to request.")
@click.option("--no-fallback", is_flag=True, help="Fail instead of trying other runtimes.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def resolve(ctx: click.Context, method: str | None, no_fallback: bool, as_json: bool) -> None:
    """Pick a ready runtime, starting one if needed."""
    from shopinstall.core.errors import InstallerError
    from shopinstall.core.use_cases.install import resolve_runtime

    config = load_cli_config(
        ctx,
        {"method": method, "fallback_enabled": False if no_fallback else None},
        as_json=as_json,
    )
    try:
        result = resolve_runtime(config)
    except InstallerError as e:
        fail(ctx, str(e), as_json=as_json, kind=type(e).__name__)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.secho(f"✅ Using install method: {result.method.value}", fg="green")
    if result.fell_back and result.requested:
        click.secho(f"   ⚠ {result.requested.value} was not ready", fg="yellow")
