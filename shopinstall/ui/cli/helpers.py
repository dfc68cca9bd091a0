"""
Shared plumbing for CLI commands: config loading, run log, failure exit.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, NoReturn

import click

from shopinstall import __version__
from shopinstall.core.config.loader import load_config
from shopinstall.core.errors import InvalidConfiguration
from shopinstall.core.models.config import InstallerConfig
from shopinstall.core.observability.logging_config import run_log_path, setup_logging

logger = logging.getLogger(__name__)


def start_run_log(ctx: click.Context, log_dir: str | None, *, as_json: bool = False) -> Path:
    """Re-run logging setup with the run log attached.

    An unusable log directory falls back to the system temp dir with a
    warning; exits 1 when no run log can be written at all.
    """
    requested = log_dir or os.environ.get("SHOPINSTALL_LOG_DIR")
    try:
        path = _attach_run_log(ctx, run_log_path(requested))
    except OSError as e:
        if not requested:
            fail(ctx, f"Cannot write run log: {e}", as_json=as_json, kind="OSError")
        try:
            path = _attach_run_log(ctx, run_log_path(None))
        except OSError as e2:
            fail(ctx, f"Cannot write run log: {e2}", as_json=as_json, kind="OSError")
        logger.warning("Cannot write run log in %s (%s), using %s instead", requested, e, path)

    ctx.obj["log_path"] = path
    logger.info("shopinstall %s: %s", __version__, " ".join(sys.argv[1:]))
    return path


def _attach_run_log(ctx: click.Context, path: Path) -> Path:
    setup_logging(
        level=ctx.obj.get("log_level", "WARNING"),
        log_file=path,
        log_file_level="INFO",
        quiet_third_party=not ctx.obj.get("debug", False),
    )
    return path


def load_cli_config(
    ctx: click.Context,
    overrides: dict[str, Any] | None = None,
    *,
    as_json: bool = False,
) -> InstallerConfig:
    """Load the config and open the run log; exit 1 on invalid config."""
    try:
        config = load_config(ctx.obj.get("config_path"), overrides=overrides)
    except InvalidConfiguration as e:
        start_run_log(ctx, None, as_json=as_json)
        logger.error("InvalidConfiguration: %s", e)
        fail(ctx, str(e), as_json=as_json, kind="InvalidConfiguration")

    start_run_log(ctx, config.log_dir, as_json=as_json)
    return config


def fail(
    ctx: click.Context,
    message: str,
    *,
    as_json: bool = False,
    kind: str | None = None,
    payload: dict | None = None,
) -> NoReturn:
    """Report a terminal failure with the run log path and exit 1."""
    log_path = ctx.obj.get("log_path")
    if as_json:
        data = dict(payload or {})
        data.setdefault("ok", False)
        data.setdefault("error", message)
        data.setdefault("error_kind", kind)
        data.setdefault("log_path", str(log_path) if log_path else None)
        click.echo(json.dumps(data, indent=2))
    else:
        click.secho(f"❌ {message}", fg="red")
        if log_path:
            click.echo(f"   Run log: {log_path}")
    sys.exit(1)
