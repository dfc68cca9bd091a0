"""
Node.js adapter — version detection for the storefront build prerequisites.
"""

from __future__ import annotations

from shopinstall.adapters.base import PROBE_TIMEOUT
from shopinstall.adapters.shell.command import CommandRunner


def node_version(runner: CommandRunner) -> str | None:
    """Detect the Node.js version string ("v20.11.0" → "20.11.0")."""
    if runner.which("node") is None:
        return None
    result = runner.run(["node", "--version"], timeout=PROBE_TIMEOUT, quiet=True)
    if not result.ok:
        return None
    return result.stdout.strip().lstrip("v") or None
