"""
Runtime backend base — the probe/start contract every backend implements.

The resolver only talks to backends through ``RuntimeCandidate``
objects built by ``candidate()``; it never runs tools directly.

To add a backend:
    1. Subclass RuntimeBackend
    2. Implement method, cli, is_ready (and start_command if it can be started)
    3. Append it to the priority list in ``build_backends``
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from shopinstall.adapters.shell.command import CommandRunner
from shopinstall.core.models.runtime import RuntimeCandidate, RuntimeMethod

logger = logging.getLogger(__name__)

# Readiness probes must answer quickly
PROBE_TIMEOUT = 15


class RuntimeBackend(ABC):
    """Abstract base class for runtime backends.

    ``is_ready`` must be side-effect-free and safe to call repeatedly;
    it never raises.  ``start`` may raise, the resolver swallows it.
    """

    def __init__(self, runner: CommandRunner | None = None, max_wait: float = 0.0):
        self._runner = runner or CommandRunner()
        self._max_wait = max_wait

    @property
    @abstractmethod
    def method(self) -> RuntimeMethod:
        """The method this backend provides."""

    @property
    @abstractmethod
    def cli(self) -> str:
        """The binary that must be on PATH for this backend."""

    @abstractmethod
    def is_ready(self) -> bool:
        """Whether the backend can be used right now."""

    def start_command(self) -> list[str] | None:
        """Command that brings the backend up, or None if it cannot be started."""
        return None

    @property
    def runner(self) -> CommandRunner:
        return self._runner

    def is_installed(self) -> bool:
        return self._runner.which(self.cli) is not None

    def start(self) -> None:
        """Run the start command.

        Commands like ``colima start`` block until the daemon is up.  One
        that is still running when the wait window closes is not a
        failure: the resolver keeps probing readiness.

        Raises:
            RuntimeError: If there is no start command or it failed.
        """
        argv = self.start_command()
        if not argv:
            raise RuntimeError(f"{self.method.value} cannot be started automatically")
        timeout = max(int(self._max_wait), PROBE_TIMEOUT)
        result = self._runner.run(argv, timeout=timeout)
        if result.timed_out:
            logger.warning(
                "%s did not return within %ss, checking readiness anyway",
                " ".join(argv),
                timeout,
            )
            return
        if not result.ok:
            raise RuntimeError(f"{' '.join(argv)} failed: {result.summary()}")

    def version(self) -> str | None:
        if not self.is_installed():
            return None
        result = self._runner.run([self.cli, "--version"], timeout=PROBE_TIMEOUT, quiet=True)
        if not result.ok:
            return None
        lines = result.stdout.strip().splitlines()
        return lines[0] if lines else None

    def candidate(self) -> RuntimeCandidate:
        """Build the resolver's view of this backend.

        A backend whose CLI is missing gets no start action.
        """
        start = self.start if self.is_installed() and self.start_command() else None
        return RuntimeCandidate(
            name=self.method,
            readiness_check=self.is_ready,
            start_action=start,
            max_wait=self._max_wait,
        )

    def status(self) -> dict[str, Any]:
        """Read-only status snapshot (never starts anything)."""
        installed = self.is_installed()
        return {
            "method": self.method.value,
            "cli": self.cli,
            "installed": installed,
            "ready": installed and self.is_ready(),
            "version": self.version() if installed else None,
            "can_start": installed and self.start_command() is not None,
        }

    def _probe(self, argv: list[str]) -> bool:
        """Run a readiness probe; any failure means not ready."""
        if not self.is_installed():
            return False
        return self._runner.run(argv, timeout=PROBE_TIMEOUT, quiet=True).ok

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} method={self.method.value!r}>"
