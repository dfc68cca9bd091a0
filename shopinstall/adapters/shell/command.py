"""
Shell command runner — the single place external tools are executed.

Every probe, start action, and Composer invocation goes through
``CommandRunner.run``.  It never raises for a failing command: the
outcome is captured in a ``CommandResult``.  Output tails of failed
commands are written to the run log so a failure can be diagnosed
without re-running.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import time
from typing import Mapping, Sequence

from pydantic import BaseModel

logger = logging.getLogger(__name__)

# Lines of output kept in the run log for a failed command
_TAIL_LINES = 20


class CommandResult(BaseModel):
    """Outcome of one external command."""

    argv: list[str]
    return_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    error: str | None = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.return_code == 0 and self.error is None

    def summary(self) -> str:
        """Short human-readable failure reason."""
        if self.ok:
            return "ok"
        if self.error:
            return self.error
        last = (self.stderr or self.stdout).strip().splitlines()
        tail = last[-1] if last else ""
        return f"exit {self.return_code}" + (f": {tail}" if tail else "")


def format_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


class CommandRunner:
    """Run external commands with consistent logging.

    Args:
        default_timeout: Seconds before a command is killed.
    """

    def __init__(self, default_timeout: int = 1800):
        self._default_timeout = default_timeout

    @staticmethod
    def which(binary: str) -> str | None:
        """Locate a binary on PATH."""
        return shutil.which(binary)

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: str | os.PathLike[str] | None = None,
        timeout: int | None = None,
        env: Mapping[str, str] | None = None,
        quiet: bool = False,
    ) -> CommandResult:
        """Run a command and capture its output.

        Args:
            argv: Command and arguments.
            cwd: Working directory.
            timeout: Override the default timeout.
            env: Extra environment variables for this command.
            quiet: Log at DEBUG only (for readiness probes).
        """
        argv_list = [str(a) for a in argv]
        timeout = timeout or self._default_timeout
        log = logger.debug if quiet else logger.info
        log("CMD %s", format_argv(argv_list))

        full_env = os.environ.copy()
        full_env.update(env or {})

        start = time.monotonic()
        try:
            proc = subprocess.run(
                argv_list,
                cwd=str(cwd) if cwd is not None else None,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=full_env,
            )
        except subprocess.TimeoutExpired:
            result = CommandResult(
                argv=argv_list,
                return_code=-1,
                error=f"Command timed out after {timeout}s",
                timed_out=True,
                duration_ms=int((time.monotonic() - start) * 1000),
            )
        except OSError as e:
            result = CommandResult(
                argv=argv_list,
                return_code=-1,
                error=f"Cannot execute {argv_list[0]}: {e}",
                duration_ms=int((time.monotonic() - start) * 1000),
            )
        else:
            result = CommandResult(
                argv=argv_list,
                return_code=proc.returncode,
                stdout=proc.stdout or "",
                stderr=proc.stderr or "",
                duration_ms=int((time.monotonic() - start) * 1000),
            )

        if not result.ok and not quiet:
            self._log_failure(result)
        return result

    def _log_failure(self, result: CommandResult) -> None:
        logger.info("Command failed (%s): %s", result.summary(), format_argv(result.argv))
        output = (result.stderr or result.stdout).strip().splitlines()
        for line in output[-_TAIL_LINES:]:
            logger.info("  │ %s", line)
