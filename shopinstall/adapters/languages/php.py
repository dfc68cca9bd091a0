"""
PHP toolchain adapter — PHP, Composer, and the optional Symfony CLI.

Provides the local-toolchain runtime backend (the universal fallback)
and the read-only probes used by the prerequisite checks.
"""

from __future__ import annotations

import logging
import re

from shopinstall.adapters.base import PROBE_TIMEOUT, RuntimeBackend
from shopinstall.core.models.runtime import RuntimeMethod

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"(\d+)\.(\d+)(?:\.(\d+))?")


def parse_version(text: str | None) -> tuple[int, int, int] | None:
    """Extract the first ``X.Y[.Z]`` version from a string.

    >>> parse_version("Composer version 2.7.1 2024-02-09")
    (2, 7, 1)
    """
    if not text:
        return None
    m = _VERSION_RE.search(text)
    if not m:
        return None
    return int(m.group(1)), int(m.group(2)), int(m.group(3) or 0)


class LocalToolchainBackend(RuntimeBackend):
    """PHP + Composer installed on the host.

    Has no start action: it is ready as soon as both tools are on PATH.
    """

    @property
    def method(self) -> RuntimeMethod:
        return RuntimeMethod.LOCAL_TOOLCHAIN

    @property
    def cli(self) -> str:
        return "composer"

    def is_installed(self) -> bool:
        return self._runner.which("php") is not None and self._runner.which("composer") is not None

    def is_ready(self) -> bool:
        return self.is_installed()

    def has_symfony_cli(self) -> bool:
        return self._runner.which("symfony") is not None

    def php_version(self) -> str | None:
        """Detect the PHP version string (e.g. ``8.3.4``)."""
        if self._runner.which("php") is None:
            return None
        result = self._runner.run(
            ["php", "-r", "echo PHP_VERSION;"], timeout=PROBE_TIMEOUT, quiet=True
        )
        if not result.ok:
            return None
        return result.stdout.strip() or None

    def php_extensions(self) -> set[str]:
        """Lower-cased names of loaded PHP extensions."""
        if self._runner.which("php") is None:
            return set()
        result = self._runner.run(["php", "-m"], timeout=PROBE_TIMEOUT, quiet=True)
        if not result.ok:
            return set()
        return {
            line.strip().lower()
            for line in result.stdout.splitlines()
            if line.strip() and not line.startswith("[")
        }

    def composer_version(self) -> str | None:
        if self._runner.which("composer") is None:
            return None
        result = self._runner.run(
            ["composer", "--version", "--no-ansi"], timeout=PROBE_TIMEOUT, quiet=True
        )
        if not result.ok:
            return None
        lines = result.stdout.strip().splitlines()
        return lines[0] if lines else None

    def version(self) -> str | None:
        php = self.php_version()
        composer = parse_version(self.composer_version())
        if php is None:
            return None
        if composer is None:
            return f"PHP {php}"
        return f"PHP {php}, Composer {'.'.join(str(p) for p in composer)}"
