"""
Prerequisite checks for the local toolchain.

Read-only probes: PHP and Composer presence and versions, the PHP
extensions archive extraction depends on, ``unzip``, and Node.js for
storefront builds.  Missing PHP or Composer is an error; everything
else only warns.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from shopinstall.adapters.languages.node import node_version
from shopinstall.adapters.languages.php import LocalToolchainBackend, parse_version
from shopinstall.core.errors import RuntimeUnavailable

logger = logging.getLogger(__name__)

MIN_PHP = (8, 2)
MIN_COMPOSER_MAJOR = 2
MIN_NODE_MAJOR = 20


@dataclass(frozen=True)
class PrerequisiteCheck:
    name: str
    ok: bool
    severity: Literal["error", "warning"] = "warning"
    message: str = ""

    @property
    def blocking(self) -> bool:
        return not self.ok and self.severity == "error"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "ok": self.ok,
            "severity": self.severity,
            "message": self.message,
        }


def check_local_toolchain(backend: LocalToolchainBackend) -> list[PrerequisiteCheck]:
    """Run every local-toolchain check and log the outcome of each."""
    checks: list[PrerequisiteCheck] = []
    runner = backend.runner

    # ── PHP ──
    php = backend.php_version()
    if php is None:
        checks.append(PrerequisiteCheck("php", False, "error", "php not found in PATH"))
    else:
        parsed = parse_version(php)
        if parsed is not None and parsed[:2] >= MIN_PHP:
            checks.append(PrerequisiteCheck("php", True, message=f"PHP {php}"))
        else:
            checks.append(PrerequisiteCheck(
                "php", False, "warning",
                f"PHP {MIN_PHP[0]}.{MIN_PHP[1]}+ is required, found {php}",
            ))

        extensions = backend.php_extensions()
        for ext, hint in (
            ("zip", "Composer may fail extracting archives; install php-zip"),
            ("intl", "the shop requires the intl extension"),
        ):
            if ext in extensions:
                checks.append(PrerequisiteCheck(f"php-{ext}", True, message=f"{ext} loaded"))
            else:
                checks.append(PrerequisiteCheck(
                    f"php-{ext}", False, "warning", f"PHP {ext} extension missing: {hint}",
                ))

    # ── unzip ──
    if runner.which("unzip"):
        checks.append(PrerequisiteCheck("unzip", True, message="unzip found"))
    else:
        checks.append(PrerequisiteCheck(
            "unzip", False, "warning",
            "unzip not found; Composer falls back to php-zip",
        ))

    # ── Composer ──
    composer = backend.composer_version()
    if composer is None:
        checks.append(PrerequisiteCheck("composer", False, "error", "composer not found in PATH"))
    else:
        parsed = parse_version(composer)
        if parsed is not None and parsed[0] >= MIN_COMPOSER_MAJOR:
            checks.append(PrerequisiteCheck("composer", True, message=composer))
        else:
            checks.append(PrerequisiteCheck(
                "composer", False, "warning", f"Composer 2.x is recommended, found: {composer}",
            ))

    # ── Node.js ──
    node = node_version(runner)
    parsed_node = parse_version(node)
    if parsed_node is not None and parsed_node[0] >= MIN_NODE_MAJOR:
        checks.append(PrerequisiteCheck("node", True, message=f"Node.js {node}"))
    else:
        found = f"found {node}" if node else "not found"
        checks.append(PrerequisiteCheck(
            "node", False, "warning", f"Node.js {MIN_NODE_MAJOR}+ is recommended, {found}",
        ))

    for check in checks:
        if check.ok:
            logger.info("✓ %s: %s", check.name, check.message)
        elif check.blocking:
            logger.error("✗ %s: %s", check.name, check.message)
        else:
            logger.warning("⚠ %s: %s", check.name, check.message)
    return checks


def require_prerequisites(checks: list[PrerequisiteCheck]) -> None:
    """Raise if any blocking check failed.

    Raises:
        RuntimeUnavailable: Listing every blocking failure.
    """
    blocking = [c for c in checks if c.blocking]
    if blocking:
        detail = "; ".join(c.message for c in blocking)
        raise RuntimeUnavailable(f"Local toolchain prerequisites missing: {detail}")
