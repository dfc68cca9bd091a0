"""
Composer materializer — builds the package with Composer.

Composer runs either on the host (optionally through ``symfony composer``
so the Symfony CLI picks the project's PHP version) or inside a
throwaway container of the selected engine.  Both produce the same
files in the staging directory; only the command prefix differs.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path

from shopinstall.adapters.shell.command import CommandResult, CommandRunner
from shopinstall.core.models.install import Strategy
from shopinstall.core.services.package_install.strategies import MaterializeOutcome

logger = logging.getLogger(__name__)

ISOLATED_DIR = "isolated"
ISOLATED_PROJECT_NAME = "tmp/isolated-build"

# Inside the container
_APP_DIR = "/app"
_CACHE_DIR = "/tmp/composer-cache"
_HOME_DIR = "/tmp/composer-home"


def default_cache_dir() -> Path:
    """Host-side Composer cache shared by container runs."""
    base = os.environ.get("XDG_CACHE_HOME") or str(Path.home() / ".cache")
    return Path(base) / "shopinstall" / "composer"


class ComposerToolchain(ABC):
    """How a Composer command line is turned into a host command."""

    @abstractmethod
    def command(self, args: list[str], workdir: Path | None) -> tuple[list[str], Path | None]:
        """Return ``(argv, cwd)`` for running ``composer <args>`` in ``workdir``."""

    @property
    @abstractmethod
    def label(self) -> str:
        """Short description for logs."""


class LocalComposer(ComposerToolchain):
    """Composer on the host, through the Symfony CLI when available."""

    def __init__(self, use_symfony: bool = False):
        self._use_symfony = use_symfony

    @property
    def label(self) -> str:
        return "symfony composer" if self._use_symfony else "composer"

    def command(self, args: list[str], workdir: Path | None) -> tuple[list[str], Path | None]:
        prefix = ["symfony", "composer"] if self._use_symfony else ["composer"]
        return [*prefix, *args], workdir


class ContainerComposer(ComposerToolchain):
    """Composer inside a ``<engine> run --rm`` container.

    The work directory is bind-mounted at /app and the Composer cache
    lives on the host so ``clear-cache`` affects the next run.
    """

    def __init__(
        self,
        engine_cli: str,
        image: str = "composer:2",
        cache_dir: Path | None = None,
    ):
        self._engine = engine_cli
        self._image = image
        self._cache_dir = cache_dir or default_cache_dir()

    @property
    def label(self) -> str:
        return f"{self._engine} run {self._image}"

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def command(self, args: list[str], workdir: Path | None) -> tuple[list[str], Path | None]:
        self._cache_dir.mkdir(parents=True, exist_ok=True)
        argv = [self._engine, "run", "--rm"]
        # Docker writes root-owned files unless told otherwise; rootless podman maps ids itself
        if self._engine == "docker" and hasattr(os, "getuid"):
            argv += ["--user", f"{os.getuid()}:{os.getgid()}"]
        argv += [
            "-v", f"{self._cache_dir}:{_CACHE_DIR}",
            "-e", f"COMPOSER_CACHE_DIR={_CACHE_DIR}",
            "-e", f"COMPOSER_HOME={_HOME_DIR}",
        ]
        if workdir is not None:
            argv += ["-v", f"{workdir}:{_APP_DIR}", "-w", _APP_DIR]
        else:
            argv += ["-w", "/tmp"]
        argv += [self._image, "composer", *args]
        return argv, None


class ComposerMaterializer:
    """Materialize ``package_spec`` with Composer.

    Implements the ``Materializer`` protocol used by ``PackageInstaller``.
    """

    def __init__(
        self,
        toolchain: ComposerToolchain,
        package_spec: str,
        runner: CommandRunner | None = None,
    ):
        self._toolchain = toolchain
        self._package_spec = package_spec
        self._runner = runner or CommandRunner()

    @property
    def toolchain(self) -> ComposerToolchain:
        return self._toolchain

    def materialize(self, strategy: Strategy, workdir: Path) -> MaterializeOutcome:
        if strategy is Strategy.FAST_PATH:
            return self._create_project(workdir, "--prefer-dist")
        if strategy is Strategy.SOURCE_FALLBACK:
            return self._create_project(workdir, "--prefer-source")
        if strategy is Strategy.ISOLATED_FALLBACK:
            return self._isolated_require(workdir)
        return MaterializeOutcome.failure(f"Unknown strategy: {strategy}")

    def clear_cache(self) -> bool:
        logger.info("Clearing Composer cache...")
        return self._composer(["clear-cache", "--no-interaction"], None).ok

    def finalize(self, target: Path) -> bool:
        logger.info("Running composer install (with scripts) in %s to finalize...", target)
        return self._composer(["install", "--no-progress", "--no-interaction"], target).ok

    # ── Strategies ──────────────────────────────────────────────

    def _create_project(self, workdir: Path, prefer: str) -> MaterializeOutcome:
        args = [
            "create-project",
            self._package_spec,
            ".",
            prefer,
            "--no-progress",
            "--no-scripts",
            "--no-interaction",
        ]
        result = self._composer(args, workdir)
        if not result.ok:
            return MaterializeOutcome.failure(result.summary())
        return MaterializeOutcome.success(workdir)

    def _isolated_require(self, workdir: Path) -> MaterializeOutcome:
        isolated = workdir / ISOLATED_DIR
        isolated.mkdir(parents=True, exist_ok=True)

        init = self._composer(
            ["init", f"--name={ISOLATED_PROJECT_NAME}", "--no-interaction"], isolated
        )
        if not init.ok:
            # require writes a composer.json of its own
            logger.info("composer init failed in isolated project; continuing with require")

        result = self._composer(
            [
                "require",
                self._package_spec,
                "--prefer-dist",
                "--no-progress",
                "--no-interaction",
            ],
            isolated,
        )
        if not result.ok:
            return MaterializeOutcome.failure(result.summary())
        return MaterializeOutcome.success(isolated)

    def _composer(self, args: list[str], workdir: Path | None) -> CommandResult:
        argv, cwd = self._toolchain.command(args, workdir)
        return self._runner.run(argv, cwd=cwd)
