"""
Install use case — resolve a runtime, dispatch, install.

Ties together the runtime backends, the resolver, the per-method
installer routine, and the retrying installer step.  Terminal
failures are captured on the returned ``InstallOutcome`` instead of
propagating, so every entry point reports them the same way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from shopinstall.adapters.base import RuntimeBackend
from shopinstall.adapters.containers.docker import ColimaBackend, DockerBackend
from shopinstall.adapters.containers.podman import PodmanBackend
from shopinstall.adapters.languages.php import LocalToolchainBackend
from shopinstall.adapters.shell.command import CommandRunner
from shopinstall.core.errors import InstallerError, PackageInstallFailed, PublishFailed
from shopinstall.core.models.config import InstallerConfig
from shopinstall.core.models.install import InstallAttempt, InstallResult
from shopinstall.core.models.runtime import ResolutionResult, RuntimeMethod
from shopinstall.core.observability.logging_config import log_success
from shopinstall.core.services.package_install import (
    ComposerMaterializer,
    ContainerComposer,
    LocalComposer,
    Materializer,
    PackageInstaller,
)
from shopinstall.core.services.preflight import check_local_toolchain, require_prerequisites
from shopinstall.core.services.runtime_resolver import RuntimeResolver

logger = logging.getLogger(__name__)

# (method, config, backend, runner) → materializer
InstallRoutine = Callable[
    [RuntimeMethod, InstallerConfig, RuntimeBackend | None, CommandRunner],
    Materializer,
]


@dataclass
class InstallOutcome:
    """Result of the install use case."""

    resolution: ResolutionResult | None = None
    result: InstallResult | None = None
    attempts: tuple[InstallAttempt, ...] = ()
    cancelled: bool = False
    log_path: Path | None = None
    error: str | None = None
    error_kind: str | None = None
    backup_path: str | None = None
    notes: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None and not self.cancelled

    def to_dict(self) -> dict:
        data: dict = {
            "ok": self.ok,
            "cancelled": self.cancelled,
            "log_path": str(self.log_path) if self.log_path else None,
            "resolution": self.resolution.to_dict() if self.resolution else None,
        }
        if self.result:
            data["install"] = self.result.to_dict()
        if self.error:
            data["error"] = self.error
            data["error_kind"] = self.error_kind
            data["attempts"] = [a.to_dict() for a in self.attempts]
            if self.backup_path:
                data["backup_path"] = self.backup_path
        return data


# ── Backends ────────────────────────────────────────────────────


def build_backends(
    config: InstallerConfig,
    runner: CommandRunner | None = None,
) -> list[RuntimeBackend]:
    """All runtime backends in default priority order."""
    runner = runner or CommandRunner()
    wait = config.max_wait
    return [
        DockerBackend(runner, wait[RuntimeMethod.CONTAINER_ENGINE]),
        ColimaBackend(runner, wait[RuntimeMethod.LIGHTWEIGHT_VM_RUNTIME]),
        PodmanBackend(runner, wait[RuntimeMethod.ALTERNATE_CONTAINER_DAEMON]),
        LocalToolchainBackend(runner, wait[RuntimeMethod.LOCAL_TOOLCHAIN]),
    ]


def runtime_status(
    config: InstallerConfig,
    backends: list[RuntimeBackend] | None = None,
) -> list[dict]:
    """Read-only readiness snapshot of every backend."""
    return [b.status() for b in (backends or build_backends(config))]


def resolve_runtime(
    config: InstallerConfig,
    backends: list[RuntimeBackend] | None = None,
    **resolver_kwargs,
) -> ResolutionResult:
    """Run the resolver with the configured request and fallback policy.

    Raises:
        InvalidConfiguration, RuntimeUnavailable
    """
    backends = backends or build_backends(config)
    resolver = RuntimeResolver.from_config(
        config, [b.candidate() for b in backends], **resolver_kwargs
    )
    return resolver.resolve(config.method)


# ── Installer routines (one per method) ─────────────────────────


def container_routine(
    method: RuntimeMethod,
    config: InstallerConfig,
    backend: RuntimeBackend | None,
    runner: CommandRunner,
) -> Materializer:
    """Composer inside a throwaway container of the resolved engine."""
    engine = getattr(backend, "engine_cli", None) or (
        "podman" if method is RuntimeMethod.ALTERNATE_CONTAINER_DAEMON else "docker"
    )
    toolchain = ContainerComposer(engine, image=config.composer_image)
    logger.info("Composer will run via: %s", toolchain.label)
    return ComposerMaterializer(toolchain, config.package_spec, runner)


def local_routine(
    method: RuntimeMethod,
    config: InstallerConfig,
    backend: RuntimeBackend | None,
    runner: CommandRunner,
) -> Materializer:
    """Composer on the host after the prerequisite checks pass."""
    local = backend if isinstance(backend, LocalToolchainBackend) else LocalToolchainBackend(runner)
    require_prerequisites(check_local_toolchain(local))
    toolchain = LocalComposer(use_symfony=local.has_symfony_cli())
    logger.info("Composer will run via: %s", toolchain.label)
    return ComposerMaterializer(toolchain, config.package_spec, runner)


INSTALL_ROUTINES: dict[RuntimeMethod, InstallRoutine] = {
    RuntimeMethod.CONTAINER_ENGINE: container_routine,
    RuntimeMethod.LIGHTWEIGHT_VM_RUNTIME: container_routine,
    RuntimeMethod.ALTERNATE_CONTAINER_DAEMON: container_routine,
    RuntimeMethod.LOCAL_TOOLCHAIN: local_routine,
}


# ── Use case ────────────────────────────────────────────────────


def run_install(
    config: InstallerConfig,
    *,
    log_path: Path | None = None,
    runner: CommandRunner | None = None,
    backends: list[RuntimeBackend] | None = None,
    resolver: RuntimeResolver | None = None,
    routines: dict[RuntimeMethod, InstallRoutine] | None = None,
    confirm: Callable[[str], bool] | None = None,
) -> InstallOutcome:
    """Resolve a runtime and install the configured package.

    Args:
        config: Validated installer configuration.
        log_path: Run log path, quoted in attempt references.
        runner: Command runner shared by backends and Composer.
        backends: Override the runtime backends (tests).
        resolver: Override the resolver (tests).
        routines: Override the method → installer routine table.
        confirm: Asked once after resolution; returning False cancels.

    Returns:
        InstallOutcome; ``error`` is set on any terminal failure.
    """
    outcome = InstallOutcome(log_path=log_path)
    runner = runner or CommandRunner()
    routines = routines or INSTALL_ROUTINES

    try:
        backends = backends if backends is not None else build_backends(config, runner)
        if resolver is None:
            resolver = RuntimeResolver.from_config(config, [b.candidate() for b in backends])

        resolution = resolver.resolve(config.method)
        outcome.resolution = resolution
        if resolution.fell_back:
            outcome.notes.append(
                f"Requested {resolution.requested.value} was not ready; "
                f"using {resolution.method.value}"
            )

        prompt = (
            f"Install {config.package_spec} into {config.target_path} "
            f"using {resolution.method.value}?"
        )
        if confirm is not None and not confirm(prompt):
            outcome.cancelled = True
            logger.info("Installation cancelled.")
            return outcome

        by_method = {b.method: b for b in backends}
        routine = routines[resolution.method]
        materializer = routine(resolution.method, config, by_method.get(resolution.method), runner)

        installer = PackageInstaller(
            materializer,
            config.target_path,
            retry_count=config.retry_count,
            log_path=log_path,
        )
        outcome.result = installer.install()
        outcome.attempts = outcome.result.attempts
        if not outcome.result.finalized:
            outcome.notes.append("Finalize step failed; run 'composer install' in the target")
        log_success(
            logger,
            "Installation finished in %s. Logs: %s",
            config.target_path,
            log_path or "(console only)",
        )

    except InstallerError as e:
        outcome.error = str(e)
        outcome.error_kind = type(e).__name__
        if isinstance(e, PackageInstallFailed):
            outcome.attempts = e.attempts
        if isinstance(e, PublishFailed):
            outcome.backup_path = e.backup_path
        logger.error("%s: %s", outcome.error_kind, outcome.error)
        if log_path:
            logger.error("Logs are in %s", log_path)

    return outcome
