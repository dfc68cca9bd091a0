"""
Docker-compatible backends — Docker Engine / Desktop and Colima.

Both are driven through the ``docker`` CLI once running; they differ
only in how the daemon is probed and started.
"""

from __future__ import annotations

import os
import platform

from shopinstall.adapters.base import RuntimeBackend
from shopinstall.core.models.runtime import RuntimeMethod


def _privileged(argv: list[str]) -> list[str]:
    """Prefix with non-interactive sudo unless already root."""
    if hasattr(os, "geteuid") and os.geteuid() == 0:
        return argv
    return ["sudo", "-n", *argv]


class DockerBackend(RuntimeBackend):
    """Docker daemon (Docker Desktop on macOS, dockerd elsewhere)."""

    @property
    def method(self) -> RuntimeMethod:
        return RuntimeMethod.CONTAINER_ENGINE

    @property
    def cli(self) -> str:
        return "docker"

    @property
    def engine_cli(self) -> str:
        return "docker"

    def is_ready(self) -> bool:
        return self._probe(["docker", "info", "--format", "{{.ServerVersion}}"])

    def start_command(self) -> list[str] | None:
        system = platform.system()
        if system == "Darwin":
            return ["open", "-a", "Docker"]
        if system == "Linux" and self._runner.which("systemctl"):
            return _privileged(["systemctl", "start", "docker"])
        return None


class ColimaBackend(RuntimeBackend):
    """Colima: a lightweight VM exposing a Docker-compatible socket."""

    @property
    def method(self) -> RuntimeMethod:
        return RuntimeMethod.LIGHTWEIGHT_VM_RUNTIME

    @property
    def cli(self) -> str:
        return "colima"

    @property
    def engine_cli(self) -> str:
        return "docker"

    def is_installed(self) -> bool:
        # Colima is useless without the docker client
        return super().is_installed() and self._runner.which("docker") is not None

    def is_ready(self) -> bool:
        return self._probe(["colima", "status"])

    def start_command(self) -> list[str] | None:
        return ["colima", "start"]
