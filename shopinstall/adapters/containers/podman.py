"""
Podman backend — daemonless engine used as the alternate container runtime.
"""

from __future__ import annotations

import platform

from shopinstall.adapters.base import RuntimeBackend
from shopinstall.core.models.runtime import RuntimeMethod


class PodmanBackend(RuntimeBackend):
    """Podman (machine VM on macOS/Windows, user socket on Linux)."""

    @property
    def method(self) -> RuntimeMethod:
        return RuntimeMethod.ALTERNATE_CONTAINER_DAEMON

    @property
    def cli(self) -> str:
        return "podman"

    @property
    def engine_cli(self) -> str:
        return "podman"

    def is_ready(self) -> bool:
        return self._probe(["podman", "info", "--format", "{{.Version.Version}}"])

    def start_command(self) -> list[str] | None:
        if platform.system() == "Linux":
            if self._runner.which("systemctl"):
                return ["systemctl", "--user", "start", "podman.socket"]
            return None
        return ["podman", "machine", "start"]
