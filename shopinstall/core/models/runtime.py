"""
Runtime models — candidates the resolver can select and its result.

A candidate couples a method name with two capabilities: a readiness
probe and an optional start action.  New backends are added by
appending a candidate to the priority list, never by branching.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

from shopinstall.core.errors import InvalidConfiguration


class RuntimeMethod(StrEnum):
    """Installable backends, in default priority order."""

    CONTAINER_ENGINE = "container-engine"
    LIGHTWEIGHT_VM_RUNTIME = "lightweight-vm-runtime"
    ALTERNATE_CONTAINER_DAEMON = "alternate-container-daemon"
    LOCAL_TOOLCHAIN = "local-toolchain"

    @classmethod
    def parse(cls, value: str | RuntimeMethod) -> RuntimeMethod:
        """Parse a method name or one of its legacy aliases.

        Raises:
            InvalidConfiguration: If the value names no known method.
        """
        if isinstance(value, RuntimeMethod):
            return value
        key = str(value).strip().lower()
        if key in _ALIASES:
            return _ALIASES[key]
        try:
            return cls(key)
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise InvalidConfiguration(
                f"Unknown install method '{value}'. Valid: {valid}"
            ) from None

    @property
    def uses_containers(self) -> bool:
        return self is not RuntimeMethod.LOCAL_TOOLCHAIN


# Short names accepted on the command line and in INSTALL_METHOD
_ALIASES: dict[str, RuntimeMethod] = {
    "docker": RuntimeMethod.CONTAINER_ENGINE,
    "colima": RuntimeMethod.LIGHTWEIGHT_VM_RUNTIME,
    "podman": RuntimeMethod.ALTERNATE_CONTAINER_DAEMON,
    "symfony": RuntimeMethod.LOCAL_TOOLCHAIN,
    "local": RuntimeMethod.LOCAL_TOOLCHAIN,
}

# The method selected when every other candidate is exhausted
UNIVERSAL_FALLBACK = RuntimeMethod.LOCAL_TOOLCHAIN


@dataclass(frozen=True)
class RuntimeCandidate:
    """One backend the resolver may select.

    Attributes:
        name: The method this candidate provides.
        readiness_check: Side-effect-free probe, safe to poll repeatedly.
        start_action: Optional action that tries to bring the backend up.
        max_wait: Seconds from invoking the start action until giving up,
            including the time the start action itself takes.
    """

    name: RuntimeMethod
    readiness_check: Callable[[], bool]
    start_action: Callable[[], None] | None = None
    max_wait: float = 0.0


class ResolutionResult(BaseModel):
    """Outcome of one resolution run.  Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    method: RuntimeMethod
    requested: RuntimeMethod | None = None
    fell_back: bool = False
    probed: tuple[RuntimeMethod, ...] = Field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "method": self.method.value,
            "requested": self.requested.value if self.requested else None,
            "fell_back": self.fell_back,
            "probed": [m.value for m in self.probed],
        }
