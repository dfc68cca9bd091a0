"""
Strategy plan — the escalation order as data, not control flow.

    fast-path          × retry_count   (cache cleared after each failure)
    source-fallback    × 1
    isolated-fallback  × 1
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from shopinstall.core.errors import InvalidConfiguration
from shopinstall.core.models.install import InstallState, Strategy

MAX_RETRY_COUNT = 10


@dataclass(frozen=True)
class StrategyStep:
    """One row of the plan: a strategy, its try budget, its state."""

    strategy: Strategy
    tries: int
    state: InstallState


@dataclass(frozen=True)
class MaterializeOutcome:
    """Result of one materialization attempt.

    ``output`` is the directory holding the built package; it is only
    meaningful when ``ok`` is True.
    """

    ok: bool
    output: Path | None = None
    detail: str = ""

    @classmethod
    def success(cls, output: Path) -> MaterializeOutcome:
        return cls(ok=True, output=output)

    @classmethod
    def failure(cls, detail: str) -> MaterializeOutcome:
        return cls(ok=False, detail=detail)


class Materializer(Protocol):
    """Whatever actually builds the package (Composer, or a test double)."""

    def materialize(self, strategy: Strategy, workdir: Path) -> MaterializeOutcome:
        """Build the package inside ``workdir`` using ``strategy``."""
        ...

    def clear_cache(self) -> bool:
        """Drop the local package cache.  Returns False on failure."""
        ...

    def finalize(self, target: Path) -> bool:
        """Post-publish pass with side effects enabled.  False on failure."""
        ...


def build_strategy_plan(retry_count: int = 3) -> tuple[StrategyStep, ...]:
    """Build the fixed escalation plan.

    Raises:
        InvalidConfiguration: If ``retry_count`` is outside 1..10.
    """
    if not 1 <= retry_count <= MAX_RETRY_COUNT:
        raise InvalidConfiguration(
            f"retry_count must be between 1 and {MAX_RETRY_COUNT}, got {retry_count}"
        )
    return (
        StrategyStep(Strategy.FAST_PATH, retry_count, InstallState.TRYING_FAST_PATH),
        StrategyStep(Strategy.SOURCE_FALLBACK, 1, InstallState.TRYING_SOURCE_FALLBACK),
        StrategyStep(Strategy.ISOLATED_FALLBACK, 1, InstallState.TRYING_ISOLATED),
    )
