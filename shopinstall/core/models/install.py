"""
Install models — attempts, targets, and the result of a package install.

Attempts are immutable records; a run's attempt log only ever grows.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict


class Strategy(StrEnum):
    """Package materialization strategies, in escalation order."""

    FAST_PATH = "fast-path"
    SOURCE_FALLBACK = "source-fallback"
    ISOLATED_FALLBACK = "isolated-fallback"


class InstallState(StrEnum):
    """States of the retrying installer step."""

    NOT_STARTED = "not-started"
    TRYING_FAST_PATH = "trying-fast-path"
    TRYING_SOURCE_FALLBACK = "trying-source-fallback"
    TRYING_ISOLATED = "trying-isolated"
    PUBLISHED = "published"
    FAILED = "failed"


class InstallAttempt(BaseModel):
    """One try of a flaky materialization action."""

    model_config = ConfigDict(frozen=True)

    strategy: Strategy
    attempt_index: int
    outcome: Literal["success", "failure"]
    log_reference: str
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome == "success"

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy.value,
            "attempt_index": self.attempt_index,
            "outcome": self.outcome,
            "log_reference": self.log_reference,
            "detail": self.detail,
        }


class InstallationTarget(BaseModel):
    """The directory being populated.

    ``prior_contents_backup_path`` is only set when the target held
    contents that were moved aside during publish.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    prior_contents_backup_path: str | None = None


class InstallResult(BaseModel):
    """Successful outcome of the retrying installer step."""

    model_config = ConfigDict(frozen=True)

    target: InstallationTarget
    strategy: Strategy
    attempts: tuple[InstallAttempt, ...]
    finalized: bool = False

    def to_dict(self) -> dict:
        return {
            "target": self.target.path,
            "backup": self.target.prior_contents_backup_path,
            "strategy": self.strategy.value,
            "finalized": self.finalized,
            "attempts": [a.to_dict() for a in self.attempts],
        }
