"""
Retrying installer step — escalate strategies, publish the first success.

State machine:
    NOT_STARTED → TRYING_FAST_PATH → {PUBLISHED | TRYING_SOURCE_FALLBACK}
                → {PUBLISHED | TRYING_ISOLATED} → {PUBLISHED | FAILED}

Each attempt gets its own staging directory.  Every failed attempt is
followed by a cache clear before the next one.  When every strategy
is exhausted the target is exactly as it was found and
``PackageInstallFailed`` carries the full attempt log.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from shopinstall.core.errors import PackageInstallFailed, PublishFailed
from shopinstall.core.models.install import (
    InstallAttempt,
    InstallResult,
    InstallState,
    Strategy,
)
from shopinstall.core.observability.logging_config import SUCCESS
from shopinstall.core.services.package_install.staging import check_target, publish, staging_area
from shopinstall.core.services.package_install.strategies import (
    Materializer,
    MaterializeOutcome,
    build_strategy_plan,
)

logger = logging.getLogger(__name__)


class PackageInstaller:
    """Materialize a package into ``target_path`` with retries.

    Args:
        materializer: Builds the package (Composer in production).
        target_path: Directory to populate.
        retry_count: Fast-path try budget (1..10).
        log_path: Run log path, used to build attempt log references.
        staging_dir: Parent for staging directories (default: system temp).
        now: Fixed timestamp for backup naming (tests).
    """

    def __init__(
        self,
        materializer: Materializer,
        target_path: str | Path,
        *,
        retry_count: int = 3,
        log_path: str | Path | None = None,
        staging_dir: str | Path | None = None,
        now: datetime | None = None,
    ):
        self._materializer = materializer
        self._target = Path(target_path).expanduser().resolve()
        self._plan = build_strategy_plan(retry_count)
        self._log_path = str(log_path) if log_path else None
        self._staging_dir = staging_dir
        self._now = now
        self._state = InstallState.NOT_STARTED
        self._attempts: list[InstallAttempt] = []

    @property
    def state(self) -> InstallState:
        return self._state

    @property
    def attempts(self) -> tuple[InstallAttempt, ...]:
        return tuple(self._attempts)

    @property
    def target(self) -> Path:
        return self._target

    def install(self) -> InstallResult:
        """Run the strategy plan until one attempt succeeds.

        Raises:
            InvalidConfiguration: The target is not a usable directory.
            PackageInstallFailed: Every strategy failed.
            PublishFailed: A build succeeded but could not be moved in.
        """
        check_target(self._target)

        for step in self._plan:
            self._state = step.state
            for _ in range(step.tries):
                if self._attempts and not self._attempts[-1].ok:
                    self._clear_cache()

                with staging_area(self._staging_dir) as stage:
                    outcome = self._try(step.strategy, stage)
                    self._record(step.strategy, outcome)
                    if not outcome.ok:
                        continue

                    assert outcome.output is not None
                    try:
                        published = publish(outcome.output, self._target, now=self._now)
                    except PublishFailed:
                        self._state = InstallState.FAILED
                        raise
                    self._state = InstallState.PUBLISHED

                finalized = self._finalize()
                return InstallResult(
                    target=published,
                    strategy=step.strategy,
                    attempts=self.attempts,
                    finalized=finalized,
                )

        self._state = InstallState.FAILED
        logger.error(
            "All %d install attempts failed; %s left untouched",
            len(self._attempts),
            self._target,
        )
        raise PackageInstallFailed(
            f"Could not materialize package after {len(self._attempts)} attempts",
            attempts=self.attempts,
        )

    # ── Internals ───────────────────────────────────────────────

    def _try(self, strategy: Strategy, stage: Path) -> MaterializeOutcome:
        index = len(self._attempts) + 1
        logger.info("Starting attempt %d with strategy %s", index, strategy.value)
        try:
            return self._materializer.materialize(strategy, stage)
        except Exception as e:
            logger.debug("Strategy %s raised", strategy.value, exc_info=True)
            return MaterializeOutcome.failure(f"{type(e).__name__}: {e}")

    def _record(self, strategy: Strategy, outcome: MaterializeOutcome) -> InstallAttempt:
        index = len(self._attempts) + 1
        ref = f"attempt-{index}"
        attempt = InstallAttempt(
            strategy=strategy,
            attempt_index=index,
            outcome="success" if outcome.ok else "failure",
            log_reference=f"{self._log_path}#{ref}" if self._log_path else ref,
            detail=outcome.detail,
        )
        self._attempts.append(attempt)

        if attempt.ok:
            logger.log(
                SUCCESS,
                "Install attempt #%d strategy=%s outcome=success",
                index,
                strategy.value,
            )
        else:
            logger.warning(
                "Install attempt #%d strategy=%s outcome=failure (%s)",
                index,
                strategy.value,
                outcome.detail or "no detail",
            )
        return attempt

    def _clear_cache(self) -> None:
        try:
            ok = self._materializer.clear_cache()
        except Exception as e:
            logger.warning("Clearing package cache raised: %s", e)
            return
        if not ok:
            logger.warning("Clearing package cache failed; continuing")

    def _finalize(self) -> bool:
        try:
            ok = self._materializer.finalize(self._target)
        except Exception as e:
            logger.warning("Finalize raised: %s", e)
            return False
        if not ok:
            logger.warning(
                "Finalize step returned non-zero in %s (package is installed; check the run log)",
                self._target,
            )
        return ok
