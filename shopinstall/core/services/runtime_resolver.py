"""
Runtime resolver — pick one ready backend from a prioritized list.

Resolution order:
  1. The explicitly requested method (if any): probe, start once,
     poll until its wait window closes.
  2. If that fails and fallback is enabled, every other candidate in
     priority order, with the same probe → start → poll sequence.
     The first ready candidate wins; later ones are never touched.
  3. The universal fallback (local toolchain), always scanned last.

Probing and starting are strictly sequential: two daemons starting at
once on the same host can fight over sockets and ports.  Failures of
individual candidates are logged and swallowed; only the end of the
line raises ``RuntimeUnavailable``.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, Sequence

from shopinstall.core.errors import InvalidConfiguration, RuntimeUnavailable
from shopinstall.core.models.config import MIN_WAIT_TO_POLL_RATIO, InstallerConfig
from shopinstall.core.models.runtime import (
    UNIVERSAL_FALLBACK,
    ResolutionResult,
    RuntimeCandidate,
    RuntimeMethod,
)
from shopinstall.core.observability.logging_config import log_success

logger = logging.getLogger(__name__)


class RuntimeResolver:
    """Resolve a ready runtime method.

    Args:
        candidates: Backends in default priority order.
        poll_interval: Seconds between readiness probes after a start.
        fallback_enabled: Whether an unready explicit request may fall
            through to the priority scan.
        local_fallback_enabled: Whether the universal fallback may be
            selected once every other candidate is exhausted.
        clock: Monotonic clock (injectable for tests).
        sleep: Sleep function (injectable for tests).
    """

    def __init__(
        self,
        candidates: Sequence[RuntimeCandidate],
        *,
        poll_interval: float = 1.0,
        fallback_enabled: bool = True,
        local_fallback_enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not candidates:
            raise InvalidConfiguration("At least one runtime candidate is required")
        if poll_interval <= 0:
            raise InvalidConfiguration("poll_interval must be positive")

        by_name: dict[RuntimeMethod, RuntimeCandidate] = {}
        for cand in candidates:
            if cand.name in by_name:
                raise InvalidConfiguration(f"Duplicate runtime candidate: {cand.name.value}")
            if cand.start_action is not None and (
                cand.max_wait < poll_interval * MIN_WAIT_TO_POLL_RATIO
            ):
                raise InvalidConfiguration(
                    f"max_wait for {cand.name.value} ({cand.max_wait}s) must be at least "
                    f"{MIN_WAIT_TO_POLL_RATIO}× poll_interval ({poll_interval}s)"
                )
            by_name[cand.name] = cand

        self._candidates = list(candidates)
        self._by_name = by_name
        self._poll_interval = poll_interval
        self._fallback_enabled = fallback_enabled
        self._local_fallback_enabled = local_fallback_enabled
        self._clock = clock
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        config: InstallerConfig,
        candidates: Sequence[RuntimeCandidate],
        **kwargs,
    ) -> RuntimeResolver:
        return cls(
            candidates,
            poll_interval=config.poll_interval,
            fallback_enabled=config.fallback_enabled,
            local_fallback_enabled=config.local_fallback_enabled,
            **kwargs,
        )

    @property
    def candidates(self) -> list[RuntimeCandidate]:
        return list(self._candidates)

    def max_resolution_time(self) -> float:
        """Upper bound on time spent waiting for start actions."""
        return sum(c.max_wait for c in self._candidates if c.start_action is not None)

    def resolve(self, requested: str | RuntimeMethod | None = None) -> ResolutionResult:
        """Return a ready method or raise.

        Raises:
            InvalidConfiguration: ``requested`` names an unknown method or
                one with no candidate.
            RuntimeUnavailable: Nothing, fallback included, became ready.
        """
        probed: list[RuntimeMethod] = []
        tried: set[RuntimeMethod] = set()
        req: RuntimeMethod | None = None

        if requested is not None and requested != "":
            req = RuntimeMethod.parse(requested)
            cand = self._by_name.get(req)
            if cand is None:
                raise InvalidConfiguration(
                    f"Requested method '{req.value}' is not available on this host"
                )

            logger.info("Requested method: %s", req.value)
            probed.append(req)
            tried.add(req)
            if self._bring_up(cand):
                return self._result(req, req, probed)

            if not self._fallback_enabled:
                raise RuntimeUnavailable(
                    f"Requested method '{req.value}' is not ready and fallback is disabled"
                )
            logger.warning(
                "Requested method %s is not ready — falling back to automatic detection",
                req.value,
            )

        for cand in self._candidates:
            if cand.name == UNIVERSAL_FALLBACK or cand.name in tried:
                continue
            probed.append(cand.name)
            tried.add(cand.name)
            if self._bring_up(cand):
                return self._result(cand.name, req, probed)

        return self._universal_fallback(req, probed, tried)

    # ── Internals ───────────────────────────────────────────────

    def _universal_fallback(
        self,
        req: RuntimeMethod | None,
        probed: list[RuntimeMethod],
        tried: set[RuntimeMethod],
    ) -> ResolutionResult:
        fallback = self._by_name.get(UNIVERSAL_FALLBACK)
        if fallback is None or fallback.name in tried:
            raise RuntimeUnavailable("No runtime candidate could be made ready")
        if not self._local_fallback_enabled:
            raise RuntimeUnavailable(
                "No container runtime could be made ready and the "
                f"{UNIVERSAL_FALLBACK.value} fallback is disabled"
            )

        logger.info("All container runtimes exhausted — trying %s", UNIVERSAL_FALLBACK.value)
        probed.append(fallback.name)
        if self._bring_up(fallback):
            return self._result(fallback.name, req, probed)
        raise RuntimeUnavailable(
            f"No runtime could be made ready; {UNIVERSAL_FALLBACK.value} "
            "is missing required tools (php, composer)"
        )

    def _result(
        self,
        method: RuntimeMethod,
        req: RuntimeMethod | None,
        probed: list[RuntimeMethod],
    ) -> ResolutionResult:
        log_success(logger, "Using install method: %s", method.value)
        return ResolutionResult(
            method=method,
            requested=req,
            fell_back=req is not None and method != req,
            probed=tuple(probed),
        )

    def _bring_up(self, cand: RuntimeCandidate) -> bool:
        """Probe, then start and poll if needed.  Never raises."""
        name = cand.name.value
        logger.info("Checking %s...", name)
        if self._is_ready(cand):
            logger.info("%s is ready", name)
            return True

        if cand.start_action is None:
            logger.info("%s is not ready and cannot be started", name)
            return False

        logger.info("%s is not ready, starting it (waiting up to %ss)", name, cand.max_wait)
        # The start command runs on the same clock as the polling that follows
        deadline = self._clock() + cand.max_wait
        try:
            cand.start_action()
        except Exception as e:
            logger.warning("Starting %s failed: %s", name, e)
            return False

        if self._poll_until_ready(cand, deadline):
            logger.info("%s became ready", name)
            return True

        logger.warning("%s not ready after %ss", name, cand.max_wait)
        return False

    def _poll_until_ready(self, cand: RuntimeCandidate, deadline: float) -> bool:
        if deadline - self._clock() <= 0:
            # A blocking start used the whole window
            return self._is_ready(cand)
        # Hard cap on probes so a clock that never advances cannot hang us
        max_polls = math.ceil(cand.max_wait / self._poll_interval) + 1
        for _ in range(max_polls):
            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            self._sleep(min(self._poll_interval, remaining))
            if self._is_ready(cand):
                return True
        return False

    def _is_ready(self, cand: RuntimeCandidate) -> bool:
        try:
            return bool(cand.readiness_check())
        except Exception as e:
            logger.debug("Readiness check for %s raised: %s", cand.name.value, e)
            return False
