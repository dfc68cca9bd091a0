"""
Tests for the runtime resolver — priority scan, explicit requests, fallback.
"""

import pytest

from doubles import FakeClock
from shopinstall.core.errors import InvalidConfiguration, RuntimeUnavailable
from shopinstall.core.models.config import InstallerConfig
from shopinstall.core.models.runtime import RuntimeCandidate, RuntimeMethod
from shopinstall.core.services.runtime_resolver import RuntimeResolver

DOCKER = RuntimeMethod.CONTAINER_ENGINE
COLIMA = RuntimeMethod.LIGHTWEIGHT_VM_RUNTIME
PODMAN = RuntimeMethod.ALTERNATE_CONTAINER_DAEMON
LOCAL = RuntimeMethod.LOCAL_TOOLCHAIN


class Probe:
    """Scripted backend: counts probes and starts."""

    def __init__(
        self,
        method: RuntimeMethod,
        *,
        ready: bool = False,
        startable: bool = False,
        ready_after_start: int | None = None,
        start_raises: bool = False,
        max_wait: float = 20.0,
        start_takes: float = 0.0,
        clock: FakeClock | None = None,
    ):
        self.method = method
        self.ready = ready
        self.startable = startable
        self.ready_after_start = ready_after_start
        self.start_raises = start_raises
        self.max_wait = max_wait
        self.start_takes = start_takes
        self.clock = clock
        self.probes = 0
        self.starts = 0
        self._since_start = 0

    def check(self) -> bool:
        self.probes += 1
        if self.ready:
            return True
        if self.starts and self.ready_after_start is not None:
            self._since_start += 1
            return self._since_start >= self.ready_after_start
        return False

    def start(self) -> None:
        self.starts += 1
        if self.clock is not None:
            # A blocking start command
            self.clock.now += self.start_takes
        if self.start_raises:
            raise RuntimeError("daemon refused to start")

    def candidate(self) -> RuntimeCandidate:
        return RuntimeCandidate(
            name=self.method,
            readiness_check=self.check,
            start_action=self.start if self.startable else None,
            max_wait=self.max_wait if self.startable else 0.0,
        )


def make_resolver(probes, clock: FakeClock, **kwargs) -> RuntimeResolver:
    return RuntimeResolver(
        [p.candidate() for p in probes],
        poll_interval=1.0,
        clock=clock,
        sleep=clock.sleep,
        **kwargs,
    )


# ── Priority scan ───────────────────────────────────────────────


class TestPriorityScan:
    def test_first_ready_wins(self, clock):
        docker = Probe(DOCKER, ready=True)
        colima, podman, local = Probe(COLIMA, ready=True), Probe(PODMAN), Probe(LOCAL, ready=True)
        result = make_resolver([docker, colima, podman, local], clock).resolve()

        assert result.method == DOCKER
        assert result.requested is None
        assert result.fell_back is False
        assert result.probed == (DOCKER,)

    def test_later_candidates_never_touched(self, clock):
        docker = Probe(DOCKER, startable=True, ready_after_start=2)
        colima = Probe(COLIMA, ready=True, startable=True)
        local = Probe(LOCAL, ready=True)
        result = make_resolver([docker, colima, local], clock).resolve()

        assert result.method == DOCKER
        assert colima.probes == 0 and colima.starts == 0
        assert local.probes == 0

    def test_skips_unready_candidate_after_one_probe(self, clock):
        docker = Probe(DOCKER, startable=True, start_raises=True)
        colima = Probe(COLIMA, ready=True)
        result = make_resolver([docker, colima], clock).resolve()

        assert result.method == COLIMA
        assert docker.probes == 1
        assert docker.starts == 1
        assert result.probed == (DOCKER, COLIMA)

    def test_candidate_without_start_action_probed_once(self, clock):
        docker = Probe(DOCKER)
        colima = Probe(COLIMA, ready=True)
        make_resolver([docker, colima], clock).resolve()
        assert docker.probes == 1
        assert clock.sleeps == []

    def test_local_toolchain_scanned_last(self, clock):
        # Listed first, still only tried after every container runtime
        local = Probe(LOCAL, ready=True)
        docker, podman = Probe(DOCKER), Probe(PODMAN)
        result = make_resolver([local, docker, podman], clock).resolve()

        assert result.method == LOCAL
        assert result.probed == (DOCKER, PODMAN, LOCAL)

    def test_local_fallback_disabled(self, clock):
        probes = [Probe(DOCKER), Probe(PODMAN), Probe(LOCAL, ready=True)]
        resolver = make_resolver(probes, clock, local_fallback_enabled=False)
        with pytest.raises(RuntimeUnavailable, match="fallback is disabled"):
            resolver.resolve()
        assert probes[2].probes == 0

    def test_nothing_ready(self, clock):
        probes = [Probe(DOCKER), Probe(COLIMA), Probe(LOCAL)]
        with pytest.raises(RuntimeUnavailable):
            make_resolver(probes, clock).resolve()
        assert all(p.probes == 1 for p in probes)

    def test_no_universal_fallback_candidate(self, clock):
        with pytest.raises(RuntimeUnavailable):
            make_resolver([Probe(DOCKER)], clock).resolve()

    def test_raising_readiness_check_means_not_ready(self, clock):
        def broken() -> bool:
            raise OSError("socket gone")

        resolver = RuntimeResolver(
            [
                RuntimeCandidate(DOCKER, broken),
                RuntimeCandidate(LOCAL, lambda: True),
            ],
            clock=clock,
            sleep=clock.sleep,
        )
        assert resolver.resolve().method == LOCAL


# ── Explicit requests ───────────────────────────────────────────


class TestExplicitRequest:
    def test_started_within_window(self, clock):
        docker = Probe(DOCKER, ready=True)
        colima = Probe(COLIMA, ready=True)
        podman = Probe(PODMAN, startable=True, ready_after_start=3)
        local = Probe(LOCAL, ready=True)
        result = make_resolver([docker, colima, podman, local], clock).resolve(PODMAN)

        assert result.method == PODMAN
        assert result.requested == PODMAN
        assert result.fell_back is False
        assert result.probed == (PODMAN,)
        assert podman.starts == 1
        assert docker.probes == colima.probes == local.probes == 0
        assert clock.now == pytest.approx(3.0)

    def test_accepts_alias(self, clock):
        result = make_resolver([Probe(PODMAN, ready=True), Probe(LOCAL)], clock).resolve("podman")
        assert result.method == PODMAN

    def test_unready_falls_back_to_scan(self, clock):
        podman = Probe(PODMAN, startable=True)
        docker = Probe(DOCKER, ready=True)
        result = make_resolver([docker, podman, Probe(LOCAL)], clock).resolve(PODMAN)

        assert result.method == DOCKER
        assert result.requested == PODMAN
        assert result.fell_back is True
        assert result.probed == (PODMAN, DOCKER)
        # The scan does not revisit the request
        assert podman.starts == 1

    def test_unready_without_fallback_fails_fast(self, clock):
        podman = Probe(PODMAN, startable=True)
        docker = Probe(DOCKER, ready=True)
        local = Probe(LOCAL, ready=True)
        resolver = make_resolver([docker, podman, local], clock, fallback_enabled=False)

        with pytest.raises(RuntimeUnavailable, match="alternate-container-daemon"):
            resolver.resolve(PODMAN)
        assert docker.probes == 0
        assert local.probes == 0

    def test_explicit_local_toolchain(self, clock):
        docker = Probe(DOCKER, ready=True)
        local = Probe(LOCAL, ready=True)
        result = make_resolver([docker, local], clock).resolve(LOCAL)
        assert result.method == LOCAL
        assert docker.probes == 0

    def test_explicit_local_not_ready_is_not_retried(self, clock):
        local = Probe(LOCAL)
        docker = Probe(DOCKER)
        with pytest.raises(RuntimeUnavailable):
            make_resolver([docker, local], clock).resolve(LOCAL)
        assert local.probes == 1
        assert docker.probes == 1

    def test_unknown_method(self, clock):
        resolver = make_resolver([Probe(DOCKER), Probe(LOCAL)], clock)
        with pytest.raises(InvalidConfiguration, match="Unknown install method"):
            resolver.resolve("kubernetes")

    def test_method_without_candidate(self, clock):
        resolver = make_resolver([Probe(DOCKER), Probe(LOCAL)], clock)
        with pytest.raises(InvalidConfiguration, match="not available"):
            resolver.resolve(COLIMA)

    def test_empty_request_means_auto(self, clock):
        result = make_resolver([Probe(DOCKER, ready=True), Probe(LOCAL)], clock).resolve("")
        assert result.requested is None


# ── Termination and polling ─────────────────────────────────────


class TestTermination:
    def test_bounded_by_sum_of_wait_windows(self, clock):
        probes = [
            Probe(DOCKER, startable=True, max_wait=60.0),
            Probe(COLIMA, startable=True, max_wait=45.0),
            Probe(PODMAN, startable=True, max_wait=30.0),
            Probe(LOCAL),
        ]
        resolver = make_resolver(probes, clock)
        with pytest.raises(RuntimeUnavailable):
            resolver.resolve()

        assert resolver.max_resolution_time() == 135.0
        assert clock.now <= resolver.max_resolution_time()
        assert all(p.starts == 1 for p in probes[:3])

    def test_terminates_when_clock_never_advances(self):
        docker = Probe(DOCKER, startable=True)
        resolver = RuntimeResolver(
            [docker.candidate(), Probe(LOCAL, ready=True).candidate()],
            poll_interval=1.0,
            clock=lambda: 0.0,
            sleep=lambda _: None,
        )
        assert resolver.resolve().method == LOCAL
        # One initial probe plus a capped number of polls
        assert docker.probes <= 1 + 21

    def test_sleeps_never_exceed_poll_interval(self, clock):
        docker = Probe(DOCKER, startable=True, max_wait=25.5)
        with pytest.raises(RuntimeUnavailable):
            make_resolver([docker], clock).resolve()
        assert clock.sleeps
        assert max(clock.sleeps) <= 1.0
        assert sum(clock.sleeps) == pytest.approx(25.5)

    def test_start_failure_skips_polling(self, clock):
        docker = Probe(DOCKER, startable=True, start_raises=True)
        make_resolver([docker, Probe(LOCAL, ready=True)], clock).resolve()
        assert clock.sleeps == []

    def test_blocking_start_counts_against_window(self, clock):
        colima = Probe(
            COLIMA, startable=True, max_wait=45.0, start_takes=30.0, clock=clock,
            ready_after_start=5,
        )
        result = make_resolver([colima, Probe(LOCAL, ready=True)], clock).resolve()

        assert result.method == COLIMA
        assert clock.now == pytest.approx(35.0)
        assert sum(clock.sleeps) == pytest.approx(5.0)

    def test_start_outlasting_window_still_checked(self, clock):
        colima = Probe(
            COLIMA, startable=True, max_wait=45.0, start_takes=45.0, clock=clock,
            ready_after_start=1,
        )
        result = make_resolver([colima, Probe(LOCAL)], clock).resolve()

        assert result.method == COLIMA
        assert clock.sleeps == []
        assert colima.probes == 2

    def test_slow_start_polls_only_what_is_left(self, clock):
        docker = Probe(DOCKER, startable=True, max_wait=60.0, start_takes=50.0, clock=clock)
        result = make_resolver([docker, Probe(LOCAL, ready=True)], clock).resolve()

        assert result.method == LOCAL
        assert clock.now == pytest.approx(60.0)
        assert sum(clock.sleeps) == pytest.approx(10.0)


# ── Construction ────────────────────────────────────────────────


class TestConstruction:
    def test_requires_candidates(self):
        with pytest.raises(InvalidConfiguration):
            RuntimeResolver([])

    def test_rejects_duplicates(self):
        cands = [RuntimeCandidate(DOCKER, lambda: True), RuntimeCandidate(DOCKER, lambda: True)]
        with pytest.raises(InvalidConfiguration, match="Duplicate"):
            RuntimeResolver(cands)

    def test_rejects_non_positive_poll_interval(self):
        with pytest.raises(InvalidConfiguration):
            RuntimeResolver([RuntimeCandidate(LOCAL, lambda: True)], poll_interval=0)

    def test_rejects_short_wait_window(self):
        cand = RuntimeCandidate(DOCKER, lambda: False, start_action=lambda: None, max_wait=10.0)
        with pytest.raises(InvalidConfiguration, match="poll_interval"):
            RuntimeResolver([cand], poll_interval=1.0)

    def test_wait_ratio_ignored_without_start_action(self):
        resolver = RuntimeResolver([RuntimeCandidate(LOCAL, lambda: True)], poll_interval=5.0)
        assert resolver.max_resolution_time() == 0

    def test_from_config(self, clock):
        config = InstallerConfig(
            fallback_enabled=False,
            poll_interval=2.0,
            max_wait={"alternate-container-daemon": 40.0},
        )
        podman = Probe(PODMAN, startable=True, max_wait=40.0)
        docker = Probe(DOCKER, ready=True)
        resolver = RuntimeResolver.from_config(
            config, [docker.candidate(), podman.candidate()], clock=clock, sleep=clock.sleep
        )
        with pytest.raises(RuntimeUnavailable):
            resolver.resolve(PODMAN)
        assert max(clock.sleeps) == 2.0
        assert docker.probes == 0
