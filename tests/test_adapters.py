"""
Tests for runtime backends, the PHP/Node probes, and the command runner.
"""

import os
import sys

import pytest

from doubles import FakeRunner
from shopinstall.adapters.containers import docker as docker_mod
from shopinstall.adapters.containers import podman as podman_mod
from shopinstall.adapters.containers.docker import ColimaBackend, DockerBackend
from shopinstall.adapters.containers.podman import PodmanBackend
from shopinstall.adapters.languages.node import node_version
from shopinstall.adapters.languages.php import LocalToolchainBackend, parse_version
from shopinstall.adapters.shell.command import CommandResult, CommandRunner
from shopinstall.core.models.runtime import RuntimeMethod

DOCKER_INFO = ("docker", "info", "--format", "{{.ServerVersion}}")


# ── Docker ──────────────────────────────────────────────────────


class TestDockerBackend:
    def test_ready_when_daemon_answers(self):
        runner = FakeRunner(installed={"docker"}, responses={DOCKER_INFO: (0, "27.1.1")})
        assert DockerBackend(runner).is_ready() is True

    def test_not_ready_when_daemon_down(self):
        runner = FakeRunner(installed={"docker"}, responses={DOCKER_INFO: (1, "")})
        assert DockerBackend(runner).is_ready() is False

    def test_not_installed_never_runs_anything(self):
        runner = FakeRunner()
        backend = DockerBackend(runner)
        assert backend.is_ready() is False
        assert runner.calls == []

    def test_start_on_macos(self, monkeypatch):
        monkeypatch.setattr(docker_mod.platform, "system", lambda: "Darwin")
        assert DockerBackend(FakeRunner()).start_command() == ["open", "-a", "Docker"]

    def test_start_on_linux_as_root(self, monkeypatch):
        monkeypatch.setattr(docker_mod.platform, "system", lambda: "Linux")
        monkeypatch.setattr(os, "geteuid", lambda: 0, raising=False)
        runner = FakeRunner(installed={"systemctl"})
        assert DockerBackend(runner).start_command() == ["systemctl", "start", "docker"]

    def test_start_on_linux_uses_sudo(self, monkeypatch):
        monkeypatch.setattr(docker_mod.platform, "system", lambda: "Linux")
        monkeypatch.setattr(os, "geteuid", lambda: 1000, raising=False)
        runner = FakeRunner(installed={"systemctl"})
        assert DockerBackend(runner).start_command() == [
            "sudo", "-n", "systemctl", "start", "docker",
        ]

    def test_no_start_without_systemctl(self, monkeypatch):
        monkeypatch.setattr(docker_mod.platform, "system", lambda: "Linux")
        assert DockerBackend(FakeRunner()).start_command() is None

    def test_start_failure_raises(self, monkeypatch):
        monkeypatch.setattr(docker_mod.platform, "system", lambda: "Darwin")
        runner = FakeRunner(installed={"docker"}, responses={("open",): (1, "")})
        with pytest.raises(RuntimeError, match="failed"):
            DockerBackend(runner, max_wait=60).start()

    def test_candidate(self, monkeypatch):
        monkeypatch.setattr(docker_mod.platform, "system", lambda: "Darwin")
        runner = FakeRunner(installed={"docker"})
        cand = DockerBackend(runner, max_wait=60).candidate()
        assert cand.name == RuntimeMethod.CONTAINER_ENGINE
        assert cand.start_action is not None
        assert cand.max_wait == 60

    def test_candidate_without_cli_cannot_start(self, monkeypatch):
        monkeypatch.setattr(docker_mod.platform, "system", lambda: "Darwin")
        assert DockerBackend(FakeRunner(), max_wait=60).candidate().start_action is None

    def test_status(self, monkeypatch):
        monkeypatch.setattr(docker_mod.platform, "system", lambda: "Darwin")
        runner = FakeRunner(
            installed={"docker"},
            responses={
                DOCKER_INFO: (0, "27.1.1"),
                ("docker", "--version"): (0, "Docker version 27.1.1, build 6312585\n"),
            },
        )
        assert DockerBackend(runner).status() == {
            "method": "container-engine",
            "cli": "docker",
            "installed": True,
            "ready": True,
            "version": "Docker version 27.1.1, build 6312585",
            "can_start": True,
        }


class TestColimaBackend:
    def test_requires_docker_client(self):
        assert ColimaBackend(FakeRunner(installed={"colima"})).is_installed() is False
        assert ColimaBackend(FakeRunner(installed={"colima", "docker"})).is_installed() is True

    def test_ready(self):
        runner = FakeRunner(
            installed={"colima", "docker"}, responses={("colima", "status"): (0, "running")}
        )
        backend = ColimaBackend(runner)
        assert backend.is_ready() is True
        assert backend.start_command() == ["colima", "start"]
        assert backend.engine_cli == "docker"

    def test_start_timeout_is_not_a_failure(self, caplog):
        runner = FakeRunner(installed={"colima", "docker"}, timeouts=[("colima", "start")])
        backend = ColimaBackend(runner, max_wait=45)

        with caplog.at_level("WARNING"):
            backend.start()

        assert runner.calls == [["colima", "start"]]
        assert runner.timeouts_used == [45]
        assert "checking readiness anyway" in caplog.text

    def test_start_failure_still_raises(self):
        runner = FakeRunner(
            installed={"colima", "docker"}, responses={("colima", "start"): (1, "")}
        )
        with pytest.raises(RuntimeError, match="colima start failed"):
            ColimaBackend(runner, max_wait=45).start()


# ── Podman ──────────────────────────────────────────────────────


class TestPodmanBackend:
    def test_ready(self):
        runner = FakeRunner(
            installed={"podman"},
            responses={("podman", "info"): (0, "5.2.0")},
        )
        assert PodmanBackend(runner).is_ready() is True

    def test_start_on_linux(self, monkeypatch):
        monkeypatch.setattr(podman_mod.platform, "system", lambda: "Linux")
        runner = FakeRunner(installed={"podman", "systemctl"})
        assert PodmanBackend(runner).start_command() == [
            "systemctl", "--user", "start", "podman.socket",
        ]

    def test_start_on_macos(self, monkeypatch):
        monkeypatch.setattr(podman_mod.platform, "system", lambda: "Darwin")
        assert PodmanBackend(FakeRunner()).start_command() == ["podman", "machine", "start"]

    def test_engine_cli(self):
        assert PodmanBackend(FakeRunner()).engine_cli == "podman"


# ── Local toolchain ─────────────────────────────────────────────


class TestLocalToolchainBackend:
    def _runner(self, extra=None) -> FakeRunner:
        responses = {
            ("php", "-r"): (0, "8.3.4"),
            ("php", "-m"): (0, "[PHP Modules]\nCore\nintl\nzip\n\n[Zend Modules]\n"),
            ("composer", "--version"): (0, "Composer version 2.7.1 2024-02-09 15:26:28\n"),
        }
        responses.update(extra or {})
        return FakeRunner(installed={"php", "composer"}, responses=responses)

    def test_ready_iff_php_and_composer(self):
        assert LocalToolchainBackend(self._runner()).is_ready() is True
        assert LocalToolchainBackend(FakeRunner(installed={"php"})).is_ready() is False

    def test_never_startable(self):
        backend = LocalToolchainBackend(self._runner())
        assert backend.start_command() is None
        assert backend.candidate().start_action is None

    def test_versions(self):
        backend = LocalToolchainBackend(self._runner())
        assert backend.php_version() == "8.3.4"
        assert backend.composer_version() == "Composer version 2.7.1 2024-02-09 15:26:28"
        assert backend.version() == "PHP 8.3.4, Composer 2.7.1"

    def test_extensions(self):
        exts = LocalToolchainBackend(self._runner()).php_extensions()
        assert {"core", "intl", "zip"} <= exts
        assert "[php modules]" not in exts

    def test_php_failure(self):
        backend = LocalToolchainBackend(self._runner({("php", "-r"): (255, "")}))
        assert backend.php_version() is None
        assert backend.version() is None

    def test_symfony_cli(self):
        runner = FakeRunner(installed={"php", "composer", "symfony"})
        assert LocalToolchainBackend(runner).has_symfony_cli() is True
        assert LocalToolchainBackend(FakeRunner()).has_symfony_cli() is False


class TestParseVersion:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Composer version 2.7.1 2024-02-09", (2, 7, 1)),
            ("8.2", (8, 2, 0)),
            ("v20.11.0", (20, 11, 0)),
            ("no version here", None),
            (None, None),
            ("", None),
        ],
    )
    def test_parse(self, text, expected):
        assert parse_version(text) == expected


class TestNodeVersion:
    def test_strips_prefix(self):
        runner = FakeRunner(installed={"node"}, responses={("node", "--version"): (0, "v20.11.0\n")})
        assert node_version(runner) == "20.11.0"

    def test_missing(self):
        assert node_version(FakeRunner()) is None


# ── Command runner ──────────────────────────────────────────────


class TestCommandRunner:
    def test_success(self):
        result = CommandRunner().run([sys.executable, "-c", "print('hello')"])
        assert result.ok
        assert result.stdout.strip() == "hello"
        assert result.summary() == "ok"

    def test_non_zero_exit(self):
        result = CommandRunner().run(
            [sys.executable, "-c", "import sys; print('bad', file=sys.stderr); sys.exit(3)"]
        )
        assert not result.ok
        assert result.return_code == 3
        assert result.summary() == "exit 3: bad"

    def test_missing_binary(self):
        result = CommandRunner().run(["definitely-not-a-real-binary-xyz"])
        assert not result.ok
        assert "Cannot execute" in result.error

    def test_timeout(self):
        result = CommandRunner().run([sys.executable, "-c", "import time; time.sleep(5)"], timeout=1)
        assert not result.ok
        assert "timed out" in result.error
        assert result.timed_out is True

    def test_cwd_and_env(self, tmp_path):
        result = CommandRunner().run(
            [sys.executable, "-c", "import os; print(os.getcwd(), os.environ['SHOP_B'])"],
            cwd=tmp_path,
            env={"SHOP_B": "2"},
        )
        cwd, b = result.stdout.split()
        assert os.path.samefile(cwd, tmp_path)
        assert b == "2"

    def test_result_fields(self):
        result = CommandResult(argv=["x"], return_code=0)
        assert result.timed_out is False
        assert set(CommandResult.model_fields) == {
            "argv", "return_code", "stdout", "stderr", "duration_ms", "error", "timed_out",
        }

    def test_summary_prefers_error(self):
        result = CommandResult(argv=["x"], return_code=-1, error="Command timed out after 5s")
        assert result.summary() == "Command timed out after 5s"
