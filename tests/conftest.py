"""Pytest configuration for local_dev_cluster tests.

Provides a configuration rooted in a temporary directory, a recording fake
provider, and a scriptable ``subprocess.run`` double. The cmd-mox plugin is
enabled for tests that mock a single external executable.
"""

from __future__ import annotations

import dataclasses
import os
import subprocess
import sys
import typing as typ
from pathlib import Path

import pytest

_ROOT_DIR = Path(__file__).resolve().parents[1]
if str(_ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(_ROOT_DIR))

from local_dev_cluster.config import Config  # noqa: E402

pytest_plugins = ("cmd_mox.pytest_plugin",)

_CONFIG_ENV_VARS = (
    "CTR_CMD",
    "CLUSTER_PROVIDER",
    "KUBECONFIG_ROOT_DIR",
    "KEPLER_KUBECONFIG",
    "REGISTRY_PORT",
    "PROMETHEUS_ENABLE",
    "GRAFANA_ENABLE",
    "TEKTON_ENABLE",
    "LIBBPF_VERSION",
    "RESTARTCONTAINERRUNTIME",
    "PROMETHEUS_OPERATOR_VERSION",
    "PROMETHEUS_REPLICAS",
    "TEKTON_RELEASE_URL",
    "KIND_CLUSTER_NAME",
    "KIND_WORKER_NODES",
    "KIND_IMAGE",
    "MICROSHIFT_IMAGE",
    "MICROSHIFT_CONTAINER",
    "TMP_DIR",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's shell configuration out of every test."""
    for name in _CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("KUBECONFIG", os.environ.get("KUBECONFIG", ""))


@pytest.fixture
def cfg(tmp_path: Path) -> Config:
    """Configuration with every directory under ``tmp_path``."""
    return Config(
        kubeconfig_root_dir=tmp_path / ".kube",
        tmp_dir=tmp_path / "tmp",
    )


@dataclasses.dataclass(slots=True)
class FakeProvider:
    """Recording provider that writes a kubeconfig on ``up``."""

    work_dir: Path
    name: str = "fake"
    fail_up: bool = False
    fail_down: bool = False
    calls: list[str] = dataclasses.field(default_factory=list)

    def up(self) -> None:
        self.calls.append("up")
        if self.fail_up:
            raise subprocess.CalledProcessError(2, ["fake", "up"])
        self.work_dir.mkdir(parents=True, exist_ok=True)
        self.kubeconfig().write_text("kind: Config\n", encoding="utf-8")

    def down(self) -> None:
        self.calls.append("down")
        if self.fail_down:
            raise subprocess.CalledProcessError(1, ["fake", "down"])

    def kubeconfig(self) -> Path:
        return self.work_dir / "kubeconfig"

    def print_config(self) -> str:
        return "fake provider"


@pytest.fixture
def fake_provider(tmp_path: Path) -> FakeProvider:
    """Provide a recording provider rooted in ``tmp_path``."""
    return FakeProvider(work_dir=tmp_path / "provider")


@dataclasses.dataclass(slots=True)
class RecordedCall:
    """One captured ``subprocess.run`` invocation."""

    args: tuple[str, ...]
    kwargs: dict[str, object]


Handler = typ.Callable[
    [list[str], dict[str, object]], tuple[str, int] | tuple[str, int, str]
]


@dataclasses.dataclass(slots=True)
class SubprocessRecorder:
    """Scriptable ``subprocess.run`` double.

    Handlers are matched by command prefix, longest prefix first. A handler
    returns ``(stdout, returncode)`` or ``(stdout, returncode, stderr)``;
    unmatched commands succeed with no output.
    """

    calls: list[RecordedCall] = dataclasses.field(default_factory=list)
    handlers: dict[tuple[str, ...], Handler] = dataclasses.field(
        default_factory=dict
    )

    def on(
        self, *prefix: str, stdout: str = "", returncode: int = 0, stderr: str = ""
    ) -> None:
        """Return fixed output for commands starting with ``prefix``."""
        self.handlers[prefix] = lambda _args, _kwargs: (stdout, returncode, stderr)

    def on_call(self, *prefix: str, handler: Handler) -> None:
        """Route commands starting with ``prefix`` to ``handler``."""
        self.handlers[prefix] = handler

    @property
    def commands(self) -> list[tuple[str, ...]]:
        return [call.args for call in self.calls]

    def has_call(self, *prefix: str) -> bool:
        return any(args[: len(prefix)] == prefix for args in self.commands)

    def index_of(self, *prefix: str) -> int:
        return next(
            i for i, args in enumerate(self.commands) if args[: len(prefix)] == prefix
        )

    def __call__(
        self, args: list[str], **kwargs: object
    ) -> subprocess.CompletedProcess[str]:
        self.calls.append(RecordedCall(tuple(args), kwargs))
        handler = None
        for prefix in sorted(self.handlers, key=len, reverse=True):
            if tuple(args[: len(prefix)]) == prefix:
                handler = self.handlers[prefix]
                break
        stdout, returncode, *rest = handler(args, kwargs) if handler else ("", 0)
        stderr = rest[0] if rest else ""
        if kwargs.get("check") and returncode != 0:
            raise subprocess.CalledProcessError(returncode, args, stdout, stderr)
        return subprocess.CompletedProcess(
            args=args, returncode=returncode, stdout=stdout, stderr=stderr
        )


@pytest.fixture
def subprocess_recorder(monkeypatch: pytest.MonkeyPatch) -> SubprocessRecorder:
    """Replace ``subprocess.run`` with a recorder and report every tool present."""
    recorder = SubprocessRecorder()
    monkeypatch.setattr("subprocess.run", recorder)
    monkeypatch.setattr("shutil.which", lambda name: f"/usr/bin/{name}")
    return recorder
