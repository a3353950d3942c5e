"""Unit tests for configuration loading."""

from __future__ import annotations

import subprocess
import typing as typ
from pathlib import Path

import pydantic
import pytest

from local_dev_cluster.config import Config, find_project_root, is_set, load_config
from local_dev_cluster.errors import ConfigError

if typ.TYPE_CHECKING:
    from conftest import SubprocessRecorder


class TestIsSet:
    """Tests for flag interpretation."""

    @pytest.mark.parametrize("value", ["true", "TRUE", "True", "1", "yes", "y", "on"])
    def test_truthy_values(self, value: str) -> None:
        """Recognised spellings should enable a flag."""
        assert is_set(value) is True

    @pytest.mark.parametrize("value", ["false", "0", "", "no", "maybe", None])
    def test_other_values_are_unset(self, value: str | None) -> None:
        """Anything else should leave the flag disabled."""
        assert is_set(value) is False


class TestConfig:
    """Tests for the Config settings model."""

    def test_defaults(self) -> None:
        """Config should default to a kind cluster with docker."""
        cfg = Config()

        assert cfg.ctr_cmd == "docker"
        assert cfg.cluster_provider == "kind"
        assert cfg.kepler_kubeconfig == "config-kepler"
        assert cfg.registry_port == 5001
        assert cfg.prometheus_enable is False
        assert cfg.grafana_enable is False
        assert cfg.tekton_enable is False
        assert cfg.libbpf_version == "v1.2.0"
        assert cfg.restart_container_runtime is False

    def test_is_frozen(self) -> None:
        """Config should be immutable."""
        cfg = Config()

        with pytest.raises(pydantic.ValidationError):
            cfg.ctr_cmd = "podman"  # type: ignore[misc]

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Environment variables should override defaults."""
        monkeypatch.setenv("CTR_CMD", "podman")
        monkeypatch.setenv("CLUSTER_PROVIDER", "microshift")
        monkeypatch.setenv("REGISTRY_PORT", "5555")
        monkeypatch.setenv("GRAFANA_ENABLE", "true")
        monkeypatch.setenv("RESTARTCONTAINERRUNTIME", "true")

        cfg = Config()

        assert cfg.ctr_cmd == "podman"
        assert cfg.cluster_provider == "microshift"
        assert cfg.registry_port == 5555
        assert cfg.grafana_enable is True
        assert cfg.restart_container_runtime is True

    def test_unrecognised_flag_is_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A malformed flag should not prevent loading."""
        monkeypatch.setenv("TEKTON_ENABLE", "sure")

        assert Config().tekton_enable is False

    def test_install_prometheus_follows_grafana(self) -> None:
        """Grafana alone should still require Prometheus."""
        assert Config(grafana_enable=True).install_prometheus is True
        assert Config(prometheus_enable=True).install_prometheus is True
        assert Config().install_prometheus is False

    def test_kubeconfig_paths(self, tmp_path: Path) -> None:
        """Derived kubeconfig paths should live under the root directory."""
        cfg = Config(kubeconfig_root_dir=tmp_path, kepler_kubeconfig="config-x")

        assert cfg.kubeconfig_path == tmp_path / "config-x"
        assert cfg.active_kubeconfig == tmp_path / "config"


class TestLoadConfig:
    """Tests for load_config precedence and path resolution."""

    def test_defaults_resolve_against_project_root(self, tmp_path: Path) -> None:
        """Directory defaults should be placed under the project root."""
        cfg = load_config(tmp_path)

        assert cfg.kubeconfig_root_dir == tmp_path / ".kube"
        assert cfg.tmp_dir == tmp_path / "tmp"

    def test_env_file_overrides_defaults(self, tmp_path: Path) -> None:
        """Values in .env should replace built-in defaults."""
        (tmp_path / ".env").write_text(
            "CTR_CMD=podman\nPROMETHEUS_ENABLE=true\nKUBECONFIG_ROOT_DIR=kube\n",
            encoding="utf-8",
        )

        cfg = load_config(tmp_path)

        assert cfg.ctr_cmd == "podman"
        assert cfg.prometheus_enable is True
        assert cfg.kubeconfig_root_dir == tmp_path / "kube"

    def test_environment_overrides_env_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Explicit environment variables should win over .env."""
        (tmp_path / ".env").write_text("CTR_CMD=podman\n", encoding="utf-8")
        monkeypatch.setenv("CTR_CMD", "nerdctl")

        assert load_config(tmp_path).ctr_cmd == "nerdctl"

    def test_absolute_paths_are_kept(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Absolute directories should not be re-rooted."""
        kube_root = tmp_path / "elsewhere"
        monkeypatch.setenv("KUBECONFIG_ROOT_DIR", str(kube_root))

        cfg = load_config(tmp_path / "project")

        assert cfg.kubeconfig_root_dir == kube_root


class TestFindProjectRoot:
    """Tests for git top-level discovery."""

    def test_returns_git_toplevel(
        self, subprocess_recorder: SubprocessRecorder, tmp_path: Path
    ) -> None:
        """Should use the directory reported by git."""
        subprocess_recorder.on(
            "git", "rev-parse", "--show-toplevel", stdout=f"{tmp_path}\n"
        )

        assert find_project_root(tmp_path / "sub") == tmp_path

    def test_falls_back_outside_git(
        self, subprocess_recorder: SubprocessRecorder, tmp_path: Path
    ) -> None:
        """Should return the start directory when git fails."""
        subprocess_recorder.on("git", "rev-parse", returncode=128)

        assert find_project_root(tmp_path) == tmp_path

    def test_falls_back_without_git(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """Should return the start directory when git is not installed."""

        def _missing(*_args: object, **_kwargs: object) -> subprocess.CompletedProcess:
            raise FileNotFoundError("git")

        monkeypatch.setattr("subprocess.run", _missing)

        assert find_project_root(tmp_path) == tmp_path


class TestConfigValidation:
    """Tests for rejecting out-of-range settings."""

    @pytest.mark.parametrize(
        ("name", "value"),
        [
            ("PROMETHEUS_REPLICAS", "0"),
            ("KIND_WORKER_NODES", "-1"),
            ("REGISTRY_PORT", "0"),
            ("REGISTRY_PORT", "not-a-port"),
        ],
    )
    def test_load_config_raises_config_error(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, name: str, value: str
    ) -> None:
        """Invalid values should surface as ConfigError naming the setting."""
        monkeypatch.setenv(name, value)

        with pytest.raises(ConfigError, match=name.lower()):
            load_config(tmp_path)

    def test_zero_workers_is_allowed(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A control-plane-only kind cluster is valid."""
        monkeypatch.setenv("KIND_WORKER_NODES", "0")

        assert load_config(tmp_path).kind_worker_nodes == 0
