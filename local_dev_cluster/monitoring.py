"""Prometheus and Grafana deployment via kube-prometheus.

The kube-prometheus manifests are checked out at a pinned tag, the Prometheus
replica count is patched, and a subset of the manifests is applied: the
operator, Prometheus itself and kube-state-metrics, plus Grafana when it is
enabled.

Example:
    >>> env = kubeconfig_env(cfg.active_kubeconfig)
    >>> deploy_prometheus_operator(cfg, env)

"""

from __future__ import annotations

import shutil
import subprocess
import typing as typ

from ruamel.yaml import YAML

from local_dev_cluster.k8s import rollout_ns_status, wait_for_crds_established
from local_dev_cluster.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from pathlib import Path

    from local_dev_cluster.config import Config

logger = get_logger(__name__)

KUBE_PROMETHEUS_REPO = "https://github.com/prometheus-operator/kube-prometheus.git"
MONITORING_NAMESPACE = "monitoring"

_CORE_PREFIXES = ("prometheusOperator-", "prometheus-", "kubeStateMetrics-")
_GRAFANA_PREFIX = "grafana-"


def clone_kube_prometheus(version: str, dest: Path) -> Path:
    """Shallow-clone kube-prometheus at ``version`` into ``dest``.

    Any previous checkout at ``dest`` is removed first.

    Returns:
        The ``manifests`` directory of the checkout.

    """
    if dest.exists():
        shutil.rmtree(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    # S603/S607: git via PATH is standard; version from Config
    subprocess.run(  # noqa: S603
        [  # noqa: S607
            "git",
            "clone",
            "-b",
            version,
            "--depth",
            "1",
            KUBE_PROMETHEUS_REPO,
            str(dest),
        ],
        check=True,
        timeout=300,
    )
    return dest / "manifests"


def set_prometheus_replicas(manifests_dir: Path, replicas: int) -> None:
    """Patch ``spec.replicas`` of the Prometheus custom resource in place.

    Uses a round-trip loader so comments and key order in the upstream
    manifest survive the edit.

    Raises:
        ValueError: If replicas is less than 1.

    """
    if replicas < 1:
        msg = f"replicas must be >= 1, got {replicas}"
        raise ValueError(msg)

    path = manifests_dir / "prometheus-prometheus.yaml"
    yaml = YAML()
    yaml.preserve_quotes = True
    document = yaml.load(path.read_text(encoding="utf-8"))
    document["spec"]["replicas"] = replicas
    with path.open("w", encoding="utf-8") as stream:
        yaml.dump(document, stream)


def select_manifests(manifests_dir: Path, *, grafana: bool) -> list[Path]:
    """Return the kube-prometheus manifests to apply, sorted by name."""
    prefixes = _CORE_PREFIXES + ((_GRAFANA_PREFIX,) if grafana else ())
    return sorted(
        path
        for path in manifests_dir.glob("*.yaml")
        if path.name.startswith(prefixes)
    )


def _kubectl_apply(path: Path, env: dict[str, str], *, server_side: bool) -> None:
    cmd = ["kubectl", "apply"]
    if server_side:
        cmd.append("--server-side")
    cmd.extend(["-f", str(path)])
    # S603: kubectl via PATH is standard; paths from the kube-prometheus checkout
    subprocess.run(cmd, check=True, env=env, timeout=300)  # noqa: S603


def deploy_prometheus_operator(cfg: Config, env: dict[str, str]) -> None:
    """Install the Prometheus operator stack into the ``monitoring`` namespace.

    Args:
        cfg: Configuration with the kube-prometheus version, replica count,
            Grafana flag and scratch directory.
        env: Environment dict with KUBECONFIG set.

    Raises:
        subprocess.CalledProcessError: If git or kubectl fails.
        RolloutError: If the monitoring workloads do not become ready.

    """
    checkout = cfg.work_dir / "kube-prometheus"
    log_info(
        logger, "Fetching kube-prometheus %s", cfg.prometheus_operator_version
    )
    manifests = clone_kube_prometheus(cfg.prometheus_operator_version, checkout)
    set_prometheus_replicas(manifests, cfg.prometheus_replicas)

    log_info(logger, "Installing Prometheus operator CRDs...")
    _kubectl_apply(manifests / "setup", env, server_side=True)
    wait_for_crds_established(env)

    for manifest in select_manifests(manifests, grafana=cfg.grafana_enable):
        _kubectl_apply(manifest, env, server_side=False)

    log_info(logger, "Waiting for monitoring stack to be ready...")
    rollout_ns_status(MONITORING_NAMESPACE, env)
    shutil.rmtree(checkout)
