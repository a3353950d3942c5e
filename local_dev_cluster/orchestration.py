"""High-level cluster lifecycle orchestration for CLI commands."""

from __future__ import annotations

import os
import subprocess
import typing as typ

from local_dev_cluster.errors import LocalClusterError, require_exe
from local_dev_cluster.k8s import kubeconfig_env
from local_dev_cluster.kubeconfig import install_kubeconfig, merge_kubeconfigs
from local_dev_cluster.logging import get_logger, log_info, log_warning
from local_dev_cluster.monitoring import deploy_prometheus_operator
from local_dev_cluster.tekton import deploy_tekton

if typ.TYPE_CHECKING:
    from local_dev_cluster.config import Config
    from local_dev_cluster.providers import ClusterProvider

logger = get_logger(__name__)

_RULE = "━" * 50
_GRAFANA_NEEDS_PROMETHEUS = (
    "false  👈 but will install prometheus because grafana is enabled"
)


def _flag(value: bool) -> str:  # noqa: FBT001
    return "true" if value else "false"


def print_config(cfg: Config, provider: ClusterProvider) -> str:
    """Render the configuration banner shown before every cluster command.

    Args:
        cfg: Run configuration.
        provider: Active provider, whose own summary is appended.

    Returns:
        The banner text (also printed to stdout).

    """
    prom_install_msg = _flag(cfg.prometheus_enable)
    if not cfg.prometheus_enable and cfg.grafana_enable:
        prom_install_msg = _GRAFANA_NEEDS_PROMETHEUS

    banner = "\n".join(
        [
            "",
            "         Configuration",
            _RULE,
            f"cluster provider   : {provider.name}",
            f"kubeconfig file    : {cfg.kubeconfig_path}",
            "",
            f"container runtime  : {cfg.ctr_cmd}",
            f"registry port      : {cfg.registry_port}",
            "",
            "Monitoring",
            f"  * Install Prometheus : {prom_install_msg}",
            f"  * Install Grafana    : {_flag(cfg.grafana_enable)}",
            "",
            "Tekton",
            f"  * Install Tekton : {_flag(cfg.tekton_enable)}",
            "",
            provider.print_config(),
            _RULE,
            "",
        ]
    )
    print(banner)
    return banner


def _deploy_addons(cfg: Config, env: dict[str, str]) -> None:
    """Install the optional monitoring and CI add-ons."""
    if cfg.install_prometheus:
        deploy_prometheus_operator(cfg, env)

    if cfg.tekton_enable:
        deploy_tekton(cfg, env)


def cluster_up(cfg: Config, provider: ClusterProvider) -> None:
    """Bring the cluster up and publish its merged kubeconfig.

    Runs the provider's bring-up, moves its kubeconfig into the managed
    directory, merges every kubeconfig there into ``<root>/config``, exports
    that file as ``KUBECONFIG`` and finally deploys enabled add-ons.

    Args:
        cfg: Run configuration.
        provider: Provider that creates the cluster.

    Raises:
        subprocess.CalledProcessError: If any external tool fails.
        LocalClusterError: If the kubeconfig cannot be collected or an
            add-on does not become ready.

    """
    require_exe("kubectl")
    provider.up()

    log_info(
        logger, "Copying %s kubeconfig to %s", provider.name, cfg.kubeconfig_path
    )
    install_kubeconfig(provider.kubeconfig(), cfg.kubeconfig_path)
    merged = merge_kubeconfigs(cfg.kubeconfig_dir)

    os.environ["KUBECONFIG"] = str(merged)
    _deploy_addons(cfg, kubeconfig_env(merged))


def cluster_down(cfg: Config, provider: ClusterProvider) -> None:
    """Tear the cluster down and drop its kubeconfig copy.

    Provider failures propagate; the kubeconfig copy is only removed after a
    successful tear-down.
    """
    provider.down()
    cfg.kubeconfig_path.unlink(missing_ok=True)


def cluster_restart(cfg: Config, provider: ClusterProvider) -> None:
    """Tear down (ignoring failures) and bring the cluster back up."""
    try:
        cluster_down(cfg, provider)
    except (subprocess.SubprocessError, LocalClusterError, OSError) as e:
        log_warning(logger, "Ignoring tear-down failure during restart: %s", e)

    cluster_up(cfg, provider)
