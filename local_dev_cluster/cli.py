"""Command-line interface for the local development cluster.

Usage:
    local-dev-cluster up                # Create the cluster and add-ons
    local-dev-cluster down              # Delete the cluster
    local-dev-cluster restart           # down (errors ignored), then up
    local-dev-cluster prerequisites     # Kernel headers and libbpf
    local-dev-cluster containerruntime  # Install Docker

Any other single word is treated as ``up`` after a warning.

Environment variables (or the calling project's ``.env`` file):
    CLUSTER_PROVIDER    - kind or microshift (default: kind)
    CTR_CMD             - container runtime command (default: docker)
    KUBECONFIG_ROOT_DIR - managed kubeconfig directory (default: .kube)
    PROMETHEUS_ENABLE, GRAFANA_ENABLE, TEKTON_ENABLE - optional add-ons
"""

from __future__ import annotations

import subprocess
import sys
import typing as typ

from cyclopts import App

from local_dev_cluster import __version__
from local_dev_cluster.config import find_project_root, load_config
from local_dev_cluster.errors import LocalClusterError
from local_dev_cluster.host import (
    install_container_runtime,
    install_libbpf,
    install_linux_headers,
    require_root_access,
)
from local_dev_cluster.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_warning,
)
from local_dev_cluster.orchestration import (
    cluster_down,
    cluster_restart,
    cluster_up,
    print_config,
)
from local_dev_cluster.providers import load_provider

if typ.TYPE_CHECKING:
    from local_dev_cluster.config import Config
    from local_dev_cluster.providers import ClusterProvider

logger = get_logger(__name__)

app = App(
    name="local-dev-cluster",
    help="Bootstrap a local development Kubernetes cluster",
    version=__version__,
)


def _load_config() -> Config:
    cfg = load_config(find_project_root())
    _level, invalid = configure_logging(cfg.log_level)
    if invalid:
        log_warning(logger, "Invalid LOG_LEVEL %r; using INFO", cfg.log_level)
    return cfg


def _cluster_context() -> tuple[Config, ClusterProvider]:
    """Load configuration, resolve the provider and print the banner."""
    cfg = _load_config()
    provider = load_provider(cfg.cluster_provider, cfg)
    print_config(cfg, provider)
    return cfg, provider


@app.command
def prerequisites() -> int:
    """Install kernel headers and build libbpf on this host."""
    cfg = _load_config()
    require_root_access()
    install_linux_headers()
    install_libbpf(cfg)
    return 0


@app.command
def containerruntime() -> int:
    """Install Docker with the host's package manager."""
    cfg = _load_config()
    require_root_access()
    install_container_runtime(cfg)
    return 0


@app.command
def up() -> int:
    """Create the cluster, merge kubeconfigs and deploy enabled add-ons."""
    cfg, provider = _cluster_context()
    cluster_up(cfg, provider)
    return 0


@app.command
def down() -> int:
    """Delete the cluster and its kubeconfig copy."""
    cfg, provider = _cluster_context()
    cluster_down(cfg, provider)
    return 0


@app.command
def restart() -> int:
    """Delete the cluster (ignoring failures) and create it again."""
    cfg, provider = _cluster_context()
    cluster_restart(cfg, provider)
    return 0


@app.default
def fallback(command: str | None = None) -> int:
    """Treat an unrecognised command as ``up``.

    Args:
        command: The unrecognised command word.

    """
    if command is None:
        app.help_print()
        return 2

    log_warning(logger, "unknown command %s; bringing a cluster up", command)
    return up()


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI.

    Returns:
        0 on success, the failing tool's exit status for external command
        failures, and 1 for timeouts, missing files or tools, and
        configuration or readiness errors.

    """
    try:
        result = app(argv)
    except subprocess.CalledProcessError as e:
        cmd = e.cmd if isinstance(e.cmd, str) else " ".join(map(str, e.cmd))
        log_error(logger, "Command failed with exit status %d: %s", e.returncode, cmd)
        return e.returncode or 1
    except subprocess.SubprocessError as e:
        log_error(logger, "Command did not complete: %s", e)
        return 1
    except LocalClusterError as e:
        log_error(logger, "%s", e)
        return 1
    except OSError as e:
        log_error(logger, "%s", e)
        return 1
    return result if isinstance(result, int) else 0


if __name__ == "__main__":
    sys.exit(main())
