"""kind (Kubernetes in Docker) cluster provider.

Creates a kind cluster wired to a local image registry container so images
pushed to ``localhost:<REGISTRY_PORT>`` are pullable from inside the cluster.

Settings used from :class:`~local_dev_cluster.config.Config`:

- ``KIND_CLUSTER_NAME`` - cluster name (default: kind)
- ``KIND_WORKER_NODES`` - number of worker nodes (default: 1)
- ``KIND_IMAGE``        - node image; kind's default when unset
- ``REGISTRY_PORT``     - host port of the local registry (default: 5001)
- ``CTR_CMD``           - docker or podman
"""

from __future__ import annotations

import dataclasses
import os
import subprocess
import typing as typ

from local_dev_cluster.errors import require_exe
from local_dev_cluster.k8s import apply_manifest, dump_yaml, kubeconfig_env
from local_dev_cluster.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from pathlib import Path

    from local_dev_cluster.config import Config

logger = get_logger(__name__)

REGISTRY_NAME = "kind-registry"
REGISTRY_IMAGE = "registry:2"
KIND_NETWORK = "kind"
_KIND_CREATE_TIMEOUT = 600


def kind_cluster_config(
    registry_port: int, worker_nodes: int, image: str | None = None
) -> str:
    """Generate the kind cluster configuration document.

    Args:
        registry_port: Host port of the local registry mirrored into containerd.
        worker_nodes: Number of worker nodes besides the control plane.
        image: Optional node image applied to every node.

    Returns:
        YAML text for ``kind create cluster --config``.

    Raises:
        ValueError: If worker_nodes is negative.

    """
    if worker_nodes < 0:
        msg = f"worker_nodes must be >= 0, got {worker_nodes}"
        raise ValueError(msg)

    roles = ["control-plane"] + ["worker"] * worker_nodes
    nodes = [{"role": role} | ({"image": image} if image else {}) for role in roles]
    mirror = (
        '[plugins."io.containerd.grpc.v1.cri".registry.mirrors.'
        f'"localhost:{registry_port}"]\n'
        f'  endpoint = ["http://{REGISTRY_NAME}:5000"]'
    )
    return dump_yaml(
        {
            "kind": "Cluster",
            "apiVersion": "kind.x-k8s.io/v1alpha4",
            "containerdConfigPatches": [mirror],
            "nodes": nodes,
        }
    )


def registry_hosting_manifest(registry_port: int) -> str:
    """Generate the ``local-registry-hosting`` ConfigMap (KEP-1755)."""
    hosting = (
        f'host: "localhost:{registry_port}"\n'
        'help: "https://kind.sigs.k8s.io/docs/user/local-registry/"\n'
    )
    return dump_yaml(
        {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": {"name": "local-registry-hosting", "namespace": "kube-public"},
            "data": {"localRegistryHosting.v1": hosting},
        }
    )


@dataclasses.dataclass(frozen=True, slots=True)
class KindProvider:
    """kind cluster with a companion registry container."""

    cluster_name: str
    worker_nodes: int
    image: str | None
    registry_port: int
    ctr_cmd: str
    work_dir: Path
    name: str = "kind"

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        if self.ctr_cmd == "podman":
            env["KIND_EXPERIMENTAL_PROVIDER"] = "podman"
        return env

    def _container_state(self, container: str) -> str | None:
        """Return the container's ``.State.Running`` value, or None if absent."""
        # S603: ctr_cmd is docker or podman from Config
        result = subprocess.run(  # noqa: S603
            [self.ctr_cmd, "inspect", "-f", "{{.State.Running}}", container],
            capture_output=True,
            text=True,
            timeout=30,
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def _start_registry(self) -> None:
        state = self._container_state(REGISTRY_NAME)
        if state == "true":
            log_info(logger, "Registry %s already running", REGISTRY_NAME)
            return
        if state is not None:
            # S603: ctr_cmd is docker or podman from Config
            subprocess.run(  # noqa: S603
                [self.ctr_cmd, "start", REGISTRY_NAME], check=True, timeout=60
            )
            return

        log_info(
            logger, "Starting registry %s on port %d", REGISTRY_NAME, self.registry_port
        )
        # S603: ctr_cmd is docker or podman from Config
        subprocess.run(  # noqa: S603
            [
                self.ctr_cmd,
                "run",
                "-d",
                "--restart=always",
                "-p",
                f"127.0.0.1:{self.registry_port}:5000",
                "--name",
                REGISTRY_NAME,
                REGISTRY_IMAGE,
            ],
            check=True,
            timeout=300,
        )

    def _connect_registry(self) -> None:
        # S603: ctr_cmd is docker or podman from Config
        result = subprocess.run(  # noqa: S603
            [self.ctr_cmd, "network", "connect", KIND_NETWORK, REGISTRY_NAME],
            capture_output=True,
            text=True,
            timeout=30,
        )
        if result.returncode != 0 and "already" not in result.stderr.lower():
            raise subprocess.CalledProcessError(
                result.returncode, result.args, result.stdout, result.stderr
            )

    def _create_cluster(self) -> None:
        config_file = self.work_dir / "kind.yml"
        config_file.write_text(
            kind_cluster_config(self.registry_port, self.worker_nodes, self.image),
            encoding="utf-8",
        )
        log_info(logger, "Creating kind cluster '%s'", self.cluster_name)
        # S603/S607: kind via PATH is standard; args from Config
        subprocess.run(  # noqa: S603
            [  # noqa: S607
                "kind",
                "create",
                "cluster",
                "--name",
                self.cluster_name,
                "--config",
                str(config_file),
            ],
            check=True,
            env=self._env(),
            timeout=_KIND_CREATE_TIMEOUT,
        )

    def _export_kubeconfig(self) -> Path:
        # S603/S607: kind via PATH is standard; args from Config
        result = subprocess.run(  # noqa: S603
            ["kind", "get", "kubeconfig", "--name", self.cluster_name],  # noqa: S607
            capture_output=True,
            text=True,
            check=True,
            env=self._env(),
            timeout=30,
        )
        path = self.kubeconfig()
        path.write_text(result.stdout, encoding="utf-8")
        return path

    def up(self) -> None:
        """Start the registry, create the cluster and export its kubeconfig."""
        for exe in ("kind", "kubectl", self.ctr_cmd):
            require_exe(exe)

        self.work_dir.mkdir(parents=True, exist_ok=True)
        self._start_registry()
        self._create_cluster()
        self._connect_registry()
        kubeconfig = self._export_kubeconfig()
        apply_manifest(
            registry_hosting_manifest(self.registry_port), kubeconfig_env(kubeconfig)
        )

    def down(self) -> None:
        """Delete the cluster, then the registry container."""
        require_exe("kind")
        log_info(logger, "Deleting kind cluster '%s'", self.cluster_name)
        # S603/S607: kind via PATH is standard; args from Config
        subprocess.run(  # noqa: S603
            ["kind", "delete", "cluster", "--name", self.cluster_name],  # noqa: S607
            check=True,
            env=self._env(),
            timeout=300,
        )
        if self._container_state(REGISTRY_NAME) is not None:
            # S603: ctr_cmd is docker or podman from Config
            subprocess.run(  # noqa: S603
                [self.ctr_cmd, "rm", "-f", REGISTRY_NAME], check=True, timeout=60
            )

    def kubeconfig(self) -> Path:
        """Path the cluster kubeconfig is exported to during ``up``."""
        return self.work_dir / "kubeconfig"

    def print_config(self) -> str:
        """Summarise kind settings for the configuration banner."""
        return "\n".join(
            [
                "kind",
                f"  * cluster name     : {self.cluster_name}",
                f"  * worker nodes     : {self.worker_nodes}",
                f"  * node image       : {self.image or 'kind default'}",
                f"  * registry         : localhost:{self.registry_port}",
            ]
        )


def create_provider(cfg: Config) -> KindProvider:
    """Build the kind provider from the run configuration."""
    return KindProvider(
        cluster_name=cfg.kind_cluster_name,
        worker_nodes=cfg.kind_worker_nodes,
        image=cfg.kind_image,
        registry_port=cfg.registry_port,
        ctr_cmd=cfg.ctr_cmd,
        work_dir=cfg.work_dir / "kind",
    )
