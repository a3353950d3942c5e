"""Local development Kubernetes cluster management.

This package bootstraps a local cluster through a pluggable provider (kind or
MicroShift), merges kubeconfigs, optionally installs monitoring and Tekton,
and prepares the host. The primary entrypoints are:

- cluster_up: Bring a cluster up and deploy enabled add-ons
- cluster_down: Tear a cluster down
- cluster_restart: Tear down (ignoring failures) and bring up again
- load_provider: Resolve a provider by name

For lower-level operations, import directly from submodules:

- local_dev_cluster.kubeconfig: kubeconfig directory and merge
- local_dev_cluster.k8s: kubectl apply and rollout helpers
- local_dev_cluster.monitoring: kube-prometheus deployment
- local_dev_cluster.host: host provisioning

"""

from __future__ import annotations

__version__ = "0.1.0"

from local_dev_cluster.config import Config, is_set, load_config
from local_dev_cluster.errors import (
    ConfigError,
    ExecutableNotFoundError,
    KubeconfigError,
    LocalClusterError,
    RolloutError,
    UnknownProviderError,
)
from local_dev_cluster.orchestration import (
    cluster_down,
    cluster_restart,
    cluster_up,
    print_config,
)
from local_dev_cluster.providers import ClusterProvider, known_providers, load_provider

__all__ = [
    "ClusterProvider",
    "Config",
    "ConfigError",
    "ExecutableNotFoundError",
    "KubeconfigError",
    "LocalClusterError",
    "RolloutError",
    "UnknownProviderError",
    "__version__",
    "cluster_down",
    "cluster_restart",
    "cluster_up",
    "is_set",
    "known_providers",
    "load_config",
    "load_provider",
    "print_config",
]
