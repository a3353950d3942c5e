"""Tekton Pipelines deployment."""

from __future__ import annotations

import typing as typ

from local_dev_cluster.k8s import apply_url, rollout_ns_status
from local_dev_cluster.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from local_dev_cluster.config import Config

logger = get_logger(__name__)

TEKTON_NAMESPACES = ("tekton-pipelines", "tekton-pipelines-resolvers")


def deploy_tekton(cfg: Config, env: dict[str, str]) -> None:
    """Apply the Tekton release manifest and wait for its namespaces."""
    log_info(logger, "Installing Tekton Pipelines from %s", cfg.tekton_release_url)
    apply_url(cfg.tekton_release_url, env)
    for namespace in TEKTON_NAMESPACES:
        rollout_ns_status(namespace, env)
