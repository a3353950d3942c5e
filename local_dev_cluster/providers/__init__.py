"""Cluster provider registry.

A provider is a module in this package exposing
``create_provider(cfg) -> ClusterProvider``. The module name is the value
users put in ``CLUSTER_PROVIDER``, so adding a provider means adding a module
here; no central table needs editing.

Examples
--------
Resolve the configured provider and bring a cluster up:

    provider = load_provider(cfg.cluster_provider, cfg)
    provider.up()
    kubeconfig = provider.kubeconfig()

"""

from __future__ import annotations

import importlib
import pkgutil
import typing as typ

from local_dev_cluster.errors import UnknownProviderError
from local_dev_cluster.logging import get_logger, log_error, log_info

if typ.TYPE_CHECKING:
    from pathlib import Path

    from local_dev_cluster.config import Config

logger = get_logger(__name__)


class ClusterProvider(typ.Protocol):
    """Capabilities every cluster provider implements."""

    name: str

    def up(self) -> None:
        """Create and start the cluster."""

    def down(self) -> None:
        """Delete the cluster and anything it started alongside."""

    def kubeconfig(self) -> Path:
        """Return the path of the kubeconfig the provider wrote during ``up``."""

    def print_config(self) -> str:
        """Return a human-readable summary of provider settings."""


def known_providers() -> list[str]:
    """Return the names of all available providers, sorted."""
    return sorted(
        module.name
        for module in pkgutil.iter_modules(__path__)
        if not module.name.startswith("_")
    )


def load_provider(name: str, cfg: Config) -> ClusterProvider:
    """Instantiate the provider registered under ``name``.

    Parameters
    ----------
    name : str
        Provider name, typically ``cfg.cluster_provider``.
    cfg : Config
        Run configuration handed to the provider.

    Returns
    -------
    ClusterProvider
        The configured provider.

    Raises
    ------
    UnknownProviderError
        If no provider module has that name. The known providers are logged
        before raising.

    """
    known = known_providers()
    if name not in known:
        log_error(logger, "No cluster provider named '%s'", name)
        log_info(
            logger,
            "known providers are:\n%s",
            "\n".join(f"  * {provider}" for provider in known),
        )
        raise UnknownProviderError(name, known)

    module = importlib.import_module(f"{__name__}.{name}")
    return module.create_provider(cfg)


__all__ = ["ClusterProvider", "known_providers", "load_provider"]
