"""Exceptions and executable checks for local cluster management.

Custom Exceptions
-----------------
- ``LocalClusterError``: Base exception for all package errors
- ``ExecutableNotFoundError``: Raised when a required CLI tool is missing
- ``ConfigError``: Raised when a setting has an invalid value
- ``UnknownProviderError``: Raised when ``CLUSTER_PROVIDER`` names no provider
- ``KubeconfigError``: Raised when a kubeconfig cannot be collected or merged
- ``RolloutError``: Raised when a namespace rollout status check fails

Failures of the external tools themselves are not wrapped; they surface as
``subprocess.CalledProcessError`` so the CLI can exit with the tool's status.

Examples
--------
Verify required executables before proceeding:

    require_exe("kind")
    require_exe("kubectl")

"""

from __future__ import annotations

import shutil


class LocalClusterError(Exception):
    """Base exception for all local_dev_cluster errors."""


class ExecutableNotFoundError(LocalClusterError):
    """Required CLI tool is not installed."""


class ConfigError(LocalClusterError):
    """A configuration value is out of range or malformed."""


class UnknownProviderError(LocalClusterError):
    """No cluster provider is registered under the requested name."""

    def __init__(self, provider: str, known: list[str]) -> None:
        """Record the rejected name and the providers that do exist."""
        self.provider = provider
        self.known = known
        super().__init__(f"invalid CLUSTER_PROVIDER - '{provider}'")


class KubeconfigError(LocalClusterError):
    """A kubeconfig file is missing or could not be merged."""


class RolloutError(LocalClusterError):
    """Workloads in a namespace did not finish rolling out."""


def require_exe(name: str) -> None:
    """Verify a CLI tool is available in PATH.

    Parameters
    ----------
    name : str
        Name of the executable to check for.

    Raises
    ------
    ExecutableNotFoundError
        If the executable is not found in PATH.

    """
    if shutil.which(name) is None:
        msg = f"Required executable '{name}' not found in PATH"
        raise ExecutableNotFoundError(msg)
