"""Configuration for the local development cluster.

Settings are read once at startup and passed explicitly to every component.
Values resolve with the precedence: process environment, then the ``.env``
file at the root of the calling project, then the defaults declared here.

Flag values (``PROMETHEUS_ENABLE`` and friends) are interpreted with
:func:`is_set`; an unrecognised value is treated as unset rather than
rejected, so a typo never prevents the configuration from loading.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from local_dev_cluster.errors import ConfigError

_TRUTHY = frozenset({"true", "1", "yes", "y", "on"})

TEKTON_RELEASE_URL = (
    "https://storage.googleapis.com/tekton-releases/pipeline/latest/release.yaml"
)


def is_set(value: object) -> bool:
    """Return True when a flag value means "enabled".

    Parameters
    ----------
    value : object
        Raw flag value, usually a string from the environment.

    Returns
    -------
    bool
        True for ``true``, ``1``, ``yes``, ``y`` or ``on`` in any case.

    """
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUTHY


class Config(BaseSettings):
    """Immutable configuration set for a single run.

    Attributes:
        kubeconfig_root_dir: Directory holding the managed kubeconfig files.
            ``None`` until :func:`load_config` resolves it against the project
            root.
        kepler_kubeconfig: File name of the provider's kubeconfig copy inside
            ``kubeconfig_root_dir``.
        tmp_dir: Scratch directory for provider artefacts and source checkouts.

    """

    model_config = SettingsConfigDict(
        env_file=None,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    ctr_cmd: str = "docker"
    cluster_provider: str = "kind"
    kubeconfig_root_dir: Path | None = None
    kepler_kubeconfig: str = "config-kepler"
    registry_port: int = Field(default=5001, ge=1, le=65535)

    prometheus_enable: bool = False
    grafana_enable: bool = False
    tekton_enable: bool = False
    libbpf_version: str = "v1.2.0"
    restart_container_runtime: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "RESTARTCONTAINERRUNTIME", "restart_container_runtime"
        ),
    )

    prometheus_operator_version: str = "v0.12.0"
    prometheus_replicas: int = Field(default=1, ge=1)
    tekton_release_url: str = TEKTON_RELEASE_URL

    kind_cluster_name: str = "kind"
    kind_worker_nodes: int = Field(default=1, ge=0)
    kind_image: str | None = None
    microshift_image: str = "quay.io/microshift/microshift-aio:latest"
    microshift_container: str = "microshift"

    tmp_dir: Path | None = None
    log_level: str = "INFO"

    @field_validator(
        "prometheus_enable",
        "grafana_enable",
        "tekton_enable",
        "restart_container_runtime",
        mode="before",
    )
    @classmethod
    def _parse_flag(cls, value: object) -> bool:
        return is_set(value)

    @property
    def kubeconfig_dir(self) -> Path:
        """Directory of managed kubeconfig files."""
        return self.kubeconfig_root_dir or Path(".kube")

    @property
    def kubeconfig_path(self) -> Path:
        """Path of the active provider's kubeconfig copy."""
        return self.kubeconfig_dir / self.kepler_kubeconfig

    @property
    def active_kubeconfig(self) -> Path:
        """Path of the merged kubeconfig exported as ``KUBECONFIG``."""
        return self.kubeconfig_dir / "config"

    @property
    def work_dir(self) -> Path:
        """Scratch directory for provider artefacts."""
        return self.tmp_dir or Path("tmp")

    @property
    def install_prometheus(self) -> bool:
        """Prometheus is needed for either monitoring flag."""
        return self.prometheus_enable or self.grafana_enable


def find_project_root(start: Path | None = None) -> Path:
    """Return the top-level directory of the calling project.

    Uses ``git rev-parse --show-toplevel``; outside a git checkout (or without
    git installed) the starting directory is returned unchanged.

    Parameters
    ----------
    start : Path, optional
        Directory to start from. Defaults to the current working directory.

    Returns
    -------
    Path
        The git top-level directory, or ``start``.

    """
    start = start or Path.cwd()
    try:
        # S603/S607: git via PATH is standard; no user input
        result = subprocess.run(  # noqa: S603
            ["git", "rev-parse", "--show-toplevel"],  # noqa: S607
            capture_output=True,
            text=True,
            check=True,
            cwd=start,
            timeout=10,
        )
    except (OSError, subprocess.CalledProcessError, subprocess.TimeoutExpired):
        return start

    toplevel = result.stdout.strip()
    return Path(toplevel) if toplevel else start


def load_config(project_root: Path, env_file: Path | None = None) -> Config:
    """Build the run configuration for a project.

    Parameters
    ----------
    project_root : Path
        Root of the calling project. Its ``.env`` file (when present) supplies
        defaults, and relative directories resolve against it.
    env_file : Path, optional
        Alternative environment file to read instead of ``<root>/.env``.

    Returns
    -------
    Config
        The resolved, frozen configuration.

    Raises
    ------
    ConfigError
        If a setting fails validation, for example a negative
        ``KIND_WORKER_NODES`` or ``PROMETHEUS_REPLICAS=0``.

    """
    env_path = env_file or project_root / ".env"
    try:
        cfg = Config(_env_file=env_path if env_path.is_file() else None)
    except ValidationError as e:
        msg = f"invalid configuration: {e}"
        raise ConfigError(msg) from e

    kube_root = cfg.kubeconfig_root_dir or Path(".kube")
    tmp_dir = cfg.tmp_dir or Path("tmp")
    return cfg.model_copy(
        update={
            "kubeconfig_root_dir": _resolve(project_root, kube_root),
            "tmp_dir": _resolve(project_root, tmp_dir),
        }
    )


def _resolve(root: Path, path: Path) -> Path:
    return path if path.is_absolute() else root / path
