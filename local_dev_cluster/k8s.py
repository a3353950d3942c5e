"""Kubernetes resource operations driven through kubectl.

All functions take an environment dictionary with KUBECONFIG set so they
target the freshly merged cluster configuration rather than whatever the
caller's shell happens to point at.

Examples
--------
Apply a remote manifest and wait for its workloads:

    env = kubeconfig_env(cfg.active_kubeconfig)
    apply_url("https://example.com/release.yaml", env)
    rollout_ns_status("tekton-pipelines", env)

"""

from __future__ import annotations

import io
import os
import subprocess
import typing as typ

from ruamel.yaml import YAML

from local_dev_cluster.errors import RolloutError
from local_dev_cluster.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from pathlib import Path

logger = get_logger(__name__)

_ROLLOUT_TIMEOUT = "10m"
_WORKLOAD_KINDS = "deployments,statefulsets,daemonsets"


def kubeconfig_env(kubeconfig: Path) -> dict[str, str]:
    """Return a copy of the process environment with KUBECONFIG set.

    Parameters
    ----------
    kubeconfig : Path
        Kubeconfig file the returned environment should point at.

    Returns
    -------
    dict[str, str]
        Environment dictionary with KUBECONFIG set.

    """
    env = dict(os.environ)
    env["KUBECONFIG"] = str(kubeconfig)
    return env


def apply_manifest(manifest: str, env: dict[str, str]) -> None:
    """Apply a YAML manifest to the cluster via kubectl stdin."""
    # S607: kubectl via PATH is standard; manifest generated internally
    subprocess.run(
        ["kubectl", "apply", "-f", "-"],  # noqa: S607
        input=manifest,
        text=True,
        check=True,
        env=env,
        timeout=60,
    )


def apply_url(url: str, env: dict[str, str]) -> None:
    """Apply a manifest fetched by kubectl from a URL.

    Parameters
    ----------
    url : str
        Location of the manifest (http(s) URL or local path).
    env : dict[str, str]
        Environment dict with KUBECONFIG set.

    """
    # S603/S607: kubectl via PATH is standard; url from Config
    subprocess.run(  # noqa: S603
        ["kubectl", "apply", "--filename", url],  # noqa: S607
        check=True,
        env=env,
    )


def list_workloads(namespace: str, env: dict[str, str]) -> list[str]:
    """List deployments, statefulsets and daemonsets in a namespace.

    Returns
    -------
    list[str]
        Resource names in ``kind/name`` form, as printed by ``-o name``.

    """
    # S603/S607: kubectl via PATH is standard; namespace from fixed names
    result = subprocess.run(  # noqa: S603
        [  # noqa: S607
            "kubectl",
            "get",
            _WORKLOAD_KINDS,
            f"--namespace={namespace}",
            "-o",
            "name",
        ],
        capture_output=True,
        text=True,
        check=True,
        env=env,
        timeout=60,
    )
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def rollout_ns_status(namespace: str, env: dict[str, str]) -> None:
    """Block until every workload in a namespace has rolled out.

    Parameters
    ----------
    namespace : str
        Namespace whose workloads are checked.
    env : dict[str, str]
        Environment dict with KUBECONFIG set.

    Raises
    ------
    RolloutError
        If ``kubectl rollout status`` fails for any workload.

    """
    for resource in list_workloads(namespace, env):
        log_info(logger, "Waiting for %s in namespace %s", resource, namespace)
        try:
            # S603/S607: kubectl via PATH is standard; resource listed by kubectl
            subprocess.run(  # noqa: S603
                [  # noqa: S607
                    "kubectl",
                    "rollout",
                    "status",
                    resource,
                    "--namespace",
                    namespace,
                    f"--timeout={_ROLLOUT_TIMEOUT}",
                ],
                check=True,
                env=env,
            )
        except subprocess.CalledProcessError as e:
            msg = f"failed to check status of {resource} inside namespace {namespace}"
            raise RolloutError(msg) from e


def wait_for_crds_established(env: dict[str, str], timeout: int = 120) -> None:
    """Wait until all CustomResourceDefinitions report Established."""
    # S607: kubectl via PATH is standard; no user input
    subprocess.run(  # noqa: S603
        [  # noqa: S607
            "kubectl",
            "wait",
            "--for",
            "condition=Established",
            "--all",
            "CustomResourceDefinition",
            f"--timeout={timeout}s",
        ],
        check=True,
        env=env,
        timeout=timeout + 30,
    )


def dump_yaml(document: dict[str, typ.Any]) -> str:
    """Serialise a manifest or config document to block-style YAML."""
    yaml_serializer = YAML(typ="safe")
    yaml_serializer.default_flow_style = False
    yaml_serializer.indent(mapping=2, sequence=4, offset=2)
    with io.StringIO() as stream:
        yaml_serializer.dump(document, stream)
        return stream.getvalue()
