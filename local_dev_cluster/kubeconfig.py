"""Managed kubeconfig directory.

The kubeconfig root directory holds one kubeconfig per provider plus the
merged ``config`` file that is exported as ``KUBECONFIG``. Every file whose
name contains ``config`` takes part in the merge, so kubeconfigs dropped into
the directory by hand are folded in as well.

The directory is owned by a single run; concurrent runs against the same root
can interleave their merges.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import typing as typ

from local_dev_cluster.errors import KubeconfigError
from local_dev_cluster.logging import get_logger, log_debug

if typ.TYPE_CHECKING:
    from pathlib import Path

logger = get_logger(__name__)

MERGED_NAME = "config"
_MERGE_TMP_NAME = ".merged.tmp"


def install_kubeconfig(source: Path, destination: Path) -> Path:
    """Move a provider's kubeconfig into the managed directory.

    Parameters
    ----------
    source : Path
        Kubeconfig produced by the provider.
    destination : Path
        Target path inside the kubeconfig root; replaced if it exists.

    Returns
    -------
    Path
        The destination path.

    Raises
    ------
    KubeconfigError
        If the provider did not produce ``source``.

    """
    if not source.is_file():
        msg = f"Provider kubeconfig not found at {source}"
        raise KubeconfigError(msg)

    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(source, destination)
    return destination


def discover_kubeconfigs(root: Path) -> list[Path]:
    """Collect the kubeconfig files to merge under ``root``.

    The canonical ``config`` file comes first when it exists, followed by
    every other regular file (searched recursively) whose name contains
    ``config``, in sorted order and without duplicates.

    Parameters
    ----------
    root : Path
        Kubeconfig root directory.

    Returns
    -------
    list[Path]
        Kubeconfig paths in merge order.

    """
    merged = root / MERGED_NAME
    paths = [merged] if merged.is_file() else []
    paths.extend(
        path
        for path in sorted(root.rglob("*config*"))
        if path.is_file() and path != merged
    )
    return paths


def merge_kubeconfigs(root: Path, env: dict[str, str] | None = None) -> Path:
    """Merge all kubeconfigs under ``root`` into ``root/config``.

    Uses ``kubectl config view --merge --flatten`` so contexts, clusters and
    users from every input end up in one self-contained file. Re-running the
    merge yields the same set of contexts.

    Parameters
    ----------
    root : Path
        Kubeconfig root directory.
    env : dict[str, str], optional
        Base environment for kubectl; ``KUBECONFIG`` is overridden.

    Returns
    -------
    Path
        Path of the merged kubeconfig.

    Raises
    ------
    KubeconfigError
        If there is nothing to merge or kubectl produced no output.

    """
    sources = discover_kubeconfigs(root)
    if not sources:
        msg = f"No kubeconfig files found under {root}"
        raise KubeconfigError(msg)

    log_debug(logger, "Merging kubeconfigs: %s", ", ".join(map(str, sources)))
    merge_env = dict(os.environ if env is None else env)
    merge_env["KUBECONFIG"] = os.pathsep.join(str(path) for path in sources)

    # S607: kubectl via PATH is standard; paths discovered under root
    result = subprocess.run(
        ["kubectl", "config", "view", "--merge", "--flatten"],  # noqa: S607
        capture_output=True,
        text=True,
        check=True,
        env=merge_env,
        timeout=30,
    )
    if not result.stdout.strip():
        msg = f"kubectl returned an empty merged kubeconfig for {root}"
        raise KubeconfigError(msg)

    staging = root / _MERGE_TMP_NAME
    staging.write_text(result.stdout, encoding="utf-8")
    merged = root / MERGED_NAME
    staging.replace(merged)
    return merged
