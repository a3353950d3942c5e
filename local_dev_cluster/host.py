"""Host provisioning helpers.

These routines install OS packages and build libbpf from source. They are
neither idempotent nor transactional: the first failing command raises
``subprocess.CalledProcessError`` and whatever already ran stays applied.

Commands needing root are prefixed with ``sudo`` unless the process is
already running as root. The package manager is chosen by checking for
``/usr/bin/yum`` and ``/usr/bin/apt-get``, not by inspecting the OS release.
"""

from __future__ import annotations

import os
import platform
import subprocess
import tempfile
import typing as typ
from pathlib import Path

from local_dev_cluster.errors import require_exe
from local_dev_cluster.logging import get_logger, log_info, log_warning

if typ.TYPE_CHECKING:
    from local_dev_cluster.config import Config

logger = get_logger(__name__)

LIBBPF_REPO = "https://github.com/libbpf/libbpf"
LIBBPF_BUILD_PACKAGES = ("binutils-dev", "build-essential", "pkg-config", "libelf-dev")
DOCKER_PACKAGES = (
    "docker-ce",
    "docker-ce-cli",
    "containerd.io",
    "docker-buildx-plugin",
    "docker-compose-plugin",
)
DOCKER_CE_YUM_REPO = "https://download.docker.com/linux/centos/docker-ce.repo"
DOCKER_APT_GPG_URL = "https://download.docker.com/linux/ubuntu/gpg"
DOCKER_APT_REPO = "https://download.docker.com/linux/ubuntu"
APT_KEYRING = "/etc/apt/keyrings/docker.gpg"
APT_SOURCE_LIST = "/etc/apt/sources.list.d/docker.list"


def _privileged(cmd: list[str]) -> list[str]:
    """Prefix ``cmd`` with sudo unless already running as root."""
    if os.geteuid() == 0:
        return cmd
    return ["sudo", *cmd]


def _run(
    cmd: list[str],
    **kwargs: typ.Any,  # noqa: ANN401
) -> subprocess.CompletedProcess:
    """Log and run a command, raising on failure unless ``check=False``."""
    log_info(logger, "+ %s", " ".join(cmd))
    kwargs.setdefault("check", True)
    # S603: commands are assembled from fixed package names and Config values
    return subprocess.run(cmd, **kwargs)  # noqa: S603


def _apt_install(*packages: str) -> None:
    _run(_privileged(["apt-get", "install", "-y", *packages]))


def install_linux_headers() -> None:
    """Install headers and modules for the running kernel via apt."""
    release = platform.release()
    for package in ("linux-headers", "linux-modules", "linux-modules-extra"):
        _apt_install(f"{package}-{release}")


def install_libbpf(cfg: Config) -> None:
    """Build and install libbpf from source at ``cfg.libbpf_version``.

    The static library and UAPI headers are installed system-wide. The
    checkout lives in a temporary directory under ``cfg.work_dir`` that is
    removed afterwards (with sudo, since ``make install`` may leave root-owned
    files behind).

    Args:
        cfg: Configuration with the libbpf tag and scratch directory.

    """
    _apt_install(*LIBBPF_BUILD_PACKAGES)

    cfg.work_dir.mkdir(parents=True, exist_ok=True)
    build_root = Path(tempfile.mkdtemp(prefix="temp-libbpf-", dir=cfg.work_dir))
    try:
        _run(
            ["git", "clone", "-b", cfg.libbpf_version, LIBBPF_REPO],
            cwd=build_root,
        )
        src = build_root / "libbpf" / "src"
        _run(_privileged(["make", "BUILD_STATIC_ONLY=y", "install"]), cwd=src)
        _run(_privileged(["make", "install_uapi_headers"]), cwd=src)
    finally:
        cleanup = _run(_privileged(["rm", "-rf", str(build_root)]), check=False)
        if cleanup.returncode != 0:
            log_warning(
                logger,
                "Could not remove libbpf checkout %s (exit status %d)",
                build_root,
                cleanup.returncode,
            )


def _install_docker_yum() -> None:
    log_info(logger, "Installing Docker with yum")
    _run(_privileged(["yum", "install", "-y", "yum-utils"]))
    _run(_privileged(["yum-config-manager", "--add-repo", DOCKER_CE_YUM_REPO]))
    _run(_privileged(["yum", "install", "-y", *DOCKER_PACKAGES]))


def _apt_source_line() -> str:
    arch = _run(
        ["dpkg", "--print-architecture"], capture_output=True, text=True
    ).stdout.strip()
    codename = platform.freedesktop_os_release().get("VERSION_CODENAME", "")
    return (
        f"deb [arch={arch} signed-by={APT_KEYRING}] {DOCKER_APT_REPO} "
        f"{codename} stable\n"
    )


def _install_docker_apt() -> None:
    log_info(logger, "Installing Docker with apt")
    _run(_privileged(["apt-get", "update", "-y"]))
    _apt_install("ca-certificates", "curl", "gnupg")

    _run(_privileged(["install", "-m", "0755", "-d", str(Path(APT_KEYRING).parent)]))
    key = _run(["curl", "-fsSL", DOCKER_APT_GPG_URL], capture_output=True).stdout
    _run(
        _privileged(["gpg", "--batch", "--yes", "--dearmor", "-o", APT_KEYRING]),
        input=key,
    )
    _run(_privileged(["chmod", "a+r", APT_KEYRING]))

    _run(
        _privileged(["tee", APT_SOURCE_LIST]),
        input=_apt_source_line(),
        text=True,
        stdout=subprocess.DEVNULL,
    )
    _run(_privileged(["apt-get", "update", "-y"]))
    _apt_install(*DOCKER_PACKAGES)


def install_container_runtime(cfg: Config, root: Path = Path("/")) -> None:
    """Install Docker using whichever of yum and apt-get is present.

    Both package managers are tried when both exist. When
    ``cfg.restart_container_runtime`` is set, the docker service is started
    afterwards.

    Args:
        cfg: Configuration with the restart flag.
        root: Filesystem root used to detect the package manager.

    """
    has_yum = (root / "usr/bin/yum").is_file()
    has_apt = (root / "usr/bin/apt-get").is_file()
    if has_yum:
        _install_docker_yum()
    if has_apt:
        _install_docker_apt()
    if not (has_yum or has_apt):
        log_warning(logger, "Neither yum nor apt-get found under %s", root)

    if cfg.restart_container_runtime:
        _run(_privileged(["systemctl", "start", "docker"]))


def require_root_access() -> None:
    """Ensure root commands can run, either directly or through sudo."""
    if os.geteuid() != 0:
        require_exe("sudo")
