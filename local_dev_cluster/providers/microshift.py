"""MicroShift all-in-one container provider.

Runs the MicroShift all-in-one image as a privileged container and copies the
generated admin kubeconfig out once MicroShift has written it.
"""

from __future__ import annotations

import dataclasses
import subprocess
import time
import typing as typ

from local_dev_cluster.errors import KubeconfigError, require_exe
from local_dev_cluster.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from pathlib import Path

    from local_dev_cluster.config import Config

logger = get_logger(__name__)

DATA_VOLUME = "microshift-data"
IN_CONTAINER_KUBECONFIG = "/var/lib/microshift/resources/kubeadmin/kubeconfig"


@dataclasses.dataclass(frozen=True, slots=True)
class MicroshiftProvider:
    """MicroShift running in a single container."""

    image: str
    container: str
    ctr_cmd: str
    work_dir: Path
    kubeconfig_timeout: float = 300
    poll_interval: float = 5
    name: str = "microshift"

    def _kubeconfig_ready(self) -> bool:
        # S603: ctr_cmd is docker or podman from Config
        result = subprocess.run(  # noqa: S603
            [
                self.ctr_cmd,
                "exec",
                self.container,
                "test",
                "-f",
                IN_CONTAINER_KUBECONFIG,
            ],
            capture_output=True,
            timeout=30,
        )
        return result.returncode == 0

    def _wait_for_kubeconfig(self) -> None:
        deadline = time.monotonic() + self.kubeconfig_timeout
        while not self._kubeconfig_ready():
            if time.monotonic() >= deadline:
                msg = (
                    f"MicroShift did not write {IN_CONTAINER_KUBECONFIG} within "
                    f"{self.kubeconfig_timeout} seconds"
                )
                raise KubeconfigError(msg)
            time.sleep(self.poll_interval)

    def up(self) -> None:
        """Start the MicroShift container and copy out its kubeconfig."""
        require_exe(self.ctr_cmd)
        self.work_dir.mkdir(parents=True, exist_ok=True)

        log_info(logger, "Starting MicroShift container '%s'", self.container)
        # S603: ctr_cmd is docker or podman from Config
        subprocess.run(  # noqa: S603
            [
                self.ctr_cmd,
                "run",
                "-d",
                "--name",
                self.container,
                "--privileged",
                "--hostname",
                self.container,
                "-v",
                f"{DATA_VOLUME}:/var/lib",
                "-p",
                "6443:6443",
                self.image,
            ],
            check=True,
            timeout=600,
        )

        log_info(logger, "Waiting for MicroShift kubeconfig...")
        self._wait_for_kubeconfig()
        # S603: ctr_cmd is docker or podman from Config
        subprocess.run(  # noqa: S603
            [
                self.ctr_cmd,
                "cp",
                f"{self.container}:{IN_CONTAINER_KUBECONFIG}",
                str(self.kubeconfig()),
            ],
            check=True,
            timeout=60,
        )

    def down(self) -> None:
        """Remove the container and its data volume."""
        require_exe(self.ctr_cmd)
        log_info(logger, "Removing MicroShift container '%s'", self.container)
        # S603: ctr_cmd is docker or podman from Config
        subprocess.run(  # noqa: S603
            [self.ctr_cmd, "rm", "-f", self.container], check=True, timeout=120
        )
        subprocess.run(  # noqa: S603
            [self.ctr_cmd, "volume", "rm", "-f", DATA_VOLUME], check=True, timeout=60
        )

    def kubeconfig(self) -> Path:
        """Path the admin kubeconfig is copied to during ``up``."""
        return self.work_dir / "kubeconfig"

    def print_config(self) -> str:
        """Summarise MicroShift settings for the configuration banner."""
        return "\n".join(
            [
                "microshift",
                f"  * image            : {self.image}",
                f"  * container        : {self.container}",
            ]
        )


def create_provider(cfg: Config) -> MicroshiftProvider:
    """Build the MicroShift provider from the run configuration."""
    return MicroshiftProvider(
        image=cfg.microshift_image,
        container=cfg.microshift_container,
        ctr_cmd=cfg.ctr_cmd,
        work_dir=cfg.work_dir / "microshift",
    )
