"""Shared state of one provisioning run."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .bundle import ConfigurationBundle
from .cluster import ClusterSpec
from .hosts import Host, HostRegistry
from .runner import RunMode, run_on_all_hosts
from .ssh import SSHConnection

Task = Callable[['RunContext', Host, SSHConnection], Any]


@dataclass
class RunContext:
    """Everything a task needs, created once per run and passed by reference.

    The bundle is written only by the single-threaded generation step and is
    read-only while tasks fan out over hosts.
    """
    cluster: ClusterSpec
    registry: HostRegistry
    bundle: ConfigurationBundle = field(default_factory=ConfigurationBundle)
    force_install: bool = False
    work_dir: str = './kubeprep'
    manifest_path: Optional[Path] = None
    reboot_grace_period: float = 60
    max_workers: Optional[int] = None
    live_encryption_enabled: bool = False
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("kubeprep"))

    def host_logger(self, host: Host) -> logging.LoggerAdapter:
        """Logger prefixing every message with the host id and OS."""
        return _HostLoggerAdapter(self.logger, {'host': host.id, 'os': host.os.value})

    def run_task_on_all_hosts(self, task: Task, mode: RunMode, step: Optional[str] = None) -> Dict[int, Any]:
        """Run task(ctx, host, conn) on every host of the registry.

        The connection is fetched inside the host's own execution path so a
        connection failure is reported against that host only.
        """
        def bound(host: Host):
            conn = self.registry.connect(host)
            return task(self, host, conn)

        return run_on_all_hosts(
            self.registry.hosts,
            bound,
            mode,
            step=step or getattr(task, '__name__', None),
            max_workers=self.max_workers,
        )

    def should_enable_encryption(self) -> bool:
        """Encryption is requested but not yet active on the cluster."""
        return self.cluster.features.encryption_providers_enabled and not self.live_encryption_enabled

    def encryption_enabled(self) -> bool:
        """Encryption is already active on the cluster."""
        return self.live_encryption_enabled

    def encryption_provider_config_name(self) -> str:
        return f"{self.cluster.name}-encryption-providers.yaml"


class _HostLoggerAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        return f"[{self.extra['host']}] {msg}", kwargs
