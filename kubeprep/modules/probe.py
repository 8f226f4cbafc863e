"""Discover facts about hosts before the prerequisite pipeline runs."""

import logging
import shlex

from .hosts import Host, OperatingSystem
from .runner import RunMode
from .ssh import RemoteCommandError

logger = logging.getLogger("kubeprep.probe")

KUBELET_CONFIG_PATH = "/etc/kubernetes/kubelet.conf"
ENCRYPTION_PROVIDERS_DIR = "/etc/kubernetes/encryption-providers"


def _path_exists(conn, test_expr: str) -> bool:
    try:
        conn.run(f"test {test_expr}")
    except RemoteCommandError:
        return False
    return True


def detect_os(conn) -> OperatingSystem:
    """Read the ID field of /etc/os-release."""
    stdout, _ = conn.run(". /etc/os-release && echo \"$ID\"")
    return OperatingSystem.from_os_release(stdout)


def probe_host(ctx, host: Host, conn) -> dict:
    """Fill in OS and initialization state for one host.

    The OS is only detected when the manifest left it unknown; a resolved OS
    is never changed.
    """
    log = ctx.host_logger(host)

    if host.os == OperatingSystem.UNKNOWN:
        host.os = detect_os(conn)
        log.info(f"Detected operating system: {host.os.value}")

    if not host.initialized:
        host.initialized = _path_exists(conn, f"-f {shlex.quote(KUBELET_CONFIG_PATH)}")

    encryption = False
    if host.initialized:
        pattern = shlex.quote(ENCRYPTION_PROVIDERS_DIR)
        try:
            stdout, _ = conn.run(f"sudo ls -1 {pattern} 2>/dev/null || true")
        except RemoteCommandError:
            stdout = ""
        encryption = any(line.endswith(".yaml") for line in stdout.split())

    log.debug(f"initialized={host.initialized} encryption={encryption}")
    return {'os': host.os, 'initialized': host.initialized, 'encryption': encryption}


def probe_hosts(ctx) -> None:
    """Probe every host in parallel and record cluster-wide findings on ctx."""
    logger.info("Probing hosts...")
    results = ctx.run_task_on_all_hosts(probe_host, RunMode.PARALLEL, step="probe")
    ctx.live_encryption_enabled = any(result['encryption'] for result in results.values())
    if ctx.live_encryption_enabled:
        logger.info("Encryption at rest is already enabled on the cluster")
