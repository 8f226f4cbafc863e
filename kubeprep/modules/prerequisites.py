"""Prerequisite pipeline: get every host ready for kubeadm.

Steps run in this order, each across all hosts unless noted:

1. generate   build the configuration bundle once, on this machine
2. proxy      write proxy environment and systemd drop-ins (parallel)
3. kubeadm    install kubeadm, kubelet, kubectl and the runtime per OS (parallel)
4. images     pre-pull control plane images (parallel)
5. nm-cloud-setup  disable nm-cloud-setup on new RHEL hosts, rebooting them (sequential)
6. upload     upload the bundle and move files into place (parallel)

A failing step stops the pipeline; later steps are not started.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from . import manifests, scripts
from .bundle import ConfigurationBundle
from .errors import ConfigurationError, KubeprepError
from .hosts import Host, OperatingSystem
from .osdispatch import run_on_os
from .runner import RunMode
from .ssh import RemoteCommandError, TransportError

logger = logging.getLogger("kubeprep.prerequisites")

CLOUD_CONFIG_PATH = "cfg/cloud-config"
AUDIT_POLICY_PATH = "cfg/audit-policy.yaml"
ADMISSION_CONFIG_PATH = "cfg/admission-config.yaml"
POD_NODE_SELECTOR_PATH = "cfg/podnodeselector.yaml"
CA_BUNDLE_PATH = "cfg/ca-certificates.crt"

PROXY_DAEMONS = ("docker", "containerd", "kubelet")


class PipelineError(KubeprepError):
    """A pipeline step failed. The step's error is chained as __cause__."""

    def __init__(self, step: str, cause: BaseException):
        self.step = step
        self.cause = cause
        super().__init__(f"step {step!r} failed: {cause}")


@dataclass(frozen=True)
class ExpectedDisconnect:
    """Outcome of a command that reboots the host.

    ``error`` holds the transport or exit failure caused by the reboot
    cutting the session, or None when the command returned normally.
    """
    host_id: int
    error: Optional[BaseException] = None

    @property
    def disconnected(self) -> bool:
        return self.error is not None


# -- generate ---------------------------------------------------------------

def generate_configuration_files(ctx) -> ConfigurationBundle:
    """Build the configuration bundle and install it on ctx.

    A fresh bundle is assigned to ctx only after every file was added, so a
    failure never leaves a half-built bundle behind.
    """
    cluster = ctx.cluster
    features = cluster.features
    bundle = ConfigurationBundle()

    bundle.add_file(CLOUD_CONFIG_PATH, cluster.cloud_provider.cloud_config)

    if features.static_audit_log_enabled:
        if features.static_audit_log.config is None:
            raise ConfigurationError("static audit log is enabled but no policy file is configured")
        try:
            bundle.add_file_path(AUDIT_POLICY_PATH, features.static_audit_log.config.policy_file_path, ctx.manifest_path)
        except ConfigurationError as e:
            raise ConfigurationError(f"unable to add policy file: {e}") from e

    if features.pod_node_selector_enabled:
        if features.pod_node_selector.config is None:
            raise ConfigurationError("pod node selector is enabled but no config file is configured")
        admission = manifests.admission_config(cluster.versions.kubernetes)
        bundle.add_file(ADMISSION_CONFIG_PATH, manifests.to_yaml(admission))
        try:
            bundle.add_file_path(POD_NODE_SELECTOR_PATH, features.pod_node_selector.config.config_file_path, ctx.manifest_path)
        except ConfigurationError as e:
            raise ConfigurationError(f"failed to add podnodeselector config file: {e}") from e

    if ctx.should_enable_encryption() or ctx.encryption_enabled():
        path = f"cfg/{ctx.encryption_provider_config_name()}"
        custom = features.encryption_providers.custom_encryption_configuration if features.encryption_providers else ""
        if custom:
            bundle.add_file(path, custom)
        elif ctx.should_enable_encryption():
            bundle.add_file(path, manifests.to_yaml(manifests.encryption_providers_config()))

    if cluster.ca_bundle:
        bundle.add_file(CA_BUNDLE_PATH, cluster.ca_bundle)

    bundle.freeze()
    ctx.bundle = bundle
    logger.info(f"Generated {len(bundle)} configuration file(s): {', '.join(bundle.paths())}")
    return bundle


# -- proxy ------------------------------------------------------------------

def setup_proxy(ctx, host: Host, conn) -> None:
    """Write the proxy environment file and service drop-ins; no-op without a proxy."""
    if not ctx.cluster.proxy.is_set():
        return

    log = ctx.host_logger(host)
    log.info("Creating environment file...")
    try:
        conn.run_raw(scripts.environment_file(ctx.cluster))
    except KubeprepError as e:
        raise KubeprepError(f"failed to create environment file: {e}") from e

    log.info("Configuring docker/containerd/kubelet environment...")
    try:
        conn.run_raw(scripts.daemons_environment_dropin(*PROXY_DAEMONS))
    except KubeprepError as e:
        raise KubeprepError(f"failed to configure proxy for container runtime: {e}") from e


# -- kubeadm ----------------------------------------------------------------

def install_kubeadm_debian(ctx, host: Host, conn) -> None:
    conn.run_raw(scripts.kubeadm_debian(ctx.cluster, ctx.force_install))


def install_kubeadm_centos(ctx, host: Host, conn) -> None:
    conn.run_raw(scripts.kubeadm_centos(ctx.cluster, ctx.force_install))


def install_kubeadm_amazon_linux(ctx, host: Host, conn) -> None:
    conn.run_raw(scripts.kubeadm_amazon_linux(ctx.cluster, ctx.force_install))


def install_kubeadm_flatcar(ctx, host: Host, conn) -> None:
    conn.run_raw(scripts.kubeadm_flatcar(ctx.cluster, ctx.force_install))


KUBEADM_INSTALLERS = {
    OperatingSystem.AMAZON: install_kubeadm_amazon_linux,
    OperatingSystem.CENTOS: install_kubeadm_centos,
    OperatingSystem.DEBIAN: install_kubeadm_debian,
    OperatingSystem.FLATCAR: install_kubeadm_flatcar,
    OperatingSystem.RHEL: install_kubeadm_centos,
    OperatingSystem.UBUNTU: install_kubeadm_debian,
}


def install_kubeadm(ctx, host: Host, conn) -> None:
    ctx.host_logger(host).info("Installing kubeadm...")
    try:
        run_on_os(ctx, host, conn, KUBEADM_INSTALLERS)
    except ConfigurationError:
        raise
    except KubeprepError as e:
        raise KubeprepError(f"failed to install kubeadm: {e}") from e


# -- images -----------------------------------------------------------------

def pull_images(ctx, host: Host, conn) -> None:
    ctx.host_logger(host).info("Pre-pull images")
    conn.run(
        "sudo kubeadm config images pull --kubernetes-version {{ KUBERNETES_VERSION }}",
        {'KUBERNETES_VERSION': 'v%d.%d.%d' % scripts.parse_version(ctx.cluster.versions.kubernetes)},
    )


# -- nm-cloud-setup ---------------------------------------------------------

def issue_reboot_command(host: Host, conn, script: str) -> ExpectedDisconnect:
    """Run a command that may reboot the host.

    Only transport failures and non-zero exits of this one command are
    turned into an ExpectedDisconnect; anything else propagates.
    """
    try:
        conn.run_raw(script)
    except (TransportError, RemoteCommandError) as e:
        return ExpectedDisconnect(host.id, e)
    return ExpectedDisconnect(host.id)


def disable_nm_cloud_setup(ctx, host: Host, conn) -> Optional[ExpectedDisconnect]:
    """Disable nm-cloud-setup on RHEL hosts that have not joined the cluster yet.

    The script reboots the host, so the cached connection is dropped after
    the grace period and the next step opens a fresh one.
    """
    if host.os != OperatingSystem.RHEL or host.initialized:
        return None

    log = ctx.host_logger(host)
    cmd = scripts.disable_nm_cloud_setup()

    log.info("Disable nm-cloud-setup... the node will be rebooted...")
    outcome = issue_reboot_command(host, conn, cmd)
    if outcome.disconnected:
        log.debug(f"Connection dropped during reboot as expected: {outcome.error}")

    log.info(f"Waiting for {ctx.reboot_grace_period}s before proceeding to give the machine time to boot up...")
    time.sleep(ctx.reboot_grace_period)

    ctx.registry.close(host)
    return outcome


# -- upload -----------------------------------------------------------------

def upload_configuration_files(ctx, host: Host, conn) -> None:
    """Upload the bundle to the work directory, then move files to their final locations."""
    log = ctx.host_logger(host)
    log.info("Uploading config files...")

    try:
        ctx.bundle.upload_to(conn, ctx.work_dir)
    except KubeprepError as e:
        raise KubeprepError(f"failed to upload: {e}") from e

    for cmd in (
        scripts.save_cloud_config(ctx.work_dir),
        scripts.save_audit_policy_config(ctx.work_dir),
        scripts.save_pod_node_selector_config(ctx.work_dir),
        scripts.save_encryption_providers_config(ctx.work_dir, ctx.encryption_provider_config_name()),
        scripts.save_ca_bundle(ctx.work_dir),
    ):
        conn.run_raw(cmd)


# -- pipeline ---------------------------------------------------------------

@dataclass(frozen=True)
class Step:
    """A named pipeline step. Steps without a mode run once, not per host."""
    name: str
    func: Callable
    mode: Optional[RunMode] = None

    def run(self, ctx):
        if self.mode is None:
            return self.func(ctx)
        return ctx.run_task_on_all_hosts(self.func, self.mode, step=self.name)


PIPELINE: List[Step] = [
    Step("generate", generate_configuration_files),
    Step("proxy", setup_proxy, RunMode.PARALLEL),
    Step("kubeadm", install_kubeadm, RunMode.PARALLEL),
    Step("images", pull_images, RunMode.PARALLEL),
    Step("nm-cloud-setup", disable_nm_cloud_setup, RunMode.SEQUENTIAL),
    Step("upload", upload_configuration_files, RunMode.PARALLEL),
]


def install_prerequisites(ctx, steps: Optional[List[Step]] = None) -> None:
    """Run every pipeline step in order, stopping at the first failing step.

    Raises:
        PipelineError: Wrapping the failing step's error
    """
    logger.info("Installing prerequisites...")
    for step in steps or PIPELINE:
        logger.info(f"==> {step.name}")
        try:
            step.run(ctx)
        except KubeprepError as e:
            raise PipelineError(step.name, e) from e
    logger.info("Prerequisites installed")
