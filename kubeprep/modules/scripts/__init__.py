"""Shell scripts run on hosts, rendered from Jinja2 templates.

Templates live in the ``templates`` directory next to this module. Every
function returns the script text; running it is left to the caller
(``SSHConnection.run_raw``).
"""

import logging
import os
import re
import shlex
from typing import Any, Dict

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from ..errors import ConfigurationError

logger = logging.getLogger("kubeprep.scripts")

CNI_VERSION = "v1.4.0"
CRICTL_VERSION = "v1.29.0"

_VERSION_RE = re.compile(r'^v?(\d+)\.(\d+)\.(\d+)')


def get_template_path() -> str:
    """Get the absolute path to the templates directory."""
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), 'templates')


_env = Environment(
    loader=FileSystemLoader(get_template_path()),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    undefined=StrictUndefined,
)
_env.filters['shquote'] = lambda value: shlex.quote(str(value))


def render(template_name: str, variables: Dict[str, Any]) -> str:
    """Render a script template.

    Raises:
        ConfigurationError: If the template is missing, malformed or uses an
            undefined variable
    """
    try:
        return _env.get_template(template_name).render(**variables)
    except TemplateError as e:
        raise ConfigurationError(f"failed to render {template_name}: {e}") from e


def parse_version(version: str):
    """Split a Kubernetes version such as ``v1.29.4`` into (major, minor, patch)."""
    match = _VERSION_RE.match(version or '')
    if not match:
        raise ConfigurationError(f"invalid Kubernetes version: {version!r}")
    return tuple(int(part) for part in match.groups())


def _kubeadm_variables(cluster, force: bool) -> Dict[str, Any]:
    major, minor, patch = parse_version(cluster.versions.kubernetes)
    return {
        'KUBERNETES_VERSION': f"{major}.{minor}.{patch}",
        'KUBERNETES_MINOR': f"v{major}.{minor}",
        'CONTAINER_RUNTIME': cluster.container_runtime.value,
        'FORCE': 'true' if force else '',
        'HTTP_PROXY': cluster.proxy.http,
        'HTTPS_PROXY': cluster.proxy.https,
        'NO_PROXY': cluster.proxy.no_proxy,
        'CNI_VERSION': CNI_VERSION,
        'CRICTL_VERSION': CRICTL_VERSION,
    }


def kubeadm_debian(cluster, force: bool) -> str:
    return render('kubeadm-debian.sh.j2', _kubeadm_variables(cluster, force))


def kubeadm_centos(cluster, force: bool) -> str:
    return render('kubeadm-centos.sh.j2', _kubeadm_variables(cluster, force))


def kubeadm_amazon_linux(cluster, force: bool) -> str:
    return render('kubeadm-amazon-linux.sh.j2', _kubeadm_variables(cluster, force))


def kubeadm_flatcar(cluster, force: bool) -> str:
    return render('kubeadm-flatcar.sh.j2', _kubeadm_variables(cluster, force))


def environment_file(cluster) -> str:
    """Write the proxy variables to /etc/kubeprep/proxy-env and /etc/environment."""
    return render('environment-file.sh.j2', {
        'HTTP_PROXY': cluster.proxy.http,
        'HTTPS_PROXY': cluster.proxy.https,
        'NO_PROXY': cluster.proxy.no_proxy,
    })


def daemons_environment_dropin(*daemons: str) -> str:
    """systemd drop-ins making the given services read the proxy environment file."""
    if not daemons:
        raise ConfigurationError("at least one daemon is required")
    return render('daemons-environment-dropin.sh.j2', {'DAEMONS': list(daemons)})


def disable_nm_cloud_setup() -> str:
    return render('disable-nm-cloud-setup.sh.j2', {})


def save_cloud_config(work_dir: str) -> str:
    return render('save-cloud-config.sh.j2', {'WORK_DIR': work_dir})


def save_audit_policy_config(work_dir: str) -> str:
    return render('save-audit-policy-config.sh.j2', {'WORK_DIR': work_dir})


def save_pod_node_selector_config(work_dir: str) -> str:
    return render('save-pod-node-selector-config.sh.j2', {'WORK_DIR': work_dir})


def save_encryption_providers_config(work_dir: str, file_name: str) -> str:
    return render('save-encryption-providers-config.sh.j2', {'WORK_DIR': work_dir, 'FILE_NAME': file_name})


def save_ca_bundle(work_dir: str) -> str:
    return render('save-ca-bundle.sh.j2', {'WORK_DIR': work_dir})


__all__ = [
    'render',
    'parse_version',
    'kubeadm_debian',
    'kubeadm_centos',
    'kubeadm_amazon_linux',
    'kubeadm_flatcar',
    'environment_file',
    'daemons_environment_dropin',
    'disable_nm_cloud_setup',
    'save_cloud_config',
    'save_audit_policy_config',
    'save_pod_node_selector_config',
    'save_encryption_providers_config',
    'save_ca_bundle',
]
