"""Cluster manifest model.

The manifest is a YAML document describing the cluster to prepare:

    name: demo
    versions:
      kubernetes: v1.29.4
    container_runtime: containerd
    cloud_provider:
      name: aws
      cloud_config: |
        [Global]
    proxy:
      http: http://proxy:3128
      https: http://proxy:3128
      no_proxy: 10.0.0.0/8
    features:
      static_audit_log:
        enable: true
        config:
          policy_file_path: audit-policy.yaml
    hosts:
      - address: 10.0.0.10
        os: ubuntu
"""
import logging
import re
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..config import Config
from .errors import ConfigurationError
from .hosts import Host, OperatingSystem

logger = logging.getLogger("kubeprep.cluster")


class ContainerRuntime(str, Enum):
    CONTAINERD = 'containerd'
    DOCKER = 'docker'


class Versions(BaseModel):
    kubernetes: str = Field(description="Kubernetes version, e.g. v1.29.4")

    @field_validator('kubernetes')
    @classmethod
    def check_version(cls, v: str) -> str:
        if not re.match(r"^v?\d+\.\d+\.\d+$", v or ""):
            raise ValueError(f"invalid Kubernetes version: {v!r}")
        return v


class CloudProvider(BaseModel):
    name: str = Field(default="none", description="Cloud provider name")
    cloud_config: str = Field(default="", description="Cloud provider configuration file content")


class Proxy(BaseModel):
    http: str = ""
    https: str = ""
    no_proxy: str = ""

    def is_set(self) -> bool:
        return bool(self.http or self.https or self.no_proxy)


class StaticAuditLogConfig(BaseModel):
    policy_file_path: str


class StaticAuditLog(BaseModel):
    enable: bool = False
    config: Optional[StaticAuditLogConfig] = None


class PodNodeSelectorConfig(BaseModel):
    config_file_path: str


class PodNodeSelector(BaseModel):
    enable: bool = False
    config: Optional[PodNodeSelectorConfig] = None


class EncryptionProviders(BaseModel):
    enable: bool = False
    custom_encryption_configuration: str = ""


class Features(BaseModel):
    static_audit_log: Optional[StaticAuditLog] = None
    pod_node_selector: Optional[PodNodeSelector] = None
    encryption_providers: Optional[EncryptionProviders] = None

    @property
    def static_audit_log_enabled(self) -> bool:
        return bool(self.static_audit_log and self.static_audit_log.enable)

    @property
    def pod_node_selector_enabled(self) -> bool:
        return bool(self.pod_node_selector and self.pod_node_selector.enable)

    @property
    def encryption_providers_enabled(self) -> bool:
        return bool(self.encryption_providers and self.encryption_providers.enable)


class HostSpec(BaseModel):
    """A host entry of the manifest."""
    address: str
    id: Optional[int] = None
    hostname: Optional[str] = None
    ssh_username: Optional[str] = None
    ssh_port: Optional[int] = None
    ssh_private_key_file: Optional[str] = None
    os: OperatingSystem = OperatingSystem.UNKNOWN
    initialized: bool = False
    is_leader: bool = False


class ClusterSpec(BaseModel):
    """Cluster-wide settings consumed by the prerequisite pipeline."""
    name: str
    versions: Versions
    container_runtime: ContainerRuntime = ContainerRuntime.CONTAINERD
    cloud_provider: CloudProvider = Field(default_factory=CloudProvider)
    proxy: Proxy = Field(default_factory=Proxy)
    ca_bundle: str = ""
    features: Features = Field(default_factory=Features)
    hosts: List[HostSpec] = Field(default_factory=list)

    @field_validator('hosts')
    @classmethod
    def check_hosts(cls, v: List[HostSpec]) -> List[HostSpec]:
        if not v:
            raise ValueError("at least one host is required")
        return v

    def build_hosts(self) -> List[Host]:
        """Create Host objects in manifest order, filling SSH defaults from Config."""
        hosts = []
        for index, spec in enumerate(self.hosts):
            hosts.append(Host(
                id=spec.id if spec.id is not None else index,
                address=spec.address,
                hostname=spec.hostname,
                ssh_username=spec.ssh_username or Config.SSH_USER,
                ssh_port=spec.ssh_port or Config.SSH_PORT,
                ssh_key_path=spec.ssh_private_key_file or Config.SSH_KEY_PATH or None,
                os=spec.os,
                initialized=spec.initialized,
                is_leader=spec.is_leader or (index == 0 and not any(h.is_leader for h in self.hosts)),
            ))
        return hosts


def load_cluster_spec(path: Union[str, Path]) -> ClusterSpec:
    """Load and validate a cluster manifest.

    Raises:
        ConfigurationError: If the file cannot be read or is not a valid manifest
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigurationError(f"unable to read manifest {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML in manifest {path}: {e}") from e

    try:
        spec = ClusterSpec.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"invalid manifest {path}: {e}") from e

    logger.debug(f"Loaded cluster {spec.name} with {len(spec.hosts)} hosts from {path}")
    return spec
