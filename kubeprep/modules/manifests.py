"""Kubernetes objects generated for the API server and serialized as YAML."""

import base64
import secrets
import time
from typing import Any, Dict

import yaml

from .scripts import parse_version

PodNodeSelectorConfigPath = "/etc/kubernetes/admission/podnodeselector.yaml"


def admission_config(kubernetes_version: str) -> Dict[str, Any]:
    """AdmissionConfiguration enabling the PodNodeSelector plugin.

    The API group moved to apiserver.config.k8s.io/v1 in Kubernetes 1.17.
    """
    major, minor, _ = parse_version(kubernetes_version)
    if (major, minor) >= (1, 17):
        api_version = "apiserver.config.k8s.io/v1"
    else:
        api_version = "apiserver.k8s.io/v1alpha1"

    return {
        "apiVersion": api_version,
        "kind": "AdmissionConfiguration",
        "plugins": [
            {
                "name": "PodNodeSelector",
                "path": PodNodeSelectorConfigPath,
            },
        ],
    }


def encryption_providers_config(key_name: str = None, key: bytes = None) -> Dict[str, Any]:
    """EncryptionConfiguration encrypting Secrets with a new aescbc key.

    identity stays last so data written before encryption was enabled can
    still be read.
    """
    key_name = key_name or f"kubeprep-{int(time.time())}"
    key = key if key is not None else secrets.token_bytes(32)

    return {
        "apiVersion": "apiserver.config.k8s.io/v1",
        "kind": "EncryptionConfiguration",
        "resources": [
            {
                "resources": ["secrets"],
                "providers": [
                    {
                        "aescbc": {
                            "keys": [
                                {
                                    "name": key_name,
                                    "secret": base64.b64encode(key).decode("ascii"),
                                },
                            ],
                        },
                    },
                    {"identity": {}},
                ],
            },
        ],
    }


def to_yaml(*objects: Dict[str, Any]) -> str:
    """Serialize Kubernetes objects as a multi-document YAML stream."""
    return yaml.safe_dump_all(objects, default_flow_style=False, sort_keys=False, explicit_start=True)
