import base64

import pytest
import yaml

from kubeprep.modules import manifests


@pytest.mark.parametrize("version, api_version", [
    ("v1.16.15", "apiserver.k8s.io/v1alpha1"),
    ("v1.17.0", "apiserver.config.k8s.io/v1"),
    ("1.29.4", "apiserver.config.k8s.io/v1"),
])
def test_admission_config_api_version(version, api_version):
    config = manifests.admission_config(version)

    assert config["apiVersion"] == api_version
    assert config["kind"] == "AdmissionConfiguration"
    assert config["plugins"] == [
        {"name": "PodNodeSelector", "path": "/etc/kubernetes/admission/podnodeselector.yaml"},
    ]


def test_encryption_config_uses_aescbc_then_identity():
    config = manifests.encryption_providers_config("key1", b"\x01" * 32)

    resource = config["resources"][0]
    assert resource["resources"] == ["secrets"]
    aescbc, identity = resource["providers"]
    assert identity == {"identity": {}}
    key = aescbc["aescbc"]["keys"][0]
    assert key["name"] == "key1"
    assert base64.b64decode(key["secret"]) == b"\x01" * 32


def test_encryption_config_generates_fresh_keys():
    first = manifests.encryption_providers_config()
    second = manifests.encryption_providers_config()

    secret = lambda c: c["resources"][0]["providers"][0]["aescbc"]["keys"][0]["secret"]
    assert len(base64.b64decode(secret(first))) == 32
    assert secret(first) != secret(second)


def test_to_yaml_stream():
    text = manifests.to_yaml({"kind": "A"}, {"kind": "B"})

    assert text.startswith("---\n")
    assert [doc["kind"] for doc in yaml.safe_load_all(text)] == ["A", "B"]
