import pytest

from kubeprep.modules import scripts
from kubeprep.modules.errors import ConfigurationError

from .fakes import make_cluster


def test_debian_script_pins_version():
    script = scripts.kubeadm_debian(make_cluster(), force=False)

    assert "KUBE_VER=1.29.4" in script
    assert "core:/stable:/v1.29/deb" in script
    assert 'kubeadm="${KUBE_VER}-*"' in script
    assert "apt-mark hold kubelet kubeadm kubectl" in script
    assert "docker.io" not in script


def test_force_flag_controls_skip_guard():
    cluster = make_cluster()

    assert '[[ -z "" ]]' in scripts.kubeadm_centos(cluster, force=False)
    forced = scripts.kubeadm_centos(cluster, force=True)
    assert '[[ -z "true" ]]' in forced
    assert "systemctl restart kubelet" in forced


def test_docker_runtime_installs_docker():
    cluster = make_cluster(container_runtime="docker")

    assert "docker.io" in scripts.kubeadm_debian(cluster, force=False)
    assert "docker-ce docker-ce-cli" in scripts.kubeadm_centos(cluster, force=False)
    assert "systemctl enable --now docker" in scripts.kubeadm_amazon_linux(cluster, force=False)


def test_proxy_exported_in_install_scripts():
    cluster = make_cluster(proxy={"https": "http://proxy:3128", "no_proxy": "10.0.0.0/8"})
    script = scripts.kubeadm_flatcar(cluster, force=False)

    assert "export HTTPS_PROXY=http://proxy:3128" in script
    assert "export NO_PROXY=10.0.0.0/8" in script
    assert "HTTP_PROXY=" not in script.replace("HTTPS_PROXY=", "")


def test_flatcar_installs_into_opt_bin():
    script = scripts.kubeadm_flatcar(make_cluster(), force=False)

    assert "/opt/bin" in script
    assert "https://dl.k8s.io/release/v${KUBE_VER}/bin/linux/${ARCH}/${binary}" in script


def test_environment_file_only_writes_set_variables():
    script = scripts.environment_file(make_cluster(proxy={"http": "http://proxy:3128"}))

    assert "HTTP_PROXY=http://proxy:3128" in script
    assert "http_proxy=http://proxy:3128" in script
    assert "HTTPS_PROXY=" not in script.split("sed -i")[0]


def test_daemon_dropins():
    script = scripts.daemons_environment_dropin("docker", "containerd", "kubelet")

    for daemon in ("docker", "containerd", "kubelet"):
        assert f"/etc/systemd/system/{daemon}.service.d/environment.conf" in script
    assert "EnvironmentFile=-/etc/kubeprep/proxy-env" in script


def test_daemon_dropins_need_a_daemon():
    with pytest.raises(ConfigurationError):
        scripts.daemons_environment_dropin()


def test_disable_nm_cloud_setup_reboots():
    script = scripts.disable_nm_cloud_setup()

    assert "systemctl disable nm-cloud-setup.timer" in script
    assert "sudo reboot" in script


@pytest.mark.parametrize("script, staged, target", [
    (scripts.save_cloud_config("./wd"), "./wd/cfg/cloud-config", "/etc/kubernetes/cloud-config"),
    (scripts.save_audit_policy_config("./wd"), "./wd/cfg/audit-policy.yaml", "/etc/kubernetes/audit/policy.yaml"),
    (scripts.save_pod_node_selector_config("./wd"), "./wd/cfg/podnodeselector.yaml",
     "/etc/kubernetes/admission/podnodeselector.yaml"),
    (scripts.save_encryption_providers_config("./wd", "demo-encryption-providers.yaml"),
     "./wd/cfg/demo-encryption-providers.yaml", "/etc/kubernetes/encryption-providers/demo-encryption-providers.yaml"),
    (scripts.save_ca_bundle("./wd"), "./wd/cfg/ca-certificates.crt", "/etc/kubeprep/certs/ca-certificates.crt"),
])
def test_save_scripts_are_guarded_moves(script, staged, target):
    assert f'if [[ -f "{staged}" ]]' in script
    assert f'"{staged}" "{target}"' in script
    assert f'rm -f "{staged}"' in script


def test_pod_node_selector_moves_admission_config():
    script = scripts.save_pod_node_selector_config("./wd")
    assert "/etc/kubernetes/admission/admission-config.yaml" in script


@pytest.mark.parametrize("version, expected", [
    ("v1.29.4", (1, 29, 4)),
    ("1.16.0", (1, 16, 0)),
    ("v1.30.1-rc.0", (1, 30, 1)),
])
def test_parse_version(version, expected):
    assert scripts.parse_version(version) == expected


@pytest.mark.parametrize("version", ["", "latest", "v1.29"])
def test_parse_version_rejects_garbage(version):
    with pytest.raises(ConfigurationError):
        scripts.parse_version(version)


def test_missing_template():
    with pytest.raises(ConfigurationError, match="nope.sh.j2"):
        scripts.render("nope.sh.j2", {})


def test_undefined_variable():
    with pytest.raises(ConfigurationError):
        scripts.render("save-cloud-config.sh.j2", {})
