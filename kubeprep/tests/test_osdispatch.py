import pytest

from kubeprep.modules.errors import ConfigurationError, UnsupportedOSError
from kubeprep.modules.hosts import OperatingSystem
from kubeprep.modules.osdispatch import run_on_os, select_procedure
from kubeprep.modules.prerequisites import (
    KUBEADM_INSTALLERS,
    install_kubeadm_centos,
    install_kubeadm_debian,
)

from .fakes import make_hosts


def test_rhel_family_shares_one_procedure():
    rhel, centos = make_hosts("rhel", "centos")
    assert select_procedure(rhel, KUBEADM_INSTALLERS) is install_kubeadm_centos
    assert select_procedure(centos, KUBEADM_INSTALLERS) is install_kubeadm_centos


def test_debian_family_shares_one_procedure():
    debian, ubuntu = make_hosts("debian", "ubuntu")
    assert select_procedure(debian, KUBEADM_INSTALLERS) is install_kubeadm_debian
    assert select_procedure(ubuntu, KUBEADM_INSTALLERS) is install_kubeadm_debian


@pytest.mark.parametrize("os_name", ["amzn", "centos", "debian", "flatcar", "rhel", "ubuntu"])
def test_selection_is_deterministic(os_name):
    host = make_hosts(os_name)[0]
    chosen = {select_procedure(host, KUBEADM_INSTALLERS) for _ in range(5)}
    assert len(chosen) == 1


def test_unknown_os_is_rejected():
    host = make_hosts("unknown")[0]

    with pytest.raises(UnsupportedOSError) as excinfo:
        run_on_os(None, host, None, KUBEADM_INSTALLERS)

    assert isinstance(excinfo.value, ConfigurationError)
    assert excinfo.value.host_id == 0
    assert "unknown" in str(excinfo.value)


def test_run_on_os_passes_arguments():
    host = make_hosts("flatcar")[0]
    calls = []
    table = {OperatingSystem.FLATCAR: lambda ctx, h, conn: calls.append((ctx, h, conn)) or "done"}

    assert run_on_os("ctx", host, "conn", table) == "done"
    assert calls == [("ctx", host, "conn")]
