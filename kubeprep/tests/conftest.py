import pytest

from kubeprep.modules.hosts import HostRegistry
from kubeprep.modules.state import RunContext

from .fakes import FakeConnector, make_cluster, make_hosts


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def make_context(connector):
    def factory(hosts=None, cluster=None, connector_override=None, **kwargs):
        hosts = hosts if hosts is not None else make_hosts("ubuntu")
        kwargs.setdefault("reboot_grace_period", 0)
        return RunContext(
            cluster=cluster or make_cluster(),
            registry=HostRegistry(hosts, connector_override or connector),
            **kwargs,
        )
    return factory
