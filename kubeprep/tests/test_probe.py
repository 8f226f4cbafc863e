from kubeprep.modules.hosts import OperatingSystem
from kubeprep.modules.probe import detect_os, probe_host, probe_hosts
from kubeprep.modules.ssh import RemoteCommandError

from .fakes import FakeConnection, FakeConnector, make_hosts


def fresh_host(conn):
    conn.responses.append(("os-release", "ubuntu\n"))
    conn.responses.append(("test -f", RemoteCommandError(conn.host.address, "test", 1, "", "")))


def member_host(conn):
    conn.responses.append(("os-release", '"rhel"\n'))
    conn.responses.append(("encryption-providers", "demo-encryption-providers.yaml\n"))


def test_detect_os_reads_os_release():
    conn = FakeConnection(make_hosts("unknown")[0])
    conn.responses.append(("os-release", '"centos"\n'))

    assert detect_os(conn) == OperatingSystem.CENTOS
    assert conn.commands == ['. /etc/os-release && echo "$ID"']


def test_probe_fills_unknown_os(make_context):
    connector = FakeConnector(fresh_host)
    ctx = make_context(hosts=make_hosts("unknown"), connector_override=connector)
    host = ctx.registry.get(0)

    result = probe_host(ctx, host, ctx.registry.connect(host))

    assert result == {'os': OperatingSystem.UBUNTU, 'initialized': False, 'encryption': False}
    assert host.os == OperatingSystem.UBUNTU


def test_probe_never_overrides_known_os(make_context):
    ctx = make_context(hosts=make_hosts("debian"), connector_override=FakeConnector(member_host))
    host = ctx.registry.get(0)

    probe_host(ctx, host, ctx.registry.connect(host))

    assert host.os == OperatingSystem.DEBIAN
    assert host.initialized


def test_probe_hosts_detects_live_encryption(make_context):
    def configure(conn):
        if conn.host.id == 1:
            member_host(conn)
        else:
            fresh_host(conn)

    ctx = make_context(hosts=make_hosts("unknown", "unknown"), connector_override=FakeConnector(configure))

    probe_hosts(ctx)

    assert ctx.live_encryption_enabled
    assert [host.os for host in ctx.registry] == [OperatingSystem.UBUNTU, OperatingSystem.RHEL]
    assert [host.initialized for host in ctx.registry] == [False, True]
    assert not ctx.should_enable_encryption()


def test_probe_hosts_without_members(make_context):
    ctx = make_context(hosts=make_hosts("unknown"), connector_override=FakeConnector(fresh_host))

    probe_hosts(ctx)

    assert not ctx.live_encryption_enabled
