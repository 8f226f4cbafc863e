import threading
from collections import Counter

import pytest

from kubeprep.modules.runner import AggregateTaskError, HostTaskError, RunMode, run_on_all_hosts

from .fakes import make_hosts


def test_sequential_stops_at_first_failure():
    hosts = make_hosts("ubuntu", "ubuntu", "centos", "debian", "rhel")
    attempted = []

    def task(host):
        attempted.append(host.id)
        if host.id == 2:
            raise RuntimeError("boom")
        return host.id

    with pytest.raises(HostTaskError) as excinfo:
        run_on_all_hosts(hosts, task, RunMode.SEQUENTIAL, step="demo")

    assert attempted == [0, 1, 2]
    assert excinfo.value.host.id == 2
    assert excinfo.value.step == "demo"
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert "host 2" in str(excinfo.value)


def test_sequential_runs_in_registry_order():
    hosts = make_hosts("ubuntu", "centos", "debian")
    attempted = []

    results = run_on_all_hosts(hosts, lambda host: attempted.append(host.id) or host.address, RunMode.SEQUENTIAL)

    assert attempted == [0, 1, 2]
    assert results == {0: "10.0.0.1", 1: "10.0.0.2", 2: "10.0.0.3"}


def test_parallel_attempts_every_host_once_and_aggregates_failures():
    hosts = make_hosts("ubuntu", "ubuntu", "centos", "debian", "rhel")
    attempts = Counter()
    lock = threading.Lock()

    def task(host):
        with lock:
            attempts[host.id] += 1
        if host.id in (1, 3):
            raise ValueError(f"broken {host.id}")
        return "ok"

    with pytest.raises(AggregateTaskError) as excinfo:
        run_on_all_hosts(hosts, task, RunMode.PARALLEL, step="demo")

    assert attempts == Counter({0: 1, 1: 1, 2: 1, 3: 1, 4: 1})
    error = excinfo.value
    assert sorted(error.host_ids) == [1, 3]
    assert [str(e.cause) for e in error.errors] == ["broken 1", "broken 3"]
    assert all(isinstance(e.__cause__, ValueError) for e in error.errors)
    assert "2 host(s) failed" in str(error)


def test_parallel_single_failure_is_still_aggregate():
    hosts = make_hosts("ubuntu", "ubuntu")

    def task(host):
        if host.id == 0:
            raise RuntimeError("nope")

    with pytest.raises(AggregateTaskError) as excinfo:
        run_on_all_hosts(hosts, task, RunMode.PARALLEL)

    assert excinfo.value.host_ids == [0]


def test_parallel_runs_hosts_concurrently():
    hosts = make_hosts("ubuntu", "ubuntu", "ubuntu", "ubuntu")
    barrier = threading.Barrier(len(hosts), timeout=5)

    # Only passes if all hosts are inside the task at the same time
    results = run_on_all_hosts(hosts, lambda host: barrier.wait() is not None, RunMode.PARALLEL)

    assert results == {0: True, 1: True, 2: True, 3: True}


def test_parallel_without_hosts():
    assert run_on_all_hosts([], lambda host: None, RunMode.PARALLEL) == {}
