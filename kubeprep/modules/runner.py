"""Run a unit of work against every host, one at a time or all at once."""

import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from .errors import KubeprepError
from .hosts import Host

logger = logging.getLogger("kubeprep.runner")


class RunMode(str, Enum):
    """Execution strategy for a task across hosts."""
    SEQUENTIAL = 'sequential'
    PARALLEL = 'parallel'


class HostTaskError(KubeprepError):
    """A task failed on one host. The original exception is chained as __cause__."""

    def __init__(self, host: Host, cause: BaseException, step: Optional[str] = None):
        self.host = host
        self.cause = cause
        self.step = step
        where = f"{step} on {host}" if step else str(host)
        super().__init__(f"{where}: {cause}")


class AggregateTaskError(KubeprepError):
    """One or more hosts failed during a parallel run."""

    def __init__(self, errors: List[HostTaskError], step: Optional[str] = None):
        self.errors = list(errors)
        self.step = step
        lines = "\n".join(f"  - {e}" for e in self.errors)
        prefix = f"{step}: " if step else ""
        super().__init__(f"{prefix}{len(self.errors)} host(s) failed:\n{lines}")

    @property
    def host_ids(self) -> List[int]:
        return [e.host.id for e in self.errors]


HostTask = Callable[[Host], Any]


def run_on_all_hosts(
    hosts: Sequence[Host],
    task: HostTask,
    mode: RunMode,
    step: Optional[str] = None,
    max_workers: Optional[int] = None,
) -> Dict[int, Any]:
    """Run task(host) for every host.

    Args:
        hosts: Hosts in registry order
        task: Callable invoked once per host
        mode: SEQUENTIAL stops at the first failing host; PARALLEL runs every
            host to completion and reports all failures together
        step: Step name used to annotate errors and logs
        max_workers: Upper bound on concurrent hosts (default: one per host)

    Returns:
        dict: host id -> value returned by task

    Raises:
        HostTaskError: First failure in SEQUENTIAL mode
        AggregateTaskError: Every failure in PARALLEL mode
    """
    if mode == RunMode.SEQUENTIAL:
        return _run_sequential(hosts, task, step)
    return _run_parallel(hosts, task, step, max_workers)


def _run_sequential(hosts: Sequence[Host], task: HostTask, step: Optional[str]) -> Dict[int, Any]:
    results = {}
    for host in hosts:
        try:
            results[host.id] = task(host)
        except Exception as e:
            logger.error(f"[{host.id}] {step or 'task'} failed: {e}")
            raise HostTaskError(host, e, step) from e
    return results


def _run_parallel(
    hosts: Sequence[Host],
    task: HostTask,
    step: Optional[str],
    max_workers: Optional[int],
) -> Dict[int, Any]:
    if not hosts:
        return {}

    workers = min(max_workers or len(hosts), len(hosts))
    # One future per host; each slot is written only by that host's thread
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=step or "host") as executor:
        futures = [(host, executor.submit(task, host)) for host in hosts]

    results = {}
    errors = []
    for host, future in futures:
        error = future.exception()
        if error is None:
            results[host.id] = future.result()
            continue
        logger.error(f"[{host.id}] {step or 'task'} failed: {error}")
        host_error = HostTaskError(host, error, step)
        host_error.__cause__ = error
        errors.append(host_error)

    if errors:
        raise AggregateTaskError(errors, step)
    return results
