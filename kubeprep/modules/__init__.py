"""
Fleet provisioning engine modules.
"""
from .bundle import ConfigurationBundle
from .hosts import Host, HostRegistry, OperatingSystem
from .runner import AggregateTaskError, HostTaskError, RunMode, run_on_all_hosts
from .state import RunContext

__all__ = [
    'ConfigurationBundle',
    'Host',
    'HostRegistry',
    'OperatingSystem',
    'AggregateTaskError',
    'HostTaskError',
    'RunMode',
    'run_on_all_hosts',
    'RunContext',
]
