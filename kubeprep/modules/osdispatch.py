"""Dispatch host-specific procedures by detected operating system."""

from typing import Any, Callable, Mapping

from .errors import UnsupportedOSError
from .hosts import Host, OperatingSystem

OSProcedure = Callable[..., Any]


def run_on_os(ctx, host: Host, conn, table: Mapping[OperatingSystem, OSProcedure]) -> Any:
    """Run the procedure registered for host.os.

    Raises:
        UnsupportedOSError: If the table has no entry for the host's OS
    """
    procedure = select_procedure(host, table)
    return procedure(ctx, host, conn)


def select_procedure(host: Host, table: Mapping[OperatingSystem, OSProcedure]) -> OSProcedure:
    try:
        return table[host.os]
    except KeyError:
        raise UnsupportedOSError(host.id, host.os.value) from None
