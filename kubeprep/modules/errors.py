"""Exception hierarchy shared by the provisioning engine."""


class KubeprepError(Exception):
    """Base class for every error raised by kubeprep."""
    pass


class ConfigurationError(KubeprepError):
    """Raised for unreadable or invalid user input, templates or OS mappings."""
    pass


class UnsupportedOSError(ConfigurationError):
    """Raised when a host's operating system has no procedure in a dispatch table."""

    def __init__(self, host_id, os_name):
        self.host_id = host_id
        self.os_name = os_name
        super().__init__(f"operating system {os_name!r} of host {host_id} is not supported")


class BundleFrozenError(KubeprepError):
    """Raised when a configuration bundle is modified after generation finished."""
    pass
