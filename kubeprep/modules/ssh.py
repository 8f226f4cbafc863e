"""
SSH connection management on top of paramiko.
"""
import logging
import posixpath
import shlex
import threading
from typing import Dict, Optional, Tuple

import paramiko
from jinja2 import Environment, StrictUndefined, TemplateError

from .errors import ConfigurationError, KubeprepError

logger = logging.getLogger("kubeprep.ssh")

# Prepended to every raw script so tools installed outside the login PATH are found
RAW_SCRIPT_PREAMBLE = 'set -xeuo pipefail\nexport "PATH=$PATH:/sbin:/usr/local/bin:/opt/bin"\n'

_command_env = Environment(undefined=StrictUndefined, keep_trailing_newline=True)


class TransportError(KubeprepError):
    """Raised when the SSH transport fails (connect, channel or SFTP errors)."""

    def __init__(self, address: str, message: str):
        self.address = address
        super().__init__(f"{address}: {message}")


class ConnectionClosedError(TransportError):
    """Raised when an operation is attempted on a closed connection."""

    def __init__(self, address: str):
        super().__init__(address, "connection is closed")


class RemoteCommandError(KubeprepError):
    """Raised when a remote command exits with a non-zero status."""

    def __init__(self, address: str, command: str, exit_status: int, stdout: str, stderr: str):
        self.address = address
        self.command = command
        self.exit_status = exit_status
        self.stdout = stdout
        self.stderr = stderr
        tail = stderr.strip().splitlines()[-1:] or ["no output"]
        super().__init__(f"{address}: command exited with status {exit_status}: {tail[0]}")


def render_command(command: str, variables: Optional[Dict[str, object]] = None) -> str:
    """Substitute named placeholders such as ``{{ KUBERNETES_VERSION }}`` into a command."""
    try:
        return _command_env.from_string(command).render(**(variables or {}))
    except TemplateError as e:
        raise ConfigurationError(f"failed to render command template: {e}") from e


def _load_private_key(key_path: str) -> paramiko.PKey:
    for key_cls in (paramiko.Ed25519Key, paramiko.RSAKey, paramiko.ECDSAKey):
        try:
            return key_cls.from_private_key_file(key_path)
        except paramiko.SSHException:
            continue
    raise ConfigurationError(f"unsupported private key format: {key_path}")


class SSHConnection:
    """A single open channel to one host.

    The connection is owned by exactly one host. Once :meth:`close` has been
    called every operation raises :class:`ConnectionClosedError`; callers get a
    fresh connection from the host registry instead.
    """

    def __init__(
        self,
        address: str,
        username: str,
        port: int = 22,
        key_path: Optional[str] = None,
        connect_timeout: int = 30,
        command_timeout: Optional[int] = None,
    ):
        self.address = address
        self.username = username
        self.port = port
        self.key_path = key_path
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self._client: Optional[paramiko.SSHClient] = None
        self._sftp: Optional[paramiko.SFTPClient] = None
        self._lock = threading.Lock()
        self.connect()

    def connect(self) -> None:
        """Open the underlying SSH client."""
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        pkey = _load_private_key(self.key_path) if self.key_path else None

        logger.debug(f"Connecting to {self.username}@{self.address}:{self.port}")
        try:
            client.connect(
                hostname=self.address,
                port=self.port,
                username=self.username,
                pkey=pkey,
                timeout=self.connect_timeout,
                allow_agent=pkey is None,
                look_for_keys=pkey is None,
            )
        except (paramiko.SSHException, OSError, EOFError) as e:
            client.close()
            raise TransportError(self.address, f"failed to connect: {e}") from e
        self._client = client

    @property
    def closed(self) -> bool:
        return self._client is None

    def _require_client(self) -> paramiko.SSHClient:
        if self._client is None:
            raise ConnectionClosedError(self.address)
        return self._client

    def _exec(self, command: str) -> Tuple[str, str]:
        client = self._require_client()
        logger.debug(f"[{self.address}] $ {command}")
        try:
            _, stdout, stderr = client.exec_command(command, timeout=self.command_timeout)
            out = stdout.read().decode("utf-8", errors="replace")
            err = stderr.read().decode("utf-8", errors="replace")
            exit_status = stdout.channel.recv_exit_status()
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise TransportError(self.address, f"command failed: {e}") from e

        if exit_status != 0:
            raise RemoteCommandError(self.address, command, exit_status, out, err)
        return out, err

    def run(self, command: str, variables: Optional[Dict[str, object]] = None) -> Tuple[str, str]:
        """Render and execute a single command, returning (stdout, stderr)."""
        return self._exec(render_command(command, variables).strip())

    def run_raw(self, script: str) -> Tuple[str, str]:
        """Execute a multi-line shell script with strict bash options."""
        return self._exec(f"bash -c {shlex.quote(RAW_SCRIPT_PREAMBLE + script)}")

    def upload(self, content, remote_path: str, mode: int = 0o600) -> None:
        """Write content to remote_path, creating parent directories as needed."""
        if isinstance(content, str):
            content = content.encode("utf-8")

        parent = posixpath.dirname(remote_path)
        if parent:
            self._exec(f"mkdir -p {shlex.quote(parent)}")

        try:
            sftp = self._open_sftp()
            with sftp.file(remote_path, "wb") as f:
                f.write(content)
            sftp.chmod(remote_path, mode)
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise TransportError(self.address, f"failed to upload {remote_path}: {e}") from e

    def _open_sftp(self) -> paramiko.SFTPClient:
        with self._lock:
            if self._sftp is None:
                self._sftp = self._require_client().open_sftp()
            return self._sftp

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        with self._lock:
            sftp, client = self._sftp, self._client
            self._sftp = None
            self._client = None
        if sftp is not None:
            try:
                sftp.close()
            except (paramiko.SSHException, OSError, EOFError) as e:
                logger.debug(f"[{self.address}] error closing SFTP session: {e}")
        if client is not None:
            client.close()
            logger.debug(f"Closed connection to {self.address}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
