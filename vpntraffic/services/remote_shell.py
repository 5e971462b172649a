"""SSH session used to read status dumps from VPN hosts."""
import logging
from typing import Optional

import paramiko

from vpntraffic.config import VPNServerConfig

logger = logging.getLogger(__name__)


class RemoteCommandError(RuntimeError):
    pass


class RemoteShell:
    def __init__(
        self,
        host: str,
        port: int = 22,
        username: Optional[str] = None,
        password: Optional[str] = None,
        key_filename: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.key_filename = key_filename
        self.timeout = timeout
        self.client: Optional[paramiko.SSHClient] = None

    @classmethod
    def for_server(cls, config: VPNServerConfig, timeout: float = 10.0) -> "RemoteShell":
        return cls(
            config.address,
            port=config.port,
            username=config.username,
            password=config.password,
            key_filename=config.key_filename,
            timeout=timeout,
        )

    @property
    def is_connected(self) -> bool:
        if not self.client:
            return False
        transport = self.client.get_transport()
        return transport is not None and transport.is_active()

    def connect(self) -> "RemoteShell":
        if self.is_connected:
            return self
        self.close()
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        client.connect(
            hostname=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            key_filename=self.key_filename,
            allow_agent=False,
            look_for_keys=False,
            timeout=self.timeout,
        )
        self.client = client
        transport = client.get_transport()
        if transport is not None:
            logger.info("Connected to %s:%s. Server version: %s", self.host, self.port, transport.remote_version)
        return self

    def run(self, command: str) -> str:
        """Run ``command`` and return its stdout. Non-zero exit raises."""
        if not self.is_connected:
            raise RemoteCommandError(f"not connected to {self.host}")
        try:
            _, stdout, stderr = self.client.exec_command(command, timeout=self.timeout)
            output = stdout.read().decode(errors="replace")
            error = stderr.read().decode(errors="replace")
            exit_code = stdout.channel.recv_exit_status()
        except (paramiko.SSHException, OSError) as e:
            raise RemoteCommandError(f"{self.host}: {command!r} failed: {e}") from e
        if exit_code != 0:
            raise RemoteCommandError(f"{self.host}: {command!r} exited with {exit_code}: {error.strip()}")
        return output

    def whoami(self) -> str:
        return self.run("whoami").strip()

    def close(self) -> None:
        if self.client:
            self.client.close()
            self.client = None

    def __enter__(self) -> "RemoteShell":
        return self.connect()

    def __exit__(self, *exc) -> None:
        self.close()
