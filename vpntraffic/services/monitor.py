"""Per-server poll loop: fetch status, compute throughput, persist.

Each server gets its own ``ServerMonitor`` running in its own asyncio task.
A monitor is the only code touching its tracker, and a cycle starts only
after the previous one has finished writing to the database.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from vpntraffic.config import Settings, VPNServerConfig
from vpntraffic.services.persistence import persist_samples
from vpntraffic.services.remote_shell import RemoteShell
from vpntraffic.services.status_parser import get_parser
from vpntraffic.services.tracker import ThroughputSample, ThroughputTracker

logger = logging.getLogger(__name__)


class ServerMonitor:
    def __init__(
        self,
        config: VPNServerConfig,
        settings: Settings,
        session_factory: Callable,
        shell_factory: Optional[Callable] = None,
    ):
        self.config = config
        self.settings = settings
        self.session_factory = session_factory
        self.shell_factory = shell_factory or (lambda cfg: RemoteShell.for_server(cfg, timeout=settings.ssh_timeout))
        self.parser = get_parser(config.type, config.peer_aliases)
        self.tracker = ThroughputTracker(
            retention=settings.retention_seconds,
            rate_floor=settings.rate_floor,
            name=config.name,
        )
        self.shell = None
        self.last_polled_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.last_sample_count = 0

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def connected(self) -> bool:
        return self.shell is not None and self.shell.is_connected

    def _connect(self):
        logger.info(
            "Setting up SSH connection to %s at %s:%s...",
            self.name, self.config.address, self.config.port,
        )
        if self.shell is not None:
            self.shell.close()
        self.shell = self.shell_factory(self.config)
        try:
            self.shell.connect()
            logger.info("Logged into %s as: %s", self.name, self.shell.whoami())
        except Exception:
            self.shell.close()
            self.shell = None
            raise

    async def initialize(self) -> None:
        logger.info("Initializing monitor for server %s...", self.name)
        await asyncio.to_thread(self._connect)
        logger.info("Monitor for server %s initialized successfully.", self.name)

    async def poll_once(self, now: Optional[datetime] = None) -> dict[str, ThroughputSample]:
        """Run one fetch/parse/compute/persist cycle."""
        if not self.connected:
            logger.warning("SSH client for %s not connected. Attempting to reconnect...", self.name)
            await asyncio.to_thread(self._connect)

        raw = await asyncio.to_thread(self.shell.run, self.config.command)
        now = now or datetime.now(timezone.utc)
        records = self.parser.parse(raw)
        samples = self.tracker.compute(records, now)

        await asyncio.to_thread(self._persist, list(samples.values()), now)

        self.last_polled_at = now
        self.last_sample_count = len(samples)
        self.last_error = None
        logger.debug(
            "%s: %d records, %d samples, %d tracked clients",
            self.name, len(records), len(samples), len(self.tracker),
        )
        return samples

    def _persist(self, samples: list[ThroughputSample], measured_at: datetime) -> int:
        db = self.session_factory()
        try:
            return persist_samples(db, self.name, samples, measured_at)
        finally:
            db.close()

    async def run_forever(self) -> None:
        while True:
            try:
                if not self.connected and self.last_polled_at is None:
                    await self.initialize()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.last_error = str(e)
                logger.exception("Failed to initialize server %s", self.name)
                await asyncio.sleep(self.settings.reinit_delay_seconds)
                continue

            try:
                await self.poll_once()
                await asyncio.sleep(self.config.polling_interval_seconds)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.last_error = str(e)
                logger.exception("Error monitoring server %s", self.name)
                self._drop_session()
                await asyncio.sleep(self.settings.error_backoff_seconds)

    def _drop_session(self) -> None:
        if self.shell is not None:
            self.shell.close()
            self.shell = None

    def reset(self) -> None:
        """Tear the session down and start history from scratch."""
        self._drop_session()
        self.tracker.clear()
        self.last_polled_at = None
        self.last_sample_count = 0

    def close(self) -> None:
        self._drop_session()

    def status(self) -> dict:
        return {
            "name": self.name,
            "type": self.config.type.value,
            "address": self.config.address,
            "port": self.config.port,
            "connected": self.connected,
            "polling_interval_seconds": self.config.polling_interval_seconds,
            "last_polled_at": self.last_polled_at,
            "last_error": self.last_error,
            "last_sample_count": self.last_sample_count,
            "tracked_clients": len(self.tracker),
        }


class MonitorSupervisor:
    """Owns one monitor and one task per server."""

    def __init__(self, servers: list[VPNServerConfig], settings: Settings, session_factory: Callable, shell_factory=None):
        self.monitors: dict[str, ServerMonitor] = {
            s.name: ServerMonitor(s, settings, session_factory, shell_factory) for s in servers
        }
        self._tasks: list[asyncio.Task] = []

    def start(self) -> None:
        logger.info("Starting VPN server monitors...")
        for monitor in self.monitors.values():
            self._tasks.append(asyncio.create_task(monitor.run_forever(), name=f"monitor-{monitor.name}"))
        logger.info("%d VPN server monitors started.", len(self._tasks))

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks.clear()
        for monitor in self.monitors.values():
            monitor.close()

    def status(self) -> list[dict]:
        return [m.status() for m in self.monitors.values()]
