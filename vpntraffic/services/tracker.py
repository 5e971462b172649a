"""Turn cumulative per-client byte counters into per-second throughput.

One ``ThroughputTracker`` belongs to one monitored server. It keeps the last
counters seen for every client and, given the next snapshot and the time it
was taken, returns the rate for every client it already had a baseline for.

The tracker never reads the clock and never raises on bad input:

* a client seen for the first time only gets a baseline;
* a non-positive elapsed time refreshes the baseline without a sample;
* a counter that went backwards is treated as a daemon restart and the current
  counter values are used as the delta for that cycle;
* clients not seen for longer than the retention window are forgotten.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(hours=1)


@dataclass(frozen=True)
class ClientCounterRecord:
    client_id: str
    ip_address: str
    bytes_in: int
    bytes_out: int


@dataclass(frozen=True)
class CounterHistoryEntry:
    bytes_in: int
    bytes_out: int
    observed_at: datetime
    ip_address: str


@dataclass(frozen=True)
class ThroughputSample:
    client_id: str
    ip_address: str
    bytes_in_per_sec: float
    bytes_out_per_sec: float


class ThroughputTracker:
    def __init__(
        self,
        retention: timedelta | float = DEFAULT_RETENTION,
        rate_floor: float = 0.0,
        name: str = "",
    ):
        if not isinstance(retention, timedelta):
            retention = timedelta(seconds=retention)
        self.retention = retention
        self.rate_floor = max(0.0, rate_floor)
        self.name = name
        self._history: dict[str, CounterHistoryEntry] = {}

    def __len__(self) -> int:
        return len(self._history)

    def __contains__(self, client_id: str) -> bool:
        return client_id in self._history

    def get(self, client_id: str) -> CounterHistoryEntry | None:
        return self._history.get(client_id)

    @property
    def history(self) -> dict[str, CounterHistoryEntry]:
        """Read-only copy of the per-client baselines."""
        return dict(self._history)

    def compute(self, records: list[ClientCounterRecord], now: datetime) -> dict[str, ThroughputSample]:
        """Fold one snapshot into the history; return samples keyed by client id.

        Records are applied in order, so a client listed twice in one snapshot
        keeps the last occurrence as its baseline and yields at most one sample.
        """
        samples: dict[str, ThroughputSample] = {}
        for record in records:
            prior = self._history.get(record.client_id)
            if prior is not None:
                sample = self._rate(record, prior, now)
                if sample is not None:
                    samples[record.client_id] = sample
            self._history[record.client_id] = CounterHistoryEntry(
                bytes_in=record.bytes_in,
                bytes_out=record.bytes_out,
                observed_at=now,
                ip_address=record.ip_address,
            )
        self.evict(now)
        return samples

    def _rate(self, record: ClientCounterRecord, prior: CounterHistoryEntry, now: datetime) -> ThroughputSample | None:
        elapsed = (now - prior.observed_at).total_seconds()
        if elapsed <= 0:
            logger.debug("No time elapsed for %s on %s (%.3fs), skipping", record.client_id, self.name, elapsed)
            return None

        if record.bytes_in < prior.bytes_in or record.bytes_out < prior.bytes_out:
            logger.warning(
                "Counter reset detected for %s on server %s. Using absolute values.",
                record.client_id,
                self.name,
            )
            delta_in = record.bytes_in
            delta_out = record.bytes_out
        else:
            delta_in = record.bytes_in - prior.bytes_in
            delta_out = record.bytes_out - prior.bytes_out

        return ThroughputSample(
            client_id=record.client_id,
            ip_address=record.ip_address,
            bytes_in_per_sec=max(self.rate_floor, delta_in / elapsed),
            bytes_out_per_sec=max(self.rate_floor, delta_out / elapsed),
        )

    def evict(self, now: datetime) -> list[str]:
        """Drop clients last seen before ``now - retention``."""
        cutoff = now - self.retention
        stale = [k for k, v in self._history.items() if v.observed_at < cutoff]
        for key in stale:
            del self._history[key]
        if stale:
            logger.debug("Evicted %d stale clients on %s", len(stale), self.name)
        return stale

    def forget(self, client_id: str) -> bool:
        return self._history.pop(client_id, None) is not None

    def clear(self) -> None:
        self._history.clear()
