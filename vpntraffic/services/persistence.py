"""Store throughput samples as rows."""
from datetime import datetime
from typing import Iterable

from sqlalchemy.orm import Session

from vpntraffic.models.throughput import ThroughputLog
from vpntraffic.services.tracker import ThroughputSample


def sample_to_row(server_name: str, sample: ThroughputSample, measured_at: datetime) -> ThroughputLog:
    return ThroughputLog(
        server_name=server_name,
        client_name=sample.client_id,
        ip_addr=sample.ip_address,
        # table enforces non-negative rates
        bytes_in_per_sec=max(0.0, sample.bytes_in_per_sec),
        bytes_out_per_sec=max(0.0, sample.bytes_out_per_sec),
        measured_at=measured_at,
    )


def persist_samples(db: Session, server_name: str, samples: Iterable[ThroughputSample], measured_at: datetime) -> int:
    """Insert one row per sample in a single transaction. Returns the row count."""
    rows = [sample_to_row(server_name, s, measured_at) for s in samples]
    if not rows:
        return 0
    try:
        db.add_all(rows)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return len(rows)
