from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from vpntraffic.database import get_db
from vpntraffic.models.throughput import ThroughputLog
from vpntraffic.schemas.throughput import ThroughputPoint, ThroughputResponse

router = APIRouter(prefix="/api/throughput", tags=["throughput"])


@router.get("", response_model=ThroughputResponse)
def recent_samples(
    db: Session = Depends(get_db),
    server: Optional[str] = Query(None),
    client: Optional[str] = Query(None),
    minutes: int = Query(60, ge=1, le=10080),
    limit: int = Query(500, ge=1, le=5000),
):
    since = datetime.now(timezone.utc) - timedelta(minutes=minutes)
    q = db.query(ThroughputLog).filter(ThroughputLog.measured_at >= since)
    if server:
        q = q.filter(ThroughputLog.server_name == server)
    if client:
        q = q.filter(ThroughputLog.client_name == client)
    total = q.count()
    rows = q.order_by(desc(ThroughputLog.measured_at), desc(ThroughputLog.id)).limit(limit).all()
    return ThroughputResponse(samples=[ThroughputPoint.model_validate(r) for r in rows], total=total)


@router.get("/latest", response_model=ThroughputResponse)
def latest_samples(
    db: Session = Depends(get_db),
    server: Optional[str] = Query(None),
):
    # rows are append-only, so the highest id is the newest sample per client
    latest = db.query(func.max(ThroughputLog.id).label("id")).group_by(
        ThroughputLog.server_name, ThroughputLog.client_name
    )
    if server:
        latest = latest.filter(ThroughputLog.server_name == server)
    sub = latest.subquery()
    rows = (
        db.query(ThroughputLog)
        .join(sub, ThroughputLog.id == sub.c.id)
        .order_by(ThroughputLog.server_name, ThroughputLog.client_name)
        .all()
    )
    return ThroughputResponse(samples=[ThroughputPoint.model_validate(r) for r in rows], total=len(rows))
