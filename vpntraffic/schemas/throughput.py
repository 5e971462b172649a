from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ThroughputPoint(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    server_name: str
    client_name: str
    ip_addr: str
    bytes_in_per_sec: float = 0
    bytes_out_per_sec: float = 0
    measured_at: Optional[datetime] = None


class ThroughputResponse(BaseModel):
    samples: list[ThroughputPoint] = []
    total: int = 0
