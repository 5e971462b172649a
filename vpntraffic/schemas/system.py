from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"


class ServerStatus(BaseModel):
    name: str
    type: str
    address: str
    port: int
    connected: bool = False
    polling_interval_seconds: int
    last_polled_at: Optional[datetime] = None
    last_error: Optional[str] = None
    last_sample_count: int = 0
    tracked_clients: int = 0


class ServersResponse(BaseModel):
    servers: list[ServerStatus] = []
