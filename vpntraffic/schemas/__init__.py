from vpntraffic.schemas.system import HealthResponse, ServerStatus, ServersResponse
from vpntraffic.schemas.throughput import ThroughputPoint, ThroughputResponse

__all__ = [
    "HealthResponse", "ServerStatus", "ServersResponse",
    "ThroughputPoint", "ThroughputResponse",
]
