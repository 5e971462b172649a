from vpntraffic.database import Base
from vpntraffic.models.throughput import ThroughputLog

__all__ = ["Base", "ThroughputLog"]
