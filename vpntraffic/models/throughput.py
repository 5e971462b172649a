from sqlalchemy import CheckConstraint, Column, DateTime, Float, Integer, String, func
from vpntraffic.database import Base


class ThroughputLog(Base):
    __tablename__ = "throughput_samples"
    __table_args__ = (
        CheckConstraint("bytes_in_per_sec >= 0", name="ck_throughput_samples_in_nonneg"),
        CheckConstraint("bytes_out_per_sec >= 0", name="ck_throughput_samples_out_nonneg"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    server_name = Column(String(64), nullable=False, index=True)
    client_name = Column(String(255), nullable=False)
    ip_addr = Column(String(45), nullable=False)  # fits IPv6
    bytes_in_per_sec = Column(Float, default=0, nullable=False)
    bytes_out_per_sec = Column(Float, default=0, nullable=False)
    measured_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
