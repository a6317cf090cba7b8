import enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text

from salon.database import Base
from salon.utils.time import utcnow


class SecurityEventType(str, enum.Enum):
    blocked_ip = "blocked_ip"


class SecuritySeverity(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"


class SecurityEvent(Base):
    __tablename__ = "security_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    severity = Column(String(20), nullable=False, default=SecuritySeverity.medium.value)
    description = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    resolved = Column(Boolean, nullable=False, default=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class BlockedIP(Base):
    __tablename__ = "blocked_ips"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    ip_address = Column(String(45), nullable=False)
    reason = Column(String(255), nullable=True)
    blocked_until = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (Index("idx_blocked_ip_lookup", "tenant_id", "ip_address"),)
