import enum
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, String

from salon.database import Base
from salon.utils.time import utcnow


class AppointmentStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    completed = "completed"
    canceled = "canceled"


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_name = Column(String(200), nullable=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), nullable=False, default=AppointmentStatus.pending.value)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    # The completion sweep filters on both columns
    __table_args__ = (Index("idx_appointment_status_confirmed_at", "status", "confirmed_at"),)

    def __repr__(self) -> str:
        return f"<Appointment(id={self.id}, status={self.status})>"
