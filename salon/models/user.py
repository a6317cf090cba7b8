import uuid

from sqlalchemy import Column, DateTime, String

from salon.database import Base
from salon.utils.time import utcnow


class User(Base):
    """
    Minimal account identity.

    Authentication lives in the identity provider; this table keeps the
    contact points needed to deliver verification codes and to match
    payment-processor customers to tenant owners.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), nullable=False, unique=True, index=True)
    phone = Column(String(32), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
