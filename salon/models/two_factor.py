"""
Two-Factor Authentication Model

One row per (user, method). The credential depends on the method:
sms/email rows carry a one-time code challenge (hashed, expiring,
attempt-limited), authenticator rows carry a TOTP secret. The columns of
the other variant are always NULL; use `credential` and the setters rather
than touching the columns directly.
"""

import enum
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String, UniqueConstraint

from salon.database import Base
from salon.utils.time import as_utc, utcnow


class TwoFactorMethodType(str, enum.Enum):
    sms = "sms"
    email = "email"
    authenticator = "authenticator"

    @property
    def uses_otp(self) -> bool:
        return self is not TwoFactorMethodType.authenticator


@dataclass(frozen=True)
class OtpChallenge:
    """A delivered one-time code awaiting verification."""

    code_hash: str
    expires_at: datetime
    attempts: int = 0

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class TotpSecret:
    """Base32 secret shared with an authenticator app."""

    secret: str


class UserTwoFactor(Base):
    __tablename__ = "user_two_factor"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    method_type = Column(String(20), nullable=False)

    enabled = Column(Boolean, nullable=False, default=False)
    verified = Column(Boolean, nullable=False, default=False)

    # Email address or phone number the code was delivered to
    destination = Column(String(255), nullable=True)

    # sms / email variant
    otp_code_hash = Column(String(64), nullable=True)
    otp_expires_at = Column(DateTime(timezone=True), nullable=True)
    otp_attempts = Column(Integer, nullable=False, default=0)

    # authenticator variant
    totp_secret = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    verified_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (UniqueConstraint("user_id", "method_type", name="uq_user_two_factor_method"),)

    @property
    def method(self) -> TwoFactorMethodType:
        return TwoFactorMethodType(self.method_type)

    @property
    def credential(self) -> OtpChallenge | TotpSecret | None:
        if self.method.uses_otp:
            if self.otp_code_hash is None or self.otp_expires_at is None:
                return None
            return OtpChallenge(
                code_hash=self.otp_code_hash,
                expires_at=as_utc(self.otp_expires_at),
                attempts=self.otp_attempts or 0,
            )
        if self.totp_secret is None:
            return None
        return TotpSecret(secret=self.totp_secret)

    def set_challenge(self, challenge: OtpChallenge) -> None:
        if not self.method.uses_otp:
            raise ValueError("Authenticator methods do not take one-time codes")
        self.otp_code_hash = challenge.code_hash
        self.otp_expires_at = challenge.expires_at
        self.otp_attempts = challenge.attempts
        self.totp_secret = None

    def set_totp_secret(self, secret: TotpSecret) -> None:
        if self.method.uses_otp:
            raise ValueError("Only authenticator methods hold a TOTP secret")
        self.totp_secret = secret.secret
        self.clear_challenge()

    def clear_challenge(self) -> None:
        self.otp_code_hash = None
        self.otp_expires_at = None
        self.otp_attempts = 0

    def __repr__(self) -> str:
        return f"<UserTwoFactor(user_id={self.user_id}, method={self.method_type}, verified={self.verified})>"
