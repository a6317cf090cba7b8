"""
Two-Factor Authentication Service

One-time codes delivered by SMS or email, and TOTP secrets for
authenticator apps (pyotp). Codes are stored hashed, expire, allow a
limited number of wrong guesses and are consumed on success.
"""

import asyncio
import base64
import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from io import BytesIO

import pyotp
import qrcode
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon.config import Settings
from salon.exceptions import (
    ServiceError,
    TwoFactorMethodNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from salon.models.two_factor import OtpChallenge, TotpSecret, TwoFactorMethodType, UserTwoFactor
from salon.models.user import User
from salon.services.notification_service import EmailService, SmsService
from salon.utils.time import isoformat, utcnow

logger = logging.getLogger(__name__)

# Codes are uniform over [100000, 999999]
CODE_MIN = 100000
CODE_SPAN = 900000


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    message: str


def _hash_code(code: str) -> str:
    return hashlib.sha256(code.encode()).hexdigest()


def _parse_method(method_type: str | None) -> TwoFactorMethodType:
    try:
        return TwoFactorMethodType(method_type)
    except ValueError:
        raise ValidationError(f"Invalid method type: {method_type}", field="methodType") from None


class TwoFactorService:
    """Service for issuing and verifying second factors."""

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings,
        email_service: EmailService | None = None,
        sms_service: SmsService | None = None,
    ):
        self.db = db
        self.settings = settings
        self.email_service = email_service or EmailService(settings)
        self.sms_service = sms_service or SmsService(settings)

    async def _get_user(self, user_id: str) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalars().first()
        if not user:
            raise UserNotFoundError(user_id)
        return user

    async def _get_method(self, user_id: str, method: TwoFactorMethodType) -> UserTwoFactor | None:
        result = await self.db.execute(
            select(UserTwoFactor).where(
                UserTwoFactor.user_id == user_id,
                UserTwoFactor.method_type == method.value,
            )
        )
        return result.scalars().first()

    async def _get_or_create_method(self, user_id: str, method: TwoFactorMethodType) -> UserTwoFactor:
        tfa = await self._get_method(user_id, method)
        if tfa is None:
            tfa = UserTwoFactor(user_id=user_id, method_type=method.value, otp_attempts=0)
            self.db.add(tfa)
        return tfa

    # ============== One-time codes ==============

    async def request_code(self, user_id: str, method_type: str) -> dict:
        """
        Issue a fresh code for an sms/email method and deliver it.

        Any previous unverified code for the same method is overwritten.

        Returns:
            dict with success flag, message and, when enabled in settings, the code
        """
        if not user_id or not method_type:
            raise ValidationError("Missing required parameters")

        method = _parse_method(method_type)
        if not method.uses_otp:
            raise ValidationError("Authenticator methods use generate-2fa-secret", field="methodType")

        user = await self._get_user(user_id)
        destination = user.email if method is TwoFactorMethodType.email else user.phone
        if not destination:
            raise ValidationError(f"User has no {method.value} destination configured", field="methodType")

        code = str(CODE_MIN + secrets.randbelow(CODE_SPAN))
        ttl = self.settings.two_factor_code_ttl_seconds

        tfa = await self._get_or_create_method(user_id, method)
        tfa.enabled = False
        tfa.verified = False
        tfa.destination = destination
        tfa.set_challenge(OtpChallenge(code_hash=_hash_code(code), expires_at=utcnow() + timedelta(seconds=ttl)))

        # Nothing is stored unless the code actually went out
        try:
            await self._deliver(method, destination, code, ttl)
        except ServiceError:
            await self.db.rollback()
            raise
        await self.db.commit()
        logger.info(f"2FA {method.value} code issued for user {user_id}")

        response = {"success": True, "message": "Verification code sent successfully"}
        if self.settings.two_factor_expose_code:
            response["code"] = code
        return response

    async def _deliver(self, method: TwoFactorMethodType, destination: str, code: str, ttl: int) -> None:
        if method is TwoFactorMethodType.email:
            sent = await asyncio.to_thread(
                self.email_service.send_two_factor_code, destination, code, ttl_minutes=max(ttl // 60, 1)
            )
            error = None
        else:
            sent, error = await self.sms_service.send_sms(
                destination, f"Your BarberSalon verification code is: {code}"
            )
        if not sent:
            raise ServiceError(f"Failed to deliver verification code: {error or 'send failed'}", service=method.value)

    async def verify_code(
        self, user_id: str, method_type: str, code: str, secret_key: str | None = None
    ) -> VerificationResult:
        """
        Verify a code for a user's method.

        A wrong, expired or already-used code is a negative result, not an
        error. Authenticator codes are checked against the supplied secret,
        or the pending one from generate_secret.
        """
        if not user_id or not method_type or not code:
            raise ValidationError("Missing required parameters")

        method = _parse_method(method_type)
        if method.uses_otp:
            return await self._verify_otp(user_id, method, code)
        return await self._verify_totp(user_id, code, secret_key)

    async def _verify_otp(self, user_id: str, method: TwoFactorMethodType, code: str) -> VerificationResult:
        tfa = await self._get_method(user_id, method)
        if tfa is None:
            raise TwoFactorMethodNotFoundError(user_id, method.value)

        challenge = tfa.credential
        if not isinstance(challenge, OtpChallenge):
            return VerificationResult(False, "Invalid verification code")

        if challenge.is_expired(utcnow()):
            tfa.clear_challenge()
            await self.db.commit()
            return VerificationResult(False, "Verification code expired")

        if not hmac.compare_digest(_hash_code(code), challenge.code_hash):
            attempts = challenge.attempts + 1
            if attempts >= self.settings.two_factor_max_attempts:
                tfa.clear_challenge()
                logger.warning(f"2FA {method.value} code for user {user_id} discarded after {attempts} failed attempts")
            else:
                tfa.set_challenge(OtpChallenge(challenge.code_hash, challenge.expires_at, attempts))
            await self.db.commit()
            return VerificationResult(False, "Invalid verification code")

        tfa.enabled = True
        tfa.verified = True
        tfa.verified_at = utcnow()
        tfa.clear_challenge()
        await self.db.commit()

        logger.info(f"2FA {method.value} verified for user {user_id}")
        return VerificationResult(True, "2FA verification successful")

    # ============== Authenticator (TOTP) ==============

    async def _verify_totp(self, user_id: str, code: str, secret_key: str | None) -> VerificationResult:
        tfa = await self._get_method(user_id, TwoFactorMethodType.authenticator)
        stored = tfa.credential if tfa else None
        secret = secret_key or (stored.secret if isinstance(stored, TotpSecret) else None)
        if not secret:
            raise ValidationError("Secret key required for authenticator verification", field="secretKey")

        try:
            valid = pyotp.TOTP(secret).verify(code, valid_window=self.settings.totp_valid_window)
        except ValueError as e:
            raise ValidationError("Invalid secret key", field="secretKey") from e

        if not valid:
            return VerificationResult(False, "Invalid verification code")

        if tfa is None:
            tfa = await self._get_or_create_method(user_id, TwoFactorMethodType.authenticator)
        tfa.set_totp_secret(TotpSecret(secret))
        tfa.enabled = True
        tfa.verified = True
        tfa.verified_at = utcnow()
        await self.db.commit()

        logger.info(f"2FA authenticator verified for user {user_id}")
        return VerificationResult(True, "2FA verification successful")

    async def generate_secret(self, user_id: str) -> dict:
        """
        Create a pending authenticator secret for a user.

        Returns:
            dict with the base32 secret, a PNG QR code data URL and the otpauth URI
        """
        if not user_id:
            raise ValidationError("Missing required parameters")

        user = await self._get_user(user_id)
        secret = pyotp.random_base32()
        totp_uri = pyotp.TOTP(secret).provisioning_uri(name=user.email, issuer_name=self.settings.totp_issuer)

        tfa = await self._get_or_create_method(user_id, TwoFactorMethodType.authenticator)
        tfa.set_totp_secret(TotpSecret(secret))
        tfa.enabled = False
        tfa.verified = False
        await self.db.commit()

        logger.info(f"Authenticator secret generated for user {user_id}")
        return {
            "secret": secret,
            "qrCode": f"data:image/png;base64,{self._generate_qr_code(totp_uri)}",
            "totpUri": totp_uri,
        }

    async def list_methods(self, user_id: str) -> list[dict]:
        result = await self.db.execute(
            select(UserTwoFactor).where(UserTwoFactor.user_id == user_id).order_by(UserTwoFactor.method_type)
        )
        return [
            {
                "methodType": tfa.method_type,
                "enabled": tfa.enabled,
                "verified": tfa.verified,
                "destination": tfa.destination,
                "verifiedAt": isoformat(tfa.verified_at),
            }
            for tfa in result.scalars().all()
        ]

    def _generate_qr_code(self, provisioning_uri: str) -> str:
        """Generate QR code as base64 PNG."""
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=10,
            border=4,
        )
        qr.add_data(provisioning_uri)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffer = BytesIO()
        img.save(buffer, format="PNG")
        buffer.seek(0)

        return base64.b64encode(buffer.read()).decode("utf-8")
