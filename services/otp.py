"""One-time codes that confirm e-signature of agreements and the DPN."""
from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from exceptions import BadRequestError, NotFoundError
from models import BusinessKycOtp

logger = logging.getLogger(__name__)

PURPOSE_AGREEMENT = "agreement"
PURPOSE_DPN = "dpn"


def _hash_code(code: str) -> str:
    return hmac.new(settings.token_secret.encode(), code.encode(), hashlib.sha256).hexdigest()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class OtpService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def issue(self, business_kyc_id: str, purpose: str) -> tuple[str, datetime]:
        """
        Invalidate earlier codes for the same purpose and create a new one.
        The plain code is returned for out-of-band delivery and never stored.
        """
        await self.session.execute(
            update(BusinessKycOtp)
            .where(
                BusinessKycOtp.business_kyc_id == business_kyc_id,
                BusinessKycOtp.purpose == purpose,
                BusinessKycOtp.is_used.is_(False),
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        code = "".join(secrets.choice("0123456789") for _ in range(settings.otp_length))
        expires_at = datetime.now(timezone.utc) + timedelta(minutes=settings.otp_ttl_minutes)
        self.session.add(
            BusinessKycOtp(
                business_kyc_id=business_kyc_id,
                purpose=purpose,
                code_hash=_hash_code(code),
                expires_at=expires_at,
            )
        )
        await self.session.flush()
        logger.info("Issued %s OTP for kyc=%s", purpose, business_kyc_id)
        return code, expires_at

    async def verify(self, business_kyc_id: str, purpose: str, code: str) -> bool:
        """
        Check a code. A wrong code records the attempt and returns False instead of raising,
        so the caller can commit the attempt counter before rejecting the request.
        """
        result = await self.session.execute(
            select(BusinessKycOtp)
            .where(
                BusinessKycOtp.business_kyc_id == business_kyc_id,
                BusinessKycOtp.purpose == purpose,
                BusinessKycOtp.is_active.is_(True),
                BusinessKycOtp.is_used.is_(False),
            )
            .order_by(BusinessKycOtp.created_at.desc())
        )
        otp = result.scalars().first()
        if not otp:
            raise NotFoundError("No OTP requested")
        if _as_utc(otp.expires_at) < datetime.now(timezone.utc):
            raise BadRequestError("OTP has expired")
        if otp.attempts >= settings.otp_max_attempts:
            raise BadRequestError("Too many OTP attempts, request a new code")
        if not hmac.compare_digest(otp.code_hash, _hash_code(code)):
            otp.attempts += 1
            await self.session.flush()
            logger.info("Wrong %s OTP for kyc=%s (attempt %d)", purpose, business_kyc_id, otp.attempts)
            return False
        otp.is_used = True
        await self.session.flush()
        return True
