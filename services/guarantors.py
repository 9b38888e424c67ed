from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlencode

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from exceptions import BadRequestError, ForbiddenError, NotFoundError
from models import BusinessKyc, BusinessKycGuarantor, BusinessKycGuarantorVerification
from models.base import REVIEW_UNDER_REVIEW
from schemas.business_kyc import GuarantorInput
from services.tokens import create_verification_token, decode_verification_token

logger = logging.getLogger(__name__)


class GuarantorService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def fetch_guarantors(self, business_kyc_id: str) -> list[BusinessKycGuarantor]:
        result = await self.session.execute(
            select(BusinessKycGuarantor)
            .where(
                BusinessKycGuarantor.business_kyc_id == business_kyc_id,
                BusinessKycGuarantor.is_active.is_(True),
                BusinessKycGuarantor.is_deleted.is_(False),
            )
            .order_by(BusinessKycGuarantor.created_at, BusinessKycGuarantor.id)
        )
        return list(result.scalars().all())

    async def count_guarantors(self, business_kyc_id: str) -> int:
        result = await self.session.execute(
            select(func.count(BusinessKycGuarantor.id)).where(
                BusinessKycGuarantor.business_kyc_id == business_kyc_id,
                BusinessKycGuarantor.is_active.is_(True),
                BusinessKycGuarantor.is_deleted.is_(False),
            )
        )
        return result.scalar_one()

    async def _ensure_unique_pan(self, business_kyc_id: str, pan_number: str, exclude_id: str | None = None) -> None:
        query = select(BusinessKycGuarantor.id).where(
            BusinessKycGuarantor.business_kyc_id == business_kyc_id,
            BusinessKycGuarantor.pan_number == pan_number.upper(),
            BusinessKycGuarantor.is_deleted.is_(False),
        )
        if exclude_id:
            query = query.where(BusinessKycGuarantor.id != exclude_id)
        if (await self.session.execute(query)).first():
            raise BadRequestError("A guarantor with this PAN already exists")

    async def create_guarantor(
        self, business_kyc_id: str, company_profiles_id: str, payload: GuarantorInput
    ) -> tuple[BusinessKycGuarantor, BusinessKycGuarantorVerification]:
        await self._ensure_unique_pan(business_kyc_id, payload.pan_number)
        values = payload.model_dump()
        values["pan_number"] = payload.pan_number.upper()
        guarantor = BusinessKycGuarantor(
            business_kyc_id=business_kyc_id,
            company_profiles_id=company_profiles_id,
            **values,
        )
        self.session.add(guarantor)
        await self.session.flush()
        verification = await self.create_verification_link(guarantor)
        return guarantor, verification

    async def update_guarantor(
        self, guarantor_id: str, company_profiles_id: str, payload: GuarantorInput
    ) -> tuple[BusinessKycGuarantor, BusinessKycGuarantorVerification]:
        """Owner-only update. Review state and the verification link are reset."""
        guarantor = await self.session.get(BusinessKycGuarantor, guarantor_id)
        if not guarantor or guarantor.is_deleted or not guarantor.is_active:
            raise NotFoundError("Guarantor not found")
        kyc = await self.session.get(BusinessKyc, guarantor.business_kyc_id)
        if not kyc or kyc.company_profiles_id != company_profiles_id:
            raise ForbiddenError("Guarantor does not belong to your company")

        await self._ensure_unique_pan(guarantor.business_kyc_id, payload.pan_number, exclude_id=guarantor.id)
        values = payload.model_dump()
        values["pan_number"] = payload.pan_number.upper()
        for key, value in values.items():
            setattr(guarantor, key, value)
        guarantor.status = REVIEW_UNDER_REVIEW
        guarantor.reason = None
        guarantor.verified_at = None
        await self.session.flush()
        verification = await self.create_verification_link(guarantor)
        return guarantor, verification

    async def update_status(self, guarantor_id: str, status: int, reason: str | None = None) -> BusinessKycGuarantor:
        guarantor = await self.session.get(BusinessKycGuarantor, guarantor_id)
        if not guarantor or guarantor.is_deleted or not guarantor.is_active:
            raise NotFoundError("Guarantor not found")
        guarantor.apply_review(status, reason)
        await self.session.flush()
        return guarantor

    async def create_verification_link(
        self, guarantor: BusinessKycGuarantor
    ) -> BusinessKycGuarantorVerification:
        """Retire earlier unused links and issue a fresh signed one."""
        previous = await self.session.execute(
            select(BusinessKycGuarantorVerification).where(
                BusinessKycGuarantorVerification.business_kyc_guarantor_id == guarantor.id,
                BusinessKycGuarantorVerification.is_active.is_(True),
            )
        )
        for row in previous.scalars().all():
            row.is_active = False

        ttl = timedelta(hours=settings.guarantor_link_ttl_hours)
        verification = BusinessKycGuarantorVerification(
            business_kyc_guarantor_id=guarantor.id,
            expires_at=datetime.now(timezone.utc) + ttl,
        )
        self.session.add(verification)
        await self.session.flush()

        token, expires_at = create_verification_token(
            {"guarantorId": guarantor.id, "verificationId": verification.id}, ttl
        )
        verification.expires_at = expires_at
        verification.verification_url = (
            f"{settings.frontend_url.rstrip('/')}/guarantor/verify?{urlencode({'token': token})}"
        )
        await self.session.flush()
        logger.info("Issued verification link for guarantor=%s", guarantor.id)
        return verification

    async def verify_guarantor_token(self, token: str) -> dict[str, Any]:
        """Consume a verification link. Each link can be used once."""
        claims = decode_verification_token(token)
        verification = await self.session.get(BusinessKycGuarantorVerification, claims.get("verificationId"))
        if (
            not verification
            or not verification.is_active
            or verification.business_kyc_guarantor_id != claims.get("guarantorId")
        ):
            raise BadRequestError("Invalid verification link")
        if verification.is_used:
            raise BadRequestError("Verification link has already been used")

        now = datetime.now(timezone.utc)
        verification.is_used = True
        verification.is_verified = True
        verification.verified_at = now
        await self.session.flush()
        return {
            "guarantorId": verification.business_kyc_guarantor_id,
            "verificationId": verification.id,
            "isVerified": True,
        }
