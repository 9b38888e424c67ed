"""
Agreement stage: three fixed documents accepted one by one, then finalized together
after OTP verification.
"""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from exceptions import BadRequestError, NotFoundError
from models import BusinessKycAgreement
from models.base import REVIEW_APPROVED
from services.documents import fetch_document_types
from services.stages import AGREEMENT_DOCUMENT_TYPES


class AgreementService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def count_agreements(self, business_kyc_id: str) -> int:
        result = await self.session.execute(
            select(func.count(BusinessKycAgreement.id)).where(
                BusinessKycAgreement.business_kyc_id == business_kyc_id,
                BusinessKycAgreement.is_deleted.is_(False),
            )
        )
        return result.scalar_one()

    async def create_agreements(self, business_kyc_id: str, company_profiles_id: str) -> bool:
        """Create the fixed agreement rows once per KYC. Returns False when they already exist."""
        if await self.count_agreements(business_kyc_id) > 0:
            return False
        doc_types = await fetch_document_types(self.session, AGREEMENT_DOCUMENT_TYPES)
        for doc_type in doc_types:
            self.session.add(
                BusinessKycAgreement(
                    business_kyc_id=business_kyc_id,
                    company_profiles_id=company_profiles_id,
                    business_kyc_document_type_id=doc_type.id,
                    sequence_order=doc_type.sequence_order,
                    media_id=doc_type.file_template_id,
                    is_accepted=False,
                )
            )
        await self.session.flush()
        return True

    async def fetch_agreements(self, business_kyc_id: str) -> list[BusinessKycAgreement]:
        result = await self.session.execute(
            select(BusinessKycAgreement)
            .where(
                BusinessKycAgreement.business_kyc_id == business_kyc_id,
                BusinessKycAgreement.is_active.is_(True),
                BusinessKycAgreement.is_deleted.is_(False),
            )
            .order_by(BusinessKycAgreement.sequence_order)
        )
        return list(result.scalars().all())

    async def update_acceptance(
        self, business_kyc_id: str, agreement_id: str, is_accepted: bool, reason: str | None = None
    ) -> BusinessKycAgreement:
        agreement = await self.session.get(BusinessKycAgreement, agreement_id)
        if not agreement or agreement.is_deleted or agreement.business_kyc_id != business_kyc_id:
            raise NotFoundError("Agreement not found")
        if agreement.status == REVIEW_APPROVED:
            raise BadRequestError("Agreement already finalized")
        agreement.is_accepted = is_accepted
        agreement.reason = reason
        await self.session.flush()
        return agreement

    async def are_all_accepted(self, business_kyc_id: str) -> bool:
        agreements = await self.fetch_agreements(business_kyc_id)
        return bool(agreements) and all(a.is_accepted for a in agreements)

    async def fetch_next_pending_agreement(self, business_kyc_id: str) -> BusinessKycAgreement | None:
        for agreement in await self.fetch_agreements(business_kyc_id):
            if not agreement.is_accepted:
                return agreement
        return None

    async def finalize_agreements(self, business_kyc_id: str) -> list[BusinessKycAgreement]:
        agreements = await self.fetch_agreements(business_kyc_id)
        if not agreements:
            raise BadRequestError("No agreements found")
        if not all(a.is_accepted for a in agreements):
            raise BadRequestError("Please accept all agreements before continuing")
        now = datetime.now(timezone.utc)
        for agreement in agreements:
            agreement.status = REVIEW_APPROVED
            agreement.verified_at = now
        await self.session.flush()
        return agreements
