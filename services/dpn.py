from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from exceptions import BadRequestError, NotFoundError
from models import BusinessKycDpn
from models.base import REVIEW_APPROVED
from services.documents import fetch_document_types
from services.stages import DocumentTypeCode


class DpnService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_kyc(self, business_kyc_id: str) -> BusinessKycDpn | None:
        result = await self.session.execute(
            select(BusinessKycDpn).where(
                BusinessKycDpn.business_kyc_id == business_kyc_id,
                BusinessKycDpn.is_deleted.is_(False),
            )
        )
        return result.scalar_one_or_none()

    async def fetch_dpn(self, business_kyc_id: str) -> BusinessKycDpn:
        dpn = await self.find_by_kyc(business_kyc_id)
        if not dpn:
            raise NotFoundError("DPN not found")
        return dpn

    async def create_dpn(self, business_kyc_id: str, company_profiles_id: str) -> BusinessKycDpn:
        existing = await self.find_by_kyc(business_kyc_id)
        if existing:
            return existing
        (doc_type,) = await fetch_document_types(self.session, (DocumentTypeCode.DPN,))
        dpn = BusinessKycDpn(
            business_kyc_id=business_kyc_id,
            company_profiles_id=company_profiles_id,
            business_kyc_document_type_id=doc_type.id,
            media_id=doc_type.file_template_id,
            is_accepted=False,
        )
        self.session.add(dpn)
        await self.session.flush()
        return dpn

    async def update_acceptance(self, business_kyc_id: str, is_accepted: bool) -> BusinessKycDpn:
        dpn = await self.fetch_dpn(business_kyc_id)
        if dpn.status == REVIEW_APPROVED:
            raise BadRequestError("DPN already finalized")
        dpn.is_accepted = is_accepted
        await self.session.flush()
        return dpn

    async def finalize_dpn(self, business_kyc_id: str) -> BusinessKycDpn:
        dpn = await self.fetch_dpn(business_kyc_id)
        if dpn.status == REVIEW_APPROVED:
            raise BadRequestError("DPN already finalized")
        if not dpn.is_accepted:
            raise BadRequestError("Please accept the DPN before continuing")
        dpn.status = REVIEW_APPROVED
        dpn.verified_at = datetime.now(timezone.utc)
        await self.session.flush()
        return dpn
