from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from exceptions import BadRequestError, NotFoundError
from models import BusinessKycRoc
from models.base import REVIEW_APPROVED
from schemas.business_kyc import RocDetailsInput
from services.documents import fetch_document_types
from services.stages import DocumentTypeCode


class RocService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_kyc(self, business_kyc_id: str) -> BusinessKycRoc | None:
        result = await self.session.execute(
            select(BusinessKycRoc).where(
                BusinessKycRoc.business_kyc_id == business_kyc_id,
                BusinessKycRoc.is_deleted.is_(False),
            )
        )
        return result.scalar_one_or_none()

    async def fetch_roc(self, business_kyc_id: str) -> BusinessKycRoc:
        roc = await self.find_by_kyc(business_kyc_id)
        if not roc:
            raise NotFoundError("ROC not found")
        return roc

    async def create_roc(self, business_kyc_id: str, company_profiles_id: str) -> BusinessKycRoc:
        existing = await self.find_by_kyc(business_kyc_id)
        if existing:
            return existing
        (doc_type,) = await fetch_document_types(self.session, (DocumentTypeCode.ROC,))
        roc = BusinessKycRoc(
            business_kyc_id=business_kyc_id,
            company_profiles_id=company_profiles_id,
            business_kyc_document_type_id=doc_type.id,
            charge_filing_id=doc_type.file_template_id,
            is_accepted=False,
            is_nash_activate=False,
        )
        self.session.add(roc)
        await self.session.flush()
        return roc

    def _ensure_open(self, roc: BusinessKycRoc) -> None:
        if roc.status == REVIEW_APPROVED:
            raise BadRequestError("ROC already finalized")

    async def update_roc_details(self, business_kyc_id: str, payload: RocDetailsInput) -> BusinessKycRoc:
        roc = await self.fetch_roc(business_kyc_id)
        self._ensure_open(roc)
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(roc, key, value)
        await self.session.flush()
        return roc

    async def activate_nash(self, business_kyc_id: str) -> BusinessKycRoc:
        roc = await self.fetch_roc(business_kyc_id)
        self._ensure_open(roc)
        roc.is_nash_activate = True
        await self.session.flush()
        return roc

    async def accept_roc(self, business_kyc_id: str) -> BusinessKycRoc:
        """Acceptance is only possible after NACH activation."""
        roc = await self.fetch_roc(business_kyc_id)
        self._ensure_open(roc)
        if not roc.is_nash_activate:
            raise BadRequestError("Activate NACH before accepting the ROC")
        roc.is_accepted = True
        roc.status = REVIEW_APPROVED
        roc.verified_at = datetime.now(timezone.utc)
        await self.session.flush()
        return roc
