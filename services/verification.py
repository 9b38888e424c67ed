"""Back-office approval and rejection of submitted step data."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database import AsyncSessionLocal, unit_of_work
from exceptions import BadRequestError, NotFoundError
from models.base import REVIEW_APPROVED, REVIEW_REJECTED
from services.audited_financials import AuditedFinancialsService
from services.collateral_assets import CollateralAssetsService
from services.guarantors import GuarantorService
from services.profile_details import ProfileDetailsService
from services.workflow import company_by_id, find_active_kyc

logger = logging.getLogger(__name__)

DECISION_LABELS = {
    REVIEW_APPROVED: "approved",
    REVIEW_REJECTED: "rejected",
}


def check_decision(status: int, reason: str | None) -> None:
    if status not in DECISION_LABELS:
        raise BadRequestError("Status must be 1 (approve) or 2 (reject)")
    if status == REVIEW_REJECTED and not (reason or "").strip():
        raise BadRequestError("A reason is required when rejecting")


class BusinessKycVerificationService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal):
        self.session_factory = session_factory

    async def verify_business_profile(self, profile_id: str, status: int, reason: str | None = None) -> dict[str, Any]:
        check_decision(status, reason)
        async with unit_of_work(self.session_factory) as session:
            await ProfileDetailsService(session).update_status(profile_id, status, reason)
        logger.info("Business profile %s %s", profile_id, DECISION_LABELS[status])
        return {"success": True, "message": f"Business profile {DECISION_LABELS[status]}"}

    async def verify_guarantor(self, guarantor_id: str, status: int, reason: str | None = None) -> dict[str, Any]:
        check_decision(status, reason)
        async with unit_of_work(self.session_factory) as session:
            await GuarantorService(session).update_status(guarantor_id, status, reason)
        logger.info("Guarantor %s %s", guarantor_id, DECISION_LABELS[status])
        return {"success": True, "message": f"Guarantor {DECISION_LABELS[status]}"}

    async def verify_collateral_asset(self, asset_id: str, status: int, reason: str | None = None) -> dict[str, Any]:
        check_decision(status, reason)
        async with unit_of_work(self.session_factory) as session:
            await CollateralAssetsService(session).update_status(asset_id, status, reason)
        logger.info("Collateral asset %s %s", asset_id, DECISION_LABELS[status])
        return {"success": True, "message": f"Collateral asset {DECISION_LABELS[status]}"}

    async def verify_audited_financials(
        self, company_id: str, status: int, reason: str | None = None
    ) -> dict[str, Any]:
        """Audited financials are decided as a whole for the company's active KYC."""
        check_decision(status, reason)
        async with unit_of_work(self.session_factory) as session:
            company = await company_by_id(session, company_id)
            kyc = await find_active_kyc(session, company)
            if not kyc:
                raise NotFoundError("Business KYC not started")
            rows = await AuditedFinancialsService(session).update_status_by_kyc(kyc.id, status, reason)
        logger.info("Audited financials of company=%s %s (%d rows)", company_id, DECISION_LABELS[status], len(rows))
        return {
            "success": True,
            "message": f"Audited financials {DECISION_LABELS[status]}",
            "count": len(rows),
        }
