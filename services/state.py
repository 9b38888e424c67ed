"""
Read side of the Business KYC workflow: the UI-facing progress view derived from the
status pointer, and the stored data behind each stage.
"""
from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database import AsyncSessionLocal
from exceptions import BadRequestError
from models import BusinessKyc, BusinessKycStatusMaster, CompanyProfile
from services.agreements import AgreementService
from services.audited_financials import AuditedFinancialsService
from services.collateral_assets import CollateralAssetsService
from services.dpn import DpnService
from services.guarantors import GuarantorService
from services.profile_details import ProfileDetailsService
from services.roc import RocService
from services.stages import AuditedCategory, KycStage, UI_STEPS, ui_step_for
from services.status import BusinessKycStatusService, status_ref
from services.workflow import resolve_kyc, stage_of
from utils.case import row_to_camel, rows_to_camel


def project_state(
    company: CompanyProfile, kyc: BusinessKyc, current: BusinessKycStatusMaster
) -> dict[str, Any]:
    """
    A UI step is complete once the pointer is past its last stage. The four audited
    financial categories collapse into one step. Stages outside any UI step
    (pending, completed) are shown as themselves.
    """
    is_complete = bool(current.is_terminal)
    completed_steps = [
        {"code": step.code, "label": step.label}
        for step in UI_STEPS
        if is_complete or current.sequence_order > step.last_sequence
    ]
    step = ui_step_for(stage_of(current))
    if step is not None:
        active_step = {"code": step.code, "label": step.label}
    else:
        active_step = {"code": current.value, "label": current.status}
    return {
        "businessKycId": kyc.id,
        "companyProfileId": company.id,
        "completedSteps": completed_steps,
        "currentStage": status_ref(current),
        "isBusinessKycComplete": is_complete,
        "activeStep": active_step,
    }


class BusinessKycStateService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal):
        self.session_factory = session_factory

    async def fetch_state_by_user(self, user_id: str) -> dict[str, Any]:
        async with self.session_factory() as session:
            return project_state(*await resolve_kyc(session, user_id=user_id))

    async def fetch_state_by_company(self, company_id: str) -> dict[str, Any]:
        async with self.session_factory() as session:
            return project_state(*await resolve_kyc(session, company_id=company_id))

    async def fetch_step_data_by_status(self, user_id: str, status_value: str) -> dict[str, Any]:
        """Stored data for a stage the KYC has already reached."""
        async with self.session_factory() as session:
            _, kyc, current = await resolve_kyc(session, user_id=user_id)
            requested = await BusinessKycStatusService(session).verify_status_value(status_value)
            if requested.sequence_order > current.sequence_order:
                raise BadRequestError("This step is not completed yet")
            return {
                "businessKycId": kyc.id,
                "step": status_ref(requested),
                "data": await fetch_stage_data(session, kyc.id, stage_of(requested)),
            }


async def fetch_stage_data(session: AsyncSession, business_kyc_id: str, stage: KycStage) -> dict[str, Any]:
    if stage is KycStage.BUSINESS_PROFILE:
        rows = await ProfileDetailsService(session).fetch_profile_details(business_kyc_id)
        return {"profileDetails": rows_to_camel(rows)}

    if stage.value in {c.value for c in AuditedCategory}:
        rows = await AuditedFinancialsService(session).fetch_by_kyc(business_kyc_id)
        return {"auditedFinancials": rows_to_camel(r for r in rows if r.category == stage.value)}

    if stage is KycStage.COLLATERAL_ASSETS:
        rows = await CollateralAssetsService(session).fetch_collateral_assets(business_kyc_id)
        return {"collateralAssets": rows_to_camel(rows)}

    if stage is KycStage.GUARANTOR_DETAILS:
        rows = await GuarantorService(session).fetch_guarantors(business_kyc_id)
        return {"guarantors": rows_to_camel(rows)}

    if stage is KycStage.AGREEMENT:
        rows = await AgreementService(session).fetch_agreements(business_kyc_id)
        return {"agreements": rows_to_camel(rows)}

    if stage is KycStage.ROC:
        roc = await RocService(session).find_by_kyc(business_kyc_id)
        return {"roc": row_to_camel(roc) if roc else None}

    if stage is KycStage.DPN:
        dpn = await DpnService(session).find_by_kyc(business_kyc_id)
        return {"dpn": row_to_camel(dpn) if dpn else None}

    # review_and_submit, pending and completed show the whole submission
    grouped = await AuditedFinancialsService(session).fetch_audited_financials(business_kyc_id)
    return {
        "profileDetails": rows_to_camel(
            await ProfileDetailsService(session).fetch_profile_details(business_kyc_id)
        ),
        "auditedFinancials": {key: rows_to_camel(rows) for key, rows in grouped.items()},
        "collateralAssets": rows_to_camel(
            await CollateralAssetsService(session).fetch_collateral_assets(business_kyc_id)
        ),
        "guarantors": rows_to_camel(await GuarantorService(session).fetch_guarantors(business_kyc_id)),
    }
