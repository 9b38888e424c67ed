from __future__ import annotations

from fastapi import APIRouter, Depends

from api.deps import get_state_service, get_verification_service, get_workflow, require_super_admin
from schemas import AuditedVerificationDecisionInput, FixStatusInput, VerificationDecisionInput
from services.state import BusinessKycStateService
from services.verification import BusinessKycVerificationService
from services.workflow import BusinessKycTransactionsService

router = APIRouter(
    prefix="/api/admin/business-kyc",
    tags=["business-kyc-admin"],
    dependencies=[Depends(require_super_admin)],
)


@router.get("/companies/{company_id}/state")
async def fetch_company_state(
    company_id: str,
    state: BusinessKycStateService = Depends(get_state_service),
):
    return await state.fetch_state_by_company(company_id)


@router.post("/companies/{company_id}/advance")
async def advance_workflow(
    company_id: str,
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    return await workflow.advance_workflow(company_id)


@router.patch("/companies/{company_id}/status")
async def fix_business_kyc_status(
    company_id: str,
    body: FixStatusInput,
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    return await workflow.fix_business_kyc_status(company_id, body.stage)


@router.patch("/business-profile-verification")
async def verify_business_profile(
    body: VerificationDecisionInput,
    verification: BusinessKycVerificationService = Depends(get_verification_service),
):
    return await verification.verify_business_profile(body.id, body.status, body.reason)


@router.patch("/audited-financial-verification")
async def verify_audited_financials(
    body: AuditedVerificationDecisionInput,
    verification: BusinessKycVerificationService = Depends(get_verification_service),
):
    return await verification.verify_audited_financials(body.company_profiles_id, body.status, body.reason)


@router.patch("/guarantor-verification")
async def verify_guarantor(
    body: VerificationDecisionInput,
    verification: BusinessKycVerificationService = Depends(get_verification_service),
):
    return await verification.verify_guarantor(body.id, body.status, body.reason)


@router.patch("/collateral-assets-verification")
async def verify_collateral_asset(
    body: VerificationDecisionInput,
    verification: BusinessKycVerificationService = Depends(get_verification_service),
):
    return await verification.verify_collateral_asset(body.id, body.status, body.reason)
