from __future__ import annotations

from fastapi import APIRouter, Depends

from api.deps import get_current_user_id, get_state_service, get_workflow
from schemas import (
    AgreementAcceptanceInput,
    AuditedFinancialInput,
    CollateralAssetInput,
    DpnAcceptanceInput,
    GuarantorInput,
    OtpInput,
    ProfileDetailsInput,
    RocDetailsInput,
)
from services.state import BusinessKycStateService
from services.workflow import BusinessKycTransactionsService

router = APIRouter(prefix="/api/business-kyc", tags=["business-kyc"])


@router.post("/start")
async def start_business_kyc(
    user_id: str = Depends(get_current_user_id),
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    return await workflow.start_business_kyc(user_id)


@router.get("/state")
async def fetch_state(
    user_id: str = Depends(get_current_user_id),
    state: BusinessKycStateService = Depends(get_state_service),
):
    return await state.fetch_state_by_user(user_id)


@router.get("/steps/{status_value}")
async def fetch_step_data(
    status_value: str,
    user_id: str = Depends(get_current_user_id),
    state: BusinessKycStateService = Depends(get_state_service),
):
    return await state.fetch_step_data_by_status(user_id, status_value)


@router.patch("/profile-details")
async def update_profile_details(
    body: list[ProfileDetailsInput],
    user_id: str = Depends(get_current_user_id),
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    return await workflow.update_profile_details(user_id, body)


@router.patch("/audited-financials")
async def update_audited_financials(
    body: list[AuditedFinancialInput],
    user_id: str = Depends(get_current_user_id),
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    return await workflow.update_audited_financials(user_id, body)


@router.patch("/collateral-assets")
async def update_collateral_assets(
    body: list[CollateralAssetInput],
    user_id: str = Depends(get_current_user_id),
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    return await workflow.update_collateral_assets(user_id, body)


@router.post("/guarantors", status_code=201)
async def add_guarantor(
    body: GuarantorInput,
    user_id: str = Depends(get_current_user_id),
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    return await workflow.add_guarantor(user_id, body)


@router.patch("/guarantors/{guarantor_id}")
async def update_guarantor(
    guarantor_id: str,
    body: GuarantorInput,
    user_id: str = Depends(get_current_user_id),
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    return await workflow.update_guarantor(user_id, guarantor_id, body)


@router.post("/guarantors/complete")
async def complete_guarantor_step(
    user_id: str = Depends(get_current_user_id),
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    return await workflow.complete_guarantor_step(user_id)


@router.get("/guarantors/verify")
async def verify_guarantor_link(
    token: str,
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    """Public: opened by the guarantor from the emailed link."""
    return await workflow.verify_guarantor_link(token)


@router.post("/submit")
async def submit_review(
    user_id: str = Depends(get_current_user_id),
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    return await workflow.submit_review(user_id)


@router.patch("/agreements/{agreement_id}")
async def update_agreement(
    agreement_id: str,
    body: AgreementAcceptanceInput,
    user_id: str = Depends(get_current_user_id),
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    return await workflow.update_agreement(user_id, agreement_id, body.is_accepted, body.reason)


@router.post("/agreements/otp")
async def request_agreement_otp(
    user_id: str = Depends(get_current_user_id),
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    return await workflow.request_agreement_otp(user_id)


@router.post("/agreements/finalize")
async def finalize_agreements(
    body: OtpInput,
    user_id: str = Depends(get_current_user_id),
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    return await workflow.finalize_agreements(user_id, body.otp)


@router.post("/roc/activate-nash")
async def activate_nash(
    user_id: str = Depends(get_current_user_id),
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    return await workflow.activate_nash(user_id)


@router.patch("/roc")
async def update_roc_details(
    body: RocDetailsInput,
    user_id: str = Depends(get_current_user_id),
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    return await workflow.update_roc_details(user_id, body)


@router.post("/roc/accept")
async def accept_roc(
    user_id: str = Depends(get_current_user_id),
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    return await workflow.accept_roc(user_id)


@router.patch("/dpn")
async def update_dpn(
    body: DpnAcceptanceInput,
    user_id: str = Depends(get_current_user_id),
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    return await workflow.update_dpn(user_id, body.is_accepted)


@router.post("/dpn/otp")
async def request_dpn_otp(
    user_id: str = Depends(get_current_user_id),
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    return await workflow.request_dpn_otp(user_id)


@router.post("/dpn/finalize")
async def finalize_dpn(
    body: OtpInput,
    user_id: str = Depends(get_current_user_id),
    workflow: BusinessKycTransactionsService = Depends(get_workflow),
):
    return await workflow.finalize_dpn(user_id, body.otp)
