"""
Business KYC workflow orchestrator.

Every public operation runs in one unit of work: resolve the caller's company and KYC,
check the stage guard, write the step data, and move the status pointer. A failure at any
point rolls back the data write and the pointer move together.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database import AsyncSessionLocal, unit_of_work
from exceptions import BadRequestError, CatalogConfigurationError, NotFoundError, StageGuardError
from models import BusinessKyc, BusinessKycStatusMaster, CompanyProfile
from schemas.business_kyc import (
    AuditedFinancialInput,
    CollateralAssetInput,
    GuarantorInput,
    ProfileDetailsInput,
    RocDetailsInput,
)
from services.agreements import AgreementService
from services.audited_financials import AuditedFinancialsService, validate_batch
from services.collateral_assets import CollateralAssetsService
from services.dpn import DpnService
from services.guarantors import GuarantorService
from services.media import MediaService
from services.otp import PURPOSE_AGREEMENT, PURPOSE_DPN, OtpService
from services.profile_details import ProfileDetailsService
from services.roc import RocService
from services.stages import LAST_EDITABLE_STAGE, AuditedCategory, KycStage, sequence_of
from services.status import BusinessKycStatusService, status_ref
from utils.case import row_to_camel, rows_to_camel

logger = logging.getLogger(__name__)

# (business_kyc_id, purpose, code) -> delivery
OtpSender = Callable[[str, str, str], Awaitable[None]]


async def log_otp_sender(business_kyc_id: str, purpose: str, code: str) -> None:
    """Development delivery: the code only reaches DEBUG logs."""
    logger.debug("OTP for kyc=%s purpose=%s: %s", business_kyc_id, purpose, code)


async def company_for_user(session: AsyncSession, user_id: str) -> CompanyProfile:
    result = await session.execute(
        select(CompanyProfile).where(
            CompanyProfile.users_id == user_id,
            CompanyProfile.is_active.is_(True),
            CompanyProfile.is_deleted.is_(False),
        )
    )
    company = result.scalars().first()
    if not company:
        raise NotFoundError("Company profile not found")
    return company


async def company_by_id(session: AsyncSession, company_id: str) -> CompanyProfile:
    company = await session.get(CompanyProfile, company_id)
    if not company or not company.is_active or company.is_deleted:
        raise NotFoundError("Company profile not found")
    return company


async def find_active_kyc(session: AsyncSession, company: CompanyProfile) -> BusinessKyc | None:
    result = await session.execute(
        select(BusinessKyc).where(
            BusinessKyc.company_profiles_id == company.id,
            BusinessKyc.is_active.is_(True),
            BusinessKyc.is_deleted.is_(False),
        )
    )
    return result.scalars().first()


async def resolve_kyc(
    session: AsyncSession, *, user_id: str | None = None, company_id: str | None = None
) -> tuple[CompanyProfile, BusinessKyc, BusinessKycStatusMaster]:
    """Company (by owning user or by id), its active KYC and the KYC's current status."""
    if company_id is not None:
        company = await company_by_id(session, company_id)
    else:
        company = await company_for_user(session, user_id)
    kyc = await find_active_kyc(session, company)
    if not kyc:
        raise NotFoundError("Business KYC not started")
    current = await BusinessKycStatusService(session).fetch_application_status_by_id(
        kyc.business_kyc_status_master_id
    )
    return company, kyc, current


def stage_of(status: BusinessKycStatusMaster) -> KycStage:
    try:
        return KycStage(status.value)
    except ValueError as e:
        raise CatalogConfigurationError(f"Unknown stage '{status.value}' in status catalog") from e


def assert_stage(current: BusinessKycStatusMaster, expected: KycStage) -> None:
    """Reject the operation unless the KYC pointer is exactly on the expected stage."""
    if current.value != expected.value:
        logger.info("Stage guard rejected: at %s, required %s", current.value, expected.value)
        raise StageGuardError(current.value, expected.value)


def assert_step_reachable(current: BusinessKycStatusMaster, step: KycStage) -> bool:
    """
    Guard for editable data steps. The step must not be ahead of the pointer and the KYC
    must not have been submitted for review yet. Returns True when the pointer is on the
    step itself, i.e. a successful write should advance it.
    """
    current_seq = sequence_of(stage_of(current))
    step_seq = sequence_of(step)
    if current_seq < step_seq:
        logger.info("Stage guard rejected: at %s, required %s", current.value, step.value)
        raise StageGuardError(current.value, step.value)
    if current_seq > sequence_of(LAST_EDITABLE_STAGE):
        raise BadRequestError("Business KYC has already been submitted for review")
    return current_seq == step_seq


class BusinessKycTransactionsService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        otp_sender: OtpSender = log_otp_sender,
    ):
        self.session_factory = session_factory
        self.otp_sender = otp_sender

    def _unit_of_work(self):
        return unit_of_work(self.session_factory)

    async def _prepare_stage_rows(
        self, session: AsyncSession, kyc: BusinessKyc, stage: KycStage
    ) -> dict[str, Any]:
        """Rows a stage needs before the user can act on it, created on entry."""
        if stage is KycStage.AGREEMENT:
            await AgreementService(session).create_agreements(kyc.id, kyc.company_profiles_id)
            return {"agreements": rows_to_camel(await AgreementService(session).fetch_agreements(kyc.id))}
        if stage is KycStage.ROC:
            return {"roc": row_to_camel(await RocService(session).create_roc(kyc.id, kyc.company_profiles_id))}
        if stage is KycStage.DPN:
            return {"dpn": row_to_camel(await DpnService(session).create_dpn(kyc.id, kyc.company_profiles_id))}
        return {}

    async def _advance(
        self, session: AsyncSession, kyc: BusinessKyc, current: BusinessKycStatusMaster
    ) -> tuple[BusinessKycStatusMaster, dict[str, Any]]:
        next_status = await BusinessKycStatusService(session).advance(kyc, current)
        extra = await self._prepare_stage_rows(session, kyc, stage_of(next_status))
        return next_status, extra

    # ------------------------------------------------------------------ #
    # Start
    # ------------------------------------------------------------------ #

    async def start_business_kyc(self, user_id: str) -> dict[str, Any]:
        """Idempotent: an existing active KYC is returned instead of creating another."""
        async with self._unit_of_work() as session:
            company = await company_for_user(session, user_id)
            status_service = BusinessKycStatusService(session)
            kyc = await find_active_kyc(session, company)
            created = kyc is None
            if created:
                initial = await status_service.fetch_initial_status()
                kyc = BusinessKyc(
                    company_profiles_id=company.id,
                    business_kyc_status_master_id=initial.id,
                    status=initial.value,
                )
                session.add(kyc)
                await session.flush()
                logger.info("Started business KYC %s for company=%s", kyc.id, company.id)
            current = await status_service.fetch_application_status_by_id(kyc.business_kyc_status_master_id)
            return {
                "businessKycId": kyc.id,
                "created": created,
                "activeStep": status_ref(current),
            }

    # ------------------------------------------------------------------ #
    # Data steps
    # ------------------------------------------------------------------ #

    async def update_profile_details(self, user_id: str, rows: list[ProfileDetailsInput]) -> dict[str, Any]:
        if not rows:
            raise BadRequestError("Profile details are required")
        async with self._unit_of_work() as session:
            _, kyc, current = await resolve_kyc(session, user_id=user_id)
            should_advance = assert_step_reachable(current, KycStage.BUSINESS_PROFILE)

            profile = await ProfileDetailsService(session).replace_profile_details(kyc.id, rows)
            response: dict[str, Any] = {"profileDetails": rows_to_camel(profile)}
            if should_advance:
                next_status, _ = await self._advance(session, kyc, current)
                response["currentStatus"] = status_ref(next_status)
            return response

    async def update_audited_financials(
        self, user_id: str, records: list[AuditedFinancialInput]
    ) -> dict[str, Any]:
        category: AuditedCategory = validate_batch(records)
        async with self._unit_of_work() as session:
            _, kyc, current = await resolve_kyc(session, user_id=user_id)
            should_advance = assert_step_reachable(current, category.stage)

            audited = AuditedFinancialsService(session)
            previous_files = [row.file_id for row in await audited.fetch_by_kyc(kyc.id)]
            _, rows, is_updated = await audited.create_or_update(kyc.id, records)
            await MediaService(session).replace_references(
                previous_files, [row.file_id for row in await audited.fetch_by_kyc(kyc.id)]
            )

            response: dict[str, Any] = {
                "category": category.value,
                "auditedFinancials": rows_to_camel(rows),
                "isUpdated": is_updated,
            }
            if should_advance:
                next_status, _ = await self._advance(session, kyc, current)
                response["currentStatus"] = status_ref(next_status)
            return response

    async def update_collateral_assets(
        self, user_id: str, rows: list[CollateralAssetInput]
    ) -> dict[str, Any]:
        if not rows:
            raise BadRequestError("At least one collateral asset is required")
        async with self._unit_of_work() as session:
            company, kyc, current = await resolve_kyc(session, user_id=user_id)
            should_advance = assert_step_reachable(current, KycStage.COLLATERAL_ASSETS)

            collateral = CollateralAssetsService(session)
            previous_documents = [a.document_id for a in await collateral.fetch_collateral_assets(kyc.id)]
            assets = await collateral.replace_collateral_assets(kyc.id, company.id, rows)
            await MediaService(session).replace_references(previous_documents, [a.document_id for a in assets])

            response: dict[str, Any] = {"collateralAssets": rows_to_camel(assets)}
            if should_advance:
                next_status, _ = await self._advance(session, kyc, current)
                response["currentStatus"] = status_ref(next_status)
            return response

    # ------------------------------------------------------------------ #
    # Guarantors
    # ------------------------------------------------------------------ #

    @staticmethod
    def _guarantor_response(guarantor, verification) -> dict[str, Any]:
        return {
            "guarantor": row_to_camel(guarantor),
            "verification": {
                "id": verification.id,
                "verificationUrl": verification.verification_url,
                "expiresAt": verification.expires_at.isoformat(),
            },
        }

    async def add_guarantor(self, user_id: str, payload: GuarantorInput) -> dict[str, Any]:
        async with self._unit_of_work() as session:
            company, kyc, current = await resolve_kyc(session, user_id=user_id)
            assert_step_reachable(current, KycStage.GUARANTOR_DETAILS)
            guarantor, verification = await GuarantorService(session).create_guarantor(
                kyc.id, company.id, payload
            )
            return self._guarantor_response(guarantor, verification)

    async def update_guarantor(self, user_id: str, guarantor_id: str, payload: GuarantorInput) -> dict[str, Any]:
        async with self._unit_of_work() as session:
            company, _, current = await resolve_kyc(session, user_id=user_id)
            assert_step_reachable(current, KycStage.GUARANTOR_DETAILS)
            guarantor, verification = await GuarantorService(session).update_guarantor(
                guarantor_id, company.id, payload
            )
            return self._guarantor_response(guarantor, verification)

    async def complete_guarantor_step(self, user_id: str) -> dict[str, Any]:
        async with self._unit_of_work() as session:
            _, kyc, current = await resolve_kyc(session, user_id=user_id)
            if await GuarantorService(session).count_guarantors(kyc.id) == 0:
                raise BadRequestError("At least one guarantor is required to continue")

            # Already completed: editing guarantors after the step is allowed
            if current.value == KycStage.REVIEW_AND_SUBMIT.value:
                return {"currentStatus": status_ref(current)}

            assert_stage(current, KycStage.GUARANTOR_DETAILS)
            next_status, _ = await self._advance(session, kyc, current)
            return {"currentStatus": status_ref(next_status)}

    async def verify_guarantor_link(self, token: str) -> dict[str, Any]:
        async with self._unit_of_work() as session:
            return await GuarantorService(session).verify_guarantor_token(token)

    # ------------------------------------------------------------------ #
    # Review
    # ------------------------------------------------------------------ #

    @staticmethod
    async def _missing_sections(session: AsyncSession, kyc_id: str) -> list[str]:
        missing = []
        if not await ProfileDetailsService(session).fetch_profile_details(kyc_id):
            missing.append(KycStage.BUSINESS_PROFILE.value)
        present = {row.category for row in await AuditedFinancialsService(session).fetch_by_kyc(kyc_id)}
        missing.extend(c.value for c in AuditedCategory if c.value not in present)
        if not await CollateralAssetsService(session).fetch_collateral_assets(kyc_id):
            missing.append(KycStage.COLLATERAL_ASSETS.value)
        if await GuarantorService(session).count_guarantors(kyc_id) == 0:
            missing.append(KycStage.GUARANTOR_DETAILS.value)
        return missing

    async def submit_review(self, user_id: str) -> dict[str, Any]:
        async with self._unit_of_work() as session:
            _, kyc, current = await resolve_kyc(session, user_id=user_id)
            assert_stage(current, KycStage.REVIEW_AND_SUBMIT)
            missing = await self._missing_sections(session, kyc.id)
            if missing:
                raise BadRequestError(f"Business KYC incomplete. Missing: {', '.join(missing)}")
            next_status, _ = await self._advance(session, kyc, current)
            return {"businessKycId": kyc.id, "currentStatus": status_ref(next_status)}

    # ------------------------------------------------------------------ #
    # Back-office
    # ------------------------------------------------------------------ #

    async def advance_workflow(self, company_id: str) -> dict[str, Any]:
        """Back-office approval: move a submitted KYC from pending to the next stage."""
        async with self._unit_of_work() as session:
            _, kyc, current = await resolve_kyc(session, company_id=company_id)
            assert_stage(current, KycStage.PENDING)
            next_status, extra = await self._advance(session, kyc, current)
            return {"businessKycId": kyc.id, **extra, "currentStatus": status_ref(next_status)}

    async def fix_business_kyc_status(self, company_id: str, stage: KycStage) -> dict[str, Any]:
        """Administrative override of the status pointer, the only way to move it backwards."""
        async with self._unit_of_work() as session:
            _, kyc, current = await resolve_kyc(session, company_id=company_id)
            status_service = BusinessKycStatusService(session)
            target = await status_service.verify_status_value(stage.value)
            if target.id != current.id:
                await status_service.move_pointer(kyc, current, target)
                logger.warning(
                    "Status pointer of kyc=%s overridden %s -> %s", kyc.id, current.value, target.value
                )
            extra = await self._prepare_stage_rows(session, kyc, stage)
            return {"businessKycId": kyc.id, **extra, "currentStatus": status_ref(target)}

    # ------------------------------------------------------------------ #
    # Agreements
    # ------------------------------------------------------------------ #

    async def update_agreement(
        self, user_id: str, agreement_id: str, is_accepted: bool, reason: str | None = None
    ) -> dict[str, Any]:
        async with self._unit_of_work() as session:
            _, kyc, current = await resolve_kyc(session, user_id=user_id)
            assert_stage(current, KycStage.AGREEMENT)
            agreements = AgreementService(session)
            agreement = await agreements.update_acceptance(kyc.id, agreement_id, is_accepted, reason)
            next_pending = await agreements.fetch_next_pending_agreement(kyc.id)
            return {
                "agreement": row_to_camel(agreement),
                "allAccepted": await agreements.are_all_accepted(kyc.id),
                "nextPendingAgreement": row_to_camel(next_pending) if next_pending else None,
            }

    @staticmethod
    async def _assert_signable(session: AsyncSession, kyc_id: str, stage: KycStage) -> None:
        if stage is KycStage.AGREEMENT:
            if not await AgreementService(session).are_all_accepted(kyc_id):
                raise BadRequestError("Please accept all agreements before continuing")
        elif not (await DpnService(session).fetch_dpn(kyc_id)).is_accepted:
            raise BadRequestError("Please accept the DPN before continuing")

    async def _issue_otp(self, user_id: str, stage: KycStage, purpose: str) -> dict[str, Any]:
        async with self._unit_of_work() as session:
            _, kyc, current = await resolve_kyc(session, user_id=user_id)
            assert_stage(current, stage)
            await self._assert_signable(session, kyc.id, stage)
            code, expires_at = await OtpService(session).issue(kyc.id, purpose)
            kyc_id = kyc.id
        await self.otp_sender(kyc_id, purpose, code)
        return {"businessKycId": kyc_id, "purpose": purpose, "expiresAt": expires_at.isoformat()}

    async def _finalize_with_otp(
        self,
        user_id: str,
        stage: KycStage,
        purpose: str,
        code: str,
        finalize: Callable[[AsyncSession, str], Awaitable[dict[str, Any]]],
    ) -> dict[str, Any]:
        """
        Check the code and finalize the stage in one transaction. A valid code is consumed
        only when the finalization commits. A wrong code commits just the attempt counter.
        """
        async with self._unit_of_work() as session:
            _, kyc, current = await resolve_kyc(session, user_id=user_id)
            assert_stage(current, stage)
            await self._assert_signable(session, kyc.id, stage)
            verified = await OtpService(session).verify(kyc.id, purpose, code)
            if verified:
                response = await finalize(session, kyc.id)
                next_status, extra = await self._advance(session, kyc, current)
                response.update(extra)
                response["currentStatus"] = status_ref(next_status)
        if not verified:
            raise BadRequestError("Invalid OTP")
        return response

    async def request_agreement_otp(self, user_id: str) -> dict[str, Any]:
        return await self._issue_otp(user_id, KycStage.AGREEMENT, PURPOSE_AGREEMENT)

    async def finalize_agreements(self, user_id: str, otp: str) -> dict[str, Any]:
        async def finalize(session: AsyncSession, kyc_id: str) -> dict[str, Any]:
            agreements = await AgreementService(session).finalize_agreements(kyc_id)
            return {"agreements": rows_to_camel(agreements)}

        return await self._finalize_with_otp(user_id, KycStage.AGREEMENT, PURPOSE_AGREEMENT, otp, finalize)

    # ------------------------------------------------------------------ #
    # ROC
    # ------------------------------------------------------------------ #

    async def activate_nash(self, user_id: str) -> dict[str, Any]:
        async with self._unit_of_work() as session:
            company, kyc, current = await resolve_kyc(session, user_id=user_id)
            assert_stage(current, KycStage.ROC)
            roc_service = RocService(session)
            await roc_service.create_roc(kyc.id, company.id)
            return {"roc": row_to_camel(await roc_service.activate_nash(kyc.id))}

    async def update_roc_details(self, user_id: str, payload: RocDetailsInput) -> dict[str, Any]:
        async with self._unit_of_work() as session:
            company, kyc, current = await resolve_kyc(session, user_id=user_id)
            assert_stage(current, KycStage.ROC)
            roc_service = RocService(session)
            previous = (await roc_service.create_roc(kyc.id, company.id)).backup_security_id
            roc = await roc_service.update_roc_details(kyc.id, payload)
            await MediaService(session).replace_references([previous], [roc.backup_security_id])
            return {"roc": row_to_camel(roc)}

    async def accept_roc(self, user_id: str) -> dict[str, Any]:
        async with self._unit_of_work() as session:
            _, kyc, current = await resolve_kyc(session, user_id=user_id)
            assert_stage(current, KycStage.ROC)
            roc = await RocService(session).accept_roc(kyc.id)
            next_status, extra = await self._advance(session, kyc, current)
            return {"roc": row_to_camel(roc), **extra, "currentStatus": status_ref(next_status)}

    # ------------------------------------------------------------------ #
    # DPN
    # ------------------------------------------------------------------ #

    async def update_dpn(self, user_id: str, is_accepted: bool) -> dict[str, Any]:
        async with self._unit_of_work() as session:
            company, kyc, current = await resolve_kyc(session, user_id=user_id)
            assert_stage(current, KycStage.DPN)
            dpn_service = DpnService(session)
            await dpn_service.create_dpn(kyc.id, company.id)
            dpn = await dpn_service.update_acceptance(kyc.id, is_accepted)
            return {"dpn": row_to_camel(dpn), "isAccepted": dpn.is_accepted}

    async def request_dpn_otp(self, user_id: str) -> dict[str, Any]:
        return await self._issue_otp(user_id, KycStage.DPN, PURPOSE_DPN)

    async def finalize_dpn(self, user_id: str, otp: str) -> dict[str, Any]:
        async def finalize(session: AsyncSession, kyc_id: str) -> dict[str, Any]:
            return {"dpn": row_to_camel(await DpnService(session).finalize_dpn(kyc_id))}

        return await self._finalize_with_otp(user_id, KycStage.DPN, PURPOSE_DPN, otp, finalize)
