"""
Business KYC workflow: stage guards, atomic advancement, idempotent paths and the full
onboarding scenario.
Run: python -m pytest tests/test_workflow.py -v
"""
import unittest
from unittest.mock import patch

from sqlalchemy import select

from exceptions import BadRequestError, ForbiddenError, NotFoundError, StageGuardError
from models import (
    BusinessKyc,
    BusinessKycAgreement,
    BusinessKycCollateralAssets,
    BusinessKycDpn,
    BusinessKycOtp,
    BusinessKycProfile,
    BusinessKycRoc,
    CompanyProfile,
    Media,
)
from schemas import RocDetailsInput
from services.media import MediaService
from services.stages import AuditedCategory, KycStage, sequence_of
from services.state import BusinessKycStateService
from tests.support import (
    OTHER_USER_ID,
    USER_ID,
    KycDatabaseTestCase,
    audited_rows,
    collateral_rows,
    guarantor_payload,
    profile_rows,
)


class TestStartBusinessKyc(KycDatabaseTestCase):
    async def test_start_is_idempotent(self):
        first = await self.workflow.start_business_kyc(USER_ID)
        second = await self.workflow.start_business_kyc(USER_ID)

        self.assertTrue(first["created"])
        self.assertFalse(second["created"])
        self.assertEqual(first["businessKycId"], second["businessKycId"])
        self.assertEqual(second["activeStep"]["code"], KycStage.BUSINESS_PROFILE.value)
        self.assertEqual(await self.count_rows(BusinessKyc), 1)

    async def test_start_without_company(self):
        with self.assertRaises(NotFoundError):
            await self.workflow.start_business_kyc("nobody")

    async def test_step_before_start(self):
        with self.assertRaises(NotFoundError) as ctx:
            await self.workflow.update_profile_details(USER_ID, profile_rows())
        self.assertIn("not started", ctx.exception.message)


class TestStageGuards(KycDatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        await self.workflow.start_business_kyc(USER_ID)

    async def test_out_of_order_submission_rejected_without_writes(self):
        with self.assertRaises(StageGuardError) as ctx:
            await self.workflow.update_collateral_assets(USER_ID, collateral_rows())

        self.assertEqual(ctx.exception.current, KycStage.BUSINESS_PROFILE.value)
        self.assertEqual(ctx.exception.required, KycStage.COLLATERAL_ASSETS.value)
        self.assertEqual(await self.count_rows(BusinessKycCollateralAssets), 0)
        self.assertEqual(await self.current_stage(), KycStage.BUSINESS_PROFILE.value)

    async def test_audited_category_must_match_current_sub_stage(self):
        await self.workflow.update_profile_details(USER_ID, profile_rows())
        with self.assertRaises(StageGuardError):
            await self.workflow.update_audited_financials(USER_ID, audited_rows(AuditedCategory.GST_3B))
        self.assertEqual(await self.current_stage(), KycStage.FINANCIAL_STATEMENTS.value)

    async def test_editing_a_passed_stage_does_not_advance(self):
        await self.workflow.update_profile_details(USER_ID, profile_rows())
        await self.workflow.update_audited_financials(USER_ID, audited_rows(AuditedCategory.FINANCIAL_STATEMENTS))

        result = await self.workflow.update_audited_financials(
            USER_ID, audited_rows(AuditedCategory.FINANCIAL_STATEMENTS, auditor_name="Mehta Associates")
        )
        self.assertTrue(result["isUpdated"])
        self.assertNotIn("currentStatus", result)
        self.assertEqual(await self.current_stage(), KycStage.INCOME_TAX_RETURNS.value)

        result = await self.workflow.update_profile_details(USER_ID, profile_rows())
        self.assertNotIn("currentStatus", result)
        self.assertEqual(await self.count_rows(BusinessKycProfile), 1)

    async def test_retrying_a_submission_does_not_double_advance(self):
        first = await self.workflow.update_profile_details(USER_ID, profile_rows())
        second = await self.workflow.update_profile_details(USER_ID, profile_rows())
        self.assertEqual(first["currentStatus"]["code"], KycStage.FINANCIAL_STATEMENTS.value)
        self.assertNotIn("currentStatus", second)
        self.assertEqual(await self.current_stage(), KycStage.FINANCIAL_STATEMENTS.value)

    async def test_edits_locked_after_submission(self):
        await self.workflow.fix_business_kyc_status(self.company_id, KycStage.PENDING)
        with self.assertRaises(BadRequestError) as ctx:
            await self.workflow.update_profile_details(USER_ID, profile_rows())
        self.assertIn("submitted", ctx.exception.message)

    async def test_empty_profile_details(self):
        with self.assertRaises(BadRequestError):
            await self.workflow.update_profile_details(USER_ID, [])

    async def test_admin_advance_requires_pending(self):
        with self.assertRaises(StageGuardError):
            await self.workflow.advance_workflow(self.company_id)

    async def test_submit_review_checks_completeness(self):
        await self.workflow.fix_business_kyc_status(self.company_id, KycStage.REVIEW_AND_SUBMIT)
        with self.assertRaises(BadRequestError) as ctx:
            await self.workflow.submit_review(USER_ID)
        self.assertIn("collateral_assets", ctx.exception.message)
        self.assertEqual(await self.current_stage(), KycStage.REVIEW_AND_SUBMIT.value)


class TestAtomicAdvance(KycDatabaseTestCase):
    async def test_failed_side_write_rolls_back_data_and_pointer(self):
        await self.move_to(KycStage.COLLATERAL_ASSETS)

        with patch.object(
            MediaService, "update_media_used_status", side_effect=RuntimeError("media store unavailable")
        ):
            with self.assertRaises(RuntimeError):
                await self.workflow.update_collateral_assets(USER_ID, collateral_rows())

        self.assertEqual(await self.count_rows(BusinessKycCollateralAssets), 0)
        self.assertEqual(await self.current_stage(), KycStage.COLLATERAL_ASSETS.value)

        result = await self.workflow.update_collateral_assets(USER_ID, collateral_rows())
        self.assertEqual(result["currentStatus"]["code"], KycStage.GUARANTOR_DETAILS.value)


class TestMediaReferences(KycDatabaseTestCase):
    async def add_media(self, *media_ids):
        async with self.session_factory() as session:
            session.add_all([Media(id=media_id) for media_id in media_ids])
            await session.commit()

    async def media_flags(self) -> dict:
        async with self.session_factory() as session:
            return dict((await session.execute(select(Media.id, Media.is_used))).all())

    async def test_replaced_collateral_document_is_released(self):
        await self.add_media("old-doc", "new-doc")
        await self.move_to(KycStage.COLLATERAL_ASSETS)
        asset = collateral_rows()[0]

        await self.workflow.update_collateral_assets(USER_ID, [asset.model_copy(update={"document_id": "old-doc"})])
        self.assertEqual(await self.media_flags(), {"old-doc": True, "new-doc": False})

        await self.workflow.update_collateral_assets(USER_ID, [asset.model_copy(update={"document_id": "new-doc"})])
        self.assertEqual(await self.media_flags(), {"old-doc": False, "new-doc": True})

    async def test_resubmitted_collateral_document_stays_used(self):
        await self.add_media("doc-1")
        await self.move_to(KycStage.COLLATERAL_ASSETS)
        await self.workflow.update_collateral_assets(USER_ID, collateral_rows())
        await self.workflow.update_collateral_assets(USER_ID, collateral_rows())
        self.assertEqual(await self.media_flags(), {"doc-1": True})

    async def test_replaced_audited_file_is_released(self):
        await self.move_to(KycStage.FINANCIAL_STATEMENTS)
        first = audited_rows(AuditedCategory.FINANCIAL_STATEMENTS)
        second = [first[0].model_copy(update={"file_id": "restated-2022"}), first[1]]
        await self.add_media(first[0].file_id, first[1].file_id, "restated-2022")

        await self.workflow.update_audited_financials(USER_ID, first)
        result = await self.workflow.update_audited_financials(USER_ID, second)

        self.assertTrue(result["isUpdated"])
        self.assertEqual(
            await self.media_flags(),
            {first[0].file_id: False, first[1].file_id: True, "restated-2022": True},
        )

    async def test_replaced_roc_backup_security_is_released(self):
        await self.add_media("cheque-1", "cheque-2")
        await self.move_to(KycStage.ROC)

        await self.workflow.update_roc_details(USER_ID, RocDetailsInput(backup_security_id="cheque-1"))
        await self.workflow.update_roc_details(USER_ID, RocDetailsInput(bank_name="State Bank"))
        self.assertEqual(await self.media_flags(), {"cheque-1": True, "cheque-2": False})

        await self.workflow.update_roc_details(USER_ID, RocDetailsInput(backup_security_id="cheque-2"))
        self.assertEqual(await self.media_flags(), {"cheque-1": False, "cheque-2": True})


class TestGuarantors(KycDatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        await self.move_to(KycStage.GUARANTOR_DETAILS)

    async def test_completion_requires_a_guarantor(self):
        with self.assertRaises(BadRequestError):
            await self.workflow.complete_guarantor_step(USER_ID)
        self.assertEqual(await self.current_stage(), KycStage.GUARANTOR_DETAILS.value)

    async def test_completion_is_idempotent_at_review(self):
        added = await self.workflow.add_guarantor(USER_ID, guarantor_payload())
        self.assertIn("/guarantor/verify?token=", added["verification"]["verificationUrl"])

        first = await self.workflow.complete_guarantor_step(USER_ID)
        second = await self.workflow.complete_guarantor_step(USER_ID)
        self.assertEqual(first["currentStatus"]["code"], KycStage.REVIEW_AND_SUBMIT.value)
        self.assertEqual(second["currentStatus"]["code"], KycStage.REVIEW_AND_SUBMIT.value)
        self.assertEqual(await self.current_stage(), KycStage.REVIEW_AND_SUBMIT.value)

    async def test_completion_from_other_stage_rejected(self):
        await self.workflow.add_guarantor(USER_ID, guarantor_payload())
        await self.workflow.fix_business_kyc_status(self.company_id, KycStage.AGREEMENT)
        with self.assertRaises(StageGuardError):
            await self.workflow.complete_guarantor_step(USER_ID)

    async def test_duplicate_pan_rejected(self):
        await self.workflow.add_guarantor(USER_ID, guarantor_payload())
        with self.assertRaises(BadRequestError):
            await self.workflow.add_guarantor(USER_ID, guarantor_payload(pan_number="abcde1234f", full_name="Other"))

    async def test_update_by_another_company_forbidden(self):
        added = await self.workflow.add_guarantor(USER_ID, guarantor_payload())
        async with self.session_factory() as session:
            session.add(CompanyProfile(users_id=OTHER_USER_ID, company_name="Other Co"))
            await session.commit()
        await self.workflow.start_business_kyc(OTHER_USER_ID)

        async with self.session_factory() as session:
            other = (
                await session.execute(select(CompanyProfile).where(CompanyProfile.users_id == OTHER_USER_ID))
            ).scalar_one()
        await self.workflow.fix_business_kyc_status(other.id, KycStage.GUARANTOR_DETAILS)

        with self.assertRaises(ForbiddenError):
            await self.workflow.update_guarantor(
                OTHER_USER_ID, added["guarantor"]["id"], guarantor_payload(full_name="Hijacked")
            )

    async def test_update_reissues_link_and_verify_is_single_use(self):
        added = await self.workflow.add_guarantor(USER_ID, guarantor_payload())
        updated = await self.workflow.update_guarantor(
            USER_ID, added["guarantor"]["id"], guarantor_payload(full_name="Ravi K. Sharma")
        )
        self.assertEqual(updated["guarantor"]["fullName"], "Ravi K. Sharma")
        self.assertNotEqual(updated["verification"]["id"], added["verification"]["id"])

        old_token = added["verification"]["verificationUrl"].split("token=")[1]
        with self.assertRaises(BadRequestError):
            await self.workflow.verify_guarantor_link(old_token)

        token = updated["verification"]["verificationUrl"].split("token=")[1]
        result = await self.workflow.verify_guarantor_link(token)
        self.assertTrue(result["isVerified"])
        with self.assertRaises(BadRequestError):
            await self.workflow.verify_guarantor_link(token)


class TestDocumentStages(KycDatabaseTestCase):
    async def _accept_all_agreements(self):
        async with self.session_factory() as session:
            agreements = (await session.execute(select(BusinessKycAgreement))).scalars().all()
        result = None
        for agreement in agreements:
            result = await self.workflow.update_agreement(USER_ID, agreement.id, True)
        return result

    async def test_admin_advance_creates_agreements_once(self):
        await self.move_to(KycStage.PENDING)
        result = await self.workflow.advance_workflow(self.company_id)

        self.assertEqual(result["currentStatus"]["code"], KycStage.AGREEMENT.value)
        self.assertEqual(len(result["agreements"]), 3)
        await self.workflow.fix_business_kyc_status(self.company_id, KycStage.AGREEMENT)
        self.assertEqual(await self.count_rows(BusinessKycAgreement), 3)

    async def test_otp_requires_all_agreements_accepted(self):
        await self.move_to(KycStage.AGREEMENT)
        with self.assertRaises(BadRequestError):
            await self.workflow.request_agreement_otp(USER_ID)
        self.assertEqual(self.sent_otps, [])

    async def test_wrong_otp_counts_attempt_and_keeps_stage(self):
        await self.move_to(KycStage.AGREEMENT)
        await self._accept_all_agreements()
        await self.workflow.request_agreement_otp(USER_ID)
        code = self.sent_otps[-1][2]
        wrong = "0" * len(code) if code != "0" * len(code) else "1" * len(code)

        with self.assertRaises(BadRequestError):
            await self.workflow.finalize_agreements(USER_ID, wrong)

        async with self.session_factory() as session:
            otp = (await session.execute(select(BusinessKycOtp))).scalar_one()
        self.assertEqual(otp.attempts, 1)
        self.assertEqual(await self.current_stage(), KycStage.AGREEMENT.value)

        result = await self.workflow.finalize_agreements(USER_ID, code)
        self.assertEqual(result["currentStatus"]["code"], KycStage.ROC.value)

    async def _fetch_otp(self):
        async with self.session_factory() as session:
            return (await session.execute(select(BusinessKycOtp))).scalar_one()

    async def test_rejected_agreement_finalize_keeps_code_valid(self):
        await self.move_to(KycStage.AGREEMENT)
        await self._accept_all_agreements()
        await self.workflow.request_agreement_otp(USER_ID)
        code = self.sent_otps[-1][2]

        async with self.session_factory() as session:
            agreement = (await session.execute(select(BusinessKycAgreement))).scalars().first()
        await self.workflow.update_agreement(USER_ID, agreement.id, False, "Clause 4 needs review")

        with self.assertRaises(BadRequestError):
            await self.workflow.finalize_agreements(USER_ID, code)
        otp = await self._fetch_otp()
        self.assertFalse(otp.is_used)
        self.assertEqual(otp.attempts, 0)
        self.assertEqual(await self.current_stage(), KycStage.AGREEMENT.value)

        await self.workflow.update_agreement(USER_ID, agreement.id, True)
        result = await self.workflow.finalize_agreements(USER_ID, code)
        self.assertEqual(result["currentStatus"]["code"], KycStage.ROC.value)
        self.assertTrue((await self._fetch_otp()).is_used)

    async def test_rejected_dpn_finalize_keeps_code_valid(self):
        await self.move_to(KycStage.DPN)
        await self.workflow.update_dpn(USER_ID, True)
        await self.workflow.request_dpn_otp(USER_ID)
        code = self.sent_otps[-1][2]
        await self.workflow.update_dpn(USER_ID, False)

        with self.assertRaises(BadRequestError):
            await self.workflow.finalize_dpn(USER_ID, code)
        self.assertFalse((await self._fetch_otp()).is_used)

        await self.workflow.update_dpn(USER_ID, True)
        result = await self.workflow.finalize_dpn(USER_ID, code)
        self.assertEqual(result["currentStatus"]["code"], KycStage.COMPLETED.value)

    async def test_accept_roc_creates_dpn(self):
        await self.move_to(KycStage.ROC)
        self.assertEqual(await self.count_rows(BusinessKycRoc), 1)
        with self.assertRaises(BadRequestError):
            await self.workflow.accept_roc(USER_ID)

        await self.workflow.activate_nash(USER_ID)
        result = await self.workflow.accept_roc(USER_ID)
        self.assertEqual(result["currentStatus"]["code"], KycStage.DPN.value)
        self.assertFalse(result["dpn"]["isAccepted"])
        self.assertEqual(await self.count_rows(BusinessKycDpn), 1)

    async def test_admin_fix_can_move_backwards(self):
        await self.move_to(KycStage.ROC)
        result = await self.workflow.fix_business_kyc_status(self.company_id, KycStage.COLLATERAL_ASSETS)
        self.assertEqual(result["currentStatus"]["code"], KycStage.COLLATERAL_ASSETS.value)
        self.assertEqual(await self.current_stage(), KycStage.COLLATERAL_ASSETS.value)


class TestHappyPath(KycDatabaseTestCase):
    async def test_full_onboarding(self):
        wf = self.workflow
        await wf.start_business_kyc(USER_ID)

        result = await wf.update_profile_details(USER_ID, profile_rows())
        self.assertEqual(result["currentStatus"]["code"], KycStage.FINANCIAL_STATEMENTS.value)

        for category, next_stage in (
            (AuditedCategory.FINANCIAL_STATEMENTS, KycStage.INCOME_TAX_RETURNS),
            (AuditedCategory.INCOME_TAX_RETURNS, KycStage.GSTR_9),
            (AuditedCategory.GSTR_9, KycStage.GST_3B),
            (AuditedCategory.GST_3B, KycStage.COLLATERAL_ASSETS),
        ):
            result = await wf.update_audited_financials(USER_ID, audited_rows(category))
            self.assertEqual(result["currentStatus"]["code"], next_stage.value)

        result = await wf.update_collateral_assets(USER_ID, collateral_rows())
        self.assertEqual(result["currentStatus"]["code"], KycStage.GUARANTOR_DETAILS.value)

        await wf.add_guarantor(USER_ID, guarantor_payload())
        result = await wf.complete_guarantor_step(USER_ID)
        self.assertEqual(result["currentStatus"]["code"], KycStage.REVIEW_AND_SUBMIT.value)

        result = await wf.submit_review(USER_ID)
        self.assertEqual(result["currentStatus"]["code"], KycStage.PENDING.value)

        result = await wf.advance_workflow(self.company_id)
        self.assertEqual(result["currentStatus"]["code"], KycStage.AGREEMENT.value)
        agreement_ids = [a["id"] for a in result["agreements"]]
        for agreement_id in agreement_ids[:-1]:
            partial = await wf.update_agreement(USER_ID, agreement_id, True)
            self.assertFalse(partial["allAccepted"])
        done = await wf.update_agreement(USER_ID, agreement_ids[-1], True)
        self.assertTrue(done["allAccepted"])
        self.assertIsNone(done["nextPendingAgreement"])

        await wf.request_agreement_otp(USER_ID)
        result = await wf.finalize_agreements(USER_ID, self.sent_otps[-1][2])
        self.assertEqual(result["currentStatus"]["code"], KycStage.ROC.value)
        self.assertIsNotNone(result["roc"]["id"])

        await wf.update_roc_details(USER_ID, _roc_details())
        await wf.activate_nash(USER_ID)
        result = await wf.accept_roc(USER_ID)
        self.assertEqual(result["currentStatus"]["code"], KycStage.DPN.value)

        await wf.update_dpn(USER_ID, True)
        await wf.request_dpn_otp(USER_ID)
        result = await wf.finalize_dpn(USER_ID, self.sent_otps[-1][2])
        self.assertEqual(result["currentStatus"]["code"], KycStage.COMPLETED.value)

        state = await BusinessKycStateService(self.session_factory).fetch_state_by_user(USER_ID)
        self.assertTrue(state["isBusinessKycComplete"])
        self.assertEqual(len(state["completedSteps"]), 8)
        self.assertEqual([p for _, p, _ in self.sent_otps], ["agreement", "dpn"])

    async def test_pointer_never_moves_backwards(self):
        wf = self.workflow
        await wf.start_business_kyc(USER_ID)
        positions = [sequence_of(KycStage(await self.current_stage()))]

        async def step(call, *args):
            try:
                await call(*args)
            except BadRequestError:
                pass
            positions.append(sequence_of(KycStage(await self.current_stage())))

        await step(wf.update_collateral_assets, USER_ID, collateral_rows())
        await step(wf.update_profile_details, USER_ID, profile_rows())
        await step(wf.update_profile_details, USER_ID, profile_rows())
        for category in AuditedCategory:
            await step(wf.update_audited_financials, USER_ID, audited_rows(category))
            await step(wf.update_audited_financials, USER_ID, audited_rows(category, auditor_name="Mehta LLP"))
        await step(wf.update_profile_details, USER_ID, profile_rows())
        await step(wf.update_collateral_assets, USER_ID, collateral_rows())
        await step(wf.complete_guarantor_step, USER_ID)
        await step(wf.add_guarantor, USER_ID, guarantor_payload())
        await step(wf.complete_guarantor_step, USER_ID)
        await step(wf.complete_guarantor_step, USER_ID)
        await step(wf.submit_review, USER_ID)
        await step(wf.submit_review, USER_ID)
        await step(wf.advance_workflow, self.company_id)

        self.assertEqual(positions, sorted(positions))
        self.assertEqual(positions[-1], sequence_of(KycStage.AGREEMENT))


def _roc_details():
    return RocDetailsInput(service_request_no="SRN-1001", bank_name="State Bank", cheque_no="004512")


if __name__ == "__main__":
    unittest.main()
