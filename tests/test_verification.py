"""
Back-office approval and rejection of step data.
Run: python -m pytest tests/test_verification.py -v
"""
import unittest

from sqlalchemy import select

from exceptions import BadRequestError, NotFoundError
from models import BusinessKycAuditedFinancials, BusinessKycCollateralAssets, BusinessKycGuarantor, BusinessKycProfile
from services.stages import AuditedCategory, KycStage
from services.verification import BusinessKycVerificationService
from tests.support import USER_ID, KycDatabaseTestCase, audited_rows, collateral_rows, guarantor_payload, profile_rows


class TestVerification(KycDatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.verification = BusinessKycVerificationService(self.session_factory)
        await self.workflow.start_business_kyc(USER_ID)

    async def _first(self, model):
        async with self.session_factory() as session:
            return (await session.execute(select(model))).scalars().first()

    async def test_approve_business_profile(self):
        result = await self.workflow.update_profile_details(USER_ID, profile_rows())
        profile_id = result["profileDetails"][0]["id"]

        response = await self.verification.verify_business_profile(profile_id, 1)
        self.assertTrue(response["success"])

        profile = await self._first(BusinessKycProfile)
        self.assertEqual((profile.status, profile.mode), (1, 1))
        self.assertIsNone(profile.reason)
        self.assertIsNotNone(profile.verified_at)

    async def test_rejection_requires_reason(self):
        result = await self.workflow.update_profile_details(USER_ID, profile_rows())
        profile_id = result["profileDetails"][0]["id"]
        with self.assertRaises(BadRequestError):
            await self.verification.verify_business_profile(profile_id, 2, "  ")

        await self.verification.verify_business_profile(profile_id, 2, "Turnover does not match ITR")
        profile = await self._first(BusinessKycProfile)
        self.assertEqual(profile.status, 2)
        self.assertEqual(profile.reason, "Turnover does not match ITR")

    async def test_invalid_status(self):
        with self.assertRaises(BadRequestError):
            await self.verification.verify_guarantor("any", 0)

    async def test_unknown_row(self):
        with self.assertRaises(NotFoundError):
            await self.verification.verify_collateral_asset("missing", 1)

    async def test_audited_financials_decided_per_company(self):
        await self.workflow.fix_business_kyc_status(self.company_id, KycStage.FINANCIAL_STATEMENTS)
        await self.workflow.update_audited_financials(USER_ID, audited_rows(AuditedCategory.FINANCIAL_STATEMENTS))
        await self.workflow.update_audited_financials(USER_ID, audited_rows(AuditedCategory.INCOME_TAX_RETURNS))

        response = await self.verification.verify_audited_financials(self.company_id, 2, "Unsigned statements")
        self.assertEqual(response["count"], 4)
        async with self.session_factory() as session:
            rows = (await session.execute(select(BusinessKycAuditedFinancials))).scalars().all()
        self.assertTrue(all(r.status == 2 and r.reason == "Unsigned statements" for r in rows))

    async def test_audited_financials_without_rows(self):
        with self.assertRaises(NotFoundError):
            await self.verification.verify_audited_financials(self.company_id, 1)

    async def test_guarantor_and_collateral(self):
        await self.workflow.fix_business_kyc_status(self.company_id, KycStage.COLLATERAL_ASSETS)
        await self.workflow.update_collateral_assets(USER_ID, collateral_rows())
        added = await self.workflow.add_guarantor(USER_ID, guarantor_payload())

        await self.verification.verify_guarantor(added["guarantor"]["id"], 1)
        asset = await self._first(BusinessKycCollateralAssets)
        await self.verification.verify_collateral_asset(asset.id, 1)

        self.assertEqual((await self._first(BusinessKycGuarantor)).status, 1)
        self.assertEqual((await self._first(BusinessKycCollateralAssets)).status, 1)


if __name__ == "__main__":
    unittest.main()
