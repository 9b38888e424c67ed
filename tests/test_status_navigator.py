"""
Status navigator over the seeded catalog.
Run: python -m pytest tests/test_status_navigator.py -v
"""
import unittest

from sqlalchemy import update

from exceptions import CatalogConfigurationError, NotFoundError, StageConflictError, TerminalStageError
from models import BusinessKyc, BusinessKycStatusMaster
from services.stages import STAGE_SEQUENCE, KycStage
from services.status import BusinessKycStatusService, seed_catalog
from tests.support import USER_ID, KycDatabaseTestCase


class TestStatusNavigator(KycDatabaseTestCase):
    async def test_initial_status(self):
        async with self.session_factory() as session:
            initial = await BusinessKycStatusService(session).fetch_initial_status()
        self.assertEqual(initial.value, KycStage.BUSINESS_PROFILE.value)
        self.assertEqual(initial.sequence_order, 1)

    async def test_duplicate_initial_row_is_configuration_error(self):
        async with self.session_factory() as session:
            await session.execute(
                update(BusinessKycStatusMaster)
                .where(BusinessKycStatusMaster.value == KycStage.PENDING.value)
                .values(is_initial=True)
            )
            with self.assertRaises(CatalogConfigurationError):
                await BusinessKycStatusService(session).fetch_initial_status()

    async def test_next_status_walks_catalog(self):
        async with self.session_factory() as session:
            service = BusinessKycStatusService(session)
            status = await service.fetch_initial_status()
            visited = [status.value]
            while not status.is_terminal:
                status = await service.fetch_next_status(status)
                visited.append(status.value)
        self.assertEqual(visited, [s.value for s in STAGE_SEQUENCE])

    async def test_terminal_and_missing_next_are_distinct(self):
        async with self.session_factory() as session:
            service = BusinessKycStatusService(session)
            completed = await service.verify_status_value(KycStage.COMPLETED.value)
            with self.assertRaises(TerminalStageError):
                await service.fetch_next_status(completed)
            with self.assertRaises(NotFoundError):
                await service.fetch_next_status(completed.sequence_order)

    async def test_unknown_status_value(self):
        async with self.session_factory() as session:
            with self.assertRaises(NotFoundError):
                await BusinessKycStatusService(session).verify_status_value("loan_disbursal")

    async def test_completed_steps_sequence_detects_gaps(self):
        async with self.session_factory() as session:
            service = BusinessKycStatusService(session)
            steps = await service.fetch_completed_steps_sequence(3)
            self.assertEqual([s["code"] for s in steps], ["business_profile", "financial_statements", "income_tax_returns"])

            await session.execute(
                update(BusinessKycStatusMaster)
                .where(BusinessKycStatusMaster.value == KycStage.INCOME_TAX_RETURNS.value)
                .values(is_active=False)
            )
            with self.assertRaises(CatalogConfigurationError):
                await service.fetch_completed_steps_sequence(3)

    async def test_advance_business_kyc_status(self):
        started = await self.workflow.start_business_kyc(USER_ID)
        async with self.session_factory() as session:
            result = await BusinessKycStatusService(session).advance_business_kyc_status(started["businessKycId"])
            await session.commit()
        self.assertEqual(result["currentStatus"]["code"], KycStage.FINANCIAL_STATEMENTS.value)
        self.assertEqual(await self.current_stage(), KycStage.FINANCIAL_STATEMENTS.value)

    async def test_move_pointer_rejects_stale_expected_status(self):
        started = await self.workflow.start_business_kyc(USER_ID)
        async with self.session_factory() as session:
            service = BusinessKycStatusService(session)
            stale_kyc = await session.get(BusinessKyc, started["businessKycId"])
            stale_current = await service.fetch_application_status_by_id(stale_kyc.business_kyc_status_master_id)

        async with self.session_factory() as session:
            await BusinessKycStatusService(session).advance_business_kyc_status(started["businessKycId"])
            await session.commit()

        async with self.session_factory() as session:
            with self.assertRaises(StageConflictError):
                await BusinessKycStatusService(session).advance(stale_kyc, stale_current)
        self.assertEqual(await self.current_stage(), KycStage.FINANCIAL_STATEMENTS.value)

    async def test_seed_is_repeatable(self):
        async with self.session_factory() as session:
            await seed_catalog(session)
            await session.commit()
        self.assertEqual(await self.count_rows(BusinessKycStatusMaster), len(STAGE_SEQUENCE))


if __name__ == "__main__":
    unittest.main()
