"""
Shared fixtures: an in-memory SQLite database with the status catalog seeded and one
company owned by USER_ID.
"""
import unittest

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  (registers tables on Base.metadata)
from database import Base
from models import BusinessKyc, BusinessKycStatusMaster, CompanyProfile
from schemas import (
    AuditedFinancialInput,
    CollateralAssetInput,
    GuarantorInput,
    ProfileDetailsInput,
)
from services.stages import AuditedCategory, KycStage
from services.status import seed_catalog
from services.workflow import BusinessKycTransactionsService

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


def profile_rows():
    return [ProfileDetailsInput(year_in_business=6, turnover=12_500_000, projected_turnover=15_000_000, ebitda_margin=14.5)]


def audited_rows(category: AuditedCategory, auditor_name: str = "Shah & Co"):
    if category is AuditedCategory.GST_3B:
        return [
            AuditedFinancialInput(
                category=category,
                type="month_wise",
                base_financial_start_year=2023,
                base_financial_end_year=2024,
                month=month,
                file_id=f"file-{month}",
            )
            for month in ("2024-01", "2024-02")
        ]
    return [
        AuditedFinancialInput(
            category=category,
            type="year_wise",
            base_financial_start_year=2021,
            base_financial_end_year=2024,
            period_start_year=start,
            period_end_year=start + 1,
            auditor_name=auditor_name,
            file_id=f"file-{category.value}-{start}",
        )
        for start in (2022, 2023)
    ]


def collateral_rows():
    return [
        CollateralAssetInput(
            collateral_type="property",
            charge_type="first_charge",
            ownership_type="owned",
            estimated_value=4_000_000,
            document_id="doc-1",
        )
    ]


def guarantor_payload(pan_number: str = "ABCDE1234F", **overrides):
    data = {
        "guarantor_type": "individual",
        "full_name": "Ravi Kumar",
        "pan_number": pan_number,
        "email": "ravi.kumar@example.com",
        "phone_number": "9876543210",
    }
    data.update(overrides)
    return GuarantorInput(**data)


class KycDatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine = create_async_engine(
            "sqlite+aiosqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )
        async with self.session_factory() as session:
            await seed_catalog(session)
            company = CompanyProfile(users_id=USER_ID, company_name="Acme Traders Pvt Ltd")
            session.add(company)
            await session.commit()
            self.company_id = company.id

        self.sent_otps = []
        self.workflow = BusinessKycTransactionsService(self.session_factory, otp_sender=self._capture_otp)

    async def asyncTearDown(self):
        await self.engine.dispose()

    async def _capture_otp(self, business_kyc_id, purpose, code):
        self.sent_otps.append((business_kyc_id, purpose, code))

    async def current_stage(self) -> str:
        async with self.session_factory() as session:
            result = await session.execute(
                select(BusinessKycStatusMaster.value)
                .join(BusinessKyc, BusinessKyc.business_kyc_status_master_id == BusinessKycStatusMaster.id)
                .where(BusinessKyc.company_profiles_id == self.company_id)
            )
            return result.scalar_one()

    async def count_rows(self, model) -> int:
        async with self.session_factory() as session:
            return (await session.execute(select(func.count()).select_from(model))).scalar_one()

    async def move_to(self, stage: KycStage):
        """Start the KYC if needed and place the pointer directly on a stage."""
        await self.workflow.start_business_kyc(USER_ID)
        return await self.workflow.fix_business_kyc_status(self.company_id, stage)
