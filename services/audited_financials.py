"""
Audited financials step: four independently tracked categories sharing one table.
A submission batch belongs to a single category and is upserted by period key inside
its (business_kyc_id, category, base financial window) scope.
"""
from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from exceptions import BadRequestError, NotFoundError
from models import BusinessKycAuditedFinancials
from models.base import MODE_MANUAL, REVIEW_APPROVED
from schemas.business_kyc import AuditedFinancialInput
from services.stages import AuditedCategory, PeriodType

NO_MONTH = "NA"


def build_period_key(start_year: int | None, end_year: int | None, month: str | None) -> str:
    return f"{start_year}-{end_year}-{month or NO_MONTH}"


def validate_batch(records: list[AuditedFinancialInput]) -> AuditedCategory:
    """Reject the whole batch on the first violation. Returns the batch category."""
    if not records:
        raise BadRequestError("Audited financial details are required")

    category = records[0].category
    if any(r.category != category for r in records):
        raise BadRequestError("Mixed categories are not allowed")

    window = (records[0].base_financial_start_year, records[0].base_financial_end_year)
    if any((r.base_financial_start_year, r.base_financial_end_year) != window for r in records):
        raise BadRequestError("All records in a batch must share the same base financial years")

    expected_type = category.period_type
    for record in records:
        if record.type != expected_type:
            raise BadRequestError(f"{category.value} must be {expected_type.value.replace('_', '-')}")
        if expected_type is PeriodType.YEAR_WISE:
            if record.period_start_year is None or record.period_end_year is None:
                raise BadRequestError("Period start year and end year are required")
            if record.month:
                raise BadRequestError("Month is not allowed for year-wise records")
        else:
            if not record.month:
                raise BadRequestError("Month is required for month-wise records")
            if record.period_start_year is not None or record.period_end_year is not None:
                raise BadRequestError("Period years are not allowed for month-wise records")

    keys = [build_period_key(r.period_start_year, r.period_end_year, r.month) for r in records]
    if len(set(keys)) != len(keys):
        raise BadRequestError("Duplicate periods in the same submission")
    return category


class AuditedFinancialsService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _fetch_scope(
        self, business_kyc_id: str, category: AuditedCategory, base_start: int, base_end: int
    ) -> list[BusinessKycAuditedFinancials]:
        result = await self.session.execute(
            select(BusinessKycAuditedFinancials)
            .where(
                BusinessKycAuditedFinancials.business_kyc_id == business_kyc_id,
                BusinessKycAuditedFinancials.category == category.value,
                BusinessKycAuditedFinancials.base_financial_start_year == base_start,
                BusinessKycAuditedFinancials.base_financial_end_year == base_end,
                BusinessKycAuditedFinancials.is_active.is_(True),
                BusinessKycAuditedFinancials.is_deleted.is_(False),
            )
            .order_by(
                BusinessKycAuditedFinancials.period_start_year,
                BusinessKycAuditedFinancials.month,
            )
        )
        return list(result.scalars().all())

    async def create_or_update(
        self, business_kyc_id: str, records: list[AuditedFinancialInput]
    ) -> tuple[AuditedCategory, list[BusinessKycAuditedFinancials], bool]:
        """
        Upsert a single-category batch.
        Returns (category, rows now stored for that category window, whether any existing row was updated).
        """
        category = validate_batch(records)
        base_start = records[0].base_financial_start_year
        base_end = records[0].base_financial_end_year

        existing = {
            build_period_key(row.period_start_year, row.period_end_year, row.month): row
            for row in await self._fetch_scope(business_kyc_id, category, base_start, base_end)
        }

        is_updated = False
        for record in records:
            values = record.model_dump()
            values["category"] = category.value
            values["type"] = record.type.value
            row = existing.get(build_period_key(record.period_start_year, record.period_end_year, record.month))
            if row is not None:
                is_updated = True
                for key, value in values.items():
                    setattr(row, key, value)
            else:
                self.session.add(
                    BusinessKycAuditedFinancials(
                        business_kyc_id=business_kyc_id,
                        mode=MODE_MANUAL,
                        status=REVIEW_APPROVED,
                        **values,
                    )
                )
        await self.session.flush()
        rows = await self._fetch_scope(business_kyc_id, category, base_start, base_end)
        return category, rows, is_updated

    async def fetch_by_kyc(self, business_kyc_id: str) -> list[BusinessKycAuditedFinancials]:
        result = await self.session.execute(
            select(BusinessKycAuditedFinancials)
            .where(
                BusinessKycAuditedFinancials.business_kyc_id == business_kyc_id,
                BusinessKycAuditedFinancials.is_active.is_(True),
                BusinessKycAuditedFinancials.is_deleted.is_(False),
            )
            .order_by(
                BusinessKycAuditedFinancials.category,
                BusinessKycAuditedFinancials.period_start_year,
                BusinessKycAuditedFinancials.month,
            )
        )
        return list(result.scalars().all())

    async def fetch_audited_financials(self, business_kyc_id: str) -> dict[str, list[Any]]:
        """All rows grouped by category, keyed the way the frontend expects."""
        grouped: dict[str, list[Any]] = {
            "financialStatements": [],
            "incomeTaxReturns": [],
            "gstr9": [],
            "gst3b": [],
        }
        keys = {
            AuditedCategory.FINANCIAL_STATEMENTS.value: "financialStatements",
            AuditedCategory.INCOME_TAX_RETURNS.value: "incomeTaxReturns",
            AuditedCategory.GSTR_9.value: "gstr9",
            AuditedCategory.GST_3B.value: "gst3b",
        }
        for row in await self.fetch_by_kyc(business_kyc_id):
            grouped[keys[row.category]].append(row)
        return grouped

    async def update_status_by_kyc(
        self, business_kyc_id: str, status: int, reason: str | None = None
    ) -> list[BusinessKycAuditedFinancials]:
        """Apply one decision to every active audited financial row of the KYC."""
        rows = await self.fetch_by_kyc(business_kyc_id)
        if not rows:
            raise NotFoundError("No audited financials submitted")
        for row in rows:
            row.apply_review(status, reason)
        await self.session.flush()
        return rows
