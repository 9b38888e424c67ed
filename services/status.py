"""
Status navigator over the business_kyc_status_master catalog.
Resolves current / next / initial statuses and moves a KYC's status pointer.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from exceptions import (
    BadRequestError,
    CatalogConfigurationError,
    NotFoundError,
    StageConflictError,
    TerminalStageError,
)
from models import BusinessKyc, BusinessKycDocumentType, BusinessKycStatusMaster
from services.stages import DOCUMENT_TYPES, INITIAL_STAGE, STAGE_LABELS, STAGE_SEQUENCE, TERMINAL_STAGE

logger = logging.getLogger(__name__)


def status_ref(status: BusinessKycStatusMaster) -> dict[str, Any]:
    """Client-facing {id, label, code} view of a status row."""
    return {"id": status.id, "label": status.status, "code": status.value}


def _active(model):
    return (model.is_active.is_(True), model.is_deleted.is_(False))


class BusinessKycStatusService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def verify_status_value(self, value: str) -> BusinessKycStatusMaster:
        result = await self.session.execute(
            select(BusinessKycStatusMaster).where(
                BusinessKycStatusMaster.value == value, *_active(BusinessKycStatusMaster)
            )
        )
        status = result.scalar_one_or_none()
        if not status:
            raise NotFoundError(f"No status found for '{value}'")
        return status

    async def fetch_initial_status(self) -> BusinessKycStatusMaster:
        result = await self.session.execute(
            select(BusinessKycStatusMaster).where(
                BusinessKycStatusMaster.is_initial.is_(True), *_active(BusinessKycStatusMaster)
            )
        )
        rows = result.scalars().all()
        if not rows:
            raise NotFoundError("Initial status is missing")
        if len(rows) > 1:
            raise CatalogConfigurationError(
                f"Status catalog has {len(rows)} initial statuses, expected exactly one"
            )
        return rows[0]

    async def fetch_application_status_by_id(self, status_id: str | None) -> BusinessKycStatusMaster:
        if not status_id:
            raise BadRequestError("KYC status not initialized")
        result = await self.session.execute(
            select(BusinessKycStatusMaster).where(
                BusinessKycStatusMaster.id == status_id, *_active(BusinessKycStatusMaster)
            )
        )
        status = result.scalar_one_or_none()
        if not status:
            raise NotFoundError("No status found")
        return status

    async def _fetch_by_sequence(self, sequence_order: int) -> BusinessKycStatusMaster | None:
        result = await self.session.execute(
            select(BusinessKycStatusMaster).where(
                BusinessKycStatusMaster.sequence_order == sequence_order, *_active(BusinessKycStatusMaster)
            )
        )
        return result.scalar_one_or_none()

    async def fetch_next_status(self, current: BusinessKycStatusMaster | int) -> BusinessKycStatusMaster:
        """
        Status at sequence_order + 1.
        A terminal current status raises TerminalStageError; a missing row after a
        non-terminal status is a configuration problem and raises NotFoundError.
        """
        if isinstance(current, BusinessKycStatusMaster):
            if current.is_terminal:
                raise TerminalStageError(f"'{current.value}' is the final stage")
            sequence_order = current.sequence_order
        else:
            sequence_order = current
        status = await self._fetch_by_sequence(sequence_order + 1)
        if not status:
            raise NotFoundError(f"No status configured after sequence {sequence_order}")
        return status

    async def fetch_completed_steps_sequence(self, current_sequence_order: int) -> list[dict[str, Any]]:
        """First n statuses by sequence; fails on the first missing sequence number."""
        completed: list[dict[str, Any]] = []
        for count in range(1, current_sequence_order + 1):
            status = await self._fetch_by_sequence(count)
            if not status:
                raise CatalogConfigurationError(f"Status catalog has no entry for sequence {count}")
            completed.append(status_ref(status))
        return completed

    async def move_pointer(
        self,
        kyc: BusinessKyc,
        expected: BusinessKycStatusMaster,
        target: BusinessKycStatusMaster,
    ) -> BusinessKycStatusMaster:
        """
        Compare-and-swap the KYC status pointer from expected to target.
        Zero matched rows means another transaction moved the pointer first.
        """
        result = await self.session.execute(
            update(BusinessKyc)
            .where(
                BusinessKyc.id == kyc.id,
                BusinessKyc.business_kyc_status_master_id == expected.id,
            )
            .values(business_kyc_status_master_id=target.id, status=target.value)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StageConflictError(
                f"KYC {kyc.id} is no longer at '{expected.value}'; reload and retry"
            )
        # Reflect the write on the loaded instance without scheduling a second UPDATE
        set_committed_value(kyc, "business_kyc_status_master_id", target.id)
        set_committed_value(kyc, "status", target.value)
        logger.info("kyc=%s advanced %s -> %s", kyc.id, expected.value, target.value)
        return target

    async def advance(self, kyc: BusinessKyc, current: BusinessKycStatusMaster) -> BusinessKycStatusMaster:
        next_status = await self.fetch_next_status(current)
        return await self.move_pointer(kyc, current, next_status)

    async def advance_business_kyc_status(self, business_kyc_id: str) -> dict[str, Any]:
        kyc = await self.session.get(BusinessKyc, business_kyc_id)
        if not kyc or kyc.is_deleted:
            raise NotFoundError("Business KYC not found")
        current = await self.fetch_application_status_by_id(kyc.business_kyc_status_master_id)
        next_status = await self.advance(kyc, current)
        return {"currentStatus": status_ref(next_status)}


async def seed_catalog(session: AsyncSession) -> None:
    """Insert or refresh the status rows and document types. Safe to run repeatedly."""
    existing = {
        s.value: s for s in (await session.execute(select(BusinessKycStatusMaster))).scalars().all()
    }
    for position, stage in enumerate(STAGE_SEQUENCE, start=1):
        row = existing.get(stage.value)
        if row is None:
            row = BusinessKycStatusMaster(value=stage.value)
            session.add(row)
        row.status = STAGE_LABELS[stage]
        row.sequence_order = position
        row.is_initial = stage is INITIAL_STAGE
        row.is_terminal = stage is TERMINAL_STAGE
        row.is_active = True
        row.is_deleted = False

    doc_types = {
        d.value: d for d in (await session.execute(select(BusinessKycDocumentType))).scalars().all()
    }
    for code, name, sequence_order in DOCUMENT_TYPES:
        row = doc_types.get(code.value)
        if row is None:
            row = BusinessKycDocumentType(value=code.value)
            session.add(row)
        row.name = name
        row.sequence_order = sequence_order
        row.is_active = True
        row.is_deleted = False
    await session.flush()
    logger.info("Seeded %d statuses and %d document types", len(STAGE_SEQUENCE), len(DOCUMENT_TYPES))
