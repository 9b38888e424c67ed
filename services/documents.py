from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from exceptions import BadRequestError
from models import BusinessKycDocumentType
from services.stages import DocumentTypeCode


async def fetch_document_types(
    session: AsyncSession, codes: tuple[DocumentTypeCode, ...]
) -> list[BusinessKycDocumentType]:
    """Active document types for the given codes, in sequence order. All of them must be configured."""
    result = await session.execute(
        select(BusinessKycDocumentType)
        .where(
            BusinessKycDocumentType.value.in_([c.value for c in codes]),
            BusinessKycDocumentType.is_active.is_(True),
            BusinessKycDocumentType.is_deleted.is_(False),
        )
        .order_by(BusinessKycDocumentType.sequence_order)
    )
    doc_types = list(result.scalars().all())
    missing = {c.value for c in codes} - {d.value for d in doc_types}
    if missing:
        raise BadRequestError(f"Document types not configured: {', '.join(sorted(missing))}")
    return doc_types
