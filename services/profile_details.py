from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from exceptions import NotFoundError
from models import BusinessKycProfile
from schemas.business_kyc import ProfileDetailsInput


class ProfileDetailsService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def fetch_profile_details(self, business_kyc_id: str) -> list[BusinessKycProfile]:
        result = await self.session.execute(
            select(BusinessKycProfile)
            .where(
                BusinessKycProfile.business_kyc_id == business_kyc_id,
                BusinessKycProfile.is_active.is_(True),
                BusinessKycProfile.is_deleted.is_(False),
            )
            .order_by(BusinessKycProfile.created_at, BusinessKycProfile.id)
        )
        return list(result.scalars().all())

    async def replace_profile_details(
        self, business_kyc_id: str, rows: list[ProfileDetailsInput]
    ) -> list[BusinessKycProfile]:
        """Replace the whole profile set for a KYC. Review state starts over."""
        await self.session.execute(
            delete(BusinessKycProfile).where(BusinessKycProfile.business_kyc_id == business_kyc_id)
        )
        for row in rows:
            self.session.add(BusinessKycProfile(business_kyc_id=business_kyc_id, **row.model_dump()))
        await self.session.flush()
        return await self.fetch_profile_details(business_kyc_id)

    async def update_status(self, profile_id: str, status: int, reason: str | None = None) -> BusinessKycProfile:
        profile = await self.session.get(BusinessKycProfile, profile_id)
        if not profile or profile.is_deleted or not profile.is_active:
            raise NotFoundError("Business profile not found")
        profile.apply_review(status, reason)
        await self.session.flush()
        return profile
