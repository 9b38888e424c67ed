from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from exceptions import NotFoundError
from models import BusinessKycCollateralAssets
from schemas.business_kyc import CollateralAssetInput


class CollateralAssetsService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def fetch_collateral_assets(self, business_kyc_id: str) -> list[BusinessKycCollateralAssets]:
        result = await self.session.execute(
            select(BusinessKycCollateralAssets)
            .where(
                BusinessKycCollateralAssets.business_kyc_id == business_kyc_id,
                BusinessKycCollateralAssets.is_active.is_(True),
                BusinessKycCollateralAssets.is_deleted.is_(False),
            )
            .order_by(BusinessKycCollateralAssets.created_at, BusinessKycCollateralAssets.id)
        )
        return list(result.scalars().all())

    async def replace_collateral_assets(
        self,
        business_kyc_id: str,
        company_profiles_id: str,
        rows: list[CollateralAssetInput],
    ) -> list[BusinessKycCollateralAssets]:
        await self.session.execute(
            delete(BusinessKycCollateralAssets).where(
                BusinessKycCollateralAssets.business_kyc_id == business_kyc_id,
                BusinessKycCollateralAssets.is_active.is_(True),
                BusinessKycCollateralAssets.is_deleted.is_(False),
            )
        )
        for row in rows:
            self.session.add(
                BusinessKycCollateralAssets(
                    business_kyc_id=business_kyc_id,
                    company_profiles_id=company_profiles_id,
                    **row.model_dump(),
                )
            )
        await self.session.flush()
        return await self.fetch_collateral_assets(business_kyc_id)

    async def update_status(
        self, asset_id: str, status: int, reason: str | None = None
    ) -> BusinessKycCollateralAssets:
        asset = await self.session.get(BusinessKycCollateralAssets, asset_id)
        if not asset or asset.is_deleted or not asset.is_active:
            raise NotFoundError("Collateral asset not found")
        asset.apply_review(status, reason)
        await self.session.flush()
        return asset
