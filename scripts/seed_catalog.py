"""
Seed the Business KYC status catalog and document types, plus a demo company for local use.
Run: python -m scripts.seed_catalog (from the project root).
"""
import asyncio
import os
import sys

# Add parent so we can import from the project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from database import AsyncSessionLocal, init_db
from models import CompanyProfile
from services.status import seed_catalog

DEMO_COMPANIES = [
    {"users_id": "demo-user", "company_name": "Demo Traders Pvt Ltd"},
]


async def seed():
    await init_db()
    async with AsyncSessionLocal() as session:
        await seed_catalog(session)
        for data in DEMO_COMPANIES:
            existing = await session.execute(
                select(CompanyProfile).where(CompanyProfile.users_id == data["users_id"])
            )
            if existing.scalars().first():
                print(f"Company for {data['users_id']} already exists, skipping")
                continue
            session.add(CompanyProfile(**data))
            print(f"Seeded company: {data['company_name']}")
        await session.commit()
    print("Seed complete.")


if __name__ == "__main__":
    asyncio.run(seed())
