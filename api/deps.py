"""
Request dependencies. Caller identity arrives in headers set by the upstream auth gateway;
token validation happens there.
"""
from fastapi import Depends, Header, HTTPException

from services.state import BusinessKycStateService
from services.verification import BusinessKycVerificationService
from services.workflow import BusinessKycTransactionsService

SUPER_ADMIN_ROLE = "super_admin"


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return x_user_id


async def require_super_admin(
    user_id: str = Depends(get_current_user_id),
    x_user_role: str | None = Header(default=None),
) -> str:
    if x_user_role != SUPER_ADMIN_ROLE:
        raise HTTPException(status_code=403, detail="Super admin access required")
    return user_id


def get_workflow() -> BusinessKycTransactionsService:
    return BusinessKycTransactionsService()


def get_state_service() -> BusinessKycStateService:
    return BusinessKycStateService()


def get_verification_service() -> BusinessKycVerificationService:
    return BusinessKycVerificationService()
