import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, Text, func


def new_id() -> str:
    return str(uuid.uuid4())


class RecordFlagsMixin:
    """Soft-delete flags and timestamps shared by every table."""

    # Load server-generated timestamps on flush; lazy refresh is not available under AsyncSession
    __mapper_args__ = {"eager_defaults": True}

    is_active = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class ReviewMixin:
    """Back-office review columns carried by step-owned rows."""

    # 0 => under review, 1 => approved, 2 => rejected
    status = Column(Integer, nullable=False, default=0)
    # 0 => auto, 1 => manual
    mode = Column(Integer, nullable=False, default=0)
    reason = Column(Text, nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)

    def apply_review(self, status: int, reason: str | None = None) -> None:
        """Record a back-office decision. Only rejections keep a reason."""
        self.status = status
        self.mode = MODE_MANUAL
        self.reason = reason if status == REVIEW_REJECTED else None
        self.verified_at = datetime.now(timezone.utc)


REVIEW_UNDER_REVIEW = 0
REVIEW_APPROVED = 1
REVIEW_REJECTED = 2

MODE_AUTO = 0
MODE_MANUAL = 1
