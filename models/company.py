from sqlalchemy import Boolean, Column, String

from database import Base
from models.base import RecordFlagsMixin, new_id


class CompanyProfile(RecordFlagsMixin, Base):
    __tablename__ = "company_profiles"

    id = Column(String(36), primary_key=True, default=new_id)
    users_id = Column(String(64), nullable=False, index=True)
    company_name = Column(String(256), nullable=False)


class Media(RecordFlagsMixin, Base):
    __tablename__ = "media"

    id = Column(String(36), primary_key=True, default=new_id)
    file_original_name = Column(String(512), nullable=True)
    file_url = Column(String(1024), nullable=True)
    # Referenced by at least one KYC record
    is_used = Column(Boolean, nullable=False, default=False)
