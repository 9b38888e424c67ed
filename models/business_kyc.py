from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text

from database import Base
from models.base import RecordFlagsMixin, new_id


class BusinessKycStatusMaster(RecordFlagsMixin, Base):
    __tablename__ = "business_kyc_status_master"

    id = Column(String(36), primary_key=True, default=new_id)
    # Human label
    status = Column(String(128), nullable=False)
    # Machine code, e.g. "guarantor_details"
    value = Column(String(64), nullable=False, unique=True, index=True)
    sequence_order = Column(Integer, nullable=False, unique=True)
    is_initial = Column(Boolean, nullable=False, default=False)
    is_terminal = Column(Boolean, nullable=False, default=False)


class BusinessKyc(RecordFlagsMixin, Base):
    __tablename__ = "business_kyc"

    id = Column(String(36), primary_key=True, default=new_id)
    company_profiles_id = Column(String(36), ForeignKey("company_profiles.id"), nullable=False, index=True)
    business_kyc_status_master_id = Column(
        String(36), ForeignKey("business_kyc_status_master.id"), nullable=False, index=True
    )
    # Denormalized copy of the pointed-to status value
    status = Column(String(64), nullable=False)


class BusinessKycDocumentType(RecordFlagsMixin, Base):
    __tablename__ = "business_kyc_document_types"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(256), nullable=False)
    value = Column(String(64), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    sequence_order = Column(Integer, nullable=False)
    file_template_id = Column(String(36), ForeignKey("media.id"), nullable=True)
