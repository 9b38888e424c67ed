from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text

from database import Base
from models.base import RecordFlagsMixin, ReviewMixin, new_id


class BusinessKycProfile(ReviewMixin, RecordFlagsMixin, Base):
    __tablename__ = "business_kyc_profiles"

    id = Column(String(36), primary_key=True, default=new_id)
    business_kyc_id = Column(String(36), ForeignKey("business_kyc.id", ondelete="CASCADE"), nullable=False, index=True)
    year_in_business = Column(Integer, nullable=False)
    turnover = Column(Float, nullable=False)
    projected_turnover = Column(Float, nullable=True)
    # Percentage
    ebitda_margin = Column(Float, nullable=True)


class BusinessKycAuditedFinancials(ReviewMixin, RecordFlagsMixin, Base):
    __tablename__ = "business_kyc_audited_financials"

    id = Column(String(36), primary_key=True, default=new_id)
    business_kyc_id = Column(String(36), ForeignKey("business_kyc.id", ondelete="CASCADE"), nullable=False, index=True)
    category = Column(String(32), nullable=False, index=True)
    # year_wise | month_wise
    type = Column(String(16), nullable=False)
    base_financial_start_year = Column(Integer, nullable=False)
    base_financial_end_year = Column(Integer, nullable=False)
    period_start_year = Column(Integer, nullable=True)
    period_end_year = Column(Integer, nullable=True)
    month = Column(String(16), nullable=True)
    audited_type = Column(String(64), nullable=True)
    auditor_name = Column(String(256), nullable=True)
    report_date = Column(Date, nullable=True)
    file_id = Column(String(36), ForeignKey("media.id"), nullable=True)


class BusinessKycCollateralAssets(ReviewMixin, RecordFlagsMixin, Base):
    __tablename__ = "business_kyc_collateral_assets"

    id = Column(String(36), primary_key=True, default=new_id)
    business_kyc_id = Column(String(36), ForeignKey("business_kyc.id", ondelete="CASCADE"), nullable=False, index=True)
    company_profiles_id = Column(String(36), ForeignKey("company_profiles.id"), nullable=False)
    collateral_type = Column(String(64), nullable=False)
    charge_type = Column(String(64), nullable=True)
    ownership_type = Column(String(64), nullable=True)
    estimated_value = Column(Float, nullable=False)
    valuation_date = Column(Date, nullable=True)
    trust_name = Column(String(256), nullable=True)
    security_document_ref = Column(String(256), nullable=True)
    description = Column(Text, nullable=True)
    remark = Column(Text, nullable=True)
    document_id = Column(String(36), ForeignKey("media.id"), nullable=True)


class BusinessKycGuarantor(ReviewMixin, RecordFlagsMixin, Base):
    __tablename__ = "business_kyc_guarantors"

    id = Column(String(36), primary_key=True, default=new_id)
    business_kyc_id = Column(String(36), ForeignKey("business_kyc.id", ondelete="CASCADE"), nullable=False, index=True)
    company_profiles_id = Column(String(36), ForeignKey("company_profiles.id"), nullable=False)
    # individual | corporate
    guarantor_type = Column(String(32), nullable=False)
    guarantor_company_name = Column(String(256), nullable=True)
    cin = Column(String(32), nullable=True)
    full_name = Column(String(256), nullable=False)
    pan_number = Column(String(16), nullable=False)
    adhar_number = Column(String(16), nullable=True)
    email = Column(String(256), nullable=False)
    phone_number = Column(String(32), nullable=True)
    guaranteed_amount_limit = Column(Float, nullable=True)
    estimated_net_worth = Column(Float, nullable=True)
    is_execution_done = Column(Boolean, nullable=False, default=False)


class BusinessKycGuarantorVerification(RecordFlagsMixin, Base):
    __tablename__ = "business_kyc_guarantor_verifications"

    id = Column(String(36), primary_key=True, default=new_id)
    business_kyc_guarantor_id = Column(
        String(36), ForeignKey("business_kyc_guarantors.id", ondelete="CASCADE"), nullable=False, index=True
    )
    verification_url = Column(String(1024), nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    is_used = Column(Boolean, nullable=False, default=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    verified_at = Column(DateTime(timezone=True), nullable=True)


class BusinessKycAgreement(ReviewMixin, RecordFlagsMixin, Base):
    __tablename__ = "business_kyc_agreements"

    id = Column(String(36), primary_key=True, default=new_id)
    business_kyc_id = Column(String(36), ForeignKey("business_kyc.id", ondelete="CASCADE"), nullable=False, index=True)
    company_profiles_id = Column(String(36), ForeignKey("company_profiles.id"), nullable=False)
    business_kyc_document_type_id = Column(String(36), ForeignKey("business_kyc_document_types.id"), nullable=False)
    # Position inside the agreement sub-workflow (copied from the document type)
    sequence_order = Column(Integer, nullable=False)
    media_id = Column(String(36), ForeignKey("media.id"), nullable=True)
    is_accepted = Column(Boolean, nullable=False, default=False)


class BusinessKycRoc(ReviewMixin, RecordFlagsMixin, Base):
    __tablename__ = "business_kyc_roc"

    id = Column(String(36), primary_key=True, default=new_id)
    business_kyc_id = Column(String(36), ForeignKey("business_kyc.id", ondelete="CASCADE"), nullable=False, unique=True)
    company_profiles_id = Column(String(36), ForeignKey("company_profiles.id"), nullable=False)
    business_kyc_document_type_id = Column(String(36), ForeignKey("business_kyc_document_types.id"), nullable=False)
    charge_filing_id = Column(String(36), ForeignKey("media.id"), nullable=True)
    backup_security_id = Column(String(36), ForeignKey("media.id"), nullable=True)
    service_request_no = Column(String(64), nullable=True)
    filing_date = Column(Date, nullable=True)
    cheque_no = Column(String(64), nullable=True)
    bank_name = Column(String(256), nullable=True)
    amount = Column(Float, nullable=True)
    is_nash_activate = Column(Boolean, nullable=False, default=False)
    is_accepted = Column(Boolean, nullable=False, default=False)


class BusinessKycDpn(ReviewMixin, RecordFlagsMixin, Base):
    __tablename__ = "business_kyc_dpn"

    id = Column(String(36), primary_key=True, default=new_id)
    business_kyc_id = Column(String(36), ForeignKey("business_kyc.id", ondelete="CASCADE"), nullable=False, unique=True)
    company_profiles_id = Column(String(36), ForeignKey("company_profiles.id"), nullable=False)
    business_kyc_document_type_id = Column(String(36), ForeignKey("business_kyc_document_types.id"), nullable=False)
    media_id = Column(String(36), ForeignKey("media.id"), nullable=True)
    is_accepted = Column(Boolean, nullable=False, default=False)


class BusinessKycOtp(RecordFlagsMixin, Base):
    __tablename__ = "business_kyc_otps"

    id = Column(String(36), primary_key=True, default=new_id)
    business_kyc_id = Column(String(36), ForeignKey("business_kyc.id", ondelete="CASCADE"), nullable=False, index=True)
    # agreement | dpn
    purpose = Column(String(32), nullable=False)
    code_hash = Column(String(128), nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_used = Column(Boolean, nullable=False, default=False)
