from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field
from pydantic.alias_generators import to_camel

from services.stages import AuditedCategory, KycStage, PeriodType


class CamelModel(BaseModel):
    """Accepts camelCase (frontend) or snake_case keys."""

    model_config = {"populate_by_name": True, "alias_generator": to_camel}


class ProfileDetailsInput(CamelModel):
    year_in_business: int = Field(..., ge=0)
    turnover: float = Field(..., ge=0)
    projected_turnover: Optional[float] = Field(None, ge=0)
    ebitda_margin: Optional[float] = None


class AuditedFinancialInput(CamelModel):
    category: AuditedCategory
    type: PeriodType
    base_financial_start_year: int
    base_financial_end_year: int
    period_start_year: Optional[int] = None
    period_end_year: Optional[int] = None
    month: Optional[str] = None
    audited_type: Optional[str] = None
    auditor_name: Optional[str] = None
    report_date: Optional[date] = None
    file_id: Optional[str] = None


class CollateralAssetInput(CamelModel):
    collateral_type: str
    charge_type: Optional[str] = None
    ownership_type: Optional[str] = None
    estimated_value: float = Field(..., ge=0)
    valuation_date: Optional[date] = None
    trust_name: Optional[str] = None
    security_document_ref: Optional[str] = None
    description: Optional[str] = None
    remark: Optional[str] = None
    document_id: Optional[str] = None


class GuarantorInput(CamelModel):
    guarantor_type: Literal["individual", "corporate"]
    guarantor_company_name: Optional[str] = None
    cin: Optional[str] = None
    full_name: str
    pan_number: str = Field(..., min_length=10, max_length=10)
    adhar_number: Optional[str] = None
    email: EmailStr
    phone_number: Optional[str] = None
    guaranteed_amount_limit: Optional[float] = None
    estimated_net_worth: Optional[float] = None


class AgreementAcceptanceInput(CamelModel):
    is_accepted: bool
    reason: Optional[str] = None


class RocDetailsInput(CamelModel):
    service_request_no: Optional[str] = None
    filing_date: Optional[date] = None
    cheque_no: Optional[str] = None
    bank_name: Optional[str] = None
    amount: Optional[float] = None
    backup_security_id: Optional[str] = None


class DpnAcceptanceInput(CamelModel):
    is_accepted: bool


class OtpInput(CamelModel):
    otp: str = Field(..., min_length=4, max_length=10)


class VerificationDecisionInput(CamelModel):
    """Back-office decision on step data: 1 approves, 2 rejects."""

    id: str
    status: Literal[1, 2]
    reason: Optional[str] = None


class FixStatusInput(CamelModel):
    stage: KycStage


class AuditedVerificationDecisionInput(CamelModel):
    company_profiles_id: str
    status: Literal[1, 2]
    reason: Optional[str] = None
