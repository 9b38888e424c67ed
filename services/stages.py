"""
Business KYC stage catalog.
The order of KycStage members is the workflow order; sequence numbers are derived from it,
so the catalog cannot contain gaps or duplicates. The database status table is seeded from here.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class KycStage(str, Enum):
    BUSINESS_PROFILE = "business_profile"
    FINANCIAL_STATEMENTS = "financial_statements"
    INCOME_TAX_RETURNS = "income_tax_returns"
    GSTR_9 = "gstr_9"
    GST_3B = "gst_3b"
    COLLATERAL_ASSETS = "collateral_assets"
    GUARANTOR_DETAILS = "guarantor_details"
    REVIEW_AND_SUBMIT = "review_and_submit"
    PENDING = "pending"
    AGREEMENT = "agreement"
    ROC = "roc"
    DPN = "dpn"
    COMPLETED = "completed"


STAGE_LABELS: dict[KycStage, str] = {
    KycStage.BUSINESS_PROFILE: "Business Profile",
    KycStage.FINANCIAL_STATEMENTS: "Financial Statements",
    KycStage.INCOME_TAX_RETURNS: "Income Tax Returns",
    KycStage.GSTR_9: "GSTR-9",
    KycStage.GST_3B: "GST-3B",
    KycStage.COLLATERAL_ASSETS: "Collateral Assets",
    KycStage.GUARANTOR_DETAILS: "Guarantor Details",
    KycStage.REVIEW_AND_SUBMIT: "Review & Submit",
    KycStage.PENDING: "Pending Approval",
    KycStage.AGREEMENT: "Agreement",
    KycStage.ROC: "ROC",
    KycStage.DPN: "DPN",
    KycStage.COMPLETED: "Completed",
}

STAGE_SEQUENCE: tuple[KycStage, ...] = tuple(KycStage)
INITIAL_STAGE = STAGE_SEQUENCE[0]
TERMINAL_STAGE = STAGE_SEQUENCE[-1]

# Step data can no longer be edited once the KYC has been submitted for review
LAST_EDITABLE_STAGE = KycStage.REVIEW_AND_SUBMIT


def sequence_of(stage: KycStage) -> int:
    """1-based position of a stage in the workflow."""
    return STAGE_SEQUENCE.index(stage) + 1


class PeriodType(str, Enum):
    YEAR_WISE = "year_wise"
    MONTH_WISE = "month_wise"


class AuditedCategory(str, Enum):
    FINANCIAL_STATEMENTS = "financial_statements"
    INCOME_TAX_RETURNS = "income_tax_returns"
    GSTR_9 = "gstr_9"
    GST_3B = "gst_3b"

    @property
    def stage(self) -> KycStage:
        return KycStage(self.value)

    @property
    def period_type(self) -> PeriodType:
        return CATEGORY_PERIOD_TYPES[self]


CATEGORY_PERIOD_TYPES: dict[AuditedCategory, PeriodType] = {
    AuditedCategory.FINANCIAL_STATEMENTS: PeriodType.YEAR_WISE,
    AuditedCategory.INCOME_TAX_RETURNS: PeriodType.YEAR_WISE,
    AuditedCategory.GSTR_9: PeriodType.YEAR_WISE,
    AuditedCategory.GST_3B: PeriodType.MONTH_WISE,
}

if set(CATEGORY_PERIOD_TYPES) != set(AuditedCategory):
    raise RuntimeError("Every audited financial category needs a period type")
if set(STAGE_LABELS) != set(KycStage):
    raise RuntimeError("Every KYC stage needs a label")


@dataclass(frozen=True)
class UiStep:
    code: str
    label: str
    stages: tuple[KycStage, ...]

    @property
    def last_sequence(self) -> int:
        return max(sequence_of(s) for s in self.stages)


# Coarse steps shown by the frontend; the four audited sub-stages collapse into one
UI_STEPS: tuple[UiStep, ...] = (
    UiStep("business_profile", "Business Profile", (KycStage.BUSINESS_PROFILE,)),
    UiStep(
        "audited_financials",
        "Audited Financials",
        tuple(c.stage for c in AuditedCategory),
    ),
    UiStep("collateral_assets", "Collateral Assets", (KycStage.COLLATERAL_ASSETS,)),
    UiStep("guarantor_details", "Guarantor Details", (KycStage.GUARANTOR_DETAILS,)),
    UiStep("review_and_submit", "Review & Submit", (KycStage.REVIEW_AND_SUBMIT,)),
    UiStep("agreement", "Agreement", (KycStage.AGREEMENT,)),
    UiStep("roc", "ROC", (KycStage.ROC,)),
    UiStep("dpn", "DPN", (KycStage.DPN,)),
)


def ui_step_for(stage: KycStage) -> UiStep | None:
    for step in UI_STEPS:
        if stage in step.stages:
            return step
    return None


class DocumentTypeCode(str, Enum):
    SANCTION_LETTER = "sanction_letter"
    PLATFORM_AGREEMENT = "platform_agreement"
    DEED_OF_HYPOTHECATION = "deed_of_hypothecation"
    DPN = "dpn"
    ROC = "roc"


# (code, name, sequence_order)
DOCUMENT_TYPES: tuple[tuple[DocumentTypeCode, str, int], ...] = (
    (DocumentTypeCode.SANCTION_LETTER, "Sanction Letter", 1),
    (DocumentTypeCode.PLATFORM_AGREEMENT, "Platform Agreement", 2),
    (DocumentTypeCode.DEED_OF_HYPOTHECATION, "Deed of Hypothecation", 3),
    (DocumentTypeCode.DPN, "Demand Promissory Note", 4),
    (DocumentTypeCode.ROC, "ROC Charge Filing", 5),
)

AGREEMENT_DOCUMENT_TYPES: tuple[DocumentTypeCode, ...] = (
    DocumentTypeCode.SANCTION_LETTER,
    DocumentTypeCode.PLATFORM_AGREEMENT,
    DocumentTypeCode.DEED_OF_HYPOTHECATION,
)
