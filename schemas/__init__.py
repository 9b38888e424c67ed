from schemas.business_kyc import (
    AgreementAcceptanceInput,
    AuditedFinancialInput,
    AuditedVerificationDecisionInput,
    CollateralAssetInput,
    DpnAcceptanceInput,
    FixStatusInput,
    GuarantorInput,
    OtpInput,
    ProfileDetailsInput,
    RocDetailsInput,
    VerificationDecisionInput,
)

__all__ = [
    "AgreementAcceptanceInput",
    "AuditedFinancialInput",
    "AuditedVerificationDecisionInput",
    "CollateralAssetInput",
    "DpnAcceptanceInput",
    "FixStatusInput",
    "GuarantorInput",
    "OtpInput",
    "ProfileDetailsInput",
    "RocDetailsInput",
    "VerificationDecisionInput",
]
