from models.business_kyc import BusinessKyc, BusinessKycDocumentType, BusinessKycStatusMaster
from models.company import CompanyProfile, Media
from models.steps import (
    BusinessKycAgreement,
    BusinessKycAuditedFinancials,
    BusinessKycCollateralAssets,
    BusinessKycDpn,
    BusinessKycGuarantor,
    BusinessKycGuarantorVerification,
    BusinessKycOtp,
    BusinessKycProfile,
    BusinessKycRoc,
)

__all__ = [
    "BusinessKyc",
    "BusinessKycAgreement",
    "BusinessKycAuditedFinancials",
    "BusinessKycCollateralAssets",
    "BusinessKycDocumentType",
    "BusinessKycDpn",
    "BusinessKycGuarantor",
    "BusinessKycGuarantorVerification",
    "BusinessKycOtp",
    "BusinessKycProfile",
    "BusinessKycRoc",
    "BusinessKycStatusMaster",
    "CompanyProfile",
    "Media",
]
