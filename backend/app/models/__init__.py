from app.models.domain import (
    TERMINAL_INQUIRY_STATUSES,
    AuditLog,
    BuyerRequirement,
    DocumentYearlySequence,
    Inquiry,
    InquiryMessage,
    InquiryMessageType,
    InquiryStatus,
    MarketplaceProduct,
    MatchResult,
    Organization,
    Role,
    RoleName,
    User,
)

__all__ = [
    "TERMINAL_INQUIRY_STATUSES",
    "AuditLog",
    "BuyerRequirement",
    "DocumentYearlySequence",
    "Inquiry",
    "InquiryMessage",
    "InquiryMessageType",
    "InquiryStatus",
    "MarketplaceProduct",
    "MatchResult",
    "Organization",
    "Role",
    "RoleName",
    "User",
]
