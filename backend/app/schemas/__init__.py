from app.schemas.inquiries import (
    BuyerRequirementMiniRead,
    InquiryCreate,
    InquiryMessageCreate,
    InquiryMessageRead,
    InquiryRead,
    InquiryStatusUpdate,
    InquirySummaryRead,
    MarketplaceProductMiniRead,
    OrganizationMiniRead,
    SuccessRead,
    UnreadCountRead,
    UserMiniRead,
)
