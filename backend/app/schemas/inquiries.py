from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models.domain import InquiryMessageType, InquiryStatus


class CamelModel(BaseModel):
    # The web client speaks camelCase; snake_case input is accepted as well.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _clean_currency(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    vv = v.strip().upper()
    if not vv:
        return None
    if len(vv) != 3 or not vv.isalpha():
        raise ValueError("currency must be a 3-letter code")
    return vv


class OrganizationMiniRead(CamelModel):
    id: int
    name: str
    code: str


class UserMiniRead(CamelModel):
    id: int
    name: str
    email: str


class MarketplaceProductMiniRead(CamelModel):
    id: int
    listing_title: str
    inquiry_count: int


class BuyerRequirementMiniRead(CamelModel):
    id: int
    title: str
    quote_count: int


class InquiryCreate(CamelModel):
    supplier_org_id: int = Field(..., gt=0)
    marketplace_product_id: Optional[int] = Field(None, gt=0)
    buyer_requirement_id: Optional[int] = Field(None, gt=0)
    match_result_id: Optional[int] = Field(None, gt=0)
    subject: str = Field(..., min_length=1, max_length=200)
    message: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=1)
    target_price: Optional[float] = Field(None, ge=0)
    target_currency: Optional[str] = Field(None, max_length=3)
    required_delivery_date: Optional[datetime] = None

    @field_validator("subject")
    @classmethod
    def clean_subject(cls, v: str) -> str:
        vv = v.strip()
        if not vv:
            raise ValueError("subject must not be blank")
        return vv

    @field_validator("message")
    @classmethod
    def clean_message(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v if v.strip() else None

    @field_validator("target_currency")
    @classmethod
    def clean_target_currency(cls, v: Optional[str]) -> Optional[str]:
        return _clean_currency(v)


class InquiryStatusUpdate(CamelModel):
    status: InquiryStatus
    close_reason: Optional[str] = Field(None, max_length=500)


class InquiryMessageCreate(CamelModel):
    message_type: InquiryMessageType
    content: Optional[str] = None
    quote_price: Optional[float] = Field(None, ge=0)
    quote_currency: Optional[str] = Field(None, max_length=3)
    quote_valid_until: Optional[datetime] = None
    quoted_lead_time_days: Optional[int] = Field(None, ge=0)

    @field_validator("quote_currency")
    @classmethod
    def clean_quote_currency(cls, v: Optional[str]) -> Optional[str]:
        return _clean_currency(v)


class InquiryMessageRead(CamelModel):
    id: int
    inquiry_id: int
    sender_user_id: int
    sender_org_id: int
    message_type: InquiryMessageType
    content: Optional[str] = None
    quote_price: Optional[float] = None
    quote_currency: Optional[str] = None
    quote_valid_until: Optional[datetime] = None
    quoted_lead_time_days: Optional[int] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime
    sender_user: Optional[UserMiniRead] = None


class InquirySummaryRead(CamelModel):
    id: int
    inquiry_code: str
    buyer_org_id: int
    supplier_org_id: int
    initiated_by_user_id: int
    marketplace_product_id: Optional[int] = None
    buyer_requirement_id: Optional[int] = None
    match_result_id: Optional[int] = None
    subject: str
    message: Optional[str] = None
    quantity: Optional[int] = None
    target_price: Optional[float] = None
    target_currency: str
    required_delivery_date: Optional[datetime] = None
    status: InquiryStatus
    responded_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    close_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    buyer_org: Optional[OrganizationMiniRead] = None
    supplier_org: Optional[OrganizationMiniRead] = None
    marketplace_product: Optional[MarketplaceProductMiniRead] = None


class InquiryRead(InquirySummaryRead):
    buyer_requirement: Optional[BuyerRequirementMiniRead] = None
    initiated_by_user: Optional[UserMiniRead] = None
    messages: List[InquiryMessageRead] = []


class UnreadCountRead(CamelModel):
    unread_count: int


class SuccessRead(BaseModel):
    success: bool = True
