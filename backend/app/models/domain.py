from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RoleName(PyEnum):
    customer = "customer"
    operator = "operator"
    admin = "admin"


class InquiryStatus(PyEnum):
    PENDING = "PENDING"
    RESPONDED = "RESPONDED"
    NEGOTIATING = "NEGOTIATING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


TERMINAL_INQUIRY_STATUSES = frozenset(
    {InquiryStatus.ACCEPTED, InquiryStatus.REJECTED, InquiryStatus.EXPIRED}
)


class InquiryMessageType(PyEnum):
    MESSAGE = "MESSAGE"
    QUOTE = "QUOTE"
    COUNTER_OFFER = "COUNTER_OFFER"
    ACCEPTANCE = "ACCEPTANCE"
    REJECTION = "REJECTION"
    SYSTEM = "SYSTEM"


class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Three-letter company code used in passport and document numbers.
    code: Mapped[str] = mapped_column(String(3), unique=True, nullable=False)
    type: Mapped[str | None] = mapped_column(String(32))
    country: Mapped[str | None] = mapped_column(String(64))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[RoleName] = mapped_column(
        Enum(RoleName, native_enum=False), unique=True, nullable=False
    )
    description: Mapped[str | None] = mapped_column(String(255))

    users = relationship("User", back_populates="role")


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id"), nullable=False)
    organization_id: Mapped[int | None] = mapped_column(
        ForeignKey("organizations.id"), nullable=True, index=True
    )
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    role = relationship("Role", back_populates="users", lazy="joined")
    organization = relationship("Organization")


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    inquiry_id: Mapped[int | None] = mapped_column(
        ForeignKey("inquiries.id", ondelete="SET NULL"), nullable=True, index=True
    )
    payload_json: Mapped[str | None] = mapped_column(Text)

    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(256), nullable=True)

    idempotency_key: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
        unique=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", lazy="joined")


class DocumentYearlySequence(Base):
    __tablename__ = "document_yearly_sequences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    doc_type: Mapped[str] = mapped_column(String(16), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    last_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (UniqueConstraint("doc_type", "year", name="uq_doc_seq_doc_type_year"),)


class MarketplaceProduct(Base):
    __tablename__ = "marketplace_products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    listing_title: Mapped[str] = mapped_column(String(255), nullable=False)
    price_currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    inquiry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    organization = relationship("Organization")


class BuyerRequirement(Base):
    """RFQ posted by a buyer organization; inquiries may answer it."""

    __tablename__ = "buyer_requirements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    budget_currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    quote_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    organization = relationship("Organization")


class MatchResult(Base):
    __tablename__ = "match_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    marketplace_product_id: Mapped[int | None] = mapped_column(
        ForeignKey("marketplace_products.id"), nullable=True
    )
    buyer_requirement_id: Mapped[int | None] = mapped_column(
        ForeignKey("buyer_requirements.id"), nullable=True
    )
    supplier_org_id: Mapped[int | None] = mapped_column(
        ForeignKey("organizations.id"), nullable=True
    )
    buyer_org_id: Mapped[int | None] = mapped_column(ForeignKey("organizations.id"), nullable=True)
    total_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Inquiry(Base):
    __tablename__ = "inquiries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # INQ-{YEAR}-{SEQ:06d}, allocated from document_yearly_sequences.
    inquiry_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)

    marketplace_product_id: Mapped[int | None] = mapped_column(
        ForeignKey("marketplace_products.id"), nullable=True
    )
    buyer_requirement_id: Mapped[int | None] = mapped_column(
        ForeignKey("buyer_requirements.id"), nullable=True
    )
    match_result_id: Mapped[int | None] = mapped_column(
        ForeignKey("match_results.id"), nullable=True
    )

    buyer_org_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    supplier_org_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    initiated_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str | None] = mapped_column(Text)
    quantity: Mapped[int | None] = mapped_column(Integer)
    target_price: Mapped[float | None] = mapped_column(Float)
    target_currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    required_delivery_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    status: Mapped[InquiryStatus] = mapped_column(
        Enum(InquiryStatus, native_enum=False), default=InquiryStatus.PENDING, nullable=False
    )
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    close_reason: Mapped[str | None] = mapped_column(String(500))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utc_now,
        server_default=func.now(),
        onupdate=_utc_now,
        nullable=False,
    )

    buyer_org = relationship("Organization", foreign_keys=[buyer_org_id])
    supplier_org = relationship("Organization", foreign_keys=[supplier_org_id])
    initiated_by_user = relationship("User", foreign_keys=[initiated_by_user_id])
    marketplace_product = relationship("MarketplaceProduct")
    buyer_requirement = relationship("BuyerRequirement")
    match_result = relationship("MatchResult")
    messages = relationship(
        "InquiryMessage",
        back_populates="inquiry",
        cascade="all, delete-orphan",
        order_by=lambda: (InquiryMessage.created_at, InquiryMessage.id),
    )

    __table_args__ = (
        Index("ix_inquiries_status", "status"),
        Index("ix_inquiries_buyer_org_status", "buyer_org_id", "status"),
        Index("ix_inquiries_supplier_org_status", "supplier_org_id", "status"),
    )


class InquiryMessage(Base):
    __tablename__ = "inquiry_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    inquiry_id: Mapped[int] = mapped_column(
        ForeignKey("inquiries.id", ondelete="CASCADE"), nullable=False
    )
    sender_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    sender_org_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), nullable=False)

    message_type: Mapped[InquiryMessageType] = mapped_column(
        Enum(InquiryMessageType, native_enum=False),
        default=InquiryMessageType.MESSAGE,
        nullable=False,
    )
    content: Mapped[str | None] = mapped_column(Text)

    # Quote terms, used by QUOTE and COUNTER_OFFER messages.
    quote_price: Mapped[float | None] = mapped_column(Float)
    quote_currency: Mapped[str | None] = mapped_column(String(3))
    quote_valid_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    quoted_lead_time_days: Mapped[int | None] = mapped_column(Integer)

    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, server_default=func.now(), nullable=False
    )

    inquiry = relationship("Inquiry", back_populates="messages")
    sender_user = relationship("User", foreign_keys=[sender_user_id])
    sender_org = relationship("Organization", foreign_keys=[sender_org_id])

    __table_args__ = (Index("ix_inquiry_messages_inquiry_created", "inquiry_id", "created_at"),)
