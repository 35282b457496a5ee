from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from app import models
from app.config import settings
from app.models.domain import InquiryMessageType, InquiryStatus
from app.schemas import InquiryCreate, InquiryMessageCreate, InquiryStatusUpdate
from app.services.audit import audit_event
from app.services.document_numbering import next_yearly_number
from app.services.inquiry_transitions import (
    atomic_transition_inquiry_status,
    can_transition,
    is_terminal,
    status_effect_for_message,
    transition_updates,
)

logger = logging.getLogger("passport.inquiries")

INQUIRY_DOC_TYPE = "inquiry"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _not_found(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _detail_options():
    return (
        selectinload(models.Inquiry.buyer_org),
        selectinload(models.Inquiry.supplier_org),
        selectinload(models.Inquiry.marketplace_product),
        selectinload(models.Inquiry.buyer_requirement),
        selectinload(models.Inquiry.initiated_by_user),
        selectinload(models.Inquiry.messages).selectinload(models.InquiryMessage.sender_user),
    )


def _newest_first(query):
    return query.order_by(models.Inquiry.created_at.desc(), models.Inquiry.id.desc())


def create_inquiry(
    db: Session,
    *,
    buyer_org_id: int,
    user_id: int,
    payload: InquiryCreate,
    now: datetime | None = None,
    request_id: str | None = None,
    ip: str | None = None,
    user_agent: str | None = None,
) -> models.Inquiry:
    supplier = db.get(models.Organization, int(payload.supplier_org_id))
    if supplier is None:
        raise _not_found("Supplier organization not found")

    if int(payload.supplier_org_id) == int(buyer_org_id):
        raise _bad_request("Cannot send inquiry to your own organization")

    if payload.marketplace_product_id is not None:
        if db.get(models.MarketplaceProduct, int(payload.marketplace_product_id)) is None:
            raise _not_found("Marketplace product not found")

    if payload.buyer_requirement_id is not None:
        if db.get(models.BuyerRequirement, int(payload.buyer_requirement_id)) is None:
            raise _not_found("Buyer requirement not found")

    if payload.match_result_id is not None:
        if db.get(models.MatchResult, int(payload.match_result_id)) is None:
            raise _not_found("Match result not found")

    now = now or _utc_now()
    number = next_yearly_number(
        db, doc_type=INQUIRY_DOC_TYPE, prefix=settings.inquiry_code_prefix, now=now
    )

    inquiry = models.Inquiry(
        inquiry_code=number.formatted,
        marketplace_product_id=payload.marketplace_product_id,
        buyer_requirement_id=payload.buyer_requirement_id,
        match_result_id=payload.match_result_id,
        buyer_org_id=int(buyer_org_id),
        supplier_org_id=int(payload.supplier_org_id),
        initiated_by_user_id=int(user_id),
        subject=payload.subject,
        message=payload.message,
        quantity=payload.quantity,
        target_price=payload.target_price,
        target_currency=payload.target_currency or settings.default_currency,
        required_delivery_date=payload.required_delivery_date,
        status=InquiryStatus.PENDING,
        created_at=now,
    )
    db.add(inquiry)
    db.flush()

    if payload.message:
        db.add(
            models.InquiryMessage(
                inquiry_id=inquiry.id,
                sender_user_id=int(user_id),
                sender_org_id=int(buyer_org_id),
                message_type=InquiryMessageType.MESSAGE,
                content=payload.message,
            )
        )

    if payload.marketplace_product_id is not None:
        db.query(models.MarketplaceProduct).filter(
            models.MarketplaceProduct.id == int(payload.marketplace_product_id)
        ).update(
            {models.MarketplaceProduct.inquiry_count: models.MarketplaceProduct.inquiry_count + 1},
            synchronize_session=False,
        )

    if payload.buyer_requirement_id is not None:
        db.query(models.BuyerRequirement).filter(
            models.BuyerRequirement.id == int(payload.buyer_requirement_id)
        ).update(
            {models.BuyerRequirement.quote_count: models.BuyerRequirement.quote_count + 1},
            synchronize_session=False,
        )

    db.commit()
    inquiry_id = int(inquiry.id)

    logger.info(
        "inquiry_created",
        extra={
            "inquiry_id": inquiry_id,
            "inquiry_code": number.formatted,
            "buyer_org_id": buyer_org_id,
            "supplier_org_id": payload.supplier_org_id,
        },
    )
    audit_event(
        "inquiry.created",
        user_id,
        {
            "inquiry_id": inquiry_id,
            "inquiry_code": number.formatted,
            "buyer_org_id": buyer_org_id,
            "supplier_org_id": payload.supplier_org_id,
            "marketplace_product_id": payload.marketplace_product_id,
            "buyer_requirement_id": payload.buyer_requirement_id,
        },
        db=db,
        inquiry_id=inquiry_id,
        idempotency_key=f"inquiry:{inquiry_id}:created",
        request_id=request_id,
        ip=ip,
        user_agent=user_agent,
    )

    return get_inquiry_by_id(db, inquiry_id)


def get_inquiry_by_id(db: Session, inquiry_id: int) -> models.Inquiry:
    inquiry = (
        db.query(models.Inquiry)
        .options(*_detail_options())
        .filter(models.Inquiry.id == int(inquiry_id))
        .first()
    )
    if inquiry is None:
        raise _not_found("Inquiry not found")
    return inquiry


def get_inquiry_with_access(db: Session, inquiry_id: int, organization_id: int) -> models.Inquiry:
    """Load an inquiry for one of its two parties; any other organization gets 403."""

    inquiry = get_inquiry_by_id(db, inquiry_id)
    if int(organization_id) not in {int(inquiry.buyer_org_id), int(inquiry.supplier_org_id)}:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this inquiry",
        )
    return inquiry


def get_sent_inquiries(db: Session, organization_id: int) -> list[models.Inquiry]:
    query = (
        db.query(models.Inquiry)
        .options(
            selectinload(models.Inquiry.supplier_org),
            selectinload(models.Inquiry.marketplace_product),
        )
        .filter(models.Inquiry.buyer_org_id == int(organization_id))
    )
    return _newest_first(query).all()


def get_received_inquiries(db: Session, organization_id: int) -> list[models.Inquiry]:
    query = (
        db.query(models.Inquiry)
        .options(
            selectinload(models.Inquiry.buyer_org),
            selectinload(models.Inquiry.marketplace_product),
            selectinload(models.Inquiry.buyer_requirement),
        )
        .filter(models.Inquiry.supplier_org_id == int(organization_id))
    )
    return _newest_first(query).all()


def get_all_inquiries(db: Session, organization_id: int) -> list[models.Inquiry]:
    org_id = int(organization_id)
    query = (
        db.query(models.Inquiry)
        .options(
            selectinload(models.Inquiry.buyer_org),
            selectinload(models.Inquiry.supplier_org),
            selectinload(models.Inquiry.marketplace_product),
        )
        .filter(or_(models.Inquiry.buyer_org_id == org_id, models.Inquiry.supplier_org_id == org_id))
    )
    return _newest_first(query).all()


def update_status(
    db: Session,
    *,
    inquiry_id: int,
    organization_id: int,
    payload: InquiryStatusUpdate,
    user_id: int | None = None,
    now: datetime | None = None,
    request_id: str | None = None,
    ip: str | None = None,
    user_agent: str | None = None,
) -> models.Inquiry:
    inquiry = get_inquiry_with_access(db, inquiry_id, organization_id)

    from_status = inquiry.status
    to_status = payload.status
    if not can_transition(from_status, to_status):
        raise _bad_request(f"Cannot transition from {from_status.value} to {to_status.value}")

    now = now or _utc_now()
    updates = transition_updates(
        now=now,
        stamp_responded=to_status == InquiryStatus.RESPONDED,
        stamp_closed=is_terminal(to_status),
        close_reason=payload.close_reason,
    )
    result = atomic_transition_inquiry_status(
        db=db,
        inquiry_id=int(inquiry.id),
        to_status=to_status,
        allowed_from={from_status},
        updates=updates,
    )
    if not result.updated:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Inquiry status changed concurrently; reload and retry",
        )
    db.commit()

    logger.info(
        "inquiry_status_changed",
        extra={
            "inquiry_id": int(inquiry_id),
            "from_status": from_status.value,
            "to_status": to_status.value,
            "organization_id": organization_id,
        },
    )
    audit_event(
        "inquiry.status_changed",
        user_id,
        {
            "inquiry_id": int(inquiry_id),
            "from_status": from_status.value,
            "to_status": to_status.value,
            "close_reason": payload.close_reason,
            "source": "explicit",
        },
        db=db,
        inquiry_id=int(inquiry_id),
        request_id=request_id,
        ip=ip,
        user_agent=user_agent,
    )

    return get_inquiry_by_id(db, inquiry_id)


def send_message(
    db: Session,
    *,
    inquiry_id: int,
    user_id: int,
    organization_id: int,
    payload: InquiryMessageCreate,
    now: datetime | None = None,
    request_id: str | None = None,
    ip: str | None = None,
    user_agent: str | None = None,
) -> models.InquiryMessage:
    """Post a message and apply the status change its type implies.

    The status effect is looked up in MESSAGE_STATUS_EFFECTS and does not go
    through the explicit transition table.
    """

    inquiry = get_inquiry_with_access(db, inquiry_id, organization_id)
    if is_terminal(inquiry.status):
        raise _bad_request("Cannot send messages to a closed inquiry")

    from_status = inquiry.status
    message = models.InquiryMessage(
        inquiry_id=int(inquiry.id),
        sender_user_id=int(user_id),
        sender_org_id=int(organization_id),
        message_type=payload.message_type,
        content=payload.content,
        quote_price=payload.quote_price,
        quote_currency=payload.quote_currency,
        quote_valid_until=payload.quote_valid_until,
        quoted_lead_time_days=payload.quoted_lead_time_days,
    )
    db.add(message)
    db.flush()

    now = now or _utc_now()
    to_status = None
    effect = status_effect_for_message(payload.message_type, from_status)
    if effect is not None:
        result = atomic_transition_inquiry_status(
            db=db,
            inquiry_id=int(inquiry.id),
            to_status=effect.to_status,
            allowed_from=effect.allowed_from,
            updates=transition_updates(
                now=now,
                stamp_responded=effect.stamp_responded,
                stamp_closed=effect.stamp_closed,
            ),
        )
        if result.updated:
            to_status = effect.to_status
        else:
            logger.warning(
                "inquiry_status_effect_skipped",
                extra={
                    "inquiry_id": int(inquiry_id),
                    "message_type": payload.message_type.value,
                    "to_status": effect.to_status.value,
                },
            )

    db.commit()
    message_id = int(message.id)

    logger.info(
        "inquiry_message_sent",
        extra={
            "inquiry_id": int(inquiry_id),
            "message_id": message_id,
            "message_type": payload.message_type.value,
            "sender_org_id": organization_id,
            "to_status": to_status.value if to_status else None,
        },
    )
    audit_event(
        "inquiry.message_sent",
        user_id,
        {
            "inquiry_id": int(inquiry_id),
            "message_id": message_id,
            "message_type": payload.message_type.value,
            "from_status": from_status.value,
            "to_status": to_status.value if to_status else None,
        },
        db=db,
        inquiry_id=int(inquiry_id),
        idempotency_key=f"inquiry:{inquiry_id}:message:{message_id}",
        request_id=request_id,
        ip=ip,
        user_agent=user_agent,
    )

    return db.get(models.InquiryMessage, message_id)


def get_messages(db: Session, inquiry_id: int, organization_id: int) -> list[models.InquiryMessage]:
    get_inquiry_with_access(db, inquiry_id, organization_id)

    return (
        db.query(models.InquiryMessage)
        .options(selectinload(models.InquiryMessage.sender_user))
        .filter(models.InquiryMessage.inquiry_id == int(inquiry_id))
        .order_by(models.InquiryMessage.created_at.asc(), models.InquiryMessage.id.asc())
        .all()
    )


def mark_messages_as_read(
    db: Session,
    inquiry_id: int,
    organization_id: int,
    *,
    now: datetime | None = None,
) -> int:
    """Mark the counterpart's unread messages as read; returns how many changed.

    Messages already read keep their original read_at.
    """

    get_inquiry_with_access(db, inquiry_id, organization_id)

    now = now or _utc_now()
    rowcount = (
        db.query(models.InquiryMessage)
        .filter(models.InquiryMessage.inquiry_id == int(inquiry_id))
        .filter(models.InquiryMessage.is_read.is_(False))
        .filter(models.InquiryMessage.sender_org_id != int(organization_id))
        .update(
            {models.InquiryMessage.is_read: True, models.InquiryMessage.read_at: now},
            synchronize_session=False,
        )
    )
    db.commit()

    marked = int(rowcount or 0)
    if marked:
        logger.info(
            "inquiry_messages_read",
            extra={
                "inquiry_id": int(inquiry_id),
                "organization_id": organization_id,
                "count": marked,
            },
        )
    return marked


def get_unread_count(db: Session, organization_id: int) -> int:
    org_id = int(organization_id)
    inquiry_ids = [
        row[0]
        for row in db.query(models.Inquiry.id)
        .filter(or_(models.Inquiry.buyer_org_id == org_id, models.Inquiry.supplier_org_id == org_id))
        .all()
    ]
    if not inquiry_ids:
        return 0

    count = (
        db.query(func.count(models.InquiryMessage.id))
        .filter(models.InquiryMessage.inquiry_id.in_(inquiry_ids))
        .filter(models.InquiryMessage.is_read.is_(False))
        .filter(models.InquiryMessage.sender_org_id != org_id)
        .scalar()
    )
    return int(count or 0)
