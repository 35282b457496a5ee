# ruff: noqa: B008

from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app import models
from app.api.deps import get_current_organization_id, require_roles
from app.core.observability import request_id_for
from app.database import get_db
from app.models.domain import RoleName
from app.schemas import (
    InquiryCreate,
    InquiryMessageCreate,
    InquiryMessageRead,
    InquiryRead,
    InquiryStatusUpdate,
    InquirySummaryRead,
    SuccessRead,
    UnreadCountRead,
)
from app.services import inquiry_service

router = APIRouter(prefix="/inquiries", tags=["inquiries"])

_ANY_ROLE_DEP = Depends(require_roles(RoleName.customer, RoleName.operator, RoleName.admin))
_SUPPLIER_ROLE_DEP = Depends(require_roles(RoleName.operator, RoleName.admin))
_ORG_DEP = Depends(get_current_organization_id)
_DB_DEP = Depends(get_db)


def _request_context(request: Request) -> dict:
    return {
        "request_id": request_id_for(request),
        "ip": (request.client.host if request.client else None),
        "user_agent": request.headers.get("user-agent"),
    }


@router.get("", response_model=List[InquirySummaryRead])
def list_inquiries(
    current_user: models.User = _ANY_ROLE_DEP,
    organization_id: int = _ORG_DEP,
    db: Session = _DB_DEP,
):
    return inquiry_service.get_all_inquiries(db, organization_id)


@router.get("/sent", response_model=List[InquirySummaryRead])
def list_sent_inquiries(
    current_user: models.User = _ANY_ROLE_DEP,
    organization_id: int = _ORG_DEP,
    db: Session = _DB_DEP,
):
    return inquiry_service.get_sent_inquiries(db, organization_id)


@router.get("/received", response_model=List[InquirySummaryRead])
def list_received_inquiries(
    current_user: models.User = _SUPPLIER_ROLE_DEP,
    organization_id: int = _ORG_DEP,
    db: Session = _DB_DEP,
):
    return inquiry_service.get_received_inquiries(db, organization_id)


@router.get("/unread-count", response_model=UnreadCountRead)
def unread_count(
    current_user: models.User = _ANY_ROLE_DEP,
    organization_id: int = _ORG_DEP,
    db: Session = _DB_DEP,
):
    return UnreadCountRead(unread_count=inquiry_service.get_unread_count(db, organization_id))


@router.get("/{inquiry_id}", response_model=InquiryRead)
def get_inquiry(
    inquiry_id: int,
    current_user: models.User = _ANY_ROLE_DEP,
    organization_id: int = _ORG_DEP,
    db: Session = _DB_DEP,
):
    # Opening an inquiry marks the counterpart's messages as read.
    inquiry_service.mark_messages_as_read(db, inquiry_id, organization_id)
    return inquiry_service.get_inquiry_by_id(db, inquiry_id)


@router.post("", response_model=InquiryRead, status_code=status.HTTP_201_CREATED)
def create_inquiry(
    payload: InquiryCreate,
    request: Request,
    current_user: models.User = _ANY_ROLE_DEP,
    organization_id: int = _ORG_DEP,
    db: Session = _DB_DEP,
):
    return inquiry_service.create_inquiry(
        db,
        buyer_org_id=organization_id,
        user_id=current_user.id,
        payload=payload,
        **_request_context(request),
    )


@router.patch("/{inquiry_id}/status", response_model=InquiryRead)
def update_inquiry_status(
    inquiry_id: int,
    payload: InquiryStatusUpdate,
    request: Request,
    current_user: models.User = _ANY_ROLE_DEP,
    organization_id: int = _ORG_DEP,
    db: Session = _DB_DEP,
):
    return inquiry_service.update_status(
        db,
        inquiry_id=inquiry_id,
        organization_id=organization_id,
        payload=payload,
        user_id=current_user.id,
        **_request_context(request),
    )


@router.get("/{inquiry_id}/messages", response_model=List[InquiryMessageRead])
def list_messages(
    inquiry_id: int,
    current_user: models.User = _ANY_ROLE_DEP,
    organization_id: int = _ORG_DEP,
    db: Session = _DB_DEP,
):
    return inquiry_service.get_messages(db, inquiry_id, organization_id)


@router.post(
    "/{inquiry_id}/messages",
    response_model=InquiryMessageRead,
    status_code=status.HTTP_201_CREATED,
)
def send_message(
    inquiry_id: int,
    payload: InquiryMessageCreate,
    request: Request,
    current_user: models.User = _ANY_ROLE_DEP,
    organization_id: int = _ORG_DEP,
    db: Session = _DB_DEP,
):
    return inquiry_service.send_message(
        db,
        inquiry_id=inquiry_id,
        user_id=current_user.id,
        organization_id=organization_id,
        payload=payload,
        **_request_context(request),
    )


@router.patch("/{inquiry_id}/messages/read", response_model=SuccessRead)
def mark_messages_read(
    inquiry_id: int,
    current_user: models.User = _ANY_ROLE_DEP,
    organization_id: int = _ORG_DEP,
    db: Session = _DB_DEP,
):
    inquiry_service.mark_messages_as_read(db, inquiry_id, organization_id)
    return SuccessRead()
