import itertools

import pytest

from app import models
from app.models.domain import InquiryMessageType, InquiryStatus
from app.schemas import InquiryCreate
from app.services.inquiry_service import create_inquiry
from app.services.inquiry_transitions import (
    MESSAGE_STATUS_EFFECTS,
    VALID_TRANSITIONS,
    atomic_transition_inquiry_status,
    can_transition,
    is_terminal,
    status_effect_for_message,
)

S = InquiryStatus

_ALLOWED = {
    (S.PENDING, S.RESPONDED),
    (S.PENDING, S.REJECTED),
    (S.PENDING, S.EXPIRED),
    (S.RESPONDED, S.NEGOTIATING),
    (S.RESPONDED, S.ACCEPTED),
    (S.RESPONDED, S.REJECTED),
    (S.NEGOTIATING, S.ACCEPTED),
    (S.NEGOTIATING, S.REJECTED),
    (S.NEGOTIATING, S.EXPIRED),
}


@pytest.mark.parametrize("from_status,to_status", list(itertools.product(S, S)))
def test_can_transition_matches_table(from_status, to_status):
    assert can_transition(from_status, to_status) is ((from_status, to_status) in _ALLOWED)


def test_terminal_statuses_have_no_outgoing_transitions():
    for status in S:
        if is_terminal(status):
            assert VALID_TRANSITIONS[status] == frozenset()
    assert {s for s in S if is_terminal(s)} == {S.ACCEPTED, S.REJECTED, S.EXPIRED}


def test_every_message_type_has_a_registered_effect():
    assert set(MESSAGE_STATUS_EFFECTS) == set(InquiryMessageType)


@pytest.mark.parametrize("message_type", [InquiryMessageType.MESSAGE, InquiryMessageType.SYSTEM])
def test_plain_messages_never_change_status(message_type):
    for status in S:
        assert status_effect_for_message(message_type, status) is None


def test_quote_only_moves_pending_inquiries():
    effect = status_effect_for_message(InquiryMessageType.QUOTE, S.PENDING)
    assert effect is not None
    assert effect.to_status == S.RESPONDED
    assert effect.stamp_responded is True
    assert effect.allowed_from == frozenset({S.PENDING})

    for status in (S.RESPONDED, S.NEGOTIATING):
        assert status_effect_for_message(InquiryMessageType.QUOTE, status) is None


def test_acceptance_bypasses_explicit_transition_table():
    # PENDING -> ACCEPTED is not an explicit transition but an ACCEPTANCE message closes it.
    assert not can_transition(S.PENDING, S.ACCEPTED)

    effect = status_effect_for_message(InquiryMessageType.ACCEPTANCE, S.PENDING)
    assert effect.to_status == S.ACCEPTED
    assert effect.stamp_closed is True
    assert S.PENDING in effect.allowed_from
    assert not any(is_terminal(s) for s in effect.allowed_from)


def test_counter_offer_and_rejection_effects():
    counter = status_effect_for_message(InquiryMessageType.COUNTER_OFFER, S.RESPONDED)
    assert counter.to_status == S.NEGOTIATING
    assert counter.stamp_closed is False

    rejection = status_effect_for_message(InquiryMessageType.REJECTION, S.NEGOTIATING)
    assert rejection.to_status == S.REJECTED
    assert rejection.stamp_closed is True


def test_atomic_transition_guard_rejects_stale_status(db_session, parties):
    inquiry = create_inquiry(
        db_session,
        buyer_org_id=parties.buyer.org_id,
        user_id=parties.buyer.user_id,
        payload=InquiryCreate(supplier_org_id=parties.supplier.org_id, subject="Cells"),
    )
    inquiry_id = int(inquiry.id)

    # Caller validated against RESPONDED, but the row is still PENDING.
    result = atomic_transition_inquiry_status(
        db=db_session,
        inquiry_id=inquiry_id,
        to_status=S.NEGOTIATING,
        allowed_from={S.RESPONDED},
    )
    assert result.updated is False
    assert result.rowcount == 0
    db_session.rollback()

    result = atomic_transition_inquiry_status(
        db=db_session,
        inquiry_id=inquiry_id,
        to_status=S.RESPONDED,
        allowed_from={S.PENDING},
    )
    assert result.updated is True
    db_session.commit()

    refreshed = db_session.get(models.Inquiry, inquiry_id)
    db_session.refresh(refreshed)
    assert refreshed.status == S.RESPONDED
