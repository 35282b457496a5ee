from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from app import models
from app.models.domain import TERMINAL_INQUIRY_STATUSES, InquiryMessageType, InquiryStatus

# Explicit status changes (PATCH /inquiries/{id}/status) must follow this graph.
VALID_TRANSITIONS: dict[InquiryStatus, frozenset[InquiryStatus]] = {
    InquiryStatus.PENDING: frozenset(
        {InquiryStatus.RESPONDED, InquiryStatus.REJECTED, InquiryStatus.EXPIRED}
    ),
    InquiryStatus.RESPONDED: frozenset(
        {InquiryStatus.NEGOTIATING, InquiryStatus.ACCEPTED, InquiryStatus.REJECTED}
    ),
    InquiryStatus.NEGOTIATING: frozenset(
        {InquiryStatus.ACCEPTED, InquiryStatus.REJECTED, InquiryStatus.EXPIRED}
    ),
    InquiryStatus.ACCEPTED: frozenset(),
    InquiryStatus.REJECTED: frozenset(),
    InquiryStatus.EXPIRED: frozenset(),
}

NON_TERMINAL_STATUSES = frozenset(s for s in InquiryStatus if s not in TERMINAL_INQUIRY_STATUSES)


def is_terminal(status: InquiryStatus) -> bool:
    return status in TERMINAL_INQUIRY_STATUSES


def can_transition(from_status: InquiryStatus, to_status: InquiryStatus) -> bool:
    return to_status in VALID_TRANSITIONS.get(from_status, frozenset())


@dataclass(frozen=True)
class StatusEffect:
    """Status change implied by posting a message of a given type."""

    to_status: InquiryStatus
    allowed_from: frozenset[InquiryStatus]
    stamp_responded: bool = False
    stamp_closed: bool = False


def _quote_effect(current: InquiryStatus) -> StatusEffect | None:
    if current != InquiryStatus.PENDING:
        return None
    return StatusEffect(
        to_status=InquiryStatus.RESPONDED,
        allowed_from=frozenset({InquiryStatus.PENDING}),
        stamp_responded=True,
    )


def _counter_offer_effect(current: InquiryStatus) -> StatusEffect | None:
    return StatusEffect(to_status=InquiryStatus.NEGOTIATING, allowed_from=NON_TERMINAL_STATUSES)


def _acceptance_effect(current: InquiryStatus) -> StatusEffect | None:
    return StatusEffect(
        to_status=InquiryStatus.ACCEPTED, allowed_from=NON_TERMINAL_STATUSES, stamp_closed=True
    )


def _rejection_effect(current: InquiryStatus) -> StatusEffect | None:
    return StatusEffect(
        to_status=InquiryStatus.REJECTED, allowed_from=NON_TERMINAL_STATUSES, stamp_closed=True
    )


def _no_effect(current: InquiryStatus) -> StatusEffect | None:
    return None


# Message-driven effects do not consult VALID_TRANSITIONS: an ACCEPTANCE closes
# a PENDING inquiry although PENDING -> ACCEPTED is not an explicit transition.
MESSAGE_STATUS_EFFECTS: dict[InquiryMessageType, Callable[[InquiryStatus], StatusEffect | None]] = {
    InquiryMessageType.MESSAGE: _no_effect,
    InquiryMessageType.QUOTE: _quote_effect,
    InquiryMessageType.COUNTER_OFFER: _counter_offer_effect,
    InquiryMessageType.ACCEPTANCE: _acceptance_effect,
    InquiryMessageType.REJECTION: _rejection_effect,
    InquiryMessageType.SYSTEM: _no_effect,
}

_missing = sorted(m.value for m in set(InquiryMessageType) - set(MESSAGE_STATUS_EFFECTS))
if _missing:
    raise RuntimeError(f"No status effect registered for message types: {_missing}")


def status_effect_for_message(
    message_type: InquiryMessageType, current: InquiryStatus
) -> StatusEffect | None:
    return MESSAGE_STATUS_EFFECTS[message_type](current)


@dataclass(frozen=True)
class TransitionResult:
    updated: bool
    rowcount: int


def atomic_transition_inquiry_status(
    *,
    db: Session,
    inquiry_id: int,
    to_status: InquiryStatus,
    allowed_from: Iterable[InquiryStatus],
    updates: dict[str, Any] | None = None,
) -> TransitionResult:
    """Apply an inquiry status transition with an atomic DB guard.

    A single conditional UPDATE keeps a transition validated against a stale
    status from being persisted:

        UPDATE inquiries
        SET status = :to_status, ...
        WHERE id = :inquiry_id AND status IN (:allowed_from)

    Callers control commit/rollback.
    """

    update_values: dict[str, Any] = {"status": to_status, "updated_at": _utc_now()}
    if updates:
        update_values.update(updates)

    rowcount = (
        db.query(models.Inquiry)
        .filter(models.Inquiry.id == int(inquiry_id))
        .filter(models.Inquiry.status.in_(set(allowed_from)))
        .update(update_values, synchronize_session=False)
    )

    return TransitionResult(updated=rowcount > 0, rowcount=int(rowcount or 0))


def transition_updates(
    *,
    now: datetime,
    stamp_responded: bool,
    stamp_closed: bool,
    close_reason: str | None = None,
) -> dict[str, Any]:
    updates: dict[str, Any] = {}
    if stamp_responded:
        updates["responded_at"] = coalesce_datetime(models.Inquiry.responded_at, now)
    if stamp_closed:
        updates["closed_at"] = now
        if close_reason:
            updates["close_reason"] = close_reason
    return updates


def coalesce_datetime(existing_column, value: datetime):
    """SQL-side datetime coalesce (set once)."""

    return func.coalesce(existing_column, value)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
