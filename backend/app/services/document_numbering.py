from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app import models


@dataclass(frozen=True)
class YearlyNumber:
    doc_type: str
    year: int
    seq: int
    formatted: str


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_yearly_number(*, prefix: str, seq: int, year: int) -> str:
    """Format: PREFIX-2025-000001 (sequence resets each calendar year).

    `seq` is 1-based and zero-padded to six digits.
    """

    return f"{prefix}-{year:04d}-{seq:06d}"


def next_yearly_number(
    db: Session,
    *,
    doc_type: str,
    prefix: str,
    now: datetime | None = None,
    max_retries: int = 5,
) -> YearlyNumber:
    """Allocate the next number for `doc_type` in the year of `now`.

    The counter row is incremented inside the caller's transaction, so the
    number is only consumed if the caller commits. Callers control
    commit/rollback.
    """

    now = now or _utc_now()
    year = int(now.year)

    dialect_name = getattr(getattr(db, "bind", None), "dialect", None)
    dialect_name = getattr(dialect_name, "name", None)

    for _ in range(max_retries):
        q = db.query(models.DocumentYearlySequence).filter(
            models.DocumentYearlySequence.doc_type == str(doc_type),
            models.DocumentYearlySequence.year == year,
        )

        # SQLite doesn't support FOR UPDATE; other DBs serialize on the counter row.
        if dialect_name and str(dialect_name).lower() not in {"sqlite"}:
            q = q.with_for_update()

        row = q.first()

        if row is None:
            row = models.DocumentYearlySequence(doc_type=str(doc_type), year=year, last_seq=0)
            # Savepoint so a lost race on the unique constraint only discards the insert.
            try:
                with db.begin_nested():
                    db.add(row)
                    db.flush()
            except IntegrityError:
                continue

        row.last_seq = int(row.last_seq or 0) + 1
        db.add(row)
        db.flush()

        seq = int(row.last_seq)
        return YearlyNumber(
            doc_type=str(doc_type),
            year=year,
            seq=seq,
            formatted=format_yearly_number(prefix=str(prefix), seq=seq, year=year),
        )

    raise RuntimeError(f"Could not allocate yearly number for doc_type={doc_type} year={year}")
