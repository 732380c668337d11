from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from app.inventory.core.error_catalog import PersistenceError
from app.inventory.db.models import ReferenceSequence


PREFIXES = {
    "sale": "INV",
    "purchase": "PUR",
    "adjustment": "ADJ",
    "transfer": "TRF",
}


def period_for(moment: datetime) -> str:
    return moment.strftime("%Y%m")


def format_reference(kind: str, period: str, sequence: int) -> str:
    return f"{PREFIXES[kind]}-{period}-{sequence:04d}"


def parse_reference(ref_no: str) -> tuple[str, str, int] | None:
    parts = ref_no.split("-")
    if len(parts) != 3 or not parts[2].isdigit():
        return None
    return parts[0], parts[1], int(parts[2])


class ReferenceNumberGenerator:
    """Per business, kind and month sequence drawn from a counter row.

    The counter is bumped with a single ``UPDATE ... SET last_value =
    last_value + 1``; the first number of a month inserts the row and a
    losing concurrent insert falls back to the update.
    """

    def __init__(self, db):
        self.db = db

    def next_reference(self, business_id: int, kind: str, *, now: datetime | None = None) -> str:
        period = period_for(now or datetime.utcnow())
        return format_reference(kind, period, self._next_value(business_id, kind, period))

    def current_value(self, business_id: int, kind: str, period: str) -> int:
        value = self.db.execute(
            select(ReferenceSequence.last_value).where(
                ReferenceSequence.business_id == business_id,
                ReferenceSequence.kind == kind,
                ReferenceSequence.period == period,
            )
        ).scalar_one_or_none()
        return value or 0

    def _next_value(self, business_id: int, kind: str, period: str) -> int:
        for _ in range(2):
            if self._bump(business_id, kind, period):
                value = self.current_value(business_id, kind, period)
                self.db.commit()
                return value
            self.db.add(ReferenceSequence(business_id=business_id, kind=kind, period=period, last_value=1))
            try:
                self.db.commit()
                return 1
            except IntegrityError:
                self.db.rollback()
        raise PersistenceError(details={"operation": "reference.allocate", "kind": kind, "period": period})

    def _bump(self, business_id: int, kind: str, period: str) -> int:
        result = self.db.execute(
            update(ReferenceSequence)
            .where(
                ReferenceSequence.business_id == business_id,
                ReferenceSequence.kind == kind,
                ReferenceSequence.period == period,
            )
            .values(last_value=ReferenceSequence.last_value + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
