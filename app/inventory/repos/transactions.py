from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, func, select, update

from app.inventory.db.models import LINE_MODELS, Transaction


@dataclass(frozen=True)
class TransactionQueryFilters:
    business_id: int
    kind: str
    location_id: int | None = None
    status: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


class TransactionRepository:
    def __init__(self, db):
        self.db = db

    def add_header(self, header: Transaction) -> Transaction:
        self.db.add(header)
        self.db.flush()
        return header

    def add_lines(self, lines: list) -> list:
        self.db.add_all(lines)
        self.db.flush()
        return lines

    def delete_lines(self, kind: str, transaction_id: int) -> int:
        line_model = LINE_MODELS[kind]
        result = self.db.execute(
            delete(line_model)
            .where(line_model.transaction_id == transaction_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_header(self, transaction_id: int) -> int:
        result = self.db.execute(
            delete(Transaction)
            .where(Transaction.id == transaction_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def get(self, business_id: int, kind: str, transaction_id: int) -> Transaction | None:
        return (
            self.db.execute(
                select(Transaction)
                .where(
                    Transaction.id == transaction_id,
                    Transaction.business_id == business_id,
                    Transaction.type == kind,
                )
                .execution_options(populate_existing=True)
            )
            .scalars()
            .first()
        )

    def get_lines(self, kind: str, transaction_id: int) -> list:
        line_model = LINE_MODELS[kind]
        return (
            self.db.execute(
                select(line_model).where(line_model.transaction_id == transaction_id).order_by(line_model.id)
            )
            .scalars()
            .all()
        )

    def claim_final(self, transaction_id: int, now: datetime) -> int:
        """Flip draft to final; returns 0 when another caller already did."""
        result = self.db.execute(
            update(Transaction)
            .where(Transaction.id == transaction_id, Transaction.status == "draft")
            .values(status="final", updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def revert_to_draft(self, transaction_id: int, updated_at: datetime | None) -> int:
        result = self.db.execute(
            update(Transaction)
            .where(Transaction.id == transaction_id, Transaction.status == "final")
            .values(status="draft", updated_at=updated_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def list_transactions(
        self,
        filters: TransactionQueryFilters,
        *,
        page: int,
        per_page: int,
    ) -> tuple[list[Transaction], int]:
        query = self._apply_filters(filters)
        total = self.db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
        rows = (
            self.db.execute(
                query.order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
                .offset((page - 1) * per_page)
                .limit(per_page)
            )
            .scalars()
            .all()
        )
        return rows, total

    def _apply_filters(self, filters: TransactionQueryFilters):
        query = select(Transaction).where(
            Transaction.business_id == filters.business_id,
            Transaction.type == filters.kind,
        )
        if filters.location_id is not None:
            query = query.where(Transaction.location_id == filters.location_id)
        if filters.status:
            query = query.where(Transaction.status == filters.status)
        if filters.date_from is not None:
            query = query.where(Transaction.transaction_date >= filters.date_from)
        if filters.date_to is not None:
            query = query.where(Transaction.transaction_date <= filters.date_to)
        return query
