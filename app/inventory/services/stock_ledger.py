"""Per-(variation, location) stock balances, always in base units.

Every mutation is one conditional UPDATE committed as its own unit of work, so
two concurrent decreases can never both pass a stale sufficiency check.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import NoReturn

from app.inventory.core.config import settings
from app.inventory.core.error_catalog import (
    AppError,
    InsufficientStock,
    InvalidQuantity,
    NoStockRecord,
    SameLocation,
    TransferIncomplete,
    ValidationError,
)
from app.inventory.core.logging import log_json
from app.inventory.core.metrics import metrics
from app.inventory.db.guard import persistence_guard
from app.inventory.repos.stock import StockRepository
from app.inventory.services.saga import Saga
from app.inventory.services.units import to_decimal

logger = logging.getLogger("inventory.stock")

ZERO = Decimal("0")


@dataclass(frozen=True)
class TransferResult:
    source: Decimal
    destination: Decimal


@dataclass(frozen=True)
class Availability:
    is_available: bool
    current: Decimal
    requested: Decimal
    remaining: Decimal
    shortfall: Decimal


def quantize_qty(value: Decimal) -> Decimal:
    step = Decimal(1).scaleb(-settings.QTY_DECIMAL_PLACES)
    return value.quantize(step, rounding=ROUND_HALF_UP)


class StockLedger:
    def __init__(self, db):
        self.db = db
        self.repo = StockRepository(db)

    def get_balance(self, variation_id: int, location_id: int) -> Decimal:
        state = self.repo.get_state(variation_id, location_id)
        if state is None:
            return ZERO
        return state.qty_available

    def get_balances(self, variation_ids, location_id: int) -> dict[int, Decimal]:
        found = self.repo.balances_for(variation_ids, location_id)
        return {int(variation_id): found.get(int(variation_id), ZERO) for variation_id in variation_ids}

    def check_availability(self, variation_id: int, location_id: int, qty) -> Availability:
        requested = to_decimal(qty)
        current = self.get_balance(variation_id, location_id)
        return Availability(
            is_available=current >= requested,
            current=current,
            requested=requested,
            remaining=current - requested,
            shortfall=max(requested - current, ZERO),
        )

    def increase(self, variation_id: int, location_id: int, qty) -> Decimal:
        amount = self._positive(qty, "increase", variation_id, location_id)
        context = {"variation_id": variation_id, "location_id": location_id}
        with persistence_guard(self.db, "stock.increase", **context):
            balance_id = self._ensure_row(variation_id, location_id)
            self.repo.increment(balance_id, amount)
            self.db.commit()
            new_qty = self.repo.qty_for(balance_id)
        self._record("increase", variation_id, location_id, amount, new_qty)
        return new_qty

    def decrease(self, variation_id: int, location_id: int, qty) -> Decimal:
        amount = self._positive(qty, "decrease", variation_id, location_id)
        context = {"variation_id": variation_id, "location_id": location_id}
        with persistence_guard(self.db, "stock.decrease", **context):
            state = self.repo.get_state(variation_id, location_id, for_update=True)
            current = state.qty_available if state is not None else ZERO
            if state is None or current < amount:
                self._reject("decrease", self._insufficient(variation_id, location_id, current, amount))
            if not self.repo.decrement_if_available(state.id, amount):
                # lost the race to a concurrent decrease between read and update
                current = self.repo.qty_for(state.id)
                self._reject("decrease", self._insufficient(variation_id, location_id, current, amount))
            self.db.commit()
            new_qty = self.repo.qty_for(state.id)
        self._record("decrease", variation_id, location_id, -amount, new_qty)
        return new_qty

    def adjust(self, variation_id: int, location_id: int, signed_qty, reason: str | None = None) -> Decimal:
        delta = quantize_qty(self._number(signed_qty, "adjust", variation_id, location_id))
        if delta == 0:
            self._reject("adjust", self._invalid(variation_id, location_id, signed_qty))
        context = {"variation_id": variation_id, "location_id": location_id}
        with persistence_guard(self.db, "stock.adjust", **context):
            state = self.repo.get_state(variation_id, location_id, for_update=True)
            if state is None:
                if delta < 0:
                    self._reject("adjust", NoStockRecord(details={**context, "quantity": delta}))
                balance_id = self._ensure_row(variation_id, location_id)
                self.repo.increment(balance_id, delta)
            elif delta > 0:
                balance_id = state.id
                self.repo.increment(balance_id, delta)
            else:
                balance_id = state.id
                if state.qty_available + delta < 0 or not self.repo.decrement_if_available(balance_id, -delta):
                    current = self.repo.qty_for(balance_id)
                    self._reject("adjust", self._insufficient(variation_id, location_id, current, -delta))
            self.db.commit()
            new_qty = self.repo.qty_for(balance_id)
        self._record("adjust", variation_id, location_id, delta, new_qty, reason=reason)
        return new_qty

    def transfer(self, variation_id: int, from_location_id: int, to_location_id: int, qty) -> TransferResult:
        """Move ``qty`` between two locations of the same variation.

        The source is decreased first. If the destination increase fails, the
        source is credited back and the original error propagates; if that
        credit fails as well, ``TransferIncomplete`` is raised.
        """
        amount = self._positive(qty, "transfer", variation_id, from_location_id)
        if from_location_id == to_location_id:
            self._reject(
                "transfer",
                SameLocation(details={"variation_id": variation_id, "location_id": from_location_id}),
            )
        saga = Saga(
            "stock.transfer",
            context={
                "variation_id": variation_id,
                "from_location_id": from_location_id,
                "to_location_id": to_location_id,
                "quantity": amount,
            },
            abort_error=TransferIncomplete,
            abort_event="transfer.incomplete",
            before_compensation=self.db.rollback,
        )
        with saga:
            source_qty = saga.execute(
                "decrease_source",
                lambda: self.decrease(variation_id, from_location_id, amount),
                lambda _: self.increase(variation_id, from_location_id, amount),
            )
            destination_qty = saga.execute(
                "increase_destination",
                lambda: self.increase(variation_id, to_location_id, amount),
            )
        return TransferResult(source=source_qty, destination=destination_qty)

    def _ensure_row(self, variation_id: int, location_id: int) -> int:
        product_id = self.repo.product_id_for(variation_id)
        if product_id is None:
            raise ValidationError(details={"message": "variation not found", "variation_id": variation_id})
        return self.repo.ensure_row(variation_id, location_id, product_id)

    def _number(self, qty, operation: str, variation_id: int, location_id: int) -> Decimal:
        try:
            return to_decimal(qty)
        except ValidationError as exc:
            self.db.rollback()
            metrics.record_stock_mutation(operation, "rejected")
            raise self._invalid(variation_id, location_id, qty) from exc

    def _positive(self, qty, operation: str, variation_id: int, location_id: int) -> Decimal:
        amount = self._number(qty, operation, variation_id, location_id)
        if amount > 0:
            amount = quantize_qty(amount)
        if amount <= 0:
            self._reject(operation, self._invalid(variation_id, location_id, qty))
        return amount

    @staticmethod
    def _invalid(variation_id: int, location_id: int, qty) -> InvalidQuantity:
        return InvalidQuantity(details={"variation_id": variation_id, "location_id": location_id, "quantity": str(qty)})

    @staticmethod
    def _insufficient(variation_id: int, location_id: int, current: Decimal, requested: Decimal) -> InsufficientStock:
        return InsufficientStock(
            details={
                "variation_id": variation_id,
                "location_id": location_id,
                "available": current,
                "requested": requested,
            }
        )

    def _reject(self, operation: str, error: AppError) -> NoReturn:
        self.db.rollback()
        metrics.record_stock_mutation(operation, "rejected")
        raise error

    def _record(
        self,
        operation: str,
        variation_id: int,
        location_id: int,
        delta: Decimal,
        new_qty: Decimal,
        *,
        reason: str | None = None,
    ) -> None:
        metrics.record_stock_mutation(operation, "applied")
        payload = {
            "event": "stock.mutation",
            "operation": operation,
            "variation_id": variation_id,
            "location_id": location_id,
            "delta": format(delta, "f"),
            "qty_available": format(new_qty, "f"),
        }
        if reason:
            payload["reason"] = reason
        log_json(logger, payload)
