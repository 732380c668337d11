"""Draft/final lifecycle shared by sales, purchases, adjustments and transfers.

A transaction mutates stock exactly once: when it is created as ``final`` or
when a draft is completed. Both paths run as a saga so that a failure part way
through leaves neither header, lines nor stock behind (create) or returns the
draft untouched (complete).
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from app.inventory.core.config import settings
from app.inventory.core.error_catalog import (
    AlreadyFinalized,
    InsufficientStock,
    NoStockRecord,
    NotFound,
    SagaAborted,
    TransferIncomplete,
    ValidationError,
)
from app.inventory.core.logging import log_json
from app.inventory.db.guard import persistence_guard
from app.inventory.db.models import (
    PurchaseLine,
    SellLine,
    StockAdjustmentLine,
    StockTransferLine,
    Transaction,
    TRANSACTION_STATUSES,
    Product,
    Unit,
    Variation,
)
from app.inventory.repos.catalog import CatalogRepository
from app.inventory.repos.transactions import TransactionQueryFilters, TransactionRepository
from app.inventory.services.reference_numbers import ReferenceNumberGenerator
from app.inventory.services.saga import Saga
from app.inventory.services.stock_ledger import StockLedger, quantize_qty
from app.inventory.services.units import multiplier, to_decimal, unit_name

logger = logging.getLogger("inventory.transactions")

ZERO = Decimal("0")
CUSTOMER_TYPES = ("retail", "wholesale")
DISCOUNT_TYPES = ("fixed", "percentage")
ADJUSTMENT_TYPES = ("increase", "decrease")


@dataclass
class LineInput:
    variation_id: int | None
    quantity: object
    unit_id: int | None
    unit_price: object | None = None
    purchase_price: object | None = None
    adjustment_type: str | None = None
    reason: str | None = None


@dataclass
class TransactionInput:
    location_id: int | None
    lines: list[LineInput]
    status: str = "draft"
    transfer_location_id: int | None = None
    contact_id: int | None = None
    customer_type: str | None = None
    discount_type: str | None = None
    discount_amount: object = 0
    additional_notes: str | None = None
    transaction_date: datetime | None = None


@dataclass(frozen=True)
class StockUpdate:
    line_id: int
    variation_id: int
    quantity: Decimal
    unit: str
    base_quantity: Decimal
    balance: Decimal | None = None
    source_balance: Decimal | None = None
    destination_balance: Decimal | None = None


@dataclass
class TransactionResult:
    header: Transaction
    lines: list
    stock_updates: list[StockUpdate] = field(default_factory=list)


@dataclass
class TransactionPage:
    rows: list[Transaction]
    page: int
    per_page: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.per_page) if self.total else 0


@dataclass
class ResolvedLine:
    index: int
    variation: Variation
    product: Product
    quantity: Decimal
    unit: Unit
    base_unit: Unit
    base_quantity: Decimal
    adjustment_type: str | None = None
    reason: str | None = None
    price: Decimal = ZERO


def _money(value: Decimal) -> Decimal:
    step = Decimal(1).scaleb(-settings.MONEY_DECIMAL_PLACES)
    return value.quantize(step, rounding=ROUND_HALF_UP)


def _line_error(index: int, message: str, **extra) -> ValidationError:
    return ValidationError(details={"message": message, "line": index, **extra})


class KindPolicy:
    """What one transaction kind stores per line and how its lines move stock."""

    kind: str = ""
    priced: bool = False
    missing_row_error = None

    def validate_header(self, data: TransactionInput, business_id: int, catalog: CatalogRepository) -> None:
        return None

    def validate_line(self, index: int, line: LineInput) -> None:
        return None

    def unit_price(self, resolved: ResolvedLine, line: LineInput, customer_type: str | None) -> Decimal:
        return ZERO

    def build_line(self, resolved: ResolvedLine):
        raise NotImplementedError

    def decreases(self, header: Transaction, resolved: ResolvedLine) -> list[tuple[int, int, Decimal]]:
        return []

    def apply(self, ledger: StockLedger, header: Transaction, resolved: ResolvedLine, line_id: int) -> StockUpdate:
        raise NotImplementedError

    def undo(self, ledger: StockLedger, header: Transaction, resolved: ResolvedLine) -> None:
        raise NotImplementedError

    @staticmethod
    def _update(resolved: ResolvedLine, line_id: int, **balances) -> StockUpdate:
        return StockUpdate(
            line_id=line_id,
            variation_id=resolved.variation.id,
            quantity=resolved.quantity,
            unit=unit_name(resolved.unit),
            base_quantity=resolved.base_quantity,
            **balances,
        )


class SalePolicy(KindPolicy):
    kind = "sale"
    priced = True

    def unit_price(self, resolved, line, customer_type):
        if line.unit_price is not None:
            return to_decimal(line.unit_price, field="unit_price")
        variation = resolved.variation
        base_price = variation.wholesale_price if customer_type == "wholesale" else variation.retail_price
        return Decimal(base_price or 0) * multiplier(resolved.unit, resolved.base_unit)

    def build_line(self, resolved):
        return SellLine(
            product_id=resolved.product.id,
            variation_id=resolved.variation.id,
            quantity=resolved.quantity,
            unit_id=resolved.unit.id,
            unit_price=resolved.price,
            unit_price_inc_tax=resolved.price,
            line_total=resolved.quantity * resolved.price,
            item_tax=ZERO,
        )

    def decreases(self, header, resolved):
        return [(resolved.variation.id, header.location_id, resolved.base_quantity)]

    def apply(self, ledger, header, resolved, line_id):
        balance = ledger.decrease(resolved.variation.id, header.location_id, resolved.base_quantity)
        return self._update(resolved, line_id, balance=balance)

    def undo(self, ledger, header, resolved):
        ledger.increase(resolved.variation.id, header.location_id, resolved.base_quantity)


class PurchasePolicy(KindPolicy):
    kind = "purchase"
    priced = True

    def unit_price(self, resolved, line, customer_type):
        if line.purchase_price is not None:
            price = to_decimal(line.purchase_price, field="purchase_price")
            if price:
                return price
        default = Decimal(resolved.variation.default_purchase_price or 0)
        return default * multiplier(resolved.unit, resolved.base_unit)

    def build_line(self, resolved):
        return PurchaseLine(
            product_id=resolved.product.id,
            variation_id=resolved.variation.id,
            quantity=resolved.quantity,
            unit_id=resolved.unit.id,
            purchase_price=resolved.price,
            purchase_price_inc_tax=resolved.price,
            line_total=resolved.quantity * resolved.price,
            item_tax=ZERO,
        )

    def apply(self, ledger, header, resolved, line_id):
        balance = ledger.increase(resolved.variation.id, header.location_id, resolved.base_quantity)
        return self._update(resolved, line_id, balance=balance)

    def undo(self, ledger, header, resolved):
        ledger.decrease(resolved.variation.id, header.location_id, resolved.base_quantity)


class AdjustmentPolicy(KindPolicy):
    kind = "adjustment"
    missing_row_error = NoStockRecord

    def validate_line(self, index, line):
        if line.adjustment_type not in ADJUSTMENT_TYPES:
            raise _line_error(
                index,
                "adjustment_type must be 'increase' or 'decrease'",
                adjustment_type=line.adjustment_type,
            )

    def build_line(self, resolved):
        return StockAdjustmentLine(
            product_id=resolved.product.id,
            variation_id=resolved.variation.id,
            quantity=resolved.quantity,
            unit_id=resolved.unit.id,
            adjustment_type=resolved.adjustment_type,
            reason=resolved.reason,
        )

    def _signed(self, resolved: ResolvedLine) -> Decimal:
        if resolved.adjustment_type == "decrease":
            return -resolved.base_quantity
        return resolved.base_quantity

    def decreases(self, header, resolved):
        if resolved.adjustment_type != "decrease":
            return []
        return [(resolved.variation.id, header.location_id, resolved.base_quantity)]

    def apply(self, ledger, header, resolved, line_id):
        balance = ledger.adjust(resolved.variation.id, header.location_id, self._signed(resolved), resolved.reason)
        return self._update(resolved, line_id, balance=balance)

    def undo(self, ledger, header, resolved):
        ledger.adjust(
            resolved.variation.id,
            header.location_id,
            -self._signed(resolved),
            f"reversal of {header.ref_no}",
        )


class TransferPolicy(KindPolicy):
    kind = "transfer"

    def validate_header(self, data, business_id, catalog):
        if data.transfer_location_id is None:
            raise ValidationError(details={"message": "transfer_location_id is required"})
        if data.transfer_location_id == data.location_id:
            raise ValidationError(
                details={
                    "message": "source and destination locations must differ",
                    "location_id": data.location_id,
                }
            )

    def build_line(self, resolved):
        return StockTransferLine(
            product_id=resolved.product.id,
            variation_id=resolved.variation.id,
            quantity=resolved.quantity,
            unit_id=resolved.unit.id,
        )

    def decreases(self, header, resolved):
        return [(resolved.variation.id, header.location_id, resolved.base_quantity)]

    def apply(self, ledger, header, resolved, line_id):
        result = ledger.transfer(
            resolved.variation.id,
            header.location_id,
            header.transfer_location_id,
            resolved.base_quantity,
        )
        return self._update(
            resolved,
            line_id,
            source_balance=result.source,
            destination_balance=result.destination,
        )

    def undo(self, ledger, header, resolved):
        ledger.transfer(
            resolved.variation.id,
            header.transfer_location_id,
            header.location_id,
            resolved.base_quantity,
        )


POLICIES: dict[str, KindPolicy] = {
    policy.kind: policy for policy in (SalePolicy(), PurchasePolicy(), AdjustmentPolicy(), TransferPolicy())
}


def get_policy(kind: str) -> KindPolicy:
    policy = POLICIES.get(kind)
    if policy is None:
        raise ValidationError(details={"message": "unknown transaction kind", "kind": kind})
    return policy


class TransactionService:
    def __init__(self, db):
        self.db = db
        self.catalog = CatalogRepository(db)
        self.repo = TransactionRepository(db)
        self.ledger = StockLedger(db)
        self.references = ReferenceNumberGenerator(db)

    def create(
        self,
        kind: str,
        business_id: int,
        data: TransactionInput,
        *,
        user_id: int | None = None,
    ) -> TransactionResult:
        policy = get_policy(kind)
        self._validate_request(policy, business_id, data)
        customer_type = self._customer_type(policy, business_id, data)
        resolved = self._resolve_lines(policy, business_id, data.lines)
        for item in resolved:
            item.price = policy.unit_price(item, data.lines[item.index], customer_type)

        header = self._build_header(policy, business_id, data, resolved, customer_type, user_id)
        if data.status == "final":
            self._prevalidate(policy, header, resolved)

        with persistence_guard(self.db, "transaction.reference", business_id=business_id, kind=kind):
            header.ref_no = self.references.next_reference(business_id, kind, now=header.transaction_date)

        saga = self._saga(f"{kind}.create", policy, business_id=business_id, ref_no=header.ref_no)
        stock_updates: list[StockUpdate] = []
        with saga:
            saga.execute("insert_header", lambda: self._insert_header(header), self._delete_header)
            lines = saga.execute(
                "insert_lines",
                lambda: self._insert_lines(policy, header, resolved),
                lambda created: self._delete_lines(policy, header),
            )
            if header.status == "final":
                for line, item in zip(lines, resolved):
                    stock_updates.append(self._ledger_step(saga, policy, header, item, line.id))

        log_json(
            logger,
            {
                "event": "transaction.created",
                "kind": kind,
                "business_id": business_id,
                "transaction_id": header.id,
                "ref_no": header.ref_no,
                "status": header.status,
                "lines": len(lines),
            },
        )
        return TransactionResult(header=header, lines=lines, stock_updates=stock_updates)

    def complete(self, kind: str, business_id: int, transaction_id: int) -> TransactionResult:
        policy = get_policy(kind)
        header = self.repo.get(business_id, kind, transaction_id)
        if header is None:
            raise NotFound(details={"kind": kind, "transaction_id": transaction_id})
        if header.status == "final":
            raise AlreadyFinalized(details={"kind": kind, "transaction_id": transaction_id, "ref_no": header.ref_no})
        previous_updated_at = header.updated_at

        saga = self._saga(f"{kind}.complete", policy, business_id=business_id, ref_no=header.ref_no)
        stock_updates: list[StockUpdate] = []
        with saga:
            saga.execute(
                "claim_final",
                lambda: self._claim(header),
                lambda _: self._revert_to_draft(header, previous_updated_at),
            )
            lines = self.repo.get_lines(kind, header.id)
            resolved = self._resolve_lines(policy, business_id, [self._stored_line_input(line) for line in lines])
            self._prevalidate(policy, header, resolved)
            for line, item in zip(lines, resolved):
                stock_updates.append(self._ledger_step(saga, policy, header, item, line.id))

        header = self.repo.get(business_id, kind, transaction_id)
        log_json(
            logger,
            {
                "event": "transaction.completed",
                "kind": kind,
                "business_id": business_id,
                "transaction_id": header.id,
                "ref_no": header.ref_no,
                "lines": len(lines),
            },
        )
        return TransactionResult(header=header, lines=lines, stock_updates=stock_updates)

    def get_transaction(self, kind: str, business_id: int, transaction_id: int) -> TransactionResult:
        get_policy(kind)
        header = self.repo.get(business_id, kind, transaction_id)
        if header is None:
            raise NotFound(details={"kind": kind, "transaction_id": transaction_id})
        return TransactionResult(header=header, lines=self.repo.get_lines(kind, header.id))

    def list_transactions(
        self,
        kind: str,
        business_id: int,
        *,
        page: int = 1,
        per_page: int | None = None,
        location_id: int | None = None,
        status: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> TransactionPage:
        get_policy(kind)
        if status is not None and status not in TRANSACTION_STATUSES:
            raise ValidationError(details={"message": "status must be 'draft' or 'final'", "status": status})
        page = max(int(page or 1), 1)
        per_page = min(max(int(per_page or settings.DEFAULT_PAGE_SIZE), 1), settings.MAX_PAGE_SIZE)
        filters = TransactionQueryFilters(
            business_id=business_id,
            kind=kind,
            location_id=location_id,
            status=status,
            date_from=date_from,
            date_to=date_to,
        )
        rows, total = self.repo.list_transactions(filters, page=page, per_page=per_page)
        return TransactionPage(rows=rows, page=page, per_page=per_page, total=total)

    def _saga(self, name: str, policy: KindPolicy, **context) -> Saga:
        transfer = policy.kind == "transfer"
        return Saga(
            name,
            context=context,
            abort_error=TransferIncomplete if transfer else SagaAborted,
            abort_event="transfer.incomplete" if transfer else "saga.aborted",
            before_compensation=self.db.rollback,
        )

    def _ledger_step(
        self,
        saga: Saga,
        policy: KindPolicy,
        header: Transaction,
        item: ResolvedLine,
        line_id: int,
    ) -> StockUpdate:
        return saga.execute(
            f"stock_line_{line_id}",
            lambda: policy.apply(self.ledger, header, item, line_id),
            lambda _: policy.undo(self.ledger, header, item),
        )

    def _validate_request(self, policy: KindPolicy, business_id: int, data: TransactionInput) -> None:
        if data.status not in TRANSACTION_STATUSES:
            raise ValidationError(details={"message": "status must be 'draft' or 'final'", "status": data.status})
        if data.location_id is None:
            raise ValidationError(details={"message": "location_id is required"})
        if not data.lines:
            raise ValidationError(details={"message": "at least one line is required"})
        policy.validate_header(data, business_id, self.catalog)
        wanted = {data.location_id, data.transfer_location_id} - {None}
        missing = wanted - self.catalog.existing_location_ids(business_id, wanted)
        if missing:
            raise ValidationError(details={"message": "location not found", "location_ids": sorted(missing)})
        for index, line in enumerate(data.lines):
            if line.variation_id is None:
                raise _line_error(index, "variation_id is required")
            if line.unit_id is None:
                raise _line_error(index, "unit_id is required")
            if line.quantity is None or to_decimal(line.quantity) <= 0:
                raise _line_error(index, "quantity must be greater than zero", quantity=line.quantity)
            policy.validate_line(index, line)
        if data.discount_type is not None and data.discount_type not in DISCOUNT_TYPES:
            raise ValidationError(
                details={"message": "discount_type must be 'fixed' or 'percentage'", "discount_type": data.discount_type}
            )
        if to_decimal(data.discount_amount or 0, field="discount_amount") < 0:
            raise ValidationError(details={"message": "discount_amount cannot be negative"})

    def _customer_type(self, policy: KindPolicy, business_id: int, data: TransactionInput) -> str | None:
        if policy.kind != "sale":
            return None
        customer_type = data.customer_type or "retail"
        if customer_type not in CUSTOMER_TYPES:
            raise ValidationError(
                details={"message": "customer_type must be 'retail' or 'wholesale'", "customer_type": customer_type}
            )
        if data.contact_id is not None:
            contact = self.catalog.get_contact(business_id, data.contact_id)
            if contact is None:
                raise ValidationError(details={"message": "contact not found", "contact_id": data.contact_id})
            if contact.customer_type in CUSTOMER_TYPES:
                customer_type = contact.customer_type
        return customer_type

    def _resolve_lines(self, policy: KindPolicy, business_id: int, lines: list[LineInput]) -> list[ResolvedLine]:
        variations = self.catalog.get_variations(business_id, [line.variation_id for line in lines])
        product_unit_ids = {product.unit_id for _, product in variations.values() if product.unit_id is not None}
        units = self.catalog.get_units(business_id, {line.unit_id for line in lines} | product_unit_ids)
        parent_ids = {unit.base_unit_id for unit in units.values() if unit.base_unit_id is not None}
        units.update(self.catalog.get_units(business_id, parent_ids - set(units)))
        default_base = None

        resolved: list[ResolvedLine] = []
        for index, line in enumerate(lines):
            found = variations.get(int(line.variation_id))
            if found is None:
                raise _line_error(index, "variation not found", variation_id=line.variation_id)
            variation, product = found
            unit = units.get(int(line.unit_id))
            if unit is None:
                raise _line_error(index, "unit not found", unit_id=line.unit_id)
            base_unit = units.get(product.unit_id) if product.unit_id is not None else None
            if base_unit is not None and base_unit.base_unit_id is not None:
                base_unit = units.get(base_unit.base_unit_id)
            if base_unit is None:
                if default_base is None:
                    default_base = self.catalog.get_default_base_unit(business_id)
                base_unit = default_base
            if base_unit is None:
                raise _line_error(index, "base unit not found", product_id=product.id)
            # line quantities are stored at the same scale as balances
            quantity = quantize_qty(to_decimal(line.quantity))
            base_quantity = quantize_qty(quantity * multiplier(unit, base_unit))
            if quantity <= 0 or base_quantity <= 0:
                raise _line_error(
                    index,
                    "quantity rounds to zero at the stored scale",
                    quantity=str(line.quantity),
                    unit_id=unit.id,
                )
            resolved.append(
                ResolvedLine(
                    index=index,
                    variation=variation,
                    product=product,
                    quantity=quantity,
                    unit=unit,
                    base_unit=base_unit,
                    base_quantity=base_quantity,
                    adjustment_type=line.adjustment_type,
                    reason=line.reason,
                )
            )
        return resolved

    @staticmethod
    def _stored_line_input(line) -> LineInput:
        return LineInput(
            variation_id=line.variation_id,
            quantity=line.quantity,
            unit_id=line.unit_id,
            adjustment_type=getattr(line, "adjustment_type", None),
            reason=getattr(line, "reason", None),
        )

    def _build_header(
        self,
        policy: KindPolicy,
        business_id: int,
        data: TransactionInput,
        resolved: list[ResolvedLine],
        customer_type: str | None,
        user_id: int | None,
    ) -> Transaction:
        now = datetime.utcnow()
        total_before_tax = sum((item.quantity * item.price for item in resolved), ZERO)
        discount = ZERO
        if policy.priced and data.discount_type == "fixed":
            discount = to_decimal(data.discount_amount or 0, field="discount_amount")
        elif policy.priced and data.discount_type == "percentage":
            discount = total_before_tax * to_decimal(data.discount_amount or 0, field="discount_amount") / 100
        tax = ZERO
        return Transaction(
            business_id=business_id,
            location_id=data.location_id,
            transfer_location_id=data.transfer_location_id if policy.kind == "transfer" else None,
            type=policy.kind,
            status=data.status,
            payment_status=("paid" if data.status == "final" else "due") if policy.priced else None,
            contact_id=data.contact_id,
            customer_type=customer_type,
            transaction_date=data.transaction_date or now,
            total_before_tax=_money(total_before_tax),
            tax_amount=tax,
            discount_type=data.discount_type if policy.priced else None,
            discount_amount=_money(discount),
            final_total=_money(total_before_tax - discount + tax),
            additional_notes=data.additional_notes,
            created_by=user_id,
            created_at=now,
            updated_at=now,
        )

    def _prevalidate(self, policy: KindPolicy, header: Transaction, resolved: list[ResolvedLine]) -> None:
        """Check every stock-decreasing demand before any balance moves."""
        demand: dict[tuple[int, int], Decimal] = defaultdict(lambda: ZERO)
        for item in resolved:
            for variation_id, location_id, qty in policy.decreases(header, item):
                demand[(variation_id, location_id)] += qty
        for (variation_id, location_id), requested in demand.items():
            state = self.ledger.repo.get_state(variation_id, location_id)
            if state is None and policy.missing_row_error is not None:
                raise policy.missing_row_error(details={"variation_id": variation_id, "location_id": location_id})
            available = state.qty_available if state is not None else ZERO
            if available < requested:
                raise InsufficientStock(
                    details={
                        "variation_id": variation_id,
                        "location_id": location_id,
                        "available": available,
                        "requested": requested,
                    }
                )

    def _insert_header(self, header: Transaction) -> Transaction:
        with persistence_guard(self.db, "transaction.insert_header", kind=header.type, ref_no=header.ref_no):
            self.repo.add_header(header)
            self.db.commit()
        return header

    def _delete_header(self, header: Transaction) -> None:
        with persistence_guard(self.db, "transaction.delete_header", transaction_id=header.id):
            self.repo.delete_header(header.id)
            self.db.commit()

    def _insert_lines(self, policy: KindPolicy, header: Transaction, resolved: list[ResolvedLine]) -> list:
        lines = []
        for item in resolved:
            line = policy.build_line(item)
            line.transaction_id = header.id
            lines.append(line)
        with persistence_guard(self.db, "transaction.insert_lines", transaction_id=header.id):
            self.repo.add_lines(lines)
            self.db.commit()
        return lines

    def _delete_lines(self, policy: KindPolicy, header: Transaction) -> None:
        with persistence_guard(self.db, "transaction.delete_lines", transaction_id=header.id):
            self.repo.delete_lines(policy.kind, header.id)
            self.db.commit()

    def _claim(self, header: Transaction) -> None:
        with persistence_guard(self.db, "transaction.claim_final", transaction_id=header.id):
            claimed = self.repo.claim_final(header.id, datetime.utcnow())
            self.db.commit()
        if not claimed:
            raise AlreadyFinalized(details={"kind": header.type, "transaction_id": header.id, "ref_no": header.ref_no})

    def _revert_to_draft(self, header: Transaction, updated_at: datetime | None) -> None:
        with persistence_guard(self.db, "transaction.revert_to_draft", transaction_id=header.id):
            self.repo.revert_to_draft(header.id, updated_at)
            self.db.commit()
