from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.inventory.core.error_catalog import (
    AlreadyFinalized,
    InsufficientStock,
    NoStockRecord,
    ValidationError,
)
from app.inventory.db.models import Transaction
from app.inventory.services.transactions import TransactionService
from tests.inventory_helpers import balance, line_input, seed_inventory, set_stock, transaction_input


def _decrease(data, quantity, **extra):
    return line_input(data["widget"].id, quantity, data["piece"].id, adjustment_type="decrease", **extra)


def test_draft_adjustment_applies_only_on_complete(db_session):
    data = seed_inventory(db_session, suffix="adjust-draft")
    business, location, widget = data["business"], data["location"], data["widget"]
    set_stock(db_session, widget.id, location.id, 20)
    service = TransactionService(db_session)

    created = service.create(
        "adjustment",
        business.id,
        transaction_input(location.id, [_decrease(data, 5, reason="damaged")]),
    )
    assert created.header.ref_no.startswith("ADJ-")
    assert created.header.payment_status is None
    assert created.lines[0].reason == "damaged"
    assert balance(db_session, widget.id, location.id) == Decimal("20")

    completed = service.complete("adjustment", business.id, created.header.id)
    assert completed.stock_updates[0].balance == Decimal("15")
    assert balance(db_session, widget.id, location.id) == Decimal("15")

    with pytest.raises(AlreadyFinalized):
        service.complete("adjustment", business.id, created.header.id)
    assert balance(db_session, widget.id, location.id) == Decimal("15")


def test_final_adjustment_mixes_directions(db_session):
    data = seed_inventory(db_session, suffix="adjust-mixed")
    business, location = data["business"], data["location"]
    set_stock(db_session, data["widget"].id, location.id, 3)

    result = TransactionService(db_session).create(
        "adjustment",
        business.id,
        transaction_input(
            location.id,
            [
                _decrease(data, 1),
                line_input(data["gadget"].id, 1, data["box"].id, adjustment_type="increase", reason="recount"),
            ],
            status="final",
        ),
    )

    assert result.header.total_before_tax == Decimal("0.00")
    assert balance(db_session, data["widget"].id, location.id) == Decimal("2")
    assert balance(db_session, data["gadget"].id, location.id) == Decimal("12")


def test_decrease_without_stock_row(db_session):
    data = seed_inventory(db_session, suffix="adjust-no-row")
    with pytest.raises(NoStockRecord):
        TransactionService(db_session).create(
            "adjustment",
            data["business"].id,
            transaction_input(data["location"].id, [_decrease(data, 1)], status="final"),
        )
    assert db_session.execute(select(func.count()).select_from(Transaction)).scalar_one() == 0


def test_decrease_beyond_balance_on_complete_keeps_draft(db_session):
    data = seed_inventory(db_session, suffix="adjust-short")
    business, location, widget = data["business"], data["location"], data["widget"]
    set_stock(db_session, widget.id, location.id, 2)
    service = TransactionService(db_session)
    created = service.create("adjustment", business.id, transaction_input(location.id, [_decrease(data, 5)]))

    with pytest.raises(InsufficientStock):
        service.complete("adjustment", business.id, created.header.id)

    assert service.get_transaction("adjustment", business.id, created.header.id).header.status == "draft"
    assert balance(db_session, widget.id, location.id) == Decimal("2")


@pytest.mark.parametrize("adjustment_type", [None, "shrink"])
def test_adjustment_type_is_required(db_session, adjustment_type):
    data = seed_inventory(db_session, suffix=f"adjust-type-{adjustment_type}")
    with pytest.raises(ValidationError) as excinfo:
        TransactionService(db_session).create(
            "adjustment",
            data["business"].id,
            transaction_input(
                data["location"].id,
                [line_input(data["widget"].id, 1, data["piece"].id, adjustment_type=adjustment_type)],
            ),
        )
    assert excinfo.value.details["line"] == 0
