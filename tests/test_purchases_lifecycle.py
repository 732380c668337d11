from decimal import Decimal

import pytest

from app.inventory.core.error_catalog import AlreadyFinalized
from app.inventory.services.transactions import TransactionService
from tests.inventory_helpers import balance, line_input, seed_inventory, set_stock, transaction_input


def test_final_purchase_receives_stock_in_base_units(db_session):
    data = seed_inventory(db_session, suffix="purchase-final")
    business, location = data["business"], data["location"]
    widget, gadget = data["widget"], data["gadget"]
    set_stock(db_session, widget.id, location.id, 5)

    result = TransactionService(db_session).create(
        "purchase",
        business.id,
        transaction_input(
            location.id,
            [
                line_input(widget.id, 2, data["box"].id),
                line_input(gadget.id, 10, data["piece"].id, purchase_price=Decimal("1.5")),
            ],
            status="final",
        ),
    )

    header = result.header
    assert header.ref_no.startswith("PUR-")
    assert header.payment_status == "paid"
    assert header.customer_type is None
    assert [line.purchase_price for line in result.lines] == [Decimal("72"), Decimal("1.5")]
    assert header.total_before_tax == Decimal("159.00")
    assert header.final_total == Decimal("159.00")

    assert [update.balance for update in result.stock_updates] == [Decimal("29"), Decimal("10")]
    assert balance(db_session, widget.id, location.id) == Decimal("29")
    assert balance(db_session, gadget.id, location.id) == Decimal("10")


def test_zero_purchase_price_falls_back_to_default(db_session):
    data = seed_inventory(db_session, suffix="purchase-default")
    result = TransactionService(db_session).create(
        "purchase",
        data["business"].id,
        transaction_input(
            data["location"].id,
            [line_input(data["widget"].id, 1, data["piece"].id, purchase_price=Decimal("0"))],
            discount_type="fixed",
            discount_amount=Decimal("1"),
        ),
    )
    assert result.lines[0].purchase_price == Decimal("6")
    assert result.header.final_total == Decimal("5.00")


def test_draft_purchase_completes_once(db_session):
    data = seed_inventory(db_session, suffix="purchase-draft")
    business, location, widget = data["business"], data["location"], data["widget"]
    service = TransactionService(db_session)

    created = service.create(
        "purchase",
        business.id,
        transaction_input(location.id, [line_input(widget.id, 1, data["box"].id)]),
    )
    assert created.header.payment_status == "due"
    assert balance(db_session, widget.id, location.id) == Decimal("0")

    completed = service.complete("purchase", business.id, created.header.id)
    assert completed.header.status == "final"
    assert completed.stock_updates[0].base_quantity == Decimal("12")
    assert balance(db_session, widget.id, location.id) == Decimal("12")

    with pytest.raises(AlreadyFinalized):
        service.complete("purchase", business.id, created.header.id)
    assert balance(db_session, widget.id, location.id) == Decimal("12")
