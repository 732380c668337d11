import logging
from decimal import Decimal

import pytest

from app.inventory.core.error_catalog import (
    InsufficientStock,
    InvalidQuantity,
    NoStockRecord,
    PersistenceError,
    SameLocation,
    TransferIncomplete,
)
from app.inventory.core.metrics import metrics
from app.inventory.repos.stock import StockRepository
from app.inventory.services.stock_ledger import StockLedger
from tests.inventory_helpers import seed_inventory, set_stock


def _ledger_fixture(db_session, suffix: str):
    data = seed_inventory(db_session, suffix=suffix)
    return StockLedger(db_session), data["widget"].id, data["location"].id, data["other_location"].id


def test_missing_balance_reads_zero(db_session):
    ledger, variation_id, location_id, _ = _ledger_fixture(db_session, "zero")
    assert ledger.get_balance(variation_id, location_id) == Decimal("0")


def test_increase_creates_row_and_accumulates(db_session):
    ledger, variation_id, location_id, _ = _ledger_fixture(db_session, "increase")

    assert ledger.increase(variation_id, location_id, Decimal("10")) == Decimal("10")
    assert ledger.increase(variation_id, location_id, Decimal("2.5")) == Decimal("12.5")

    state = StockRepository(db_session).get_state(variation_id, location_id)
    assert state.version == 2


@pytest.mark.parametrize("qty", [Decimal("0"), Decimal("-1")])
def test_non_positive_quantities_rejected(db_session, qty):
    ledger, variation_id, location_id, other_id = _ledger_fixture(db_session, f"invalid-{qty}")
    with pytest.raises(InvalidQuantity):
        ledger.increase(variation_id, location_id, qty)
    with pytest.raises(InvalidQuantity):
        ledger.decrease(variation_id, location_id, qty)
    with pytest.raises(InvalidQuantity):
        ledger.transfer(variation_id, location_id, other_id, qty)


@pytest.mark.parametrize("qty", [Decimal("NaN"), Decimal("sNaN"), Decimal("Infinity"), "-Infinity", float("nan")])
def test_non_finite_quantities_rejected(db_session, qty):
    ledger, variation_id, location_id, other_id = _ledger_fixture(db_session, f"non-finite-{qty}")
    set_stock(db_session, variation_id, location_id, 5)
    with pytest.raises(InvalidQuantity):
        ledger.increase(variation_id, location_id, qty)
    with pytest.raises(InvalidQuantity):
        ledger.decrease(variation_id, location_id, qty)
    with pytest.raises(InvalidQuantity):
        ledger.adjust(variation_id, location_id, qty)
    with pytest.raises(InvalidQuantity):
        ledger.transfer(variation_id, location_id, other_id, qty)
    assert ledger.get_balance(variation_id, location_id) == Decimal("5")


def test_decrease_beyond_balance_leaves_it_untouched(db_session):
    ledger, variation_id, location_id, _ = _ledger_fixture(db_session, "insufficient")
    set_stock(db_session, variation_id, location_id, 10)

    with pytest.raises(InsufficientStock) as excinfo:
        ledger.decrease(variation_id, location_id, Decimal("12"))

    assert excinfo.value.details["available"] == Decimal("10")
    assert ledger.get_balance(variation_id, location_id) == Decimal("10")


def test_decrease_without_row_is_insufficient(db_session):
    ledger, variation_id, location_id, _ = _ledger_fixture(db_session, "no-row-decrease")
    with pytest.raises(InsufficientStock):
        ledger.decrease(variation_id, location_id, Decimal("1"))


def test_decrease_to_zero(db_session):
    ledger, variation_id, location_id, _ = _ledger_fixture(db_session, "to-zero")
    set_stock(db_session, variation_id, location_id, 3)
    assert ledger.decrease(variation_id, location_id, Decimal("3")) == Decimal("0")


def test_conditional_decrement_refuses_overdraw(db_session):
    ledger, variation_id, location_id, _ = _ledger_fixture(db_session, "conditional")
    set_stock(db_session, variation_id, location_id, 5)
    repo = StockRepository(db_session)
    state = repo.get_state(variation_id, location_id)

    assert repo.decrement_if_available(state.id, Decimal("6")) == 0
    assert repo.decrement_if_available(state.id, Decimal("5")) == 1
    db_session.commit()
    assert repo.qty_for(state.id) == Decimal("0")


def test_adjust_up_and_down(db_session):
    ledger, variation_id, location_id, _ = _ledger_fixture(db_session, "adjust")
    assert ledger.adjust(variation_id, location_id, Decimal("4"), "found in backroom") == Decimal("4")
    assert ledger.adjust(variation_id, location_id, Decimal("-1.5"), "damaged") == Decimal("2.5")
    with pytest.raises(InsufficientStock):
        ledger.adjust(variation_id, location_id, Decimal("-3"))
    assert ledger.get_balance(variation_id, location_id) == Decimal("2.5")


def test_adjust_rules(db_session):
    ledger, variation_id, location_id, _ = _ledger_fixture(db_session, "adjust-rules")
    with pytest.raises(NoStockRecord):
        ledger.adjust(variation_id, location_id, Decimal("-1"))
    with pytest.raises(InvalidQuantity):
        ledger.adjust(variation_id, location_id, Decimal("0"))


def test_transfer_moves_stock(db_session):
    ledger, variation_id, source_id, destination_id = _ledger_fixture(db_session, "transfer")
    set_stock(db_session, variation_id, source_id, 10)

    result = ledger.transfer(variation_id, source_id, destination_id, Decimal("4"))

    assert result.source == Decimal("6")
    assert result.destination == Decimal("4")
    total = ledger.get_balance(variation_id, source_id) + ledger.get_balance(variation_id, destination_id)
    assert total == Decimal("10")


def test_transfer_rejections(db_session):
    ledger, variation_id, source_id, destination_id = _ledger_fixture(db_session, "transfer-reject")
    set_stock(db_session, variation_id, source_id, 2)

    with pytest.raises(SameLocation):
        ledger.transfer(variation_id, source_id, source_id, Decimal("1"))
    with pytest.raises(InsufficientStock):
        ledger.transfer(variation_id, source_id, destination_id, Decimal("3"))

    assert ledger.get_balance(variation_id, source_id) == Decimal("2")
    assert ledger.get_balance(variation_id, destination_id) == Decimal("0")


def test_transfer_restores_source_when_destination_fails(db_session, monkeypatch):
    ledger, variation_id, source_id, destination_id = _ledger_fixture(db_session, "transfer-undo")
    set_stock(db_session, variation_id, source_id, 10)
    original_increase = StockLedger.increase

    def flaky_increase(self, variation, location, qty):
        if location == destination_id:
            raise PersistenceError(details={"operation": "stock.increase"})
        return original_increase(self, variation, location, qty)

    monkeypatch.setattr(StockLedger, "increase", flaky_increase)

    with pytest.raises(PersistenceError):
        ledger.transfer(variation_id, source_id, destination_id, Decimal("4"))

    assert ledger.get_balance(variation_id, source_id) == Decimal("10")
    assert ledger.get_balance(variation_id, destination_id) == Decimal("0")


def test_transfer_incomplete_when_source_cannot_be_restored(db_session, monkeypatch, caplog):
    caplog.set_level(logging.INFO, logger="inventory.saga")
    metrics.reset()
    ledger, variation_id, source_id, destination_id = _ledger_fixture(db_session, "transfer-incomplete")
    set_stock(db_session, variation_id, source_id, 10)

    def broken_increase(self, variation, location, qty):
        raise PersistenceError(details={"operation": "stock.increase"})

    monkeypatch.setattr(StockLedger, "increase", broken_increase)

    with pytest.raises(TransferIncomplete) as excinfo:
        ledger.transfer(variation_id, source_id, destination_id, Decimal("4"))

    assert isinstance(excinfo.value.__cause__, PersistenceError)
    assert ledger.get_balance(variation_id, source_id) == Decimal("6")
    assert '"event": "transfer.incomplete"' in caplog.text
    content = metrics.render().content.decode("utf-8")
    if metrics.enabled:
        assert 'alerted_errors_total{code="TRANSFER_INCOMPLETE"} 1.0' in content


def test_check_availability_and_bulk_balances(db_session):
    data = seed_inventory(db_session, suffix="availability")
    ledger = StockLedger(db_session)
    widget_id, gadget_id = data["widget"].id, data["gadget"].id
    location_id = data["location"].id
    set_stock(db_session, widget_id, location_id, 5)

    availability = ledger.check_availability(widget_id, location_id, Decimal("8"))
    assert availability.is_available is False
    assert availability.shortfall == Decimal("3")
    assert availability.remaining == Decimal("-3")

    assert ledger.check_availability(widget_id, location_id, Decimal("5")).is_available is True
    assert ledger.get_balances([widget_id, gadget_id], location_id) == {
        widget_id: Decimal("5"),
        gadget_id: Decimal("0"),
    }


def test_mutations_are_logged(db_session, caplog):
    caplog.set_level(logging.INFO, logger="inventory.stock")
    ledger, variation_id, location_id, _ = _ledger_fixture(db_session, "logged")
    ledger.adjust(variation_id, location_id, Decimal("2"), "recount")
    assert '"event": "stock.mutation"' in caplog.text
    assert '"reason": "recount"' in caplog.text
