from decimal import Decimal

from app.inventory.db.models import ReferenceSequence, StockBalance, Transaction, Unit
from app.inventory.services.transactions import TransactionService
from app.ops.integrity_checks import (
    check_final_without_lines,
    check_negative_balances,
    check_reference_counters,
    check_sub_unit_multiplier,
    check_unit_chain_depth,
    resolve_businesses,
    run_integrity_checks,
)
from tests.inventory_helpers import create_business, line_input, seed_inventory, set_stock, transaction_input


def test_clean_ledger_has_no_findings(db_session):
    data = seed_inventory(db_session, suffix="ops-clean")
    business, location, widget = data["business"], data["location"], data["widget"]
    set_stock(db_session, widget.id, location.id, 10)
    TransactionService(db_session).create(
        "sale",
        business.id,
        transaction_input(location.id, [line_input(widget.id, 4, data["piece"].id)], status="final"),
    )

    assert run_integrity_checks(db_session, business.id) == []


def test_negative_balance_violation(db_session):
    data = seed_inventory(db_session, suffix="ops-negative")
    db_session.add(
        StockBalance(
            variation_id=data["widget"].id,
            product_id=data["widget"].product_id,
            location_id=data["location"].id,
            qty_available=Decimal("-2"),
        )
    )
    db_session.commit()

    findings = check_negative_balances(db_session, data["business"].id)
    assert len(findings) == 1
    assert findings[0].details["qty_available"].startswith("-2")


def test_final_without_lines_violation(db_session):
    data = seed_inventory(db_session, suffix="ops-lines")
    db_session.add(
        Transaction(
            business_id=data["business"].id,
            location_id=data["location"].id,
            type="purchase",
            status="final",
            ref_no="PUR-202601-0001",
        )
    )
    db_session.commit()

    findings = check_final_without_lines(db_session, data["business"].id)
    assert [finding.details["type"] for finding in findings] == ["purchase"]


def test_unit_chain_violations(db_session):
    data = seed_inventory(db_session, suffix="ops-units")
    business_id = data["business"].id
    assert check_unit_chain_depth(db_session, business_id) == []

    db_session.add_all(
        [
            Unit(
                business_id=business_id,
                actual_name="Pallet",
                short_name="plt",
                base_unit_id=data["box"].id,
                base_unit_multiplier=Decimal("40"),
            ),
            Unit(business_id=business_id, actual_name="Crate", short_name="crt", base_unit_id=data["piece"].id),
        ]
    )
    db_session.commit()

    assert [finding.details["actual_name"] for finding in check_unit_chain_depth(db_session, business_id)] == ["Pallet"]
    assert [finding.details["actual_name"] for finding in check_sub_unit_multiplier(db_session, business_id)] == [
        "Crate"
    ]


def test_reference_counter_behind(db_session):
    data = seed_inventory(db_session, suffix="ops-refs")
    business_id = data["business"].id
    db_session.add_all(
        [
            Transaction(
                business_id=business_id,
                location_id=data["location"].id,
                type="adjustment",
                status="draft",
                ref_no="ADJ-202602-0005",
            ),
            ReferenceSequence(business_id=business_id, kind="adjustment", period="202602", last_value=3),
        ]
    )
    db_session.commit()

    findings = check_reference_counters(db_session, business_id)
    assert len(findings) == 1
    assert findings[0].severity == "WARN"
    assert findings[0].details["highest_issued"] == 5


def test_resolve_businesses(db_session):
    first, _l1, _o1 = create_business(db_session, suffix="ops-a")
    second, _l2, _o2 = create_business(db_session, suffix="ops-b")
    assert resolve_businesses(db_session, str(first.id)) == [first.id]
    assert {first.id, second.id} <= set(resolve_businesses(db_session, "all"))
