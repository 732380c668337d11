from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import exists, or_, select
from sqlalchemy.orm import aliased

from app.inventory.core.metrics import metrics
from app.inventory.db.models import (
    LINE_MODELS,
    Business,
    Location,
    ReferenceSequence,
    StockBalance,
    Transaction,
    Unit,
)
from app.inventory.services.reference_numbers import parse_reference


SEVERITY_CRITICAL = "CRITICAL"
SEVERITY_WARN = "WARN"


@dataclass(frozen=True)
class IntegrityFinding:
    check_id: str
    severity: str
    business_id: int
    message: str
    entity: str
    entity_id: str | None
    details: dict


def resolve_businesses(db, business: str) -> list[int]:
    if business.lower() != "all":
        return [int(business)]
    return [row.id for row in db.execute(select(Business.id).order_by(Business.id)).all()]


def check_negative_balances(db, business_id: int) -> list[IntegrityFinding]:
    rows = db.execute(
        select(StockBalance.id, StockBalance.variation_id, StockBalance.location_id, StockBalance.qty_available)
        .join(Location, Location.id == StockBalance.location_id)
        .where(Location.business_id == business_id)
        .where(StockBalance.qty_available < 0)
    ).all()
    findings = [
        IntegrityFinding(
            check_id="negative_balance",
            severity=SEVERITY_CRITICAL,
            business_id=business_id,
            message="Stock balance below zero.",
            entity="variation_location_details",
            entity_id=str(row.id),
            details={
                "variation_id": row.variation_id,
                "location_id": row.location_id,
                "qty_available": str(row.qty_available),
            },
        )
        for row in rows
    ]
    if findings:
        metrics.increment_invariant_violation("negative_balance", len(findings))
    return findings


def check_final_without_lines(db, business_id: int) -> list[IntegrityFinding]:
    findings = []
    for kind, line_model in LINE_MODELS.items():
        rows = db.execute(
            select(Transaction.id, Transaction.ref_no)
            .where(Transaction.business_id == business_id)
            .where(Transaction.type == kind, Transaction.status == "final")
            .where(~exists().where(line_model.transaction_id == Transaction.id))
        ).all()
        for row in rows:
            findings.append(
                IntegrityFinding(
                    check_id="final_without_lines",
                    severity=SEVERITY_CRITICAL,
                    business_id=business_id,
                    message="Final transaction has no lines.",
                    entity="transactions",
                    entity_id=str(row.id),
                    details={"type": kind, "ref_no": row.ref_no},
                )
            )
    if findings:
        metrics.increment_invariant_violation("final_without_lines", len(findings))
    return findings


def check_unit_chain_depth(db, business_id: int) -> list[IntegrityFinding]:
    parent = aliased(Unit)
    rows = db.execute(
        select(Unit.id, Unit.actual_name, parent.id.label("parent_id"), parent.base_unit_id.label("grandparent_id"))
        .join(parent, parent.id == Unit.base_unit_id)
        .where(Unit.business_id == business_id)
        .where(parent.base_unit_id.is_not(None))
    ).all()
    findings = [
        IntegrityFinding(
            check_id="unit_chain_depth",
            severity=SEVERITY_CRITICAL,
            business_id=business_id,
            message="Unit is a sub-unit of a sub-unit.",
            entity="units",
            entity_id=str(row.id),
            details={
                "actual_name": row.actual_name,
                "base_unit_id": row.parent_id,
                "base_of_base_unit_id": row.grandparent_id,
            },
        )
        for row in rows
    ]
    if findings:
        metrics.increment_invariant_violation("unit_chain_depth", len(findings))
    return findings


def check_sub_unit_multiplier(db, business_id: int) -> list[IntegrityFinding]:
    rows = db.execute(
        select(Unit.id, Unit.actual_name, Unit.base_unit_multiplier)
        .where(Unit.business_id == business_id)
        .where(Unit.base_unit_id.is_not(None))
        .where(or_(Unit.base_unit_multiplier.is_(None), Unit.base_unit_multiplier <= 0))
    ).all()
    findings = [
        IntegrityFinding(
            check_id="sub_unit_multiplier",
            severity=SEVERITY_CRITICAL,
            business_id=business_id,
            message="Sub-unit has no positive base unit multiplier.",
            entity="units",
            entity_id=str(row.id),
            details={
                "actual_name": row.actual_name,
                "base_unit_multiplier": None if row.base_unit_multiplier is None else str(row.base_unit_multiplier),
            },
        )
        for row in rows
    ]
    if findings:
        metrics.increment_invariant_violation("sub_unit_multiplier", len(findings))
    return findings


def check_reference_counters(db, business_id: int) -> list[IntegrityFinding]:
    issued: dict[tuple[str, str], int] = {}
    rows = db.execute(
        select(Transaction.type, Transaction.ref_no).where(
            Transaction.business_id == business_id
        )
    ).all()
    for row in rows:
        parsed = parse_reference(row.ref_no or "")
        if parsed is None:
            continue
        _, period, sequence = parsed
        key = (row.type, period)
        issued[key] = max(issued.get(key, 0), sequence)
    counters = {
        (row.kind, row.period): row.last_value
        for row in db.execute(
            select(ReferenceSequence.kind, ReferenceSequence.period, ReferenceSequence.last_value).where(
                ReferenceSequence.business_id == business_id
            )
        ).all()
    }
    findings = []
    for (kind, period), highest in sorted(issued.items()):
        counter = counters.get((kind, period), 0)
        if counter < highest:
            findings.append(
                IntegrityFinding(
                    check_id="reference_counter_behind",
                    severity=SEVERITY_WARN,
                    business_id=business_id,
                    message="Reference counter is behind issued numbers; next number would collide.",
                    entity="reference_sequences",
                    entity_id=None,
                    details={"kind": kind, "period": period, "last_value": counter, "highest_issued": highest},
                )
            )
    if findings:
        metrics.increment_invariant_violation("reference_counter_behind", len(findings))
    return findings


def run_integrity_checks(db, business_id: int) -> list[IntegrityFinding]:
    findings: list[IntegrityFinding] = []
    findings.extend(check_negative_balances(db, business_id))
    findings.extend(check_final_without_lines(db, business_id))
    findings.extend(check_unit_chain_depth(db, business_id))
    findings.extend(check_sub_unit_multiplier(db, business_id))
    findings.extend(check_reference_counters(db, business_id))
    return findings
