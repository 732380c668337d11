from app.inventory.services.catalog import UnitCatalogService
from tests.inventory_helpers import headers, line_payload, seed_inventory, set_stock, transaction_payload


def test_create_final_sale_over_http(client, db_session):
    data = seed_inventory(db_session, suffix="api-sale")
    business, location, widget = data["business"], data["location"], data["widget"]
    set_stock(db_session, widget.id, location.id, 30)

    response = client.post(
        "/inventory/sales",
        headers=headers(business.id, user_id=3),
        json=transaction_payload(location.id, [line_payload(widget.id, 2, data["box"].id)], status="final"),
    )

    assert response.status_code == 201
    payload = response.json()
    assert payload["header"]["status"] == "final"
    assert payload["header"]["created_by"] == 3
    assert payload["header"]["total_before_tax"] == "240.00"
    assert payload["lines"][0]["unit_price"] == "120.00"
    assert payload["stock_updates"][0]["base_quantity"] == "24"
    assert payload["stock_updates"][0]["balance"] == "6"

    stock = client.get(
        f"/inventory/stock/{widget.id}",
        headers=headers(business.id),
        params={"location_id": location.id},
    )
    assert stock.status_code == 200
    assert stock.json()["qty_available"] == "6"


def test_draft_complete_and_read_back(client, db_session):
    data = seed_inventory(db_session, suffix="api-draft")
    business, location, widget = data["business"], data["location"], data["widget"]
    scope = headers(business.id)

    created = client.post(
        "/inventory/purchases",
        headers=scope,
        json=transaction_payload(location.id, [line_payload(widget.id, 5, data["piece"].id)]),
    )
    assert created.status_code == 201
    transaction_id = created.json()["header"]["id"]
    assert created.json()["stock_updates"] == []

    completed = client.post(f"/inventory/purchases/{transaction_id}/complete", headers=scope)
    assert completed.status_code == 200
    assert completed.json()["header"]["status"] == "final"

    again = client.post(f"/inventory/purchases/{transaction_id}/complete", headers=scope)
    assert again.status_code == 409
    assert again.json()["code"] == "ALREADY_FINALIZED"

    detail = client.get(f"/inventory/purchases/{transaction_id}", headers=scope)
    assert detail.status_code == 200
    assert detail.json()["lines"][0]["purchase_price"] == "6.00"

    listing = client.get("/inventory/purchases", headers=scope, params={"status": "final"})
    assert listing.status_code == 200
    assert listing.json()["meta"]["total"] == 1
    assert listing.json()["rows"][0]["ref_no"].startswith("PUR-")

    missing = client.get(f"/inventory/sales/{transaction_id}", headers=scope)
    assert missing.status_code == 404
    assert missing.json()["code"] == "NOT_FOUND"


def test_insufficient_stock_maps_to_conflict(client, db_session):
    data = seed_inventory(db_session, suffix="api-short")
    business, location, widget = data["business"], data["location"], data["widget"]
    set_stock(db_session, widget.id, location.id, 1)

    response = client.post(
        "/inventory/sales",
        headers=headers(business.id),
        json=transaction_payload(location.id, [line_payload(widget.id, 2, data["piece"].id)], status="final"),
    )

    assert response.status_code == 409
    payload = response.json()
    assert payload["code"] == "INSUFFICIENT_STOCK"
    assert payload["details"]["variation_id"] == widget.id
    assert payload["trace_id"]


def test_incompatible_unit_maps_to_unprocessable(client, db_session):
    data = seed_inventory(db_session, suffix="api-units")
    business = data["business"]
    unit = UnitCatalogService(db_session).create_unit(business.id, actual_name="Kg")
    response = client.post(
        "/inventory/sales",
        headers=headers(business.id),
        json=transaction_payload(data["location"].id, [line_payload(data["widget"].id, 1, unit.id)]),
    )
    assert response.status_code == 422
    assert response.json()["code"] == "INCOMPATIBLE_UNITS"


def test_request_validation_errors(client, db_session):
    data = seed_inventory(db_session, suffix="api-invalid")
    scope = headers(data["business"].id)

    empty = client.post("/inventory/sales", headers=scope, json=transaction_payload(data["location"].id, []))
    assert empty.status_code == 422
    assert empty.json()["code"] == "VALIDATION_ERROR"

    bad_kind = client.get("/inventory/refunds/1", headers=scope)
    assert bad_kind.status_code == 422

    bad_adjustment = client.post(
        "/inventory/adjustments",
        headers=scope,
        json=transaction_payload(
            data["location"].id,
            [line_payload(data["widget"].id, 1, data["piece"].id, adjustment_type="shrink")],
        ),
    )
    assert bad_adjustment.status_code == 422


def test_business_scope_header_required(client):
    response = client.get("/inventory/sales")
    assert response.status_code == 400
    assert response.json()["code"] == "BUSINESS_SCOPE_REQUIRED"


def test_stock_availability_and_bulk(client, db_session):
    data = seed_inventory(db_session, suffix="api-stock")
    business, location = data["business"], data["location"]
    widget, gadget = data["widget"], data["gadget"]
    set_stock(db_session, widget.id, location.id, 5)
    scope = headers(business.id)

    availability = client.get(
        f"/inventory/stock/{widget.id}/availability",
        headers=scope,
        params={"location_id": location.id, "quantity": "8"},
    )
    assert availability.status_code == 200
    assert availability.json()["is_available"] is False
    assert availability.json()["shortfall"] == "3"

    bulk = client.get(
        "/inventory/stock",
        headers=scope,
        params={"location_id": location.id, "variation_ids": f"{widget.id},{gadget.id}"},
    )
    assert bulk.status_code == 200
    quantities = {row["variation_id"]: row["qty_available"] for row in bulk.json()["rows"]}
    assert quantities == {widget.id: "5", gadget.id: "0"}

    foreign = client.get(
        f"/inventory/stock/{widget.id}",
        headers=headers(business.id + 1000),
        params={"location_id": location.id},
    )
    assert foreign.status_code == 422


def test_unit_catalog_over_http(client, db_session):
    data = seed_inventory(db_session, suffix="api-unit-catalog")
    business, widget = data["business"], data["widget"]
    scope = headers(business.id)

    created = client.post(
        "/inventory/units",
        headers=scope,
        json={"actual_name": "Dozen", "base_unit_id": data["piece"].id, "base_unit_multiplier": "12.0"},
    )
    assert created.status_code == 201
    dozen = created.json()
    assert dozen["short_name"] == "Dozen"
    assert dozen["base_unit_multiplier"] == "12"

    chained = client.post(
        "/inventory/units",
        headers=scope,
        json={"actual_name": "Crate", "base_unit_id": data["box"].id, "base_unit_multiplier": "4"},
    )
    assert chained.status_code == 422
    assert chained.json()["code"] == "VALIDATION_ERROR"

    listing = client.get("/inventory/units", headers=scope)
    assert listing.status_code == 200
    names = [row["actual_name"] for row in listing.json()["rows"]]
    assert names == ["Piece", "Box", "Dozen"]

    set_stock(db_session, widget.id, data["location"].id, 24)
    sale = client.post(
        "/inventory/sales",
        headers=scope,
        json=transaction_payload(data["location"].id, [line_payload(widget.id, 1, dozen["id"])], status="final"),
    )
    assert sale.status_code == 201
    assert sale.json()["stock_updates"][0]["balance"] == "12"

    foreign = client.get("/inventory/units", headers=headers(business.id + 1000))
    assert foreign.json()["rows"] == []
