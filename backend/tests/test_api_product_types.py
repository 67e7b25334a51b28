from fastapi.testclient import TestClient
from pim.db import SessionLocal, init_db
from pim.main import app
from pim.models.product import Product, ProductType

client = TestClient(app)

ids = {}


def setup_module(module):
    init_db(reset=True)
    db = SessionLocal()
    try:
        rows = [
            Product(sku="API-KIT", name="Kit", type=ProductType.BUNDLE),
            Product(sku="API-A", name="Part A", stock_quantity=5, is_in_stock=True, price=10),
            Product(sku="API-B", name="Part B", stock_quantity=3, is_in_stock=True, price=4),
            Product(sku="API-GROUP", name="Group", type=ProductType.GROUPED),
            Product(sku="API-PLAIN", name="Plain"),
        ]
        db.add_all(rows)
        db.commit()
        for p in rows:
            ids[p.sku] = p.id
    finally:
        db.close()


def test_bundle_component_endpoints():
    kit = ids["API-KIT"]
    res = client.post(f"/api/products/{kit}/bundle-components", json={"component_id": ids["API-A"], "quantity": 2})
    assert res.status_code == 201
    row_id = res.json()["id"]

    res = client.post(f"/api/products/{kit}/bundle-components", json={"component_id": ids["API-B"]})
    assert res.status_code == 201

    dup = client.post(f"/api/products/{kit}/bundle-components", json={"component_id": ids["API-A"]})
    assert dup.status_code == 409

    itself = client.post(f"/api/products/{kit}/bundle-components", json={"component_id": kit})
    assert itself.status_code == 400
    assert itself.json()["detail"]["details"]["bundle_id"] == kit

    res = client.put(f"/api/products/bundle-components/{row_id}", json={"position": 3})
    assert res.status_code == 200
    assert res.json()["quantity"] == 2

    listed = client.get(f"/api/products/{kit}/bundle-components").json()
    assert [c["component_sku"] for c in listed] == ["API-B", "API-A"]


def test_stock_price_and_usage_endpoints():
    kit = ids["API-KIT"]
    res = client.get(f"/api/products/{kit}/stock/validate", params={"quantity": 2})
    assert res.status_code == 200
    body = res.json()
    assert body["valid"] is True
    assert body["available_quantity"] == 2

    res = client.get(f"/api/products/{kit}/bundle-price")
    assert float(res.json()["total_price"]) == 24.0

    res = client.post(f"/api/products/{kit}/stock/decrement", json={"quantity": 1})
    assert res.status_code == 200
    assert res.json()["success"] is True
    a = client.get(f"/api/products/{ids['API-A']}").json()
    assert a["stock_quantity"] == 3

    res = client.post(f"/api/products/{kit}/stock/decrement", json={"quantity": 0})
    assert res.status_code == 422

    usage = client.get(f"/api/products/{ids['API-A']}/usage").json()
    assert usage["bundles"] == [kit]
    assert usage["groups"] == []


def test_grouped_item_endpoints():
    group = ids["API-GROUP"]
    res = client.post(f"/api/products/{group}/grouped-items", json={"child_id": ids["API-PLAIN"], "max_quantity": 4})
    assert res.status_code == 201
    row_id = res.json()["id"]

    bad = client.put(f"/api/products/grouped-items/{row_id}", json={"min_quantity": 9})
    assert bad.status_code == 400

    res = client.put(f"/api/products/{group}/grouped-items", json={"items": [{"child_id": ids["API-A"]}]})
    assert res.status_code == 200
    assert [i["child_sku"] for i in res.json()] == ["API-A"]

    gone = client.delete(f"/api/products/grouped-items/{row_id}")
    assert gone.status_code == 404


def test_type_info_and_convert():
    kit = ids["API-KIT"]
    info = client.get(f"/api/products/{kit}/type-info").json()
    assert info["type"] == "BUNDLE"
    assert "BUNDLE" not in info["can_convert_to"]
    assert len(info["bundle_components"]) == 2

    res = client.post(f"/api/products/{kit}/convert-type", json={"target_type": "SIMPLE"})
    assert res.status_code == 200
    assert res.json()["type"] == "SIMPLE"
    assert client.get(f"/api/products/{kit}/bundle-components").json() == []

    again = client.post(f"/api/products/{kit}/convert-type", json={"target_type": "SIMPLE"})
    assert again.status_code == 400

    missing = client.get("/api/products/999999/type-info")
    assert missing.status_code == 404
