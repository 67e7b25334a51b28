from fastapi.testclient import TestClient
from pim.db import SessionLocal, init_db
from pim.main import app
from pim.models.product import Product

client = TestClient(app)

state = {}


def setup_module(module):
    init_db(reset=True)
    db = SessionLocal()
    try:
        p = Product(sku="SHIRT", name="Shirt", price=25)
        db.add(p)
        db.commit()
        state["shirt"] = p.id
    finally:
        db.close()


def test_axis_endpoints():
    res = client.post("/api/variants/axes", json={"code": "color", "name": "Color", "position": 0})
    assert res.status_code == 201
    state["color"] = res.json()["id"]

    res = client.post("/api/variants/axes", json={"code": "size", "name": "Size", "position": 1})
    assert res.status_code == 201
    state["size"] = res.json()["id"]

    dup = client.post("/api/variants/axes", json={"code": "color", "name": "Colour"})
    assert dup.status_code == 409

    res = client.post("/api/variants/axes", json={"code": "legacy", "name": "Legacy", "is_active": False})
    legacy = res.json()["id"]
    active = [a["code"] for a in client.get("/api/variants/axes/active").json()]
    assert active == ["color", "size"]
    assert len(client.get("/api/variants/axes").json()) == 3

    res = client.put(f"/api/variants/axes/{legacy}", json={"name": "Old"})
    assert res.json()["name"] == "Old"
    assert client.delete(f"/api/variants/axes/{legacy}").status_code == 204
    assert client.get(f"/api/variants/axes/{legacy}").status_code == 404


def test_configure_and_create_variants():
    shirt = state["shirt"]
    res = client.post(
        f"/api/variants/product/{shirt}/configure", json={"axis_ids": [state["color"], state["size"]]}
    )
    assert res.status_code == 200
    body = res.json()
    assert [a["code"] for a in body["axes"]] == ["color", "size"]
    assert body["variants"] == []
    assert client.get(f"/api/products/{shirt}").json()["type"] == "CONFIGURABLE"

    missing = client.post(f"/api/variants/product/{shirt}/variants", json={"axis_values": {str(state["color"]): "Red"}})
    assert missing.status_code == 400
    assert "Size" in missing.json()["detail"]["message"]

    res = client.post(
        f"/api/variants/product/{shirt}/variants",
        json={"axis_values": {str(state["color"]): "Red", str(state["size"]): "M"}, "stock_quantity": 5},
    )
    assert res.status_code == 201
    variant = res.json()
    assert variant["sku"] == "SHIRT-RED-M"
    assert variant["is_in_stock"] is True
    state["red_m"] = variant["id"]


def test_matrix_and_bulk_create():
    shirt = state["shirt"]
    color, size = str(state["color"]), str(state["size"])
    res = client.post(
        f"/api/variants/product/{shirt}/bulk-create",
        json={"combinations": [{color: "Blue", size: "S"}, {color: "Red", size: "M"}]},
    )
    assert res.status_code == 201
    assert [v["sku"] for v in res.json()] == ["SHIRT-BLUE-S"]

    matrix = client.get(f"/api/variants/product/{shirt}/matrix").json()
    assert len(matrix) == 4
    assert sorted(e["sku"] for e in matrix if e["exists"]) == ["SHIRT-BLUE-S", "SHIRT-RED-M"]


def test_update_and_delete_variant():
    shirt = state["shirt"]
    res = client.put(f"/api/variants/variant/{state['red_m']}", json={"stock_quantity": 0})
    assert res.status_code == 200
    assert res.json()["is_in_stock"] is False

    assert client.delete(f"/api/variants/variant/{state['red_m']}").status_code == 204
    skus = [v["sku"] for v in client.get(f"/api/variants/product/{shirt}/variants").json()]
    assert skus == ["SHIRT-BLUE-S"]

    converting = client.post(f"/api/products/{shirt}/convert-type", json={"target_type": "SIMPLE"})
    assert converting.status_code == 400

    in_use = client.delete(f"/api/variants/axes/{state['color']}")
    assert in_use.status_code == 400
