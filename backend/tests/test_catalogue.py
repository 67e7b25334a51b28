from decimal import Decimal

from fastapi.testclient import TestClient
from pim.db import SessionLocal, init_db
from pim.main import app
from pim.models.product import Product, ProductType

client = TestClient(app)


def setup_module(module):
    # Recreate DB fresh
    init_db(reset=True)

    db = SessionLocal()
    try:
        db.add(Product(sku="TEST-001", name="Test Coffee", description="Test", price=Decimal("4.99"), stock_quantity=10, is_in_stock=True))
        db.add(Product(sku="TEST-KIT", name="Test Kit", type=ProductType.BUNDLE))
        db.commit()
    finally:
        db.close()


def test_list_products():
    res = client.get("/api/products")
    assert res.status_code == 200
    body = res.json()
    assert "items" in body
    assert isinstance(body["items"], list)
    skus = [it["sku"] for it in body["items"]]
    assert "TEST-001" in skus
    assert body["total"] == 2


def test_list_products_by_type_and_search():
    res = client.get("/api/products", params={"type": "BUNDLE"})
    assert [it["sku"] for it in res.json()["items"]] == ["TEST-KIT"]

    res = client.get("/api/products", params={"q": "coffee"})
    assert [it["sku"] for it in res.json()["items"]] == ["TEST-001"]


def test_get_product():
    listed = client.get("/api/products", params={"q": "TEST-001"}).json()["items"][0]
    res = client.get(f"/api/products/{listed['id']}")
    assert res.status_code == 200
    body = res.json()
    assert body["type"] == "SIMPLE"
    assert body["stock_quantity"] == 10

    assert client.get("/api/products/999999").status_code == 404
