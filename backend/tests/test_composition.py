from decimal import Decimal

import pytest

from pim.db import SessionLocal, init_db
from pim.models.product import Product, ProductType
from pim.models.variant import VariantAxis
from pim.repositories.composition_repo import BundleComponentRepository
from pim.schemas.composition_schema import (
    BundleComponentIn,
    BundleComponentUpdate,
    GroupedItemIn,
    GroupedItemUpdate,
)
from pim.services.composition_service import CompositionService
from pim.services.errors import AlreadyExists, InvalidOperation, NotFound
from pim.services.variant_service import VariantService


def setup_module(module):
    init_db(reset=True)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def _make(db, sku, type=ProductType.SIMPLE, stock=0, price=None):
    p = Product(sku=sku, name=sku, type=type, stock_quantity=stock, is_in_stock=stock > 0, price=price)
    db.add(p)
    db.commit()
    return p


# --- bundle components ------------------------------------------------


def test_add_component_to_itself_fails(db):
    bundle = _make(db, "CMP-SELF", type=ProductType.BUNDLE)
    with pytest.raises(InvalidOperation):
        CompositionService(db).add_component(bundle.id, bundle.id)


def test_add_component_rules(db):
    bundle = _make(db, "CMP-B1", type=ProductType.BUNDLE)
    other_bundle = _make(db, "CMP-B2", type=ProductType.BUNDLE)
    simple = _make(db, "CMP-S1", stock=4)
    not_bundle = _make(db, "CMP-S2")
    svc = CompositionService(db)

    with pytest.raises(InvalidOperation):
        svc.add_component(not_bundle.id, simple.id)
    with pytest.raises(InvalidOperation):
        svc.add_component(bundle.id, other_bundle.id)
    with pytest.raises(NotFound):
        svc.add_component(bundle.id, 999999)

    out = svc.add_component(bundle.id, simple.id, quantity=0, special_price=Decimal("2.50"))
    assert out.quantity == 1
    assert out.component_sku == "CMP-S1"
    assert out.special_price == Decimal("2.50")

    with pytest.raises(AlreadyExists):
        svc.add_component(bundle.id, simple.id)


def test_variant_cannot_be_a_component(db):
    axis = VariantAxis(code="cmp_size", name="Size")
    db.add(axis)
    db.commit()
    parent = _make(db, "CMP-PARENT")
    variants = VariantService(db)
    variants.configure_variants(parent.id, [axis.id])
    variant = variants.create_variant(parent.id, {axis.id: "L"})
    bundle = _make(db, "CMP-B-VAR", type=ProductType.BUNDLE)

    with pytest.raises(InvalidOperation):
        CompositionService(db).add_component(bundle.id, variant.id)


def test_update_and_remove_component(db):
    bundle = _make(db, "CMP-UPD", type=ProductType.BUNDLE)
    part = _make(db, "CMP-UPD-A")
    svc = CompositionService(db)
    out = svc.add_component(bundle.id, part.id, special_price=Decimal("1.00"))

    updated = svc.update_component(out.id, BundleComponentUpdate(quantity=4, special_price=None))
    assert updated.quantity == 4
    assert updated.special_price is None

    svc.remove_component(out.id)
    assert svc.list_components(bundle.id) == []
    with pytest.raises(NotFound):
        svc.remove_component(out.id)


def test_set_components_replaces_all_or_nothing(db):
    bundle = _make(db, "CMP-SET", type=ProductType.BUNDLE)
    a = _make(db, "CMP-SET-A")
    b = _make(db, "CMP-SET-B")
    c = _make(db, "CMP-SET-C")
    svc = CompositionService(db)
    svc.add_component(bundle.id, a.id)

    result = svc.set_components(
        bundle.id, [BundleComponentIn(component_id=b.id, quantity=2), BundleComponentIn(component_id=c.id)]
    )
    assert [r.component_sku for r in result] == ["CMP-SET-B", "CMP-SET-C"]
    assert [r.position for r in result] == [0, 1]

    with pytest.raises(InvalidOperation):
        svc.set_components(bundle.id, [BundleComponentIn(component_id=a.id), BundleComponentIn(component_id=bundle.id)])
    skus = [r.component_sku for r in svc.list_components(bundle.id)]
    assert skus == ["CMP-SET-B", "CMP-SET-C"]


# --- grouped items ----------------------------------------------------


def test_grouped_item_rules(db):
    group = _make(db, "CMP-G", type=ProductType.GROUPED)
    child = _make(db, "CMP-G-CHILD", stock=2)
    svc = CompositionService(db)

    with pytest.raises(InvalidOperation):
        svc.add_grouped_item(group.id, GroupedItemIn(child_id=group.id))
    with pytest.raises(InvalidOperation):
        svc.add_grouped_item(group.id, GroupedItemIn(child_id=child.id, min_quantity=3, max_quantity=1))

    out = svc.add_grouped_item(group.id, GroupedItemIn(child_id=child.id, default_quantity=2, max_quantity=5))
    assert out.child_sku == "CMP-G-CHILD"
    assert out.default_quantity == 2

    with pytest.raises(AlreadyExists):
        svc.add_grouped_item(group.id, GroupedItemIn(child_id=child.id))

    updated = svc.update_grouped_item(out.id, GroupedItemUpdate(min_quantity=1))
    assert updated.min_quantity == 1
    assert updated.max_quantity == 5

    svc.remove_grouped_item(out.id)
    assert svc.list_grouped_items(group.id) == []


# --- price / usage ----------------------------------------------------


def test_bundle_price_uses_special_price_then_component_price(db):
    bundle = _make(db, "CMP-PRICE", type=ProductType.BUNDLE)
    a = _make(db, "CMP-PRICE-A", price=Decimal("10.00"))
    b = _make(db, "CMP-PRICE-B", price=Decimal("3.00"))
    c = _make(db, "CMP-PRICE-C")
    svc = CompositionService(db)
    svc.add_component(bundle.id, a.id, quantity=2)
    svc.add_component(bundle.id, b.id, quantity=3, special_price=Decimal("2.00"))
    svc.add_component(bundle.id, c.id, quantity=5)

    # 2 * 10 + 3 * 2 + 5 * 0
    assert svc.bundle_price(bundle.id) == Decimal("26.00")


def test_find_usages(db):
    part = _make(db, "CMP-USE")
    bundle = _make(db, "CMP-USE-B", type=ProductType.BUNDLE)
    group = _make(db, "CMP-USE-G", type=ProductType.GROUPED)
    svc = CompositionService(db)
    svc.add_component(bundle.id, part.id)
    svc.add_grouped_item(group.id, GroupedItemIn(child_id=part.id))

    usage = svc.find_usages(part.id)
    assert usage.bundles == [bundle.id]
    assert usage.groups == [group.id]


def test_deleting_component_product_cascades_rows(db):
    bundle = _make(db, "CMP-DEL", type=ProductType.BUNDLE)
    part = _make(db, "CMP-DEL-A")
    CompositionService(db).add_component(bundle.id, part.id)
    db.commit()

    db.delete(db.get(Product, part.id))
    db.commit()

    assert BundleComponentRepository(db).list_by_bundle(bundle.id) == []
