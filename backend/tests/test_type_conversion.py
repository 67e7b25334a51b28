import pytest

from pim.db import SessionLocal, init_db
from pim.models.product import Product, ProductType
from pim.models.variant import VariantAxis
from pim.repositories.composition_repo import BundleComponentRepository, GroupedItemRepository
from pim.repositories.variant_repo import VariantRepository
from pim.schemas.composition_schema import GroupedItemIn
from pim.services.composition_service import CompositionService
from pim.services.errors import InvalidOperation, NotFound
from pim.services.type_conversion_service import TypeConversionService
from pim.services.variant_service import VariantService


def setup_module(module):
    init_db(reset=True)
    db = SessionLocal()
    try:
        db.add(VariantAxis(code="tc_color", name="Color", position=0))
        db.commit()
    finally:
        db.close()


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


def _axis_id(db, code):
    return db.query(VariantAxis).filter(VariantAxis.code == code).one().id


def test_convertible_types_never_contains_current_type(db):
    svc = TypeConversionService(db)
    for t in ProductType:
        p = _make(db, f"TC-ALL-{t.value}", type=t)
        allowed = svc.convertible_types(p)
        assert t not in allowed
        assert len(allowed) == len(ProductType) - 1


def test_bundle_to_simple_removes_component_rows(db):
    bundle = _make(db, "TC-BUNDLE", type=ProductType.BUNDLE)
    a = _make(db, "TC-BA", stock=5)
    b = _make(db, "TC-BB", stock=5)
    comp = CompositionService(db)
    comp.add_component(bundle.id, a.id, quantity=2)
    comp.add_component(bundle.id, b.id)
    assert len(BundleComponentRepository(db).list_by_bundle(bundle.id)) == 2

    converted = TypeConversionService(db).convert(bundle.id, ProductType.SIMPLE)

    assert converted.type == ProductType.SIMPLE
    assert converted.requires_shipping is True
    assert BundleComponentRepository(db).list_by_bundle(bundle.id) == []


def test_grouped_to_virtual_removes_items_and_applies_defaults(db):
    group = _make(db, "TC-GROUP", type=ProductType.GROUPED, stock=7)
    child = _make(db, "TC-GCHILD", stock=3)
    CompositionService(db).add_grouped_item(group.id, GroupedItemIn(child_id=child.id))

    converted = TypeConversionService(db).convert(group.id, ProductType.VIRTUAL)

    assert converted.type == ProductType.VIRTUAL
    assert converted.requires_shipping is False
    assert converted.stock_quantity == 0
    assert converted.is_in_stock is True
    assert GroupedItemRepository(db).list_by_parent(group.id) == []


def test_configurable_without_variants_keeps_config(db):
    p = _make(db, "TC-CONF")
    VariantService(db).configure_variants(p.id, [_axis_id(db, "tc_color")])
    assert db.get(Product, p.id).type == ProductType.CONFIGURABLE

    TypeConversionService(db).convert(p.id, ProductType.SIMPLE)

    assert db.get(Product, p.id).type == ProductType.SIMPLE
    config = VariantRepository(db).get_config(p.id)
    assert config is not None
    assert config.axis_ids == [_axis_id(db, "tc_color")]


def test_configurable_with_variants_cannot_convert(db):
    p = _make(db, "TC-CONF-V")
    variants = VariantService(db)
    axis = _axis_id(db, "tc_color")
    variants.configure_variants(p.id, [axis])
    variants.create_variant(p.id, {axis: "Red"})

    svc = TypeConversionService(db)
    assert svc.convertible_types(db.get(Product, p.id)) == set()
    with pytest.raises(InvalidOperation) as exc:
        svc.convert(p.id, ProductType.SIMPLE)
    assert exc.value.details["variants_count"] == 1


def test_variant_cannot_be_converted(db):
    p = _make(db, "TC-PARENT")
    variants = VariantService(db)
    axis = _axis_id(db, "tc_color")
    variants.configure_variants(p.id, [axis])
    v = variants.create_variant(p.id, {axis: "Blue"})

    svc = TypeConversionService(db)
    assert svc.convertible_types(v) == set()
    with pytest.raises(InvalidOperation):
        svc.convert(v.id, ProductType.VIRTUAL)


def test_same_type_and_missing_product(db):
    p = _make(db, "TC-SAME")
    svc = TypeConversionService(db)
    with pytest.raises(InvalidOperation):
        svc.convert(p.id, ProductType.SIMPLE)
    with pytest.raises(NotFound):
        svc.convert(999999, ProductType.SIMPLE)


def test_type_info_lists_components(db):
    bundle = _make(db, "TC-INFO", type=ProductType.BUNDLE)
    a = _make(db, "TC-INFO-A", stock=1)
    CompositionService(db).add_component(bundle.id, a.id, quantity=3)

    info = TypeConversionService(db).type_info(bundle.id)

    assert info.type == ProductType.BUNDLE
    assert ProductType.BUNDLE not in info.can_convert_to
    assert [c.component_sku for c in info.bundle_components] == ["TC-INFO-A"]
    assert info.bundle_components[0].quantity == 3
    assert info.grouped_items is None


def test_type_info_for_grouped_and_configurable(db):
    group = _make(db, "TC-INFO-G", type=ProductType.GROUPED)
    child = _make(db, "TC-INFO-CHILD", stock=2)
    CompositionService(db).add_grouped_item(group.id, GroupedItemIn(child_id=child.id, max_quantity=3))

    grouped = TypeConversionService(db).type_info(group.id)
    assert [i.child_sku for i in grouped.grouped_items] == ["TC-INFO-CHILD"]
    assert grouped.grouped_items[0].max_quantity == 3
    assert grouped.bundle_components is None

    parent = _make(db, "TC-INFO-CONF")
    axis = _axis_id(db, "tc_color")
    variants = VariantService(db)
    variants.configure_variants(parent.id, [axis])
    variants.create_variant(parent.id, {axis: "Red"})
    variants.create_variant(parent.id, {axis: "Blue"})

    configurable = TypeConversionService(db).type_info(parent.id)
    assert configurable.variants_count == 2
    assert configurable.can_convert_to == []
