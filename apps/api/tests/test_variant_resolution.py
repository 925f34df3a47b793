from __future__ import annotations

import uuid
from collections.abc import Generator
from decimal import Decimal
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.business.catalog.models import CatalogProduct, CatalogProductVariant
from app.business.storefront.models import Store, StoreProduct, StoreProductVariant
from app.business.storefront.resolution import (
    MODE_DANGLING,
    MODE_FALLBACK,
    MODE_OVERRIDE,
    resolve_variants,
    to_money,
)
from app.core.database import Base
from app.platform.errors import DanglingReference


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def _seed_product(
    session: Session,
    variants: list[tuple[str, str, str | None, bool]],
    *,
    base_price: str = "90.00",
) -> tuple[CatalogProduct, dict[tuple[str, str], CatalogProductVariant]]:
    product = CatalogProduct(
        name="Classic Tee",
        description="Cotton tee",
        category_id="apparel",
        product_type_code="TSHIRT",
        base_price=Decimal(base_price),
        is_published=True,
    )
    session.add(product)
    session.flush()

    rows: dict[tuple[str, str], CatalogProductVariant] = {}
    for size, color, cost, active in variants:
        variant = CatalogProductVariant(
            catalog_product_id=product.id,
            size=size,
            color=color,
            sku_template=f"TSHIRT-{size}-{color}",
            base_price=Decimal(cost) if cost is not None else None,
            is_active=active,
        )
        session.add(variant)
        rows[(size, color)] = variant
    session.commit()
    return product, rows


def _listing(
    session: Session,
    catalog_product_id: uuid.UUID,
    *,
    selling_price: str = "250.00",
    design_data: dict[str, Any] | None = None,
) -> StoreProduct:
    store = Store(name="Shop", slug=f"shop-{uuid.uuid4().hex[:8]}", owner_user_id="merchant-1")
    session.add(store)
    session.flush()
    listing = StoreProduct(
        store_id=store.id,
        catalog_product_id=catalog_product_id,
        selling_price=Decimal(selling_price),
        design_data=design_data or {},
    )
    session.add(listing)
    session.commit()
    return listing


def _override(
    session: Session,
    listing: StoreProduct,
    variant_id: uuid.UUID,
    *,
    selling_price: str | None = None,
    sku: str | None = None,
    is_active: bool = True,
) -> None:
    session.add(
        StoreProductVariant(
            store_product_id=listing.id,
            catalog_product_variant_id=variant_id,
            selling_price=Decimal(selling_price) if selling_price is not None else None,
            sku=sku,
            is_active=is_active,
        )
    )
    session.commit()


def _axis(resolution) -> list[tuple[str, str, Decimal, Decimal]]:
    return [(item.size, item.color, item.selling_price, item.production_cost) for item in resolution.variants]


def test_override_mode_hides_catalog_variants_without_overrides(db_session: Session) -> None:
    product, variants = _seed_product(db_session, [("M", "Red", "100", True), ("L", "Red", "110", True)])
    listing = _listing(db_session, product.id, selling_price="250")

    before = resolve_variants(db_session, listing)
    assert before.mode == MODE_FALLBACK
    assert _axis(before) == [
        ("L", "Red", Decimal("250.00"), Decimal("110.00")),
        ("M", "Red", Decimal("250.00"), Decimal("100.00")),
    ]

    _override(db_session, listing, variants[("M", "Red")].id, selling_price="230")

    after = resolve_variants(db_session, listing)
    assert after.mode == MODE_OVERRIDE
    # L/Red stays active in the catalog but drops out of the listing entirely
    assert _axis(after) == [("M", "Red", Decimal("230.00"), Decimal("100.00"))]


def test_resolution_is_deterministic(db_session: Session) -> None:
    product, _ = _seed_product(
        db_session,
        [("XL", "Blue", None, True), ("M", "Red", None, True), ("M", "Blue", None, True), ("L", "Red", None, True)],
    )
    listing = _listing(db_session, product.id)

    first = resolve_variants(db_session, listing)
    second = resolve_variants(db_session, listing)

    assert first.summary() == second.summary()
    assert [(item.size, item.color) for item in first.variants] == [
        ("L", "Red"),
        ("M", "Blue"),
        ("M", "Red"),
        ("XL", "Blue"),
    ]


def test_fallback_returns_every_active_variant_at_the_listing_price(db_session: Session) -> None:
    product, _ = _seed_product(
        db_session,
        [("S", "Black", None, True), ("M", "Black", "95.50", True), ("L", "Black", None, True), ("XL", "Black", None, False)],
    )
    listing = _listing(db_session, product.id, selling_price="199.99")

    resolution = resolve_variants(db_session, listing)

    assert resolution.mode == MODE_FALLBACK
    assert len(resolution.variants) == 3
    assert {item.selling_price for item in resolution.variants} == {Decimal("199.99")}
    costs = {item.size: item.production_cost for item in resolution.variants}
    assert costs == {"S": Decimal("90.00"), "M": Decimal("95.50"), "L": Decimal("90.00")}


def test_fallback_applies_design_editor_selection(db_session: Session) -> None:
    product, _ = _seed_product(
        db_session,
        [("M", "Red", None, True), ("L", "Red", None, True), ("M", "Blue", None, True), ("L", "Blue", None, True)],
    )
    by_color = _listing(db_session, product.id, design_data={"selectedColors": ["Red"]})
    by_both = _listing(db_session, product.id, design_data={"selectedColors": ["Blue"], "selectedSizes": ["L"]})
    empty_filter = _listing(db_session, product.id, design_data={"selectedColors": [], "selectedSizes": "M"})

    assert [(item.size, item.color) for item in resolve_variants(db_session, by_color).variants] == [("L", "Red"), ("M", "Red")]
    assert [(item.size, item.color) for item in resolve_variants(db_session, by_both).variants] == [("L", "Blue")]
    assert len(resolve_variants(db_session, empty_filter).variants) == 4


def test_override_fields_fall_back_to_listing_and_catalog(db_session: Session) -> None:
    product, variants = _seed_product(db_session, [("M", "Red", None, True), ("L", "Red", "120", True)])
    listing = _listing(db_session, product.id, selling_price="250")
    _override(db_session, listing, variants[("M", "Red")].id)
    _override(db_session, listing, variants[("L", "Red")].id, selling_price="275", sku="MY-SKU-L")

    resolved = {item.size: item for item in resolve_variants(db_session, listing).variants}

    assert resolved["M"].sku == "TSHIRT-M-Red"
    assert resolved["M"].selling_price == Decimal("250.00")
    assert resolved["M"].production_cost == Decimal("90.00")
    assert resolved["L"].sku == "MY-SKU-L"
    assert resolved["L"].selling_price == Decimal("275.00")
    assert resolved["L"].production_cost == Decimal("120.00")


def test_inactive_overrides_do_not_switch_to_override_mode(db_session: Session) -> None:
    product, variants = _seed_product(db_session, [("M", "Red", None, True), ("L", "Red", None, True)])
    listing = _listing(db_session, product.id)
    _override(db_session, listing, variants[("M", "Red")].id, selling_price="10", is_active=False)

    resolution = resolve_variants(db_session, listing)

    assert resolution.mode == MODE_FALLBACK
    assert len(resolution.variants) == 2


def test_overrides_pointing_outside_the_product_are_ignored(db_session: Session) -> None:
    product, _ = _seed_product(db_session, [("M", "Red", None, True)])
    other, other_variants = _seed_product(db_session, [("S", "Green", None, True)])
    listing = _listing(db_session, product.id)
    _override(db_session, listing, other_variants[("S", "Green")].id, selling_price="5")
    _override(db_session, listing, uuid.uuid4(), selling_price="6")

    resolution = resolve_variants(db_session, listing)

    assert resolution.mode == MODE_FALLBACK
    assert [(item.size, item.color) for item in resolution.variants] == [("M", "Red")]
    assert other.id != product.id


def test_override_mode_keeps_catalog_inactive_variants(db_session: Session) -> None:
    product, variants = _seed_product(db_session, [("M", "Red", None, False), ("L", "Red", None, True)])
    listing = _listing(db_session, product.id)
    _override(db_session, listing, variants[("M", "Red")].id, selling_price="240")

    resolution = resolve_variants(db_session, listing)

    assert resolution.mode == MODE_OVERRIDE
    assert [(item.size, item.selling_price) for item in resolution.variants] == [("M", Decimal("240.00"))]


def test_missing_catalog_product_resolves_to_dangling_reference(db_session: Session) -> None:
    missing_id = uuid.uuid4()
    listing = _listing(db_session, missing_id)

    resolution = resolve_variants(db_session, listing)

    assert resolution.mode == MODE_DANGLING
    assert resolution.variants == []
    assert isinstance(resolution.dangling_reference, DanglingReference)
    assert resolution.dangling_reference.catalog_product_id == missing_id
    assert resolution.dangling_reference.details["listing_id"] == str(listing.id)


def test_summary_serializes_ids_and_money_as_strings(db_session: Session) -> None:
    product, variants = _seed_product(db_session, [("M", "Red", "100", True)])
    listing = _listing(db_session, product.id, selling_price="19.5")

    summary = resolve_variants(db_session, listing).summary()

    assert summary == [
        {
            "catalog_variant_id": str(variants[("M", "Red")].id),
            "size": "M",
            "color": "Red",
            "color_hex": None,
            "sku": "TSHIRT-M-Red",
            "selling_price": "19.50",
            "production_cost": "100.00",
        }
    ]


def test_to_money_rounds_half_up() -> None:
    assert to_money("10.005") == Decimal("10.01")
    assert to_money(Decimal("10.004")) == Decimal("10.00")
    assert to_money(7) == Decimal("7.00")
