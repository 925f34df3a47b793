from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Generator
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.business.catalog.models import CatalogProduct, CatalogProductVariant
from app.business.catalog.schemas import CatalogVariantCreate, CatalogVariantUpdate
from app.business.catalog.service import CatalogService
from app.business.storefront.models import Store, StoreProduct, StoreProductVariant
from app.business.storefront.projection import (
    ListingLockRegistry,
    listing_lock,
    listing_locks,
    lock_registry,
    resync_catalog_product,
    sync_variants_summary,
)
from app.business.storefront.resolution import resolve_variants
from app.business.storefront.schemas import ListingUpdate, ListingUpsert, ListingVariantInput, VariantOverrideUpsert
from app.business.storefront.service import StorefrontService
from app.core.database import Base
from app.platform.errors import Conflict, NotFound, ValidationError
from app.platform.security.context import AuthContext


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


def _admin() -> AuthContext:
    return AuthContext(user_id="admin-1", role="superadmin")


def _seed(session: Session) -> tuple[CatalogProduct, list[CatalogProductVariant], Store]:
    product = CatalogProduct(
        name="Classic Tee",
        description="Cotton tee",
        category_id="apparel",
        product_type_code="TSHIRT",
        base_price=Decimal("100.00"),
        is_published=True,
    )
    session.add(product)
    session.flush()
    variants = [
        CatalogProductVariant(catalog_product_id=product.id, size=size, color=color, sku_template=f"TSHIRT-{size}-{color}")
        for size, color in (("M", "Red"), ("L", "Red"), ("M", "Blue"))
    ]
    session.add_all(variants)
    store = Store(name="Shop", slug=f"shop-{uuid.uuid4().hex[:8]}", owner_user_id="merchant-1")
    session.add(store)
    session.commit()
    return product, variants, store


def _merchant(store: Store) -> AuthContext:
    return AuthContext(user_id="merchant-1", role="merchant", owned_store_ids=[store.id])


def _assert_fresh(session: Session, listing_id: uuid.UUID) -> list[dict]:
    listing = session.get(StoreProduct, listing_id, populate_existing=True)
    assert listing is not None
    expected = resolve_variants(session, listing).summary()
    assert listing.variants_summary == expected
    return listing.variants_summary


def test_listing_writes_keep_summary_in_step(db_session: Session) -> None:
    storefront = StorefrontService()
    product, variants, store = _seed(db_session)
    ctx = _merchant(store)

    created = storefront.upsert_listing(
        db_session,
        ctx,
        ListingUpsert(catalog_product_id=product.id, selling_price=Decimal("250.00")),
    )
    assert created.store_id == store.id
    assert len(_assert_fresh(db_session, created.id)) == 3

    storefront.update_listing(db_session, ctx, created.id, ListingUpdate(selling_price=Decimal("260.00")))
    assert {item["selling_price"] for item in _assert_fresh(db_session, created.id)} == {"260.00"}

    storefront.update_listing(db_session, ctx, created.id, ListingUpdate(design_data={"selectedColors": ["Red"]}))
    assert [item["size"] for item in _assert_fresh(db_session, created.id)] == ["L", "M"]

    storefront.upsert_variant_override(
        db_session,
        ctx,
        created.id,
        variants[0].id,
        VariantOverrideUpsert(selling_price=Decimal("230.00")),
    )
    summary = _assert_fresh(db_session, created.id)
    assert [(item["size"], item["color"], item["selling_price"]) for item in summary] == [("M", "Red", "230.00")]

    storefront.set_status(db_session, ctx, created.id, "published")
    _assert_fresh(db_session, created.id)


def test_catalog_writes_resync_referencing_listings(db_session: Session) -> None:
    storefront = StorefrontService()
    catalog = CatalogService()
    product, variants, store = _seed(db_session)
    listing = storefront.upsert_listing(
        db_session,
        _merchant(store),
        ListingUpsert(catalog_product_id=product.id, selling_price=Decimal("250.00")),
    )

    catalog.create_catalog_variant(db_session, _admin(), product.id, CatalogVariantCreate(size="S", color="Red"))
    assert len(_assert_fresh(db_session, listing.id)) == 4

    catalog.deactivate_variant(db_session, _admin(), variants[1].id)
    assert len(_assert_fresh(db_session, listing.id)) == 3

    catalog.update_catalog_variant(db_session, _admin(), variants[2].id, CatalogVariantUpdate(base_price=Decimal("80.00")))
    costs = {(item["size"], item["color"]): item["production_cost"] for item in _assert_fresh(db_session, listing.id)}
    assert costs[("M", "Blue")] == "80.00"

    catalog.delete_variant(db_session, _admin(), variants[0].id)
    assert [(item["size"], item["color"]) for item in _assert_fresh(db_session, listing.id)] == [("M", "Blue"), ("S", "Red")]


def test_hard_deleted_product_leaves_empty_summary(db_session: Session) -> None:
    storefront = StorefrontService()
    product, _, store = _seed(db_session)
    listing = storefront.upsert_listing(
        db_session,
        _merchant(store),
        ListingUpsert(catalog_product_id=product.id, selling_price=Decimal("250.00")),
    )

    result = CatalogService().delete_product(db_session, _admin(), product.id)

    assert result.outcome == "deleted"
    assert _assert_fresh(db_session, listing.id) == []


def test_upsert_rejects_variants_of_another_product(db_session: Session) -> None:
    storefront = StorefrontService()
    product, _, store = _seed(db_session)
    other = CatalogProductVariant(catalog_product_id=uuid.uuid4(), size="S", color="Green", sku_template="X-S-Green")
    db_session.add(other)
    db_session.commit()

    with pytest.raises(ValidationError):
        storefront.upsert_listing(
            db_session,
            _merchant(store),
            ListingUpsert(
                catalog_product_id=product.id,
                selling_price=Decimal("250.00"),
                variants=[ListingVariantInput(catalog_variant_id=other.id)],
            ),
        )


def test_resync_catalog_product_counts_listings(db_session: Session) -> None:
    product, _, store = _seed(db_session)
    second_store = Store(name="Second", slug=f"second-{uuid.uuid4().hex[:8]}", owner_user_id="merchant-2")
    db_session.add(second_store)
    db_session.flush()
    for owner in (store, second_store):
        db_session.add(StoreProduct(store_id=owner.id, catalog_product_id=product.id, selling_price=Decimal("10.00")))
    db_session.commit()

    assert resync_catalog_product(db_session, product.id) == 2
    db_session.commit()
    assert resync_catalog_product(db_session, uuid.uuid4()) == 0


def test_sync_missing_listing_raises_not_found(db_session: Session) -> None:
    with pytest.raises(NotFound):
        sync_variants_summary(db_session, uuid.uuid4())


def test_public_read_repairs_empty_summary(db_session: Session, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    product, _, store = _seed(db_session)
    listing = StoreProduct(
        store_id=store.id,
        catalog_product_id=product.id,
        selling_price=Decimal("120.00"),
        status="published",
        variants_summary=[],
    )
    db_session.add(listing)
    db_session.commit()

    public = StorefrontService().get_public_listing(db_session, store.id, listing.id)

    assert len(public.variants) == 3
    assert public.title == "Classic Tee"
    assert _assert_fresh(db_session, listing.id)
    assert any(record.getMessage() == "projection.lazy_repair" for record in caplog.records)


def test_lock_registry_is_reentrant_and_drops_idle_keys() -> None:
    registry = ListingLockRegistry()
    listing_id = uuid.uuid4()

    with registry.hold(listing_id):
        with registry.hold(listing_id):
            assert registry.active_keys() == [str(listing_id)]
        assert registry.active_keys() == [str(listing_id)]

    assert registry.active_keys() == []


def test_listing_locks_release_every_key() -> None:
    ids = [uuid.uuid4() for _ in range(3)]
    with listing_locks(ids + ids[:1]):
        assert sorted(lock_registry.active_keys()) == sorted(str(item) for item in ids)
    assert not set(lock_registry.active_keys()) & {str(item) for item in ids}


def test_sync_waits_for_pending_write_on_same_listing() -> None:
    listing_id = uuid.uuid4()
    order: list[str] = []
    entered = threading.Event()
    release = threading.Event()

    def writer() -> None:
        with listing_lock(listing_id):
            entered.set()
            release.wait(timeout=5)
            order.append("write")

    def syncer() -> None:
        entered.wait(timeout=5)
        with listing_lock(listing_id):
            order.append("sync")

    threads = [threading.Thread(target=writer), threading.Thread(target=syncer)]
    for thread in threads:
        thread.start()

    entered.wait(timeout=5)
    time.sleep(0.05)
    assert order == []

    release.set()
    for thread in threads:
        thread.join(timeout=5)
    assert order == ["write", "sync"]


def test_concurrent_override_and_catalog_writes_end_consistent(tmp_path: Path) -> None:
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'projection.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    Base.metadata.create_all(bind=engine)

    with factory() as session:
        product, variants, store = _seed(session)
        listing = StorefrontService().upsert_listing(
            session,
            _merchant(store),
            ListingUpsert(catalog_product_id=product.id, selling_price=Decimal("250.00")),
        )
    variant_ids = [variant.id for variant in variants]

    barrier = threading.Barrier(3)
    errors: list[Exception] = []

    def run(action) -> None:
        barrier.wait(timeout=5)
        try:
            with factory() as session:
                action(session)
        except Exception as exc:
            errors.append(exc)

    actions = [
        lambda session: StorefrontService().upsert_variant_override(
            session, _merchant(store), listing.id, variant_ids[0], VariantOverrideUpsert(selling_price=Decimal("230.00"))
        ),
        lambda session: StorefrontService().upsert_variant_override(
            session, _merchant(store), listing.id, variant_ids[2], VariantOverrideUpsert(selling_price=Decimal("240.00"))
        ),
        lambda session: CatalogService().update_catalog_variant(
            session, _admin(), variant_ids[2], CatalogVariantUpdate(base_price=Decimal("70.00"))
        ),
    ]
    threads = [threading.Thread(target=run, args=(action,)) for action in actions]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    with factory() as session:
        summary = _assert_fresh(session, listing.id)
    assert [(item["size"], item["color"], item["selling_price"], item["production_cost"]) for item in summary] == [
        ("M", "Blue", "240.00", "70.00"),
        ("M", "Red", "230.00", "100.00"),
    ]
    engine.dispose()


def test_upsert_by_id_keeps_fields_it_was_not_sent(db_session: Session) -> None:
    storefront = StorefrontService()
    product, _, store = _seed(db_session)
    ctx = _merchant(store)
    created = storefront.upsert_listing(
        db_session,
        ctx,
        ListingUpsert(
            catalog_product_id=product.id,
            selling_price=Decimal("250.00"),
            title="My Tee",
            tags=["summer"],
            design_data={"selectedColors": ["Red"]},
        ),
    )

    updated = storefront.upsert_listing(
        db_session,
        ctx,
        ListingUpsert(id=created.id, catalog_product_id=product.id, selling_price=Decimal("260.00")),
    )

    assert updated.title == "My Tee"
    assert updated.tags == ["summer"]
    assert updated.design_data == {"selectedColors": ["Red"]}
    summary = _assert_fresh(db_session, created.id)
    assert [(item["size"], item["color"], item["selling_price"]) for item in summary] == [
        ("L", "Red", "260.00"),
        ("M", "Red", "260.00"),
    ]

    merged = storefront.upsert_listing(
        db_session,
        ctx,
        ListingUpsert(
            id=created.id,
            catalog_product_id=product.id,
            selling_price=Decimal("260.00"),
            design_data={"placement": "front"},
        ),
    )
    assert merged.design_data == {"selectedColors": ["Red"], "placement": "front"}


def test_toggling_an_override_keeps_its_price_and_sku(db_session: Session) -> None:
    storefront = StorefrontService()
    product, variants, store = _seed(db_session)
    ctx = _merchant(store)
    listing = storefront.upsert_listing(
        db_session,
        ctx,
        ListingUpsert(catalog_product_id=product.id, selling_price=Decimal("250.00")),
    )
    large_red = variants[1]
    storefront.upsert_variant_override(
        db_session,
        ctx,
        listing.id,
        large_red.id,
        VariantOverrideUpsert(selling_price=Decimal("240.00"), sku="MY-L-RED"),
    )

    storefront.update_listing(
        db_session,
        ctx,
        listing.id,
        ListingUpdate(variants=[ListingVariantInput(catalog_variant_id=large_red.id, is_active=False)]),
    )
    assert len(_assert_fresh(db_session, listing.id)) == 3

    storefront.update_listing(
        db_session,
        ctx,
        listing.id,
        ListingUpdate(variants=[ListingVariantInput(catalog_variant_id=large_red.id, is_active=True)]),
    )
    summary = _assert_fresh(db_session, listing.id)
    assert [(item["size"], item["sku"], item["selling_price"]) for item in summary] == [("L", "MY-L-RED", "240.00")]


def test_override_insert_that_loses_the_race_updates_in_place(db_session: Session) -> None:
    storefront = StorefrontService()
    product, variants, store = _seed(db_session)
    ctx = _merchant(store)
    listing = storefront.upsert_listing(
        db_session,
        ctx,
        ListingUpsert(catalog_product_id=product.id, selling_price=Decimal("250.00")),
    )
    storefront.upsert_variant_override(
        db_session,
        ctx,
        listing.id,
        variants[0].id,
        VariantOverrideUpsert(selling_price=Decimal("240.00")),
    )

    override = storefront._insert_override(
        db_session,
        listing.id,
        ListingVariantInput(catalog_variant_id=variants[0].id, is_active=False),
    )
    db_session.commit()

    assert override.selling_price == Decimal("240.00")
    assert override.is_active is False
    rows = db_session.scalars(
        select(StoreProductVariant).where(StoreProductVariant.store_product_id == listing.id)
    ).all()
    assert len(rows) == 1


def test_failed_override_commit_is_not_reported_as_duplicate_listing(db_session: Session) -> None:
    storefront = StorefrontService()
    product, variants, store = _seed(db_session)
    listing = storefront.upsert_listing(
        db_session,
        _merchant(store),
        ListingUpsert(catalog_product_id=product.id, selling_price=Decimal("250.00")),
    )
    row = db_session.get(StoreProduct, listing.id)
    db_session.add_all(
        [
            StoreProductVariant(store_product_id=listing.id, catalog_product_variant_id=variants[0].id),
            StoreProductVariant(store_product_id=listing.id, catalog_product_variant_id=variants[0].id),
        ]
    )

    with pytest.raises(Conflict) as excinfo:
        storefront._commit(db_session, row)

    assert excinfo.value.message == "listing was changed by a concurrent write"
    assert excinfo.value.details == {"listing_id": str(listing.id)}


def test_update_listing_merges_into_latest_design_data(db_session: Session) -> None:
    storefront = StorefrontService()
    product, _, store = _seed(db_session)
    ctx = _merchant(store)
    listing = storefront.upsert_listing(
        db_session,
        ctx,
        ListingUpsert(catalog_product_id=product.id, selling_price=Decimal("250.00"), design_data={"placement": "front"}),
    )

    other = Session(bind=db_session.get_bind(), autoflush=False, expire_on_commit=False)
    try:
        storefront.update_listing(other, ctx, listing.id, ListingUpdate(design_data={"selectedColors": ["Red"]}))
    finally:
        other.close()

    updated = storefront.update_listing(db_session, ctx, listing.id, ListingUpdate(design_data={"note": "gift"}))

    assert updated.design_data == {"placement": "front", "selectedColors": ["Red"], "note": "gift"}
    assert [item["color"] for item in _assert_fresh(db_session, listing.id)] == ["Red", "Red"]
