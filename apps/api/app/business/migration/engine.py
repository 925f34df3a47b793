"""One-shot migration from the legacy single-table product model.

Every step is check-then-create, so the job can be re-run after an
interruption without duplicating stores, listings or variants. Each legacy
entity is committed on its own; a failure is logged, collected in the
report and the batch moves on.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from app.business.catalog.models import CatalogProduct, CatalogProductVariant
from app.business.catalog.service import default_sku
from app.business.migration.legacy_models import LegacyProduct, LegacyProductVariant
from app.business.storefront.models import Store, StoreProduct, StoreProductVariant
from app.business.storefront.projection import sync_variants_summary
from app.business.storefront.resolution import to_money
from app.core.config import Settings, get_settings
from app.core.database import SessionLocal, session_scope
from app.metrics import observe_migration_entity
from app.models.user import User

logger = logging.getLogger("app.migration")

STEP_USERS = "users"
STEP_CATALOG_PRODUCTS = "catalog_products"
STEP_CATALOG_VARIANTS = "catalog_variants"
STEP_STORES = "stores"
STEP_LISTINGS = "listings"
STEP_LISTING_VARIANTS = "listing_variants"

STEPS = (
    STEP_USERS,
    STEP_CATALOG_PRODUCTS,
    STEP_CATALOG_VARIANTS,
    STEP_STORES,
    STEP_LISTINGS,
    STEP_LISTING_VARIANTS,
)

DEFAULT_SHIPPING = {
    "package_length_cm": 10,
    "package_width_cm": 10,
    "package_height_cm": 10,
    "package_weight_grams": 100,
}


def _zero_counts() -> dict[str, int]:
    return {step: 0 for step in STEPS}


@dataclass
class MigrationFailure:
    step: str
    entity_id: str
    error: str


@dataclass
class MigrationReport:
    created: dict[str, int] = field(default_factory=_zero_counts)
    skipped: dict[str, int] = field(default_factory=_zero_counts)
    image_warnings: int = 0
    failures: list[MigrationFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def as_dict(self) -> dict[str, Any]:
        return {
            "created": dict(self.created),
            "skipped": dict(self.skipped),
            "image_warnings": self.image_warnings,
            "failures": [failure.__dict__ for failure in self.failures],
        }


def store_slug(name: str, user_id: uuid.UUID | str) -> str:
    base = re.sub(r"[^a-z0-9-]", "", re.sub(r"\s+", "-", name.lower()))
    return f"{base}-{str(user_id)[-6:]}"


def _snake_keys(payload: dict[str, Any]) -> dict[str, Any]:
    return {re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower(): value for key, value in payload.items()}


def _is_inline_data(url: Any) -> bool:
    return isinstance(url, str) and url.startswith("data:")


class MigrationEngine:
    def __init__(self, session_factory: sessionmaker[Session] | None = None, settings: Settings | None = None) -> None:
        self._session_factory = session_factory or SessionLocal
        self._settings = settings or get_settings()

    def run(self) -> MigrationReport:
        report = MigrationReport()
        logger.info("migration.started", extra={"step": "start"})

        self._promote_admins(report)
        self._migrate_products(report)
        self._migrate_merchants(report)

        logger.info(
            "migration.finished",
            extra={
                "step": "finish",
                "counts": report.as_dict()["created"],
                "warnings": report.image_warnings,
                "error_kind": "partial_failure" if report.failures else None,
            },
        )
        return report

    def _fail(self, report: MigrationReport, step: str, entity_id: Any, exc: Exception) -> None:
        report.failures.append(MigrationFailure(step=step, entity_id=str(entity_id), error=str(exc)[:500]))
        observe_migration_entity(step, "failed")
        logger.error(
            "migration.entity_failed",
            exc_info=exc,
            extra={"step": step, "entity_id": str(entity_id), "error": str(exc)[:500]},
        )

    def _count(self, report: MigrationReport, step: str, outcome: str, count: int = 1) -> None:
        if count <= 0:
            return
        bucket = report.created if outcome == "created" else report.skipped
        bucket[step] += count
        observe_migration_entity(step, outcome, count)

    def _promote_admins(self, report: MigrationReport) -> None:
        try:
            with session_scope(self._session_factory) as session:
                result = session.execute(update(User).where(User.role == "admin").values(role="superadmin"))
                promoted = result.rowcount or 0
        except Exception as exc:
            self._fail(report, STEP_USERS, "admin", exc)
            return
        self._count(report, STEP_USERS, "created", promoted)
        logger.info("migration.users_promoted", extra={"step": STEP_USERS, "counts": {"promoted": promoted}})

    def _migrate_products(self, report: MigrationReport) -> None:
        with self._session_factory() as session:
            legacy_ids = list(session.scalars(select(LegacyProduct.id).order_by(LegacyProduct.created_at, LegacyProduct.id)).all())

        for legacy_id in legacy_ids:
            try:
                with session_scope(self._session_factory) as session:
                    legacy = session.get(LegacyProduct, legacy_id)
                    product, created, warnings = self._catalog_product_for(session, legacy)
                    variants_created, variants_skipped, variant_failures = self._catalog_variants_for(session, legacy, product)
            except Exception as exc:
                self._fail(report, STEP_CATALOG_PRODUCTS, legacy_id, exc)
                continue

            self._count(report, STEP_CATALOG_PRODUCTS, "created" if created else "skipped")
            self._count(report, STEP_CATALOG_VARIANTS, "created", variants_created)
            self._count(report, STEP_CATALOG_VARIANTS, "skipped", variants_skipped)
            report.image_warnings += warnings
            for entity_id, exc in variant_failures:
                self._fail(report, STEP_CATALOG_VARIANTS, entity_id, exc)

    def _strip_inline_images(self, legacy: LegacyProduct) -> tuple[list[dict[str, Any]], list[dict[str, Any]], int]:
        warnings = 0
        views: list[dict[str, Any]] = []
        for view in (legacy.design or {}).get("views") or []:
            url = view.get("mockupImageUrl") or ""
            if _is_inline_data(url):
                warnings += 1
                logger.warning(
                    "migration.inline_image",
                    extra={"step": STEP_CATALOG_PRODUCTS, "entity_id": str(legacy.id), "error_kind": "mockup"},
                )
                url = ""
            views.append({"key": view.get("key"), "mockup_image_url": url, "placeholders": view.get("placeholders") or []})

        gallery: list[dict[str, Any]] = []
        for image in legacy.gallery_images or []:
            url = image.get("url") or ""
            if _is_inline_data(url):
                warnings += 1
                logger.warning(
                    "migration.inline_image",
                    extra={"step": STEP_CATALOG_PRODUCTS, "entity_id": str(legacy.id), "error_kind": "gallery"},
                )
                url = ""
            gallery.append(
                {
                    "id": image.get("id") or str(uuid.uuid4()),
                    "url": url,
                    "position": image.get("position") or 0,
                    "is_primary": bool(image.get("isPrimary")),
                    "image_type": image.get("imageType") or "other",
                    "alt_text": image.get("altText") or "",
                }
            )
        return views, gallery, warnings

    def _catalog_product_for(self, session: Session, legacy: LegacyProduct) -> tuple[CatalogProduct, bool, int]:
        existing = session.scalar(select(CatalogProduct).where(CatalogProduct.legacy_product_id == legacy.id))
        if existing is not None:
            return existing, False, 0

        catalogue = legacy.catalogue or {}
        design = legacy.design or {}
        views, gallery, warnings = self._strip_inline_images(legacy)

        product = CatalogProduct(
            name=catalogue.get("name") or "Untitled Product",
            description=catalogue.get("description") or "",
            category_id=catalogue.get("categoryId") or "apparel",
            subcategory_ids=list(catalogue.get("subcategoryIds") or []),
            product_type_code=catalogue.get("productTypeCode") or "PRODUCT",
            tags=list(catalogue.get("tags") or []),
            attributes=dict(catalogue.get("attributes") or {}),
            base_price=Decimal(str(catalogue.get("basePrice") or 0)),
            design={
                "views": views,
                "dpi": design.get("dpi") or 300,
                "physical_dimensions": design.get("physicalDimensions"),
            },
            shipping=_snake_keys(legacy.shipping) if legacy.shipping else dict(DEFAULT_SHIPPING),
            gallery_images=gallery,
            details=dict(legacy.details or {}),
            created_by=legacy.created_by,
            is_active=legacy.is_active,
            is_published=legacy.is_active,
            legacy_product_id=legacy.id,
            created_at=legacy.created_at,
        )
        session.add(product)
        session.flush()
        logger.info(
            "migration.catalog_product_created",
            extra={"step": STEP_CATALOG_PRODUCTS, "entity_id": str(legacy.id), "catalog_product_id": str(product.id)},
        )
        return product, True, warnings

    def _legacy_variant_rows(self, session: Session, legacy: LegacyProduct, product: CatalogProduct) -> list[dict[str, Any]]:
        """Variant source priority: legacy variant table, embedded array, then the size x color axis."""

        rows = session.scalars(
            select(LegacyProductVariant)
            .where(LegacyProductVariant.product_id == legacy.id)
            .order_by(LegacyProductVariant.size, LegacyProductVariant.color)
        ).all()
        if rows:
            return [{"size": row.size, "color": row.color, "sku": row.sku, "is_active": row.is_active} for row in rows]

        embedded = [item for item in legacy.variants or [] if item.get("size") and item.get("color")]
        if embedded:
            return [
                {
                    "size": item["size"],
                    "color": item["color"],
                    "sku": item.get("sku"),
                    "is_active": item.get("isActive", True) is not False,
                }
                for item in embedded
            ]

        sizes = legacy.available_sizes or self._settings.migration_default_sizes
        colors = legacy.available_colors or self._settings.migration_default_colors
        return [
            {"size": size, "color": color, "sku": default_sku(product.product_type_code, size, color), "is_active": True}
            for size in sizes
            for color in colors
        ]

    def _catalog_variants_for(
        self,
        session: Session,
        legacy: LegacyProduct,
        product: CatalogProduct,
    ) -> tuple[int, int, list[tuple[str, Exception]]]:
        created = 0
        skipped = 0
        failures: list[tuple[str, Exception]] = []
        for row in self._legacy_variant_rows(session, legacy, product):
            existing = session.scalar(
                select(CatalogProductVariant.id).where(
                    CatalogProductVariant.catalog_product_id == product.id,
                    CatalogProductVariant.size == row["size"],
                    CatalogProductVariant.color == row["color"],
                )
            )
            if existing is not None:
                skipped += 1
                continue

            variant = CatalogProductVariant(
                catalog_product_id=product.id,
                size=row["size"],
                color=row["color"],
                sku_template=row["sku"] or default_sku(product.product_type_code, row["size"], row["color"]),
                is_active=row["is_active"],
            )
            try:
                with session.begin_nested():
                    session.add(variant)
            except IntegrityError as exc:
                failures.append((f"{legacy.id}:{row['size']}/{row['color']}", exc))
                continue
            created += 1
        return created, skipped, failures

    def _migrate_merchants(self, report: MigrationReport) -> None:
        with self._session_factory() as session:
            merchant_ids = list(
                session.scalars(select(User.id).where(User.role == "merchant").order_by(User.created_at, User.id)).all()
            )

        for merchant_id in merchant_ids:
            try:
                with session_scope(self._session_factory) as session:
                    merchant = session.get(User, merchant_id)
                    store, created = self._store_for(session, merchant)
                    store_id = store.id
            except Exception as exc:
                self._fail(report, STEP_STORES, merchant_id, exc)
                continue
            self._count(report, STEP_STORES, "created" if created else "skipped")

            with self._session_factory() as session:
                product_ids = list(
                    session.scalars(
                        select(CatalogProduct.id)
                        .where(CatalogProduct.created_by == str(merchant_id))
                        .order_by(CatalogProduct.created_at, CatalogProduct.id)
                    ).all()
                )

            for product_id in product_ids:
                try:
                    with session_scope(self._session_factory) as session:
                        listing_created, overrides = self._listing_for(session, store_id, product_id)
                except Exception as exc:
                    self._fail(report, STEP_LISTINGS, product_id, exc)
                    continue
                self._count(report, STEP_LISTINGS, "created" if listing_created else "skipped")
                self._count(report, STEP_LISTING_VARIANTS, "created", overrides)

    def _store_for(self, session: Session, merchant: User) -> tuple[Store, bool]:
        owner = str(merchant.id)
        store = session.scalars(
            select(Store).where(Store.owner_user_id == owner, Store.type == "native").order_by(Store.created_at)
        ).first()
        if store is not None:
            return store, False

        store = Store(
            name=f"{merchant.name}'s Store",
            slug=store_slug(merchant.name, merchant.id),
            owner_user_id=owner,
            type="native",
            is_active=merchant.is_active,
        )
        session.add(store)
        session.flush()
        logger.info("migration.store_created", extra={"step": STEP_STORES, "entity_id": owner, "store_id": str(store.id)})
        return store, True

    def _listing_for(self, session: Session, store_id: uuid.UUID, catalog_product_id: uuid.UUID) -> tuple[bool, int]:
        existing = session.scalar(
            select(StoreProduct.id).where(
                StoreProduct.store_id == store_id,
                StoreProduct.catalog_product_id == catalog_product_id,
            )
        )
        if existing is not None:
            return False, 0

        product = session.get(CatalogProduct, catalog_product_id)
        listing = StoreProduct(
            store_id=store_id,
            catalog_product_id=product.id,
            selling_price=to_money(product.base_price * self._settings.default_listing_markup),
            is_active=product.is_active and product.is_published,
            status="draft",
            created_at=product.created_at,
        )
        session.add(listing)
        session.flush()

        variants = session.scalars(
            select(CatalogProductVariant).where(CatalogProductVariant.catalog_product_id == product.id)
        ).all()
        for variant in variants:
            session.add(
                StoreProductVariant(
                    store_product_id=listing.id,
                    catalog_product_variant_id=variant.id,
                    sku=variant.sku_template,
                    is_active=variant.is_active,
                )
            )

        sync_variants_summary(session, listing.id, trigger="migration")
        logger.info(
            "migration.listing_created",
            extra={"step": STEP_LISTINGS, "listing_id": str(listing.id), "store_id": str(store_id), "variant_count": len(variants)},
        )
        return True, len(variants)
