"""Variant resolution for tenant listings.

A listing either pins an explicit subset of catalog variants through active
override rows (override mode) or exposes every active catalog variant of its
product, optionally narrowed by the colors and sizes picked in the design
editor (fallback mode). The result is deterministic for a given database
state and is what ``variants_summary`` caches.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.business.catalog.models import CatalogProduct, CatalogProductVariant
from app.business.storefront.models import StoreProduct, StoreProductVariant
from app.metrics import observe_dangling_reference, observe_variant_resolution
from app.platform.errors import DanglingReference

logger = logging.getLogger("app.storefront")
tracer = trace.get_tracer("app.storefront.resolution")

MODE_OVERRIDE = "override"
MODE_FALLBACK = "fallback"
MODE_DANGLING = "dangling"

_CENT = Decimal("0.01")


def to_money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class ResolvedVariant:
    catalog_variant_id: uuid.UUID
    size: str
    color: str
    color_hex: str | None
    sku: str
    selling_price: Decimal
    production_cost: Decimal

    def to_summary(self) -> dict[str, Any]:
        return {
            "catalog_variant_id": str(self.catalog_variant_id),
            "size": self.size,
            "color": self.color,
            "color_hex": self.color_hex,
            "sku": self.sku,
            "selling_price": str(self.selling_price),
            "production_cost": str(self.production_cost),
        }


@dataclass(frozen=True, slots=True)
class VariantResolution:
    variants: list[ResolvedVariant] = field(default_factory=list)
    mode: str = MODE_FALLBACK
    dangling_reference: DanglingReference | None = None

    def summary(self) -> list[dict[str, Any]]:
        return [variant.to_summary() for variant in self.variants]


def _selected_values(design_data: dict[str, Any] | None, key: str) -> set[str] | None:
    if not isinstance(design_data, dict):
        return None
    values = design_data.get(key)
    if not isinstance(values, list) or not values:
        return None
    return {str(item) for item in values}


def _sort_key(variant: ResolvedVariant) -> tuple[str, str]:
    return (variant.size, variant.color)


def _resolve_overrides(
    session: Session,
    listing: StoreProduct,
    product: CatalogProduct,
) -> list[ResolvedVariant]:
    rows = session.execute(
        select(StoreProductVariant, CatalogProductVariant)
        .join(CatalogProductVariant, CatalogProductVariant.id == StoreProductVariant.catalog_product_variant_id)
        .where(
            StoreProductVariant.store_product_id == listing.id,
            StoreProductVariant.is_active.is_(True),
            CatalogProductVariant.catalog_product_id == product.id,
        )
    ).all()

    resolved: list[ResolvedVariant] = []
    for override, variant in rows:
        selling_price = override.selling_price if override.selling_price is not None else listing.selling_price
        production_cost = variant.base_price if variant.base_price is not None else product.base_price
        resolved.append(
            ResolvedVariant(
                catalog_variant_id=variant.id,
                size=variant.size,
                color=variant.color,
                color_hex=variant.color_hex,
                sku=override.sku or variant.sku_template,
                selling_price=to_money(selling_price),
                production_cost=to_money(production_cost),
            )
        )
    return resolved


def _resolve_fallback(
    session: Session,
    listing: StoreProduct,
    product: CatalogProduct,
) -> list[ResolvedVariant]:
    variants = session.scalars(
        select(CatalogProductVariant).where(
            CatalogProductVariant.catalog_product_id == product.id,
            CatalogProductVariant.is_active.is_(True),
        )
    ).all()

    colors = _selected_values(listing.design_data, "selectedColors")
    sizes = _selected_values(listing.design_data, "selectedSizes")

    resolved: list[ResolvedVariant] = []
    for variant in variants:
        if colors is not None and variant.color not in colors:
            continue
        if sizes is not None and variant.size not in sizes:
            continue
        production_cost = variant.base_price if variant.base_price is not None else product.base_price
        resolved.append(
            ResolvedVariant(
                catalog_variant_id=variant.id,
                size=variant.size,
                color=variant.color,
                color_hex=variant.color_hex,
                sku=variant.sku_template,
                selling_price=to_money(listing.selling_price),
                production_cost=to_money(production_cost),
            )
        )
    return resolved


def resolve_variants(session: Session, listing: StoreProduct) -> VariantResolution:
    """Compute the sellable variant set of ``listing`` from the source tables.

    Never raises for a missing catalog product; the condition is returned as
    ``dangling_reference`` next to an empty variant list.
    """

    started = time.perf_counter()
    with tracer.start_as_current_span("storefront.resolve_variants") as span:
        span.set_attribute("listing_id", str(listing.id))
        span.set_attribute("catalog_product_id", str(listing.catalog_product_id))

        product = session.get(CatalogProduct, listing.catalog_product_id)
        if product is None:
            observe_dangling_reference()
            logger.warning(
                "variant_resolution.dangling_reference",
                extra={"listing_id": str(listing.id), "catalog_product_id": str(listing.catalog_product_id)},
            )
            resolution = VariantResolution(
                variants=[],
                mode=MODE_DANGLING,
                dangling_reference=DanglingReference(listing.id, listing.catalog_product_id),
            )
        else:
            overrides = _resolve_overrides(session, listing, product)
            if overrides:
                resolution = VariantResolution(variants=sorted(overrides, key=_sort_key), mode=MODE_OVERRIDE)
            else:
                fallback = _resolve_fallback(session, listing, product)
                resolution = VariantResolution(variants=sorted(fallback, key=_sort_key), mode=MODE_FALLBACK)

        span.set_attribute("resolution_mode", resolution.mode)
        span.set_attribute("variant_count", len(resolution.variants))

    observe_variant_resolution(resolution.mode, time.perf_counter() - started)
    return resolution
