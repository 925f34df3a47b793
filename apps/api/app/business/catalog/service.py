from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Select, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app import audit, events
from app.business.catalog.categories import is_valid_category, is_valid_subcategory
from app.business.catalog.models import CatalogProduct, CatalogProductVariant, CatalogVariantOption
from app.business.catalog.repository import (
    CatalogProductRepository,
    CatalogVariantOptionRepository,
    CatalogVariantRepository,
)
from app.business.catalog.schemas import (
    CatalogDesign,
    CatalogGstUpdate,
    CatalogProductCreate,
    CatalogProductDeleteResult,
    CatalogProductRead,
    CatalogProductUpdate,
    CatalogVariantBulkResult,
    CatalogVariantCreate,
    CatalogVariantRead,
    CatalogVariantUpdate,
    GalleryImage,
    VariantConflict,
    VariantOptionCreate,
    VariantOptionRead,
)
from app.business.storefront.models import StoreProduct
from app.business.storefront.projection import listing_ids_for_catalog_product, listing_locks, resync_listings
from app.metrics import observe_bulk_variant_conflicts
from app.platform.errors import Conflict, NotFound, ValidationError
from app.platform.security.context import AuthContext

logger = logging.getLogger("app.catalog")

_DERIVED_FIELDS = {"variants", "available_sizes", "available_colors"}


def default_sku(product_type_code: str | None, size: str, color: str) -> str:
    return f"{product_type_code or 'PRODUCT'}-{size}-{color}"


def _views_with_mockups(design: CatalogDesign) -> list[dict[str, Any]]:
    return [view.model_dump(mode="json") for view in design.views if view.mockup_image_url.strip()]


def _variant_read(variant: CatalogProductVariant) -> CatalogVariantRead:
    return CatalogVariantRead(
        id=variant.id,
        catalog_product_id=variant.catalog_product_id,
        size=variant.size,
        color=variant.color,
        color_hex=variant.color_hex,
        sku=variant.sku_template,
        price=variant.base_price,
        is_active=variant.is_active,
        view_images=variant.view_images or {},
    )


@dataclass(slots=True)
class CatalogService:
    product_repository: CatalogProductRepository = CatalogProductRepository()
    variant_repository: CatalogVariantRepository = CatalogVariantRepository()
    option_repository: CatalogVariantOptionRepository = CatalogVariantOptionRepository()

    def _validate_category(self, errors: list[dict[str, str]], category_id: str, subcategory_ids: list[str]) -> None:
        if not is_valid_category(category_id):
            errors.append({"field": "category_id", "message": f"{category_id} is not a valid category"})
            return
        for subcategory in subcategory_ids:
            if not is_valid_subcategory(category_id, subcategory):
                errors.append(
                    {"field": "subcategory_ids", "message": f"{subcategory} is not a subcategory of {category_id}"}
                )

    def _validate_design(self, errors: list[dict[str, str]], design: CatalogDesign) -> None:
        if not _views_with_mockups(design):
            errors.append({"field": "design.views", "message": "at least one design view with a mockup image is required"})

    def _validate_gallery(self, errors: list[dict[str, str]], gallery_images: list[GalleryImage]) -> None:
        if not gallery_images:
            errors.append({"field": "gallery_images", "message": "at least one gallery image is required"})
            return
        primary = sum(1 for image in gallery_images if image.is_primary)
        if primary != 1:
            errors.append({"field": "gallery_images", "message": "exactly one gallery image must be marked primary"})

    def _get_product(self, session: Session, product_id: uuid.UUID) -> CatalogProduct:
        product = session.get(CatalogProduct, product_id)
        if product is None:
            raise NotFound("catalog product", product_id)
        return product

    def _get_variant(self, session: Session, variant_id: uuid.UUID) -> CatalogProductVariant:
        variant = session.get(CatalogProductVariant, variant_id)
        if variant is None:
            raise NotFound("catalog variant", variant_id)
        return variant

    def _to_product_read(self, session: Session, product: CatalogProduct) -> CatalogProductRead:
        variants = session.scalars(
            select(CatalogProductVariant)
            .where(
                CatalogProductVariant.catalog_product_id == product.id,
                CatalogProductVariant.is_active.is_(True),
            )
            .order_by(CatalogProductVariant.size.asc(), CatalogProductVariant.color.asc())
        ).all()
        payload = {name: getattr(product, name) for name in CatalogProductRead.model_fields if name not in _DERIVED_FIELDS}
        return CatalogProductRead(
            **payload,
            variants=[_variant_read(variant) for variant in variants],
            available_sizes=sorted({variant.size for variant in variants}),
            available_colors=sorted({variant.color for variant in variants}),
        )

    def _find_collision(
        self,
        session: Session,
        product_id: uuid.UUID,
        *,
        size: str,
        color: str,
        sku: str,
        exclude_id: uuid.UUID | None = None,
    ) -> str | None:
        stmt = select(CatalogProductVariant).where(
            CatalogProductVariant.catalog_product_id == product_id,
            or_(
                (CatalogProductVariant.size == size) & (CatalogProductVariant.color == color),
                CatalogProductVariant.sku_template == sku,
            ),
        )
        if exclude_id is not None:
            stmt = stmt.where(CatalogProductVariant.id != exclude_id)
        existing = session.scalars(stmt).first()
        if existing is None:
            return None
        if existing.size == size and existing.color == color:
            return "duplicate size and color"
        return "duplicate sku"

    def _insert_variant(
        self,
        session: Session,
        product: CatalogProduct,
        dto: CatalogVariantCreate,
    ) -> CatalogProductVariant:
        sku = dto.sku or default_sku(product.product_type_code, dto.size, dto.color)
        reason = self._find_collision(session, product.id, size=dto.size, color=dto.color, sku=sku)
        if reason is not None:
            raise Conflict(reason, details={"size": dto.size, "color": dto.color, "sku": sku})

        variant = CatalogProductVariant(
            catalog_product_id=product.id,
            size=dto.size,
            color=dto.color,
            color_hex=dto.color_hex,
            sku_template=sku,
            base_price=dto.base_price,
            is_active=dto.is_active,
            view_images=dict(dto.view_images),
        )
        try:
            with session.begin_nested():
                session.add(variant)
        except IntegrityError as exc:
            raise Conflict(
                "variant collides with an existing variant",
                details={"size": dto.size, "color": dto.color, "sku": sku},
            ) from exc
        return variant

    def _insert_variants(
        self,
        session: Session,
        product: CatalogProduct,
        dtos: list[CatalogVariantCreate],
    ) -> tuple[list[CatalogProductVariant], list[VariantConflict]]:
        created: list[CatalogProductVariant] = []
        conflicts: list[VariantConflict] = []
        for dto in dtos:
            try:
                created.append(self._insert_variant(session, product, dto))
            except Conflict as exc:
                conflicts.append(VariantConflict(**exc.details, reason=exc.message))
        if conflicts:
            observe_bulk_variant_conflicts(len(conflicts))
        return created, conflicts

    def create_catalog_product(self, session: Session, ctx: AuthContext, dto: CatalogProductCreate) -> CatalogProductRead:
        self.product_repository.validate_write_security(ctx, action="create")

        errors: list[dict[str, str]] = []
        self._validate_category(errors, dto.category_id, dto.subcategory_ids)
        self._validate_design(errors, dto.design)
        self._validate_gallery(errors, dto.gallery_images)
        if errors:
            raise ValidationError("catalog product is invalid", details=errors)

        design = dto.design.model_dump(mode="json")
        design["views"] = _views_with_mockups(dto.design)

        product = CatalogProduct(
            name=dto.name.strip(),
            description=dto.description,
            category_id=dto.category_id,
            subcategory_ids=list(dto.subcategory_ids),
            product_type_code=dto.product_type_code,
            tags=list(dto.tags),
            attributes=dict(dto.attributes),
            base_price=dto.base_price,
            gst_slab=dto.gst_slab,
            gst_mode=dto.gst_mode,
            hsn=dto.hsn,
            design=design,
            shipping=dto.shipping.model_dump(mode="json"),
            gallery_images=[image.model_dump(mode="json") for image in dto.gallery_images],
            details=dict(dto.details),
            is_active=True,
            is_published=dto.is_published,
            created_by=ctx.user_id,
        )
        session.add(product)
        session.flush()

        _, conflicts = self._insert_variants(session, product, dto.variants)
        session.commit()

        audit.record(
            actor_user_id=ctx.user_id,
            entity_type="catalog.product",
            entity_id=str(product.id),
            action="catalog.product.created",
            before=None,
            after={"name": product.name, "category_id": product.category_id, "base_price": str(product.base_price)},
            correlation_id=ctx.correlation_id,
        )
        events.publish("catalog.product.created", {"catalog_product_id": str(product.id)})
        logger.info(
            "catalog.product.created",
            extra={
                "catalog_product_id": str(product.id),
                "variant_count": len(dto.variants) - len(conflicts),
                "warnings": [conflict.model_dump() for conflict in conflicts] or None,
            },
        )
        return self._to_product_read(session, product)

    def list_catalog_products(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        published_only: bool = True,
        category_id: str | None = None,
    ) -> list[CatalogProductRead]:
        stmt: Select[tuple[CatalogProduct]] = select(CatalogProduct).options(selectinload(CatalogProduct.variants))
        if published_only or not ctx.is_super_admin:
            stmt = stmt.where(CatalogProduct.is_published.is_(True), CatalogProduct.is_active.is_(True))
        if category_id is not None:
            stmt = stmt.where(CatalogProduct.category_id == category_id)

        stmt = self.product_repository.apply_scope_query(stmt, ctx)
        rows = session.scalars(stmt.order_by(CatalogProduct.created_at.desc(), CatalogProduct.name.asc())).all()
        return [self._to_product_read(session, row) for row in rows]

    def get_catalog_product(self, session: Session, ctx: AuthContext, product_id: uuid.UUID) -> CatalogProductRead:
        product = self._get_product(session, product_id)
        if not ctx.is_super_admin and not (product.is_active and product.is_published):
            raise NotFound("catalog product", product_id)
        return self._to_product_read(session, product)

    def update_catalog_product(
        self,
        session: Session,
        ctx: AuthContext,
        product_id: uuid.UUID,
        dto: CatalogProductUpdate,
    ) -> CatalogProductRead:
        self.product_repository.validate_write_security(ctx, action="update")
        product = self._get_product(session, product_id)
        changes = dto.model_dump(exclude_unset=True)

        errors: list[dict[str, str]] = []
        if "category_id" in changes or "subcategory_ids" in changes:
            self._validate_category(
                errors,
                dto.category_id or product.category_id,
                dto.subcategory_ids if dto.subcategory_ids is not None else product.subcategory_ids,
            )
        if dto.design is not None:
            self._validate_design(errors, dto.design)
        if dto.gallery_images is not None:
            self._validate_gallery(errors, dto.gallery_images)
        if errors:
            raise ValidationError("catalog product is invalid", details=errors)

        before = {"base_price": str(product.base_price), "is_published": product.is_published}
        price_changed = dto.base_price is not None and dto.base_price != product.base_price

        for key, value in changes.items():
            if key == "design" and dto.design is not None:
                value = dto.design.model_dump(mode="json")
                value["views"] = _views_with_mockups(dto.design)
            elif key == "shipping" and dto.shipping is not None:
                value = dto.shipping.model_dump(mode="json")
            elif key == "gallery_images" and dto.gallery_images is not None:
                value = [image.model_dump(mode="json") for image in dto.gallery_images]
            if value is None:
                continue
            setattr(product, key, value)

        if price_changed:
            listing_ids = listing_ids_for_catalog_product(session, product.id)
            with listing_locks(listing_ids):
                session.flush()
                resync_listings(session, listing_ids, trigger="catalog_price")
                session.commit()
        else:
            session.commit()

        audit.record(
            actor_user_id=ctx.user_id,
            entity_type="catalog.product",
            entity_id=str(product.id),
            action="catalog.product.updated",
            before=before,
            after={"base_price": str(product.base_price), "is_published": product.is_published},
            correlation_id=ctx.correlation_id,
        )
        return self._to_product_read(session, product)

    def publish_product(self, session: Session, ctx: AuthContext, product_id: uuid.UUID) -> CatalogProductRead:
        self.product_repository.validate_write_security(ctx, action="publish")
        product = self._get_product(session, product_id)

        views = (product.design or {}).get("views") or []
        if not any(str(view.get("mockup_image_url") or "").strip() for view in views):
            raise ValidationError.for_field("design.views", "a design view with a mockup image is required to publish")

        if not product.is_published:
            product.is_published = True
            session.commit()
            events.publish("catalog.product.published", {"catalog_product_id": str(product.id)})
            logger.info("catalog.product.published", extra={"catalog_product_id": str(product.id)})
        return self._to_product_read(session, product)

    def update_gst(self, session: Session, ctx: AuthContext, product_id: uuid.UUID, dto: CatalogGstUpdate) -> CatalogProductRead:
        self.product_repository.validate_write_security(ctx, action="update_gst")
        product = self._get_product(session, product_id)
        before = {"slab": product.gst_slab, "mode": product.gst_mode, "hsn": product.hsn}
        product.gst_slab = dto.slab
        product.gst_mode = dto.mode
        product.hsn = dto.hsn
        session.commit()

        audit.record(
            actor_user_id=ctx.user_id,
            entity_type="catalog.product",
            entity_id=str(product.id),
            action="catalog.product.gst_updated",
            before=before,
            after=dto.model_dump(),
            correlation_id=ctx.correlation_id,
        )
        return self._to_product_read(session, product)

    def delete_product(
        self,
        session: Session,
        ctx: AuthContext,
        product_id: uuid.UUID,
        *,
        force: bool = False,
    ) -> CatalogProductDeleteResult:
        self.product_repository.validate_write_security(ctx, action="delete")
        product = self._get_product(session, product_id)

        published_refs = session.scalar(
            select(func.count())
            .select_from(StoreProduct)
            .where(StoreProduct.catalog_product_id == product.id, StoreProduct.status == "published")
        ) or 0
        if published_refs and not force:
            raise Conflict(
                "catalog product is referenced by published listings",
                details={"catalog_product_id": str(product.id), "published_listings": published_refs},
            )

        listing_ids = listing_ids_for_catalog_product(session, product.id)
        with listing_locks(listing_ids):
            if published_refs:
                session.execute(
                    delete(CatalogProductVariant).where(CatalogProductVariant.catalog_product_id == product.id)
                )
                session.expire(product, ["variants"])
                product.is_active = False
                outcome = "deactivated"
            else:
                session.delete(product)
                outcome = "deleted"
            session.flush()
            resynced = resync_listings(session, listing_ids, trigger="catalog_delete")
            session.commit()

        audit.record(
            actor_user_id=ctx.user_id,
            entity_type="catalog.product",
            entity_id=str(product_id),
            action=f"catalog.product.{outcome}",
            before={"published_listings": published_refs},
            after={"force": force},
            correlation_id=ctx.correlation_id,
        )
        events.publish(f"catalog.product.{outcome}", {"catalog_product_id": str(product_id)})
        logger.info(
            "catalog.product.removed",
            extra={"catalog_product_id": str(product_id), "mode": outcome, "counts": {"listings": resynced}},
        )
        return CatalogProductDeleteResult(id=product_id, outcome=outcome, resynced_listings=resynced)

    def create_catalog_variant(
        self,
        session: Session,
        ctx: AuthContext,
        product_id: uuid.UUID,
        dto: CatalogVariantCreate,
    ) -> CatalogVariantRead:
        self.variant_repository.validate_write_security(ctx, action="create")
        product = self._get_product(session, product_id)

        listing_ids = listing_ids_for_catalog_product(session, product.id)
        with listing_locks(listing_ids):
            try:
                variant = self._insert_variant(session, product, dto)
            except Conflict:
                session.rollback()
                raise
            resync_listings(session, listing_ids, trigger="catalog_variant")
            session.commit()

        logger.info(
            "catalog.variant.created",
            extra={"catalog_product_id": str(product.id), "catalog_variant_id": str(variant.id)},
        )
        return _variant_read(variant)

    def create_catalog_variants(
        self,
        session: Session,
        ctx: AuthContext,
        product_id: uuid.UUID,
        dtos: list[CatalogVariantCreate],
    ) -> CatalogVariantBulkResult:
        """Insert many variants; rows colliding on (size, color) or sku are reported, the rest are kept."""

        self.variant_repository.validate_write_security(ctx, action="create")
        product = self._get_product(session, product_id)

        listing_ids = listing_ids_for_catalog_product(session, product.id)
        with listing_locks(listing_ids):
            created, conflicts = self._insert_variants(session, product, dtos)
            if created:
                resync_listings(session, listing_ids, trigger="catalog_variant")
            session.commit()

        logger.info(
            "catalog.variant.bulk_created",
            extra={
                "catalog_product_id": str(product.id),
                "variant_count": len(created),
                "warnings": [conflict.model_dump() for conflict in conflicts] or None,
            },
        )
        return CatalogVariantBulkResult(created=[_variant_read(item) for item in created], conflicts=conflicts)

    def update_catalog_variant(
        self,
        session: Session,
        ctx: AuthContext,
        variant_id: uuid.UUID,
        dto: CatalogVariantUpdate,
    ) -> CatalogVariantRead:
        self.variant_repository.validate_write_security(ctx, action="update")
        variant = self._get_variant(session, variant_id)
        changes = dto.model_dump(exclude_unset=True)

        size = changes.get("size") or variant.size
        color = changes.get("color") or variant.color
        sku = changes.get("sku") or variant.sku_template
        reason = self._find_collision(
            session,
            variant.catalog_product_id,
            size=size,
            color=color,
            sku=sku,
            exclude_id=variant.id,
        )
        if reason is not None:
            raise Conflict(reason, details={"size": size, "color": color, "sku": sku})

        listing_ids = listing_ids_for_catalog_product(session, variant.catalog_product_id)
        with listing_locks(listing_ids):
            variant.size = size
            variant.color = color
            variant.sku_template = sku
            if "color_hex" in changes:
                variant.color_hex = dto.color_hex
            if "base_price" in changes:
                variant.base_price = dto.base_price
            if dto.is_active is not None:
                variant.is_active = dto.is_active
            if dto.view_images is not None:
                variant.view_images = dict(dto.view_images)
            try:
                session.flush()
            except IntegrityError as exc:
                session.rollback()
                raise Conflict("variant collides with an existing variant", details={"size": size, "color": color, "sku": sku}) from exc
            resync_listings(session, listing_ids, trigger="catalog_variant")
            session.commit()

        return _variant_read(variant)

    def deactivate_variant(self, session: Session, ctx: AuthContext, variant_id: uuid.UUID) -> CatalogVariantRead:
        self.variant_repository.validate_write_security(ctx, action="deactivate")
        variant = self._get_variant(session, variant_id)

        listing_ids = listing_ids_for_catalog_product(session, variant.catalog_product_id)
        with listing_locks(listing_ids):
            variant.is_active = False
            resync_listings(session, listing_ids, trigger="catalog_variant")
            session.commit()

        logger.info(
            "catalog.variant.deactivated",
            extra={"catalog_product_id": str(variant.catalog_product_id), "catalog_variant_id": str(variant.id)},
        )
        return _variant_read(variant)

    def delete_variant(self, session: Session, ctx: AuthContext, variant_id: uuid.UUID) -> uuid.UUID:
        self.variant_repository.validate_write_security(ctx, action="delete")
        variant = self._get_variant(session, variant_id)
        product_id = variant.catalog_product_id

        listing_ids = listing_ids_for_catalog_product(session, product_id)
        with listing_locks(listing_ids):
            session.delete(variant)
            session.flush()
            resync_listings(session, listing_ids, trigger="catalog_variant")
            session.commit()

        logger.info(
            "catalog.variant.deleted",
            extra={"catalog_product_id": str(product_id), "catalog_variant_id": str(variant_id)},
        )
        return variant_id

    def create_variant_option(self, session: Session, ctx: AuthContext, dto: VariantOptionCreate) -> VariantOptionRead:
        self.option_repository.validate_write_security(ctx, action="create")
        if not is_valid_category(dto.category_id):
            raise ValidationError.for_field("category_id", f"{dto.category_id} is not a valid category")
        if dto.subcategory_id is not None and not is_valid_subcategory(dto.category_id, dto.subcategory_id):
            raise ValidationError.for_field("subcategory_id", f"{dto.subcategory_id} is not a subcategory of {dto.category_id}")

        option = CatalogVariantOption(**dto.model_dump(), created_by=ctx.user_id)
        session.add(option)
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise Conflict("variant option already exists", details=dto.model_dump()) from exc
        return VariantOptionRead.model_validate(option)

    def list_variant_options(
        self,
        session: Session,
        *,
        category_id: str | None = None,
        option_type: str | None = None,
        active_only: bool = True,
    ) -> list[VariantOptionRead]:
        stmt = select(CatalogVariantOption)
        if category_id is not None:
            stmt = stmt.where(CatalogVariantOption.category_id == category_id)
        if option_type is not None:
            stmt = stmt.where(CatalogVariantOption.option_type == option_type)
        if active_only:
            stmt = stmt.where(CatalogVariantOption.is_active.is_(True))
        rows = session.scalars(stmt.order_by(CatalogVariantOption.option_type.asc(), CatalogVariantOption.value.asc())).all()
        return [VariantOptionRead.model_validate(row) for row in rows]

    def increment_option_usage(
        self,
        session: Session,
        ctx: AuthContext,
        option_id: uuid.UUID,
        by: int = 1,
    ) -> VariantOptionRead:
        """Atomically shift ``usage_count`` by ``by``; the counter never goes below zero."""

        self.option_repository.validate_write_security(ctx, action="update_usage")
        result = session.execute(
            update(CatalogVariantOption)
            .where(
                CatalogVariantOption.id == option_id,
                CatalogVariantOption.usage_count + by >= 0,
            )
            .values(usage_count=CatalogVariantOption.usage_count + by)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            session.rollback()
            if session.get(CatalogVariantOption, option_id) is None:
                raise NotFound("variant option", option_id)
            raise Conflict("usage count cannot go below zero", details={"option_id": str(option_id), "by": by})
        session.commit()

        option = session.get(CatalogVariantOption, option_id, populate_existing=True)
        return VariantOptionRead.model_validate(option)


catalog_service = CatalogService()
