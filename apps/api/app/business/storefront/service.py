from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app import audit, events
from app.business.catalog.models import CatalogProduct, CatalogProductVariant
from app.business.storefront.models import Store, StoreProduct, StoreProductVariant
from app.business.storefront.projection import listing_lock, locked_listing, sync_variants_summary
from app.business.storefront.repository import ListingRepository, StoreRepository, VariantOverrideRepository
from app.business.storefront.schemas import (
    ListingRead,
    ListingUpdate,
    ListingUpsert,
    ListingVariantInput,
    PublicListingRead,
    StoreCreate,
    StoreRead,
    VariantOverrideUpsert,
    VariantSummaryRead,
)
from app.core.auth import ROLE_MERCHANT, ROLE_SUPERADMIN
from app.metrics import observe_lazy_repair
from app.platform.errors import Conflict, NotFound, ValidationError
from app.platform.security.context import AuthContext
from app.platform.security.errors import AuthorizationError

logger = logging.getLogger("app.storefront")

RESYNC_FIELDS = {"status", "selling_price", "design_data", "variants"}
LISTING_FIELDS = ("title", "description", "selling_price", "compare_at_price", "gallery_images", "tags", "is_active")
OVERRIDE_FIELDS = ("sku", "selling_price", "is_active")


def _override_changes(item: ListingVariantInput) -> dict[str, object]:
    sent = item.model_dump(exclude_unset=True)
    return {key: sent[key] for key in OVERRIDE_FIELDS if key in sent}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def apply_status(listing: StoreProduct, status: str) -> None:
    """Move a listing between draft and published.

    ``published_at`` is stamped on the draft to published transition only and
    cleared when going back to draft.
    """

    if status == "published":
        if listing.status != "published" or listing.published_at is None:
            listing.published_at = utcnow()
    else:
        listing.published_at = None
    listing.status = status


@dataclass(slots=True)
class StorefrontService:
    store_repository: StoreRepository = StoreRepository()
    listing_repository: ListingRepository = ListingRepository()
    override_repository: VariantOverrideRepository = VariantOverrideRepository()

    def create_store(self, session: Session, ctx: AuthContext, dto: StoreCreate) -> StoreRead:
        if ctx.role not in {ROLE_MERCHANT, ROLE_SUPERADMIN}:
            raise AuthorizationError(self.store_repository.resource, "create", "merchant or superadmin role required")

        owner_user_id = dto.owner_user_id if ctx.is_super_admin and dto.owner_user_id else ctx.user_id
        if session.scalar(select(Store.id).where(Store.slug == dto.slug)) is not None:
            raise Conflict("store slug already exists", details={"slug": dto.slug})

        store = Store(name=dto.name.strip(), slug=dto.slug, owner_user_id=owner_user_id, type="native")
        session.add(store)
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise Conflict("store slug already exists", details={"slug": dto.slug}) from exc

        audit.record(
            actor_user_id=ctx.user_id,
            entity_type="storefront.store",
            entity_id=str(store.id),
            action="storefront.store.created",
            before=None,
            after={"slug": store.slug, "owner_user_id": owner_user_id},
            correlation_id=ctx.correlation_id,
        )
        return StoreRead.model_validate(store)

    def get_store(self, session: Session, ctx: AuthContext, store_id: uuid.UUID) -> StoreRead:
        store = session.scalar(self.store_repository.apply_scope_query(select(Store).where(Store.id == store_id), ctx))
        if store is None:
            raise NotFound("store", store_id)
        return StoreRead.model_validate(store)

    def list_owned_stores(self, session: Session, ctx: AuthContext) -> list[StoreRead]:
        stmt = self.store_repository.apply_scope_query(select(Store), ctx)
        rows = session.scalars(stmt.order_by(Store.created_at.asc(), Store.slug.asc())).all()
        return [StoreRead.model_validate(row) for row in rows]

    def _resolve_store(self, session: Session, ctx: AuthContext, store_id: uuid.UUID | None) -> Store:
        if store_id is not None:
            store = session.get(Store, store_id)
            if store is None:
                raise NotFound("store", store_id)
            return store

        store = session.scalars(
            select(Store)
            .where(Store.owner_user_id == ctx.user_id, Store.type == "native", Store.is_active.is_(True))
            .order_by(Store.created_at.asc())
        ).first()
        if store is None:
            raise ValidationError.for_field("store_id", "caller has no active store")
        return store

    def _require_listable_product(self, session: Session, catalog_product_id: uuid.UUID) -> CatalogProduct:
        product = session.get(CatalogProduct, catalog_product_id)
        if product is None:
            raise NotFound("catalog product", catalog_product_id)
        if not product.is_active or not product.is_published:
            raise ValidationError.for_field("catalog_product_id", "catalog product is not available for listing")
        return product

    def _scoped_listing(self, session: Session, ctx: AuthContext, listing_id: uuid.UUID) -> StoreProduct:
        stmt: Select[tuple[StoreProduct]] = select(StoreProduct).where(StoreProduct.id == listing_id)
        listing = session.scalar(self.listing_repository.apply_scope_query(stmt, ctx))
        if listing is None:
            raise NotFound("listing", listing_id)
        return listing

    def _ensure_unique_in_store(
        self,
        session: Session,
        store_id: uuid.UUID,
        catalog_product_id: uuid.UUID,
        *,
        exclude_id: uuid.UUID | None = None,
    ) -> None:
        stmt = select(StoreProduct.id).where(
            StoreProduct.store_id == store_id,
            StoreProduct.catalog_product_id == catalog_product_id,
        )
        if exclude_id is not None:
            stmt = stmt.where(StoreProduct.id != exclude_id)
        existing = session.scalar(stmt)
        if existing is not None:
            raise Conflict(
                "store already lists this catalog product",
                details={
                    "store_id": str(store_id),
                    "catalog_product_id": str(catalog_product_id),
                    "listing_id": str(existing),
                },
            )

    def _upsert_overrides(
        self,
        session: Session,
        listing: StoreProduct,
        variants: list[ListingVariantInput],
    ) -> None:
        requested = {item.catalog_variant_id for item in variants}
        known = set(
            session.scalars(
                select(CatalogProductVariant.id).where(
                    CatalogProductVariant.catalog_product_id == listing.catalog_product_id,
                    CatalogProductVariant.id.in_(requested),
                )
            ).all()
        )
        unknown = sorted(str(item) for item in requested - known)
        if unknown:
            raise ValidationError(
                "variants must belong to the listing's catalog product",
                details=[{"field": "variants.catalog_variant_id", "message": value} for value in unknown],
            )

        existing = {
            row.catalog_product_variant_id: row
            for row in session.scalars(
                select(StoreProductVariant).where(StoreProductVariant.store_product_id == listing.id)
            ).all()
        }
        for item in variants:
            override = existing.get(item.catalog_variant_id)
            if override is None:
                existing[item.catalog_variant_id] = self._insert_override(session, listing.id, item)
            else:
                for key, value in _override_changes(item).items():
                    setattr(override, key, value)

    def _insert_override(
        self,
        session: Session,
        listing_id: uuid.UUID,
        item: ListingVariantInput,
    ) -> StoreProductVariant:
        override = StoreProductVariant(
            store_product_id=listing_id,
            catalog_product_variant_id=item.catalog_variant_id,
            sku=item.sku,
            selling_price=item.selling_price,
            is_active=item.is_active,
        )
        try:
            with session.begin_nested():
                session.add(override)
        except IntegrityError:
            # another writer inserted the same (listing, catalog variant) first
            override = session.scalars(
                select(StoreProductVariant).where(
                    StoreProductVariant.store_product_id == listing_id,
                    StoreProductVariant.catalog_product_variant_id == item.catalog_variant_id,
                )
            ).one()
            for key, value in _override_changes(item).items():
                setattr(override, key, value)
        return override

    def _commit(self, session: Session, listing: StoreProduct, *, created: bool = False) -> None:
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            if created:
                raise Conflict(
                    "store already lists this catalog product",
                    details={"store_id": str(listing.store_id), "catalog_product_id": str(listing.catalog_product_id)},
                ) from exc
            raise Conflict("listing was changed by a concurrent write", details={"listing_id": str(listing.id)}) from exc

    def _relock(self, session: Session, listing_id: uuid.UUID) -> StoreProduct:
        listing = locked_listing(session, listing_id)
        if listing is None:
            raise NotFound("listing", listing_id)
        return listing

    def upsert_listing(self, session: Session, ctx: AuthContext, dto: ListingUpsert) -> ListingRead:
        """Create a listing, or update the one named by ``dto.id`` inside the resolved store."""

        store = self._resolve_store(session, ctx, dto.store_id)
        self.listing_repository.validate_write_security(ctx, store_id=store.id, action="upsert")
        self._require_listable_product(session, dto.catalog_product_id)

        listing_id = dto.id or uuid.uuid4()
        created = dto.id is None
        with listing_lock(listing_id):
            if created:
                self._ensure_unique_in_store(session, store.id, dto.catalog_product_id)
                listing = StoreProduct(
                    id=listing_id,
                    store_id=store.id,
                    catalog_product_id=dto.catalog_product_id,
                    status="draft",
                    title=dto.title,
                    description=dto.description,
                    selling_price=dto.selling_price,
                    compare_at_price=dto.compare_at_price,
                    gallery_images=list(dto.gallery_images),
                    tags=list(dto.tags),
                    design_data=dict(dto.design_data),
                    is_active=dto.is_active,
                )
                session.add(listing)
            else:
                listing = locked_listing(session, listing_id)
                if listing is None or listing.store_id != store.id:
                    raise NotFound("listing", listing_id)
                if listing.catalog_product_id != dto.catalog_product_id:
                    raise ValidationError.for_field(
                        "catalog_product_id", "the catalog product of an existing listing cannot change"
                    )
                changes = dto.model_dump(exclude_unset=True)
                for key in LISTING_FIELDS:
                    if key in changes:
                        setattr(listing, key, changes[key])
                if "design_data" in changes:
                    listing.design_data = {**(listing.design_data or {}), **changes["design_data"]}
            session.flush()

            if dto.variants is not None:
                self._upsert_overrides(session, listing, dto.variants)
            if dto.status is not None:
                apply_status(listing, dto.status)

            sync_variants_summary(session, listing.id, trigger="listing_write")
            self._commit(session, listing, created=created)

        action = "storefront.listing.created" if created else "storefront.listing.updated"
        audit.record(
            actor_user_id=ctx.user_id,
            entity_type="storefront.listing",
            entity_id=str(listing.id),
            action=action,
            before=None,
            after={"status": listing.status, "selling_price": str(listing.selling_price)},
            correlation_id=ctx.correlation_id,
        )
        events.publish(action, {"listing_id": str(listing.id), "store_id": str(listing.store_id)})
        logger.info(
            action,
            extra={
                "listing_id": str(listing.id),
                "store_id": str(listing.store_id),
                "catalog_product_id": str(listing.catalog_product_id),
                "variant_count": len(listing.variants_summary),
            },
        )
        return ListingRead.model_validate(listing)

    def update_listing(self, session: Session, ctx: AuthContext, listing_id: uuid.UUID, patch: ListingUpdate) -> ListingRead:
        listing = self._scoped_listing(session, ctx, listing_id)
        self.listing_repository.validate_write_security(ctx, store_id=listing.store_id, action="update")
        changes = patch.model_dump(exclude_unset=True)

        with listing_lock(listing.id):
            listing = self._relock(session, listing.id)
            if patch.store_id is not None and patch.store_id != listing.store_id:
                target = session.get(Store, patch.store_id)
                if target is None:
                    raise NotFound("store", patch.store_id)
                self.listing_repository.validate_write_security(ctx, store_id=target.id, action="reassign")
                self._ensure_unique_in_store(session, target.id, listing.catalog_product_id, exclude_id=listing.id)
                listing.store_id = target.id

            for key in ("title", "description", "compare_at_price"):
                if key in changes:
                    setattr(listing, key, changes[key])
            for key in ("selling_price", "gallery_images", "tags", "is_active"):
                if changes.get(key) is not None:
                    setattr(listing, key, changes[key])
            if patch.design_data is not None:
                listing.design_data = {**(listing.design_data or {}), **patch.design_data}
            if patch.variants is not None:
                self._upsert_overrides(session, listing, patch.variants)
            if patch.status is not None:
                apply_status(listing, patch.status)

            if RESYNC_FIELDS & {key for key, value in changes.items() if value is not None}:
                sync_variants_summary(session, listing.id, trigger="listing_write")
            self._commit(session, listing)

        logger.info("storefront.listing.updated", extra={"listing_id": str(listing.id), "store_id": str(listing.store_id)})
        return ListingRead.model_validate(listing)

    def set_status(self, session: Session, ctx: AuthContext, listing_id: uuid.UUID, status: str) -> ListingRead:
        listing = self._scoped_listing(session, ctx, listing_id)
        self.listing_repository.validate_write_security(ctx, store_id=listing.store_id, action="set_status")

        with listing_lock(listing.id):
            listing = self._relock(session, listing.id)
            previous = listing.status
            apply_status(listing, status)
            sync_variants_summary(session, listing.id, trigger="status")
            session.commit()

        if previous != status:
            events.publish(
                f"storefront.listing.{status}",
                {"listing_id": str(listing.id), "store_id": str(listing.store_id)},
            )
        return ListingRead.model_validate(listing)

    def upsert_variant_override(
        self,
        session: Session,
        ctx: AuthContext,
        listing_id: uuid.UUID,
        catalog_variant_id: uuid.UUID,
        dto: VariantOverrideUpsert,
    ) -> ListingRead:
        listing = self._scoped_listing(session, ctx, listing_id)
        self.override_repository.validate_write_security(ctx, store_id=listing.store_id, action="upsert")

        with listing_lock(listing.id):
            listing = self._relock(session, listing.id)
            self._upsert_overrides(
                session,
                listing,
                [ListingVariantInput(catalog_variant_id=catalog_variant_id, **dto.model_dump(exclude_unset=True))],
            )
            sync_variants_summary(session, listing.id, trigger="override")
            session.commit()

        return ListingRead.model_validate(listing)

    def delete_listing(self, session: Session, ctx: AuthContext, listing_id: uuid.UUID) -> uuid.UUID:
        listing = self._scoped_listing(session, ctx, listing_id)
        self.listing_repository.validate_write_security(ctx, store_id=listing.store_id, action="delete")

        with listing_lock(listing.id):
            store_id = listing.store_id
            session.delete(listing)
            session.commit()

        audit.record(
            actor_user_id=ctx.user_id,
            entity_type="storefront.listing",
            entity_id=str(listing_id),
            action="storefront.listing.deleted",
            before={"store_id": str(store_id)},
            after=None,
            correlation_id=ctx.correlation_id,
        )
        events.publish("storefront.listing.deleted", {"listing_id": str(listing_id), "store_id": str(store_id)})
        return listing_id

    def get_listing(self, session: Session, ctx: AuthContext, listing_id: uuid.UUID) -> ListingRead:
        return ListingRead.model_validate(self._scoped_listing(session, ctx, listing_id))

    def list_listings(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        store_id: uuid.UUID | None = None,
        status: str | None = None,
        is_active: bool | None = None,
    ) -> list[ListingRead]:
        stmt: Select[tuple[StoreProduct]] = select(StoreProduct)
        if store_id is not None:
            stmt = stmt.where(StoreProduct.store_id == store_id)
        if status is not None:
            stmt = stmt.where(StoreProduct.status == status)
        if is_active is not None:
            stmt = stmt.where(StoreProduct.is_active.is_(is_active))

        stmt = self.listing_repository.apply_scope_query(stmt, ctx)
        rows = session.scalars(stmt.order_by(StoreProduct.created_at.desc(), StoreProduct.id.asc())).all()
        return [ListingRead.model_validate(row) for row in rows]

    def _ensure_summary(self, session: Session, listing: StoreProduct) -> None:
        if listing.variants_summary:
            return
        with listing_lock(listing.id):
            resolution = sync_variants_summary(session, listing.id, trigger="lazy_repair")
            session.commit()
        observe_lazy_repair()
        logger.info(
            "projection.lazy_repair",
            extra={"listing_id": str(listing.id), "mode": resolution.mode, "variant_count": len(resolution.variants)},
        )

    def _to_public(self, session: Session, listing: StoreProduct) -> PublicListingRead:
        self._ensure_summary(session, listing)
        product = session.get(CatalogProduct, listing.catalog_product_id)
        return PublicListingRead(
            id=listing.id,
            store_id=listing.store_id,
            catalog_product_id=listing.catalog_product_id,
            title=listing.title or (product.name if product is not None else ""),
            description=listing.description or (product.description if product is not None else ""),
            selling_price=listing.selling_price,
            compare_at_price=listing.compare_at_price,
            gallery_images=listing.gallery_images or (product.gallery_images if product is not None else []),
            tags=listing.tags or [],
            design_data=listing.design_data or {},
            published_at=listing.published_at,
            variants=[VariantSummaryRead.model_validate(item) for item in listing.variants_summary],
        )

    def _public_listings(self, store_id: uuid.UUID) -> Select[tuple[StoreProduct]]:
        return select(StoreProduct).where(
            StoreProduct.store_id == store_id,
            StoreProduct.status == "published",
            StoreProduct.is_active.is_(True),
        )

    def get_public_listing(self, session: Session, store_id: uuid.UUID, listing_id: uuid.UUID) -> PublicListingRead:
        listing = session.scalar(self._public_listings(store_id).where(StoreProduct.id == listing_id))
        if listing is None:
            raise NotFound("listing", listing_id)
        return self._to_public(session, listing)

    def list_public_listings(self, session: Session, store_id: uuid.UUID) -> list[PublicListingRead]:
        store = session.get(Store, store_id)
        if store is None or not store.is_active:
            raise NotFound("store", store_id)

        rows = session.scalars(
            self._public_listings(store_id).order_by(StoreProduct.published_at.desc(), StoreProduct.id.asc())
        ).all()
        return [self._to_public(session, row) for row in rows]


storefront_service = StorefrontService()
