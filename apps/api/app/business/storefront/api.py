from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_auth_context
from app.business.storefront.schemas import (
    ListingRead,
    ListingStatus,
    ListingUpdate,
    ListingUpsert,
    PublicListingRead,
    StoreCreate,
    StoreRead,
    VariantOverrideUpsert,
)
from app.business.storefront.service import storefront_service
from app.core.database import get_db
from app.platform.schemas import Envelope
from app.platform.security.context import AuthContext


stores_router = APIRouter(prefix="/stores", tags=["storefront"])
router = APIRouter(prefix="/store-products", tags=["storefront"])


@stores_router.post("", response_model=Envelope[StoreRead], status_code=status.HTTP_201_CREATED)
def create_store(
    payload: StoreCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[StoreRead]:
    return Envelope(data=storefront_service.create_store(db, ctx, payload))


@stores_router.get("", response_model=Envelope[list[StoreRead]])
def list_stores(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[list[StoreRead]]:
    return Envelope(data=storefront_service.list_owned_stores(db, ctx))


@router.get("/public/{store_id}", response_model=Envelope[list[PublicListingRead]])
def list_public_listings(store_id: uuid.UUID, db: Session = Depends(get_db)) -> Envelope[list[PublicListingRead]]:
    return Envelope(data=storefront_service.list_public_listings(db, store_id))


@router.get("/public/{store_id}/{listing_id}", response_model=Envelope[PublicListingRead])
def get_public_listing(
    store_id: uuid.UUID,
    listing_id: uuid.UUID,
    db: Session = Depends(get_db),
) -> Envelope[PublicListingRead]:
    return Envelope(data=storefront_service.get_public_listing(db, store_id, listing_id))


@router.post("", response_model=Envelope[ListingRead])
def upsert_listing(
    payload: ListingUpsert,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[ListingRead]:
    return Envelope(data=storefront_service.upsert_listing(db, ctx, payload))


@router.get("", response_model=Envelope[list[ListingRead]])
def list_listings(
    store_id: uuid.UUID | None = Query(default=None),
    status_filter: ListingStatus | None = Query(default=None, alias="status"),
    is_active: bool | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[list[ListingRead]]:
    return Envelope(
        data=storefront_service.list_listings(db, ctx, store_id=store_id, status=status_filter, is_active=is_active)
    )


@router.get("/{listing_id}", response_model=Envelope[ListingRead])
def get_listing(
    listing_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[ListingRead]:
    return Envelope(data=storefront_service.get_listing(db, ctx, listing_id))


@router.patch("/{listing_id}", response_model=Envelope[ListingRead])
def update_listing(
    listing_id: uuid.UUID,
    payload: ListingUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[ListingRead]:
    return Envelope(data=storefront_service.update_listing(db, ctx, listing_id, payload))


@router.put("/{listing_id}/variants/{catalog_variant_id}", response_model=Envelope[ListingRead])
def upsert_variant_override(
    listing_id: uuid.UUID,
    catalog_variant_id: uuid.UUID,
    payload: VariantOverrideUpsert,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[ListingRead]:
    return Envelope(
        data=storefront_service.upsert_variant_override(db, ctx, listing_id, catalog_variant_id, payload)
    )


@router.delete("/{listing_id}", response_model=Envelope[dict[str, uuid.UUID]])
def delete_listing(
    listing_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[dict[str, uuid.UUID]]:
    return Envelope(data={"id": storefront_service.delete_listing(db, ctx, listing_id)})
