from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_auth_context
from app.business.catalog.schemas import (
    CatalogGstUpdate,
    CatalogProductCreate,
    CatalogProductDeleteResult,
    CatalogProductRead,
    CatalogProductUpdate,
    CatalogVariantBulkCreate,
    CatalogVariantBulkResult,
    CatalogVariantCreate,
    CatalogVariantRead,
    CatalogVariantUpdate,
    OptionType,
    VariantOptionCreate,
    VariantOptionRead,
    VariantOptionUsageUpdate,
)
from app.business.catalog.service import catalog_service
from app.core.database import get_db
from app.platform.schemas import Envelope
from app.platform.security.context import AuthContext


router = APIRouter(prefix="/catalog-products", tags=["catalog"])
variants_router = APIRouter(prefix="/catalog-variants", tags=["catalog"])
options_router = APIRouter(prefix="/variant-options", tags=["catalog"])


@router.post("", response_model=Envelope[CatalogProductRead], status_code=status.HTTP_201_CREATED)
def create_catalog_product(
    payload: CatalogProductCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[CatalogProductRead]:
    return Envelope(data=catalog_service.create_catalog_product(db, ctx, payload))


@router.get("", response_model=Envelope[list[CatalogProductRead]])
def list_catalog_products(
    published_only: bool = Query(default=True),
    category_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[list[CatalogProductRead]]:
    return Envelope(
        data=catalog_service.list_catalog_products(db, ctx, published_only=published_only, category_id=category_id)
    )


@router.get("/{product_id}", response_model=Envelope[CatalogProductRead])
def get_catalog_product(
    product_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[CatalogProductRead]:
    return Envelope(data=catalog_service.get_catalog_product(db, ctx, product_id))


@router.patch("/{product_id}", response_model=Envelope[CatalogProductRead])
def update_catalog_product(
    product_id: uuid.UUID,
    payload: CatalogProductUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[CatalogProductRead]:
    return Envelope(data=catalog_service.update_catalog_product(db, ctx, product_id, payload))


@router.post("/{product_id}/publish", response_model=Envelope[CatalogProductRead])
def publish_catalog_product(
    product_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[CatalogProductRead]:
    return Envelope(data=catalog_service.publish_product(db, ctx, product_id))


@router.patch("/{product_id}/gst", response_model=Envelope[CatalogProductRead])
def update_catalog_product_gst(
    product_id: uuid.UUID,
    payload: CatalogGstUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[CatalogProductRead]:
    return Envelope(data=catalog_service.update_gst(db, ctx, product_id, payload))


@router.delete("/{product_id}", response_model=Envelope[CatalogProductDeleteResult])
def delete_catalog_product(
    product_id: uuid.UUID,
    force: bool = Query(default=False),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[CatalogProductDeleteResult]:
    return Envelope(data=catalog_service.delete_product(db, ctx, product_id, force=force))


@router.post(
    "/{product_id}/variants",
    response_model=Envelope[CatalogVariantRead],
    status_code=status.HTTP_201_CREATED,
)
def create_catalog_variant(
    product_id: uuid.UUID,
    payload: CatalogVariantCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[CatalogVariantRead]:
    return Envelope(data=catalog_service.create_catalog_variant(db, ctx, product_id, payload))


@router.post("/{product_id}/variants/bulk", response_model=Envelope[CatalogVariantBulkResult])
def create_catalog_variants(
    product_id: uuid.UUID,
    payload: CatalogVariantBulkCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[CatalogVariantBulkResult]:
    return Envelope(data=catalog_service.create_catalog_variants(db, ctx, product_id, payload.variants))


@variants_router.patch("/{variant_id}", response_model=Envelope[CatalogVariantRead])
def update_catalog_variant(
    variant_id: uuid.UUID,
    payload: CatalogVariantUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[CatalogVariantRead]:
    return Envelope(data=catalog_service.update_catalog_variant(db, ctx, variant_id, payload))


@variants_router.post("/{variant_id}/deactivate", response_model=Envelope[CatalogVariantRead])
def deactivate_catalog_variant(
    variant_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[CatalogVariantRead]:
    return Envelope(data=catalog_service.deactivate_variant(db, ctx, variant_id))


@variants_router.delete("/{variant_id}", response_model=Envelope[dict[str, uuid.UUID]])
def delete_catalog_variant(
    variant_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[dict[str, uuid.UUID]]:
    return Envelope(data={"id": catalog_service.delete_variant(db, ctx, variant_id)})


@options_router.post("", response_model=Envelope[VariantOptionRead], status_code=status.HTTP_201_CREATED)
def create_variant_option(
    payload: VariantOptionCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[VariantOptionRead]:
    return Envelope(data=catalog_service.create_variant_option(db, ctx, payload))


@options_router.get("", response_model=Envelope[list[VariantOptionRead]])
def list_variant_options(
    category_id: str | None = Query(default=None),
    option_type: OptionType | None = Query(default=None),
    db: Session = Depends(get_db),
) -> Envelope[list[VariantOptionRead]]:
    return Envelope(data=catalog_service.list_variant_options(db, category_id=category_id, option_type=option_type))


@options_router.post("/{option_id}/usage", response_model=Envelope[VariantOptionRead])
def update_variant_option_usage(
    option_id: uuid.UUID,
    payload: VariantOptionUsageUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Envelope[VariantOptionRead]:
    return Envelope(data=catalog_service.increment_option_usage(db, ctx, option_id, payload.by))
