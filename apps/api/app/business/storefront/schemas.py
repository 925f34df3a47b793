from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


ListingStatus = Literal["draft", "published"]


class StoreCreate(BaseModel):
    name: str = Field(min_length=1)
    slug: str = Field(min_length=1, max_length=128, pattern=r"^[a-z0-9-]+$")
    owner_user_id: str | None = None


class StoreRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    owner_user_id: str
    type: str
    is_active: bool
    created_at: datetime


class VariantOverrideUpsert(BaseModel):
    sku: str | None = None
    selling_price: Decimal | None = Field(default=None, ge=Decimal("0"))
    is_active: bool = True


class ListingVariantInput(VariantOverrideUpsert):
    catalog_variant_id: UUID


class ListingUpsert(BaseModel):
    id: UUID | None = None
    store_id: UUID | None = None
    catalog_product_id: UUID
    selling_price: Decimal = Field(ge=Decimal("0"))
    compare_at_price: Decimal | None = Field(default=None, ge=Decimal("0"))
    title: str | None = None
    description: str | None = None
    gallery_images: list[dict[str, Any]] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    design_data: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    status: ListingStatus | None = None
    variants: list[ListingVariantInput] | None = None


class ListingUpdate(BaseModel):
    store_id: UUID | None = None
    title: str | None = None
    description: str | None = None
    selling_price: Decimal | None = Field(default=None, ge=Decimal("0"))
    compare_at_price: Decimal | None = Field(default=None, ge=Decimal("0"))
    gallery_images: list[dict[str, Any]] | None = None
    tags: list[str] | None = None
    design_data: dict[str, Any] | None = None
    is_active: bool | None = None
    status: ListingStatus | None = None
    variants: list[ListingVariantInput] | None = None


class VariantSummaryRead(BaseModel):
    catalog_variant_id: UUID
    size: str
    color: str
    color_hex: str | None = None
    sku: str
    selling_price: Decimal
    production_cost: Decimal


class ListingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    store_id: UUID
    catalog_product_id: UUID
    title: str | None
    description: str | None
    selling_price: Decimal
    compare_at_price: Decimal | None
    gallery_images: list[dict[str, Any]]
    tags: list[str]
    design_data: dict[str, Any]
    status: ListingStatus
    published_at: datetime | None
    is_active: bool
    variants_summary: list[VariantSummaryRead]
    created_at: datetime
    updated_at: datetime


class PublicListingRead(BaseModel):
    id: UUID
    store_id: UUID
    catalog_product_id: UUID
    title: str
    description: str
    selling_price: Decimal
    compare_at_price: Decimal | None
    gallery_images: list[dict[str, Any]]
    tags: list[str]
    design_data: dict[str, Any]
    published_at: datetime | None
    variants: list[VariantSummaryRead]
