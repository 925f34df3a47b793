from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


ViewKey = Literal["front", "back", "left", "right"]
GstSlab = Literal[0, 5, 12, 18]
GstMode = Literal["EXCLUSIVE", "INCLUSIVE"]
OptionType = Literal["size", "color"]


class DesignView(BaseModel):
    key: ViewKey
    mockup_image_url: str = ""
    placeholders: list[dict[str, Any]] = Field(default_factory=list)


class CatalogDesign(BaseModel):
    views: list[DesignView] = Field(default_factory=list)
    sample_mockups: list[dict[str, Any]] = Field(default_factory=list)
    dpi: int = Field(default=300, gt=0)
    physical_dimensions: dict[str, float] | None = None


class GalleryImage(BaseModel):
    id: str = Field(min_length=1)
    url: str
    position: int = 0
    is_primary: bool = False
    image_type: str = "other"
    alt_text: str = ""


class CatalogShipping(BaseModel):
    package_length_cm: float = Field(gt=0)
    package_width_cm: float = Field(gt=0)
    package_height_cm: float = Field(gt=0)
    package_weight_grams: float = Field(gt=0)
    delivery_time_option: Literal["none", "default", "specific"] = "specific"
    additional_shipping_cost: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))


class CatalogVariantCreate(BaseModel):
    size: str = Field(min_length=1)
    color: str = Field(min_length=1)
    color_hex: str | None = None
    sku: str | None = None
    base_price: Decimal | None = Field(default=None, ge=Decimal("0"))
    is_active: bool = True
    view_images: dict[str, str] = Field(default_factory=dict)


class CatalogVariantUpdate(BaseModel):
    size: str | None = Field(default=None, min_length=1)
    color: str | None = Field(default=None, min_length=1)
    color_hex: str | None = None
    sku: str | None = Field(default=None, min_length=1)
    base_price: Decimal | None = Field(default=None, ge=Decimal("0"))
    is_active: bool | None = None
    view_images: dict[str, str] | None = None


class CatalogVariantRead(BaseModel):
    id: UUID
    catalog_product_id: UUID
    size: str
    color: str
    color_hex: str | None
    sku: str
    price: Decimal | None
    is_active: bool
    view_images: dict[str, str]


class CatalogProductCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    category_id: str = Field(min_length=1)
    subcategory_ids: list[str] = Field(default_factory=list)
    product_type_code: str = Field(min_length=1)
    tags: list[str] = Field(default_factory=list)
    attributes: dict[str, Any] = Field(default_factory=dict)
    base_price: Decimal = Field(ge=Decimal("0"))
    gst_slab: GstSlab = 18
    gst_mode: GstMode = "EXCLUSIVE"
    hsn: str = ""
    design: CatalogDesign
    shipping: CatalogShipping
    gallery_images: list[GalleryImage] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)
    is_published: bool = True
    variants: list[CatalogVariantCreate] = Field(default_factory=list)


class CatalogProductUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, min_length=1)
    category_id: str | None = Field(default=None, min_length=1)
    subcategory_ids: list[str] | None = None
    product_type_code: str | None = Field(default=None, min_length=1)
    tags: list[str] | None = None
    attributes: dict[str, Any] | None = None
    base_price: Decimal | None = Field(default=None, ge=Decimal("0"))
    design: CatalogDesign | None = None
    shipping: CatalogShipping | None = None
    gallery_images: list[GalleryImage] | None = None
    details: dict[str, Any] | None = None
    is_active: bool | None = None
    is_published: bool | None = None


class CatalogGstUpdate(BaseModel):
    slab: GstSlab
    mode: GstMode = "EXCLUSIVE"
    hsn: str = ""


class CatalogProductRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str
    category_id: str
    subcategory_ids: list[str]
    product_type_code: str
    tags: list[str]
    attributes: dict[str, Any]
    base_price: Decimal
    gst_slab: int
    gst_mode: str
    hsn: str
    design: dict[str, Any]
    shipping: dict[str, Any]
    gallery_images: list[dict[str, Any]]
    details: dict[str, Any]
    is_active: bool
    is_published: bool
    created_by: str | None
    legacy_product_id: UUID | None
    created_at: datetime
    updated_at: datetime
    variants: list[CatalogVariantRead] = Field(default_factory=list)
    available_sizes: list[str] = Field(default_factory=list)
    available_colors: list[str] = Field(default_factory=list)


class VariantConflict(BaseModel):
    size: str
    color: str
    sku: str
    reason: str


class CatalogVariantBulkCreate(BaseModel):
    variants: list[CatalogVariantCreate] = Field(min_length=1)


class CatalogVariantBulkResult(BaseModel):
    created: list[CatalogVariantRead]
    conflicts: list[VariantConflict]


class CatalogProductDeleteResult(BaseModel):
    id: UUID
    outcome: Literal["deleted", "deactivated"]
    resynced_listings: int


class VariantOptionCreate(BaseModel):
    category_id: str = Field(min_length=1)
    subcategory_id: str | None = None
    option_type: OptionType
    value: str = Field(min_length=1)
    color_hex: str | None = None


class VariantOptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    category_id: str
    subcategory_id: str | None
    option_type: str
    value: str
    color_hex: str | None
    is_active: bool
    usage_count: int
    created_at: datetime


class VariantOptionUsageUpdate(BaseModel):
    by: int = 1
