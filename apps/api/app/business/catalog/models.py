from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogProduct(Base):
    __tablename__ = "catalog_product"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subcategory_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    product_type_code: Mapped[str] = mapped_column(String(64), nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    attributes: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    gst_slab: Mapped[int] = mapped_column(Integer, nullable=False, default=18, server_default="18")
    gst_mode: Mapped[str] = mapped_column(String(16), nullable=False, default="EXCLUSIVE", server_default="EXCLUSIVE")
    hsn: Mapped[str] = mapped_column(String(32), nullable=False, default="", server_default="")
    design: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    shipping: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    gallery_images: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    legacy_product_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    variants: Mapped[list[CatalogProductVariant]] = relationship(
        "CatalogProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_catalog_product_listing", "category_id", "is_active", "is_published"),
        Index("ix_catalog_product_created_by", "created_by"),
    )


class CatalogProductVariant(Base):
    __tablename__ = "catalog_product_variant"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    catalog_product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("catalog_product.id", ondelete="CASCADE"),
        nullable=False,
    )
    size: Mapped[str] = mapped_column(String(64), nullable=False)
    color: Mapped[str] = mapped_column(String(64), nullable=False)
    color_hex: Mapped[str | None] = mapped_column(String(16), nullable=True)
    sku_template: Mapped[str] = mapped_column(String(128), nullable=False)
    base_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    view_images: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    product: Mapped[CatalogProduct] = relationship("CatalogProduct", back_populates="variants")

    __table_args__ = (
        UniqueConstraint("catalog_product_id", "size", "color", name="uq_catalog_variant_axis"),
        UniqueConstraint("catalog_product_id", "sku_template", name="uq_catalog_variant_sku"),
        Index("ix_catalog_variant_product_active", "catalog_product_id", "is_active"),
    )


class CatalogVariantOption(Base):
    __tablename__ = "catalog_variant_option"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    category_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subcategory_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    option_type: Mapped[str] = mapped_column(String(16), nullable=False)
    value: Mapped[str] = mapped_column(String(64), nullable=False)
    color_hex: Mapped[str | None] = mapped_column(String(16), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("category_id", "subcategory_id", "option_type", "value", name="uq_catalog_variant_option_value"),
        Index("ix_catalog_variant_option_lookup", "category_id", "option_type"),
    )
