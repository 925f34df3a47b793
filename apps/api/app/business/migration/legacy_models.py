from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LegacyProduct(Base):
    """Single-table product from before the catalog/listing split.

    The JSON columns keep the legacy document shape (camelCase keys), e.g.
    ``catalogue.basePrice`` and ``design.views[].mockupImageUrl``.
    """

    __tablename__ = "legacy_product"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    catalogue: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    design: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    gallery_images: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    shipping: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    variants: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    available_sizes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    available_colors: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class LegacyProductVariant(Base):
    __tablename__ = "legacy_product_variant"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    size: Mapped[str] = mapped_column(String(64), nullable=False)
    color: Mapped[str] = mapped_column(String(64), nullable=False)
    sku: Mapped[str | None] = mapped_column(String(128), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    __table_args__ = (Index("ix_legacy_product_variant_product", "product_id"),)
