from __future__ import annotations

from app.platform.security.repository import BaseRepository


class CatalogProductRepository(BaseRepository):
    resource = "catalog.product"
    operator_owned = True


class CatalogVariantRepository(BaseRepository):
    resource = "catalog.variant"
    operator_owned = True


class CatalogVariantOptionRepository(BaseRepository):
    resource = "catalog.variant_option"
    operator_owned = True
