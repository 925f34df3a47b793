from __future__ import annotations

from app.platform.security.repository import BaseRepository


class StoreRepository(BaseRepository):
    resource = "storefront.store"


class ListingRepository(BaseRepository):
    resource = "storefront.listing"


class VariantOverrideRepository(BaseRepository):
    resource = "storefront.variant_override"
