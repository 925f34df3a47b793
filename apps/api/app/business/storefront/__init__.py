from app.business.storefront.models import Store, StoreProduct, StoreProductVariant
from app.business.storefront.resolution import ResolvedVariant, VariantResolution, resolve_variants
from app.business.storefront.projection import resync_catalog_product, sync_variants_summary
from app.business.storefront.schemas import ListingRead, ListingUpdate, ListingUpsert, StoreCreate, StoreRead
from app.business.storefront.service import StorefrontService, storefront_service

__all__ = [
    "Store",
    "StoreProduct",
    "StoreProductVariant",
    "ResolvedVariant",
    "VariantResolution",
    "resolve_variants",
    "sync_variants_summary",
    "resync_catalog_product",
    "ListingRead",
    "ListingUpdate",
    "ListingUpsert",
    "StoreCreate",
    "StoreRead",
    "StorefrontService",
    "storefront_service",
]
