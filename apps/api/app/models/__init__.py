from app.models.user import User
from app.business.catalog.models import CatalogProduct, CatalogProductVariant, CatalogVariantOption
from app.business.storefront.models import Store, StoreProduct, StoreProductVariant
from app.business.migration.legacy_models import LegacyProduct, LegacyProductVariant

__all__ = [
	"User",
	"CatalogProduct",
	"CatalogProductVariant",
	"CatalogVariantOption",
	"Store",
	"StoreProduct",
	"StoreProductVariant",
	"LegacyProduct",
	"LegacyProductVariant",
]
