from app.business.catalog.categories import category_ids, is_valid_category, is_valid_subcategory, subcategories
from app.business.catalog.models import CatalogProduct, CatalogProductVariant, CatalogVariantOption
from app.business.catalog.schemas import (
    CatalogGstUpdate,
    CatalogProductCreate,
    CatalogProductRead,
    CatalogProductUpdate,
    CatalogVariantCreate,
    CatalogVariantRead,
    CatalogVariantUpdate,
    VariantOptionCreate,
    VariantOptionRead,
)

__all__ = [
    "CatalogProduct",
    "CatalogProductVariant",
    "CatalogVariantOption",
    "CatalogProductCreate",
    "CatalogProductUpdate",
    "CatalogProductRead",
    "CatalogGstUpdate",
    "CatalogVariantCreate",
    "CatalogVariantUpdate",
    "CatalogVariantRead",
    "VariantOptionCreate",
    "VariantOptionRead",
    "category_ids",
    "subcategories",
    "is_valid_category",
    "is_valid_subcategory",
]
