from app.business.migration.legacy_models import LegacyProduct, LegacyProductVariant

__all__ = ["LegacyProduct", "LegacyProductVariant"]
