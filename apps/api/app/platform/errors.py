from __future__ import annotations

import uuid
from typing import Any


class CatalogError(Exception):
    """Base class for errors surfaced to API callers with a stable ``kind``."""

    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(CatalogError):
    kind = "validation_error"
    status_code = 422

    @classmethod
    def for_field(cls, field: str, message: str) -> ValidationError:
        return cls(message, details=[{"field": field, "message": message}])


class NotFound(CatalogError):
    kind = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} not found", details={"entity": entity, "id": str(entity_id)})
        self.entity = entity
        self.entity_id = entity_id


class Conflict(CatalogError):
    kind = "conflict"
    status_code = 409


class Unauthorized(CatalogError):
    kind = "unauthorized"
    status_code = 403


class DanglingReference(CatalogError):
    """A listing points at a catalog product or variant that no longer exists.

    Resolution returns this as a condition next to an empty variant set instead of raising it.
    """

    kind = "dangling_reference"
    status_code = 409

    def __init__(self, listing_id: uuid.UUID, catalog_product_id: uuid.UUID) -> None:
        super().__init__(
            "listing references a catalog product that no longer exists",
            details={"listing_id": str(listing_id), "catalog_product_id": str(catalog_product_id)},
        )
        self.listing_id = listing_id
        self.catalog_product_id = catalog_product_id
