from app.platform.security import (
    AuthContext,
    AuthorizationError,
    BaseRepository,
    apply_store_filter,
    validate_operator_write,
    validate_store_write,
)

__all__ = [
    "AuthContext",
    "AuthorizationError",
    "BaseRepository",
    "apply_store_filter",
    "validate_operator_write",
    "validate_store_write",
]
