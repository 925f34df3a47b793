from app.platform.security.context import AuthContext
from app.platform.security.errors import AuthorizationError
from app.platform.security.repository import BaseRepository
from app.platform.security.rls import apply_store_filter, validate_operator_write, validate_store_write

__all__ = [
    "AuthContext",
    "AuthorizationError",
    "BaseRepository",
    "apply_store_filter",
    "validate_operator_write",
    "validate_store_write",
]
