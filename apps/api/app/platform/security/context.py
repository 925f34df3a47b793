from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from app.core.auth import ROLE_SUPERADMIN


@dataclass(slots=True)
class AuthContext:
    """Authenticated principal plus the set of stores it may write listings under."""

    user_id: str
    role: str
    owned_store_ids: list[uuid.UUID] = field(default_factory=list)
    correlation_id: str | None = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == ROLE_SUPERADMIN

    def owns_store(self, store_id: uuid.UUID) -> bool:
        return store_id in set(self.owned_store_ids)
