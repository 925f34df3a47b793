from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.sql import Select

from app.platform.security.context import AuthContext
from app.platform.security.rls import apply_store_filter, validate_operator_write, validate_store_write


class BaseRepository:
    resource = ""
    operator_owned = False

    def apply_scope_query(self, query: Select[Any], ctx: AuthContext) -> Select[Any]:
        if self.operator_owned:
            return query
        return apply_store_filter(query, ctx)

    def validate_write_security(
        self,
        ctx: AuthContext,
        *,
        store_id: uuid.UUID | None = None,
        action: str = "write",
    ) -> None:
        if self.operator_owned or store_id is None:
            validate_operator_write(self.resource, ctx, action=action)
            return
        validate_store_write(self.resource, ctx, store_id=store_id, action=action)
