from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.sql import Select

from app import audit
from app.metrics import observe_rls_denied_write
from app.platform.security.context import AuthContext
from app.platform.security.errors import AuthorizationError


def is_admin_bypass(ctx: AuthContext) -> bool:
    return ctx.is_super_admin


def apply_store_filter(query: Select[Any], ctx: AuthContext) -> Select[Any]:
    """Restrict queries over store-owned models to the caller's stores."""

    if is_admin_bypass(ctx):
        return query

    owned = list(ctx.owned_store_ids)
    for description in query.column_descriptions:
        model = description.get("entity")
        if model is None:
            continue
        if hasattr(model, "store_id"):
            query = query.where(getattr(model, "store_id").in_(owned))
        elif hasattr(model, "owner_user_id"):
            query = query.where(getattr(model, "owner_user_id") == ctx.user_id)
    return query


def validate_store_write(resource: str, ctx: AuthContext, *, store_id: uuid.UUID, action: str = "write") -> None:
    """Merchants may only write under stores they own; superadmins may write anywhere."""

    if is_admin_bypass(ctx):
        return
    if ctx.owns_store(store_id):
        return

    _emit_denied(resource=resource, action=action, ctx=ctx, scope_value=str(store_id))
    raise AuthorizationError(resource, action, "store is not owned by caller")


def validate_operator_write(resource: str, ctx: AuthContext, *, action: str = "write") -> None:
    if is_admin_bypass(ctx):
        return

    _emit_denied(resource=resource, action=action, ctx=ctx, scope_value="catalog")
    raise AuthorizationError(resource, action, "platform operator role required")


def _emit_denied(*, resource: str, action: str, ctx: AuthContext, scope_value: str) -> None:
    observe_rls_denied_write(resource=resource)
    audit.record(
        actor_user_id=ctx.user_id,
        entity_type="security.rls",
        entity_id="scope",
        action="rls.denied",
        before=None,
        after={
            "resource": resource,
            "action": action,
            "scope_value": scope_value,
            "role": ctx.role,
        },
        correlation_id=ctx.correlation_id,
    )
