from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.business.storefront.models import Store
from app.context import get_correlation_id
from app.core.auth import AuthUser, get_current_user as get_auth_user
from app.core.database import get_db
from app.platform.security.context import AuthContext


def get_auth_context(
    request: Request,
    auth_user: AuthUser = Depends(get_auth_user),
    db: Session = Depends(get_db),
) -> AuthContext:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    owned_store_ids = list(db.scalars(select(Store.id).where(Store.owner_user_id == auth_user.sub)).all())

    return AuthContext(
        user_id=auth_user.sub,
        role=auth_user.role,
        owned_store_ids=owned_store_ids,
        correlation_id=correlation_id,
    )
