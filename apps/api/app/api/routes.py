from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from app.business.catalog.api import options_router, router as catalog_products_router, variants_router
from app.business.storefront.api import router as store_products_router, stores_router
from app.core.auth import ROLE_SUPERADMIN, AuthUser, get_current_user
from app.core.config import get_settings
from app.metrics import generate_metrics_payload, metrics_content_type

api_router = APIRouter(prefix="/api")
api_router.include_router(catalog_products_router)
api_router.include_router(variants_router)
api_router.include_router(options_router)
api_router.include_router(stores_router)
api_router.include_router(store_products_router)

router = APIRouter()
router.include_router(api_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/me", tags=["auth"])
async def me(user: AuthUser = Depends(get_current_user)) -> dict[str, str | list[str]]:
    return {
        "sub": user.sub,
        "role": user.role,
        "roles": user.roles,
    }


@router.get("/metrics", tags=["system"])
def metrics(user: AuthUser = Depends(get_current_user)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    if user.role != ROLE_SUPERADMIN and "system.metrics.read" not in user.roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing permission: system.metrics.read")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
