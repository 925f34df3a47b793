from dataclasses import dataclass

from jose import JWTError, jwt
from starlette.requests import Request

from app.core.config import get_settings


ROLE_SUPERADMIN = "superadmin"
ROLE_MERCHANT = "merchant"
ROLE_GUEST = "guest"


@dataclass
class AuthUser:
    sub: str
    roles: list[str]

    @property
    def role(self) -> str:
        normalized = {role.lower() for role in self.roles}
        if ROLE_SUPERADMIN in normalized:
            return ROLE_SUPERADMIN
        if ROLE_MERCHANT in normalized:
            return ROLE_MERCHANT
        return ROLE_GUEST


async def get_current_user(request: Request) -> AuthUser:
    auth_header = request.headers.get("authorization", "")
    token = auth_header.replace("Bearer ", "") if auth_header.startswith("Bearer ") else ""

    if not token:
        return AuthUser(sub="anonymous", roles=[ROLE_GUEST])

    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return AuthUser(sub="anonymous", roles=[ROLE_GUEST])

    subject = str(payload.get("sub", "anonymous"))
    roles = payload.get("roles")
    if not isinstance(roles, list):
        role = payload.get("role")
        roles = [role] if isinstance(role, str) else [ROLE_GUEST]
    return AuthUser(sub=subject, roles=[str(role) for role in roles])
