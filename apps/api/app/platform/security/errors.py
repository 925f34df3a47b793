from __future__ import annotations

from app.platform.errors import Unauthorized


class AuthorizationError(Unauthorized):
    """Raised when the caller's role or store ownership does not allow the operation."""

    def __init__(self, resource: str, action: str, reason: str) -> None:
        super().__init__(f"Not authorized to {action} '{resource}': {reason}", details={"resource": resource, "action": action})
        self.resource = resource
        self.action = action
