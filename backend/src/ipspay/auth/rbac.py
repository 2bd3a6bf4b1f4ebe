"""Role-based access control and the explicit caller context.

Two roles exist: USER (a payer) and ADMIN (operators who reconcile bank
statements). Ledger operations receive a ``CallerContext`` built from the
verified token rather than reading request state.
"""
from enum import Enum
from functools import wraps
from typing import Callable, List

from fastapi import HTTPException, status
from pydantic import BaseModel, ConfigDict
import structlog

logger = structlog.get_logger(__name__)


class Role(str, Enum):
    """User roles with hierarchical permissions."""

    ADMIN = "ADMIN"
    USER = "USER"


# Role hierarchy: higher roles inherit permissions from lower roles
ROLE_HIERARCHY = {
    Role.ADMIN: [Role.ADMIN, Role.USER],
    Role.USER: [Role.USER],
}


class CallerContext(BaseModel):
    """Identity and capability of whoever invokes a ledger operation."""

    model_config = ConfigDict(frozen=True)

    caller_id: str
    role: Role = Role.USER
    request_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def can_access(self, payer_id: str) -> bool:
        """Payers see their own intents; admins see all."""
        return self.is_admin or self.caller_id == payer_id

    @classmethod
    def from_claims(cls, claims: dict, request_id: str | None = None) -> "CallerContext":
        """Build a context from decoded JWT claims; unknown roles degrade to USER."""
        try:
            role = Role(claims.get("role"))
        except ValueError:
            role = Role.USER
        return cls(caller_id=str(claims["sub"]), role=role, request_id=request_id)


def check_role_hierarchy(user_role: str, required_roles: List[Role]) -> bool:
    """
    Check if user role satisfies any of the required roles (considering hierarchy).

    Args:
        user_role: User's role
        required_roles: List of acceptable roles

    Returns:
        True if user role satisfies requirement
    """
    try:
        user_role_enum = Role(user_role)
    except ValueError:
        return False

    user_allowed_roles = ROLE_HIERARCHY.get(user_role_enum, [])
    return any(req_role in user_allowed_roles for req_role in required_roles)


def require_roles(*required_roles: Role):
    """
    Decorator to require specific roles for endpoint access.

    Usage:
        @require_roles(Role.ADMIN)
        async def verify_payment(..., current_user: dict = Depends(get_current_user)):
            ...

    Raises:
        HTTPException: 401 without a user, 403 if the role is insufficient
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            current_user = kwargs.get("current_user")

            if not current_user:
                logger.error("rbac_missing_current_user", endpoint=func.__name__)
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Authentication required",
                )

            user_role = current_user.get("role")

            if not check_role_hierarchy(user_role, list(required_roles)):
                logger.warning(
                    "rbac_permission_denied",
                    user_id=current_user.get("sub"),
                    user_role=user_role,
                    required_roles=[r.value for r in required_roles],
                    endpoint=func.__name__,
                )
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Insufficient permissions. Required roles: {', '.join(r.value for r in required_roles)}",
                )

            return await func(*args, **kwargs)

        return wrapper
    return decorator
