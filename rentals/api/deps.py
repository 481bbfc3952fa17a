from typing import Annotated
import uuid
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.database import get_db
from rentals.core.security import verify_access_token
from rentals.core.permissions import PermissionChecker
from rentals.models.user import User
from rentals.models.role import RoleLevel
from rentals.services.auth_service import AuthService


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Dependency to get the current authenticated user.
    Validates the JWT token and returns the user with roles loaded.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    user_id = verify_access_token(credentials.credentials)

    if user_id is None:
        logger.warning("Token verification failed - invalid or expired token")
        raise credentials_exception

    try:
        user_uuid = uuid.UUID(user_id)
    except ValueError:
        logger.warning(f"Invalid user_id in token: {user_id}")
        raise credentials_exception

    user = await AuthService(db).get_user_by_id(user_uuid)

    if user is None:
        logger.warning(f"User {user_id} from token not found")
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated"
        )

    return user


async def get_permission_checker(
    user: Annotated[User, Depends(get_current_user)],
) -> PermissionChecker:
    return PermissionChecker(user)


def require_role_level(level: RoleLevel):
    """
    Dependency factory to require a minimum role level.

    Usage:
        @router.get("/", dependencies=[Depends(require_role_level(RoleLevel.MANAGER))])
        async def manager_endpoint():
            ...
    """
    async def role_level_dependency(
        permission_checker: Annotated[PermissionChecker, Depends(get_permission_checker)]
    ):
        if not permission_checker.has_role_level(level):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient role level. Required: {level.name} or higher"
            )
        return True

    return role_level_dependency


# Type aliases for cleaner endpoint signatures
CurrentUser = Annotated[User, Depends(get_current_user)]
DB = Annotated[AsyncSession, Depends(get_db)]
Permissions = Annotated[PermissionChecker, Depends(get_permission_checker)]

# Role gates
StaffOnly = Depends(require_role_level(RoleLevel.STAFF))
ManagerOnly = Depends(require_role_level(RoleLevel.MANAGER))
AdminOnly = Depends(require_role_level(RoleLevel.ADMIN))
