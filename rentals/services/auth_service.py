from datetime import datetime, timezone
from typing import List, Optional, Tuple
import logging
import uuid

from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.models.user import User, UserRole
from rentals.models.role import Role
from rentals.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    create_refresh_token,
    verify_refresh_token,
)
from rentals.config import settings


logger = logging.getLogger(__name__)


class AuthError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


def user_with_roles():
    """Select User with its roles eagerly loaded."""
    return select(User).options(selectinload(User.user_roles).selectinload(UserRole.role))


class AuthService:
    """Authentication service for user login and token management."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        stmt = (
            user_with_roles()
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(user_with_roles().where(func.lower(User.email) == email.lower()))
        return result.scalar_one_or_none()

    async def authenticate_user(
        self,
        email: str,
        password: str
    ) -> Optional[User]:
        """
        Authenticate a user by email and password.

        Args:
            email: User's email address
            password: Plain text password

        Returns:
            User object if authentication successful, None otherwise
        """
        user = await self.get_user_by_email(email)

        if user is None:
            logger.info(f"Login failed for unknown email {email}")
            return None

        if not verify_password(password, user.password_hash):
            logger.info(f"Login failed for {email}: wrong password")
            return None

        if not user.is_active:
            logger.info(f"Login refused for deactivated user {email}")
            return None

        return user

    async def create_tokens(
        self,
        user: User
    ) -> Tuple[str, str, int]:
        """
        Create access and refresh tokens for a user.

        Returns:
            Tuple of (access_token, refresh_token, expires_in_seconds)
        """
        additional_claims = {
            "email": user.email,
            "roles": user.role_codes,
        }

        access_token = create_access_token(
            subject=user.id,
            additional_claims=additional_claims
        )
        refresh_token = create_refresh_token(subject=user.id)
        expires_in = settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

        # Update last login time
        user.last_login_at = datetime.now(timezone.utc)
        await self.db.commit()

        return access_token, refresh_token, expires_in

    async def refresh_tokens(
        self,
        refresh_token: str
    ) -> Optional[Tuple[User, str, str, int]]:
        """
        Issue a new token pair from a valid refresh token.

        Returns None if the token is invalid or the user is gone or inactive.
        """
        user_id = verify_refresh_token(refresh_token)
        if user_id is None:
            return None

        try:
            user_uuid = uuid.UUID(user_id)
        except ValueError:
            return None

        user = await self.get_user_by_id(user_uuid)
        if user is None or not user.is_active:
            return None

        access_token, new_refresh_token, expires_in = await self.create_tokens(user)
        return user, access_token, new_refresh_token, expires_in

    async def register_user(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
        roles: Optional[List[str]] = None,
        assigned_by: Optional[uuid.UUID] = None
    ) -> User:
        """
        Register a new back-office user with the given role codes.

        Raises:
            AuthError: if the email is taken or a role code is unknown
        """
        if await self.get_user_by_email(email):
            raise AuthError(f"User with email '{email}' already exists")

        role_codes = [code.upper() for code in (roles or ["STAFF"])]
        found = (await self.db.execute(
            select(Role).where(Role.code.in_(role_codes), Role.is_active == True)
        )).scalars().all()
        missing = set(role_codes) - {role.code for role in found}
        if missing:
            raise AuthError(f"Unknown roles: {', '.join(sorted(missing))}")

        user = User(
            email=email.lower(),
            password_hash=get_password_hash(password),
            first_name=first_name,
            last_name=last_name or None,
            phone=phone or None,
            user_roles=[UserRole(role_id=role.id, assigned_by=assigned_by) for role in found],
        )

        self.db.add(user)
        await self.db.commit()

        logger.info(f"User {user.email} registered with roles {role_codes}")
        return await self.get_user_by_id(user.id)

    async def change_password(
        self,
        user: User,
        current_password: str,
        new_password: str
    ) -> bool:
        """
        Change a user's password.

        Returns:
            True if password changed successfully, False if the current one is wrong
        """
        if not verify_password(current_password, user.password_hash):
            return False

        user.password_hash = get_password_hash(new_password)
        await self.db.commit()

        logger.info(f"Password changed for {user.email}")
        return True

    async def update_profile(self, user: User, data: dict) -> User:
        new_email = data.get("email")
        if new_email and new_email.lower() != user.email:
            if await self.get_user_by_email(new_email):
                raise AuthError(f"User with email '{new_email}' already exists")
            data["email"] = new_email.lower()

        for key, value in data.items():
            if value is not None:
                setattr(user, key, value)

        await self.db.commit()
        return await self.get_user_by_id(user.id)
