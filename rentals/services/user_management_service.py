from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple
import logging
import uuid

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.core.security import get_password_hash
from rentals.models.role import Role
from rentals.models.user import User, UserRole
from rentals.services.auth_service import user_with_roles


logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "email": User.email,
    "first_name": User.first_name,
    "last_name": User.last_name,
    "created_at": User.created_at,
    "last_login_at": User.last_login_at,
}


class UserManagementError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class UserManagementService:
    """Admin operations on back-office users and their roles."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_users(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        role: Optional[str] = None,
        sort_by: str = "created_at",
        sort_desc: bool = True,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[User], int]:
        filters = []
        if search:
            term = f"%{search.lower()}%"
            filters.append(or_(
                func.lower(User.email).like(term),
                func.lower(User.first_name).like(term),
                func.lower(User.last_name).like(term),
            ))
        if is_active is not None:
            filters.append(User.is_active == is_active)
        if role:
            filters.append(User.id.in_(
                select(UserRole.user_id).join(Role).where(Role.code == role.upper())
            ))

        sort_column = SORT_COLUMNS.get(sort_by, User.created_at)
        stmt = user_with_roles().where(*filters).order_by(
            sort_column.desc() if sort_desc else sort_column.asc()
        )
        total = (await self.db.execute(select(func.count(User.id)).where(*filters))).scalar()
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        stmt = (
            user_with_roles()
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def update_user(self, user_id: uuid.UUID, data: dict) -> Optional[User]:
        user = await self.get_user_by_id(user_id)
        if not user:
            return None

        new_email = data.get("email")
        if new_email and new_email.lower() != user.email:
            taken = (await self.db.execute(
                select(User.id).where(func.lower(User.email) == new_email.lower())
            )).scalar_one_or_none()
            if taken:
                raise UserManagementError(f"User with email '{new_email}' already exists")
            data["email"] = new_email.lower()

        for key, value in data.items():
            if value is not None:
                setattr(user, key, value)

        await self.db.commit()
        return await self.get_user_by_id(user_id)

    async def delete_user(self, user_id: uuid.UUID, acting_user_id: uuid.UUID) -> bool:
        if user_id == acting_user_id:
            raise UserManagementError("You cannot delete your own account")

        user = await self.get_user_by_id(user_id)
        if not user:
            return False

        await self.db.delete(user)
        await self.db.commit()

        logger.info(f"User {user.email} deleted")
        return True

    async def set_activation(
        self,
        user_id: uuid.UUID,
        is_active: bool,
        acting_user_id: uuid.UUID
    ) -> Optional[User]:
        if user_id == acting_user_id and not is_active:
            raise UserManagementError("You cannot deactivate your own account")

        user = await self.get_user_by_id(user_id)
        if not user:
            return None

        user.is_active = is_active
        await self.db.commit()

        logger.info(f"User {user.email} {'activated' if is_active else 'deactivated'}")
        return await self.get_user_by_id(user_id)

    async def reset_password(self, user_id: uuid.UUID, new_password: str) -> Optional[User]:
        user = await self.get_user_by_id(user_id)
        if not user:
            return None

        user.password_hash = get_password_hash(new_password)
        await self.db.commit()

        logger.info(f"Password reset for {user.email}")
        return user

    async def _get_roles(self, role_codes: List[str]) -> List[Role]:
        codes = {code.upper() for code in role_codes}
        roles = (await self.db.execute(
            select(Role).where(Role.code.in_(codes), Role.is_active == True)
        )).scalars().all()
        missing = codes - {role.code for role in roles}
        if missing:
            raise UserManagementError(f"Unknown roles: {', '.join(sorted(missing))}")
        return list(roles)

    async def assign_roles(
        self,
        user_id: uuid.UUID,
        role_codes: List[str],
        assigned_by: Optional[uuid.UUID] = None
    ) -> Optional[User]:
        """Add roles to a user; roles already held are left as they are."""
        user = await self.get_user_by_id(user_id)
        if not user:
            return None

        held = {ur.role_id for ur in user.user_roles}
        for role in await self._get_roles(role_codes):
            if role.id not in held:
                user.user_roles.append(UserRole(role_id=role.id, assigned_by=assigned_by))
                logger.info(f"Role {role.code} assigned to {user.email}")

        await self.db.commit()
        return await self.get_user_by_id(user_id)

    async def remove_roles(self, user_id: uuid.UUID, role_codes: List[str]) -> Optional[User]:
        """Remove roles from a user; a user must keep at least one role."""
        user = await self.get_user_by_id(user_id)
        if not user:
            return None

        codes = {code.upper() for code in role_codes}
        remaining = [ur for ur in user.user_roles if ur.role.code not in codes]
        if not remaining:
            raise UserManagementError("A user must keep at least one role")

        for user_role in [ur for ur in user.user_roles if ur.role.code in codes]:
            user.user_roles.remove(user_role)
            logger.info(f"Role {user_role.role.code} removed from {user.email}")

        await self.db.commit()
        return await self.get_user_by_id(user_id)

    async def get_available_roles(self) -> List[Role]:
        stmt = select(Role).where(Role.is_active == True).order_by(Role.code)
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_statistics(self) -> Dict:
        users = (await self.db.execute(user_with_roles())).scalars().all()
        cutoff = datetime.now(timezone.utc) - timedelta(days=30)

        def created(user: User) -> datetime:
            # SQLite hands back naive datetimes
            value = user.created_at
            return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

        by_role: Dict[str, int] = {}
        for user in users:
            for code in user.role_codes:
                by_role[code] = by_role.get(code, 0) + 1

        active = sum(1 for user in users if user.is_active)
        return {
            "total_users": len(users),
            "active_users": active,
            "inactive_users": len(users) - active,
            "new_users_last_30_days": sum(1 for user in users if created(user) >= cutoff),
            "users_by_role": by_role,
        }

    async def bulk_operation(
        self,
        user_ids: List[uuid.UUID],
        operation: str,
        acting_user_id: uuid.UUID
    ) -> int:
        """Apply activate/deactivate/delete to many users, skipping self and unknown ids."""
        targets = [user_id for user_id in set(user_ids) if user_id != acting_user_id]
        if not targets:
            return 0

        users = (await self.db.execute(user_with_roles().where(User.id.in_(targets)))).scalars().all()
        for user in users:
            if operation == "delete":
                await self.db.delete(user)
            else:
                user.is_active = operation == "activate"

        await self.db.commit()

        logger.info(f"Bulk {operation} applied to {len(users)} users")
        return len(users)
