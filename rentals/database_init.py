"""Seed the data the application needs to start: roles, first admin, settings, languages."""
import logging
from typing import Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.config import settings
from rentals.core.security import get_password_hash
from rentals.database import async_session_factory, init_db
from rentals.models.role import Role, SYSTEM_ROLES
from rentals.models.user import User, UserRole


logger = logging.getLogger(__name__)


async def seed_roles(db: AsyncSession) -> int:
    """Create the ADMIN, MANAGER and STAFF roles if missing."""
    existing = set((await db.execute(select(Role.code))).scalars().all())
    created = 0
    for definition in SYSTEM_ROLES:
        if definition["code"] in existing:
            continue
        db.add(Role(**definition, is_system=True, is_active=True))
        created += 1

    await db.commit()
    if created:
        logger.info(f"Created {created} system roles")
    return created


async def seed_first_admin(db: AsyncSession) -> bool:
    """Create the bootstrap admin account when no user has the ADMIN role."""
    admin_role = (await db.execute(select(Role).where(Role.code == "ADMIN"))).scalar_one()

    has_admin = (await db.execute(
        select(UserRole.id).where(UserRole.role_id == admin_role.id).limit(1)
    )).scalar_one_or_none()
    if has_admin:
        return False

    email = settings.FIRST_ADMIN_EMAIL.lower()
    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if user is None:
        user = User(
            email=email,
            password_hash=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
            first_name="System",
            last_name="Administrator",
            is_active=True,
        )
        db.add(user)
        await db.flush()

    db.add(UserRole(user_id=user.id, role_id=admin_role.id))
    await db.commit()

    logger.warning(f"Created bootstrap admin {email}; change its password")
    return True


async def seed_all(db: AsyncSession) -> Dict[str, int]:
    from rentals.services.localization_service import LocalizationService
    from rentals.services.system_management_service import SystemManagementService

    return {
        "roles": await seed_roles(db),
        "admin": int(await seed_first_admin(db)),
        "settings": await SystemManagementService(db).seed_defaults(),
        "translations": await LocalizationService(db).seed_defaults(),
    }


async def initialize_database() -> None:
    """Create tables and seed; called from the application lifespan."""
    await init_db()
    if not settings.SEED_ON_STARTUP:
        return

    async with async_session_factory() as db:
        result = await seed_all(db)
    logger.info(f"Seed complete: {result}")
