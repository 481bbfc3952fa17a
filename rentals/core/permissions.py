from typing import List, Optional

from rentals.models.role import RoleLevel
from rentals.models.user import User


def get_level_value(level: str) -> int:
    """Convert a stored level name to its numeric value for comparison.

    Unknown levels rank below STAFF.
    """
    try:
        return RoleLevel[str(level)].value
    except KeyError:
        return len(RoleLevel)


class PermissionChecker:
    """
    Role checker for the three-tier hierarchy.
    ADMIN outranks MANAGER, which outranks STAFF.
    """

    def __init__(self, user: User):
        self.user = user
        self.roles = user.roles
        self.highest_role_level = self._get_highest_role_level()

    def _get_highest_role_level(self) -> Optional[str]:
        """Get the highest (lowest number) role level for the user as string."""
        if not self.roles:
            return None

        return min((role.level for role in self.roles), key=get_level_value)

    def is_admin(self) -> bool:
        return self.highest_role_level == RoleLevel.ADMIN.name

    def has_role(self, role_code: str) -> bool:
        """Check if user has a specific role."""
        return any(role.code == role_code for role in self.roles)

    def has_any_role(self, role_codes: List[str]) -> bool:
        return any(self.has_role(code) for code in role_codes)

    def has_role_level(self, level: RoleLevel) -> bool:
        """
        Check if user has a role at or above the specified level.

        Args:
            level: The minimum role level required (RoleLevel enum)

        Returns:
            True if user has sufficient role level
        """
        if self.highest_role_level is None:
            return False

        # Lower value = higher authority
        return get_level_value(self.highest_role_level) <= level.value

    def can_manage_user(self, target_user: User) -> bool:
        """
        Check if user can manage another user.
        Admins manage everyone except themselves; nobody else manages users.
        """
        if self.user.id == target_user.id:
            return False
        return self.is_admin()
