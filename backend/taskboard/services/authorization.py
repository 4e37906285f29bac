"""Role-based capability checks.

Route handlers call these explicitly per operation so the rule is visible
next to the code it guards.
"""

from enum import Enum

from taskboard.models.enums import UserRole


class Permission(str, Enum):
    LIST_USERS = "list_users"
    VIEW_USER = "view_user"
    MANAGE_USERS = "manage_users"
    CREATE_PROJECT = "create_project"
    UPDATE_PROJECT = "update_project"
    CHANGE_PROJECT_STATUS = "change_project_status"
    MANAGE_PROJECT_TEAM = "manage_project_team"
    DELETE_PROJECT = "delete_project"
    VIEW_WORK_ITEM_SUMMARY = "view_work_item_summary"
    DELETE_WORK_ITEM = "delete_work_item"
    CREATE_NOTIFICATION = "create_notification"
    CLEANUP_NOTIFICATIONS = "cleanup_notifications"
    SEND_TEST_NOTIFICATION = "send_test_notification"


_ALL = frozenset(UserRole)
_STAFF = frozenset({UserRole.ADMIN, UserRole.MANAGER})
_ADMIN = frozenset({UserRole.ADMIN})

# Roles granted a permission outright
ROLE_PERMISSIONS: dict[Permission, frozenset[UserRole]] = {
    Permission.LIST_USERS: _ALL,
    Permission.VIEW_USER: _STAFF,
    Permission.MANAGE_USERS: _ADMIN,
    Permission.CREATE_PROJECT: _STAFF,
    Permission.UPDATE_PROJECT: _ADMIN,
    Permission.CHANGE_PROJECT_STATUS: _STAFF,
    Permission.MANAGE_PROJECT_TEAM: _STAFF,
    Permission.DELETE_PROJECT: _STAFF,
    Permission.VIEW_WORK_ITEM_SUMMARY: _STAFF,
    Permission.DELETE_WORK_ITEM: _STAFF,
    Permission.CREATE_NOTIFICATION: _STAFF,
    Permission.CLEANUP_NOTIFICATIONS: _ADMIN,
    Permission.SEND_TEST_NOTIFICATION: _ADMIN,
}

# Roles granted a permission only over resources they own
OWNER_PERMISSIONS: dict[Permission, frozenset[UserRole]] = {
    Permission.UPDATE_PROJECT: frozenset({UserRole.MANAGER}),
}


def _as_role(role: str | UserRole) -> UserRole | None:
    try:
        return UserRole(role)
    except ValueError:
        return None


def is_allowed(role: str | UserRole, permission: Permission, *, owns_resource: bool = False) -> bool:
    """Return True if a caller with `role` may exercise `permission`."""
    user_role = _as_role(role)
    if user_role is None:
        return False
    if user_role in ROLE_PERMISSIONS.get(permission, frozenset()):
        return True
    return owns_resource and user_role in OWNER_PERMISSIONS.get(permission, frozenset())


def can_access_project(role: str | UserRole, is_member: bool) -> bool:
    """Admins see every project; everyone else only the ones they belong to."""
    return _as_role(role) == UserRole.ADMIN or is_member
