from typing import Dict, FrozenSet, List, Optional
from .models import User


# Define all available permissions here for reference
class Permissions:
    # Users
    USERS_VIEW = "users.view"
    USERS_CREATE = "users.create"
    USERS_EDIT = "users.edit"
    USERS_DELETE = "users.delete"

    # Housing units
    HOUSING_UNITS_VIEW = "housing_units.view"
    HOUSING_UNITS_CREATE = "housing_units.create"
    HOUSING_UNITS_EDIT = "housing_units.edit"
    HOUSING_UNITS_DELETE = "housing_units.delete"

    # Occupiers
    OCCUPIERS_VIEW = "occupiers.view"
    OCCUPIERS_CREATE = "occupiers.create"
    OCCUPIERS_EDIT = "occupiers.edit"
    OCCUPIERS_DELETE = "occupiers.delete"

    # Notes
    NOTES_VIEW = "notes.view"
    NOTES_CREATE = "notes.create"
    NOTES_EDIT = "notes.edit"
    NOTES_DELETE = "notes.delete"

    # Reports
    REPORTS_VIEW = "reports.view"
    REPORTS_EXPORT = "reports.export"

    # System
    AUDIT_LOGS_VIEW = "audit_logs.view"
    SETTINGS_MANAGE = "settings.manage"

    @classmethod
    def all(cls) -> List[str]:
        return [
            value for key, value in vars(cls).items()
            if key.isupper() and isinstance(value, str)
        ]

    @staticmethod
    def module_of(permission: str) -> str:
        return permission.split(".", 1)[0]


SYSTEM_PERMISSIONS = (Permissions.AUDIT_LOGS_VIEW, Permissions.SETTINGS_MANAGE)

PERMISSION_DESCRIPTIONS: Dict[str, str] = {
    Permissions.USERS_VIEW: "View users",
    Permissions.USERS_CREATE: "Create users",
    Permissions.USERS_EDIT: "Edit users",
    Permissions.USERS_DELETE: "Delete users",
    Permissions.HOUSING_UNITS_VIEW: "View housing units",
    Permissions.HOUSING_UNITS_CREATE: "Create housing units",
    Permissions.HOUSING_UNITS_EDIT: "Edit housing units",
    Permissions.HOUSING_UNITS_DELETE: "Delete housing units",
    Permissions.OCCUPIERS_VIEW: "View occupiers",
    Permissions.OCCUPIERS_CREATE: "Create occupiers",
    Permissions.OCCUPIERS_EDIT: "Edit occupiers",
    Permissions.OCCUPIERS_DELETE: "Delete occupiers",
    Permissions.NOTES_VIEW: "View notes",
    Permissions.NOTES_CREATE: "Create notes",
    Permissions.NOTES_EDIT: "Edit notes",
    Permissions.NOTES_DELETE: "Delete notes",
    Permissions.REPORTS_VIEW: "View reports",
    Permissions.REPORTS_EXPORT: "Export reports",
    Permissions.AUDIT_LOGS_VIEW: "View audit logs",
    Permissions.SETTINGS_MANAGE: "Manage system settings",
}


class RoleName:
    ADMIN = "admin"
    MANAGER = "manager"
    VIEWER = "viewer"


# Default Role -> Permission mapping, loaded into the database by seed_roles
DEFAULT_ROLE_PERMISSIONS: Dict[str, List[str]] = {
    RoleName.ADMIN: Permissions.all(),
    RoleName.MANAGER: [
        p for p in Permissions.all()
        if Permissions.module_of(p) in ("housing_units", "occupiers", "notes", "reports")
    ],
    RoleName.VIEWER: [
        Permissions.HOUSING_UNITS_VIEW,
        Permissions.OCCUPIERS_VIEW,
        Permissions.NOTES_VIEW,
        Permissions.REPORTS_VIEW,
    ],
}

ROLE_DESCRIPTIONS: Dict[str, str] = {
    RoleName.ADMIN: "Full system access",
    RoleName.MANAGER: "Manages housing units, occupiers, notes and reports",
    RoleName.VIEWER: "Read-only access",
}


def get_user_permissions(user: Optional[User]) -> FrozenSet[str]:
    """
    Returns the permission names granted to the user through their role.

    A deactivated user has no capabilities regardless of role data.
    """
    if not user or not user.is_active or not user.role_id:
        return frozenset()

    return frozenset(user.role.permissions.values_list('name', flat=True))


def sync_default_roles() -> Dict[str, int]:
    """
    Create or update the default permissions and roles.
    Returns a mapping of role name -> number of permissions granted.
    """
    from .models import Permission, Role

    permission_objs = {}
    for name in Permissions.all():
        perm, _ = Permission.objects.update_or_create(
            name=name,
            defaults={
                'description': PERMISSION_DESCRIPTIONS.get(name, ''),
                'module': "system" if name in SYSTEM_PERMISSIONS else Permissions.module_of(name),
            },
        )
        permission_objs[name] = perm

    result = {}
    for role_name, perm_names in DEFAULT_ROLE_PERMISSIONS.items():
        role, _ = Role.objects.update_or_create(
            name=role_name,
            defaults={'description': ROLE_DESCRIPTIONS.get(role_name, '')},
        )
        role.permissions.set([permission_objs[p] for p in perm_names])
        result[role_name] = len(perm_names)
    return result
