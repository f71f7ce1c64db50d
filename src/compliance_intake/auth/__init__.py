"""Authorization for intake actions."""

from compliance_intake.auth.permissions import (
    Role,
    Permission,
    RoleAssignment,
    AuthorizationResult,
    PermissionResolver,
    ROLE_PERMISSIONS,
    ROLE_PRIORITY,
    ROLE_RANK,
)

__all__ = [
    "Role",
    "Permission",
    "RoleAssignment",
    "AuthorizationResult",
    "PermissionResolver",
    "ROLE_PERMISSIONS",
    "ROLE_PRIORITY",
    "ROLE_RANK",
]
