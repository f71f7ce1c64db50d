"""Role-based permission resolution for intake actions.

Authentication happens elsewhere; this module only decides what an already
identified user may do, given the role assignments fetched for their session.
Assignments are either global (``site_id is None``) or scoped to one site.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional

from compliance_intake.core import get_logger

logger = get_logger(__name__)


class Role(str, Enum):
    """Roles a user can be assigned."""
    EXECUTIVE = "executive"
    SITE_MANAGER = "site_manager"
    ENVIRONMENTAL_MANAGER = "environmental_manager"
    SAFETY_MANAGER = "safety_manager"
    FIELD_SAMPLER = "field_sampler"
    LAB_TECH = "lab_tech"
    ADMIN = "admin"
    READ_ONLY = "read_only"


class Permission(str, Enum):
    """Actions gated by role."""
    VIEW = "view"
    UPLOAD = "upload"
    PROCESS = "process"
    RETRY = "retry"
    BULK_PROCESS = "bulk_process"
    EXPORT = "export"
    VERIFY = "verify"
    SET_EXPECTED = "set_expected"
    COMMAND_PALETTE = "command_palette"


_FULL_ACCESS = frozenset(Permission)

ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.EXECUTIVE: _FULL_ACCESS,
    Role.SITE_MANAGER: frozenset({
        Permission.VIEW, Permission.UPLOAD, Permission.EXPORT, Permission.COMMAND_PALETTE,
    }),
    Role.ENVIRONMENTAL_MANAGER: _FULL_ACCESS,
    Role.SAFETY_MANAGER: frozenset({
        Permission.VIEW, Permission.UPLOAD, Permission.COMMAND_PALETTE,
    }),
    Role.FIELD_SAMPLER: frozenset({
        Permission.VIEW, Permission.UPLOAD, Permission.COMMAND_PALETTE,
    }),
    Role.LAB_TECH: frozenset({
        Permission.VIEW, Permission.UPLOAD, Permission.COMMAND_PALETTE,
    }),
    Role.ADMIN: _FULL_ACCESS,
    Role.READ_ONLY: frozenset({
        Permission.VIEW, Permission.EXPORT, Permission.COMMAND_PALETTE,
    }),
}

# Lowest to highest privilege.
ROLE_PRIORITY: tuple[Role, ...] = (
    Role.READ_ONLY,
    Role.FIELD_SAMPLER,
    Role.LAB_TECH,
    Role.SAFETY_MANAGER,
    Role.SITE_MANAGER,
    Role.ENVIRONMENTAL_MANAGER,
    Role.EXECUTIVE,
    Role.ADMIN,
)

ROLE_RANK: dict[Role, int] = {role: rank for rank, role in enumerate(ROLE_PRIORITY)}

# Refusal text shown when a specific action is denied.
DENIAL_MESSAGES: dict[Permission, str] = {
    Permission.UPLOAD: "Read-only users cannot upload files.",
    Permission.PROCESS: "You do not have permission to process files.",
    Permission.RETRY: "You do not have permission to retry failed files.",
    Permission.BULK_PROCESS: "You do not have permission to bulk process files.",
    Permission.VERIFY: "You do not have permission to verify extracted data.",
    Permission.SET_EXPECTED: "You do not have permission to set expected submissions.",
}


@dataclass(frozen=True)
class RoleAssignment:
    """A role granted to a user, globally or for one site."""

    id: str
    user_id: str
    role_id: str
    role_name: Role
    site_id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_global(self) -> bool:
        return self.site_id is None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "RoleAssignment":
        """Create from a role-assignment store row.

        Rows whose role name is missing or unrecognised are treated as
        ``read_only``.
        """
        try:
            role_name = Role(record.get("role_name") or Role.READ_ONLY.value)
        except ValueError:
            logger.warning(
                "unknown_role_name",
                assignment_id=record.get("id"),
                role_name=record.get("role_name"),
            )
            role_name = Role.READ_ONLY

        created_at = record.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)

        return cls(
            id=record["id"],
            user_id=record["user_id"],
            role_id=record["role_id"],
            role_name=role_name,
            site_id=record.get("site_id"),
            created_at=created_at or datetime.now(timezone.utc),
        )


@dataclass
class AuthorizationResult:
    """Outcome of a permission check.

    A denial is a value carrying a user-visible reason, never an exception.
    """

    allowed: bool
    permission: Permission
    role: Role
    site_id: Optional[str] = None
    reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "allowed": self.allowed,
            "permission": self.permission.value,
            "role": self.role.value,
            "site_id": self.site_id,
            "reason": self.reason,
        }


class PermissionResolver:
    """Resolves a user's effective role and permissions from their assignments."""

    def __init__(self, assignments: Iterable[RoleAssignment]):
        """Initialize the resolver.

        Args:
            assignments: Role assignments fetched for the session, in store order.
        """
        self._assignments: tuple[RoleAssignment, ...] = tuple(assignments)
        if not self._assignments:
            logger.warning("no_role_assignments", fallback_role=Role.READ_ONLY.value)

    @property
    def assignments(self) -> tuple[RoleAssignment, ...]:
        return self._assignments

    def _candidate_pool(self, site_id: Optional[str]) -> tuple[RoleAssignment, ...]:
        if site_id is not None:
            applicable = tuple(
                a for a in self._assignments if a.site_id == site_id or a.is_global
            )
        else:
            applicable = tuple(a for a in self._assignments if a.is_global)
        # Scope mismatch must never strip a user of every permission.
        return applicable or self._assignments

    def effective_role(self, site_id: Optional[str] = None) -> Role:
        """Highest-privilege role applicable to the site (or globally).

        Ties keep the first assignment seen.
        """
        effective = Role.READ_ONLY
        highest = -1
        for assignment in self._candidate_pool(site_id):
            rank = ROLE_RANK[assignment.role_name]
            if rank > highest:
                highest = rank
                effective = assignment.role_name
        return effective

    def permissions(self, site_id: Optional[str] = None) -> frozenset[Permission]:
        return ROLE_PERMISSIONS[self.effective_role(site_id)]

    def can(self, permission: Permission, site_id: Optional[str] = None) -> bool:
        """Check if the user may perform an action, optionally at a site."""
        return Permission(permission) in self.permissions(site_id)

    def authorize(
        self,
        permission: Permission,
        site_id: Optional[str] = None,
    ) -> AuthorizationResult:
        """Check a permission and explain a refusal.

        Args:
            permission: The action being attempted.
            site_id: Site the action targets, if any.

        Returns:
            AuthorizationResult; ``reason`` is set when denied.
        """
        permission = Permission(permission)
        role = self.effective_role(site_id)
        if permission in ROLE_PERMISSIONS[role]:
            return AuthorizationResult(
                allowed=True, permission=permission, role=role, site_id=site_id
            )

        reason = DENIAL_MESSAGES.get(
            permission,
            f"Permission denied: {permission.value}",
        )
        logger.warning(
            "permission_denied",
            permission=permission.value,
            role=role.value,
            site_id=site_id,
        )
        return AuthorizationResult(
            allowed=False,
            permission=permission,
            role=role,
            site_id=site_id,
            reason=reason,
        )
