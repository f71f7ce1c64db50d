"""Tests for role-based permission resolution."""

from datetime import datetime

import pytest
from hypothesis import given, settings, strategies as st

from compliance_intake.auth import (
    Permission,
    PermissionResolver,
    Role,
    RoleAssignment,
    ROLE_PERMISSIONS,
    ROLE_PRIORITY,
    ROLE_RANK,
)
from tests.strategies import make_assignment, role_assignments_strategy


class TestRoleTables:
    """Tests for the static role tables."""

    def test_every_role_has_permissions(self):
        assert set(ROLE_PERMISSIONS) == set(Role)

    def test_top_tier_roles_have_every_permission(self):
        for role in (Role.ADMIN, Role.EXECUTIVE, Role.ENVIRONMENTAL_MANAGER):
            assert ROLE_PERMISSIONS[role] == frozenset(Permission)

    def test_read_only_cannot_upload(self):
        assert Permission.UPLOAD not in ROLE_PERMISSIONS[Role.READ_ONLY]
        assert Permission.EXPORT in ROLE_PERMISSIONS[Role.READ_ONLY]

    def test_priority_order(self):
        assert ROLE_PRIORITY[0] == Role.READ_ONLY
        assert ROLE_PRIORITY[-1] == Role.ADMIN
        assert ROLE_RANK[Role.SITE_MANAGER] < ROLE_RANK[Role.ENVIRONMENTAL_MANAGER]
        assert len(ROLE_PRIORITY) == len(Role)


class TestPermissionResolver:
    """Tests for PermissionResolver."""

    @pytest.fixture
    def resolver(self):
        """Site manager globally, admin at site X."""
        return PermissionResolver([
            make_assignment(Role.SITE_MANAGER, assignment_id="ra-1"),
            make_assignment(Role.ADMIN, site_id="X", assignment_id="ra-2"),
        ])

    def test_site_scope_includes_global_and_matching_site(self, resolver):
        assert resolver.effective_role("X") == Role.ADMIN
        assert resolver.can(Permission.UPLOAD, "X") is True
        assert resolver.can(Permission.VERIFY, "X") is True

    def test_no_site_uses_only_global_assignments(self, resolver):
        assert resolver.effective_role() == Role.SITE_MANAGER
        assert resolver.can(Permission.VERIFY) is False

    def test_other_site_falls_back_to_global(self, resolver):
        assert resolver.effective_role("Y") == Role.SITE_MANAGER

    def test_empty_pool_falls_back_to_all_assignments(self):
        """Test a scope mismatch never strips every permission."""
        resolver = PermissionResolver([make_assignment(Role.LAB_TECH, site_id="X")])

        assert resolver.effective_role("Y") == Role.LAB_TECH
        assert resolver.effective_role() == Role.LAB_TECH
        assert resolver.can(Permission.UPLOAD) is True

    def test_no_assignments_is_read_only(self):
        resolver = PermissionResolver([])

        assert resolver.effective_role() == Role.READ_ONLY
        assert resolver.permissions() == ROLE_PERMISSIONS[Role.READ_ONLY]

    def test_ties_keep_first_assignment(self):
        resolver = PermissionResolver([
            make_assignment(Role.FIELD_SAMPLER, assignment_id="ra-1"),
            make_assignment(Role.FIELD_SAMPLER, site_id="X", assignment_id="ra-2"),
        ])
        assert resolver.effective_role("X") == Role.FIELD_SAMPLER

    def test_accepts_permission_strings(self, resolver):
        assert resolver.can("upload") is True

    def test_authorize_allowed(self, resolver):
        result = resolver.authorize(Permission.UPLOAD, "X")

        assert result.allowed is True
        assert result.role == Role.ADMIN
        assert result.reason is None

    def test_authorize_denied_carries_reason(self):
        resolver = PermissionResolver([make_assignment(Role.READ_ONLY)])

        result = resolver.authorize(Permission.UPLOAD)

        assert result.allowed is False
        assert result.reason == "Read-only users cannot upload files."
        assert result.to_dict()["permission"] == "upload"

    def test_authorize_denied_generic_reason(self):
        resolver = PermissionResolver([make_assignment(Role.READ_ONLY)])

        result = resolver.authorize(Permission.COMMAND_PALETTE)
        assert result.allowed is True

        result = resolver.authorize(Permission.PROCESS)
        assert result.allowed is False
        assert "process" in result.reason


class TestRoleAssignmentFromRecord:
    """Tests for RoleAssignment.from_record."""

    def test_from_record(self):
        assignment = RoleAssignment.from_record({
            "id": "ra-9",
            "user_id": "user-9",
            "role_id": "role-admin",
            "role_name": "admin",
            "site_id": "site-a",
            "created_at": "2024-01-15T10:30:00+00:00",
        })

        assert assignment.role_name == Role.ADMIN
        assert assignment.site_id == "site-a"
        assert assignment.is_global is False
        assert assignment.created_at == datetime.fromisoformat("2024-01-15T10:30:00+00:00")

    @pytest.mark.parametrize("role_name", [None, "", "superuser"])
    def test_unknown_role_is_read_only(self, role_name):
        assignment = RoleAssignment.from_record({
            "id": "ra-9",
            "user_id": "user-9",
            "role_id": "role-x",
            "role_name": role_name,
        })

        assert assignment.role_name == Role.READ_ONLY
        assert assignment.is_global is True


class TestResolverProperties:
    """Property tests for permission resolution."""

    @given(
        assignments=role_assignments_strategy(),
        site_id=st.sampled_from([None, "site-a", "site-b", "site-c"]),
    )
    @settings(max_examples=100)
    def test_effective_role_is_highest_in_pool(self, assignments, site_id):
        resolver = PermissionResolver(assignments)
        role = resolver.effective_role(site_id)

        if site_id is None:
            pool = [a for a in assignments if a.site_id is None]
        else:
            pool = [a for a in assignments if a.site_id in (None, site_id)]
        pool = pool or assignments

        if not pool:
            assert role == Role.READ_ONLY
        else:
            assert role == max(pool, key=lambda a: ROLE_RANK[a.role_name]).role_name

    @given(
        assignments=role_assignments_strategy(),
        permission=st.sampled_from(list(Permission)),
        site_id=st.sampled_from([None, "site-a", "site-b"]),
    )
    @settings(max_examples=100)
    def test_can_matches_authorize(self, assignments, permission, site_id):
        resolver = PermissionResolver(assignments)
        result = resolver.authorize(permission, site_id)

        assert result.allowed == resolver.can(permission, site_id)
        assert (result.reason is None) == result.allowed
