"""Tests for auth permissions."""

import pytest

from src.auth.permissions import (
    ROLE_HIERARCHY,
    UserRole,
    get_role_level,
    has_permission,
    is_admin,
)


class TestUserRole:
    """Tests for UserRole enum."""

    def test_role_values(self) -> None:
        """Roles should have correct string values."""
        assert UserRole.USER.value == "user"
        assert UserRole.ADMIN.value == "admin"

    def test_role_hierarchy(self) -> None:
        """Admin sits above user."""
        assert ROLE_HIERARCHY[UserRole.USER] == 0
        assert ROLE_HIERARCHY[UserRole.ADMIN] == 1

    def test_all_roles_have_levels(self) -> None:
        """All UserRole members should have defined levels."""
        for role in UserRole:
            assert role in ROLE_HIERARCHY


class TestGetRoleLevel:
    """Tests for get_role_level function."""

    @pytest.mark.parametrize(
        "role,expected_level",
        [
            (UserRole.USER, 0),
            (UserRole.ADMIN, 1),
            ("user", 0),
            ("admin", 1),
        ],
    )
    def test_known_roles(self, role: UserRole | str, expected_level: int) -> None:
        """Should return correct level for enum and string roles."""
        assert get_role_level(role) == expected_level

    def test_unknown_role(self) -> None:
        """Unknown roles get the lowest level."""
        assert get_role_level("superuser") == 0


class TestHasPermission:
    """Tests for has_permission function."""

    @pytest.mark.parametrize(
        "user_role,required,expected",
        [
            (UserRole.ADMIN, UserRole.ADMIN, True),
            (UserRole.ADMIN, UserRole.USER, True),
            (UserRole.USER, UserRole.USER, True),
            (UserRole.USER, UserRole.ADMIN, False),
            ("instructor", UserRole.ADMIN, False),
        ],
    )
    def test_permission_matrix(
        self, user_role: UserRole | str, required: UserRole, expected: bool
    ) -> None:
        """Higher or equal levels are granted."""
        assert has_permission(user_role, required) is expected


class TestIsAdmin:
    """Tests for is_admin function."""

    def test_admin(self) -> None:
        assert is_admin(UserRole.ADMIN) is True
        assert is_admin("admin") is True

    def test_user(self) -> None:
        assert is_admin(UserRole.USER) is False
        assert is_admin("user") is False
