"""
Tests for Permissions
=====================
"""

from __future__ import annotations

import pytest

from conftest import make_snippet
from snippet_composer.exceptions import ErrorCode, PermissionDeniedError
from snippet_composer.models import CurrentUser
from snippet_composer.permissions import (
    Capability,
    can_manage_snippet,
    can_publish,
    granted_capabilities,
    is_admin,
    is_editor,
    require,
)


class TestRoleChecks:
    """Pure role predicates."""

    def test_admin(self, admin_user: CurrentUser, editor_user: CurrentUser, basic_user: CurrentUser) -> None:
        assert is_admin(admin_user)
        assert not is_admin(editor_user)
        assert not is_admin(basic_user)
        assert not is_admin(None)

    def test_platform_admin_role_counts(self) -> None:
        user = CurrentUser(email="owner@support.de", role="admin")
        assert is_admin(user)
        assert is_editor(user)

    def test_editor_includes_admin(self, admin_user: CurrentUser, editor_user: CurrentUser, basic_user: CurrentUser) -> None:
        assert is_editor(admin_user)
        assert is_editor(editor_user)
        assert not is_editor(basic_user)

    def test_only_admins_publish(self, admin_user: CurrentUser, editor_user: CurrentUser) -> None:
        assert can_publish(admin_user)
        assert not can_publish(editor_user)

    def test_blank_role_is_basic_user(self) -> None:
        user = CurrentUser(email="agent@support.de", app_role="")
        assert user.app_role is None
        assert not is_editor(user)


class TestSnippetManagement:
    """Ownership based checks."""

    def test_admin_manages_any_snippet(self, admin_user: CurrentUser) -> None:
        snippet = make_snippet("s1", created_by="someone@support.de")
        assert can_manage_snippet(admin_user, snippet)
        assert can_manage_snippet(admin_user)

    def test_editor_manages_own_snippets_only(self, editor_user: CurrentUser) -> None:
        own = make_snippet("s1", created_by=editor_user.email)
        other = make_snippet("s2", created_by="someone@support.de")

        assert can_manage_snippet(editor_user, own)
        assert not can_manage_snippet(editor_user, other)
        assert not can_manage_snippet(editor_user)

    def test_basic_user_manages_nothing(self, basic_user: CurrentUser) -> None:
        own = make_snippet("s1", created_by=basic_user.email)
        assert not can_manage_snippet(basic_user, own)


class TestCapabilities:
    """Capability enum and require()."""

    @pytest.mark.parametrize(
        "capability, admin, editor, basic",
        [
            (Capability.ADMIN, True, False, False),
            (Capability.EDITOR, True, True, False),
            (Capability.PUBLISH, True, False, False),
            (Capability.CREATE_SNIPPET, True, True, False),
            (Capability.DELETE_SNIPPET, True, False, False),
            (Capability.MANAGE_COLLECTIONS, True, False, False),
            (Capability.MANAGE_TEMPLATES, True, True, False),
            (Capability.VIEW_DRAFTS, True, True, False),
        ],
    )
    def test_capability_matrix(
        self,
        capability: Capability,
        admin: bool,
        editor: bool,
        basic: bool,
        admin_user: CurrentUser,
        editor_user: CurrentUser,
        basic_user: CurrentUser
    ) -> None:
        assert capability.check(admin_user) is admin
        assert capability.check(editor_user) is editor
        assert capability.check(basic_user) is basic

    def test_every_capability_has_a_check(self, admin_user: CurrentUser) -> None:
        for capability in Capability:
            assert capability.check(admin_user) is True

    def test_edit_uses_snippet(self, editor_user: CurrentUser) -> None:
        own = make_snippet("s1", created_by=editor_user.email)
        assert Capability.EDIT_SNIPPET.check(editor_user, own)
        assert not Capability.EDIT_SNIPPET.check(editor_user)

    def test_granted_capabilities(self, editor_user: CurrentUser) -> None:
        granted = granted_capabilities(editor_user)
        assert Capability.MANAGE_TEMPLATES in granted
        assert Capability.EDIT_SNIPPET not in granted
        assert Capability.PUBLISH not in granted
        assert granted_capabilities(None) == []

    def test_every_capability_resolves(self, basic_user: CurrentUser) -> None:
        for capability in Capability:
            assert capability.check(None) is False
            assert isinstance(capability.check(basic_user), bool)

    def test_require_raises(self, basic_user: CurrentUser) -> None:
        snippet = make_snippet("s1")
        with pytest.raises(PermissionDeniedError) as exc_info:
            require(basic_user, Capability.EDIT_SNIPPET, snippet=snippet, operation="update_snippet")

        error = exc_info.value
        assert error.code == ErrorCode.PERMISSION_DENIED
        assert error.context.operation == "update_snippet"
        assert error.context.resource_id == "s1"

    def test_require_passes(self, admin_user: CurrentUser) -> None:
        require(admin_user, Capability.MANAGE_COLLECTIONS)
