"""
Role based permissions.

Every check is a pure function over the acting user and, where relevant,
the snippet being acted on. ``Capability`` names the checks so callers can
require them without passing strings around.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from snippet_composer.exceptions import ErrorContext, PermissionDeniedError
from snippet_composer.models import CurrentUser, Snippet, UserRole


def is_admin(user: Optional[CurrentUser]) -> bool:
    if user is None:
        return False
    return user.app_role == UserRole.ADMIN or user.role == "admin"


def is_editor(user: Optional[CurrentUser]) -> bool:
    """Editors include admins."""
    if user is None:
        return False
    return user.app_role == UserRole.EDITOR or is_admin(user)


def can_publish(user: Optional[CurrentUser]) -> bool:
    return is_admin(user)


def can_manage_snippet(user: Optional[CurrentUser], snippet: Optional[Snippet] = None) -> bool:
    """Admins manage every snippet, editors only the ones they created."""
    if user is None:
        return False
    if is_admin(user):
        return True
    return is_editor(user) and snippet is not None and snippet.created_by == user.email


def can_create_snippet(user: Optional[CurrentUser]) -> bool:
    return is_editor(user)


def can_edit_snippet(user: Optional[CurrentUser], snippet: Optional[Snippet] = None) -> bool:
    return can_manage_snippet(user, snippet)


def can_delete_snippet(user: Optional[CurrentUser], snippet: Optional[Snippet] = None) -> bool:
    return is_admin(user)


def can_manage_collections(user: Optional[CurrentUser]) -> bool:
    """Categories, tags and cases."""
    return is_admin(user)


def can_manage_templates(user: Optional[CurrentUser]) -> bool:
    return is_editor(user)


def can_view_drafts(user: Optional[CurrentUser]) -> bool:
    return is_editor(user)


class Capability(str, Enum):
    ADMIN = "admin"
    EDITOR = "editor"
    PUBLISH = "publish"
    CREATE_SNIPPET = "create_snippet"
    EDIT_SNIPPET = "edit_snippet"
    DELETE_SNIPPET = "delete_snippet"
    MANAGE_COLLECTIONS = "manage_collections"
    MANAGE_TEMPLATES = "manage_templates"
    VIEW_DRAFTS = "view_drafts"

    def check(self, user: Optional[CurrentUser], snippet: Optional[Snippet] = None) -> bool:
        match self:
            case Capability.ADMIN:
                return is_admin(user)
            case Capability.EDITOR:
                return is_editor(user)
            case Capability.PUBLISH:
                return can_publish(user)
            case Capability.CREATE_SNIPPET:
                return can_create_snippet(user)
            case Capability.EDIT_SNIPPET:
                return can_edit_snippet(user, snippet)
            case Capability.DELETE_SNIPPET:
                return can_delete_snippet(user, snippet)
            case Capability.MANAGE_COLLECTIONS:
                return can_manage_collections(user)
            case Capability.MANAGE_TEMPLATES:
                return can_manage_templates(user)
            case Capability.VIEW_DRAFTS:
                return can_view_drafts(user)
        raise ValueError(f"Unhandled capability: {self.value}")


def granted_capabilities(user: Optional[CurrentUser]) -> list[Capability]:
    """Capabilities held regardless of snippet ownership."""
    return [capability for capability in Capability if capability.check(user)]


def require(
    user: Optional[CurrentUser],
    capability: Capability,
    snippet: Optional[Snippet] = None,
    operation: str = ""
) -> None:
    """
    Raise unless ``user`` holds ``capability``.

    Raises:
        PermissionDeniedError: If the check fails.
    """
    if not capability.check(user, snippet):
        context = ErrorContext(operation=operation)
        if snippet is not None:
            context.resource_id = snippet.id
            context.resource_type = "snippet"
        raise PermissionDeniedError(capability.value, context=context)
