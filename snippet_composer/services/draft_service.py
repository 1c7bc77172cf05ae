"""
Email Draft Service
===================

Persistence of composed drafts: listing, loading, saving and deleting.
The in-progress state lives in the composer; this layer only talks to
the entity store.
"""

from __future__ import annotations

from typing import Any, Optional

from snippet_composer.config import get_settings
from snippet_composer.exceptions import ErrorContext, PermissionDeniedError
from snippet_composer.logging_config import get_logger, log_execution_time
from snippet_composer.models import CurrentUser, Draft
from snippet_composer.permissions import Capability, is_admin, require
from snippet_composer.repositories.firestore_repository import (
    EntityType,
    FirestoreRepository,
    get_repository,
)

logger = get_logger(__name__)


class DraftService:
    """
    Service for stored drafts.

    Example:
        >>> service = DraftService()
        >>> draft = service.save_draft(user, None, {"subject": "Akku defekt", ...})
        >>> draft.id
        'Xk2...'
    """

    def __init__(self, repository: Optional[FirestoreRepository] = None) -> None:
        self._repository = repository or get_repository()
        self._settings = get_settings()

    def list_drafts(self, user: CurrentUser, search: str = "") -> list[Draft]:
        """
        The user's own drafts, most recently updated first.

        Args:
            search: Case-insensitive match on draft name or subject.
        """
        require(user, Capability.VIEW_DRAFTS, operation="list_drafts")
        docs = self._repository.filter(
            EntityType.DRAFT,
            {"created_by": user.email},
            sort="-updated_date",
            limit=self._settings.composer.draft_list_limit
        )
        drafts = [Draft.from_document(doc) for doc in docs]

        query = search.strip().lower()
        if query:
            drafts = [
                d for d in drafts
                if query in (d.name or "").lower() or query in d.subject.lower()
            ]
        return drafts

    def get_draft(self, user: CurrentUser, draft_id: str) -> Draft:
        """
        Load a draft for its author or an admin.

        Raises:
            DraftNotFoundError: If the draft doesn't exist.
            PermissionDeniedError: If the draft belongs to someone else.
        """
        draft = Draft.from_document(self._repository.get(EntityType.DRAFT, draft_id))
        self._ensure_owner(user, draft, operation="get_draft")
        return draft

    @log_execution_time()
    def save_draft(
        self,
        user: CurrentUser,
        draft_id: Optional[str],
        payload: dict[str, Any]
    ) -> Draft:
        """
        Create the draft on first save, update it afterwards.

        Args:
            user: Acting user, recorded as creator on first save.
            draft_id: Existing draft id, or None for a draft not yet stored.
            payload: Full draft state, not a diff.

        Returns:
            The stored draft including its id.
        """
        if draft_id:
            doc = self._repository.update(EntityType.DRAFT, draft_id, payload)
        else:
            doc = self._repository.create(EntityType.DRAFT, payload, user_email=user.email)

        logger.info(
            "Draft saved",
            draft_id=doc["id"],
            created=draft_id is None,
            items=len(payload.get("snippet_items") or [])
        )
        return Draft.from_document(doc)

    @log_execution_time()
    def delete_draft(self, user: CurrentUser, draft_id: str) -> None:
        require(user, Capability.VIEW_DRAFTS, operation="delete_draft")
        draft = Draft.from_document(self._repository.get(EntityType.DRAFT, draft_id))
        self._ensure_owner(user, draft, operation="delete_draft")
        self._repository.delete(EntityType.DRAFT, draft_id)
        logger.info("Draft deleted", draft_id=draft_id)

    @staticmethod
    def _ensure_owner(user: CurrentUser, draft: Draft, operation: str) -> None:
        if draft.created_by == user.email or is_admin(user):
            return
        raise PermissionDeniedError(
            operation,
            message="Drafts are only accessible to their author",
            context=ErrorContext(operation=operation, resource_id=draft.id, resource_type="draft")
        )


_draft_service: Optional[DraftService] = None


def get_draft_service() -> DraftService:
    """Get the global DraftService instance."""
    global _draft_service
    if _draft_service is None:
        _draft_service = DraftService()
    return _draft_service
