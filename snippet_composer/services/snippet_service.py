"""
Snippet Service
===============

Snippet lifecycle: creation, versioned updates, archiving, version
restore, library filtering and favorites.
"""

from __future__ import annotations

from typing import Any, Optional

from snippet_composer.composer.filters import filter_snippets
from snippet_composer.config import get_settings
from snippet_composer.exceptions import ErrorContext, ValidationError
from snippet_composer.logging_config import get_logger, log_execution_time
from snippet_composer.models import (
    CurrentUser,
    Favorite,
    Snippet,
    SnippetCreateRequest,
    SnippetFilter,
    SnippetStatus,
    SnippetUpdateRequest,
    SnippetVersion,
)
from snippet_composer.permissions import Capability, require
from snippet_composer.repositories.firestore_repository import (
    EntityType,
    FirestoreRepository,
    get_repository,
)

logger = get_logger(__name__)

RESTORE_NOTE = "Wiederhergestellt von Version {version}"


class SnippetService:
    """
    Service for snippet operations.

    Every update first writes an immutable :class:`SnippetVersion` holding
    the state being replaced, then bumps the snippet's version counter.

    Example:
        >>> service = SnippetService()
        >>> snippet = service.update_snippet(user, "s1", SnippetUpdateRequest(content="..."))
        >>> snippet.version
        2
    """

    def __init__(self, repository: Optional[FirestoreRepository] = None) -> None:
        self._repository = repository or get_repository()
        self._settings = get_settings()

    # ========================================================================
    # Reads
    # ========================================================================

    def list_all(self) -> list[Snippet]:
        """Every snippet regardless of status, newest first."""
        docs = self._repository.list(
            EntityType.SNIPPET,
            sort="-updated_date",
            limit=self._settings.composer.snippet_list_limit
        )
        return [Snippet.from_document(doc) for doc in docs]

    def list_snippets(self, user: CurrentUser, criteria: SnippetFilter) -> list[Snippet]:
        favorite_ids: set[str] = set()
        if criteria.favorites_only:
            favorite_ids = {f.snippet_id for f in self.list_favorites(user)}
        return filter_snippets(self.list_all(), criteria, favorite_ids)

    def get_snippet(self, snippet_id: str) -> Snippet:
        return Snippet.from_document(self._repository.get(EntityType.SNIPPET, snippet_id))

    def list_versions(self, snippet_id: str) -> list[SnippetVersion]:
        """Version history, most recent first."""
        docs = self._repository.filter(
            EntityType.SNIPPET_VERSION,
            {"snippet_id": snippet_id},
            sort="-version_number",
            limit=self._settings.composer.snippet_list_limit
        )
        return [SnippetVersion.from_document(doc) for doc in docs]

    # ========================================================================
    # Writes
    # ========================================================================

    @log_execution_time()
    def create_snippet(self, user: CurrentUser, request: SnippetCreateRequest) -> Snippet:
        require(user, Capability.CREATE_SNIPPET, operation="create_snippet")
        if request.status == SnippetStatus.PUBLISHED:
            require(user, Capability.PUBLISH, operation="create_snippet")

        fields = request.model_dump(mode="json")
        fields.update(version=1, last_modified_by=user.email)
        doc = self._repository.create(EntityType.SNIPPET, fields, user_email=user.email)

        logger.info("Snippet created", snippet_id=doc["id"], language=fields["language"])
        return Snippet.from_document(doc)

    @log_execution_time()
    def update_snippet(
        self,
        user: CurrentUser,
        snippet_id: str,
        request: SnippetUpdateRequest
    ) -> Snippet:
        """
        Apply a partial update and record the replaced state as a version.

        Raises:
            SnippetNotFoundError: If the snippet doesn't exist.
            PermissionDeniedError: If the user may not edit it or publish.
            ValidationError: If the request changes nothing.
        """
        snippet = self.get_snippet(snippet_id)
        require(user, Capability.EDIT_SNIPPET, snippet=snippet, operation="update_snippet")

        changes = request.changes()
        if not changes:
            raise ValidationError(
                message="No changes supplied",
                context=ErrorContext(operation="update_snippet", resource_id=snippet_id)
            )
        if (
            changes.get("status") == SnippetStatus.PUBLISHED.value
            and snippet.status != SnippetStatus.PUBLISHED
        ):
            require(user, Capability.PUBLISH, snippet=snippet, operation="update_snippet")

        return self._replace(user, snippet, changes, request.change_note)

    @log_execution_time()
    def archive_snippet(self, user: CurrentUser, snippet_id: str) -> Snippet:
        """Soft-delete: snippets are archived, never removed."""
        snippet = self.get_snippet(snippet_id)
        require(user, Capability.DELETE_SNIPPET, snippet=snippet, operation="archive_snippet")

        doc = self._repository.update(
            EntityType.SNIPPET,
            snippet_id,
            {"status": SnippetStatus.ARCHIVED.value, "last_modified_by": user.email}
        )
        logger.info("Snippet archived", snippet_id=snippet_id)
        return Snippet.from_document(doc)

    @log_execution_time()
    def restore_version(self, user: CurrentUser, snippet_id: str, version_id: str) -> Snippet:
        """
        Copy a historic version back onto the snippet.

        The current state is kept as a new version first, so a restore is
        itself reversible.
        """
        snippet = self.get_snippet(snippet_id)
        require(user, Capability.EDIT_SNIPPET, snippet=snippet, operation="restore_version")

        version = SnippetVersion.from_document(
            self._repository.get(EntityType.SNIPPET_VERSION, version_id)
        )
        if version.snippet_id != snippet_id:
            raise ValidationError(
                message=f"Version {version_id} does not belong to snippet {snippet_id}",
                field="version_id"
            )

        restored = version.model_dump(
            mode="json",
            include={"title", "content", "language", "categories", "tags", "cases"}
        )
        note = RESTORE_NOTE.format(version=version.version_number)
        return self._replace(user, snippet, restored, note)

    def _replace(
        self,
        user: CurrentUser,
        snippet: Snippet,
        changes: dict[str, Any],
        change_note: Optional[str]
    ) -> Snippet:
        self._repository.create(
            EntityType.SNIPPET_VERSION,
            {
                "snippet_id": snippet.id,
                "version_number": snippet.version,
                "title": snippet.title,
                "content": snippet.content,
                "language": snippet.language.value,
                "categories": snippet.categories,
                "tags": snippet.tags,
                "cases": snippet.cases,
                "change_note": change_note,
                "changed_by": user.email,
            },
            user_email=user.email
        )

        doc = self._repository.update(
            EntityType.SNIPPET,
            snippet.id,
            {**changes, "last_modified_by": user.email, "version": snippet.version + 1}
        )
        logger.info(
            "Snippet updated",
            snippet_id=snippet.id,
            version=snippet.version + 1,
            fields=list(changes)
        )
        return Snippet.from_document(doc)

    # ========================================================================
    # Favorites
    # ========================================================================

    def list_favorites(self, user: CurrentUser) -> list[Favorite]:
        docs = self._repository.filter(EntityType.FAVORITE, {"user_email": user.email})
        return [Favorite.from_document(doc) for doc in docs]

    def toggle_favorite(self, user: CurrentUser, snippet_id: str) -> bool:
        """
        Mark or unmark a snippet as favorite.

        Returns:
            Whether the snippet is a favorite afterwards.
        """
        existing = [f for f in self.list_favorites(user) if f.snippet_id == snippet_id]
        if existing:
            for favorite in existing:
                self._repository.delete(EntityType.FAVORITE, favorite.id)
            logger.info("Favorite removed", snippet_id=snippet_id)
            return False

        self.get_snippet(snippet_id)
        self._repository.create(
            EntityType.FAVORITE,
            {"snippet_id": snippet_id, "user_email": user.email},
            user_email=user.email
        )
        logger.info("Favorite added", snippet_id=snippet_id)
        return True


_snippet_service: Optional[SnippetService] = None


def get_snippet_service() -> SnippetService:
    global _snippet_service
    if _snippet_service is None:
        _snippet_service = SnippetService()
    return _snippet_service
