"""
Firestore Repository
====================

Uniform entity-store client: the same list / filter / get / create /
update / delete operations for every entity type, each backed by one
Firestore collection.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from snippet_composer.config import get_settings
from snippet_composer.exceptions import (
    DraftNotFoundError,
    EntityNotFoundError,
    EntityStoreError,
    ErrorCode,
    ErrorContext,
    SnippetNotFoundError,
)
from snippet_composer.logging_config import get_logger

logger = get_logger(__name__)


class EntityType(str, Enum):
    """Entity types kept in the store."""
    SNIPPET = "snippet"
    SNIPPET_VERSION = "snippet_version"
    DRAFT = "draft"
    TEMPLATE = "template"
    CATEGORY = "category"
    TAG = "tag"
    CASE = "case"
    FAVORITE = "favorite"
    USER = "user"


_COLLECTION_SETTINGS = {
    EntityType.SNIPPET: "snippets_collection",
    EntityType.SNIPPET_VERSION: "snippet_versions_collection",
    EntityType.DRAFT: "drafts_collection",
    EntityType.TEMPLATE: "templates_collection",
    EntityType.CATEGORY: "categories_collection",
    EntityType.TAG: "tags_collection",
    EntityType.CASE: "cases_collection",
    EntityType.FAVORITE: "favorites_collection",
    EntityType.USER: "users_collection",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_sort(sort: Optional[str]) -> tuple[Optional[str], bool]:
    """Split ``-field`` into (field, descending)."""
    if not sort:
        return None, False
    if sort.startswith("-"):
        return sort[1:], True
    return sort, False


def _sort_key(field_name: str):
    # documents lacking the field sort first ascending
    def key(doc: dict[str, Any]) -> tuple[bool, Any]:
        value = doc.get(field_name)
        return (value is not None, value if value is not None else 0)
    return key


def _not_found(entity: EntityType, entity_id: str, operation: str) -> EntityNotFoundError:
    context = ErrorContext(operation=operation)
    if entity == EntityType.DRAFT:
        return DraftNotFoundError(entity_id, context=context)
    if entity == EntityType.SNIPPET:
        return SnippetNotFoundError(entity_id, context=context)
    return EntityNotFoundError(entity.value, entity_id, context=context)


class FirestoreRepository:
    """
    Repository for entity-store operations.

    Documents are returned as plain dicts with their ``id``. ``sort`` uses
    ``"field"`` for ascending and ``"-field"`` for descending order.

    Example:
        >>> repo = FirestoreRepository()
        >>> repo.create(EntityType.TAG, {"name": "Akku"}, user_email="a@b.de")
        >>> repo.filter(EntityType.FAVORITE, {"user_email": "a@b.de"})
    """

    def __init__(self, client: Optional[firestore.Client] = None) -> None:
        """
        Initialize the repository.

        Args:
            client: Optional Firestore client. If not provided, creates one.
        """
        self._settings = get_settings()
        self._client = client or firestore.Client(project=self._settings.gcp_project_id)

    def _collection(self, entity: EntityType):
        name = getattr(self._settings.firestore, _COLLECTION_SETTINGS[entity])
        return self._client.collection(name)

    @staticmethod
    def _to_dict(doc) -> dict[str, Any]:
        data = doc.to_dict() or {}
        data["id"] = doc.id
        return data

    # ========================================================================
    # Queries
    # ========================================================================

    def list(
        self,
        entity: EntityType,
        sort: Optional[str] = None,
        limit: int = 100
    ) -> list[dict[str, Any]]:
        """
        List documents of one entity type.

        Raises:
            EntityStoreError: If the query fails.
        """
        field_name, descending = _parse_sort(sort)
        try:
            query = self._collection(entity)
            if field_name:
                direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
                query = query.order_by(field_name, direction=direction)
            docs = [self._to_dict(doc) for doc in query.limit(limit).stream()]
        except Exception as e:
            logger.error("Failed to list entities", entity=entity.value, error=str(e))
            raise EntityStoreError(
                message=f"Failed to list {entity.value}: {e}",
                context=ErrorContext(operation="list", resource_type=entity.value),
                cause=e
            )

        logger.debug("Entities listed", entity=entity.value, count=len(docs))
        return docs

    def filter(
        self,
        entity: EntityType,
        fields: dict[str, Any],
        sort: Optional[str] = None,
        limit: int = 100
    ) -> list[dict[str, Any]]:
        """
        List documents whose fields equal the given values.

        Sorting happens after the query so no composite index is needed.

        Raises:
            EntityStoreError: If the query fails.
        """
        try:
            query = self._collection(entity)
            for name, value in fields.items():
                query = query.where(filter=FieldFilter(name, "==", value))
            docs = [self._to_dict(doc) for doc in query.stream()]
        except Exception as e:
            logger.error(
                "Failed to filter entities",
                entity=entity.value,
                fields=list(fields),
                error=str(e)
            )
            raise EntityStoreError(
                message=f"Failed to query {entity.value}: {e}",
                context=ErrorContext(operation="filter", resource_type=entity.value),
                cause=e
            )

        field_name, descending = _parse_sort(sort)
        if field_name:
            docs.sort(key=_sort_key(field_name), reverse=descending)

        logger.debug("Entities filtered", entity=entity.value, count=len(docs))
        return docs[:limit]

    def get(self, entity: EntityType, entity_id: str) -> dict[str, Any]:
        """
        Get one document.

        Raises:
            EntityNotFoundError: If the document doesn't exist.
            EntityStoreError: If the read fails.
        """
        try:
            doc = self._collection(entity).document(entity_id).get()
        except Exception as e:
            logger.error("Failed to get entity", entity=entity.value, entity_id=entity_id, error=str(e))
            raise EntityStoreError(
                message=f"Failed to retrieve {entity.value}: {e}",
                context=ErrorContext(
                    operation="get",
                    resource_id=entity_id,
                    resource_type=entity.value
                ),
                cause=e
            )

        if not doc.exists:
            raise _not_found(entity, entity_id, "get")
        return self._to_dict(doc)

    # ========================================================================
    # Writes
    # ========================================================================

    def create(
        self,
        entity: EntityType,
        fields: dict[str, Any],
        user_email: Optional[str] = None
    ) -> dict[str, Any]:
        """
        Create a document with a generated id.

        Returns:
            The stored document including ``id`` and audit fields.
        """
        now = _utcnow()
        data = {
            **fields,
            "created_date": now,
            "updated_date": now,
            "created_by": user_email,
        }
        try:
            doc_ref = self._collection(entity).document()
            doc_ref.set(data)
        except Exception as e:
            logger.error("Failed to create entity", entity=entity.value, error=str(e))
            raise EntityStoreError(
                message=f"Failed to create {entity.value}: {e}",
                code=ErrorCode.STORE_WRITE_ERROR,
                context=ErrorContext(operation="create", resource_type=entity.value),
                cause=e
            )

        logger.info("Entity created", entity=entity.value, entity_id=doc_ref.id)
        return {**data, "id": doc_ref.id}

    def update(
        self,
        entity: EntityType,
        entity_id: str,
        fields: dict[str, Any]
    ) -> dict[str, Any]:
        """
        Update fields of an existing document.

        Returns:
            The document after the update.

        Raises:
            EntityNotFoundError: If the document doesn't exist.
            EntityStoreError: If the write fails.
        """
        data = {**fields, "updated_date": _utcnow()}
        data.pop("id", None)
        doc_ref = self._collection(entity).document(entity_id)
        try:
            doc_ref.update(data)
            doc = doc_ref.get()
        except gcp_exceptions.NotFound:
            raise _not_found(entity, entity_id, "update")
        except Exception as e:
            logger.error("Failed to update entity", entity=entity.value, entity_id=entity_id, error=str(e))
            raise EntityStoreError(
                message=f"Failed to update {entity.value}: {e}",
                code=ErrorCode.STORE_WRITE_ERROR,
                context=ErrorContext(
                    operation="update",
                    resource_id=entity_id,
                    resource_type=entity.value
                ),
                cause=e
            )

        logger.info("Entity updated", entity=entity.value, entity_id=entity_id, fields=list(fields))
        return self._to_dict(doc)

    def upsert(
        self,
        entity: EntityType,
        entity_id: str,
        fields: dict[str, Any]
    ) -> dict[str, Any]:
        """Create or merge a document under a caller-chosen id."""
        data = {**fields, "updated_date": _utcnow()}
        doc_ref = self._collection(entity).document(entity_id)
        try:
            doc_ref.set(data, merge=True)
            doc = doc_ref.get()
        except Exception as e:
            logger.error("Failed to upsert entity", entity=entity.value, entity_id=entity_id, error=str(e))
            raise EntityStoreError(
                message=f"Failed to save {entity.value}: {e}",
                code=ErrorCode.STORE_WRITE_ERROR,
                context=ErrorContext(
                    operation="upsert",
                    resource_id=entity_id,
                    resource_type=entity.value
                ),
                cause=e
            )

        logger.info("Entity saved", entity=entity.value, entity_id=entity_id)
        return self._to_dict(doc)

    def delete(self, entity: EntityType, entity_id: str) -> None:
        """
        Delete a document.

        Raises:
            EntityNotFoundError: If the document doesn't exist.
            EntityStoreError: If the delete fails.
        """
        doc_ref = self._collection(entity).document(entity_id)
        try:
            exists = doc_ref.get().exists
            if exists:
                doc_ref.delete()
        except Exception as e:
            logger.error("Failed to delete entity", entity=entity.value, entity_id=entity_id, error=str(e))
            raise EntityStoreError(
                message=f"Failed to delete {entity.value}: {e}",
                code=ErrorCode.STORE_WRITE_ERROR,
                context=ErrorContext(
                    operation="delete",
                    resource_id=entity_id,
                    resource_type=entity.value
                ),
                cause=e
            )

        if not exists:
            raise _not_found(entity, entity_id, "delete")
        logger.info("Entity deleted", entity=entity.value, entity_id=entity_id)


# Singleton instance for convenience
_repository: Optional[FirestoreRepository] = None


def get_repository() -> FirestoreRepository:
    """Get the global FirestoreRepository instance."""
    global _repository
    if _repository is None:
        _repository = FirestoreRepository()
    return _repository
