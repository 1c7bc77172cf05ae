"""
Collection Service
==================

Categories, tags and cases: flat label sets used to filter snippets.
"""

from __future__ import annotations

from typing import Optional, Union

from snippet_composer.config import get_settings
from snippet_composer.exceptions import ValidationError
from snippet_composer.logging_config import get_logger, log_execution_time
from snippet_composer.models import Case, Category, CollectionRequest, CurrentUser, Tag
from snippet_composer.permissions import Capability, require
from snippet_composer.repositories.firestore_repository import (
    EntityType,
    FirestoreRepository,
    get_repository,
)

logger = get_logger(__name__)

CollectionEntity = Union[Category, Tag, Case]

COLLECTION_TYPES: dict[str, tuple[EntityType, type, str]] = {
    "categories": (EntityType.CATEGORY, Category, "sort_order"),
    "tags": (EntityType.TAG, Tag, "name"),
    "cases": (EntityType.CASE, Case, "name"),
}


class CollectionService:
    """
    CRUD for the label collections.

    Collections are addressed by their plural name: ``categories``,
    ``tags`` or ``cases``. Only admins may change them.
    """

    def __init__(self, repository: Optional[FirestoreRepository] = None) -> None:
        self._repository = repository or get_repository()
        self._settings = get_settings()

    @staticmethod
    def _resolve(collection: str) -> tuple[EntityType, type, str]:
        try:
            return COLLECTION_TYPES[collection]
        except KeyError:
            raise ValidationError(
                message=f"Unknown collection: {collection}",
                field="collection"
            )

    def list_items(self, collection: str) -> list[CollectionEntity]:
        entity, model, sort = self._resolve(collection)
        docs = self._repository.list(
            entity,
            sort=sort,
            limit=self._settings.composer.collection_list_limit
        )
        return [model.from_document(doc) for doc in docs]

    @log_execution_time()
    def create_item(
        self,
        user: CurrentUser,
        collection: str,
        request: CollectionRequest
    ) -> CollectionEntity:
        require(user, Capability.MANAGE_COLLECTIONS, operation=f"create_{collection}")
        entity, model, _ = self._resolve(collection)

        fields = self._fields(model, request)
        if model is Category and request.sort_order is None:
            fields["sort_order"] = len(self.list_items(collection))

        doc = self._repository.create(entity, fields, user_email=user.email)
        return model.from_document(doc)

    @log_execution_time()
    def update_item(
        self,
        user: CurrentUser,
        collection: str,
        item_id: str,
        request: CollectionRequest
    ) -> CollectionEntity:
        require(user, Capability.MANAGE_COLLECTIONS, operation=f"update_{collection}")
        entity, model, _ = self._resolve(collection)
        doc = self._repository.update(entity, item_id, self._fields(model, request))
        return model.from_document(doc)

    @log_execution_time()
    def delete_item(self, user: CurrentUser, collection: str, item_id: str) -> None:
        """Delete a label. Snippets keep the dangling id until edited."""
        require(user, Capability.MANAGE_COLLECTIONS, operation=f"delete_{collection}")
        entity, _, _ = self._resolve(collection)
        self._repository.delete(entity, item_id)

    @log_execution_time()
    def reorder_categories(self, user: CurrentUser, ordered_ids: list[str]) -> list[Category]:
        """Assign ``sort_order`` from the position in ``ordered_ids``."""
        require(user, Capability.MANAGE_COLLECTIONS, operation="reorder_categories")
        if len(set(ordered_ids)) != len(ordered_ids):
            raise ValidationError(message="Duplicate category ids", field="ordered_ids")

        for index, category_id in enumerate(ordered_ids):
            self._repository.update(EntityType.CATEGORY, category_id, {"sort_order": index})

        logger.info("Categories reordered", count=len(ordered_ids))
        return self.list_items("categories")

    @staticmethod
    def _fields(model: type, request: CollectionRequest) -> dict:
        fields = request.model_dump(exclude_none=True)
        allowed = set(model.model_fields) - {"id", "created_date", "updated_date", "created_by"}
        return {key: value for key, value in fields.items() if key in allowed}


_collection_service: Optional[CollectionService] = None


def get_collection_service() -> CollectionService:
    global _collection_service
    if _collection_service is None:
        _collection_service = CollectionService()
    return _collection_service
