"""
Tests for Collection Service
============================
"""

from __future__ import annotations

from unittest.mock import MagicMock, call

import pytest

from snippet_composer.exceptions import PermissionDeniedError, ValidationError
from snippet_composer.models import Category, CollectionRequest, CurrentUser, Tag
from snippet_composer.repositories import EntityType
from snippet_composer.services.collection_service import CollectionService


@pytest.fixture
def collection_service(mock_repository: MagicMock) -> CollectionService:
    return CollectionService(repository=mock_repository)


class TestCollectionService:
    """Categories, tags and cases."""

    def test_list_categories_by_sort_order(
        self,
        collection_service: CollectionService,
        mock_repository: MagicMock
    ) -> None:
        mock_repository.list.return_value = [
            {"id": "c1", "name": "Technik", "sort_order": 0},
            {"id": "c2", "name": "Versand", "sort_order": 1},
        ]

        items = collection_service.list_items("categories")

        assert all(isinstance(item, Category) for item in items)
        args, kwargs = mock_repository.list.call_args
        assert args == (EntityType.CATEGORY,)
        assert kwargs["sort"] == "sort_order"

    def test_list_tags_by_name(
        self,
        collection_service: CollectionService,
        mock_repository: MagicMock
    ) -> None:
        mock_repository.list.return_value = [{"id": "t1", "name": "hardware"}]

        items = collection_service.list_items("tags")

        assert isinstance(items[0], Tag)
        assert mock_repository.list.call_args.kwargs["sort"] == "name"

    def test_unknown_collection(self, collection_service: CollectionService) -> None:
        with pytest.raises(ValidationError):
            collection_service.list_items("folders")

    def test_create_category_appends(
        self,
        collection_service: CollectionService,
        mock_repository: MagicMock,
        admin_user: CurrentUser
    ) -> None:
        mock_repository.list.return_value = [{"id": "c1", "name": "Technik", "sort_order": 0}]
        mock_repository.create.side_effect = lambda entity, fields, user_email: {"id": "c2", **fields}

        category = collection_service.create_item(admin_user, "categories", CollectionRequest(name="Versand"))

        assert category.id == "c2"
        assert category.sort_order == 1

    def test_create_tag_drops_unknown_fields(
        self,
        collection_service: CollectionService,
        mock_repository: MagicMock,
        admin_user: CurrentUser
    ) -> None:
        mock_repository.create.side_effect = lambda entity, fields, user_email: {"id": "t1", **fields}

        collection_service.create_item(
            admin_user,
            "tags",
            CollectionRequest(name="hardware", description="ignored", sort_order=3)
        )

        entity, fields = mock_repository.create.call_args.args
        assert entity == EntityType.TAG
        assert fields == {"name": "hardware", "color": ""}

    def test_only_admins_write(
        self,
        collection_service: CollectionService,
        mock_repository: MagicMock,
        editor_user: CurrentUser
    ) -> None:
        with pytest.raises(PermissionDeniedError):
            collection_service.create_item(editor_user, "cases", CollectionRequest(name="RMA"))
        with pytest.raises(PermissionDeniedError):
            collection_service.delete_item(editor_user, "cases", "k1")
        mock_repository.create.assert_not_called()
        mock_repository.delete.assert_not_called()

    def test_delete(
        self,
        collection_service: CollectionService,
        mock_repository: MagicMock,
        admin_user: CurrentUser
    ) -> None:
        collection_service.delete_item(admin_user, "cases", "k1")
        mock_repository.delete.assert_called_once_with(EntityType.CASE, "k1")

    def test_reorder_categories(
        self,
        collection_service: CollectionService,
        mock_repository: MagicMock,
        admin_user: CurrentUser
    ) -> None:
        mock_repository.list.return_value = []

        collection_service.reorder_categories(admin_user, ["c3", "c1", "c2"])

        assert mock_repository.update.call_args_list == [
            call(EntityType.CATEGORY, "c3", {"sort_order": 0}),
            call(EntityType.CATEGORY, "c1", {"sort_order": 1}),
            call(EntityType.CATEGORY, "c2", {"sort_order": 2}),
        ]

    def test_reorder_rejects_duplicates(
        self,
        collection_service: CollectionService,
        mock_repository: MagicMock,
        admin_user: CurrentUser
    ) -> None:
        with pytest.raises(ValidationError):
            collection_service.reorder_categories(admin_user, ["c1", "c1"])
        mock_repository.update.assert_not_called()
