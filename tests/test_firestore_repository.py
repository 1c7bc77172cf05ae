"""
Tests for Firestore Repository
==============================

The Firestore client is a MagicMock; only the calls made against it are
checked.
"""

from __future__ import annotations

from typing import Any, Optional
from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as gcp_exceptions

from snippet_composer.exceptions import (
    DraftNotFoundError,
    EntityNotFoundError,
    EntityStoreError,
    ErrorCode,
)
from snippet_composer.repositories import EntityType, FirestoreRepository


def fake_doc(doc_id: str, data: Optional[dict[str, Any]], exists: bool = True) -> MagicMock:
    doc = MagicMock()
    doc.id = doc_id
    doc.exists = exists
    doc.to_dict.return_value = data
    return doc


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def repository(client: MagicMock) -> FirestoreRepository:
    return FirestoreRepository(client=client)


class TestQueries:

    def test_list_orders_and_limits(self, repository: FirestoreRepository, client: MagicMock) -> None:
        collection = client.collection.return_value
        query = collection.order_by.return_value
        query.limit.return_value.stream.return_value = [fake_doc("s1", {"title": "A"})]

        docs = repository.list(EntityType.SNIPPET, sort="-updated_date", limit=5)

        assert docs == [{"title": "A", "id": "s1"}]
        client.collection.assert_called_with("snippets")
        assert collection.order_by.call_args.args == ("updated_date",)
        query.limit.assert_called_once_with(5)

    def test_filter_sorts_after_query(self, repository: FirestoreRepository, client: MagicMock) -> None:
        query = client.collection.return_value.where.return_value
        query.stream.return_value = [
            fake_doc("v1", {"version_number": 1}),
            fake_doc("v3", {"version_number": 3}),
            fake_doc("v2", {"version_number": 2}),
        ]

        docs = repository.filter(
            EntityType.SNIPPET_VERSION,
            {"snippet_id": "s1"},
            sort="-version_number",
            limit=2
        )

        assert [d["id"] for d in docs] == ["v3", "v2"]
        field_filter = client.collection.return_value.where.call_args.kwargs["filter"]
        assert field_filter.field_path == "snippet_id"
        assert field_filter.value == "s1"

    def test_query_failure(self, repository: FirestoreRepository, client: MagicMock) -> None:
        client.collection.return_value.limit.return_value.stream.side_effect = RuntimeError("boom")

        with pytest.raises(EntityStoreError) as exc_info:
            repository.list(EntityType.TAG)
        assert exc_info.value.code == ErrorCode.STORE_READ_ERROR

    def test_get_missing_draft(self, repository: FirestoreRepository, client: MagicMock) -> None:
        client.collection.return_value.document.return_value.get.return_value = fake_doc("d1", None, exists=False)

        with pytest.raises(DraftNotFoundError):
            repository.get(EntityType.DRAFT, "d1")

    def test_get_other_entity_missing(self, repository: FirestoreRepository, client: MagicMock) -> None:
        client.collection.return_value.document.return_value.get.return_value = fake_doc("t1", None, exists=False)

        with pytest.raises(EntityNotFoundError) as exc_info:
            repository.get(EntityType.TEMPLATE, "t1")
        assert exc_info.value.context.resource_type == "template"


class TestWrites:

    def test_create_stamps_audit_fields(self, repository: FirestoreRepository, client: MagicMock) -> None:
        doc_ref = client.collection.return_value.document.return_value
        doc_ref.id = "new-id"

        doc = repository.create(EntityType.TAG, {"name": "hardware"}, user_email="a@support.de")

        assert doc["id"] == "new-id"
        assert doc["created_by"] == "a@support.de"
        assert doc["created_date"] == doc["updated_date"]
        stored = doc_ref.set.call_args.args[0]
        assert "id" not in stored
        assert stored["name"] == "hardware"

    def test_update_missing_document(self, repository: FirestoreRepository, client: MagicMock) -> None:
        doc_ref = client.collection.return_value.document.return_value
        doc_ref.update.side_effect = gcp_exceptions.NotFound("no document")

        with pytest.raises(DraftNotFoundError):
            repository.update(EntityType.DRAFT, "d1", {"subject": "x"})

    def test_update_returns_stored_document(self, repository: FirestoreRepository, client: MagicMock) -> None:
        doc_ref = client.collection.return_value.document.return_value
        doc_ref.get.return_value = fake_doc("d1", {"subject": "x"})

        doc = repository.update(EntityType.DRAFT, "d1", {"subject": "x", "id": "ignored"})

        written = doc_ref.update.call_args.args[0]
        assert "id" not in written
        assert "updated_date" in written
        assert doc == {"subject": "x", "id": "d1"}

    def test_write_failure(self, repository: FirestoreRepository, client: MagicMock) -> None:
        client.collection.return_value.document.return_value.set.side_effect = RuntimeError("boom")

        with pytest.raises(EntityStoreError) as exc_info:
            repository.create(EntityType.TAG, {"name": "x"})
        assert exc_info.value.code == ErrorCode.STORE_WRITE_ERROR

    def test_upsert_merges(self, repository: FirestoreRepository, client: MagicMock) -> None:
        doc_ref = client.collection.return_value.document.return_value
        doc_ref.get.return_value = fake_doc("a@support.de", {"default_signature": "Gruß"})

        repository.upsert(EntityType.USER, "a@support.de", {"default_signature": "Gruß"})

        assert doc_ref.set.call_args.kwargs == {"merge": True}
        client.collection.assert_called_with("users")

    def test_delete_missing(self, repository: FirestoreRepository, client: MagicMock) -> None:
        doc_ref = client.collection.return_value.document.return_value
        doc_ref.get.return_value = fake_doc("f1", None, exists=False)

        with pytest.raises(EntityNotFoundError):
            repository.delete(EntityType.FAVORITE, "f1")
        doc_ref.delete.assert_not_called()

    def test_delete(self, repository: FirestoreRepository, client: MagicMock) -> None:
        doc_ref = client.collection.return_value.document.return_value
        doc_ref.get.return_value = fake_doc("f1", {"snippet_id": "s1"})

        repository.delete(EntityType.FAVORITE, "f1")

        doc_ref.delete.assert_called_once()
