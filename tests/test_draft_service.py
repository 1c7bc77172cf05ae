"""
Tests for Draft Service
=======================

Unit tests for the DraftService class.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from snippet_composer.exceptions import DraftNotFoundError, EntityStoreError, PermissionDeniedError
from snippet_composer.models import CurrentUser
from snippet_composer.repositories import EntityType
from snippet_composer.services.draft_service import DraftService


@pytest.fixture
def draft_service(mock_repository: MagicMock) -> DraftService:
    """Create DraftService with mock repository."""
    return DraftService(repository=mock_repository)


@pytest.fixture
def draft_payload() -> dict[str, Any]:
    """Full draft state as produced by the composer."""
    return {
        "name": None,
        "language": "de",
        "subject": "Akku defekt",
        "greeting": "Hallo,",
        "signature": "Team Support",
        "snippet_items": [
            {"snippet_id": "battery", "override_content": None, "order": 0},
            {"snippet_id": "refund", "override_content": "Wir ersetzen das Gerät.", "order": 1},
        ],
        "template_id": None,
    }


class TestDraftService:
    """Tests for DraftService."""

    def test_first_save_creates(
        self,
        draft_service: DraftService,
        mock_repository: MagicMock,
        editor_user: CurrentUser,
        draft_payload: dict[str, Any]
    ) -> None:
        """First save creates the draft and returns its generated id."""
        mock_repository.create.return_value = {
            **draft_payload,
            "id": "d-1",
            "created_by": editor_user.email
        }

        draft = draft_service.save_draft(editor_user, None, draft_payload)

        assert draft.id == "d-1"
        assert draft.snippet_items[1].override_content == "Wir ersetzen das Gerät."
        mock_repository.create.assert_called_once_with(
            EntityType.DRAFT,
            draft_payload,
            user_email=editor_user.email
        )
        mock_repository.update.assert_not_called()

    def test_later_saves_update(
        self,
        draft_service: DraftService,
        mock_repository: MagicMock,
        editor_user: CurrentUser,
        draft_payload: dict[str, Any]
    ) -> None:
        mock_repository.update.return_value = {**draft_payload, "id": "d-1"}

        draft_service.save_draft(editor_user, "d-1", draft_payload)

        mock_repository.update.assert_called_once_with(EntityType.DRAFT, "d-1", draft_payload)
        mock_repository.create.assert_not_called()

    def test_store_errors_propagate(
        self,
        draft_service: DraftService,
        mock_repository: MagicMock,
        editor_user: CurrentUser,
        draft_payload: dict[str, Any]
    ) -> None:
        mock_repository.update.side_effect = EntityStoreError("unavailable")

        with pytest.raises(EntityStoreError):
            draft_service.save_draft(editor_user, "d-1", draft_payload)

    def test_get_draft_not_found(
        self,
        draft_service: DraftService,
        mock_repository: MagicMock,
        editor_user: CurrentUser
    ) -> None:
        mock_repository.get.side_effect = DraftNotFoundError("missing")

        with pytest.raises(DraftNotFoundError):
            draft_service.get_draft(editor_user, "missing")

    def test_list_own_drafts_with_search(
        self,
        draft_service: DraftService,
        mock_repository: MagicMock,
        editor_user: CurrentUser
    ) -> None:
        mock_repository.filter.return_value = [
            {"id": "d-2", "subject": "Akku defekt", "name": None},
            {"id": "d-1", "subject": "Versand", "name": "Rückfrage Akku"},
            {"id": "d-0", "subject": "Rechnung"},
        ]

        drafts = draft_service.list_drafts(editor_user, search="akku")

        assert [d.id for d in drafts] == ["d-2", "d-1"]
        args, kwargs = mock_repository.filter.call_args
        assert args == (EntityType.DRAFT, {"created_by": editor_user.email})
        assert kwargs["sort"] == "-updated_date"

    def test_basic_user_cannot_list_or_delete(
        self,
        draft_service: DraftService,
        mock_repository: MagicMock,
        basic_user: CurrentUser
    ) -> None:
        with pytest.raises(PermissionDeniedError):
            draft_service.list_drafts(basic_user)
        with pytest.raises(PermissionDeniedError):
            draft_service.delete_draft(basic_user, "d-1")
        mock_repository.delete.assert_not_called()

    def test_delete(
        self,
        draft_service: DraftService,
        mock_repository: MagicMock,
        editor_user: CurrentUser
    ) -> None:
        mock_repository.get.return_value = {"id": "d-1", "created_by": editor_user.email}

        draft_service.delete_draft(editor_user, "d-1")

        mock_repository.delete.assert_called_once_with(EntityType.DRAFT, "d-1")

    def test_foreign_draft_is_not_readable(
        self,
        draft_service: DraftService,
        mock_repository: MagicMock,
        editor_user: CurrentUser,
        admin_user: CurrentUser
    ) -> None:
        mock_repository.get.return_value = {"id": "d-1", "created_by": "other@support.de"}

        with pytest.raises(PermissionDeniedError) as exc_info:
            draft_service.get_draft(editor_user, "d-1")
        assert exc_info.value.context.resource_id == "d-1"
        assert draft_service.get_draft(admin_user, "d-1").id == "d-1"

    def test_foreign_draft_is_not_deletable(
        self,
        draft_service: DraftService,
        mock_repository: MagicMock,
        editor_user: CurrentUser
    ) -> None:
        mock_repository.get.return_value = {"id": "d-1", "created_by": "other@support.de"}

        with pytest.raises(PermissionDeniedError):
            draft_service.delete_draft(editor_user, "d-1")
        mock_repository.delete.assert_not_called()
