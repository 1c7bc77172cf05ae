"""
Template Service
================

Named presets (language, default subject, ordered snippet ids) used to
seed new drafts.
"""

from __future__ import annotations

from typing import Optional

from snippet_composer.config import get_settings
from snippet_composer.logging_config import get_logger, log_execution_time
from snippet_composer.models import CurrentUser, Language, Template, TemplateRequest
from snippet_composer.permissions import Capability, require
from snippet_composer.repositories.firestore_repository import (
    EntityType,
    FirestoreRepository,
    get_repository,
)

logger = get_logger(__name__)


class TemplateService:
    """Service for template operations."""

    def __init__(self, repository: Optional[FirestoreRepository] = None) -> None:
        self._repository = repository or get_repository()
        self._settings = get_settings()

    def list_templates(
        self,
        language: Optional[Language] = None,
        search: str = ""
    ) -> list[Template]:
        """
        Active templates sorted by name.

        Args:
            language: Only templates in this language.
            search: Case-insensitive match on name or description.
        """
        docs = self._repository.filter(
            EntityType.TEMPLATE,
            {"is_active": True},
            sort="name",
            limit=self._settings.composer.collection_list_limit
        )
        templates = [Template.from_document(doc) for doc in docs]

        if language is not None:
            templates = [t for t in templates if t.language == language]
        query = search.strip().lower()
        if query:
            templates = [
                t for t in templates
                if query in t.name.lower() or query in t.description.lower()
            ]
        return templates

    def get_template(self, template_id: str) -> Template:
        return Template.from_document(self._repository.get(EntityType.TEMPLATE, template_id))

    @log_execution_time()
    def create_template(self, user: CurrentUser, request: TemplateRequest) -> Template:
        require(user, Capability.MANAGE_TEMPLATES, operation="create_template")
        doc = self._repository.create(
            EntityType.TEMPLATE,
            request.model_dump(mode="json"),
            user_email=user.email
        )
        logger.info("Template created", template_id=doc["id"], snippets=len(request.snippet_ids))
        return Template.from_document(doc)

    @log_execution_time()
    def update_template(
        self,
        user: CurrentUser,
        template_id: str,
        request: TemplateRequest
    ) -> Template:
        require(user, Capability.MANAGE_TEMPLATES, operation="update_template")
        doc = self._repository.update(
            EntityType.TEMPLATE,
            template_id,
            request.model_dump(mode="json")
        )
        return Template.from_document(doc)

    @log_execution_time()
    def delete_template(self, user: CurrentUser, template_id: str) -> None:
        require(user, Capability.MANAGE_TEMPLATES, operation="delete_template")
        self._repository.delete(EntityType.TEMPLATE, template_id)
        logger.info("Template deleted", template_id=template_id)


_template_service: Optional[TemplateService] = None


def get_template_service() -> TemplateService:
    global _template_service
    if _template_service is None:
        _template_service = TemplateService()
    return _template_service
