"""Services package."""

from snippet_composer.services.collection_service import CollectionService, get_collection_service
from snippet_composer.services.composer_service import ComposerService, get_composer_service
from snippet_composer.services.draft_service import DraftService, get_draft_service
from snippet_composer.services.snippet_service import SnippetService, get_snippet_service
from snippet_composer.services.template_service import TemplateService, get_template_service
from snippet_composer.services.user_service import UserService, get_user_service

__all__ = [
    "CollectionService",
    "get_collection_service",
    "ComposerService",
    "get_composer_service",
    "DraftService",
    "get_draft_service",
    "SnippetService",
    "get_snippet_service",
    "TemplateService",
    "get_template_service",
    "UserService",
    "get_user_service",
]
