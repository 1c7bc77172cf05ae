"""Repositories package."""

from snippet_composer.repositories.firestore_repository import (
    EntityType,
    FirestoreRepository,
    get_repository,
)

__all__ = ["EntityType", "FirestoreRepository", "get_repository"]
