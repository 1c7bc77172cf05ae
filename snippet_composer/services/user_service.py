"""User profiles: role, display name and default signature."""

from __future__ import annotations

from typing import Optional

from snippet_composer.exceptions import EntityNotFoundError
from snippet_composer.logging_config import get_logger
from snippet_composer.models import CurrentUser, ProfileUpdateRequest
from snippet_composer.repositories.firestore_repository import (
    EntityType,
    FirestoreRepository,
    get_repository,
)

logger = get_logger(__name__)


class UserService:
    """
    Profiles are stored under the user's email as document id.

    Roles are assigned by administrators directly in the store; the
    profile endpoint never changes them.
    """

    def __init__(self, repository: Optional[FirestoreRepository] = None) -> None:
        self._repository = repository or get_repository()

    def load_user(self, email: str, full_name: str = "") -> CurrentUser:
        """Resolve a profile. Unknown users are basic users without a role."""
        try:
            doc = self._repository.get(EntityType.USER, email)
        except EntityNotFoundError:
            logger.debug("No profile stored for user", email=email)
            return CurrentUser(email=email, full_name=full_name)

        doc["email"] = email
        if not doc.get("full_name"):
            doc["full_name"] = full_name
        return CurrentUser.model_validate(doc)

    def update_profile(self, user: CurrentUser, request: ProfileUpdateRequest) -> CurrentUser:
        changes = request.model_dump(exclude_none=True)
        if changes:
            self._repository.upsert(EntityType.USER, user.email, changes)
            logger.info("Profile updated", fields=list(changes))
        return user.model_copy(update=changes)


_user_service: Optional[UserService] = None


def get_user_service() -> UserService:
    global _user_service
    if _user_service is None:
        _user_service = UserService()
    return _user_service
