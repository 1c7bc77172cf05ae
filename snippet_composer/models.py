"""
Data Models
===========

Pydantic models for stored entities, request validation and responses.
Entities mirror the documents kept in the entity store; request models
carry the input validation that must pass before anything is written.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class Language(str, Enum):
    """Languages snippets and drafts are written in."""
    DE = "de"
    EN = "en"


class SnippetStatus(str, Enum):
    """Lifecycle of a snippet. Archiving replaces deletion."""
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class UserRole(str, Enum):
    """Application roles. Users without a role are basic users."""
    ADMIN = "admin"
    EDITOR = "editor"
    USER = "user"


# ============================================================================
# Identity
# ============================================================================

class CurrentUser(BaseModel):
    """The acting user, passed explicitly to services and permission checks."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    email: EmailStr
    full_name: str = ""
    app_role: Optional[UserRole] = None
    role: Optional[str] = Field(
        default=None,
        description="Platform role; 'admin' here also grants admin rights"
    )
    default_signature: str = ""

    @field_validator("app_role", mode="before")
    @classmethod
    def blank_role_is_none(cls, v: Any) -> Any:
        if v in ("", None):
            return None
        return v


# ============================================================================
# Entities
# ============================================================================

class EntityModel(BaseModel):
    """Common fields stamped by the entity store."""

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        from_attributes=True
    )

    id: Optional[str] = None
    created_date: Optional[datetime] = None
    updated_date: Optional[datetime] = None
    created_by: Optional[str] = None

    @classmethod
    def from_document(cls, data: dict[str, Any]):
        """Build the model from a store document (``id`` included)."""
        return cls.model_validate(data)

    def to_fields(self) -> dict[str, Any]:
        """Writable fields, without the store-managed ones."""
        return self.model_dump(
            mode="json",
            exclude={"id", "created_date", "updated_date", "created_by"}
        )


class Snippet(EntityModel):
    """A reusable block of markdown reply text."""

    title: str = ""
    content: str = ""
    language: Language = Language.DE
    status: SnippetStatus = SnippetStatus.DRAFT
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    cases: list[str] = Field(default_factory=list)
    version: int = 1
    last_modified_by: Optional[str] = None

    @field_validator("categories", "tags", "cases", mode="before")
    @classmethod
    def none_is_empty(cls, v: Any) -> Any:
        return v or []


class SnippetVersion(EntityModel):
    """Immutable snapshot of a snippet taken before it was changed."""

    snippet_id: str
    version_number: int
    title: str = ""
    content: str = ""
    language: Language = Language.DE
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    cases: list[str] = Field(default_factory=list)
    change_note: Optional[str] = None
    changed_by: Optional[str] = None

    @field_validator("categories", "tags", "cases", mode="before")
    @classmethod
    def none_is_empty(cls, v: Any) -> Any:
        return v or []


class SnippetItem(BaseModel):
    """
    One snippet reference inside a draft.

    ``override_content`` of None means the live snippet content is used.
    """

    model_config = ConfigDict(extra="ignore")

    snippet_id: str
    override_content: Optional[str] = None
    order: int = 0


class Draft(EntityModel):
    """A work-in-progress email."""

    name: Optional[str] = None
    language: Language = Language.DE
    subject: str = ""
    greeting: str = ""
    signature: str = ""
    snippet_items: list[SnippetItem] = Field(default_factory=list)
    template_id: Optional[str] = None

    @field_validator("snippet_items", mode="before")
    @classmethod
    def none_is_empty(cls, v: Any) -> Any:
        return v or []


class Template(EntityModel):
    """A named preset used to seed new drafts."""

    name: str = ""
    description: str = ""
    language: Language = Language.DE
    default_subject: str = ""
    snippet_ids: list[str] = Field(default_factory=list)
    is_active: bool = True


class Category(EntityModel):
    name: str = ""
    color: str = ""
    description: str = ""
    sort_order: int = 0


class Tag(EntityModel):
    name: str = ""
    color: str = ""


class Case(EntityModel):
    """A fault pattern, e.g. "No Power"."""

    name: str = ""
    color: str = ""
    description: str = ""


class Favorite(EntityModel):
    snippet_id: str
    user_email: str


# ============================================================================
# Request Models
# ============================================================================

class BaseRequestModel(BaseModel):
    """Base model for all requests with common configuration."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="ignore"
    )


class SnippetCreateRequest(BaseRequestModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    language: Language = Language.DE
    status: SnippetStatus = SnippetStatus.DRAFT
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    cases: list[str] = Field(default_factory=list)


class SnippetUpdateRequest(BaseRequestModel):
    """Partial snippet update; unset fields are left untouched."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = Field(default=None, min_length=1)
    language: Optional[Language] = None
    status: Optional[SnippetStatus] = None
    categories: Optional[list[str]] = None
    tags: Optional[list[str]] = None
    cases: Optional[list[str]] = None
    change_note: Optional[str] = Field(default=None, max_length=500)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True, exclude={"change_note"})


class SnippetFilter(BaseRequestModel):
    """Library filter. ``all`` disables the language or status filter."""

    language: str = "all"
    status: str = SnippetStatus.PUBLISHED.value
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    cases: list[str] = Field(default_factory=list)
    favorites_only: bool = False
    search: str = ""


class CollectionRequest(BaseRequestModel):
    """Create or update a category, tag or case."""

    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(default="", max_length=32)
    description: str = ""
    sort_order: Optional[int] = Field(default=None, ge=0)


class ReorderRequest(BaseRequestModel):
    ordered_ids: list[str] = Field(..., min_length=1)


class TemplateRequest(BaseRequestModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    language: Language = Language.DE
    default_subject: str = ""
    snippet_ids: list[str] = Field(default_factory=list)
    is_active: bool = True

    @field_validator("snippet_ids")
    @classmethod
    def unique_ids(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))


class ProfileUpdateRequest(BaseRequestModel):
    full_name: Optional[str] = Field(default=None, max_length=200)
    default_signature: Optional[str] = None


class OpenSessionRequest(BaseRequestModel):
    """Start a composer session on a blank draft, a template or a stored draft."""

    language: Optional[Language] = None
    template_id: Optional[str] = None
    draft_id: Optional[str] = None


class AddItemRequest(BaseRequestModel):
    snippet_id: str = Field(..., min_length=1)
    index: Optional[int] = Field(
        default=None,
        ge=0,
        description="Drop position; appended when omitted"
    )


class ReorderItemRequest(BaseRequestModel):
    from_index: int = Field(..., ge=0)
    to_index: int = Field(..., ge=0)


class OverrideRequest(BaseModel):
    # whitespace is significant in overrides
    content: str


class DraftFieldsRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    subject: Optional[str] = None
    greeting: Optional[str] = None
    signature: Optional[str] = None
    language: Optional[Language] = None
    name: Optional[str] = None

    @field_validator("subject")
    @classmethod
    def single_line_subject(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.replace("\n", " ").replace("\r", " ")

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


# ============================================================================
# Response Models
# ============================================================================

class RenderedEmail(BaseModel):
    """Output of the draft renderer."""

    subject: str = ""
    body: str = ""
    missing: list[str] = Field(default_factory=list)


class ExportedEmail(BaseModel):
    subject: str = ""
    format: str
    content: str
    missing: list[str] = Field(default_factory=list)
