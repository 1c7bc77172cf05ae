"""
Custom Exception Hierarchy
==========================

Structured exceptions for the snippet composer with error codes,
messages, and context preservation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Standardized error codes for the application."""

    # Generic errors (1xxx)
    INTERNAL_ERROR = "ERR_1000"
    VALIDATION_ERROR = "ERR_1001"
    NOT_FOUND = "ERR_1002"

    # Entity store errors (3xxx)
    STORE_READ_ERROR = "ERR_3001"
    STORE_WRITE_ERROR = "ERR_3002"
    DRAFT_NOT_FOUND = "ERR_3003"
    SNIPPET_NOT_FOUND = "ERR_3004"

    # Composer errors (5xxx)
    SESSION_NOT_FOUND = "ERR_5000"

    # Auth errors (6xxx)
    AUTHENTICATION_REQUIRED = "ERR_6000"
    PERMISSION_DENIED = "ERR_6001"


@dataclass
class ErrorContext:
    """Context information for error tracking and debugging."""

    operation: str = ""
    resource_id: Optional[str] = None
    resource_type: Optional[str] = None
    additional_info: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary for logging/serialization."""
        result = {"operation": self.operation}
        if self.resource_id:
            result["resource_id"] = self.resource_id
        if self.resource_type:
            result["resource_type"] = self.resource_type
        if self.additional_info:
            result.update(self.additional_info)
        return result


class SnippetComposerError(Exception):
    """
    Base exception for all snippet composer errors.

    Example:
        >>> raise SnippetComposerError(
        ...     message="Failed to save draft",
        ...     code=ErrorCode.STORE_WRITE_ERROR,
        ...     context=ErrorContext(operation="save_draft", resource_id="abc123")
        ... )
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context or ErrorContext()
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error": True,
            "code": self.code.value,
            "message": self.message,
        }
        if self.context.operation:
            result["context"] = self.context.to_dict()
        return result

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.context.operation:
            parts.append(f"(operation: {self.context.operation})")
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " ".join(parts)


# Entity store exceptions
class EntityStoreError(SnippetComposerError):
    """Raised when a call to the entity store fails."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.STORE_READ_ERROR,
        **kwargs: Any
    ) -> None:
        super().__init__(message=message, code=code, **kwargs)


class EntityNotFoundError(EntityStoreError):
    """Raised when a document does not exist in its collection."""

    def __init__(
        self,
        entity: str,
        entity_id: str,
        message: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOT_FOUND,
        **kwargs: Any
    ) -> None:
        msg = message or f"{entity} not found: {entity_id}"
        context = kwargs.pop("context", ErrorContext())
        context.resource_id = entity_id
        context.resource_type = entity
        super().__init__(message=msg, code=code, context=context, **kwargs)


class DraftNotFoundError(EntityNotFoundError):
    """Raised when a draft document is not found."""

    def __init__(self, draft_id: str, **kwargs: Any) -> None:
        super().__init__("draft", draft_id, code=ErrorCode.DRAFT_NOT_FOUND, **kwargs)


class SnippetNotFoundError(EntityNotFoundError):
    """Raised when a snippet document is not found."""

    def __init__(self, snippet_id: str, **kwargs: Any) -> None:
        super().__init__("snippet", snippet_id, code=ErrorCode.SNIPPET_NOT_FOUND, **kwargs)


# Composer exceptions
class ComposerSessionNotFoundError(SnippetComposerError):
    """Raised when a composer session id is unknown or expired."""

    def __init__(self, session_id: str, **kwargs: Any) -> None:
        context = kwargs.pop("context", ErrorContext())
        context.resource_id = session_id
        context.resource_type = "composer_session"
        super().__init__(
            message=f"Composer session not found: {session_id}",
            code=ErrorCode.SESSION_NOT_FOUND,
            context=context,
            **kwargs
        )


# Validation exceptions
class ValidationError(SnippetComposerError):
    """Raised when user input is rejected before reaching the store."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        context = kwargs.pop("context", ErrorContext())
        if field:
            context.additional_info["field"] = field
        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            context=context,
            **kwargs
        )


# Auth exceptions
class AuthenticationError(SnippetComposerError):
    """Raised when no user identity accompanies the request."""

    def __init__(self, message: str = "Authentication required", **kwargs: Any) -> None:
        super().__init__(message=message, code=ErrorCode.AUTHENTICATION_REQUIRED, **kwargs)


class PermissionDeniedError(SnippetComposerError):
    """Raised when the acting user lacks a capability."""

    def __init__(
        self,
        capability: str,
        message: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        context = kwargs.pop("context", ErrorContext())
        context.additional_info["capability"] = capability
        super().__init__(
            message=message or f"Missing permission: {capability}",
            code=ErrorCode.PERMISSION_DENIED,
            context=context,
            **kwargs
        )
