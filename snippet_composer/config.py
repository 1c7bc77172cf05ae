"""
Configuration Management
========================

Centralized configuration using Pydantic Settings with validation,
environment variable loading, and type safety.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment enumeration."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class FirestoreSettings(BaseSettings):
    """Firestore collection names, one per entity type."""

    model_config = SettingsConfigDict(
        env_prefix="FIRESTORE_",
        extra="ignore"
    )

    snippets_collection: str = Field(default="snippets")
    snippet_versions_collection: str = Field(default="snippet_versions")
    drafts_collection: str = Field(default="drafts")
    templates_collection: str = Field(default="templates")
    categories_collection: str = Field(default="categories")
    tags_collection: str = Field(default="tags")
    cases_collection: str = Field(default="cases")
    favorites_collection: str = Field(default="favorites")
    users_collection: str = Field(
        default="users",
        description="User profiles (role, display name, default signature)"
    )


class ComposerSettings(BaseSettings):
    """Composer behaviour and list limits."""

    model_config = SettingsConfigDict(
        env_prefix="COMPOSER_",
        extra="ignore"
    )

    autosave_debounce_seconds: float = Field(
        default=3.0,
        ge=0.0,
        description="Idle time before pending draft edits are saved"
    )
    default_language: str = Field(
        default="de",
        description="Language of a fresh draft"
    )
    snippet_list_limit: int = Field(default=500, ge=1)
    draft_list_limit: int = Field(default=100, ge=1)
    collection_list_limit: int = Field(default=100, ge=1)
    session_idle_minutes: int = Field(
        default=120,
        ge=1,
        description="Composer sessions untouched for this long are evicted"
    )


class AuthSettings(BaseSettings):
    """
    Identity proxy configuration.

    Authentication happens upstream (identity-aware proxy); the service
    only reads the forwarded identity headers.
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        extra="ignore"
    )

    email_header: str = Field(default="X-Goog-Authenticated-User-Email")
    name_header: str = Field(default="X-User-Name")
    dev_user_email: Optional[str] = Field(
        default=None,
        description="Fallback identity used in development when no header is present"
    )
    dev_user_role: str = Field(default="admin")


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False
    )

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Current environment"
    )
    debug: bool = Field(default=False)
    port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Server port"
    )
    gcp_project_id: Optional[str] = Field(
        default=None,
        alias="GCP_PROJECT_ID",
        description="Google Cloud project ID (defaults to the ambient project)"
    )

    firestore: FirestoreSettings = Field(default_factory=FirestoreSettings)
    composer: ComposerSettings = Field(default_factory=ComposerSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: str) -> Environment:
        """Validate and convert environment string to enum."""
        if isinstance(v, Environment):
            return v
        return Environment(v.lower())

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment == Environment.DEVELOPMENT


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get cached application settings.

    Returns:
        AppSettings: The application settings instance.
    """
    return AppSettings()
