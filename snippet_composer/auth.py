"""
Current-user resolution.

Sign-in is handled by the identity-aware proxy in front of the service,
which forwards the authenticated email in a header. The profile stored
for that email supplies role and default signature.
"""

from __future__ import annotations

from typing import Mapping, Optional

from snippet_composer.config import AppSettings, get_settings
from snippet_composer.exceptions import AuthenticationError
from snippet_composer.models import CurrentUser, UserRole
from snippet_composer.services.user_service import UserService, get_user_service


def parse_proxy_email(value: Optional[str]) -> Optional[str]:
    """
    Extract the email from a proxy header.

    IAP sends ``accounts.google.com:user@example.com``; plain addresses
    are accepted too.
    """
    if not value:
        return None
    email = value.rsplit(":", 1)[-1].strip()
    return email or None


def resolve_current_user(
    headers: Mapping[str, str],
    user_service: Optional[UserService] = None,
    settings: Optional[AppSettings] = None
) -> CurrentUser:
    """
    Build the acting user from request headers.

    Raises:
        AuthenticationError: If no identity is present and no development
            fallback is configured.
    """
    settings = settings or get_settings()
    auth = settings.auth

    email = parse_proxy_email(headers.get(auth.email_header))
    full_name = headers.get(auth.name_header, "")

    if email is None:
        if settings.is_development and auth.dev_user_email:
            return CurrentUser(
                email=auth.dev_user_email,
                full_name="Development User",
                app_role=UserRole(auth.dev_user_role),
            )
        raise AuthenticationError()

    return (user_service or get_user_service()).load_user(email, full_name)
