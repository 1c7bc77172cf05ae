"""Test fixtures and configuration."""

from __future__ import annotations

from typing import Any, Callable, Generator
from unittest.mock import MagicMock, patch

import pytest

from snippet_composer.models import (
    CurrentUser,
    Language,
    Snippet,
    SnippetStatus,
    UserRole,
)


class FakeTimer:
    """Stand-in for ``threading.Timer`` that only fires when told to."""

    def __init__(self, interval: float, function: Callable, args: tuple = ()) -> None:
        self.interval = interval
        self.function = function
        self.args = args
        self.daemon = False
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.fired = True
        self.function(*self.args)


class FakeTimerFactory:
    """Records every timer handed out."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def __call__(self, interval: float, function: Callable, args: tuple = ()) -> FakeTimer:
        timer = FakeTimer(interval, function, args)
        self.timers.append(timer)
        return timer

    @property
    def live(self) -> list[FakeTimer]:
        return [t for t in self.timers if not (t.cancelled or t.fired)]


@pytest.fixture
def timer_factory() -> FakeTimerFactory:
    return FakeTimerFactory()


@pytest.fixture
def mock_firestore_client() -> Generator[MagicMock, None, None]:
    """Mock Firestore client."""
    with patch("google.cloud.firestore.Client") as mock:
        yield mock


@pytest.fixture
def mock_repository() -> MagicMock:
    """Create a mock repository."""
    return MagicMock()


@pytest.fixture
def admin_user() -> CurrentUser:
    return CurrentUser(
        email="admin@support.de",
        full_name="Anna Admin",
        app_role=UserRole.ADMIN,
        default_signature="Team Support"
    )


@pytest.fixture
def editor_user() -> CurrentUser:
    return CurrentUser(
        email="editor@support.de",
        full_name="Erik Editor",
        app_role=UserRole.EDITOR,
        default_signature="Viele Grüße\nErik"
    )


@pytest.fixture
def basic_user() -> CurrentUser:
    return CurrentUser(email="agent@support.de", full_name="Berta Basic")


def make_snippet(
    snippet_id: str,
    content: str = "",
    title: str = "",
    language: Language = Language.DE,
    status: SnippetStatus = SnippetStatus.PUBLISHED,
    **extra: Any
) -> Snippet:
    return Snippet(
        id=snippet_id,
        title=title or snippet_id,
        content=content or f"Inhalt von {snippet_id}",
        language=language,
        status=status,
        **extra
    )


@pytest.fixture
def snippet_library() -> list[Snippet]:
    """Four published German snippets plus one English and one draft."""
    return [
        make_snippet("restart", "Bitte starte das Gerät neu.", title="Neustart", categories=["technik"]),
        make_snippet("battery", "Der **Akku** ist defekt.", title="Akku", tags=["hardware"]),
        make_snippet("refund", "Wir erstatten den Betrag.", title="Erstattung", cases=["rma"]),
        make_snippet("thanks", "Danke für *deine* Geduld.", title="Dank"),
        make_snippet("restart-en", "Please restart the device.", title="Restart", language=Language.EN),
        make_snippet("wip", "Noch nicht fertig.", title="Entwurf", status=SnippetStatus.DRAFT),
    ]


@pytest.fixture
def snippet_document() -> dict[str, Any]:
    """Sample snippet document from Firestore."""
    return {
        "id": "restart",
        "title": "Neustart",
        "content": "Bitte starte das Gerät neu.",
        "language": "de",
        "status": "published",
        "categories": ["technik"],
        "tags": [],
        "cases": [],
        "version": 3,
        "created_by": "editor@support.de",
    }
