"""
Composer Service
================

Hosts one :class:`DraftAssemblyModel` per editing session and wires it to
the entity store: debounced auto-save after every edit, explicit save,
and draft switching (blank draft, template, stored draft).
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from uuid import uuid4

from snippet_composer import export
from snippet_composer.composer.autosave import AutoSaveScheduler
from snippet_composer.composer.draft_model import DraftAssemblyModel, Notice
from snippet_composer.config import get_settings
from snippet_composer.exceptions import ComposerSessionNotFoundError, SnippetComposerError
from snippet_composer.logging_config import get_logger, log_execution_time
from snippet_composer.models import (
    CurrentUser,
    ExportedEmail,
    Language,
    OpenSessionRequest,
    RenderedEmail,
)
from snippet_composer.services.draft_service import DraftService, get_draft_service
from snippet_composer.services.snippet_service import SnippetService, get_snippet_service
from snippet_composer.services.template_service import TemplateService, get_template_service

logger = get_logger(__name__)

EXPORT_FORMATS: dict[str, Callable[[str], str]] = {
    "plain": export.to_plain_text,
    "html": export.to_inline_styled_html,
}


@dataclass
class ComposerSession:
    """One user's editing session."""

    session_id: str
    user: CurrentUser
    model: DraftAssemblyModel
    last_saved_at: Optional[datetime] = None
    last_error: Optional[str] = None
    touched_at: float = field(default_factory=time.monotonic)
    # saves run one at a time so a first save's generated id is seen by the next
    save_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class ComposerService:
    """
    Registry of composer sessions.

    Sessions are private to the user that opened them. Every edit that
    changes the draft re-arms the session's auto-save timer;
    loading another draft cancels the timer of the previous one.

    Example:
        >>> service = ComposerService()
        >>> session = service.open_session(user, OpenSessionRequest())
        >>> service.add_item(user, session.session_id, "snippet-1")
        >>> service.save(user, session.session_id)
    """

    def __init__(
        self,
        draft_service: Optional[DraftService] = None,
        snippet_service: Optional[SnippetService] = None,
        template_service: Optional[TemplateService] = None,
        scheduler: Optional[AutoSaveScheduler] = None,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        self._settings = get_settings()
        self._drafts = draft_service or get_draft_service()
        self._snippets = snippet_service or get_snippet_service()
        self._templates = template_service or get_template_service()
        self._scheduler = scheduler or AutoSaveScheduler(
            delay=self._settings.composer.autosave_debounce_seconds
        )
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: dict[str, ComposerSession] = {}

    # ========================================================================
    # Session lifecycle
    # ========================================================================

    def open_session(self, user: CurrentUser, request: OpenSessionRequest) -> ComposerSession:
        """Start a session on a blank draft, a template or a stored draft."""
        self._evict_idle()
        language = request.language or Language(self._settings.composer.default_language)
        model = DraftAssemblyModel(user, self._snippets.list_all(), language=language)
        session = ComposerSession(
            session_id=uuid4().hex,
            user=user,
            model=model,
            touched_at=self._clock()
        )

        if request.draft_id:
            model.open_draft(self._drafts.get_draft(user, request.draft_id))
        elif request.template_id:
            model.load_template(self._templates.get_template(request.template_id))
            self._schedule_autosave(session)

        with self._lock:
            self._sessions[session.session_id] = session

        logger.info(
            "Composer session opened",
            session_id=session.session_id,
            draft_id=model.draft_id,
            template_id=request.template_id
        )
        return session

    def get_session(self, user: CurrentUser, session_id: str) -> ComposerSession:
        """
        Raises:
            ComposerSessionNotFoundError: If the session is unknown, expired
                or belongs to someone else.
        """
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None or session.user.email != user.email:
            raise ComposerSessionNotFoundError(session_id)
        session.touched_at = self._clock()
        return session

    def close_session(self, user: CurrentUser, session_id: str) -> None:
        """
        Save pending edits, then forget the session.

        Raises:
            SnippetComposerError: If the final save fails; the session is
                kept so the save can be retried.
        """
        session = self.get_session(user, session_id)
        self._scheduler.cancel(self._timer_key(session))
        if session.model.should_autosave:
            self._save(session, explicit=True)
        with self._lock:
            self._sessions.pop(session_id, None)
        logger.info("Composer session closed", session_id=session_id)

    def state(self, session: ComposerSession) -> dict[str, Any]:
        model = session.model
        return {
            "session_id": session.session_id,
            "draft_id": model.draft_id,
            "draft": model.draft.model_dump(mode="json"),
            "has_unsaved_changes": model.has_unsaved_changes,
            "autosave_pending": self._scheduler.is_pending(self._timer_key(session)),
            "last_saved_at": session.last_saved_at.isoformat() if session.last_saved_at else None,
            "last_error": session.last_error,
            "missing": model.missing_snippets(),
        }

    # ========================================================================
    # Draft switching
    # ========================================================================

    def new_draft(
        self,
        user: CurrentUser,
        session_id: str,
        language: Optional[Language] = None
    ) -> ComposerSession:
        session = self.get_session(user, session_id)
        previous_key = session.model.new_draft(language)
        self._scheduler.cancel(self._timer_key(session, previous_key))
        return session

    def load_template(self, user: CurrentUser, session_id: str, template_id: str) -> ComposerSession:
        session = self.get_session(user, session_id)
        template = self._templates.get_template(template_id)
        previous_key = session.model.load_template(template)
        self._scheduler.cancel(self._timer_key(session, previous_key))
        self._schedule_autosave(session)
        logger.info("Template loaded", session_id=session_id, template_id=template_id)
        return session

    def open_draft(self, user: CurrentUser, session_id: str, draft_id: str) -> ComposerSession:
        session = self.get_session(user, session_id)
        draft = self._drafts.get_draft(user, draft_id)
        previous_key = session.model.open_draft(draft)
        self._scheduler.cancel(self._timer_key(session, previous_key))
        return session

    # ========================================================================
    # Edits
    # ========================================================================

    def add_item(
        self,
        user: CurrentUser,
        session_id: str,
        snippet_id: str,
        index: Optional[int] = None
    ) -> tuple[ComposerSession, Notice]:
        if index is None:
            return self._edit(user, session_id, lambda m: m.add_item(snippet_id))
        return self._edit(user, session_id, lambda m: m.insert_item(snippet_id, index))

    def remove_item(self, user: CurrentUser, session_id: str, snippet_id: str) -> tuple[ComposerSession, Notice]:
        return self._edit(user, session_id, lambda m: m.remove_item(snippet_id))

    def reorder_item(
        self,
        user: CurrentUser,
        session_id: str,
        from_index: int,
        to_index: int
    ) -> tuple[ComposerSession, Notice]:
        return self._edit(user, session_id, lambda m: m.reorder_item(from_index, to_index))

    def set_override(
        self,
        user: CurrentUser,
        session_id: str,
        snippet_id: str,
        content: str
    ) -> tuple[ComposerSession, Notice]:
        return self._edit(user, session_id, lambda m: m.set_override(snippet_id, content))

    def reset_override(self, user: CurrentUser, session_id: str, snippet_id: str) -> tuple[ComposerSession, Notice]:
        return self._edit(user, session_id, lambda m: m.reset_override(snippet_id))

    def update_fields(
        self,
        user: CurrentUser,
        session_id: str,
        changes: dict[str, Any]
    ) -> tuple[ComposerSession, Notice]:
        return self._edit(user, session_id, lambda m: m.update_fields(changes))

    # ========================================================================
    # Output
    # ========================================================================

    def render(self, user: CurrentUser, session_id: str) -> RenderedEmail:
        session = self._refreshed(user, session_id)
        return session.model.render()

    def export(self, user: CurrentUser, session_id: str, fmt: str) -> ExportedEmail:
        """
        Clipboard export as ``plain`` text or inline-styled ``html``.

        Raises:
            ValueError: For any other format.
        """
        convert = EXPORT_FORMATS.get(fmt)
        if convert is None:
            raise ValueError(f"Unsupported export format: {fmt}")
        session = self._refreshed(user, session_id)
        rendered = session.model.render()
        return ExportedEmail(
            subject=rendered.subject,
            format=fmt,
            content=convert(rendered.body),
            missing=rendered.missing
        )

    # ========================================================================
    # Persistence
    # ========================================================================

    @log_execution_time()
    def save(self, user: CurrentUser, session_id: str) -> ComposerSession:
        """
        Save now, superseding any pending auto-save.

        Raises:
            SnippetComposerError: If the store rejects the save; the
                in-memory draft is left as it was.
        """
        session = self.get_session(user, session_id)
        self._scheduler.cancel(self._timer_key(session))
        self._save(session, explicit=True)
        return session

    # ========================================================================
    # Internals
    # ========================================================================

    def _edit(
        self,
        user: CurrentUser,
        session_id: str,
        operation: Callable[[DraftAssemblyModel], Notice]
    ) -> tuple[ComposerSession, Notice]:
        session = self.get_session(user, session_id)
        before = session.model.revision
        notice = operation(session.model)
        if session.model.revision != before:
            self._schedule_autosave(session)
        logger.debug("Composer edit", session_id=session_id, notice=notice.value)
        return session, notice

    @staticmethod
    def _timer_key(session: ComposerSession, draft_key: Optional[str] = None) -> str:
        """Scheduler key of a draft within one session."""
        return f"{session.session_id}:{draft_key or session.model.draft_key}"

    def _schedule_autosave(self, session: ComposerSession) -> None:
        key = session.model.draft_key
        self._scheduler.schedule(
            self._timer_key(session, key),
            lambda: self._autosave(session.session_id, key)
        )

    def _autosave(self, session_id: str, draft_key: str) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None or session.model.draft_key != draft_key:
            logger.debug("Stale auto-save dropped", session_id=session_id, draft_key=draft_key)
            return
        if session.model.should_autosave:
            self._save(session, explicit=False)

    def _save(self, session: ComposerSession, explicit: bool) -> None:
        with session.save_lock:
            self._save_locked(session, explicit)

    def _save_locked(self, session: ComposerSession, explicit: bool) -> None:
        model = session.model
        snapshot = model.snapshot()
        try:
            stored = self._drafts.save_draft(session.user, snapshot.draft_id, snapshot.payload)
        except SnippetComposerError as e:
            session.last_error = e.message
            logger.warning(
                "Draft save failed",
                session_id=session.session_id,
                draft_id=snapshot.draft_id,
                explicit=explicit,
                error=str(e)
            )
            if explicit:
                raise
            return

        if model.mark_saved(snapshot, stored.id):
            session.last_saved_at = datetime.now(timezone.utc)
            session.last_error = None
        else:
            logger.info("Save finished after draft switch", session_id=session.session_id, draft_id=stored.id)

    def _refreshed(self, user: CurrentUser, session_id: str) -> ComposerSession:
        session = self.get_session(user, session_id)
        session.model.update_library(self._snippets.list_all())
        return session

    def _evict_idle(self) -> None:
        cutoff = self._clock() - self._settings.composer.session_idle_minutes * 60
        with self._lock:
            idle = [s for s in self._sessions.values() if s.touched_at < cutoff]
            for session in idle:
                del self._sessions[session.session_id]
        for session in idle:
            self._scheduler.cancel(self._timer_key(session))
            if session.model.should_autosave:
                self._save(session, explicit=False)
            if session.model.has_unsaved_changes:
                logger.warning(
                    "Idle composer session evicted with unsaved changes",
                    session_id=session.session_id,
                    draft_id=session.model.draft_id,
                    last_error=session.last_error
                )
            else:
                logger.info("Idle composer session evicted", session_id=session.session_id)


_composer_service: Optional[ComposerService] = None


def get_composer_service() -> ComposerService:
    global _composer_service
    if _composer_service is None:
        _composer_service = ComposerService()
    return _composer_service
