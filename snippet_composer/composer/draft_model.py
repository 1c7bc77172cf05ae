"""
Draft Assembly Model
====================

In-memory state of one email being composed: greeting, an ordered list
of snippet references with optional per-item overrides, and a signature.

Item orders are always dense and zero-based. Every mutation builds a new
item list and swaps it in under the model lock, so a concurrent reader
never observes a gap or a duplicate order.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional
from uuid import uuid4

from snippet_composer import export
from snippet_composer.models import (
    CurrentUser,
    Draft,
    Language,
    RenderedEmail,
    Snippet,
    SnippetItem,
    Template,
)

SECTION_SEPARATOR = "\n\n"

EDITABLE_FIELDS = frozenset({"subject", "greeting", "signature", "language", "name"})


class Notice(str, Enum):
    """Outcome of a builder operation, shown to the user."""
    SNIPPET_ADDED = "snippet_added"
    SNIPPET_ALREADY_ADDED = "snippet_already_added"
    SNIPPET_UNKNOWN = "snippet_unknown"
    SNIPPET_REMOVED = "snippet_removed"
    ITEM_NOT_FOUND = "item_not_found"
    ITEMS_REORDERED = "items_reordered"
    OVERRIDE_SET = "override_set"
    OVERRIDE_UNCHANGED = "override_unchanged"
    OVERRIDE_RESET = "override_reset"
    FIELDS_UPDATED = "fields_updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class DraftSnapshot:
    """Full draft state captured for one save call."""

    draft_key: str
    draft_id: Optional[str]
    revision: int
    payload: dict[str, Any] = field(default_factory=dict)


def _renumber(items: Iterable[SnippetItem]) -> list[SnippetItem]:
    return [item.model_copy(update={"order": index}) for index, item in enumerate(items)]


def _new_key() -> str:
    return f"new-{uuid4().hex}"


class DraftAssemblyModel:
    """
    Holds and mutates the draft being composed.

    The acting user is injected; it supplies the default signature for
    fresh drafts. The snippet library is read-only from the model's point
    of view and can be refreshed with :meth:`update_library`.

    ``draft_key`` identifies the draft for auto-save purposes. It changes
    whenever another draft is loaded, and the switching methods return the
    previous key so pending saves for it can be cancelled.

    Example:
        >>> model = DraftAssemblyModel(user, snippets)
        >>> model.add_item("snip-1")
        <Notice.SNIPPET_ADDED: 'snippet_added'>
        >>> model.render().body
    """

    def __init__(
        self,
        user: CurrentUser,
        snippets: Iterable[Snippet] = (),
        draft: Optional[Draft] = None,
        language: Language = Language.DE,
    ) -> None:
        self._lock = threading.RLock()
        self._user = user
        self._library: dict[str, Snippet] = {}
        self.update_library(snippets)

        self._revision = 0
        self._saved_revision = 0
        self._unsaved = False

        if draft is not None:
            self._draft, self._draft_id = self._normalized(draft), draft.id
            self._key = draft.id or _new_key()
        else:
            self._draft, self._draft_id = self._blank(language), None
            self._key = _new_key()

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def user(self) -> CurrentUser:
        return self._user

    @property
    def draft(self) -> Draft:
        """A copy of the current draft."""
        with self._lock:
            return self._draft.model_copy(
                update={"id": self._draft_id, "snippet_items": list(self._draft.snippet_items)}
            )

    @property
    def items(self) -> list[SnippetItem]:
        with self._lock:
            return list(self._draft.snippet_items)

    @property
    def draft_id(self) -> Optional[str]:
        with self._lock:
            return self._draft_id

    @property
    def draft_key(self) -> str:
        with self._lock:
            return self._key

    @property
    def revision(self) -> int:
        with self._lock:
            return self._revision

    @property
    def has_unsaved_changes(self) -> bool:
        with self._lock:
            return self._unsaved

    @property
    def should_autosave(self) -> bool:
        """Unsaved edits exist and the draft has at least one item."""
        with self._lock:
            return self._unsaved and bool(self._draft.snippet_items)

    def update_library(self, snippets: Iterable[Snippet]) -> None:
        library = {snippet.id: snippet for snippet in snippets if snippet.id}
        with self._lock:
            self._library = library

    def missing_snippets(self) -> list[str]:
        """Ids of items whose snippet is no longer in the library, in item order."""
        with self._lock:
            return [
                item.snippet_id
                for item in self._draft.snippet_items
                if item.snippet_id not in self._library
            ]

    # ------------------------------------------------------------------
    # Item operations
    # ------------------------------------------------------------------

    def add_item(self, snippet_id: str) -> Notice:
        """Append a snippet. A snippet appears at most once per draft."""
        with self._lock:
            items = self._draft.snippet_items
            if any(item.snippet_id == snippet_id for item in items):
                return Notice.SNIPPET_ALREADY_ADDED
            if snippet_id not in self._library:
                return Notice.SNIPPET_UNKNOWN
            new_item = SnippetItem(snippet_id=snippet_id, override_content=None, order=len(items))
            self._commit_items([*items, new_item])
            return Notice.SNIPPET_ADDED

    def insert_item(self, snippet_id: str, at_index: int) -> Notice:
        """Insert a snippet at a drop position; out-of-range positions are clamped."""
        with self._lock:
            items = list(self._draft.snippet_items)
            if any(item.snippet_id == snippet_id for item in items):
                return Notice.SNIPPET_ALREADY_ADDED
            if snippet_id not in self._library:
                return Notice.SNIPPET_UNKNOWN
            position = max(0, min(at_index, len(items)))
            items.insert(position, SnippetItem(snippet_id=snippet_id, override_content=None))
            self._commit_items(_renumber(items))
            return Notice.SNIPPET_ADDED

    def remove_item(self, snippet_id: str) -> Notice:
        with self._lock:
            items = self._draft.snippet_items
            remaining = [item for item in items if item.snippet_id != snippet_id]
            if len(remaining) == len(items):
                return Notice.ITEM_NOT_FOUND
            self._commit_items(_renumber(remaining))
            return Notice.SNIPPET_REMOVED

    def reorder_item(self, from_index: int, to_index: int) -> Notice:
        """
        Move the item at ``from_index`` to ``to_index``.

        Raises:
            IndexError: If ``from_index`` does not address an item.
        """
        with self._lock:
            items = list(self._draft.snippet_items)
            if not 0 <= from_index < len(items):
                raise IndexError(f"No item at position {from_index}")
            target = max(0, min(to_index, len(items) - 1))
            if target == from_index:
                return Notice.UNCHANGED
            moved = items.pop(from_index)
            items.insert(target, moved)
            self._commit_items(_renumber(items))
            return Notice.ITEMS_REORDERED

    def set_override(self, snippet_id: str, content: str) -> Notice:
        """
        Replace the item's text for this draft only.

        Content equal to the live snippet content is not stored, so an
        untouched edit never turns into an override.
        """
        with self._lock:
            items = self._draft.snippet_items
            index = self._index_of(snippet_id)
            if index is None:
                return Notice.ITEM_NOT_FOUND
            snippet = self._library.get(snippet_id)
            if snippet is not None and content == snippet.content:
                return Notice.OVERRIDE_UNCHANGED
            if items[index].override_content == content:
                return Notice.UNCHANGED
            updated = list(items)
            updated[index] = items[index].model_copy(update={"override_content": content})
            self._commit_items(updated)
            return Notice.OVERRIDE_SET

    def reset_override(self, snippet_id: str) -> Notice:
        with self._lock:
            items = self._draft.snippet_items
            index = self._index_of(snippet_id)
            if index is None:
                return Notice.ITEM_NOT_FOUND
            if items[index].override_content is None:
                return Notice.UNCHANGED
            updated = list(items)
            updated[index] = items[index].model_copy(update={"override_content": None})
            self._commit_items(updated)
            return Notice.OVERRIDE_RESET

    def update_fields(self, changes: dict[str, Any]) -> Notice:
        """
        Shallow-merge subject, greeting, signature, language or name.

        Raises:
            ValueError: For fields that are not editable here.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not editable: {', '.join(sorted(unknown))}")
        with self._lock:
            current = self._draft.model_dump(include=set(changes))
            validated = Draft.model_validate({**self._draft.model_dump(), **changes})
            effective = {key: getattr(validated, key) for key in changes}
            if all(current[key] == effective[key] for key in changes):
                return Notice.UNCHANGED
            self._draft = self._draft.model_copy(update=effective)
            self._touch()
            return Notice.FIELDS_UPDATED

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self) -> RenderedEmail:
        """
        Assemble greeting, items in order, and signature into one body.

        Items whose snippet is gone are skipped and listed in ``missing``.
        """
        with self._lock:
            draft = self._draft
            library = self._library

        sections: list[str] = []
        missing: list[str] = []
        if draft.greeting:
            sections.append(draft.greeting)
        for item in sorted(draft.snippet_items, key=lambda i: i.order):
            snippet = library.get(item.snippet_id)
            if snippet is None:
                missing.append(item.snippet_id)
                continue
            sections.append(item.override_content or snippet.content)
        if draft.signature:
            sections.append(draft.signature)

        return RenderedEmail(
            subject=draft.subject,
            body=SECTION_SEPARATOR.join(sections),
            missing=missing,
        )

    def to_plain_text(self) -> str:
        return export.to_plain_text(self.render().body)

    def to_inline_styled_html(self) -> str:
        return export.to_inline_styled_html(self.render().body)

    # ------------------------------------------------------------------
    # Draft switching and persistence bookkeeping
    # ------------------------------------------------------------------

    def new_draft(self, language: Optional[Language] = None) -> str:
        """Start over with an empty draft. Returns the previous draft key."""
        with self._lock:
            previous = self._key
            self._draft = self._blank(language or self._draft.language)
            self._reset_identity(unsaved=False)
            return previous

    def load_template(self, template: Template) -> str:
        """
        Seed a new, unsaved draft from a template.

        Returns:
            The previous draft key.
        """
        items = [
            SnippetItem(snippet_id=snippet_id, override_content=None, order=index)
            for index, snippet_id in enumerate(dict.fromkeys(template.snippet_ids))
        ]
        with self._lock:
            previous = self._key
            self._draft = Draft(
                language=template.language,
                subject=template.default_subject,
                greeting="",
                signature=self._user.default_signature,
                snippet_items=items,
                template_id=template.id,
            )
            self._reset_identity(unsaved=True)
            return previous

    def open_draft(self, draft: Draft) -> str:
        """Continue editing a stored draft. Returns the previous draft key."""
        with self._lock:
            previous = self._key
            self._draft = self._normalized(draft)
            self._reset_identity(unsaved=False)
            self._draft_id = draft.id
            if draft.id:
                self._key = draft.id
            return previous

    def snapshot(self) -> DraftSnapshot:
        with self._lock:
            return DraftSnapshot(
                draft_key=self._key,
                draft_id=self._draft_id,
                revision=self._revision,
                payload=self._draft.to_fields(),
            )

    def mark_saved(self, snapshot: DraftSnapshot, draft_id: Optional[str] = None) -> bool:
        """
        Record a successful save of ``snapshot``.

        Ignored when another draft has been loaded since the snapshot was
        taken. Unsaved changes stay flagged if edits happened meanwhile.

        Returns:
            True if the save applied to the current draft.
        """
        with self._lock:
            if snapshot.draft_key != self._key:
                return False
            if self._draft_id is None and draft_id:
                self._draft_id = draft_id
            self._saved_revision = max(self._saved_revision, snapshot.revision)
            if self._saved_revision >= self._revision:
                self._unsaved = False
            return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _blank(self, language: Language) -> Draft:
        return Draft(
            language=language,
            subject="",
            greeting="",
            signature=self._user.default_signature,
            snippet_items=[],
        )

    @staticmethod
    def _normalized(draft: Draft) -> Draft:
        # stored drafts may carry sparse orders or duplicate references
        seen: set[str] = set()
        items = []
        for item in sorted(draft.snippet_items, key=lambda i: i.order):
            if item.snippet_id in seen:
                continue
            seen.add(item.snippet_id)
            items.append(item)
        return draft.model_copy(update={"id": None, "snippet_items": _renumber(items)})

    def _reset_identity(self, unsaved: bool) -> None:
        self._key = _new_key()
        self._draft_id = None
        self._revision += 1
        if not unsaved:
            self._saved_revision = self._revision
        self._unsaved = unsaved

    def _index_of(self, snippet_id: str) -> Optional[int]:
        for index, item in enumerate(self._draft.snippet_items):
            if item.snippet_id == snippet_id:
                return index
        return None

    def _commit_items(self, items: list[SnippetItem]) -> None:
        self._draft = self._draft.model_copy(update={"snippet_items": items})
        self._touch()

    def _touch(self) -> None:
        self._revision += 1
        self._unsaved = True
