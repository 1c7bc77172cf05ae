"""Composer package: draft assembly, auto-save scheduling, library filters."""

from snippet_composer.composer.autosave import AutoSaveScheduler
from snippet_composer.composer.draft_model import DraftAssemblyModel, DraftSnapshot, Notice
from snippet_composer.composer.filters import filter_snippets, picker_snippets

__all__ = [
    "AutoSaveScheduler",
    "DraftAssemblyModel",
    "DraftSnapshot",
    "Notice",
    "filter_snippets",
    "picker_snippets",
]
