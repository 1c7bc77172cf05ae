"""
Tests for Clipboard Export
==========================
"""

from __future__ import annotations

import pytest

from snippet_composer.export import INLINE_STYLES, to_inline_styled_html, to_plain_text


class TestPlainText:
    """Markdown stripping."""

    @pytest.mark.parametrize(
        "markdown_text, expected",
        [
            ("**fett**", "fett"),
            ("*kursiv*", "kursiv"),
            ("`code`", "code"),
            ("## Überschrift", "Überschrift"),
            ("[Hilfe](https://support.de/hilfe)", "Hilfe"),
            ("**Wichtig**: Bitte *sofort* handeln.", "Wichtig: Bitte sofort handeln."),
        ],
    )
    def test_markup_removed(self, markdown_text: str, expected: str) -> None:
        assert to_plain_text(markdown_text) == expected

    def test_heading_markers_only_at_line_start(self) -> None:
        text = "Hallo,\n\n# Schritte\nFehler #42 bleibt."
        assert to_plain_text(text) == "Hallo,\n\nSchritte\nFehler #42 bleibt."

    def test_plain_text_passes_through(self) -> None:
        assert to_plain_text("Danke für deine Geduld.") == "Danke für deine Geduld."


class TestInlineStyledHtml:
    """HTML with inline styles."""

    def test_empty_input(self) -> None:
        assert to_inline_styled_html("   ") == ""

    def test_paragraph_and_emphasis(self) -> None:
        html = to_inline_styled_html("Der **Akku** ist *defekt*.")

        assert html.startswith('<div style="')
        assert f'<p style="{INLINE_STYLES["p"]}">' in html
        assert f'<strong style="{INLINE_STYLES["strong"]}">Akku</strong>' in html
        assert f'<em style="{INLINE_STYLES["em"]}">defekt</em>' in html

    def test_headings_links_lists_and_code(self) -> None:
        text = (
            "## Schritte\n\n"
            "1. Gerät ausschalten\n"
            "2. `reset` drücken\n\n"
            "- [Hilfe](https://support.de)\n"
        )
        html = to_inline_styled_html(text)

        for tag in ("h2", "ol", "li", "code", "ul"):
            assert f'<{tag} style="{INLINE_STYLES[tag]}"' in html
        assert f'<a href="https://support.de" style="{INLINE_STYLES["a"]}">Hilfe</a>' in html

    def test_no_classes_or_stylesheets(self) -> None:
        html = to_inline_styled_html("# Titel\n\nText")
        assert "class=" not in html
        assert "<style" not in html
        assert "<link" not in html

    def test_single_newlines_become_breaks(self) -> None:
        html = to_inline_styled_html("Viele Grüße\nTeam Support")
        assert "<br" in html

    def test_raw_html_is_escaped(self) -> None:
        html = to_inline_styled_html("Hallo <script>alert(1)</script>")
        assert "<script>" not in html
        assert "&lt;script&gt;" in html
