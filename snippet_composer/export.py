"""
Clipboard Export
================

Converts rendered draft markdown into the two clipboard formats:
plain text with the markup stripped, and HTML where every element carries
its own ``style`` attribute so it survives email clients that drop
``<style>`` blocks and classes.
"""

from __future__ import annotations

import re
from xml.etree.ElementTree import Element

import markdown
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor

_BOLD_RE = re.compile(r"\*\*(.*?)\*\*")
_ITALIC_RE = re.compile(r"\*(.*?)\*")
_CODE_RE = re.compile(r"`(.*?)`")
_HEADING_RE = re.compile(r"^#{1,6}\s+", re.MULTILINE)
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]+\)")

FONT_STACK = "Arial, Helvetica, sans-serif"

INLINE_STYLES: dict[str, str] = {
    "h1": f"font-family:{FONT_STACK};font-size:22px;font-weight:bold;margin:0 0 12px 0;color:#111111;",
    "h2": f"font-family:{FONT_STACK};font-size:19px;font-weight:bold;margin:0 0 10px 0;color:#111111;",
    "h3": f"font-family:{FONT_STACK};font-size:16px;font-weight:bold;margin:0 0 8px 0;color:#111111;",
    "h4": f"font-family:{FONT_STACK};font-size:14px;font-weight:bold;margin:0 0 8px 0;color:#111111;",
    "h5": f"font-family:{FONT_STACK};font-size:13px;font-weight:bold;margin:0 0 6px 0;color:#111111;",
    "h6": f"font-family:{FONT_STACK};font-size:12px;font-weight:bold;margin:0 0 6px 0;color:#444444;",
    "p": f"font-family:{FONT_STACK};font-size:14px;line-height:1.5;margin:0 0 12px 0;color:#222222;",
    "strong": "font-weight:bold;",
    "em": "font-style:italic;",
    "code": "font-family:Consolas, 'Courier New', monospace;font-size:13px;background-color:#f4f4f4;padding:1px 4px;border-radius:3px;",
    "a": "color:#1a73e8;text-decoration:underline;",
    "ul": f"font-family:{FONT_STACK};font-size:14px;margin:0 0 12px 0;padding-left:24px;",
    "ol": f"font-family:{FONT_STACK};font-size:14px;margin:0 0 12px 0;padding-left:24px;",
    "li": "margin:0 0 4px 0;line-height:1.5;",
    "blockquote": "margin:0 0 12px 0;padding-left:12px;border-left:3px solid #dddddd;color:#555555;",
    "hr": "border:none;border-top:1px solid #dddddd;margin:16px 0;",
}

WRAPPER_STYLE = f"font-family:{FONT_STACK};font-size:14px;color:#222222;"


def to_plain_text(text: str) -> str:
    """
    Strip markdown markup, keeping the text.

    ``**bold**``, ``*italic*`` and ```code``` lose their markers, heading
    hashes are removed and ``[text](url)`` becomes ``text``.
    """
    result = _BOLD_RE.sub(r"\1", text)
    result = _ITALIC_RE.sub(r"\1", result)
    result = _CODE_RE.sub(r"\1", result)
    result = _HEADING_RE.sub("", result)
    return _LINK_RE.sub(r"\1", result)


class InlineStyleTreeprocessor(Treeprocessor):
    """Set a fixed ``style`` attribute on every known element."""

    def __init__(self, md: markdown.Markdown, styles: dict[str, str]) -> None:
        super().__init__(md)
        self.styles = styles

    def run(self, root: Element) -> None:
        for element in root.iter():
            style = self.styles.get(element.tag)
            if style:
                element.set("style", style)
            # inline class attributes would be stripped by most clients anyway
            element.attrib.pop("class", None)


class InlineStyleExtension(Extension):
    """Markdown extension registering :class:`InlineStyleTreeprocessor`."""

    def __init__(self, **kwargs) -> None:
        self.config = {
            "styles": [dict(INLINE_STYLES), "Tag name to inline CSS mapping"],
        }
        super().__init__(**kwargs)

    def extendMarkdown(self, md: markdown.Markdown) -> None:
        md.treeprocessors.register(
            InlineStyleTreeprocessor(md, self.getConfig("styles")),
            "inline_style",
            # after inline patterns so <strong>/<em>/<a> exist
            5,
        )
        # snippet authors write markdown, never raw HTML
        md.preprocessors.deregister("html_block")
        md.inlinePatterns.deregister("html")


def to_inline_styled_html(text: str) -> str:
    """
    Convert markdown into HTML with inline styles on every element.

    Raw HTML in the input is escaped rather than passed through.
    """
    if not text.strip():
        return ""
    md = markdown.Markdown(
        extensions=["sane_lists", "nl2br", InlineStyleExtension()],
        output_format="html",
    )
    body = md.convert(text)
    return f'<div style="{WRAPPER_STYLE}">{body}</div>'
