#!/usr/bin/env python3
"""
Markdown to HTML rendering for reader-style proxy responses.

The default "lite" engine is a small line-oriented renderer covering what
reader proxies actually emit: headings, flat lists, blockquotes, rules,
fenced code, paragraphs and inline code/images/links/emphasis. The
"markdown" engine hands the text to python-Markdown instead. Either way the
output goes through the HTML sanitizer before it is returned.
"""

from html import escape
from typing import List, Optional
import re

from markdown import markdown as md

from config import config, get_logger
from utils import make_links_absolute, sanitize_html, to_absolute_url

logger = get_logger("markdown")

_PLACEHOLDER = "\x00{}\x00"
_PLACEHOLDER_RE = re.compile(r"\x00(\d+)\x00")

_CODE_SPAN_RE = re.compile(r"`([^`\n]+)`")
_IMAGE_RE = re.compile(r"!\[([^\]\n]*)\]\(\s*([^)\s]+)(?:\s+\"[^\"]*\")?\s*\)")
_LINK_RE = re.compile(r"\[([^\]\n]*)\]\(\s*([^)\s]+)(?:\s+\"[^\"]*\")?\s*\)")
_BOLD_RE = re.compile(r"\*\*(?=\S)(.+?)(?<=\S)\*\*")
_ITALIC_RE = re.compile(r"(?<![*\w])\*(?=\S)([^*]+?)(?<=\S)\*(?![*\w])")

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*?)(?:\s+#+)?\s*$")
_UNORDERED_RE = re.compile(r"^[-*+]\s+(.*)$")
_ORDERED_RE = re.compile(r"^(\d+)\.\s+(.*)$")
_QUOTE_RE = re.compile(r"^>\s?(.*)$")
_RULE_RE = re.compile(r"^(?:[-*_]\s*){3,}$")
_FENCE_RE = re.compile(r"^(```|~~~)")


def render_inline(text: str, base_url: str) -> str:
    """Render inline Markdown in one line of text.

    Code spans, images and links are swapped for placeholder tokens first so
    that their contents are never read as emphasis; the remaining text is
    escaped, emphasis is applied, and the tokens are put back last.
    """
    tokens: List[str] = []

    def stash(html: str) -> str:
        tokens.append(html)
        return _PLACEHOLDER.format(len(tokens) - 1)

    def expand(value: str) -> str:
        return _PLACEHOLDER_RE.sub(lambda m: tokens[int(m.group(1))], value)

    def code(match) -> str:
        return stash(f"<code>{escape(match.group(1), quote=False)}</code>")

    def image(match) -> str:
        alt, src = match.group(1), to_absolute_url(base_url, match.group(2))
        return stash(f'<img src="{escape(src)}" alt="{escape(alt)}">')

    def link(match) -> str:
        label = expand(escape(match.group(1), quote=False))
        href = to_absolute_url(base_url, match.group(2))
        return stash(f'<a href="{escape(href)}">{label}</a>')

    text = text.replace("\x00", "")
    text = _CODE_SPAN_RE.sub(code, text)
    text = _IMAGE_RE.sub(image, text)
    text = _LINK_RE.sub(link, text)
    text = escape(text, quote=False)
    text = _BOLD_RE.sub(r"<strong>\1</strong>", text)
    text = _ITALIC_RE.sub(r"<em>\1</em>", text)
    return expand(text)


class _BlockWriter:
    """Accumulates block-level HTML, tracking the open list/paragraph/quote."""

    def __init__(self, base_url: str):
        self.base_url = base_url
        self.parts: List[str] = []
        self.paragraph: List[str] = []
        self.quote: List[str] = []
        self.list_kind: Optional[str] = None
        self.list_items: List[str] = []
        self.list_start = 1

    def inline(self, text: str) -> str:
        return render_inline(text, self.base_url)

    def flush_paragraph(self) -> None:
        if self.paragraph:
            self.parts.append(f"<p>{self.inline(' '.join(self.paragraph))}</p>")
            self.paragraph = []

    def flush_quote(self) -> None:
        if self.quote:
            self.parts.append(f"<blockquote><p>{self.inline(' '.join(self.quote))}</p></blockquote>")
            self.quote = []

    def close_list(self) -> None:
        if self.list_kind:
            items = "".join(f"<li>{item}</li>" for item in self.list_items)
            if self.list_kind == "ol" and self.list_start != 1:
                self.parts.append(f'<ol start="{self.list_start}">{items}</ol>')
            else:
                self.parts.append(f"<{self.list_kind}>{items}</{self.list_kind}>")
        self.list_kind = None
        self.list_items = []
        self.list_start = 1

    def close_all(self) -> None:
        self.flush_paragraph()
        self.flush_quote()
        self.close_list()

    def add_list_item(self, kind: str, text: str, start: int = 1) -> None:
        self.flush_paragraph()
        self.flush_quote()
        if self.list_kind != kind:
            self.close_list()
            self.list_kind = kind
            self.list_start = start
        self.list_items.append(self.inline(text))


def _render_lite(text: str, base_url: str) -> str:
    writer = _BlockWriter(base_url)
    fence: Optional[str] = None
    code_lines: List[str] = []

    for line in text.splitlines():
        stripped = line.strip()

        if fence:
            if stripped.startswith(fence):
                writer.parts.append(f"<pre><code>{escape(chr(10).join(code_lines), quote=False)}</code></pre>")
                fence = None
                code_lines = []
            else:
                code_lines.append(line)
            continue

        if not stripped:
            writer.close_all()
            continue

        fence_match = _FENCE_RE.match(stripped)
        if fence_match:
            writer.close_all()
            fence = fence_match.group(1)
            continue

        heading = _HEADING_RE.match(stripped)
        if heading:
            writer.close_all()
            level = len(heading.group(1))
            writer.parts.append(f"<h{level}>{writer.inline(heading.group(2))}</h{level}>")
            continue

        if _RULE_RE.match(stripped):
            writer.close_all()
            writer.parts.append("<hr>")
            continue

        unordered = _UNORDERED_RE.match(stripped)
        if unordered:
            writer.add_list_item("ul", unordered.group(1))
            continue

        ordered = _ORDERED_RE.match(stripped)
        if ordered:
            writer.add_list_item("ol", ordered.group(2), start=int(ordered.group(1)))
            continue

        quote = _QUOTE_RE.match(stripped)
        if quote:
            writer.flush_paragraph()
            writer.close_list()
            if quote.group(1).strip():
                writer.quote.append(quote.group(1).strip())
            continue

        writer.flush_quote()
        writer.close_list()
        writer.paragraph.append(stripped)

    if fence and code_lines:
        writer.parts.append(f"<pre><code>{escape(chr(10).join(code_lines), quote=False)}</code></pre>")
    writer.close_all()
    return "".join(writer.parts)


def _render_python_markdown(text: str, base_url: str) -> str:
    html = md(text, extensions=['extra', 'sane_lists'])
    return make_links_absolute(html, base_url)


def render_markdown(text: str, base_url: str, engine: Optional[str] = None) -> str:
    """Render Markdown into a sanitized HTML fragment with absolute links.

    Args:
        text: Markdown text (reader header already stripped)
        base_url: Article URL used to resolve relative links and images
        engine: "lite" or "markdown"; defaults to config.MARKDOWN_ENGINE
    """
    if not text or not text.strip():
        return ""
    engine = engine or config.MARKDOWN_ENGINE
    if engine == "markdown":
        html = _render_python_markdown(text, base_url)
    else:
        html = _render_lite(text, base_url)
    return sanitize_html(html)
