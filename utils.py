#!/usr/bin/env python3
"""
Utility functions shared by the extraction pipeline.

This module contains the link resolver, the HTML sanitizers used on remote
content, response text repair, and small formatting helpers for logging.
"""

from typing import List, Optional
import re
from urllib.parse import urljoin, urlparse

from aiohttp import ClientError
from bs4 import BeautifulSoup

from config import get_logger

# Module-specific logger
logger = get_logger("utils")

URL_ATTRIBUTES = ("href", "src")

# Elements that are dropped together with their content
DANGEROUS_TAGS = (
    "script", "style", "iframe", "form", "object", "embed", "noscript",
    "frame", "frameset", "applet", "meta", "base", "link", "template", "svg", "math",
)

# Safe common subset for rendered Markdown: text formatting, lists, links, images, headings
SAFE_TAGS = {
    "p", "br", "hr", "strong", "b", "em", "i", "code", "pre", "blockquote",
    "ul", "ol", "li", "a", "img", "h1", "h2", "h3", "h4", "h5", "h6",
    "del", "s", "sup", "sub",
}
SAFE_ATTRIBUTES = {
    "a": {"href", "title"},
    "img": {"src", "alt", "title"},
    "ol": {"start"},
}
SAFE_SCHEMES = ("http://", "https://", "mailto:")

# Wider subset for extracted article HTML: adds layout and table markup
ARTICLE_TAGS = SAFE_TAGS | {
    "div", "span", "section", "figure", "figcaption", "picture",
    "table", "caption", "thead", "tbody", "tfoot", "tr", "th", "td",
    "dl", "dt", "dd", "abbr", "cite", "q", "mark", "small", "u", "time",
    "kbd", "samp", "var",
}
ARTICLE_ATTRIBUTES = {
    **SAFE_ATTRIBUTES,
    "img": {"src", "alt", "title", "width", "height"},
    "td": {"colspan", "rowspan"},
    "th": {"colspan", "rowspan", "scope"},
    "time": {"datetime"},
}

# Browsers ignore ASCII whitespace and control characters inside a URL scheme
_URL_NOISE_RE = re.compile(r"[\x00-\x20\x7f]+")

_SPACE_LIKE = r"[\s\u00A0]"
_BROKEN_DASH_RE = re.compile(rf"({_SPACE_LIKE})\ufffd({_SPACE_LIKE})")


def to_absolute_url(base_url: str, value: str) -> str:
    """Resolve a single href/src value against ``base_url``.

    Empty values and fragment-only references are returned untouched, as are
    values that are already absolute http(s) URLs or that cannot be joined.
    """
    if not value or value.startswith("#"):
        return value
    if value.startswith("http"):
        return value
    try:
        return urljoin(base_url, value)
    except ValueError:
        return value


def make_links_absolute(html: str, base_url: str, parser: str = "html.parser") -> str:
    """Rewrite every ``a[href]`` and ``img[src]`` in an HTML fragment to absolute URLs."""
    if not html:
        return ""
    soup = BeautifulSoup(html, parser)
    for tag in soup.select("a[href]"):
        tag["href"] = to_absolute_url(base_url, str(tag["href"]))
    for tag in soup.select("img[src]"):
        tag["src"] = to_absolute_url(base_url, str(tag["src"]))
    return soup.decode()


def _is_safe_url(value: str, attr: str) -> bool:
    normalized = _URL_NOISE_RE.sub("", value).lower()
    if not normalized:
        return False
    if attr == "href" and normalized.startswith("#"):
        return True
    if attr == "src" and normalized.startswith("mailto:"):
        return False
    return normalized.startswith(SAFE_SCHEMES)


def _sanitize_soup(soup, tags, attributes) -> None:
    for tag in soup(list(DANGEROUS_TAGS)):
        if not tag.decomposed:
            tag.decompose()

    for tag in soup.find_all(True):
        if tag.name not in tags:
            tag.unwrap()
            continue
        allowed = attributes.get(tag.name, set())
        for attr in list(tag.attrs):
            if attr not in allowed:
                del tag[attr]
                continue
            if attr in URL_ATTRIBUTES and not _is_safe_url(str(tag[attr]), attr):
                del tag[attr]
        if tag.name == "img" and not tag.has_attr("src"):
            tag.decompose()


def sanitize_html(html: str, parser: str = "html.parser") -> str:
    """Restrict an HTML fragment to the safe common subset.

    Dangerous elements are removed with their content, other unknown elements
    are unwrapped (their text is kept), attributes outside the allowlist are
    dropped, and href/src values must be absolute http(s) (or mailto:/#frag
    for links).
    """
    if not html:
        return ""
    soup = BeautifulSoup(html, parser)
    _sanitize_soup(soup, SAFE_TAGS, SAFE_ATTRIBUTES)
    return soup.decode()


def strip_unsafe_markup(soup) -> None:
    """Apply the article allowlist to a parsed fragment in place.

    Same rules as ``sanitize_html`` with layout and table elements kept.
    """
    _sanitize_soup(soup, ARTICLE_TAGS, ARTICLE_ATTRIBUTES)


def fix_broken_em_dash(text: str) -> str:
    """Repair em dashes that were mangled into U+FFFD by a bad charset guess."""
    if "\ufffd" not in text:
        return text
    return _BROKEN_DASH_RE.sub("\\1\u2014\\2", text)


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def contains_html_tag(text: str) -> bool:
    """Return True if ``text`` contains at least one opening HTML tag."""
    return bool(re.search(r"<[a-zA-Z][a-zA-Z0-9-]*(?:\s[^<>]*)?/?>", text or ""))


def summarize_proxy(proxy_url: Optional[str]) -> Optional[str]:
    """Provide a redacted proxy identifier (scheme and host only) for logging."""
    if not proxy_url:
        return None
    try:
        parsed = urlparse(proxy_url)
        if parsed.scheme and parsed.hostname:
            host = parsed.hostname
            if parsed.port:
                host = f"{host}:{parsed.port}"
            return f"{parsed.scheme}://{host}"
    except ValueError:
        return proxy_url
    return proxy_url


def format_client_error(error: ClientError) -> str:
    """Describe aiohttp client errors with any available status/errno."""
    parts: List[str] = [error.__class__.__name__]
    status = getattr(error, 'status', None)
    if status is not None:
        parts.append(f"status={status}")
    os_error = getattr(error, 'os_error', None)
    if os_error is not None:
        errno = getattr(os_error, 'errno', None)
        strerror = getattr(os_error, 'strerror', None)
        if errno is not None:
            parts.append(f"errno={errno}")
        if strerror:
            parts.append(str(strerror))
    message = str(error)
    if message:
        parts.append(message)
    return " ".join(parts)


def format_duration(seconds: float) -> str:
    """Format a short duration for log lines (e.g. "850ms", "3.2s")."""
    if seconds < 0:
        return "0ms"
    if seconds < 1:
        return f"{int(seconds * 1000)}ms"
    return f"{seconds:.1f}s"
