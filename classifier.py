#!/usr/bin/env python3
"""
Payload classification.

Proxies hand back one of three things: the page HTML itself, a JSON envelope
wrapping it (``{"contents": ...}`` or ``{"error": ...}``), or a reader-style
Markdown rendition with a small header block. This module decides which one
a response body is before any extraction work happens.
"""

from dataclasses import dataclass
from enum import Enum
from json import loads, JSONDecodeError
from typing import Optional, Tuple
import re

from config import get_logger
from errors import EnvelopeError
from utils import contains_html_tag

logger = get_logger("classifier")

MARKDOWN_MARKER = "Markdown Content:"
MAX_ENVELOPE_DEPTH = 3

_HEADER_LINE_RE = re.compile(r"^\s*(?:Title|URL Source|Published Time):")
_MARKDOWN_PATTERNS = (
    re.compile(r"^\s{0,3}#{1,6}\s+\S", re.MULTILINE),     # headings
    re.compile(r"^\s*[-*+]\s+\S", re.MULTILINE),          # unordered lists
    re.compile(r"^\s*\d+\.\s+\S", re.MULTILINE),          # ordered lists
    re.compile(r"^\s*>", re.MULTILINE),                   # blockquotes
    re.compile(r"!?\[[^\]\n]*\]\([^)\s]+[^)]*\)"),        # links / images
)


class PayloadKind(str, Enum):
    HTML = "html"
    MARKDOWN = "markdown"
    TEXT = "text"
    EMPTY = "empty"


@dataclass(frozen=True)
class RawPayload:
    """A decoded response body, plus its unwrapped form if it was a JSON envelope."""
    body: str
    unwrapped: Optional[str] = None

    @property
    def text(self) -> str:
        return self.unwrapped if self.unwrapped is not None else self.body


@dataclass(frozen=True)
class ClassifiedPayload:
    kind: PayloadKind
    text: str
    from_envelope: bool = False


def _error_message(error) -> str:
    if isinstance(error, dict):
        message = error.get("message")
        if message:
            return str(message)
    if isinstance(error, str) and error.strip():
        return error.strip()
    return "Proxy reported an error"


def unwrap_envelope(body: str) -> RawPayload:
    """Unwrap nested JSON envelopes.

    Raises:
        EnvelopeError: the envelope carries an ``error`` field, or the body
            looks like JSON but does not parse.
    """
    text = body
    unwrapped = None
    for _ in range(MAX_ENVELOPE_DEPTH):
        if not text.strip().startswith("{"):
            break
        try:
            data = loads(text)
        except JSONDecodeError as e:
            raise EnvelopeError(f"Malformed JSON response: {e.msg}") from e
        if not isinstance(data, dict):
            break
        contents = data.get("contents")
        if contents:
            if not isinstance(contents, str):
                raise EnvelopeError("JSON envelope 'contents' is not a string")
            text = contents
            unwrapped = contents
            continue
        if data.get("error"):
            raise EnvelopeError(_error_message(data["error"]))
        # A JSON object with neither field carries nothing we can read
        return RawPayload(body=body, unwrapped="")
    return RawPayload(body=body, unwrapped=unwrapped)


def strip_reader_header(text: str) -> Tuple[str, bool]:
    """Drop a reader header block (Title/URL Source/Published Time lines).

    Returns the remaining text and whether the ``Markdown Content:`` marker
    was present; when it is, only the text after the marker is kept.
    """
    index = text.find(MARKDOWN_MARKER)
    if index >= 0:
        return text[index + len(MARKDOWN_MARKER):].strip(), True
    lines = [line for line in text.splitlines() if not _HEADER_LINE_RE.match(line)]
    return "\n".join(lines).strip(), False


def looks_like_markdown(text: str) -> bool:
    """Detect headings, list markers, blockquotes or link/image syntax."""
    if not text:
        return False
    return any(pattern.search(text) for pattern in _MARKDOWN_PATTERNS)


def classify_payload(payload) -> ClassifiedPayload:
    """Decide how a response body should be interpreted.

    Accepts a raw string or a RawPayload. JSON envelopes are unwrapped first;
    an envelope ``error`` raises EnvelopeError before any parsing is attempted.
    """
    if isinstance(payload, RawPayload):
        raw = payload
        if raw.unwrapped is None:
            raw = unwrap_envelope(raw.body)
    else:
        raw = unwrap_envelope(payload or "")
    text = raw.text
    from_envelope = raw.unwrapped is not None

    if not text or not text.strip():
        return ClassifiedPayload(PayloadKind.EMPTY, "", from_envelope)

    if contains_html_tag(text):
        return ClassifiedPayload(PayloadKind.HTML, text, from_envelope)

    body, has_marker = strip_reader_header(text)
    if body and (has_marker or looks_like_markdown(body)):
        return ClassifiedPayload(PayloadKind.MARKDOWN, body, from_envelope)
    if not body:
        return ClassifiedPayload(PayloadKind.EMPTY, "", from_envelope)

    logger.debug("Payload has no HTML or Markdown structure (%d chars)", len(body))
    return ClassifiedPayload(PayloadKind.TEXT, body, from_envelope)
