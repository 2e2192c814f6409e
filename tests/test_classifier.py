import pytest

from classifier import PayloadKind, RawPayload, classify_payload, strip_reader_header, unwrap_envelope
from errors import EnvelopeError


def test_json_error_string_fails_immediately():
    with pytest.raises(EnvelopeError) as excinfo:
        classify_payload('{"error": "upstream returned 403"}')
    assert "upstream returned 403" in str(excinfo.value)


def test_json_error_object_uses_message():
    with pytest.raises(EnvelopeError) as excinfo:
        classify_payload('  {"error": {"message": "rate limited", "code": 429}}')
    assert excinfo.value.message == "rate limited"


def test_json_error_skips_html_parsing(monkeypatch):
    import classifier

    def fail(_text):
        raise AssertionError("HTML detection should not run")

    monkeypatch.setattr(classifier, "contains_html_tag", fail)
    with pytest.raises(EnvelopeError):
        classify_payload('{"error": "nope", "contents": ""}')


def test_json_contents_is_reclassified():
    classified = classify_payload('{"contents": "<html><body><p>Hello</p></body></html>", "status": {}}')
    assert classified.kind == PayloadKind.HTML
    assert classified.from_envelope
    assert classified.text.startswith("<html>")


def test_json_contents_with_markdown():
    classified = classify_payload('{"contents": "# Heading\\n\\nSome text"}')
    assert classified.kind == PayloadKind.MARKDOWN


def test_malformed_json_is_an_envelope_error():
    with pytest.raises(EnvelopeError):
        classify_payload('{"contents": ')


def test_json_without_known_fields_is_empty():
    assert classify_payload('{"status": 200}').kind == PayloadKind.EMPTY


@pytest.mark.parametrize("text", ["", "   ", "\n\t\n"])
def test_blank_text_is_empty(text):
    assert classify_payload(text).kind == PayloadKind.EMPTY


def test_html_detected():
    assert classify_payload("<div>text</div>").kind == PayloadKind.HTML


def test_comparison_operators_are_not_html():
    assert classify_payload("if a < b and c > d then").kind == PayloadKind.TEXT


def test_reader_header_is_stripped_and_marker_wins():
    text = (
        "Title: Some article\n"
        "URL Source: https://example.com/a\n"
        "Published Time: 2025-01-01\n"
        "Markdown Content:\n"
        "Just a plain sentence without any markup."
    )
    classified = classify_payload(text)
    assert classified.kind == PayloadKind.MARKDOWN
    assert classified.text == "Just a plain sentence without any markup."


def test_header_without_marker_needs_markdown_syntax():
    text = "Title: Some article\nURL Source: https://example.com/a\nPlain words only."
    classified = classify_payload(text)
    assert classified.kind == PayloadKind.TEXT
    assert classified.text == "Plain words only."


@pytest.mark.parametrize("text", [
    "## Heading",
    "- item one\n- item two",
    "1. first",
    "> quoted",
    "see [the docs](https://example.com/docs)",
    "![diagram](/img/d.png)",
])
def test_markdown_syntax_detected(text):
    assert classify_payload(text).kind == PayloadKind.MARKDOWN


def test_strip_reader_header_reports_marker():
    body, marker = strip_reader_header("Title: x\nMarkdown Content:\n# Hi")
    assert marker is True
    assert body == "# Hi"


def test_raw_payload_keeps_original_body():
    payload = unwrap_envelope('{"contents": "<p>x</p>"}')
    assert isinstance(payload, RawPayload)
    assert payload.unwrapped == "<p>x</p>"
    assert payload.body.startswith("{")
    assert classify_payload(payload).kind == PayloadKind.HTML
