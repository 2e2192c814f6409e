from markdown_renderer import render_inline, render_markdown

BASE = "https://a.com/posts/p"


def test_fixture_renders_heading_list_and_absolute_link():
    text = "# Title\n\n- first\n- second\n\nRead [more](/x) here."
    html = render_markdown(text, BASE, engine="lite")

    assert "<h1>Title</h1>" in html
    assert "<ul><li>first</li><li>second</li></ul>" in html
    assert '<a href="https://a.com/x">more</a>' in html


def test_code_span_is_not_reinterpreted_as_emphasis():
    html = render_inline("use `**kwargs` and **bold**", BASE)
    assert "<code>**kwargs</code>" in html
    assert "<strong>bold</strong>" in html
    assert html.count("<strong>") == 1


def test_link_label_punctuation_is_literal():
    html = render_inline("[a *starred* name](https://b.org/)", BASE)
    assert html == '<a href="https://b.org/">a *starred* name</a>'


def test_italic_and_escaping():
    html = render_inline("an *emphasis* with <tags> & more", BASE)
    assert "<em>emphasis</em>" in html
    assert "&lt;tags&gt; &amp; more" in html


def test_image_resolved_against_base():
    html = render_markdown("![chart](img/c.png)", BASE, engine="lite")
    assert 'src="https://a.com/posts/img/c.png"' in html
    assert 'alt="chart"' in html


def test_linked_image():
    html = render_inline("[![logo](/l.png)](/home)", BASE)
    assert html == '<a href="https://a.com/home"><img src="https://a.com/l.png" alt="logo"></a>'


def test_change_of_list_kind_closes_list():
    html = render_markdown("- a\n- b\n1. one\n2. two", BASE, engine="lite")
    assert "<ul><li>a</li><li>b</li></ul><ol><li>one</li><li>two</li></ol>" in html


def test_blank_line_closes_list():
    html = render_markdown("- a\n\n- b", BASE, engine="lite")
    assert html.count("<ul>") == 2


def test_ordered_list_keeps_start_number():
    html = render_markdown("3. three\n4. four", BASE, engine="lite")
    assert '<ol start="3">' in html


def test_consecutive_lines_form_one_paragraph():
    html = render_markdown("line one\nline two\n\nnext", BASE, engine="lite")
    assert "<p>line one line two</p><p>next</p>" in html


def test_blockquote_rule_and_fenced_code():
    text = "> quoted text\n\n---\n\n```\nx = 1 < 2\n```"
    html = render_markdown(text, BASE, engine="lite")
    assert "<blockquote><p>quoted text</p></blockquote>" in html
    assert "<hr/>" in html
    assert "<pre><code>x = 1 &lt; 2</code></pre>" in html


def test_script_links_are_sanitized():
    html = render_markdown("[click](javascript:alert(1))", BASE, engine="lite")
    assert "javascript:" not in html
    assert "click" in html


def test_python_markdown_engine():
    html = render_markdown("## Sub\n\nSee [x](/x).", BASE, engine="markdown")
    assert "<h2>Sub</h2>" in html
    assert 'href="https://a.com/x"' in html


def test_empty_text_renders_nothing():
    assert render_markdown("  \n", BASE) == ""


def test_heading_keeps_trailing_hash_in_words():
    html = render_markdown("# Learning C#\n\nbody", BASE, engine="lite")
    assert "<h1>Learning C#</h1>" in html


def test_heading_closing_sequence_is_removed():
    html = render_markdown("## Section ##", BASE, engine="lite")
    assert "<h2>Section</h2>" in html
