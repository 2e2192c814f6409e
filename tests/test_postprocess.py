import pytest

from postprocess import finalize_content, remove_first_h1, strip_images


def test_only_first_h1_is_removed():
    html = "<h1>Title</h1><p>Intro</p><h1>Chapter</h1><p>Body</p>"
    result = remove_first_h1(html)

    assert result.count("<h1>") == 1
    assert "<h1>Chapter</h1>" in result
    assert "Title" not in result


def test_fragment_without_h1_is_unchanged():
    assert remove_first_h1("<h2>Sub</h2><p>x</p>") == "<h2>Sub</h2><p>x</p>"


def test_all_image_elements_stripped():
    html = (
        '<p>a<img src="https://x/1.png"></p>'
        '<picture><source srcset="https://x/2.webp"><img src="https://x/2.png"></picture>'
        '<p>b<img src="https://x/3.png"></p>'
    )
    result = strip_images(html)

    assert "<img" not in result
    assert "<picture" not in result
    assert "<source" not in result
    assert "<p>a</p>" in result


def test_finalize_applies_policy():
    html = '<h1>Title</h1><h1>Second</h1><p onclick="steal()">Text<img src="https://x/1.png"></p>'

    stripped = finalize_content(html, title="Title", strip_images=True)
    assert stripped.count("<h1>") == 1
    assert "Second" in stripped
    assert "<img" not in stripped
    assert "onclick" not in stripped

    kept = finalize_content(html, title="Title", strip_images=False)
    assert "<img" in kept


def test_finalize_default_follows_config(monkeypatch):
    from config import config

    monkeypatch.setattr(config, "STRIP_IMAGES", False)
    assert "<img" in finalize_content('<p>x<img src="https://x/1.png"></p>')

    monkeypatch.setattr(config, "STRIP_IMAGES", True)
    assert "<img" not in finalize_content('<p>x<img src="https://x/1.png"></p>')


def test_finalize_empty():
    assert finalize_content("") == ""


@pytest.mark.parametrize("vector", [
    '<a href="java&#9;script:alert(1)">tab</a>',
    '<a href=" &#1;javascript:alert(1)">control</a>',
    '<a href="data:text/html,&lt;script&gt;alert(1)&lt;/script&gt;">data</a>',
    '<svg><a xlink:href="javascript:alert(2)"><text>svg</text></a></svg>',
    '<animate attributeName="href" values="javascript:alert(4)"></animate>',
    '<object data="javascript:alert(5)"></object>',
    '<embed src="javascript:alert(6)">',
    '<math><a href="javascript:alert(7)">m</a></math>',
])
def test_script_urls_do_not_survive(vector):
    result = finalize_content(f"<p>Prose</p>{vector}", strip_images=False)

    assert "javascript" not in result.lower()
    assert "data:" not in result
    for tag in ("<svg", "<animate", "<object", "<embed", "<math"):
        assert tag not in result
    assert "<p>Prose</p>" in result


def test_article_layout_survives_sanitizing():
    html = (
        '<div class="body"><figure><img src="https://x/1.png" alt="chart">'
        '<figcaption>Chart</figcaption></figure>'
        '<table><tr><td colspan="2" style="color:red">cell</td></tr></table>'
        '<a href="https://x/page" target="_blank">link</a></div>'
    )
    result = finalize_content(html, strip_images=False)

    assert "<figure>" in result
    assert "<figcaption>Chart</figcaption>" in result
    assert '<td colspan="2">cell</td>' in result
    assert '<a href="https://x/page">link</a>' in result
    assert "style=" not in result
    assert "class=" not in result
