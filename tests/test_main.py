import json

from main import run_classify, run_process, run_strategies

PROSE = "The committee reviewed the proposal in detail. " * 6


def test_process_prints_extracted_content(tmp_path, capsys):
    saved = tmp_path / "page.html"
    saved.write_text(f'<html><body><nav>Menu</nav><article><p>{PROSE}<a href="/next">next</a></p></article></body></html>')

    code = run_process(str(saved), "https://news.example/story", None, keep_images=False)

    out = capsys.readouterr().out
    assert code == 0
    assert "Menu" not in out
    assert 'href="https://news.example/next"' in out


def test_process_reports_user_message(tmp_path, capsys):
    saved = tmp_path / "page.json"
    saved.write_text(json.dumps({"error": {"message": "rate limited"}}))

    code = run_process(str(saved), "https://news.example/story", None, keep_images=False)

    assert code == 1
    assert "rate limited" in capsys.readouterr().err


def test_classify_reports_kind(tmp_path, capsys):
    saved = tmp_path / "reader.txt"
    saved.write_text("Title: A\n\nMarkdown Content:\nHello there")

    assert run_classify(str(saved)) == 0
    assert capsys.readouterr().out.startswith("markdown: ")


def test_strategies_lists_table(capsys):
    assert run_strategies() == 0
    assert capsys.readouterr().out.strip()
