import pytest

from config import Config, config
from extractor import ExtractorConfig
from strategies import DEFAULT_STRATEGIES, RetrievalStrategy, load_strategies, select_strategies


def test_proxied_url_encodes_target():
    strategy = RetrievalStrategy("allorigins", "https://api.allorigins.win/raw?url={url}")
    assert strategy.proxied_url("https://a.com/p?x=1&y=2") == (
        "https://api.allorigins.win/raw?url=https%3A%2F%2Fa.com%2Fp%3Fx%3D1%26y%3D2"
    )


def test_raw_url_template():
    strategy = RetrievalStrategy("jina-reader", "https://r.jina.ai/{raw_url}")
    assert strategy.proxied_url("https://a.com/p") == "https://r.jina.ai/https://a.com/p"


def test_load_strategies_skips_invalid_entries():
    strategies = load_strategies([
        {"name": "one", "template": "https://one.test/?u={url}"},
        {"name": "broken", "template": "https://broken.test/{target}"},
        {"name": "static", "template": "https://static.test/"},
        {"name": "one", "template": "https://dup.test/?u={url}"},
        {"name": "two", "template": "https://two.test/{raw_url}"},
    ])
    assert [s.name for s in strategies] == ["one", "two"]


def test_load_strategies_falls_back_to_defaults():
    assert load_strategies([]) == DEFAULT_STRATEGIES


def test_load_strategies_uses_config_entries(monkeypatch):
    monkeypatch.setattr(config, "STRATEGY_ENTRIES", [{"name": "custom", "template": "https://c.test/?u={url}"}])
    assert [s.name for s in load_strategies()] == ["custom"]


def test_select_strategies_keeps_table_order():
    selected = select_strategies(DEFAULT_STRATEGIES, ["jina-reader", "cors.lol"])
    assert [s.name for s in selected] == ["cors.lol", "jina-reader"]
    with pytest.raises(ValueError):
        select_strategies(DEFAULT_STRATEGIES, ["nope"])


def test_config_reads_strategies_yaml(tmp_path, monkeypatch):
    path = tmp_path / "strategies.yaml"
    path.write_text(
        "strategies:\n"
        "  - name: mine\n"
        "    template: 'https://mine.test/?url={url}'\n"
        "  - name: bad\n"
        "scoring:\n"
        "  paragraph: 50\n"
        "  heading: nope\n"
        "extraction:\n"
        "  min_candidate_text: 120\n"
    )
    monkeypatch.setenv("STRATEGIES_CONFIG_PATH", str(path))
    monkeypatch.setenv("ATTEMPT_TIMEOUT_MS", "not-a-number")

    cfg = Config()

    assert cfg.STRATEGY_ENTRIES == [{"name": "mine", "template": "https://mine.test/?url={url}"}]
    assert cfg.SCORING_OVERRIDES == {"paragraph": 50.0}
    assert cfg.EXTRACTION_OVERRIDES == {"min_candidate_text": 120}
    assert cfg.ATTEMPT_TIMEOUT_MS == 8000


def test_extractor_config_from_overrides(monkeypatch):
    monkeypatch.setattr(config, "SCORING_OVERRIDES", {"paragraph": 50.0})
    monkeypatch.setattr(config, "EXTRACTION_OVERRIDES", {"min_table_text": 150})

    cfg = ExtractorConfig.from_config()

    assert cfg.weights.paragraph == 50.0
    assert cfg.weights.heading == 40
    assert cfg.min_table_text == 150
    assert cfg.min_candidate_text == 200


def test_reload_strategy_config(tmp_path):
    path = tmp_path / "other.yaml"
    path.write_text("strategies:\n  - name: alt\n    template: 'https://alt.test/{raw_url}'\n")
    cfg = Config()

    cfg.reload_strategy_config(str(path))

    assert cfg.STRATEGIES_CONFIG_PATH == str(path)
    assert [s.name for s in load_strategies(cfg.STRATEGY_ENTRIES)] == ["alt"]
    assert cfg.get_config_summary()["strategy_count"] == 1
