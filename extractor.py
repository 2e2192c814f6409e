#!/usr/bin/env python3
"""
Readability-style main content extraction.

The extractor strips structural noise from a parsed document, scores a fixed
list of likely content containers and returns the inner HTML of the best one,
with links made absolute. Scoring weights, selector tables and thresholds are
carried in an immutable ExtractorConfig so alternative calibrations can be
passed in without touching module state.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Dict, Iterator, List, Optional, Tuple
import re

from bs4 import BeautifulSoup
from bs4.element import Tag

from config import config, get_logger
from utils import collapse_whitespace, contains_html_tag, make_links_absolute

logger = get_logger("extractor")

_SENTENCE_END_RE = re.compile(r"[.!?。！？]")

CONTENT_SELECTORS: Tuple[str, ...] = (
    'article',
    '[role="main"]',
    'main',
    '.post-content',
    '.article-body',
    '.entry-content',
    '.content',
    '.article-content',
    '.post',
    '#content',
    '.prose',
    # legacy table layouts
    'td[width="435"]',
    'body > table td',
    'body > div',
)

NOISE_TAGS: Tuple[str, ...] = (
    'script', 'style', 'nav', 'header', 'footer', 'aside', 'form', 'iframe', 'noscript',
)

NAV_HINT_SELECTORS: Tuple[str, ...] = (
    '[role="navigation"]',
    '[role="banner"]',
    '[role="contentinfo"]',
    '.nav', '.navbar', '.navigation', '.menu', '.sidebar',
    '.breadcrumb', '.breadcrumbs', '.toc',
    '#nav', '#navbar', '#menu', '#sidebar', '#breadcrumbs', '#toc',
)

EXCLUDED_ANCESTOR_ROLES: Tuple[str, ...] = ('navigation', 'banner', 'contentinfo')
EXCLUDED_ANCESTOR_TAGS: Tuple[str, ...] = ('nav', 'header', 'footer', 'aside')


@dataclass(frozen=True)
class ScoringWeights:
    """Weights for ``score_candidate``; an empirical starting calibration."""
    paragraph: float = 80
    sentence: float = 30
    sentence_cap: int = 40
    heading: float = 40
    image: float = 25
    list_excess: float = 25
    list_per_paragraph: float = 2
    link_density: float = 0

    @classmethod
    def from_overrides(cls, overrides: Optional[Dict[str, float]]) -> "ScoringWeights":
        if not overrides:
            return cls()
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in overrides.items():
            if key not in known:
                logger.warning(f"Ignoring unknown scoring weight '{key}'")
                continue
            values[key] = int(value) if key == "sentence_cap" else value
        return cls(**values)


@dataclass(frozen=True)
class ExtractorConfig:
    content_selectors: Tuple[str, ...] = CONTENT_SELECTORS
    noise_tags: Tuple[str, ...] = NOISE_TAGS
    nav_hint_selectors: Tuple[str, ...] = NAV_HINT_SELECTORS
    excluded_ancestor_roles: Tuple[str, ...] = EXCLUDED_ANCESTOR_ROLES
    excluded_ancestor_tags: Tuple[str, ...] = EXCLUDED_ANCESTOR_TAGS
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    min_candidate_text: int = 200
    min_table_text: int = 300
    min_body_text: int = 200
    parser: str = "html.parser"

    @classmethod
    def from_config(cls) -> "ExtractorConfig":
        """Build from the global config (strategies.yaml overrides and HTML_PARSER)."""
        base = cls(
            weights=ScoringWeights.from_overrides(config.SCORING_OVERRIDES),
            parser=config.HTML_PARSER,
        )
        thresholds = {
            key: value
            for key, value in config.EXTRACTION_OVERRIDES.items()
            if key in ("min_candidate_text", "min_table_text", "min_body_text")
        }
        return replace(base, **thresholds) if thresholds else base


@dataclass(frozen=True)
class CandidateMetrics:
    text_length: int
    paragraphs: int
    headings: int
    images: int
    sentences: int
    list_items: int
    link_text_length: int = 0

    @property
    def link_density(self) -> float:
        if not self.text_length:
            return 0.0
        return min(1.0, self.link_text_length / self.text_length)


@dataclass
class ContentCandidate:
    node: Tag
    selector: str
    metrics: CandidateMetrics
    score: float


def measure(node: Tag) -> CandidateMetrics:
    """Collect the structural counts used for scoring."""
    text = collapse_whitespace(node.get_text(" "))
    link_text = sum(len(collapse_whitespace(a.get_text(" "))) for a in node.find_all("a"))
    return CandidateMetrics(
        text_length=len(text),
        paragraphs=len(node.find_all("p")),
        headings=len(node.find_all(["h2", "h3", "h4"])),
        images=len(node.find_all("img")),
        sentences=len(_SENTENCE_END_RE.findall(text)),
        list_items=len(node.find_all("li")),
        link_text_length=link_text,
    )


def score_candidate(metrics: CandidateMetrics, weights: ScoringWeights = ScoringWeights()) -> float:
    """score = T + 80P + 30min(S,40) + 40H + 25I - 25max(0, L - 2P), with configurable weights."""
    excess_items = max(0, metrics.list_items - weights.list_per_paragraph * metrics.paragraphs)
    score = (
        metrics.text_length
        + weights.paragraph * metrics.paragraphs
        + weights.sentence * min(metrics.sentences, weights.sentence_cap)
        + weights.heading * metrics.headings
        + weights.image * metrics.images
        - weights.list_excess * excess_items
    )
    if weights.link_density:
        score -= weights.link_density * metrics.link_density * metrics.text_length
    return score


def _remove_noise(soup: BeautifulSoup, cfg: ExtractorConfig) -> None:
    for tag in soup.find_all(list(cfg.noise_tags)):
        tag.decompose()
    for selector in cfg.nav_hint_selectors:
        for tag in soup.select(selector):
            if tag.decomposed or tag.name in ("html", "body"):
                continue
            tag.decompose()


def _in_excluded_region(node: Tag, cfg: ExtractorConfig) -> bool:
    """True if the node or one of its ancestors is navigation, banner or contentinfo."""
    for element in [node, *node.parents]:
        if not isinstance(element, Tag):
            continue
        if element.name in cfg.excluded_ancestor_tags:
            return True
        role = element.get("role")
        if isinstance(role, str) and role.strip().lower() in cfg.excluded_ancestor_roles:
            return True
    return False


def iter_candidates(soup: BeautifulSoup, cfg: ExtractorConfig) -> Iterator[ContentCandidate]:
    """Yield scored candidates in selector-then-document order."""
    for selector in cfg.content_selectors:
        for node in soup.select(selector):
            if _in_excluded_region(node, cfg):
                continue
            metrics = measure(node)
            if metrics.text_length <= cfg.min_candidate_text:
                continue
            yield ContentCandidate(node, selector, metrics, score_candidate(metrics, cfg.weights))


def _best(candidates) -> Optional[ContentCandidate]:
    best = None
    for candidate in candidates:
        # strict comparison keeps the first-encountered candidate on ties
        if best is None or candidate.score > best.score:
            best = candidate
    return best


def _best_table(soup: BeautifulSoup, cfg: ExtractorConfig) -> Optional[ContentCandidate]:
    tables = []
    for node in soup.find_all("table"):
        metrics = measure(node)
        if metrics.text_length > cfg.min_table_text:
            tables.append(ContentCandidate(node, "table", metrics, score_candidate(metrics, cfg.weights)))
    return _best(tables)


def select_content(soup: BeautifulSoup, cfg: ExtractorConfig) -> Optional[ContentCandidate]:
    """Pick the main content node of an already cleaned document."""
    best = _best(iter_candidates(soup, cfg))
    if best:
        return best

    best = _best_table(soup, cfg)
    if best:
        return best

    body = soup.body or soup
    metrics = measure(body)
    if metrics.text_length > cfg.min_body_text and contains_html_tag(body.decode_contents()):
        return ContentCandidate(body, "body", metrics, score_candidate(metrics, cfg.weights))
    return None


def extract_content(html: str, url: str, cfg: Optional[ExtractorConfig] = None) -> str:
    """Return the main-content fragment of ``html`` with absolute links, or ''.

    Args:
        html: Full HTML document (or fragment)
        url: Source URL used to resolve relative href/src values
        cfg: Extraction configuration; defaults to ExtractorConfig.from_config()
    """
    if not html:
        return ""
    cfg = cfg or ExtractorConfig.from_config()
    soup = BeautifulSoup(html, cfg.parser)
    _remove_noise(soup, cfg)

    chosen = select_content(soup, cfg)
    if chosen is None:
        logger.debug(f"No content candidate cleared the bar for {url}")
        return ""

    logger.debug(
        "Selected %s for %s (score=%.0f text=%d p=%d h=%d li=%d)",
        chosen.selector,
        url,
        chosen.score,
        chosen.metrics.text_length,
        chosen.metrics.paragraphs,
        chosen.metrics.headings,
        chosen.metrics.list_items,
    )
    return make_links_absolute(chosen.node.decode_contents(), url, cfg.parser)


def rank_candidates(html: str, cfg: Optional[ExtractorConfig] = None) -> List[ContentCandidate]:
    """Score every selector candidate of a document, best first (for diagnostics)."""
    cfg = cfg or ExtractorConfig.from_config()
    soup = BeautifulSoup(html or "", cfg.parser)
    _remove_noise(soup, cfg)
    candidates = list(iter_candidates(soup, cfg))
    # sorted() is stable, so ties keep selector-then-document order
    return sorted(candidates, key=lambda c: -c.score)
