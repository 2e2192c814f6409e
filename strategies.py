#!/usr/bin/env python3
"""
Retrieval strategies: named ways of fetching a remote page through a proxy.

A strategy is a name plus a URL template. ``{url}`` in the template is
replaced with the percent-encoded target URL and ``{raw_url}`` with the
target URL as-is (for proxies that take the target as a path suffix).
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import quote

from config import config, get_logger

logger = get_logger("strategies")


@dataclass(frozen=True)
class RetrievalStrategy:
    name: str
    template: str

    def proxied_url(self, url: str) -> str:
        """Map a target URL to the request URL for this strategy."""
        return self.template.format(url=quote(url, safe=""), raw_url=url)


DEFAULT_STRATEGIES: Tuple[RetrievalStrategy, ...] = (
    RetrievalStrategy("cors.lol", "https://api.cors.lol/?url={url}"),
    RetrievalStrategy("corsproxy.io", "https://corsproxy.io/?url={url}"),
    RetrievalStrategy("allorigins", "https://api.allorigins.win/raw?url={url}"),
    RetrievalStrategy("jina-reader", "https://r.jina.ai/{raw_url}"),
)


def _valid_template(template: str) -> bool:
    try:
        template.format(url="x", raw_url="x")
    except (KeyError, IndexError, ValueError):
        return False
    return "{url}" in template or "{raw_url}" in template


def load_strategies(entries: Optional[Iterable[Dict[str, str]]] = None) -> Tuple[RetrievalStrategy, ...]:
    """Build the ordered strategy table from configuration entries.

    Entries with a bad template or a duplicate name are skipped. If nothing
    valid remains the built-in defaults are returned.
    """
    if entries is None:
        entries = config.STRATEGY_ENTRIES
    strategies: List[RetrievalStrategy] = []
    seen = set()
    for entry in entries:
        name = entry.get("name", "")
        template = entry.get("template", "")
        if name in seen:
            logger.warning(f"Duplicate strategy name '{name}'; keeping the first one")
            continue
        if not _valid_template(template):
            logger.warning(f"Strategy '{name}' has an unusable template '{template}'; skipping")
            continue
        seen.add(name)
        strategies.append(RetrievalStrategy(name, template))
    if not strategies:
        return DEFAULT_STRATEGIES
    return tuple(strategies)


def select_strategies(strategies: Sequence[RetrievalStrategy], names: Optional[Iterable[str]]) -> Tuple[RetrievalStrategy, ...]:
    """Keep only the named strategies, preserving table order."""
    if not names:
        return tuple(strategies)
    wanted = set(names)
    unknown = wanted - {s.name for s in strategies}
    if unknown:
        raise ValueError(f"Unknown strategies: {', '.join(sorted(unknown))}")
    return tuple(s for s in strategies if s.name in wanted)
