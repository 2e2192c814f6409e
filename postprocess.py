#!/usr/bin/env python3
"""
Final clean-up of an extracted fragment before it is handed to the caller.
"""

from typing import Optional

from bs4 import BeautifulSoup

from config import config, get_logger
from utils import collapse_whitespace, strip_unsafe_markup

logger = get_logger("postprocess")

IMAGE_TAGS = ("img", "picture", "source")


def _remove_first_h1(soup: BeautifulSoup, title: Optional[str] = None) -> bool:
    heading = soup.find("h1")
    if heading is None:
        return False
    if title and collapse_whitespace(heading.get_text(" ")).lower() != collapse_whitespace(title).lower():
        logger.debug("Removed leading <h1> does not match the display title %r", title)
    heading.decompose()
    return True


def _strip_images(soup: BeautifulSoup) -> int:
    removed = 0
    for tag in soup.find_all(list(IMAGE_TAGS)):
        if not tag.decomposed:
            tag.decompose()
            removed += 1
    return removed


def remove_first_h1(html: str, title: Optional[str] = None, parser: str = "html.parser") -> str:
    """Remove the first <h1> in document order; later ones are content."""
    soup = BeautifulSoup(html or "", parser)
    _remove_first_h1(soup, title)
    return soup.decode()


def strip_images(html: str, parser: str = "html.parser") -> str:
    """Remove every img/picture/source element."""
    soup = BeautifulSoup(html or "", parser)
    _strip_images(soup)
    return soup.decode()


def finalize_content(
    html: str,
    title: Optional[str] = None,
    strip_images: Optional[bool] = None,
    parser: Optional[str] = None,
) -> str:
    """Produce the final fragment: drop the title-echo <h1>, optionally strip
    images, and restrict the markup to the article allowlist.

    Args:
        html: Extracted or rendered fragment
        title: Display title shown separately by the caller
        strip_images: Override for config.STRIP_IMAGES
        parser: Override for config.HTML_PARSER
    """
    if not html:
        return ""
    if strip_images is None:
        strip_images = config.STRIP_IMAGES
    soup = BeautifulSoup(html, parser or config.HTML_PARSER)
    _remove_first_h1(soup, title)
    if strip_images:
        removed = _strip_images(soup)
        if removed:
            logger.debug(f"Stripped {removed} image elements")
    strip_unsafe_markup(soup)
    return soup.decode().strip()
