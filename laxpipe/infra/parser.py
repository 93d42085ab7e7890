"""
parser.py – Stateless HTML helpers on top of *BeautifulSoup*: body text,
            metadata, links, images and ad-hoc CSS selector queries.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Union
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup, Tag
from bs4.builder import ParserRejectedMarkup
from soupsieve import SelectorSyntaxError

from ..errors import ParserError, SelectorError
from ..models import (
    ExtractedImage,
    ExtractedLink,
    ExtractedMeta,
    ParsedDocument,
    SelectorResult,
)

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

# (field, attribute, value) lookups for <meta> tags
_META_TAGS = (
    ("description", "name", "description"),
    ("keywords", "name", "keywords"),
    ("author", "name", "author"),
    ("og_title", "property", "og:title"),
    ("og_description", "property", "og:description"),
    ("og_image", "property", "og:image"),
    ("og_url", "property", "og:url"),
)

_INVISIBLE_TAGS = ("script", "style", "noscript")
_HEAD_ONLY_TAGS = ("head", "title", "meta", "link", "base")


def collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def parse_int(value: Optional[Union[str, List[str]]]) -> Optional[int]:
    """Leading integer of an attribute value ("100px" -> 100), else None."""
    if not isinstance(value, str):
        return None
    match = _LEADING_INT.match(value)
    return int(match.group(1)) if match else None


def resolve_url(url: str, base_url: Optional[str]) -> str:
    """Resolve ``url`` against ``base_url``; unresolvable input is returned unchanged."""
    if not base_url:
        return url
    base = urlsplit(base_url)
    if not base.scheme or not base.netloc:
        return url
    try:
        return urljoin(base_url, url)
    except ValueError:
        return url


class HtmlParser:
    """Every method loads its own document, so instances hold no state."""

    def __init__(self, features: str = "html.parser") -> None:
        self._features = features

    def load(self, html: Union[str, bytes]) -> BeautifulSoup:
        if not isinstance(html, (str, bytes)):
            raise ParserError(f"Cannot parse HTML from {type(html).__name__}")
        try:
            return BeautifulSoup(html, self._features)
        except (ParserRejectedMarkup, AssertionError, TypeError, ValueError) as e:
            raise ParserError(f"Failed to load HTML: {e}") from e

    # ---------------------------------------------- #
    # Document-level
    def parse(self, html: Union[str, bytes], base_url: Optional[str] = None) -> ParsedDocument:
        soup = self.load(html)
        meta = self._meta(soup)
        links = self._links(soup, base_url)
        images = self._images(soup, base_url)
        return ParsedDocument(text=self._body_text(soup), meta=meta, links=links, images=images)

    def extract_text(self, html: Union[str, bytes]) -> str:
        soup = self.load(html)
        for tag in soup.find_all(_INVISIBLE_TAGS):
            tag.decompose()
        return self._body_text(soup)

    def extract_links(self, html: Union[str, bytes], base_url: Optional[str] = None) -> List[ExtractedLink]:
        return self._links(self.load(html), base_url)

    def query_selector(
        self, html: Union[str, bytes], selector: str, attribute: Optional[str] = None
    ) -> SelectorResult:
        soup = self.load(html)
        try:
            elements = soup.select(selector)
        except (SelectorSyntaxError, ValueError) as e:
            raise SelectorError(selector, e) from e

        matches: List[str] = []
        for element in elements:
            if attribute is None:
                matches.append(element.get_text().strip())
                continue
            value = element.get(attribute)
            if isinstance(value, list):
                value = " ".join(value)
            if value:
                matches.append(value)
        return SelectorResult(matches=matches, count=len(matches))

    # ---------------------------------------------- #
    # Internal helpers
    @staticmethod
    def _body_text(soup: BeautifulSoup) -> str:
        body = soup.body
        if body is None:
            # Fragment without <body>: document metadata is not visible text.
            for tag in soup.find_all(_HEAD_ONLY_TAGS):
                tag.extract()
            return collapse_whitespace(soup.get_text())
        return collapse_whitespace(body.get_text())

    @staticmethod
    def _meta(soup: BeautifulSoup) -> ExtractedMeta:
        title = soup.title.get_text().strip() if soup.title else ""
        fields = {"title": title or None}
        for field, attr, value in _META_TAGS:
            tag = soup.find("meta", attrs={attr: value})
            fields[field] = tag.get("content") if isinstance(tag, Tag) else None
        return ExtractedMeta(**fields)

    @staticmethod
    def _links(soup: BeautifulSoup, base_url: Optional[str]) -> List[ExtractedLink]:
        links: List[ExtractedLink] = []
        for anchor in soup.find_all("a", href=True):
            href = anchor["href"]
            if not href:
                continue
            links.append(
                ExtractedLink(
                    href=resolve_url(href, base_url),
                    text=anchor.get_text().strip(),
                    title=anchor.get("title"),
                )
            )
        return links

    @staticmethod
    def _images(soup: BeautifulSoup, base_url: Optional[str]) -> List[ExtractedImage]:
        images: List[ExtractedImage] = []
        for img in soup.find_all("img", src=True):
            src = img["src"]
            if not src:
                continue
            images.append(
                ExtractedImage(
                    src=resolve_url(src, base_url),
                    alt=img.get("alt"),
                    width=parse_int(img.get("width")),
                    height=parse_int(img.get("height")),
                )
            )
        return images
