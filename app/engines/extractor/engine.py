"""
Structural Extractor - builds the Document Model from server-delivered HTML.

The lxml tree builder is tolerant: malformed markup never raises, missing
elements simply produce absent/empty values.
"""

from __future__ import annotations

import codecs
from urllib.parse import urljoin

import structlog
from bs4 import BeautifulSoup, Tag

from app.engines.base import (
    DocumentModel,
    Heading,
    ImageRef,
    LinkRef,
    MetaInfo,
    SemanticHtml,
)

logger = structlog.get_logger(__name__)

HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
NON_CONTENT_TAGS = ["script", "style", "noscript", "template"]


def collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def normalize_encoding(encoding: str | None) -> str | None:
    """Canonical codec name lxml accepts ('latin-1' -> 'iso8859-1'); None when unknown."""
    if not encoding:
        return None
    try:
        return codecs.lookup(encoding).name
    except LookupError:
        return None


def resolve_url(value: str, base_url: str) -> str | None:
    try:
        return urljoin(base_url, value)
    except ValueError:
        return None


def _attr(tag: Tag, name: str) -> str | None:
    value = tag.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    if value is None:
        return None
    return value.strip() or None


class StructuralExtractor:
    """Best-effort query layer over a permissive parse tree."""

    CONTENT_MAX_CHARS = 3000
    PREVIEW_CONTENT_MAX_CHARS = 2000
    PREVIEW_MAX_IMAGES = 20
    PREVIEW_MAX_LINKS = 30

    def extract(self, html: str | bytes, base_url: str, encoding: str | None = None) -> DocumentModel:
        if isinstance(html, bytes):
            soup = BeautifulSoup(html, "lxml", from_encoding=normalize_encoding(encoding))
        else:
            soup = BeautifulSoup(html, "lxml")

        meta_tags = self._collect_meta(soup)
        meta = MetaInfo(
            description=meta_tags.get("description"),
            og_title=meta_tags.get("og:title"),
            og_description=meta_tags.get("og:description"),
            og_image=self._resolve_optional(meta_tags.get("og:image"), base_url),
            og_type=meta_tags.get("og:type"),
            canonical=self._canonical(soup, base_url),
            twitter_card=meta_tags.get("twitter:card"),
            robots=meta_tags.get("robots"),
            googlebot=meta_tags.get("googlebot"),
        )

        title_tag = soup.find("title")
        title = collapse_whitespace(title_tag.get_text()) if title_tag else ""
        title = title or meta.og_title

        html_tag = soup.find("html")
        lang = _attr(html_tag, "lang") if isinstance(html_tag, Tag) else None

        headings = self._headings(soup)
        images, image_count, missing_alt = self._images(soup, base_url)
        links = self._links(soup, base_url)
        semantic_html = SemanticHtml(
            has_nav=soup.find("nav") is not None,
            has_header=soup.find("header") is not None,
            has_main=soup.find("main") is not None,
            has_article=soup.find("article") is not None,
            has_section=soup.find("section") is not None,
            has_aside=soup.find("aside") is not None,
            has_footer=soup.find("footer") is not None,
        )
        structured_data = soup.find("script", attrs={"type": self._is_json_ld}) is not None

        content = self._main_content(soup)

        return DocumentModel(
            url=base_url,
            title=title or None,
            meta=meta,
            headings=headings,
            main_content=content[: self.PREVIEW_CONTENT_MAX_CHARS],
            content_length=len(content),
            images=images[: self.PREVIEW_MAX_IMAGES],
            image_count=image_count,
            images_missing_alt=missing_alt,
            links=links[: self.PREVIEW_MAX_LINKS],
            link_count=len(links),
            structured_data=structured_data,
            semantic_html=semantic_html,
            lang=lang,
        )

    # ── Metadata ──────────────────────────────────

    @staticmethod
    def _collect_meta(soup: BeautifulSoup) -> dict[str, str]:
        """First non-empty content per meta name/property, keys lower-cased."""
        found: dict[str, str] = {}
        for tag in soup.find_all("meta"):
            key = _attr(tag, "name") or _attr(tag, "property")
            content = _attr(tag, "content")
            if key and content:
                found.setdefault(key.lower(), content)
        return found

    @staticmethod
    def _resolve_optional(value: str | None, base_url: str) -> str | None:
        if not value:
            return None
        return resolve_url(value, base_url)

    def _canonical(self, soup: BeautifulSoup, base_url: str) -> str | None:
        for tag in soup.find_all("link", href=True):
            rel = tag.get("rel") or []
            if isinstance(rel, str):
                rel = rel.split()
            if "canonical" in (r.lower() for r in rel):
                return self._resolve_optional(_attr(tag, "href"), base_url)
        return None

    @staticmethod
    def _is_json_ld(value: str | None) -> bool:
        return bool(value) and value.strip().lower() == "application/ld+json"

    # ── Structure ─────────────────────────────────

    @staticmethod
    def _headings(soup: BeautifulSoup) -> list[Heading]:
        headings: list[Heading] = []
        for el in soup.find_all(HEADING_TAGS):
            text = collapse_whitespace(el.get_text(" "))
            if text:
                headings.append(Heading(level=int(el.name[1]), text=text))
        return headings

    @staticmethod
    def _images(soup: BeautifulSoup, base_url: str) -> tuple[list[ImageRef], int, int]:
        images: list[ImageRef] = []
        missing_alt = 0
        for img in soup.find_all("img"):
            src = _attr(img, "src")
            if not src:
                continue
            absolute = resolve_url(src, base_url)
            if absolute is None:
                continue
            alt = _attr(img, "alt")
            images.append(ImageRef(src=absolute, alt=alt))
            if alt is None:
                missing_alt += 1
        return images, len(images), missing_alt

    @staticmethod
    def _links(soup: BeautifulSoup, base_url: str) -> list[LinkRef]:
        links: list[LinkRef] = []
        for a in soup.find_all("a", href=True):
            href = _attr(a, "href")
            if not href:
                continue
            if not (href.lower().startswith(("http://", "https://")) or href.startswith("/")):
                continue
            absolute = resolve_url(href, base_url)
            if absolute is None:
                continue
            text = collapse_whitespace(a.get_text(" "))
            links.append(LinkRef(href=absolute, text=text or absolute))
        return links

    # ── Content ───────────────────────────────────

    def _main_content(self, soup: BeautifulSoup) -> str:
        """main, else first article, else body; scripts and styles excluded."""
        for tag in soup.find_all(NON_CONTENT_TAGS):
            tag.decompose()

        for candidate in (soup.find("main"), soup.find("article"), soup.find("body"), soup):
            if candidate is None:
                continue
            text = collapse_whitespace(candidate.get_text(" "))
            if text:
                return text[: self.CONTENT_MAX_CHARS]
        return ""
