"""
Bot-Access Analyzer - how a site states its policy towards AI agents.

Sources:
- robots.txt (per-agent allow/block for known AI crawlers, sitemap reference)
- conventional sitemap locations
- llms.txt
- meta robots / googlebot directives from the Document Model

Every probe is independently time-boxed and failure-tolerant. A failed probe
yields "absent", which is itself a finding for the scoring engine.
"""

from __future__ import annotations

import asyncio
import re

import httpx
import structlog

from app.core.config import get_settings
from app.core.http import DisallowedTargetError, build_client, read_capped
from app.engines.base import (
    BotAccessModel,
    DocumentModel,
    LlmsTxtAnalysis,
    MetaRobots,
    RobotsAnalysis,
    SitemapAnalysis,
)

logger = structlog.get_logger(__name__)

KNOWN_AI_AGENTS = (
    "GPTBot",
    "ChatGPT-User",
    "OAI-SearchBot",
    "ClaudeBot",
    "Claude-Web",
    "anthropic-ai",
    "Google-Extended",
    "PerplexityBot",
    "Perplexity-User",
    "CCBot",
    "Bytespider",
    "Applebot-Extended",
    "cohere-ai",
    "Meta-ExternalAgent",
    "FacebookBot",
    "Amazonbot",
    "Diffbot",
    "YouBot",
)
_AGENT_LOOKUP = {name.lower(): name for name in KNOWN_AI_AGENTS}

SITEMAP_PATHS = ("/sitemap.xml", "/sitemap_index.xml", "/sitemap/sitemap.xml")
SITEMAP_MARKERS = ("<urlset", "<sitemapindex")

LLMS_TXT_MIN_CHARS = 10
LLMS_TXT_MAX_CHARS = 2000

_DIRECTIVE_SPLIT_RE = re.compile(r"[\s,]+")


# ─────────────────────────────────────────────
# Pure parsers
# ─────────────────────────────────────────────

def parse_robots_txt(text: str) -> RobotsAnalysis:
    """
    Interpret robots.txt for the known AI agents.

    Consecutive user-agent lines form one group. A non-empty disallow in a
    group naming a known agent blocks that agent; a disallow under "*" is not
    attributed to the named agents. An allow under a known agent records it
    as explicitly allowed. Any sitemap line sets the reference flag.
    """
    blocks: list[str] = []
    allows: list[str] = []
    has_sitemap = False

    group: list[str] = []
    in_rules = False

    # A UTF-8 byte-order mark would otherwise hide the first field name
    for raw_line in text.lstrip("\ufeff").splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if not line or ":" not in line:
            continue
        field, _, value = line.partition(":")
        field = field.strip().lower()
        value = value.strip()

        if field == "user-agent":
            if in_rules:
                group = []
                in_rules = False
            group.append(value.lower())
        elif field == "disallow":
            in_rules = True
            if not value:
                continue
            for agent in group:
                name = _AGENT_LOOKUP.get(agent)
                if name and name not in blocks:
                    blocks.append(name)
        elif field == "allow":
            in_rules = True
            for agent in group:
                name = _AGENT_LOOKUP.get(agent)
                if name and name not in allows:
                    allows.append(name)
        elif field == "sitemap":
            has_sitemap = True
        else:
            in_rules = in_rules or bool(group)

    return RobotsAnalysis(
        exists=True,
        blocks_ai=blocks,
        allows_ai=allows,
        has_sitemap_reference=has_sitemap,
    )


def meta_robots_from_document(document: DocumentModel) -> MetaRobots:
    directives = " ".join(filter(None, [document.meta.robots, document.meta.googlebot])).lower()
    tokens = set(_DIRECTIVE_SPLIT_RE.split(directives)) - {""}
    return MetaRobots(
        noindex="noindex" in tokens or "none" in tokens,
        nofollow="nofollow" in tokens or "none" in tokens,
        nosnippet="nosnippet" in tokens,
        noai="noai" in tokens or "noimageai" in tokens,
    )


def _probe_codec(charset: str | None) -> str:
    """Declared charset, with UTF-8 (or no charset) read as utf-8-sig so a BOM is dropped."""
    if not charset or charset.lower().replace("_", "-") in ("utf-8", "utf8"):
        return "utf-8-sig"
    return charset


def looks_like_sitemap(body: str) -> bool:
    return any(marker in body for marker in SITEMAP_MARKERS)


# ─────────────────────────────────────────────
# Analyzer
# ─────────────────────────────────────────────

class BotAccessAnalyzer:

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = get_settings()
        self.transport = transport

    async def analyze(self, origin: str, document: DocumentModel) -> BotAccessModel:
        origin = origin.rstrip("/")
        async with build_client(
            user_agent=self.settings.PROBE_USER_AGENT,
            timeout=self.settings.PROBE_TIMEOUT_SECONDS,
            transport=self.transport,
            accept="text/plain,application/xml,text/xml,*/*;q=0.5",
        ) as client:
            results = await asyncio.gather(
                self._robots(client, origin),
                self._sitemap(client, origin),
                self._llms_txt(client, origin),
                return_exceptions=True,
            )

        robots, sitemap, llms_txt = results
        if isinstance(robots, BaseException):
            logger.warning("robots.txt probe crashed", origin=origin, error_type=type(robots).__name__)
            robots = RobotsAnalysis()
        if isinstance(sitemap, BaseException):
            logger.warning("Sitemap probe crashed", origin=origin, error_type=type(sitemap).__name__)
            sitemap = SitemapAnalysis()
        if isinstance(llms_txt, BaseException):
            logger.warning("llms.txt probe crashed", origin=origin, error_type=type(llms_txt).__name__)
            llms_txt = LlmsTxtAnalysis()

        model = BotAccessModel(
            robots_txt=robots,
            sitemap=sitemap,
            llms_txt=llms_txt,
            meta_robots=meta_robots_from_document(document),
        )
        logger.info(
            "Bot access analyzed",
            origin=origin,
            robots_txt=robots.exists,
            blocked_agents=len(robots.blocks_ai),
            sitemap=sitemap.exists,
            llms_txt=llms_txt.exists,
        )
        return model

    async def _get_text(self, client: httpx.AsyncClient, url: str) -> tuple[str, str] | None:
        """GET a small text resource. Returns (body, content_type), or None on any failure."""
        try:
            return await asyncio.wait_for(
                self._read(client, url),
                timeout=self.settings.PROBE_TIMEOUT_SECONDS,
            )
        except (asyncio.TimeoutError, httpx.HTTPError, DisallowedTargetError) as exc:
            logger.debug("Probe failed", url=url, error_type=type(exc).__name__)
            return None

    async def _read(self, client: httpx.AsyncClient, url: str) -> tuple[str, str] | None:
        async with client.stream("GET", url) as response:
            if not response.is_success:
                return None
            body = await read_capped(response, self.settings.PROBE_MAX_BYTES, truncate=True)
            try:
                text = body.decode(_probe_codec(response.charset_encoding), errors="replace")
            except LookupError:
                text = body.decode("utf-8-sig", errors="replace")
            return text, response.headers.get("content-type", "")

    async def _robots(self, client: httpx.AsyncClient, origin: str) -> RobotsAnalysis:
        fetched = await self._get_text(client, f"{origin}/robots.txt")
        if fetched is None:
            return RobotsAnalysis()
        return parse_robots_txt(fetched[0])

    async def _sitemap(self, client: httpx.AsyncClient, origin: str) -> SitemapAnalysis:
        for path in SITEMAP_PATHS:
            url = f"{origin}{path}"
            fetched = await self._get_text(client, url)
            if fetched is not None and looks_like_sitemap(fetched[0]):
                return SitemapAnalysis(exists=True, url=url)
        return SitemapAnalysis()

    async def _llms_txt(self, client: httpx.AsyncClient, origin: str) -> LlmsTxtAnalysis:
        fetched = await self._get_text(client, f"{origin}/llms.txt")
        if fetched is None:
            return LlmsTxtAnalysis()

        body, content_type = fetched
        # SPA fallbacks answer every path with the index page
        if content_type.split(";", 1)[0].strip().lower() == "text/html":
            return LlmsTxtAnalysis()

        content = body.strip()
        if len(content) <= LLMS_TXT_MIN_CHARS:
            return LlmsTxtAnalysis()
        return LlmsTxtAnalysis(exists=True, content=content[:LLMS_TXT_MAX_CHARS])
