"""
Scoring Engine - deterministic AI-readability heuristic.

Scoring Model:
- Start at MAX_SCORE (10.0)
- Every rule runs unconditionally, in a fixed order, and appends at most
  one Improvement
- Each rule adjusts the running score by a fixed or input-scaled delta
- Final score is clamped to [0, MAX_SCORE] and rounded half-up to one decimal

Identical inputs always produce the same improvements in the same order and
the same score.
"""

from __future__ import annotations

import math
from collections.abc import Callable

import structlog

from app.engines.base import (
    MAX_SCORE,
    BotAccessModel,
    DocumentModel,
    Improvement,
    ImprovementCategory,
    ScoreReport,
    Severity,
)

logger = structlog.get_logger(__name__)

RuleOutcome = tuple[float, Improvement | None]


def clamp_score(raw: float, max_score: float = MAX_SCORE) -> float:
    """Clamp to [0, max_score] and round half-up to one decimal."""
    rounded = math.floor(raw * 10 + 0.5) / 10
    return max(0.0, min(max_score, rounded))


class ScoringEngine:

    # Thresholds
    TITLE_MIN_LENGTH = 10
    META_DESC_MIN_LENGTH = 50
    CONTENT_MIN_LENGTH = 100
    STRUCTURED_DATA_CONTENT_LENGTH = 500
    SEMANTIC_MIN_TAGS = 3

    def __init__(self):
        self.rules: list[Callable[[DocumentModel, BotAccessModel], RuleOutcome]] = [
            self._title,
            self._meta_description,
            self._missing_h1,
            self._main_content,
            self._image_alt,
            self._lang,
            self._robots_txt,
            self._robots_ai_blocked,
            self._sitemap,
            self._llms_txt,
            self._meta_noindex,
            self._meta_ai_restrictions,
            self._semantic_html,
            self._multiple_h1,
            self._heading_hierarchy,
            self._open_graph,
            self._twitter_card,
            self._structured_data,
        ]

    def score(self, document: DocumentModel, bot_access: BotAccessModel) -> ScoreReport:
        running = MAX_SCORE
        improvements: list[Improvement] = []

        for rule in self.rules:
            delta, improvement = rule(document, bot_access)
            running += delta
            if improvement is not None:
                improvements.append(improvement)

        final = clamp_score(running)
        logger.debug(
            "Document scored",
            url=document.url,
            raw_score=round(running, 2),
            score=final,
            improvements=[i.id for i in improvements],
        )
        return ScoreReport(score=final, max_score=MAX_SCORE, improvements=improvements)

    # ── Metadata ──────────────────────────────────

    def _title(self, doc: DocumentModel, _: BotAccessModel) -> RuleOutcome:
        if doc.title and len(doc.title) >= self.TITLE_MIN_LENGTH:
            return 0.0, None
        return -1.5, Improvement(
            id="title",
            title="Page title missing or too short",
            description="An explicit title helps AI agents understand what the page is about.",
            severity=Severity.CRITICAL,
            category=ImprovementCategory.METADATA,
            suggestion="Add a unique, descriptive <title> (50-60 characters).",
        )

    def _meta_description(self, doc: DocumentModel, _: BotAccessModel) -> RuleOutcome:
        description = doc.meta.description
        if description and len(description) >= self.META_DESC_MIN_LENGTH:
            return 0.0, None
        return -1.0, Improvement(
            id="meta-description",
            title="Meta description missing or too short",
            description="AI agents often use the meta description as the page summary.",
            severity=Severity.WARNING if description else Severity.CRITICAL,
            category=ImprovementCategory.METADATA,
            suggestion='Add <meta name="description" content="..."> (150-160 characters).',
        )

    def _lang(self, doc: DocumentModel, _: BotAccessModel) -> RuleOutcome:
        if doc.lang:
            return 0.0, None
        return -0.3, Improvement(
            id="lang",
            title="Document language not declared",
            description="The lang attribute on <html> tells agents which language to interpret the content in.",
            severity=Severity.INFO,
            category=ImprovementCategory.METADATA,
            suggestion='Add <html lang="en"> (or the appropriate language code).',
        )

    # ── Structure ─────────────────────────────────

    def _missing_h1(self, doc: DocumentModel, _: BotAccessModel) -> RuleOutcome:
        if any(h.level == 1 for h in doc.headings):
            return 0.0, None
        return -1.0, Improvement(
            id="h1",
            title="No H1 heading",
            description="A single H1 per page makes the document structure clear.",
            severity=Severity.CRITICAL,
            category=ImprovementCategory.STRUCTURE,
            suggestion="Use one <h1> for the main title of the page.",
        )

    def _multiple_h1(self, doc: DocumentModel, _: BotAccessModel) -> RuleOutcome:
        h1_count = sum(1 for h in doc.headings if h.level == 1)
        if h1_count <= 1:
            return 0.0, None
        return -0.3, Improvement(
            id="multiple-h1",
            title=f"Multiple H1 headings ({h1_count})",
            description="Several H1 headings make it ambiguous which one is the main topic.",
            severity=Severity.WARNING,
            category=ImprovementCategory.STRUCTURE,
            suggestion="Keep a single <h1> and use <h2>-<h6> for sub-sections.",
        )

    def _heading_hierarchy(self, doc: DocumentModel, _: BotAccessModel) -> RuleOutcome:
        levels = [h.level for h in doc.headings]
        skips = [(a, b) for a, b in zip(levels, levels[1:]) if b - a > 1]
        if not skips:
            return 0.0, None
        first_from, first_to = skips[0]
        return 0.0, Improvement(
            id="heading-hierarchy",
            title="Heading levels are skipped",
            description=(
                f"The heading outline jumps from H{first_from} to H{first_to}; "
                "agents rebuild the outline from heading levels."
            ),
            severity=Severity.INFO,
            category=ImprovementCategory.STRUCTURE,
            suggestion="Nest headings one level at a time (H1 > H2 > H3).",
        )

    def _semantic_html(self, doc: DocumentModel, _: BotAccessModel) -> RuleOutcome:
        flags = doc.semantic_html
        present = sum([
            flags.has_nav,
            flags.has_header,
            flags.has_footer,
            flags.has_main,
            flags.has_article,
            flags.has_section,
        ])
        if present >= self.SEMANTIC_MIN_TAGS:
            return 0.0, None
        return -0.5, Improvement(
            id="semantic-html",
            title="Little semantic HTML",
            description=(
                f"Only {present} of nav, header, footer, main, article and section are used; "
                "semantic containers tell agents which part of the page is the content."
            ),
            severity=Severity.WARNING,
            category=ImprovementCategory.STRUCTURE,
            suggestion="Wrap page regions in <header>, <nav>, <main>, <article>/<section> and <footer>.",
        )

    def _structured_data(self, doc: DocumentModel, _: BotAccessModel) -> RuleOutcome:
        if doc.structured_data or doc.content_length <= self.STRUCTURED_DATA_CONTENT_LENGTH:
            return 0.0, None
        return 0.0, Improvement(
            id="structured-data",
            title="No structured data (JSON-LD)",
            description="JSON-LD gives agents an unambiguous, typed description of the page.",
            severity=Severity.INFO,
            category=ImprovementCategory.STRUCTURE,
            suggestion="Consider adding Schema.org JSON-LD for articles, products, organizations, etc.",
        )

    # ── Content ───────────────────────────────────

    def _main_content(self, doc: DocumentModel, _: BotAccessModel) -> RuleOutcome:
        if doc.content_length >= self.CONTENT_MIN_LENGTH:
            return 0.0, None
        return -0.5, Improvement(
            id="content",
            title="Little text content detected",
            description="Agents rely on server-delivered text to understand the page.",
            severity=Severity.WARNING,
            category=ImprovementCategory.CONTENT,
            suggestion="Put the main content in <main> or <article>, rendered on the server.",
        )

    def _image_alt(self, doc: DocumentModel, _: BotAccessModel) -> RuleOutcome:
        missing = doc.images_missing_alt
        if missing <= 0:
            return 0.0, None
        return -min(0.5, missing * 0.2), Improvement(
            id="alt",
            title=f"Images without alt text ({missing})",
            description="The alt attribute describes an image to agents and assistive technology.",
            severity=Severity.WARNING if missing > 3 else Severity.INFO,
            category=ImprovementCategory.IMAGES,
            suggestion="Add a descriptive alt attribute to every meaningful <img>.",
        )

    # ── Bot access ────────────────────────────────

    def _robots_txt(self, _: DocumentModel, bot: BotAccessModel) -> RuleOutcome:
        if bot.robots_txt.exists:
            return 0.0, None
        return -0.3, Improvement(
            id="robots-txt",
            title="No robots.txt",
            description="robots.txt is the first file crawlers read to learn what they may access.",
            severity=Severity.WARNING,
            category=ImprovementCategory.BOT_ACCESS,
            suggestion="Publish /robots.txt with your crawler policy and a Sitemap: line.",
        )

    def _robots_ai_blocked(self, _: DocumentModel, bot: BotAccessModel) -> RuleOutcome:
        blocked = bot.robots_txt.blocks_ai
        if not blocked:
            return 0.0, None
        return -0.5, Improvement(
            id="robots-ai-blocked",
            title="robots.txt blocks AI agents",
            description=f"These AI agents are disallowed: {', '.join(blocked)}.",
            severity=Severity.WARNING,
            category=ImprovementCategory.BOT_ACCESS,
            suggestion="If you want AI assistants to read and cite this site, allow these user agents.",
        )

    def _sitemap(self, _: DocumentModel, bot: BotAccessModel) -> RuleOutcome:
        if bot.sitemap.exists:
            return 0.0, None
        return -0.3, Improvement(
            id="sitemap",
            title="No sitemap found",
            description="A sitemap lets crawlers discover every page without following links.",
            severity=Severity.WARNING,
            category=ImprovementCategory.BOT_ACCESS,
            suggestion="Publish /sitemap.xml and reference it from robots.txt.",
        )

    def _llms_txt(self, _: DocumentModel, bot: BotAccessModel) -> RuleOutcome:
        if bot.llms_txt.exists:
            return 0.2, None
        return 0.0, Improvement(
            id="llms-txt",
            title="No llms.txt",
            description="llms.txt is an emerging convention that gives language models a curated overview of a site.",
            severity=Severity.INFO,
            category=ImprovementCategory.BOT_ACCESS,
            suggestion="Add /llms.txt with a short site summary and links to key pages.",
        )

    def _meta_noindex(self, _: DocumentModel, bot: BotAccessModel) -> RuleOutcome:
        if not bot.meta_robots.noindex:
            return 0.0, None
        return -1.0, Improvement(
            id="meta-noindex",
            title="Page is marked noindex",
            description="A noindex robots directive asks crawlers, AI agents included, to drop this page.",
            severity=Severity.CRITICAL,
            category=ImprovementCategory.BOT_ACCESS,
            suggestion='Remove "noindex" from the robots meta tag if the page should be discoverable.',
        )

    def _meta_ai_restrictions(self, _: DocumentModel, bot: BotAccessModel) -> RuleOutcome:
        directives = [
            name
            for name, present in (("nosnippet", bot.meta_robots.nosnippet), ("noai", bot.meta_robots.noai))
            if present
        ]
        if not directives:
            return 0.0, None
        return 0.0, Improvement(
            id="meta-ai-restrictions",
            title="Robots meta restricts AI use",
            description=f"The page declares {', '.join(directives)}; agents may not quote or reuse its content.",
            severity=Severity.INFO,
            category=ImprovementCategory.BOT_ACCESS,
            suggestion="Keep these directives only if you intend to limit AI reuse of this page.",
        )

    # ── Social ────────────────────────────────────

    def _open_graph(self, doc: DocumentModel, _: BotAccessModel) -> RuleOutcome:
        missing = [
            name
            for name, present in (
                ("og:image", bool(doc.meta.og_image)),
                ("og:type", bool(doc.meta.og_type)),
                ("og:title", bool(doc.meta.og_title or doc.title)),
            )
            if not present
        ]
        if not missing:
            return 0.0, None
        return -min(0.5, len(missing) * 0.15), Improvement(
            id="open-graph",
            title="Incomplete Open Graph metadata",
            description=f"Missing: {', '.join(missing)}. Agents and link previews read Open Graph tags.",
            severity=Severity.WARNING if len(missing) > 1 else Severity.INFO,
            category=ImprovementCategory.SOCIAL,
            suggestion='Add <meta property="og:title">, og:type and og:image.',
        )

    def _twitter_card(self, doc: DocumentModel, _: BotAccessModel) -> RuleOutcome:
        if doc.meta.twitter_card or not doc.meta.og_image:
            return 0.0, None
        return 0.0, Improvement(
            id="twitter-card",
            title="No Twitter card",
            description="The page has an Open Graph image but no twitter:card declaration.",
            severity=Severity.INFO,
            category=ImprovementCategory.SOCIAL,
            suggestion='Add <meta name="twitter:card" content="summary_large_image">.',
        )
