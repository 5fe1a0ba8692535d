"""
Type contracts shared by the analysis engines.

Design principles:
- Engines are stateless: all state flows through these models
- Engines are independent: no engine imports another
- Each stage owns the model it builds; downstream stages only read it
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

MAX_SCORE = 10.0


# ─────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────

class Severity(str, Enum):
    CRITICAL = "critical"   # Blocks agents from understanding the page
    WARNING = "warning"     # Degrades extraction quality
    INFO = "info"           # Advisory only


class ImprovementCategory(str, Enum):
    METADATA = "metadata"
    STRUCTURE = "structure"
    CONTENT = "content"
    IMAGES = "images"
    BOT_ACCESS = "bot_access"
    SOCIAL = "social"


# ─────────────────────────────────────────────
# Fetched document
# ─────────────────────────────────────────────

class FetchedDocument(BaseModel):
    """Raw HTML as delivered by the server, after redirects."""
    content: bytes
    final_url: str
    content_type: str
    encoding: str | None = None
    status_code: int = 200
    byte_length: int = 0
    elapsed_ms: float = 0.0


# ─────────────────────────────────────────────
# Document model
# ─────────────────────────────────────────────

class Heading(BaseModel):
    level: int = Field(ge=1, le=6)
    text: str


class ImageRef(BaseModel):
    src: str
    alt: str | None = None


class LinkRef(BaseModel):
    href: str
    text: str


class MetaInfo(BaseModel):
    description: str | None = None
    og_title: str | None = None
    og_description: str | None = None
    og_image: str | None = None
    og_type: str | None = None
    canonical: str | None = None
    twitter_card: str | None = None
    robots: str | None = None
    googlebot: str | None = None


class SemanticHtml(BaseModel):
    has_nav: bool = False
    has_header: bool = False
    has_main: bool = False
    has_article: bool = False
    has_section: bool = False
    has_aside: bool = False
    has_footer: bool = False


class DocumentModel(BaseModel):
    """Read-only structural view of a fetched page."""
    model_config = ConfigDict(frozen=True)

    url: str
    title: str | None = None
    meta: MetaInfo = Field(default_factory=MetaInfo)
    headings: list[Heading] = Field(default_factory=list)
    main_content: str = ""
    content_length: int = 0
    images: list[ImageRef] = Field(default_factory=list)
    image_count: int = 0
    images_missing_alt: int = 0
    links: list[LinkRef] = Field(default_factory=list)
    link_count: int = 0
    structured_data: bool = False
    semantic_html: SemanticHtml = Field(default_factory=SemanticHtml)
    lang: str | None = None


# ─────────────────────────────────────────────
# Bot-access model
# ─────────────────────────────────────────────

class RobotsAnalysis(BaseModel):
    exists: bool = False
    blocks_ai: list[str] = Field(default_factory=list)
    allows_ai: list[str] = Field(default_factory=list)
    has_sitemap_reference: bool = False


class SitemapAnalysis(BaseModel):
    exists: bool = False
    url: str | None = None


class LlmsTxtAnalysis(BaseModel):
    exists: bool = False
    content: str | None = None


class MetaRobots(BaseModel):
    noindex: bool = False
    nofollow: bool = False
    nosnippet: bool = False
    noai: bool = False


class BotAccessModel(BaseModel):
    """Crawler/agent access policy. Every field defaults to absent."""
    robots_txt: RobotsAnalysis = Field(default_factory=RobotsAnalysis)
    sitemap: SitemapAnalysis = Field(default_factory=SitemapAnalysis)
    llms_txt: LlmsTxtAnalysis = Field(default_factory=LlmsTxtAnalysis)
    meta_robots: MetaRobots = Field(default_factory=MetaRobots)


# ─────────────────────────────────────────────
# Findings and results
# ─────────────────────────────────────────────

class Improvement(BaseModel):
    """A single scored finding with remediation guidance."""
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    id: str
    title: str
    description: str
    severity: Severity
    category: ImprovementCategory
    suggestion: str | None = None


class ScoreReport(BaseModel):
    score: float = Field(ge=0.0, le=MAX_SCORE)
    max_score: float = MAX_SCORE
    improvements: list[Improvement] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    """The sole externally observable artifact of one analysis run."""
    url: str
    final_url: str
    score: float = Field(ge=0.0, le=MAX_SCORE)
    max_score: float = MAX_SCORE
    improvements: list[Improvement] = Field(default_factory=list)
    ai_preview: DocumentModel
    bot_access: BotAccessModel
    ai_preview_yaml: str
    analyzed_at: datetime
