"""
Tests for the Scoring Engine.
"""

import pytest

from app.engines.base import (
    BotAccessModel,
    DocumentModel,
    Heading,
    ImageRef,
    LlmsTxtAnalysis,
    MetaInfo,
    MetaRobots,
    RobotsAnalysis,
    SemanticHtml,
    SitemapAnalysis,
)
from app.engines.bot_access.engine import parse_robots_txt
from app.engines.extractor.engine import StructuralExtractor
from app.engines.scoring.engine import ScoringEngine, clamp_score


def _perfect_document(**overrides) -> DocumentModel:
    values = dict(
        url="https://example.com/",
        title="A perfectly good page title",
        meta=MetaInfo(
            description="A meta description that is comfortably longer than fifty characters.",
            og_title="Perfect",
            og_image="https://example.com/cover.png",
            og_type="article",
            twitter_card="summary",
        ),
        headings=[Heading(level=1, text="Main"), Heading(level=2, text="Section")],
        main_content="x" * 600,
        content_length=600,
        images=[ImageRef(src="https://example.com/a.png", alt="A")],
        image_count=1,
        structured_data=True,
        semantic_html=SemanticHtml(has_header=True, has_main=True, has_footer=True),
        lang="en",
    )
    values.update(overrides)
    return DocumentModel(**values)


def _open_bot_access(**overrides) -> BotAccessModel:
    values = dict(
        robots_txt=RobotsAnalysis(exists=True, has_sitemap_reference=True),
        sitemap=SitemapAnalysis(exists=True, url="https://example.com/sitemap.xml"),
        llms_txt=LlmsTxtAnalysis(exists=True, content="# Example site overview"),
    )
    values.update(overrides)
    return BotAccessModel(**values)


@pytest.fixture
def engine():
    return ScoringEngine()


def _ids(report) -> list[str]:
    return [i.id for i in report.improvements]


def _by_id(report, improvement_id):
    return next(i for i in report.improvements if i.id == improvement_id)


# ─────────────────────────────────────────────
# Score bounds
# ─────────────────────────────────────────────

class TestClampScore:

    @pytest.mark.parametrize("raw,expected", [
        (10.2, 10.0),
        (-3.7, 0.0),
        (7.25, 7.3),
        (7.249, 7.2),
        (5.0, 5.0),
        (0.04, 0.0),
    ])
    def test_clamp_and_round(self, raw, expected):
        assert clamp_score(raw) == expected


class TestScoringEngine:

    def test_perfect_page_caps_at_max(self, engine):
        report = engine.score(_perfect_document(), _open_bot_access())
        assert report.score == 10.0
        assert report.max_score == 10.0
        assert report.improvements == []

    def test_bare_page_scenario(self, engine):
        html = "<html><body><p>" + "a" * 40 + "</p></body></html>"
        document = StructuralExtractor().extract(html, "https://example.com/")
        report = engine.score(document, BotAccessModel())

        assert {"title", "meta-description", "h1", "content"} <= set(_ids(report))
        assert report.score <= 6.0
        assert _by_id(report, "meta-description").severity == "critical"

    def test_rule_order_is_fixed(self, engine):
        report = engine.score(DocumentModel(url="https://example.com/"), BotAccessModel())
        assert _ids(report) == [
            "title",
            "meta-description",
            "h1",
            "content",
            "lang",
            "robots-txt",
            "sitemap",
            "llms-txt",
            "semantic-html",
            "open-graph",
        ]

    def test_deterministic(self, engine):
        document = _perfect_document(title=None, images_missing_alt=4, lang=None)
        bot = _open_bot_access(robots_txt=parse_robots_txt("User-agent: CCBot\nDisallow: /"))
        first = engine.score(document, bot)
        second = ScoringEngine().score(document, bot)
        assert first.model_dump() == second.model_dump()

    def test_worst_case_stays_within_bounds(self, engine):
        document = DocumentModel(
            url="https://example.com/",
            headings=[Heading(level=2, text="a"), Heading(level=5, text="b")],
            images_missing_alt=10,
            content_length=800,
        )
        bot = BotAccessModel(
            robots_txt=RobotsAnalysis(exists=False, blocks_ai=["GPTBot"]),
            meta_robots=MetaRobots(noindex=True, nosnippet=True, noai=True),
        )
        report = engine.score(document, bot)
        assert 0.0 <= report.score <= 10.0

    def test_negative_running_score_clamps_to_zero(self):
        class StrictEngine(ScoringEngine):
            def __init__(self):
                super().__init__()
                self.rules.append(lambda doc, bot: (-25.0, None))

        report = StrictEngine().score(DocumentModel(url="https://example.com/"), BotAccessModel())
        assert report.score == 0.0
        assert report.max_score == 10.0
        assert "title" in _ids(report)


# ─────────────────────────────────────────────
# Individual rules
# ─────────────────────────────────────────────

class TestRules:

    def test_short_meta_description_is_warning(self, engine):
        document = _perfect_document(meta=_perfect_document().meta.model_copy(update={"description": "Too short"}))
        report = engine.score(document, _open_bot_access())
        assert _ids(report) == ["meta-description"]
        assert _by_id(report, "meta-description").severity == "warning"
        assert report.score == 9.2

    @pytest.mark.parametrize("missing,delta,severity", [
        (1, 0.2, "info"),
        (2, 0.4, "info"),
        (3, 0.5, "info"),
        (4, 0.5, "warning"),
    ])
    def test_image_alt_scaling(self, engine, missing, delta, severity):
        report = engine.score(_perfect_document(images_missing_alt=missing), _open_bot_access())
        assert _by_id(report, "alt").severity == severity
        assert report.score == clamp_score(10.2 - delta)

    def test_ai_block_penalty(self, engine):
        bot = _open_bot_access(robots_txt=parse_robots_txt("User-agent: GPTBot\nDisallow: /\n"))
        report = engine.score(_perfect_document(), bot)

        blocked = _by_id(report, "robots-ai-blocked")
        assert blocked.severity == "warning"
        assert "GPTBot" in blocked.description
        assert report.score == 9.7

    def test_llms_txt_absent_is_advisory(self, engine):
        report = engine.score(_perfect_document(), _open_bot_access(llms_txt=LlmsTxtAnalysis()))
        assert _ids(report) == ["llms-txt"]
        assert _by_id(report, "llms-txt").severity == "info"
        assert report.score == 10.0

    def test_noindex_is_critical(self, engine):
        report = engine.score(_perfect_document(), _open_bot_access(meta_robots=MetaRobots(noindex=True)))
        assert _by_id(report, "meta-noindex").severity == "critical"
        assert report.score == 9.2

    def test_ai_restrictions_are_advisory(self, engine):
        report = engine.score(_perfect_document(), _open_bot_access(meta_robots=MetaRobots(noai=True)))
        restriction = _by_id(report, "meta-ai-restrictions")
        assert restriction.severity == "info"
        assert "noai" in restriction.description
        assert report.score == 10.0

    def test_semantic_html_below_three(self, engine):
        document = _perfect_document(semantic_html=SemanticHtml(has_main=True, has_aside=True))
        report = engine.score(document, _open_bot_access())
        assert _ids(report) == ["semantic-html"]
        assert report.score == 9.7

    def test_multiple_h1(self, engine):
        headings = [Heading(level=1, text="One"), Heading(level=1, text="Two")]
        report = engine.score(_perfect_document(headings=headings), _open_bot_access())
        assert _ids(report) == ["multiple-h1"]
        assert report.score == 9.9

    def test_heading_skip_is_advisory(self, engine):
        headings = [Heading(level=1, text="Top"), Heading(level=3, text="Deep"), Heading(level=2, text="Back up")]
        report = engine.score(_perfect_document(headings=headings), _open_bot_access())
        assert _ids(report) == ["heading-hierarchy"]
        assert "H1 to H3" in _by_id(report, "heading-hierarchy").description
        assert report.score == 10.0

    def test_heading_jump_upwards_is_not_a_skip(self, engine):
        headings = [Heading(level=1, text="Top"), Heading(level=2, text="a"), Heading(level=3, text="b"),
                    Heading(level=1, text="Again")]
        report = engine.score(_perfect_document(headings=headings), _open_bot_access())
        assert "heading-hierarchy" not in _ids(report)

    def test_open_graph_one_missing(self, engine):
        meta = _perfect_document().meta.model_copy(update={"og_type": None})
        report = engine.score(_perfect_document(meta=meta), _open_bot_access())
        graph = _by_id(report, "open-graph")
        assert graph.severity == "info"
        assert "og:type" in graph.description
        assert report.score == 10.0  # 10.2 - 0.15 rounds back up to the cap

    def test_open_graph_title_falls_back_to_page_title(self, engine):
        meta = _perfect_document().meta.model_copy(update={"og_title": None})
        report = engine.score(_perfect_document(meta=meta), _open_bot_access())
        assert "open-graph" not in _ids(report)

    def test_open_graph_two_missing_is_warning(self, engine):
        meta = _perfect_document().meta.model_copy(update={"og_type": None, "og_image": None})
        report = engine.score(_perfect_document(meta=meta), _open_bot_access())
        assert _by_id(report, "open-graph").severity == "warning"
        assert report.score == 9.9

    def test_twitter_card_only_with_og_image(self, engine):
        meta = _perfect_document().meta.model_copy(update={"twitter_card": None})
        report = engine.score(_perfect_document(meta=meta), _open_bot_access())
        assert _ids(report) == ["twitter-card"]

        meta = meta.model_copy(update={"og_image": None})
        report = engine.score(_perfect_document(meta=meta), _open_bot_access())
        assert "twitter-card" not in _ids(report)

    def test_structured_data_only_for_long_content(self, engine):
        report = engine.score(_perfect_document(structured_data=False), _open_bot_access())
        assert _ids(report) == ["structured-data"]

        short = _perfect_document(structured_data=False, content_length=500)
        assert "structured-data" not in _ids(engine.score(short, _open_bot_access()))
