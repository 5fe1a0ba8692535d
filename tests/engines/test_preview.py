"""
Tests for the Preview Serializer.
"""

import pytest

from app.engines.base import (
    BotAccessModel,
    DocumentModel,
    Heading,
    LlmsTxtAnalysis,
    MetaInfo,
    RobotsAnalysis,
    SemanticHtml,
)
from app.engines.extractor.engine import StructuralExtractor
from app.engines.preview.engine import HEADER, PreviewSerializer, escape_value, parse_preview
from support import GOOD_PAGE


@pytest.fixture
def serializer():
    return PreviewSerializer()


@pytest.fixture
def document():
    return StructuralExtractor().extract(GOOD_PAGE, "https://example.com/")


@pytest.fixture
def bot_access():
    return BotAccessModel(
        robots_txt=RobotsAnalysis(exists=True, blocks_ai=["GPTBot", "CCBot"], has_sitemap_reference=True),
        llms_txt=LlmsTxtAnalysis(exists=True, content="# Example overview"),
    )


class TestEscaping:

    @pytest.mark.parametrize("value,expected", [
        ("plain text", "plain text"),
        ('say "hi"', '"say \\"hi\\""'),
        ("line\nbreak", '"line\\nbreak"'),
        ("back\\slash", '"back\\\\slash"'),
        ("null", '"null"'),
        ("true", '"true"'),
        ("2024", '"2024"'),
        ("[draft]", '"[draft]"'),
        ("Part 1: Intro", '"Part 1: Intro"'),
        (" padded", '" padded"'),
    ])
    def test_escape_value(self, value, expected):
        assert escape_value(value) == expected


class TestPreviewSerializer:

    def test_layout(self, serializer, document, bot_access):
        text = serializer.serialize(document, bot_access, url="https://example.com/")
        lines = text.split("\n")

        assert lines[0] == HEADER
        assert lines[2] == "url: https://example.com/"
        assert "title: Example Domain - A Well Described Page" in lines
        assert "    - level: 1" in lines
        assert "      text: Example Domain" in lines
        assert "    blocks_ai: [GPTBot, CCBot]" in lines
        assert "    length: 18" in lines
        assert "images_count: 1" in lines
        assert "content_preview: |" in lines
        assert text.endswith("\n")

    def test_byte_for_byte_reproducible(self, serializer, document, bot_access):
        first = serializer.serialize(document, bot_access)
        second = PreviewSerializer().serialize(document.model_copy(deep=True), bot_access.model_copy(deep=True))
        assert first.encode() == second.encode()

    def test_absent_values_are_null(self, serializer):
        text = serializer.serialize(DocumentModel(url="https://example.com/"), BotAccessModel())
        assert "title: null" in text
        assert "  description: null" in text
        assert "  headings: []" in text
        assert "    url: null" in text

    def test_round_trip(self, serializer, document, bot_access):
        parsed = parse_preview(serializer.serialize(document, bot_access))

        assert parsed["url"] == document.url
        assert parsed["title"] == document.title
        assert parsed["lang"] == "en"
        assert parsed["meta.description"] == document.meta.description
        assert parsed["meta.og_image"] == document.meta.og_image
        assert parsed["structure.semantic_html.nav"] is True
        assert parsed["structure.semantic_html.article"] is False
        assert parsed["structure.has_structured_data"] is True
        assert parsed["bot_access.robots_txt.blocks_ai"] == ["GPTBot", "CCBot"]
        assert parsed["bot_access.robots_txt.allows_ai"] == []
        assert parsed["bot_access.sitemap.exists"] is False
        assert parsed["bot_access.llms_txt.exists"] is True
        assert parsed["links_count"] == document.link_count
        assert len(parsed["structure.headings"]) == len(document.headings)
        assert parsed["structure.headings"][1] == {"level": 2, "text": "More information"}
        assert parsed["content_preview"] == document.main_content

    def test_round_trip_of_awkward_values(self, serializer):
        document = DocumentModel(
            url="https://example.com/",
            title='2024: "Quoted" \\ title',
            meta=MetaInfo(description="null", og_type="true"),
            headings=[Heading(level=1, text="- dash: colon")],
            main_content="first\n\nthird",
            lang="123",
        )
        parsed = parse_preview(serializer.serialize(document, BotAccessModel()))

        assert parsed["title"] == document.title
        assert parsed["meta.description"] == "null"
        assert parsed["meta.og_type"] == "true"
        assert parsed["lang"] == "123"
        assert parsed["structure.headings"] == [{"level": 1, "text": "- dash: colon"}]
        assert parsed["content_preview"] == "first\n\nthird"

    def test_empty_content_lines_become_single_space(self, serializer):
        document = DocumentModel(url="https://example.com/", main_content="a\n\nb")
        text = serializer.serialize(document, BotAccessModel())
        assert text.endswith("content_preview: |\n  a\n   \n  b\n")

    def test_heading_caps(self, serializer):
        headings = [Heading(level=2, text="h" * 300) for _ in range(40)]
        document = DocumentModel(url="https://example.com/", headings=headings)
        parsed = parse_preview(serializer.serialize(document, BotAccessModel()))

        assert len(parsed["structure.headings"]) == 25
        assert all(len(h["text"]) == 120 for h in parsed["structure.headings"])

    def test_description_truncated(self, serializer):
        document = DocumentModel(url="https://example.com/", meta=MetaInfo(description="d" * 500))
        parsed = parse_preview(serializer.serialize(document, BotAccessModel()))
        assert parsed["meta.description"] == "d" * 200

    def test_semantic_flags_rendered(self, serializer):
        document = DocumentModel(url="https://example.com/", semantic_html=SemanticHtml(has_aside=True))
        parsed = parse_preview(serializer.serialize(document, BotAccessModel()))
        assert parsed["structure.semantic_html.aside"] is True
        assert parsed["structure.semantic_html.main"] is False
