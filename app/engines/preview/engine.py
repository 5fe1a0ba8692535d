"""
Preview Serializer - canonical text rendering of what an AI agent extracts.

The output is a block-structured, YAML-compatible key/value document:
flat metadata, a structure section, a bot-access section and a literal
content block. It is byte-for-byte reproducible from identical input, and
parse_preview() reads it back into flat dotted keys.
"""

from __future__ import annotations

import re
from typing import Any

from app.engines.base import BotAccessModel, DocumentModel

HEADER = "# AI agent view of this page (structured preview)"

MAX_HEADINGS = 25
MAX_HEADING_CHARS = 120
MAX_DESCRIPTION_CHARS = 200
CONTENT_KEY = "content_preview"
HEADINGS_KEY = "structure.headings"

_RESERVED_WORDS = {"", "null", "true", "false", "~", "[]"}
_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?$")
_INDICATORS = tuple("-?:,[]{}#&*!|>'%@`")
_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r"}
_UNESCAPE_RE = re.compile(r"\\(.)")
_UNESCAPES = {"n": "\n", "r": "\r", '"': '"', "\\": "\\"}


# ─────────────────────────────────────────────
# Scalars
# ─────────────────────────────────────────────

def escape_value(value: str) -> str:
    """Double-quote a string that would not read back verbatim as a plain scalar."""
    if (
        any(ch in value for ch in _ESCAPES)
        or value in _RESERVED_WORDS
        or _NUMBER_RE.match(value)
        or value != value.strip()
        or value.startswith(_INDICATORS)
        or ": " in value
        or " #" in value
    ):
        return '"' + "".join(_ESCAPES.get(ch, ch) for ch in value) + '"'
    return value


def format_scalar(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(escape_value(str(v)) for v in value) + "]"
    return escape_value(str(value))


def parse_scalar(raw: str) -> Any:
    raw = raw.strip()
    if raw.startswith('"') and raw.endswith('"') and len(raw) >= 2:
        return _UNESCAPE_RE.sub(lambda m: _UNESCAPES.get(m.group(1), m.group(1)), raw[1:-1])
    if raw == "null":
        return None
    if raw in ("true", "false"):
        return raw == "true"
    if _NUMBER_RE.match(raw):
        return float(raw) if "." in raw else int(raw)
    if raw.startswith("[") and raw.endswith("]"):
        inner = raw[1:-1].strip()
        return [parse_scalar(item) for item in inner.split(",")] if inner else []
    return raw


def _truncate(value: str | None, limit: int) -> str | None:
    return value[:limit] if value else value


# ─────────────────────────────────────────────
# Serializer
# ─────────────────────────────────────────────

class PreviewSerializer:

    def serialize(self, document: DocumentModel, bot_access: BotAccessModel, url: str | None = None) -> str:
        meta = document.meta
        semantic = document.semantic_html
        robots = bot_access.robots_txt
        llms = bot_access.llms_txt
        meta_robots = bot_access.meta_robots

        lines: list[str] = [HEADER, ""]

        def kv(key: str, value: Any, indent: int = 0) -> None:
            lines.append(f"{'  ' * indent}{key}: {format_scalar(value)}")

        def section(key: str, indent: int = 0) -> None:
            lines.append(f"{'  ' * indent}{key}:")

        kv("url", url or document.url)
        kv("title", document.title)
        kv("lang", document.lang)

        section("meta")
        kv("description", _truncate(meta.description, MAX_DESCRIPTION_CHARS), 1)
        kv("og_title", meta.og_title, 1)
        kv("og_description", _truncate(meta.og_description, MAX_DESCRIPTION_CHARS), 1)
        kv("og_image", meta.og_image, 1)
        kv("og_type", meta.og_type, 1)
        kv("canonical", meta.canonical, 1)
        kv("twitter_card", meta.twitter_card, 1)

        section("structure")
        headings = document.headings[:MAX_HEADINGS]
        if headings:
            section("headings", 1)
            for heading in headings:
                lines.append(f"    - level: {heading.level}")
                lines.append(f"      text: {format_scalar(heading.text[:MAX_HEADING_CHARS])}")
        else:
            lines.append("  headings: []")
        section("semantic_html", 1)
        kv("nav", semantic.has_nav, 2)
        kv("header", semantic.has_header, 2)
        kv("main", semantic.has_main, 2)
        kv("article", semantic.has_article, 2)
        kv("section", semantic.has_section, 2)
        kv("aside", semantic.has_aside, 2)
        kv("footer", semantic.has_footer, 2)
        kv("has_structured_data", document.structured_data, 1)

        section("bot_access")
        section("robots_txt", 1)
        kv("exists", robots.exists, 2)
        kv("blocks_ai", robots.blocks_ai, 2)
        kv("allows_ai", robots.allows_ai, 2)
        kv("has_sitemap_reference", robots.has_sitemap_reference, 2)
        section("sitemap", 1)
        kv("exists", bot_access.sitemap.exists, 2)
        kv("url", bot_access.sitemap.url, 2)
        section("llms_txt", 1)
        kv("exists", llms.exists, 2)
        kv("length", len(llms.content or ""), 2)
        section("meta_robots", 1)
        kv("noindex", meta_robots.noindex, 2)
        kv("nofollow", meta_robots.nofollow, 2)
        kv("nosnippet", meta_robots.nosnippet, 2)
        kv("noai", meta_robots.noai, 2)

        kv("images_count", document.image_count)
        kv("links_count", document.link_count)

        lines.append(f"{CONTENT_KEY}: |")
        for line in document.main_content.split("\n"):
            lines.append("  " + (line or " "))

        return "\n".join(lines) + "\n"


# ─────────────────────────────────────────────
# Reader
# ─────────────────────────────────────────────

def parse_preview(text: str) -> dict[str, Any]:
    """
    Read a serialized preview back into flat dotted keys.

    Headings are returned under "structure.headings" as a list of
    {"level", "text"} dicts and the literal block under "content_preview".
    """
    result: dict[str, Any] = {}
    path: list[str] = []
    headings: list[dict[str, Any]] = []
    content: list[str] | None = None

    for line in text.split("\n"):
        if content is not None:
            if line.startswith("  "):
                content.append("" if line == "   " else line[2:])
            continue
        if not line.strip() or line.lstrip().startswith("#"):
            continue

        indent = (len(line) - len(line.lstrip(" "))) // 2
        body = line.strip()
        del path[indent:]

        if body.startswith("- "):
            key, _, value = body[2:].partition(":")
            headings.append({key.strip(): parse_scalar(value)})
            continue

        key, _, value = body.partition(":")
        key = key.strip()
        value = value.strip()

        # continuation lines of a "- level: N" heading item
        if ".".join(path) == HEADINGS_KEY and headings:
            headings[-1][key] = parse_scalar(value)
            continue

        if key == CONTENT_KEY and value == "|" and not path:
            content = []
        elif value:
            result[".".join(path + [key])] = parse_scalar(value)
        else:
            path.append(key)

    if content is not None:
        result[CONTENT_KEY] = "\n".join(content)
    result[HEADINGS_KEY] = headings
    return result
