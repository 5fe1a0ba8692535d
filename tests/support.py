"""Shared test helpers: recording mock transport and sample documents."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

import httpx


Route = tuple[int, dict[str, str], bytes | str] | Callable[[httpx.Request], httpx.Response]


@dataclass
class RecordingTransport:
    """httpx.MockTransport over a {url: response} table that records every request."""
    routes: dict[str, Route] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def handler(self, request: httpx.Request):
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, headers={"content-type": "text/plain"}, text="not found")
        if callable(route):
            return route(request)
        status_code, headers, body = route
        content = body.encode() if isinstance(body, str) else body
        return httpx.Response(status_code, headers=headers, content=content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]


HTML = {"content-type": "text/html; charset=utf-8"}
TEXT = {"content-type": "text/plain"}
XML = {"content-type": "application/xml"}

GOOD_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
  <title>Example Domain - A Well Described Page</title>
  <meta name="description" content="A thorough description of the example page, written for humans and AI agents alike.">
  <meta property="og:title" content="Example Domain">
  <meta property="og:type" content="website">
  <meta property="og:image" content="/img/cover.png">
  <meta name="twitter:card" content="summary_large_image">
  <link rel="canonical" href="https://example.com/">
  <script type="application/ld+json">{"@context": "https://schema.org", "@type": "WebPage"}</script>
</head>
<body>
  <header><nav><a href="/about">About</a> <a href="https://other.org/x">Other</a></nav></header>
  <main>
    <h1>Example Domain</h1>
    <p>This domain is for use in illustrative examples in documents. You may use this
    domain in literature without prior coordination or asking for permission.</p>
    <h2>More information</h2>
    <p>Further reading is available from the registry that maintains it.</p>
    <img src="/img/diagram.png" alt="Diagram of the example">
  </main>
  <footer>Footer text</footer>
</body>
</html>
"""

ROBOTS_TXT = """User-agent: *
Allow: /

User-agent: GPTBot
Disallow: /

Sitemap: https://example.com/sitemap.xml
"""

SITEMAP_XML = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"><url><loc>https://example.com/</loc></url></urlset>
"""

LLMS_TXT = "# Example\n\n> An example site used in documentation.\n"


