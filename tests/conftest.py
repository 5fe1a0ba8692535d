"""Fixtures: mock outbound transport, sample site, fake Redis."""

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis

from app.core.url_security import validate_target_url
from support import GOOD_PAGE, HTML, LLMS_TXT, ROBOTS_TXT, SITEMAP_XML, TEXT, XML, RecordingTransport


@pytest.fixture
def recorder() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def site(recorder: RecordingTransport) -> RecordingTransport:
    """A well-behaved site on https://example.com with every auxiliary file present."""
    recorder.routes.update({
        "https://example.com/": (200, HTML, GOOD_PAGE),
        "https://example.com/robots.txt": (200, TEXT, ROBOTS_TXT),
        "https://example.com/sitemap.xml": (200, XML, SITEMAP_XML),
        "https://example.com/llms.txt": (200, TEXT, LLMS_TXT),
    })
    return recorder


@pytest.fixture
def target():
    return validate_target_url("https://example.com/")


@pytest_asyncio.fixture
async def fake_redis():
    client = FakeRedis(decode_responses=True)
    yield client
    await client.aclose()
