"""
Analysis pipeline.

Flow:
1. PageFetcher          → FetchedDocument (final URL re-validated)
2. StructuralExtractor  → DocumentModel
3. BotAccessAnalyzer    → BotAccessModel (robots.txt / sitemap / llms.txt run concurrently)
4. ScoringEngine        → score + improvements
5. PreviewSerializer    → canonical preview text

Each stage only reads the output of the previous one. Nothing is retried;
FetchError from step 1 propagates to the caller, auxiliary probe failures
degrade to "absent" inside step 3.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone

import httpx
import structlog

from app.core.url_security import TargetDescriptor
from app.engines.base import AnalysisResult
from app.engines.bot_access.engine import BotAccessAnalyzer
from app.engines.extractor.engine import StructuralExtractor
from app.engines.fetcher.engine import PageFetcher
from app.engines.preview.engine import PreviewSerializer
from app.engines.scoring.engine import ScoringEngine

logger = structlog.get_logger(__name__)


class AnalysisService:

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self.fetcher = PageFetcher(transport=transport)
        self.extractor = StructuralExtractor()
        self.bot_access = BotAccessAnalyzer(transport=transport)
        self.scoring = ScoringEngine()
        self.preview = PreviewSerializer()

    async def analyze(self, target: TargetDescriptor) -> AnalysisResult:
        start = time.perf_counter()
        logger.info("Analysis starting", url=target.url)

        fetched = await self.fetcher.fetch(target)
        document = self.extractor.extract(fetched.content, fetched.final_url, encoding=fetched.encoding)
        bot_access = await self.bot_access.analyze(target.origin, document)
        report = self.scoring.score(document, bot_access)
        preview_text = self.preview.serialize(document, bot_access, url=target.url)

        elapsed = (time.perf_counter() - start) * 1000
        logger.info(
            "Analysis complete",
            url=target.url,
            final_url=fetched.final_url,
            score=report.score,
            improvement_count=len(report.improvements),
            elapsed_ms=round(elapsed, 2),
        )

        return AnalysisResult(
            url=target.url,
            final_url=fetched.final_url,
            score=report.score,
            max_score=report.max_score,
            improvements=report.improvements,
            ai_preview=document,
            bot_access=bot_access,
            ai_preview_yaml=preview_text,
            analyzed_at=datetime.now(timezone.utc),
        )
