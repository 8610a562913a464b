"""Service layer entry points for the post scraper."""

from __future__ import annotations

from .article import parse_article, render_body  # noqa: F401
from .dedup import DuplicateGate  # noqa: F401
from .fetcher import DocumentFetcher, RawDocument  # noqa: F401
from .importer import MediaImporter  # noqa: F401
from .listing import parse_listing  # noqa: F401
from .orchestrator import CrawlOrchestrator, run  # noqa: F401

__all__ = [
    "CrawlOrchestrator",
    "DocumentFetcher",
    "DuplicateGate",
    "MediaImporter",
    "RawDocument",
    "parse_article",
    "parse_listing",
    "render_body",
    "run",
]
