"""Crawl loop driving listing pagination, article extraction and storage."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urljoin

import requests

from postscraper.config import RunConfig
from postscraper.contentstore import ContentStore, FileContentStore
from postscraper.errors import ContentStoreError, FetchError, MediaImportError, ParseError
from postscraper.models import (
    ArticleDocument,
    DoneReason,
    ListingPage,
    MediaItem,
    MediaKind,
    RunResult,
    StoredMediaRef,
)
from postscraper.services.article import parse_article, render_body
from postscraper.services.dedup import DuplicateGate
from postscraper.services.fetcher import DocumentFetcher
from postscraper.services.importer import MediaImporter
from postscraper.services.listing import parse_listing

__all__ = ["CrawlOrchestrator", "CrawlPhase", "CrawlState", "run"]

logger = logging.getLogger(__name__)


class CrawlPhase(str, Enum):
    AT_LISTING = "at_listing"
    LISTING_FETCHED = "listing_fetched"
    ITERATING_ARTICLES = "iterating_articles"
    DONE = "done"


@dataclass
class CrawlState:
    """Mutable bookkeeping for one run. Owned by a single orchestrator."""

    current_listing_url: Optional[str]
    scraped_count: int = 0
    duplicate_found: bool = False
    phase: CrawlPhase = CrawlPhase.AT_LISTING
    reason: Optional[DoneReason] = None
    listing: Optional[ListingPage] = None
    listing_pages: int = 0
    article_ids: List[str] = field(default_factory=list)
    skipped_urls: List[str] = field(default_factory=list)

    def finish(self, reason: DoneReason) -> None:
        self.phase = CrawlPhase.DONE
        self.reason = reason


class CrawlOrchestrator:
    """Walk the listing pages and store every new article up to ``limit``.

    Once an already stored article is seen, the remaining articles of the
    current listing page are still processed (within the limit) but no
    further listing page is requested.
    """

    def __init__(
        self,
        fetcher: DocumentFetcher,
        store: ContentStore,
        *,
        limit: int,
        temp_dir: Path,
    ) -> None:
        self.fetcher = fetcher
        self.store = store
        self.limit = limit
        self.temp_dir = Path(temp_dir)
        self.gate = DuplicateGate(store)
        self.importer = MediaImporter(fetcher, store)

    def run(self, start_url: str) -> RunResult:
        started_at = datetime.now(UTC)
        state = CrawlState(current_listing_url=start_url)

        try:
            self.temp_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error("Cannot create media download directory %s: %s", self.temp_dir, exc)
            state.finish(DoneReason.STORE_FAILED)

        while state.phase is not CrawlPhase.DONE:
            try:
                if state.phase is CrawlPhase.AT_LISTING:
                    self._at_listing(state)
                elif state.phase is CrawlPhase.LISTING_FETCHED:
                    state.phase = CrawlPhase.ITERATING_ARTICLES
                elif state.phase is CrawlPhase.ITERATING_ARTICLES:
                    self._iterate_articles(state)
            except ContentStoreError:
                logger.exception("Content store failure; stopping the run")
                state.finish(DoneReason.STORE_FAILED)

        logger.info(
            "Run finished (%s): %d new articles from %d listing pages",
            state.reason.value,
            state.scraped_count,
            state.listing_pages,
        )
        return RunResult(
            reason=state.reason,
            scraped_count=state.scraped_count,
            duplicate_found=state.duplicate_found,
            listing_pages=state.listing_pages,
            article_ids=state.article_ids,
            skipped_urls=state.skipped_urls,
            started_at=started_at,
            finished_at=datetime.now(UTC),
        )

    def _at_listing(self, state: CrawlState) -> None:
        if state.duplicate_found:
            state.finish(DoneReason.DUPLICATE_FOUND)
            return
        if state.scraped_count >= self.limit:
            state.finish(DoneReason.LIMIT_REACHED)
            return
        if not state.current_listing_url:
            state.finish(DoneReason.PAGINATION_EXHAUSTED)
            return

        url = state.current_listing_url
        try:
            document = self.fetcher.fetch(url)
        except FetchError as exc:
            logger.error("Failed to fetch listing page %s: %s", url, exc)
            state.finish(DoneReason.LISTING_FETCH_FAILED)
            return

        state.listing = parse_listing(document.text)
        state.listing_pages += 1
        # Relative links on the page resolve against where it was actually served from.
        state.current_listing_url = document.url or url
        logger.info("Listing page %s lists %d articles", url, len(state.listing.article_urls))
        state.phase = CrawlPhase.LISTING_FETCHED

    def _iterate_articles(self, state: CrawlState) -> None:
        listing = state.listing or ListingPage()
        base_url = state.current_listing_url or ""

        for href in listing.article_urls:
            if state.scraped_count >= self.limit:
                break
            try:
                url = urljoin(base_url, href)
            except ValueError as exc:
                logger.warning("Skipping malformed article link %r: %s", href, exc)
                state.skipped_urls.append(href)
                continue
            self._process_article(url, state)

        next_url = None
        if listing.next_url:
            try:
                next_url = urljoin(base_url, listing.next_url)
            except ValueError as exc:
                logger.warning("Ignoring malformed next page link %r: %s", listing.next_url, exc)
        state.current_listing_url = next_url
        state.listing = None
        state.phase = CrawlPhase.AT_LISTING

    def _process_article(self, url: str, state: CrawlState) -> None:
        try:
            page = self.fetcher.fetch(url)
        except FetchError as exc:
            logger.warning("Failed %s: %s", url, exc)
            state.skipped_urls.append(url)
            return

        try:
            document = parse_article(page.text, base_url=page.url or url)
        except ParseError as exc:
            logger.warning("Skipping %s: %s", url, exc)
            state.skipped_urls.append(url)
            return

        if self.gate.exists(document.title, document.published_at):
            logger.info("Already stored: %r (%s)", document.title, url)
            state.duplicate_found = True
            return

        article_id = self._store(document)
        state.article_ids.append(article_id)
        state.scraped_count += 1
        logger.info("Stored %s as %s", url, article_id)

    def _import(self, item: MediaItem, cache: Dict[str, StoredMediaRef]) -> Optional[StoredMediaRef]:
        if item.source_url in cache:
            return cache[item.source_url]
        try:
            ref = self.importer.import_media(item, self.temp_dir)
        except MediaImportError as exc:
            logger.warning("Dropping %s: %s", item.kind.value, exc)
            return None
        cache[item.source_url] = ref
        return ref

    def _store(self, document: ArticleDocument) -> str:
        imported: Dict[str, StoredMediaRef] = {}
        refs: Dict[int, StoredMediaRef] = {}
        for index, item in enumerate(document.media_items):
            ref = self._import(item, imported)
            if ref is not None:
                refs[index] = ref

        body = render_body(document.body_markup, document.media_items, refs)
        article_id = self.store.create_article(document.title, document.published_at, body)

        featured = document.featured_media
        cover = self._import(featured, imported) if featured is not None else None

        for ref in imported.values():
            try:
                self.store.attach_media(ref.id, article_id)
            except ContentStoreError as exc:
                logger.warning("Could not attach media %s to %s: %s", ref.id, article_id, exc)

        if cover is not None and featured.kind is MediaKind.IMAGE:
            try:
                self.store.set_cover_image(article_id, cover.id)
            except ContentStoreError as exc:
                logger.warning("Could not set cover image for %s: %s", article_id, exc)
        return article_id


def run(
    config: RunConfig,
    *,
    store: ContentStore | None = None,
    session: requests.Session | None = None,
) -> RunResult:
    """Execute one crawl described by ``config``."""

    content_store = store if store is not None else FileContentStore(config.store_root)
    if config.temp_dir is not None:
        temp_dir = config.temp_dir
    else:
        temp_dir = getattr(content_store, "root", Path(".")) / "tmp"

    orchestrator = CrawlOrchestrator(
        DocumentFetcher.from_config(config, session),
        content_store,
        limit=config.posts_num,
        temp_dir=temp_dir,
    )
    logger.info("Scraping %s (limit %d)", config.scrapping_url, config.posts_num)
    return orchestrator.run(str(config.scrapping_url))
