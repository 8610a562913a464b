"""Domain models used across the application."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

#: Precision at which publish timestamps are compared and stored.
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(value: datetime) -> str:
    """Render ``value`` in the content store's timestamp format."""

    return value.strftime(TIMESTAMP_FORMAT)


class ListingPage(BaseModel):
    """Article links and pagination extracted from one listing page."""

    model_config = ConfigDict(frozen=True)

    source_html: str = ""
    article_urls: List[str] = Field(default_factory=list)
    next_url: Optional[str] = None


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class MediaItem(BaseModel):
    """An embedded media element found inside an article."""

    model_config = ConfigDict(frozen=True)

    kind: MediaKind
    source_url: str
    caption: Optional[str] = None


class StoredMediaRef(BaseModel):
    """Reference to a media asset that was imported into the content store."""

    id: str
    mime_type: str
    url: str = Field(default="", description="Location the stored media is served from")


class ArticleDocument(BaseModel):
    """Normalised representation of an article page.

    ``body_markup`` carries ``<figure data-media-slot="N">`` placeholders where
    ``N`` indexes :attr:`media_items`; see
    :func:`postscraper.services.article.render_body`.
    """

    title: str = ""
    published_at: datetime
    body_markup: str = ""
    media_items: List[MediaItem] = Field(default_factory=list)
    featured_media: Optional[MediaItem] = None

    @property
    def natural_key(self) -> tuple[str, str]:
        """Return the ``(title, timestamp)`` pair used for de-duplication."""

        return self.title, format_timestamp(self.published_at)


class StoredArticle(BaseModel):
    """An article as persisted by the content store."""

    id: str
    title: str
    published_at: str
    body: str
    cover_media_id: Optional[str] = None
    created_at: str


class DoneReason(str, Enum):
    LIMIT_REACHED = "limit_reached"
    PAGINATION_EXHAUSTED = "pagination_exhausted"
    DUPLICATE_FOUND = "duplicate_found"
    LISTING_FETCH_FAILED = "listing_fetch_failed"
    STORE_FAILED = "store_failed"


class RunResult(BaseModel):
    """Outcome of a single crawl run."""

    completed: bool = True
    reason: DoneReason
    scraped_count: int = 0
    duplicate_found: bool = False
    listing_pages: int = 0
    article_ids: List[str] = Field(default_factory=list)
    skipped_urls: List[str] = Field(default_factory=list)
    started_at: datetime
    finished_at: datetime
