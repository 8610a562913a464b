"""Lookup deciding whether an article has already been stored."""

from __future__ import annotations

from datetime import datetime

from postscraper.contentstore import ContentStore

__all__ = ["DuplicateGate"]


class DuplicateGate:
    """Check the content store for an article with the same title and publish time.

    Store failures propagate as :class:`~postscraper.errors.ContentStoreError`.
    """

    def __init__(self, store: ContentStore) -> None:
        self.store = store

    def exists(self, title: str, published_at: datetime) -> bool:
        return self.store.find_article(title, published_at) is not None
