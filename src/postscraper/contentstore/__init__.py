"""File backed content store holding scraped articles and their media."""

from __future__ import annotations

import json
import mimetypes
import os
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

from filetype import guess

from postscraper.errors import ContentStoreError
from postscraper.models import StoredArticle, StoredMediaRef, TIMESTAMP_FORMAT

_PACKAGE_DIR = Path(__file__).resolve().parent

#: Name of the directory under :mod:`postscraper.contentstore` that contains the data.
DEFAULT_STORE_SUBDIR = "data"

#: Default location where articles and media are stored.
DEFAULT_STORE_ROOT = Path(os.environ.get("POSTSCRAPER_STORE", _PACKAGE_DIR / DEFAULT_STORE_SUBDIR))

ARTICLES_INDEX = "articles.json"
MEDIA_INDEX = "media.json"
ACCEPTED_MEDIA_TYPES = ("image/", "video/")

_Pathish = Union[str, Path]


def resolve_store_root(store_root: _Pathish | None = None) -> Path:
    """Return a :class:`Path` pointing at the store root.

    When ``None`` is provided, :data:`DEFAULT_STORE_ROOT` is returned. The path
    is not created on disk; writes create the directories they need.
    """

    if store_root is None:
        return DEFAULT_STORE_ROOT
    if isinstance(store_root, Path):
        return store_root
    return Path(store_root)


def infer_mime_type(filename: str, data: bytes = b"") -> Optional[str]:
    """Guess a mime type from the file extension, then from the file signature."""

    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type:
        return mime_type
    kind = guess(data) if data else None
    if kind:
        return kind.mime
    return None


class ContentStore(Protocol):
    """Operations the scraper needs from the system of record."""

    def find_article(self, title: str, published_at: datetime) -> Optional[str]: ...

    def create_article(self, title: str, published_at: datetime, body: str) -> str: ...

    def import_media(self, data: bytes, suggested_name: str) -> StoredMediaRef: ...

    def attach_media(self, media_id: str, article_id: str) -> None: ...

    def set_cover_image(self, article_id: str, media_id: str) -> None: ...

    def list_articles(self) -> List[StoredArticle]: ...


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as file:
        json.dump(payload, file, ensure_ascii=False, indent=2)


def _article_key(title: str, published_at: datetime) -> str:
    return f"{published_at.strftime(TIMESTAMP_FORMAT)}|{title}"


class FileContentStore:
    """Content store keeping JSON documents and media files below ``root``."""

    def __init__(self, root: _Pathish | None = None) -> None:
        self.root = resolve_store_root(root)

    @property
    def media_dir(self) -> Path:
        return self.root / "media"

    def _read_index(self, filename: str) -> Dict[str, Any]:
        index_path = self.root / filename
        if not index_path.exists():
            return {}
        try:
            with index_path.open("r", encoding="utf-8") as file:
                data = json.load(file)
        except (OSError, json.JSONDecodeError) as exc:
            raise ContentStoreError(f"Unreadable index {index_path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ContentStoreError(f"Index {index_path} must contain a JSON object")
        return data

    def _article_path(self, article_id: str) -> Path:
        return self.root / "articles" / f"{article_id}.json"

    def _load_article(self, article_id: str) -> Dict[str, Any]:
        path = self._article_path(article_id)
        try:
            with path.open("r", encoding="utf-8") as file:
                return json.load(file)
        except FileNotFoundError as exc:
            raise ContentStoreError(f"Unknown article {article_id}") from exc
        except (OSError, json.JSONDecodeError) as exc:
            raise ContentStoreError(f"Unreadable article {path}: {exc}") from exc

    def find_article(self, title: str, published_at: datetime) -> Optional[str]:
        """Return the id of the article stored under ``(title, published_at)``."""

        return self._read_index(ARTICLES_INDEX).get(_article_key(title, published_at))

    def create_article(self, title: str, published_at: datetime, body: str) -> str:
        index = self._read_index(ARTICLES_INDEX)
        key = _article_key(title, published_at)
        if key in index:
            raise ContentStoreError(f"Article already stored: {title!r} at {published_at}")

        article = StoredArticle(
            id=uuid.uuid4().hex,
            title=title,
            published_at=published_at.strftime(TIMESTAMP_FORMAT),
            body=body,
            created_at=datetime.now(UTC).isoformat(),
        )
        try:
            _write_json(self._article_path(article.id), article.model_dump())
            index[key] = article.id
            _write_json(self.root / ARTICLES_INDEX, index)
        except OSError as exc:
            raise ContentStoreError(f"Failed to store article {title!r}: {exc}") from exc
        return article.id

    def import_media(self, data: bytes, suggested_name: str) -> StoredMediaRef:
        """Store ``data`` in the media library without attaching it to an article."""

        filename = Path(suggested_name).name or "media"
        mime_type = infer_mime_type(filename, data)
        if not mime_type or not mime_type.startswith(ACCEPTED_MEDIA_TYPES):
            raise ContentStoreError(f"Unsupported media type for {filename}: {mime_type}")
        if not data:
            raise ContentStoreError(f"Refusing to store empty media file {filename}")

        media_id = uuid.uuid4().hex
        stored_name = f"{media_id}-{filename}"
        index = self._read_index(MEDIA_INDEX)
        try:
            self.media_dir.mkdir(parents=True, exist_ok=True)
            (self.media_dir / stored_name).write_bytes(data)
            index[media_id] = {
                "filename": stored_name,
                "title": Path(filename).stem,
                "mime_type": mime_type,
                "parent_id": None,
            }
            _write_json(self.root / MEDIA_INDEX, index)
        except OSError as exc:
            raise ContentStoreError(f"Failed to store media {filename}: {exc}") from exc

        return StoredMediaRef(id=media_id, mime_type=mime_type, url=f"media/{stored_name}")

    def attach_media(self, media_id: str, article_id: str) -> None:
        index = self._read_index(MEDIA_INDEX)
        if media_id not in index:
            raise ContentStoreError(f"Unknown media {media_id}")
        index[media_id]["parent_id"] = article_id
        try:
            _write_json(self.root / MEDIA_INDEX, index)
        except OSError as exc:
            raise ContentStoreError(f"Failed to attach media {media_id}: {exc}") from exc

    def set_cover_image(self, article_id: str, media_id: str) -> None:
        article = self._load_article(article_id)
        if media_id not in self._read_index(MEDIA_INDEX):
            raise ContentStoreError(f"Unknown media {media_id}")
        article["cover_media_id"] = media_id
        try:
            _write_json(self._article_path(article_id), article)
        except OSError as exc:
            raise ContentStoreError(f"Failed to set cover of {article_id}: {exc}") from exc

    def get_article(self, article_id: str) -> StoredArticle:
        return StoredArticle(**self._load_article(article_id))

    def list_articles(self) -> List[StoredArticle]:
        """Return every stored article, oldest publish date first."""

        index = self._read_index(ARTICLES_INDEX)
        articles = [self.get_article(article_id) for article_id in index.values()]
        return sorted(articles, key=lambda article: article.published_at)


__all__ = [
    "ContentStore",
    "DEFAULT_STORE_ROOT",
    "DEFAULT_STORE_SUBDIR",
    "FileContentStore",
    "infer_mime_type",
    "resolve_store_root",
]
