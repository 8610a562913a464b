"""Download embedded media and import it into the content store."""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlparse

from postscraper.contentstore import ContentStore
from postscraper.errors import ContentStoreError, FetchError, ImportErrorKind, MediaImportError
from postscraper.models import MediaItem, StoredMediaRef
from postscraper.services.fetcher import DocumentFetcher

__all__ = ["MediaImporter", "download_filename"]

logger = logging.getLogger(__name__)


def download_filename(url: str) -> str:
    """Return the final path segment of ``url`` for use as a local filename."""

    name = PurePosixPath(unquote(urlparse(url).path)).name
    return name or "media"


class MediaImporter:
    """Fetch a :class:`MediaItem` to a temporary file and hand it to the store."""

    def __init__(self, fetcher: DocumentFetcher, store: ContentStore) -> None:
        self.fetcher = fetcher
        self.store = store

    def import_media(self, item: MediaItem, temp_dir: Path) -> StoredMediaRef:
        """Import ``item`` and return the stored reference.

        The temporary download is removed whether or not the import succeeds.
        Raises :class:`~postscraper.errors.MediaImportError`.
        """

        filename = download_filename(item.source_url)
        temp_path = Path(temp_dir) / filename
        try:
            try:
                self.fetcher.download(item.source_url, temp_path)
                data = temp_path.read_bytes()
            except (FetchError, OSError) as exc:
                raise MediaImportError(
                    ImportErrorKind.DOWNLOAD_FAILED, item.source_url, str(exc)
                ) from exc

            try:
                ref = self.store.import_media(data, filename)
            except ContentStoreError as exc:
                raise MediaImportError(
                    ImportErrorKind.STORE_REJECTED, item.source_url, str(exc)
                ) from exc
        finally:
            try:
                temp_path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Could not remove temporary file %s: %s", temp_path, exc)

        logger.info("Imported %s %s as %s (%s)", item.kind.value, item.source_url, ref.id, ref.mime_type)
        return ref
