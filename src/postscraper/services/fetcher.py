"""HTTP access for listing pages, article pages and media files."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import requests
import urllib3

from postscraper.config import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT, RunConfig
from postscraper.errors import FetchError, FetchErrorKind

__all__ = ["DEFAULT_HEADERS", "DocumentFetcher", "RawDocument"]

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": DEFAULT_USER_AGENT,
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
}

DOWNLOAD_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class RawDocument:
    """Body of a fetched page along with the URL it was finally served from."""

    text: str
    url: str
    status_code: int = 200


class DocumentFetcher:
    """Issue GET requests with a fixed identity and TLS policy.

    Redirects are always followed. Certificate verification follows
    ``verify_tls``; when it is off the urllib3 warning is silenced since it
    would otherwise be emitted for every request of a run. No retries are
    attempted here.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        verify_tls: bool = False,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._session = session or requests.Session()
        self._session.headers.update({**DEFAULT_HEADERS, "User-Agent": user_agent})
        self.timeout = timeout
        self.verify_tls = verify_tls
        if not verify_tls:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    @classmethod
    def from_config(cls, config: RunConfig, session: requests.Session | None = None) -> "DocumentFetcher":
        return cls(
            session,
            timeout=config.timeout,
            verify_tls=config.verify_tls,
            user_agent=config.user_agent,
        )

    def _get(self, url: str, **kwargs) -> requests.Response:
        try:
            response = self._session.get(
                url,
                timeout=self.timeout,
                verify=self.verify_tls,
                allow_redirects=True,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise FetchError(FetchErrorKind.TRANSPORT, url, str(exc)) from exc

        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            response.close()
            raise FetchError(
                FetchErrorKind.HTTP, url, str(exc), status_code=response.status_code
            ) from exc
        return response

    def fetch(self, url: str) -> RawDocument:
        """Return the body of ``url`` as text.

        Raises :class:`~postscraper.errors.FetchError` for transport failures
        and 4xx/5xx responses.
        """

        response = self._get(url)
        logger.debug("Fetched %s (%s)", url, response.status_code)
        return RawDocument(text=response.text, url=response.url or url, status_code=response.status_code)

    def download(self, url: str, destination: Path) -> Path:
        """Stream ``url`` into ``destination`` and return the written path."""

        response = self._get(url, stream=True)
        destination.parent.mkdir(parents=True, exist_ok=True)
        try:
            with destination.open("wb") as file:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        file.write(chunk)
        except requests.RequestException as exc:
            raise FetchError(FetchErrorKind.TRANSPORT, url, str(exc)) from exc
        finally:
            response.close()
        return destination
