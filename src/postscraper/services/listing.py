"""Parser for paginated article listing pages."""

from __future__ import annotations

import logging

from postscraper.models import ListingPage
from postscraper.services.html import extract_body, parse_fragment, select_all, select_first

__all__ = ["parse_listing"]

logger = logging.getLogger(__name__)

INDEX_CONTAINER = "div.index-page"
ARTICLE_LINKS = "section .fc-item__container .fc-item__content a"
NEXT_PAGE_LINK = ".fc-container__pagination .pagination__list [rel=next]"


def parse_listing(html: str) -> ListingPage:
    """Extract article URLs and the next listing URL from ``html``.

    Missing markup never raises: a page without a body or without the index
    container yields an empty :class:`ListingPage` with no next page.
    """

    body = extract_body(html)
    if body is None:
        logger.warning("Listing page has no <body>; treating it as empty")
        return ListingPage(source_html=html or "")

    container = select_first(parse_fragment(body), INDEX_CONTAINER)
    if container is None:
        logger.warning("Listing page has no %s container; treating it as empty", INDEX_CONTAINER)
        return ListingPage(source_html=html)

    article_urls = [
        anchor["href"] for anchor in select_all(container, ARTICLE_LINKS) if anchor.get("href")
    ]

    next_url = None
    next_link = select_first(container, NEXT_PAGE_LINK)
    if next_link is not None and next_link.get("href"):
        next_url = next_link["href"]

    return ListingPage(source_html=html, article_urls=article_urls, next_url=next_url)
