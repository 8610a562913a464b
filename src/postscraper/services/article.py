"""Parser for single article pages and rendering of their media placeholders."""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from typing import Dict, List, Mapping, Optional, Sequence
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from postscraper.errors import ParseError, ParseErrorKind
from postscraper.models import ArticleDocument, MediaItem, MediaKind, StoredMediaRef
from postscraper.services.html import extract_body, parse_fragment, select_all, select_first

__all__ = ["extract_media_item", "parse_article", "parse_srcset", "render_body"]

logger = logging.getLogger(__name__)

ARTICLE_CONTAINER = "#article"
TITLE = "header h1"
PUBLISHED_TIME = '.js-content-meta time[itemprop="datePublished"]'
ARTICLE_COLUMN = ".content__main-column--article"
ARTICLE_BODY = f"{ARTICLE_COLUMN} .content__article-body"
FEATURED_FIGURE = f"{ARTICLE_COLUMN} > figure"

IMAGE_MARKER = "element-image"
VIDEO_MARKER = "element-video"
SLOT_ATTRIBUTE = "data-media-slot"

_SRCSET_SPLIT = re.compile(r",\s*(?=(?:https?:)?//|/)")
_SRCSET_SPLIT_LOOSE = re.compile(r",\s+")
_DESCRIPTOR = re.compile(r"^(\d+(?:\.\d+)?)([wx])$")


def _best_candidate(srcset: str) -> tuple[Optional[str], float]:
    best_url: Optional[str] = None
    best_size = -1.0
    candidates = _SRCSET_SPLIT.split(srcset or "")
    if len(candidates) == 1:
        # Relative candidates such as "a.jpg 1x, b.jpg 2x".
        candidates = _SRCSET_SPLIT_LOOSE.split(candidates[0])
    for candidate in candidates:
        parts = candidate.strip().split()
        if not parts:
            continue
        size = 1.0
        if len(parts) > 1:
            match = _DESCRIPTOR.match(parts[-1])
            if match:
                size = float(match.group(1))
        if size > best_size:
            best_url, best_size = parts[0], size
    return best_url, best_size


def parse_srcset(srcset: str) -> Optional[str]:
    """Return the candidate URL with the largest width or density descriptor.

    >>> parse_srcset("https://x/a.jpg 140w, https://x/b.jpg 1000w")
    'https://x/b.jpg'
    """

    return _best_candidate(srcset)[0]


def _classify(figure: Tag) -> Optional[MediaKind]:
    classes = figure.get("class") or []
    if IMAGE_MARKER in classes:
        return MediaKind.IMAGE
    if VIDEO_MARKER in classes:
        return MediaKind.VIDEO
    return None


def _source_url(figure: Tag) -> Optional[str]:
    best: Optional[str] = None
    best_size = -1.0
    for source in select_all(figure, "picture source[srcset]"):
        url, size = _best_candidate(source["srcset"])
        if url is not None and size > best_size:
            best, best_size = url, size
    if best:
        return best

    for selector, attribute in (("img[src]", "src"), ("video source[src]", "src"), ("video[src]", "src")):
        node = select_first(figure, selector)
        if node is not None and node.get(attribute):
            return node[attribute]
    return None


def extract_media_item(figure: Tag, base_url: Optional[str] = None) -> Optional[MediaItem]:
    """Build a :class:`MediaItem` from a ``<figure>``, or ``None`` if it is not media."""

    kind = _classify(figure)
    if kind is None:
        return None

    url = _source_url(figure)
    if not url:
        logger.debug("Skipping %s figure without a usable source", kind.value)
        return None
    if base_url:
        try:
            url = urljoin(base_url, url)
        except ValueError as exc:
            logger.warning("Skipping %s figure with malformed source %r: %s", kind.value, url, exc)
            return None

    caption = None
    caption_node = select_first(figure, "figcaption")
    if caption_node is not None:
        caption = caption_node.get_text(" ", strip=True) or None

    return MediaItem(kind=kind, source_url=url, caption=caption)


def _published_at(container: Tag) -> datetime:
    now = datetime.now(UTC).replace(microsecond=0)
    node = select_first(container, PUBLISHED_TIME)
    if node is None:
        return now

    raw = node.get("data-timestamp")
    try:
        return datetime.fromtimestamp(int(raw) // 1000, UTC)
    except (TypeError, ValueError, OverflowError, OSError):
        logger.warning("Malformed publish timestamp %r; using the current time", raw)
        return now


def parse_article(html: str, base_url: Optional[str] = None) -> ArticleDocument:
    """Parse an article page into an :class:`ArticleDocument`.

    Raises :class:`~postscraper.errors.ParseError` when the page has no body or
    no article container. A missing title, date or body container is tolerated.
    ``base_url`` is used to absolutise media URLs.
    """

    body = extract_body(html)
    if body is None:
        raise ParseError(ParseErrorKind.STRUCTURE, "Article page has no <body>")

    soup = parse_fragment(body)
    container = select_first(soup, ARTICLE_CONTAINER)
    if container is None:
        raise ParseError(ParseErrorKind.STRUCTURE, f"Article page has no {ARTICLE_CONTAINER} container")

    title_node = select_first(container, TITLE)
    title = " ".join(title_node.stripped_strings) if title_node is not None else ""

    featured_media = None
    featured_node = select_first(container, FEATURED_FIGURE)
    if featured_node is not None:
        featured_media = extract_media_item(featured_node, base_url)

    body_markup = ""
    media_items: List[MediaItem] = []
    content = select_first(container, ARTICLE_BODY)
    if content is not None:
        for aside in select_all(content, "aside"):
            aside.decompose()

        slots: Dict[str, int] = {}
        for figure in select_all(content, "figure"):
            item = extract_media_item(figure, base_url)
            if item is None:
                continue
            if item.source_url not in slots:
                slots[item.source_url] = len(media_items)
                media_items.append(item)
            placeholder = soup.new_tag("figure", attrs={SLOT_ATTRIBUTE: str(slots[item.source_url])})
            figure.replace_with(placeholder)

        body_markup = content.decode_contents().strip()

    return ArticleDocument(
        title=title,
        published_at=_published_at(container),
        body_markup=body_markup,
        media_items=media_items,
        featured_media=featured_media,
    )


def _render_figure(soup: BeautifulSoup, item: MediaItem, ref: StoredMediaRef) -> Tag:
    figure = soup.new_tag("figure", attrs={"class": f"media media--{item.kind.value}"})
    if item.kind is MediaKind.VIDEO:
        player = soup.new_tag(
            "video", attrs={"src": ref.url, "controls": "", "data-media-id": ref.id, "type": ref.mime_type}
        )
        figure.append(player)
    else:
        picture = soup.new_tag("picture")
        picture.append(
            soup.new_tag("img", attrs={"src": ref.url, "alt": item.caption or "", "data-media-id": ref.id})
        )
        figure.append(picture)
    if item.caption:
        caption = soup.new_tag("figcaption")
        caption.string = item.caption
        figure.append(caption)
    return figure


def render_body(
    body_markup: str,
    media_items: Sequence[MediaItem],
    refs: Mapping[int, StoredMediaRef],
) -> str:
    """Replace media placeholders with figures pointing at imported media.

    ``refs`` maps an index of ``media_items`` to its stored reference. Slots
    without a reference (failed imports) are removed from the markup.
    """

    soup = BeautifulSoup(body_markup, "html.parser")
    for placeholder in soup.find_all("figure", attrs={SLOT_ATTRIBUTE: True}):
        try:
            index = int(placeholder[SLOT_ATTRIBUTE])
        except ValueError:
            placeholder.decompose()
            continue
        ref = refs.get(index)
        if ref is None or index >= len(media_items):
            placeholder.decompose()
            continue
        placeholder.replace_with(_render_figure(soup, media_items[index], ref))
    return str(soup)
