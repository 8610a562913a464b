"""Small typed helpers over BeautifulSoup queries."""

from __future__ import annotations

import re
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

__all__ = ["extract_body", "parse_fragment", "select_all", "select_first"]

_BODY_PATTERN = re.compile(r"<body[^>]*>(.*?)</body>", re.IGNORECASE | re.DOTALL)


def extract_body(html: str) -> Optional[str]:
    """Return the markup between the document's ``<body>`` tags, if present."""

    match = _BODY_PATTERN.search(html or "")
    if match is None:
        return None
    return match.group(1)


def parse_fragment(markup: str) -> BeautifulSoup:
    return BeautifulSoup(markup, "lxml")


def select_first(node: Tag, selector: str) -> Optional[Tag]:
    """Return the first element matching ``selector`` below ``node``."""

    found = node.select_one(selector)
    return found if isinstance(found, Tag) else None


def select_all(node: Tag, selector: str) -> List[Tag]:
    """Return every element matching ``selector`` below ``node`` in document order."""

    return [found for found in node.select(selector) if isinstance(found, Tag)]
