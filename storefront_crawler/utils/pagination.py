from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .parsing import normalize_url

_NEXT_TEXT = re.compile(r"^(next(\s+page)?\s*[›»→>]?|[›»])$", re.IGNORECASE)
_NEXT_SYMBOLS = ("›", "»")


def _classes(tag) -> str:
    return " ".join(tag.get("class") or []).lower()


def _is_next_anchor(anchor) -> bool:
    rel = [r.lower() for r in (anchor.get("rel") or [])]
    if "next" in rel:
        return True

    text = anchor.get_text(" ", strip=True)
    classes = _classes(anchor)
    if "next" in classes.split() and text:
        return True
    if _NEXT_TEXT.match(text) or text in _NEXT_SYMBOLS:
        return True

    # Inside a pagination widget, arrows may sit beside other glyphs ("Next ›").
    in_pagination = "pagination" in classes or any(
        "pagination" in _classes(parent) for parent in anchor.parents if parent.name
    )
    lowered = text.lower()
    return in_pagination and ("next" in lowered or any(s in text for s in _NEXT_SYMBOLS))


def find_next_page_url(html: str | BeautifulSoup, page_url: str) -> Optional[str]:
    """
    Return the absolute URL of the page after ``page_url``, or None on the last page.
    """
    soup = html if isinstance(html, BeautifulSoup) else BeautifulSoup(html or "", "html.parser")
    for anchor in soup.select("a[href]"):
        href = (anchor.get("href") or "").strip()
        if not href or href.startswith(("#", "javascript:", "mailto:")):
            continue
        if _is_next_anchor(anchor):
            return normalize_url(urljoin(page_url, href))
    return None
