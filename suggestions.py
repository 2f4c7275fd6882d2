from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests

from categories import map_category

logger = logging.getLogger(__name__)

GOOGLE_BOOKS_URL = "https://www.googleapis.com/books/v1/volumes"
MAX_RESULTS = 5
REQUEST_TIMEOUT = 8
MIN_QUERY_LENGTH = 2

IMAGE_PREFERENCE = ("extraLarge", "large", "medium", "small", "thumbnail", "smallThumbnail")


@dataclass
class Candidate:
    """Metadata suggested for the add/edit form. Never applied automatically."""

    title: str
    author: Optional[str] = None
    year: Optional[int] = None
    genre: Optional[str] = None
    summary: Optional[str] = None
    cover_url: Optional[str] = None

    def __str__(self) -> str:
        if self.author:
            return f"{self.title} — {self.author}"
        return self.title


def _first_string(values: Any) -> Optional[str]:
    if isinstance(values, list) and values and isinstance(values[0], str):
        return values[0]
    return None


def _leading_year(published: Any) -> Optional[int]:
    if not isinstance(published, str) or len(published) < 4:
        return None
    prefix = published[:4]
    if not prefix.isdigit():
        return None
    return int(prefix)


def _best_cover(image_links: Any) -> Optional[str]:
    if not isinstance(image_links, dict):
        return None
    for key in IMAGE_PREFERENCE:
        candidate = image_links.get(key)
        if isinstance(candidate, str):
            if candidate.startswith("http:"):
                candidate = "https:" + candidate[len("http:"):]
            return candidate
    return None


def parse_volumes(payload: Dict[str, Any]) -> List[Candidate]:
    """Turn a Google Books ``volumes`` response into candidates.

    Volumes without a title are dropped. Only the first author and the first
    category are used.
    """
    results: List[Candidate] = []
    items = payload.get("items")
    if not isinstance(items, list):
        return results
    for item in items:
        if not isinstance(item, dict):
            continue
        info = item.get("volumeInfo")
        if not isinstance(info, dict):
            continue
        title = info.get("title")
        if not isinstance(title, str):
            continue
        category = _first_string(info.get("categories"))
        description = info.get("description")
        results.append(
            Candidate(
                title=title,
                author=_first_string(info.get("authors")),
                year=_leading_year(info.get("publishedDate")),
                genre=map_category(category) if category else None,
                summary=description if isinstance(description, str) else None,
                cover_url=_best_cover(info.get("imageLinks")),
            )
        )
    return results


def fetch_suggestions(
    query: str,
    *,
    session: Optional[requests.Session] = None,
    max_results: int = MAX_RESULTS,
) -> Optional[List[Candidate]]:
    """Query Google Books for ``query``.

    Returns ``None`` on any network or decoding failure. Suggestions are a
    best-effort extra, so failures are logged and never raised.
    """
    http = session or requests
    try:
        response = http.get(
            GOOGLE_BOOKS_URL,
            params={"q": query, "maxResults": str(max_results)},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as error:
        logger.debug("Suggestion lookup for %r failed: %s", query, error)
        return None
    if not isinstance(payload, dict):
        logger.debug("Unexpected suggestion payload for %r", query)
        return None
    try:
        return parse_volumes(payload)
    except (AttributeError, TypeError, ValueError) as error:
        logger.debug("Could not parse suggestions for %r: %s", query, error)
        return None


class SuggestionFetcher:
    """Runs lookups off the interactive thread.

    ``dispatch`` hands a callable back to the thread that owns the form state,
    e.g. ``lambda fn: root.after(0, fn)`` for Tkinter. Without it, callbacks
    run on the worker thread.
    """

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        dispatch: Optional[Callable[[Callable[[], None]], None]] = None,
        max_results: int = MAX_RESULTS,
    ):
        self.session = session
        self.dispatch = dispatch or (lambda fn: fn())
        self.max_results = max_results

    def request(
        self,
        query: str,
        on_result: Callable[[List[Candidate]], None],
    ) -> threading.Thread:
        thread = threading.Thread(
            target=self._lookup_thread, args=(query, on_result), daemon=True
        )
        thread.start()
        return thread

    def _lookup_thread(
        self, query: str, on_result: Callable[[List[Candidate]], None]
    ) -> None:
        candidates = fetch_suggestions(
            query, session=self.session, max_results=self.max_results
        )
        if candidates is None:
            return
        self.dispatch(lambda: on_result(candidates))
