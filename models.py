from __future__ import annotations

import time
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, List, Optional

GENRES = [
    "Novel",
    "Essay",
    "Science",
    "History",
    "Biography",
    "Fantasy",
    "Mystery",
    "Other",
]
DEFAULT_GENRE = "Other"

NOT_STARTED = "Not started"
IN_PROGRESS = "In progress"
FINISHED = "Finished"
READING_STATUSES = [NOT_STARTED, IN_PROGRESS, FINISHED]

# Labels written by older data files.
_LEGACY_STATUSES = {
    "non lu": NOT_STARTED,
    "en cours de lecture": IN_PROGRESS,
    "lu": FINISHED,
}


def now_millis() -> int:
    return int(time.time() * 1000)


def normalize_reading_status(value: Optional[str]) -> str:
    if value is None or not str(value).strip():
        return NOT_STARTED
    value = str(value).strip()
    return _LEGACY_STATUSES.get(value.lower(), value)


@dataclass
class Book:
    title: str
    author: str
    year: int
    genre: str = DEFAULT_GENRE
    available: bool = True
    reading_status: str = NOT_STARTED
    summary: Optional[str] = None
    cover_url: Optional[str] = None
    added_at: Optional[int] = None
    borrowed_at: Optional[int] = None

    def __post_init__(self) -> None:
        self.reading_status = normalize_reading_status(self.reading_status)

    def copy(self) -> "Book":
        return replace(self)

    # ------------------------------------------------------------------ #
    # JSON
    # ------------------------------------------------------------------ #
    def to_json(self) -> Dict[str, Any]:
        """Return the on-disk representation with camelCase keys."""
        return {
            "title": self.title,
            "author": self.author,
            "year": self.year,
            "genre": self.genre,
            "available": self.available,
            "readingStatus": self.reading_status,
            "summary": self.summary,
            "coverUrl": self.cover_url,
            "addedAt": self.added_at,
            "borrowedAt": self.borrowed_at,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Book":
        try:
            year = int(data.get("year") or 0)
        except (TypeError, ValueError):
            year = 0
        return cls(
            title=data.get("title") or "",
            author=data.get("author") or "",
            year=year,
            genre=data.get("genre") or DEFAULT_GENRE,
            available=bool(data.get("available", False)),
            reading_status=data.get("readingStatus"),
            summary=data.get("summary"),
            cover_url=data.get("coverUrl"),
            added_at=_optional_int(data.get("addedAt")),
            borrowed_at=_optional_int(data.get("borrowedAt")),
        )

    def __str__(self) -> str:
        return f"{self.title} — {self.author} ({self.year})"


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def local_datetime(epoch_millis: Optional[int]) -> Optional[datetime]:
    if epoch_millis is None or epoch_millis <= 0:
        return None
    return datetime.fromtimestamp(epoch_millis / 1000)


def books_from_json(items: Any) -> List[Book]:
    """Decode a JSON array of books, skipping entries that are not objects."""
    if not isinstance(items, list):
        return []
    return [Book.from_json(item) for item in items if isinstance(item, dict)]


def books_to_json(books: List[Book]) -> List[Dict[str, Any]]:
    return [book.to_json() for book in books]
