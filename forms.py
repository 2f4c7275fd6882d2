from __future__ import annotations

import logging
import re
from typing import List, Optional

from models import DEFAULT_GENRE, NOT_STARTED, Book, normalize_reading_status, now_millis
from suggestions import MIN_QUERY_LENGTH, Candidate, SuggestionFetcher

logger = logging.getLogger(__name__)

MAX_YEAR = 9999
_YEAR_RE = re.compile(r"[+-]?[0-9]+")


class BookValidationError(ValueError):
    """Raised when the add/edit form holds values that cannot be saved."""

    def __init__(self, errors: List[str]):
        super().__init__("\n".join(errors))
        self.errors = errors


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


class BookForm:
    """State behind the add/edit dialog, independent of any widget toolkit."""

    def __init__(self, initial: Optional[Book] = None):
        self.initial = initial
        self.initial_title: Optional[str] = None
        self.title_modified = False
        self.suggestions: List[Candidate] = []
        self.closed = False
        if initial is not None:
            self.initial_title = initial.title or ""
            self.title = initial.title or ""
            self.author = initial.author or ""
            self.year = str(initial.year)
            self.genre: Optional[str] = initial.genre
            self.reading_status: Optional[str] = initial.reading_status
            self.available = initial.available
            self.summary = initial.summary or ""
            self.cover_url = initial.cover_url or ""
        else:
            self.title = ""
            self.author = ""
            self.year = ""
            self.genre = None
            self.reading_status = NOT_STARTED
            self.available = True
            self.summary = ""
            self.cover_url = ""

    @property
    def editing(self) -> bool:
        return self.initial is not None

    # ------------------------------------------------------------------
    # Title tracking and suggestions
    # ------------------------------------------------------------------
    def set_title(self, text: Optional[str]) -> None:
        self.title = text or ""
        query = _clean(text)
        if self.initial_title is not None:
            self.title_modified = query != self.initial_title.strip()
        else:
            self.title_modified = bool(query)
        if len(query) < MIN_QUERY_LENGTH:
            self.suggestions = []

    def can_suggest(self) -> bool:
        query = _clean(self.title)
        if self.closed or len(query) < MIN_QUERY_LENGTH:
            return False
        return not self.editing or self.title_modified

    def request_suggestions(self, fetcher: SuggestionFetcher) -> bool:
        if not self.can_suggest():
            self.suggestions = []
            return False
        fetcher.request(_clean(self.title), self.receive_suggestions)
        return True

    def receive_suggestions(self, candidates: List[Candidate]) -> None:
        if not self.can_suggest():
            logger.debug("Discarding %d late suggestions.", len(candidates))
            self.suggestions = []
            return
        self.suggestions = list(candidates)

    def apply_suggestion(self, candidate: Candidate) -> None:
        if candidate.title:
            self.title = candidate.title
        if candidate.author:
            self.author = candidate.author
        if candidate.year is not None:
            self.year = str(candidate.year)

        current_genre = _clean(self.genre)
        if candidate.genre and candidate.genre.strip():
            if not current_genre or current_genre == DEFAULT_GENRE:
                self.genre = candidate.genre
        elif not current_genre:
            self.genre = DEFAULT_GENRE

        if not _clean(self.summary) and candidate.summary and candidate.summary.strip():
            self.summary = candidate.summary
        if not _clean(self.cover_url) and candidate.cover_url and candidate.cover_url.strip():
            self.cover_url = candidate.cover_url
        self.suggestions = []

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def validate(self) -> List[str]:
        errors: List[str] = []
        if not _clean(self.title):
            errors.append("Title is required.")
        if not _clean(self.author):
            errors.append("Author is required.")
        year_text = _clean(self.year)
        if not year_text:
            errors.append("Year is required (4 digits).")
        elif not _YEAR_RE.fullmatch(year_text):
            errors.append("Year must be a number.")
        elif not 0 <= int(year_text) <= MAX_YEAR:
            errors.append(f"Year must be between 0 and {MAX_YEAR}.")
        return errors

    def submit(self, now: Optional[int] = None) -> Book:
        errors = self.validate()
        if errors:
            raise BookValidationError(errors)

        now = now if now is not None else now_millis()
        book = Book(
            title=_clean(self.title),
            author=_clean(self.author),
            year=int(_clean(self.year)),
            genre=self.genre or DEFAULT_GENRE,
            available=self.available,
            reading_status=normalize_reading_status(self.reading_status),
            summary=_clean(self.summary) or None,
            cover_url=_clean(self.cover_url) or None,
            added_at=now,
            borrowed_at=None if self.available else now,
        )
        self.close()
        return book

    def close(self) -> None:
        self.closed = True
        self.suggestions = []
