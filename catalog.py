from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from library import LibraryStore
from models import Book, local_datetime, normalize_reading_status, now_millis

logger = logging.getLogger(__name__)

ALL_STATUSES = "All"


# --------------------------------------------------------------------------- #
# Filtering and sorting
# --------------------------------------------------------------------------- #
@dataclass
class BookFilter:
    query: str = ""
    genre: Optional[str] = None
    available_only: bool = False
    reading_status: Optional[str] = None

    def matches(self, book: Book) -> bool:
        query = (self.query or "").strip().lower()
        if query and query not in (book.title or "").lower():
            return False
        if self.genre and self.genre.strip() and self.genre != book.genre:
            return False
        if self.available_only and not book.available:
            return False
        status = (self.reading_status or "").strip()
        if status and status.lower() != ALL_STATUSES.lower():
            if status.lower() != (book.reading_status or "").lower():
                return False
        return True

    def apply(self, books: Iterable[Book]) -> List[Book]:
        return [book for book in books if self.matches(book)]


def collect_genres(books: Iterable[Book]) -> List[str]:
    """Distinct non-blank genres, sorted for display."""
    return sorted({book.genre for book in books if book.genre and book.genre.strip()})


def _added_date_key(book: Book) -> Tuple[int, Any]:
    # Missing dates sort before any real date; only the calendar day counts.
    moment = local_datetime(book.added_at)
    if moment is None:
        return (0, None)
    return (1, moment.date())


SORT_KEYS: Dict[str, Callable[[Book], Any]] = {
    "title": lambda book: (book.title or "").lower(),
    "author": lambda book: (book.author or "").lower(),
    "year": lambda book: book.year,
    "genre": lambda book: (book.genre or "").lower(),
    "available": lambda book: book.available,
    "reading_status": lambda book: (book.reading_status or "").lower(),
    "added_at": _added_date_key,
}


def sort_books(books: Iterable[Book], column: str = "title", *, descending: bool = False) -> List[Book]:
    """Stable sort on one column; equal keys keep their relative order."""
    try:
        key = SORT_KEYS[column]
    except KeyError:
        raise ValueError(f"Unknown sort column: {column}") from None
    return sorted(books, key=key, reverse=descending)


def stamp_missing_added_at(books: Iterable[Book], now: Optional[int] = None) -> None:
    now = now if now is not None else now_millis()
    for book in books:
        if book.added_at is None or book.added_at <= 0:
            book.added_at = now


def sync_borrowed_at(book: Book, *, was_available: Optional[bool] = None, now: Optional[int] = None) -> None:
    """Keep ``borrowed_at`` set exactly when the book is out on loan."""
    if book.available:
        book.borrowed_at = None
        return
    if was_available or book.borrowed_at is None:
        book.borrowed_at = now if now is not None else now_millis()


# --------------------------------------------------------------------------- #
# Controller
# --------------------------------------------------------------------------- #
class CollectionController:
    """Holds the active collection and the filtered view shown to the user.

    Every structural change is pushed to the store straight away; the store
    takes care of batching the disk writes.
    """

    def __init__(self, store: LibraryStore):
        self.store = store
        self.filter = BookFilter()
        self.current = store.get_current_collection()
        self.books: List[Book] = []
        self.genres: List[str] = []
        self._load(self.current)

    def _load(self, name: str) -> None:
        books = self.store.load_collection(name)
        stamp_missing_added_at(books)
        self.books = books
        self.refresh_genres()

    def refresh_genres(self) -> None:
        self.genres = collect_genres(self.books)

    # ------------------------------------------------------------------ #
    # Views
    # ------------------------------------------------------------------ #
    @property
    def visible_books(self) -> List[Book]:
        return self.filter.apply(self.books)

    def sorted_books(self, column: str = "title", *, descending: bool = False) -> List[Book]:
        return sort_books(self.visible_books, column, descending=descending)

    def collections(self) -> List[str]:
        return self.store.list_collections()

    # ------------------------------------------------------------------ #
    # Filters
    # ------------------------------------------------------------------ #
    def set_query(self, query: str) -> None:
        self.filter.query = query or ""

    def set_genre(self, genre: Optional[str]) -> None:
        self.filter.genre = genre

    def set_available_only(self, available_only: bool) -> None:
        self.filter.available_only = bool(available_only)

    def set_reading_status(self, status: Optional[str]) -> None:
        self.filter.reading_status = status

    def reset_filters(self) -> None:
        self.filter = BookFilter()

    # ------------------------------------------------------------------ #
    # Books
    # ------------------------------------------------------------------ #
    def save(self) -> None:
        self.store.save_collection(self.current, self.books)

    def reload(self) -> None:
        self._load(self.current)

    def add_book(self, book: Book) -> Book:
        if book.added_at is None or book.added_at <= 0:
            book.added_at = now_millis()
        sync_borrowed_at(book)
        self.books.append(book)
        self.refresh_genres()
        self.save()
        return book

    def edit_book(self, target: Book, updated: Book) -> Book:
        """Copy the editable fields of ``updated`` onto ``target``."""
        was_available = target.available
        target.title = updated.title
        target.author = updated.author
        target.year = updated.year
        target.genre = updated.genre
        target.summary = updated.summary
        target.cover_url = updated.cover_url
        target.reading_status = normalize_reading_status(updated.reading_status)
        target.available = updated.available
        sync_borrowed_at(target, was_available=was_available)
        self.refresh_genres()
        self.save()
        return target

    def delete_book(self, book: Book) -> bool:
        for index, candidate in enumerate(self.books):
            if candidate is book:
                del self.books[index]
                break
        else:
            return False
        self.refresh_genres()
        self.save()
        return True

    # ------------------------------------------------------------------ #
    # Collections
    # ------------------------------------------------------------------ #
    def switch_collection(self, name: Optional[str]) -> bool:
        """Save the outgoing collection, then load ``name`` and make it current."""
        if not name or name == self.current:
            return False
        if name not in self.store.list_collections():
            return False
        self.save()
        self.current = name
        self.store.set_current_collection(name)
        self._load(name)
        self.reset_filters()
        return True

    def create_collection(self, name: Optional[str]) -> bool:
        name = (name or "").strip()
        if not name:
            return False
        self.save()
        if not self.store.create_collection(name):
            logger.info("Collection %r already exists.", name)
            return False
        self.current = name
        self._load(name)
        self.reset_filters()
        return True

    def rename_collection(self, new_name: Optional[str]) -> bool:
        new_name = (new_name or "").strip()
        if not self.store.rename_collection(self.current, new_name):
            return False
        self.current = new_name
        return True

    def delete_collection(self) -> bool:
        """Delete the active collection and move to whichever the store picks."""
        if not self.store.delete_collection(self.current):
            return False
        self.current = self.store.get_current_collection()
        self._load(self.current)
        self.reset_filters()
        return True
