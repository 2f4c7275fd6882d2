from __future__ import annotations

from typing import Callable, List, Tuple

import pytest

from forms import BookForm, BookValidationError
from models import DEFAULT_GENRE, FINISHED, NOT_STARTED, Book
from suggestions import Candidate


class RecordingFetcher:
    def __init__(self) -> None:
        self.requests: List[Tuple[str, Callable[[List[Candidate]], None]]] = []

    def request(self, query: str, on_result: Callable[[List[Candidate]], None]) -> None:
        self.requests.append((query, on_result))


DUNE = Candidate(
    title="Dune",
    author="Frank Herbert",
    year=1965,
    genre="Novel",
    summary="A desert planet.",
    cover_url="https://books.example/dune.jpg",
)


def _existing() -> Book:
    return Book(
        title="Dune",
        author="F. Herbert",
        year=1966,
        genre="Fantasy",
        available=False,
        reading_status=FINISHED,
        summary="My notes",
        added_at=1,
        borrowed_at=2,
    )


def test_validation_lists_every_problem() -> None:
    form = BookForm()
    form.title = "  "
    form.year = ""
    with pytest.raises(BookValidationError) as excinfo:
        form.submit()
    assert excinfo.value.errors == [
        "Title is required.",
        "Author is required.",
        "Year is required (4 digits).",
    ]
    assert not form.closed


@pytest.mark.parametrize(
    ("year", "message"),
    [
        ("19a5", "Year must be a number."),
        ("10000", "Year must be between 0 and 9999."),
        ("-1", "Year must be between 0 and 9999."),
    ],
)
def test_year_validation(year: str, message: str) -> None:
    form = BookForm()
    form.title, form.author, form.year = "T", "A", year
    assert form.validate() == [message]


def test_submit_builds_a_new_book() -> None:
    form = BookForm()
    form.set_title("  Emma ")
    form.author = "Jane Austen"
    form.year = "1815"
    form.summary = "   "
    form.available = False

    book = form.submit(now=1000)

    assert book == Book(
        title="Emma",
        author="Jane Austen",
        year=1815,
        genre=DEFAULT_GENRE,
        available=False,
        reading_status=NOT_STARTED,
        summary=None,
        cover_url=None,
        added_at=1000,
        borrowed_at=1000,
    )
    assert form.closed


def test_new_book_suggestions_need_two_characters() -> None:
    fetcher = RecordingFetcher()
    form = BookForm()
    form.set_title("D")
    assert not form.request_suggestions(fetcher)
    form.set_title("Du")
    assert form.request_suggestions(fetcher)
    assert fetcher.requests[0][0] == "Du"


def test_edit_mode_requires_a_modified_title() -> None:
    fetcher = RecordingFetcher()
    form = BookForm(_existing())
    assert not form.can_suggest()
    assert not form.request_suggestions(fetcher)

    form.set_title("Dune Messiah")
    assert form.request_suggestions(fetcher)
    form.set_title(" Dune ")
    assert not form.can_suggest()


def test_new_results_replace_previous_ones() -> None:
    form = BookForm()
    form.set_title("Dune")
    form.receive_suggestions([DUNE])
    form.receive_suggestions([Candidate(title="Dune Messiah")])
    assert [candidate.title for candidate in form.suggestions] == ["Dune Messiah"]


def test_late_results_are_discarded_after_close() -> None:
    fetcher = RecordingFetcher()
    form = BookForm()
    form.set_title("Dune")
    form.request_suggestions(fetcher)
    form.close()

    _query, deliver = fetcher.requests[0]
    deliver([DUNE])
    assert form.suggestions == []


def test_apply_suggestion_fills_blank_fields() -> None:
    form = BookForm()
    form.set_title("dune")
    form.apply_suggestion(DUNE)
    assert (form.title, form.author, form.year) == ("Dune", "Frank Herbert", "1965")
    assert form.genre == "Novel"
    assert form.summary == "A desert planet."
    assert form.cover_url == "https://books.example/dune.jpg"


def test_apply_suggestion_keeps_user_input() -> None:
    form = BookForm(_existing())
    form.set_title("Dune!")
    form.apply_suggestion(DUNE)
    assert form.genre == "Fantasy"
    assert form.summary == "My notes"
    assert form.cover_url == "https://books.example/dune.jpg"
    assert form.year == "1965"


def test_apply_suggestion_without_genre_defaults_blank_genre() -> None:
    form = BookForm()
    form.apply_suggestion(Candidate(title="Mystery title"))
    assert form.genre == DEFAULT_GENRE

    form = BookForm()
    form.genre = DEFAULT_GENRE
    form.apply_suggestion(Candidate(title="X", genre="History"))
    assert form.genre == "History"
