from __future__ import annotations

import json
from datetime import datetime

import pytest

from models import (
    FINISHED,
    IN_PROGRESS,
    NOT_STARTED,
    READING_STATUSES,
    Book,
    books_from_json,
    local_datetime,
)


@pytest.mark.parametrize(
    "book",
    [
        Book(title="A", author="B", year=0),
        Book(
            title="Les Misérables",
            author="Victor Hugo",
            year=1862,
            genre="Novel",
            available=False,
            reading_status=IN_PROGRESS,
            summary="Long.",
            cover_url="/home/me/covers/miserables.png",
            added_at=1_700_000_000_000,
            borrowed_at=1_700_000_500_000,
        ),
        Book(title="Future", author="Z", year=9999, genre="Free text genre"),
    ],
)
def test_json_round_trip(book: Book) -> None:
    encoded = json.dumps(book.to_json())
    assert Book.from_json(json.loads(encoded)) == book


def test_json_uses_camel_case_field_names() -> None:
    payload = Book(title="A", author="B", year=1).to_json()
    assert list(payload) == [
        "title",
        "author",
        "year",
        "genre",
        "available",
        "readingStatus",
        "summary",
        "coverUrl",
        "addedAt",
        "borrowedAt",
    ]


def test_reading_status_is_normalised() -> None:
    assert Book(title="A", author="B", year=1, reading_status="").reading_status == NOT_STARTED
    assert Book.from_json({"title": "A", "readingStatus": None}).reading_status == NOT_STARTED
    assert Book.from_json({"readingStatus": "En cours de lecture"}).reading_status == IN_PROGRESS
    assert Book.from_json({"readingStatus": "Lu"}).reading_status == FINISHED
    for legacy in ("Non lu", "En cours de lecture", "Lu"):
        assert Book.from_json({"readingStatus": legacy}).reading_status in READING_STATUSES


def test_lenient_decoding() -> None:
    book = Book.from_json({"title": "A", "year": "abc", "addedAt": "x"})
    assert book.year == 0
    assert book.added_at is None
    assert book.available is False
    assert books_from_json([{"title": "ok"}, "junk", 3]) == [Book.from_json({"title": "ok"})]
    assert books_from_json({"not": "a list"}) == []


def test_local_datetime_treats_non_positive_as_missing() -> None:
    moment = datetime(2024, 2, 29, 17, 45)
    assert local_datetime(int(moment.timestamp() * 1000)) == moment
    assert local_datetime(None) is None
    assert local_datetime(0) is None
    assert local_datetime(-1) is None


def test_str_shows_title_author_and_year() -> None:
    assert str(Book(title="A", author="B", year=1)) == "A — B (1)"
