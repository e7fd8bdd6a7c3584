import json
from datetime import date

import pytest

from bookstore.seeding.dataset import DEFAULT_SEED_FILE, load_books, parse_books
from bookstore.seeding.errors import ConfigurationError


def _book(**overrides):
    book = {
        "title": "Dune",
        "author": "Frank Herbert",
        "genre": "Science Fiction",
        "published_year": 1965,
        "price": 9.99,
        "in_stock": True,
        "pages": 412,
        "publisher": "Chilton Books",
    }
    book.update(overrides)
    return book


def _write(tmp_path, payload):
    path = tmp_path / "books.json"
    path.write_text(payload if isinstance(payload, str) else json.dumps(payload), encoding="utf-8")
    return path


class TestDefaultFixture:
    def test_has_twelve_books(self):
        assert len(load_books(DEFAULT_SEED_FILE)) == 12

    def test_orwell_and_stock_counts(self):
        books = load_books()
        assert sum(b.author == "George Orwell" for b in books) == 2
        assert sum(b.in_stock for b in books) == 9

    def test_titles_are_unique(self):
        titles = [b.title for b in load_books()]
        assert len(titles) == len(set(titles))

    def test_non_ascii_author_survives(self):
        assert any(b.author == "Emily Brontë" for b in load_books())


class TestLoadBooks:
    def test_reads_custom_file(self, tmp_path):
        path = _write(tmp_path, [_book(), _book(title="Dune Messiah", published_year=1969)])
        books = load_books(path)
        assert [b.title for b in books] == ["Dune", "Dune Messiah"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_books(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            load_books(_write(tmp_path, "[{"))

    def test_object_instead_of_array(self, tmp_path):
        with pytest.raises(ConfigurationError, match="JSON array"):
            load_books(_write(tmp_path, {"books": []}))

    def test_empty_array(self, tmp_path):
        with pytest.raises(ConfigurationError, match="no books"):
            load_books(_write(tmp_path, []))


class TestParseBooks:
    def test_invalid_record_is_named(self):
        with pytest.raises(ConfigurationError, match="record 1 is invalid"):
            parse_books([_book(), _book(price=-1)])

    def test_non_object_record(self):
        with pytest.raises(ConfigurationError, match="record 0 is not an object"):
            parse_books(["Dune"])

    def test_blank_title_rejected(self):
        with pytest.raises(ConfigurationError):
            parse_books([_book(title="   ")])

    def test_zero_pages_rejected(self):
        with pytest.raises(ConfigurationError):
            parse_books([_book(pages=0)])

    def test_future_year_rejected(self):
        with pytest.raises(ConfigurationError):
            parse_books([_book(published_year=date.today().year + 1)])

    def test_year_before_1000_rejected(self):
        with pytest.raises(ConfigurationError):
            parse_books([_book(published_year=999)])

    def test_error_keeps_validation_cause(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_books([_book(in_stock="maybe")])
        assert exc_info.value.cause is not None
        assert exc_info.value.step == "load"
