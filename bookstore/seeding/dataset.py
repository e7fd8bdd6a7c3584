import json
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from bookstore.config import DEFAULT_SEED_FILE
from bookstore.seeding.errors import ConfigurationError
from bookstore.seeding.models import Book

__all__ = ["DEFAULT_SEED_FILE", "load_books", "parse_books"]


def parse_books(records: object, source: str = "<data>") -> list[Book]:
    """Validate raw decoded JSON into Book models.

    The payload must be a non-empty list of objects. The first invalid record
    aborts the load with its index in the message.
    """
    if not isinstance(records, list):
        raise ConfigurationError(
            f"{source} must contain a JSON array of books, got {type(records).__name__}",
            step="load",
        )
    if not records:
        raise ConfigurationError(f"{source} contains no books", step="load")

    books = []
    for i, record in enumerate(records):
        if not isinstance(record, dict):
            raise ConfigurationError(f"{source}: record {i} is not an object", step="load")
        try:
            books.append(Book(**record))
        except ValidationError as exc:
            raise ConfigurationError(f"{source}: record {i} is invalid", step="load", cause=exc) from exc
    return books


def load_books(path: Union[str, Path] = DEFAULT_SEED_FILE) -> list[Book]:
    """Read the seed fixture from disk."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            records = json.load(f)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"seed file {path} not found", step="load", cause=exc) from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"seed file {path} is not valid JSON", step="load", cause=exc) from exc
    return parse_books(records, source=str(path))
