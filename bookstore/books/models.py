from typing import Optional

from pydantic import BaseModel, Field

from bookstore.seeding.models import Book


class BookListResponse(BaseModel):
    """One page of books matching a search."""

    books: list[Book]
    total: int  # matches across all pages
    page: int  # 1-based
    page_size: int


class BookSummary(BaseModel):
    """Projection used by the catalog listing: title, author and price only."""

    title: str
    author: str
    price: float


class BookSummaryResponse(BaseModel):
    books: list[BookSummary]
    page: int
    page_size: int


class PriceUpdate(BaseModel):
    price: float = Field(..., ge=0)


class AuthorPriceUpdate(BaseModel):
    author: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)


class UpdateResponse(BaseModel):
    matched: int
    modified: int


class DeleteResponse(BaseModel):
    deleted: int


# ---------------------------------------------------------------------------
# Aggregations
# ---------------------------------------------------------------------------


class GenreStats(BaseModel):
    genre: str
    average_price: float
    book_count: int


class AuthorStats(BaseModel):
    author: str
    book_count: int
    books: list[str]  # titles


class DecadeBook(BaseModel):
    title: str
    year: int


class DecadeStats(BaseModel):
    decade: int  # e.g. 1940
    label: str  # e.g. "1940s"
    count: int
    average_price: float
    books: list[DecadeBook]


class ExplainResponse(BaseModel):
    """Condensed executionStats explain output for one query."""

    filter: dict
    stage: str  # winning plan stage at the top of the tree, e.g. "FETCH"
    uses_index: bool
    index_name: Optional[str] = None
    keys_examined: int
    docs_examined: int
    returned: int
    execution_time_ms: int
