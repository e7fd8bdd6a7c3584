from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from bookstore.books.models import (
    AuthorPriceUpdate,
    AuthorStats,
    BookListResponse,
    BookSummaryResponse,
    DecadeStats,
    DeleteResponse,
    ExplainResponse,
    GenreStats,
    PriceUpdate,
    UpdateResponse,
)
from bookstore.books.service import (
    build_explain_filter,
    delete_book,
    explain_query,
    get_decade_stats,
    get_genre_stats,
    get_top_author,
    list_summaries,
    search_books,
    update_author_price,
    update_price,
)
from bookstore.dependencies import verify_api_key

SortOption = Literal["price", "-price", "title", "-title"]

# All routes under /api/books require a valid API key in the X-API-Key header.
router = APIRouter(prefix="/api/books", tags=["books"], dependencies=[Depends(verify_api_key)])


@router.get("", response_model=BookListResponse)
async def search(
    genre: Optional[str] = Query(None),  # exact match, e.g. "Fiction"
    author: Optional[str] = Query(None),  # exact match, e.g. "George Orwell"
    published_after: Optional[int] = Query(None),  # strictly after this year
    in_stock: Optional[bool] = Query(None),
    sort: Optional[SortOption] = Query(None),  # "-price" sorts descending
    page: int = Query(1, ge=1),
    page_size: int = Query(5, ge=1, le=100),
):
    """Find books by field, year range and stock, sorted and paginated.

    Omitting every filter returns the whole collection, one page at a time.
    """
    return await search_books(
        genre=genre,
        author=author,
        published_after=published_after,
        in_stock=in_stock,
        sort=sort,
        page=page,
        page_size=page_size,
    )


@router.get("/summaries", response_model=BookSummaryResponse)
async def summaries(
    page: int = Query(1, ge=1),
    page_size: int = Query(5, ge=1, le=100),
):
    """Title, author and price only, sorted by title."""
    return await list_summaries(page=page, page_size=page_size)


@router.patch("/price", response_model=UpdateResponse)
async def reprice_author(update: AuthorPriceUpdate):
    """Set the same price on every book by one author."""
    return await update_author_price(update.author, update.price)


@router.patch("/{title}/price", response_model=UpdateResponse)
async def reprice(title: str, update: PriceUpdate):
    result = await update_price(title, update.price)
    if result.matched == 0:
        raise HTTPException(status_code=404, detail="Book not found")
    return result


@router.delete("/{title}", response_model=DeleteResponse)
async def delete(title: str):
    result = await delete_book(title)
    if result.deleted == 0:
        raise HTTPException(status_code=404, detail="Book not found")
    return result


@router.get("/stats/genres", response_model=list[GenreStats])
async def genre_stats():
    """Average price and count per genre, most expensive first."""
    return await get_genre_stats()


@router.get("/stats/top-author", response_model=AuthorStats)
async def top_author():
    stats = await get_top_author()
    if stats is None:
        raise HTTPException(status_code=404, detail="No books in collection")
    return stats


@router.get("/stats/decades", response_model=list[DecadeStats])
async def decades():
    """Books grouped by publication decade, oldest first."""
    return await get_decade_stats()


@router.get("/explain", response_model=ExplainResponse)
async def explain(
    title: Optional[str] = Query(None),
    author: Optional[str] = Query(None),
    published_since: Optional[int] = Query(None),  # inclusive lower bound
):
    """Show whether a lookup by title, or by author and year, is served by an index."""
    if not (title or author):
        raise HTTPException(status_code=400, detail="Provide a title or an author")
    query = build_explain_filter(title=title, author=author, published_since=published_since)
    return await explain_query(query)
