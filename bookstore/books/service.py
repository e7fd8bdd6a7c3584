import logging
from typing import Iterator, Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from bookstore.books.models import (
    AuthorStats,
    BookListResponse,
    BookSummary,
    BookSummaryResponse,
    DecadeBook,
    DecadeStats,
    DeleteResponse,
    ExplainResponse,
    GenreStats,
    UpdateResponse,
)
from bookstore.config import get_settings
from bookstore.database import get_books_collection, get_database
from bookstore.seeding.models import Book

logger = logging.getLogger(__name__)

# sort param -> (field, direction)
SORT_OPTIONS = {
    "price": ("price", ASCENDING),
    "-price": ("price", DESCENDING),
    "title": ("title", ASCENDING),
    "-title": ("title", DESCENDING),
}

# Indexes the catalog's point lookups and compound range scans rely on,
# on top of the single-field ones the seeder creates.
CATALOG_INDEXES = (
    [("title", ASCENDING)],
    [("author", ASCENDING), ("published_year", DESCENDING)],
)

SUMMARY_PROJECTION = {"title": 1, "author": 1, "price": 1, "_id": 0}


def build_book_filter(
    genre: Optional[str] = None,
    author: Optional[str] = None,
    published_after: Optional[int] = None,
    in_stock: Optional[bool] = None,
) -> dict:
    """Translate search params into a MongoDB filter.

    A single condition is returned as-is; several are combined with $and,
    e.g. in_stock + published_after:
        {"$and": [{"in_stock": True}, {"published_year": {"$gt": 2010}}]}
    """
    clauses: list[dict] = []
    if genre:
        clauses.append({"genre": genre})
    if author:
        clauses.append({"author": author})
    if in_stock is not None:
        clauses.append({"in_stock": in_stock})
    if published_after is not None:
        clauses.append({"published_year": {"$gt": published_after}})

    if not clauses:
        return {}
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _skip(page: int, page_size: int) -> int:
    return (page - 1) * page_size


async def search_books(
    genre: Optional[str] = None,
    author: Optional[str] = None,
    published_after: Optional[int] = None,
    in_stock: Optional[bool] = None,
    sort: Optional[str] = None,
    page: int = 1,
    page_size: int = 5,
) -> BookListResponse:
    collection = get_books_collection()
    query = build_book_filter(genre, author, published_after, in_stock)

    total = await collection.count_documents(query)
    cursor = collection.find(query, {"_id": 0})
    if sort:
        field, direction = SORT_OPTIONS[sort]
        cursor = cursor.sort(field, direction)
    cursor = cursor.skip(_skip(page, page_size)).limit(page_size)
    docs = await cursor.to_list(length=page_size)

    return BookListResponse(
        books=[Book(**doc) for doc in docs],
        total=total,
        page=page,
        page_size=page_size,
    )


async def list_summaries(page: int = 1, page_size: int = 5) -> BookSummaryResponse:
    """Title/author/price projection, sorted by title, one page at a time."""
    collection = get_books_collection()
    cursor = (
        collection.find({}, SUMMARY_PROJECTION)
        .sort("title", ASCENDING)
        .skip(_skip(page, page_size))
        .limit(page_size)
    )
    docs = await cursor.to_list(length=page_size)
    return BookSummaryResponse(
        books=[BookSummary(**doc) for doc in docs],
        page=page,
        page_size=page_size,
    )


async def update_price(title: str, price: float) -> UpdateResponse:
    collection = get_books_collection()
    result = await collection.update_one({"title": title}, {"$set": {"price": price}})
    return UpdateResponse(matched=result.matched_count, modified=result.modified_count)


async def update_author_price(author: str, price: float) -> UpdateResponse:
    collection = get_books_collection()
    result = await collection.update_many({"author": author}, {"$set": {"price": price}})
    return UpdateResponse(matched=result.matched_count, modified=result.modified_count)


async def delete_book(title: str) -> DeleteResponse:
    collection = get_books_collection()
    result = await collection.delete_one({"title": title})
    return DeleteResponse(deleted=result.deleted_count)


# ---------------------------------------------------------------------------
# Aggregations
# ---------------------------------------------------------------------------


def genre_stats_pipeline() -> list[dict]:
    return [
        {
            "$group": {
                "_id": "$genre",
                "average_price": {"$avg": "$price"},
                "book_count": {"$sum": 1},
            }
        },
        {"$sort": {"average_price": -1}},
    ]


def top_author_pipeline() -> list[dict]:
    return [
        {
            "$group": {
                "_id": "$author",
                "book_count": {"$sum": 1},
                "books": {"$push": "$title"},
            }
        },
        {"$sort": {"book_count": -1}},
        {"$limit": 1},
    ]


def decade_pipeline() -> list[dict]:
    # 1949 -> floor(194.9) * 10 -> 1940
    decade = {"$multiply": [{"$floor": {"$divide": ["$published_year", 10]}}, 10]}
    return [
        {
            "$group": {
                "_id": decade,
                "count": {"$sum": 1},
                "average_price": {"$avg": "$price"},
                "books": {"$push": {"title": "$title", "year": "$published_year"}},
            }
        },
        {"$sort": {"_id": 1}},
    ]


async def get_genre_stats() -> list[GenreStats]:
    """Average price and book count per genre, most expensive genre first."""
    collection = get_books_collection()
    rows = await collection.aggregate(genre_stats_pipeline()).to_list(length=None)
    return [
        GenreStats(
            genre=r["_id"],
            average_price=round(r["average_price"], 2),
            book_count=r["book_count"],
        )
        for r in rows
    ]


async def get_top_author() -> Optional[AuthorStats]:
    """Author with the most books, or None when the collection is empty."""
    collection = get_books_collection()
    rows = await collection.aggregate(top_author_pipeline()).to_list(length=1)
    if not rows:
        return None
    row = rows[0]
    return AuthorStats(author=row["_id"], book_count=row["book_count"], books=row["books"])


async def get_decade_stats() -> list[DecadeStats]:
    collection = get_books_collection()
    rows = await collection.aggregate(decade_pipeline()).to_list(length=None)
    stats = []
    for r in rows:
        decade = int(r["_id"])
        stats.append(
            DecadeStats(
                decade=decade,
                label=f"{decade}s",
                count=r["count"],
                average_price=round(r["average_price"], 2),
                books=[DecadeBook(**b) for b in r["books"]],
            )
        )
    return stats


# ---------------------------------------------------------------------------
# Index diagnostics
# ---------------------------------------------------------------------------


def build_explain_filter(
    title: Optional[str] = None,
    author: Optional[str] = None,
    published_since: Optional[int] = None,
) -> dict:
    """Point lookup by title, or the author + year range the compound index serves."""
    if title:
        return {"title": title}
    query: dict = {}
    if author:
        query["author"] = author
    if published_since is not None:
        query["published_year"] = {"$gte": published_since}
    return query


def _iter_stages(plan: dict) -> Iterator[dict]:
    yield plan
    if "inputStage" in plan:
        yield from _iter_stages(plan["inputStage"])
    for child in plan.get("inputStages", []):
        yield from _iter_stages(child)


def summarize_explain(query: dict, explain: dict) -> ExplainResponse:
    """Reduce raw explain output to the fields that show index usage."""
    winning = explain["queryPlanner"]["winningPlan"]
    # Servers running the slot-based engine nest the classic tree under queryPlan.
    plan = winning.get("queryPlan", winning)
    ixscan = next((s for s in _iter_stages(plan) if s.get("stage") == "IXSCAN"), None)
    stats = explain.get("executionStats", {})
    return ExplainResponse(
        filter=query,
        stage=plan.get("stage", "UNKNOWN"),
        uses_index=ixscan is not None,
        index_name=ixscan.get("indexName") if ixscan else None,
        keys_examined=stats.get("totalKeysExamined", 0),
        docs_examined=stats.get("totalDocsExamined", 0),
        returned=stats.get("nReturned", 0),
        execution_time_ms=stats.get("executionTimeMillis", 0),
    )


async def explain_query(query: dict) -> ExplainResponse:
    db = get_database()
    explain = await db.command(
        {
            "explain": {"find": get_settings().COLLECTION_NAME, "filter": query},
            "verbosity": "executionStats",
        }
    )
    return summarize_explain(query, explain)


async def ensure_catalog_indexes() -> list[str]:
    """Create the catalog's indexes. Failures are logged; the API still serves."""
    collection = get_books_collection()
    created = []
    for keys in CATALOG_INDEXES:
        try:
            created.append(await collection.create_index(keys))
        except PyMongoError as exc:
            logger.warning("Could not create catalog index %s: %s", keys, exc)
    return created
