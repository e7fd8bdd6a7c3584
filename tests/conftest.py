from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from bson import ObjectId
from httpx import ASGITransport, AsyncClient
from pymongo.errors import BulkWriteError, InvalidURI, OperationFailure, ServerSelectionTimeoutError
from pymongo.results import InsertManyResult

from bookstore.config import Settings, get_settings
from bookstore.main import app
from bookstore.seeding.dataset import load_books


# ---------------------------------------------------------------------------
# In-memory stand-in for a MongoDB server, driven through the motor API shape
# ---------------------------------------------------------------------------


def _matches(doc: dict, query: dict) -> bool:
    return all(doc.get(k) == v for k, v in query.items())


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def limit(self, n):
        self._docs = self._docs[:n]
        return self

    async def to_list(self, length=None):
        docs = self._docs if length is None else self._docs[:length]
        return [dict(d) for d in docs]


class FakeCollection:
    def __init__(self, name):
        self.name = name
        self.docs: list[dict] = []
        self.indexes: dict[str, list] = {}
        self.drop_calls = 0
        self.errors: dict[str, Exception] = {}  # method name -> exception to raise
        self.fail_insert_after = None  # accept this many documents, then reject the batch
        self.insert_error = None  # raised instead of BulkWriteError when set
        self.count_offset = 0  # pretend another writer added documents

    def _maybe_fail(self, op):
        if op in self.errors:
            raise self.errors[op]

    async def count_documents(self, query):
        self._maybe_fail("count_documents")
        return sum(1 for d in self.docs if _matches(d, query)) + self.count_offset

    async def drop(self):
        self._maybe_fail("drop")
        self.drop_calls += 1
        self.docs = []
        self.indexes = {}

    async def insert_many(self, documents, ordered=True):
        self._maybe_fail("insert_many")
        documents = list(documents)
        if not documents:
            raise TypeError("documents must be a non-empty list")
        if self.fail_insert_after is not None:
            accepted = documents[: self.fail_insert_after]
            for doc in accepted:
                self._store(doc)
            if self.insert_error is not None:
                raise self.insert_error
            raise BulkWriteError(
                {
                    "nInserted": len(accepted),
                    "writeErrors": [
                        {"index": len(accepted), "code": 11000, "errmsg": "E11000 duplicate key error"}
                    ],
                }
            )
        return InsertManyResult([self._store(doc) for doc in documents], acknowledged=True)

    def _store(self, doc):
        doc.setdefault("_id", ObjectId())
        self.docs.append(dict(doc))
        return doc["_id"]

    def find(self, query=None, projection=None):
        docs = [d for d in self.docs if _matches(d, query or {})]
        if projection and projection.get("_id") == 0:
            docs = [{k: v for k, v in d.items() if k != "_id"} for d in docs]
        return FakeCursor(docs)

    async def create_index(self, keys):
        field = keys[0][0]
        if field in self.errors:
            raise self.errors[field]
        name = "_".join(f"{f}_{direction}" for f, direction in keys)
        self.indexes[name] = keys
        return name


class FakeAdmin:
    def __init__(self, server):
        self._server = server

    async def command(self, name):
        assert name == "ping"
        if not self._server.reachable:
            raise ServerSelectionTimeoutError("localhost:27017: [Errno 111] Connection refused")
        if self._server.reject_ping:
            raise OperationFailure("Authentication failed.", code=18)
        return {"ok": 1.0}


class FakeDatabase:
    def __init__(self, server, name):
        self._server = server
        self.name = name

    def __getitem__(self, collection_name):
        return self._server.collection(self.name, collection_name)


class FakeClient:
    def __init__(self, server, uri, options):
        self._server = server
        self.uri = uri
        self.options = options
        self.closed = False
        self.admin = FakeAdmin(server)

    def __getitem__(self, db_name):
        return FakeDatabase(self._server, db_name)

    def close(self):
        self.closed = True


class FakeMongo:
    """Server state shared by every client it hands out, so runs see each other's writes."""

    def __init__(self):
        self.collections: dict[tuple[str, str], FakeCollection] = {}
        self.clients: list[FakeClient] = []
        self.reachable = True
        self.reject_ping = False

    def collection(self, db_name, name) -> FakeCollection:
        return self.collections.setdefault((db_name, name), FakeCollection(name))

    def client_factory(self, uri, **options):
        if not uri.startswith(("mongodb://", "mongodb+srv://")):
            raise InvalidURI(f"Invalid URI scheme: {uri}")
        client = FakeClient(self, uri, options)
        self.clients.append(client)
        return client


@pytest.fixture
def mongo():
    return FakeMongo()


@pytest.fixture
def seed_settings():
    return Settings(_env_file=None)


@pytest.fixture
def books_collection(mongo, seed_settings):
    return mongo.collection(seed_settings.DATABASE_NAME, seed_settings.COLLECTION_NAME)


@pytest.fixture
def sample_books():
    return load_books()


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def api_key():
    return get_settings().API_KEY


@pytest.fixture
def sample_docs():
    return [
        {
            "title": "1984",
            "author": "George Orwell",
            "genre": "Dystopian",
            "published_year": 1949,
            "price": 10.99,
            "in_stock": True,
            "pages": 328,
            "publisher": "Secker & Warburg",
        },
        {
            "title": "Animal Farm",
            "author": "George Orwell",
            "genre": "Political Satire",
            "published_year": 1945,
            "price": 8.50,
            "in_stock": False,
            "pages": 112,
            "publisher": "Secker & Warburg",
        },
    ]


def _agg_cursor(rows):
    cursor = MagicMock()
    cursor.to_list = AsyncMock(return_value=rows)
    return cursor


def _make_mock_collection(docs):
    mock_cursor = MagicMock()
    mock_cursor.sort.return_value = mock_cursor
    mock_cursor.skip.return_value = mock_cursor
    mock_cursor.limit.return_value = mock_cursor
    mock_cursor.to_list = AsyncMock(return_value=docs)

    mock_collection = MagicMock()
    mock_collection.find = MagicMock(return_value=mock_cursor)
    mock_collection.count_documents = AsyncMock(return_value=len(docs))
    mock_collection.aggregate = MagicMock(return_value=_agg_cursor([]))
    mock_collection.update_one = AsyncMock()
    mock_collection.update_many = AsyncMock()
    mock_collection.delete_one = AsyncMock()
    return mock_collection


@pytest.fixture
def mock_collection(sample_docs):
    return _make_mock_collection(sample_docs)


@pytest.fixture
async def client(api_key, mock_collection):
    with patch("bookstore.books.service.get_books_collection", return_value=mock_collection):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            ac.headers["X-API-Key"] = api_key
            yield ac
