"""Idempotent re-seed of the books collection.

Flow (strictly sequential, one operation in flight at a time):
1. connect: build the client and ping the server
2. reset:   drop the collection if it already holds documents
3. insert:  one ordered insert_many over the whole record set
4. verify:  re-count, then read back a small sample for the report
5. index:   single-field ascending indexes; failures are recorded, not raised
The client is closed on every path.

Reset is destructive and happens before the insert. A run that fails at
insert or verify leaves the collection empty, not in its original state.
"""

import logging
import re
import time
from contextlib import contextmanager
from typing import Sequence

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING
from pymongo.errors import BulkWriteError, ConnectionFailure, OperationFailure, PyMongoError
from pymongo.errors import ConfigurationError as DriverConfigurationError

from bookstore.config import Settings
from bookstore.database import create_client
from bookstore.seeding.errors import (
    ConfigurationError,
    ConsistencyError,
    StoreConnectionError,
    WriteError,
)
from bookstore.seeding.models import Book, IndexFailure, SeedResult

logger = logging.getLogger(__name__)

# Fields the query catalog filters and range-scans on.
INDEXED_FIELDS = ("author", "genre", "published_year")
SAMPLE_SIZE = 5

_CREDENTIALS = re.compile(r"//[^/@]+@")


def redact_uri(uri: str) -> str:
    """Hide user:password in a connection string before it reaches a log line."""
    return _CREDENTIALS.sub("//***@", uri)


class Seeder:
    def __init__(
        self,
        settings: Settings,
        books: Sequence[Book],
        client_factory=AsyncIOMotorClient,
    ):
        self.settings = settings
        self.books = list(books)
        if not self.books:
            # An empty batch would still drop the collection at reset.
            raise ConfigurationError("no books to seed", step="load")
        self._client_factory = client_factory
        self._address = redact_uri(settings.MONGODB_URI)

    async def seed(self) -> SeedResult:
        """Run every step and return the outcome. Raises a SeedError subclass on abort."""
        started = time.perf_counter()
        result = SeedResult(
            database=self.settings.DATABASE_NAME,
            collection=self.settings.COLLECTION_NAME,
        )

        client = await self._connect(result)
        try:
            collection = client[self.settings.DATABASE_NAME][self.settings.COLLECTION_NAME]
            await self._reset(collection, result)
            await self._insert(collection, result)
            await self._verify(collection, result)
            await self._create_indexes(collection, result)
        except Exception as exc:
            logger.error("Seeding aborted: %s", exc)
            raise
        finally:
            client.close()
            logger.info("Connection closed")

        result.duration = round(time.perf_counter() - started, 4)
        logger.info(
            "Seeded %d books into %s.%s in %.3fs",
            result.final_count,
            result.database,
            result.collection,
            result.duration,
        )
        return result

    @contextmanager
    def _step(self, result: SeedResult, name: str):
        """Time a step and surface driver connection failures as StoreConnectionError."""
        started = time.perf_counter()
        try:
            yield
        except ConnectionFailure as exc:
            raise StoreConnectionError(
                f"lost connection to {self._address}", step=name, cause=exc
            ) from exc
        finally:
            result.timings[name] = round(time.perf_counter() - started, 4)

    async def _connect(self, result: SeedResult):
        logger.info("Connecting to %s", self._address)
        with self._step(result, "connect"):
            try:
                client = create_client(self.settings, self._client_factory)
            except DriverConfigurationError as exc:
                logger.error("Invalid MongoDB address %s: %s", self._address, exc)
                raise ConfigurationError(
                    f"invalid MongoDB address or options for {self._address}",
                    step="connect",
                    cause=exc,
                ) from exc

            # Opening the client does no I/O; ping proves the server answers.
            try:
                await client.admin.command("ping")
            except OperationFailure as exc:
                client.close()
                logger.error("Ping rejected by %s: %s", self._address, exc)
                raise ConfigurationError(
                    "server rejected the ping, check credentials",
                    step="connect",
                    cause=exc,
                ) from exc
            except ConnectionFailure as exc:
                client.close()
                logger.error("MongoDB unreachable at %s: %s", self._address, exc)
                raise StoreConnectionError(
                    f"could not reach MongoDB at {self._address} "
                    f"within {self.settings.CONNECT_TIMEOUT_MS} ms",
                    step="connect",
                    cause=exc,
                ) from exc
        logger.info("Connected to %s", self._address)
        return client

    async def _reset(self, collection, result: SeedResult) -> None:
        with self._step(result, "reset"):
            count = await collection.count_documents({})
            result.previous_count = count
            if count == 0:
                logger.info("Collection %s is empty, nothing to drop", collection.name)
                return

            logger.info("Collection %s holds %d documents, dropping", collection.name, count)
            try:
                await collection.drop()
            except ConnectionFailure:
                raise
            except PyMongoError as exc:
                raise WriteError(
                    f"could not drop collection {collection.name}", step="reset", cause=exc
                ) from exc
            result.dropped = True

    async def _insert(self, collection, result: SeedResult) -> None:
        documents = [book.model_dump() for book in self.books]
        with self._step(result, "insert"):
            logger.info("Inserting %d books", len(documents))
            try:
                inserted = await collection.insert_many(documents, ordered=True)
            except ConnectionFailure as exc:
                # How much of the batch landed is unknown; empty it if the store still answers.
                if await self._rollback(collection, accepted=-1):
                    state = "collection was emptied"
                else:
                    state = "rollback failed, collection may be partially populated"
                raise StoreConnectionError(
                    f"lost connection to {self._address} during bulk insert; {state}",
                    step="insert",
                    cause=exc,
                ) from exc
            except PyMongoError as exc:
                accepted = 0
                if isinstance(exc, BulkWriteError):
                    accepted = exc.details.get("nInserted", 0)
                if await self._rollback(collection, accepted):
                    state = "collection was emptied"
                else:
                    state = "rollback failed, collection may be partially populated"
                raise WriteError(
                    f"bulk insert rejected after {accepted} of {len(documents)} documents; {state}",
                    step="insert",
                    cause=exc,
                    inserted_count=accepted,
                ) from exc
            result.inserted_count = len(inserted.inserted_ids)
            logger.info("Inserted %d books", result.inserted_count)

    async def _rollback(self, collection, accepted: int) -> bool:
        """Empty the collection after a failed batch so it is never half-loaded."""
        if accepted < 0:
            logger.warning("Rolling back failed batch (accepted count unknown)")
        else:
            logger.warning("Rolling back failed batch (%d documents accepted)", accepted)
        try:
            await collection.drop()
        except PyMongoError as exc:
            logger.error(
                "Rollback drop failed, %s may be partially populated: %s", collection.name, exc
            )
            return False
        return True

    async def _verify(self, collection, result: SeedResult) -> None:
        with self._step(result, "verify"):
            count = await collection.count_documents({})
            result.final_count = count
            if count != result.inserted_count:
                raise ConsistencyError(expected=result.inserted_count, actual=count)

            docs = (
                await collection.find({}, {"_id": 0}).limit(SAMPLE_SIZE).to_list(length=SAMPLE_SIZE)
            )
            result.sample = [Book(**doc) for doc in docs]
            logger.info("Verified %d documents", count)

    async def _create_indexes(self, collection, result: SeedResult) -> None:
        started = time.perf_counter()
        for field in INDEXED_FIELDS:
            try:
                name = await collection.create_index([(field, ASCENDING)])
            except PyMongoError as exc:
                # The data is loaded and queryable without the index.
                logger.warning("Could not create index on %s: %s", field, exc)
                result.index_errors.append(IndexFailure(field=field, error=str(exc)))
                continue
            result.indexes_created.append(name)
            logger.info("Created index %s", name)
        result.timings["index"] = round(time.perf_counter() - started, 4)
