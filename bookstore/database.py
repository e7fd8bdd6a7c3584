"""MongoDB connection lifecycle management.

Uses a module-level singleton client for the API. Call connect_db() at app
startup (via the FastAPI lifespan) before using get_database() or
get_books_collection(). The seeder builds its own short-lived client with
create_client() instead.
"""

from typing import Optional

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)

from bookstore.config import Settings, get_settings

client: Optional[AsyncIOMotorClient] = None


def create_client(settings: Settings, client_factory=AsyncIOMotorClient):
    """Build a client honouring the configured timeouts and pool bounds.

    Raises pymongo.errors.ConfigurationError (InvalidURI included) for a
    malformed address. No network I/O happens here.
    """
    return client_factory(settings.MONGODB_URI, **settings.client_options())


def get_database() -> AsyncIOMotorDatabase:
    if client is None:
        raise RuntimeError("Database client is not initialized. Call connect_db() first.")
    return client[get_settings().DATABASE_NAME]


def get_books_collection() -> AsyncIOMotorCollection:
    return get_database()[get_settings().COLLECTION_NAME]


async def connect_db() -> None:
    global client
    client = create_client(get_settings())


async def disconnect_db() -> None:
    global client
    if client:
        client.close()
        client = None
