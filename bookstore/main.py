from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bookstore.books.router import router as books_router
from bookstore.books.service import ensure_catalog_indexes
from bookstore.config import get_settings
from bookstore.database import connect_db, disconnect_db
from bookstore.logging_config import configure_logging

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(level=settings.LOG_LEVEL, json_logs=settings.LOG_JSON)
    await connect_db()
    await ensure_catalog_indexes()
    yield
    await disconnect_db()


app = FastAPI(
    title="Bookstore Catalog",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.DOCS_ENABLED else None,
    redoc_url="/redoc" if settings.DOCS_ENABLED else None,
    openapi_url="/openapi.json" if settings.DOCS_ENABLED else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",")],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(books_router)


@app.get("/health")
async def health_check():
    return {"status": "ok"}
