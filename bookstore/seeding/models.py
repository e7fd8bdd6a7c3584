from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Book(BaseModel):
    """One sample record loaded into the books collection.

    This is both the fixture shape and the document shape. MongoDB assigns
    the _id on insert; it is never part of the model.
    """

    model_config = ConfigDict(frozen=True)

    title: str = Field(..., min_length=1)
    author: str
    genre: str  # free-form category, e.g. "Dystopian"
    published_year: int = Field(..., ge=1000)
    price: float = Field(..., ge=0)  # USD
    in_stock: bool
    pages: int = Field(..., gt=0)
    publisher: str

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be blank")
        return v

    @field_validator("published_year")
    @classmethod
    def _not_in_future(cls, v: int) -> int:
        if v > date.today().year:
            raise ValueError(f"published_year {v} is in the future")
        return v


class IndexFailure(BaseModel):
    field: str
    error: str


class SeedResult(BaseModel):
    """Outcome of a successful seeding run.

    A run that returns a SeedResult loaded and verified every record; index
    failures are the only problems it can carry.
    """

    database: str
    collection: str
    previous_count: int = 0  # documents found before the reset
    dropped: bool = False
    inserted_count: int = 0
    final_count: int = 0
    sample: list[Book] = []
    indexes_created: list[str] = []
    index_errors: list[IndexFailure] = []
    timings: dict[str, float] = {}  # seconds per step
    duration: Optional[float] = None  # seconds, whole run

    @property
    def ok(self) -> bool:
        return not self.index_errors
