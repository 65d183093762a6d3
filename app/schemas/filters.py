# app/schemas/filters.py
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from app.schemas.jam import JamRead

SortKey = Literal["recent", "popular", "price_asc", "price_desc"]


class FilterState(SQLModel):
    """
    Explore filters.

    Every predicate is optional; its default means "no constraint":
      - fruit: [] (any fruit)
      - allergens: [] (nothing excluded)
      - max_sugar / max_price: None (no ceiling)
      - min_rating: 0 (every rating, unrated jams included)
    """

    model_config = ConfigDict(extra="forbid")

    search_term: str = ""
    sort_by: SortKey = "recent"

    fruit: list[str] = Field(default_factory=list)
    allergens: list[str] = Field(default_factory=list)
    max_sugar: float | None = Field(default=None, ge=0)
    min_rating: float = Field(default=0, ge=0, le=5)
    max_price: float | None = Field(default=None, ge=0)

    @field_validator("search_term")
    @classmethod
    def strip_search(cls, v: str) -> str:
        return v.strip()

    @property
    def active_filter_count(self) -> int:
        """
        Badge counter: each selected fruit/allergen counts 1,
        each scalar predicate counts 1 when set.
        """
        return (
            len(self.fruit)
            + len(self.allergens)
            + (1 if self.max_sugar is not None else 0)
            + (1 if self.min_rating != 0 else 0)
            + (1 if self.max_price is not None else 0)
        )


class ExploreResult(SQLModel):
    items: list[JamRead]
    active_filter_count: int
