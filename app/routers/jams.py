# app/routers/jams.py
from typing import Literal

from fastapi import APIRouter, Depends, Query
from supabase import Client

from app.core.supabase_client import get_client
from app.repositories.jam_repo import JamRepository
from app.schemas.filters import ExploreResult, FilterState
from app.services.explore_service import ExploreService

router = APIRouter(prefix="/jams", tags=["Jams"])

repo = JamRepository()
service = ExploreService(repo)


@router.get("/explore", response_model=ExploreResult)
def explore_jams(
    client: Client = Depends(get_client),
    search: str = "",
    sort_by: Literal["recent", "popular", "price_asc", "price_desc"] = "recent",
    fruit: list[str] = Query(default=[]),
    allergens: list[str] = Query(default=[]),
    max_sugar: float | None = Query(default=None, ge=0),
    min_rating: float = Query(default=0, ge=0, le=5),
    max_price: float | None = Query(default=None, ge=0),
):
    """
    Browse active jams.

    Query params (all optional):
      - search: case-insensitive substring of the name
      - sort_by: recent | popular | price_asc | price_desc
      - fruit (repeatable): at least one of these fruits
      - allergens (repeatable): none of these allergens
      - max_sugar, max_price: ceilings
      - min_rating: minimum average rating (0-5)

    Public endpoint.
    """
    filters = FilterState(
        search_term=search,
        sort_by=sort_by,
        fruit=fruit,
        allergens=allergens,
        max_sugar=max_sugar,
        min_rating=min_rating,
        max_price=max_price,
    )
    return service.explore(client, filters)
