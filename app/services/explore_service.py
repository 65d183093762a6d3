# app/services/explore_service.py
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable

import httpx
from fastapi import HTTPException, status
from postgrest import APIError
from supabase import Client

from app.repositories.jam_repo import JamRepository
from app.schemas.filters import ExploreResult, FilterState
from app.schemas.jam import Jam, JamRead
from app.services.ranking_service import average_rating

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

Predicate = Callable[[Jam], bool]


# ---- predicates ----


def _matches_search(term: str) -> Predicate:
    needle = term.casefold()
    return lambda jam: needle in jam.name.casefold()


def _matches_fruit(fruits: list[str]) -> Predicate:
    wanted = set(fruits)
    return lambda jam: not wanted.isdisjoint(jam.ingredients)


def _excludes_allergens(allergens: list[str]) -> Predicate:
    excluded = set(allergens)
    return lambda jam: excluded.isdisjoint(jam.allergens)


def _under_max_sugar(max_sugar: float) -> Predicate:
    # unknown sugar content is not held against the jam
    return lambda jam: jam.sugar_content is None or jam.sugar_content <= max_sugar


def _under_max_price(max_price: float) -> Predicate:
    return lambda jam: jam.price_credits <= max_price


def _over_min_rating(min_rating: float) -> Predicate:
    return lambda jam: average_rating(jam.reviews) >= min_rating


def build_predicates(filters: FilterState) -> list[Predicate]:
    """Only the predicates that are set; all of them must hold."""
    predicates: list[Predicate] = []
    if filters.search_term:
        predicates.append(_matches_search(filters.search_term))
    if filters.fruit:
        predicates.append(_matches_fruit(filters.fruit))
    if filters.allergens:
        predicates.append(_excludes_allergens(filters.allergens))
    if filters.max_sugar is not None:
        predicates.append(_under_max_sugar(filters.max_sugar))
    if filters.max_price is not None:
        predicates.append(_under_max_price(filters.max_price))
    if filters.min_rating > 0:
        predicates.append(_over_min_rating(filters.min_rating))
    return predicates


def sort_jams(jams: list[Jam], sort_by: str) -> list[Jam]:
    """
    Stable sort by the explore sort key.

    - recent: created_at desc (undated last)
    - popular: available_quantity desc (unlimited stock first)
    - price_asc / price_desc: price_credits
    """
    if sort_by == "price_asc":
        return sorted(jams, key=lambda j: j.price_credits)
    if sort_by == "price_desc":
        return sorted(jams, key=lambda j: j.price_credits, reverse=True)
    if sort_by == "popular":
        return sorted(
            jams,
            key=lambda j: float("inf") if j.available_quantity is None else j.available_quantity,
            reverse=True,
        )
    return sorted(jams, key=lambda j: j.created_at or _EPOCH, reverse=True)


def apply_filters(jams: Iterable[Jam], filters: FilterState) -> list[Jam]:
    """
    In-memory phase of the explore pipeline: keep the jams matching every
    active predicate, in the requested order.

    Safe to run on rows the store already filtered: every predicate is
    re-checked, and the derived ones (rating) can only be checked here.
    """
    predicates = build_predicates(filters)
    kept = [jam for jam in jams if all(p(jam) for p in predicates)]
    return sort_jams(kept, filters.sort_by)


def to_read(jam: Jam) -> JamRead:
    return JamRead(
        id=jam.id,
        name=jam.name,
        creator_id=jam.creator_id,
        description=jam.description,
        price_credits=jam.price_credits,
        price_euros=jam.price_euros,
        is_pro=jam.is_pro,
        available_quantity=jam.available_quantity,
        ingredients=jam.ingredients,
        allergens=jam.allergens,
        sugar_content=jam.sugar_content,
        created_at=jam.created_at,
        cover_image_url=jam.cover_image_url,
        profile=jam.profile,
        review_count=len(jam.reviews),
        avg_rating=average_rating(jam.reviews),
    )


class ExploreService:
    """
    Two-phase explore pipeline.

      1. pushdown: indexed predicates + ordering run in Supabase
         (JamRepository.search)
      2. in memory: every predicate, including the rating which is
         derived from nested reviews, runs over the fetched rows
    """

    def __init__(self, repo: JamRepository):
        self.repo = repo

    def explore(self, client: Client, filters: FilterState) -> ExploreResult:
        try:
            rows = self.repo.search(client, filters)
        except (APIError, httpx.HTTPError) as e:
            logger.error("Error fetching jams: %s", e)
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Unable to load jams",
            )

        jams = apply_filters(rows, filters)
        logger.info("Found %d jams matching criteria", len(jams))
        return ExploreResult(
            items=[to_read(jam) for jam in jams],
            active_filter_count=filters.active_filter_count,
        )
