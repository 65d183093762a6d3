# app/services/ranking_service.py
import logging
from typing import Any, Iterable

import httpx
from fastapi import HTTPException, status
from postgrest import APIError
from supabase import Client

from app.repositories.jam_repo import JamRepository
from app.repositories.ranking_repo import RankingRepository
from app.schemas.jam import Jam, JamReview
from app.schemas.ranking import ScoredJam, ScoredUser, UserActivity

logger = logging.getLogger(__name__)

# Jam score weights
JAM_RATING_WEIGHT = 0.7
JAM_REVIEW_COUNT_WEIGHT = 0.3
# review_count is scaled down so 10 reviews weigh like one rating point
JAM_REVIEW_COUNT_SCALE = 10

# Maker score weights
USER_JAM_WEIGHT = 0.4
USER_SALE_WEIGHT = 0.4
USER_REVIEW_WEIGHT = 0.2

DEFAULT_LIMIT = 10


# ---- scoring ----


def review_average(review: JamReview) -> float:
    """
    Mean of the sub-ratings actually given.
    0 means "not rated", so it is left out; a review with no rating at all
    averages to 0.
    """
    rated = [r for r in review.sub_ratings() if r > 0]
    return sum(rated) / len(rated) if rated else 0.0


def average_rating(reviews: list[JamReview]) -> float:
    """Mean of the per-review averages; 0 when there are no reviews."""
    if not reviews:
        return 0.0
    return sum(review_average(r) for r in reviews) / len(reviews)


def jam_rank_score(avg_rating: float, review_count: int) -> float:
    return (
        JAM_RATING_WEIGHT * avg_rating
        + JAM_REVIEW_COUNT_WEIGHT * (review_count / JAM_REVIEW_COUNT_SCALE)
    )


def user_rank_score(jam_count: int, sale_count: int, review_count: int) -> float:
    return (
        USER_JAM_WEIGHT * jam_count
        + USER_SALE_WEIGHT * sale_count
        + USER_REVIEW_WEIGHT * review_count
    )


def score_jam(jam: Jam, sale_count: int = 0) -> ScoredJam:
    avg = average_rating(jam.reviews)
    review_count = len(jam.reviews)
    return ScoredJam(
        id=jam.id,
        name=jam.name,
        creator_id=jam.creator_id,
        profile=jam.profile,
        cover_image_url=jam.cover_image_url,
        price_credits=jam.price_credits,
        price_euros=jam.price_euros,
        is_pro=jam.is_pro,
        review_count=review_count,
        avg_rating=avg,
        sale_count=sale_count,
        rank_score=jam_rank_score(avg, review_count),
    )


def rank_jams(
    jams: Iterable[Jam],
    sale_counts: dict[str, int] | None = None,
    limit: int = DEFAULT_LIMIT,
) -> list[ScoredJam]:
    """
    Score, sort by rank_score descending and keep the top `limit`.

    The sort is stable: ties keep the order the store returned them in.
    Jams without reviews score 0 and sink to the bottom.
    """
    sale_counts = sale_counts or {}
    scored = [score_jam(jam, sale_counts.get(jam.id, 0)) for jam in jams]
    scored.sort(key=lambda s: s.rank_score, reverse=True)
    return scored[:limit]


def rank_users(
    profiles: Iterable[dict[str, Any]],
    activity: dict[str, UserActivity],
    limit: int = DEFAULT_LIMIT,
) -> list[ScoredUser]:
    """
    Score every profile from its aggregated activity (users without any
    activity score 0), sort descending (stable) and keep the top `limit`.
    """
    scored: list[ScoredUser] = []
    for profile in profiles:
        counts = activity.get(profile["id"]) or UserActivity()
        scored.append(
            ScoredUser(
                id=profile["id"],
                username=profile.get("username") or "",
                avatar_url=profile.get("avatar_url"),
                full_name=profile.get("full_name"),
                jam_count=counts.jam_count,
                review_count=counts.review_count,
                sale_count=counts.sale_count,
                rank_score=user_rank_score(
                    counts.jam_count, counts.sale_count, counts.review_count
                ),
            )
        )
    scored.sort(key=lambda s: s.rank_score, reverse=True)
    return scored[:limit]


# ---- service ----


class RankingService:
    """
    Builds the rankings page.

    Responsibilities:
      - fetch candidates and aggregated counters from Supabase
      - score and truncate them
      - turn remote failures into a 502 carrying a user-facing message
    """

    def __init__(
        self,
        jam_repo: JamRepository,
        ranking_repo: RankingRepository,
        limit: int = DEFAULT_LIMIT,
    ):
        self.jam_repo = jam_repo
        self.ranking_repo = ranking_repo
        self.limit = limit

    def top_jams(self, client: Client, *, is_pro: bool) -> list[ScoredJam]:
        kind = "pro" if is_pro else "regular"
        try:
            jams = self.jam_repo.list_approved(client, is_pro=is_pro)
            sales = self.ranking_repo.delivered_quantities(client, "jam_id")
        except (APIError, httpx.HTTPError) as e:
            logger.error("Error fetching %s jams ranking: %s", kind, e)
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=f"Unable to load {kind} jams ranking",
            )
        return rank_jams(jams, sales, limit=self.limit)

    def top_users(self, client: Client) -> list[ScoredUser]:
        try:
            profiles = self.ranking_repo.list_ranked_profiles(client)
            activity = self.ranking_repo.user_activity(client)
        except (APIError, httpx.HTTPError) as e:
            logger.error("Error fetching top users: %s", e)
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Unable to load top jam makers",
            )
        return rank_users(profiles, activity, limit=self.limit)
