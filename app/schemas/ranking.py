# app/schemas/ranking.py
from sqlmodel import SQLModel

from app.schemas.jam import CreatorProfile


class ScoredJam(SQLModel):
    """
    Ranked jam entry (regular or pro rankings).
    """

    id: str
    name: str
    creator_id: str
    profile: CreatorProfile
    cover_image_url: str | None = None
    price_credits: int
    price_euros: float | None = None
    is_pro: bool

    review_count: int
    avg_rating: float
    sale_count: int
    rank_score: float


class UserActivity(SQLModel):
    """
    Per-user counters aggregated from jams, jam_reviews and orders.
    """

    jam_count: int = 0
    review_count: int = 0
    sale_count: int = 0


class ScoredUser(SQLModel):
    """
    Ranked jam maker entry.
    """

    id: str
    username: str = ""
    avatar_url: str | None = None
    full_name: str | None = None

    jam_count: int
    review_count: int
    sale_count: int
    rank_score: float
