# app/schemas/jam.py
from datetime import datetime

from pydantic import field_validator
from sqlmodel import SQLModel, Field


class CreatorProfile(SQLModel):
    """
    Public part of the creator's profile embedded in jam rows.
    Missing profiles are defaulted, never raised.
    """

    username: str = ""
    avatar_url: str | None = None
    address: str = ""

    @field_validator("username", "address", mode="before")
    @classmethod
    def null_as_blank(cls, v: str | None) -> str:
        return "" if v is None else v


class JamImage(SQLModel):
    url: str
    is_primary: bool = False


class JamReview(SQLModel):
    """
    Sub-ratings of a single review.
    0 means "not rated" (null ratings are coerced to 0).
    """

    taste_rating: int = 0
    texture_rating: int = 0
    originality_rating: int = 0
    balance_rating: int = 0

    @field_validator(
        "taste_rating",
        "texture_rating",
        "originality_rating",
        "balance_rating",
        mode="before",
    )
    @classmethod
    def null_as_unrated(cls, v: int | None) -> int:
        return 0 if v is None else v

    def sub_ratings(self) -> list[int]:
        return [
            self.taste_rating,
            self.texture_rating,
            self.originality_rating,
            self.balance_rating,
        ]


class Jam(SQLModel):
    """
    A listing as seen by the cart, ranking and explore layers.

    Mirrors the `jams` table plus the embedded relations we select:
      - jam_images
      - jam_reviews (sub-ratings only)
      - creator profile
    """

    id: str
    name: str
    creator_id: str
    description: str = ""

    price_credits: int = Field(ge=0)
    # Set on pro listings, which are priced in euros
    price_euros: float | None = None
    is_pro: bool = False

    is_active: bool = True
    status: str | None = None

    # None => not stock-limited
    available_quantity: int | None = None

    ingredients: list[str] = Field(default_factory=list)
    allergens: list[str] = Field(default_factory=list)
    sugar_content: float | None = None

    created_at: datetime | None = None

    images: list[JamImage] = Field(default_factory=list)
    reviews: list[JamReview] = Field(default_factory=list)
    profile: CreatorProfile = Field(default_factory=CreatorProfile)

    @field_validator("ingredients", "allergens", "images", "reviews", mode="before")
    @classmethod
    def null_as_empty(cls, v):
        return [] if v is None else v

    @field_validator("is_pro", mode="before")
    @classmethod
    def null_as_false(cls, v: bool | None) -> bool:
        return bool(v)

    @property
    def cover_image_url(self) -> str | None:
        for image in self.images:
            if image.is_primary:
                return image.url
        return self.images[0].url if self.images else None


class JamRead(SQLModel):
    """
    Explore result row: the listing plus its computed rating.
    """

    id: str
    name: str
    creator_id: str
    description: str
    price_credits: int
    price_euros: float | None = None
    is_pro: bool
    available_quantity: int | None = None
    ingredients: list[str]
    allergens: list[str]
    sugar_content: float | None = None
    created_at: datetime | None = None
    cover_image_url: str | None = None
    profile: CreatorProfile
    review_count: int
    avg_rating: float
