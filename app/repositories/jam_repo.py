# app/repositories/jam_repo.py
from typing import Any

from supabase import Client

from app.schemas.filters import FilterState
from app.schemas.jam import Jam

# Jam row + the relations every layer needs
JAM_SELECT = (
    "*, "
    "jam_images (url, is_primary), "
    "jam_reviews (taste_rating, texture_rating, originality_rating, balance_rating), "
    "profiles:creator_id (username, avatar_url, address)"
)

# sort key -> (column, descending)
SORT_COLUMNS: dict[str, tuple[str, bool]] = {
    "recent": ("created_at", True),
    "popular": ("available_quantity", True),
    "price_asc": ("price_credits", False),
    "price_desc": ("price_credits", True),
}


def jam_from_row(row: dict[str, Any]) -> Jam:
    """
    Build a Jam from a `jams` row with embedded relations.

    PostgREST names embedded relations after the table/alias
    (`jam_images`, `jam_reviews`, `profiles`); a missing or null
    relation falls back to an empty value.
    """
    data = dict(row)
    data["images"] = data.pop("jam_images", None) or data.get("images") or []
    data["reviews"] = data.pop("jam_reviews", None) or data.get("reviews") or []
    data["profile"] = data.pop("profiles", None) or data.get("profile") or {}
    return Jam.model_validate(data)


class JamRepository:
    """
    Data access layer for jams.

    - Pure Supabase queries.
    - No FastAPI, no business logic.
    """

    def get_by_id(self, client: Client, jam_id: str) -> Jam | None:
        res = (
            client.table("jams")
            .select(JAM_SELECT)
            .eq("id", jam_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return jam_from_row(rows[0]) if rows else None

    def list_approved(self, client: Client, *, is_pro: bool) -> list[Jam]:
        """Active, approved jams of one kind (regular or pro)."""
        res = (
            client.table("jams")
            .select(JAM_SELECT)
            .eq("is_active", True)
            .eq("is_pro", is_pro)
            .eq("status", "approved")
            .execute()
        )
        return [jam_from_row(row) for row in res.data or []]

    def search(self, client: Client, filters: FilterState) -> list[Jam]:
        """
        Fetch active jams with the indexed predicates pushed down:
          - name ILIKE
          - ingredients overlap selected fruits
          - price_credits <= max_price
          - ORDER BY sort key

        Derived predicates (rating) are evaluated by the caller.
        """
        query = client.table("jams").select(JAM_SELECT).eq("is_active", True)

        if filters.search_term:
            query = query.ilike("name", f"%{filters.search_term}%")

        if filters.fruit:
            query = query.overlaps("ingredients", filters.fruit)

        if filters.max_price is not None:
            query = query.lte("price_credits", filters.max_price)

        column, desc = SORT_COLUMNS[filters.sort_by]
        query = query.order(column, desc=desc)

        res = query.execute()
        return [jam_from_row(row) for row in res.data or []]
