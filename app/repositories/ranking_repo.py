# app/repositories/ranking_repo.py
from collections import Counter
from typing import Any

from supabase import Client

from app.schemas.ranking import UserActivity


class RankingRepository:
    """
    Read-only aggregated queries for rankings.

    Every metric is fetched once for all users and grouped by id here,
    so the number of round trips does not grow with the number of users.
    """

    def list_ranked_profiles(self, client: Client) -> list[dict[str, Any]]:
        """Profiles eligible for the makers ranking (pros excluded)."""
        res = (
            client.table("profiles")
            .select("id, username, avatar_url, full_name, role")
            .neq("role", "pro")
            .execute()
        )
        return list(res.data or [])

    def jam_counts_by_creator(self, client: Client) -> Counter:
        res = (
            client.table("jams")
            .select("creator_id")
            .eq("is_pro", False)
            .execute()
        )
        return Counter(row["creator_id"] for row in res.data or [])

    def review_counts_by_reviewer(self, client: Client) -> Counter:
        res = client.table("jam_reviews").select("reviewer_id").execute()
        return Counter(row["reviewer_id"] for row in res.data or [])

    def delivered_quantities(self, client: Client, group_by: str) -> Counter:
        """
        Sum of delivered order quantities grouped by `group_by`
        ("seller_id" or "jam_id").
        """
        res = (
            client.table("orders")
            .select(f"{group_by}, quantity")
            .eq("status", "delivered")
            .execute()
        )
        totals: Counter = Counter()
        for row in res.data or []:
            totals[row[group_by]] += row.get("quantity") or 0
        return totals

    def user_activity(self, client: Client) -> dict[str, UserActivity]:
        """
        jam_count / review_count / sale_count for every user that
        appears in at least one of the three sources.
        """
        jams = self.jam_counts_by_creator(client)
        reviews = self.review_counts_by_reviewer(client)
        sales = self.delivered_quantities(client, "seller_id")

        activity: dict[str, UserActivity] = {}
        for user_id in set(jams) | set(reviews) | set(sales):
            activity[user_id] = UserActivity(
                jam_count=jams[user_id],
                review_count=reviews[user_id],
                sale_count=sales[user_id],
            )
        return activity
