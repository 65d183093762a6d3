# app/repositories/cart_repo.py
from postgrest import APIError
from supabase import Client

from app.repositories.jam_repo import JAM_SELECT, jam_from_row
from app.schemas.cart import CartItem


class CartRepository:
    """
    Remote mirror of carts: `carts` (one per user) and `cart_items`.
    """

    def get_cart_id(self, client: Client, user_id: str) -> str | None:
        res = (
            client.table("carts")
            .select("id")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0]["id"] if rows else None

    def get_or_create_cart_id(self, client: Client, user_id: str) -> str:
        cart_id = self.get_cart_id(client, user_id)
        if cart_id is not None:
            return cart_id
        res = client.table("carts").insert({"user_id": user_id}).execute()
        if not res.data:
            # row hidden by RLS or not returned by the insert
            raise APIError(
                {"message": f"Cart for user {user_id} was not created", "code": "PGRST116"}
            )
        return res.data[0]["id"]

    def list_items(self, client: Client, cart_id: str) -> list[CartItem]:
        """
        Remote cart lines with the full jam embedded.
        Lines whose jam has been deleted are skipped.
        """
        res = (
            client.table("cart_items")
            .select(f"jam_id, quantity, created_at, jams ({JAM_SELECT})")
            .eq("cart_id", cart_id)
            .order("created_at")
            .execute()
        )
        items: list[CartItem] = []
        for row in res.data or []:
            jam_row = row.get("jams")
            if not jam_row or row.get("quantity", 0) <= 0:
                continue
            items.append(CartItem(jam=jam_from_row(jam_row), quantity=row["quantity"]))
        return items

    def replace_items(
        self,
        client: Client,
        user_id: str,
        lines: list[tuple[str, int]],
    ) -> str:
        """
        Make the remote cart hold exactly `lines` (jam_id, quantity).

        - upsert present lines (unique on cart_id + jam_id)
        - delete lines no longer in the snapshot

        Returns the remote cart id.
        """
        cart_id = self.get_or_create_cart_id(client, user_id)

        wanted = {jam_id for jam_id, _ in lines}
        res = (
            client.table("cart_items")
            .select("jam_id")
            .eq("cart_id", cart_id)
            .execute()
        )
        stale = [row["jam_id"] for row in res.data or [] if row["jam_id"] not in wanted]

        if lines:
            client.table("cart_items").upsert(
                [
                    {"cart_id": cart_id, "jam_id": jam_id, "quantity": quantity}
                    for jam_id, quantity in lines
                ],
                on_conflict="cart_id,jam_id",
            ).execute()

        if stale:
            (
                client.table("cart_items")
                .delete()
                .eq("cart_id", cart_id)
                .in_("jam_id", stale)
                .execute()
            )

        return cart_id
