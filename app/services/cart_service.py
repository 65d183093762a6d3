# app/services/cart_service.py
import logging

import httpx
from fastapi import HTTPException, status
from postgrest import APIError
from supabase import Client

from app.repositories.jam_repo import JamRepository
from app.schemas.cart import (
    CartItemCreate,
    CartItemRead,
    CartItemUpdate,
    CartSummary,
)
from app.schemas.jam import Jam
from app.services.cart_store import CartError, CartStore, MixedCurrencyError

logger = logging.getLogger(__name__)


class CartService:
    """
    HTTP-facing cart operations on top of CartStore.

    Responsibilities:
      - validate jam existence and active flag
      - map cart rule violations to 400s
      - compute line totals and cart totals
    """

    def __init__(self, jam_repo: JamRepository):
        self.jam_repo = jam_repo

    # ---- internal helpers ----

    def _get_valid_jam(self, client: Client, jam_id: str) -> Jam:
        try:
            jam = self.jam_repo.get_by_id(client, jam_id)
        except (APIError, httpx.HTTPError) as e:
            logger.error("Error fetching jam %s: %s", jam_id, e)
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Unable to load jam",
            )
        if not jam:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Jam not found",
            )
        if not jam.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Jam is inactive",
            )
        return jam

    # ---- public operations ----

    def get_cart_summary(self, store: CartStore) -> CartSummary:
        """
        Return full cart summary:
          - list of CartItemRead (with line_total)
          - total_items
          - total_credits
        """
        item_reads = [
            CartItemRead(
                jam_id=it.jam.id,
                name=it.jam.name,
                quantity=it.quantity,
                price_credits=it.jam.price_credits,
                line_total=it.jam.price_credits * it.quantity,
                cover_image_url=it.jam.cover_image_url,
                creator_username=it.jam.profile.username,
            )
            for it in store.items
        ]
        return CartSummary(
            cart_id=store.cart_id,
            items=item_reads,
            total_items=store.get_total_items(),
            total_credits=store.get_total_credits(),
        )

    def add_to_cart(
        self,
        client: Client,
        store: CartStore,
        payload: CartItemCreate,
    ) -> CartSummary:
        """
        Add a jam to the cart.

        Rules:
          - jam must exist and be active
          - pro (euro-priced) jams are refused
          - quantity is capped by available_quantity
        """
        jam = self._get_valid_jam(client, payload.jam_id)
        try:
            store.add_item(jam, payload.quantity)
        except MixedCurrencyError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Pro jams are priced in euros and cannot be paid with credits",
            )
        except CartError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(e),
            )
        return self.get_cart_summary(store)

    def update_quantity(
        self,
        store: CartStore,
        jam_id: str,
        payload: CartItemUpdate,
    ) -> CartSummary:
        """
        Update the quantity of a line.

        quantity <= 0 removes the line.
        """
        if store.get_item(jam_id) is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Item not in cart",
            )
        store.update_quantity(jam_id, payload.quantity)
        return self.get_cart_summary(store)

    def remove_item(self, store: CartStore, jam_id: str) -> CartSummary:
        """
        Remove a jam from the cart (no-op if absent),
        and return updated summary.
        """
        store.remove_item(jam_id)
        return self.get_cart_summary(store)

    def clear_cart(self, store: CartStore) -> CartSummary:
        """
        Clear all items from the cart and return an empty summary.
        """
        store.clear_cart()
        return CartSummary(items=[], total_items=0, total_credits=0)

    def sync(self, store: CartStore) -> CartSummary:
        """
        Pull the remote cart for authenticated users.
        Guests and failed syncs get the local cart back unchanged.
        """
        store.sync_with_database()
        return self.get_cart_summary(store)
