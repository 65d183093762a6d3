# app/services/cart_store.py
import logging

import httpx
from postgrest import APIError
from supabase import Client

from app.core.cart_storage import CartPersistence
from app.repositories.cart_repo import CartRepository
from app.schemas.cart import Cart, CartItem
from app.schemas.jam import Jam
from app.services.cart_mirror import CartMirror

logger = logging.getLogger(__name__)


class CartError(ValueError):
    """Base class for cart rule violations."""


class MixedCurrencyError(CartError):
    """A euro-priced (pro) jam cannot be paid with credits."""


class CartStore:
    """
    Local, authoritative view of what the current visitor intends to buy.

    - State is loaded from / saved to the injected persistence adapter
      on every mutation.
    - Mutations are applied locally first, then the full cart snapshot is
      handed to the mirror queue; the caller never waits for the remote
      write and never sees its failure.
    - Guests (user_id=None) keep a purely local cart.
    """

    def __init__(
        self,
        persistence: CartPersistence,
        *,
        repo: CartRepository,
        client: Client | None,
        mirror: CartMirror,
        user_id: str | None = None,
    ):
        self.persistence = persistence
        self.repo = repo
        self.client = client
        self.mirror = mirror
        self.user_id = user_id
        self.cart = persistence.load() or Cart()

    # ---- read side ----

    @property
    def items(self) -> list[CartItem]:
        return self.cart.items

    @property
    def cart_id(self) -> str | None:
        return self.cart.cart_id

    def get_item(self, jam_id: str) -> CartItem | None:
        for item in self.cart.items:
            if item.jam.id == jam_id:
                return item
        return None

    def get_total_items(self) -> int:
        return sum(item.quantity for item in self.cart.items)

    def get_total_credits(self) -> int:
        return sum(item.jam.price_credits * item.quantity for item in self.cart.items)

    # ---- mutations ----
    #
    # Each mutation reloads the cart under the persistence lock, so requests
    # racing on the same cart apply one after the other.

    def add_item(self, jam: Jam, quantity: int = 1) -> None:
        """
        Add `quantity` units of `jam`.

        Rules:
          - an existing line is incremented, otherwise a line is appended
          - quantity never exceeds jam.available_quantity (when stock-limited)
          - pro jams are priced in euros and rejected

        Raises:
            MixedCurrencyError: for euro-priced jams.
            CartError: for a non-positive quantity.
        """
        if jam.is_pro:
            raise MixedCurrencyError(
                f"Jam {jam.id} is priced in euros and cannot be bought with credits"
            )
        if quantity <= 0:
            raise CartError("Quantity must be positive")

        with self.persistence.lock:
            self._reload()
            existing = self.get_item(jam.id)
            new_quantity = self._clamp(jam, (existing.quantity if existing else 0) + quantity)
            if new_quantity <= 0:
                raise CartError(f"Jam {jam.id} is out of stock")

            if existing:
                existing.jam = jam
                existing.quantity = new_quantity
            else:
                self.cart.items.append(CartItem(jam=jam, quantity=new_quantity))

            self._commit()

    def remove_item(self, jam_id: str) -> None:
        """Drop the line for `jam_id`; no-op if absent."""
        with self.persistence.lock:
            self._reload()
            if self.get_item(jam_id) is None:
                return
            self.cart.items = [item for item in self.cart.items if item.jam.id != jam_id]
            self._commit()

    def update_quantity(self, jam_id: str, quantity: int) -> None:
        """
        Set the quantity of an existing line (clamped to stock).
        A quantity of 0 or less removes the line; unknown jams are ignored.
        """
        with self.persistence.lock:
            self._reload()
            item = self.get_item(jam_id)
            if item is None:
                return
            quantity = self._clamp(item.jam, quantity)
            if quantity <= 0:
                self.remove_item(jam_id)
                return
            item.quantity = quantity
            self._commit()

    def clear_cart(self) -> None:
        """Empty the cart and forget the remote cart id."""
        with self.persistence.lock:
            self.cart = Cart()
            self._commit()

    # ---- remote ----

    def sync_with_database(self) -> bool:
        """
        Replace local state with the remote cart (last writer wins).

        - Guests: no-op.
        - Otherwise get-or-create the remote cart for the user and load its
          lines; nested gaps are defaulted during row normalisation.

        Failures are logged and leave the local cart untouched.

        Returns:
            True if local state was replaced by the remote view.
        """
        if self.user_id is None or self.client is None:
            return False

        try:
            cart_id = self.repo.get_or_create_cart_id(self.client, self.user_id)
            items = self.repo.list_items(self.client, cart_id)
        except (APIError, httpx.HTTPError) as e:
            logger.error("Cart sync failed for user %s: %s", self.user_id, e)
            return False

        with self.persistence.lock:
            self.cart = Cart(items=items, cart_id=cart_id)
            self.persistence.save(self.cart)
        return True

    # ---- internal helpers ----

    def _reload(self) -> None:
        self.cart = self.persistence.load() or Cart()

    @staticmethod
    def _clamp(jam: Jam, quantity: int) -> int:
        if jam.available_quantity is None:
            return quantity
        return min(quantity, jam.available_quantity)

    def _commit(self) -> None:
        self.persistence.save(self.cart)
        self._mirror()

    def _mirror(self) -> None:
        if self.user_id is None or self.client is None:
            return

        client = self.client
        user_id = self.user_id
        repo = self.repo
        lines = [(item.jam.id, item.quantity) for item in self.cart.items]

        def write() -> None:
            repo.replace_items(client, user_id, lines)

        self.mirror.submit(user_id, write)
