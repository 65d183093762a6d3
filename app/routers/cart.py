# app/routers/cart.py
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, status
from supabase import Client

from app.core.auth import get_current_user_id
from app.core.cart_storage import CartPersistence, persistence_for_scope
from app.core.supabase_client import get_admin_client, get_client
from app.repositories.cart_repo import CartRepository
from app.repositories.jam_repo import JamRepository
from app.schemas.cart import CartItemCreate, CartItemUpdate, CartSummary
from app.services.cart_mirror import CartMirror, get_cart_mirror
from app.services.cart_service import CartService
from app.services.cart_store import CartStore

router = APIRouter(prefix="/cart", tags=["Cart"])
logger = logging.getLogger(__name__)

cart_repo = CartRepository()
jam_repo = JamRepository()
service = CartService(jam_repo)


def get_cart_persistence(
    x_cart_session: str | None = Header(default=None),
    user_id: str | None = Depends(get_current_user_id),
) -> CartPersistence:
    """
    Persistence scope of the cart.

    - X-Cart-Session header (client-generated id) when present
    - otherwise the authenticated user id
    - guests without a session id cannot have a cart
    """
    scope = x_cart_session or user_id
    if not scope:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing X-Cart-Session header",
        )
    try:
        return persistence_for_scope(scope)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


def get_mirror_client(
    user_id: str | None = Depends(get_current_user_id),
) -> Client | None:
    """
    Service-role client for mirroring; guests never touch the remote cart.

    Without a service role key the cart stays local for everyone.
    """
    if user_id is None:
        return None
    try:
        return get_admin_client()
    except RuntimeError as e:
        logger.warning("Cart mirroring disabled: %s", e)
        return None


def get_cart_store(
    persistence: CartPersistence = Depends(get_cart_persistence),
    user_id: str | None = Depends(get_current_user_id),
    client: Client | None = Depends(get_mirror_client),
    mirror: CartMirror = Depends(get_cart_mirror),
) -> CartStore:
    return CartStore(
        persistence,
        repo=cart_repo,
        client=client,
        mirror=mirror,
        user_id=user_id,
    )


@router.get("", response_model=CartSummary)
def get_my_cart(store: CartStore = Depends(get_cart_store)):
    """
    Get the current cart summary.
    """
    return service.get_cart_summary(store)


@router.post("/items", response_model=CartSummary)
def add_to_cart(
    payload: CartItemCreate,
    client: Client = Depends(get_client),
    store: CartStore = Depends(get_cart_store),
):
    """
    Add a jam to the cart.

    Returns the updated cart summary; the remote copy is updated
    in the background.
    """
    return service.add_to_cart(client, store, payload)


@router.patch("/items/{jam_id}", response_model=CartSummary)
def update_cart_item(
    jam_id: str,
    payload: CartItemUpdate,
    store: CartStore = Depends(get_cart_store),
):
    """
    Update quantity of a jam in the cart (0 removes it).

    Returns the updated cart summary.
    """
    return service.update_quantity(store, jam_id, payload)


@router.delete("/items/{jam_id}", response_model=CartSummary)
def remove_cart_item(
    jam_id: str,
    store: CartStore = Depends(get_cart_store),
):
    """
    Remove a jam from the cart.

    Returns the updated cart summary.
    """
    return service.remove_item(store, jam_id)


@router.delete("", response_model=CartSummary)
def clear_cart(store: CartStore = Depends(get_cart_store)):
    """
    Clear the entire cart.

    Returns an empty cart summary.
    """
    return service.clear_cart(store)


@router.post("/sync", response_model=CartSummary)
def sync_cart(store: CartStore = Depends(get_cart_store)):
    """
    Replace the local cart with the remote one (authenticated users).
    """
    return service.sync(store)
