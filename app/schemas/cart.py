# app/schemas/cart.py
from sqlmodel import SQLModel, Field

from app.schemas.jam import Jam


class CartItem(SQLModel):
    """
    One line of the cart.
    A cart never holds 2 lines for the same jam.
    """

    jam: Jam
    quantity: int = Field(gt=0)


class Cart(SQLModel):
    """
    Persisted cart state.

    - items keep insertion order
    - cart_id is the remote `carts.id`, known once synced
    """

    items: list[CartItem] = Field(default_factory=list)
    cart_id: str | None = None


class CartItemCreate(SQLModel):
    """
    Payload for adding to cart.
    """

    jam_id: str
    quantity: int = Field(default=1, gt=0)


class CartItemUpdate(SQLModel):
    """
    Payload for updating quantity of a cart line.
    0 (or less) removes the line.
    """

    quantity: int


class CartItemRead(SQLModel):
    """
    Read model for a single cart line, including line_total.
    """

    jam_id: str
    name: str
    quantity: int
    price_credits: int
    line_total: int
    cover_image_url: str | None = None
    creator_username: str = ""


class CartSummary(SQLModel):
    """
    Full cart response model with totals.
    """

    cart_id: str | None = None
    items: list[CartItemRead]
    total_items: int
    total_credits: int
