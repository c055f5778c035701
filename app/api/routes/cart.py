"""Shopping cart endpoints."""

from uuid import UUID

from fastapi import APIRouter, Response

from app.api.deps import Cart, CurrentUser
from app.schemas.cart import CartAdd, CartItemResponse, CartQuantityUpdate, CartResponse
from app.services.cart import build_cart

router = APIRouter(prefix="/api/cart", tags=["Cart"])


@router.get("", response_model=CartResponse)
async def get_cart(user: CurrentUser, cart: Cart) -> CartResponse:
    return build_cart(await cart.list_items(user.id))


@router.post("/items", response_model=CartItemResponse, status_code=201)
async def add_to_cart(payload: CartAdd, user: CurrentUser, cart: Cart) -> CartItemResponse:
    """Add a product; adding it again raises the line's quantity."""
    item = await cart.add(user, payload.product_id, payload.quantity)
    return CartItemResponse.model_validate(item)


@router.put("/items/{product_id}", response_model=CartItemResponse)
async def set_cart_quantity(
    product_id: UUID,
    payload: CartQuantityUpdate,
    user: CurrentUser,
    cart: Cart,
) -> CartItemResponse:
    item = await cart.set_quantity(user, product_id, payload.quantity)
    return CartItemResponse.model_validate(item)


@router.delete("/items/{product_id}", status_code=204)
async def remove_from_cart(product_id: UUID, user: CurrentUser, cart: Cart) -> Response:
    await cart.remove(user, product_id)
    return Response(status_code=204)
