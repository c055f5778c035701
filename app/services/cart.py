"""Shopping cart and favorite products."""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.cart import CartItem, Favorite
from app.models.product import Product
from app.models.user import User
from app.schemas.cart import CartItemResponse, CartResponse
from app.services.errors import NotFoundError, ValidationFailedError

logger = logging.getLogger(__name__)


async def _active_product(db: AsyncSession, product_id: uuid.UUID) -> Product:
    product = await db.get(Product, product_id)
    if product is None or not product.is_active:
        raise NotFoundError("Product not found")
    return product


def build_cart(items: list[CartItem]) -> CartResponse:
    """Serialize cart lines; products taken off sale do not count toward the total."""
    total = sum((item.line_total for item in items if item.product.is_active), Decimal("0"))
    return CartResponse(
        items=[CartItemResponse.model_validate(item) for item in items],
        total_price=total,
    )


class CartService:
    """Storage adapter for ``cart_items``: one line per user and product."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def list_items(self, user_id: uuid.UUID) -> list[CartItem]:
        result = await self._db.execute(
            select(CartItem).where(CartItem.user_id == user_id).order_by(CartItem.created_at)
        )
        return list(result.scalars().all())

    async def _get_item(self, user_id: uuid.UUID, product_id: uuid.UUID) -> CartItem | None:
        result = await self._db.execute(
            select(CartItem).where(CartItem.user_id == user_id, CartItem.product_id == product_id)
        )
        return result.scalar_one_or_none()

    async def add(self, user: User, product_id: uuid.UUID, quantity: int = 1) -> CartItem:
        """Put a product in the cart, or raise the quantity of an existing line."""
        product = await _active_product(self._db, product_id)
        if product.seller_id == user.id:
            raise ValidationFailedError("You cannot add your own product to the cart")

        item = await self._get_item(user.id, product_id)
        new_quantity = quantity + (item.quantity if item else 0)
        if new_quantity > product.stock:
            raise ValidationFailedError(f"Insufficient stock: {product.stock} available")

        if item is None:
            item = CartItem(user_id=user.id, product_id=product.id, quantity=new_quantity, product=product)
            self._db.add(item)
        else:
            item.quantity = new_quantity
        await self._db.flush()
        logger.debug(f"Cart of user {user.id}: {product.id} x {new_quantity}")
        return item

    async def set_quantity(self, user: User, product_id: uuid.UUID, quantity: int) -> CartItem:
        item = await self._get_item(user.id, product_id)
        if item is None:
            raise NotFoundError("Product is not in the cart")
        if quantity > item.product.stock:
            raise ValidationFailedError(f"Insufficient stock: {item.product.stock} available")

        item.quantity = quantity
        await self._db.flush()
        return item

    async def remove(self, user: User, product_id: uuid.UUID) -> None:
        """Drop a line; removing a product that is not in the cart is a no-op."""
        item = await self._get_item(user.id, product_id)
        if item is not None:
            await self._db.delete(item)
            await self._db.flush()


class FavoriteService:
    """Storage adapter for ``favorites``."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def list_favorites(self, user_id: uuid.UUID) -> list[Favorite]:
        result = await self._db.execute(
            select(Favorite).where(Favorite.user_id == user_id).order_by(Favorite.created_at.desc())
        )
        return list(result.scalars().all())

    async def add(self, user: User, product_id: uuid.UUID) -> Favorite:
        product = await _active_product(self._db, product_id)

        existing = await self._db.scalar(
            select(Favorite.id).where(Favorite.user_id == user.id, Favorite.product_id == product_id)
        )
        if existing is not None:
            raise ValidationFailedError("Product is already in favorites")

        favorite = Favorite(user_id=user.id, product_id=product.id, product=product)
        self._db.add(favorite)
        await self._db.flush()
        return favorite

    async def remove(self, user: User, favorite_id: uuid.UUID) -> None:
        favorite = await self._db.get(Favorite, favorite_id)
        # Someone else's favorite is reported as missing
        if favorite is None or favorite.user_id != user.id:
            raise NotFoundError("Favorite not found")
        await self._db.delete(favorite)
        await self._db.flush()
