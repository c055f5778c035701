"""Product catalog and reviews."""

import logging
import uuid
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.product import Product, Review
from app.models.user import User, UserRole
from app.schemas.product import ProductCreate, ProductSort, ProductUpdate, ReviewCreate, ReviewUpdate
from app.services.errors import NotFoundError, PermissionDeniedError, ValidationFailedError

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "all"

_SORT_ORDER = {
    ProductSort.NEWEST: (Product.created_at.desc(),),
    ProductSort.PRICE_ASC: (Product.price.asc(), Product.created_at.desc()),
    ProductSort.PRICE_DESC: (Product.price.desc(), Product.created_at.desc()),
    ProductSort.RATING: (Product.rating.desc(), Product.created_at.desc()),
}


class ProductService:
    """Storage adapter for products and their reviews."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    # =========================================================================
    # Products
    # =========================================================================

    async def search(
        self,
        query: str | None = None,
        category: str | None = None,
        min_price: Decimal | None = None,
        max_price: Decimal | None = None,
        min_rating: Decimal | None = None,
        seller_id: uuid.UUID | None = None,
        in_stock: bool = False,
        sort: ProductSort = ProductSort.NEWEST,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Product], int]:
        """Filter active products and return one page plus the total match count."""
        stmt = select(Product).where(Product.is_active.is_(True))

        if query:
            needle = query.strip().lower()
            stmt = stmt.where(
                or_(
                    func.lower(Product.name).contains(needle, autoescape=True),
                    func.lower(func.coalesce(Product.description, "")).contains(needle, autoescape=True),
                )
            )
        if category and category != ALL_CATEGORIES:
            stmt = stmt.where(Product.category == category)
        if min_price is not None:
            stmt = stmt.where(Product.price >= min_price)
        if max_price is not None:
            stmt = stmt.where(Product.price <= max_price)
        if min_rating is not None:
            stmt = stmt.where(Product.rating >= min_rating)
        if seller_id is not None:
            stmt = stmt.where(Product.seller_id == seller_id)
        if in_stock:
            stmt = stmt.where(Product.stock > 0)

        total = await self._db.scalar(select(func.count()).select_from(stmt.subquery())) or 0

        stmt = stmt.order_by(*_SORT_ORDER[sort]).offset((page - 1) * limit).limit(limit)
        result = await self._db.execute(stmt)
        return list(result.scalars().all()), total

    async def categories(self) -> list[tuple[str, int]]:
        result = await self._db.execute(
            select(Product.category, func.count(Product.id))
            .where(Product.is_active.is_(True))
            .group_by(Product.category)
            .order_by(Product.category)
        )
        return [(category, count) for category, count in result.all()]

    async def get(self, product_id: uuid.UUID, include_inactive: bool = False) -> Product:
        product = await self._db.get(Product, product_id)
        if product is None or (not product.is_active and not include_inactive):
            raise NotFoundError("Product not found")
        return product

    async def review_count(self, product_id: uuid.UUID) -> int:
        return await self._db.scalar(
            select(func.count(Review.id)).where(Review.product_id == product_id)
        ) or 0

    async def create(self, seller: User, data: ProductCreate) -> Product:
        if seller.role not in (UserRole.SELLER, UserRole.ADMIN):
            raise PermissionDeniedError("Only sellers can list products")

        product = Product(seller_id=seller.id, **data.model_dump())
        self._db.add(product)
        await self._db.flush()
        logger.info(f"Product created: {product.id} by seller {seller.id}")
        return product

    async def update(self, product_id: uuid.UUID, actor: User, data: ProductUpdate) -> Product:
        product = await self.get(product_id, include_inactive=True)
        self._check_owner(product, actor)

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(product, field, value)
        await self._db.flush()
        return product

    async def deactivate(self, product_id: uuid.UUID, actor: User) -> Product:
        product = await self.get(product_id, include_inactive=True)
        self._check_owner(product, actor)

        product.is_active = False
        await self._db.flush()
        logger.info(f"Product deactivated: {product.id} by {actor.id}")
        return product

    @staticmethod
    def _check_owner(product: Product, actor: User) -> None:
        if not actor.is_admin and product.seller_id != actor.id:
            raise PermissionDeniedError("You can only manage your own products")

    # =========================================================================
    # Reviews
    # =========================================================================

    async def list_reviews(
        self,
        product_id: uuid.UUID,
        offset: int = 0,
        limit: int = 20,
    ) -> list[Review]:
        await self.get(product_id)
        result = await self._db.execute(
            select(Review)
            .where(Review.product_id == product_id)
            .order_by(Review.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def create_review(self, product_id: uuid.UUID, user: User, data: ReviewCreate) -> Review:
        await self.get(product_id)

        existing = await self._db.scalar(
            select(Review.id).where(Review.product_id == product_id, Review.user_id == user.id)
        )
        if existing is not None:
            raise ValidationFailedError("You can review a product only once")

        review = Review(product_id=product_id, user_id=user.id, **data.model_dump())
        self._db.add(review)
        await self._db.flush()
        await self._refresh_rating(product_id)
        return review

    async def update_review(self, review_id: uuid.UUID, user: User, data: ReviewUpdate) -> Review:
        review = await self._get_own_review(review_id, user)
        for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(review, field, value)
        await self._db.flush()
        await self._refresh_rating(review.product_id)
        return review

    async def delete_review(self, review_id: uuid.UUID, user: User) -> None:
        review = await self._get_own_review(review_id, user)
        product_id = review.product_id
        await self._db.delete(review)
        await self._db.flush()
        await self._refresh_rating(product_id)

    async def _get_own_review(self, review_id: uuid.UUID, user: User) -> Review:
        review = await self._db.get(Review, review_id)
        if review is None:
            raise NotFoundError("Review not found")
        if review.user_id != user.id:
            raise PermissionDeniedError("You can only change your own reviews")
        return review

    async def _refresh_rating(self, product_id: uuid.UUID) -> None:
        """Store the mean review rating on the product (0 without reviews)."""
        average = await self._db.scalar(
            select(func.avg(Review.rating)).where(Review.product_id == product_id)
        )
        product = await self._db.get(Product, product_id)
        if product is None:
            return
        rating = Decimal(str(average or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        product.rating = rating
        await self._db.flush()
