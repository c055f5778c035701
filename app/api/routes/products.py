"""Product catalog and product review endpoints."""

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Query, Response

from app.api.deps import CurrentUser, Products, SellerUser
from app.schemas.common import Page
from app.schemas.product import (
    CategoryCount,
    ProductCreate,
    ProductDetailResponse,
    ProductResponse,
    ProductSort,
    ProductUpdate,
    ReviewCreate,
    ReviewResponse,
    ReviewUpdate,
)

router = APIRouter(prefix="/api/products", tags=["Products"])
reviews_router = APIRouter(prefix="/api/reviews", tags=["Reviews"])


@router.get("", response_model=Page[ProductResponse])
async def search_products(
    products: Products,
    q: str | None = Query(default=None, description="Search in name and description"),
    category: str | None = Query(default=None, description="Category, or 'all'"),
    min_price: Decimal | None = Query(default=None, ge=0),
    max_price: Decimal | None = Query(default=None, ge=0),
    min_rating: Decimal | None = Query(default=None, ge=0, le=5),
    seller_id: UUID | None = Query(default=None),
    in_stock: bool = Query(default=False),
    sort: ProductSort = Query(default=ProductSort.NEWEST),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> Page[ProductResponse]:
    """List active products with optional filters and pagination."""
    items, total = await products.search(
        query=q,
        category=category,
        min_price=min_price,
        max_price=max_price,
        min_rating=min_rating,
        seller_id=seller_id,
        in_stock=in_stock,
        sort=sort,
        page=page,
        limit=limit,
    )
    return Page[ProductResponse](
        items=[ProductResponse.model_validate(p) for p in items],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/categories", response_model=list[CategoryCount])
async def list_categories(products: Products) -> list[CategoryCount]:
    return [CategoryCount(category=c, count=n) for c, n in await products.categories()]


@router.get("/{product_id}", response_model=ProductDetailResponse)
async def get_product(product_id: UUID, products: Products) -> ProductDetailResponse:
    product = await products.get(product_id)
    detail = ProductDetailResponse.model_validate(product)
    detail.review_count = await products.review_count(product_id)
    return detail


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(payload: ProductCreate, seller: SellerUser, products: Products) -> ProductResponse:
    return ProductResponse.model_validate(await products.create(seller, payload))


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: UUID,
    payload: ProductUpdate,
    user: CurrentUser,
    products: Products,
) -> ProductResponse:
    return ProductResponse.model_validate(await products.update(product_id, user, payload))


@router.delete("/{product_id}", response_model=ProductResponse)
async def delete_product(product_id: UUID, user: CurrentUser, products: Products) -> ProductResponse:
    """Deactivate a product; orders keep referencing it."""
    return ProductResponse.model_validate(await products.deactivate(product_id, user))


# =============================================================================
# Reviews
# =============================================================================


@router.get("/{product_id}/reviews", response_model=list[ReviewResponse])
async def list_reviews(
    product_id: UUID,
    products: Products,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
) -> list[ReviewResponse]:
    reviews = await products.list_reviews(product_id, offset=offset, limit=limit)
    return [ReviewResponse.model_validate(r) for r in reviews]


@router.post("/{product_id}/reviews", response_model=ReviewResponse, status_code=201)
async def create_review(
    product_id: UUID,
    payload: ReviewCreate,
    user: CurrentUser,
    products: Products,
) -> ReviewResponse:
    return ReviewResponse.model_validate(await products.create_review(product_id, user, payload))


@reviews_router.put("/{review_id}", response_model=ReviewResponse)
async def update_review(
    review_id: UUID,
    payload: ReviewUpdate,
    user: CurrentUser,
    products: Products,
) -> ReviewResponse:
    return ReviewResponse.model_validate(await products.update_review(review_id, user, payload))


@reviews_router.delete("/{review_id}", status_code=204)
async def delete_review(review_id: UUID, user: CurrentUser, products: Products) -> Response:
    await products.delete_review(review_id, user)
    return Response(status_code=204)
