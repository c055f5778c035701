"""Favorite product endpoints."""

from uuid import UUID

from fastapi import APIRouter, Response

from app.api.deps import CurrentUser, Favorites
from app.schemas.cart import FavoriteAdd, FavoriteResponse

router = APIRouter(prefix="/api/favorites", tags=["Favorites"])


@router.get("", response_model=list[FavoriteResponse])
async def list_favorites(user: CurrentUser, favorites: Favorites) -> list[FavoriteResponse]:
    return [FavoriteResponse.model_validate(f) for f in await favorites.list_favorites(user.id)]


@router.post("", response_model=FavoriteResponse, status_code=201)
async def add_favorite(payload: FavoriteAdd, user: CurrentUser, favorites: Favorites) -> FavoriteResponse:
    return FavoriteResponse.model_validate(await favorites.add(user, payload.product_id))


@router.delete("/{favorite_id}", status_code=204)
async def remove_favorite(favorite_id: UUID, user: CurrentUser, favorites: Favorites) -> Response:
    await favorites.remove(user, favorite_id)
    return Response(status_code=204)
