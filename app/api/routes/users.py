"""User administration and self-service profile endpoints."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query

from app.api.deps import AdminUser, CurrentUser, Manager, Users
from app.models.user import UserRole
from app.schemas.common import MessageResponse, Page
from app.schemas.user import AdminUserUpdate, PasswordChange, ProfileUpdate, UserResponse

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("", response_model=Page[UserResponse])
async def list_users(
    _admin: AdminUser,
    users: Users,
    role: UserRole | None = Query(default=None),
    search: str | None = Query(default=None, description="Search by email or name"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
) -> Page[UserResponse]:
    items, total = await users.list_users(role=role, search=search, page=page, limit=limit)
    return Page[UserResponse](
        items=[UserResponse.model_validate(u) for u in items],
        total=total,
        page=page,
        limit=limit,
    )


@router.patch("/me", response_model=UserResponse)
async def update_profile(payload: ProfileUpdate, user: CurrentUser, users: Users) -> UserResponse:
    return UserResponse.model_validate(await users.update_profile(user, payload))


@router.put("/me/password", response_model=MessageResponse)
async def change_password(payload: PasswordChange, user: CurrentUser, users: Users) -> MessageResponse:
    await users.change_password(user, payload.current_password, payload.new_password)
    return MessageResponse(message="Password updated")


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: UUID, user: CurrentUser, users: Users) -> UserResponse:
    if not user.is_admin and user.id != user_id:
        raise HTTPException(status_code=403, detail="Access denied")
    return UserResponse.model_validate(await users.get(user_id))


@router.patch("/{user_id}", response_model=UserResponse)
async def admin_update_user(
    user_id: UUID,
    payload: AdminUserUpdate,
    admin: AdminUser,
    users: Users,
    manager: Manager,
) -> UserResponse:
    """Change another user's role or activation flag.

    Live sockets of the user are closed when either changes, so pushes
    follow the new role from the next connection on.
    """
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="Admins cannot change their own role or status")

    target = await users.get(user_id)
    before = (target.role, target.is_active)
    updated = await users.admin_update(user_id, payload)
    if (updated.role, updated.is_active) != before:
        await manager.disconnect_user(user_id, "role or status changed")
    return UserResponse.model_validate(updated)
