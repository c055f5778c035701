"""User accounts: registration, credentials and profile updates."""

import logging
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import hash_password, verify_password
from app.models.user import User, UserRole
from app.schemas.user import AdminUserUpdate, ProfileUpdate, RegisterRequest
from app.services.errors import NotFoundError, ValidationFailedError

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    """Storage adapter for the ``users`` table."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get(self, user_id: uuid.UUID) -> User:
        user = await self._db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def get_by_email(self, email: str) -> User | None:
        result = await self._db.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    async def register(self, data: RegisterRequest, role: UserRole | None = None) -> User:
        """Create an account. ``role`` overrides the payload (used by seeding)."""
        if await self.get_by_email(data.email) is not None:
            raise ValidationFailedError("Email address is already registered")

        user = User(
            email=normalize_email(data.email),
            password_hash=hash_password(data.password),
            role=role or data.role,
            first_name=data.first_name,
            last_name=data.last_name,
            company=data.company,
            phone=data.phone,
        )
        self._db.add(user)
        await self._db.flush()
        logger.info(f"User registered: {user.id} ({user.role.value})")
        return user

    async def authenticate(self, email: str, password: str) -> User | None:
        """Return the user when the credentials match an active account."""
        user = await self.get_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            return None
        if not user.is_active:
            logger.warning(f"Login attempt for inactive user {user.id}")
            return None
        return user

    async def list_users(
        self,
        role: UserRole | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[User], int]:
        query = select(User)
        if role:
            query = query.where(User.role == role)
        if search:
            needle = search.lower()
            query = query.where(
                or_(
                    func.lower(User.email).contains(needle, autoescape=True),
                    func.lower(User.first_name).contains(needle, autoescape=True),
                    func.lower(User.last_name).contains(needle, autoescape=True),
                )
            )

        total = await self._db.scalar(select(func.count()).select_from(query.subquery())) or 0
        query = query.order_by(User.created_at.desc()).offset((page - 1) * limit).limit(limit)
        result = await self._db.execute(query)
        return list(result.scalars().all()), total

    async def update_profile(self, user: User, data: ProfileUpdate) -> User:
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(user, field, value)
        await self._db.flush()
        return user

    async def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.password_hash):
            raise ValidationFailedError("Current password is incorrect")
        user.password_hash = hash_password(new_password)
        await self._db.flush()
        logger.info(f"Password changed for user {user.id}")

    async def admin_update(self, user_id: uuid.UUID, data: AdminUserUpdate) -> User:
        user = await self.get(user_id)
        for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(user, field, value)
        await self._db.flush()
        logger.info(f"User {user_id} updated by admin: {data.model_dump(exclude_none=True)}")
        return user
