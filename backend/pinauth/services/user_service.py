from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pinauth.models.user import User
from pinauth.schemas.user import UserCreate


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str, active_only: bool = True) -> Optional[User]:
        """Look up a user by email, ignoring case and surrounding whitespace."""
        query = select(User).where(func.lower(User.email) == normalize_email(email))

        if active_only:
            query = query.where(User.is_active.is_(True))

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def create(self, user_data: UserCreate) -> User:
        existing = await self.get_by_email(user_data.email, active_only=False)
        if existing is not None:
            raise UserEmailConflictError(f"A user with email {user_data.email} already exists.")

        user = User(
            email=normalize_email(user_data.email),
            display_name=user_data.display_name,
            avatar_url=user_data.avatar_url,
        )
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def update_last_login(self, user: User) -> None:
        user.last_login_at = datetime.now(timezone.utc)
        await self.db.flush()


class UserEmailConflictError(Exception):
    pass
