import secrets
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from pinauth.database import upsert
from pinauth.models.auth import AuthToken
from pinauth.models.user import User


def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


class TokenService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def rotate(self, user_id: UUID) -> str:
        """
        Replace the user's session token with a fresh random value.

        Creates the AuthToken row when the user has none. The caller owns the
        transaction and must commit.
        """
        token = generate_session_token()
        now = datetime.now(timezone.utc)
        stmt = upsert(self.db, AuthToken).values(user_id=user_id, token=token, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[AuthToken.user_id],
            set_={"token": token, "updated_at": now},
        )
        await self.db.execute(stmt)
        return token

    async def get_user_by_token(self, token: str) -> Optional[User]:
        if not token:
            return None
        result = await self.db.execute(
            select(User)
            .join(AuthToken, AuthToken.user_id == User.id)
            .where(AuthToken.token == token, User.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def revoke(self, token: str) -> bool:
        result = await self.db.execute(delete(AuthToken).where(AuthToken.token == token))
        return result.rowcount > 0
