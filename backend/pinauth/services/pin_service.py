import logging
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pinauth.database import upsert
from pinauth.models.auth import AuthPin
from pinauth.models.user import User
from pinauth.services.token_service import TokenService
from pinauth.services.user_service import normalize_email

logger = logging.getLogger(__name__)

PIN_CODE_CHARS = string.digits


def create_pin_code(length: int = 6) -> str:
    """Return ``length`` digits, each drawn independently from 0-9."""
    return "".join(secrets.choice(PIN_CODE_CHARS) for _ in range(length))


class PinAlreadyConsumedError(Exception):
    pass


class PinService:
    def __init__(self, db: AsyncSession, pin_length: int = 6, ttl_minutes: int = 5):
        self.db = db
        self.pin_length = pin_length
        self.ttl = timedelta(minutes=ttl_minutes)

    async def issue(self, user: User) -> str:
        """Store a new code for ``user``, replacing any previous one, and commit."""
        pin_code = create_pin_code(self.pin_length)
        now = datetime.now(timezone.utc)

        stmt = upsert(self.db, AuthPin).values(user_id=user.id, pin_code=pin_code, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[AuthPin.user_id],
            set_={"pin_code": pin_code, "updated_at": now},
        )
        await self.db.execute(stmt)
        await self.db.commit()
        logger.info("Issued sign-in code for user %s", user.id)
        return pin_code

    async def find_valid_pin(
        self, email: str, pin_code: str, now: datetime | None = None
    ) -> Optional[AuthPin]:
        """
        Find the pin matching ``pin_code`` that belongs to the user with
        ``email`` and was written within the validity window.
        """
        now = now or datetime.now(timezone.utc)
        limit_date = now - self.ttl

        result = await self.db.execute(
            select(AuthPin)
            .join(User, AuthPin.user_id == User.id)
            .where(
                AuthPin.pin_code == pin_code,
                func.lower(User.email) == normalize_email(email),
                AuthPin.updated_at > limit_date,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def consume(self, auth_pin: AuthPin) -> str:
        """
        Rotate the owner's session token and delete ``auth_pin`` in one
        transaction, returning the new token.

        Raises PinAlreadyConsumedError when the pin row is already gone; both
        writes are rolled back in that case.
        """
        token_service = TokenService(self.db)
        try:
            token = await token_service.rotate(auth_pin.user_id)
            result = await self.db.execute(delete(AuthPin).where(AuthPin.id == auth_pin.id))
            if result.rowcount != 1:
                logger.warning(
                    "Pin %s for user %s was consumed concurrently", auth_pin.id, auth_pin.user_id
                )
                raise PinAlreadyConsumedError(f"Pin {auth_pin.id} was already used")
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return token
