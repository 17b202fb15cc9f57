from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from pinauth.database import get_db
from pinauth.models.user import User
from pinauth.services.token_service import TokenService
from pinauth.utils.cookies import SessionCookieManager, get_cookie_manager


async def get_current_user_optional(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    cookies: Annotated[SessionCookieManager, Depends(get_cookie_manager)],
) -> Optional[User]:
    """
    Resolve the session cookie to its user.
    Returns None if there is no cookie or the token is unknown.
    """
    session_id = cookies.get_session_id(request)
    if not session_id:
        return None
    return await TokenService(db).get_user_by_token(session_id)


async def get_current_user(
    user: Annotated[Optional[User], Depends(get_current_user_optional)],
) -> User:
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user


# Type aliases for dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
CurrentUserOptional = Annotated[Optional[User], Depends(get_current_user_optional)]
