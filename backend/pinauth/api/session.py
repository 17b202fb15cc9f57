import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from pinauth.database import get_db
from pinauth.schemas.auth import AuthActionResponse
from pinauth.schemas.user import UserResponse
from pinauth.services.token_service import TokenService
from pinauth.utils.auth import CurrentUser
from pinauth.utils.cookies import SessionCookieManager, get_cookie_manager

router = APIRouter(prefix="/session", tags=["Session"])
logger = logging.getLogger(__name__)


@router.get("", response_model=UserResponse)
async def get_session(current_user: CurrentUser) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.post("/logout", response_model=AuthActionResponse, response_model_exclude_none=True)
async def logout(
    request: Request,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
    cookies: Annotated[SessionCookieManager, Depends(get_cookie_manager)],
) -> AuthActionResponse:
    session_id = cookies.get_session_id(request)
    if session_id and await TokenService(db).revoke(session_id):
        await db.commit()
        logger.info("Session revoked")

    cookies.clear_session_id(response)
    return AuthActionResponse(success=True)
