import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from pinauth.config import get_settings
from pinauth.database import get_db
from pinauth.schemas.auth import (
    AuthActionResponse,
    GoogleCredential,
    GoogleLoginForm,
    MissingFieldsError,
    PinCodePageResponse,
    PinLoginForm,
    PinSubmitForm,
    parse_form,
)
from pinauth.services.mailer import Mailer, get_mailer, send_pin_code_email
from pinauth.services.pin_service import PinAlreadyConsumedError, PinService
from pinauth.services.token_service import TokenService
from pinauth.services.user_service import UserService
from pinauth.utils.auth import CurrentUserOptional
from pinauth.utils.cookies import SessionCookieManager, get_cookie_manager
from pinauth.utils.google import decode_credential, verify_credential
from pinauth.utils.redaction import mask_email

router = APIRouter(prefix="/pin_code", tags=["Authentication"])
settings = get_settings()
logger = logging.getLogger(__name__)

INVALID_CREDENTIAL = "Invalid credential"


def _pin_service(db: AsyncSession) -> PinService:
    return PinService(
        db,
        pin_length=settings.pin_code_length,
        ttl_minutes=settings.pin_code_ttl_minutes,
    )


def _safe_redirect(url: Optional[str]) -> str:
    url = (url or "").strip()
    if not url.startswith("/") or url.startswith("//") or "\\" in url:
        return "/"
    return url


async def _resolve_google_identity(credential: str) -> GoogleCredential:
    mode = settings.google_mode()
    if mode == "disabled":
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Google sign-in is not configured",
        )

    try:
        identity = decode_credential(credential)
    except ValueError as e:
        logger.info("Rejected malformed Google credential: %s", e)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": INVALID_CREDENTIAL},
        ) from None

    if mode == "verified":
        try:
            identity = await verify_credential(
                credential,
                settings.google_issuer_url,
                settings.google_client_id,
            )
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=str(e),
            ) from None
    else:
        logger.warning("GOOGLE_CLIENT_ID is not set; accepting an unverified credential (dev mode)")

    return identity


@router.get("", response_model=PinCodePageResponse)
async def pin_code_page(
    current_user: CurrentUserOptional,
    redirect_url: Optional[str] = None,
) -> Response | PinCodePageResponse:
    if current_user:
        return RedirectResponse(_safe_redirect(redirect_url), status_code=status.HTTP_302_FOUND)

    return PinCodePageResponse(
        authenticated=False,
        pin_code_length=settings.pin_code_length,
        google_client_id=settings.google_client_id,
    )


@router.post("/login", response_model=AuthActionResponse, response_model_exclude_none=True)
async def login(
    db: Annotated[AsyncSession, Depends(get_db)],
    mailer: Annotated[Mailer, Depends(get_mailer)],
    email: Annotated[Optional[str], Form()] = None,
) -> Response | AuthActionResponse:
    try:
        form = parse_form(PinLoginForm, {"email": email})
    except MissingFieldsError:
        # Unlike submit, a blank email sends the browser back home.
        return RedirectResponse("/", status_code=status.HTTP_302_FOUND)

    user = await UserService(db).get_by_email(form.email)
    if not user:
        logger.info("Sign-in code requested for unknown email %s", mask_email(form.email))
        return AuthActionResponse(
            success=False, email=form.email, missing=False, credentials=True
        )

    pin_code = await _pin_service(db).issue(user)
    # Delivery is best-effort; the response does not depend on it.
    await send_pin_code_email(mailer, user, pin_code, settings.pin_email_subject)

    return AuthActionResponse(success=True, email=form.email, missing=False, credentials=False)


@router.post("/submit", response_model=AuthActionResponse, response_model_exclude_none=True)
async def submit(
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
    cookies: Annotated[SessionCookieManager, Depends(get_cookie_manager)],
    email: Annotated[Optional[str], Form()] = None,
    pin_code: Annotated[Optional[str], Form()] = None,
) -> AuthActionResponse:
    try:
        form = parse_form(PinSubmitForm, {"email": email, "pin_code": pin_code})
    except MissingFieldsError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"missing": True, "email": e.data.get("email", "")},
        ) from None

    invalid_credentials = HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"credentials": True, "email": form.email},
    )

    pin_service = _pin_service(db)
    auth_pin = await pin_service.find_valid_pin(form.email, form.pin_code)
    if not auth_pin:
        logger.info("Invalid or expired sign-in code for %s", mask_email(form.email))
        raise invalid_credentials

    user_id = auth_pin.user_id
    try:
        token = await pin_service.consume(auth_pin)
    except PinAlreadyConsumedError:
        raise invalid_credentials from None

    user_service = UserService(db)
    user = await user_service.get_by_id(user_id)
    if user:
        await user_service.update_last_login(user)
        await db.commit()

    cookies.set_session_id(response, token)
    logger.info("User %s signed in with a sign-in code", user_id)

    return AuthActionResponse(success=True, email=form.email)


@router.post("/google", response_model=AuthActionResponse, response_model_exclude_none=True)
async def google_login(
    db: Annotated[AsyncSession, Depends(get_db)],
    cookies: Annotated[SessionCookieManager, Depends(get_cookie_manager)],
    credential: Annotated[Optional[str], Form()] = None,
) -> Response | AuthActionResponse:
    try:
        form = parse_form(GoogleLoginForm, {"credential": credential})
    except MissingFieldsError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": INVALID_CREDENTIAL},
        ) from None

    identity = await _resolve_google_identity(form.credential)
    logger.debug(
        "Google identity sub=%s email=%s name_present=%s picture_present=%s",
        identity.sub,
        mask_email(identity.email),
        bool(identity.name),
        bool(identity.picture),
    )

    user_service = UserService(db)
    user = await user_service.get_by_email(identity.email)
    if not user:
        logger.info("Google sign-in for unknown email %s", mask_email(identity.email))
        return AuthActionResponse(
            success=False, email=identity.email, missing=False, credentials=True
        )

    token = await TokenService(db).rotate(user.id)
    await user_service.update_last_login(user)
    await db.commit()

    redirect = RedirectResponse(
        settings.google_login_redirect_path, status_code=status.HTTP_302_FOUND
    )
    cookies.set_session_id(redirect, token)
    logger.info("User %s signed in with Google", user.id)
    return redirect
