from typing import Optional

from fastapi import Request, Response

from pinauth.config import Settings, get_settings


class SessionCookieManager:
    """Reads and writes the session id cookie."""

    def __init__(self, settings: Settings):
        self.name = settings.session_cookie_name
        self.secure = settings.session_cookie_secure
        self.max_age = settings.session_cookie_max_age

    def get_session_id(self, request: Request) -> Optional[str]:
        return request.cookies.get(self.name) or None

    def set_session_id(self, response: Response, session_id: str) -> None:
        response.set_cookie(
            key=self.name,
            value=session_id,
            max_age=self.max_age,
            path="/",
            secure=self.secure,
            httponly=True,
            samesite="lax",
        )

    def clear_session_id(self, response: Response) -> None:
        response.delete_cookie(
            key=self.name,
            path="/",
            secure=self.secure,
            httponly=True,
            samesite="lax",
        )


def get_cookie_manager() -> SessionCookieManager:
    return SessionCookieManager(get_settings())
