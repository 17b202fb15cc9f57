"""Service layer for business logic."""

from pinauth.services.mailer import SmtpMailer, get_mailer
from pinauth.services.pin_service import PinService, create_pin_code
from pinauth.services.token_service import TokenService
from pinauth.services.user_service import UserService

__all__ = [
    "SmtpMailer",
    "get_mailer",
    "PinService",
    "create_pin_code",
    "TokenService",
    "UserService",
]
