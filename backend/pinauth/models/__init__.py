"""Database models."""

from pinauth.models.auth import AuthPin, AuthToken
from pinauth.models.user import User

__all__ = [
    "User",
    "AuthPin",
    "AuthToken",
]
