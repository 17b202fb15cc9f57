import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pinauth.database import Base

if TYPE_CHECKING:
    from pinauth.models.auth import AuthPin, AuthToken


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500))

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    auth_pin: Mapped[Optional["AuthPin"]] = relationship(
        "AuthPin", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    auth_token: Mapped[Optional["AuthToken"]] = relationship(
        "AuthToken", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )


# Emails are looked up case-insensitively, so they must be unique that way too
Index("idx_users_email_lower", func.lower(User.email), unique=True)
