"""User model, mirrored from the identity provider."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    clerk_id: str = Field(unique=True, index=True, nullable=False)  # identity provider's id
    email: str = Field(default="", nullable=False, index=True)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None
    phone: Optional[str] = None
