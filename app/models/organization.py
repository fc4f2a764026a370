"""Organization model, mirrored from the identity provider."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Organization(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "organizations"

    clerk_id: str = Field(unique=True, index=True, nullable=False)
    name: str = Field(nullable=False, index=True)
    image_url: Optional[str] = None
