"""User-Organization membership (join table)."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin


class OrganizationMember(TimestampMixin, SQLModel, table=True):
    __tablename__ = "organization_members"

    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    org_id: uuid.UUID = Field(foreign_key="organizations.id", primary_key=True, index=True)
    role: Optional[str] = None  # e.g. "org:admin", "org:member"
