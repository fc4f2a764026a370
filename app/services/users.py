"""
User persistence: mirrors identity-provider users into the ``users`` table.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.base import utcnow
from app.models.organization_member import OrganizationMember
from app.models.user import User
from orgsync_shared.schemas.identity_events import UserPayload

log = structlog.get_logger()


def _user_fields(data: UserPayload) -> dict:
    """Map the provider's user payload onto ``users`` columns."""
    return {
        "email": data.primary_email or "",
        "first_name": data.first_name or None,
        "last_name": data.last_name or None,
        "image_url": data.image_url or None,
        "phone": data.primary_phone or None,
    }


async def get_user_id(clerk_id: str, session: AsyncSession) -> Optional[uuid.UUID]:
    """Resolve the internal user id for an external id."""
    result = await session.execute(select(User.id).where(User.clerk_id == clerk_id))
    return result.scalar_one_or_none()


async def create_user(data: UserPayload, session: AsyncSession) -> User:
    """Insert a user. Raises IntegrityError if the external id already exists."""
    user = User(clerk_id=data.id, **_user_fields(data))
    session.add(user)
    await session.flush()
    log.info("user.created", user_id=str(user.id), clerk_id=data.id)
    return user


async def update_user(data: UserPayload, session: AsyncSession) -> int:
    """Update every user matching the external id. Returns the row count."""
    result = await session.execute(
        update(User)
        .where(User.clerk_id == data.id)
        .values(**_user_fields(data), updated_at=utcnow())
    )
    log.info("user.updated", clerk_id=data.id, rows=result.rowcount)
    return result.rowcount


async def delete_user(clerk_id: str, session: AsyncSession) -> bool:
    """Hard-delete a user and its memberships. Returns False if there was no such user."""
    user_id = await get_user_id(clerk_id, session)
    if user_id is None:
        return False

    # Memberships first, so no row is left pointing at a missing user
    await session.execute(
        delete(OrganizationMember).where(OrganizationMember.user_id == user_id)
    )
    await session.execute(delete(User).where(User.clerk_id == clerk_id))
    await session.flush()

    log.info("user.deleted", user_id=str(user_id), clerk_id=clerk_id)
    return True
