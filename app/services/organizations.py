"""
Organization persistence: mirrors identity-provider organizations and their
memberships into ``organizations`` and ``organization_members``.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import delete, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.base import utcnow
from app.models.organization import Organization
from app.models.organization_member import OrganizationMember
from app.services.users import get_user_id
from orgsync_shared.schemas.identity_events import OrganizationPayload

log = structlog.get_logger()


def _insert(session: AsyncSession):
    """Dialect-specific INSERT supporting ON CONFLICT DO UPDATE."""
    if session.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert


async def get_org_id(clerk_id: str, session: AsyncSession) -> Optional[uuid.UUID]:
    """Resolve the internal organization id for an external id."""
    result = await session.execute(
        select(Organization.id).where(Organization.clerk_id == clerk_id)
    )
    return result.scalar_one_or_none()


async def upsert_organization(data: OrganizationPayload, session: AsyncSession) -> None:
    """Create the organization, or overwrite name/image if the external id exists."""
    now = utcnow()
    insert = _insert(session)
    stmt = insert(Organization).values(
        id=uuid.uuid4(),
        clerk_id=data.id,
        name=data.name,
        image_url=data.image_url,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["clerk_id"],
        set_={"name": data.name, "image_url": data.image_url, "updated_at": now},
    )
    await session.execute(stmt)
    await session.flush()
    log.info("org.upserted", clerk_id=data.id)


async def update_organization(data: OrganizationPayload, session: AsyncSession) -> int:
    """Update every organization matching the external id. Returns the row count."""
    result = await session.execute(
        update(Organization)
        .where(Organization.clerk_id == data.id)
        .values(name=data.name, image_url=data.image_url, updated_at=utcnow())
    )
    log.info("org.updated", clerk_id=data.id, rows=result.rowcount)
    return result.rowcount


async def _resolve_membership(
    user_clerk_id: str, org_clerk_id: str, session: AsyncSession
) -> Optional[tuple[uuid.UUID, uuid.UUID]]:
    user_id = await get_user_id(user_clerk_id, session)
    org_id = await get_org_id(org_clerk_id, session)
    if user_id is None or org_id is None:
        return None
    return user_id, org_id


async def upsert_membership(
    user_clerk_id: str,
    org_clerk_id: str,
    role: Optional[str],
    session: AsyncSession,
) -> bool:
    """Link a user to an organization, or update the role of an existing link.

    Returns False (and writes nothing) when either side is not mirrored yet.
    """
    ids = await _resolve_membership(user_clerk_id, org_clerk_id, session)
    if ids is None:
        log.info(
            "membership.skipped",
            user_clerk_id=user_clerk_id,
            org_clerk_id=org_clerk_id,
        )
        return False
    user_id, org_id = ids

    now = utcnow()
    insert = _insert(session)
    stmt = insert(OrganizationMember).values(
        user_id=user_id,
        org_id=org_id,
        role=role,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "org_id"],
        set_={"role": role, "updated_at": now},
    )
    await session.execute(stmt)
    await session.flush()
    log.info("membership.upserted", user_id=str(user_id), org_id=str(org_id), role=role)
    return True


async def delete_membership(
    user_clerk_id: str, org_clerk_id: str, session: AsyncSession
) -> bool:
    """Remove the link between a user and an organization, if both are mirrored."""
    ids = await _resolve_membership(user_clerk_id, org_clerk_id, session)
    if ids is None:
        return False
    user_id, org_id = ids

    await session.execute(
        delete(OrganizationMember).where(
            OrganizationMember.user_id == user_id,
            OrganizationMember.org_id == org_id,
        )
    )
    await session.flush()
    log.info("membership.deleted", user_id=str(user_id), org_id=str(org_id))
    return True
