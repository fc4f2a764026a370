"""
Identity-event reconciler.

Mirrors identity-provider lifecycle events (users, organizations, memberships)
into the local database and forwards them to analytics. Each handler:

1. runs its database statements and commits;
2. on success, sends the "identity updated" analytics call (identify /
   group_identify). Failures there are not caught and abort the request;
3. always captures the "event occurred" analytics event, even when step 1
   failed (see ``capture_on_exit``);
4. returns a ``SyncOutcome``: 201 on success, 500 when the database raised.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional, Union

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.analytics import AnalyticsSink
from app.models.base import utcnow
from app.services import organizations as org_service
from app.services import users as user_service
from orgsync_shared.schemas.common import ANALYTICS_GROUP_TYPE, AnalyticsEvent
from orgsync_shared.schemas.identity_events import (
    DeletedObjectPayload,
    IdentityEvent,
    MembershipCreatedEvent,
    MembershipDeletedEvent,
    OrganizationCreatedEvent,
    OrganizationMembershipPayload,
    OrganizationPayload,
    OrganizationUpdatedEvent,
    UnhandledEvent,
    UserCreatedEvent,
    UserDeletedEvent,
    UserPayload,
    UserUpdatedEvent,
)

log = structlog.get_logger()


@dataclass(frozen=True)
class SyncOutcome:
    """Terminal HTTP status and plain-text body for a handled event."""
    status_code: int
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status_code < 400


@contextmanager
def capture_on_exit(
    analytics: AnalyticsSink, event: AnalyticsEvent, distinct_id: Optional[str]
) -> Iterator[None]:
    """Capture ``event`` when the block exits, however it exits."""
    try:
        yield
    finally:
        if distinct_id:
            analytics.capture(event=event.value, distinct_id=distinct_id)


def _user_properties(data: UserPayload) -> dict:
    return {
        "email": data.primary_email,
        "firstName": data.first_name,
        "lastName": data.last_name,
        "createdAt": data.created_at_datetime,
        "avatar": data.image_url,
        "phoneNumber": data.primary_phone,
    }


def _org_properties(data: OrganizationPayload) -> dict:
    return {"name": data.name, "avatar": data.image_url}


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

async def handle_user_created(
    data: UserPayload, session: AsyncSession, analytics: AnalyticsSink
) -> SyncOutcome:
    with capture_on_exit(analytics, AnalyticsEvent.USER_CREATED, data.id):
        try:
            await user_service.create_user(data, session)
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            log.error("user.create_failed", clerk_id=data.id, error=str(exc))
            return SyncOutcome(500, "User creation failed")

        analytics.identify(distinct_id=data.id, properties=_user_properties(data))
        return SyncOutcome(201, "User created")


async def handle_user_updated(
    data: UserPayload, session: AsyncSession, analytics: AnalyticsSink
) -> SyncOutcome:
    with capture_on_exit(analytics, AnalyticsEvent.USER_UPDATED, data.id):
        try:
            await user_service.update_user(data, session)
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            log.error("user.update_failed", clerk_id=data.id, error=str(exc))
            return SyncOutcome(500, "User update failed")

        analytics.identify(distinct_id=data.id, properties=_user_properties(data))
        return SyncOutcome(201, "User updated")


async def handle_user_deleted(
    data: DeletedObjectPayload, session: AsyncSession, analytics: AnalyticsSink
) -> SyncOutcome:
    # Deletions can arrive for users that were never mirrored, or without an id
    if not data.id:
        return SyncOutcome(201, "User deleted")

    with capture_on_exit(analytics, AnalyticsEvent.USER_DELETED, data.id):
        try:
            await user_service.delete_user(data.id, session)
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            log.error("user.delete_failed", clerk_id=data.id, error=str(exc))
            return SyncOutcome(500, "User delete failed")

        analytics.identify(distinct_id=data.id, properties={"deleted": utcnow()})
        return SyncOutcome(201, "User deleted")


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------

async def handle_organization_created(
    data: OrganizationPayload, session: AsyncSession, analytics: AnalyticsSink
) -> SyncOutcome:
    with capture_on_exit(analytics, AnalyticsEvent.ORGANIZATION_CREATED, data.created_by):
        try:
            await org_service.upsert_organization(data, session)
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            log.error("org.upsert_failed", org_clerk_id=data.id, error=str(exc))
            return SyncOutcome(500, "Organization create failed")

        analytics.group_identify(
            group_type=ANALYTICS_GROUP_TYPE,
            group_key=data.id,
            distinct_id=data.created_by,
            properties=_org_properties(data),
        )
        return SyncOutcome(201, "Organization created")


async def handle_organization_updated(
    data: OrganizationPayload, session: AsyncSession, analytics: AnalyticsSink
) -> SyncOutcome:
    with capture_on_exit(analytics, AnalyticsEvent.ORGANIZATION_UPDATED, data.created_by):
        try:
            await org_service.update_organization(data, session)
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            log.error("org.update_failed", org_clerk_id=data.id, error=str(exc))
            return SyncOutcome(500, "Organization update failed")

        analytics.group_identify(
            group_type=ANALYTICS_GROUP_TYPE,
            group_key=data.id,
            distinct_id=data.created_by,
            properties=_org_properties(data),
        )
        return SyncOutcome(201, "Organization updated")


# ---------------------------------------------------------------------------
# Memberships
# ---------------------------------------------------------------------------

async def handle_membership_created(
    data: OrganizationMembershipPayload, session: AsyncSession, analytics: AnalyticsSink
) -> SyncOutcome:
    user_clerk_id = data.public_user_data.user_id
    org_clerk_id = data.organization.id

    with capture_on_exit(analytics, AnalyticsEvent.MEMBERSHIP_CREATED, user_clerk_id):
        try:
            await org_service.upsert_membership(
                user_clerk_id, org_clerk_id, data.role, session
            )
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            log.error(
                "membership.upsert_failed",
                org_clerk_id=org_clerk_id,
                user_clerk_id=user_clerk_id,
                error=str(exc),
            )
            return SyncOutcome(500, "Organization membership create failed")

        analytics.group_identify(
            group_type=ANALYTICS_GROUP_TYPE,
            group_key=org_clerk_id,
            distinct_id=user_clerk_id,
        )
        return SyncOutcome(201, "Organization membership created")


async def handle_membership_deleted(
    data: OrganizationMembershipPayload, session: AsyncSession, analytics: AnalyticsSink
) -> SyncOutcome:
    user_clerk_id = data.public_user_data.user_id
    org_clerk_id = data.organization.id

    with capture_on_exit(analytics, AnalyticsEvent.MEMBERSHIP_DELETED, user_clerk_id):
        try:
            await org_service.delete_membership(user_clerk_id, org_clerk_id, session)
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            log.error(
                "membership.delete_failed",
                org_clerk_id=org_clerk_id,
                user_clerk_id=user_clerk_id,
                error=str(exc),
            )
            return SyncOutcome(500, "Organization membership delete failed")

        return SyncOutcome(201, "Organization membership deleted")


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

async def dispatch_event(
    event: Union[IdentityEvent, UnhandledEvent],
    session: AsyncSession,
    analytics: AnalyticsSink,
) -> SyncOutcome:
    """Route a parsed event to its handler. Unhandled types are a no-op 201."""
    match event:
        case UserCreatedEvent(data=data):
            return await handle_user_created(data, session, analytics)
        case UserUpdatedEvent(data=data):
            return await handle_user_updated(data, session, analytics)
        case UserDeletedEvent(data=data):
            return await handle_user_deleted(data, session, analytics)
        case OrganizationCreatedEvent(data=data):
            return await handle_organization_created(data, session, analytics)
        case OrganizationUpdatedEvent(data=data):
            return await handle_organization_updated(data, session, analytics)
        case MembershipCreatedEvent(data=data):
            return await handle_membership_created(data, session, analytics)
        case MembershipDeletedEvent(data=data):
            return await handle_membership_deleted(data, session, analytics)
        case _:
            log.debug("webhook.ignored", event_type=event.type)
            return SyncOutcome(201)
