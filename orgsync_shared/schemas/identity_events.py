"""Identity-provider webhook event schemas.

Each event type is its own model carrying a typed ``data`` payload; the known
types form a discriminated union on ``type``. Unknown types parse into
``UnhandledEvent`` so callers can accept them without side effects.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from .common import EventType


# ---------------------------------------------------------------------------
# Payload schemas
# ---------------------------------------------------------------------------

class EmailAddress(BaseModel):
    email_address: str


class PhoneNumber(BaseModel):
    phone_number: str


class UserPayload(BaseModel):
    """``data`` of user.created / user.updated."""
    id: str
    email_addresses: list[EmailAddress] = Field(default_factory=list)
    phone_numbers: list[PhoneNumber] = Field(default_factory=list)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[int] = None  # epoch milliseconds

    @property
    def primary_email(self) -> Optional[str]:
        return self.email_addresses[0].email_address if self.email_addresses else None

    @property
    def primary_phone(self) -> Optional[str]:
        return self.phone_numbers[0].phone_number if self.phone_numbers else None

    @property
    def created_at_datetime(self) -> Optional[datetime]:
        if self.created_at is None:
            return None
        return datetime.fromtimestamp(self.created_at / 1000, tz=timezone.utc)


class DeletedObjectPayload(BaseModel):
    """``data`` of *.deleted events for top-level objects. ``id`` may be absent."""
    id: Optional[str] = None
    object: Optional[str] = None
    deleted: bool = True


class OrganizationPayload(BaseModel):
    """``data`` of organization.created / organization.updated."""
    id: str
    name: str
    image_url: Optional[str] = None
    created_by: Optional[str] = None


class PublicUserData(BaseModel):
    user_id: str
    identifier: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None


class OrganizationMembershipPayload(BaseModel):
    """``data`` of organizationMembership.* events."""
    id: Optional[str] = None
    role: Optional[str] = None
    organization: OrganizationPayload
    public_user_data: PublicUserData


# ---------------------------------------------------------------------------
# Event variants
# ---------------------------------------------------------------------------

class UserCreatedEvent(BaseModel):
    type: Literal["user.created"]
    data: UserPayload


class UserUpdatedEvent(BaseModel):
    type: Literal["user.updated"]
    data: UserPayload


class UserDeletedEvent(BaseModel):
    type: Literal["user.deleted"]
    data: DeletedObjectPayload


class OrganizationCreatedEvent(BaseModel):
    type: Literal["organization.created"]
    data: OrganizationPayload


class OrganizationUpdatedEvent(BaseModel):
    type: Literal["organization.updated"]
    data: OrganizationPayload


class MembershipCreatedEvent(BaseModel):
    type: Literal["organizationMembership.created"]
    data: OrganizationMembershipPayload


class MembershipDeletedEvent(BaseModel):
    type: Literal["organizationMembership.deleted"]
    data: OrganizationMembershipPayload


class UnhandledEvent(BaseModel):
    """Any event type this service does not reconcile."""
    type: Any = None
    data: Any = None


IdentityEvent = Annotated[
    Union[
        UserCreatedEvent,
        UserUpdatedEvent,
        UserDeletedEvent,
        OrganizationCreatedEvent,
        OrganizationUpdatedEvent,
        MembershipCreatedEvent,
        MembershipDeletedEvent,
    ],
    Field(discriminator="type"),
]

_identity_event_adapter: TypeAdapter[IdentityEvent] = TypeAdapter(IdentityEvent)

HANDLED_EVENT_TYPES = frozenset(t.value for t in EventType)


def parse_identity_event(payload: dict[str, Any]) -> Union[IdentityEvent, UnhandledEvent]:
    """Parse a verified webhook payload into its event variant.

    Raises pydantic.ValidationError if a known event type carries a malformed payload.
    """
    event_type = payload.get("type")
    if not isinstance(event_type, str) or event_type not in HANDLED_EVENT_TYPES:
        return UnhandledEvent.model_validate(payload)
    return _identity_event_adapter.validate_python(payload)
