from enum import Enum


class EventType(str, Enum):
    """Identity-provider webhook event types reconciled into the database."""
    USER_CREATED = "user.created"
    USER_UPDATED = "user.updated"
    USER_DELETED = "user.deleted"
    ORGANIZATION_CREATED = "organization.created"
    ORGANIZATION_UPDATED = "organization.updated"
    MEMBERSHIP_CREATED = "organizationMembership.created"
    MEMBERSHIP_DELETED = "organizationMembership.deleted"


class AnalyticsEvent(str, Enum):
    """Names of the "event occurred" analytics captures, one per event type."""
    USER_CREATED = "User Created"
    USER_UPDATED = "User Updated"
    USER_DELETED = "User Deleted"
    ORGANIZATION_CREATED = "Organization Created"
    ORGANIZATION_UPDATED = "Organization Updated"
    MEMBERSHIP_CREATED = "Organization Member Created"
    MEMBERSHIP_DELETED = "Organization Member Deleted"


# Group type used for organizations in analytics group identify calls
ANALYTICS_GROUP_TYPE = "company"
