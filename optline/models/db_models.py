"""OPTLINE — Database Models.

Workspace-scoped tables backing subscription groups, their internal segments,
segment membership, and the collaborator stores the engine reads from
(channels, secrets, user properties) and appends to (user events).
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Column, Text
from sqlmodel import SQLModel, Field, UniqueConstraint


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Channel(SQLModel, table=True):
    """A messaging channel (e.g. "email") registered for a workspace."""

    __tablename__ = "channels"
    __table_args__ = (
        UniqueConstraint("workspace_id", "name", name="uq_channel_workspace_name"),
    )

    id: str = Field(default_factory=_uuid, primary_key=True)
    workspace_id: str = Field(index=True)
    name: str
    created_at: datetime = Field(default_factory=_now)


class Secret(SQLModel, table=True):
    """Workspace-scoped named secret. Holds the subscription link key."""

    __tablename__ = "secrets"
    __table_args__ = (
        UniqueConstraint("workspace_id", "name", name="uq_secret_workspace_name"),
    )

    id: str = Field(default_factory=_uuid, primary_key=True)
    workspace_id: str = Field(index=True)
    name: str
    value: str
    created_at: datetime = Field(default_factory=_now)


class SubscriptionGroup(SQLModel, table=True):
    """User-facing grouping of messaging consent.

    Every group is paired with exactly one internal segment; the two are
    written together by the registry and never exist independently.
    """

    __tablename__ = "subscription_groups"

    id: str = Field(default_factory=_uuid, primary_key=True)
    workspace_id: str = Field(index=True)
    name: str = Field(index=True)
    type: str = Field(description="OptIn | OptOut")
    channel_id: str = Field(foreign_key="channels.id")
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class Segment(SQLModel, table=True):
    """A segment definition.

    Internal segments mirror a subscription group's membership and are not
    user editable.
    """

    __tablename__ = "segments"
    __table_args__ = (
        UniqueConstraint("workspace_id", "name", name="uq_segment_workspace_name"),
    )

    id: str = Field(default_factory=_uuid, primary_key=True)
    workspace_id: str = Field(index=True)
    name: str
    definition: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    subscription_group_id: Optional[str] = Field(
        default=None, foreign_key="subscription_groups.id", index=True
    )
    resource_type: str = Field(default="Declarative", description="Declarative | Internal")
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class SegmentAssignment(SQLModel, table=True):
    """Current membership of a user in a segment.

    Unique on (workspace_id, user_id, segment_id); writes are last-write-wins
    upserts on in_segment.
    """

    __tablename__ = "segment_assignments"
    __table_args__ = (
        UniqueConstraint(
            "workspace_id",
            "user_id",
            "segment_id",
            name="uq_segment_assignment",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_id: str = Field(index=True)
    user_id: str = Field(index=True)
    segment_id: str = Field(foreign_key="segments.id", index=True)
    in_segment: bool


class UserProperty(SQLModel, table=True):
    """A named user property (e.g. "email", "id") in a workspace."""

    __tablename__ = "user_properties"
    __table_args__ = (
        UniqueConstraint("workspace_id", "name", name="uq_user_property_workspace_name"),
    )

    id: str = Field(default_factory=_uuid, primary_key=True)
    workspace_id: str = Field(index=True)
    name: str
    definition: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=_now)


class UserPropertyAssignment(SQLModel, table=True):
    """A user's value for a property.

    value is always stored in canonical JSON encoding so that exact-match
    lookups agree with writes.
    """

    __tablename__ = "user_property_assignments"
    __table_args__ = (
        UniqueConstraint(
            "user_property_id", "user_id", name="uq_user_property_assignment"
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_id: str = Field(index=True)
    user_property_id: str = Field(foreign_key="user_properties.id", index=True)
    user_id: str = Field(index=True)
    value: str = Field(index=True)


class UserEvent(SQLModel, table=True):
    """Append-only user event log entry. Never updated or deleted here."""

    __tablename__ = "user_events"
    __table_args__ = (
        UniqueConstraint("workspace_id", "message_id", name="uq_user_event_message"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_id: str = Field(index=True)
    message_id: str
    message_raw: str = Field(sa_column=Column(Text, nullable=False))
    event_time: datetime = Field(default_factory=_now)
    processing_time: Optional[datetime] = None
