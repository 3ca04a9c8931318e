"""OPTLINE — Subscription Group Registry.

A subscription group and its internal segment are created together in one
transaction. The segment is keyed on (workspace_id, subscriptionGroup-<id>)
and, once created, is never rewritten by later upserts of the group.
"""

import uuid
from datetime import datetime, timezone
from typing import List

from sqlmodel import select

from optline.config import settings
from optline.core.errors import ChannelNotFoundError, SubscriptionGroupConflictError
from optline.core.logging import get_logger
from optline.database import SessionFactory
from optline.models.db_models import Segment, SubscriptionGroup
from optline.models.resources import (
    SegmentDefinition,
    SegmentResourceType,
    SubscriptionGroupResource,
    SubscriptionGroupSegmentNode,
    SubscriptionGroupType,
    UpsertSubscriptionGroupResource,
)
from optline.store.channels import find_channel

logger = get_logger("subscriptions.registry")


def subscription_group_segment_name(subscription_group_id: str) -> str:
    return f"subscriptionGroup-{subscription_group_id}"


def subscription_group_segment_definition(subscription_group_id: str) -> dict:
    definition = SegmentDefinition(
        entry_node=SubscriptionGroupSegmentNode(subscription_group_id=subscription_group_id),
        nodes=[],
    )
    return definition.model_dump(mode="json")


def subscription_group_to_resource(
    subscription_group: SubscriptionGroup,
) -> SubscriptionGroupResource:
    group_type = (
        SubscriptionGroupType.OPT_IN
        if subscription_group.type == SubscriptionGroupType.OPT_IN.value
        else SubscriptionGroupType.OPT_OUT
    )
    return SubscriptionGroupResource(
        id=subscription_group.id,
        workspace_id=subscription_group.workspace_id,
        name=subscription_group.name,
        type=group_type,
    )


async def upsert_subscription_group(
    session_factory: SessionFactory,
    resource: UpsertSubscriptionGroupResource,
) -> SubscriptionGroup:
    """Create or update a subscription group together with its internal segment.

    Raises:
        ChannelNotFoundError: the workspace has no email channel. Nothing is written.
        SubscriptionGroupConflictError: the id belongs to a group in another
            workspace. Nothing is written.
    """
    group_id = resource.id or str(uuid.uuid4())
    workspace_id = resource.workspace_id
    segment_name = subscription_group_segment_name(group_id)

    async with session_factory() as session:
        email_channel = await find_channel(
            session, workspace_id, settings.email_channel_name
        )
    if not email_channel:
        raise ChannelNotFoundError("Email channel not found", workspace_id=workspace_id)

    # ── Group + segment in a single transaction ──
    async with session_factory.begin() as session:
        group = await session.get(SubscriptionGroup, group_id)
        if group and group.workspace_id != workspace_id:
            raise SubscriptionGroupConflictError(
                f"Subscription group {group_id} belongs to another workspace",
                workspace_id=workspace_id,
            )
        if group:
            group.name = resource.name
            group.type = resource.type.value
            group.updated_at = datetime.now(timezone.utc)
        else:
            group = SubscriptionGroup(
                id=group_id,
                workspace_id=workspace_id,
                name=resource.name,
                type=resource.type.value,
                channel_id=email_channel.id,
            )
        session.add(group)
        # Segment references the group; flush it first
        await session.flush()

        result = await session.exec(
            select(Segment).where(
                Segment.workspace_id == workspace_id,
                Segment.name == segment_name,
            )
        )
        if not result.first():
            session.add(
                Segment(
                    workspace_id=workspace_id,
                    name=segment_name,
                    definition=subscription_group_segment_definition(group_id),
                    subscription_group_id=group_id,
                    resource_type=SegmentResourceType.INTERNAL.value,
                )
            )

    logger.info(
        f"Upserted subscription group {resource.name!r}",
        extra={"workspace_id": workspace_id, "subscription_group_id": group_id},
    )
    return group


async def get_subscription_groups(
    session_factory: SessionFactory, workspace_id: str
) -> List[SubscriptionGroupResource]:
    """All subscription groups in a workspace, name ascending."""
    async with session_factory() as session:
        result = await session.exec(
            select(SubscriptionGroup)
            .where(SubscriptionGroup.workspace_id == workspace_id)
            .order_by(SubscriptionGroup.name)
        )
        return [subscription_group_to_resource(g) for g in result.all()]
