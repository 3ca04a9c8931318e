"""OPTLINE — Subscription State Updater & Listing.

Applies per-group subscribe/unsubscribe decisions by upserting the user's
assignment to each group's internal segment, and appends one
SubscriptionChange event per decision.

The assignment upserts and the event append are issued concurrently as
independent writes, not one transaction. A failure in one can leave the other
applied; both are idempotent, so re-submitting the same changes converges.
"""

import asyncio
import json
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlmodel import select

from optline.core.logging import get_logger
from optline.database import SessionFactory
from optline.models.db_models import Segment, SegmentAssignment, SubscriptionGroup
from optline.models.resources import (
    InternalEventType,
    SubscriptionChange,
    UserSubscriptionResource,
)
from optline.store.dialect import insert_for
from optline.store.user_events import InsertUserEvent, insert_user_events

logger = get_logger("subscriptions.updates")


def _iso_timestamp(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    return (
        moment.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def build_subscription_change_event_inner(
    user_id: str,
    message_id: str,
    subscription_group_id: str,
    timestamp: str,
    action: SubscriptionChange,
) -> dict:
    return {
        "userId": user_id,
        "timestamp": timestamp,
        "messageId": message_id,
        "type": "track",
        "event": InternalEventType.SUBSCRIPTION_CHANGE.value,
        "properties": {
            "subscriptionId": subscription_group_id,
            "action": action.value,
        },
    }


def build_subscription_change_event(
    user_id: str,
    subscription_group_id: str,
    action: SubscriptionChange,
    message_id: Optional[str] = None,
    current_time: Optional[datetime] = None,
) -> InsertUserEvent:
    message_id = message_id or str(uuid.uuid4())
    current_time = current_time or datetime.now(timezone.utc)
    inner = build_subscription_change_event_inner(
        user_id=user_id,
        message_id=message_id,
        subscription_group_id=subscription_group_id,
        timestamp=_iso_timestamp(current_time),
        action=action,
    )
    return InsertUserEvent(message_id=message_id, message_raw=json.dumps(inner))


async def _upsert_segment_assignment(
    session_factory: SessionFactory,
    workspace_id: str,
    user_id: str,
    segment_id: str,
    in_segment: bool,
) -> None:
    async with session_factory() as session:
        insert = insert_for(session)
        stmt = (
            insert(SegmentAssignment)
            .values(
                workspace_id=workspace_id,
                user_id=user_id,
                segment_id=segment_id,
                in_segment=in_segment,
            )
            .on_conflict_do_update(
                index_elements=["workspace_id", "user_id", "segment_id"],
                set_={"in_segment": in_segment},
            )
        )
        conn = await session.connection()
        await conn.execute(stmt)
        await session.commit()


async def _append_events(
    session_factory: SessionFactory,
    workspace_id: str,
    user_events: List[InsertUserEvent],
) -> None:
    async with session_factory() as session:
        await insert_user_events(session, workspace_id, user_events)


async def update_user_subscriptions(
    session_factory: SessionFactory,
    workspace_id: str,
    user_id: str,
    changes: Dict[str, bool],
) -> None:
    """Apply ``changes`` (subscription group id -> subscribed) for a user.

    A group whose internal segment is missing gets no assignment write but
    still gets its audit event; the other groups are applied normally.
    If a write fails, the remaining writes still complete and the first
    failure is re-raised.
    """
    async with session_factory() as session:
        result = await session.exec(
            select(Segment).where(
                Segment.workspace_id == workspace_id,
                Segment.subscription_group_id.in_(list(changes)),  # type: ignore
            )
        )
        segments = result.all()

    segment_by_group_id = {
        s.subscription_group_id: s for s in segments if s.subscription_group_id
    }

    user_events = [
        build_subscription_change_event(
            user_id=user_id,
            subscription_group_id=group_id,
            action=(
                SubscriptionChange.SUBSCRIBE
                if is_subscribed
                else SubscriptionChange.UNSUBSCRIBE
            ),
        )
        for group_id, is_subscribed in changes.items()
    ]

    assignment_updates = []
    for group_id, is_subscribed in changes.items():
        segment = segment_by_group_id.get(group_id)
        if not segment:
            logger.error(
                "Segment not found for subscription group id",
                extra={
                    "workspace_id": workspace_id,
                    "user_id": user_id,
                    "subscription_group_id": group_id,
                    "reason": "segment_not_found",
                },
            )
            continue
        assignment_updates.append(
            _upsert_segment_assignment(
                session_factory,
                workspace_id=workspace_id,
                user_id=user_id,
                segment_id=segment.id,
                in_segment=is_subscribed,
            )
        )

    # Let every write finish before surfacing a failure
    results = await asyncio.gather(
        *assignment_updates,
        _append_events(session_factory, workspace_id, user_events),
        return_exceptions=True,
    )
    errors = [r for r in results if isinstance(r, BaseException)]
    if errors:
        logger.error(
            f"{len(errors)} subscription writes failed: {errors[0]!r}",
            extra={"workspace_id": workspace_id, "user_id": user_id},
        )
        raise errors[0]
    logger.info(
        f"Applied {len(assignment_updates)}/{len(changes)} subscription changes",
        extra={"workspace_id": workspace_id, "user_id": user_id},
    )


async def get_user_subscriptions(
    session_factory: SessionFactory,
    workspace_id: str,
    user_id: str,
) -> List[UserSubscriptionResource]:
    """The user's subscription state for every group in the workspace, name ascending.

    No assignment row means not subscribed, whatever the group's type.
    """
    async with session_factory() as session:
        groups = (
            await session.exec(
                select(SubscriptionGroup)
                .where(SubscriptionGroup.workspace_id == workspace_id)
                .order_by(SubscriptionGroup.name)
            )
        ).all()

        group_ids = [g.id for g in groups]
        segments = (
            await session.exec(
                select(Segment).where(
                    Segment.workspace_id == workspace_id,
                    Segment.subscription_group_id.in_(group_ids),  # type: ignore
                )
            )
        ).all()

        segment_ids = [s.id for s in segments]
        assignments = (
            await session.exec(
                select(SegmentAssignment).where(
                    SegmentAssignment.workspace_id == workspace_id,
                    SegmentAssignment.user_id == user_id,
                    SegmentAssignment.segment_id.in_(segment_ids),  # type: ignore
                )
            )
        ).all()

    segment_by_group_id = {s.subscription_group_id: s for s in segments}
    in_segment_by_segment_id = {a.segment_id: a.in_segment for a in assignments}

    subscriptions: List[UserSubscriptionResource] = []
    for group in groups:
        segment = segment_by_group_id.get(group.id)
        if not segment:
            logger.error(
                "No segment found for subscription group",
                extra={"workspace_id": workspace_id, "subscription_group_id": group.id},
            )
            continue
        subscriptions.append(
            UserSubscriptionResource(
                id=group.id,
                name=group.name,
                is_subscribed=in_segment_by_segment_id.get(segment.id) is True,
            )
        )

    return subscriptions
