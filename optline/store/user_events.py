"""OPTLINE — User event log (append only)."""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from optline.core.logging import get_logger
from optline.models.db_models import UserEvent
from optline.store.dialect import insert_for

logger = get_logger("store.user_events")


@dataclass(frozen=True)
class InsertUserEvent:
    message_id: str
    message_raw: str

    @property
    def payload(self) -> dict:
        return json.loads(self.message_raw)


async def insert_user_events(
    session: AsyncSession,
    workspace_id: str,
    user_events: List[InsertUserEvent],
) -> None:
    """Append events in one statement.

    Re-sending an event with an already recorded message_id is a no-op, so
    callers may retry a batch safely.
    """
    if not user_events:
        return

    insert = insert_for(session)
    now = datetime.now(timezone.utc)
    stmt = (
        insert(UserEvent)
        .values(
            [
                {
                    "workspace_id": workspace_id,
                    "message_id": e.message_id,
                    "message_raw": e.message_raw,
                    "event_time": now,
                }
                for e in user_events
            ]
        )
        .on_conflict_do_nothing(index_elements=["workspace_id", "message_id"])
    )
    conn = await session.connection()
    await conn.execute(stmt)
    await session.commit()
    logger.info(
        f"Appended {len(user_events)} user events",
        extra={"workspace_id": workspace_id},
    )


async def get_user_events(
    session: AsyncSession,
    workspace_id: str,
    event: Optional[str] = None,
) -> List[dict]:
    """Read back event payloads for a workspace, oldest first."""
    result = await session.exec(
        select(UserEvent)
        .where(UserEvent.workspace_id == workspace_id)
        .order_by(UserEvent.id)  # type: ignore
    )
    payloads = [json.loads(row.message_raw) for row in result.all()]
    if event is not None:
        payloads = [p for p in payloads if p.get("event") == event]
    return payloads
