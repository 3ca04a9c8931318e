"""OPTLINE — Channel registry."""

from typing import Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from optline.models.db_models import Channel


async def find_channel(
    session: AsyncSession, workspace_id: str, name: str
) -> Optional[Channel]:
    result = await session.exec(
        select(Channel).where(
            Channel.workspace_id == workspace_id,
            Channel.name == name,
        )
    )
    return result.first()


async def upsert_channel(session: AsyncSession, workspace_id: str, name: str) -> Channel:
    """Create the channel if the workspace does not have it yet."""
    existing = await find_channel(session, workspace_id, name)
    if existing:
        return existing
    channel = Channel(workspace_id=workspace_id, name=name)
    session.add(channel)
    await session.commit()
    return channel
